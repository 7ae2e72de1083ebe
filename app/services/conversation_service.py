from __future__ import annotations

from typing import Optional

from app.config import settings
from app.logging_config import LoggerAdapter, get_logger
from app.schemas.message import TextMessage
from app.schemas.webhook import InboundEvent
from app.services.alert_service import alert_error
from app.services.cursor_service import count_matches
from app.services.dataset_service import DatasetFormatError, DatasetService
from app.services.messenger_service import MessengerService
from app.services.outbox_service import NotifyChannel, Outbox
from app.services.questionnaire import Questionnaire, get_questionnaire
from app.services.session_store import SessionStore
from app.services.state_machine import Effect, advance, on_dataset_ready

logger = get_logger("conversation_service")


class ConversationService:
    """Routes inbound events through the per-user state machine.

    Session mutations for one user are serialized by the session store lock.
    The dataset fetch runs outside the lock; its result is applied afterwards
    only if the search that requested it is still current.
    """

    def __init__(
        self,
        *,
        store: SessionStore,
        outbox: Outbox,
        datasets: DatasetService,
        questionnaire: Optional[Questionnaire] = None,
    ):
        self.store = store
        self.outbox = outbox
        self.datasets = datasets
        self.questionnaire = questionnaire or get_questionnaire()

    def _apply(self, user_id: str, effect: Effect) -> None:
        if effect.cancel_pending:
            self.outbox.cancel(user_id)
        self.outbox.enqueue(user_id, effect.messages)

    async def handle_event(self, event: InboundEvent) -> Effect:
        user_id = event.sender_id
        log = LoggerAdapter(logger, {"user_id": user_id})
        answer = event.answer

        if not answer:
            if event.has_attachment:
                effect = Effect(messages=[TextMessage(text=self.questionnaire.text("attachment"))])
                self._apply(user_id, effect)
                return effect
            log.debug("Ignoring event without text")
            return Effect()

        async with self.store.locked(user_id) as session:
            previous = session.stage
            effect = advance(session, answer, self.questionnaire)
            self._apply(user_id, effect)
            log.info(
                "Session advanced",
                context={
                    "from_stage": previous.name,
                    "to_stage": session.stage.name,
                    "fetch": effect.wants_fetch,
                    "queued": self.outbox.pending(user_id),
                },
            )

        if effect.wants_fetch:
            await self._run_search(user_id, effect.fetch_generation, log)
        return effect

    async def _run_search(self, user_id: str, generation: int, log: LoggerAdapter) -> None:
        try:
            result = await self.datasets.fetch()
        except DatasetFormatError as exc:
            log.error("Dataset payload is malformed", context={"generation": generation, "error": str(exc)})
            await alert_error("Dataset payload is malformed", {"user_id": user_id, "error": str(exc)})
            raise

        if not result.ok:
            # Session stays in FETCHING; reset/stop keywords still work.
            log.warning("Search stalled, dataset unavailable", context={"generation": generation, "error": result.error})
            return

        async with self.store.locked(user_id) as session:
            effect = on_dataset_ready(session, result.value, generation, self.questionnaire)
            if effect.discarded:
                log.info(
                    "Discarded stale dataset",
                    context={"generation": generation, "current_generation": session.generation},
                )
                return
            self._apply(user_id, effect)
            log.info(
                "Search results ready",
                context={
                    "records": len(result.value),
                    "matches": count_matches(session, self.questionnaire),
                    "cursor": session.cursor,
                },
            )

    async def close(self) -> None:
        await self.outbox.close()


def build_conversation_service(channel: Optional[NotifyChannel] = None) -> ConversationService:
    channel = channel or MessengerService(
        settings.page_access_token,
        api_url=settings.graph_api_url,
        timeout_seconds=settings.send_timeout_seconds,
    )
    return ConversationService(
        store=SessionStore(),
        outbox=Outbox(channel, delay_seconds=settings.message_delay_seconds),
        datasets=DatasetService(
            settings.dataset_url,
            records_path=settings.dataset_records_path,
            timeout_seconds=settings.fetch_timeout_seconds,
        ),
    )


_conversation_service: Optional[ConversationService] = None


def get_conversation_service() -> ConversationService:
    global _conversation_service
    if _conversation_service is None:
        _conversation_service = build_conversation_service()
    return _conversation_service


async def shutdown_conversation_service() -> None:
    global _conversation_service
    if _conversation_service is None:
        return
    await _conversation_service.close()
    _conversation_service = None
