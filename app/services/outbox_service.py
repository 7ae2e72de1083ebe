"""Per-user outbound message queue.

Messages for one user are delivered in order, with a fixed pause between
successive messages so a burst reads naturally in the chat. Pending messages
can be dropped, e.g. when the user restarts the conversation.
"""

from __future__ import annotations

import asyncio
from collections import deque
from typing import Iterable, Protocol

from app.logging_config import get_logger
from app.schemas.message import OutboundMessage

logger = get_logger("outbox_service")


class NotifyChannel(Protocol):
    async def send(self, user_id: str, message: OutboundMessage) -> dict: ...


class Outbox:
    def __init__(self, channel: NotifyChannel, *, delay_seconds: float = 2.0):
        self._channel = channel
        self._delay_seconds = max(delay_seconds, 0.0)
        self._queues: dict[str, deque[OutboundMessage]] = {}
        self._workers: dict[str, asyncio.Task] = {}

    def enqueue(self, user_id: str, messages: Iterable[OutboundMessage]) -> int:
        queue = self._queues.setdefault(user_id, deque())
        before = len(queue)
        queue.extend(messages)
        added = len(queue) - before
        if not added:
            return 0

        worker = self._workers.get(user_id)
        if worker is None or worker.done():
            self._workers[user_id] = asyncio.create_task(self._drain(user_id))
        return added

    def pending(self, user_id: str) -> int:
        return len(self._queues.get(user_id, ()))

    def cancel(self, user_id: str) -> int:
        """Drop everything still queued for the user and stop its worker."""
        queue = self._queues.pop(user_id, None)
        dropped = len(queue) if queue else 0
        worker = self._workers.pop(user_id, None)
        if worker is not None and not worker.done():
            worker.cancel()
        if dropped:
            logger.info("Dropped pending messages", extra={"context": {"user_id": user_id, "dropped": dropped}})
        return dropped

    async def join(self, user_id: str) -> None:
        """Wait until the user's queue has been drained."""
        worker = self._workers.get(user_id)
        if worker is None:
            return
        try:
            await worker
        except asyncio.CancelledError:
            pass

    async def close(self) -> None:
        workers = list(self._workers.values())
        self._workers.clear()
        self._queues.clear()
        for worker in workers:
            worker.cancel()
        for worker in workers:
            try:
                await worker
            except asyncio.CancelledError:
                pass

    async def _drain(self, user_id: str) -> None:
        queue = self._queues.get(user_id)
        first = True
        while queue:
            if not first and self._delay_seconds:
                await asyncio.sleep(self._delay_seconds)
            first = False
            if not queue:
                break
            message = queue.popleft()
            try:
                await self._channel.send(user_id, message)
            except Exception as exc:
                logger.error(
                    "Outbound send failed",
                    extra={"context": {"user_id": user_id, "kind": message.kind, "error": str(exc)}},
                )
        if self._workers.get(user_id) is asyncio.current_task():
            self._workers.pop(user_id, None)
            if not self._queues.get(user_id):
                self._queues.pop(user_id, None)
