import hashlib
import hmac
import json
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import PlainTextResponse
from pydantic import ValidationError

from app.config import settings
from app.logging_config import get_logger
from app.schemas.webhook import InboundEvent, MessagingEvent, WebhookRequest, WebhookResponse
from app.services.conversation_service import ConversationService, get_conversation_service

logger = get_logger("webhook")

router = APIRouter()


def verify_signature(payload: bytes, signature_header: Optional[str], secret: str) -> bool:
    """Check an ``X-Hub-Signature-256`` (``sha256=...``) or ``X-Hub-Signature`` (``sha1=...``) header."""
    if not signature_header or "=" not in signature_header:
        return False
    method, _, received = signature_header.partition("=")
    digestmod = {"sha256": hashlib.sha256, "sha1": hashlib.sha1}.get(method.strip().lower())
    if digestmod is None:
        return False
    expected = hmac.new(secret.encode("utf-8"), payload, digestmod).hexdigest()
    return hmac.compare_digest(expected, received.strip())


def _check_request_signature(request: Request, payload: bytes) -> None:
    if not settings.app_secret:
        logger.warning("APP_SECRET not configured - skipping signature verification")
        return

    header = request.headers.get("x-hub-signature-256") or request.headers.get("x-hub-signature")
    if not header:
        logger.warning("Couldn't validate the signature: header missing")
        return

    if not verify_signature(payload, header, settings.app_secret):
        logger.error("Couldn't validate the request signature")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid signature")


@router.get("/webhook", response_class=PlainTextResponse)
async def verify_subscription(
    mode: Optional[str] = Query(default=None, alias="hub.mode"),
    token: Optional[str] = Query(default=None, alias="hub.verify_token"),
    challenge: str = Query(default="", alias="hub.challenge"),
):
    if mode == "subscribe" and settings.verify_token and token == settings.verify_token:
        logger.info("Validating webhook")
        return PlainTextResponse(challenge)
    logger.error("Failed validation. Make sure the validation tokens match.")
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Verification failed")


def _log_non_message_event(event: MessagingEvent) -> None:
    context = {"sender_id": event.sender.id, "kind": event.kind}
    if event.delivery:
        context["watermark"] = event.delivery.get("watermark")
        context["mids"] = event.delivery.get("mids")
    elif event.read:
        context["watermark"] = event.read.get("watermark")
    elif event.optin:
        context["ref"] = event.optin.get("ref")
    elif event.account_linking:
        context["status"] = event.account_linking.get("status")
    logger.info("Webhook event received", extra={"context": context})


@router.post("/webhook", response_model=WebhookResponse)
async def handle_webhook(
    request: Request,
    conversations: ConversationService = Depends(get_conversation_service),
):
    """
    Handle Messenger webhook callbacks:
    - Text, quick reply and postback events -> conversation state machine
    - Delivery, read, optin and account linking events -> logged only
    """
    payload = await request.body()
    _check_request_signature(request, payload)

    try:
        body = WebhookRequest(**json.loads(payload))
    except (TypeError, ValueError, ValidationError) as e:
        logger.warning(f"Invalid webhook payload: {e}")
        return WebhookResponse(success=False, message="Invalid webhook payload")

    if body.object != "page":
        return WebhookResponse(success=True, message=f"Ignoring object {body.object}")

    processed = 0
    failed = 0
    error = None
    for entry in body.entry:
        for event in entry.messaging:
            inbound = InboundEvent.from_messaging(event)
            if inbound is None:
                if event.message is not None and event.message.is_echo:
                    logger.debug(f"Received echo for message {event.message.mid}")
                else:
                    _log_non_message_event(event)
                continue
            # A failing event must not drop the rest of the batch.
            try:
                await conversations.handle_event(inbound)
            except Exception as e:
                logger.error(
                    f"Webhook handling error: {e}",
                    exc_info=True,
                    extra={"context": {"sender_id": inbound.sender_id}},
                )
                failed += 1
                error = str(e)
                continue
            processed += 1

    return WebhookResponse(success=failed == 0, processed=processed, failed=failed, message=error)
