from typing import Optional

import httpx

from app.logging_config import get_logger
from app.schemas.message import OutboundMessage

logger = get_logger("messenger_service")


class MessengerService:
    """Service for sending messages through the Messenger Send API."""

    def __init__(
        self,
        page_access_token: str,
        *,
        api_url: str = "https://graph.facebook.com/v19.0/me/messages",
        timeout_seconds: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.page_access_token = page_access_token
        self.api_url = api_url
        self.timeout_seconds = timeout_seconds
        self._transport = transport

    async def _make_request(self, data: dict) -> dict:
        """Make request to the Send API."""
        try:
            async with httpx.AsyncClient(timeout=self.timeout_seconds, transport=self._transport) as client:
                response = await client.post(
                    self.api_url,
                    params={"access_token": self.page_access_token},
                    json=data,
                )
                body = response.json()
            if not isinstance(body, dict):
                body = {}
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Send API error: {e}")
            return {"ok": False, "error": str(e)}

        if response.status_code != 200:
            logger.error(
                "Send API rejected message",
                extra={"context": {"status": response.status_code, "error": body.get("error")}},
            )
            return {"ok": False, "error": body.get("error"), "status": response.status_code}

        logger.info(
            "Message sent",
            extra={"context": {"recipient_id": body.get("recipient_id"), "message_id": body.get("message_id")}},
        )
        return {"ok": True, **body}

    async def send(self, user_id: str, message: OutboundMessage) -> dict:
        """Send one outbound message to a Messenger user."""
        if not self.page_access_token:
            logger.error("Page access token is missing (PAGE_ACCESS_TOKEN env var not set)")
            return {"ok": False, "error": "missing_page_access_token"}

        data = {
            "recipient": {"id": user_id},
            "messaging_type": "RESPONSE",
            "message": message.to_messenger(),
        }
        return await self._make_request(data)
