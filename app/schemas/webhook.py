from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class MessengerParty(BaseModel):
    id: str


class QuickReply(BaseModel):
    payload: str


class MessengerMessage(BaseModel):
    mid: Optional[str] = None
    text: Optional[str] = None
    is_echo: bool = False
    quick_reply: Optional[QuickReply] = None
    attachments: Optional[list[dict[str, Any]]] = None


class MessengerPostback(BaseModel):
    title: Optional[str] = None
    payload: Optional[str] = None


class MessagingEvent(BaseModel):
    model_config = ConfigDict(extra="allow")

    sender: MessengerParty
    recipient: Optional[MessengerParty] = None
    timestamp: Optional[int] = None
    message: Optional[MessengerMessage] = None
    postback: Optional[MessengerPostback] = None
    delivery: Optional[dict[str, Any]] = None
    read: Optional[dict[str, Any]] = None
    optin: Optional[dict[str, Any]] = None
    account_linking: Optional[dict[str, Any]] = None

    @property
    def kind(self) -> str:
        for name in ("message", "postback", "delivery", "read", "optin", "account_linking"):
            if getattr(self, name) is not None:
                return name
        return "unknown"


class WebhookEntry(BaseModel):
    id: Optional[str] = None
    time: Optional[int] = None
    messaging: list[MessagingEvent] = Field(default_factory=list)


class WebhookRequest(BaseModel):
    object: str
    entry: list[WebhookEntry] = Field(default_factory=list)


class InboundEvent(BaseModel):
    """A user message reduced to what the conversation needs."""

    sender_id: str
    text: Optional[str] = None
    quick_reply_payload: Optional[str] = None
    has_attachment: bool = False

    @property
    def answer(self) -> Optional[str]:
        """Quick reply payload when present, otherwise the typed text."""
        if self.quick_reply_payload:
            return self.quick_reply_payload
        return self.text or None

    @classmethod
    def from_messaging(cls, event: MessagingEvent) -> Optional["InboundEvent"]:
        """Build an inbound event from a message or postback. Echoes yield None."""
        if event.message is not None:
            message = event.message
            if message.is_echo:
                return None
            return cls(
                sender_id=event.sender.id,
                text=message.text,
                quick_reply_payload=message.quick_reply.payload if message.quick_reply else None,
                has_attachment=bool(message.attachments),
            )
        if event.postback is not None and event.postback.payload:
            return cls(sender_id=event.sender.id, quick_reply_payload=event.postback.payload)
        return None


class WebhookResponse(BaseModel):
    success: bool
    processed: int = 0
    failed: int = 0
    message: Optional[str] = None
