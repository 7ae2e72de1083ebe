from app.schemas.message import ButtonMessage, OutboundMessage, QuickReplyMessage, TextMessage
from app.schemas.webhook import InboundEvent, MessagingEvent, WebhookRequest, WebhookResponse

__all__ = [
    "TextMessage",
    "QuickReplyMessage",
    "ButtonMessage",
    "OutboundMessage",
    "InboundEvent",
    "MessagingEvent",
    "WebhookRequest",
    "WebhookResponse",
]
