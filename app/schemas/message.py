from typing import Literal, Union

from pydantic import BaseModel, Field


class TextMessage(BaseModel):
    kind: Literal["text"] = "text"
    text: str

    def to_messenger(self) -> dict:
        return {"text": self.text}


class QuickReplyMessage(BaseModel):
    """Prompt with quick-reply options. Each label doubles as its payload."""

    kind: Literal["quick_reply"] = "quick_reply"
    text: str
    options: list[str] = Field(default_factory=list)

    def to_messenger(self) -> dict:
        return {
            "text": self.text,
            "quick_replies": [
                {"content_type": "text", "title": option, "payload": option} for option in self.options
            ],
        }


class ButtonMessage(BaseModel):
    kind: Literal["button"] = "button"
    text: str
    url: str
    button_title: str

    def to_messenger(self) -> dict:
        return {
            "attachment": {
                "type": "template",
                "payload": {
                    "template_type": "button",
                    "text": self.text,
                    "buttons": [{"type": "web_url", "url": self.url, "title": self.button_title}],
                },
            }
        }


OutboundMessage = Union[TextMessage, QuickReplyMessage, ButtonMessage]
