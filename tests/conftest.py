import httpx
import pytest

from app.services.conversation_service import ConversationService
from app.services.dataset_service import DatasetService, Record
from app.services.outbox_service import Outbox
from app.services.questionnaire import get_questionnaire
from app.services.session_store import SessionStore

DATASET_URL = "http://listings.test/rentals.json"

LISTINGS = [
    {
        "id": "A01",
        "title": "進德路景觀套房",
        "area": "進德",
        "address": "彰化市進德路12號",
        "type": "套房",
        "rent": "3500",
        "net": "T",
        "water": "T",
        "electricity": "F",
        "landlord": "王先生",
        "phone": "0912-000-001",
    },
    {
        "id": "B01",
        "title": "寶山路雅房",
        "area": "寶山",
        "address": "彰化市寶山路3號",
        "type": "雅房",
        "rent": "2500",
        "net": "T",
        "water": "F",
        "electricity": "F",
    },
    {
        "id": "B02",
        "title": "寶山路獨立套房",
        "area": "寶山",
        "address": "彰化市寶山路8號",
        "type": "獨立套房",
        "rent": 2800,
        "net": "T",
        "water": "F",
        "electricity": "T",
        "landlord": "林小姐",
        "phone": "0912-000-002",
        "url": "https://rentals.example.com/B02",
    },
    {
        "id": "B03",
        "title": "寶山新建套房",
        "area": "寶山里",
        "type": "套房",
        "rent": "4200",
        "net": "T",
        "water": "F",
        "electricity": "F",
    },
    {
        "id": "B04",
        "title": "寶山邊間套房",
        "area": "寶山",
        "type": "套房",
        "rent": "2,999",
        "net": "T",
        "water": "F",
        "electricity": "N",
    },
    {
        "id": "B05",
        "title": "寶山無網路套房",
        "area": "寶山",
        "type": "套房",
        "rent": "2000",
        "net": "F",
        "water": "F",
        "electricity": "F",
    },
]

WILDCARD_CRITERIA = {
    "area": "都可",
    "rent": "都可",
    "type": "都可",
    "net": "都可",
    "water": "都可",
    "electricity": "都可",
}

BAOSHAN_ANSWERS = ["寶山", "小於3000", "套房", "是", "否", "都可"]


class RecordingChannel:
    """Notify channel that keeps every message instead of sending it."""

    def __init__(self):
        self.sent = []

    async def send(self, user_id, message):
        self.sent.append((user_id, message))
        return {"ok": True}

    def texts(self, user_id=None):
        return [message.text for uid, message in self.sent if user_id is None or uid == user_id]


def listings_transport(listings=None, *, status_code=200, content=None):
    payload = {"data": LISTINGS if listings is None else listings}

    def handler(request: httpx.Request) -> httpx.Response:
        if content is not None:
            return httpx.Response(status_code, content=content)
        return httpx.Response(status_code, json=payload)

    return httpx.MockTransport(handler)


@pytest.fixture
def questionnaire():
    return get_questionnaire()


@pytest.fixture
def records():
    return tuple(Record.from_raw(item) for item in LISTINGS)


@pytest.fixture
def channel():
    return RecordingChannel()


@pytest.fixture
def make_service(channel):
    def _make(transport=None):
        return ConversationService(
            store=SessionStore(),
            outbox=Outbox(channel, delay_seconds=0),
            datasets=DatasetService(DATASET_URL, records_path="data", transport=transport or listings_transport()),
        )

    return _make
