import hashlib
import hmac
import json
from unittest.mock import AsyncMock, Mock

import pytest
from fastapi.testclient import TestClient

from app.config import settings
from app.main import app
from app.routers.webhook import verify_signature
from app.services.conversation_service import get_conversation_service
from app.services.dataset_service import DatasetFormatError

SECRET = "app-secret"


def _text_event(text, sender="psid-1", **message):
    return {"sender": {"id": sender}, "recipient": {"id": "page-1"}, "message": {"mid": "m-1", "text": text, **message}}


def _page(*events, obj="page"):
    return {"object": obj, "entry": [{"id": "page-1", "time": 1700000000, "messaging": list(events)}]}


def _sign(body: bytes, method="sha256", secret=SECRET):
    digestmod = hashlib.sha256 if method == "sha256" else hashlib.sha1
    return f"{method}=" + hmac.new(secret.encode(), body, digestmod).hexdigest()


@pytest.fixture
def conversations():
    service = Mock()
    service.handle_event = AsyncMock()
    app.dependency_overrides[get_conversation_service] = lambda: service
    yield service
    app.dependency_overrides.clear()


@pytest.fixture
def client(monkeypatch):
    monkeypatch.setattr(settings, "app_secret", None)
    monkeypatch.setattr(settings, "verify_token", "verify-me")
    return TestClient(app)


class TestVerifySignature:
    def test_sha256_valid(self):
        body = b'{"object": "page"}'
        assert verify_signature(body, _sign(body), SECRET) is True

    def test_sha1_valid(self):
        body = b'{"object": "page"}'
        assert verify_signature(body, _sign(body, "sha1"), SECRET) is True

    def test_wrong_secret(self):
        body = b'{"object": "page"}'
        assert verify_signature(body, _sign(body, secret="other"), SECRET) is False

    @pytest.mark.parametrize("header", [None, "", "deadbeef", "md5=abc"])
    def test_malformed_header(self, header):
        assert verify_signature(b"{}", header, SECRET) is False


class TestSubscriptionVerification:
    def test_returns_challenge(self, client):
        response = client.get(
            "/webhook",
            params={"hub.mode": "subscribe", "hub.verify_token": "verify-me", "hub.challenge": "1158201444"},
        )
        assert response.status_code == 200
        assert response.text == "1158201444"

    def test_wrong_token_forbidden(self, client):
        response = client.get(
            "/webhook",
            params={"hub.mode": "subscribe", "hub.verify_token": "nope", "hub.challenge": "1"},
        )
        assert response.status_code == 403

    def test_missing_mode_forbidden(self, client):
        response = client.get("/webhook", params={"hub.verify_token": "verify-me", "hub.challenge": "1"})
        assert response.status_code == 403

    def test_unconfigured_token_forbidden(self, client, monkeypatch):
        monkeypatch.setattr(settings, "verify_token", "")
        response = client.get("/webhook", params={"hub.mode": "subscribe", "hub.verify_token": "", "hub.challenge": "1"})
        assert response.status_code == 403


class TestWebhookEvents:
    def test_text_message_is_handled(self, client, conversations):
        response = client.post("/webhook", json=_page(_text_event("開始")))

        assert response.status_code == 200
        assert response.json() == {"success": True, "processed": 1, "failed": 0, "message": None}
        event = conversations.handle_event.await_args.args[0]
        assert event.sender_id == "psid-1"
        assert event.answer == "開始"

    def test_quick_reply_payload_wins(self, client, conversations):
        client.post("/webhook", json=_page(_text_event("小於3000元", quick_reply={"payload": "小於3000"})))
        assert conversations.handle_event.await_args.args[0].answer == "小於3000"

    def test_postback_is_handled(self, client, conversations):
        event = {"sender": {"id": "psid-2"}, "postback": {"title": "開始", "payload": "開始"}}
        response = client.post("/webhook", json=_page(event))
        assert response.json()["processed"] == 1
        assert conversations.handle_event.await_args.args[0].answer == "開始"

    def test_echo_is_ignored(self, client, conversations):
        response = client.post("/webhook", json=_page(_text_event("bot reply", is_echo=True)))
        assert response.json()["processed"] == 0
        conversations.handle_event.assert_not_awaited()

    def test_delivery_and_read_are_logged_only(self, client, conversations):
        delivery = {"sender": {"id": "psid-1"}, "delivery": {"mids": ["m-1"], "watermark": 1700000001}}
        read = {"sender": {"id": "psid-1"}, "read": {"watermark": 1700000002}}
        response = client.post("/webhook", json=_page(delivery, read))
        assert response.json() == {"success": True, "processed": 0, "failed": 0, "message": None}
        conversations.handle_event.assert_not_awaited()

    def test_multiple_events_in_order(self, client, conversations):
        client.post("/webhook", json=_page(_text_event("開始"), _text_event("寶山")))
        answers = [call.args[0].answer for call in conversations.handle_event.await_args_list]
        assert answers == ["開始", "寶山"]

    def test_non_page_object_ignored(self, client, conversations):
        response = client.post("/webhook", json=_page(_text_event("hi"), obj="instagram"))
        assert response.json()["success"] is True
        assert "instagram" in response.json()["message"]
        conversations.handle_event.assert_not_awaited()

    @pytest.mark.parametrize("body", [b"not json", b"[1, 2]", b'{"entry": []}'])
    def test_invalid_payload(self, client, conversations, body):
        response = client.post("/webhook", content=body, headers={"content-type": "application/json"})
        assert response.status_code == 200
        assert response.json()["success"] is False
        assert response.json()["message"] == "Invalid webhook payload"

    def test_handler_error_reported(self, client, conversations):
        conversations.handle_event.side_effect = RuntimeError("dataset exploded")
        response = client.post("/webhook", json=_page(_text_event("都可")))
        assert response.json() == {"success": False, "processed": 0, "failed": 1, "message": "dataset exploded"}

    def test_failing_event_does_not_drop_other_senders(self, client, conversations):
        handled = []

        async def handle(event):
            handled.append(event.sender_id)
            if event.sender_id == "psid-a":
                raise DatasetFormatError("Dataset is not valid JSON")

        conversations.handle_event.side_effect = handle
        response = client.post(
            "/webhook",
            json=_page(_text_event("都可", sender="psid-a"), _text_event("開始", sender="psid-b")),
        )

        assert handled == ["psid-a", "psid-b"]
        assert response.json() == {
            "success": False,
            "processed": 1,
            "failed": 1,
            "message": "Dataset is not valid JSON",
        }
        assert conversations.handle_event.await_args.args[0].answer == "開始"


class TestWebhookSignature:
    def test_valid_signature_accepted(self, client, conversations, monkeypatch):
        monkeypatch.setattr(settings, "app_secret", SECRET)
        body = json.dumps(_page(_text_event("開始"))).encode()
        response = client.post(
            "/webhook",
            content=body,
            headers={"content-type": "application/json", "x-hub-signature-256": _sign(body)},
        )
        assert response.status_code == 200
        assert response.json()["processed"] == 1

    def test_mismatched_signature_forbidden(self, client, conversations, monkeypatch):
        monkeypatch.setattr(settings, "app_secret", SECRET)
        body = json.dumps(_page(_text_event("開始"))).encode()
        response = client.post(
            "/webhook",
            content=body,
            headers={"content-type": "application/json", "x-hub-signature-256": _sign(body, secret="other")},
        )
        assert response.status_code == 403
        conversations.handle_event.assert_not_awaited()

    def test_missing_signature_header_still_processed(self, client, conversations, monkeypatch):
        monkeypatch.setattr(settings, "app_secret", SECRET)
        response = client.post("/webhook", json=_page(_text_event("開始")))
        assert response.status_code == 200
        assert response.json()["processed"] == 1


class TestHealth:
    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}

    def test_app_follows_debug_setting(self):
        assert app.debug is settings.debug
