import httpx
import pytest

from barberbook.exceptions import SendResult
from barberbook.services.telegram_service import TelegramNotifier, classify_response


def _notifier(handler):
    return TelegramNotifier(
        bot_token="123:abc",
        api_base="https://telegram.test/",
        timeout=1.0,
        transport=httpx.MockTransport(handler),
    )


async def test_send_message_success():
    requests = []

    def handler(request: httpx.Request):
        requests.append(request)
        return httpx.Response(200, json={"ok": True, "result": {"message_id": 1}})

    result = await _notifier(handler).send("42", "Hello")

    assert result == SendResult.SUCCESS
    assert requests[0].url == "https://telegram.test/bot123:abc/sendMessage"
    assert b'"chat_id":"42"' in requests[0].content.replace(b" ", b"")


async def test_send_photo_uses_caption():
    requests = []

    def handler(request: httpx.Request):
        requests.append(request)
        return httpx.Response(200, json={"ok": True})

    result = await _notifier(handler).send_photo("42", "https://cdn.test/a.jpg", "Approved")

    assert result == SendResult.SUCCESS
    assert requests[0].url.path.endswith("/sendPhoto")
    assert b"Approved" in requests[0].content


@pytest.mark.parametrize(
    "status_code, description, expected",
    [
        (400, "Bad Request: chat not found", SendResult.UNREACHABLE),
        (403, "Forbidden: bot was blocked by the user", SendResult.UNREACHABLE),
        (403, "Forbidden: user is deactivated", SendResult.UNREACHABLE),
        (429, "Too Many Requests: retry after 5", SendResult.TRANSIENT),
        (502, "Bad Gateway", SendResult.TRANSIENT),
        (400, "Bad Request: message text is empty", SendResult.OTHER),
    ],
)
async def test_failed_responses_are_classified(status_code, description, expected):
    def handler(request: httpx.Request):
        return httpx.Response(status_code, json={"ok": False, "description": description})

    assert await _notifier(handler).send("42", "Hello") == expected


async def test_transport_errors_are_transient():
    def timeout_handler(request: httpx.Request):
        raise httpx.ReadTimeout("timed out", request=request)

    def connect_handler(request: httpx.Request):
        raise httpx.ConnectError("connection refused", request=request)

    assert await _notifier(timeout_handler).send("42", "Hello") == SendResult.TRANSIENT
    assert await _notifier(connect_handler).send("42", "Hello") == SendResult.TRANSIENT


async def test_missing_token_sends_nothing():
    calls = []

    def handler(request: httpx.Request):
        calls.append(request)
        return httpx.Response(200, json={"ok": True})

    notifier = TelegramNotifier(bot_token=None, transport=httpx.MockTransport(handler))

    assert await notifier.send("42", "Hello") == SendResult.OTHER
    assert calls == []


def test_classify_response_without_description():
    assert classify_response(403, "") == SendResult.UNREACHABLE
    assert classify_response(500, None) == SendResult.TRANSIENT
    assert classify_response(404, "Not Found") == SendResult.OTHER
