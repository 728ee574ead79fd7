"""
Telegram outbound notifier
Sends booking notifications through the Telegram Bot API and classifies failures
"""

import logging
from typing import Optional, Protocol

import httpx

from ..config import NOTIFY_TIMEOUT_SECONDS, TELEGRAM_API_BASE, TELEGRAM_BOT_TOKEN
from ..exceptions import NotifyDispatchError, SendResult

logger = logging.getLogger(__name__)

# Telegram error descriptions meaning the chat will never accept our messages
UNREACHABLE_MARKERS = (
    "chat not found",
    "bot was blocked",
    "user is deactivated",
    "bot can't initiate conversation",
)


class Notifier(Protocol):
    """Opaque message sink used by the lifecycle manager and scheduler"""

    async def send(self, recipient_id: str, message: str) -> SendResult: ...

    async def send_photo(
        self, recipient_id: str, photo_url: str, caption: Optional[str] = None
    ) -> SendResult: ...


def classify_response(status_code: int, description: str) -> SendResult:
    """Map a failed Telegram API response onto a SendResult"""
    text = (description or "").lower()
    if any(marker in text for marker in UNREACHABLE_MARKERS):
        return SendResult.UNREACHABLE
    if status_code == 403:
        return SendResult.UNREACHABLE
    if status_code == 429 or status_code >= 500:
        return SendResult.TRANSIENT
    return SendResult.OTHER


class TelegramNotifier:
    def __init__(
        self,
        bot_token: Optional[str] = TELEGRAM_BOT_TOKEN,
        api_base: str = TELEGRAM_API_BASE,
        timeout: float = NOTIFY_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.bot_token = bot_token
        self.api_base = api_base.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    async def send(self, recipient_id: str, message: str) -> SendResult:
        return await self._deliver(
            "sendMessage", recipient_id, {"chat_id": recipient_id, "text": message}
        )

    async def send_photo(
        self, recipient_id: str, photo_url: str, caption: Optional[str] = None
    ) -> SendResult:
        payload = {"chat_id": recipient_id, "photo": photo_url}
        if caption:
            payload["caption"] = caption
        return await self._deliver("sendPhoto", recipient_id, payload)

    async def _deliver(self, method: str, recipient_id: str, payload: dict) -> SendResult:
        try:
            await self._call(method, recipient_id, payload)
            logger.info(f"✅ Telegram {method} delivered to {recipient_id}")
            return SendResult.SUCCESS
        except NotifyDispatchError as e:
            if e.kind == SendResult.UNREACHABLE:
                logger.debug(f"ℹ️ Telegram recipient {recipient_id} unreachable: {e}")
            else:
                logger.warning(f"⚠️ Telegram {method} to {recipient_id} failed: {e}")
            return e.kind

    async def _call(self, method: str, recipient_id: str, payload: dict) -> dict:
        if not self.bot_token:
            raise NotifyDispatchError(SendResult.OTHER, recipient_id, "bot token not configured")

        url = f"{self.api_base}/bot{self.bot_token}/{method}"
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(url, json=payload)
        except httpx.TimeoutException as e:
            raise NotifyDispatchError(SendResult.TRANSIENT, recipient_id, f"timeout: {e}") from e
        except httpx.HTTPError as e:
            raise NotifyDispatchError(SendResult.TRANSIENT, recipient_id, str(e)) from e

        try:
            body = response.json()
        except ValueError:
            body = {}

        if response.status_code == 200 and body.get("ok", True):
            return body

        description = body.get("description", response.text[:200])
        raise NotifyDispatchError(
            classify_response(response.status_code, description),
            recipient_id,
            f"[{response.status_code}] {description}",
        )
