import logging
from typing import Any, Optional

import httpx

logger = logging.getLogger(__name__)


class GatewaySendError(Exception):
    pass


class TelegramGateway:
    def __init__(
        self,
        token: str,
        base_url: str = "https://api.telegram.org",
        timeout: float = 10.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.token = token
        self.base_url = base_url.rstrip("/")
        self.client = httpx.Client(timeout=timeout, transport=transport)

    def send(self, chat_id: str, text: str, reply_markup: Optional[dict] = None) -> bool:
        payload: dict[str, Any] = {"chat_id": chat_id, "text": text}
        if reply_markup:
            payload["reply_markup"] = reply_markup
        try:
            self._call("sendMessage", payload)
        except GatewaySendError as e:
            logger.error(f"sendMessage to {chat_id} failed: {e}")
            return False
        return True

    def acknowledge(self, callback_id: str) -> bool:
        try:
            self._call("answerCallbackQuery", {"callback_query_id": callback_id})
        except GatewaySendError as e:
            logger.error(f"answerCallbackQuery {callback_id} failed: {e}")
            return False
        return True

    def set_webhook(self, url: str) -> dict:
        return self._call("setWebhook", {"url": url})

    def close(self) -> None:
        self.client.close()

    def _call(self, method: str, payload: dict) -> dict:
        # The token is part of the URL, so errors report the method only
        try:
            response = self.client.post(f"{self.base_url}/bot{self.token}/{method}", json=payload)
        except httpx.HTTPError as e:
            raise GatewaySendError(f"{method} request failed: {type(e).__name__}") from e

        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}
        if response.status_code >= 400 or not body.get("ok"):
            description = body.get("description") or response.reason_phrase
            raise GatewaySendError(f"{method} returned {response.status_code}: {description}")
        return body
