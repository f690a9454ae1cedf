"""
Clients for the two push providers.

Each client performs exactly one network call per batch and raises
ProviderError when that call fails as a whole; per-token outcomes are
returned to the caller for classification.
"""
import asyncio
import logging
from typing import Any, Callable, Optional

import httpx
from firebase_admin import exceptions as firebase_exceptions
from firebase_admin import messaging

from ..config import settings
from ..errors import ProviderError

logger = logging.getLogger(__name__)

# Expo ticket reasons that mean the token will never work again.
EXPO_PERMANENT_ERRORS = frozenset({"DeviceNotRegistered", "NotRegistered", "MessageTooBig", "InvalidCredentials"})

# The SDK raises these for tokens that are not registered for this sender.
FCM_INVALID_TOKEN_ERRORS = (messaging.UnregisteredError, messaging.SenderIdMismatchError)


class ExpoPushClient:
    provider = "expo"

    def __init__(
        self,
        endpoint: str = settings.EXPO_PUSH_ENDPOINT,
        access_token: Optional[str] = settings.EXPO_ACCESS_TOKEN,
        timeout: float = settings.EXPO_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.endpoint = endpoint
        self.access_token = access_token
        if not access_token:
            logger.warning("⚠️ EXPO_ACCESS_TOKEN not set; Expo pushes may fail with InvalidCredentials")
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)

    def _headers(self) -> dict[str, str]:
        headers = {
            "Accept": "application/json",
            "Accept-Encoding": "gzip, deflate",
            "Content-Type": "application/json",
        }
        if self.access_token:
            headers["Authorization"] = f"Bearer {self.access_token}"
        return headers

    async def send_batch(self, messages: list[dict[str, Any]]) -> list[dict[str, Any]]:
        """POST one batch and return its tickets, in request order."""
        try:
            response = await self._client.post(self.endpoint, json=messages, headers=self._headers())
            response.raise_for_status()
            body = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise ProviderError(self.provider, str(exc) or exc.__class__.__name__) from exc

        logger.info(f"📤 Expo batch sent: {len(messages)} message(s), HTTP {response.status_code}")
        tickets = body.get("data") if isinstance(body, dict) else body
        return tickets if isinstance(tickets, list) else []

    async def close(self) -> None:
        await self._client.aclose()


class FcmPushClient:
    provider = "fcm"

    def __init__(self, app=None, send_multicast: Optional[Callable] = None):
        self._app = app
        self._send = send_multicast or messaging.send_each_for_multicast

    async def send_batch(
        self,
        tokens: list[str],
        title: str,
        body: str,
        data: dict[str, str],
    ) -> list[Any]:
        """Send one multicast and return the per-token SendResponse list."""
        try:
            message = messaging.MulticastMessage(
                tokens=tokens,
                notification=messaging.Notification(title=title, body=body),
                data=data,
                android=messaging.AndroidConfig(priority="high"),
            )
            # The SDK call is blocking; keep it off the event loop.
            response = await asyncio.to_thread(self._send, message, app=self._app)
        except (firebase_exceptions.FirebaseError, ValueError) as exc:
            raise ProviderError(self.provider, str(exc) or exc.__class__.__name__) from exc

        logger.info(f"📤 FCM multicast sent: {len(tokens)} token(s), {getattr(response, 'success_count', 0)} success")
        return list(response.responses)

    async def close(self) -> None:
        pass
