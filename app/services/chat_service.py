"""
Chat messages between registered devices, delivered as push notifications.
"""
import logging
from typing import Any, Optional

from ..config import settings
from ..database import Database, Document, join_path
from ..errors import ValidationError
from ..utils.text_utils import normalize_string
from ..utils.time_utils import timestamp_to_iso
from .notification_service import NotificationDispatcher
from .token_registry import TokenRegistry

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 50
MAX_LIMIT = 200
DEFAULT_TITLE = "New message"


def clamp_limit(limit: Optional[int]) -> int:
    if limit is None:
        return DEFAULT_LIMIT
    return min(max(limit, 1), MAX_LIMIT)


def message_to_dict(doc: Document) -> dict[str, Any]:
    data = doc.data
    recipients = data.get("recipientTokens")
    return {
        "id": doc.id,
        "title": data.get("title") or None,
        "message": data.get("message") or "",
        "senderToken": data.get("senderToken") or None,
        "senderDeviceId": data.get("senderDeviceId") or None,
        "senderDisplayName": data.get("senderDisplayName") or None,
        "senderPlatform": data.get("senderPlatform") or None,
        "appVersion": data.get("appVersion") or None,
        "recipientTokens": recipients if isinstance(recipients, list) else [],
        "data": data.get("data") or None,
        "deliveredCount": data.get("deliveredCount") or 0,
        "invalidCount": data.get("invalidCount") or 0,
        "createdAt": timestamp_to_iso(data.get("createdAt")),
        "updatedAt": timestamp_to_iso(data.get("updatedAt")),
        "deliveredAt": timestamp_to_iso(data.get("deliveredAt")),
    }


class ChatService:
    def __init__(
        self,
        db: Database,
        registry: TokenRegistry,
        dispatcher: NotificationDispatcher,
        collection: str = settings.CHAT_MESSAGES_COLLECTION,
    ):
        self.db = db
        self.registry = registry
        self.dispatcher = dispatcher
        self.collection = collection

    async def list_messages(self, limit: Optional[int] = None) -> list[dict[str, Any]]:
        """Most recent messages, returned oldest first."""
        docs = await self.db.list(self.collection, order_by="createdAt", direction="desc", limit=clamp_limit(limit))
        return [message_to_dict(doc) for doc in reversed(docs)]

    async def post_message(
        self,
        message: Optional[str],
        sender_token: Optional[str],
        title: Optional[str] = None,
        recipient_tokens: Optional[list[str]] = None,
        data: Optional[dict] = None,
        sound: Optional[str] = None,
    ) -> dict[str, Any]:
        text = normalize_string(message)
        if not text:
            raise ValidationError("Message is required")
        sender = normalize_string(sender_token)
        if not sender:
            raise ValidationError("Sender token is required")

        normalized_title = normalize_string(title) or DEFAULT_TITLE
        normalized_data = data if isinstance(data, dict) else None
        recipients = None
        if isinstance(recipient_tokens, list):
            recipients = list(dict.fromkeys(t for t in map(normalize_string, recipient_tokens) if t))

        sender_record = await self.registry.get_by_token(sender)
        sender_info = {
            "senderDeviceId": sender_record.device_id if sender_record else None,
            "senderDisplayName": sender_record.display_name if sender_record else None,
            "senderPlatform": sender_record.platform if sender_record else None,
            "appVersion": sender_record.app_version if sender_record else None,
        }

        now = self.db.timestamp()
        message_id = await self.db.add(
            self.collection,
            {
                "title": normalized_title,
                "message": text,
                "senderToken": sender,
                **sender_info,
                "recipientTokens": recipients,
                "data": normalized_data,
                "createdAt": now,
                "updatedAt": now,
            },
        )

        delivery = await self.dispatcher.deliver(
            title=normalized_title,
            body=text,
            data={
                **(normalized_data or {}),
                "chat": "true",
                "chatMessageId": message_id,
                "senderDeviceId": sender_info["senderDeviceId"],
                "senderDisplayName": sender_info["senderDisplayName"],
            },
            sound=sound or settings.NOTIFICATION_SOUND,
            explicit_tokens=recipients,
            sender_token=sender,
        )

        path = join_path(self.collection, message_id)
        await self.db.set(
            path,
            {
                "deliveredCount": delivery.delivered,
                "invalidCount": delivery.invalid_tokens,
                "deliveredAt": self.db.timestamp() if delivery.delivered else None,
                "updatedAt": self.db.timestamp(),
            },
            merge=True,
        )
        stored = await self.db.get(path)
        logger.info(f"💬 Chat message {message_id} delivered to {delivery.delivered} device(s)")

        payload = message_to_dict(stored)
        payload["delivery"] = delivery.to_dict()
        return payload
