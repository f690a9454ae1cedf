"""
Notifications for entity changes made through the CRUD routers.

Delivery is best effort: failures come back inside a NotifyResult and are
never raised to the request that changed the entity.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from ..config import settings
from ..errors import NotifyError
from .notification_service import DeliveryResult, NotificationDispatcher

logger = logging.getLogger(__name__)


@dataclass
class NotifyResult:
    ok: bool
    delivery: Optional[DeliveryResult] = None
    error: Optional[NotifyError] = None


class EntityNotifier:
    def __init__(self, dispatcher: Optional[NotificationDispatcher], sound: str = settings.NOTIFICATION_SOUND):
        self.dispatcher = dispatcher
        self.sound = sound

    async def notify_created(self, title: Optional[str], body: Optional[str], data: Optional[dict] = None) -> NotifyResult:
        if self.dispatcher is None:
            return NotifyResult(ok=True)
        try:
            delivery = await self.dispatcher.deliver(
                title=title or "New record",
                body=body or "",
                data=data or {},
                sound=self.sound,
            )
        except Exception as exc:
            logger.error(f"❌ Entity notification failed: {exc}", exc_info=True)
            return NotifyResult(ok=False, error=NotifyError(str(exc)))
        return NotifyResult(ok=True, delivery=delivery)

    async def notify_updated(self, title: Optional[str], body: Optional[str], data: Optional[dict] = None) -> NotifyResult:
        payload = dict(data) if isinstance(data, dict) else {}
        payload.setdefault("action", "updated")
        return await self.notify_created(title or "Record updated", body, payload)
