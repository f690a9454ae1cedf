"""
Registry of device push tokens stored one document per token.

Registering a token for a known device id deactivates every other record of
that device, so at most one record per device stays active.
"""
import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from ..config import settings
from ..database import Database, join_path
from ..errors import NotFoundError, ValidationError
from ..models.push_token import ProviderKind, PushToken, classify, token_doc_id
from ..utils.text_utils import normalize_display_name, normalize_string
from ..utils.time_utils import comparable_timestamp

logger = logging.getLogger(__name__)

# Marks an optional argument the caller did not send at all.
UNSET = object()


@dataclass
class RegistrationResult:
    token: str
    provider_kind: str
    is_new: bool
    display_name: Optional[str]
    doc_id: str


class TokenRegistry:
    def __init__(self, db: Database, collection: str = settings.PUSH_TOKENS_COLLECTION):
        self.db = db
        self.collection = collection

    def _path(self, doc_id: str) -> str:
        return join_path(self.collection, doc_id)

    async def upsert(
        self,
        token: Optional[str],
        device_id: Optional[str] = None,
        user_id: Optional[str] = None,
        platform: Optional[str] = None,
        app_version: Optional[str] = None,
        provider_hint: Optional[str] = None,
        display_name: Optional[str] = None,
    ) -> RegistrationResult:
        """Create or refresh the record for ``token`` and dedupe its device.

        ``display_name=None`` means "not supplied": the stored name is kept,
        or for new records derived from the device id.
        """
        normalized_token = normalize_string(token)
        if not normalized_token:
            raise ValidationError("Invalid push token")

        token_type = normalize_string(provider_hint) or classify(normalized_token).value
        doc_id = token_doc_id(normalized_token)
        existing = await self.db.get(self._path(doc_id))
        is_new = existing is None

        normalized_device_id = normalize_string(device_id)
        now = self.db.timestamp()
        payload = {
            "token": normalized_token,
            "tokenType": token_type,
            "platform": normalize_string(platform) or None,
            "deviceId": normalized_device_id or None,
            "userId": normalize_string(user_id) or None,
            "appVersion": normalize_string(app_version) or None,
            "active": True,
            "updatedAt": now,
            "lastUsedAt": now,
        }

        if display_name is not None:
            payload["displayName"] = normalize_display_name(display_name)
        elif existing is not None and existing.get("displayName"):
            payload["displayName"] = existing.get("displayName")
        elif is_new and normalized_device_id:
            payload["displayName"] = normalize_display_name(normalized_device_id)

        if is_new:
            payload["createdAt"] = now

        await self.db.set(self._path(doc_id), payload, merge=True)
        await self._dedupe_device(normalized_device_id, doc_id)

        stored = await self.db.get(self._path(doc_id))
        stored_name = stored.get("displayName") if stored else None
        action = "Registered" if is_new else "Refreshed"
        logger.info(f"📱 {action} push token {normalized_token[:20]}... ({token_type}, device={normalized_device_id or '-'})")
        return RegistrationResult(
            token=normalized_token,
            provider_kind=token_type,
            is_new=is_new,
            display_name=stored_name or None,
            doc_id=doc_id,
        )

    async def _dedupe_device(self, device_id: str, current_doc_id: str) -> None:
        if not device_id:
            return
        records = await self.db.where(self.collection, "deviceId", device_id)
        duplicates = [doc for doc in records if doc.id != current_doc_id]
        if not duplicates:
            return

        batch = self.db.batch()
        now = self.db.timestamp()
        for doc in duplicates:
            batch.set(
                doc.path,
                {"active": False, "duplicateOf": current_doc_id, "updatedAt": now, "deactivatedAt": now},
                merge=True,
            )
        await batch.commit()
        logger.info(f"Deactivated {len(duplicates)} duplicate record(s) for device {device_id}")

    async def mark_inactive(self, tokens: Iterable[str]) -> None:
        normalized = {normalize_string(token) for token in tokens or []}
        normalized.discard("")
        if not normalized:
            return

        batch = self.db.batch()
        now = self.db.timestamp()
        for token in sorted(normalized):
            batch.set(
                self._path(token_doc_id(token)),
                {"active": False, "deactivatedAt": now, "updatedAt": now},
                merge=True,
            )
        await batch.commit()
        logger.info(f"🚫 Marked {len(normalized)} push token(s) inactive")

    async def touch(self, token: str) -> None:
        normalized = normalize_string(token)
        if not normalized:
            return
        now = self.db.timestamp()
        await self.db.set(
            self._path(token_doc_id(normalized)),
            {"active": True, "lastUsedAt": now, "updatedAt": now},
            merge=True,
        )

    async def resolve_active_targets(
        self,
        explicit_tokens: Optional[list[str]] = None,
        exclusion_set: Optional[set[str]] = None,
    ) -> list[str]:
        exclusion_set = exclusion_set or set()
        targets = list(explicit_tokens) if explicit_tokens else []

        if not targets:
            active = await self.db.where(self.collection, "active", True)
            targets = [doc.get("token") for doc in active if doc.get("token")]

        if not targets:
            latest = await self._latest_expo_token()
            if latest:
                logger.warning(f"⚠️ No active push tokens; falling back to latest Expo token {latest[:20]}...")
                targets = [latest]

        sanitized = (normalize_string(token) for token in targets)
        return list(dict.fromkeys(t for t in sanitized if t and t not in exclusion_set))

    async def _latest_expo_token(self) -> Optional[str]:
        records = await self.db.where(self.collection, "tokenType", ProviderKind.EXPO.value)
        if not records:
            return None
        latest = max(records, key=lambda doc: comparable_timestamp(doc.get("updatedAt")))
        return latest.get("token") or None

    async def get(self, doc_id: str) -> Optional[PushToken]:
        doc = await self.db.get(self._path(doc_id))
        return PushToken.from_document(doc) if doc else None

    async def get_by_token(self, token: str) -> Optional[PushToken]:
        normalized = normalize_string(token)
        return await self.get(token_doc_id(normalized)) if normalized else None

    async def list_devices(self) -> list[PushToken]:
        """Active devices, one entry per device id (or token), newest first."""
        records = [PushToken.from_document(doc) for doc in await self.db.list(self.collection)]

        unique: dict[str, PushToken] = {}
        for record in records:
            if not record.token:
                continue
            key = record.device_id or record.token
            current = unique.get(key)
            if current is None:
                unique[key] = record
            elif (record.active, _recency(record)) > (current.active, _recency(current)):
                unique[key] = record

        devices = [record for record in unique.values() if record.active]
        devices.sort(key=_recency, reverse=True)
        return devices

    async def rename_device(self, doc_id: str, display_name=UNSET) -> PushToken:
        doc_id = normalize_string(doc_id)
        if not doc_id:
            raise ValidationError("Invalid device id")
        path = self._path(doc_id)
        if await self.db.get(path) is None:
            raise NotFoundError("Device not found")

        updates = {"updatedAt": self.db.timestamp()}
        if display_name is not UNSET:
            updates["displayName"] = normalize_display_name(display_name)
        await self.db.set(path, updates, merge=True)
        return await self.get(doc_id)


def _recency(record: PushToken) -> str:
    return record.updated_at or record.last_used_at or ""
