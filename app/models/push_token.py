import base64
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from ..database import Document
from ..utils.time_utils import timestamp_to_iso

EXPO_TOKEN_PREFIX = "ExponentPushToken["


class ProviderKind(str, Enum):
    EXPO = "expo"
    FCM = "fcm"


def classify(token: str) -> ProviderKind:
    """Provider for a raw push token, judged only by its shape."""
    if isinstance(token, str) and token.startswith(EXPO_TOKEN_PREFIX):
        return ProviderKind.EXPO
    return ProviderKind.FCM


def token_doc_id(token: str) -> str:
    """Registry document id: unpadded URL-safe base64 of the token."""
    return base64.urlsafe_b64encode(token.encode("utf-8")).decode("ascii").rstrip("=")


def token_from_doc_id(doc_id: str) -> str:
    padding = "=" * (-len(doc_id) % 4)
    return base64.urlsafe_b64decode(doc_id + padding).decode("utf-8")


@dataclass
class PushToken:
    id: str
    token: str
    token_type: Optional[str] = None
    platform: Optional[str] = None
    device_id: Optional[str] = None
    user_id: Optional[str] = None
    app_version: Optional[str] = None
    display_name: Optional[str] = None
    duplicate_of: Optional[str] = None
    active: bool = True
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    last_used_at: Optional[str] = None
    deactivated_at: Optional[str] = None

    @classmethod
    def from_document(cls, doc: Document) -> "PushToken":
        data = doc.data
        token = data.get("token")
        active = data.get("active")
        return cls(
            id=doc.id,
            token=token.strip() if isinstance(token, str) else "",
            token_type=data.get("tokenType") or None,
            platform=data.get("platform") or None,
            device_id=data.get("deviceId") or None,
            user_id=data.get("userId") or None,
            app_version=data.get("appVersion") or None,
            display_name=data.get("displayName") or None,
            duplicate_of=data.get("duplicateOf") or None,
            # Records written before the flag existed count as active.
            active=True if active is None else bool(active),
            created_at=timestamp_to_iso(data.get("createdAt")),
            updated_at=timestamp_to_iso(data.get("updatedAt")),
            last_used_at=timestamp_to_iso(data.get("lastUsedAt")),
            deactivated_at=timestamp_to_iso(data.get("deactivatedAt")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "token": self.token,
            "tokenType": self.token_type,
            "platform": self.platform,
            "deviceId": self.device_id,
            "userId": self.user_id,
            "appVersion": self.app_version,
            "displayName": self.display_name,
            "duplicateOf": self.duplicate_of,
            "active": self.active,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
            "lastUsedAt": self.last_used_at,
            "deactivatedAt": self.deactivated_at,
        }
