"""
Fan a single notification out to every target token across Expo and FCM,
then write delivery results back into the token registry.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional

from ..config import settings
from ..errors import ProviderError, ValidationError
from ..models.push_token import ProviderKind, classify
from ..utils.sound_utils import resolve_sound
from ..utils.text_utils import normalize_string, stringify_data
from .push_providers import EXPO_PERMANENT_ERRORS, FCM_INVALID_TOKEN_ERRORS, ExpoPushClient, FcmPushClient
from .token_registry import TokenRegistry

logger = logging.getLogger(__name__)

NO_RECIPIENTS_MESSAGE = "No recipients for this notification"


@dataclass
class ProviderStats:
    provider: str
    attempted: int = 0
    delivered: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {"provider": self.provider, "attempted": self.attempted, "delivered": self.delivered}


@dataclass
class ProviderReport:
    stats: ProviderStats
    invalid_tokens: list[str] = field(default_factory=list)
    invalid_details: list[dict[str, Any]] = field(default_factory=list)


@dataclass
class DeliveryResult:
    stats: list[ProviderStats]
    total_targets: int
    invalid_tokens: int
    delivered: int
    delivered_tokens: list[str]
    message: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        payload = {
            "ok": True,
            "stats": [stat.to_dict() for stat in self.stats],
            "totalTargets": self.total_targets,
            "invalidTokens": self.invalid_tokens,
            "delivered": self.delivered,
            "deliveredTokens": self.delivered_tokens,
        }
        if self.message:
            payload["message"] = self.message
        return payload


def chunked(items: list, size: int) -> list[list]:
    return [items[i:i + size] for i in range(0, len(items), size)]


def build_exclusion_set(exclude_tokens: Optional[Iterable[str]], sender_token: Optional[str]) -> set[str]:
    exclusions = {normalize_string(token) for token in exclude_tokens or []}
    exclusions.add(normalize_string(sender_token))
    exclusions.discard("")
    return exclusions


class NotificationDispatcher:
    def __init__(
        self,
        registry: TokenRegistry,
        expo: ExpoPushClient,
        fcm: Optional[FcmPushClient],
        expo_batch_size: int = settings.EXPO_MAX_BATCH,
        fcm_batch_size: int = settings.FCM_MAX_BATCH,
    ):
        self.registry = registry
        self.expo = expo
        self.fcm = fcm
        self.expo_batch_size = expo_batch_size
        self.fcm_batch_size = fcm_batch_size

    async def deliver(
        self,
        title: Optional[str],
        body: Optional[str],
        data: Optional[dict] = None,
        sound: Optional[str] = None,
        explicit_tokens: Optional[list[str]] = None,
        exclude_tokens: Optional[Iterable[str]] = None,
        sender_token: Optional[str] = None,
    ) -> DeliveryResult:
        """Deliver one notification to the explicit tokens, or to every active token.

        Raises ValidationError before any I/O when title or body is blank.
        Provider failures never propagate: a failed batch marks all of its
        tokens invalid.
        """
        normalized_title = normalize_string(title)
        normalized_body = normalize_string(body)
        if not normalized_title or not normalized_body:
            raise ValidationError("Notification title and body are required")

        exclusions = build_exclusion_set(exclude_tokens, sender_token)
        targets = await self.registry.resolve_active_targets(explicit_tokens, exclusions)

        if self.fcm is None:
            skipped = {token for token in targets if classify(token) is ProviderKind.FCM}
            if skipped:
                logger.warning(f"⚠️ FCM is not configured, leaving {len(skipped)} token(s) untouched")
                targets = [token for token in targets if token not in skipped]

        if not targets:
            logger.info(f"No recipients for notification {normalized_title!r}")
            return DeliveryResult(
                stats=[ProviderStats("none")],
                total_targets=0,
                invalid_tokens=0,
                delivered=0,
                delivered_tokens=[],
                message=NO_RECIPIENTS_MESSAGE,
            )

        expo_tokens = [token for token in targets if classify(token) is ProviderKind.EXPO]
        fcm_tokens = [token for token in targets if classify(token) is ProviderKind.FCM]
        logger.info(
            f"📢 Delivering {normalized_title!r} to {len(targets)} target(s) "
            f"(expo={len(expo_tokens)}, fcm={len(fcm_tokens)}, excluded={len(exclusions)})"
        )

        reports: list[ProviderReport] = []
        if expo_tokens:
            reports.append(await self._send_expo(expo_tokens, normalized_title, normalized_body, data, sound))
        if fcm_tokens:
            reports.append(await self._send_fcm(fcm_tokens, normalized_title, normalized_body, data))

        invalid = list(dict.fromkeys(token for report in reports for token in report.invalid_tokens))
        invalid_set = set(invalid)
        delivered_tokens = [token for token in targets if token not in invalid_set]

        await asyncio.gather(*(self.registry.touch(token) for token in delivered_tokens))
        await self.registry.mark_inactive(invalid)

        result = DeliveryResult(
            stats=[report.stats for report in reports],
            total_targets=len(targets),
            invalid_tokens=len(invalid),
            delivered=len(delivered_tokens),
            delivered_tokens=delivered_tokens,
        )
        logger.info(
            f"✅ Notification {normalized_title!r}: {result.delivered}/{result.total_targets} delivered, "
            f"{result.invalid_tokens} invalid"
        )
        return result

    async def _send_expo(
        self,
        tokens: list[str],
        title: str,
        body: str,
        data: Optional[dict],
        sound: Optional[str],
    ) -> ProviderReport:
        report = ProviderReport(stats=ProviderStats("expo", attempted=len(tokens)))
        messages = [
            {"to": token, "sound": resolve_sound(sound), "title": title, "body": body, "data": data or {}}
            for token in tokens
        ]

        for batch in chunked(messages, self.expo_batch_size):
            try:
                tickets = await self.expo.send_batch(batch)
            except ProviderError as exc:
                logger.error(f"❌ Expo batch of {len(batch)} failed: {exc}")
                for message in batch:
                    report.invalid_tokens.append(message["to"])
                    report.invalid_details.append(
                        {"token": message["to"], "status": "error", "reason": "ChunkSendError", "message": exc.message}
                    )
                continue

            for message, ticket in zip(batch, tickets):
                ticket = ticket if isinstance(ticket, dict) else {}
                if ticket.get("status") == "ok":
                    report.stats.delivered += 1
                    continue
                details = ticket.get("details") if isinstance(ticket.get("details"), dict) else {}
                reason = details.get("error") or ticket.get("message") or "unknown"
                detail = {
                    "token": message["to"],
                    "status": ticket.get("status") or "error",
                    "reason": reason,
                    "message": ticket.get("message"),
                }
                report.invalid_details.append(detail)
                if reason in EXPO_PERMANENT_ERRORS:
                    report.invalid_tokens.append(message["to"])
                logger.warning(f"Expo ticket error: {detail}")

        return report

    async def _send_fcm(self, tokens: list[str], title: str, body: str, data: Optional[dict]) -> ProviderReport:
        report = ProviderReport(stats=ProviderStats("fcm", attempted=len(tokens)))
        payload = stringify_data(data)

        for batch in chunked(tokens, self.fcm_batch_size):
            try:
                responses = await self.fcm.send_batch(batch, title, body, payload)
            except ProviderError as exc:
                logger.error(f"❌ FCM batch of {len(batch)} failed: {exc}")
                report.invalid_tokens.extend(batch)
                continue

            for token, response in zip(batch, responses):
                if response.success:
                    report.stats.delivered += 1
                elif isinstance(response.exception, FCM_INVALID_TOKEN_ERRORS):
                    report.invalid_tokens.append(token)
                else:
                    logger.warning(f"FCM send failed for {token[:20]}...: {response.exception}")

        return report
