"""
String normalization shared by the registry, dispatcher and CRUD routers.
"""
import json
import math
from typing import Any, Optional

DISPLAY_NAME_MAX_LENGTH = 80


def normalize_string(value: Any) -> str:
    """Trimmed string for str input, empty string for anything else."""
    return value.strip() if isinstance(value, str) else ""


def to_trimmed_string(value: Any) -> str:
    """Like normalize_string but also accepts numbers and booleans."""
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, (bool, int, float)):
        return str(value).strip()
    return ""


def normalize_display_name(value: Any) -> Optional[str]:
    normalized = normalize_string(value)
    if not normalized:
        return None
    return normalized[:DISPLAY_NAME_MAX_LENGTH]


def truncate_text(value: Any, max_length: int = 120) -> str:
    if value is None:
        return ""
    text = str(value).strip()
    if len(text) <= max_length:
        return text
    return text[: max(1, max_length - 3)].rstrip() + "..."


def stringify_data(data: Optional[dict]) -> dict[str, str]:
    """FCM data payloads only carry strings: keep strings, JSON-encode the rest."""
    if not isinstance(data, dict):
        return {}
    return {
        key: value if isinstance(value, str) else json.dumps(value)
        for key, value in data.items()
        if isinstance(key, str)
    }


def parse_order_value(value: Any) -> Optional[int]:
    """Integer sort key from a stored ``order`` field, or None when unusable."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return int(value) if math.isfinite(value) else None
    if isinstance(value, str):
        trimmed = value.strip()
        if not trimmed:
            return None
        try:
            parsed = float(trimmed)
        except ValueError:
            return None
        return int(parsed) if math.isfinite(parsed) else None
    return None
