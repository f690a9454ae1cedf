import math
from typing import Any

from ..database import Document
from ..utils.time_utils import normalize_iso_date, to_iso_or_none

DEBT_TYPES = {"deuda", "abono"}
DEBT_TYPE_SYNONYMS = {"pago": "abono", "payment": "abono", "loan": "deuda", "prestamo": "deuda"}
DEBT_ORDER_FIELDS = {"date", "createdAt", "updatedAt", "amount"}


def normalize_debt_type(value: Any) -> str:
    """``deuda`` (owed) or ``abono`` (payment); anything unknown is a debt."""
    if value is None:
        return "deuda"
    normalized = str(value).strip().lower()
    if normalized in DEBT_TYPES:
        return normalized
    return DEBT_TYPE_SYNONYMS.get(normalized, "deuda")


def normalize_debt_amount(value: Any) -> float:
    """Finite amount, or NaN when the value is not a number."""
    if isinstance(value, bool):
        return math.nan
    if isinstance(value, (int, float)):
        return value if math.isfinite(value) else math.nan
    if isinstance(value, str) and value.strip():
        try:
            parsed = float(value)
        except ValueError:
            return math.nan
        return parsed if math.isfinite(parsed) else math.nan
    return math.nan


def debt_to_dict(doc: Document) -> dict:
    data = doc.data
    title = data.get("title") if isinstance(data.get("title"), str) else data.get("name")
    raw_amount = next((data[key] for key in ("amount", "monto", "value") if data.get(key) is not None), 0)
    amount = normalize_debt_amount(raw_amount)
    raw_date = next((data[key] for key in ("date", "fecha", "createdAt") if data.get(key) is not None), None)
    return {
        "id": doc.id,
        "title": title if isinstance(title, str) else "",
        "amount": 0 if math.isnan(amount) else amount,
        "type": normalize_debt_type(data.get("type")),
        "date": normalize_iso_date(raw_date),
        "notes": data.get("notes") if isinstance(data.get("notes"), str) else None,
        "createdAt": to_iso_or_none(data.get("createdAt")),
        "updatedAt": to_iso_or_none(data.get("updatedAt")),
    }


def parse_order_spec(value: Any, default_field: str = "date", default_direction: str = "desc") -> tuple[str, str]:
    """``-field`` sorts descending, ``field`` or ``+field`` ascending."""
    if not isinstance(value, str) or not value.strip():
        return default_field, default_direction
    spec = value.strip()
    direction = "asc"
    if spec[0] == "-":
        direction, spec = "desc", spec[1:]
    elif spec[0] == "+":
        spec = spec[1:]
    if spec not in DEBT_ORDER_FIELDS:
        spec = default_field
    return spec, direction


def sort_debts(items: list[dict], field: str = "date", direction: str = "desc") -> list[dict]:
    """Sort by ``field``, ties broken newest first by date, createdAt, updatedAt."""
    ordered = sorted(
        items,
        key=lambda item: (item["date"] or "", item["createdAt"] or "", item["updatedAt"] or ""),
        reverse=True,
    )
    if field == "amount":
        ordered.sort(key=lambda item: item["amount"], reverse=direction == "desc")
    elif field != "date" or direction != "desc":
        ordered.sort(key=lambda item: item[field] or "", reverse=direction == "desc")
    return ordered
