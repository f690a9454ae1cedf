from typing import Any

from ..database import Document
from ..utils.text_utils import to_trimmed_string
from ..utils.time_utils import timestamp_to_iso

NOTE_TYPES = {"normal", "manzana"}
DEFAULT_NOTE_TYPE = "normal"
TRUTHY_FLAGS = {"true", "1", "yes", "si", "sí"}


def parse_flag(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in TRUTHY_FLAGS
    if isinstance(value, (int, float)):
        return value == 1
    return False


def note_to_dict(doc: Document) -> dict:
    data = doc.data
    note_type = to_trimmed_string(data.get("type")).lower()
    note_type = note_type if note_type in NOTE_TYPES else DEFAULT_NOTE_TYPE
    is_manzana = data["isManzana"] if isinstance(data.get("isManzana"), bool) else note_type == "manzana"
    return {
        "id": doc.id,
        "title": data.get("title") if isinstance(data.get("title"), str) else "",
        "content": data.get("content") if isinstance(data.get("content"), str) else "",
        "type": "manzana" if is_manzana else note_type,
        "isManzana": is_manzana,
        "createdAt": timestamp_to_iso(data.get("createdAt")),
        "updatedAt": timestamp_to_iso(data.get("updatedAt")),
    }


def sort_notes(items: list[dict]) -> list[dict]:
    """Manzana notes first, then most recently updated, then title and id."""
    ordered = sorted(items, key=lambda note: (note["title"], note["id"]))
    ordered.sort(key=lambda note: note["updatedAt"] or note["createdAt"] or "", reverse=True)
    ordered.sort(key=lambda note: not note["isManzana"])
    return ordered
