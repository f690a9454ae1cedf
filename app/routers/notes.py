from fastapi import APIRouter, Depends, status
import logging

from ..config import settings
from ..database import Database, join_path
from ..dependencies import get_db, get_notifier
from ..errors import NotFoundError, ValidationError
from ..models.note import DEFAULT_NOTE_TYPE, NOTE_TYPES, note_to_dict, parse_flag, sort_notes
from ..schemas.pendientes import NoteIn
from ..services.entity_notifier import EntityNotifier
from ..utils.text_utils import to_trimmed_string, truncate_text
from ..utils.time_utils import now_iso

logger = logging.getLogger(__name__)
router = APIRouter()

NOTES = settings.NOTES_COLLECTION


def resolve_note_type(payload: NoteIn, current: str = DEFAULT_NOTE_TYPE) -> tuple[str, bool]:
    """Note type and manzana flag; an explicit ``isManzana`` wins over ``type``."""
    note_type = current
    if payload.type is not None:
        note_type = to_trimmed_string(payload.type).lower()
        if note_type not in NOTE_TYPES:
            raise ValidationError("Invalid note type. Valid: " + ", ".join(sorted(NOTE_TYPES)))
    is_manzana = note_type == "manzana"
    if payload.isManzana is not None:
        is_manzana = parse_flag(payload.isManzana)
        note_type = "manzana" if is_manzana else DEFAULT_NOTE_TYPE
    return note_type, is_manzana


@router.get("")
async def list_notes(db: Database = Depends(get_db)):
    notes = [note_to_dict(doc) for doc in await db.list(NOTES)]
    return {"ok": True, "data": sort_notes(notes)}


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_note(
    payload: NoteIn,
    db: Database = Depends(get_db),
    notifier: EntityNotifier = Depends(get_notifier),
):
    title = to_trimmed_string(payload.title)
    content = payload.content or ""
    if not title and not content.strip():
        raise ValidationError("A note needs a title or content")

    note_type, is_manzana = resolve_note_type(payload)
    now = now_iso()
    note = {
        "title": title,
        "content": content,
        "type": note_type,
        "isManzana": is_manzana,
        "createdAt": now,
        "updatedAt": now,
    }
    note_id = await db.add(NOTES, note)
    logger.info(f"📝 Note created: {note_id}")

    await notifier.notify_created(
        title="New note",
        body=title or truncate_text(content, 90) or "A note was added.",
        data={"entityType": "note", "action": "created", "noteId": note_id, "type": note_type},
    )
    return {"ok": True, "data": {"id": note_id, **note}}


@router.put("/{note_id}")
async def update_note(
    note_id: str,
    payload: NoteIn,
    db: Database = Depends(get_db),
    notifier: EntityNotifier = Depends(get_notifier),
):
    path = join_path(NOTES, note_id)
    existing = await db.get(path)
    if existing is None:
        raise NotFoundError("Note not found")

    fields = payload.model_fields_set
    updates = {}
    if "title" in fields:
        updates["title"] = to_trimmed_string(payload.title)
    if "content" in fields:
        updates["content"] = payload.content or ""
    if "type" in fields or "isManzana" in fields:
        updates["type"], updates["isManzana"] = resolve_note_type(payload, note_to_dict(existing)["type"])
    if not updates:
        raise ValidationError("No changes to apply")

    updates["updatedAt"] = now_iso()
    await db.set(path, updates, merge=True)
    note = note_to_dict(await db.get(path))

    await notifier.notify_updated(
        title="Note updated",
        body=note["title"] or truncate_text(note["content"], 90) or "A note was updated.",
        data={"entityType": "note", "noteId": note_id, "type": note["type"]},
    )
    return {"ok": True, "message": "Note updated", "data": note}


@router.delete("/{note_id}")
async def delete_note(note_id: str, db: Database = Depends(get_db)):
    path = join_path(NOTES, note_id)
    if await db.get(path) is None:
        raise NotFoundError("Note not found")
    await db.delete(path)
    return {"ok": True, "message": "Note deleted"}
