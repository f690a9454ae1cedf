from fastapi import APIRouter, Body, Depends, Query, status
from typing import Any, Optional
import asyncio
import logging
import time

from ..config import settings
from ..database import Database, join_path
from ..dependencies import get_db, get_notifier, get_order_engine
from ..errors import NotFoundError, ValidationError
from ..models.category import category_to_dict, task_to_dict
from ..schemas.pendientes import CategoryIn, TaskIn
from ..services.entity_notifier import EntityNotifier
from ..services.order_repair import OrderRepairEngine
from ..utils.text_utils import parse_order_value, to_trimmed_string, truncate_text
from ..utils.time_utils import now_iso

logger = logging.getLogger(__name__)
router = APIRouter()

CATEGORIES = settings.CATEGORIES_COLLECTION
TASK_STATUSES = settings.TASK_STATUSES
DEFAULT_CATEGORY_TITLE = "Pendientes"


def category_path(category_id: str) -> str:
    return join_path(CATEGORIES, category_id)


def tasks_scope(category_id: str) -> str:
    return join_path(CATEGORIES, category_id, settings.TASKS_SUBCOLLECTION)


def epoch_millis() -> int:
    return int(time.time() * 1000)


def normalize_task_status(value: Optional[str]) -> Optional[str]:
    """Lower-cased status from the catalog, the first status when blank, None when unknown."""
    if value is None or not str(value).strip():
        return TASK_STATUSES[0]
    normalized = str(value).strip().lower()
    return normalized if normalized in TASK_STATUSES else None


def parse_reorder_entries(raw: Any, list_key: str, id_keys: tuple[str, ...]) -> list[tuple[str, int]]:
    """Validated ``(id, order)`` pairs from a reorder request body.

    The body may be the list itself or an object holding it under
    ``list_key``, ``items`` or ``data``.
    """
    if isinstance(raw, dict) and "data" in raw and not isinstance(raw.get(list_key), list):
        raw = raw["data"]
    entries = raw
    if isinstance(raw, dict):
        entries = next((raw[key] for key in (list_key, "items", "data") if isinstance(raw.get(key), list)), None)
    if not isinstance(entries, list) or not entries:
        raise ValidationError(f"A list of {list_key} is required to reorder")

    normalized: list[tuple[str, int]] = []
    seen: set[str] = set()
    for index, entry in enumerate(entries):
        if not isinstance(entry, dict):
            raise ValidationError(f"Entry {index} is invalid")
        entry_id = next((to_trimmed_string(entry[key]) for key in id_keys if to_trimmed_string(entry.get(key))), "")
        if not entry_id:
            raise ValidationError(f"Entry {index} has no id")
        if entry_id in seen:
            raise ValidationError(f"{entry_id} appears more than once in the reorder request")
        order = parse_order_value(entry["order"] if "order" in entry else entry.get("position"))
        if order is None:
            raise ValidationError(f"{entry_id} requires a numeric order")
        seen.add(entry_id)
        normalized.append((entry_id, order))
    return normalized


async def apply_reorder(db: Database, scope: str, entries: list[tuple[str, int]]) -> None:
    existing = {doc.id for doc in await db.list(scope)}
    missing = [entry_id for entry_id, _ in entries if entry_id not in existing]
    if missing:
        raise NotFoundError("Not found: " + ", ".join(missing))

    batch = db.batch()
    now = now_iso()
    for entry_id, order in entries:
        batch.update(join_path(scope, entry_id), {"order": order, "updatedAt": now})
    await batch.commit()


async def require_category(db: Database, category_id: str):
    category = await db.get(category_path(category_id))
    if category is None:
        raise NotFoundError("Category not found")
    return category


def category_title(category) -> str:
    title = category.get("title")
    return title.strip() if isinstance(title, str) and title.strip() else DEFAULT_CATEGORY_TITLE


def task_notification_body(task: dict) -> str:
    parts = []
    if task.get("dueDate"):
        parts.append(f"Due {task['dueDate']}")
    snippet = truncate_text(task.get("description") or "", 90)
    if snippet:
        parts.append(snippet)
    return " | ".join(parts)


# ---------------------------------------------------------------- categories


@router.get("")
async def list_categories(
    includeTasks: bool = Query(default=False),
    includeTaskCounts: bool = Query(default=False),
    db: Database = Depends(get_db),
    engine: OrderRepairEngine = Depends(get_order_engine),
):
    docs = await engine.load_ordered(CATEGORIES)

    async def expand(doc):
        category = category_to_dict(doc)
        if includeTasks:
            tasks = await engine.load_ordered(tasks_scope(doc.id))
            category["tasks"] = [task_to_dict(task) for task in tasks]
            category["tasksCount"] = len(tasks)
        elif includeTaskCounts:
            category["tasksCount"] = await db.count(tasks_scope(doc.id))
        category.setdefault("tasksCount", 0)
        return category

    return {"ok": True, "data": await asyncio.gather(*(expand(doc) for doc in docs))}


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_category(payload: CategoryIn, db: Database = Depends(get_db)):
    title = (payload.title or "").strip()
    if not title:
        raise ValidationError('Field "title" is required')

    now = now_iso()
    order = parse_order_value(payload.order)
    category = {
        "title": title,
        "description": payload.description or "",
        "color": payload.color or None,
        "order": order if order is not None else epoch_millis(),
        "createdAt": now,
        "updatedAt": now,
    }
    category_id = await db.add(CATEGORIES, category)
    logger.info(f"📁 Category created: {title} ({category_id})")
    return {"ok": True, "data": {"id": category_id, "tasksCount": 0, **category}}


@router.post("/reorder")
async def reorder_categories(payload: Any = Body(default=None), db: Database = Depends(get_db)):
    entries = parse_reorder_entries(payload, "categories", ("id", "categoryId", "cid"))
    await apply_reorder(db, CATEGORIES, entries)
    return {"ok": True, "message": "Category order updated", "count": len(entries)}


@router.get("/{category_id}")
async def get_category(
    category_id: str,
    includeTasks: bool = Query(default=True),
    db: Database = Depends(get_db),
    engine: OrderRepairEngine = Depends(get_order_engine),
):
    doc = await require_category(db, category_id)
    category = category_to_dict(doc)
    if includeTasks:
        tasks = await engine.load_ordered(tasks_scope(category_id))
        category["tasks"] = [task_to_dict(task) for task in tasks]
        category["tasksCount"] = len(tasks)
    else:
        category["tasksCount"] = await db.count(tasks_scope(category_id))
    return {"ok": True, "data": category}


@router.put("/{category_id}")
async def update_category(category_id: str, payload: CategoryIn, db: Database = Depends(get_db)):
    await require_category(db, category_id)
    fields = payload.model_fields_set
    updates = {}
    if "title" in fields:
        title = (payload.title or "").strip()
        if not title:
            raise ValidationError('Field "title" cannot be empty')
        updates["title"] = title
    if "description" in fields:
        updates["description"] = payload.description or ""
    if "color" in fields:
        updates["color"] = payload.color or None
    if "order" in fields:
        order = parse_order_value(payload.order)
        if order is None:
            raise ValidationError('Field "order" must be numeric')
        updates["order"] = order
    if not updates:
        raise ValidationError("No changes to apply")

    updates["updatedAt"] = now_iso()
    await db.set(category_path(category_id), updates, merge=True)
    return {"ok": True, "message": "Category updated"}


@router.delete("/{category_id}")
async def delete_category(category_id: str, db: Database = Depends(get_db)):
    await require_category(db, category_id)
    tasks = await db.list(tasks_scope(category_id))
    batch = db.batch()
    for task in tasks:
        batch.delete(task.path)
    batch.delete(category_path(category_id))
    await batch.commit()
    logger.info(f"🗑️ Category {category_id} deleted with {len(tasks)} task(s)")
    return {"ok": True, "message": "Category deleted"}


# --------------------------------------------------------------------- tasks


@router.get("/{category_id}/tasks")
async def list_tasks(
    category_id: str,
    db: Database = Depends(get_db),
    engine: OrderRepairEngine = Depends(get_order_engine),
):
    await require_category(db, category_id)
    tasks = [task_to_dict(doc) for doc in await engine.load_ordered(tasks_scope(category_id))]
    return {"ok": True, "data": tasks, "count": len(tasks), "statusCatalog": TASK_STATUSES}


@router.post("/{category_id}/tasks", status_code=status.HTTP_201_CREATED)
async def create_task(
    category_id: str,
    payload: TaskIn,
    db: Database = Depends(get_db),
    notifier: EntityNotifier = Depends(get_notifier),
):
    category = await require_category(db, category_id)
    title = (payload.title or "").strip()
    if not title:
        raise ValidationError('Field "title" is required')
    task_status = normalize_task_status(payload.status)
    if task_status is None:
        raise ValidationError("Invalid task status. Valid: " + ", ".join(TASK_STATUSES))

    now = now_iso()
    order = parse_order_value(payload.order)
    task = {
        "title": title,
        "description": payload.description or "",
        "status": task_status,
        "dueDate": payload.dueDate or None,
        "order": order if order is not None else epoch_millis(),
        "createdAt": now,
        "updatedAt": now,
    }
    task_id = await db.add(tasks_scope(category_id), task)

    parent_title = category_title(category)
    await notifier.notify_created(
        title=f"New task in {parent_title}",
        body=task_notification_body(task) or title,
        data={
            "entityType": "task",
            "action": "created",
            "taskId": task_id,
            "categoryId": category_id,
            "categoryTitle": parent_title,
            "title": title,
            "status": task_status,
            "dueDate": task["dueDate"],
        },
    )
    return {"ok": True, "data": {"id": task_id, **task}}


@router.post("/{category_id}/tasks/reorder")
async def reorder_tasks(category_id: str, payload: Any = Body(default=None), db: Database = Depends(get_db)):
    entries = parse_reorder_entries(payload, "tasks", ("id", "taskId", "tid"))
    await require_category(db, category_id)
    await apply_reorder(db, tasks_scope(category_id), entries)
    return {"ok": True, "message": "Task order updated", "count": len(entries)}


@router.patch("/{category_id}/tasks/{task_id}")
async def update_task(
    category_id: str,
    task_id: str,
    payload: TaskIn,
    db: Database = Depends(get_db),
    notifier: EntityNotifier = Depends(get_notifier),
):
    task_path = join_path(tasks_scope(category_id), task_id)
    category, existing = await asyncio.gather(db.get(category_path(category_id)), db.get(task_path))
    if category is None:
        raise NotFoundError("Category not found")
    if existing is None:
        raise NotFoundError("Task not found")

    fields = payload.model_fields_set
    updates = {}
    if "title" in fields:
        title = (payload.title or "").strip()
        if not title:
            raise ValidationError('Field "title" cannot be empty')
        updates["title"] = title
    if "description" in fields:
        updates["description"] = payload.description or ""
    if "dueDate" in fields:
        updates["dueDate"] = payload.dueDate or None
    if "order" in fields:
        order = parse_order_value(payload.order)
        if order is None:
            raise ValidationError('Field "order" must be numeric')
        updates["order"] = order
    if "status" in fields:
        task_status = normalize_task_status(payload.status)
        if task_status is None:
            raise ValidationError("Invalid task status. Valid: " + ", ".join(TASK_STATUSES))
        updates["status"] = task_status
    if not updates:
        raise ValidationError("No changes to apply")

    updates["updatedAt"] = now_iso()
    await db.set(task_path, updates, merge=True)
    task = task_to_dict(await db.get(task_path))

    parent_title = category_title(category)
    await notifier.notify_updated(
        title=f"Task updated in {parent_title}",
        body=task_notification_body(task) or task.get("title") or "A task was updated.",
        data={
            "entityType": "task",
            "taskId": task_id,
            "categoryId": category_id,
            "categoryTitle": parent_title,
            "title": task.get("title"),
            "status": task.get("status"),
            "dueDate": task.get("dueDate"),
        },
    )
    return {"ok": True, "message": "Task updated", "data": task}


@router.delete("/{category_id}/tasks/{task_id}")
async def delete_task(category_id: str, task_id: str, db: Database = Depends(get_db)):
    await require_category(db, category_id)
    task_path = join_path(tasks_scope(category_id), task_id)
    if await db.get(task_path) is None:
        raise NotFoundError("Task not found")
    await db.delete(task_path)
    return {"ok": True, "message": "Task deleted"}
