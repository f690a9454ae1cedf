from fastapi import APIRouter, Depends, Query, status
from typing import Optional
import logging
import math

from ..config import settings
from ..database import Database
from ..dependencies import get_db, get_notifier
from ..errors import StoreIndexError, ValidationError
from ..models.debt import debt_to_dict, normalize_debt_amount, normalize_debt_type, parse_order_spec, sort_debts
from ..schemas.pendientes import DebtIn
from ..services.entity_notifier import EntityNotifier
from ..utils.text_utils import to_trimmed_string
from ..utils.time_utils import normalize_iso_date, now_iso

logger = logging.getLogger(__name__)
router = APIRouter()

DEBTS = settings.DEBTS_COLLECTION


def format_amount(amount: float) -> str:
    return f"{amount:,.2f}"


@router.get("")
async def list_debts(order: Optional[str] = Query(default=None), db: Database = Depends(get_db)):
    field, direction = parse_order_spec(order)
    try:
        docs = await db.list(DEBTS, order_by=field, direction=direction)
        debts = [debt_to_dict(doc) for doc in docs]
    except StoreIndexError as e:
        logger.warning(f"⚠️ Debts ordered by {field} need an index, sorting in process: {e}")
        debts = sort_debts([debt_to_dict(doc) for doc in await db.list(DEBTS)], field, direction)
    return {"ok": True, "data": debts, "count": len(debts)}


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_debt(
    payload: DebtIn,
    db: Database = Depends(get_db),
    notifier: EntityNotifier = Depends(get_notifier),
):
    title = to_trimmed_string(payload.title)
    if not title:
        raise ValidationError('Field "title" is required')
    amount = normalize_debt_amount(payload.amount)
    if math.isnan(amount):
        raise ValidationError('Field "amount" must be a number')

    now = now_iso()
    notes = payload.notes if payload.notes is not None else payload.description
    debt = {
        "title": title,
        "amount": amount,
        "type": normalize_debt_type(payload.type),
        "date": normalize_iso_date(payload.date),
        "notes": to_trimmed_string(notes) or None,
        "createdAt": now,
        "updatedAt": now,
    }
    debt_id = await db.add(DEBTS, debt)
    logger.info(f"💰 Debt entry created: {debt_id} ({debt['type']} {amount})")

    label = "Payment" if debt["type"] == "abono" else "Debt"
    await notifier.notify_created(
        title=f"{label} registered",
        body=f"{title}: {format_amount(amount)}",
        data={"entityType": "debt", "action": "created", "debtId": debt_id, "type": debt["type"], "amount": amount},
    )
    return {"ok": True, "data": {"id": debt_id, **debt}}
