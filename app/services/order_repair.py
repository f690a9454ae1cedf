"""
Stable listing order for sibling documents (categories, tasks in a category).

Firestore only orders by ``order`` when every document carries the field
and an index exists, so listings go through ``OrderRepairEngine``: when the
ordered query is unusable it scans the scope, assigns fresh ``order`` values
to the documents that lack a valid one and persists them in one batch.
"""
import logging
from typing import Optional

from ..database import Database, Document
from ..errors import StoreIndexError
from ..utils.text_utils import parse_order_value
from ..utils.time_utils import comparable_timestamp, now_iso

logger = logging.getLogger(__name__)

ORDER_FIELD = "order"


def _creation_key(doc: Document) -> tuple:
    created = comparable_timestamp(doc.get("createdAt"))
    # Documents without a creation time sort after those that have one.
    return (created == "", created, doc.id)


class OrderRepairEngine:
    def __init__(self, db: Database):
        self.db = db

    async def load_ordered(self, scope: str) -> list[Document]:
        """All documents of collection ``scope``, sorted by ``order``."""
        docs = await self._try_ordered_query(scope)
        if docs is not None:
            return docs

        docs = await self.db.list(scope)
        if not docs:
            return []
        return await self._repair(scope, docs)

    async def _try_ordered_query(self, scope: str) -> Optional[list[Document]]:
        try:
            docs = await self.db.list(scope, order_by=ORDER_FIELD)
        except StoreIndexError as exc:
            logger.warning(f"⚠️ Ordered query on {scope} needs an index, scanning instead: {exc}")
            return None

        orders = [parse_order_value(doc.get(ORDER_FIELD)) for doc in docs]
        if any(order is None for order in orders):
            logger.info(f"Invalid order values in {scope}, repairing")
            return None
        if len(set(orders)) != len(orders):
            logger.info(f"Duplicate order values in {scope}, repairing")
            return None
        # Numeric strings sort after every number in the store.
        if orders != sorted(orders):
            logger.info(f"Order values in {scope} are stored with mixed types, re-sorting")
            return None
        total = await self.db.count(scope)
        if total != len(docs):
            logger.info(f"Ordered query on {scope} returned {len(docs)} of {total} documents, repairing")
            return None
        return docs

    async def _repair(self, scope: str, docs: list[Document]) -> list[Document]:
        valid: list[tuple[int, Document]] = []
        unordered: list[Document] = []
        seen: set[int] = set()

        candidates = sorted(
            ((parse_order_value(doc.get(ORDER_FIELD)), doc) for doc in docs),
            key=lambda item: (item[0] is None, item[0] or 0, _creation_key(item[1])),
        )
        for order, doc in candidates:
            if order is None or order in seen:
                unordered.append(doc)
            else:
                seen.add(order)
                valid.append((order, doc))

        if unordered:
            unordered.sort(key=_creation_key)
            next_order = max(seen) + 1 if seen else 0
            batch = self.db.batch()
            now = now_iso()
            for doc in unordered:
                doc.data[ORDER_FIELD] = next_order
                doc.data["updatedAt"] = now
                batch.update(doc.path, {ORDER_FIELD: next_order, "updatedAt": now})
                valid.append((next_order, doc))
                next_order += 1
            await batch.commit()
            logger.info(f"🔧 Repaired order of {len(unordered)} document(s) in {scope}")

        for order, doc in valid:
            doc.data[ORDER_FIELD] = order
        return [doc for _, doc in sorted(valid, key=lambda item: item[0])]
