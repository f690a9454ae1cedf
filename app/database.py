"""
Document store access for Firestore and an in-memory implementation.

Paths are slash separated, Firestore style: ``Collection/docId`` for a
document and ``Collection/docId/subcollection`` for a nested collection.
"""

from __future__ import annotations

import copy
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional, Protocol

from google.api_core.exceptions import FailedPrecondition, NotFound
from google.cloud.firestore_v1 import SERVER_TIMESTAMP
from google.cloud.firestore_v1.base_query import FieldFilter

from .config import Settings, settings as default_settings
from .errors import StoreIndexError

logger = logging.getLogger(__name__)


@dataclass
class Document:
    id: str
    path: str
    data: dict = field(default_factory=dict)

    def get(self, key: str, default: Any = None) -> Any:
        return self.data.get(key, default)


def join_path(*parts: str) -> str:
    return "/".join(part.strip("/") for part in parts if part)


class WriteBatch(Protocol):
    def set(self, path: str, data: dict, merge: bool = False) -> None:
        ...

    def update(self, path: str, data: dict) -> None:
        ...

    def delete(self, path: str) -> None:
        ...

    async def commit(self) -> None:
        ...


class Database(Protocol):
    """Capability handed to every service that touches the document store."""

    async def connect(self) -> None:
        ...

    async def close(self) -> None:
        ...

    async def get(self, path: str) -> Optional[Document]:
        ...

    async def set(self, path: str, data: dict, merge: bool = False) -> None:
        ...

    async def add(self, collection: str, data: dict) -> str:
        ...

    async def delete(self, path: str) -> None:
        ...

    async def where(self, collection: str, field_name: str, value: Any) -> list[Document]:
        ...

    async def list(
        self,
        collection: str,
        order_by: Optional[str] = None,
        direction: str = "asc",
        limit: Optional[int] = None,
    ) -> list[Document]:
        ...

    async def count(self, collection: str) -> int:
        ...

    def batch(self) -> WriteBatch:
        ...

    def timestamp(self) -> Any:
        ...


class _FirestoreBatch:
    def __init__(self, client):
        self._client = client
        self._batch = client.batch()

    def set(self, path: str, data: dict, merge: bool = False) -> None:
        self._batch.set(self._client.document(path), data, merge=merge)

    def update(self, path: str, data: dict) -> None:
        self._batch.update(self._client.document(path), data)

    def delete(self, path: str) -> None:
        self._batch.delete(self._client.document(path))

    async def commit(self) -> None:
        await self._batch.commit()


class FirestoreDatabase:
    """Cloud Firestore through the firebase-admin async client."""

    def __init__(self, config: Settings = default_settings):
        self._config = config
        self._app = None
        self._client = None

    async def connect(self) -> None:
        if self._client is not None:
            return
        import firebase_admin
        from firebase_admin import credentials, firestore_async

        cfg = self._config
        if cfg.FB_PROJECT_ID and cfg.FB_CLIENT_EMAIL and cfg.FB_PRIVATE_KEY:
            cred = credentials.Certificate(
                {
                    "type": "service_account",
                    "project_id": cfg.FB_PROJECT_ID,
                    "client_email": cfg.FB_CLIENT_EMAIL,
                    "private_key": cfg.FB_PRIVATE_KEY,
                    "token_uri": "https://oauth2.googleapis.com/token",
                }
            )
        elif cfg.GOOGLE_APPLICATION_CREDENTIALS:
            cred = credentials.Certificate(cfg.GOOGLE_APPLICATION_CREDENTIALS)
        else:
            raise RuntimeError(
                "Missing Firebase credentials. Set FB_PROJECT_ID, FB_CLIENT_EMAIL, FB_PRIVATE_KEY "
                "or GOOGLE_APPLICATION_CREDENTIALS"
            )

        if firebase_admin._apps:
            self._app = firebase_admin.get_app()
        else:
            self._app = firebase_admin.initialize_app(cred)
        self._client = firestore_async.client(self._app)
        logger.info(f"✅ Firestore client connected (project={self._app.project_id})")

    async def close(self) -> None:
        self._client = None
        self._app = None
        logger.info("Firestore client released")

    @property
    def app(self):
        return self._app

    @property
    def client(self):
        if self._client is None:
            raise RuntimeError("Database is not connected")
        return self._client

    async def get(self, path: str) -> Optional[Document]:
        snapshot = await self.client.document(path).get()
        if not snapshot.exists:
            return None
        return Document(snapshot.id, snapshot.reference.path, snapshot.to_dict() or {})

    async def set(self, path: str, data: dict, merge: bool = False) -> None:
        await self.client.document(path).set(data, merge=merge)

    async def add(self, collection: str, data: dict) -> str:
        _, ref = await self.client.collection(collection).add(data)
        return ref.id

    async def delete(self, path: str) -> None:
        await self.client.document(path).delete()

    async def where(self, collection: str, field_name: str, value: Any) -> list[Document]:
        query = self.client.collection(collection).where(filter=FieldFilter(field_name, "==", value))
        return [self._to_document(snap) for snap in await query.get()]

    async def list(
        self,
        collection: str,
        order_by: Optional[str] = None,
        direction: str = "asc",
        limit: Optional[int] = None,
    ) -> list[Document]:
        query = self.client.collection(collection)
        if order_by:
            query = query.order_by(order_by, direction="DESCENDING" if direction == "desc" else "ASCENDING")
        if limit:
            query = query.limit(limit)
        try:
            snapshots = await query.get()
        except FailedPrecondition as exc:
            raise StoreIndexError(str(exc)) from exc
        return [self._to_document(snap) for snap in snapshots]

    async def count(self, collection: str) -> int:
        result = await self.client.collection(collection).count().get()
        return int(result[0][0].value) if result and result[0] else 0

    def batch(self) -> WriteBatch:
        return _FirestoreBatch(self.client)

    def timestamp(self) -> Any:
        return SERVER_TIMESTAMP

    @staticmethod
    def _to_document(snapshot) -> Document:
        return Document(snapshot.id, snapshot.reference.path, snapshot.to_dict() or {})


def _sort_key(value: Any) -> tuple:
    # Firestore cross-type ordering: null < bool < number < timestamp < string.
    if value is None:
        return (0, 0)
    if isinstance(value, bool):
        return (1, value)
    if isinstance(value, (int, float)):
        return (2, value)
    if isinstance(value, datetime):
        return (3, value)
    if isinstance(value, str):
        return (4, value)
    return (5, str(value))


class _InMemoryBatch:
    def __init__(self, db: "InMemoryDatabase"):
        self._db = db
        self._ops: list[tuple[str, str, Optional[dict], bool]] = []

    def set(self, path: str, data: dict, merge: bool = False) -> None:
        self._ops.append(("set", path, data, merge))

    def update(self, path: str, data: dict) -> None:
        self._ops.append(("update", path, data, False))

    def delete(self, path: str) -> None:
        self._ops.append(("delete", path, None, False))

    async def commit(self) -> None:
        for op, path, _, _ in self._ops:
            if op == "update" and path not in self._db.docs:
                raise NotFound(f"No document to update: {path}")
        for op, path, data, merge in self._ops:
            if op == "delete":
                self._db._delete(path)
            else:
                self._db._write(path, data, merge=merge or op == "update")
        self._db.commits += 1


class InMemoryDatabase:
    """Process-local document store for development and tests."""

    def __init__(self):
        self.docs: dict[str, dict] = {}
        self.index_errors: set[str] = set()
        self.writes = 0
        self.commits = 0

    async def connect(self) -> None:
        logger.info("Using in-memory document store")

    async def close(self) -> None:
        pass

    def reset(self) -> None:
        """Clear all stored data (useful in tests)."""
        self.docs.clear()
        self.index_errors.clear()
        self.writes = 0
        self.commits = 0

    def _resolve(self, data: dict) -> dict:
        now = datetime.now(timezone.utc)
        return {key: (now if value is SERVER_TIMESTAMP else copy.deepcopy(value)) for key, value in data.items()}

    def _write(self, path: str, data: dict, merge: bool) -> None:
        resolved = self._resolve(data)
        if merge and path in self.docs:
            self.docs[path].update(resolved)
        else:
            self.docs[path] = resolved
        self.writes += 1

    def _delete(self, path: str) -> None:
        self.docs.pop(path, None)
        self.writes += 1

    def _children(self, collection: str) -> list[Document]:
        prefix = collection.strip("/") + "/"
        return [
            Document(path[len(prefix):], path, copy.deepcopy(data))
            for path, data in self.docs.items()
            if path.startswith(prefix) and "/" not in path[len(prefix):]
        ]

    async def get(self, path: str) -> Optional[Document]:
        data = self.docs.get(path)
        if data is None:
            return None
        return Document(path.rsplit("/", 1)[-1], path, copy.deepcopy(data))

    async def set(self, path: str, data: dict, merge: bool = False) -> None:
        self._write(path, data, merge)

    async def add(self, collection: str, data: dict) -> str:
        doc_id = uuid.uuid4().hex[:20]
        self._write(join_path(collection, doc_id), data, merge=False)
        return doc_id

    async def delete(self, path: str) -> None:
        self._delete(path)

    async def where(self, collection: str, field_name: str, value: Any) -> list[Document]:
        return [doc for doc in self._children(collection) if doc.data.get(field_name) == value]

    async def list(
        self,
        collection: str,
        order_by: Optional[str] = None,
        direction: str = "asc",
        limit: Optional[int] = None,
    ) -> list[Document]:
        docs = self._children(collection)
        if order_by:
            if collection in self.index_errors:
                raise StoreIndexError(f"The query requires an index on {collection}.{order_by}")
            # Documents lacking the field are not part of an ordered result.
            docs = [doc for doc in docs if order_by in doc.data]
            docs.sort(key=lambda doc: (_sort_key(doc.data[order_by]), doc.id), reverse=direction == "desc")
        else:
            docs.sort(key=lambda doc: doc.id)
        return docs[:limit] if limit else docs

    async def count(self, collection: str) -> int:
        return len(self._children(collection))

    def batch(self) -> WriteBatch:
        return _InMemoryBatch(self)

    def timestamp(self) -> Any:
        return SERVER_TIMESTAMP


def create_database(config: Settings = default_settings) -> Database:
    if config.USE_IN_MEMORY_STORE:
        return InMemoryDatabase()
    return FirestoreDatabase(config)
