"""Document store boundary and an in-process implementation of it."""
from __future__ import annotations

import copy
import logging
import uuid
from threading import RLock
from typing import Any, Callable, Dict, List, NamedTuple, Optional, Protocol

logger = logging.getLogger(__name__)


class DocumentSnapshot(NamedTuple):
    """One document as delivered in a collection snapshot."""

    id: str
    data: Dict[str, Any]


SnapshotCallback = Callable[[List[DocumentSnapshot]], None]
ErrorCallback = Callable[[Exception], None]
Unsubscribe = Callable[[], None]


class DocumentStore(Protocol):
    """Primitives the dashboard needs from a live document database."""

    def subscribe(
        self,
        collection: str,
        on_snapshot: SnapshotCallback,
        on_error: Optional[ErrorCallback] = None,
    ) -> Unsubscribe:
        ...

    async def get_document(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        ...

    async def add_document(self, collection: str, data: Dict[str, Any]) -> str:
        ...

    async def update_document(self, collection: str, doc_id: str, fields: Dict[str, Any]) -> None:
        ...


class DocumentNotFound(LookupError):
    """Raised when an update targets a document that does not exist."""


class _Listener:
    def __init__(self, on_snapshot: SnapshotCallback, on_error: Optional[ErrorCallback]) -> None:
        self.on_snapshot = on_snapshot
        self.on_error = on_error


class InMemoryDocumentStore:
    """Thread-safe document store that pushes a full snapshot after every write.

    A new subscriber immediately receives the current contents of the
    collection. Snapshot payloads are deep copies, so listeners can never
    alter stored documents.
    """

    def __init__(self) -> None:
        self._lock = RLock()
        self._collections: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self._listeners: Dict[str, List[_Listener]] = {}

    def subscribe(
        self,
        collection: str,
        on_snapshot: SnapshotCallback,
        on_error: Optional[ErrorCallback] = None,
    ) -> Unsubscribe:
        listener = _Listener(on_snapshot, on_error)
        with self._lock:
            self._listeners.setdefault(collection, []).append(listener)
            snapshot = self._snapshot(collection)
        logger.debug("Listener subscribed to %s", collection)
        self._deliver(listener, snapshot)

        def unsubscribe() -> None:
            with self._lock:
                try:
                    self._listeners.get(collection, []).remove(listener)
                except ValueError:
                    return
            logger.debug("Listener unsubscribed from %s", collection)

        return unsubscribe

    def listener_count(self, collection: str) -> int:
        with self._lock:
            return len(self._listeners.get(collection, []))

    async def get_document(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            data = self._collections.get(collection, {}).get(doc_id)
            return copy.deepcopy(data) if data is not None else None

    async def add_document(self, collection: str, data: Dict[str, Any]) -> str:
        doc_id = uuid.uuid4().hex[:20]
        with self._lock:
            self._collections.setdefault(collection, {})[doc_id] = copy.deepcopy(data)
        logger.info("Added document %s to %s", doc_id, collection)
        self._broadcast(collection)
        return doc_id

    async def update_document(self, collection: str, doc_id: str, fields: Dict[str, Any]) -> None:
        with self._lock:
            documents = self._collections.get(collection, {})
            if doc_id not in documents:
                raise DocumentNotFound(f"{collection}/{doc_id}")
            documents[doc_id].update(copy.deepcopy(fields))
        logger.info("Updated document %s/%s (fields=%s)", collection, doc_id, sorted(fields))
        self._broadcast(collection)

    def fail_subscribers(self, collection: str, error: Exception) -> None:
        """Report ``error`` to every listener of ``collection``."""

        with self._lock:
            listeners = list(self._listeners.get(collection, []))
        for listener in listeners:
            if listener.on_error is not None:
                listener.on_error(error)

    def _snapshot(self, collection: str) -> List[DocumentSnapshot]:
        documents = self._collections.get(collection, {})
        return [DocumentSnapshot(doc_id, copy.deepcopy(data)) for doc_id, data in documents.items()]

    def _broadcast(self, collection: str) -> None:
        with self._lock:
            listeners = list(self._listeners.get(collection, []))
            snapshot = self._snapshot(collection)
        for listener in listeners:
            # Each listener gets its own copy.
            self._deliver(listener, copy.deepcopy(snapshot))

    @staticmethod
    def _deliver(listener: _Listener, snapshot: List[DocumentSnapshot]) -> None:
        try:
            listener.on_snapshot(snapshot)
        except Exception:
            logger.exception("Snapshot listener failed")
