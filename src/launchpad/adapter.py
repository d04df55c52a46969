"""Live project stream and write operations on top of the document store."""
from __future__ import annotations

import asyncio
import logging
from datetime import date
from typing import Any, Dict, List, Optional, Sequence, Union

from pydantic import ValidationError as PydanticValidationError

from .auth import AuthContext
from .errors import StoreReadError, StoreWriteError
from .schemas import Project, ProjectPatch, Task, TaskStatus
from .store import DocumentSnapshot, DocumentStore, Unsubscribe

logger = logging.getLogger(__name__)

_CLOSED = object()

# Snapshots are full replacements, so only the newest few are worth keeping.
MAX_QUEUED_SNAPSHOTS = 4


def parse_projects(documents: Sequence[DocumentSnapshot]) -> List[Project]:
    """Decode a collection snapshot, skipping documents that do not fit the schema."""

    projects: List[Project] = []
    for document in documents:
        try:
            projects.append(Project.from_document(document.id, document.data))
        except PydanticValidationError as exc:
            logger.warning("Skipping malformed project document %s: %s", document.id, exc.errors()[0]["msg"])
    return projects


class ProjectSubscription:
    """Async stream of full project snapshots.

    Nothing is requested from the store until the auth context is
    authenticated. Snapshots are queued in arrival order; once
    :data:`MAX_QUEUED_SNAPSHOTS` are waiting the oldest is dropped.
    """

    def __init__(self, store: DocumentStore, auth: AuthContext, collection: str) -> None:
        self._store = store
        self._auth = auth
        self._collection = collection
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=MAX_QUEUED_SNAPSHOTS)
        self._unsubscribe: Optional[Unsubscribe] = None
        self._closed = False
        self._closed_event = asyncio.Event()
        self._received = False

    @property
    def loading(self) -> bool:
        return not self._received

    @property
    def active(self) -> bool:
        return self._unsubscribe is not None and not self._closed

    @property
    def closed(self) -> bool:
        return self._closed

    def _offer(self, item: Any) -> None:
        while True:
            try:
                self._queue.put_nowait(item)
                return
            except asyncio.QueueFull:
                self._queue.get_nowait()
                logger.debug("Dropped stale snapshot on %s", self._collection)

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def _on_snapshot(self, documents: List[DocumentSnapshot]) -> None:
        if not self._closed:
            self._offer(documents)

    def _on_error(self, error: Exception) -> None:
        logger.error("Project subscription on %s failed: %s", self._collection, error)
        if not self._closed:
            self._offer(error)

    def _ensure_started(self) -> bool:
        if self._closed:
            return False
        if self._unsubscribe is None:
            if not self._auth.is_authenticated:
                return False
            self._unsubscribe = self._store.subscribe(self._collection, self._on_snapshot, self._on_error)
            logger.info("Subscribed to %s", self._collection)
        return True

    def _unwrap(self, item: Any) -> List[Project]:
        if isinstance(item, Exception):
            raise StoreReadError("Could not load projects.", details={"reason": str(item)}) from item
        self._received = True
        return parse_projects(item)

    def poll(self) -> List[List[Project]]:
        """Return every snapshot queued since the last call, oldest first.

        A queued store error is raised as :class:`StoreReadError`; snapshots
        behind it stay queued for the next call.
        """

        if not self._ensure_started():
            return []
        snapshots: List[List[Project]] = []
        while True:
            try:
                item = self._queue.get_nowait()
            except asyncio.QueueEmpty:
                break
            if item is _CLOSED:
                break
            snapshots.append(self._unwrap(item))
        return snapshots

    def __aiter__(self) -> "ProjectSubscription":
        return self

    async def __anext__(self) -> List[Project]:
        if self._closed:
            raise StopAsyncIteration
        if not self._ensure_started():
            await self._wait_for_auth()
            if not self._ensure_started():
                raise StopAsyncIteration
        item = await self._queue.get()
        if item is _CLOSED:
            raise StopAsyncIteration
        return self._unwrap(item)

    async def _wait_for_auth(self) -> None:
        auth_wait = asyncio.ensure_future(self._auth.wait_authenticated())
        closed_wait = asyncio.ensure_future(self._closed_event.wait())
        _, pending = await asyncio.wait({auth_wait, closed_wait}, return_when=asyncio.FIRST_COMPLETED)
        for future in pending:
            future.cancel()

    def close(self) -> None:
        """Stop callbacks and release the store listener."""

        if self._closed:
            return
        self._closed = True
        if self._unsubscribe is not None:
            self._unsubscribe()
        self._closed_event.set()
        self._offer(_CLOSED)
        logger.info("Closed subscription to %s", self._collection)


class LiveStoreAdapter:
    """Sole reader and writer of authoritative project state."""

    def __init__(self, store: DocumentStore, auth: AuthContext, collection: str = "projects") -> None:
        self._store = store
        self._auth = auth
        self._collection = collection

    @property
    def collection(self) -> str:
        return self._collection

    def subscribe_projects(self) -> ProjectSubscription:
        return ProjectSubscription(self._store, self._auth, self._collection)

    async def create_project(self, name: str, launch_date: date, tasks: Sequence[Task]) -> str:
        document = {
            "name": name,
            "launchDate": launch_date.isoformat(),
            "tasks": [task.to_document() for task in tasks],
        }
        try:
            project_id = await self._store.add_document(self._collection, document)
        except Exception as exc:  # pragma: no cover - depends on the store backend
            logger.error("Creating project %s failed", name, exc_info=exc)
            raise StoreWriteError("Failed to create project.", details={"reason": str(exc)}) from exc
        logger.info("Created project %s with %s tasks", project_id, len(tasks))
        return project_id

    async def update_task_status(self, project_id: str, task_id: str, status: TaskStatus) -> None:
        project = await self._load(project_id)
        if project.find_task(task_id) is None:
            raise StoreWriteError("Task not found.", details={"project": project_id, "task": task_id})
        tasks = [task.with_status(status) if task.id == task_id else task for task in project.tasks]
        await self._write(project_id, {"tasks": [task.to_document() for task in tasks]})
        logger.info("Moved task %s in project %s to %s", task_id, project_id, status.value)

    async def update_project_details(self, project_id: str, fields: Union[ProjectPatch, Dict[str, Any]]) -> None:
        if isinstance(fields, ProjectPatch):
            fields = fields.to_document()
        if not fields:
            logger.debug("Ignoring empty update for project %s", project_id)
            return
        await self._write(project_id, dict(fields))
        logger.info("Updated project %s (fields=%s)", project_id, sorted(fields))

    async def _load(self, project_id: str) -> Project:
        try:
            data = await self._store.get_document(self._collection, project_id)
        except Exception as exc:  # pragma: no cover - depends on the store backend
            raise StoreWriteError("Failed to read project.", details={"project": project_id}) from exc
        if data is None:
            raise StoreWriteError("Project not found.", details={"project": project_id})
        try:
            return Project.from_document(project_id, data)
        except PydanticValidationError as exc:
            raise StoreWriteError("Stored project is malformed.", details={"project": project_id}) from exc

    async def _write(self, project_id: str, fields: Dict[str, Any]) -> None:
        try:
            await self._store.update_document(self._collection, project_id, fields)
        except Exception as exc:
            logger.error("Updating project %s failed", project_id, exc_info=exc)
            raise StoreWriteError("Failed to update project.", details={"project": project_id}) from exc
