"""Kanban board transitions with optimistic local state.

The board keeps two slices of state: the authoritative projects from the last
store snapshot and the pending moves this client has applied locally but the
store has not yet confirmed. Rendering merges the two; a snapshot always
replaces the authoritative slice wholesale.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from .adapter import LiveStoreAdapter
from .schemas import Project, Task, TaskStatus

logger = logging.getLogger(__name__)

COLUMNS: Tuple[TaskStatus, ...] = (TaskStatus.TODO, TaskStatus.IN_PROGRESS, TaskStatus.DONE)


@dataclass(frozen=True)
class WriteRequest:
    """Status write the store adapter must perform for a move."""

    project_id: str
    task_id: str
    status: TaskStatus


def apply_move(project: Project, task_id: str, target: TaskStatus) -> Tuple[Project, Optional[WriteRequest]]:
    """Return ``project`` with one task moved to ``target`` and the write to persist it.

    Unknown tasks and moves onto the current column return the project
    unchanged and no write.
    """

    task = project.find_task(task_id)
    if task is None or task.status is target:
        return project, None
    tasks = [t.with_status(target) if t.id == task_id else t for t in project.tasks]
    return project.with_tasks(tasks), WriteRequest(project.id, task_id, target)


@dataclass
class _PendingMove:
    status: TaskStatus
    settled: bool = False


class BoardState:
    """Authoritative projects plus this client's unconfirmed moves."""

    def __init__(
        self,
        adapter: LiveStoreAdapter,
        serialize_moves: bool = False,
        on_change: Optional[Callable[[], None]] = None,
    ) -> None:
        self._adapter = adapter
        self._on_change = on_change
        self._serialize_moves = serialize_moves
        self._authoritative: Dict[str, Project] = {}
        self._order: List[str] = []
        self._pending: Dict[Tuple[str, str], _PendingMove] = {}
        self._task_locks: Dict[Tuple[str, str], asyncio.Lock] = {}

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def is_pending(self, project_id: str, task_id: str) -> bool:
        return (project_id, task_id) in self._pending

    def reconcile(self, projects: Iterable[Project]) -> None:
        """Adopt a new snapshot and drop pending moves it has caught up with.

        A pending move survives only while its write is still in flight and
        the snapshot shows the task in some other column.
        """

        projects = list(projects)
        self._authoritative = {project.id: project for project in projects}
        self._order = [project.id for project in projects]

        for key, pending in list(self._pending.items()):
            project = self._authoritative.get(key[0])
            task = project.find_task(key[1]) if project else None
            if task is None or pending.settled or task.status is pending.status:
                del self._pending[key]
        for key in list(self._task_locks):
            if key not in self._pending and not self._task_locks[key].locked():
                del self._task_locks[key]

    def view(self, project_id: str) -> Optional[Project]:
        project = self._authoritative.get(project_id)
        if project is None:
            return None
        overrides = {
            task_id: pending.status for (pid, task_id), pending in self._pending.items() if pid == project_id
        }
        if not overrides:
            return project
        tasks = [
            task.with_status(overrides[task.id])
            if task.id in overrides and task.status is not overrides[task.id]
            else task
            for task in project.tasks
        ]
        return project.with_tasks(tasks)

    def projects(self) -> List[Project]:
        return [self.view(project_id) for project_id in self._order]

    def columns(self, project_id: str, query: str = "") -> Dict[TaskStatus, List[Task]]:
        """Group the rendered tasks of a project by status, filtered by name."""

        project = self.view(project_id)
        grouped: Dict[TaskStatus, List[Task]] = {status: [] for status in COLUMNS}
        if project is None:
            return grouped
        needle = query.strip().lower()
        for task in project.tasks:
            if needle and needle not in task.name.lower():
                continue
            grouped[task.status].append(task)
        return grouped

    async def move(self, project_id: str, task_id: str, target: TaskStatus) -> Optional[Project]:
        """Apply a drop locally, then persist it.

        Returns the optimistic project, or ``None`` when the project is not
        on the board. Store failures propagate as ``StoreWriteError``; the
        optimistic status stays until the next snapshot replaces it.
        """

        project = self.view(project_id)
        if project is None:
            logger.debug("Ignoring move on unknown project %s", project_id)
            return None

        updated, request = apply_move(project, task_id, target)
        if request is None:
            return updated

        key = (project_id, task_id)
        pending = _PendingMove(target)
        self._pending[key] = pending
        logger.debug("Optimistically moved %s/%s to %s", project_id, task_id, target.value)
        self._changed()
        try:
            if self._serialize_moves:
                lock = self._task_locks.setdefault(key, asyncio.Lock())
                async with lock:
                    await self._persist(request)
            else:
                await self._persist(request)
        finally:
            pending.settled = True
            self._changed()
        return updated

    def _changed(self) -> None:
        if self._on_change is not None:
            self._on_change()

    async def _persist(self, request: WriteRequest) -> None:
        await self._adapter.update_task_status(request.project_id, request.task_id, request.status)
