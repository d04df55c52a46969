"""Per-user dashboard state and the actions the UI can trigger."""
from __future__ import annotations

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Callable, List, Optional, Tuple

from .adapter import LiveStoreAdapter, ProjectSubscription
from .alerts import compute_stats, derive_alerts
from .auth import AuthContext, AuthStatus, SessionUser
from .board import BoardState
from .config import Settings
from .errors import NotificationError, StoreReadError, StoreWriteError, ValidationError
from .messages import (
    LOAD_FAILED,
    NOTIFY_FAILED,
    NOTIFY_SENDING,
    NOTIFY_SENT,
    PROJECT_CREATE_FAILED,
    PROJECT_CREATED,
    PROJECT_UPDATE_FAILED,
    PROJECT_UPDATED,
    TASK_ADDED,
    TASK_MOVE_FAILED,
)
from .notifier import DeliveryState, NotificationDispatcher
from .rules import validate_patch, validate_project_draft, validate_task_draft
from .schemas import Alert, Project, ProjectDraft, ProjectPatch, ProjectStats, TaskDraft, TaskStatus

logger = logging.getLogger(__name__)


class ViewMode(str, Enum):
    DASHBOARD = "dashboard"
    CREATE = "create"
    PROJECT = "project"
    ALERTS = "alerts"


class Theme(str, Enum):
    DARK = "dark"
    LIGHT = "light"


class BannerType(str, Enum):
    ERROR = "error"
    SUCCESS = "success"


@dataclass(frozen=True)
class Banner:
    message: str
    type: BannerType
    expires_at: float


def _new_task_id() -> str:
    return uuid.uuid4().hex[:9]


class ViewOrchestrator:
    """Wires user actions to the store adapter, board and dispatcher.

    Session and theme come in through the constructor. Every failure from the
    store or the mail boundary ends up as a banner message; no action raises.
    """

    def __init__(
        self,
        adapter: LiveStoreAdapter,
        dispatcher: NotificationDispatcher,
        auth: AuthContext,
        settings: Optional[Settings] = None,
        theme: Theme = Theme.DARK,
        today: Callable[[], date] = date.today,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._adapter = adapter
        self._dispatcher = dispatcher
        self._auth = auth
        self._settings = settings or Settings()
        self._theme = theme
        self._today = today
        self._clock = clock

        self._board = BoardState(adapter, self._settings.serialize_moves, on_change=self._recompute)
        self._subscription: Optional[ProjectSubscription] = None
        self._read_failed = False
        self._running = False
        self._wake: Optional[asyncio.Event] = None
        self._loaded = False

        self._mode = ViewMode.DASHBOARD
        self._selected_id: Optional[str] = None
        self._banner: Optional[Banner] = None
        self._draft = ProjectDraft()
        self._alerts: List[Alert] = []
        self._version = 0
        self._stats_cache: Optional[Tuple[int, date, List[ProjectStats]]] = None

        self._auth.add_listener(self._on_auth_change)

    # -- read accessors -------------------------------------------------

    @property
    def mode(self) -> ViewMode:
        return self._mode

    @property
    def theme(self) -> Theme:
        return self._theme

    @property
    def auth_status(self) -> AuthStatus:
        return self._auth.status

    @property
    def user(self) -> Optional[SessionUser]:
        return self._auth.user

    @property
    def loading(self) -> bool:
        return not self._auth.is_authenticated or not self._loaded

    @property
    def board(self) -> BoardState:
        return self._board

    @property
    def projects(self) -> List[Project]:
        return self._board.projects()

    @property
    def alerts(self) -> List[Alert]:
        return list(self._alerts)

    @property
    def draft(self) -> ProjectDraft:
        return self._draft

    @property
    def selected_project(self) -> Optional[Project]:
        if self._selected_id is None:
            return None
        return self._board.view(self._selected_id)

    @property
    def banner(self) -> Optional[Banner]:
        if self._banner is not None and self._clock() >= self._banner.expires_at:
            self._banner = None
        return self._banner

    @property
    def stats(self) -> List[ProjectStats]:
        """Dashboard cards, cached until the projects or the date change."""

        today = self._today()
        cached = self._stats_cache
        if cached is not None and cached[0] == self._version and cached[1] == today:
            return cached[2]
        stats = compute_stats(self._board.projects(), today)
        self._stats_cache = (self._version, today, stats)
        return stats

    def find_alert(self, alert_id: str) -> Optional[Alert]:
        for alert in self._alerts:
            if alert.id == alert_id:
                return alert
        return None

    def find_task_alert(self, project_id: str, task_id: str) -> Optional[Alert]:
        """Current alert for a task; stable across recomputes, unlike alert ids."""

        for alert in self._alerts:
            if alert.project_id == project_id and alert.task_id == task_id:
                return alert
        return None

    def delivery_state(self, alert: Alert) -> Optional[DeliveryState]:
        return self._dispatcher.delivery_state(alert)

    # -- snapshot cycle -------------------------------------------------

    def apply_snapshot(self, projects: List[Project]) -> None:
        """Adopt an authoritative snapshot and rebuild everything derived from it."""

        self._board.reconcile(projects)
        self._loaded = True
        self._recompute()
        if self._selected_id is not None and self._board.view(self._selected_id) is None:
            logger.info("Selected project %s disappeared; returning to dashboard", self._selected_id)
            self._selected_id = None
            if self._mode is ViewMode.PROJECT:
                self._mode = ViewMode.DASHBOARD

    def refresh(self) -> None:
        """Apply every snapshot that has arrived since the last call."""

        subscription = self._sync_subscription()
        if subscription is None:
            return
        try:
            for projects in subscription.poll():
                self.apply_snapshot(projects)
        except StoreReadError as exc:
            self._on_read_error(exc)

    async def run(self) -> None:
        """Consume snapshots until :meth:`stop` is called.

        After a read error the loop idles until the next sign-in, then
        resubscribes.
        """

        self._running = True
        self._wake = asyncio.Event()
        try:
            while self._running:
                if self._read_failed:
                    await self._wake.wait()
                    self._wake.clear()
                    continue
                subscription = self._current_subscription()
                try:
                    async for projects in subscription:
                        self.apply_snapshot(projects)
                except StoreReadError as exc:
                    self._on_read_error(exc)
        finally:
            self._wake = None

    def stop(self) -> None:
        self._running = False
        self._teardown_subscription()
        self._notify_runner()

    def close(self) -> None:
        """Stop consuming and detach from the auth context."""

        self.stop()
        self._auth.remove_listener(self._on_auth_change)

    def _current_subscription(self) -> ProjectSubscription:
        if self._subscription is None or self._subscription.closed:
            self._subscription = self._adapter.subscribe_projects()
        return self._subscription

    def _sync_subscription(self) -> Optional[ProjectSubscription]:
        if not self._auth.is_authenticated or self._read_failed:
            return None
        return self._current_subscription()

    def _notify_runner(self) -> None:
        if self._wake is not None:
            self._wake.set()

    def _teardown_subscription(self) -> None:
        if self._subscription is not None:
            self._subscription.close()
            self._subscription = None

    def _on_auth_change(self, status: AuthStatus) -> None:
        if status is AuthStatus.AUTHENTICATED:
            self._read_failed = False
            self._notify_runner()
            return
        self._teardown_subscription()
        self._board.reconcile([])
        self._loaded = False
        self._selected_id = None
        self._mode = ViewMode.DASHBOARD
        self._draft = ProjectDraft()
        self._recompute()

    def _on_read_error(self, exc: StoreReadError) -> None:
        logger.error("Project subscription failed: %s", exc)
        self._read_failed = True
        self._teardown_subscription()
        self.apply_snapshot([])
        self._announce(LOAD_FAILED, BannerType.ERROR)

    def _recompute(self) -> None:
        self._version += 1
        self._alerts = derive_alerts(self._board.projects(), self._today())
        self._dispatcher.prune(self._alerts)

    def _announce(self, message: str, banner_type: BannerType) -> None:
        self._banner = Banner(message, banner_type, self._clock() + self._settings.banner_seconds)

    def dismiss_banner(self) -> None:
        self._banner = None

    # -- navigation -----------------------------------------------------

    def select_project(self, project_id: str) -> bool:
        if self._board.view(project_id) is None:
            logger.debug("Cannot select unknown project %s", project_id)
            return False
        self._selected_id = project_id
        self._mode = ViewMode.PROJECT
        return True

    def return_to_dashboard(self) -> None:
        self._selected_id = None
        self._mode = ViewMode.DASHBOARD

    def start_create_flow(self) -> None:
        self._draft = ProjectDraft()
        self._mode = ViewMode.CREATE

    def show_alerts(self) -> None:
        self._mode = ViewMode.ALERTS

    def toggle_theme(self) -> Theme:
        self._theme = Theme.LIGHT if self._theme is Theme.DARK else Theme.DARK
        return self._theme

    # -- store-backed actions -------------------------------------------

    def add_draft_task(self, task: TaskDraft) -> bool:
        try:
            validate_task_draft(task)
        except ValidationError as exc:
            self._announce(exc.message, BannerType.ERROR)
            return False
        self._draft = self._draft.model_copy(update={"tasks": [*self._draft.tasks, task]})
        self._announce(TASK_ADDED, BannerType.SUCCESS)
        return True

    def add_draft_tasks(self, tasks: List[TaskDraft]) -> bool:
        """Add several tasks at once; one invalid task rejects the whole batch."""

        try:
            for task in tasks:
                validate_task_draft(task)
        except ValidationError as exc:
            self._announce(exc.message, BannerType.ERROR)
            return False
        self._draft = self._draft.model_copy(update={"tasks": [*self._draft.tasks, *tasks]})
        self._announce(TASK_ADDED, BannerType.SUCCESS)
        return True

    def update_draft(self, name: Optional[str] = None, launch_date: Optional[date] = None) -> ProjectDraft:
        update = {}
        if name is not None:
            update["name"] = name
        if launch_date is not None:
            update["launch_date"] = launch_date
        self._draft = self._draft.model_copy(update=update)
        return self._draft

    async def submit_new_project(self, draft: Optional[ProjectDraft] = None) -> Optional[str]:
        """Create a project from ``draft`` (or the create-flow draft)."""

        draft = draft if draft is not None else self._draft
        try:
            validate_project_draft(draft)
        except ValidationError as exc:
            self._announce(exc.message, BannerType.ERROR)
            return None

        tasks = [task.to_task(_new_task_id()) for task in draft.tasks]
        try:
            project_id = await self._adapter.create_project(draft.name.strip(), draft.launch_date, tasks)
        except StoreWriteError as exc:
            logger.error("Project creation failed: %s", exc)
            self._announce(PROJECT_CREATE_FAILED, BannerType.ERROR)
            return None

        self._draft = ProjectDraft()
        self._mode = ViewMode.DASHBOARD
        self._announce(PROJECT_CREATED, BannerType.SUCCESS)
        return project_id

    async def edit_project(self, project_id: str, patch: ProjectPatch) -> bool:
        project = self._board.view(project_id)
        if project is None:
            self._announce(PROJECT_UPDATE_FAILED, BannerType.ERROR)
            return False
        try:
            validate_patch(project, patch)
            await self._adapter.update_project_details(project_id, patch)
        except ValidationError as exc:
            self._announce(exc.message, BannerType.ERROR)
            return False
        except StoreWriteError as exc:
            logger.error("Project update failed: %s", exc)
            self._announce(PROJECT_UPDATE_FAILED, BannerType.ERROR)
            return False
        self._announce(PROJECT_UPDATED, BannerType.SUCCESS)
        return True

    async def move_task(self, task_id: str, target: TaskStatus, project_id: Optional[str] = None) -> bool:
        """Drop ``task_id`` onto the ``target`` column of a project (default: the selected one)."""

        project_id = project_id or self._selected_id
        if project_id is None:
            return False
        try:
            moved = await self._board.move(project_id, task_id, target)
        except StoreWriteError as exc:
            logger.error("Task move failed: %s", exc)
            self._announce(TASK_MOVE_FAILED, BannerType.ERROR)
            return False
        return moved is not None

    async def request_notify(self, alert: Alert) -> bool:
        self._announce(NOTIFY_SENDING.format(email=alert.recipient_email), BannerType.SUCCESS)
        try:
            await self._dispatcher.notify(alert)
        except NotificationError as exc:
            logger.error("Notification failed: %s", exc)
            self._announce(NOTIFY_FAILED, BannerType.ERROR)
            return False
        self._announce(NOTIFY_SENT, BannerType.SUCCESS)
        return True
