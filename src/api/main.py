"""FastAPI application entrypoint."""
from __future__ import annotations

import io
import logging
import uuid
from datetime import date
from pathlib import Path
from typing import Any, Optional

from fastapi import FastAPI, File, HTTPException, Request, UploadFile, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel

from src.launchpad import session_store
from src.launchpad.adapter import LiveStoreAdapter
from src.launchpad.auth import AuthContext, SessionUser
from src.launchpad.config import load_settings
from src.launchpad.errors import LaunchpadError, ValidationError
from src.launchpad.export import export_tasks_to_csv
from src.launchpad.ingest import CSVIngestor
from src.launchpad.logging_config import setup_logging
from src.launchpad.mail import MailRequest, deliver
from src.launchpad.notifier import HttpMailTransport, NotificationDispatcher
from src.launchpad.orchestrator import Banner, ViewMode, ViewOrchestrator
from src.launchpad.schemas import EMAIL_PATTERN, ProjectDraft, ProjectPatch, TaskDraft, TaskStatus
from src.launchpad.session_store import DashboardSession
from src.launchpad.store import InMemoryDocumentStore

settings = load_settings()
setup_logging(settings.log_level)

app = FastAPI(title="LaunchPad Launch Dashboard")
app.state.settings = settings
app.state.store = InMemoryDocumentStore()
app.state.mail_transport = HttpMailTransport(settings.mail_endpoint, timeout=settings.mail_timeout)

logger = logging.getLogger(__name__)

MAX_FILE_SIZE = 1 * 1024 * 1024  # 1 MB
ALLOWED_EXTENSIONS = {"csv"}
SESSION_COOKIE_NAME = "launchpad_session_id"


def _json_error(status_code: int, message: str) -> JSONResponse:
    """Return a standardized JSON error response."""

    logger.warning("Returning error %s: %s", status_code, message)
    return JSONResponse(status_code=status_code, content={"error": message})


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    message = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
    logger.warning("HTTPException at %s: %s", request.url.path, message)
    return JSONResponse(status_code=exc.status_code, content={"error": message})


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    logger.warning("Validation error at %s: %s", request.url.path, exc.errors())
    return JSONResponse(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, content={"error": "Invalid request payload."})


@app.exception_handler(LaunchpadError)
async def launchpad_exception_handler(request: Request, exc: LaunchpadError) -> JSONResponse:
    logger.warning("%s at %s: %s", type(exc).__name__, request.url.path, exc)
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"error": exc.message})


class SignInRequest(BaseModel):
    """Identity asserted by the sign-in provider."""

    name: str
    email: str


class DraftDetailsRequest(BaseModel):
    name: Optional[str] = None
    launch_date: Optional[date] = None


class MoveRequest(BaseModel):
    status: TaskStatus


@app.middleware("http")
async def ensure_session_cookie(request: Request, call_next):
    """Ensure every request has a stable dashboard session identifier."""

    session_id = request.cookies.get(SESSION_COOKIE_NAME)
    new_session = False

    if not session_id:
        session_id = str(uuid.uuid4())
        new_session = True
        logger.debug("Generated new dashboard session id %s", session_id)

    request.state.dashboard_session_id = session_id

    response = await call_next(request)

    if new_session:
        response.set_cookie(
            SESSION_COOKIE_NAME,
            session_id,
            httponly=True,
            samesite="lax",
        )
        logger.info("Assigned dashboard session cookie %s", session_id)

    return response


def _get_session_id(request: Request) -> str:
    session_id = getattr(request.state, "dashboard_session_id", None)
    if not session_id:
        session_id = request.cookies.get(SESSION_COOKIE_NAME) or str(uuid.uuid4())
        request.state.dashboard_session_id = session_id
    return session_id


def _build_session(session_id: str) -> DashboardSession:
    auth = AuthContext()
    adapter = LiveStoreAdapter(app.state.store, auth, app.state.settings.projects_collection)
    dispatcher = NotificationDispatcher(app.state.mail_transport)
    orchestrator = ViewOrchestrator(adapter, dispatcher, auth, app.state.settings)
    return DashboardSession(session_id=session_id, auth=auth, orchestrator=orchestrator)


def _get_dashboard(request: Request, require_auth: bool = True) -> DashboardSession:
    session = session_store.get_or_create(_get_session_id(request), _build_session)
    if require_auth and not session.auth.is_authenticated:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Sign in required.")
    session.orchestrator.refresh()
    return session


def _banner_payload(banner: Banner | None) -> dict[str, Any] | None:
    if banner is None:
        return None
    return {"message": banner.message, "type": banner.type.value}


def _action_response(orchestrator: ViewOrchestrator, ok: bool, status_code: int = 200, **payload: Any) -> JSONResponse:
    """Report the outcome of a fail-soft action; failures carry the banner text."""

    banner = orchestrator.banner
    if not ok:
        message = banner.message if banner else "Request failed."
        return _json_error(status.HTTP_400_BAD_REQUEST, message)
    return JSONResponse(
        status_code=status_code,
        content={"ok": True, "banner": _banner_payload(banner), **payload},
    )


def _board_payload(orchestrator: ViewOrchestrator, project_id: str, query: str = "") -> dict[str, Any]:
    project = orchestrator.board.view(project_id)
    if project is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Project not found.")
    columns = orchestrator.board.columns(project_id, query)
    return {
        "project": {
            "id": project.id,
            "name": project.name,
            "launch_date": project.launch_date.isoformat(),
        },
        "columns": {
            column.value: [task.model_dump(mode="json") for task in tasks] for column, tasks in columns.items()
        },
    }


@app.get("/")
def read_root() -> dict[str, str]:
    """Basic health endpoint."""

    return {"status": "ok"}


@app.post("/auth/session")
async def sign_in(payload: SignInRequest, request: Request) -> JSONResponse:
    """Record the identity the sign-in provider authenticated."""

    if not payload.name.strip() or not EMAIL_PATTERN.match(payload.email.strip()):
        return _json_error(status.HTTP_400_BAD_REQUEST, "A name and valid email are required.")

    session = _get_dashboard(request, require_auth=False)
    session.auth.sign_in(SessionUser(name=payload.name.strip(), email=payload.email.strip()))
    session.orchestrator.refresh()
    return JSONResponse(
        status_code=status.HTTP_200_OK,
        content={"status": session.auth.status.value, "user": {"name": payload.name, "email": payload.email}},
    )


@app.delete("/auth/session")
async def sign_out(request: Request) -> JSONResponse:
    session = _get_dashboard(request, require_auth=False)
    session.auth.sign_out()
    return JSONResponse(status_code=status.HTTP_200_OK, content={"status": session.auth.status.value})


@app.get("/dashboard")
async def get_dashboard(request: Request) -> JSONResponse:
    """Project cards with progress and risk, plus the alert badge count."""

    orchestrator = _get_dashboard(request).orchestrator
    orchestrator.return_to_dashboard()
    user = orchestrator.user
    content = {
        "mode": orchestrator.mode.value,
        "theme": orchestrator.theme.value,
        "loading": orchestrator.loading,
        "user": {"name": user.name, "email": user.email} if user else None,
        "projects": [
            {
                "id": stat.project.id,
                "name": stat.project.name,
                "launch_date": stat.project.launch_date.isoformat(),
                "progress": stat.progress,
                "task_count": stat.task_count,
                "is_at_risk": stat.is_at_risk,
                "involved_depts": sorted(dept.value for dept in stat.involved_depts),
            }
            for stat in orchestrator.stats
        ],
        "alert_count": len(orchestrator.alerts),
        "banner": _banner_payload(orchestrator.banner),
    }
    return JSONResponse(status_code=status.HTTP_200_OK, content=content)


@app.post("/theme/toggle")
async def toggle_theme(request: Request) -> dict[str, str]:
    orchestrator = _get_dashboard(request).orchestrator
    return {"theme": orchestrator.toggle_theme().value}


@app.post("/drafts")
async def start_draft(payload: DraftDetailsRequest, request: Request) -> JSONResponse:
    """Open the create flow, or update the name and launch date of the open draft."""

    orchestrator = _get_dashboard(request).orchestrator
    if orchestrator.mode is not ViewMode.CREATE:
        orchestrator.start_create_flow()
    draft = orchestrator.update_draft(name=payload.name, launch_date=payload.launch_date)
    return JSONResponse(status_code=status.HTTP_200_OK, content={"draft": draft.model_dump(mode="json")})


@app.post("/drafts/tasks")
async def add_draft_task(payload: TaskDraft, request: Request) -> JSONResponse:
    orchestrator = _get_dashboard(request).orchestrator
    ok = orchestrator.add_draft_task(payload)
    return _action_response(orchestrator, ok, draft=orchestrator.draft.model_dump(mode="json"))


@app.post("/drafts/tasks/upload")
async def upload_draft_tasks(request: Request, file: UploadFile = File(...)) -> JSONResponse:
    """Add every row of a CSV upload to the create-flow draft."""

    if not file.filename:
        return _json_error(status.HTTP_400_BAD_REQUEST, "Filename is required.")

    extension = Path(file.filename).suffix.lower().lstrip(".")
    if extension not in ALLOWED_EXTENSIONS:
        return _json_error(status.HTTP_400_BAD_REQUEST, "Unsupported file type. Allowed: csv.")

    data = await file.read()
    if len(data) > MAX_FILE_SIZE:
        return _json_error(status.HTTP_400_BAD_REQUEST, "File too large. Limit is 1 MB.")
    if not data:
        return _json_error(status.HTTP_400_BAD_REQUEST, "Uploaded file is empty.")

    orchestrator = _get_dashboard(request).orchestrator
    try:
        drafts = CSVIngestor(data).read_task_list()
    except ValidationError:
        raise
    except Exception as exc:  # pragma: no cover - depends on pandas parsing
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Failed to parse CSV file.") from exc

    if not orchestrator.add_draft_tasks(drafts):
        return _action_response(orchestrator, False)

    logger.info("Imported %s draft tasks from %s", len(drafts), file.filename)
    return _action_response(orchestrator, True, added=len(drafts), draft=orchestrator.draft.model_dump(mode="json"))


@app.post("/projects")
async def create_project(request: Request, payload: Optional[ProjectDraft] = None) -> JSONResponse:
    """Submit ``payload``, or the create-flow draft when no body is sent."""

    orchestrator = _get_dashboard(request).orchestrator
    project_id = await orchestrator.submit_new_project(payload)
    return _action_response(orchestrator, project_id is not None, status.HTTP_201_CREATED, id=project_id)


@app.get("/projects/{project_id}")
async def get_project(project_id: str, request: Request, q: str = "") -> JSONResponse:
    """Open a project's Kanban board."""

    orchestrator = _get_dashboard(request).orchestrator
    if not orchestrator.select_project(project_id):
        return _json_error(status.HTTP_404_NOT_FOUND, "Project not found.")
    return JSONResponse(status_code=status.HTTP_200_OK, content=_board_payload(orchestrator, project_id, q))


@app.patch("/projects/{project_id}")
async def edit_project(project_id: str, payload: ProjectPatch, request: Request) -> JSONResponse:
    orchestrator = _get_dashboard(request).orchestrator
    ok = await orchestrator.edit_project(project_id, payload)
    return _action_response(orchestrator, ok)


@app.post("/projects/{project_id}/tasks/{task_id}/move")
async def move_task(project_id: str, task_id: str, payload: MoveRequest, request: Request) -> JSONResponse:
    """Drop a task onto a board column."""

    orchestrator = _get_dashboard(request).orchestrator
    if orchestrator.board.view(project_id) is None:
        return _json_error(status.HTTP_404_NOT_FOUND, "Project not found.")
    ok = await orchestrator.move_task(task_id, payload.status, project_id=project_id)
    orchestrator.refresh()
    return _action_response(orchestrator, ok, **_board_payload(orchestrator, project_id))


@app.get("/projects/{project_id}/export")
async def export_project(project_id: str, request: Request) -> Response:
    """Download a project's tasks as CSV."""

    orchestrator = _get_dashboard(request).orchestrator
    project = orchestrator.board.view(project_id)
    if project is None:
        return _json_error(status.HTTP_404_NOT_FOUND, "Project not found.")
    buffer = io.StringIO()
    export_tasks_to_csv(project.tasks, buffer)
    return Response(
        content=buffer.getvalue(),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="launch-{project_id}.csv"'},
    )


@app.get("/alerts")
async def list_alerts(request: Request) -> JSONResponse:
    orchestrator = _get_dashboard(request).orchestrator
    orchestrator.show_alerts()
    alerts = []
    for alert in orchestrator.alerts:
        delivery = orchestrator.delivery_state(alert)
        alerts.append({**alert.model_dump(mode="json"), "delivery": delivery.value if delivery else None})
    return JSONResponse(status_code=status.HTTP_200_OK, content={"alerts": alerts})


@app.post("/alerts/{alert_id}/notify")
async def notify_alert(alert_id: str, request: Request) -> JSONResponse:
    """Email the assignee of an overdue task."""

    orchestrator = _get_dashboard(request).orchestrator
    alert = orchestrator.find_alert(alert_id)
    if alert is None:
        return _json_error(status.HTTP_404_NOT_FOUND, "Alert not found.")
    ok = await orchestrator.request_notify(alert)
    return _action_response(orchestrator, ok)


@app.post("/alerts/{project_id}/{task_id}/notify")
async def notify_task(project_id: str, task_id: str, request: Request) -> JSONResponse:
    """Email the assignee of an overdue task, addressed by task rather than alert id."""

    orchestrator = _get_dashboard(request).orchestrator
    alert = orchestrator.find_task_alert(project_id, task_id)
    if alert is None:
        return _json_error(status.HTTP_404_NOT_FOUND, "Task is not overdue.")
    ok = await orchestrator.request_notify(alert)
    return _action_response(orchestrator, ok)


@app.post("/api/send-email")
async def send_email(payload: MailRequest) -> JSONResponse:
    """Mail boundary: accept a message for delivery."""

    try:
        result = deliver(payload, app.state.settings)
    except Exception as exc:  # pragma: no cover - depends on the mail provider
        logger.error("Email sending failed", exc_info=exc)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"success": False, "message": "Failed to send email"},
        )
    status_code = status.HTTP_200_OK if result.success else status.HTTP_400_BAD_REQUEST
    return JSONResponse(status_code=status_code, content=result.model_dump())
