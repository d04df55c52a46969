"""Pydantic schemas for launch projects, tasks and derived dashboard views."""

import logging
import re
import uuid
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")


class TaskStatus(str, Enum):
    """Kanban column a task sits in."""

    TODO = "To Do"
    IN_PROGRESS = "In Progress"
    DONE = "Done"


class Department(str, Enum):
    MARKETING = "Marketing"
    DESIGN = "Design"
    FINANCE = "Finance"
    SUPPLY = "Supply"
    MERCHANDISE = "Merchandise"


class AlertLevel(str, Enum):
    WARNING = "warning"
    # Reserved; the deriver never escalates.
    CRITICAL = "critical"


def _parse_date(value: Any) -> Optional[date]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value).strip())
    except ValueError:
        logger.debug("Ignoring malformed date %r", value)
        return None


class Assignee(BaseModel):
    """Person responsible for a task."""

    model_config = ConfigDict(frozen=True)

    name: str
    email: str

    @field_validator("email")
    @classmethod
    def _check_email(cls, value: str) -> str:
        cleaned = value.strip()
        if not EMAIL_PATTERN.match(cleaned):
            raise ValueError(f"Invalid email format: {value}")
        return cleaned


class Task(BaseModel):
    """Represents a single task on a launch board."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    name: str = Field(min_length=1)
    assigned_to: Assignee = Field(alias="assignedTo")
    time_estimate: int = Field(default=0, ge=0, alias="timeEstimate")
    status: TaskStatus = TaskStatus.TODO
    department: Department
    due_date: Optional[date] = Field(default=None, alias="dueDate")

    @field_validator("due_date", mode="before")
    @classmethod
    def _lenient_due_date(cls, value: Any) -> Optional[date]:
        return _parse_date(value)

    def is_overdue(self, today: date) -> bool:
        """Incomplete and due strictly before ``today``."""

        if self.status is TaskStatus.DONE or self.due_date is None:
            return False
        return self.due_date < today

    def with_status(self, status: TaskStatus) -> "Task":
        return self.model_copy(update={"status": status})

    def to_document(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class Project(BaseModel):
    """A launch and the tasks that lead up to it."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    name: str = Field(min_length=1)
    launch_date: date = Field(alias="launchDate")
    tasks: List[Task] = []

    @classmethod
    def from_document(cls, doc_id: str, data: Dict[str, Any]) -> "Project":
        return cls.model_validate({**data, "id": doc_id})

    def find_task(self, task_id: str) -> Optional[Task]:
        for task in self.tasks:
            if task.id == task_id:
                return task
        return None

    def with_tasks(self, tasks: List[Task]) -> "Project":
        return self.model_copy(update={"tasks": list(tasks)})

    def to_document(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude={"id"})


class Alert(BaseModel):
    """Overdue-task warning; rebuilt from scratch on every snapshot."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    message: str
    level: AlertLevel = AlertLevel.WARNING
    project_id: str
    task_id: str
    task_name: str
    department: Department
    recipient_email: str


class ProjectStats(BaseModel):
    """Dashboard card figures for one project."""

    model_config = ConfigDict(frozen=True)

    project: Project
    progress: int
    task_count: int
    is_at_risk: bool
    involved_depts: FrozenSet[Department] = frozenset()


class TaskDraft(BaseModel):
    """Task fields as typed into the create form; checked by the rules module."""

    name: str = ""
    department: Department = Department.MARKETING
    time_estimate: Optional[int] = None
    due_date: Optional[date] = None
    assignee_name: str = ""
    assignee_email: str = ""

    @field_validator("due_date", mode="before")
    @classmethod
    def _lenient_due_date(cls, value: Any) -> Optional[date]:
        return _parse_date(value)

    def to_task(self, task_id: str) -> Task:
        return Task(
            id=task_id,
            name=self.name.strip(),
            assigned_to=Assignee(name=self.assignee_name.strip(), email=self.assignee_email),
            time_estimate=self.time_estimate or 0,
            status=TaskStatus.TODO,
            department=self.department,
            due_date=self.due_date,
        )


class ProjectDraft(BaseModel):
    """A project being assembled in the create flow."""

    name: str = ""
    launch_date: Optional[date] = None
    tasks: List[TaskDraft] = []

    @field_validator("launch_date", mode="before")
    @classmethod
    def _lenient_launch_date(cls, value: Any) -> Optional[date]:
        return _parse_date(value)


class ProjectPatch(BaseModel):
    """Partial overwrite of a project's editable fields."""

    name: Optional[str] = None
    launch_date: Optional[date] = None
    tasks: Optional[List[Task]] = None

    def to_document(self) -> Dict[str, Any]:
        fields: Dict[str, Any] = {}
        if self.name is not None:
            fields["name"] = self.name.strip()
        if self.launch_date is not None:
            fields["launchDate"] = self.launch_date.isoformat()
        if self.tasks is not None:
            fields["tasks"] = [task.to_document() for task in self.tasks]
        return fields
