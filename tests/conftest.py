"""Shared fixtures for the launch dashboard tests."""

from datetime import date

import pytest

from src.launchpad.adapter import LiveStoreAdapter
from src.launchpad.auth import AuthContext, SessionUser
from src.launchpad.schemas import Assignee, Department, Project, Task, TaskStatus
from src.launchpad.store import InMemoryDocumentStore

TODAY = date(2025, 1, 1)


def make_task(
    task_id="t1",
    name="Design Homepage",
    status=TaskStatus.TODO,
    department=Department.DESIGN,
    due_date=date(2020, 1, 1),
    assignee="Priya K.",
    email="priya@example.com",
    time_estimate=8,
):
    return Task(
        id=task_id,
        name=name,
        assigned_to=Assignee(name=assignee, email=email),
        time_estimate=time_estimate,
        status=status,
        department=department,
        due_date=due_date,
    )


def make_project(project_id="p1", name="Launch A", tasks=None, launch_date=date(2025, 6, 1)):
    return Project(id=project_id, name=name, launch_date=launch_date, tasks=list(tasks or []))


class RecordingTransport:
    """Mail transport that records messages and can be told to fail."""

    def __init__(self, error=None):
        self.sent = []
        self.error = error

    async def send(self, email):
        self.sent.append(email)
        if self.error is not None:
            raise self.error


@pytest.fixture
def today():
    return TODAY


@pytest.fixture
def store():
    return InMemoryDocumentStore()


@pytest.fixture
def auth():
    return AuthContext(SessionUser(name="Ops Lead", email="lead@example.com"))


@pytest.fixture
def adapter(store, auth):
    return LiveStoreAdapter(store, auth)


@pytest.fixture
def transport():
    return RecordingTransport()
