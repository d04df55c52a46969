"""Tests for schema aliases, document mapping and lenient parsing."""

from datetime import date

import pytest
from conftest import make_project, make_task
from pydantic import ValidationError as PydanticValidationError

from src.launchpad.schemas import Assignee, Department, Project, ProjectPatch, Task, TaskDraft, TaskStatus


class TestTask:
    def test_document_uses_camel_case(self):
        document = make_task().to_document()

        assert document == {
            "id": "t1",
            "name": "Design Homepage",
            "assignedTo": {"name": "Priya K.", "email": "priya@example.com"},
            "timeEstimate": 8,
            "status": "To Do",
            "department": "Design",
            "dueDate": "2020-01-01",
        }

    def test_reads_document_form(self):
        task = Task.model_validate(make_task(status=TaskStatus.IN_PROGRESS).to_document())
        assert task.status is TaskStatus.IN_PROGRESS
        assert task.due_date == date(2020, 1, 1)

    def test_missing_estimate_defaults_to_zero(self):
        document = make_task().to_document()
        del document["timeEstimate"]
        assert Task.model_validate(document).time_estimate == 0

    def test_unknown_status_is_rejected(self):
        document = make_task().to_document()
        document["status"] = "Blocked"
        with pytest.raises(PydanticValidationError):
            Task.model_validate(document)

    def test_with_status_returns_copy(self):
        task = make_task()
        done = task.with_status(TaskStatus.DONE)
        assert done.status is TaskStatus.DONE
        assert task.status is TaskStatus.TODO

    def test_missing_due_date_is_never_overdue(self):
        assert make_task(due_date=None).is_overdue(date(2099, 1, 1)) is False


class TestAssignee:
    def test_email_is_trimmed(self):
        assert Assignee(name="Amit S.", email=" amit@example.com ").email == "amit@example.com"

    @pytest.mark.parametrize("email", ["amit", "amit@", "amit@example", "@example.com"])
    def test_bad_email(self, email):
        with pytest.raises(PydanticValidationError):
            Assignee(name="Amit S.", email=email)


class TestProject:
    def test_from_document_takes_id_from_key(self):
        project = Project.from_document("abc", {"name": "Launch A", "launchDate": "2025-06-01", "tasks": []})
        assert project.id == "abc"
        assert project.launch_date == date(2025, 6, 1)

    def test_to_document_excludes_id(self):
        document = make_project(tasks=[make_task()]).to_document()
        assert "id" not in document
        assert document["launchDate"] == "2025-06-01"
        assert document["tasks"][0]["id"] == "t1"

    def test_missing_name_is_rejected(self):
        with pytest.raises(PydanticValidationError):
            Project.from_document("abc", {"launchDate": "2025-06-01"})

    def test_find_task(self):
        project = make_project(tasks=[make_task("t1"), make_task("t2")])
        assert project.find_task("t2").id == "t2"
        assert project.find_task("t3") is None


class TestDrafts:
    def test_task_draft_accepts_blank_date(self):
        assert TaskDraft(due_date="").due_date is None

    def test_to_task_starts_in_todo(self):
        draft = TaskDraft(
            name=" Write Copy ",
            department=Department.MARKETING,
            time_estimate=4,
            due_date="2025-02-01",
            assignee_name="Amit S.",
            assignee_email="amit@example.com",
        )
        task = draft.to_task("abc123def")

        assert task.id == "abc123def"
        assert task.name == "Write Copy"
        assert task.status is TaskStatus.TODO
        assert task.due_date == date(2025, 2, 1)

    def test_patch_document_only_has_set_fields(self):
        assert ProjectPatch(name=" Launch B ").to_document() == {"name": "Launch B"}
        assert ProjectPatch(launch_date=date(2025, 9, 1)).to_document() == {"launchDate": "2025-09-01"}
        assert ProjectPatch().to_document() == {}
