"""Rule evaluation for launch projects and the forms that build them."""

from collections.abc import Iterable

from pydantic import ValidationError as PydanticValidationError

from .errors import ValidationError
from .messages import MISSING_PROJECT_FIELDS, MISSING_TASK_FIELDS
from .schemas import EMAIL_PATTERN, Project, ProjectDraft, ProjectPatch, TaskDraft


def ensure_unique_task_ids(project: Project) -> None:
    seen: set[str] = set()
    for task in project.tasks:
        if task.id in seen:
            raise ValidationError(f"Duplicate task id detected: {task.id}", details={"project": project.id})
        seen.add(task.id)


def ensure_named(project: Project) -> None:
    if not project.name.strip():
        raise ValidationError("Project name must not be blank.", details={"project": project.id})


def validate_project(project: Project, rules: Iterable) -> None:
    for rule in rules:
        rule(project)


def default_rules() -> list:
    return [ensure_named, ensure_unique_task_ids]


def validate_task_draft(draft: TaskDraft) -> None:
    """Reject a task draft with any blank field or a malformed address."""

    missing = [
        field
        for field, value in (
            ("name", draft.name.strip()),
            ("assignee_name", draft.assignee_name.strip()),
            ("assignee_email", draft.assignee_email.strip()),
            ("time_estimate", draft.time_estimate),
            ("due_date", draft.due_date),
        )
        if value is None or value == ""
    ]
    if missing:
        raise ValidationError(MISSING_TASK_FIELDS, details={"missing": ", ".join(missing)})

    if draft.time_estimate is not None and draft.time_estimate < 0:
        raise ValidationError("Time estimate must not be negative.", details={"task": draft.name})
    if not EMAIL_PATTERN.match(draft.assignee_email.strip()):
        raise ValidationError(f"Invalid email format: {draft.assignee_email}", details={"task": draft.name})


def validate_project_draft(draft: ProjectDraft) -> None:
    if not draft.name.strip() or draft.launch_date is None:
        raise ValidationError(MISSING_PROJECT_FIELDS)
    for task in draft.tasks:
        validate_task_draft(task)


def validate_patch(project: Project, patch: ProjectPatch) -> Project:
    """Return ``project`` with ``patch`` applied, or raise if the result breaks a rule."""

    if patch.name is not None and not patch.name.strip():
        raise ValidationError("Project name must not be blank.", details={"project": project.id})

    update = patch.model_dump(exclude_none=True, exclude={"tasks"})
    if patch.name is not None:
        update["name"] = patch.name.strip()
    if patch.tasks is not None:
        update["tasks"] = list(patch.tasks)
    try:
        patched = Project.model_validate({**project.model_dump(), **update})
    except PydanticValidationError as exc:
        raise ValidationError("Project edit is invalid.", details={"reason": str(exc.errors()[0]["msg"])}) from exc

    validate_project(patched, default_rules())
    return patched
