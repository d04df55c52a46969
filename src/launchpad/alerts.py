"""Overdue alert derivation and dashboard statistics."""

import logging
import math
from datetime import date
from typing import Iterable, List

from .messages import ALERT_MESSAGE
from .schemas import Alert, AlertLevel, Project, ProjectStats, TaskStatus

logger = logging.getLogger(__name__)


def derive_alerts(projects: Iterable[Project], today: date) -> List[Alert]:
    """Build one warning per overdue, incomplete task across ``projects``.

    A task due on ``today`` is not overdue. Alert ids are fresh on every call.
    """

    alerts: List[Alert] = []
    for project in projects:
        for task in project.tasks:
            if not task.is_overdue(today):
                continue
            alerts.append(
                Alert(
                    message=ALERT_MESSAGE.format(
                        task_name=task.name,
                        department=task.department.value,
                        assignee=task.assigned_to.name,
                    ),
                    level=AlertLevel.WARNING,
                    project_id=project.id,
                    task_id=task.id,
                    task_name=task.name,
                    department=task.department,
                    recipient_email=task.assigned_to.email,
                )
            )
    logger.debug("Derived %s overdue alerts for %s", len(alerts), today.isoformat())
    return alerts


def is_at_risk(project: Project, today: date) -> bool:
    return any(task.is_overdue(today) for task in project.tasks)


def progress(project: Project) -> int:
    total = len(project.tasks)
    if total == 0:
        return 0
    done = sum(1 for task in project.tasks if task.status is TaskStatus.DONE)
    # Halves round up.
    return math.floor(done / total * 100 + 0.5)


def project_stats(project: Project, today: date) -> ProjectStats:
    return ProjectStats(
        project=project,
        progress=progress(project),
        task_count=len(project.tasks),
        is_at_risk=is_at_risk(project, today),
        involved_depts=frozenset(task.department for task in project.tasks),
    )


def compute_stats(projects: Iterable[Project], today: date) -> List[ProjectStats]:
    return [project_stats(project, today) for project in projects]
