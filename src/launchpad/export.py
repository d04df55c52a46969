"""Export utilities for launch boards."""

from pathlib import Path
from typing import IO, Iterable, Union

import pandas as pd

from .schemas import Task

EXPORT_COLUMNS = [
    "id",
    "name",
    "status",
    "department",
    "due_date",
    "time_estimate",
    "assignee_name",
    "assignee_email",
]


def tasks_to_frame(tasks: Iterable[Task]) -> pd.DataFrame:
    rows = [
        {
            "id": task.id,
            "name": task.name,
            "status": task.status.value,
            "department": task.department.value,
            "due_date": task.due_date.isoformat() if task.due_date else "",
            "time_estimate": task.time_estimate,
            "assignee_name": task.assigned_to.name,
            "assignee_email": task.assigned_to.email,
        }
        for task in tasks
    ]
    return pd.DataFrame(rows, columns=EXPORT_COLUMNS)


def export_tasks_to_csv(tasks: Iterable[Task], path: Union[Path, IO[str]]) -> None:
    tasks_to_frame(tasks).to_csv(path, index=False)
