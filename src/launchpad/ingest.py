"""Load task drafts from spreadsheets."""

import io
from pathlib import Path
from typing import Iterable, List, Union

import pandas as pd

from .errors import ValidationError
from .schemas import TaskDraft

TASK_COLUMNS = ["name", "department", "time_estimate", "due_date", "assignee_name", "assignee_email"]


class CSVIngestor:
    """Load task drafts from CSV files with one task per row."""

    def __init__(self, source: Union[Path, str, bytes]) -> None:
        self.source = source

    def _frame(self) -> pd.DataFrame:
        if isinstance(self.source, bytes):
            return pd.read_csv(io.BytesIO(self.source), dtype=str, keep_default_na=False)
        return pd.read_csv(Path(self.source), dtype=str, keep_default_na=False)

    def read_tasks(self) -> Iterable[TaskDraft]:
        df = self._frame()
        missing = [column for column in TASK_COLUMNS if column not in df.columns]
        if missing:
            raise ValidationError("CSV is missing task columns.", details={"missing": ", ".join(missing)})
        for line, row in enumerate(df[TASK_COLUMNS].to_dict(orient="records"), start=2):
            estimate = row["time_estimate"].strip()
            try:
                draft = TaskDraft(
                    name=row["name"],
                    department=row["department"].strip(),
                    time_estimate=int(float(estimate)) if estimate else None,
                    due_date=row["due_date"] or None,
                    assignee_name=row["assignee_name"],
                    assignee_email=row["assignee_email"],
                )
            except ValueError as exc:
                raise ValidationError("CSV row is invalid.", details={"line": str(line)}) from exc
            yield draft

    def read_task_list(self) -> List[TaskDraft]:
        return list(self.read_tasks())
