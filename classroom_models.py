# classroom_models.py

from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from pydantic import BaseModel, Field


def _cell(row: Sequence[Any], index: int) -> str:
    return str(row[index]) if len(row) > index and row[index] is not None else ""


class Assignment(BaseModel):
    name: str
    channel_id: str = ""
    url: str = ""

    @classmethod
    def from_row(cls, row: Sequence[Any]) -> "Assignment":
        # 課題一覧: A=name, B=channel id, C=url
        return cls(name=_cell(row, 0), channel_id=_cell(row, 1), url=_cell(row, 2))


class Lesson(BaseModel):
    name: str
    channel_id: str = ""
    teacher_id: str = ""
    spreadsheet_id: str = ""
    assignments: List[Assignment] = Field(default_factory=list)

    @classmethod
    def from_row(cls, row: Sequence[Any]) -> "Lesson":
        # lesson: A=name, B=channel id, C=teacher id, D=lesson spreadsheet id
        return cls(
            name=_cell(row, 0),
            channel_id=_cell(row, 1),
            teacher_id=_cell(row, 2),
            spreadsheet_id=_cell(row, 3),
        )


class UtResult(BaseModel):
    """Unit test counts scraped from a CI report."""

    repo: str
    username: str
    date: datetime
    tests: int = 0
    failures: int = 0
    ignored: int = 0
    success_rate: str = ""

    def to_row(self, sha: str) -> List[Any]:
        return [
            self.repo,
            self.username,
            self.tests,
            self.failures,
            self.ignored,
            self.success_rate,
            self.date.strftime("%Y-%m-%d %H:%M:%S"),
            sha,
        ]


RESULT_SHEET_HEADER = ["repo", "username", "tests", "failures", "ignored", "successRate", "date", "sha"]


class AssignmentProgress(BaseModel):
    repo: str = ""
    username: str = ""
    tests: str = ""
    failures: str = ""
    ignored: str = ""
    success_rate: str = ""
    date: str = ""
    sha: str = ""

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "AssignmentProgress":
        return cls(
            repo=str(record.get("repo") or ""),
            username=str(record.get("username") or ""),
            tests=str(record.get("tests") or ""),
            failures=str(record.get("failures") or ""),
            ignored=str(record.get("ignored") or ""),
            success_rate=str(record.get("successRate") or ""),
            date=str(record.get("date") or ""),
            sha=str(record.get("sha") or ""),
        )


class ChannelLink(BaseModel):
    channel_name: str
    channel_id: str
    task_name: Optional[str] = None
    task_url: Optional[str] = None


class ExamSubmission(BaseModel):
    repo: str
    sha: str = ""
    username: str
    sheetid: str

    @property
    def assignment_title(self) -> Optional[str]:
        """Assignment name from a ``<assignment>-<username>`` repo, or None if it doesn't match."""
        suffix = f"-{self.username}"
        if not self.username or not self.repo.endswith(suffix):
            return None
        title = self.repo[: -len(suffix)]
        return title or None
