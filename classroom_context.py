"""Explicitly constructed collaborators shared by the Slack and GitHub handlers."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from threading import Lock
from typing import Any, Callable, Dict, Optional

from slack_sdk import WebClient

from answer_service import AnswerService
from classroom_config import ClassroomSettings
from drive_service import DriveManager
from github_service import ArtifactClient
from google_auth_utils import GoogleClientProvider
from sheet_service import SheetManager

logger = logging.getLogger(__name__)


@dataclass
class ViewSubmissionOutcome:
    """What to answer Slack with, plus the work to run after answering."""

    response: Optional[Dict[str, Any]] = None
    followup: Optional[Callable[[], None]] = None

    @classmethod
    def errors(cls, errors: Dict[str, str]) -> "ViewSubmissionOutcome":
        return cls(response={"response_action": "errors", "errors": errors})

    @classmethod
    def update(cls, view: Dict[str, Any]) -> "ViewSubmissionOutcome":
        return cls(response={"response_action": "update", "view": view})


@dataclass
class ClassroomContext:
    settings: ClassroomSettings
    slack: Any
    sheets: Any
    drive: Any
    github: Any
    answers: Any
    _bot_user_id: Optional[str] = field(default=None, repr=False)

    @property
    def lesson_sheet_id(self) -> str:
        if not self.settings.lesson_sheet_id:
            raise RuntimeError("LESSON_SHEET_ID is not configured")
        return self.settings.lesson_sheet_id

    def bot_user_id(self) -> str:
        if self._bot_user_id is None:
            self._bot_user_id = self.settings.slack_bot_user_id or self.slack.auth_test().get("user_id", "")
        return self._bot_user_id


def build_context(settings: Optional[ClassroomSettings] = None) -> ClassroomContext:
    settings = settings or ClassroomSettings.from_env()
    google = GoogleClientProvider()
    correlation_id = f"classroom-{uuid.uuid4()}"
    return ClassroomContext(
        settings=settings,
        slack=WebClient(token=settings.slack_bot_token),
        sheets=SheetManager(google.sheets, correlation_id=correlation_id),
        drive=DriveManager(google.drive, correlation_id=correlation_id),
        github=ArtifactClient(token=settings.github_token, owner=settings.github_owner),
        answers=AnswerService.from_settings(settings),
    )


_context: Optional[ClassroomContext] = None
_context_lock = Lock()


def get_context() -> ClassroomContext:
    """FastAPI dependency; the context is built once per process on first use."""
    global _context
    with _context_lock:
        if _context is None:
            _context = build_context()
            logger.info("classroom_context_built")
        return _context
