# classroom_config.py
"""
Runtime settings for the classroom bot, read from the environment.
"""

import os
from dataclasses import dataclass
from typing import Optional


def _env(name: str, default: Optional[str] = None) -> Optional[str]:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return value.strip()


def _env_int(name: str, default: int) -> int:
    value = _env(name)
    return int(value) if value else default


def _env_float(name: str, default: float) -> float:
    value = _env(name)
    return float(value) if value else default


@dataclass(frozen=True)
class ClassroomSettings:
    slack_bot_token: Optional[str] = None
    slack_signing_secret: Optional[str] = None
    slack_bot_user_id: Optional[str] = None
    slack_domain: Optional[str] = None
    slack_app_channel: Optional[str] = None
    teacher_channel_name: str = "教師用"

    lesson_sheet_id: Optional[str] = None
    lesson_drive_id: Optional[str] = None
    lesson_sheet_editor_email: Optional[str] = None

    github_token: Optional[str] = None
    github_owner: Optional[str] = None
    artifact_poll_attempts: int = 6
    artifact_poll_delay_seconds: float = 16.0
    artifact_poll_max_delay_seconds: float = 60.0

    watson_api_key: Optional[str] = None
    watson_url: Optional[str] = None
    watson_assistant_id: Optional[str] = None
    openai_api_key: Optional[str] = None
    openai_model: str = "gpt-3.5-turbo"

    @classmethod
    def from_env(cls) -> "ClassroomSettings":
        return cls(
            slack_bot_token=_env("SLACK_BOT_TOKEN"),
            slack_signing_secret=_env("SLACK_SIGNING_SECRET"),
            slack_bot_user_id=_env("SLACK_BOT_USER_ID"),
            slack_domain=_env("SLACK_DOMAIN"),
            slack_app_channel=_env("SLACK_APP_CHANNEL"),
            teacher_channel_name=_env("TEACHER_CHANNEL_NAME", "教師用"),
            lesson_sheet_id=_env("LESSON_SHEET_ID"),
            lesson_drive_id=_env("LESSON_DRIVE_ID"),
            lesson_sheet_editor_email=_env("LESSON_SHEET_EDITOR_EMAIL"),
            github_token=_env("GITHUB_TOKEN"),
            github_owner=_env("GITHUB_OWNER"),
            artifact_poll_attempts=_env_int("ARTIFACT_POLL_ATTEMPTS", 6),
            artifact_poll_delay_seconds=_env_float("ARTIFACT_POLL_DELAY_SECONDS", 16.0),
            artifact_poll_max_delay_seconds=_env_float("ARTIFACT_POLL_MAX_DELAY_SECONDS", 60.0),
            watson_api_key=_env("WATSON_ASSISTANT_API_KEY"),
            watson_url=_env("WATSON_ASSISTANT_URL"),
            watson_assistant_id=_env("WATSON_ASSISTANT_ID"),
            openai_api_key=_env("OPENAI_API_KEY"),
            openai_model=_env("OPENAI_CHAT_MODEL", "gpt-3.5-turbo"),
        )

    def spreadsheet_url(self, spreadsheet_id: str) -> str:
        return f"https://docs.google.com/spreadsheets/d/{spreadsheet_id}"

    def channel_url(self, channel_id: str) -> str:
        return f"https://{self.slack_domain}/archives/{channel_id}"
