from typing import Any, Dict, List, Tuple

import pytest

from classroom_config import ClassroomSettings
from classroom_context import ClassroomContext
from service_result import ServiceResult


class RecordingClient:
    """Records every ``client.method(**kwargs)`` call and answers from ``responses``.

    A response may be a value or a callable taking the call's kwargs.
    """

    def __init__(self, responses: Dict[str, Any] = None, default: Any = None):
        self.responses = dict(responses or {})
        self.default = default
        self.calls: List[Tuple[str, Dict[str, Any]]] = []

    def __getattr__(self, name):
        if name.startswith("_"):
            raise AttributeError(name)

        def method(*args, **kwargs):
            if args:
                kwargs = {"args": args, **kwargs}
            self.calls.append((name, kwargs))
            response = self.responses.get(name, self.default)
            return response(**kwargs) if callable(response) else response

        return method

    def called(self, name: str) -> List[Dict[str, Any]]:
        return [kwargs for called_name, kwargs in self.calls if called_name == name]

    @property
    def names(self) -> List[str]:
        return [name for name, _ in self.calls]


class StubAnswers:
    def __init__(self, answer="answer"):
        self.answer = answer
        self.questions = []

    def get_answer(self, question, prompt=None):
        self.questions.append((question, prompt))
        return self.answer


@pytest.fixture()
def settings():
    return ClassroomSettings(
        slack_signing_secret="test-secret",
        slack_bot_user_id="UBOT",
        slack_domain="example.slack.com",
        slack_app_channel="UAPP",
        lesson_sheet_id="MASTER",
        lesson_drive_id="FOLDER",
        lesson_sheet_editor_email="editor@example.com",
        artifact_poll_attempts=3,
        artifact_poll_delay_seconds=1.0,
        artifact_poll_max_delay_seconds=4.0,
    )


@pytest.fixture()
def make_ctx(settings):
    def factory(slack=None, sheets=None, drive=None, github=None, answers=None):
        return ClassroomContext(
            settings=settings,
            slack=slack or RecordingClient(default={"ok": True}),
            sheets=sheets or RecordingClient(default=ServiceResult.success(None)),
            drive=drive or RecordingClient(default=ServiceResult.success("perm")),
            github=github or RecordingClient(),
            answers=answers or StubAnswers(),
        )

    return factory
