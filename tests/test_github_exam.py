import asyncio
import json
import logging
from datetime import datetime

import pytest
from fastapi.testclient import TestClient

import github_exam
from classroom_context import get_context
from classroom_models import ExamSubmission, UtResult
from main import app
from service_result import ServiceResult


class OrderedStub:
    """Sheet/GitHub stub writing every call to a log shared between instances."""

    def __init__(self, log, responses):
        self.log = log
        self.responses = responses

    def __getattr__(self, name):
        if name.startswith("_"):
            raise AttributeError(name)

        def method(*args, **kwargs):
            self.log.append((name, args, kwargs))
            return self.responses.get(name, ServiceResult.success(None))

        return method


def _result():
    return UtResult(repo="hw1-alice", username="alice", date=datetime(2024, 5, 1), tests=4, failures=0, ignored=0, success_rate="100%")


@pytest.fixture()
def ordered_ctx(make_ctx):
    def factory(existing_tabs, artifact):
        log = []
        sheets = OrderedStub(log, {"get_all_sheets": ServiceResult.success(existing_tabs)})
        github = OrderedStub(log, {"wait_for_artifact": artifact})
        return make_ctx(sheets=sheets, github=github), log

    return factory


def test_missing_tab_is_created_before_artifact_fetch(ordered_ctx):
    ctx, log = ordered_ctx(["学生", "成績"], _result())
    submission = ExamSubmission(repo="hw1-alice", sha="abc", username="alice", sheetid="SHEET")

    result = github_exam.process_exam_submission(ctx, submission, sleep=lambda _: None)

    assert result.tests == 4
    names = [name for name, _, _ in log]
    assert names == [
        "get_all_sheets",
        "create_assignment_sheet",
        "write_assignment_to_score_sheet",
        "wait_for_artifact",
        "write_github_result",
    ]
    assert log[1][1] == ("SHEET", "hw1")
    assert log[4][1] == ("SHEET", "hw1", result, "abc")


def test_existing_tab_skips_creation(ordered_ctx):
    ctx, log = ordered_ctx(["学生", "hw1"], _result())
    submission = ExamSubmission(repo="hw1-alice", sha="abc", username="alice", sheetid="SHEET")

    github_exam.process_exam_submission(ctx, submission, sleep=lambda _: None)

    assert [name for name, _, _ in log] == ["get_all_sheets", "wait_for_artifact", "write_github_result"]


def test_poll_settings_are_passed_to_artifact_wait(ordered_ctx, settings):
    ctx, log = ordered_ctx(["hw1"], _result())
    submission = ExamSubmission(repo="hw1-alice", sha="", username="alice", sheetid="SHEET")

    github_exam.process_exam_submission(ctx, submission, sleep=lambda _: None)

    _, args, kwargs = log[1]
    assert args == ("hw1-alice", "alice", None)
    assert kwargs["attempts"] == settings.artifact_poll_attempts
    assert kwargs["delay"] == settings.artifact_poll_delay_seconds
    assert kwargs["max_delay"] == settings.artifact_poll_max_delay_seconds


def test_repo_without_username_suffix_is_rejected(ordered_ctx):
    ctx, log = ordered_ctx(["学生"], _result())
    submission = ExamSubmission(repo="hw1-bob", sha="abc", username="alice", sheetid="SHEET")

    assert github_exam.process_exam_submission(ctx, submission) is None
    assert log == []


def test_missing_artifact_writes_nothing(ordered_ctx):
    ctx, log = ordered_ctx(["hw1"], None)
    submission = ExamSubmission(repo="hw1-alice", sha="abc", username="alice", sheetid="SHEET")

    assert github_exam.process_exam_submission(ctx, submission, sleep=lambda _: None) is None
    assert "write_github_result" not in [name for name, _, _ in log]


def test_assignment_title_strips_username_suffix():
    assert ExamSubmission(repo="hw1-alice", username="alice", sheetid="S").assignment_title == "hw1"
    assert ExamSubmission(repo="java-hw-2-alice", username="alice", sheetid="S").assignment_title == "java-hw-2"
    assert ExamSubmission(repo="-alice", username="alice", sheetid="S").assignment_title is None
    assert ExamSubmission(repo="hw1", username="alice", sheetid="S").assignment_title is None


@pytest.fixture()
def test_client(make_ctx):
    app.dependency_overrides[get_context] = lambda: make_ctx()
    with TestClient(app) as client:
        yield client
    app.dependency_overrides.clear()


def test_webhook_responds_immediately_and_schedules_processing(monkeypatch, test_client):
    scheduled = {}

    def fake_create_task(coro):
        scheduled["coro"] = coro
        coro.close()

    monkeypatch.setattr(github_exam.asyncio, "create_task", fake_create_task)
    body = json.dumps({"repo": "hw1-alice", "sha": "abc", "username": "alice", "sheetid": "SHEET"})

    response = test_client.post("/github/exam", content=body, headers={"Content-Type": "application/json"})

    assert response.status_code == 200
    assert response.content == b""
    assert "coro" in scheduled


@pytest.mark.parametrize("body", ["not json", json.dumps({"repo": "hw1-alice"}), "[1, 2]"])
def test_webhook_acknowledges_malformed_bodies(monkeypatch, test_client, body):
    scheduled = []

    def fake_create_task(coro):
        scheduled.append(coro)
        coro.close()

    monkeypatch.setattr(github_exam.asyncio, "create_task", fake_create_task)

    response = test_client.post("/github/exam", content=body, headers={"Content-Type": "application/json"})

    assert response.status_code == 200
    assert response.content == b""
    assert len(scheduled) == 1


def test_invalid_json_is_logged_in_background(caplog):
    with caplog.at_level(logging.ERROR, logger="github_exam"):
        assert github_exam.parse_exam_submission(b"not json") is None

    assert [record.getMessage() for record in caplog.records] == ["github_exam_invalid_json"]


def test_missing_fields_are_logged_in_background(caplog):
    with caplog.at_level(logging.ERROR, logger="github_exam"):
        assert github_exam.parse_exam_submission(json.dumps({"repo": "hw1-alice"}).encode()) is None

    assert [record.getMessage() for record in caplog.records] == ["github_exam_missing_fields"]


def test_malformed_body_never_reaches_processing(monkeypatch, make_ctx):
    processed = []
    monkeypatch.setattr(github_exam, "process_exam_submission", lambda ctx, submission: processed.append(submission))

    asyncio.run(github_exam._run_exam_submission(make_ctx(), b"not json"))

    assert processed == []


def test_valid_body_parses_into_submission():
    body = json.dumps({"repo": "hw1-alice", "sha": "abc", "username": "alice", "sheetid": "SHEET"}).encode()

    submission = github_exam.parse_exam_submission(body)

    assert submission.assignment_title == "hw1"
    assert submission.sheetid == "SHEET"
