import base64
import json

import pytest
from google.auth.exceptions import DefaultCredentialsError

import classroom_context
import google_auth_utils
from classroom_config import ClassroomSettings
from classroom_models import AssignmentProgress, Lesson
from conftest import RecordingClient
from drive_service import DriveManager
from google_auth_utils import GoogleClientProvider
from service_result import ServiceResult, ServiceResultError
from sheet_service import SheetManager


def test_service_result_states():
    ok = ServiceResult.success(0)
    missing = ServiceResult.not_found("row")
    failed = ServiceResult.failure(RuntimeError("boom"))

    assert ok.ok and ok.unwrap() == 0
    assert missing.is_not_found and missing.value_or(-1) == -1
    assert failed.error == "boom"
    with pytest.raises(ServiceResultError):
        failed.unwrap()


def test_settings_from_env(monkeypatch):
    monkeypatch.setenv("LESSON_SHEET_ID", " MASTER ")
    monkeypatch.setenv("ARTIFACT_POLL_ATTEMPTS", "9")
    monkeypatch.setenv("SLACK_DOMAIN", "school.slack.com")
    monkeypatch.delenv("TEACHER_CHANNEL_NAME", raising=False)

    settings = ClassroomSettings.from_env()

    assert settings.lesson_sheet_id == "MASTER"
    assert settings.artifact_poll_attempts == 9
    assert settings.teacher_channel_name == "教師用"
    assert settings.channel_url("C1") == "https://school.slack.com/archives/C1"


def test_lesson_from_short_row():
    lesson = Lesson.from_row(["Java"])

    assert lesson.name == "Java"
    assert lesson.channel_id == ""
    assert lesson.spreadsheet_id == ""


def test_assignment_progress_maps_success_rate():
    assert AssignmentProgress.from_record({"successRate": "50%", "tests": 2}).success_rate == "50%"


def test_context_requires_lesson_sheet(make_ctx):
    ctx = make_ctx()
    ctx.settings = ClassroomSettings()

    with pytest.raises(RuntimeError):
        ctx.lesson_sheet_id


def test_bot_user_id_falls_back_to_auth_test(make_ctx):
    slack = RecordingClient({"auth_test": {"user_id": "UAUTH"}})
    ctx = make_ctx(slack=slack)
    ctx.settings = ClassroomSettings()

    assert ctx.bot_user_id() == "UAUTH"
    assert ctx.bot_user_id() == "UAUTH"
    assert slack.names == ["auth_test"]


def test_get_context_builds_once(monkeypatch, make_ctx):
    built = []
    monkeypatch.setattr(classroom_context, "_context", None)
    monkeypatch.setattr(classroom_context, "build_context", lambda: built.append(1) or make_ctx())

    first = classroom_context.get_context()

    assert classroom_context.get_context() is first
    assert built == [1]


class FakePermissions:
    def __init__(self, calls):
        self.calls = calls

    def create(self, **kwargs):
        self.calls.append(("create", kwargs))
        return RecordingClient({"execute": {"id": "perm-1"}})

    def update(self, **kwargs):
        self.calls.append(("update", kwargs))
        return RecordingClient({"execute": {}})


class FakeDrive:
    def __init__(self):
        self.calls = []

    def permissions(self):
        return FakePermissions(self.calls)

    def files(self):
        drive = self

        class Files:
            def update(self, **kwargs):
                drive.calls.append(("files.update", kwargs))
                return RecordingClient({"execute": {"id": kwargs["fileId"]}})

        return Files()


def test_create_permission_owner_transfers_ownership():
    drive = FakeDrive()

    result = DriveManager(lambda: drive).create_permission("FILE", "t@example.com", "owner")

    assert result.value == "perm-1"
    assert drive.calls[0][1]["body"] == {"role": "writer", "type": "user", "emailAddress": "t@example.com"}
    assert drive.calls[1][0] == "update"
    assert drive.calls[1][1]["transferOwnership"] is True
    assert drive.calls[1][1]["permissionId"] == "perm-1"


def test_create_permission_writer_does_not_transfer():
    drive = FakeDrive()

    DriveManager(lambda: drive).create_permission("FILE", "t@example.com", "writer")

    assert [name for name, _ in drive.calls] == ["create"]


def test_add_file_parent_supports_shared_drives():
    drive = FakeDrive()

    assert DriveManager(lambda: drive).add_file_parent("FILE", "FOLDER").ok
    assert drive.calls[0][1] == {"fileId": "FILE", "addParents": "FOLDER", "supportsAllDrives": True}


def test_load_credentials_from_base64_key(monkeypatch):
    info = {"client_email": "bot@project.iam.gserviceaccount.com"}
    monkeypatch.setenv("CLASSROOM_GOOGLE_CREDENTIAL_KEY", base64.b64encode(json.dumps(info).encode()).decode())
    monkeypatch.setattr(
        google_auth_utils.service_account.Credentials,
        "from_service_account_info",
        classmethod(lambda cls, data, scopes=None: ("creds", data, scopes)),
    )

    creds, email = google_auth_utils.load_service_account_credentials(["scope"])

    assert creds == ("creds", info, ["scope"])
    assert email == "bot@project.iam.gserviceaccount.com"


def test_load_credentials_none_configured(monkeypatch):
    for name in ("CLASSROOM_GOOGLE_CREDENTIAL_KEY", "GOOGLE_APPLICATION_CREDENTIALS", "GOOGLE_SA_JSON_CONTENT"):
        monkeypatch.delenv(name, raising=False)

    assert google_auth_utils.load_service_account_credentials(["scope"]) is None


class ValidCreds:
    valid = True


def test_google_client_provider_is_lazy_and_caches_services(monkeypatch):
    loads = []
    builds = []

    def loader(scopes):
        loads.append(scopes)
        return ValidCreds(), "bot@example.com"

    monkeypatch.setattr(google_auth_utils, "build", lambda name, version, **kwargs: builds.append((name, version)) or object())
    provider = GoogleClientProvider(scopes=["scope"], loader=loader)

    assert loads == []
    first = provider.sheets()
    assert provider.sheets() is first
    provider.drive()

    assert loads == [["scope"]]
    assert builds == [("sheets", "v4"), ("drive", "v3")]


def test_google_client_provider_without_credentials_raises():
    provider = GoogleClientProvider(loader=lambda scopes: None)

    with pytest.raises(DefaultCredentialsError):
        provider.sheets()


def test_google_client_provider_refresh(monkeypatch):
    class Creds:
        valid = False
        expiry = None
        refreshed = 0

        def refresh(self, request):
            Creds.refreshed += 1

    provider = GoogleClientProvider(loader=lambda scopes: (Creds(), None))

    provider.ensure_valid()

    assert Creds.refreshed == 1


def test_google_client_provider_refreshes_before_handing_out_clients(monkeypatch):
    class Creds:
        valid = False
        expiry = None
        refreshed = 0

        def refresh(self, request):
            Creds.refreshed += 1
            Creds.valid = True

    monkeypatch.setattr(google_auth_utils, "build", lambda name, version, **kwargs: object())
    provider = GoogleClientProvider(loader=lambda scopes: (Creds(), None))

    provider.sheets()
    provider.drive()

    assert Creds.refreshed == 1


def test_wrappers_report_missing_credentials_as_failures():
    provider = GoogleClientProvider(loader=lambda scopes: None)
    sheets = SheetManager(provider.sheets)
    drive = DriveManager(provider.drive)

    read = sheets.read_sheet("SHEET", "lesson")
    shared = drive.create_permission("FILE", "t@example.com", "owner")
    moved = drive.add_file_parent("FILE", "FOLDER")

    for result in (read, shared, moved):
        assert not result.ok
        assert "not configured" in result.error
