import home_handlers
from conftest import RecordingClient
from service_result import ServiceResult


def _slack(teacher_members, email="student@example.com"):
    return RecordingClient(
        {
            "users_info": lambda user: {"user": {"id": user, "profile": {"email": email}}},
            "conversations_list": {"channels": [{"id": "CT", "name": "教師用"}]},
            "conversations_members": {"members": teacher_members},
        },
        default={"ok": True},
    )


def _sheets():
    students = {"SHEET-JAVA": ["student@example.com"], "SHEET-PY": ["other@example.com"]}
    assignments = {"SHEET-JAVA": [["java_hw1", "CHW1", "https://classroom.github.com/a/1"], ["java_hw2", "CHW2"]]}
    return RecordingClient(
        {
            "read_lessons": ServiceResult.success(
                [
                    ["Java", "CJAVA", "UT1", "SHEET-JAVA"],
                    ["Python", "CPY", "UT2", "SHEET-PY"],
                    ["未登録", ""],
                ]
            ),
            "read_students": lambda args: ServiceResult.success(students.get(args[0], [])),
            "read_assignments": lambda args: ServiceResult.success(assignments.get(args[0], [])),
        }
    )


def _section_texts(view):
    return [block["text"]["text"] for block in view["blocks"] if block["type"] == "section"]


def test_student_sees_enrolled_lessons_and_assignment_pages(make_ctx):
    slack = _slack(["UT1"])
    ctx = make_ctx(slack=slack, sheets=_sheets())

    home_handlers.app_home_opened(ctx, {"type": "app_home_opened", "user": "US1"})

    published = slack.called("views_publish")[0]
    assert published["user_id"] == "US1"
    view = published["view"]
    assert view["type"] == "home"
    texts = _section_texts(view)
    assert "*Java*" in texts
    assert not any("Python" in text for text in texts)
    assert "*java_hw1*\n\n    :clipboard:<https://classroom.github.com/a/1|課題回答ページ>" in texts
    assert "*java_hw2*" in texts
    assert not any("GitHub Classroom" in text for text in texts)
    buttons = [block["accessory"]["url"] for block in view["blocks"] if "accessory" in block]
    assert "https://example.slack.com/archives/CJAVA" in buttons


def test_teacher_sees_score_sheets_and_classroom_link(make_ctx):
    slack = _slack(["UT1"])
    ctx = make_ctx(slack=slack, sheets=_sheets())

    home_handlers.app_home_opened(ctx, {"type": "app_home_opened", "user": "UT1"})

    texts = _section_texts(slack.called("views_publish")[0]["view"])
    assert ":link: *GitHub Classroom* " in texts
    assert "*Java*\n\n    :clipboard:<https://docs.google.com/spreadsheets/d/SHEET-JAVA|成績シート閲覧>" in texts
    assert any(text.startswith("*Python*") for text in texts)
    assert "*java_hw1*" in texts


def test_student_without_lessons_sees_empty_sections(make_ctx):
    slack = _slack([], email="nobody@example.com")
    ctx = make_ctx(slack=slack, sheets=_sheets())

    home_handlers.app_home_opened(ctx, {"type": "app_home_opened", "user": "UX"})

    texts = _section_texts(slack.called("views_publish")[0]["view"])
    assert texts.count("チャンネルが見つかりませんでした。") == 2


def test_fetch_lessons_skips_rows_without_channel(make_ctx):
    lessons = home_handlers.fetch_lessons(make_ctx(sheets=_sheets()))

    assert [lesson.name for lesson in lessons] == ["Java", "Python"]
    assert lessons[0].spreadsheet_id == "SHEET-JAVA"
