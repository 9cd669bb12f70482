"""Class registration: turn a lesson row into a Slack channel and a lesson workbook."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from classroom_context import ClassroomContext, ViewSubmissionOutcome
from sheet_service import (
    LESSONSHEET_SHEETNAME_ASSIGNMENT,
    LESSONSHEET_SHEETNAME_SCORE,
    LESSONSHEET_SHEETNAME_STUDENT,
)
from slack_blocks import build_new_master_info, build_regist_lesson_modal_view
from slack_utils import (
    convert_channel_name,
    create_plain_text_options,
    make_unregistered_lesson_list,
    member_ids_for_emails,
    view_state_values,
)

logger = logging.getLogger(__name__)

LESSON_SPREADSHEET_PREFIX = "授業シート_"
ASSIGNMENT_SHEET_HEADER = [["課題", "channelID", "課題URL"]]
LESSON_REQUIRED_ERROR = "授業は必須項目です"
# tab order in a fresh lesson workbook: 学生, 課題一覧, then the copied 成績
COPIED_SCORE_SHEET_INDEX = 2


class LessonSetupError(RuntimeError):
    pass


def new_lesson_request(ctx: ClassroomContext, payload: Dict[str, Any]) -> None:
    """Shortcut ``new-lesson-request``: open the modal, then fill in the lesson list."""
    # trigger ids expire after 3 seconds, so open before reading the sheet
    opened = ctx.slack.views_open(
        trigger_id=payload["trigger_id"],
        view=build_regist_lesson_modal_view([]),
    )

    lessons = ctx.sheets.read_lessons(ctx.lesson_sheet_id)
    if not lessons.ok:
        logger.error("lesson_list_unavailable", extra={"error": lessons.error})
        return

    options = create_plain_text_options(make_unregistered_lesson_list(lessons.value))
    ctx.slack.views_update(
        view_id=opened["view"]["id"],
        view=build_regist_lesson_modal_view(options),
    )


def _selected_lesson(payload: Dict[str, Any]) -> Optional[str]:
    lesson_state = view_state_values(payload).get("lesson") or {}
    selected = (lesson_state.get("selectLesson") or {}).get("selected_option") or {}
    return selected.get("value")


def submit_lesson_request(ctx: ClassroomContext, payload: Dict[str, Any]) -> ViewSubmissionOutcome:
    """View ``submitLesson``: validate the chosen lesson, then provision it after closing the modal."""
    lesson_id = _selected_lesson(payload)
    lessons = ctx.sheets.read_lessons(ctx.lesson_sheet_id)
    unregistered = make_unregistered_lesson_list(lessons.value_or([]))
    lesson_name = next((lesson["name"] for lesson in unregistered if lesson["id"] == lesson_id), None)

    if not lesson_name:
        return ViewSubmissionOutcome.errors({"lesson": LESSON_REQUIRED_ERROR})

    submit_user = payload["user"]["id"]
    return ViewSubmissionOutcome(followup=lambda: register_lesson(ctx, lesson_name, submit_user))


def register_lesson(ctx: ClassroomContext, lesson_name: str, submit_user: str) -> None:
    master_id = ctx.lesson_sheet_id

    # 1. channel
    created = ctx.slack.conversations_create(name=convert_channel_name(lesson_name))
    channel_id = (created.get("channel") or {}).get("id")
    if not channel_id:
        raise LessonSetupError(f"channel for {lesson_name!r} was not created")
    logger.info("lesson_channel_created", extra={"lesson": lesson_name, "channel": channel_id})

    # 2. invite the teacher and enrolled students
    members: List[Dict[str, Any]] = ctx.slack.users_list().get("members") or []
    student_emails = ctx.sheets.read_students_from_lesson_master(master_id, lesson_name).value_or([])
    student_ids = member_ids_for_emails(members, student_emails)
    logger.info(
        "lesson_invites_resolved",
        extra={"lesson": lesson_name, "emails": len(student_emails), "user_ids": len(student_ids)},
    )
    ctx.slack.conversations_invite(channel=channel_id, users=",".join([submit_user, *student_ids]))

    # 3. lesson workbook
    submit_user_email = next(
        ((member.get("profile") or {}).get("email") for member in members if member.get("id") == submit_user),
        None,
    )
    spreadsheet = ctx.sheets.create_spreadsheet(LESSON_SPREADSHEET_PREFIX + lesson_name)
    if not spreadsheet.ok:
        raise LessonSetupError(f"lesson workbook for {lesson_name!r} was not created: {spreadsheet.error}")
    lesson_spreadsheet_id = spreadsheet.value
    prepare_lesson_spreadsheet(ctx, lesson_spreadsheet_id, lesson_name, submit_user_email)

    ctx.slack.conversations_open(users=submit_user)
    ctx.slack.chat_postEphemeral(
        channel=channel_id,
        user=submit_user,
        text=f"{lesson_name} の授業シート",
        blocks=build_new_master_info(lesson_name, ctx.settings.spreadsheet_url(lesson_spreadsheet_id)),
    )

    # 4. link the lesson row to the new channel and workbook
    written = ctx.sheets.write_lesson_channel(master_id, lesson_name, channel_id, submit_user, lesson_spreadsheet_id)
    if not written.ok:
        raise LessonSetupError(f"lesson row for {lesson_name!r} was not updated: {written.error}")
    logger.info("lesson_registered", extra={"lesson": lesson_name, "row": written.value})


def prepare_lesson_spreadsheet(
    ctx: ClassroomContext,
    spreadsheet_id: str,
    lesson_name: str,
    teacher_email: Optional[str],
) -> str:
    """Share, file and lay out a freshly created lesson workbook."""
    sheets = ctx.sheets
    master_id = ctx.lesson_sheet_id

    for email in (teacher_email, ctx.settings.lesson_sheet_editor_email):
        if email:
            ctx.drive.create_permission(spreadsheet_id, email, "writer")
    if ctx.settings.lesson_drive_id:
        ctx.drive.add_file_parent(spreadsheet_id, ctx.settings.lesson_drive_id)

    # the default tab of a new spreadsheet has sheetId 0
    sheets.rename_sheet(spreadsheet_id, 0, LESSONSHEET_SHEETNAME_STUDENT)
    students = sheets.read_sheet(master_id, lesson_name)
    if students.ok and students.value:
        sheets.write_sheet(spreadsheet_id, LESSONSHEET_SHEETNAME_STUDENT, students.value)

    sheets.create_sheet(spreadsheet_id, LESSONSHEET_SHEETNAME_ASSIGNMENT)
    sheets.write_sheet(spreadsheet_id, LESSONSHEET_SHEETNAME_ASSIGNMENT, ASSIGNMENT_SHEET_HEADER)

    score_sheet = sheets.find_sheet_id_by_title(master_id, LESSONSHEET_SHEETNAME_SCORE)
    if not score_sheet.ok:
        logger.warning("score_sheet_template_missing", extra={"spreadsheet_id": master_id})
        return spreadsheet_id

    copied = sheets.copy_sheet(master_id, score_sheet.value, spreadsheet_id)
    copied_id = copied.value if copied.ok else sheets.find_sheet_id_by_index(spreadsheet_id, COPIED_SCORE_SHEET_INDEX).value
    if copied_id is not None:
        sheets.rename_sheet(spreadsheet_id, copied_id, LESSONSHEET_SHEETNAME_SCORE)
    return spreadsheet_id
