"""Progress report of every assignment result tab in a lesson workbook."""

import logging
from typing import Any, Dict, List

from classroom_context import ClassroomContext, ViewSubmissionOutcome
from classroom_models import AssignmentProgress
from sheet_service import (
    LESSONSHEET_SHEETNAME_ASSIGNMENT,
    LESSONSHEET_SHEETNAME_SCORE,
    LESSONSHEET_SHEETNAME_STUDENT,
    MASTER_SHEETNAME_LESSON,
)
from slack_blocks import (
    PROGRESS_ACTION_ID,
    PROGRESS_BLOCK_ID,
    build_progress_report,
    build_select_progress_modal_view,
    plain_text,
)
from slack_utils import view_state_values

logger = logging.getLogger(__name__)

LESSON_NAME_KEY = "授業名"
LESSON_SPREADSHEET_KEY = "spreadsheet ID"
NON_RESULT_SHEETS = {
    LESSONSHEET_SHEETNAME_STUDENT,
    LESSONSHEET_SHEETNAME_SCORE,
    LESSONSHEET_SHEETNAME_ASSIGNMENT,
}


def lesson_options(lesson_records: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return [
        {"text": plain_text(record[LESSON_NAME_KEY]), "value": record[LESSON_SPREADSHEET_KEY]}
        for record in lesson_records
        if record.get(LESSON_NAME_KEY) and record.get(LESSON_SPREADSHEET_KEY)
    ]


def select_assignments_request(ctx: ClassroomContext, payload: Dict[str, Any]) -> None:
    lessons = ctx.sheets.find_sheet(ctx.lesson_sheet_id, MASTER_SHEETNAME_LESSON)
    if not lessons.ok:
        logger.error("lesson_list_unavailable", extra={"error": lessons.error})
        return
    ctx.slack.views_open(
        trigger_id=payload["trigger_id"],
        view=build_select_progress_modal_view(lesson_options(lessons.value)),
    )


def fetch_progress(ctx: ClassroomContext, spreadsheet_id: str) -> Dict[str, List[AssignmentProgress]]:
    """Rows of every assignment result tab, keyed by tab title."""
    titles = ctx.sheets.get_all_sheets(spreadsheet_id)
    if not titles.ok:
        return {}

    progress: Dict[str, List[AssignmentProgress]] = {}
    for title in titles.value:
        if title in NON_RESULT_SHEETS:
            continue
        records = ctx.sheets.find_sheet(spreadsheet_id, title)
        progress[title] = [AssignmentProgress.from_record(record) for record in records.value_or([])]
    return progress


def submit_select_assignments(ctx: ClassroomContext, payload: Dict[str, Any]) -> ViewSubmissionOutcome:
    selected = (
        (view_state_values(payload).get(PROGRESS_BLOCK_ID) or {}).get(PROGRESS_ACTION_ID) or {}
    ).get("selected_option") or {}
    spreadsheet_id = selected.get("value")
    if not spreadsheet_id:
        return ViewSubmissionOutcome.errors({PROGRESS_BLOCK_ID: "授業は必須項目です"})

    user_id = payload["user"]["id"]

    def post_report() -> None:
        blocks = build_progress_report(fetch_progress(ctx, spreadsheet_id))
        ctx.slack.chat_postEphemeral(user=user_id, channel=user_id, text="進捗状況", blocks=blocks)

    return ViewSubmissionOutcome(followup=post_report)
