"""Assignment registration: one channel per assignment, announced to the lesson's members."""

from __future__ import annotations

import logging
from typing import Any, Dict

from classroom_context import ClassroomContext, ViewSubmissionOutcome
from slack_blocks import build_assignment_modal_view, build_new_assignment_info
from slack_utils import convert_channel_name, view_state_values

logger = logging.getLogger(__name__)

MAX_ASSIGNMENT_NAME_LENGTH = 80
GITHUB_CLASSROOM_URL_PREFIX = "https://classroom.github.com/"
NAME_ERROR = "課題名は 80 文字以内で入力してください"
URL_ERROR = "Github Classroom で作成した課題URLを入力してください"


def new_assignment_request(ctx: ClassroomContext, payload: Dict[str, Any]) -> None:
    ctx.slack.views_open(trigger_id=payload["trigger_id"], view=build_assignment_modal_view())


def validate_assignment(name: str, url: str) -> Dict[str, str]:
    """Block id -> error message for every invalid field."""
    errors: Dict[str, str] = {}
    if not name or len(name) > MAX_ASSIGNMENT_NAME_LENGTH:
        errors["name"] = NAME_ERROR
    if not url or GITHUB_CLASSROOM_URL_PREFIX not in url:
        errors["url"] = URL_ERROR
    return errors


def submit_assignment_request(ctx: ClassroomContext, payload: Dict[str, Any]) -> ViewSubmissionOutcome:
    values = view_state_values(payload)
    lesson_channel = ((values.get("lesson") or {}).get("selectLesson") or {}).get("selected_conversation")
    name = ((values.get("name") or {}).get("inputName") or {}).get("value") or ""
    url = ((values.get("url") or {}).get("inputURL") or {}).get("value") or ""

    errors = validate_assignment(name, url)
    if not lesson_channel:
        errors["lesson"] = "授業は必須項目です"
    if errors:
        return ViewSubmissionOutcome.errors(errors)

    return ViewSubmissionOutcome(followup=lambda: register_assignment(ctx, lesson_channel, name, url))


def register_assignment(ctx: ClassroomContext, lesson_channel: str, name: str, url: str) -> None:
    lesson_info = ctx.slack.conversations_info(channel=lesson_channel)
    lesson_channel_name = (lesson_info.get("channel") or {}).get("name", "")
    channel_name = f"{lesson_channel_name}_{convert_channel_name(name)}"

    created = ctx.slack.conversations_create(name=channel_name)
    channel_id = (created.get("channel") or {}).get("id")
    if not channel_id:
        raise RuntimeError(f"assignment channel {channel_name!r} was not created")
    logger.info("assignment_channel_created", extra={"channel_name": channel_name, "channel": channel_id})

    bot_user_id = ctx.bot_user_id()
    members = ctx.slack.conversations_members(channel=lesson_channel).get("members") or []
    invitees = [member for member in members if member != bot_user_id]
    if invitees:
        ctx.slack.conversations_invite(channel=channel_id, users=",".join(invitees))

    ctx.slack.chat_postMessage(
        channel=channel_id,
        text=f"新しい課題のおしらせ: {name}",
        blocks=build_new_assignment_info(name, url),
    )

    written = ctx.sheets.write_assignment_data(ctx.lesson_sheet_id, lesson_channel, channel_name, channel_id, url)
    if not written.ok:
        logger.error(
            "assignment_row_not_written",
            extra={"lesson_channel": lesson_channel, "channel": channel_id, "error": written.error},
        )
        return
    logger.info("assignment_registered", extra={"lesson_channel": lesson_channel, "channel": channel_id})
