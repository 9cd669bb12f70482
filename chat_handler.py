"""Direct-message Q&A with the app."""

import logging
from typing import Any, Dict

from answer_service import CHAT_PROMPT
from classroom_context import ClassroomContext
from slack_utils import is_generic_message_event

logger = logging.getLogger(__name__)


def handle_message(ctx: ClassroomContext, event: Dict[str, Any]) -> None:
    if not is_generic_message_event(event) or event.get("user") == ctx.bot_user_id():
        return

    channel = event["channel"]
    info = ctx.slack.conversations_info(channel=channel).get("channel") or {}
    members = ctx.slack.conversations_members(channel=channel).get("members") or []
    if not info.get("is_im") or ctx.settings.slack_app_channel not in members:
        logger.info("chat_question_not_allowed", extra={"channel": channel})
        return

    replies = ctx.slack.conversations_replies(channel=channel, ts=event.get("event_ts") or event["ts"])
    messages = replies.get("messages") or []
    question = (messages[0].get("text") if messages else None) or event.get("text") or ""

    answer = ctx.answers.get_answer(question, prompt=CHAT_PROMPT)
    ctx.slack.chat_postMessage(channel=channel, text=answer)
    logger.info("chat_question_answered", extra={"channel": channel})
