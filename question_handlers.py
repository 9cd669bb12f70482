"""Question modal: guided choices plus free text, answered by DM."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from answer_service import QUESTION_PROMPT
from classroom_context import ClassroomContext, ViewSubmissionOutcome
from slack_blocks import (
    FIRST_QUESTION_OPTIONS,
    FREE_TEXT_CHOICE,
    SECOND_QUESTION_OPTIONS,
    build_ask_question_modal_view,
)
from slack_utils import view_state_values

logger = logging.getLogger(__name__)

WAIT_MESSAGE = "結果が表示されるまで少々お待ちください。"
CONTENT_REQUIRED_ERROR = "キーワードを入力してください"


def hidden_blocks_for_first_choice(choice: Optional[str]) -> List[str]:
    """Free text skips the second select; the guided choices wait for it before showing the text box."""
    if choice == FREE_TEXT_CHOICE:
        return ["secondQuestion"]
    return ["content"]


def new_question_request(ctx: ClassroomContext, payload: Dict[str, Any]) -> None:
    ctx.slack.views_open(
        trigger_id=payload["trigger_id"],
        view=build_ask_question_modal_view(hidden_block_ids=("secondQuestion", "content")),
    )


def _selected_action_value(payload: Dict[str, Any]) -> Optional[str]:
    actions = payload.get("actions") or []
    if not actions:
        return None
    return (actions[0].get("selected_option") or {}).get("value")


def select_first_question(ctx: ClassroomContext, payload: Dict[str, Any]) -> None:
    hidden = hidden_blocks_for_first_choice(_selected_action_value(payload))
    ctx.slack.views_update(
        view_id=payload["view"]["id"],
        view=build_ask_question_modal_view(hidden_block_ids=hidden),
    )


def select_second_question(ctx: ClassroomContext, payload: Dict[str, Any]) -> None:
    ctx.slack.views_update(view_id=payload["view"]["id"], view=build_ask_question_modal_view())


def _selected(values: Dict[str, Any], block_id: str, action_id: str) -> Optional[str]:
    return (((values.get(block_id) or {}).get(action_id) or {}).get("selected_option") or {}).get("value")


def compose_question(values: Dict[str, Any]) -> str:
    """Question text from the chosen topic, the chosen intent and the typed keywords."""
    first = _selected(values, "firstQuestion", "selectFirstQuestion")
    second = _selected(values, "secondQuestion", "selectSecondQuestion")
    content = (((values.get("content") or {}).get("content") or {}).get("value") or "").strip()

    parts = []
    if first and first != FREE_TEXT_CHOICE:
        if second in SECOND_QUESTION_OPTIONS:
            parts.append(SECOND_QUESTION_OPTIONS[second])
        parts.append(FIRST_QUESTION_OPTIONS.get(first, ""))
    if content:
        parts.append(content)
    return " ".join(part for part in parts if part)


def submit_question_request(ctx: ClassroomContext, payload: Dict[str, Any]) -> ViewSubmissionOutcome:
    values = view_state_values(payload)
    if "content" in values and not ((values["content"].get("content") or {}).get("value") or "").strip():
        return ViewSubmissionOutcome.errors({"content": CONTENT_REQUIRED_ERROR})

    question = compose_question(values)
    if not question:
        return ViewSubmissionOutcome.errors({"firstQuestion": CONTENT_REQUIRED_ERROR})

    user_id = payload["user"]["id"]
    return ViewSubmissionOutcome(followup=lambda: answer_question(ctx, user_id, question))


def answer_question(ctx: ClassroomContext, user_id: str, question: str) -> None:
    waiting = ctx.slack.chat_postMessage(channel=user_id, text=WAIT_MESSAGE)
    answer = ctx.answers.get_answer(question, prompt=QUESTION_PROMPT)
    # DMs are addressed by user id, but chat.delete needs the channel id from the reply
    ctx.slack.chat_delete(channel=waiting.get("channel") or user_id, ts=waiting["ts"])
    ctx.slack.chat_postMessage(channel=user_id, text=answer)
    logger.info("question_answered", extra={"user": user_id})
