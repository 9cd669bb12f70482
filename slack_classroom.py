"""FastAPI router for the classroom Slack app: events, shortcuts, modals and actions."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Dict, Optional

from anyio import to_thread
from fastapi import APIRouter, Depends, HTTPException, Request, Response
from fastapi.responses import JSONResponse

import assignment_handlers
import chat_handler
import home_handlers
import lesson_handlers
import progress_handlers
import question_handlers
import team_handlers
from classroom_context import ClassroomContext, ViewSubmissionOutcome, get_context
from slack_blocks import (
    ASSIGNMENT_CALLBACK_ID,
    LESSON_CALLBACK_ID,
    PROGRESS_CALLBACK_ID,
    QUESTION_CALLBACK_ID,
    TEAM_CALLBACK_ID,
)
from slack_security import parse_slack_body, verify_slack_request

logger = logging.getLogger(__name__)
router = APIRouter()

Handler = Callable[[ClassroomContext, Dict[str, Any]], Any]

SHORTCUTS: Dict[str, Handler] = {
    "new-lesson-request": lesson_handlers.new_lesson_request,
    "new-asignment-request": assignment_handlers.new_assignment_request,
    "select-asignments": progress_handlers.select_assignments_request,
    "new-team-request": team_handlers.new_team_request,
    "new-question-request": question_handlers.new_question_request,
}

VIEW_SUBMISSIONS: Dict[str, Callable[[ClassroomContext, Dict[str, Any]], ViewSubmissionOutcome]] = {
    LESSON_CALLBACK_ID: lesson_handlers.submit_lesson_request,
    ASSIGNMENT_CALLBACK_ID: assignment_handlers.submit_assignment_request,
    PROGRESS_CALLBACK_ID: progress_handlers.submit_select_assignments,
    TEAM_CALLBACK_ID: team_handlers.submit_team_request,
    QUESTION_CALLBACK_ID: question_handlers.submit_question_request,
}

# None means acknowledge only
BLOCK_ACTIONS: Dict[str, Optional[Handler]] = {
    "selectChannel": None,
    "selectFirstQuestion": question_handlers.select_first_question,
    "selectSecondQuestion": question_handlers.select_second_question,
}

EVENTS: Dict[str, Handler] = {
    "app_home_opened": home_handlers.app_home_opened,
    "message": chat_handler.handle_message,
}


@router.post("/slack/events")
async def slack_events(request: Request, ctx: ClassroomContext = Depends(get_context)) -> Response:
    """Single Request URL for Event Subscriptions and Interactivity."""
    body = await request.body()
    payload = parse_slack_body(body, request.headers.get("content-type"))
    payload_type = payload.get("type")

    if payload_type == "url_verification":
        logger.info("slack_url_verification_received")
        return JSONResponse({"challenge": payload.get("challenge")})

    verify_slack_request(request, body, ctx.settings.slack_signing_secret)

    if request.headers.get("X-Slack-Retry-Num"):
        logger.info(
            "slack_retry_dropped",
            extra={
                "retry_num": request.headers.get("X-Slack-Retry-Num"),
                "reason": request.headers.get("X-Slack-Retry-Reason"),
            },
        )
        return JSONResponse({"ok": True})

    if payload_type == "event_callback":
        return _handle_event(ctx, payload.get("event") or {})
    if payload_type in ("shortcut", "message_action"):
        return _handle_shortcut(ctx, payload)
    if payload_type == "view_submission":
        return await _handle_view_submission(ctx, payload)
    if payload_type == "block_actions":
        return _handle_block_actions(ctx, payload)

    logger.warning("slack_payload_type_unknown", extra={"payload_type": payload_type})
    raise HTTPException(status_code=400, detail="Unsupported Slack payload type")


def _handle_event(ctx: ClassroomContext, event: Dict[str, Any]) -> Response:
    event_type = event.get("type")
    handler = EVENTS.get(event_type)
    if handler is None:
        logger.debug("slack_event_ignored", extra={"event_type": event_type})
        return JSONResponse({"ok": True})

    if event.get("bot_id"):
        logger.debug("slack_event_ignored_bot", extra={"bot_id": event.get("bot_id")})
        return JSONResponse({"ok": True})

    logger.info(
        "slack_event_received",
        extra={"event_type": event_type, "channel": event.get("channel"), "user": event.get("user")},
    )
    asyncio.create_task(_run_in_background(f"{event_type}_handler_failed", handler, ctx, event))
    return JSONResponse({"ok": True})


def _handle_shortcut(ctx: ClassroomContext, payload: Dict[str, Any]) -> Response:
    callback_id = payload.get("callback_id")
    handler = SHORTCUTS.get(callback_id)
    if handler is None:
        logger.warning("slack_shortcut_unknown", extra={"callback_id": callback_id})
        raise HTTPException(status_code=400, detail="Unknown shortcut")

    logger.info("slack_shortcut_received", extra={"callback_id": callback_id, "user": _user_id(payload)})
    asyncio.create_task(_run_in_background(f"{callback_id}_handler_failed", handler, ctx, payload))
    return Response(status_code=200)


async def _handle_view_submission(ctx: ClassroomContext, payload: Dict[str, Any]) -> Response:
    callback_id = (payload.get("view") or {}).get("callback_id")
    handler = VIEW_SUBMISSIONS.get(callback_id)
    if handler is None:
        logger.warning("slack_view_submission_unknown", extra={"callback_id": callback_id})
        return Response(status_code=200)

    logger.info("slack_view_submission_received", extra={"callback_id": callback_id, "user": _user_id(payload)})
    try:
        outcome = await to_thread.run_sync(handler, ctx, payload)
    except Exception:
        logger.exception(f"{callback_id}_handler_failed", extra={"callback_id": callback_id})
        return Response(status_code=200)

    if outcome.followup is not None:
        asyncio.create_task(_run_followup(f"{callback_id}_handler_failed", outcome.followup))
    if outcome.response is not None:
        return JSONResponse(outcome.response)
    return Response(status_code=200)


def _handle_block_actions(ctx: ClassroomContext, payload: Dict[str, Any]) -> Response:
    for action in payload.get("actions") or []:
        action_id = action.get("action_id")
        if action_id not in BLOCK_ACTIONS:
            logger.debug("slack_action_ignored", extra={"action_id": action_id})
            continue
        handler = BLOCK_ACTIONS[action_id]
        if handler is not None:
            asyncio.create_task(_run_in_background(f"{action_id}_handler_failed", handler, ctx, payload))
    return Response(status_code=200)


def _user_id(payload: Dict[str, Any]) -> Optional[str]:
    return (payload.get("user") or {}).get("id")


async def _run_in_background(failure_event: str, handler: Handler, ctx: ClassroomContext, payload: Dict[str, Any]) -> None:
    try:
        await to_thread.run_sync(handler, ctx, payload)
    except Exception:  # pragma: no cover
        logger.exception(failure_event)


async def _run_followup(failure_event: str, followup: Callable[[], None]) -> None:
    try:
        await to_thread.run_sync(followup)
    except Exception:  # pragma: no cover
        logger.exception(failure_event)
