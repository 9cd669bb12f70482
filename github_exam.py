"""CI webhook: record a student's unit test results in the lesson's result workbook."""

from __future__ import annotations

import asyncio
import json
import logging
import time
from typing import Any, Callable, Dict, Optional

from anyio import to_thread
from fastapi import APIRouter, Depends, Request, Response
from pydantic import ValidationError

from classroom_context import ClassroomContext, get_context
from classroom_models import ExamSubmission, UtResult

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/github/exam")
async def github_exam(request: Request, ctx: ClassroomContext = Depends(get_context)) -> Response:
    # always an empty 200; the body is validated in the background
    body = await request.body()
    asyncio.create_task(_run_exam_submission(ctx, body))
    return Response(status_code=200)


def parse_exam_submission(body: bytes) -> Optional[ExamSubmission]:
    try:
        payload: Dict[str, Any] = json.loads(body)
        submission = ExamSubmission(**payload)
    except (json.JSONDecodeError, UnicodeDecodeError, TypeError) as exc:
        logger.error("github_exam_invalid_json", extra={"error": str(exc)})
        return None
    except ValidationError as exc:
        logger.error("github_exam_missing_fields", extra={"error": str(exc)})
        return None

    logger.info(
        "github_exam_received",
        extra={"repo": submission.repo, "username": submission.username, "sha": submission.sha},
    )
    return submission


async def _run_exam_submission(ctx: ClassroomContext, body: bytes) -> None:
    submission = parse_exam_submission(body)
    if submission is None:
        return
    try:
        await to_thread.run_sync(process_exam_submission, ctx, submission)
    except Exception:  # pragma: no cover
        logger.exception("github_exam_handler_failed", extra={"repo": submission.repo})


def process_exam_submission(
    ctx: ClassroomContext,
    submission: ExamSubmission,
    sleep: Callable[[float], None] = time.sleep,
) -> Optional[UtResult]:
    """Make sure the assignment tab exists, wait for the CI report and append its row."""
    title = submission.assignment_title
    if title is None:
        logger.warning(
            "github_exam_repo_mismatch",
            extra={"repo": submission.repo, "username": submission.username},
        )
        return None

    sheets = ctx.sheets
    titles = sheets.get_all_sheets(submission.sheetid)
    if not titles.ok:
        logger.error("github_exam_sheet_unavailable", extra={"sheet_id": submission.sheetid, "error": titles.error})
        return None

    if title not in titles.value:
        created = sheets.create_assignment_sheet(submission.sheetid, title)
        if not created.ok:
            logger.error("github_exam_sheet_not_created", extra={"title": title, "error": created.error})
            return None
        sheets.write_assignment_to_score_sheet(submission.sheetid, title)
        logger.info("github_exam_sheet_created", extra={"sheet_id": submission.sheetid, "title": title})

    settings = ctx.settings
    result = ctx.github.wait_for_artifact(
        submission.repo,
        submission.username,
        submission.sha or None,
        attempts=settings.artifact_poll_attempts,
        delay=settings.artifact_poll_delay_seconds,
        max_delay=settings.artifact_poll_max_delay_seconds,
        sleep=sleep,
    )
    if result is None:
        logger.warning("github_exam_artifact_missing", extra={"repo": submission.repo, "sha": submission.sha})
        return None

    written = sheets.write_github_result(submission.sheetid, title, result, submission.sha)
    if not written.ok:
        logger.error("github_exam_result_not_written", extra={"repo": submission.repo, "error": written.error})
        return None
    logger.info(
        "github_exam_result_written",
        extra={"repo": submission.repo, "tests": result.tests, "failures": result.failures},
    )
    return result
