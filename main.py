# main.py

from dotenv import load_dotenv
load_dotenv()

import logging
import time
import uuid

from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse
from starlette.middleware.base import BaseHTTPMiddleware

from classroom_config import ClassroomSettings
from github_exam import router as github_exam_router
from slack_classroom import router as slack_router


startup_logger = logging.getLogger("classroom_startup")
request_logger = logging.getLogger("request_logging")

ACTOR_PREFIXES = (("/slack", "Slack"), ("/github", "GitHub"))


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """One ``request_completed`` line per request with the caller and latency."""

    async def dispatch(self, request: Request, call_next):
        request_id = str(uuid.uuid4())
        started = time.perf_counter()
        path = request.url.path
        actor = next((name for prefix, name in ACTOR_PREFIXES if path.startswith(prefix)), "API")

        response = await call_next(request)

        request_logger.info(
            "request_completed",
            extra={
                "request_id": request_id,
                "endpoint": path,
                "method": request.method,
                "actor": actor,
                "status_code": response.status_code,
                "latency_ms": round((time.perf_counter() - started) * 1000, 2),
            },
        )
        return response


def log_missing_settings(settings: ClassroomSettings) -> None:
    if not settings.slack_bot_token:
        startup_logger.error("slack_bot_token_missing_startup")
    if not settings.slack_signing_secret:
        startup_logger.warning("slack_signing_secret_missing")
    if not settings.lesson_sheet_id:
        startup_logger.warning("lesson_sheet_id_missing")
    if not settings.github_token or not settings.github_owner:
        startup_logger.warning("github_artifact_access_not_configured")


app = FastAPI(title="classroom-ops-bot")
app.add_middleware(RequestLoggingMiddleware)
app.include_router(slack_router, tags=["slack"])
app.include_router(github_exam_router, tags=["github"])

log_missing_settings(ClassroomSettings.from_env())


@app.get("/", response_class=PlainTextResponse)
def index():
    return "Hello World!"


# ------------------------------------------------------------------
# Health check
# ------------------------------------------------------------------
@app.get("/health")
def health():
    return {"status": "ok"}


@app.get("/healthz")
def healthz():
    return health()
