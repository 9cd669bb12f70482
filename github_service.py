"""GitHub Actions artifact access: find the newest test report and scrape its counts."""

from __future__ import annotations

import io
import logging
import time
import zipfile
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional

import requests
from bs4 import BeautifulSoup

from classroom_models import UtResult

logger = logging.getLogger(__name__)

GITHUB_API_URL = "https://api.github.com"
REPORT_FILENAME = "index.html"
JST = timezone(timedelta(hours=9))


def select_latest_artifact(
    artifacts: List[Dict[str, Any]],
    sha: Optional[str] = None,
) -> Optional[Dict[str, Any]]:
    """Pick the artifact with the highest id.

    When ``sha`` is given, artifacts whose workflow run reports a different
    head sha are skipped; artifacts without run metadata still qualify.
    """
    candidates = [artifact for artifact in artifacts if artifact.get("id") is not None]
    if sha:
        candidates = [
            artifact
            for artifact in candidates
            if (artifact.get("workflow_run") or {}).get("head_sha") in (None, sha)
        ]
    if not candidates:
        return None
    return max(candidates, key=lambda artifact: int(artifact["id"]))


def _to_int(text: str) -> int:
    try:
        return int(float(text.strip()))
    except ValueError:
        return 0


def _first_div_text(soup: BeautifulSoup, element_id: str) -> str:
    node = soup.select_one(f"#{element_id} div")
    return node.get_text(strip=True) if node else ""


def parse_report_html(
    html: str,
    *,
    repo: str,
    username: str,
    now: Optional[datetime] = None,
) -> UtResult:
    """Read the summary boxes of a Gradle test report."""
    soup = BeautifulSoup(html, "html.parser")
    return UtResult(
        repo=repo,
        username=username,
        date=now or datetime.now(JST),
        tests=_to_int(_first_div_text(soup, "tests")),
        failures=_to_int(_first_div_text(soup, "failures")),
        ignored=_to_int(_first_div_text(soup, "ignored")),
        success_rate=_first_div_text(soup, "successRate"),
    )


def extract_report(archive: bytes, filename: str = REPORT_FILENAME) -> Optional[str]:
    with zipfile.ZipFile(io.BytesIO(archive)) as bundle:
        if filename not in bundle.namelist():
            logger.warning("artifact_report_missing", extra={"report_file": filename})
            return None
        return bundle.read(filename).decode("utf-8")


class ArtifactClient:
    def __init__(
        self,
        *,
        token: Optional[str],
        owner: Optional[str],
        session: Optional[requests.Session] = None,
        api_url: str = GITHUB_API_URL,
    ) -> None:
        self.owner = owner
        self.api_url = api_url.rstrip("/")
        self.session = session or requests.Session()
        self.session.headers.update({"Accept": "application/vnd.github+json"})
        if token:
            self.session.headers.update({"Authorization": f"Bearer {token}"})
        else:
            logger.warning("github_token_missing")

    def _repo_url(self, repo: str) -> str:
        return f"{self.api_url}/repos/{self.owner}/{repo}"

    def list_artifacts(self, repo: str) -> List[Dict[str, Any]]:
        response = self.session.get(
            f"{self._repo_url(repo)}/actions/artifacts",
            params={"per_page": 100},
            timeout=10,
        )
        response.raise_for_status()
        return response.json().get("artifacts", [])

    def download_artifact(self, repo: str, artifact_id: int) -> Optional[bytes]:
        response = self.session.get(
            f"{self._repo_url(repo)}/actions/artifacts/{artifact_id}/zip",
            timeout=30,
        )
        response.raise_for_status()
        if not zipfile.is_zipfile(io.BytesIO(response.content)):
            logger.warning(
                "artifact_not_zip",
                extra={"repo": repo, "artifact_id": artifact_id},
            )
            return None
        return response.content

    def fetch_artifact(self, repo: str, username: str, sha: Optional[str] = None) -> Optional[UtResult]:
        """Download the latest artifact of ``repo`` and parse its report, or None if there is none."""
        artifact = select_latest_artifact(self.list_artifacts(repo), sha)
        if not artifact:
            logger.info("artifact_not_found", extra={"repo": repo, "sha": sha})
            return None

        archive = self.download_artifact(repo, artifact["id"])
        if archive is None:
            return None

        html = extract_report(archive)
        if html is None:
            return None

        result = parse_report_html(html, repo=repo, username=username)
        logger.info(
            "artifact_parsed",
            extra={"repo": repo, "artifact_id": artifact["id"], "tests": result.tests, "failures": result.failures},
        )
        return result

    def wait_for_artifact(
        self,
        repo: str,
        username: str,
        sha: Optional[str] = None,
        *,
        attempts: int = 6,
        delay: float = 4.0,
        max_delay: float = 30.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> Optional[UtResult]:
        """Poll until the run's artifact shows up, backing off between tries."""
        wait = delay
        for attempt in range(1, attempts + 1):
            sleep(wait)
            result = self.fetch_artifact(repo, username, sha)
            if result is not None:
                return result
            logger.info(
                "artifact_poll_pending",
                extra={"repo": repo, "attempt": attempt, "next_delay": min(wait * 2, max_delay)},
            )
            wait = min(wait * 2, max_delay)

        logger.warning("artifact_poll_exhausted", extra={"repo": repo, "sha": sha, "attempts": attempts})
        return None
