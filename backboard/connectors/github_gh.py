"""GitHub review-record source backed by the gh CLI."""

from __future__ import annotations

import json
import logging
import re
import subprocess
import threading
import time
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from backboard.connectors.base import ReviewSource
from backboard.errors import GithubApiError, GithubRateLimitError

_RATE_LIMIT_RE = re.compile(r"(?:api|secondary) rate limit", re.IGNORECASE)
logger = logging.getLogger(__name__)


class GithubUser(BaseModel):
    model_config = ConfigDict(extra="ignore")

    login: str


class GithubRef(BaseModel):
    model_config = ConfigDict(extra="ignore")

    ref: str = ""
    sha: str = ""


class GithubPull(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int
    number: int
    title: str
    body: str | None = None
    user: GithubUser
    state: str = "open"
    merged_at: datetime | None = None
    base: GithubRef = Field(default_factory=GithubRef)
    head: GithubRef = Field(default_factory=GithubRef)
    updated_at: datetime

    @property
    def is_open(self) -> bool:
        return self.state == "open"

    @property
    def head_ref(self) -> str:
        return f"refs/pull/{self.number}/head"


@dataclass
class PullPage:
    pulls: list[GithubPull]
    has_next: bool


class GithubGhClient:
    def __init__(
        self,
        repo: str,
        gh_bin: str = "gh",
        *,
        rate_limit_retries: int = 2,
        secondary_backoff_base_seconds: float = 5.0,
        rate_limit_max_sleep_seconds: float = 90.0,
    ) -> None:
        self.repo = repo
        self.gh_bin = gh_bin
        self.rate_limit_retries = max(0, rate_limit_retries)
        self.secondary_backoff_base_seconds = max(1.0, secondary_backoff_base_seconds)
        self.rate_limit_max_sleep_seconds = max(1.0, rate_limit_max_sleep_seconds)
        self._rate_limit_lock = threading.Lock()
        self._global_backoff_until = 0.0

    def get_page(self, endpoint: str, *, page: int, per_page: int = 100) -> list[dict[str, Any]]:
        query = f"{endpoint}{'&' if '?' in endpoint else '?'}per_page={per_page}&page={page}"
        payload = self._api_json(query)
        if not isinstance(payload, list):
            return []
        return payload

    def _api_json(self, endpoint: str, method: str = "GET") -> Any:
        path = endpoint if endpoint.startswith("repos/") else f"repos/{self.repo}/{endpoint.lstrip('/')}"
        cmd = self._gh_command(path, method)
        attempts = self.rate_limit_retries + 1
        for attempt in range(attempts):
            self._pause_for_backoff()
            proc = subprocess.run(cmd, text=True, capture_output=True, check=False)
            if proc.returncode == 0:
                return _decode_json(proc.stdout, endpoint)

            stderr = proc.stderr.strip()
            if not _RATE_LIMIT_RE.search(stderr):
                raise GithubApiError(f"gh api failed: {' '.join(cmd)}\n{stderr}")

            reset_at = self._rate_limit_reset()
            wait = self._rate_limit_wait(reset_at, attempt)
            self._extend_backoff(wait)
            logger.warning(
                "GitHub rate limit on %s (attempt %s/%s), waiting %.1fs, reset_at=%s",
                endpoint,
                attempt + 1,
                attempts,
                wait,
                reset_at.isoformat() if reset_at else "unknown",
            )
            if attempt + 1 < attempts and wait <= self.rate_limit_max_sleep_seconds:
                continue
            raise GithubRateLimitError(
                f"gh api rate limited: {' '.join(cmd)}\n{stderr}",
                reset_at=reset_at,
                retry_after_seconds=wait,
            )
        raise GithubApiError(f"gh api gave up on {endpoint}")

    def _gh_command(self, path: str, method: str = "GET") -> list[str]:
        return [self.gh_bin, "api", path, "-X", method, "-H", "Accept: application/vnd.github+json"]

    def _pause_for_backoff(self) -> None:
        while True:
            with self._rate_limit_lock:
                remaining = self._global_backoff_until - time.monotonic()
            if remaining <= 0:
                return
            time.sleep(remaining)

    def _extend_backoff(self, seconds: float) -> None:
        until = time.monotonic() + max(0.0, seconds)
        with self._rate_limit_lock:
            if until > self._global_backoff_until:
                self._global_backoff_until = until

    def _rate_limit_wait(self, reset_at: datetime | None, attempt: int) -> float:
        """Seconds to hold off: until the reported reset, else exponential secondary backoff."""
        if reset_at is None:
            backoff = self.secondary_backoff_base_seconds * 2**attempt
            return float(min(self.rate_limit_max_sleep_seconds, max(1.0, backoff)))
        seconds = (reset_at - datetime.now(UTC)).total_seconds()
        if seconds > self.rate_limit_max_sleep_seconds:
            return seconds
        return max(1.0, seconds + 1.0)

    def _rate_limit_reset(self) -> datetime | None:
        proc = subprocess.run(self._gh_command("rate_limit"), text=True, capture_output=True, check=False)
        if proc.returncode != 0:
            return None
        try:
            data = _decode_json(proc.stdout, "rate_limit")
        except GithubApiError:
            return None
        if not isinstance(data, dict):
            return None

        buckets = [*(data.get("resources") or {}).values(), data.get("rate")]
        exhausted = [
            bucket["reset"]
            for bucket in buckets
            if isinstance(bucket, dict) and bucket.get("remaining") == 0 and isinstance(bucket.get("reset"), int)
        ]
        if not exhausted:
            return None
        return datetime.fromtimestamp(max(exhausted), UTC)


def _decode_json(output: str, endpoint: str) -> Any:
    output = output.strip()
    if not output:
        return None
    try:
        return json.loads(output)
    except json.JSONDecodeError as exc:
        raise GithubApiError(f"gh api returned invalid JSON for {endpoint}: {exc}") from exc


class GithubGhReviewSource(ReviewSource):
    """Lists pull requests of every state, most recently updated first."""

    def __init__(
        self,
        repo: str,
        gh_bin: str = "gh",
        *,
        rate_limit_retries: int = 2,
        secondary_backoff_base_seconds: float = 5.0,
        rate_limit_max_sleep_seconds: float = 90.0,
    ) -> None:
        self.repo = repo
        self.client = GithubGhClient(
            repo=repo,
            gh_bin=gh_bin,
            rate_limit_retries=rate_limit_retries,
            secondary_backoff_base_seconds=secondary_backoff_base_seconds,
            rate_limit_max_sleep_seconds=rate_limit_max_sleep_seconds,
        )

    def fetch_updated_page(self, *, page: int, per_page: int = 100) -> PullPage:
        payload = self.client.get_page("pulls?state=all&sort=updated&direction=desc", page=page, per_page=per_page)
        pulls = [GithubPull.model_validate(item) for item in payload]
        logger.debug("Fetched PR page %s (%s items)", page, len(pulls))
        return PullPage(pulls=pulls, has_next=len(payload) >= per_page)
