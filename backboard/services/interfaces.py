"""Service interfaces used by command/runtime orchestration."""

from __future__ import annotations

from pathlib import Path
from typing import Protocol

from backboard.connectors.base import ReviewSource
from backboard.models import CommitRecord
from backboard.storage.base import StorageBackend


class HistorySource(Protocol):
    def exists(self) -> bool: ...

    def clone_mirror(self, url: str) -> None: ...

    def fetch(self) -> None: ...

    def load_commits(self, *constraints: str) -> list[CommitRecord]: ...

    def merge_base(self, left: str, right: str) -> bytes | None: ...

    def list_release_branches(self, pattern: str) -> list[str]: ...


class HistorySourceFactory(Protocol):
    def __call__(self, repo_path: str | Path, git_bin: str = "git") -> HistorySource: ...


class ReviewSourceFactory(Protocol):
    def __call__(
        self,
        repo: str,
        gh_bin: str = "gh",
        *,
        rate_limit_retries: int = 2,
        secondary_backoff_base_seconds: float = 5.0,
        rate_limit_max_sleep_seconds: float = 90.0,
    ) -> ReviewSource: ...


class StorageFactory(Protocol):
    def __call__(self, db_path: str | Path) -> StorageBackend: ...
