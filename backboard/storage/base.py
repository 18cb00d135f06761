"""Storage backend interfaces for backboard persistence."""

from __future__ import annotations

from contextlib import AbstractContextManager
from datetime import datetime
from typing import Protocol

from backboard.models import ExclusionRecord, RepoIdentity, ReviewRecord, ReviewRef


class ReviewWriter(Protocol):
    def is_review_up_to_date(self, review_id: int, updated_at: datetime) -> bool: ...

    def write_review(self, repo_id: int, record: ReviewRecord) -> None: ...


class StorageBackend(Protocol):
    def init_schema(self) -> None: ...

    def ensure_repo(self, repo: RepoIdentity) -> int: ...

    def is_review_up_to_date(self, review_id: int, updated_at: datetime) -> bool: ...

    def review_transaction(self) -> AbstractContextManager[ReviewWriter]: ...

    def load_review(self, repo_id: int, number: int) -> ReviewRecord | None: ...

    def load_mainline_reviews(self, repo: RepoIdentity, repo_id: int, mainline: str) -> dict[bytes, ReviewRef]: ...

    def load_branch_reviews(self, repo: RepoIdentity, repo_id: int) -> dict[tuple[bytes, str], ReviewRef]: ...

    def add_exclusion(self, fingerprint: str) -> bool: ...

    def remove_exclusion(self, fingerprint: str) -> bool: ...

    def list_exclusions(self) -> list[ExclusionRecord]: ...

    def load_excluded_fingerprints(self) -> frozenset[bytes]: ...
