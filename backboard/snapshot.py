"""Immutable repository snapshots and their atomic publication."""

from __future__ import annotations

import logging
import threading
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from types import MappingProxyType

from backboard.commit_index import CommitIndex
from backboard.models import RepoIdentity, ReviewRef
from backboard.services.interfaces import HistorySource
from backboard.storage.base import StorageBackend

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RepositorySnapshot:
    """Everything reconciliation reads for one repository, built as one unit."""

    repo: RepoIdentity
    repo_id: int
    version: int
    mainline: str
    release_branches: tuple[str, ...]
    mainline_commits: CommitIndex
    branch_commits: Mapping[str, CommitIndex]
    merge_bases: Mapping[str, bytes]
    mainline_reviews: Mapping[bytes, ReviewRef]
    branch_reviews: Mapping[tuple[bytes, str], ReviewRef]
    excluded: frozenset[bytes] = frozenset()
    built_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def mainline_review(self, sha: bytes) -> ReviewRef | None:
        return self.mainline_reviews.get(sha)

    def backport_review(self, fingerprint: bytes, branch: str) -> ReviewRef | None:
        return self.branch_reviews.get((fingerprint, branch))


def build_snapshot(
    *,
    repo: RepoIdentity,
    repo_id: int,
    version: int,
    history: HistorySource,
    storage: StorageBackend,
    mainline: str = "master",
    branch_pattern: str = "release-*",
) -> RepositorySnapshot:
    """Load commit history and stored reviews into a fresh, unpublished snapshot."""
    mainline_commits = CommitIndex.build(history.load_commits(mainline))
    branches = history.list_release_branches(branch_pattern)
    branch_commits: dict[str, CommitIndex] = {}
    merge_bases: dict[str, bytes] = {}
    for branch in branches:
        branch_commits[branch] = CommitIndex.build(history.load_commits(branch, f"^{mainline}"))
        merge_base = history.merge_base(mainline, branch)
        if merge_base is None:
            logger.warning("Release branch %s of %s shares no history with %s", branch, repo, mainline)
            continue
        merge_bases[branch] = merge_base

    snapshot = RepositorySnapshot(
        repo=repo,
        repo_id=repo_id,
        version=version,
        mainline=mainline,
        release_branches=tuple(branches),
        mainline_commits=mainline_commits,
        branch_commits=MappingProxyType(branch_commits),
        merge_bases=MappingProxyType(merge_bases),
        mainline_reviews=MappingProxyType(storage.load_mainline_reviews(repo, repo_id, mainline)),
        branch_reviews=MappingProxyType(storage.load_branch_reviews(repo, repo_id)),
        excluded=storage.load_excluded_fingerprints(),
    )
    logger.debug(
        "Built snapshot v%s for %s: %s mainline commits, %s release branches",
        version,
        repo,
        len(mainline_commits),
        len(branches),
    )
    return snapshot


class SnapshotSlot:
    """Holds the published snapshot of one repository.

    Readers call :meth:`current` once per request and keep using that
    reference; publication swaps the reference under a lock that readers
    never take.
    """

    def __init__(self) -> None:
        self._current: RepositorySnapshot | None = None
        self._lock = threading.Lock()
        self._last_version = 0

    def current(self) -> RepositorySnapshot | None:
        return self._current

    def next_version(self) -> int:
        with self._lock:
            self._last_version += 1
            return self._last_version

    def publish(self, snapshot: RepositorySnapshot) -> bool:
        with self._lock:
            current = self._current
            if current is not None and snapshot.version <= current.version:
                logger.warning(
                    "Discarding stale snapshot v%s for %s (published v%s)",
                    snapshot.version,
                    snapshot.repo,
                    current.version,
                )
                return False
            self._current = snapshot
        logger.info("Published snapshot v%s for %s", snapshot.version, snapshot.repo)
        return True
