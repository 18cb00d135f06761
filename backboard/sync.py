"""Incremental review-record sync and the background sync loop."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass

from backboard.connectors.github_gh import GithubPull
from backboard.models import CommitRecord, ReviewCommit, ReviewRecord
from backboard.registry import RepositoryRegistry, RepositoryState
from backboard.storage.base import StorageBackend

logger = logging.getLogger(__name__)


@dataclass
class SyncResult:
    repo: str
    pages: int
    fetched: int
    written: int
    skipped: int
    snapshot_version: int


def review_record_from_pull(pull: GithubPull, commits: list[CommitRecord]) -> ReviewRecord:
    return ReviewRecord(
        id=pull.id,
        number=pull.number,
        title=pull.title,
        body=pull.body or "",
        open=pull.is_open,
        merged_at=pull.merged_at,
        base_branch=pull.base.ref,
        base_sha=pull.base.sha,
        author=pull.user.login,
        updated_at=pull.updated_at,
        commits=[ReviewCommit.from_commit(commit, ordering) for ordering, commit in enumerate(commits)],
    )


class SyncController:
    """Converges stored review records with GitHub, then republishes snapshots.

    Pull requests are listed most recently updated first. Paging stops at the
    first page whose last entry is already stored with the same ``updated_at``:
    everything after it is older and therefore unchanged.
    """

    def __init__(self, storage: StorageBackend, *, page_size: int = 100) -> None:
        self.storage = storage
        self.page_size = page_size

    def collect_updated_pulls(self, state: RepositoryState) -> tuple[list[GithubPull], int]:
        pulls: list[GithubPull] = []
        page = 1
        while True:
            result = state.review_source.fetch_updated_page(page=page, per_page=self.page_size)
            pulls.extend(result.pulls)
            logger.info("Fetched %s updated PRs for %s (total: %s)", len(result.pulls), state.identity, len(pulls))
            if not result.has_next or not result.pulls:
                return pulls, page
            last = result.pulls[-1]
            if self.storage.is_review_up_to_date(last.id, last.updated_at):
                return pulls, page
            page += 1

    def sync_pull(self, state: RepositoryState, pull: GithubPull) -> bool:
        """Write one review record; returns False when the store was already current."""
        with self.storage.review_transaction() as tx:
            # Re-checked under the write lock: another pass may have written it since listing.
            if tx.is_review_up_to_date(pull.id, pull.updated_at):
                logger.debug("PR #%s is up to date", pull.number)
                return False
            commits = state.history.load_commits(pull.head_ref, f"^{pull.base.sha}")
            tx.write_review(state.repo_id, review_record_from_pull(pull, commits))
        logger.debug("Stored PR #%s (%s commits)", pull.number, len(commits))
        return True

    def sync_repository(self, state: RepositoryState) -> SyncResult:
        logger.info("Syncing %s", state.identity)
        state.history.fetch()
        pulls, pages = self.collect_updated_pulls(state)

        written = 0
        # Oldest first, so ordering-derived fields only ever move forward.
        for pull in reversed(pulls):
            if self.sync_pull(state, pull):
                written += 1

        snapshot = state.refresh(self.storage)
        logger.info("Done syncing %s: pages=%s fetched=%s written=%s", state.identity, pages, len(pulls), written)
        return SyncResult(
            repo=state.identity.slug,
            pages=pages,
            fetched=len(pulls),
            written=written,
            skipped=len(pulls) - written,
            snapshot_version=snapshot.version,
        )

    def sync_all(self, registry: RepositoryRegistry) -> list[SyncResult]:
        return [self.sync_repository(state) for state in registry.repositories]

    def run_forever(self, registry: RepositoryRegistry, stop: threading.Event, interval_seconds: float) -> None:
        while not stop.is_set():
            try:
                self.sync_all(registry)
            except Exception:
                logger.exception("Sync pass failed; previous snapshots stay published")
            stop.wait(interval_seconds)

    def start_background(
        self,
        registry: RepositoryRegistry,
        interval_seconds: float,
    ) -> tuple[threading.Thread, threading.Event]:
        stop = threading.Event()
        thread = threading.Thread(
            target=self.run_forever,
            args=(registry, stop, interval_seconds),
            name="backboard-sync",
            daemon=True,
        )
        thread.start()
        return thread, stop

    def stop_background(self, thread: threading.Thread, stop: threading.Event, timeout_seconds: float) -> bool:
        """Signal the loop to stop and wait for a running pass to finish; False if it did not in time."""
        stop.set()
        thread.join(timeout_seconds)
        if thread.is_alive():
            logger.warning("Sync pass still running after %.1fs; abandoning it", timeout_seconds)
            return False
        return True
