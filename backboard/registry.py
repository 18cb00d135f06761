"""Configured repositories, their collaborators and published snapshots."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from backboard.config import BackboardConfig
from backboard.connectors.base import ReviewSource
from backboard.errors import NoRepositoriesError, SnapshotUnavailableError, UnknownRepositoryError
from backboard.models import RepoIdentity
from backboard.services.command_runtime import CommandRuntime
from backboard.services.interfaces import HistorySource
from backboard.snapshot import RepositorySnapshot, SnapshotSlot, build_snapshot
from backboard.storage.base import StorageBackend

logger = logging.getLogger(__name__)


@dataclass
class RepositoryState:
    identity: RepoIdentity
    repo_id: int
    history: HistorySource
    review_source: ReviewSource
    mainline: str = "master"
    branch_pattern: str = "release-*"
    slot: SnapshotSlot = field(default_factory=SnapshotSlot)

    def refresh(self, storage: StorageBackend) -> RepositorySnapshot:
        """Build a new snapshot off to the side, then publish it in one swap."""
        snapshot = build_snapshot(
            repo=self.identity,
            repo_id=self.repo_id,
            version=self.slot.next_version(),
            history=self.history,
            storage=storage,
            mainline=self.mainline,
            branch_pattern=self.branch_pattern,
        )
        self.slot.publish(snapshot)
        return snapshot


class RepositoryRegistry:
    def __init__(self, repositories: list[RepositoryState]) -> None:
        self.repositories = repositories

    @classmethod
    def from_config(
        cls,
        config: BackboardConfig,
        storage: StorageBackend,
        runtime: CommandRuntime,
    ) -> RepositoryRegistry:
        states: list[RepositoryState] = []
        for repo_cfg in config.repos:
            identity = repo_cfg.identity()
            states.append(
                RepositoryState(
                    identity=identity,
                    repo_id=storage.ensure_repo(identity),
                    history=runtime.history_source_cls(
                        Path(config.git.mirror_root) / identity.owner / identity.name,
                        git_bin=config.git.git_bin,
                    ),
                    review_source=runtime.review_source_cls(
                        repo=identity.slug,
                        gh_bin=config.github.gh_bin,
                        rate_limit_retries=config.github.rate_limit_retries,
                        secondary_backoff_base_seconds=config.github.secondary_backoff_base_seconds,
                        rate_limit_max_sleep_seconds=config.github.rate_limit_max_sleep_seconds,
                    ),
                    mainline=config.git.mainline,
                    branch_pattern=config.git.release_branch_pattern,
                )
            )
        return cls(states)

    def ensure_mirrors(self, *, clone_missing: bool = True) -> None:
        for state in self.repositories:
            if state.history.exists():
                continue
            if not clone_missing:
                raise UnknownRepositoryError(f"no local mirror for {state.identity}")
            logger.info("Cloning mirror of %s", state.identity)
            state.history.clone_mirror(state.identity.clone_url)

    def bootstrap(self, storage: StorageBackend, *, clone_missing: bool = True) -> None:
        """Make sure every mirror exists and publish a first snapshot for each repository."""
        self.ensure_mirrors(clone_missing=clone_missing)
        for state in self.repositories:
            state.refresh(storage)

    def resolve(self, key: str | None = None) -> RepositoryState:
        if not self.repositories:
            raise NoRepositoriesError("no repos available")
        if not key:
            return self.repositories[0]
        for state in self.repositories:
            if key == str(state.repo_id) or key.lower() == state.identity.slug.lower():
                return state
        raise UnknownRepositoryError(f"unknown repo {key!r}")

    def snapshot(self, key: str | None = None) -> RepositorySnapshot:
        state = self.resolve(key)
        snapshot = state.slot.current()
        if snapshot is None:
            raise SnapshotUnavailableError(f"no snapshot published yet for {state.identity}")
        return snapshot
