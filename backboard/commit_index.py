"""Ordered commit index with SHA and fingerprint lookup."""

from __future__ import annotations

from collections.abc import Iterable, Iterator

from backboard.models import CommitRecord


class CommitIndex:
    """Commits of one ref range, newest first, as emitted by the history source.

    An index is filled once through :meth:`insert` (or :meth:`build`) and then
    frozen; refreshes build a new index instead of touching a published one.
    """

    def __init__(self) -> None:
        self._commits: list[CommitRecord] = []
        self._shas: set[bytes] = set()
        self._fingerprints: set[bytes] = set()
        self._frozen = False

    @classmethod
    def build(cls, commits: Iterable[CommitRecord]) -> CommitIndex:
        index = cls()
        for commit in commits:
            index.insert(commit)
        index.freeze()
        return index

    def insert(self, commit: CommitRecord) -> None:
        if self._frozen:
            raise RuntimeError("commit index is frozen")
        self._commits.append(commit)
        self._shas.add(commit.sha)
        self._fingerprints.add(commit.fingerprint)

    def freeze(self) -> None:
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def contains_sha(self, sha: bytes) -> bool:
        return sha in self._shas

    def contains_fingerprint(self, fingerprint: bytes) -> bool:
        return fingerprint in self._fingerprints

    def truncate_before(self, marker: bytes | None) -> list[CommitRecord]:
        """Non-merge commits strictly before ``marker``; everything if the marker is absent."""
        out: list[CommitRecord] = []
        for commit in self._commits:
            if marker is not None and commit.sha == marker:
                break
            if not commit.merge:
                out.append(commit)
        return out

    def __iter__(self) -> Iterator[CommitRecord]:
        return iter(self._commits)

    def __len__(self) -> int:
        return len(self._commits)
