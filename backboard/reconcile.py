"""Backport reconciliation: correlate mainline commits with a release branch.

Mainline commits are matched to the review that authored them by exact SHA,
and to the review that backported them by content fingerprint, since a
cherry-picked commit has a new SHA but the same message. A commit also
counts as backported when its fingerprint shows up in the release branch
history with no tracked review at all.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator, Sequence
from dataclasses import dataclass, replace
from typing import Generic, NamedTuple, TypeVar

from backboard.errors import UnknownAuthorError, UnknownBranchError
from backboard.models import BackportStatus, CommitRecord, RepoIdentity, ReviewRef
from backboard.snapshot import RepositorySnapshot

T = TypeVar("T")


class Span(NamedTuple, Generic[T]):
    head: T
    start: int
    length: int


def iter_spans(items: Sequence[T], same: Callable[[T, T], bool]) -> Iterator[Span[T]]:
    """Yield maximal runs of consecutive items where ``same(previous, current)`` holds."""
    start = 0
    for index in range(1, len(items)):
        if not same(items[index - 1], items[index]):
            yield Span(items[start], start, index - start)
            start = index
    if items:
        yield Span(items[start], start, len(items) - start)


@dataclass(frozen=True)
class AnnotatedCommit:
    commit: CommitRecord
    authoring: ReviewRef | None
    backport: ReviewRef | None
    status: BackportStatus
    backportable: bool
    excluded: bool = False
    # Non-zero only on the first row of a span.
    authoring_span: int = 0
    backport_span: int = 0


@dataclass(frozen=True)
class Board:
    repo: RepoIdentity
    snapshot_version: int
    branch: str
    branches: tuple[str, ...]
    authors: list[str]
    author: str | None
    commits: list[AnnotatedCommit]
    review_commits: dict[int, list[str]]
    unowned: list[str]


def _same_review(left: ReviewRef | None, right: ReviewRef | None) -> bool:
    return left is not None and right is not None and left.number == right.number


def _same_authoring(prev: AnnotatedCommit, cur: AnnotatedCommit) -> bool:
    return _same_review(prev.authoring, cur.authoring)


def _same_backport(prev: AnnotatedCommit, cur: AnnotatedCommit) -> bool:
    if prev.backport is None and cur.backport is None:
        # Unbackported runs split wherever the authoring review changes.
        return _same_authoring(prev, cur)
    return _same_review(prev.backport, cur.backport)


def assign_spans(rows: list[AnnotatedCommit]) -> list[AnnotatedCommit]:
    authoring = {span.start: span.length for span in iter_spans(rows, _same_authoring)}
    backport = {span.start: span.length for span in iter_spans(rows, _same_backport)}
    return [
        replace(row, authoring_span=authoring.get(index, 0), backport_span=backport.get(index, 0))
        for index, row in enumerate(rows)
    ]


def resolve_branch(snapshot: RepositorySnapshot, requested: str | None, default: str | None = None) -> str:
    branch = requested or default
    if not branch:
        if not snapshot.release_branches:
            raise UnknownBranchError(f"no release branches for repo {snapshot.repo} available")
        return snapshot.release_branches[0]
    if branch not in snapshot.release_branches:
        raise UnknownBranchError(f"{branch!r} is not a release branch")
    return branch


def _annotate(snapshot: RepositorySnapshot, commit: CommitRecord, branch: str, excluded: bool) -> AnnotatedCommit:
    authoring = snapshot.mainline_review(commit.sha)
    backport = snapshot.backport_review(commit.fingerprint, branch)
    on_branch = snapshot.branch_commits[branch].contains_fingerprint(commit.fingerprint)

    if on_branch or (backport is not None and backport.merged):
        status = BackportStatus.MERGED
    elif backport is not None:
        status = BackportStatus.PENDING
    else:
        status = BackportStatus.NONE

    return AnnotatedCommit(
        commit=commit,
        authoring=authoring,
        backport=backport,
        status=status,
        backportable=backport is None,
        excluded=excluded,
    )


def reconcile(
    snapshot: RepositorySnapshot,
    branch: str,
    author: str | None = None,
    *,
    show_excluded: bool = False,
) -> Board:
    merge_base = snapshot.merge_bases.get(branch)
    if merge_base is None or branch not in snapshot.branch_commits:
        raise UnknownBranchError(f"unknown branch {branch!r}")

    scope = snapshot.mainline_commits.truncate_before(merge_base)
    authors = sorted({commit.author_email for commit in scope})
    if author:
        if author not in authors:
            raise UnknownAuthorError(f"{author!r} is not a recognized author")
        scope = [commit for commit in scope if commit.author_email == author]

    rows: list[AnnotatedCommit] = []
    for commit in scope:
        excluded = commit.fingerprint in snapshot.excluded
        if excluded and not show_excluded:
            continue
        rows.append(_annotate(snapshot, commit, branch, excluded))

    review_commits: dict[int, list[str]] = {}
    unowned: list[str] = []
    for row in rows:
        if row.authoring is None:
            unowned.append(row.commit.sha_hex)
        else:
            review_commits.setdefault(row.authoring.number, []).append(row.commit.sha_hex)

    return Board(
        repo=snapshot.repo,
        snapshot_version=snapshot.version,
        branch=branch,
        branches=snapshot.release_branches,
        authors=authors,
        author=author or None,
        commits=assign_spans(rows),
        review_commits=review_commits,
        unowned=unowned,
    )
