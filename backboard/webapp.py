"""Read-only JSON API over published repository snapshots."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Query
from fastapi.responses import JSONResponse

from backboard.config import BackboardConfig
from backboard.errors import NoRepositoriesError, RequestError, SnapshotUnavailableError
from backboard.models import ReviewRef
from backboard.reconcile import AnnotatedCommit, Board, reconcile, resolve_branch
from backboard.registry import RepositoryRegistry

logger = logging.getLogger(__name__)


def _review_payload(review: ReviewRef | None) -> dict[str, Any] | None:
    if review is None:
        return None
    return {
        "number": review.number,
        "title": review.title,
        "url": review.url,
        "open": review.open,
        "merged_at": review.merged_at_display,
    }


def _commit_payload(row: AnnotatedCommit) -> dict[str, Any]:
    commit = row.commit
    return {
        "sha": commit.sha_hex,
        "short_sha": commit.short_sha,
        "title": commit.title,
        "author": commit.author_email,
        "author_short": commit.author_short,
        "commit_date": commit.commit_date.isoformat() if commit.commit_date else None,
        "authoring_review": _review_payload(row.authoring),
        "backport_review": _review_payload(row.backport),
        "status": row.status.value,
        "backportable": row.backportable,
        "excluded": row.excluded,
        "authoring_span": row.authoring_span,
        "backport_span": row.backport_span,
    }


def board_payload(board: Board) -> dict[str, Any]:
    return {
        "repo": board.repo.slug,
        "snapshot_version": board.snapshot_version,
        "branch": board.branch,
        "branches": list(board.branches),
        "authors": board.authors,
        "author": board.author,
        "commits": [_commit_payload(row) for row in board.commits],
        "review_commits": {str(number): shas for number, shas in board.review_commits.items()},
        "unowned": board.unowned,
    }


def _status_for(exc: RequestError) -> int:
    if isinstance(exc, (NoRepositoriesError, SnapshotUnavailableError)):
        return 503
    return 404


def create_app(
    config: BackboardConfig,
    registry: RepositoryRegistry,
    *,
    on_startup: Callable[[], None] | None = None,
    on_shutdown: Callable[[], None] | None = None,
) -> FastAPI:
    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        if on_startup is not None:
            on_startup()
        try:
            yield
        finally:
            if on_shutdown is not None:
                on_shutdown()

    app = FastAPI(title="backboard", lifespan=lifespan)

    @app.exception_handler(RequestError)
    async def request_error_handler(_, exc: RequestError) -> JSONResponse:
        logger.warning("request handler error: %s", exc)
        return JSONResponse(status_code=_status_for(exc), content={"detail": str(exc)})

    @app.get("/healthz")
    def healthz() -> dict[str, str]:
        return {"status": "ok"}

    @app.get("/api/repos")
    def list_repos() -> dict[str, Any]:
        repos = []
        for state in registry.repositories:
            snapshot = state.slot.current()
            repos.append(
                {
                    "id": state.repo_id,
                    "repo": state.identity.slug,
                    "release_branches": list(snapshot.release_branches) if snapshot else [],
                    "snapshot_version": snapshot.version if snapshot else None,
                }
            )
        return {"repos": repos}

    @app.get("/api/board")
    def board(
        repo: str | None = Query(default=None),
        branch: str | None = Query(default=None),
        author: str | None = Query(default=None),
        show_excluded: bool = Query(default=False),
    ) -> dict[str, Any]:
        # One reference per request: a concurrent publish cannot change what we read.
        snapshot = registry.snapshot(repo)
        target = resolve_branch(snapshot, branch, config.server.default_branch)
        return board_payload(reconcile(snapshot, target, author, show_excluded=show_excluded))

    @app.get("/api/board/{owner}/{name}")
    def board_for_repo(
        owner: str,
        name: str,
        branch: str | None = Query(default=None),
        author: str | None = Query(default=None),
        show_excluded: bool = Query(default=False),
    ) -> dict[str, Any]:
        return board(repo=f"{owner}/{name}", branch=branch, author=author, show_excluded=show_excluded)

    return app
