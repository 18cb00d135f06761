"""Print the reconciled backport board."""

from __future__ import annotations

import argparse
import json

from backboard.commands.common import build_registry, load_config
from backboard.models import BackportStatus
from backboard.reconcile import Board, reconcile, resolve_branch
from backboard.registry import RepositoryRegistry
from backboard.services.command_runtime import CommandRuntime
from backboard.webapp import board_payload

_STATUS_MARKS = {
    BackportStatus.MERGED: "✓",
    BackportStatus.PENDING: "◷",
    BackportStatus.NONE: " ",
}


def format_board(board: Board) -> list[str]:
    lines = [f"{board.repo} {board.branch} (snapshot v{board.snapshot_version})"]
    for row in board.commits:
        authoring = str(row.authoring) if row.authoring else "-"
        backport = str(row.backport) if row.backport else "-"
        flag = " [excluded]" if row.excluded else ""
        lines.append(
            f"{row.commit.short_sha} {_STATUS_MARKS[row.status]} {authoring:>8} {backport:>8} "
            f"{row.commit.author_short:<16} {row.commit.title}{flag}"
        )
    return lines


def run(args: argparse.Namespace, *, runtime: CommandRuntime) -> int:
    config = load_config(args)
    registry, storage = build_registry(config, runtime)
    state = registry.resolve(args.repo)
    RepositoryRegistry([state]).ensure_mirrors(clone_missing=False)

    snapshot = state.refresh(storage)
    branch = resolve_branch(snapshot, args.branch, config.server.default_branch)
    board = reconcile(snapshot, branch, args.author, show_excluded=args.show_excluded)

    if args.json:
        print(json.dumps(board_payload(board), indent=2))
        return 0
    for line in format_board(board):
        print(line)
    return 0
