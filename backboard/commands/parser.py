"""CLI parser construction."""

from __future__ import annotations

import argparse

from backboard.commands.common import add_common_config_flags


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Track backports of mainline commits onto release branches")
    parser.add_argument("--log-level", default="INFO", help="Logging level (DEBUG, INFO, WARNING, ERROR)")

    sub = parser.add_subparsers(dest="command", required=True)

    sync = sub.add_parser("sync", help="Run one sync pass over every configured repository")
    sync.add_argument("--repo", help="Restrict the pass to one repository (owner/name)")
    sync.add_argument("--no-clone", action="store_true", help="Fail instead of cloning a missing mirror")
    add_common_config_flags(sync)

    serve = sub.add_parser("serve", help="Serve the board API with a background sync loop")
    serve.add_argument("--host", help="Bind host (defaults to server.host)")
    serve.add_argument("--port", type=int, help="Bind port (defaults to server.port)")
    serve.add_argument(
        "--sync",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Run the background sync loop (defaults to sync.enabled)",
    )
    add_common_config_flags(serve)

    board = sub.add_parser("board", help="Print the backport board from the store and local mirror")
    board.add_argument("--repo", help="Repository (owner/name or id); defaults to the first configured")
    board.add_argument("--branch", help="Release branch; defaults to server.default_branch or the newest")
    board.add_argument("--author", help="Only show commits by this author email")
    board.add_argument("--show-excluded", action="store_true", help="Keep excluded commits, flagged")
    board.add_argument("--json", action="store_true", help="Emit JSON instead of a text table")
    add_common_config_flags(board)

    exclude = sub.add_parser("exclude", help="Manage fingerprints ignored by reconciliation")
    exclude.add_argument("action", choices=["add", "remove", "list"])
    exclude.add_argument("fingerprint", nargs="?", help="40-character hex fingerprint (add/remove)")
    add_common_config_flags(exclude)

    return parser
