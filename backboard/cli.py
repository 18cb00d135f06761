"""CLI entrypoint for backboard."""

from __future__ import annotations

import logging

from backboard.commands import board, exclude, serve, sync
from backboard.commands.parser import build_parser
from backboard.connectors.github_gh import GithubGhReviewSource
from backboard.errors import RequestError
from backboard.history import GitHistorySource
from backboard.logging_utils import configure_logging
from backboard.services.command_runtime import CommandRuntime
from backboard.storage import SQLiteStorage

logger = logging.getLogger(__name__)

COMMANDS = {
    "sync": sync.run,
    "serve": serve.run,
    "board": board.run,
    "exclude": exclude.run,
}


def default_runtime() -> CommandRuntime:
    return CommandRuntime(
        history_source_cls=GitHistorySource,
        review_source_cls=GithubGhReviewSource,
        storage_cls=SQLiteStorage,
    )


def main(argv: list[str] | None = None, *, runtime: CommandRuntime | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.log_level)

    handler = COMMANDS.get(args.command)
    if handler is None:
        parser.print_help()
        return 1
    try:
        return handler(args, runtime=runtime or default_runtime())
    except RequestError as exc:
        logger.error("%s", exc)
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
