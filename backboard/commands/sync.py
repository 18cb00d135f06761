"""One-shot sync command."""

from __future__ import annotations

import argparse

from backboard.commands.common import build_registry, load_config
from backboard.registry import RepositoryRegistry
from backboard.services.command_runtime import CommandRuntime
from backboard.sync import SyncController


def run(args: argparse.Namespace, *, runtime: CommandRuntime) -> int:
    config = load_config(args)
    registry, storage = build_registry(config, runtime)
    if args.repo:
        registry = RepositoryRegistry([registry.resolve(args.repo)])
    registry.ensure_mirrors(clone_missing=not args.no_clone)

    controller = SyncController(storage, page_size=config.github.page_size)
    for result in controller.sync_all(registry):
        print(
            f"{result.repo}: pages={result.pages} fetched={result.fetched} "
            f"written={result.written} skipped={result.skipped} snapshot=v{result.snapshot_version}"
        )
    return 0
