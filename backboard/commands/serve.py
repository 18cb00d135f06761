"""Serve the board API command."""

from __future__ import annotations

import argparse
import logging
import threading

from backboard.commands.common import build_registry, load_config
from backboard.services.command_runtime import CommandRuntime
from backboard.sync import SyncController

logger = logging.getLogger(__name__)


def run(args: argparse.Namespace, *, runtime: CommandRuntime) -> int:
    config = load_config(args)

    try:
        import uvicorn
    except ImportError as exc:  # pragma: no cover - dependency/runtime
        raise RuntimeError("Missing server dependencies. Install with: pip install 'backboard[server]'") from exc

    from backboard.webapp import create_app

    registry, storage = build_registry(config, runtime)
    registry.bootstrap(storage)

    run_sync = config.sync.enabled if args.sync is None else args.sync
    controller = SyncController(storage, page_size=config.github.page_size)
    background: tuple[threading.Thread, threading.Event] | None = None

    def on_startup() -> None:
        nonlocal background
        if run_sync:
            background = controller.start_background(registry, config.sync.interval_seconds)

    def on_shutdown() -> None:
        if background is not None:
            controller.stop_background(*background, config.sync.shutdown_timeout_seconds)

    host = args.host or config.server.host
    port = args.port or config.server.port
    logger.info("Starting board on http://%s:%s (repos=%s, sync=%s)", host, port, len(registry.repositories), run_sync)
    app = create_app(config, registry, on_startup=on_startup, on_shutdown=on_shutdown)
    uvicorn.run(app, host=host, port=port, log_level=args.log_level.lower())
    return 0
