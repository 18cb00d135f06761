"""Manage excluded commit fingerprints."""

from __future__ import annotations

import argparse

from backboard.commands.common import load_config, open_storage
from backboard.errors import CorruptHistoryError, InvalidFingerprintError
from backboard.fingerprint import parse_sha, sha_hex
from backboard.services.command_runtime import CommandRuntime


def run(args: argparse.Namespace, *, runtime: CommandRuntime) -> int:
    storage = open_storage(load_config(args), runtime)

    if args.action == "list":
        for record in storage.list_exclusions():
            print(f"{record.fingerprint} {record.created_at.isoformat()}")
        return 0

    if not args.fingerprint:
        raise InvalidFingerprintError(f"exclude {args.action} requires a fingerprint")
    # Fingerprints are SHA-1 digests, so they share the SHA validation.
    try:
        fingerprint = sha_hex(parse_sha(args.fingerprint))
    except CorruptHistoryError as exc:
        raise InvalidFingerprintError(f"invalid fingerprint {args.fingerprint!r}") from exc
    if args.action == "add":
        changed = storage.add_exclusion(fingerprint)
        print(f"{'added' if changed else 'already excluded'}: {fingerprint}")
    else:
        changed = storage.remove_exclusion(fingerprint)
        print(f"{'removed' if changed else 'not excluded'}: {fingerprint}")
    return 0
