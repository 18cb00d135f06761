"""Shared helpers for CLI command modules."""

from __future__ import annotations

import argparse
from pathlib import Path

import yaml

from backboard.config import BackboardConfig, load_effective_config
from backboard.registry import RepositoryRegistry
from backboard.services.command_runtime import CommandRuntime
from backboard.storage.base import StorageBackend


def load_yaml_dict(path: str | None) -> dict | None:
    if not path:
        return None
    data = yaml.safe_load(Path(path).read_text())
    if data is None:
        return None
    if not isinstance(data, dict):
        raise ValueError(f"YAML at {path} must decode to a mapping")
    return data


def load_config(args: argparse.Namespace) -> BackboardConfig:
    return load_effective_config(
        repo_path=args.config_dir,
        org_defaults=load_yaml_dict(args.org_config),
        system_defaults=load_yaml_dict(args.system_config),
        runtime_override=load_yaml_dict(args.runtime_override),
    )


def open_storage(config: BackboardConfig, runtime: CommandRuntime) -> StorageBackend:
    if config.storage.backend != "sqlite":
        raise ValueError(f"unsupported storage backend {config.storage.backend!r}; only sqlite is available")
    return runtime.storage_cls(config.storage.sqlite_path)


def build_registry(config: BackboardConfig, runtime: CommandRuntime) -> tuple[RepositoryRegistry, StorageBackend]:
    storage = open_storage(config, runtime)
    return RepositoryRegistry.from_config(config, storage, runtime), storage


def add_common_config_flags(cmd: argparse.ArgumentParser) -> None:
    cmd.add_argument("--config-dir", default=".", help="Directory holding .backboard.yaml")
    cmd.add_argument("--org-config", help="Optional org defaults YAML")
    cmd.add_argument("--system-config", help="Optional system defaults YAML")
    cmd.add_argument("--runtime-override", help="Optional runtime override YAML")
