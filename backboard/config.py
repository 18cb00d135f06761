"""Configuration models and loading for backboard."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field

from backboard.models import RepoIdentity


class RepoConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    owner: str
    name: str

    def identity(self) -> RepoIdentity:
        return RepoIdentity(owner=self.owner, name=self.name)


class GitConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    git_bin: str = "git"
    mirror_root: str = "repos"
    mainline: str = "master"
    release_branch_pattern: str = "release-*"


class GithubConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    gh_bin: str = "gh"
    page_size: int = Field(default=100, ge=1, le=100)
    rate_limit_retries: int = 2
    secondary_backoff_base_seconds: float = 5.0
    rate_limit_max_sleep_seconds: float = 90.0


class SyncConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    enabled: bool = True
    interval_seconds: float = Field(default=60.0, gt=0)
    shutdown_timeout_seconds: float = Field(default=30.0, gt=0)


class StorageConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    backend: str = "sqlite"
    sqlite_path: str = ".backboard/backboard.db"


class ServerConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    host: str = "127.0.0.1"
    port: int = 8080
    default_branch: str | None = None


class BackboardConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")

    repos: list[RepoConfig] = Field(default_factory=lambda: [RepoConfig(owner="cockroachdb", name="cockroach")])
    git: GitConfig = Field(default_factory=GitConfig)
    github: GithubConfig = Field(default_factory=GithubConfig)
    sync: SyncConfig = Field(default_factory=SyncConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _load_yaml(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    data = yaml.safe_load(path.read_text())
    return data or {}


def load_effective_config(
    repo_path: str | Path,
    org_defaults: dict[str, Any] | None = None,
    system_defaults: dict[str, Any] | None = None,
    runtime_override: dict[str, Any] | None = None,
) -> BackboardConfig:
    """Load config with precedence runtime > repo .backboard.yaml > org > system."""
    repo_config = _load_yaml(Path(repo_path) / ".backboard.yaml")

    merged: dict[str, Any] = {}
    for layer in (system_defaults, org_defaults, repo_config, runtime_override):
        if layer:
            merged = _deep_merge(merged, layer)

    return BackboardConfig.model_validate(merged)
