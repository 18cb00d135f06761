"""Typed command runtime dependency container."""

from __future__ import annotations

from dataclasses import dataclass

from backboard.services.interfaces import HistorySourceFactory, ReviewSourceFactory, StorageFactory


@dataclass(frozen=True)
class CommandRuntime:
    history_source_cls: HistorySourceFactory
    review_source_cls: ReviewSourceFactory
    storage_cls: StorageFactory
