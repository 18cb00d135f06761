"""Connector interfaces for review-record providers."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from backboard.connectors.github_gh import PullPage


class ReviewSource(Protocol):
    def fetch_updated_page(self, *, page: int, per_page: int = 100) -> PullPage: ...
