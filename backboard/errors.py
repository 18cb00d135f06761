"""Exception hierarchy shared by the sync, reconciliation and API layers."""

from __future__ import annotations

from datetime import datetime


class BackboardError(Exception):
    """Base class for all backboard failures."""


class CorruptHistoryError(BackboardError, ValueError):
    """History output that cannot be trusted (bad SHA, bad timestamp, bad field count)."""


class HistoryCommandError(BackboardError, RuntimeError):
    def __init__(self, cmd: list[str], stderr: str) -> None:
        super().__init__(f"git failed: {' '.join(cmd)}\n{stderr}")
        self.cmd = cmd
        self.stderr = stderr


class GithubApiError(BackboardError, RuntimeError):
    pass


class GithubRateLimitError(GithubApiError):
    def __init__(
        self,
        message: str,
        *,
        reset_at: datetime | None = None,
        retry_after_seconds: float | None = None,
    ) -> None:
        super().__init__(message)
        self.reset_at = reset_at
        self.retry_after_seconds = retry_after_seconds


class RequestError(BackboardError, ValueError):
    """Caller-facing validation failure; never fatal to the process."""


class NoRepositoriesError(RequestError):
    pass


class UnknownRepositoryError(RequestError):
    pass


class UnknownBranchError(RequestError):
    pass


class UnknownAuthorError(RequestError):
    pass


class SnapshotUnavailableError(RequestError):
    """The repository is configured but nothing has been published for it yet."""


class InvalidFingerprintError(RequestError):
    pass
