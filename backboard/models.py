"""Domain models for commits, review records and repositories."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from functools import cached_property

from pydantic import BaseModel, ConfigDict, Field

from backboard.fingerprint import commit_fingerprint, sha_hex, short_sha


class BackportStatus(str, Enum):
    MERGED = "merged"
    PENDING = "pending"
    NONE = "none"


@dataclass(frozen=True)
class RepoIdentity:
    owner: str
    name: str

    @property
    def slug(self) -> str:
        return f"{self.owner}/{self.name}"

    @property
    def clone_url(self) -> str:
        return f"https://github.com/{self.owner}/{self.name}.git"

    def __str__(self) -> str:
        return self.slug


@dataclass(frozen=True)
class CommitRecord:
    sha: bytes
    title: str
    body: str = ""
    author_email: str = ""
    commit_date: datetime | None = None
    merge: bool = False

    @cached_property
    def fingerprint(self) -> bytes:
        return commit_fingerprint(self.title, self.body)

    @property
    def sha_hex(self) -> str:
        return sha_hex(self.sha)

    @property
    def short_sha(self) -> str:
        return short_sha(self.sha)

    @property
    def author_short(self) -> str:
        return self.author_email.split("@")[0]


@dataclass(frozen=True)
class ReviewRef:
    """Read-only view of a stored review record as seen by reconciliation."""

    repo: RepoIdentity
    number: int
    title: str = ""
    open: bool = False
    merged_at: datetime | None = None

    @property
    def merged(self) -> bool:
        return self.merged_at is not None

    @property
    def url(self) -> str:
        return f"https://github.com/{self.repo.owner}/{self.repo.name}/pull/{self.number}"

    @property
    def merged_at_display(self) -> str:
        if self.merged_at is None:
            return "(unknown)"
        return self.merged_at.strftime("%Y-%m-%d %H:%M:%S")

    def __str__(self) -> str:
        return f"#{self.number}"


class ReviewCommit(BaseModel):
    model_config = ConfigDict(extra="forbid")

    sha: str
    title: str
    body: str = ""
    fingerprint: str
    author_email: str = ""
    ordering: int

    @classmethod
    def from_commit(cls, commit: CommitRecord, ordering: int) -> ReviewCommit:
        return cls(
            sha=commit.sha_hex,
            title=commit.title,
            body=commit.body,
            fingerprint=sha_hex(commit.fingerprint),
            author_email=commit.author_email,
            ordering=ordering,
        )


class ReviewRecord(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: int
    number: int
    title: str
    body: str = ""
    open: bool = False
    merged_at: datetime | None = None
    base_branch: str
    base_sha: str
    author: str
    updated_at: datetime
    commits: list[ReviewCommit] = Field(default_factory=list)


class ExclusionRecord(BaseModel):
    model_config = ConfigDict(extra="forbid")

    fingerprint: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
