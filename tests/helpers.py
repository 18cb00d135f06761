"""Fake collaborators and record builders shared by the test modules."""

from datetime import UTC, datetime, timedelta

from backboard.connectors.github_gh import GithubPull, PullPage
from backboard.errors import HistoryCommandError
from backboard.models import CommitRecord

BASE_TIME = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)


def sha_of(seed: int) -> bytes:
    return bytes([seed % 256]) * 20


def make_commit(
    seed: int,
    title: str | None = None,
    body: str = "",
    author: str = "alice@example.com",
    merge: bool = False,
) -> CommitRecord:
    return CommitRecord(
        sha=sha_of(seed),
        title=title if title is not None else f"commit {seed}",
        body=body,
        author_email=author,
        commit_date=BASE_TIME + timedelta(minutes=seed),
        merge=merge,
    )


def make_pull(
    id: int,
    number: int,
    *,
    updated_minutes: int = 0,
    base_ref: str = "master",
    base_sha: str = "ab" * 20,
    state: str = "closed",
    merged: bool = True,
    title: str | None = None,
) -> GithubPull:
    updated_at = BASE_TIME + timedelta(minutes=updated_minutes)
    return GithubPull.model_validate(
        {
            "id": id,
            "number": number,
            "title": title or f"PR {number}",
            "body": f"body of {number}",
            "user": {"login": f"dev{number}"},
            "state": state,
            "merged_at": updated_at.isoformat() if merged else None,
            "base": {"ref": base_ref, "sha": base_sha},
            "head": {"ref": f"feature/{number}", "sha": "cd" * 20},
            "updated_at": updated_at.isoformat(),
        }
    )


class FakeHistory:
    def __init__(self, repo_path=None, git_bin: str = "git") -> None:
        self.repo_path = repo_path
        self.git_bin = git_bin
        self.logs: dict[tuple[str, ...], list[CommitRecord]] = {}
        self.merge_bases: dict[tuple[str, str], bytes] = {}
        self.branches: list[str] = []
        self.present = True
        self.cloned: list[str] = []
        self.fetches = 0
        self.load_calls: list[tuple[str, ...]] = []
        self.fail_on: set[tuple[str, ...]] = set()

    def exists(self) -> bool:
        return self.present

    def clone_mirror(self, url: str) -> None:
        self.cloned.append(url)
        self.present = True

    def fetch(self) -> None:
        self.fetches += 1

    def load_commits(self, *constraints: str) -> list[CommitRecord]:
        self.load_calls.append(constraints)
        if constraints in self.fail_on:
            raise HistoryCommandError(["git", "log", *constraints], "fatal: bad revision")
        return list(self.logs.get(constraints, []))

    def merge_base(self, left: str, right: str) -> bytes | None:
        return self.merge_bases.get((left, right))

    def list_release_branches(self, pattern: str) -> list[str]:
        return list(self.branches)


class FakeReviewSource:
    def __init__(self, repo: str = "acme/widgets", gh_bin: str = "gh", **_: object) -> None:
        self.repo = repo
        self.pages: list[list[GithubPull]] = []
        self.requested: list[int] = []

    def fetch_updated_page(self, *, page: int, per_page: int = 100) -> PullPage:
        self.requested.append(page)
        pulls = self.pages[page - 1] if page <= len(self.pages) else []
        return PullPage(pulls=list(pulls), has_next=page < len(self.pages))
