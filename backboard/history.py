"""History source backed by a local git mirror."""

from __future__ import annotations

import logging
import re
import subprocess
from datetime import datetime
from pathlib import Path

from backboard.branches import filter_release_branches
from backboard.errors import CorruptHistoryError, HistoryCommandError
from backboard.fingerprint import parse_sha
from backboard.models import CommitRecord

logger = logging.getLogger(__name__)

# sha, subject, committer date (strict ISO 8601), author email, parents, body
COMMIT_FORMAT = "%H%x00%s%x00%cI%x00%aE%x00%P%x00%b%x1e"
_RECORD_SEP = "\x1e"
_FIELD_SEP = "\x00"
_FIELD_COUNT = 6
_CHERRY_PICK_RE = re.compile(r"^\(cherry picked from commit [0-9a-f]+\)$")


def _normalize_body(body: str) -> str:
    lines = [line for line in body.strip().splitlines() if not _CHERRY_PICK_RE.match(line.strip())]
    return "\n".join(lines).strip()


def _parse_commit_date(value: str) -> datetime:
    try:
        return datetime.fromisoformat(value.strip())
    except ValueError as exc:
        raise CorruptHistoryError(f"unparsable commit date {value!r}") from exc


def parse_log_output(output: str) -> list[CommitRecord]:
    """Parse ``git log --format=COMMIT_FORMAT`` output.

    Any malformed record fails the whole load: a silently dropped commit
    would make later backport matching wrong.
    """
    commits: list[CommitRecord] = []
    for raw in output.split(_RECORD_SEP):
        record = raw.lstrip("\n")
        if not record.strip():
            continue
        fields = record.split(_FIELD_SEP)
        if len(fields) != _FIELD_COUNT:
            raise CorruptHistoryError(f"expected {_FIELD_COUNT} fields in history record, got {len(fields)}")
        sha_text, title, date_text, author_email, parents, body = fields
        commits.append(
            CommitRecord(
                sha=parse_sha(sha_text),
                title=title,
                body=_normalize_body(body),
                author_email=author_email,
                commit_date=_parse_commit_date(date_text),
                merge=len(parents.split()) > 1,
            )
        )
    return commits


class GitHistorySource:
    def __init__(self, repo_path: str | Path, git_bin: str = "git") -> None:
        self.repo_path = Path(repo_path)
        self.git_bin = git_bin

    def _run(self, *args: str) -> str:
        cmd = [self.git_bin, "-C", str(self.repo_path), *args]
        proc = subprocess.run(cmd, text=True, capture_output=True, check=False)
        if proc.returncode != 0:
            raise HistoryCommandError(cmd, proc.stderr.strip())
        return proc.stdout

    def exists(self) -> bool:
        return self.repo_path.exists()

    def clone_mirror(self, url: str) -> None:
        logger.info("Cloning %s into %s", url, self.repo_path)
        self.repo_path.parent.mkdir(parents=True, exist_ok=True)
        cmd = [self.git_bin, "clone", "--mirror", url, str(self.repo_path)]
        proc = subprocess.run(cmd, text=True, capture_output=True, check=False)
        if proc.returncode != 0:
            raise HistoryCommandError(cmd, proc.stderr.strip())

    def fetch(self) -> None:
        self._run("fetch")

    def load_commits(self, *constraints: str) -> list[CommitRecord]:
        output = self._run("log", "--topo-order", f"--format=format:{COMMIT_FORMAT}", *constraints)
        commits = parse_log_output(output)
        logger.debug("Loaded %s commits for %s", len(commits), " ".join(constraints))
        return commits

    def merge_base(self, left: str, right: str) -> bytes | None:
        """Common ancestor of two refs, or None when their histories are unrelated."""
        cmd = [self.git_bin, "-C", str(self.repo_path), "merge-base", left, right]
        proc = subprocess.run(cmd, text=True, capture_output=True, check=False)
        # Exit status 1 with no output: no common ancestor.
        if proc.returncode == 1 and not proc.stdout.strip():
            return None
        if proc.returncode != 0:
            raise HistoryCommandError(cmd, proc.stderr.strip())
        return parse_sha(proc.stdout)

    def list_release_branches(self, pattern: str) -> list[str]:
        output = self._run("branch", "--list", pattern)
        return filter_release_branches(output.splitlines(), pattern)
