"""SQLite storage backend for review records and exclusions."""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import UTC, datetime
from pathlib import Path

from backboard.models import ExclusionRecord, RepoIdentity, ReviewCommit, ReviewRecord, ReviewRef

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS repos (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  github_owner TEXT NOT NULL,
  github_repo TEXT NOT NULL,
  UNIQUE (github_owner, github_repo)
);

CREATE TABLE IF NOT EXISTS prs (
  id INTEGER PRIMARY KEY,
  repo_id INTEGER NOT NULL REFERENCES repos(id),
  number INTEGER NOT NULL,
  title TEXT NOT NULL,
  body TEXT NOT NULL,
  open INTEGER NOT NULL,
  merged_at TEXT,
  base_sha TEXT NOT NULL,
  base_branch TEXT NOT NULL,
  author_username TEXT NOT NULL,
  updated_at TEXT NOT NULL,
  UNIQUE (repo_id, number)
);

CREATE TABLE IF NOT EXISTS pr_commits (
  pr_id INTEGER NOT NULL,
  sha TEXT NOT NULL,
  title TEXT NOT NULL,
  body TEXT NOT NULL,
  message_id TEXT NOT NULL,
  author_email TEXT NOT NULL,
  ordering INTEGER NOT NULL,
  PRIMARY KEY (pr_id, sha),
  FOREIGN KEY (pr_id) REFERENCES prs(id) ON DELETE CASCADE
);

CREATE TABLE IF NOT EXISTS exclusions (
  message_id TEXT PRIMARY KEY,
  created_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_prs_repo_base ON prs(repo_id, base_branch);
CREATE INDEX IF NOT EXISTS idx_pr_commits_message ON pr_commits(message_id);
"""


def _ts(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).isoformat()


def _parse_ts(value: str | None) -> datetime | None:
    if value is None:
        return None
    return datetime.fromisoformat(value)


def _review_ref(repo: RepoIdentity, row: sqlite3.Row) -> ReviewRef:
    return ReviewRef(
        repo=repo,
        number=int(row["number"]),
        title=row["title"],
        open=bool(row["open"]),
        merged_at=_parse_ts(row["merged_at"]),
    )


class ReviewTransaction:
    """Read-modify-write access to one review record inside an open transaction."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    def is_review_up_to_date(self, review_id: int, updated_at: datetime) -> bool:
        return _is_up_to_date(self._conn, review_id, updated_at)

    def write_review(self, repo_id: int, record: ReviewRecord) -> None:
        """Upsert the review row and replace its commit list wholesale."""
        self._conn.execute(
            """
            INSERT INTO prs (
              id, repo_id, number, title, body, open, merged_at,
              base_sha, base_branch, author_username, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
              repo_id=excluded.repo_id,
              number=excluded.number,
              title=excluded.title,
              body=excluded.body,
              open=excluded.open,
              merged_at=excluded.merged_at,
              base_sha=excluded.base_sha,
              base_branch=excluded.base_branch,
              author_username=excluded.author_username,
              updated_at=excluded.updated_at
            """,
            (
                record.id,
                repo_id,
                record.number,
                record.title,
                record.body,
                1 if record.open else 0,
                _ts(record.merged_at) if record.merged_at else None,
                record.base_sha,
                record.base_branch,
                record.author,
                _ts(record.updated_at),
            ),
        )
        self._conn.execute("DELETE FROM pr_commits WHERE pr_id = ?", (record.id,))
        self._conn.executemany(
            """
            INSERT INTO pr_commits (pr_id, sha, title, body, message_id, author_email, ordering)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            [
                (record.id, c.sha, c.title, c.body, c.fingerprint, c.author_email, c.ordering)
                for c in record.commits
            ],
        )


def _is_up_to_date(conn: sqlite3.Connection, review_id: int, updated_at: datetime) -> bool:
    row = conn.execute("SELECT updated_at FROM prs WHERE id = ?", (review_id,)).fetchone()
    if row is None:
        return False
    return _parse_ts(row["updated_at"]) == updated_at


class SQLiteStorage:
    """SQLite-backed persistence of review records keyed by natural keys."""

    def __init__(self, db_path: str | Path) -> None:
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.init_schema()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path, isolation_level=None)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    @contextmanager
    def _transaction(self, mode: str = "DEFERRED") -> Iterator[sqlite3.Connection]:
        conn = self._connect()
        try:
            conn.execute(f"BEGIN {mode}")
            try:
                yield conn
            except BaseException:
                conn.execute("ROLLBACK")
                raise
            conn.execute("COMMIT")
        finally:
            conn.close()

    def init_schema(self) -> None:
        conn = self._connect()
        try:
            conn.execute("PRAGMA journal_mode = WAL")
            conn.execute("PRAGMA synchronous = NORMAL")
            conn.executescript(_SCHEMA)
            logger.debug("SQLite schema ready at %s", self.db_path)
        finally:
            conn.close()

    def ensure_repo(self, repo: RepoIdentity) -> int:
        with self._transaction() as conn:
            row = conn.execute(
                """
                INSERT INTO repos (github_owner, github_repo) VALUES (?, ?)
                ON CONFLICT(github_owner, github_repo) DO UPDATE SET github_owner=excluded.github_owner
                RETURNING id
                """,
                (repo.owner, repo.name),
            ).fetchone()
        return int(row["id"])

    def is_review_up_to_date(self, review_id: int, updated_at: datetime) -> bool:
        with self._transaction() as conn:
            return _is_up_to_date(conn, review_id, updated_at)

    @contextmanager
    def review_transaction(self) -> Iterator[ReviewTransaction]:
        # IMMEDIATE takes the write lock up front so the up-to-date check and the
        # write cannot interleave with another writer.
        with self._transaction("IMMEDIATE") as conn:
            yield ReviewTransaction(conn)

    def load_review(self, repo_id: int, number: int) -> ReviewRecord | None:
        with self._transaction() as conn:
            row = conn.execute("SELECT * FROM prs WHERE repo_id = ? AND number = ?", (repo_id, number)).fetchone()
            if row is None:
                return None
            commit_rows = conn.execute(
                "SELECT * FROM pr_commits WHERE pr_id = ? ORDER BY ordering",
                (row["id"],),
            ).fetchall()
        return ReviewRecord(
            id=row["id"],
            number=row["number"],
            title=row["title"],
            body=row["body"],
            open=bool(row["open"]),
            merged_at=_parse_ts(row["merged_at"]),
            base_branch=row["base_branch"],
            base_sha=row["base_sha"],
            author=row["author_username"],
            updated_at=_parse_ts(row["updated_at"]),
            commits=[
                ReviewCommit(
                    sha=c["sha"],
                    title=c["title"],
                    body=c["body"],
                    fingerprint=c["message_id"],
                    author_email=c["author_email"],
                    ordering=c["ordering"],
                )
                for c in commit_rows
            ],
        )

    def load_mainline_reviews(self, repo: RepoIdentity, repo_id: int, mainline: str) -> dict[bytes, ReviewRef]:
        """Merged mainline reviews keyed by the exact SHA of each constituent commit."""
        with self._transaction() as conn:
            rows = conn.execute(
                """
                SELECT prs.number, prs.title, prs.open, prs.merged_at, pr_commits.sha
                FROM pr_commits JOIN prs ON pr_commits.pr_id = prs.id
                WHERE prs.repo_id = ? AND prs.merged_at IS NOT NULL AND prs.base_branch = ?
                ORDER BY prs.merged_at, prs.number
                """,
                (repo_id, mainline),
            ).fetchall()
        # Later rows win, so a commit shared by several reviews maps to the latest merge.
        return {bytes.fromhex(row["sha"]): _review_ref(repo, row) for row in rows}

    def load_branch_reviews(self, repo: RepoIdentity, repo_id: int) -> dict[tuple[bytes, str], ReviewRef]:
        """Merged or open reviews keyed by (content fingerprint, base branch)."""
        with self._transaction() as conn:
            rows = conn.execute(
                """
                SELECT prs.number, prs.title, prs.open, prs.merged_at, prs.base_branch, pr_commits.message_id
                FROM pr_commits JOIN prs ON pr_commits.pr_id = prs.id
                WHERE prs.repo_id = ? AND (prs.merged_at IS NOT NULL OR prs.open = 1)
                ORDER BY prs.merged_at IS NOT NULL, prs.number
                """,
                (repo_id,),
            ).fetchall()
        return {(bytes.fromhex(row["message_id"]), row["base_branch"]): _review_ref(repo, row) for row in rows}

    def add_exclusion(self, fingerprint: str) -> bool:
        with self._transaction() as conn:
            cursor = conn.execute(
                "INSERT INTO exclusions (message_id, created_at) VALUES (?, ?) ON CONFLICT(message_id) DO NOTHING",
                (fingerprint.lower(), datetime.now(UTC).isoformat()),
            )
            return cursor.rowcount > 0

    def remove_exclusion(self, fingerprint: str) -> bool:
        with self._transaction() as conn:
            cursor = conn.execute("DELETE FROM exclusions WHERE message_id = ?", (fingerprint.lower(),))
            return cursor.rowcount > 0

    def list_exclusions(self) -> list[ExclusionRecord]:
        with self._transaction() as conn:
            rows = conn.execute("SELECT message_id, created_at FROM exclusions ORDER BY created_at").fetchall()
        return [ExclusionRecord(fingerprint=row["message_id"], created_at=_parse_ts(row["created_at"])) for row in rows]

    def load_excluded_fingerprints(self) -> frozenset[bytes]:
        return frozenset(bytes.fromhex(record.fingerprint) for record in self.list_exclusions())
