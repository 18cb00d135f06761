import logging
import threading
import time
from pathlib import Path

import pytest
from helpers import FakeHistory, FakeReviewSource, make_commit, make_pull

from backboard.errors import HistoryCommandError
from backboard.models import RepoIdentity
from backboard.registry import RepositoryRegistry, RepositoryState
from backboard.storage import SQLiteStorage
from backboard.storage.sqlite import ReviewTransaction
from backboard.sync import SyncController, review_record_from_pull

BASE_SHA = "ab" * 20


def _head(number: int) -> tuple[str, str]:
    return (f"refs/pull/{number}/head", f"^{BASE_SHA}")


@pytest.fixture
def storage(tmp_path: Path) -> SQLiteStorage:
    return SQLiteStorage(tmp_path / "backboard.db")


@pytest.fixture
def state(storage: SQLiteStorage, fake_history: FakeHistory, fake_review_source: FakeReviewSource) -> RepositoryState:
    identity = RepoIdentity(owner="acme", name="widgets")
    for number in (1, 2, 3):
        fake_history.logs[_head(number)] = [make_commit(number * 10), make_commit(number * 10 + 1)]
    fake_review_source.pages = [
        [make_pull(1003, 3, updated_minutes=30), make_pull(1002, 2, updated_minutes=20)],
        [make_pull(1001, 1, updated_minutes=10)],
    ]
    return RepositoryState(
        identity=identity,
        repo_id=storage.ensure_repo(identity),
        history=fake_history,
        review_source=fake_review_source,
    )


@pytest.fixture
def write_counter(monkeypatch) -> list[int]:
    written: list[int] = []
    original = ReviewTransaction.write_review

    def counting(self, repo_id, record):
        written.append(record.number)
        return original(self, repo_id, record)

    monkeypatch.setattr(ReviewTransaction, "write_review", counting)
    return written


def _pull_loads(history: FakeHistory) -> list[str]:
    return [call[0] for call in history.load_calls if call[0].startswith("refs/pull/")]


def test_review_record_from_pull_keeps_commit_order() -> None:
    pull = make_pull(1001, 1, state="open", merged=False)
    record = review_record_from_pull(pull, [make_commit(2), make_commit(1)])

    assert record.open
    assert record.merged_at is None
    assert record.base_branch == "master"
    assert record.author == "dev1"
    assert [c.ordering for c in record.commits] == [0, 1]
    assert record.commits[0].sha == make_commit(2).sha_hex


def test_first_pass_writes_everything_oldest_first(
    storage: SQLiteStorage, state: RepositoryState, write_counter: list[int]
) -> None:
    result = SyncController(storage).sync_repository(state)

    assert result.pages == 2
    assert result.fetched == 3
    assert result.written == 3
    assert write_counter == [1, 2, 3]
    assert _pull_loads(state.history) == ["refs/pull/1/head", "refs/pull/2/head", "refs/pull/3/head"]
    assert state.history.fetches == 1
    assert state.slot.current() is not None
    assert result.snapshot_version == state.slot.current().version

    stored = storage.load_review(state.repo_id, 2)
    assert stored is not None
    assert [c.sha for c in stored.commits] == [make_commit(20).sha_hex, make_commit(21).sha_hex]


def test_unchanged_second_pass_stops_after_first_page_and_writes_nothing(
    storage: SQLiteStorage, state: RepositoryState, fake_review_source: FakeReviewSource, write_counter: list[int]
) -> None:
    controller = SyncController(storage)
    controller.sync_repository(state)
    fake_review_source.requested.clear()
    write_counter.clear()

    result = controller.sync_repository(state)

    assert fake_review_source.requested == [1]
    assert result.pages == 1
    assert result.written == 0
    assert result.skipped == 2
    assert write_counter == []
    assert result.snapshot_version == 2


def test_only_the_updated_review_is_rewritten(
    storage: SQLiteStorage, state: RepositoryState, fake_review_source: FakeReviewSource, write_counter: list[int]
) -> None:
    controller = SyncController(storage)
    controller.sync_repository(state)
    write_counter.clear()
    fake_review_source.pages = [
        [make_pull(1002, 2, updated_minutes=40), make_pull(1003, 3, updated_minutes=30)],
        [make_pull(1001, 1, updated_minutes=10)],
    ]
    state.history.logs[_head(2)] = [make_commit(99)]

    result = controller.sync_repository(state)

    assert write_counter == [2]
    assert result.written == 1
    stored = storage.load_review(state.repo_id, 2)
    assert [c.sha for c in stored.commits] == [make_commit(99).sha_hex]


def test_failure_mid_pass_keeps_earlier_writes_and_resumes(
    storage: SQLiteStorage, state: RepositoryState, write_counter: list[int]
) -> None:
    controller = SyncController(storage)
    state.history.fail_on.add(_head(2))

    with pytest.raises(HistoryCommandError):
        controller.sync_repository(state)

    assert state.slot.current() is None
    assert storage.load_review(state.repo_id, 1) is not None
    assert storage.load_review(state.repo_id, 2) is None
    assert storage.load_review(state.repo_id, 3) is None

    state.history.fail_on.clear()
    write_counter.clear()
    result = controller.sync_repository(state)

    assert write_counter == [2, 3]
    assert result.written == 2
    assert state.slot.current().version == result.snapshot_version


def test_sync_pull_is_idempotent(storage: SQLiteStorage, state: RepositoryState) -> None:
    controller = SyncController(storage)
    pull = make_pull(1001, 1, updated_minutes=10)

    assert controller.sync_pull(state, pull)
    assert not controller.sync_pull(state, pull)


def test_sync_all_covers_every_repository(storage: SQLiteStorage, state: RepositoryState) -> None:
    results = SyncController(storage).sync_all(RepositoryRegistry([state]))

    assert [r.repo for r in results] == ["acme/widgets"]


def test_run_forever_logs_failures_and_keeps_going(storage: SQLiteStorage, caplog) -> None:
    stop = threading.Event()
    calls: list[int] = []

    class FailingController(SyncController):
        def sync_all(self, registry):
            calls.append(1)
            if len(calls) == 2:
                stop.set()
            raise RuntimeError("gh unavailable")

    caplog.set_level(logging.ERROR, logger="backboard.sync")
    FailingController(storage).run_forever(RepositoryRegistry([]), stop, 0)

    assert len(calls) == 2
    assert "Sync pass failed" in caplog.text


def test_stop_background_waits_for_running_pass(storage: SQLiteStorage) -> None:
    started = threading.Event()
    finished: list[bool] = []

    class SlowController(SyncController):
        def sync_all(self, registry):
            started.set()
            time.sleep(0.2)
            finished.append(True)
            return []

    controller = SlowController(storage)
    thread, stop = controller.start_background(RepositoryRegistry([]), 60)
    assert started.wait(5)

    assert controller.stop_background(thread, stop, 5)
    assert finished == [True]
    assert not thread.is_alive()


def test_stop_background_reports_a_stuck_pass(storage: SQLiteStorage, caplog) -> None:
    release = threading.Event()
    started = threading.Event()

    class StuckController(SyncController):
        def sync_all(self, registry):
            started.set()
            release.wait(5)
            return []

    controller = StuckController(storage)
    thread, stop = controller.start_background(RepositoryRegistry([]), 60)
    assert started.wait(5)

    assert not controller.stop_background(thread, stop, 0.05)
    assert "still running" in caplog.text
    release.set()
    thread.join(5)
