import threading
from pathlib import Path

from helpers import FakeHistory, make_commit

from backboard.models import RepoIdentity
from backboard.snapshot import SnapshotSlot, build_snapshot
from backboard.storage import SQLiteStorage

REPO = RepoIdentity(owner="acme", name="widgets")


def _history() -> FakeHistory:
    history = FakeHistory()
    history.branches = ["release-2.0", "release-1.0"]
    history.logs[("master",)] = [make_commit(3), make_commit(2), make_commit(1)]
    history.logs[("release-2.0", "^master")] = [make_commit(12)]
    history.logs[("release-1.0", "^master")] = [make_commit(11)]
    history.merge_bases[("master", "release-2.0")] = make_commit(2).sha
    history.merge_bases[("master", "release-1.0")] = make_commit(1).sha
    return history


def _build(storage: SQLiteStorage, version: int, history: FakeHistory | None = None):
    return build_snapshot(
        repo=REPO,
        repo_id=storage.ensure_repo(REPO),
        version=version,
        history=history or _history(),
        storage=storage,
    )


def test_build_snapshot_loads_every_release_branch(tmp_path: Path) -> None:
    storage = SQLiteStorage(tmp_path / "backboard.db")
    storage.add_exclusion(make_commit(3).fingerprint.hex())

    snapshot = _build(storage, 1)

    assert snapshot.release_branches == ("release-2.0", "release-1.0")
    assert len(snapshot.mainline_commits) == 3
    assert snapshot.mainline_commits.frozen
    assert snapshot.branch_commits["release-1.0"].contains_sha(make_commit(11).sha)
    assert snapshot.merge_bases["release-2.0"] == make_commit(2).sha
    assert snapshot.excluded == frozenset({make_commit(3).fingerprint})
    assert snapshot.mainline_review(make_commit(3).sha) is None


def test_publish_swaps_and_rejects_stale_versions(tmp_path: Path) -> None:
    storage = SQLiteStorage(tmp_path / "backboard.db")
    slot = SnapshotSlot()
    assert slot.current() is None

    first = _build(storage, slot.next_version())
    second = _build(storage, slot.next_version())

    assert slot.publish(second)
    assert not slot.publish(first)
    assert slot.current() is second


def test_held_reference_survives_publication(tmp_path: Path) -> None:
    storage = SQLiteStorage(tmp_path / "backboard.db")
    slot = SnapshotSlot()
    slot.publish(_build(storage, slot.next_version()))
    held = slot.current()

    history = _history()
    history.branches = ["release-3.0"]
    history.logs[("release-3.0", "^master")] = []
    history.merge_bases[("master", "release-3.0")] = make_commit(3).sha
    slot.publish(_build(storage, slot.next_version(), history))

    assert held.version == 1
    assert held.release_branches == ("release-2.0", "release-1.0")
    assert slot.current().release_branches == ("release-3.0",)


def test_readers_see_whole_snapshots_during_publication(tmp_path: Path) -> None:
    storage = SQLiteStorage(tmp_path / "backboard.db")
    slot = SnapshotSlot()
    snapshots = [_build(storage, version) for version in range(1, 21)]
    slot.publish(snapshots[0])
    errors: list[str] = []
    done = threading.Event()

    def reader() -> None:
        while not done.is_set():
            current = slot.current()
            if current not in snapshots:
                errors.append("unexpected snapshot")

    threads = [threading.Thread(target=reader) for _ in range(4)]
    for thread in threads:
        thread.start()
    for snapshot in snapshots[1:]:
        slot.publish(snapshot)
    done.set()
    for thread in threads:
        thread.join()

    assert errors == []
    assert slot.current().version == 20


def test_branch_without_merge_base_is_listed_but_unanchored(tmp_path: Path) -> None:
    storage = SQLiteStorage(tmp_path / "backboard.db")
    history = _history()
    history.branches.append("release-0.9")
    history.logs[("release-0.9", "^master")] = [make_commit(9)]

    snapshot = _build(storage, 1, history)

    assert snapshot.release_branches == ("release-2.0", "release-1.0", "release-0.9")
    assert snapshot.branch_commits["release-0.9"].contains_sha(make_commit(9).sha)
    assert "release-0.9" not in snapshot.merge_bases
    assert snapshot.merge_bases["release-1.0"] == make_commit(1).sha
