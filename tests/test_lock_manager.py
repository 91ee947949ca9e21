from __future__ import annotations

import pytest

from repman.common.environment import RepmanPaths
from repman.common.lock_manager import LockManager
from repman.errors import LockError


def test_second_lock_on_same_repo_fails_fast(paths: RepmanPaths) -> None:
    manager = LockManager(paths)
    with manager.acquire("main"):
        with pytest.raises(LockError, match="locked"):
            manager.try_lock("main")


def test_different_repos_lock_independently(paths: RepmanPaths) -> None:
    manager = LockManager(paths)
    with manager.acquire("one") as first:
        with manager.acquire("two") as second:
            assert first.held and second.held


def test_lock_released_after_exception(paths: RepmanPaths) -> None:
    manager = LockManager(paths)
    with pytest.raises(RuntimeError):
        with manager.acquire("main"):
            raise RuntimeError("boom")
    lock = manager.try_lock("main")
    assert lock.held
    lock.release()
    assert not lock.held


def test_lock_file_records_pid(paths: RepmanPaths) -> None:
    import os

    manager = LockManager(paths)
    with manager.acquire("main") as lock:
        assert lock.path.read_text().strip() == str(os.getpid())
    # the file stays; the kernel lock is what matters
    assert paths.lock_file("main").exists()
