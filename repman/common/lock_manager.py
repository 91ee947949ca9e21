"""
Lock Manager - per-repository mutual exclusion for mutating commands

Locks are advisory ``flock`` locks on ``<cache>/locks/<repo>``. They are
released by the kernel if the process dies, so a stale lock file is harmless
and is never removed.
"""

import errno
import fcntl
import os
import logging
from contextlib import contextmanager
from typing import Iterator

from repman.errors import LockError
from repman.common.environment import RepmanPaths, ensure_dir

logger = logging.getLogger(__name__)


class RepoLock:
    """Held lock on one repository"""

    def __init__(self, repo_name: str, fd: int, path):
        self.repo_name = repo_name
        self.path = path
        self._fd = fd

    @property
    def held(self) -> bool:
        return self._fd is not None

    def release(self):
        if self._fd is None:
            return
        try:
            fcntl.flock(self._fd, fcntl.LOCK_UN)
        finally:
            os.close(self._fd)
            self._fd = None
        logger.info(f"🔓 LOCK_RELEASED repo={self.repo_name}")


class LockManager:
    def __init__(self, paths: RepmanPaths):
        self.paths = paths

    def try_lock(self, repo_name: str) -> RepoLock:
        """Take the lock or raise LockError right away"""
        path = self.paths.lock_file(repo_name)
        ensure_dir(path.parent)

        fd = os.open(str(path), os.O_RDWR | os.O_CREAT, 0o644)
        try:
            fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
        except OSError as e:
            holder = _read_holder(fd)
            os.close(fd)
            if e.errno in (errno.EAGAIN, errno.EACCES, errno.EWOULDBLOCK):
                raise LockError(
                    f"Repository '{repo_name}' is locked by another repman process"
                    + (f" (pid {holder})" if holder else "")
                )
            raise LockError(f"Cannot lock repository '{repo_name}': {e}")

        os.ftruncate(fd, 0)
        os.write(fd, f"{os.getpid()}\n".encode())
        logger.info(f"🔒 LOCK_ACQUIRED repo={repo_name} pid={os.getpid()}")
        return RepoLock(repo_name, fd, path)

    @contextmanager
    def acquire(self, repo_name: str) -> Iterator[RepoLock]:
        lock = self.try_lock(repo_name)
        try:
            yield lock
        finally:
            lock.release()


def _read_holder(fd: int) -> str:
    try:
        os.lseek(fd, 0, os.SEEK_SET)
        return os.read(fd, 32).decode(errors="replace").strip()
    except OSError:
        return ""
