"""
Environment module - directory layout, architecture and per-run scratch space
"""

import os
import platform
import shutil
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from repman import config

logger = logging.getLogger(__name__)

# uname machine -> pacman architecture
ARCH_ALIASES = {
    "arm": "armv7h",
    "armv7l": "armv7h",
    "armv6l": "armv6h",
}


def system_arch() -> str:
    machine = platform.machine()
    return ARCH_ALIASES.get(machine, machine)


def _xdg_dir(env_name: str, fallback: str) -> Path:
    value = os.environ.get(env_name, "").strip()
    if value:
        base = Path(value)
    else:
        base = Path.home() / fallback
    return base / config.APP_DIR_NAME


def ensure_dir(path: Path) -> Path:
    path.mkdir(parents=True, exist_ok=True)
    return path


@dataclass(frozen=True)
class RepmanPaths:
    """Config and cache roots plus the derived sub-directories"""

    config_dir: Path
    cache_dir: Path

    @classmethod
    def from_environment(cls) -> "RepmanPaths":
        paths = cls(
            config_dir=_xdg_dir("XDG_CONFIG_HOME", ".config"),
            cache_dir=_xdg_dir("XDG_CACHE_HOME", ".cache"),
        )
        logger.debug(f"PATHS_RESOLVED config={paths.config_dir} cache={paths.cache_dir}")
        return paths

    @property
    def repos_config(self) -> Path:
        return self.config_dir / config.REPOS_CONFIG_FILE

    @property
    def locks_dir(self) -> Path:
        return self.cache_dir / config.LOCKS_SUBDIR

    @property
    def chroots_dir(self) -> Path:
        return self.cache_dir / config.CHROOTS_SUBDIR

    @property
    def repos_cache_dir(self) -> Path:
        return self.cache_dir / config.REPOS_SUBDIR

    def chroot_dir(self, repo_name: str) -> Path:
        return self.chroots_dir / repo_name

    def repo_cache_dir(self, repo_name: str) -> Path:
        return self.repos_cache_dir / repo_name

    def lock_file(self, repo_name: str) -> Path:
        return self.locks_dir / repo_name

    def tmp_dir(self, pid: Optional[int] = None) -> Path:
        return self.cache_dir / config.TMP_SUBDIR / str(pid if pid is not None else os.getpid())


class ScratchDir:
    """Per-process scratch directory <cache>/tmp/<pid>, removed on close()"""

    def __init__(self, paths: RepmanPaths):
        self.path = paths.tmp_dir()

    def create(self) -> "ScratchDir":
        if self.path.exists():
            # Left over from a crashed process that had the same pid
            shutil.rmtree(self.path)
        ensure_dir(self.path)
        logger.debug(f"SCRATCH_CREATED path={self.path}")
        return self

    @property
    def pkg_dir(self) -> Path:
        return ensure_dir(self.path / config.TMP_PKG_SUBDIR)

    @property
    def pkgbuild_dir(self) -> Path:
        return ensure_dir(self.path / config.TMP_PKGBUILD_SUBDIR)

    @property
    def listing_dir(self) -> Path:
        """Private copy of a remote repository for read-only commands"""
        return ensure_dir(self.path / config.TMP_LISTING_SUBDIR)

    def close(self):
        if self.path.exists():
            shutil.rmtree(self.path, ignore_errors=True)
            logger.debug(f"SCRATCH_REMOVED path={self.path}")
