"""
Config Resolver - picks the pacman.conf / makepkg.conf / adjustchroot that
applies to a repository and reads the few makepkg.conf values repman needs
"""

import enum
import os
import re
import logging
from pathlib import Path
from typing import List, Optional

from repman import config
from repman.errors import ConfigError

logger = logging.getLogger(__name__)


class ConfigKind(enum.Enum):
    PACMAN_CONF = "pacman"
    MAKEPKG_CONF = "makepkg"
    ADJUST_CHROOT = "adjustchroot"


def candidates(config_dir: Path, repo_name: str, kind: ConfigKind) -> List[Path]:
    """Ordered lookup list, most specific first"""
    if kind is ConfigKind.ADJUST_CHROOT:
        return [
            config_dir / f"adjustchroot-{repo_name}",
            config_dir / "adjustchroot",
        ]
    system = config.SYSTEM_PACMAN_CONF if kind is ConfigKind.PACMAN_CONF else config.SYSTEM_MAKEPKG_CONF
    return [
        config_dir / f"{kind.value}-{repo_name}.conf",
        config_dir / f"{kind.value}.conf",
        Path(system),
    ]


def resolve(config_dir: Path, repo_name: str, kind: ConfigKind) -> Optional[Path]:
    """First existing candidate; None only for ADJUST_CHROOT"""
    for path in candidates(config_dir, repo_name, kind):
        if path.is_file():
            logger.debug(f"CONFIG_RESOLVED kind={kind.value} repo={repo_name} path={path}")
            return path
    if kind is ConfigKind.ADJUST_CHROOT:
        return None
    raise ConfigError(f"No {kind.value}.conf found for repository '{repo_name}'")


_ASSIGN_RE = re.compile(r"^\s*([A-Za-z_][A-Za-z0-9_]*)=(.*)$")


def _strip_value(raw: str) -> str:
    value = raw.split(" #", 1)[0].strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in "'\"":
        value = value[1:-1]
    return value


def read_makepkg_var(makepkg_conf: Path, name: str) -> Optional[str]:
    """Last assignment of ``name`` in a makepkg.conf (shell syntax, no expansion)"""
    value = None
    with open(makepkg_conf, "r", errors="replace") as f:
        for line in f:
            match = _ASSIGN_RE.match(line)
            if match and match.group(1) == name:
                value = _strip_value(match.group(2))
    return value


def pkgext(makepkg_conf: Path) -> str:
    return read_makepkg_var(makepkg_conf, "PKGEXT") or config.DEFAULT_PKGEXT


def distcc_enabled(makepkg_conf: Path) -> bool:
    """True if BUILDENV contains distcc without the ! prefix"""
    buildenv = read_makepkg_var(makepkg_conf, "BUILDENV")
    if not buildenv:
        return False
    return "distcc" in buildenv.strip("()").split()


def gpg_key(makepkg_conf: Optional[Path]) -> Optional[str]:
    """Signing key: GPGKEY from the environment, else from makepkg.conf"""
    key = os.environ.get("GPGKEY", "").strip()
    if key:
        return key
    if makepkg_conf is not None and makepkg_conf.is_file():
        key = read_makepkg_var(makepkg_conf, "GPGKEY")
        if key:
            return key
    return None
