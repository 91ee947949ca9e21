"""
Config Loader Module - Loads repository definitions and system settings

Repositories are defined in ``<config>/repos.yaml``::

    myrepo:
      Server: rsync://user@host/srv/repo/$repo/$arch
      DBName: myrepo        # optional, defaults to the repository name
      SignDB: true          # optional, defaults to false

``$arch``, ``$repo`` and ``$db`` in Server are substituted on load.
"""

import os
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional
from urllib.parse import urlparse

import yaml

from repman import config
from repman.errors import ConfigError
from repman.common.environment import RepmanPaths, system_arch

logger = logging.getLogger(__name__)

SUPPORTED_SCHEMES = ("file", "rsync", "s3", "gs")


@dataclass(frozen=True)
class Repository:
    """One configured repository; immutable for the whole run"""

    name: str
    server: str
    db_name: str
    sign_db: bool = False

    @property
    def scheme(self) -> str:
        return urlparse(self.server).scheme

    @property
    def is_local(self) -> bool:
        return self.scheme == "file"

    def local_dir(self, paths: RepmanPaths) -> Path:
        """Directory holding the DB and package files during a run"""
        if self.is_local:
            return Path(urlparse(self.server).path)
        return paths.repo_cache_dir(self.name)

    def db_path(self, paths: RepmanPaths) -> Path:
        return self.local_dir(paths) / f"{self.db_name}{config.DB_ARCHIVE_SUFFIX}"


def substitute_placeholders(server: str, repo_name: str, db_name: str, arch: str) -> str:
    return (server.replace("$arch", arch)
            .replace("$repo", repo_name)
            .replace("$db", db_name))


def parse_repository(name: str, data, arch: Optional[str] = None) -> Repository:
    """Validate one repos.yaml entry and build the Repository"""
    if not isinstance(data, dict):
        raise ConfigError(f"Repository '{name}': expected a mapping of settings")

    known = {config.REPO_KEY_SERVER, config.REPO_KEY_DB_NAME, config.REPO_KEY_SIGN_DB}
    for key in data:
        if key not in known:
            logger.warning(f"⚠️ Repository '{name}': unknown key '{key}' ignored")

    server = data.get(config.REPO_KEY_SERVER)
    if not isinstance(server, str) or not server.strip():
        raise ConfigError(f"Repository '{name}': '{config.REPO_KEY_SERVER}' must be a non-empty string")

    db_name = data.get(config.REPO_KEY_DB_NAME, name)
    if not isinstance(db_name, str) or not db_name.strip():
        raise ConfigError(f"Repository '{name}': '{config.REPO_KEY_DB_NAME}' must be a non-empty string")

    sign_db = data.get(config.REPO_KEY_SIGN_DB, False)
    if not isinstance(sign_db, bool):
        raise ConfigError(f"Repository '{name}': '{config.REPO_KEY_SIGN_DB}' must be true or false")

    server = substitute_placeholders(server.strip(), name, db_name, arch or system_arch())
    scheme = urlparse(server).scheme
    if scheme not in SUPPORTED_SCHEMES:
        raise ConfigError(
            f"Repository '{name}': unsupported server scheme '{scheme or server}' "
            f"(expected one of {', '.join(SUPPORTED_SCHEMES)})"
        )

    return Repository(name=name, server=server, db_name=db_name, sign_db=sign_db)


def _read_yaml(path: Path):
    try:
        with open(path, "r") as f:
            return yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Cannot parse {path}: {e}")
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}")


class ConfigLoader:
    """Loads repos.yaml and the system-wide settings file"""

    def __init__(self, paths: RepmanPaths, arch: Optional[str] = None):
        self.paths = paths
        self.arch = arch or system_arch()

    def load_repositories(self) -> Dict[str, Repository]:
        path = self.paths.repos_config
        if not path.is_file():
            raise ConfigError(f"Repository configuration not found: {path}")

        data = _read_yaml(path)
        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ConfigError(f"{path}: expected a mapping of repository names")

        repos = {}
        for name, entry in data.items():
            repos[str(name)] = parse_repository(str(name), entry, self.arch)
        logger.debug(f"REPOS_LOADED count={len(repos)} path={path}")
        return repos

    def get_repository(self, name: str) -> Repository:
        repos = self.load_repositories()
        if name not in repos:
            raise ConfigError(f"Repository '{name}' is not configured in {self.paths.repos_config}")
        return repos[name]

    @staticmethod
    def system_config_path() -> Path:
        return Path(os.environ.get("REPMAN_SYSTEM_CONFIG", config.SYSTEM_CONFIG_FILE))

    def vcs_suffixes(self) -> List[str]:
        """VCS suffixes from the system settings, or the built-in defaults"""
        path = self.system_config_path()
        if not path.is_file():
            return list(config.DEFAULT_VCS_SUFFIXES)

        data = _read_yaml(path) or {}
        if not isinstance(data, dict):
            raise ConfigError(f"{path}: expected a mapping")
        suffixes = data.get("vcs_suffixes", config.DEFAULT_VCS_SUFFIXES)
        if not isinstance(suffixes, list) or not all(isinstance(s, str) for s in suffixes):
            raise ConfigError(f"{path}: 'vcs_suffixes' must be a list of strings")
        logger.debug(f"VCS_SUFFIXES source={path} values={','.join(suffixes)}")
        return suffixes
