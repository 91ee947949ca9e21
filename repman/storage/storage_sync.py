"""
StorageSync - pulls and pushes repository state for the configured backend
"""

import shutil
import logging
from pathlib import Path
from typing import Collection, Optional

from repman.common.config_loader import Repository
from repman.common.environment import RepmanPaths
from repman.common.shell_executor import ShellExecutor
from repman.errors import ConfigError
from repman.storage.base import StorageBackend
from repman.storage.file_backend import FileBackend
from repman.storage.gs_client import GSClient
from repman.storage.rsync_client import RsyncClient
from repman.storage.s3_client import S3Client

logger = logging.getLogger(__name__)

BACKENDS = {
    FileBackend.scheme: FileBackend,
    RsyncClient.scheme: RsyncClient,
    S3Client.scheme: S3Client,
    GSClient.scheme: GSClient,
}


class StorageSync:
    def __init__(self, paths: RepmanPaths, shell_executor: Optional[ShellExecutor] = None):
        self.paths = paths
        self.shell_executor = shell_executor or ShellExecutor()

    def backend_for(self, repo: Repository, local_dir: Optional[Path] = None) -> StorageBackend:
        backend_cls = BACKENDS.get(repo.scheme)
        if backend_cls is None:
            raise ConfigError(f"Repository '{repo.name}': no storage backend for '{repo.scheme}'")
        return backend_cls(repo.server, local_dir or repo.local_dir(self.paths), self.shell_executor)

    def pull(self, repo: Repository, local_dir: Optional[Path] = None) -> Path:
        """Bring the local working copy up to date; returns its directory

        ``local_dir`` pulls into another directory instead of the shared cache.
        """
        target = local_dir or repo.local_dir(self.paths)
        self.backend_for(repo, target).pull()
        return target

    def push(self, repo: Repository, changed_paths: Optional[Collection] = None):
        """Publish local changes; an empty ``changed_paths`` means nothing to do"""
        if changed_paths is not None and len(changed_paths) == 0:
            logger.info(f"SYNC_PUSH_SKIPPED repo={repo.name} reason=no-changes")
            return
        self.backend_for(repo).push()

    def clear_cache(self, repo: Repository):
        if repo.is_local:
            logger.warning(f"⚠️ Repository '{repo.name}' is local; it has no cache to clear")
            return
        cache = self.paths.repo_cache_dir(repo.name)
        if cache.exists():
            shutil.rmtree(cache)
            logger.info(f"🗑️ Removed cache of '{repo.name}': {cache}")
        else:
            logger.info(f"ℹ️ No cache for '{repo.name}'")
