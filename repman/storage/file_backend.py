"""
Local directory backend: the configured directory is the repository itself
"""

import logging

from repman.storage.base import StorageBackend

logger = logging.getLogger(__name__)


class FileBackend(StorageBackend):
    scheme = "file"

    def pull(self):
        self.local_dir.mkdir(parents=True, exist_ok=True)
        logger.debug(f"SYNC_SKIPPED backend=file dir={self.local_dir}")

    def push(self):
        logger.debug(f"SYNC_SKIPPED backend=file dir={self.local_dir}")
