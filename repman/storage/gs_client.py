"""
Google Cloud Storage backend using gsutil
"""

import logging

from repman.storage.base import StorageBackend

logger = logging.getLogger(__name__)


class GSClient(StorageBackend):
    scheme = "gs"
    tool = "gsutil"

    def pull(self):
        self.local_dir.mkdir(parents=True, exist_ok=True)
        self._transfer(
            ["gsutil", "-m", "rsync", "-r", "-d", self.server.rstrip("/"), str(self.local_dir)],
            "pull",
        )

    def push(self):
        self._transfer(
            ["gsutil", "-m", "rsync", "-r", "-d", str(self.local_dir), self.server.rstrip("/")],
            "push",
        )
