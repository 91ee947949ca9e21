"""
S3 backend using s3cmd
"""

import logging

from repman.storage.base import StorageBackend

logger = logging.getLogger(__name__)


class S3Client(StorageBackend):
    scheme = "s3"
    tool = "s3cmd"

    def pull(self):
        self.local_dir.mkdir(parents=True, exist_ok=True)
        self._transfer(
            ["s3cmd", "sync", "--delete-removed",
             self.server.rstrip("/") + "/", str(self.local_dir).rstrip("/") + "/"],
            "pull",
        )

    def push(self):
        self._transfer(
            ["s3cmd", "sync", "--follow-symlinks", "--delete-removed", "--acl-public",
             str(self.local_dir).rstrip("/") + "/", self.server.rstrip("/") + "/"],
            "push",
        )
