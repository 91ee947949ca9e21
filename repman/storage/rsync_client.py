"""
Rsync Client Module - mirrors a repository over ssh with rsync
"""

import logging
from typing import List
from urllib.parse import urlparse

from repman.storage.base import StorageBackend

logger = logging.getLogger(__name__)


def ssh_location(server: str) -> str:
    """rsync://user@host:port/path -> user@host:/path"""
    url = urlparse(server)
    host = url.hostname or ""
    if url.username:
        host = f"{url.username}@{host}"
    return f"{host}:{url.path}"


def ssh_options(server: str) -> List[str]:
    """Remote shell arguments for a server URL with an explicit ssh port"""
    port = urlparse(server).port
    if port is None:
        return []
    return ["-e", f"ssh -p {port}"]


class RsyncClient(StorageBackend):
    """Handles Rsync file transfers"""

    scheme = "rsync"
    tool = "rsync"

    def pull(self):
        self.local_dir.mkdir(parents=True, exist_ok=True)
        remote = ssh_location(self.server).rstrip("/") + "/"
        self._transfer(
            ["rsync", "-a", "-z", "--delete"] + ssh_options(self.server) + [remote, str(self.local_dir)],
            "pull",
        )

    def push(self):
        local = str(self.local_dir).rstrip("/") + "/"
        self._transfer(
            ["rsync", "-a", "-z", "--delete"] + ssh_options(self.server) + [local, ssh_location(self.server)],
            "push",
        )
