"""
Storage backend base class
"""

import logging
from pathlib import Path

from repman.errors import SyncError
from repman.common.shell_executor import ShellExecutor, tool_output

logger = logging.getLogger(__name__)


class StorageBackend:
    """Moves a repository between its remote location and ``local_dir``"""

    scheme = ""
    tool = ""

    def __init__(self, server: str, local_dir: Path, shell_executor: ShellExecutor):
        self.server = server
        self.local_dir = Path(local_dir)
        self.shell_executor = shell_executor

    def pull(self):
        raise NotImplementedError

    def push(self):
        raise NotImplementedError

    def _transfer(self, cmd, direction: str):
        logger.info(f"SYNC_{direction.upper()} backend={self.scheme} server={self.server}")
        result = self.shell_executor.run_command(cmd, log_cmd=True)
        if result.returncode != 0:
            raise SyncError(
                f"{self.tool} {direction} failed for {self.server} (exit {result.returncode})",
                output=tool_output(result),
            )
