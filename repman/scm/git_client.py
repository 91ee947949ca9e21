"""
Git Client Module - fetches PKGBUILD repositories from the AUR
"""

import shutil
import logging
from pathlib import Path
from typing import Optional

from repman import config
from repman.errors import BuildError
from repman.common.shell_executor import ShellExecutor, tool_output

logger = logging.getLogger(__name__)


class GitClient:
    """Handles Git operations for AUR package bases"""

    def __init__(self, shell_executor: Optional[ShellExecutor] = None):
        self.shell_executor = shell_executor or ShellExecutor()

    @staticmethod
    def aur_url(pkgbase: str) -> str:
        return config.AUR_GIT_URL.format(base=pkgbase)

    def clone_aur(self, pkgbase: str, parent_dir: Path) -> Path:
        """Clone the AUR git repository of ``pkgbase`` below ``parent_dir``"""
        target_dir = Path(parent_dir) / pkgbase
        if target_dir.exists():
            shutil.rmtree(target_dir)
        parent_dir.mkdir(parents=True, exist_ok=True)

        logger.info(f"📥 Cloning {pkgbase} from the AUR")
        result = self.shell_executor.run_command(
            ["git", "clone", self.aur_url(pkgbase), str(target_dir)],
            cwd=parent_dir,
        )
        if result.returncode != 0:
            raise BuildError(f"Cannot clone AUR package base '{pkgbase}'", output=tool_output(result))

        # An unknown package base clones as an empty repository
        if not (target_dir / config.PKGBUILD_FILE).is_file():
            raise BuildError(f"'{pkgbase}' is not an AUR package base (no PKGBUILD after clone)")

        logger.info(f"✅ Successfully cloned {pkgbase} to {target_dir}")
        return target_dir
