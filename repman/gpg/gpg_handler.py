"""
GPG Handler - detached signatures for package files and repository DBs

Signing uses the operator's own keyring; the key id comes from GPGKEY in the
environment or from makepkg.conf (see config_resolver.gpg_key).
"""

import logging
from pathlib import Path
from typing import Optional

from repman import config
from repman.errors import SigningError
from repman.common.shell_executor import ShellExecutor, tool_output

logger = logging.getLogger(__name__)


def sig_path(file_path: Path) -> Path:
    return file_path.with_name(file_path.name + config.SIG_SUFFIX)


def is_signed(file_path: Path) -> bool:
    return sig_path(file_path).exists()


class GPGHandler:
    def __init__(self, key: Optional[str], shell_executor: Optional[ShellExecutor] = None):
        self.key = (key or "").strip()
        self.shell_executor = shell_executor or ShellExecutor()

    def is_ready(self) -> bool:
        return bool(self.key)

    def sign_file(self, file_path: Path) -> Path:
        """Create ``<file>.sig``; raises SigningError on any failure"""
        file_path = Path(file_path)
        if not self.key:
            raise SigningError(f"Cannot sign {file_path.name}: no GPG key configured (set GPGKEY)")

        sig_file = sig_path(file_path)
        result = self.shell_executor.run_command(
            ["gpg", "--yes", "-u", self.key, "--output", str(sig_file),
             "--detach-sign", "--pinentry-mode=loopback", str(file_path)],
        )
        if result.returncode != 0:
            raise SigningError(f"gpg failed to sign {file_path.name}", output=tool_output(result))

        if not sig_file.exists() or sig_file.stat().st_size == 0:
            raise SigningError(f"Signature file missing or empty after signing: {sig_file}")

        logger.info(f"✅ Signed: {file_path.name}")
        return sig_file

    def sign_if_unsigned(self, file_path: Path) -> bool:
        """Sign unless a signature already exists; True when a new one was made"""
        if is_signed(file_path):
            logger.debug(f"SIGN_SKIPPED file={Path(file_path).name} reason=already-signed")
            return False
        self.sign_file(file_path)
        return True
