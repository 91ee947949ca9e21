"""
Exception types raised by repman

Every failure that reaches the command line is a RepmanError. External tool
failures carry the captured tool output in ``output`` so the CLI can show it.
"""

from typing import List, Optional


class RepmanError(Exception):
    """Base class for all repman failures"""

    def __init__(self, message: str, output: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.output = output

    def __str__(self) -> str:
        return self.message


class ConfigError(RepmanError):
    """Missing or malformed configuration"""


class LockError(RepmanError):
    """Repository lock is held by another process"""


class SyncError(RepmanError):
    """Transfer between local cache and remote store failed"""


class DbError(RepmanError):
    """repo-add / repo-remove failed or the database could not be read"""


class ChrootError(RepmanError):
    """Chroot could not be created, updated or removed"""


class SigningError(RepmanError):
    """gpg failed to produce a signature"""


class BuildError(RepmanError):
    """A package could not be built"""


class ArchMismatch(BuildError):
    """PKGBUILD does not support the current architecture"""

    def __init__(self, pkgbase: str, arch: str, supported: List[str]):
        super().__init__(
            f"{pkgbase} does not support architecture {arch} "
            f"(arch={' '.join(supported) or 'none'}); use --ignorearch to build anyway"
        )
        self.pkgbase = pkgbase
        self.arch = arch
        self.supported = supported


class ConfirmationDeclined(RepmanError):
    """Operator answered no to a confirmation prompt"""

    def __init__(self, message: str = "Operation aborted by user"):
        super().__init__(message)


class DependencyConflict(RepmanError):
    """Packages to be removed are still required by packages that stay"""

    def __init__(self, dependents: dict):
        lines = [f"{dep} is required by {', '.join(sorted(users))}"
                 for dep, users in sorted(dependents.items())]
        super().__init__("; ".join(lines))
        self.dependents = dependents


class AurError(RepmanError):
    """AUR RPC request failed"""
