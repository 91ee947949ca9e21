"""
Artifact manager - package file names, lookup and removal
"""

import re
import shutil
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from repman import config
from repman.gpg.gpg_handler import sig_path

logger = logging.getLogger(__name__)

PKG_FILE_RE = re.compile(r"^(.+)-([^-]+)-([^-]+)-([^-]+)(\.pkg\.tar(?:\.[^.]+)?)$")


@dataclass(frozen=True)
class PackageFile:
    """``<name>-<pkgver>-<pkgrel>-<arch><ext>`` on disk"""

    path: Path
    name: str
    pkgver: str
    pkgrel: str
    arch: str
    ext: str

    @property
    def version(self) -> str:
        return f"{self.pkgver}-{self.pkgrel}"

    @property
    def sig(self) -> Path:
        return sig_path(self.path)

    @property
    def is_signed(self) -> bool:
        return self.sig.exists()

    @property
    def is_debug(self) -> bool:
        return self.name.endswith(config.DEBUG_PKG_SUFFIX)


def parse_package_filename(path) -> Optional[PackageFile]:
    """PackageFile for a package file name, None for anything else"""
    path = Path(path)
    match = PKG_FILE_RE.match(path.name)
    if not match:
        return None
    name, pkgver, pkgrel, arch, ext = match.groups()
    return PackageFile(path=path, name=name, pkgver=pkgver, pkgrel=pkgrel, arch=arch, ext=ext)


class ArtifactManager:
    """Package files of one directory"""

    def __init__(self, directory: Path, debug_mode: bool = False):
        self.directory = Path(directory)
        self.debug_mode = debug_mode

    def package_files(self) -> List[PackageFile]:
        files = []
        for path in sorted(self.directory.glob("*.pkg.tar*")):
            if path.name.endswith(config.SIG_SUFFIX) or not path.is_file():
                continue
            pkg = parse_package_filename(path)
            if pkg is not None:
                files.append(pkg)
        return files

    def find_ignoring_version(self, expected: PackageFile) -> Optional[PackageFile]:
        """Built file for ``expected`` whatever pkgver() turned the version into"""
        for pkg in self.package_files():
            if pkg.name == expected.name and pkg.arch == expected.arch and pkg.ext == expected.ext:
                return pkg
        return None

    def files_named(self, name: str) -> List[PackageFile]:
        return [pkg for pkg in self.package_files() if pkg.name == name]

    def remove(self, pkg: PackageFile) -> List[Path]:
        """Delete a package file and its signature; returns what was removed"""
        removed = []
        for path in (pkg.path, pkg.sig):
            if path.exists() or path.is_symlink():
                path.unlink()
                removed.append(path)
                if self.debug_mode:
                    print(f"🔧 [DEBUG] Removed: {path}", flush=True)
        if removed:
            logger.info(f"🗑️ Removed {pkg.path.name}")
        return removed

    def copy_in(self, pkg: PackageFile) -> PackageFile:
        """Copy a package file (and signature, if any) into this directory"""
        self.directory.mkdir(parents=True, exist_ok=True)
        dest = self.directory / pkg.path.name
        shutil.copy2(str(pkg.path), str(dest))
        if pkg.is_signed:
            shutil.copy2(str(pkg.sig), str(sig_path(dest)))
        logger.debug(f"ARTIFACT_COPIED file={dest.name} signed={pkg.is_signed}")
        return parse_package_filename(dest)
