"""
PKGBUILD inspection through makepkg (--printsrcinfo, --packagelist)
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from repman.errors import BuildError
from repman.common.shell_executor import ShellExecutor, tool_output
from repman.build.artifact_manager import PackageFile, parse_package_filename

logger = logging.getLogger(__name__)


@dataclass
class SrcInfo:
    pkgbase: str
    pkgver: str = ""
    pkgrel: str = ""
    epoch: Optional[str] = None
    arch: List[str] = field(default_factory=list)
    pkgnames: List[str] = field(default_factory=list)

    @property
    def version(self) -> str:
        base = f"{self.pkgver}-{self.pkgrel}"
        return f"{self.epoch}:{base}" if self.epoch and self.epoch != "0" else base

    def supports_arch(self, arch: str) -> bool:
        return "any" in self.arch or arch in self.arch


def parse_srcinfo(content: str) -> SrcInfo:
    """Parse .SRCINFO text; only global (pkgbase section) values are used"""
    pkgbase = None
    values = {"pkgver": "", "pkgrel": "", "epoch": None}
    arch: List[str] = []
    pkgnames: List[str] = []
    in_pkgbase = False

    for line in content.splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        value = value.strip()

        if key == "pkgbase":
            pkgbase = value
            in_pkgbase = True
        elif key == "pkgname":
            pkgnames.append(value)
            in_pkgbase = False
        elif in_pkgbase and key in values:
            values[key] = value
        elif in_pkgbase and key == "arch":
            arch.append(value)

    if not pkgbase:
        raise ValueError("Could not find pkgbase in .SRCINFO")

    return SrcInfo(pkgbase=pkgbase, pkgver=values["pkgver"], pkgrel=values["pkgrel"],
                   epoch=values["epoch"], arch=arch, pkgnames=pkgnames)


class PkgbuildInspector:
    def __init__(self, shell_executor: ShellExecutor, makepkg_conf: Optional[Path] = None):
        self.shell_executor = shell_executor
        self.makepkg_conf = makepkg_conf

    def _makepkg(self, args: List[str]) -> List[str]:
        cmd = ["makepkg"]
        if self.makepkg_conf is not None:
            cmd += ["--config", str(self.makepkg_conf)]
        return cmd + args

    def srcinfo(self, pkgbuild_dir: Path) -> SrcInfo:
        result = self.shell_executor.run_command(self._makepkg(["--printsrcinfo"]), cwd=pkgbuild_dir)
        if result.returncode != 0 or not result.stdout:
            raise BuildError(f"makepkg --printsrcinfo failed in {pkgbuild_dir}", output=tool_output(result))
        try:
            return parse_srcinfo(result.stdout)
        except ValueError as e:
            raise BuildError(f"Invalid .SRCINFO for {pkgbuild_dir}: {e}")

    def packagelist(self, pkgbuild_dir: Path, pkg_dest: Path) -> List[PackageFile]:
        """Artifacts makepkg would produce, as paths below ``pkg_dest``"""
        result = self.shell_executor.run_command(
            self._makepkg(["--packagelist"]),
            cwd=pkgbuild_dir,
            extra_env={"PKGDEST": str(pkg_dest)},
        )
        if result.returncode != 0:
            raise BuildError(f"makepkg --packagelist failed in {pkgbuild_dir}", output=tool_output(result))

        expected = []
        for line in result.stdout.splitlines():
            line = line.strip()
            if not line:
                continue
            pkg = parse_package_filename(line)
            if pkg is None:
                logger.warning(f"⚠️ Unexpected makepkg --packagelist entry: {line}")
                continue
            expected.append(pkg)
        logger.debug(f"PACKAGELIST dir={pkgbuild_dir} count={len(expected)}")
        return expected
