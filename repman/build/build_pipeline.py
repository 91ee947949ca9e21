"""
Build Pipeline - turns PKGBUILD sources into (signed) package files

Sources are built one after another. A failing source is recorded in the
BuildReport and does not stop the others.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

from repman import config
from repman.errors import ArchMismatch, BuildError, RepmanError, SigningError
from repman.common.config_loader import Repository
from repman.common.environment import RepmanPaths, ScratchDir, system_arch
from repman.common.logging_utils import log_tool_failure
from repman.common.shell_executor import ShellExecutor, tool_output
from repman.build.artifact_manager import ArtifactManager, PackageFile
from repman.build.chroot_manager import ChrootManager
from repman.build.pkgbuild import PkgbuildInspector
from repman.gpg.gpg_handler import GPGHandler
from repman.scm.git_client import GitClient

logger = logging.getLogger(__name__)


@dataclass
class BuildFlags:
    use_chroot: bool = True
    ignore_arch: bool = False
    # True / False, or None to keep the signed state of the previous version
    sign: Optional[bool] = False
    force_no_version: bool = False
    clean_chroot: bool = False


@dataclass(frozen=True)
class BuildSource:
    """Either an AUR package base or a local directory with a PKGBUILD"""

    aur_base: Optional[str] = None
    directory: Optional[Path] = None

    @classmethod
    def aur(cls, pkgbase: str) -> "BuildSource":
        return cls(aur_base=pkgbase)

    @classmethod
    def local(cls, directory) -> "BuildSource":
        return cls(directory=Path(directory).resolve())

    @property
    def label(self) -> str:
        return self.aur_base if self.aur_base else str(self.directory)


@dataclass
class BuildReport:
    artifacts: List[PackageFile] = field(default_factory=list)
    failures: Dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failures

    def record_failure(self, label: str, error: Exception):
        self.failures[label] = str(error)


class BuildPipeline:
    def __init__(self, repo: Repository, paths: RepmanPaths, scratch: ScratchDir,
                 makepkg_conf: Path, gpg_key: Optional[str] = None,
                 shell_executor: Optional[ShellExecutor] = None,
                 chroot_manager: Optional[ChrootManager] = None,
                 git_client: Optional[GitClient] = None,
                 arch: Optional[str] = None):
        self.repo = repo
        self.paths = paths
        self.scratch = scratch
        self.makepkg_conf = makepkg_conf
        self.shell_executor = shell_executor or ShellExecutor()
        self.chroot_manager = chroot_manager or ChrootManager(paths, self.shell_executor, scratch.path)
        self.git_client = git_client or GitClient(self.shell_executor)
        self.inspector = PkgbuildInspector(self.shell_executor, makepkg_conf)
        self.gpg = GPGHandler(gpg_key, self.shell_executor)
        self.arch = arch or system_arch()

    def build(self, sources: List[BuildSource], flags: BuildFlags,
              previously_signed: Optional[Dict[str, bool]] = None) -> BuildReport:
        if flags.sign is True and not self.gpg.is_ready():
            raise SigningError("New packages shall be signed but no GPG key is set (GPGKEY)")

        report = BuildReport()
        if not sources:
            return report

        if flags.use_chroot:
            self.chroot_manager.prepare(self.repo)

        for index, source in enumerate(sources, 1):
            logger.info(f"🔨 [{index}/{len(sources)}] Building {source.label}")
            try:
                artifacts = self._build_source(source, flags, previously_signed or {})
            except RepmanError as e:
                logger.error(f"❌ {source.label}: {e}")
                if e.output:
                    log_tool_failure(logger, e.output)
                report.record_failure(source.label, e)
                continue
            report.artifacts.extend(artifacts)
            logger.info(f"BUILD_OK source={source.label} artifacts={len(artifacts)}")

        logger.info(f"BUILD_SUMMARY built={len(report.artifacts)} failed={len(report.failures)}")
        return report

    def _pkgbuild_dir(self, source: BuildSource) -> Path:
        if source.aur_base:
            return self.git_client.clone_aur(source.aur_base, self.scratch.pkgbuild_dir)
        directory = source.directory
        if not (directory / config.PKGBUILD_FILE).is_file():
            raise BuildError(f"No PKGBUILD in {directory}")
        return directory

    def _build_source(self, source: BuildSource, flags: BuildFlags,
                      previously_signed: Dict[str, bool]) -> List[PackageFile]:
        pkgbuild_dir = self._pkgbuild_dir(source)

        srcinfo = self.inspector.srcinfo(pkgbuild_dir)
        if not flags.ignore_arch and not srcinfo.supports_arch(self.arch):
            raise ArchMismatch(srcinfo.pkgbase, self.arch, srcinfo.arch)

        pkg_dest = self.scratch.pkg_dir / srcinfo.pkgbase
        pkg_dest.mkdir(parents=True, exist_ok=True)

        expected = self.inspector.packagelist(pkgbuild_dir, pkg_dest)
        if not expected:
            raise BuildError(f"PKGBUILD of {srcinfo.pkgbase} does not define any package")

        self._run_build(pkgbuild_dir, pkg_dest, flags)

        built = self._collect(expected, pkg_dest)
        for pkg in built:
            if self._should_sign(pkg, flags, previously_signed):
                try:
                    self.gpg.sign_if_unsigned(pkg.path)
                except SigningError as e:
                    raise BuildError(f"Cannot sign {pkg.path.name}: {e}", output=e.output)
        return built

    def _run_build(self, pkgbuild_dir: Path, pkg_dest: Path, flags: BuildFlags):
        makepkg_args = ["-c", "--noconfirm", "--needed", "--syncdeps"]
        if flags.ignore_arch:
            makepkg_args.append("--ignorearch")

        if flags.use_chroot:
            cmd = ["makechrootpkg",
                   "-r", str(self.chroot_manager.chroot_dir(self.repo)),
                   "-D", str(self.repo.local_dir(self.paths)),
                   "-u", "--"] + makepkg_args
        else:
            cmd = ["makepkg", "--config", str(self.makepkg_conf)] + makepkg_args

        result = self.shell_executor.run_command(
            cmd,
            cwd=pkgbuild_dir,
            log_cmd=True,
            extra_env={"PKGDEST": str(pkg_dest)},
            unset_env=["SHELLOPTS"],
        )
        if result.returncode != 0:
            raise BuildError(f"Build failed in {pkgbuild_dir} (exit {result.returncode})",
                             output=tool_output(result))

    def _collect(self, expected: List[PackageFile], pkg_dest: Path) -> List[PackageFile]:
        """Built files for the expected list; pkgver() may have changed versions"""
        manager = ArtifactManager(pkg_dest)
        built = []
        for wanted in expected:
            found = manager.find_ignoring_version(wanted)
            if found is None:
                if wanted.is_debug:
                    logger.warning(f"⚠️ Debug package {wanted.path.name} was not built; skipped")
                    continue
                raise BuildError(f"Package {wanted.path.name} was not built")
            built.append(found)
        return built

    def _should_sign(self, pkg: PackageFile, flags: BuildFlags,
                     previously_signed: Dict[str, bool]) -> bool:
        if flags.sign is not None:
            return flags.sign
        if not previously_signed.get(pkg.name, False):
            return False
        if not self.gpg.is_ready():
            logger.warning(f"⚠️ Previous {pkg.name} was signed but no GPG key is set; "
                           f"new package stays unsigned")
            return False
        return True
