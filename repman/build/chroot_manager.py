"""
Chroot Manager - lifecycle of the clean build root of a repository

The container lives in ``<cache>/chroots/<repo>``; ``root/`` is the pristine
root that makechrootpkg copies for every build.
"""

import os
import shutil
import logging
from pathlib import Path
from typing import Optional

from repman import config
from repman.errors import ChrootError
from repman.common.config_loader import Repository
from repman.common.config_resolver import ConfigKind, resolve, distcc_enabled
from repman.common.environment import RepmanPaths
from repman.common.shell_executor import ShellExecutor, tool_output
from repman.common.logging_utils import log_tool_failure

logger = logging.getLogger(__name__)


def chroot_pacman_conf(template: Path, db_name: str, local_dir: Path) -> str:
    """pacman.conf for the chroot: ``template`` without a [db_name] section,
    plus a section serving the repository from ``local_dir``"""
    lines = []
    skipping = False
    with open(template, "r") as f:
        for line in f:
            stripped = line.rstrip("\n")
            if stripped.startswith(f"[{db_name}]"):
                skipping = True
                continue
            if skipping:
                if not stripped.startswith("["):
                    continue
                skipping = False
            lines.append(stripped + "\n")

    lines.append(
        f"\n[{db_name}]\nSigLevel = Optional TrustAll\nServer = file://{local_dir}\n"
    )
    return "".join(lines)


class ChrootManager:
    def __init__(self, paths: RepmanPaths, shell_executor: Optional[ShellExecutor] = None,
                 scratch_dir: Optional[Path] = None):
        self.paths = paths
        self.shell_executor = shell_executor or ShellExecutor()
        self.scratch_dir = scratch_dir

    def chroot_dir(self, repo: Repository) -> Path:
        return self.paths.chroot_dir(repo.name)

    def root_dir(self, repo: Repository) -> Path:
        return self.chroot_dir(repo) / config.CHROOT_ROOT_SUBDIR

    def exists(self, repo: Repository) -> bool:
        return self.root_dir(repo).is_dir()

    def _write_pacman_conf(self, repo: Repository) -> Path:
        template = resolve(self.paths.config_dir, repo.name, ConfigKind.PACMAN_CONF)
        target_dir = self.scratch_dir or self.paths.tmp_dir()
        target_dir.mkdir(parents=True, exist_ok=True)
        target = target_dir / "pacman.conf"
        target.write_text(chroot_pacman_conf(template, repo.db_name, repo.local_dir(self.paths)))
        logger.debug(f"CHROOT_PACMAN_CONF template={template} path={target}")
        return target

    def create(self, repo: Repository):
        """(Re)create the container from scratch"""
        if self.chroot_dir(repo).exists():
            self.destroy(repo)

        makepkg_conf = resolve(self.paths.config_dir, repo.name, ConfigKind.MAKEPKG_CONF)
        pacman_conf = self._write_pacman_conf(repo)
        distcc = distcc_enabled(makepkg_conf)

        self.chroot_dir(repo).mkdir(parents=True, exist_ok=True)
        logger.info(f"🏗️ Creating chroot for repository {repo.name} ...")

        cmd = ["mkarchroot", "-C", str(pacman_conf), "-M", str(makepkg_conf),
               str(self.root_dir(repo))] + list(config.CHROOT_BASE_PACKAGES)
        if distcc:
            cmd.append("distcc")
        result = self.shell_executor.run_command(cmd, log_cmd=True)
        if result.returncode != 0:
            log_tool_failure(logger, tool_output(result))
            raise ChrootError(f"mkarchroot failed for repository {repo.name}", output=tool_output(result))

        self._run_adjust_chroot(repo)

        if distcc and not self._host_has_package("distcc"):
            logger.warning("⚠️ Package 'distcc' must be installed on the host as well, "
                           "otherwise distributed builds in the chroot do not work")

        logger.info(f"✅ CHROOT_CREATED repo={repo.name} path={self.root_dir(repo)}")

    def _run_adjust_chroot(self, repo: Repository):
        script = resolve(self.paths.config_dir, repo.name, ConfigKind.ADJUST_CHROOT)
        if script is None:
            return
        logger.info(f"🔧 Executing '{script.name}'")
        result = self.shell_executor.run_command(
            [str(script), repo.name, str(self.root_dir(repo))], log_cmd=True
        )
        if result.returncode != 0:
            raise ChrootError(f"'{script}' failed for repository {repo.name}", output=tool_output(result))

    def _host_has_package(self, name: str) -> bool:
        return self.shell_executor.run_command(["pacman", "-Q", name]).returncode == 0

    def prepare(self, repo: Repository):
        """Update an existing container or create a new one"""
        if not self.exists(repo):
            self.create(repo)
            return

        logger.info(f"🔄 Updating chroot for repository {repo.name} ...")
        result = self.shell_executor.run_command(
            ["arch-nspawn", str(self.root_dir(repo)),
             f"--bind-ro={repo.local_dir(self.paths)}",
             "pacman", "-Syu", "--noconfirm"],
            log_cmd=True,
        )
        if result.returncode != 0:
            log_tool_failure(logger, tool_output(result))
            raise ChrootError(f"Cannot update chroot of repository {repo.name}", output=tool_output(result))

    def destroy(self, repo: Repository):
        chroot_dir = self.chroot_dir(repo)
        if not chroot_dir.exists():
            logger.info(f"ℹ️ No chroot for repository {repo.name}; nothing to remove")
            return

        logger.info(f"🗑️ Removing chroot of repository {repo.name}")
        if os.geteuid() == 0:
            try:
                shutil.rmtree(chroot_dir)
            except OSError as e:
                self._raise_destroy_error(repo, chroot_dir, str(e))
        else:
            result = self.shell_executor.run_command(["sudo", "rm", "-rdf", str(chroot_dir)])
            if result.returncode != 0:
                self._raise_destroy_error(repo, chroot_dir, tool_output(result))
        logger.info(f"CHROOT_REMOVED repo={repo.name}")

    @staticmethod
    def _raise_destroy_error(repo: Repository, chroot_dir: Path, output: str):
        if "Read-only file system" in output:
            raise ChrootError(
                f"Cannot remove chroot of repository {repo.name}: a read-only file system is "
                f"still mounted below {chroot_dir}; unmount it and retry",
                output=output,
            )
        raise ChrootError(f"Cannot remove chroot of repository {repo.name}", output=output)
