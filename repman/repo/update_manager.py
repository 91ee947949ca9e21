"""
Update Manager - rebuilds AUR packages of a repository that are out of date
"""

import re
import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Set, Tuple

from repman.errors import ConfirmationDeclined
from repman.aur_client import AURClient
from repman.build.build_pipeline import BuildFlags, BuildPipeline, BuildReport, BuildSource
from repman.build.version_manager import is_outdated
from repman.common.confirmer import Confirmer
from repman.repo.consistency_manager import ConsistencyManager

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UpdateCandidate:
    name: str
    package_base: str
    old_version: str
    new_version: str
    vcs: bool = False


def vcs_pattern(suffixes: List[str]):
    return re.compile(r".+-(" + "|".join(re.escape(s) for s in suffixes) + r")$")


class UpdateManager:
    def __init__(self, consistency: ConsistencyManager, aur_client: AURClient,
                 vcs_suffixes: List[str]):
        self.consistency = consistency
        self.db = consistency.db
        self.aur_client = aur_client
        self.vcs_re = vcs_pattern(vcs_suffixes) if vcs_suffixes else None

    def is_vcs(self, name: str) -> bool:
        return bool(self.vcs_re and self.vcs_re.match(name))

    def find_updates(self, names: Optional[List[str]], force_no_version: bool) -> List[UpdateCandidate]:
        entries = self.db.entries()
        explicit = names is not None
        if explicit:
            scope = []
            for name in names:
                if name in entries:
                    scope.append(name)
                else:
                    logger.error(f"❌ Package {name} is not in repository {self.db.repo.name}; skipped")
        else:
            scope = sorted(entries)
        if not scope:
            return []

        aur = self.aur_client.get_multiple_packages(scope)

        candidates = []
        for name in scope:
            info = aur.get(name)
            if info is None:
                # Built from a local PKGBUILD, nothing to compare against
                if explicit:
                    logger.error(f"❌ Package {name} is not in the AUR; cannot update it")
                continue

            installed = entries[name].version
            if self.is_vcs(name):
                if force_no_version:
                    candidates.append(UpdateCandidate(name, info.package_base, installed, info.version, vcs=True))
                else:
                    logger.debug(f"UPDATE_SKIPPED pkg={name} reason=vcs")
                continue

            if is_outdated(installed, info.version):
                candidates.append(UpdateCandidate(name, info.package_base, installed, info.version))
        return candidates

    def update(self, names: Optional[List[str]], flags: BuildFlags, confirmer: Confirmer,
               pipeline_factory: Callable[[], BuildPipeline]) -> Tuple[BuildReport, Set]:
        candidates = self.find_updates(names, flags.force_no_version)
        if not candidates:
            logger.info("✅ No updates available")
            return BuildReport(), set()

        logger.info("📦 Packages to be updated:")
        for c in candidates:
            if c.vcs:
                logger.info(f"    {c.name} (VCS, rebuilt)")
            else:
                logger.info(f"    {c.name} {c.old_version} -> {c.new_version}")
        if not confirmer.confirm("Continue?", default=True):
            raise ConfirmationDeclined()

        bases: List[str] = []
        for c in candidates:
            if c.package_base not in bases:
                bases.append(c.package_base)

        previously_signed: Dict[str, bool] = self.consistency.signed_state()
        rebuild_flags = BuildFlags(
            use_chroot=flags.use_chroot,
            ignore_arch=flags.ignore_arch,
            sign=None,
            force_no_version=flags.force_no_version,
            clean_chroot=flags.clean_chroot,
        )
        report = pipeline_factory().build([BuildSource.aur(base) for base in bases], rebuild_flags, previously_signed)
        changed = self.consistency.add(report.artifacts)
        return report, changed
