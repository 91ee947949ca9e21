"""
Consistency Manager - keeps DB entries and package files of a repository in step

Every operation returns the set of paths it changed so the caller knows
whether anything has to be pushed back to the remote store.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Set

from repman import config
from repman.errors import ConfirmationDeclined, DependencyConflict, SigningError
from repman.build.artifact_manager import ArtifactManager, PackageFile, parse_package_filename
from repman.common.confirmer import Confirmer
from repman.gpg.gpg_handler import GPGHandler, sig_path
from repman.repo.database_manager import DatabaseManager
from repman.repo.dependency_graph import build_graph, dependents_outside

logger = logging.getLogger(__name__)


@dataclass
class SignResult:
    changed: Set[Path] = field(default_factory=set)
    failures: List[str] = field(default_factory=list)


class ConsistencyManager:
    def __init__(self, db: DatabaseManager, debug_mode: bool = False):
        self.db = db
        self.artifacts = ArtifactManager(db.local_dir, debug_mode)

    def signed_state(self) -> Dict[str, bool]:
        """Entry name -> whether its package file carries a signature"""
        return {name: self.db.is_entry_signed(entry) for name, entry in self.db.entries().items()}

    # ------------------------------------------------------------------ add

    def add(self, built: List[PackageFile]) -> Set[Path]:
        """Put built packages into the repository, replacing any version with
        the same name"""
        changed: Set[Path] = set()
        if not built:
            return changed

        if self.db.ensure_db():
            changed.add(self.db.db_path)

        names = {pkg.name for pkg in built}
        existing = [name for name in sorted(names) if name in self.db.entries()]
        if existing:
            logger.info(f"♻️ Replacing existing entries: {', '.join(existing)}")
            self.db.repo_remove(existing)
            changed.add(self.db.db_path)

        for name in sorted(names):
            for old in self.artifacts.files_named(name):
                changed.update(self.artifacts.remove(old))

        added = []
        for pkg in built:
            copied = self.artifacts.copy_in(pkg)
            added.append(copied.path)
            changed.add(copied.path)
            if copied.is_signed:
                changed.add(copied.sig)

        self.db.repo_add(added)
        changed.add(self.db.db_path)
        for pkg in built:
            logger.info(f"✅ Added {pkg.name} {pkg.version} to {self.db.repo.name}")
        return changed

    # --------------------------------------------------------------- remove

    def remove(self, names: Iterable[str], confirmer: Confirmer) -> Set[Path]:
        entries = self.db.entries()
        targets = []
        for name in names:
            if name in entries:
                if name not in targets:
                    targets.append(name)
            else:
                logger.error(f"❌ Package {name} is not in repository {self.db.repo.name}; skipped")
        if not targets:
            return set()

        blockers = dependents_outside(build_graph(entries), targets)
        if blockers:
            conflict = DependencyConflict(blockers)
            logger.warning(f"⚠️ {conflict}")
            if not confirmer.confirm(f"Remove {', '.join(targets)} anyway?", default=False):
                raise ConfirmationDeclined()

        self.db.repo_remove(targets)
        changed: Set[Path] = {self.db.db_path}
        for name in targets:
            path = self.db.package_path(entries[name])
            pkg = parse_package_filename(path)
            if pkg is not None:
                changed.update(self.artifacts.remove(pkg))
            logger.info(f"🗑️ Removed {name} from {self.db.repo.name}")
        return changed

    # -------------------------------------------------------------- cleanup

    def cleanup(self) -> Set[Path]:
        """Remove DB entries without file, files without entry and orphan
        signatures"""
        changed: Set[Path] = set()
        if not self.db.exists():
            logger.info(f"ℹ️ Repository {self.db.repo.name} has no DB; any package file in it is an orphan")
        entries = self.db.entries()

        missing = sorted(name for name, entry in entries.items()
                         if not self.db.package_path(entry).is_file())
        for name in missing:
            logger.error(f"❌ {name} is in the DB but its package file does not exist")
        if missing:
            self.db.repo_remove(missing)
            changed.add(self.db.db_path)
            logger.info(f"CLEANUP_DB_ENTRIES removed={len(missing)}")

        known_files = {self.db.package_path(entry).name for name, entry in entries.items()
                       if name not in missing}
        for pkg in self.artifacts.package_files():
            if pkg.path.name not in known_files:
                changed.update(self.artifacts.remove(pkg))
                logger.info(f"CLEANUP_FILE removed={pkg.path.name}")

        for sig in sorted(self.db.local_dir.glob(f"*{config.SIG_SUFFIX}")):
            target = sig.with_name(sig.name[:-len(config.SIG_SUFFIX)])
            if sig.is_symlink() and sig.resolve().exists():
                continue
            if not target.exists():
                sig.unlink()
                changed.add(sig)
                logger.info(f"CLEANUP_SIG removed={sig.name}")

        if not changed:
            logger.info(f"✅ Repository {self.db.repo.name} is consistent")
        return changed

    # ----------------------------------------------------------------- sign

    def sign(self, names: Optional[Iterable[str]], gpg: GPGHandler) -> SignResult:
        """Sign package files of ``names`` (all entries for None) and,
        if configured, the DB

        A package gpg fails on is reported in ``failures``; the signatures
        made for the others are still recorded in the DB.
        """
        result = SignResult()
        changed = result.changed
        if not self.db.exists():
            logger.info(f"ℹ️ Repository {self.db.repo.name} has no DB; nothing to sign")
            return result

        entries = self.db.entries()
        if names is None:
            selected = sorted(entries)
        else:
            selected = []
            for name in names:
                if name in entries:
                    selected.append(name)
                else:
                    logger.error(f"❌ Package {name} is not in repository {self.db.repo.name}; skipped")

        newly_signed = []
        for name in selected:
            path = self.db.package_path(entries[name])
            if not path.is_file():
                logger.error(f"❌ Package file of {name} is missing; run cleanup")
                continue
            try:
                signed = gpg.sign_if_unsigned(path)
            except SigningError as e:
                logger.error(f"❌ {e}")
                result.failures.append(name)
                continue
            if signed:
                newly_signed.append(path)
                changed.add(sig_path(path))

        if newly_signed:
            # repo-add records the new signatures and signs the DB if SignDB is set
            self.db.repo_add(newly_signed)
            changed.add(self.db.db_path)
        elif self.db.repo.sign_db and not self.db.is_db_signed():
            changed.update(self.db.sign_db(gpg))
        if result.failures:
            logger.error(f"SIGN_FAILED repo={self.db.repo.name} names={','.join(result.failures)}")
        return result
