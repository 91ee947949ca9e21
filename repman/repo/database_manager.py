"""
Database manager for repository database operations

Reads ``<db>.db.tar.xz`` directly and changes it only through repo-add and
repo-remove.
"""

import tarfile
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from repman import config
from repman.errors import ConfigError, DbError
from repman.common.config_loader import Repository
from repman.common.environment import RepmanPaths
from repman.common.shell_executor import ShellExecutor, tool_output
from repman.gpg.gpg_handler import GPGHandler, sig_path

logger = logging.getLogger(__name__)


@dataclass
class DbEntry:
    name: str
    version: str
    arch: str
    filename: str
    depends: List[str] = field(default_factory=list)
    makedepends: List[str] = field(default_factory=list)
    checkdepends: List[str] = field(default_factory=list)

    def all_dependencies(self) -> List[str]:
        return self.depends + self.makedepends + self.checkdepends


def parse_desc(text: str) -> Dict[str, List[str]]:
    """``%KEY%`` blocks of a desc/depends record"""
    sections: Dict[str, List[str]] = {}
    current = None
    for line in text.splitlines():
        line = line.strip()
        if line.startswith("%") and line.endswith("%") and len(line) > 2:
            current = line[1:-1]
            sections.setdefault(current, [])
        elif not line:
            current = None
        elif current is not None:
            sections[current].append(line)
    return sections


def read_db(db_path: Path) -> Dict[str, DbEntry]:
    """Entries of a repository DB archive keyed by package name"""
    records: Dict[str, Dict[str, List[str]]] = {}
    try:
        with tarfile.open(db_path, "r:*") as tar:
            for member in tar.getmembers():
                if not member.isfile():
                    continue
                parts = member.name.split("/")
                if len(parts) != 2 or parts[1] not in ("desc", "depends"):
                    continue
                handle = tar.extractfile(member)
                if handle is None:
                    continue
                text = handle.read().decode("utf-8", errors="replace")
                records.setdefault(parts[0], {}).update(parse_desc(text))
    except (tarfile.TarError, OSError) as e:
        raise DbError(f"Cannot read repository DB {db_path}: {e}")

    entries = {}
    for directory, sections in records.items():
        name = _first(sections, "NAME")
        if not name:
            logger.warning(f"⚠️ DB record '{directory}' has no %NAME%; skipped")
            continue
        entries[name] = DbEntry(
            name=name,
            version=_first(sections, "VERSION"),
            arch=_first(sections, "ARCH"),
            filename=_first(sections, "FILENAME"),
            depends=sections.get("DEPENDS", []),
            makedepends=sections.get("MAKEDEPENDS", []),
            checkdepends=sections.get("CHECKDEPENDS", []),
        )
    return entries


def _first(sections: Dict[str, List[str]], key: str) -> str:
    values = sections.get(key) or [""]
    return values[0]


class DatabaseManager:
    """Manages the repository database of one repository"""

    def __init__(self, repo: Repository, paths: RepmanPaths,
                 shell_executor: Optional[ShellExecutor] = None,
                 gpg_key: Optional[str] = None,
                 pkg_ext: str = config.DEFAULT_PKGEXT,
                 local_dir: Optional[Path] = None):
        self.repo = repo
        self.paths = paths
        self.shell_executor = shell_executor or ShellExecutor()
        self.gpg_key = gpg_key
        self.pkg_ext = pkg_ext
        self._local_dir = local_dir

    @property
    def local_dir(self) -> Path:
        if self._local_dir is not None:
            return self._local_dir
        return self.repo.local_dir(self.paths)

    @property
    def db_path(self) -> Path:
        return self.local_dir / f"{self.repo.db_name}{config.DB_ARCHIVE_SUFFIX}"

    def exists(self) -> bool:
        return self.db_path.is_file()

    def entries(self) -> Dict[str, DbEntry]:
        if not self.exists():
            return {}
        return read_db(self.db_path)

    def ensure_db(self) -> bool:
        """Create an empty DB unless one exists; True when created"""
        if self.exists():
            return False
        self.local_dir.mkdir(parents=True, exist_ok=True)
        logger.info(f"📦 Creating empty repository DB {self.db_path.name}")
        result = self.shell_executor.run_command(["repo-add", "-n", "-R", str(self.db_path)])
        if result.returncode != 0:
            raise DbError(f"Cannot create DB of repository {self.repo.name}", output=tool_output(result))
        return True

    # ---------------------------------------------------------------- DB sig

    def db_sig_files(self) -> List[Path]:
        files = []
        for kind in ("db", "files"):
            for path in self.local_dir.glob(f"{self.repo.db_name}.{kind}*{config.SIG_SUFFIX}"):
                if path.is_file() or path.is_symlink():
                    files.append(path)
        return sorted(files)

    def is_db_signed(self) -> bool:
        db_sig = self.local_dir / f"{self.repo.db_name}.db{config.SIG_SUFFIX}"
        return db_sig.exists() or db_sig.is_symlink()

    def remove_db_sig_files(self) -> List[Path]:
        removed = []
        for path in self.db_sig_files():
            path.unlink()
            removed.append(path)
        if removed:
            logger.info(f"🗑️ Removed {len(removed)} DB signature file(s) of {self.repo.name}")
        return removed

    def _sign_args(self) -> List[str]:
        """Prepare DB signature state before repo-add/repo-remove"""
        if not self.repo.sign_db:
            if self.is_db_signed():
                self.remove_db_sig_files()
            return []
        if not self.gpg_key:
            raise ConfigError(f"Repository DB of {self.repo.name} shall be signed but no GPG key is set")
        return ["--sign", "--key", self.gpg_key]

    def sign_db(self, gpg: GPGHandler) -> List[Path]:
        """Sign the DB and files archives and add the .db.sig/.files.sig links"""
        signed = []
        for kind, suffix in (("db", config.DB_ARCHIVE_SUFFIX), ("files", config.FILES_ARCHIVE_SUFFIX)):
            archive = self.local_dir / f"{self.repo.db_name}{suffix}"
            if not archive.is_file():
                continue
            sig = gpg.sign_file(archive)
            link = self.local_dir / f"{self.repo.db_name}.{kind}{config.SIG_SUFFIX}"
            if link.exists() or link.is_symlink():
                link.unlink()
            link.symlink_to(sig.name)
            signed.extend([sig, link])
        return signed

    # --------------------------------------------------------- add / remove

    def repo_add(self, package_files: Iterable[Path]):
        files = [str(p) for p in package_files]
        if not files:
            return
        cmd = ["repo-add", "--remove", "--verify"] + self._sign_args() + [str(self.db_path)] + files
        result = self.shell_executor.run_command(cmd)
        if result.returncode != 0:
            raise DbError(f"Cannot add packages to DB of repository {self.repo.name}",
                          output=tool_output(result))
        logger.info(f"DB_ADDED repo={self.repo.name} count={len(files)}")

    def repo_remove(self, names: Iterable[str]):
        names = list(names)
        if not names:
            return
        cmd = ["repo-remove", "--verify"] + self._sign_args() + [str(self.db_path)] + names
        result = self.shell_executor.run_command(cmd)
        if result.returncode != 0:
            raise DbError(f"Cannot remove packages from DB of repository {self.repo.name}",
                          output=tool_output(result))
        logger.info(f"DB_REMOVED repo={self.repo.name} names={','.join(names)}")

    def package_path(self, entry: DbEntry) -> Path:
        """File of an entry; derived from name, version and PKGEXT if %FILENAME% is absent"""
        filename = entry.filename or f"{entry.name}-{entry.version}-{entry.arch}{self.pkg_ext}"
        return self.local_dir / filename

    def is_entry_signed(self, entry: DbEntry) -> bool:
        return sig_path(self.package_path(entry)).exists()
