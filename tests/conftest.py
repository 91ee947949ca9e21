from __future__ import annotations

import io
import shutil
import subprocess
import tarfile
from pathlib import Path
from typing import Dict, List, Optional

import pytest

from repman.aur_client import AurPackage
from repman.common.environment import RepmanPaths

ARCH = "x86_64"


def write_pkgbuild(directory: Path, pkgbase: str, version: str = "1.0-1",
                   pkgnames: Optional[List[str]] = None, arch: str = ARCH,
                   depends: Optional[List[str]] = None) -> Path:
    """PKGBUILD in .SRCINFO layout; FakeShell echoes it for --printsrcinfo"""
    directory.mkdir(parents=True, exist_ok=True)
    pkgver, pkgrel = version.rsplit("-", 1)
    lines = [f"pkgbase = {pkgbase}", f"\tpkgver = {pkgver}", f"\tpkgrel = {pkgrel}", f"\tarch = {arch}"]
    for dep in depends or []:
        lines.append(f"\tdepends = {dep}")
    lines.append("")
    for name in pkgnames or [pkgbase]:
        lines.append(f"pkgname = {name}")
    (directory / "PKGBUILD").write_text("\n".join(lines) + "\n")
    return directory


def _srcinfo(pkgbuild: Path) -> Dict:
    info = {"pkgnames": [], "depends": [], "arch": []}
    for line in pkgbuild.read_text().splitlines():
        if "=" not in line:
            continue
        key, value = [p.strip() for p in line.split("=", 1)]
        if key == "pkgname":
            info["pkgnames"].append(value)
        elif key in ("depends", "arch"):
            info[key].append(value)
        else:
            info[key] = value
    return info


class FakeDb:
    """Reads and writes <db>.db.tar.xz the way repo-add lays it out"""

    @staticmethod
    def load(path: Path) -> Dict[str, Dict]:
        entries = {}
        if not path.exists():
            return entries
        with tarfile.open(path, "r:*") as tar:
            for member in tar.getmembers():
                if member.isfile() and member.name.endswith("/desc"):
                    text = tar.extractfile(member).read().decode()
                    sections, current = {}, None
                    for line in text.splitlines():
                        if line.startswith("%"):
                            current = line.strip("%")
                            sections[current] = []
                        elif line and current:
                            sections[current].append(line)
                    entries[sections["NAME"][0]] = sections
        return entries

    @staticmethod
    def save(path: Path, entries: Dict[str, Dict]):
        with tarfile.open(path, "w:xz") as tar:
            for sections in entries.values():
                directory = f"{sections['NAME'][0]}-{sections['VERSION'][0]}"
                dir_info = tarfile.TarInfo(directory)
                dir_info.type = tarfile.DIRTYPE
                tar.addfile(dir_info)
                body = "".join(f"%{key}%\n" + "".join(v + "\n" for v in values) + "\n"
                               for key, values in sections.items())
                data = body.encode()
                info = tarfile.TarInfo(f"{directory}/desc")
                info.size = len(data)
                tar.addfile(info, io.BytesIO(data))


class FakeShell:
    """Stands in for ShellExecutor; simulates the Arch tooling on the file system"""

    def __init__(self):
        self.debug_mode = False
        self.calls: List[List[str]] = []
        self.fail: Dict[str, int] = {}
        self.failing_builds: set = set()
        self.skip_artifacts: set = set()
        self.built_version: Dict[str, str] = {}
        self.aur_pkgbuilds: Dict[str, Dict] = {}
        self.package_depends: Dict[str, List[str]] = {}
        self.host_packages: set = set()
        self.missing_tools: set = set()
        self.failing_signatures: set = set()

    def commands(self, tool: str) -> List[List[str]]:
        return [c for c in self.calls if c and c[0] == tool]

    def run_command(self, cmd, cwd=None, capture=True, check=False, log_cmd=False,
                    timeout=None, extra_env=None, unset_env=None, input_text=None):
        cmd = [str(c) for c in cmd]
        self.calls.append(cmd)
        tool = cmd[0]
        if tool in self.fail:
            return subprocess.CompletedProcess(cmd, self.fail[tool], "", f"{tool}: simulated failure")
        handler = getattr(self, "_" + tool.replace("-", "_"), None)
        if handler is None:
            return subprocess.CompletedProcess(cmd, 0, "", "")
        return handler(cmd, Path(cwd) if cwd else None, extra_env or {})

    def which(self, tool):
        return tool not in self.missing_tools

    @staticmethod
    def _ok(cmd, stdout=""):
        return subprocess.CompletedProcess(cmd, 0, stdout, "")

    # repo tools ------------------------------------------------------

    def _repo_add(self, cmd, cwd, env):
        args = cmd[1:]
        if args[:2] == ["-n", "-R"]:
            FakeDb.save(Path(args[2]), {})
            return self._ok(cmd)
        sign = "--sign" in args
        positional = [a for a in args if not a.startswith("--")]
        if sign:
            positional.remove(args[args.index("--key") + 1])
        db_path, files = Path(positional[0]), positional[1:]
        entries = FakeDb.load(db_path)
        for file in files:
            name, pkgver, pkgrel, arch = Path(file).name.split(".pkg.tar")[0].rsplit("-", 3)
            entries[name] = {
                "FILENAME": [Path(file).name],
                "NAME": [name],
                "VERSION": [f"{pkgver}-{pkgrel}"],
                "ARCH": [arch],
                "DEPENDS": list(self.package_depends.get(name, [])),
            }
            if not entries[name]["DEPENDS"]:
                del entries[name]["DEPENDS"]
        FakeDb.save(db_path, entries)
        if sign:
            self._sign_db(db_path)
        return self._ok(cmd)

    def _repo_remove(self, cmd, cwd, env):
        args = cmd[1:]
        sign = "--sign" in args
        positional = [a for a in args if not a.startswith("--")]
        if sign:
            positional.remove(args[args.index("--key") + 1])
        db_path, names = Path(positional[0]), positional[1:]
        entries = FakeDb.load(db_path)
        for name in names:
            entries.pop(name, None)
        FakeDb.save(db_path, entries)
        if sign:
            self._sign_db(db_path)
        return self._ok(cmd)

    @staticmethod
    def _sign_db(db_path: Path):
        sig = db_path.with_name(db_path.name + ".sig")
        sig.write_text("signature")
        link = db_path.parent / (db_path.name.split(".db.tar")[0] + ".db.sig")
        if link.exists() or link.is_symlink():
            link.unlink()
        link.symlink_to(sig.name)

    # build tools -----------------------------------------------------

    def _artifacts(self, pkgbuild_dir: Path, pkg_dest: Path, built: bool) -> List[Path]:
        info = _srcinfo(pkgbuild_dir / "PKGBUILD")
        version = f"{info['pkgver']}-{info['pkgrel']}"
        if built:
            version = self.built_version.get(info["pkgbase"], version)
        arch = info["arch"][0] if info["arch"] else ARCH
        return [pkg_dest / f"{name}-{version}-{arch}.pkg.tar.zst" for name in info["pkgnames"]]

    def _makepkg(self, cmd, cwd, env):
        if "--printsrcinfo" in cmd:
            return self._ok(cmd, (cwd / "PKGBUILD").read_text())
        if "--packagelist" in cmd:
            paths = self._artifacts(cwd, Path(env["PKGDEST"]), built=False)
            return self._ok(cmd, "".join(f"{p}\n" for p in paths))
        return self._build(cmd, cwd, env)

    def _makechrootpkg(self, cmd, cwd, env):
        return self._build(cmd, cwd, env)

    def _build(self, cmd, cwd, env):
        info = _srcinfo(cwd / "PKGBUILD")
        if info["pkgbase"] in self.failing_builds:
            return subprocess.CompletedProcess(cmd, 4, "==> ERROR: A failure occurred in build().", "")
        pkg_dest = Path(env["PKGDEST"])
        pkg_dest.mkdir(parents=True, exist_ok=True)
        for path in self._artifacts(cwd, pkg_dest, built=True):
            name = path.name.split(".pkg.tar")[0].rsplit("-", 3)[0]
            if name in self.skip_artifacts:
                continue
            path.write_bytes(b"package")
        return self._ok(cmd)

    def _git(self, cmd, cwd, env):
        if cmd[1] == "clone":
            url, target = cmd[2], Path(cmd[3])
            base = url.rsplit("/", 1)[1][:-len(".git")]
            target.mkdir(parents=True)
            if base in self.aur_pkgbuilds:
                write_pkgbuild(target, base, **self.aur_pkgbuilds[base])
        return self._ok(cmd)

    def _gpg(self, cmd, cwd, env):
        if any(part in Path(cmd[-1]).name for part in self.failing_signatures):
            return subprocess.CompletedProcess(cmd, 2, "", "gpg: signing failed: No pinentry")
        Path(cmd[cmd.index("--output") + 1]).write_text("signature")
        return self._ok(cmd)

    def _mkarchroot(self, cmd, cwd, env):
        root = Path(cmd[5])
        (root / "etc").mkdir(parents=True, exist_ok=True)
        return self._ok(cmd)

    def _pacman(self, cmd, cwd, env):
        if cmd[1] == "-Q":
            code = 0 if cmd[2] in self.host_packages else 1
            return subprocess.CompletedProcess(cmd, code, "", "")
        return self._ok(cmd)

    def _sudo(self, cmd, cwd, env):
        if cmd[1:3] == ["rm", "-rdf"]:
            shutil.rmtree(cmd[3], ignore_errors=True)
        return self._ok(cmd)


class FakeAur:
    def __init__(self):
        self.packages: Dict[str, AurPackage] = {}
        self.requests: List[List[str]] = []

    def publish(self, name: str, version: str, base: Optional[str] = None):
        self.packages[name] = AurPackage(name=name, package_base=base or name, version=version)

    def get_multiple_packages(self, names):
        self.requests.append(list(names))
        return {n: self.packages[n] for n in names if n in self.packages}


@pytest.fixture
def paths(tmp_path: Path, monkeypatch) -> RepmanPaths:
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_CACHE_HOME", str(tmp_path / "cache"))
    monkeypatch.setenv("REPMAN_SYSTEM_CONFIG", str(tmp_path / "etc" / "repman.yaml"))
    monkeypatch.delenv("GPGKEY", raising=False)
    result = RepmanPaths.from_environment()
    result.config_dir.mkdir(parents=True)
    (result.config_dir / "makepkg.conf").write_text("PKGEXT='.pkg.tar.zst'\nBUILDENV=(!distcc color !ccache check !sign)\n")
    (result.config_dir / "pacman.conf").write_text("[options]\nArchitecture = auto\n\n[core]\nInclude = /etc/pacman.d/mirrorlist\n")
    return result


@pytest.fixture
def repo_dir(tmp_path: Path) -> Path:
    directory = tmp_path / "srv" / "repo"
    directory.mkdir(parents=True)
    return directory


@pytest.fixture
def repos_yaml(paths: RepmanPaths, repo_dir: Path) -> Path:
    paths.repos_config.write_text(
        f"local:\n"
        f"  Server: file://{repo_dir}\n"
        f"remote:\n"
        f"  Server: rsync://builder@example.org/srv/$repo/$arch\n"
        f"  DBName: remotedb\n"
    )
    return paths.repos_config


@pytest.fixture
def shell() -> FakeShell:
    return FakeShell()


@pytest.fixture
def aur() -> FakeAur:
    return FakeAur()


@pytest.fixture
def orchestrator(paths, repos_yaml, shell, aur):
    from repman.orchestrator.command_orchestrator import CommandOrchestrator

    answers: List[str] = []

    def fake_input(prompt):
        if not answers:
            raise AssertionError(f"unexpected prompt: {prompt}")
        return answers.pop(0)

    orch = CommandOrchestrator(paths=paths, shell_executor=shell, aur_client=aur,
                               arch=ARCH, input_func=fake_input)
    orch.answers = answers
    return orch
