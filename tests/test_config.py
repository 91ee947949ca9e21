from __future__ import annotations

from pathlib import Path

import pytest

from repman.common.config_loader import ConfigLoader, parse_repository
from repman.common.config_resolver import (
    ConfigKind,
    candidates,
    distcc_enabled,
    gpg_key,
    pkgext,
    resolve,
)
from repman.common.environment import RepmanPaths
from repman.errors import ConfigError


def test_load_repositories_substitutes_placeholders(paths: RepmanPaths, repos_yaml: Path, repo_dir: Path) -> None:
    repos = ConfigLoader(paths, arch="x86_64").load_repositories()
    assert sorted(repos) == ["local", "remote"]

    local = repos["local"]
    assert local.is_local
    assert local.db_name == "local"
    assert local.local_dir(paths) == repo_dir
    assert local.db_path(paths) == repo_dir / "local.db.tar.xz"

    remote = repos["remote"]
    assert remote.server == "rsync://builder@example.org/srv/remote/x86_64"
    assert remote.db_name == "remotedb"
    assert remote.local_dir(paths) == paths.repo_cache_dir("remote")


def test_db_placeholder_uses_effective_db_name() -> None:
    repo = parse_repository("r", {"Server": "s3://bucket/$db/$arch", "DBName": "custom"}, arch="aarch64")
    assert repo.server == "s3://bucket/custom/aarch64"


def test_invalid_repository_definitions() -> None:
    with pytest.raises(ConfigError):
        parse_repository("r", {"DBName": "x"})
    with pytest.raises(ConfigError):
        parse_repository("r", {"Server": "ftp://host/path"})
    with pytest.raises(ConfigError):
        parse_repository("r", {"Server": "file:///srv", "SignDB": "yes"})
    with pytest.raises(ConfigError):
        parse_repository("r", "file:///srv")


def test_unknown_repository(paths: RepmanPaths, repos_yaml: Path) -> None:
    with pytest.raises(ConfigError, match="not configured"):
        ConfigLoader(paths).get_repository("missing")


def test_missing_repos_file(paths: RepmanPaths) -> None:
    with pytest.raises(ConfigError, match="not found"):
        ConfigLoader(paths).load_repositories()


def test_vcs_suffixes_default_and_override(paths: RepmanPaths, tmp_path: Path) -> None:
    loader = ConfigLoader(paths)
    assert "git" in loader.vcs_suffixes()

    system = tmp_path / "etc" / "repman.yaml"
    system.parent.mkdir()
    system.write_text("vcs_suffixes:\n  - git\n  - nightly\n")
    assert loader.vcs_suffixes() == ["git", "nightly"]


def test_repo_specific_config_wins(tmp_path: Path) -> None:
    config_dir = tmp_path / "cfg"
    config_dir.mkdir()
    (config_dir / "makepkg.conf").write_text("")
    assert resolve(config_dir, "myrepo", ConfigKind.MAKEPKG_CONF) == config_dir / "makepkg.conf"

    (config_dir / "makepkg-myrepo.conf").write_text("")
    assert resolve(config_dir, "myrepo", ConfigKind.MAKEPKG_CONF) == config_dir / "makepkg-myrepo.conf"
    assert resolve(config_dir, "other", ConfigKind.MAKEPKG_CONF) == config_dir / "makepkg.conf"


def test_cascade_order_ends_with_system_file(tmp_path: Path) -> None:
    order = candidates(tmp_path, "r", ConfigKind.PACMAN_CONF)
    assert order == [tmp_path / "pacman-r.conf", tmp_path / "pacman.conf", Path("/etc/pacman.conf")]


def test_adjustchroot_is_optional(tmp_path: Path) -> None:
    assert resolve(tmp_path, "r", ConfigKind.ADJUST_CHROOT) is None
    (tmp_path / "adjustchroot").write_text("#!/bin/sh\n")
    assert resolve(tmp_path, "r", ConfigKind.ADJUST_CHROOT) == tmp_path / "adjustchroot"
    (tmp_path / "adjustchroot-r").write_text("#!/bin/sh\n")
    assert resolve(tmp_path, "r", ConfigKind.ADJUST_CHROOT) == tmp_path / "adjustchroot-r"


def test_makepkg_conf_values(tmp_path: Path, monkeypatch) -> None:
    conf = tmp_path / "makepkg.conf"
    conf.write_text(
        "BUILDENV=(distcc color !ccache check !sign)\n"
        "PKGEXT='.pkg.tar.xz'\n"
        "#GPGKEY=\"commented\"\n"
        "GPGKEY=\"ABCDEF\"\n"
    )
    monkeypatch.delenv("GPGKEY", raising=False)
    assert pkgext(conf) == ".pkg.tar.xz"
    assert distcc_enabled(conf)
    assert gpg_key(conf) == "ABCDEF"

    monkeypatch.setenv("GPGKEY", "FROMENV")
    assert gpg_key(conf) == "FROMENV"


def test_distcc_disabled(tmp_path: Path) -> None:
    conf = tmp_path / "makepkg.conf"
    conf.write_text("BUILDENV=(!distcc color)\n")
    assert not distcc_enabled(conf)
    assert pkgext(conf) == ".pkg.tar.zst"
