from __future__ import annotations

import signal

import pytest

from repman.errors import LockError
from repman.main import EXIT_FAILURE, EXIT_INTERRUPTED, EXIT_OK, build_parser, main


class StubOrchestrator:
    def __init__(self, error: BaseException = None):
        self.calls = []
        self.error = error

    def __getattr__(self, name):
        def record(*args, **kwargs):
            self.calls.append((name, args, kwargs))
            if self.error is not None:
                raise self.error
            if name == "list_packages":
                return ["-  [local]", "-- x86_64 foo 1.0-1"]
            if name == "list_repositories":
                return ["local", "remote"]
        return record


def run(argv, orchestrator=None):
    orchestrator = orchestrator or StubOrchestrator()
    return main(argv, orchestrator=orchestrator), orchestrator


def test_add_collects_sources_and_flags() -> None:
    code, orch = run(["add", "-r", "local", "-a", "yay", "--aur", "paru", "-d", "./pkg", "-n", "-A", "-s"])
    assert code == EXIT_OK
    name, args, _ = orch.calls[0]
    assert name == "add"
    repo, aur, directories, flags = args
    assert (repo, aur, directories) == ("local", ["yay", "paru"], ["./pkg"])
    assert flags.use_chroot is False and flags.ignore_arch is True and flags.sign is True


def test_nochroot_with_clean_is_a_usage_error() -> None:
    code, orch = run(["add", "-r", "local", "-a", "yay", "-n", "-c"])
    assert code == EXIT_FAILURE
    assert orch.calls == []


def test_all_and_names_are_exclusive() -> None:
    code, orch = run(["update", "-r", "local", "--all", "foo"])
    assert code == EXIT_FAILURE
    assert orch.calls == []


def test_update_all_and_force() -> None:
    code, orch = run(["update", "-r", "local", "--all", "-F", "--noconfirm"])
    name, args, kwargs = orch.calls[0]
    assert code == EXIT_OK
    assert args[1] is None
    assert args[2].force_no_version is True and args[2].sign is False
    assert kwargs == {"noconfirm": True}


def test_sign_without_names_does_nothing() -> None:
    code, orch = run(["sign", "-r", "local"])
    assert code == EXIT_OK
    assert orch.calls == []


def test_rm_requires_names() -> None:
    with pytest.raises(SystemExit):
        build_parser().parse_args(["rm", "-r", "local"])


def test_clear_requires_target() -> None:
    code, orch = run(["clear", "-r", "local"])
    assert code == EXIT_FAILURE
    code, orch = run(["clear", "-r", "local", "--chroot"])
    assert orch.calls == [("clear", ("local",), {"cache": False, "chroot": True})]


def test_ls_prints_listing(capsys) -> None:
    code, _ = run(["ls", "-r", "local"])
    assert code == EXIT_OK
    assert capsys.readouterr().out.splitlines() == ["-  [local]", "-- x86_64 foo 1.0-1"]


def test_lsrepos(capsys) -> None:
    run(["lsrepos"])
    assert capsys.readouterr().out.split() == ["local", "remote"]


def test_help_topic(capsys) -> None:
    assert run(["help", "update"])[0] == EXIT_OK
    assert "--force-no-version" in capsys.readouterr().out
    assert run(["help", "frobnicate"])[0] == EXIT_FAILURE


def test_help_knows_every_subcommand() -> None:
    args = build_parser().parse_args(["help"])
    assert sorted(args.topics) == [
        "add", "cleanup", "clear", "help", "ls", "lsrepos", "mkchroot", "rm", "sign", "update",
    ]
    assert args.topic is None


def test_repman_error_exit_code() -> None:
    code, _ = run(["cleanup", "-r", "local"], StubOrchestrator(LockError("locked")))
    assert code == EXIT_FAILURE


def test_interrupt_exit_code() -> None:
    code, _ = run(["cleanup", "-r", "local"], StubOrchestrator(KeyboardInterrupt()))
    assert code == EXIT_INTERRUPTED


def test_sigterm_handler_restored() -> None:
    before = signal.getsignal(signal.SIGTERM)
    run(["lsrepos"])
    assert signal.getsignal(signal.SIGTERM) is before
