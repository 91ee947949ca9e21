#!/usr/bin/env python3
"""
Main Entry Point for repman
"""

import argparse
import logging
import os
import signal
import sys
from typing import List, Optional

from repman.errors import RepmanError
from repman.build.build_pipeline import BuildFlags
from repman.common.logging_utils import setup_logging, log_tool_failure
from repman.orchestrator.command_orchestrator import CommandOrchestrator

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_INTERRUPTED = 130


class UsageError(RepmanError):
    pass


class Terminated(Exception):
    """SIGTERM turned into an exception so cleanup handlers run"""


def _raise_terminated(signum, frame):
    raise Terminated()


def _add_repo(parser):
    parser.add_argument("-r", "--repo", required=True, dest="repo", help="Repository")


def _add_build_flags(parser):
    parser.add_argument("-c", "--clean", action="store_true",
                        help="Remove the chroot container after the build")
    parser.add_argument("-A", "--ignorearch", action="store_true",
                        help="Build even if the PKGBUILD does not support the architecture")
    parser.add_argument("-n", "--nochroot", action="store_true",
                        help="Build with makepkg instead of in a chroot container")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="repman",
        description="Manage custom Arch Linux package repositories",
    )
    parser.add_argument("--debug", action="store_true",
                        default=os.environ.get("REPMAN_DEBUG") == "1",
                        help="Show the output of every external tool")
    subparsers = parser.add_subparsers(dest="command", required=True)

    add_parser = subparsers.add_parser("add", help="Build packages and add them to a repository")
    _add_repo(add_parser)
    add_parser.add_argument("-a", "--aur", action="append", default=[], dest="aur",
                            help="Name of AUR package (repeatable)")
    add_parser.add_argument("-d", "--directory", action="append", default=[], dest="directories",
                            help="Local directory with PKGBUILD file (repeatable)")
    _add_build_flags(add_parser)
    add_parser.add_argument("-s", "--sign", action="store_true", help="Sign packages")

    cleanup_parser = subparsers.add_parser("cleanup", help="Make DB and package files consistent")
    _add_repo(cleanup_parser)

    clear_parser = subparsers.add_parser("clear", help="Delete local data of a repository")
    _add_repo(clear_parser)
    clear_parser.add_argument("--cache", action="store_true", help="Delete local copy of a remote repository")
    clear_parser.add_argument("--chroot", action="store_true", help="Delete chroot container of a repository")

    ls_parser = subparsers.add_parser("ls", help="List packages of a repository")
    _add_repo(ls_parser)

    subparsers.add_parser("lsrepos", help="List configured repositories")

    mkchroot_parser = subparsers.add_parser("mkchroot", help="Create chroot container for a repository")
    _add_repo(mkchroot_parser)
    mkchroot_parser.add_argument("--noconfirm", action="store_true", help="Do not ask for confirmation")

    rm_parser = subparsers.add_parser("rm", help="Remove packages from a repository")
    _add_repo(rm_parser)
    rm_parser.add_argument("--noconfirm", action="store_true", help="Do not ask for confirmation")
    rm_parser.add_argument("names", nargs="+", help="Package names")

    sign_parser = subparsers.add_parser("sign", help="Sign packages of a repository")
    _add_repo(sign_parser)
    sign_parser.add_argument("--all", action="store_true", help="All packages")
    sign_parser.add_argument("names", nargs="*", help="Package names")

    update_parser = subparsers.add_parser("update", help="Rebuild outdated AUR packages")
    _add_repo(update_parser)
    update_parser.add_argument("--all", action="store_true", help="All packages")
    _add_build_flags(update_parser)
    update_parser.add_argument("-F", "--force-no-version", action="store_true",
                               help="Also rebuild VCS packages whose version cannot be compared")
    update_parser.add_argument("--noconfirm", action="store_true", help="Do not ask for confirmation")
    update_parser.add_argument("names", nargs="*", help="Package names")

    help_parser = subparsers.add_parser("help", help="Show help for repman or a subcommand")
    help_parser.add_argument("topic", nargs="?", help="Subcommand")
    help_parser.set_defaults(topics=subparsers.choices)

    return parser


def _flags(args) -> BuildFlags:
    if args.nochroot and args.clean:
        raise UsageError("If '-n/--nochroot' is set, setting '-c/--clean' does not make sense")
    return BuildFlags(
        use_chroot=not args.nochroot,
        ignore_arch=args.ignorearch,
        sign=getattr(args, "sign", False),
        force_no_version=getattr(args, "force_no_version", False),
        clean_chroot=args.clean,
    )


def _selection(args) -> Optional[List[str]]:
    """None for --all, the names otherwise; an empty list means nothing to do"""
    if args.all and args.names:
        raise UsageError("Either submit package names or set option '--all', but not both.")
    if args.all:
        return None
    return list(args.names)


def execute(args, parser: argparse.ArgumentParser, orchestrator: CommandOrchestrator):
    command = args.command

    if command == "help":
        if args.topic:
            if args.topic not in args.topics:
                raise UsageError(f"Unknown command '{args.topic}'")
            args.topics[args.topic].print_help()
        else:
            parser.print_help()
    elif command == "add":
        orchestrator.add(args.repo, args.aur, args.directories, _flags(args))
    elif command == "cleanup":
        orchestrator.cleanup(args.repo)
    elif command == "clear":
        if not args.cache and not args.chroot:
            raise UsageError("Set '--cache' and/or '--chroot'")
        orchestrator.clear(args.repo, cache=args.cache, chroot=args.chroot)
    elif command == "ls":
        for line in orchestrator.list_packages(args.repo):
            print(line)
    elif command == "lsrepos":
        for name in orchestrator.list_repositories():
            print(name)
    elif command == "mkchroot":
        orchestrator.mkchroot(args.repo, noconfirm=args.noconfirm)
    elif command == "rm":
        orchestrator.remove(args.repo, args.names, noconfirm=args.noconfirm)
    elif command == "sign":
        names = _selection(args)
        if names == []:
            logger.info("ℹ️ No packages given; nothing to sign")
            return
        orchestrator.sign(args.repo, names)
    elif command == "update":
        flags = _flags(args)
        names = _selection(args)
        if names == []:
            logger.info("ℹ️ No packages given; nothing to update")
            return
        orchestrator.update(args.repo, names, flags, noconfirm=args.noconfirm)


def main(argv: Optional[List[str]] = None, orchestrator: Optional[CommandOrchestrator] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    setup_logging(args.debug)
    previous_handler = signal.signal(signal.SIGTERM, _raise_terminated)
    try:
        if orchestrator is None:
            orchestrator = CommandOrchestrator(debug_mode=args.debug)
        execute(args, parser, orchestrator)
        return EXIT_OK
    except RepmanError as e:
        logger.error(f"❌ {e}")
        if e.output and args.debug:
            log_tool_failure(logger, e.output)
        return EXIT_FAILURE
    except (KeyboardInterrupt, Terminated):
        logger.error("❌ Interrupted")
        return EXIT_INTERRUPTED
    finally:
        signal.signal(signal.SIGTERM, previous_handler)


if __name__ == "__main__":
    sys.exit(main())
