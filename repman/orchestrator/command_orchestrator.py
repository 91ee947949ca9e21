"""
Command Orchestrator - runs one repman command against one repository

Every mutating command holds the repository lock and a scratch directory
for the whole run; both are released through one ExitStack on every exit
path.
"""

import logging
from contextlib import ExitStack
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Set

from repman import config
from repman.errors import BuildError, ConfigError, ConfirmationDeclined, SigningError
from repman.aur_client import AURClient
from repman.build.build_pipeline import BuildFlags, BuildPipeline, BuildReport, BuildSource
from repman.build.chroot_manager import ChrootManager
from repman.common.config_loader import ConfigLoader, Repository
from repman.common.config_resolver import ConfigKind, gpg_key, pkgext, resolve
from repman.common.confirmer import AutoConfirmer, Confirmer, InteractiveConfirmer
from repman.common.environment import RepmanPaths, ScratchDir, system_arch
from repman.common.lock_manager import LockManager
from repman.common.shell_executor import ShellExecutor
from repman.gpg.gpg_handler import GPGHandler
from repman.orchestrator.state import CommandState, CommandStateMachine
from repman.repo.consistency_manager import ConsistencyManager
from repman.repo.database_manager import DatabaseManager
from repman.repo.dependency_graph import build_graph
from repman.repo.update_manager import UpdateManager
from repman.storage import StorageSync

logger = logging.getLogger(__name__)


@dataclass
class RunContext:
    """Everything an operation needs once the repository is locked and pulled"""

    repo: Repository
    scratch: ScratchDir
    db: DatabaseManager
    consistency: ConsistencyManager
    makepkg_conf: Optional[Path]
    gpg_key: Optional[str]


@dataclass
class Outcome:
    changed: Set[Path] = field(default_factory=set)
    report: Optional[BuildReport] = None
    sign_failures: List[str] = field(default_factory=list)


class CommandOrchestrator:
    def __init__(self, paths: Optional[RepmanPaths] = None,
                 shell_executor: Optional[ShellExecutor] = None,
                 aur_client: Optional[AURClient] = None,
                 debug_mode: bool = False, arch: Optional[str] = None,
                 input_func=input):
        self.paths = paths or RepmanPaths.from_environment()
        self.debug_mode = debug_mode
        self.shell_executor = shell_executor or ShellExecutor(debug_mode)
        self.aur_client = aur_client or AURClient()
        self.arch = arch or system_arch()
        self.config_loader = ConfigLoader(self.paths, self.arch)
        self.lock_manager = LockManager(self.paths)
        self.storage = StorageSync(self.paths, self.shell_executor)
        self.input_func = input_func
        self.last_state_machine: Optional[CommandStateMachine] = None

    def confirmer(self, noconfirm: bool) -> Confirmer:
        if noconfirm:
            return AutoConfirmer()
        return InteractiveConfirmer(self.input_func)

    # ------------------------------------------------------------ plumbing

    def _makepkg_conf(self, repo: Repository) -> Optional[Path]:
        try:
            return resolve(self.paths.config_dir, repo.name, ConfigKind.MAKEPKG_CONF)
        except ConfigError:
            return None

    def _require_makepkg_conf(self, ctx: RunContext) -> Path:
        if ctx.makepkg_conf is None:
            raise ConfigError(f"No makepkg.conf found for repository '{ctx.repo.name}'")
        return ctx.makepkg_conf

    def _check_tools(self, repo: Repository, groups: Iterable[str], sync: bool):
        """Fail before any work if an external tool the command needs is missing"""
        needed = []
        for group in groups:
            needed.extend(config.REQUIRED_TOOLS[group])
        if sync:
            backend_tool = self.storage.backend_for(repo).tool
            if backend_tool:
                needed.append(backend_tool)
        missing = [tool for tool in needed if not self.shell_executor.which(tool)]
        if missing:
            raise ConfigError(f"Required tools not found on PATH: {', '.join(missing)}")

    def _run_mutating(self, command: str, repo_name: str,
                      operation: Callable[[RunContext], Outcome], sync: bool = True,
                      tools: Iterable[str] = ()) -> Outcome:
        machine = CommandStateMachine(command, repo_name)
        self.last_state_machine = machine
        logger.info(f"🚀 {command} repo={repo_name}")
        try:
            with ExitStack() as stack:
                machine.transition(CommandState.LOCKING)
                stack.enter_context(self.lock_manager.acquire(repo_name))
                stack.callback(machine.begin_unlock)

                repo = self.config_loader.get_repository(repo_name)
                makepkg_conf = self._makepkg_conf(repo)
                key = gpg_key(makepkg_conf)
                self._check_tools(repo, tools, sync)
                machine.transition(CommandState.CONFIG_RESOLVED)

                scratch = ScratchDir(self.paths).create()
                stack.callback(scratch.close)

                if sync:
                    self.storage.pull(repo)
                machine.transition(CommandState.SYNCED_IN)

                db = DatabaseManager(repo, self.paths, self.shell_executor, key,
                                     pkgext(makepkg_conf) if makepkg_conf else config.DEFAULT_PKGEXT)
                ctx = RunContext(repo=repo, scratch=scratch, db=db,
                                 consistency=ConsistencyManager(db, self.debug_mode),
                                 makepkg_conf=makepkg_conf, gpg_key=key)
                machine.transition(CommandState.EXECUTING)
                outcome = operation(ctx)

                if sync:
                    self.storage.push(repo, outcome.changed)
                machine.transition(CommandState.SYNCED_OUT)
        except BaseException:
            machine.failed = True
            raise
        finally:
            machine.finish()

        if outcome.report is not None and not outcome.report.ok:
            failed = ", ".join(sorted(outcome.report.failures))
            raise BuildError(f"{len(outcome.report.failures)} source(s) failed to build: {failed}")
        if outcome.sign_failures:
            raise SigningError(f"Could not sign {len(outcome.sign_failures)} package(s): "
                               f"{', '.join(outcome.sign_failures)}")
        logger.info(f"✅ {command} finished for {repo_name}")
        return outcome

    def _pipeline(self, ctx: RunContext) -> BuildPipeline:
        return BuildPipeline(
            ctx.repo, self.paths, ctx.scratch,
            makepkg_conf=self._require_makepkg_conf(ctx),
            gpg_key=ctx.gpg_key,
            shell_executor=self.shell_executor,
            chroot_manager=ChrootManager(self.paths, self.shell_executor, ctx.scratch.path),
            arch=self.arch,
        )

    @staticmethod
    def _build_tools(flags: BuildFlags) -> List[str]:
        groups = ["build", "repo"]
        if flags.use_chroot:
            groups.append("chroot")
        if flags.sign:
            groups.append("sign")
        return groups

    def _clean_chroot(self, ctx: RunContext, flags: BuildFlags):
        if flags.clean_chroot and flags.use_chroot:
            ChrootManager(self.paths, self.shell_executor, ctx.scratch.path).destroy(ctx.repo)

    # ------------------------------------------------------------ commands

    def add(self, repo_name: str, aur_names: List[str], directories: List[str],
            flags: BuildFlags) -> Outcome:
        if not aur_names and not directories:
            logger.info("ℹ️ Nothing to add")
            return Outcome()

        def operation(ctx: RunContext) -> Outcome:
            if flags.sign and not ctx.gpg_key:
                raise SigningError("New packages shall be signed but no GPG key is set (GPGKEY)")

            report = BuildReport()
            sources = [BuildSource.local(d) for d in directories]
            if aur_names:
                found = self.aur_client.get_multiple_packages(list(aur_names))
                for name in aur_names:
                    info = found.get(name)
                    if info is None:
                        logger.error(f"❌ Package {name} not found in the AUR")
                        report.failures[name] = "not found in the AUR"
                        continue
                    source = BuildSource.aur(info.package_base)
                    if source not in sources:
                        sources.append(source)

            changed: Set[Path] = set()
            if ctx.db.ensure_db():
                changed.add(ctx.db.db_path)

            built = self._pipeline(ctx).build(sources, flags)
            report.artifacts.extend(built.artifacts)
            report.failures.update(built.failures)

            changed |= ctx.consistency.add(report.artifacts)
            self._clean_chroot(ctx, flags)
            return Outcome(changed=changed, report=report)

        return self._run_mutating("add", repo_name, operation, tools=self._build_tools(flags))

    def remove(self, repo_name: str, names: List[str], noconfirm: bool = False) -> Outcome:
        confirmer = self.confirmer(noconfirm)

        def operation(ctx: RunContext) -> Outcome:
            if not ctx.db.exists():
                logger.info(f"ℹ️ Repository {repo_name} has no DB; nothing to remove")
                return Outcome()
            return Outcome(changed=ctx.consistency.remove(names, confirmer))

        return self._run_mutating("rm", repo_name, operation, tools=["repo"])

    def update(self, repo_name: str, names: Optional[List[str]], flags: BuildFlags,
               noconfirm: bool = False) -> Outcome:
        confirmer = self.confirmer(noconfirm)

        def operation(ctx: RunContext) -> Outcome:
            if not ctx.db.exists():
                logger.info(f"ℹ️ Repository {repo_name} has no DB; nothing to update")
                return Outcome()
            manager = UpdateManager(ctx.consistency, self.aur_client, self.config_loader.vcs_suffixes())
            report, changed = manager.update(names, flags, confirmer, lambda: self._pipeline(ctx))
            if report.artifacts or report.failures:
                self._clean_chroot(ctx, flags)
            return Outcome(changed=changed, report=report)

        return self._run_mutating("update", repo_name, operation, tools=self._build_tools(flags))

    def sign(self, repo_name: str, names: Optional[List[str]]) -> Outcome:
        def operation(ctx: RunContext) -> Outcome:
            gpg = GPGHandler(ctx.gpg_key, self.shell_executor)
            if not gpg.is_ready():
                raise SigningError("Cannot sign: no GPG key is set (GPGKEY or makepkg.conf)")
            result = ctx.consistency.sign(names, gpg)
            return Outcome(changed=result.changed, sign_failures=result.failures)

        return self._run_mutating("sign", repo_name, operation, tools=["repo", "sign"])

    def cleanup(self, repo_name: str) -> Outcome:
        return self._run_mutating("cleanup", repo_name,
                                  lambda ctx: Outcome(changed=ctx.consistency.cleanup()),
                                  tools=["repo"])

    def clear(self, repo_name: str, cache: bool = False, chroot: bool = False) -> Outcome:
        if not cache and not chroot:
            raise ConfigError("clear needs --cache and/or --chroot")

        def operation(ctx: RunContext) -> Outcome:
            if cache:
                self.storage.clear_cache(ctx.repo)
            if chroot:
                ChrootManager(self.paths, self.shell_executor, ctx.scratch.path).destroy(ctx.repo)
            return Outcome()

        return self._run_mutating("clear", repo_name, operation, sync=False)

    def mkchroot(self, repo_name: str, noconfirm: bool = False) -> Outcome:
        confirmer = self.confirmer(noconfirm)

        def operation(ctx: RunContext) -> Outcome:
            chroots = ChrootManager(self.paths, self.shell_executor, ctx.scratch.path)
            if chroots.exists(ctx.repo):
                if not confirmer.confirm(
                        f"A chroot for repository {repo_name} exists already. It is now being deleted. OK?",
                        default=True):
                    raise ConfirmationDeclined()
            changed = set()
            if ctx.db.ensure_db():
                changed.add(ctx.db.db_path)
            chroots.create(ctx.repo)
            return Outcome(changed=changed)

        return self._run_mutating("mkchroot", repo_name, operation, tools=["chroot", "repo"])

    # ----------------------------------------------------------- read-only

    def list_packages(self, repo_name: str) -> List[str]:
        """Lines of the ``ls`` listing; does not lock

        A remote repository is pulled into the scratch directory of this
        process, never into the shared cache a locked command may be using.
        """
        machine = CommandStateMachine("ls", repo_name)
        self.last_state_machine = machine
        scratch = None
        try:
            repo = self.config_loader.get_repository(repo_name)
            machine.transition(CommandState.CONFIG_RESOLVED)
            if repo.is_local:
                local_dir = self.storage.pull(repo)
            else:
                scratch = ScratchDir(self.paths).create()
                local_dir = self.storage.pull(repo, scratch.listing_dir)
            machine.transition(CommandState.SYNCED_IN)
            machine.transition(CommandState.EXECUTING)

            db = DatabaseManager(repo, self.paths, self.shell_executor, local_dir=local_dir)
            if not db.exists():
                return []
            entries = db.entries()
            graph = build_graph(entries)
            lines = [f"{'s' if db.is_db_signed() else '-'}  [{repo.name}]"]
            name_width = max((len(e.name) for e in entries.values()), default=0)
            arch_width = max((len(e.arch) for e in entries.values()), default=0)
            for name in sorted(entries):
                entry = entries[name]
                lines.append(
                    f"{'s' if db.is_entry_signed(entry) else '-'}"
                    f"{'d' if name in graph else '-'} "
                    f"{entry.arch:<{arch_width}} {entry.name:<{name_width}} {entry.version}"
                )
            return lines
        except BaseException:
            machine.failed = True
            raise
        finally:
            if scratch is not None:
                scratch.close()
            machine.finish()

    def list_repositories(self) -> List[str]:
        return sorted(self.config_loader.load_repositories())

