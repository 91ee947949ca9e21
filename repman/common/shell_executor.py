"""
Shell Executor Module - Runs external tools and returns structured results

External tools (makepkg, repo-add, gpg, rsync, ...) never raise for control
flow here: callers get a ``subprocess.CompletedProcess`` and translate a
nonzero exit code into the matching repman error.
"""

import os
import shlex
import shutil
import subprocess
import logging
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union

logger = logging.getLogger(__name__)

Command = Union[str, Sequence[str]]


def format_command(cmd: Command) -> str:
    if isinstance(cmd, str):
        return cmd
    return " ".join(shlex.quote(str(part)) for part in cmd)


class ShellExecutor:
    """Runs commands with logging, optional environment overrides and timeout"""

    def __init__(self, debug_mode: bool = False):
        self.debug_mode = debug_mode

    def run_command(self, cmd: Command, cwd=None, capture: bool = True, check: bool = False,
                    log_cmd: bool = False, timeout: Optional[int] = None,
                    extra_env: Optional[Dict[str, str]] = None,
                    unset_env: Optional[List[str]] = None,
                    input_text: Optional[str] = None) -> subprocess.CompletedProcess:
        """Run command and return the completed process

        ``cmd`` is an argument list; a plain string is run through the shell.
        With ``check`` a nonzero exit raises ``subprocess.CalledProcessError``.
        """
        printable = format_command(cmd)
        verbose = log_cmd or self.debug_mode
        if verbose:
            self._report("RUNNING COMMAND", printable)

        if cwd is None:
            cwd = Path.cwd()

        env = os.environ.copy()
        env['LC_ALL'] = 'C'
        if extra_env:
            env.update(extra_env)
        for name in unset_env or []:
            env.pop(name, None)

        try:
            result = subprocess.run(
                [str(part) for part in cmd] if not isinstance(cmd, str) else cmd,
                cwd=str(cwd),
                shell=isinstance(cmd, str),
                capture_output=capture,
                text=True,
                check=False,
                env=env,
                timeout=timeout,
                input=input_text,
            )
        except subprocess.TimeoutExpired:
            error_msg = f"⚠️ Command timed out after {timeout} seconds: {printable}"
            if self.debug_mode:
                print(f"❌ [SHELL DEBUG] {error_msg}", flush=True)
            logger.error(error_msg)
            raise
        except FileNotFoundError as e:
            # Missing binary behaves like a failed command (exit 127 as in sh)
            logger.error(f"❌ Command not found: {printable}")
            result = subprocess.CompletedProcess(cmd, 127, "", str(e))

        if verbose:
            for label, text in (("STDOUT", result.stdout), ("STDERR", result.stderr)):
                if text:
                    self._report(label, text)
            self._report("EXIT CODE", str(result.returncode))

        if result.returncode != 0 and self.debug_mode:
            print(f"❌ [SHELL DEBUG] COMMAND FAILED: {printable}", flush=True)

        if check and result.returncode != 0:
            raise subprocess.CalledProcessError(
                result.returncode, cmd, result.stdout, result.stderr
            )
        return result

    def _report(self, label: str, text: str):
        """Echo to the console in debug mode, else log the tail of ``text``"""
        if self.debug_mode:
            print(f"🔧 [SHELL DEBUG] {label}: {text}", flush=True)
        else:
            logger.info(f"{label}: {text[-500:]}")

    def which(self, tool: str) -> bool:
        """True if ``tool`` is found on PATH"""
        return shutil.which(tool) is not None


def tool_output(result: subprocess.CompletedProcess) -> str:
    """Combined output of a finished command, stderr last"""
    parts = [p.strip() for p in (result.stdout, result.stderr) if p and p.strip()]
    return "\n".join(parts)
