"""
Command state management

Mutating commands walk IDLE -> LOCKING -> CONFIG_RESOLVED -> SYNCED_IN ->
EXECUTING -> SYNCED_OUT -> UNLOCKING -> IDLE. A failure in any state jumps to
UNLOCKING (when the lock is held) and then IDLE. Read-only commands skip the
lock states.
"""

import enum
import logging
from typing import List

logger = logging.getLogger(__name__)


class CommandState(enum.Enum):
    IDLE = "idle"
    LOCKING = "locking"
    CONFIG_RESOLVED = "config-resolved"
    SYNCED_IN = "synced-in"
    EXECUTING = "executing"
    SYNCED_OUT = "synced-out"
    UNLOCKING = "unlocking"


TRANSITIONS = {
    CommandState.IDLE: {CommandState.LOCKING, CommandState.CONFIG_RESOLVED},
    CommandState.LOCKING: {CommandState.CONFIG_RESOLVED},
    CommandState.CONFIG_RESOLVED: {CommandState.SYNCED_IN},
    CommandState.SYNCED_IN: {CommandState.EXECUTING},
    CommandState.EXECUTING: {CommandState.SYNCED_OUT, CommandState.IDLE},
    CommandState.SYNCED_OUT: {CommandState.UNLOCKING},
    CommandState.UNLOCKING: {CommandState.IDLE},
}


class InvalidTransition(RuntimeError):
    pass


class CommandStateMachine:
    """Tracks and validates the state of one command run"""

    def __init__(self, command: str, repo_name: str = ""):
        self.command = command
        self.repo_name = repo_name
        self.state = CommandState.IDLE
        self.history: List[CommandState] = [CommandState.IDLE]
        self.failed = False

    def _set(self, new_state: CommandState):
        logger.debug(f"STATE command={self.command} repo={self.repo_name} "
                     f"from={self.state.value} to={new_state.value}")
        self.state = new_state
        self.history.append(new_state)

    def transition(self, new_state: CommandState):
        if new_state not in TRANSITIONS[self.state]:
            raise InvalidTransition(f"{self.command}: {self.state.value} -> {new_state.value} is not allowed")
        self._set(new_state)

    def begin_unlock(self):
        """Enter UNLOCKING; from anything but SYNCED_OUT this is an abort"""
        if self.state is CommandState.UNLOCKING:
            return
        if self.state is not CommandState.SYNCED_OUT:
            self.failed = True
            logger.warning(f"STATE_ABORTED command={self.command} repo={self.repo_name} at={self.state.value}")
        self._set(CommandState.UNLOCKING)

    def finish(self):
        """Return to IDLE on every exit path"""
        if self.state is CommandState.IDLE:
            return
        if self.state not in (CommandState.UNLOCKING, CommandState.EXECUTING):
            self.failed = True
        self._set(CommandState.IDLE)
