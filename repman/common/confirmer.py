"""
Confirmation capability used before destructive or surprising actions
"""

import logging

logger = logging.getLogger(__name__)


class Confirmer:
    def confirm(self, question: str, default: bool) -> bool:
        raise NotImplementedError


class InteractiveConfirmer(Confirmer):
    """Asks on stdin; empty answer or EOF selects the default"""

    def __init__(self, input_func=input):
        self._input = input_func

    def confirm(self, question: str, default: bool) -> bool:
        hint = "[Y/n]" if default else "[y/N]"
        while True:
            try:
                answer = self._input(f":: {question} {hint} ").strip().lower()
            except EOFError:
                return default
            if not answer:
                return default
            if answer in ("y", "yes"):
                return True
            if answer in ("n", "no"):
                return False


class AutoConfirmer(Confirmer):
    """--noconfirm: every question is answered yes"""

    def confirm(self, question: str, default: bool) -> bool:
        logger.info(f"{question} [auto-confirmed]")
        return True
