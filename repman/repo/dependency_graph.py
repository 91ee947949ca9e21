"""
Dependency graph - which entries of a repository need which other entries
"""

import re
import logging
from typing import Dict, Iterable, Set

from repman.repo.database_manager import DbEntry

logger = logging.getLogger(__name__)

_CONSTRAINT_RE = re.compile(r"(<=|>=|=|<|>).*$")


def strip_constraint(dependency: str) -> str:
    """'foo>=1.2' -> 'foo'; also drops ': description' of optdepends style"""
    name = dependency.split(":", 1)[0].strip()
    return _CONSTRAINT_RE.sub("", name).strip()


def build_graph(entries: Dict[str, DbEntry]) -> Dict[str, Set[str]]:
    """Map entry name -> names of entries that depend on it

    Only dependencies on entries of the same repository are kept; entries
    nobody depends on are absent.
    """
    required_by: Dict[str, Set[str]] = {}
    for entry in entries.values():
        for dependency in entry.all_dependencies():
            dep_name = strip_constraint(dependency)
            if dep_name == entry.name or dep_name not in entries:
                continue
            required_by.setdefault(dep_name, set()).add(entry.name)
    logger.debug(f"DEPENDENCY_GRAPH entries={len(entries)} required={len(required_by)}")
    return required_by


def dependents_outside(graph: Dict[str, Set[str]], targets: Iterable[str]) -> Dict[str, Set[str]]:
    """For each target, the dependents that are not targets themselves"""
    target_set = set(targets)
    result = {}
    for target in sorted(target_set):
        kept = graph.get(target, set()) - target_set
        if kept:
            result[target] = kept
    return result
