"""
repman - custom Arch Linux package repository manager
"""

from .errors import (
    RepmanError,
    ConfigError,
    LockError,
    SyncError,
    DbError,
    ChrootError,
    SigningError,
    BuildError,
    ArchMismatch,
    ConfirmationDeclined,
    DependencyConflict,
    AurError,
)
from .common.config_loader import ConfigLoader, Repository
from .common.environment import RepmanPaths
from .common.shell_executor import ShellExecutor
from .build.build_pipeline import BuildFlags, BuildPipeline, BuildReport, BuildSource
from .orchestrator.command_orchestrator import CommandOrchestrator

__version__ = "0.4.0"

__all__ = [
    # Errors
    'RepmanError',
    'ConfigError',
    'LockError',
    'SyncError',
    'DbError',
    'ChrootError',
    'SigningError',
    'BuildError',
    'ArchMismatch',
    'ConfirmationDeclined',
    'DependencyConflict',
    'AurError',

    # Configuration
    'ConfigLoader',
    'Repository',
    'RepmanPaths',
    'ShellExecutor',

    # Build
    'BuildFlags',
    'BuildPipeline',
    'BuildReport',
    'BuildSource',

    # Orchestration
    'CommandOrchestrator',
]
