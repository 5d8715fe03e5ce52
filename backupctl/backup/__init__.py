"""
Backup module for backupctl.

This module handles the core backup functionality including:
- Precondition checks (tools, permissions, disk space)
- Archive creation through tar and gzip
- Full, project and incremental strategies
- Archive verification
- Retention policy enforcement
- Execution orchestration
"""

from .executor import BackupExecutor, RunResult, RunState, execute_backup
from .preconditions import FilesystemStats, PreconditionChecker
from .archiver import Archiver, ArchiveJob, TarArchiver
from .strategies import FullBackup, ProjectBackup, IncrementalBackup, create_strategy
from .verify import Verifier
from .retention import RetentionManager

__all__ = [
    'BackupExecutor',
    'RunResult',
    'RunState',
    'execute_backup',
    'FilesystemStats',
    'PreconditionChecker',
    'Archiver',
    'ArchiveJob',
    'TarArchiver',
    'FullBackup',
    'ProjectBackup',
    'IncrementalBackup',
    'create_strategy',
    'Verifier',
    'RetentionManager'
]
