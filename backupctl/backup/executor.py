"""
Backup executor - orchestrates the complete backup workflow.

Workflow:
1. Check that tar and gzip are available
2. Dispatch to the strategy for the configured mode (full, project, incremental)
3. Validate sources and disk space, then create the archive
4. Verify the archive (if requested)
5. Apply the retention policy to the backup directory

Any fatal error aborts the run: verification and retention are skipped
and the result is marked as failed. Nothing is retried.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import List, Optional, Tuple

from backupctl import LOG_FORMAT, LOG_DATE_FORMAT
from backupctl.config import Config, RunConfig
from backupctl.errors import BackupError, CorruptArchive
from .archiver import Archiver, TarArchiver, get_archive_size
from .preconditions import FilesystemStats, PreconditionChecker
from .retention import RetentionManager
from .strategies import create_strategy
from .verify import Verifier


class RunState(Enum):
    INIT = 'init'
    DEPENDENCIES_CHECKED = 'dependencies_checked'
    MODE_DISPATCHED = 'mode_dispatched'
    ARCHIVE_COMPLETE = 'archive_complete'
    ABORTED = 'aborted'
    VERIFIED = 'verified'
    PRUNED = 'pruned'
    DONE = 'done'


@dataclass
class RunResult:
    """Outcome of one backup run."""

    status: str = 'running'
    state: RunState = RunState.INIT
    states: List[RunState] = field(default_factory=lambda: [RunState.INIT])
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    archive_path: Optional[Path] = None
    file_size_bytes: Optional[int] = None
    verified: Optional[bool] = None
    pruned: List[Tuple[Path, str]] = field(default_factory=list)
    error_message: Optional[str] = None
    logs: List[str] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.status == 'success'

    @property
    def exit_code(self) -> int:
        return 0 if self.succeeded else 1


class _RunLogCollector(logging.Handler):
    """Keeps the formatted log entries of a single run."""

    def __init__(self, entries: List[str]):
        super().__init__()
        self.entries = entries
        self.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT))

    def emit(self, record):
        self.entries.append(self.format(record))


class BackupExecutor:
    """
    Orchestrates the complete backup workflow for a RunConfig.
    """

    def __init__(
        self,
        config: RunConfig,
        archiver: Optional[Archiver] = None,
        stats: Optional[FilesystemStats] = None,
        logger: Optional[logging.Logger] = None,
        required_tools=None
    ):
        """
        Initialize backup executor.

        Args:
            config: RunConfig for this run
            archiver: Archiver implementation (default: TarArchiver)
            stats: FilesystemStats implementation (default: real filesystem)
            logger: Logging sink (default: the 'backupctl' logger)
            required_tools: Executables checked first (default: Config.REQUIRED_TOOLS)
        """
        self.config = config
        self.logger = logger or logging.getLogger('backupctl')
        self.archiver = archiver or TarArchiver(logger=self.logger)
        self.checker = PreconditionChecker(stats, self.logger)
        self.required_tools = tuple(required_tools if required_tools is not None else Config.REQUIRED_TOOLS)
        self.result = None

    def execute(self) -> RunResult:
        """
        Execute the backup run.

        Returns:
            RunResult with status 'success' or 'failed'
        """
        self.result = RunResult(started_at=datetime.now())
        collector = _RunLogCollector(self.result.logs)
        self.logger.addHandler(collector)

        try:
            self._execute_workflow()
            self.result.status = 'success'
            self._transition(RunState.DONE)
            self.logger.info("Backup run completed successfully")

        except BackupError as e:
            self.result.status = 'failed'
            self.result.error_message = str(e)
            self._transition(RunState.ABORTED)
            self.logger.error(f"Backup aborted: {e}")

        finally:
            self.result.completed_at = datetime.now()
            self.logger.removeHandler(collector)

        return self.result

    def _execute_workflow(self):
        """Execute the main backup workflow steps."""
        mode = self.config.mode.value
        if self.config.dry_run:
            self.logger.info(f"Dry run: {mode} backup, nothing will be written")

        # Step 1: Dependencies
        self.checker.check_dependencies(self.required_tools)
        self._transition(RunState.DEPENDENCIES_CHECKED)

        # Step 2: Strategy
        strategy = create_strategy(self.config, self.archiver, self.checker, self.logger)
        self._transition(RunState.MODE_DISPATCHED)

        # Step 3: Archive
        archive_path = strategy.run()
        self.result.archive_path = archive_path
        if archive_path is not None:
            self.result.file_size_bytes = get_archive_size(archive_path)
        self._transition(RunState.ARCHIVE_COMPLETE)

        # Step 4: Verify (never undoes the archive)
        if self.config.verify:
            if archive_path is None:
                self.logger.info("Dry run: skipping archive verification")
            else:
                self._verify(archive_path)

        # Step 5: Retention
        keep = [archive_path] if archive_path is not None else []
        self.result.pruned = RetentionManager(self.logger).prune(
            self.config.backup_dir,
            self.config.retention_days,
            dry_run=self.config.dry_run,
            keep=keep
        )
        self._transition(RunState.PRUNED)

    def _verify(self, archive_path: Path):
        try:
            Verifier(self.archiver, self.logger).verify(archive_path)
            self.result.verified = True
            self._transition(RunState.VERIFIED)
        except CorruptArchive as e:
            self.result.verified = False
            self.logger.error(f"{e} (archive left in place)")

    def _transition(self, state: RunState):
        self.result.state = state
        self.result.states.append(state)
        self.logger.debug(f"Run state: {state.value}")


def execute_backup(config: RunConfig, **kwargs) -> RunResult:
    """
    Execute a backup run for a RunConfig.

    Args:
        config: RunConfig to execute
        **kwargs: Passed to BackupExecutor (archiver, stats, logger, required_tools)

    Returns:
        RunResult with execution results
    """
    executor = BackupExecutor(config, **kwargs)
    return executor.execute()
