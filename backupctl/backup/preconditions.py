"""
Precondition checks run before any archive is written.

Supports:
- FilesystemStats: recursive source size and free space at the destination
- PreconditionChecker: dependency, permission, existence and disk space checks
"""

import os
import shutil
import logging
from pathlib import Path
from typing import Iterable, List, Optional

from backupctl.errors import (
    MissingDependency,
    PermissionDenied,
    InsufficientSpace,
    SourceNotFound,
)
from backupctl.utils.sizes import format_size


class FilesystemStats:
    """
    Size queries against the local filesystem.

    Tests substitute an object with the same two methods to return
    fixture values.
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger('backupctl')

    def recursive_size(self, path: Path) -> int:
        """
        Sum the sizes of every file and directory entry under a path.

        Symlinks are counted by their own size and not followed. Subtrees
        that cannot be read are skipped and reported at debug level.

        Args:
            path: File or directory

        Returns:
            Size in bytes (0 if the path does not exist)
        """
        path = Path(path)
        if not os.path.lexists(path):
            return 0
        if not path.is_dir() or path.is_symlink():
            return path.lstat().st_size

        skipped = []
        total = path.lstat().st_size
        for dirpath, dirnames, filenames in os.walk(path, onerror=skipped.append):
            for name in dirnames + filenames:
                try:
                    total += os.lstat(os.path.join(dirpath, name)).st_size
                except OSError as e:
                    skipped.append(e)

        if skipped:
            self.logger.debug(f"Skipped {len(skipped)} unreadable entries while sizing {path}")
        return total

    def free_bytes(self, path: Path) -> int:
        """
        Free bytes on the filesystem holding a path.

        If the path does not exist yet (first run), its nearest existing
        ancestor is queried instead.
        """
        probe = Path(path).absolute()
        while not probe.exists() and probe != probe.parent:
            probe = probe.parent
        return shutil.disk_usage(probe).free


class PreconditionChecker:
    """
    Validates the environment for a backup run.

    Every check only reads and logs; a failing check raises an error from
    backupctl.errors.
    """

    def __init__(self, stats: Optional[FilesystemStats] = None, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger('backupctl')
        self.stats = stats or FilesystemStats(self.logger)

    def check_dependencies(self, tools: Iterable[str]):
        """
        Make sure every external tool is on PATH.

        Raises:
            MissingDependency: Naming every missing tool
        """
        missing = [tool for tool in tools if shutil.which(tool) is None]
        if missing:
            raise MissingDependency(missing)
        self.logger.debug(f"Dependencies available: {', '.join(tools)}")

    def check_permissions(self, path: Path):
        """
        Make sure an existing path is readable.

        A path that does not exist passes; callers check existence first
        where it matters.

        Raises:
            PermissionDenied: If the path exists but cannot be read
        """
        path = Path(path)
        if os.path.lexists(path) and not os.access(path, os.R_OK):
            raise PermissionDenied([path])

    def check_permissions_all(self, paths: Iterable[Path]):
        """
        Check every path and report all unreadable ones together.

        Raises:
            PermissionDenied: Listing every unreadable path
        """
        denied: List[Path] = []
        for path in paths:
            try:
                self.check_permissions(path)
            except PermissionDenied as e:
                denied.extend(e.paths)
        if denied:
            raise PermissionDenied(denied)

    def check_source_exists(self, path: Path):
        """
        Raises:
            SourceNotFound: If the path is missing or not a directory
        """
        path = Path(path)
        if not path.exists():
            raise SourceNotFound(path)
        if not path.is_dir():
            raise SourceNotFound(path, reason="is not a directory")

    def check_disk_space(self, source_paths: Iterable[Path], destination_dir: Path) -> int:
        """
        Compare the combined source size with the free space at the destination.

        The estimate ignores compression, so it errs on the side of refusing.

        Args:
            source_paths: Paths that will be archived
            destination_dir: Backup directory (may not exist yet)

        Returns:
            Required bytes

        Raises:
            InsufficientSpace: If required bytes exceed available bytes
        """
        required = sum(self.stats.recursive_size(Path(p)) for p in source_paths)
        available = self.stats.free_bytes(Path(destination_dir))

        self.logger.info(
            f"Disk space: required {format_size(required)}, "
            f"available {format_size(available)} at {destination_dir}"
        )

        if required > available:
            raise InsufficientSpace(required, available, Path(destination_dir))
        return required
