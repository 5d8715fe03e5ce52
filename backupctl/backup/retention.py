"""
Retention policy enforcement for backups.

Removes archives older than the configured number of days from the
backup directory. Cleanup is best effort: a file that cannot be deleted
is reported and the remaining candidates are still processed.
"""

import logging
from datetime import datetime, timedelta
from pathlib import Path
from typing import Iterable, List, Optional, Tuple

from backupctl import DRYRUN
from backupctl.errors import DeletionFailure
from .archiver import ARCHIVE_EXTENSION


DELETED = 'deleted'
WOULD_DELETE = 'would-delete'
FAILED = 'failed'


class RetentionManager:
    """
    Manages retention policy enforcement for a backup directory.

    Only *.tar.gz files directly inside the directory are considered;
    snapshot manifests and subdirectories are left alone.
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        """Initialize retention manager."""
        self.logger = logger or logging.getLogger('backupctl')

    def find_expired(self, backup_dir: Path, retention_days: int, keep: Iterable[Path] = ()) -> List[Path]:
        """
        List archives whose modification time is older than the cutoff.

        Args:
            backup_dir: Directory holding the archives
            retention_days: Age threshold in days
            keep: Archives never treated as expired

        Returns:
            Sorted list of archive paths
        """
        backup_dir = Path(backup_dir)
        if not backup_dir.is_dir():
            return []

        # Calculate cutoff date
        cutoff_date = datetime.now() - timedelta(days=retention_days)

        kept = {Path(p).absolute() for p in keep}
        expired = []
        for file_path in backup_dir.glob(f'*.{ARCHIVE_EXTENSION}'):
            if not file_path.is_file() or file_path.absolute() in kept:
                continue
            try:
                mtime = file_path.stat().st_mtime
            except FileNotFoundError:
                # Removed since the listing
                continue
            modified = datetime.fromtimestamp(mtime)
            if modified < cutoff_date:
                expired.append(file_path)

        return sorted(expired)

    def prune(
        self,
        backup_dir: Path,
        retention_days: int,
        dry_run: bool = False,
        keep: Iterable[Path] = ()
    ) -> List[Tuple[Path, str]]:
        """
        Delete (or report) archives older than retention_days.

        Args:
            backup_dir: Directory holding the archives
            retention_days: Age threshold in days
            dry_run: Report candidates without deleting them
            keep: Archives to leave alone (the one this run just created)

        Returns:
            List of (path, action) with action 'deleted', 'would-delete' or 'failed'
        """
        self.logger.info(f"Applying retention policy: {retention_days} days in {backup_dir}")

        results = []
        for file_path in self.find_expired(backup_dir, retention_days, keep):
            if dry_run:
                self.logger.log(DRYRUN, f"Would delete old backup {file_path}")
                results.append((file_path, WOULD_DELETE))
                continue

            try:
                self._delete(file_path)
                self.logger.info(f"Deleted old backup {file_path}")
                results.append((file_path, DELETED))
            except DeletionFailure as e:
                self.logger.error(str(e))
                results.append((file_path, FAILED))

        deleted = sum(1 for _, action in results if action == DELETED)
        failed = sum(1 for _, action in results if action == FAILED)
        if dry_run:
            self.logger.info(f"Retention check complete. Would delete: {len(results)}")
        else:
            self.logger.info(f"Retention cleanup complete. Deleted: {deleted}, Errors: {failed}")

        return results

    def _delete(self, file_path: Path):
        """
        Raises:
            DeletionFailure: If the file cannot be removed
        """
        try:
            file_path.unlink()
        except FileNotFoundError:
            # Already gone, e.g. removed by a concurrent run
            pass
        except OSError as e:
            raise DeletionFailure(file_path, e.strerror or str(e))

