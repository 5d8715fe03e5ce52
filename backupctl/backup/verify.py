"""Verify freshly created archives."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

from backupctl.errors import ArchiveToolFailure, CorruptArchive
from .archiver import Archiver


class Verifier:
    """Checks that an archive's table of contents can be read.

    A failed check is only reported. The archive stays on disk.
    """

    def __init__(self, archiver: Archiver, logger: Optional[logging.Logger] = None) -> None:
        self.archiver = archiver
        self.logger = logger or logging.getLogger("backupctl")

    def verify(self, archive_path: Path) -> List[str]:
        archive_path = Path(archive_path)
        self.logger.info(f"Verifying archive {archive_path}")

        if not archive_path.is_file():
            raise CorruptArchive(archive_path, "file not found")

        try:
            members = self.archiver.list_contents(archive_path)
        except ArchiveToolFailure as exc:
            raise CorruptArchive(archive_path, exc.stderr or str(exc)) from exc

        self.logger.info(f"Archive verified: {len(members)} entries readable")
        return members


__all__ = ["Verifier"]
