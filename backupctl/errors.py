"""Error hierarchy for backup operations."""
from __future__ import annotations

from pathlib import Path
from typing import Iterable, Optional, Sequence

from backupctl.utils.sizes import format_size


class BackupError(RuntimeError):
    """Base exception for backup related failures."""

    # Fatal errors abort the run before verification and pruning
    fatal = True


class PreconditionError(BackupError):
    """Raised when a check fails before anything is archived."""


class MissingDependency(PreconditionError):
    def __init__(self, tools: Iterable[str]) -> None:
        self.tools = sorted(tools)
        super().__init__(f"Missing required tools: {', '.join(self.tools)}")


class PermissionDenied(PreconditionError):
    def __init__(self, paths: Iterable[Path]) -> None:
        self.paths = [Path(p) for p in paths]
        joined = ', '.join(str(p) for p in self.paths)
        super().__init__(f"Permission denied reading: {joined}")


class InsufficientSpace(PreconditionError):
    def __init__(self, required: int, available: int, destination: Optional[Path] = None) -> None:
        self.required = required
        self.available = available
        self.destination = destination
        where = f" at {destination}" if destination is not None else ""
        super().__init__(
            f"Insufficient disk space{where}: "
            f"required {format_size(required)}, available {format_size(available)}"
        )


class SourceNotFound(PreconditionError):
    def __init__(self, path: Path, reason: str = "does not exist") -> None:
        self.path = Path(path)
        super().__init__(f"Source directory {reason}: {path}")


class MissingSnapshot(PreconditionError):
    def __init__(self, label: str, manifest_path: Path, target: Optional[Path] = None) -> None:
        self.label = label
        self.manifest_path = Path(manifest_path)
        hint = f"--project {target}" if target is not None else "a project backup"
        super().__init__(
            f"No snapshot manifest for '{label}' at {manifest_path}. "
            f"Run {hint} first to record a baseline."
        )


class ArchiveToolFailure(BackupError):
    """Raised when tar or gzip cannot be run or exits non-zero."""

    def __init__(self, command: Sequence[str], returncode: Optional[int], stderr: str = "") -> None:
        self.command = list(command)
        self.returncode = returncode
        self.stderr = stderr.strip()
        message = f"{' '.join(self.command)} failed"
        if returncode is not None:
            message += f" (exit code {returncode})"
        if self.stderr:
            message += f": {self.stderr}"
        super().__init__(message)


class DestinationUnavailable(BackupError):
    """Raised when the backup directory or an output file cannot be created."""

    def __init__(self, path: Path, reason: str) -> None:
        self.path = Path(path)
        super().__init__(f"Cannot write to {path}: {reason}")


class CorruptArchive(BackupError):
    """Raised when an archive cannot be listed."""

    fatal = False

    def __init__(self, archive_path: Path, reason: str) -> None:
        self.archive_path = Path(archive_path)
        super().__init__(f"Archive verification failed for {archive_path}: {reason}")


class DeletionFailure(BackupError):
    """Raised when pruning cannot remove an expired archive."""

    fatal = False

    def __init__(self, path: Path, reason: str) -> None:
        self.path = Path(path)
        super().__init__(f"Failed to delete {path}: {reason}")


class InvalidArgument(BackupError):
    """Raised for unusable run parameters."""


__all__ = [
    "BackupError",
    "PreconditionError",
    "MissingDependency",
    "PermissionDenied",
    "InsufficientSpace",
    "SourceNotFound",
    "MissingSnapshot",
    "ArchiveToolFailure",
    "DestinationUnavailable",
    "CorruptArchive",
    "DeletionFailure",
    "InvalidArgument",
]
