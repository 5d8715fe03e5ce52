"""
Archive creation through the system tar and gzip binaries.

Archives are always gzip compressed tarballs (.tar.gz). Incremental runs
use GNU tar's --listed-incremental snapshot files; the snapshot format
belongs to tar and is never parsed here.
"""

import os
import shutil
import logging
import subprocess
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from backupctl.errors import ArchiveToolFailure


ARCHIVE_EXTENSION = 'tar.gz'
TIMESTAMP_FORMAT = '%Y%m%d_%H%M%S'
INCREMENTAL_MARKER = 'incr'


@dataclass
class ArchiveJob:
    """Everything needed to produce one archive file."""

    label: str
    sources: List[Path]
    archive_path: Path
    compression_level: int = 6
    exclude_patterns: Tuple[str, ...] = ()
    snapshot_path: Optional[Path] = None
    incremental: bool = False

    @property
    def filename(self) -> str:
        return self.archive_path.name


class Archiver(ABC):
    """Capability used by the backup strategies to create and read archives."""

    @abstractmethod
    def create_full(self, job: ArchiveJob) -> Path:
        """Create a non-incremental archive (recording job.snapshot_path if set)."""

    @abstractmethod
    def create_incremental(self, job: ArchiveJob) -> Path:
        """Create an archive of changes since job.snapshot_path and update it."""

    @abstractmethod
    def list_contents(self, archive_path: Path) -> List[str]:
        """List member names without extracting."""


class TarArchiver(Archiver):
    """
    Archiver backed by `tar -c -f - ... | gzip -N > archive`.

    tar and gzip run as two processes connected by a pipe, so the
    compression level is passed straight to gzip.
    """

    def __init__(
        self,
        tar_bin: str = 'tar',
        gzip_bin: str = 'gzip',
        checkpoint_records: int = 10000,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize tar archiver.

        Args:
            tar_bin: tar executable (GNU tar for incremental support)
            gzip_bin: gzip executable
            checkpoint_records: Emit a progress line every N tar records (0 disables)
            logger: Logger for progress and diagnostics
        """
        self.tar_bin = tar_bin
        self.gzip_bin = gzip_bin
        self.checkpoint_records = checkpoint_records
        self.logger = logger or logging.getLogger('backupctl')

    def create_full(self, job: ArchiveJob) -> Path:
        return self._create(job)

    def create_incremental(self, job: ArchiveJob) -> Path:
        if job.snapshot_path is None:
            raise ValueError("Incremental archive requires a snapshot path")
        return self._create(job)

    def list_contents(self, archive_path: Path) -> List[str]:
        """
        List archive members with `tar -tzf`.

        Raises:
            ArchiveToolFailure: If tar cannot read the archive
        """
        cmd = [self.tar_bin, '-tzf', str(archive_path)]
        try:
            result = subprocess.run(cmd, stdout=subprocess.PIPE, stderr=subprocess.PIPE)
        except OSError as e:
            raise ArchiveToolFailure(cmd, None, str(e))

        if result.returncode != 0:
            raise ArchiveToolFailure(cmd, result.returncode, result.stderr.decode(errors='replace'))

        return [line for line in result.stdout.decode(errors='replace').splitlines() if line]

    def build_tar_command(self, job: ArchiveJob) -> List[str]:
        """
        Build the tar half of the pipeline.

        Each source is added relative to its parent (`-C parent name`) so
        archives do not carry absolute paths.
        """
        cmd = [self.tar_bin, '-c', '-f', '-']

        if self.checkpoint_records:
            cmd.append(f'--checkpoint={self.checkpoint_records}')
            cmd.append('--checkpoint-action=echo')

        if job.snapshot_path is not None:
            cmd.append(f'--listed-incremental={job.snapshot_path}')

        for pattern in job.exclude_patterns:
            cmd.extend(['--exclude', pattern])

        for source in job.sources:
            source = Path(source).absolute()
            cmd.extend(['-C', str(source.parent), source.name or '.'])

        return cmd

    def build_compress_command(self, job: ArchiveJob) -> List[str]:
        return [self.gzip_bin, f'-{job.compression_level}']

    def _create(self, job: ArchiveJob) -> Path:
        tar_cmd = self.build_tar_command(job)
        compress_cmd = self.build_compress_command(job)
        archive_path = Path(job.archive_path)

        self.logger.debug(f"Running pipeline: {' '.join(tar_cmd)} | {' '.join(compress_cmd)} > {archive_path}")

        try:
            self._run_pipeline(tar_cmd, compress_cmd, archive_path)
        except ArchiveToolFailure:
            self._remove_partial(archive_path)
            raise

        return archive_path

    def _run_pipeline(self, tar_cmd: Sequence[str], compress_cmd: Sequence[str], archive_path: Path):
        try:
            out_f = open(archive_path, 'wb')
        except OSError as e:
            raise ArchiveToolFailure([*compress_cmd, '>', str(archive_path)], None, str(e))

        with out_f:
            try:
                tar_proc = subprocess.Popen(tar_cmd, stdout=subprocess.PIPE, stderr=subprocess.PIPE)
            except OSError as e:
                raise ArchiveToolFailure(tar_cmd, None, str(e))

            try:
                compress_proc = subprocess.Popen(
                    compress_cmd, stdin=tar_proc.stdout, stdout=out_f, stderr=subprocess.PIPE
                )
            except OSError as e:
                tar_proc.kill()
                tar_proc.wait()
                raise ArchiveToolFailure(compress_cmd, None, str(e))

            # gzip holds the read end now
            tar_proc.stdout.close()

            tar_errors = self._drain_stderr(tar_proc.stderr)
            tar_proc.wait()
            _, compress_err = compress_proc.communicate()

        if tar_proc.returncode != 0:
            raise ArchiveToolFailure(tar_cmd, tar_proc.returncode, '\n'.join(tar_errors))

        if compress_proc.returncode != 0:
            raise ArchiveToolFailure(
                compress_cmd, compress_proc.returncode, (compress_err or b'').decode(errors='replace')
            )

    def _drain_stderr(self, stream) -> List[str]:
        """Log tar checkpoint lines as progress and collect everything else."""
        errors = []
        for raw in iter(stream.readline, b''):
            line = raw.decode(errors='replace').rstrip()
            if not line:
                continue
            if 'checkpoint' in line:
                self.logger.info(f"Archiving... {line.split(':', 1)[-1].strip()}")
            else:
                errors.append(line)
        stream.close()
        return errors

    def _remove_partial(self, archive_path: Path):
        """Best effort removal of a half-written archive."""
        if not archive_path.exists():
            return
        try:
            archive_path.unlink()
            self.logger.warning(f"Removed partial archive {archive_path}")
        except OSError as e:
            self.logger.warning(f"Could not remove partial archive {archive_path}: {e}")


def sanitize_label(name: str) -> str:
    """Replace anything but letters, digits, '-' and '_' with underscores."""
    safe = "".join(
        c if c.isalnum() or c in ('-', '_') else '_'
        for c in name
    )
    return safe or 'backup'


def generate_archive_filename(label: str, now: Optional[datetime] = None, incremental: bool = False) -> str:
    """
    Generate a standardized archive filename.

    Format: {label}-{YYYYMMDD_HHMMSS}.tar.gz, or
    {label}-incr-{YYYYMMDD_HHMMSS}.tar.gz for incremental archives

    Args:
        label: Backup label (sanitized here)
        now: Timestamp to encode (default: current local time)
        incremental: Whether to add the incremental marker

    Returns:
        Filename (without path)
    """
    timestamp = (now or datetime.now()).strftime(TIMESTAMP_FORMAT)
    parts = [sanitize_label(label)]
    if incremental:
        parts.append(INCREMENTAL_MARKER)
    parts.append(timestamp)
    return f"{'-'.join(parts)}.{ARCHIVE_EXTENSION}"


def next_archive_path(
    backup_dir: Path,
    label: str,
    incremental: bool = False,
    now: Optional[datetime] = None
) -> Path:
    """
    Pick an archive path in backup_dir that does not exist yet.

    If a run in the same second already produced the name, the timestamp
    moves forward one second at a time until the name is free.
    """
    stamp = (now or datetime.now()).replace(microsecond=0)
    candidate = Path(backup_dir) / generate_archive_filename(label, stamp, incremental)
    while candidate.exists():
        stamp += timedelta(seconds=1)
        candidate = Path(backup_dir) / generate_archive_filename(label, stamp, incremental)
    return candidate


def get_archive_size(archive_path: Path) -> int:
    """
    Get the size of an archive file in bytes.

    Raises:
        FileNotFoundError: If the archive does not exist
    """
    return os.path.getsize(archive_path)


def is_gnu_tar(tar_bin: str = 'tar') -> bool:
    """Return True if tar_bin is GNU tar (needed for --listed-incremental)."""
    if shutil.which(tar_bin) is None:
        return False
    try:
        result = subprocess.run([tar_bin, '--version'], stdout=subprocess.PIPE, stderr=subprocess.PIPE)
    except OSError:
        return False
    return b'GNU tar' in result.stdout
