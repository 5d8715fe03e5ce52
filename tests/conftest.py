"""
Shared pytest fixtures for backupctl tests.

This module provides fixtures for:
- A debug-level logger that pytest's caplog can see
- Source and backup directories
- RunConfig construction
- Fake archiver and filesystem stats for deterministic engine tests
"""

import os
import time
import logging
import tarfile
from pathlib import Path

import pytest

from backupctl.config import BackupMode, RunConfig
from backupctl.errors import ArchiveToolFailure
from backupctl.backup.archiver import Archiver


class FakeArchiver(Archiver):
    """
    In-memory stand-in for TarArchiver.

    Writes a small real .tar.gz so sizes and listings work, records every
    job, and writes the snapshot manifest like tar would.
    """

    def __init__(self, fail=False, corrupt=False):
        self.fail = fail
        self.corrupt = corrupt
        self.jobs = []
        self.listed = []

    def create_full(self, job):
        return self._create(job, 'full')

    def create_incremental(self, job):
        return self._create(job, 'incremental')

    def list_contents(self, archive_path):
        self.listed.append(Path(archive_path))
        if self.corrupt:
            raise ArchiveToolFailure(['tar', '-tzf', str(archive_path)], 2, 'gzip: stdin: not in gzip format')
        with tarfile.open(archive_path, 'r:gz') as tar:
            return tar.getnames()

    def _create(self, job, kind):
        self.jobs.append((kind, job))
        if self.fail:
            raise ArchiveToolFailure(['tar', '-c', '-f', '-'], 2, 'tar: Cannot open: No such file or directory')

        with tarfile.open(job.archive_path, 'w:gz') as tar:
            for source in job.sources:
                if Path(source).exists():
                    tar.add(str(source), arcname=Path(source).name)

        if job.snapshot_path is not None:
            Path(job.snapshot_path).parent.mkdir(parents=True, exist_ok=True)
            with open(job.snapshot_path, 'a') as f:
                f.write(f'{kind} {job.filename}\n')

        return Path(job.archive_path)


class FakeStats:
    """FilesystemStats returning fixture values."""

    def __init__(self, sizes=None, default_size=1024, free=10 * 1024 ** 3):
        self.sizes = {Path(k): v for k, v in (sizes or {}).items()}
        self.default_size = default_size
        self.free = free
        self.size_queries = []
        self.free_queries = []

    def recursive_size(self, path):
        self.size_queries.append(Path(path))
        return self.sizes.get(Path(path), self.default_size)

    def free_bytes(self, path):
        self.free_queries.append(Path(path))
        return self.free


@pytest.fixture
def test_logger():
    """Debug-level logger that propagates to pytest's caplog."""
    logger = logging.getLogger('backupctl_test')
    logger.setLevel(logging.DEBUG)
    logger.propagate = True
    return logger


@pytest.fixture
def project_dir(tmp_path):
    """
    Create a small project tree.

    Creates:
    - proj/main.py
    - proj/README.md
    - proj/src/module.py
    - proj/build/output.o (excluded in some tests)
    """
    root = tmp_path / 'proj'
    (root / 'src').mkdir(parents=True)
    (root / 'build').mkdir()
    (root / 'main.py').write_text('print("hello")\n')
    (root / 'README.md').write_text('# proj\n')
    (root / 'src' / 'module.py').write_text('VALUE = 1\n')
    (root / 'build' / 'output.o').write_bytes(b'\x00' * 64)
    return root


@pytest.fixture
def backup_dir(tmp_path):
    """Backup destination (not created)."""
    return tmp_path / 'backups'


@pytest.fixture
def make_config(backup_dir, tmp_path):
    """Factory for RunConfig instances pointing at temporary directories."""

    def _make(mode=BackupMode.PROJECT, **overrides):
        values = {
            'backup_dir': backup_dir,
            'log_file': tmp_path / 'logs' / 'backup.log',
        }
        if mode is BackupMode.FULL or mode == 'full':
            values['full_paths'] = overrides.pop('full_paths', (tmp_path / 'etc', tmp_path / 'home'))
        values.update(overrides)
        return RunConfig(mode=mode, **values)

    return _make


@pytest.fixture
def fake_archiver():
    return FakeArchiver()


@pytest.fixture
def fake_stats():
    return FakeStats()


@pytest.fixture
def full_roots(tmp_path):
    """Stand-ins for /etc and /home."""
    etc = tmp_path / 'etc'
    home = tmp_path / 'home'
    etc.mkdir()
    home.mkdir()
    (etc / 'hosts').write_text('127.0.0.1 localhost\n')
    (home / 'notes.txt').write_text('notes\n')
    return etc, home


def age_file(path, days, now=None):
    """Set a file's mtime to `days` days before now (or a given epoch)."""
    reference = now if now is not None else time.time()
    stamp = reference - days * 86400
    os.utime(path, (stamp, stamp))


@pytest.fixture
def aged():
    """Return the age_file helper."""
    return age_file


@pytest.fixture
def archiver_factory():
    """Return the FakeArchiver class for tests needing custom behaviour."""
    return FakeArchiver


@pytest.fixture
def stats_factory():
    """Return the FakeStats class for tests needing fixture sizes."""
    return FakeStats
