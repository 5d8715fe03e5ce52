"""
Unit tests for archive verification (backupctl/backup/verify.py).
"""

import pytest

from backupctl.backup.verify import Verifier
from backupctl.backup.archiver import ArchiveJob
from backupctl.errors import CorruptArchive


class TestVerifier:
    """Test Verifier.verify()."""

    def test_verify_intact_archive(self, project_dir, tmp_path, fake_archiver, test_logger):
        archive = tmp_path / 'proj.tar.gz'
        fake_archiver.create_full(ArchiveJob(label='proj', sources=[project_dir], archive_path=archive))

        members = Verifier(fake_archiver, test_logger).verify(archive)

        assert 'proj/main.py' in members
        assert fake_archiver.listed == [archive]

    def test_verify_corrupt_archive_is_left_in_place(self, tmp_path, archiver_factory, test_logger):
        archive = tmp_path / 'broken.tar.gz'
        archive.write_bytes(b'garbage')

        with pytest.raises(CorruptArchive) as exc_info:
            Verifier(archiver_factory(corrupt=True), test_logger).verify(archive)

        assert 'not in gzip format' in str(exc_info.value)
        assert exc_info.value.fatal is False
        assert archive.exists()

    def test_verify_missing_archive(self, tmp_path, fake_archiver, test_logger):
        with pytest.raises(CorruptArchive, match="file not found"):
            Verifier(fake_archiver, test_logger).verify(tmp_path / 'missing.tar.gz')

        assert fake_archiver.listed == []
