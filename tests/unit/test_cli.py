"""
Unit tests for the command line interface (backupctl/cli.py).
"""

import logging
import shutil

import click
import pytest

from backupctl import LOGGER_NAME
from backupctl.cli import build_run_config, main
from backupctl.config import BackupMode


requires_tar = pytest.mark.skipif(
    shutil.which('tar') is None or shutil.which('gzip') is None,
    reason='tar and gzip are required'
)


@pytest.fixture(autouse=True)
def reset_backupctl_logger():
    """Drop handlers installed by configure_logging."""
    yield
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.propagate = True


@pytest.fixture
def cli_paths(tmp_path):
    return ['--backup-dir', str(tmp_path / 'backups'), '--log-file', str(tmp_path / 'logs' / 'backup.log')]


class TestArgumentErrors:
    """Test that bad invocations exit with status 1."""

    def test_help(self, capsys):
        assert main(['--help']) == 0
        assert '--incremental' in capsys.readouterr().out

    def test_unknown_flag(self, capsys):
        assert main(['--bogus']) == 1
        assert 'Usage' in capsys.readouterr().err

    def test_no_mode(self, capsys, cli_paths):
        assert main(cli_paths) == 1
        assert 'No backup mode' in capsys.readouterr().err

    def test_two_modes(self, capsys, project_dir, cli_paths):
        assert main(['--full', '--project', str(project_dir)] + cli_paths) == 1
        assert 'only one' in capsys.readouterr().err

    @pytest.mark.parametrize("level", ['0', '10', 'fast'])
    def test_bad_compression(self, level, project_dir, cli_paths):
        assert main(['--project', str(project_dir), '--compression', level] + cli_paths) == 1

    def test_negative_retention(self, project_dir, cli_paths):
        assert main(['--project', str(project_dir), '--retention', '-1'] + cli_paths) == 1

    def test_missing_option_value(self, cli_paths):
        assert main(cli_paths + ['--project']) == 1

    @pytest.mark.parametrize("flag", ['--project', '--incremental'])
    def test_empty_directory_argument(self, capsys, flag, cli_paths):
        assert main([flag, '', '--dry-run'] + cli_paths) == 1
        assert 'empty string' in capsys.readouterr().err

    def test_bad_schedule(self, capsys, project_dir, cli_paths):
        assert main(['--project', str(project_dir), '--schedule', 'whenever'] + cli_paths) == 1
        assert 'Invalid schedule' in capsys.readouterr().err


class TestRuns:
    """Test end-to-end invocations."""

    @requires_tar
    def test_project_dry_run(self, project_dir, tmp_path, cli_paths):
        assert main(['--project', str(project_dir), '--dry-run'] + cli_paths) == 0

        assert not (tmp_path / 'backups').exists()
        log_text = (tmp_path / 'logs' / 'backup.log').read_text()
        assert '[DRYRUN]' in log_text
        assert 'Would archive' in log_text
        assert '/proj-' in log_text

    @requires_tar
    def test_unwritable_backup_dir(self, project_dir, tmp_path):
        blocker = tmp_path / 'blocker'
        blocker.write_text('not a directory\n')
        args = ['--project', str(project_dir), '--backup-dir', str(blocker / 'sub'),
                '--log-file', str(tmp_path / 'logs' / 'backup.log')]

        assert main(args) == 1

        log_text = (tmp_path / 'logs' / 'backup.log').read_text()
        assert '[ERROR] Backup aborted: Cannot write to' in log_text

    def test_missing_project(self, tmp_path, cli_paths):
        assert main(['--project', str(tmp_path / 'missing')] + cli_paths) == 1

        log_text = (tmp_path / 'logs' / 'backup.log').read_text()
        assert '[ERROR]' in log_text

    @requires_tar
    def test_log_file_is_appended(self, project_dir, tmp_path, cli_paths):
        main(['--project', str(project_dir), '--dry-run'] + cli_paths)
        first = (tmp_path / 'logs' / 'backup.log').read_text()

        main(['--project', str(project_dir), '--dry-run'] + cli_paths)

        assert (tmp_path / 'logs' / 'backup.log').read_text().startswith(first)


class TestBuildRunConfig:
    """Test build_run_config()."""

    def test_project(self, project_dir, tmp_path):
        config = build_run_config(project=project_dir, compression=9, retention=7,
                                  backup_dir=tmp_path / 'b', exclude=('*.pyc',))

        assert config.mode is BackupMode.PROJECT
        assert config.target_path == project_dir
        assert config.compression_level == 9
        assert config.retention_days == 7
        assert config.exclude_patterns == ('*.pyc',)

    def test_defaults(self, project_dir):
        config = build_run_config(incremental=project_dir)

        assert config.mode is BackupMode.INCREMENTAL
        assert config.compression_level == 6
        assert config.retention_days == 30
        assert config.dry_run is False
        assert config.verify is False

    def test_full(self):
        assert build_run_config(full=True).mode is BackupMode.FULL

    def test_no_mode(self):
        with pytest.raises(click.UsageError):
            build_run_config()

    def test_two_modes(self, project_dir):
        with pytest.raises(click.UsageError):
            build_run_config(project=project_dir, incremental=project_dir)

    def test_empty_target_is_not_current_directory(self):
        with pytest.raises(click.UsageError, match="empty string"):
            build_run_config(project='')

    def test_string_target_becomes_path(self, project_dir):
        config = build_run_config(project=str(project_dir))
        assert config.target_path == project_dir
