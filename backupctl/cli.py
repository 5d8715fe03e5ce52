"""
Command line interface.

Usage: backupctl [--full | --project DIR | --incremental DIR] [--dry-run]
                 [--verify] [--compression 1-9] [--retention DAYS] ...

Exit status is 0 on success and 1 on any fatal error, including unknown
or invalid arguments.
"""

import sys
from pathlib import Path

import click

from backupctl import configure_logging
from backupctl.config import BackupMode, RunConfig, get_config
from backupctl.errors import InvalidArgument


EXIT_OK = 0
EXIT_FAILURE = 1


@click.command(context_settings={'help_option_names': ['-h', '--help']})
@click.option('--full', 'full', is_flag=True, help='Archive the system roots (/etc, /home, /var).')
@click.option('--project', 'project', type=click.Path(), metavar='DIR',
              help='Archive a single project directory.')
@click.option('--incremental', 'incremental', type=click.Path(), metavar='DIR',
              help='Archive changes in DIR since its last project or incremental backup.')
@click.option('--dry-run', is_flag=True, help='Show what would be done without writing anything.')
@click.option('--verify', is_flag=True, help='List the archive contents after creating it.')
@click.option('--compression', type=click.IntRange(1, 9), default=None, metavar='1-9',
              help='gzip compression level (default: 6).')
@click.option('--retention', type=click.IntRange(min=0), default=None, metavar='DAYS',
              help='Delete archives older than DAYS days (default: 30).')
@click.option('--backup-dir', type=click.Path(file_okay=False, path_type=Path), default=None,
              help='Destination directory for archives.')
@click.option('--log-file', type=click.Path(dir_okay=False, path_type=Path), default=None,
              help='Log file (appended to).')
@click.option('--exclude', multiple=True, metavar='PATTERN',
              help='Exclude files matching PATTERN (repeatable).')
@click.option('--schedule', default=None, metavar='CRON',
              help='Keep running and back up on this crontab schedule, e.g. "0 2 * * *".')
def cli(full, project, incremental, dry_run, verify, compression, retention,
        backup_dir, log_file, exclude, schedule):
    """Back up the whole system or a project directory into .tar.gz archives."""
    run_config = build_run_config(
        full=full,
        project=project,
        incremental=incremental,
        dry_run=dry_run,
        verify=verify,
        compression=compression,
        retention=retention,
        backup_dir=backup_dir,
        log_file=log_file,
        exclude=exclude,
    )

    config_class = get_config()
    logger = configure_logging(
        run_config.log_file,
        debug=config_class.DEBUG,
        max_bytes=config_class.LOG_MAX_BYTES,
        backup_count=config_class.LOG_BACKUP_COUNT
    )

    if schedule:
        from backupctl.scheduler import init_scheduler, start_scheduler
        try:
            init_scheduler(run_config, schedule)
        except InvalidArgument as e:
            raise click.UsageError(str(e))
        start_scheduler()
        return EXIT_OK

    from backupctl.backup.executor import execute_backup
    result = execute_backup(run_config, logger=logger)
    return result.exit_code


def build_run_config(full=False, project=None, incremental=None, **options) -> RunConfig:
    """
    Turn parsed options into a RunConfig.

    Raises:
        click.UsageError: If no mode or several modes are selected, or a
            value is rejected by RunConfig
    """
    selected = [
        (BackupMode.FULL, None) if full else None,
        (BackupMode.PROJECT, project) if project is not None else None,
        (BackupMode.INCREMENTAL, incremental) if incremental is not None else None,
    ]
    selected = [item for item in selected if item is not None]

    if not selected:
        raise click.UsageError("No backup mode given: use --full, --project DIR or --incremental DIR")
    if len(selected) > 1:
        raise click.UsageError("Choose only one of --full, --project and --incremental")

    mode, target = selected[0]
    if target is not None:
        if not str(target).strip():
            raise click.UsageError(f"--{mode.value} needs a directory, got an empty string")
        target = Path(target)

    try:
        return RunConfig.from_config(
            mode,
            config_class=get_config(),
            target_path=target,
            dry_run=options.get('dry_run', False),
            verify=options.get('verify', False),
            compression_level=options.get('compression'),
            retention_days=options.get('retention'),
            backup_dir=options.get('backup_dir'),
            log_file=options.get('log_file'),
            exclude_patterns=tuple(options.get('exclude') or ()),
        )
    except InvalidArgument as e:
        raise click.UsageError(str(e))


def main(argv=None) -> int:
    """
    Console entry point.

    Returns:
        Process exit status (0 success, 1 failure)
    """
    try:
        rv = cli.main(args=argv, prog_name='backupctl', standalone_mode=False)
    except click.UsageError as e:
        # Unknown flags and bad values print the usage and exit 1
        e.show()
        return EXIT_FAILURE
    except click.ClickException as e:
        e.show()
        return EXIT_FAILURE
    except click.Abort:
        click.echo('Aborted!', err=True)
        return EXIT_FAILURE

    # --help returns 0 without running the command
    return rv if isinstance(rv, int) else EXIT_OK


if __name__ == '__main__':
    sys.exit(main())
