"""
APScheduler configuration for recurring backups.

Runs one RunConfig on a crontab schedule in the foreground. Each trigger
starts a fresh backup run; runs never overlap (max_instances=1) and missed
runs are coalesced into one.
"""

import logging

from apscheduler.schedulers.blocking import BlockingScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.executors.pool import ThreadPoolExecutor

from backupctl.config import Config, RunConfig
from backupctl.errors import InvalidArgument
from backupctl.backup.executor import execute_backup


logger = logging.getLogger('backupctl')

# Global scheduler instance
scheduler = None


def parse_schedule(cron_expression: str, timezone: str = None) -> CronTrigger:
    """
    Parse a standard 5-field crontab expression.

    Raises:
        InvalidArgument: If the expression is malformed
    """
    try:
        return CronTrigger.from_crontab(cron_expression, timezone=timezone or Config.SCHEDULER_TIMEZONE)
    except ValueError as e:
        raise InvalidArgument(f"Invalid schedule '{cron_expression}': {e}")


def init_scheduler(run_config: RunConfig, cron_expression: str, timezone: str = None):
    """
    Initialize and configure APScheduler with a single backup job.

    Args:
        run_config: Backup to run on every trigger
        cron_expression: 5-field crontab expression
        timezone: Scheduler timezone (default: Config.SCHEDULER_TIMEZONE)

    Returns:
        The configured scheduler (not started)
    """
    global scheduler

    if scheduler is not None:
        return scheduler

    timezone = timezone or Config.SCHEDULER_TIMEZONE
    trigger = parse_schedule(cron_expression, timezone)

    executors = {
        'default': ThreadPoolExecutor(max_workers=1)
    }

    job_defaults = {
        'coalesce': True,  # Combine multiple pending runs into one
        'max_instances': 1,  # Never run two backups at once
        'misfire_grace_time': 300  # 5 minutes grace period for misfires
    }

    scheduler = BlockingScheduler(
        executors=executors,
        job_defaults=job_defaults,
        timezone=timezone
    )

    scheduler.add_job(
        func=run_scheduled_backup,
        args=[run_config],
        trigger=trigger,
        id=f"backup_{run_config.mode.value}",
        name=f"Backup: {run_config.mode.value}",
        replace_existing=True
    )

    logger.info(f"Scheduled {run_config.mode.value} backup ({cron_expression}, {timezone})")
    return scheduler


def run_scheduled_backup(run_config: RunConfig):
    """
    Job function executed by the scheduler.

    Failures are logged so that the next trigger still runs.

    Returns:
        RunResult of the run
    """
    logger.info(f"Scheduler executing {run_config.mode.value} backup")
    result = execute_backup(run_config)
    if result.succeeded:
        logger.info(f"Scheduled backup completed: {result.archive_path or 'dry run'}")
    else:
        logger.error(f"Scheduled backup failed: {result.error_message}")
    return result


def start_scheduler():
    """
    Start the scheduler and block until it is interrupted.
    """
    global scheduler

    if scheduler is None:
        raise RuntimeError("Scheduler not initialized. Call init_scheduler() first.")

    for job in scheduler.get_jobs():
        next_run = getattr(job, 'next_run_time', None)
        logger.info(f"  - {job.id}: {job.name} (next run: {next_run.isoformat() if next_run else 'pending'})")

    try:
        scheduler.start()
    except (KeyboardInterrupt, SystemExit):
        logger.info("Scheduler interrupted, shutting down")
    finally:
        stop_scheduler()


def stop_scheduler():
    """Stop the scheduler and forget it."""
    global scheduler

    if scheduler and scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("Scheduler stopped")
    scheduler = None
