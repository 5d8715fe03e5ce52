import os
import logging
from logging.handlers import RotatingFileHandler

import click


# Custom level for simulated operations, between INFO and WARNING
DRYRUN = 25
logging.addLevelName(DRYRUN, 'DRYRUN')
logging.addLevelName(logging.WARNING, 'WARN')

LOGGER_NAME = 'backupctl'
LOG_FORMAT = '%(asctime)s [%(levelname)s] %(message)s'
LOG_DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

LEVEL_COLORS = {
    logging.DEBUG: 'blue',
    logging.INFO: 'green',
    DRYRUN: 'yellow',
    logging.WARNING: 'yellow',
    logging.ERROR: 'red',
    logging.CRITICAL: 'red',
}


class ColorFormatter(logging.Formatter):
    """Formatter that colors the level name for terminal output."""

    def format(self, record):
        message = super().format(record)
        color = LEVEL_COLORS.get(record.levelno)
        if not color:
            return message
        tag = f'[{record.levelname}]'
        return message.replace(tag, click.style(tag, fg=color, bold=True), 1)


def configure_logging(log_file, debug=False, max_bytes=10485760, backup_count=10):
    """Configure console and file logging for a backup run"""

    log_dir = os.path.dirname(os.path.abspath(str(log_file)))
    os.makedirs(log_dir, exist_ok=True)

    log_level = logging.DEBUG if debug else logging.INFO

    # Console handler
    console_handler = logging.StreamHandler()
    console_handler.setLevel(log_level)
    console_handler.setFormatter(ColorFormatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT))

    # File handler (append mode, rotated at 10MB)
    file_handler = RotatingFileHandler(
        str(log_file),
        maxBytes=max_bytes,
        backupCount=backup_count
    )
    file_handler.setLevel(log_level)
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT))

    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    logger.setLevel(log_level)
    logger.addHandler(console_handler)
    logger.addHandler(file_handler)
    logger.propagate = False

    logger.debug(f"Logging configured (level: {logging.getLevelName(log_level)}, file: {log_file})")
    return logger


def get_logger():
    return logging.getLogger(LOGGER_NAME)
