import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional, Tuple

from backupctl.errors import InvalidArgument


def _split_paths(value: Optional[str]) -> Optional[list]:
    if not value:
        return None
    return [item for item in value.split(':') if item]


class Config:
    """Base configuration"""

    # Destination and log file
    BACKUP_DIR = os.environ.get('BACKUP_DIR') or './backups'
    LOG_FILE = os.environ.get('BACKUP_LOG_FILE') or 'backup.log'
    LOG_MAX_BYTES = 10485760  # 10MB
    LOG_BACKUP_COUNT = 10

    # Archiving
    DEFAULT_COMPRESSION = 6
    DEFAULT_RETENTION_DAYS = 30
    REQUIRED_TOOLS = ('tar', 'gzip')
    FULL_BACKUP_PATHS = _split_paths(os.environ.get('BACKUP_FULL_PATHS')) or ['/etc', '/home', '/var']
    SNAPSHOT_DIR_NAME = '.snapshots'

    # Scheduler
    SCHEDULER_TIMEZONE = os.environ.get('BACKUP_SCHEDULER_TIMEZONE') or 'UTC'

    DEBUG = False


class DevelopmentConfig(Config):
    """Development configuration"""
    DEBUG = True

    # Use local data directory for development
    BASE_DIR = os.path.abspath(os.path.dirname(os.path.dirname(__file__)))
    DATA_DIR = os.path.join(BASE_DIR, 'data')
    BACKUP_DIR = os.path.join(DATA_DIR, 'backups')
    LOG_FILE = os.path.join(DATA_DIR, 'logs', 'backup.log')


class ProductionConfig(Config):
    """Production configuration"""
    DEBUG = False


# Configuration dictionary
config = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'default': ProductionConfig
}


def get_config(config_name: Optional[str] = None):
    """Return the configuration class selected by name or BACKUPCTL_ENV."""
    if config_name is None:
        config_name = os.environ.get('BACKUPCTL_ENV', 'production')
    return config.get(config_name, config['default'])


class BackupMode(Enum):
    FULL = 'full'
    PROJECT = 'project'
    INCREMENTAL = 'incremental'


@dataclass(frozen=True)
class RunConfig:
    """
    Everything a single backup run needs, built once from the command line.

    Attributes:
        mode: Backup strategy to run
        target_path: Source directory (project and incremental modes only)
        dry_run: Log what would happen without touching the filesystem
        verify: List the archive contents after creating it
        compression_level: gzip level, 1-9
        retention_days: Archives older than this many days are pruned
        backup_dir: Destination directory for archives
        log_file: Plain-text log file
        exclude_patterns: Glob patterns passed to tar --exclude
        full_paths: Roots archived by full mode
    """

    mode: BackupMode
    target_path: Optional[Path] = None
    dry_run: bool = False
    verify: bool = False
    compression_level: int = Config.DEFAULT_COMPRESSION
    retention_days: int = Config.DEFAULT_RETENTION_DAYS
    backup_dir: Path = Path(Config.BACKUP_DIR)
    log_file: Path = Path(Config.LOG_FILE)
    exclude_patterns: Tuple[str, ...] = ()
    full_paths: Tuple[Path, ...] = field(
        default_factory=lambda: tuple(Path(p) for p in Config.FULL_BACKUP_PATHS)
    )

    def __post_init__(self):
        if not isinstance(self.mode, BackupMode):
            try:
                object.__setattr__(self, 'mode', BackupMode(self.mode))
            except ValueError:
                raise InvalidArgument(f"Invalid backup mode: {self.mode}")

        if self.mode is BackupMode.FULL:
            if self.target_path is not None:
                raise InvalidArgument("Full backup does not take a target directory")
            if not self.full_paths:
                raise InvalidArgument("Full backup needs at least one root directory")
        elif self.target_path is None or str(self.target_path) == '':
            raise InvalidArgument(f"{self.mode.value.capitalize()} backup requires a target directory")

        if isinstance(self.compression_level, bool) or not isinstance(self.compression_level, int):
            raise InvalidArgument(f"Compression level must be an integer: {self.compression_level!r}")
        if not 1 <= self.compression_level <= 9:
            raise InvalidArgument(f"Compression level must be between 1 and 9, got {self.compression_level}")

        if isinstance(self.retention_days, bool) or not isinstance(self.retention_days, int):
            raise InvalidArgument(f"Retention days must be an integer: {self.retention_days!r}")
        if self.retention_days < 0:
            raise InvalidArgument(f"Retention days must be >= 0, got {self.retention_days}")

        # Normalize path-like values
        if self.target_path is not None:
            object.__setattr__(self, 'target_path', Path(self.target_path))
        object.__setattr__(self, 'backup_dir', Path(self.backup_dir))
        object.__setattr__(self, 'log_file', Path(self.log_file))
        object.__setattr__(self, 'exclude_patterns', tuple(self.exclude_patterns))
        object.__setattr__(self, 'full_paths', tuple(Path(p) for p in self.full_paths))

    @property
    def snapshot_dir(self) -> Path:
        return self.backup_dir / Config.SNAPSHOT_DIR_NAME

    @classmethod
    def from_config(cls, mode, config_class=None, **overrides) -> 'RunConfig':
        """
        Build a RunConfig using a Config class for every value not given.

        Args:
            mode: BackupMode or its string value
            config_class: Config class to take defaults from (default: get_config())
            **overrides: RunConfig fields; None values fall back to the config

        Returns:
            RunConfig instance
        """
        config_class = config_class or get_config()
        defaults = {
            'compression_level': config_class.DEFAULT_COMPRESSION,
            'retention_days': config_class.DEFAULT_RETENTION_DAYS,
            'backup_dir': Path(config_class.BACKUP_DIR),
            'log_file': Path(config_class.LOG_FILE),
            'full_paths': tuple(Path(p) for p in config_class.FULL_BACKUP_PATHS),
        }
        for key, value in overrides.items():
            if value is not None:
                defaults[key] = value
        return cls(mode=mode, **defaults)
