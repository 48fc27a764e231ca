"""Configuration management for cbratasks."""

import os
import json
import logging
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Dict, Any
from urllib.parse import urlparse

from domain import ListName
from monitoring import ConfigurationError, ParseError


CONFIG_DIR = Path.home() / '.config' / 'cbraapps'


def default_data_dir() -> str:
    return str(CONFIG_DIR / 'cbratasks' / 'data')


def _truthy(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value or '').strip().lower() in ('true', '1', 'yes', 'on')


@dataclass(frozen=True)
class SyncConfig:
    """CalDAV synchronization configuration."""
    enabled: bool = False
    url: str = ""
    username: str = ""
    password: str = ""
    collection: str = "cbratasks"
    timeout: int = 30

    def __post_init__(self):
        """Normalize URL."""
        object.__setattr__(self, 'url', (self.url or '').strip().rstrip('/'))


@dataclass(frozen=True)
class StorageConfig:
    """Location of the task data files."""
    data_dir: str = field(default_factory=default_data_dir)


@dataclass(frozen=True)
class LoggingConfig:
    """Logging configuration."""
    level: str = "WARNING"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    file_path: Optional[str] = None
    max_bytes: int = 10 * 1024 * 1024  # 10MB
    backup_count: int = 5


@dataclass(frozen=True)
class Config:
    """Immutable configuration snapshot consumed by the store."""
    default_list: str = "local"
    sync: SyncConfig = field(default_factory=SyncConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @property
    def default_list_name(self) -> ListName:
        try:
            return ListName.parse(self.default_list)
        except ParseError as e:
            raise ConfigurationError(e.message, details={'default_list': self.default_list})

    def validate(self) -> 'Config':
        """Raise ConfigurationError when required settings are missing."""
        self.default_list_name  # raises for unknown list names

        if self.sync.enabled:
            if not self.sync.url:
                raise ConfigurationError("Sync is enabled but sync.url is not set")
            parsed = urlparse(self.sync.url)
            if not parsed.scheme or not parsed.netloc:
                raise ConfigurationError(f"Invalid sync.url format: {self.sync.url}")
            if not self.sync.username:
                raise ConfigurationError("Sync is enabled but sync.username is not set")
            if self.sync.timeout <= 0:
                raise ConfigurationError(f"Invalid sync.timeout: {self.sync.timeout}")

        return self

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Config':
        """Create configuration from a parsed file."""
        sync_data = data.get('sync', {}) or {}
        sync_config = SyncConfig(
            enabled=_truthy(sync_data.get('enabled', False)),
            url=sync_data.get('url', ''),
            username=sync_data.get('username', ''),
            password=sync_data.get('password', ''),
            collection=sync_data.get('collection', 'cbratasks'),
            timeout=int(sync_data.get('timeout', 30))
        )

        storage_data = data.get('storage', {}) or {}
        storage_config = StorageConfig(
            data_dir=storage_data.get('data_dir') or default_data_dir()
        )

        logging_data = data.get('logging', {}) or {}
        logging_config = LoggingConfig(
            level=str(logging_data.get('level', LoggingConfig.level)).upper(),
            format=logging_data.get('format', LoggingConfig.format),
            file_path=logging_data.get('file_path'),
            max_bytes=int(logging_data.get('max_bytes', LoggingConfig.max_bytes)),
            backup_count=int(logging_data.get('backup_count', LoggingConfig.backup_count))
        )

        return cls(
            default_list=str(data.get('default_list', 'local')),
            sync=sync_config,
            storage=storage_config,
            logging=logging_config
        )

    @classmethod
    def from_env(cls) -> 'Config':
        """Create configuration from environment variables."""
        sync_config = SyncConfig(
            enabled=_truthy(os.getenv('CBRATASKS_SYNC_ENABLED', '')),
            url=os.getenv('CBRATASKS_SYNC_URL', ''),
            username=os.getenv('CBRATASKS_SYNC_USERNAME', ''),
            password=os.getenv('CBRATASKS_SYNC_PASSWORD', ''),
            collection=os.getenv('CBRATASKS_SYNC_COLLECTION', 'cbratasks'),
            timeout=int(os.getenv('CBRATASKS_SYNC_TIMEOUT', '30'))
        )

        storage_config = StorageConfig(
            data_dir=os.getenv('CBRATASKS_DATA_DIR') or default_data_dir()
        )

        logging_config = LoggingConfig(
            level=os.getenv('LOG_LEVEL', LoggingConfig.level).upper(),
            format=os.getenv('LOG_FORMAT', LoggingConfig.format),
            file_path=os.getenv('LOG_FILE'),
            max_bytes=int(os.getenv('LOG_MAX_BYTES', str(LoggingConfig.max_bytes))),
            backup_count=int(os.getenv('LOG_BACKUP_COUNT', str(LoggingConfig.backup_count)))
        )

        return cls(
            default_list=os.getenv('CBRATASKS_DEFAULT_LIST', 'local'),
            sync=sync_config,
            storage=storage_config,
            logging=logging_config
        )

    @classmethod
    def from_file(cls, config_path: str) -> 'Config':
        """Create configuration from a JSON or TOML file."""
        config_file = Path(config_path).expanduser()
        if not config_file.exists():
            raise ConfigurationError(f"Configuration file not found: {config_path}")

        try:
            if config_file.suffix == '.toml':
                with open(config_file, 'rb') as f:
                    data = tomllib.load(f)
            else:
                with open(config_file, 'r', encoding='utf-8') as f:
                    data = json.load(f)
            return cls.from_dict(data)

        except (json.JSONDecodeError, tomllib.TOMLDecodeError, KeyError, TypeError, ValueError) as e:
            raise ConfigurationError(
                f"Invalid configuration file format: {e}",
                details={'path': str(config_file)}
            )

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary (password masked)."""
        return {
            'default_list': self.default_list,
            'sync': {
                'enabled': self.sync.enabled,
                'url': self.sync.url,
                'username': self.sync.username,
                'password': '***' if self.sync.password else '',
                'collection': self.sync.collection,
                'timeout': self.sync.timeout
            },
            'storage': {
                'data_dir': self.storage.data_dir
            },
            'logging': {
                'level': self.logging.level,
                'format': self.logging.format,
                'file_path': self.logging.file_path,
                'max_bytes': self.logging.max_bytes,
                'backup_count': self.logging.backup_count
            }
        }

    def setup_logging(self) -> None:
        """Configure logging based on configuration."""
        log_level = getattr(logging, self.logging.level, logging.WARNING)

        formatter = logging.Formatter(self.logging.format)

        root_logger = logging.getLogger()
        root_logger.setLevel(log_level)

        for handler in root_logger.handlers[:]:
            root_logger.removeHandler(handler)

        console_handler = logging.StreamHandler()
        console_handler.setFormatter(formatter)
        root_logger.addHandler(console_handler)

        if self.logging.file_path:
            from logging.handlers import RotatingFileHandler
            file_handler = RotatingFileHandler(
                self.logging.file_path,
                maxBytes=self.logging.max_bytes,
                backupCount=self.logging.backup_count,
                encoding='utf-8'
            )
            file_handler.setFormatter(formatter)
            root_logger.addHandler(file_handler)


def load_config(config_path: Optional[str] = None) -> Config:
    """Load configuration from a file or environment variables."""
    if config_path:
        return Config.from_file(config_path).validate()

    env_path = os.getenv('CBRATASKS_CONFIG')
    if env_path:
        return Config.from_file(env_path).validate()

    config_files = [
        CONFIG_DIR / 'cbratasks.toml',
        CONFIG_DIR / 'cbratasks.json',
    ]

    for config_file in config_files:
        if config_file.exists():
            try:
                config = Config.from_file(str(config_file))
            except ConfigurationError as e:
                logging.warning(f"Failed to load config from {config_file}: {e}")
                continue
            return config.validate()

    return Config.from_env().validate()
