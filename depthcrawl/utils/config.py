"""
Configuration management for the crawler.
"""

import logging
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import yaml


@dataclass
class CrawlerConfig:
    """Configuration for crawler behavior."""
    max_depth: int = 3
    workers: int = 10
    request_timeout: float = 10
    max_links_per_page: int = 10
    user_agent: str = 'depthcrawl/1.0'
    pop_timeout: float = 1.0
    pop_retry_delay: float = 1.0
    push_retry_attempts: int = 3
    push_retry_delay: float = 0.5
    reset_state: bool = True


@dataclass
class RedisConfig:
    """Configuration for Redis."""
    host: str = 'localhost'
    port: int = 6379
    db: int = 0
    password: Optional[str] = None
    frontier_key: str = 'crawler:url_frontier'
    visited_key: str = 'crawler:visited_urls'


@dataclass
class LoggingConfig:
    """Configuration for logging."""
    level: str = 'INFO'
    file: Optional[str] = None
    format: str = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


@dataclass
class MonitoringConfig:
    """Configuration for monitoring."""
    prometheus_port: int = 8000
    metrics_enabled: bool = False


@dataclass
class Config:
    """Main configuration class."""
    store: str = 'redis'
    crawler: CrawlerConfig = field(default_factory=CrawlerConfig)
    redis: RedisConfig = field(default_factory=RedisConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    monitoring: MonitoringConfig = field(default_factory=MonitoringConfig)


STORE_TYPES = ('redis', 'memory')


def _build_section(section_cls, data: Optional[Dict[str, Any]], name: str):
    """Build a config section, rejecting keys the section does not define."""
    if data is None:
        return section_cls()
    if not isinstance(data, dict):
        raise ValueError(f"Config section '{name}' must be a mapping")

    known = {f.name for f in fields(section_cls)}
    unknown = set(data) - known
    if unknown:
        raise ValueError(f"Unknown keys in config section '{name}': {', '.join(sorted(unknown))}")
    return section_cls(**data)


def validate_config(config: Config):
    """Validate configuration values."""
    if config.crawler.max_depth < 1:
        raise ValueError("max_depth must be at least 1")

    if config.crawler.workers < 1:
        raise ValueError("workers must be at least 1")

    if config.crawler.request_timeout <= 0:
        raise ValueError("request_timeout must be positive")

    if config.crawler.max_links_per_page < 1:
        raise ValueError("max_links_per_page must be at least 1")

    if config.crawler.push_retry_attempts < 1:
        raise ValueError("push_retry_attempts must be at least 1")

    if config.crawler.pop_timeout < 0:
        raise ValueError("pop_timeout must be non-negative")

    if config.store not in STORE_TYPES:
        raise ValueError(f"Store type must be one of: {', '.join(STORE_TYPES)}")


class ConfigManager:
    """Manages configuration loading and validation."""

    def __init__(self, config_path: Optional[str] = None):
        self.config_path = Path(config_path) if config_path else None
        self._config: Optional[Config] = None

    def load_config(self) -> Config:
        """Load configuration from YAML file, or defaults when no file is given."""
        config_data: Dict[str, Any] = {}

        if self.config_path is not None:
            if not self.config_path.exists():
                raise FileNotFoundError(f"Configuration file not found: {self.config_path}")

            with open(self.config_path, 'r') as file:
                config_data = yaml.safe_load(file) or {}

            if not isinstance(config_data, dict):
                raise ValueError(f"Configuration file must contain a mapping: {self.config_path}")

        unknown = set(config_data) - {'store', 'crawler', 'redis', 'logging', 'monitoring'}
        if unknown:
            raise ValueError(f"Unknown config sections: {', '.join(sorted(unknown))}")

        self._config = Config(
            store=config_data.get('store', 'redis'),
            crawler=_build_section(CrawlerConfig, config_data.get('crawler'), 'crawler'),
            redis=_build_section(RedisConfig, config_data.get('redis'), 'redis'),
            logging=_build_section(LoggingConfig, config_data.get('logging'), 'logging'),
            monitoring=_build_section(MonitoringConfig, config_data.get('monitoring'), 'monitoring'),
        )

        validate_config(self._config)
        logging.getLogger(__name__).debug("Configuration validation passed")
        return self._config


def load_config(config_path: Optional[str] = None) -> Config:
    """Load configuration from file."""
    return ConfigManager(config_path).load_config()


def parse_redis_addr(addr: str) -> Tuple[str, int]:
    """Split a 'host:port' address. The port defaults to 6379."""
    host, sep, port = addr.rpartition(':')
    if not sep:
        return addr, 6379
    if not host:
        raise ValueError(f"Invalid Redis address: {addr}")
    try:
        return host, int(port)
    except ValueError:
        raise ValueError(f"Invalid Redis port in address: {addr}") from None
