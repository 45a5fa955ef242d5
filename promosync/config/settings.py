"""
promosync Configuration Settings
"""
import os
from typing import Dict, List, Optional
from dataclasses import dataclass, field

from dotenv import load_dotenv


def get_env(key: str, default: str = "") -> str:
    """Get environment variable with default value"""
    return os.getenv(key, default)


def get_env_int(key: str, default: int = 0) -> int:
    """Get environment variable as integer"""
    try:
        return int(os.getenv(key, str(default)))
    except ValueError:
        return default


def get_env_float(key: str, default: float = 0.0) -> float:
    """Get environment variable as float"""
    try:
        return float(os.getenv(key, str(default)))
    except ValueError:
        return default


def get_env_bool(key: str, default: bool = False) -> bool:
    """Get environment variable as boolean"""
    value = os.getenv(key, str(default)).lower()
    return value in ('true', '1', 'yes', 'on')


def get_env_list(key: str, default: str = "") -> List[str]:
    """Get comma separated environment variable as a list of stripped items"""
    raw = os.getenv(key, default)
    return [item.strip() for item in raw.split(",") if item.strip()]


def get_env_mapping(key: str, default: str = "") -> Dict[str, str]:
    """Get environment variable of the form ``a=1,b=2`` as a dict"""
    mapping = {}
    for item in get_env_list(key, default):
        name, sep, value = item.partition("=")
        if sep and name.strip():
            mapping[name.strip()] = value.strip()
    return mapping


def get_env_int_mapping(key: str, default: str = "") -> Dict[str, int]:
    """Get ``a=1,b=2`` environment variable with integer values; bad values are ignored"""
    mapping = {}
    for name, value in get_env_mapping(key, default).items():
        try:
            mapping[name] = int(value)
        except ValueError:
            continue
    return mapping


@dataclass
class NotionSettings:
    """Content source (Notion) configuration settings"""

    notion_token: Optional[str] = field(default_factory=lambda: get_env("NOTION_TOKEN") or None)
    api_url: str = field(default_factory=lambda: get_env("NOTION_API_URL", "https://api.notion.com"))
    api_version: str = field(default_factory=lambda: get_env("NOTION_VERSION", "2022-06-28"))
    timeout: float = field(default_factory=lambda: get_env_float("NOTION_TIMEOUT", 30.0))
    page_size: int = field(default_factory=lambda: get_env_int("NOTION_PAGE_SIZE", 100))

    # entity key -> database id
    database_ids: Dict[str, str] = field(default_factory=lambda: get_env_mapping("NOTION_DATABASE_IDS"))


@dataclass
class SyncSettings:
    """Sync engine configuration settings"""

    enabled: bool = field(default_factory=lambda: get_env_bool("SYNC_ENABLED", True))
    disabled_entities: List[str] = field(default_factory=lambda: get_env_list("SYNC_DISABLED_ENTITIES"))

    # Batch processing
    batch_size: int = field(default_factory=lambda: get_env_int("SYNC_BATCH_SIZE", 50))
    max_workers: int = field(default_factory=lambda: get_env_int("SYNC_MAX_WORKERS", 3))
    max_error_ratio: float = field(default_factory=lambda: get_env_float("SYNC_MAX_ERROR_RATIO", 0.5))

    # Outbound rate limiting
    requests_per_second: float = field(default_factory=lambda: get_env_float("SYNC_REQUESTS_PER_SECOND", 3.0))
    rate_limit_burst: int = field(default_factory=lambda: get_env_int("SYNC_RATE_LIMIT_BURST", 3))

    # Housekeeping
    session_ttl_seconds: int = field(default_factory=lambda: get_env_int("SYNC_SESSION_TTL", 21600))
    operation_retention_seconds: int = field(default_factory=lambda: get_env_int("SYNC_OPERATION_RETENTION", 3600))

    def is_entity_enabled(self, entity_key: str) -> bool:
        """Check whether a single entity type may be synchronized"""
        return self.enabled and entity_key not in self.disabled_entities


@dataclass
class RetrySettings:
    """Retry policy settings"""

    max_attempts: int = field(default_factory=lambda: get_env_int("SYNC_RETRY_MAX_ATTEMPTS", 3))
    initial_delay: float = field(default_factory=lambda: get_env_float("SYNC_RETRY_INITIAL_DELAY", 1.0))
    max_delay: float = field(default_factory=lambda: get_env_float("SYNC_RETRY_MAX_DELAY", 30.0))
    backoff_multiplier: float = field(default_factory=lambda: get_env_float("SYNC_RETRY_BACKOFF_MULTIPLIER", 2.0))
    jitter: bool = field(default_factory=lambda: get_env_bool("SYNC_RETRY_JITTER", True))
    entity_max_attempts: Dict[str, int] = field(
        default_factory=lambda: get_env_int_mapping("SYNC_RETRY_ENTITY_MAX_ATTEMPTS")
    )


@dataclass
class CircuitBreakerSettings:
    """Circuit breaker policy settings"""

    failure_threshold: int = field(default_factory=lambda: get_env_int("SYNC_CB_FAILURE_THRESHOLD", 5))
    recovery_timeout: float = field(default_factory=lambda: get_env_float("SYNC_CB_RECOVERY_TIMEOUT", 60.0))
    success_threshold: float = field(default_factory=lambda: get_env_float("SYNC_CB_SUCCESS_THRESHOLD", 0.6))
    evaluation_window: int = field(default_factory=lambda: get_env_int("SYNC_CB_EVALUATION_WINDOW", 3))


@dataclass
class SchedulerSettings:
    """Periodic sync scheduler settings"""

    enabled: bool = field(default_factory=lambda: get_env_bool("SYNC_SCHEDULER_ENABLED", False))
    interval_seconds: int = field(default_factory=lambda: get_env_int("SYNC_SCHEDULER_INTERVAL", 3600))
    initial_delay_seconds: int = field(default_factory=lambda: get_env_int("SYNC_SCHEDULER_INITIAL_DELAY", 300))


@dataclass
class HealthSettings:
    """Sync health monitoring settings"""

    failure_alert_threshold: int = field(default_factory=lambda: get_env_int("SYNC_HEALTH_ALERT_THRESHOLD", 2))
    history_size: int = field(default_factory=lambda: get_env_int("SYNC_HEALTH_HISTORY_SIZE", 50))
    stale_after_hours: int = field(default_factory=lambda: get_env_int("SYNC_HEALTH_STALE_HOURS", 24))
    metrics_retention_hours: int = field(default_factory=lambda: get_env_int("SYNC_HEALTH_RETENTION_HOURS", 24))


@dataclass
class DatabaseSettings:
    """Database configuration settings"""

    database_url: str = field(default_factory=lambda: get_env("DATABASE_URL", "sqlite:///./promosync.db"))
    echo: bool = field(default_factory=lambda: get_env_bool("DATABASE_ECHO", False))


@dataclass
class AppSettings:
    """Application configuration settings"""

    app_name: str = field(default_factory=lambda: get_env("APP_NAME", "promosync"))
    app_version: str = field(default_factory=lambda: get_env("APP_VERSION", "0.1.0"))
    debug: bool = field(default_factory=lambda: get_env_bool("DEBUG", False))
    log_level: str = field(default_factory=lambda: get_env("LOG_LEVEL", "INFO"))
    log_dir: str = field(default_factory=lambda: get_env("LOG_DIR", "logs"))


@dataclass
class Settings:
    """Main settings class that combines all configuration sections"""

    notion: NotionSettings = field(default_factory=NotionSettings)
    sync: SyncSettings = field(default_factory=SyncSettings)
    retry: RetrySettings = field(default_factory=RetrySettings)
    circuit_breaker: CircuitBreakerSettings = field(default_factory=CircuitBreakerSettings)
    scheduler: SchedulerSettings = field(default_factory=SchedulerSettings)
    health: HealthSettings = field(default_factory=HealthSettings)
    database: DatabaseSettings = field(default_factory=DatabaseSettings)
    app: AppSettings = field(default_factory=AppSettings)


# Load .env file if it exists
load_dotenv()

# Global settings instance
settings = Settings()
