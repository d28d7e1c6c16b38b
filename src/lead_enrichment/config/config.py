"""
Configuration for the lead enrichment waterfall
Environment-driven settings with dataclass defaults
"""

import os
from dataclasses import dataclass, field, fields, replace
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional

from ..core.models import (
    DEFAULT_CACHE_TTL_DAYS,
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_MIN_CONFIDENCE,
    DEFAULT_TIMEOUT_MS,
    FAILURE_THRESHOLD,
    OPEN_DURATION,
)

# Project paths
PROJECT_ROOT = Path(os.getenv("ENRICHMENT_HOME", Path.cwd()))
CONFIG_DIR = PROJECT_ROOT / "config"
DATA_DIR = PROJECT_ROOT / "data"
LOGS_DIR = PROJECT_ROOT / "logs"

MAIN_CONFIG_FILE = CONFIG_DIR / "waterfall.yaml"


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    return int(value) if value not in (None, "") else default


class Environment(Enum):
    """Application environments"""
    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"
    TESTING = "testing"


@dataclass
class EngineConfig:
    """Orchestrator and circuit-breaker knobs"""
    failure_threshold: int = FAILURE_THRESHOLD
    open_duration_seconds: float = OPEN_DURATION.total_seconds()
    fan_out_limit: int = 4
    accept_best_effort: bool = True
    batch_concurrency: int = 5
    ema_alpha: float = 0.2

    @classmethod
    def from_env(cls) -> 'EngineConfig':
        return cls(
            failure_threshold=_env_int("ENRICHMENT_FAILURE_THRESHOLD", FAILURE_THRESHOLD),
            open_duration_seconds=float(os.getenv("ENRICHMENT_OPEN_DURATION_SECONDS",
                                                  OPEN_DURATION.total_seconds())),
            fan_out_limit=_env_int("ENRICHMENT_FAN_OUT_LIMIT", 4),
            accept_best_effort=_env_bool("ENRICHMENT_ACCEPT_BEST_EFFORT", True),
            batch_concurrency=_env_int("ENRICHMENT_BATCH_CONCURRENCY", 5),
        )

    def merged(self, overrides: Optional[Dict[str, Any]]) -> 'EngineConfig':
        """Copy with known keys from a config-file section applied"""
        if not overrides:
            return self
        known = {f.name for f in fields(self)}
        return replace(self, **{k: v for k, v in overrides.items() if k in known})


@dataclass(frozen=True)
class WaterfallDefaults:
    """Policy applied to fields that have no explicit waterfall config"""
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    timeout_ms: int = DEFAULT_TIMEOUT_MS
    min_confidence: float = DEFAULT_MIN_CONFIDENCE
    cache_ttl_days: int = DEFAULT_CACHE_TTL_DAYS
    max_cost_per_lead: Optional[float] = None


@dataclass
class CacheConfig:
    """Enrichment cache backend"""
    backend: str = "memory"  # "memory" or "sqlite"
    path: Path = DATA_DIR / "enrichment_cache.sqlite"

    @classmethod
    def from_env(cls) -> 'CacheConfig':
        return cls(
            backend=os.getenv("ENRICHMENT_CACHE_BACKEND", "memory"),
            path=Path(os.getenv("ENRICHMENT_CACHE_PATH", str(DATA_DIR / "enrichment_cache.sqlite"))),
        )


@dataclass
class LoggingConfig:
    """Logging configuration"""
    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    file_logging: bool = False
    log_file: Path = LOGS_DIR / "lead_enrichment.log"
    max_file_size_mb: int = 100
    backup_count: int = 5
    console_logging: bool = True

    @classmethod
    def from_env(cls) -> 'LoggingConfig':
        return cls(
            level=os.getenv("LOG_LEVEL", "INFO"),
            file_logging=_env_bool("FILE_LOGGING", False),
            log_file=LOGS_DIR / os.getenv("LOG_FILE", "lead_enrichment.log"),
            max_file_size_mb=_env_int("LOG_MAX_SIZE_MB", 100),
            backup_count=_env_int("LOG_BACKUP_COUNT", 5),
            console_logging=_env_bool("CONSOLE_LOGGING", True),
        )


ENVIRONMENT = Environment(os.getenv("ENVIRONMENT", "development"))

# Vendor credentials and endpoints
VENDOR_SETTINGS: Dict[str, Dict[str, Any]] = {
    'clearbit': {
        'api_key_env': 'CLEARBIT_API_KEY',
        'base_url': 'https://person-stream.clearbit.com/v2/combined/find',
    },
    'apollo': {
        'api_key_env': 'APOLLO_API_KEY',
        'base_url': 'https://api.apollo.io/api/v1',
    },
    'hunter': {
        'api_key_env': 'HUNTER_API_KEY',
        'base_url': 'https://api.hunter.io/v2',
    },
    'peopledatalabs': {
        'api_key_env': 'PDL_API_KEY',
        'base_url': 'https://api.peopledatalabs.com/v5',
    },
    'zoominfo': {
        'api_key_env': 'ZOOMINFO_API_KEY',
        'base_url': 'https://api.zoominfo.com',
    },
    'lusha': {
        'api_key_env': 'LUSHA_API_KEY',
        'base_url': 'https://api.lusha.com',
    },
    'rocketreach': {
        'api_key_env': 'ROCKETREACH_API_KEY',
        'base_url': 'https://api.rocketreach.co/api/v2',
    },
}
