"""Configuration module"""

from .config import (
    CONFIG_DIR,
    DATA_DIR,
    LOGS_DIR,
    MAIN_CONFIG_FILE,
    VENDOR_SETTINGS,
    CacheConfig,
    EngineConfig,
    LoggingConfig,
    WaterfallDefaults,
)
from .config_manager import ConfigManager, get_config_manager, load_config_file, reset_config_manager

__all__ = [
    'CONFIG_DIR', 'DATA_DIR', 'LOGS_DIR', 'MAIN_CONFIG_FILE', 'VENDOR_SETTINGS',
    'CacheConfig', 'EngineConfig', 'LoggingConfig', 'WaterfallDefaults',
    'ConfigManager', 'get_config_manager', 'load_config_file', 'reset_config_manager',
]
