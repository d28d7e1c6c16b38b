"""
Configuration Manager for the lead enrichment waterfall
Loads engine overrides, provider registry seeds and waterfall seeds from YAML
"""

import logging
import os
from dataclasses import fields
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

from ..core.exceptions import ConfigurationError
from ..core.models import EnrichmentProvider, WaterfallConfig
from .config import (
    MAIN_CONFIG_FILE,
    VENDOR_SETTINGS,
    CacheConfig,
    EngineConfig,
    LoggingConfig,
    WaterfallDefaults,
)


def load_config_file(config_file: Path) -> Dict[str, Any]:
    """Load configuration from a YAML file; a missing file is empty configuration"""
    if not config_file.exists():
        return {}

    with open(config_file, 'r', encoding='utf-8') as f:
        try:
            data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {config_file}: {e}")

    if not isinstance(data, dict):
        raise ConfigurationError(f"Top level of {config_file} must be a mapping")
    return data


class ConfigManager:
    """
    Configuration manager
    Combines environment settings with an optional YAML file
    """

    def __init__(self, config_file: Optional[Union[str, Path]] = None):
        self.logger = logging.getLogger(__name__)
        self.config_file = Path(config_file) if config_file else MAIN_CONFIG_FILE
        self._raw = load_config_file(self.config_file)

        self.engine_config = EngineConfig.from_env().merged(self._raw.get('engine'))
        self.cache_config = CacheConfig.from_env()
        self.logging_config = LoggingConfig.from_env()
        self.waterfall_defaults = self._load_defaults(self._raw.get('defaults'))

        if self._raw:
            self.logger.info(f"Loaded enrichment configuration from {self.config_file}")

    def _load_defaults(self, section: Optional[Dict[str, Any]]) -> WaterfallDefaults:
        known = {f.name for f in fields(WaterfallDefaults)}
        return WaterfallDefaults(**{k: v for k, v in (section or {}).items() if k in known})

    def get_api_key(self, vendor: str) -> str:
        settings = VENDOR_SETTINGS.get(vendor, {})
        env_name = settings.get('api_key_env', f"{vendor.upper()}_API_KEY")
        return os.getenv(env_name, '')

    def get_vendor_settings(self, vendor: str) -> Dict[str, Any]:
        """Endpoint settings for a vendor, with file overrides applied"""
        settings = dict(VENDOR_SETTINGS.get(vendor, {}))
        settings.update((self._raw.get('vendors') or {}).get(vendor) or {})
        settings['api_key'] = self.get_api_key(vendor)
        return settings

    def is_vendor_configured(self, vendor: str) -> bool:
        return bool(self.get_api_key(vendor).strip())

    def load_providers(self, tenant_id: str) -> List[EnrichmentProvider]:
        """Registry seed entries for a tenant; invalid entries are skipped"""
        providers = []
        for entry in self._raw.get('providers') or []:
            if not isinstance(entry, dict):
                self.logger.warning(f"Skipping malformed provider entry: {entry!r}")
                continue
            result = EnrichmentProvider.create(
                id=entry.get('id', ''),
                tenant_id=tenant_id,
                name=entry.get('name', entry.get('id', '')),
                provider_type=entry.get('provider_type', entry.get('id', 'custom')),
                supported_fields=entry.get('supported_fields', []),
                priority=entry.get('priority', 0),
                cost_per_lookup=entry.get('cost_per_lookup', 0.0),
                batch_supported=entry.get('batch_supported', False),
                config=entry.get('config'),
                enabled=entry.get('enabled', True),
            )
            if not result.ok:
                self.logger.warning(f"Skipping provider {entry.get('id')!r}: {'; '.join(result.errors)}")
                continue
            providers.append(result.value)
        return providers

    def load_waterfalls(self, tenant_id: str) -> List[WaterfallConfig]:
        """Waterfall seeds for a tenant, keyed by field name in the file"""
        configs = []
        for field_name, entry in (self._raw.get('waterfalls') or {}).items():
            if not isinstance(entry, dict):
                self.logger.warning(f"Skipping malformed waterfall for {field_name!r}")
                continue
            policy = {k: v for k, v in entry.items() if k != 'provider_order'}
            result = WaterfallConfig.create(tenant_id, field_name, entry.get('provider_order', []), **policy)
            if not result.ok:
                self.logger.warning(f"Skipping waterfall {field_name!r}: {'; '.join(result.errors)}")
                continue
            configs.append(result.value)
        return configs


# Global configuration manager instance
_config_manager = None


def get_config_manager(config_file: Optional[Union[str, Path]] = None) -> ConfigManager:
    """Get the global configuration manager instance"""
    global _config_manager
    if _config_manager is None:
        _config_manager = ConfigManager(config_file)
    return _config_manager


def reset_config_manager():
    """Reset the global configuration manager (useful for testing)"""
    global _config_manager
    _config_manager = None
