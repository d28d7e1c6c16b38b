"""
Enrichment Sources Package
Contains all vendor adapter implementations
"""

from typing import Dict, Optional

from ...config.config_manager import ConfigManager, get_config_manager
from .apollo_source import ApolloIOSource
from .base_source import BaseEnrichmentSource
from .clearbit_source import ClearbitEnrichmentSource
from .hunter_source import HunterIOSource
from .lusha_source import LushaSource
from .peopledatalabs_source import PeopleDataLabsSource
from .rocketreach_source import RocketReachSource
from .zoominfo_source import ZoomInfoSource

SOURCE_CLASSES = {
    cls.provider_id: cls
    for cls in (
        ClearbitEnrichmentSource,
        ApolloIOSource,
        HunterIOSource,
        PeopleDataLabsSource,
        ZoomInfoSource,
        LushaSource,
        RocketReachSource,
    )
}


def build_sources(config_manager: Optional[ConfigManager] = None,
                  only_configured: bool = True) -> Dict[str, BaseEnrichmentSource]:
    """Instantiate adapters keyed by provider id, skipping vendors without an API key"""
    config_manager = config_manager or get_config_manager()
    sources = {}
    for provider_id, cls in SOURCE_CLASSES.items():
        if only_configured and not config_manager.is_vendor_configured(provider_id):
            continue
        settings = config_manager.get_vendor_settings(provider_id)
        sources[provider_id] = cls(api_key=settings.get('api_key', ''),
                                   base_url=settings.get('base_url', ''))
    return sources


__all__ = [
    'BaseEnrichmentSource',
    'ClearbitEnrichmentSource',
    'ApolloIOSource',
    'HunterIOSource',
    'PeopleDataLabsSource',
    'ZoomInfoSource',
    'LushaSource',
    'RocketReachSource',
    'SOURCE_CLASSES',
    'build_sources',
]
