"""
Enrichment module
Waterfall orchestration, provider health, caching and vendor adapters
"""

from .admin import EnrichmentAdmin
from .cache import EnrichmentCache, InMemoryEnrichmentCache, SQLiteEnrichmentCache, create_cache
from .engine_factory import EnrichmentEngine, create_engine
from .health import ProviderHealthTracker
from .maintenance import ProviderHealthMonitor, cleanup_cache
from .orchestrator import WaterfallOrchestrator
from .registry import ProviderRegistry

__all__ = [
    'EnrichmentAdmin',
    'EnrichmentCache',
    'InMemoryEnrichmentCache',
    'SQLiteEnrichmentCache',
    'create_cache',
    'EnrichmentEngine',
    'create_engine',
    'ProviderHealthTracker',
    'ProviderHealthMonitor',
    'cleanup_cache',
    'WaterfallOrchestrator',
    'ProviderRegistry',
]
