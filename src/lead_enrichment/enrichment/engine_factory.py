"""
Enrichment engine factory
Wires configuration, registry, adapters and stores into a ready orchestrator
"""

import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Dict, Mapping, Optional

from ..config.config_manager import ConfigManager, get_config_manager
from ..core.models import EnrichmentProvider
from .admin import EnrichmentAdmin
from .cache import create_cache
from .health import ProviderHealthTracker
from .maintenance import ProviderHealthMonitor
from .orchestrator import WaterfallOrchestrator
from .registry import ProviderRegistry
from .repositories import InMemoryContactRepository, InMemoryJobRepository, InMemoryWaterfallConfigStore
from .sources import SOURCE_CLASSES, build_sources

logger = logging.getLogger(__name__)


@dataclass
class EnrichmentEngine:
    """Everything a single tenant's enrichment needs, built from one configuration"""
    tenant_id: str
    orchestrator: WaterfallOrchestrator
    admin: EnrichmentAdmin
    monitor: ProviderHealthMonitor
    contacts: InMemoryContactRepository

    async def cleanup(self):
        await self.orchestrator.cleanup()


def default_providers(tenant_id: str, adapters: Mapping[str, Any]) -> Dict[str, EnrichmentProvider]:
    """Registry entries derived from adapter metadata, in declaration order as priority"""
    providers = {}
    for priority, provider_id in enumerate(SOURCE_CLASSES):
        adapter = adapters.get(provider_id)
        if adapter is None:
            continue
        result = EnrichmentProvider.create(
            id=provider_id,
            tenant_id=tenant_id,
            name=adapter.display_name,
            provider_type=provider_id,
            supported_fields=list(adapter.supported_fields),
            priority=priority,
            cost_per_lookup=adapter.cost_per_lookup,
        )
        providers[provider_id] = result.unwrap()
    return providers


def create_engine(tenant_id: str,
                  config_manager: Optional[ConfigManager] = None,
                  adapters: Optional[Mapping[str, Any]] = None) -> EnrichmentEngine:
    """
    Build an engine for a tenant

    Providers listed in the config file are registered as given; when the
    file lists none, every configured adapter is registered with its own
    metadata. Waterfall seeds from the file are loaded into the store.
    """
    config_manager = config_manager or get_config_manager()
    engine_config = config_manager.engine_config

    if adapters is None:
        adapters = build_sources(config_manager)

    registry = ProviderRegistry()
    configured = config_manager.load_providers(tenant_id)
    for provider in configured or default_providers(tenant_id, adapters).values():
        registry.register(provider)

    waterfall_configs = InMemoryWaterfallConfigStore(config_manager.waterfall_defaults)
    waterfall_configs.seed(config_manager.load_waterfalls(tenant_id))

    health = ProviderHealthTracker(
        failure_threshold=engine_config.failure_threshold,
        open_duration=timedelta(seconds=engine_config.open_duration_seconds),
    )
    cache = create_cache(config_manager.cache_config.backend, config_manager.cache_config.path)
    contacts = InMemoryContactRepository()
    contacts.add_tenant(tenant_id)

    orchestrator = WaterfallOrchestrator(
        registry=registry,
        adapters=adapters,
        cache=cache,
        health=health,
        waterfall_configs=waterfall_configs,
        contacts=contacts,
        jobs=InMemoryJobRepository(),
        engine_config=engine_config,
    )
    admin = EnrichmentAdmin(registry, waterfall_configs, health, cache)
    monitor = ProviderHealthMonitor(adapters)

    logger.info(
        f"Enrichment engine ready for tenant {tenant_id}: "
        f"{len(registry.list_enabled(tenant_id))} providers, {len(adapters)} adapters"
    )
    return EnrichmentEngine(tenant_id, orchestrator, admin, monitor, contacts)
