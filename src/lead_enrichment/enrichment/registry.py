"""
Provider Registry
Catalog of enrichment providers per tenant: capabilities, cost and priority
"""

import logging
from typing import Dict, Iterable, List, Optional, Tuple

from ..core.models import EnrichmentProvider


class ProviderRegistry:
    """
    In-memory provider catalog.

    ``list_enabled`` and ``get`` are pure reads. Enabled state lives only on
    the registry entry, and the orchestrator filters on it at evaluation
    time, so disabling a provider takes effect on every waterfall at once.
    """

    def __init__(self, providers: Optional[Iterable[EnrichmentProvider]] = None):
        self.logger = logging.getLogger(__name__)
        self._providers: Dict[Tuple[str, str], EnrichmentProvider] = {}
        for provider in providers or []:
            self.register(provider)

    def register(self, provider: EnrichmentProvider) -> None:
        """Add or replace a registry entry"""
        self._providers[(provider.tenant_id, provider.id)] = provider
        self.logger.debug(f"Registered provider {provider.id} for tenant {provider.tenant_id}")

    def remove(self, tenant_id: str, provider_id: str) -> bool:
        return self._providers.pop((tenant_id, provider_id), None) is not None

    def get(self, tenant_id: str, provider_id: str) -> Optional[EnrichmentProvider]:
        return self._providers.get((tenant_id, provider_id))

    def list_all(self, tenant_id: str) -> List[EnrichmentProvider]:
        providers = [p for (tenant, _), p in self._providers.items() if tenant == tenant_id]
        return sorted(providers, key=lambda p: (p.priority, p.id))

    def list_enabled(self, tenant_id: str) -> List[EnrichmentProvider]:
        return [p for p in self.list_all(tenant_id) if p.enabled]

    def default_order(self, tenant_id: str, field_name: str) -> List[str]:
        """Fallback order for a field with no configured waterfall: priority, then id"""
        return [p.id for p in self.list_enabled(tenant_id) if p.supports_field(field_name)]

    def record_observation(self, tenant_id: str, provider_id: str,
                           latency_ms: int, success: bool, alpha: float = 0.2) -> None:
        provider = self.get(tenant_id, provider_id)
        if provider is not None:
            provider.record_call(latency_ms, success, alpha)
