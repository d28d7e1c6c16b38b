"""
Administrative operations for tenants
Provider catalog and waterfall configuration, health inspection, cache invalidation
"""

import logging
from typing import Any, List, Optional

from ..core.models import KNOWN_FIELDS, EnrichmentProvider, ProviderHealth, WaterfallConfig
from ..core.validation import ValidationResult
from .cache import EnrichmentCache
from .health import ProviderHealthTracker
from .registry import ProviderRegistry
from .repositories import WaterfallConfigRepository


class EnrichmentAdmin:
    """
    Thin management surface over the registry and stores.

    Mutators return a ValidationResult; nothing is persisted when it carries
    errors. Changes apply to jobs started afterwards only, since running jobs
    work from their own config snapshot.
    """

    def __init__(self,
                 registry: ProviderRegistry,
                 waterfall_configs: WaterfallConfigRepository,
                 health: ProviderHealthTracker,
                 cache: EnrichmentCache):
        self.logger = logging.getLogger(__name__)
        self.registry = registry
        self.waterfall_configs = waterfall_configs
        self.health = health
        self.cache = cache

    # Providers

    async def list_providers(self, tenant_id: str) -> List[EnrichmentProvider]:
        return self.registry.list_all(tenant_id)

    async def configure_provider(self, tenant_id: str, provider_id: str, **attributes: Any) -> ValidationResult[EnrichmentProvider]:
        """Create the provider, or update the attributes given for an existing one"""
        existing = self.registry.get(tenant_id, provider_id)
        if existing is not None:
            result = existing.update(**attributes)
        else:
            if 'provider_type' not in attributes:
                attributes['provider_type'] = provider_id
            attributes.setdefault('name', provider_id)
            attributes.setdefault('supported_fields', [])
            try:
                result = EnrichmentProvider.create(id=provider_id, tenant_id=tenant_id, **attributes)
            except TypeError as e:
                return ValidationResult.failure(f"invalid provider attributes: {e}")

        if not result.ok:
            self.logger.warning(f"Rejected provider {provider_id} for tenant {tenant_id}: {'; '.join(result.errors)}")
            return result

        self.registry.register(result.value)
        self.logger.info(f"{'Updated' if existing else 'Created'} provider {provider_id} for tenant {tenant_id}")
        return result

    async def disable_provider(self, tenant_id: str, provider_id: str) -> ValidationResult[EnrichmentProvider]:
        provider = self.registry.get(tenant_id, provider_id)
        if provider is None:
            return ValidationResult.failure(f"provider not found: {provider_id}")
        provider.disable()
        self.logger.info(f"Disabled provider {provider_id} for tenant {tenant_id}")
        return ValidationResult.success(provider)

    async def enable_provider(self, tenant_id: str, provider_id: str) -> ValidationResult[EnrichmentProvider]:
        provider = self.registry.get(tenant_id, provider_id)
        if provider is None:
            return ValidationResult.failure(f"provider not found: {provider_id}")
        provider.enable()
        self.logger.info(f"Enabled provider {provider_id} for tenant {tenant_id}")
        return ValidationResult.success(provider)

    async def delete_provider(self, tenant_id: str, provider_id: str) -> ValidationResult[str]:
        if not self.registry.remove(tenant_id, provider_id):
            return ValidationResult.failure(f"provider not found: {provider_id}")
        self.logger.info(f"Deleted provider {provider_id} for tenant {tenant_id}")
        return ValidationResult.success(provider_id)

    # Waterfalls

    async def list_waterfalls(self, tenant_id: str) -> List[WaterfallConfig]:
        return await self.waterfall_configs.list_for_tenant(tenant_id)

    async def configure_waterfall(self, tenant_id: str, field_name: str, provider_order: List[str],
                                  **policy: Any) -> ValidationResult[WaterfallConfig]:
        """Create or replace the waterfall for a field. The order must name at least one provider"""
        if field_name not in KNOWN_FIELDS:
            return ValidationResult.failure(f"unknown field: {field_name}")
        if not provider_order:
            return ValidationResult.failure("provider_order must contain at least one provider")

        existing = await self.waterfall_configs.find_by_field(tenant_id, field_name)
        if existing is not None:
            result = existing.update(provider_order=provider_order, **policy)
        else:
            result = WaterfallConfig.create(tenant_id, field_name, provider_order, **policy)
        if not result.ok:
            return result

        unknown = [pid for pid in provider_order if self.registry.get(tenant_id, pid) is None]
        if unknown:
            # Skipped by the orchestrator until registered
            self.logger.warning(f"Waterfall for {field_name} names unregistered providers: {', '.join(unknown)}")

        await self.waterfall_configs.save(result.value)
        self.logger.info(f"Saved waterfall for {field_name} (tenant {tenant_id}): {' -> '.join(provider_order)}")
        return result

    async def delete_waterfall(self, tenant_id: str, field_name: str) -> ValidationResult[str]:
        if not await self.waterfall_configs.delete(tenant_id, field_name):
            return ValidationResult.failure(f"no waterfall configured for {field_name}")
        return ValidationResult.success(field_name)

    # Health and cache

    async def provider_health(self, tenant_id: str) -> List[ProviderHealth]:
        return await self.health.list_for_tenant(tenant_id)

    async def invalidate_cache(self, tenant_id: str, contact_id: str, field_name: Optional[str] = None) -> int:
        removed = await self.cache.invalidate(tenant_id, contact_id, field_name)
        self.logger.info(
            f"Invalidated {removed} cache entries for contact {contact_id}"
            + (f" ({field_name})" if field_name else "")
        )
        return removed
