"""
Persistence boundaries used by the orchestrator.

Each repository is keyed by tenant and exposes simple get/save operations.
The in-memory implementations store copies, so records handed out are never
shared between concurrent jobs.
"""

import copy
from abc import ABC, abstractmethod
from collections import defaultdict
from typing import Dict, List, Optional, Tuple

from ..config.config import WaterfallDefaults
from ..core.models import ContactRecord, EnrichmentJob, ProviderHealth, WaterfallConfig


class WaterfallConfigRepository(ABC):

    def __init__(self, defaults: Optional[WaterfallDefaults] = None):
        self.defaults = defaults or WaterfallDefaults()

    async def get(self, tenant_id: str, field_name: str) -> WaterfallConfig:
        """Explicit config for the field, or the zero-configuration defaults"""
        config = await self.find_by_field(tenant_id, field_name)
        if config is not None:
            return config
        return WaterfallConfig(
            tenant_id=tenant_id,
            field_name=field_name,
            max_attempts=self.defaults.max_attempts,
            timeout_ms=self.defaults.timeout_ms,
            min_confidence=self.defaults.min_confidence,
            cache_ttl_days=self.defaults.cache_ttl_days,
            max_cost_per_lead=self.defaults.max_cost_per_lead,
        )

    @abstractmethod
    async def find_by_field(self, tenant_id: str, field_name: str) -> Optional[WaterfallConfig]:
        pass

    @abstractmethod
    async def list_for_tenant(self, tenant_id: str) -> List[WaterfallConfig]:
        pass

    @abstractmethod
    async def save(self, config: WaterfallConfig) -> None:
        pass

    @abstractmethod
    async def delete(self, tenant_id: str, field_name: str) -> bool:
        pass


class ProviderHealthRepository(ABC):

    @abstractmethod
    async def find_by_provider(self, tenant_id: str, provider_id: str) -> Optional[ProviderHealth]:
        pass

    @abstractmethod
    async def list_for_tenant(self, tenant_id: str) -> List[ProviderHealth]:
        pass

    @abstractmethod
    async def save(self, health: ProviderHealth) -> None:
        pass


class JobRepository(ABC):

    @abstractmethod
    async def save(self, job: EnrichmentJob) -> None:
        pass

    @abstractmethod
    async def get(self, tenant_id: str, job_id: str) -> Optional[EnrichmentJob]:
        pass

    @abstractmethod
    async def list_by_contact(self, tenant_id: str, contact_id: str) -> List[EnrichmentJob]:
        pass


class ContactRepository(ABC):

    @abstractmethod
    async def has_tenant(self, tenant_id: str) -> bool:
        pass

    @abstractmethod
    async def get(self, tenant_id: str, contact_id: str) -> Optional[ContactRecord]:
        pass


# ---------------------------------------------------------------------------
# In-memory implementations
# ---------------------------------------------------------------------------

class InMemoryWaterfallConfigStore(WaterfallConfigRepository):
    """Waterfall Config Store backed by a dict"""

    def __init__(self, defaults: Optional[WaterfallDefaults] = None):
        super().__init__(defaults)
        self._configs: Dict[Tuple[str, str], WaterfallConfig] = {}

    def seed(self, configs: List[WaterfallConfig]) -> None:
        """Load configs synchronously, e.g. from the config file at startup"""
        for config in configs:
            self._configs[(config.tenant_id, config.field_name)] = config.snapshot()

    async def find_by_field(self, tenant_id: str, field_name: str) -> Optional[WaterfallConfig]:
        config = self._configs.get((tenant_id, field_name))
        return config.snapshot() if config else None

    async def list_for_tenant(self, tenant_id: str) -> List[WaterfallConfig]:
        configs = [c.snapshot() for (tenant, _), c in self._configs.items() if tenant == tenant_id]
        return sorted(configs, key=lambda c: c.field_name)

    async def save(self, config: WaterfallConfig) -> None:
        self._configs[(config.tenant_id, config.field_name)] = config.snapshot()

    async def delete(self, tenant_id: str, field_name: str) -> bool:
        return self._configs.pop((tenant_id, field_name), None) is not None


class InMemoryProviderHealthRepository(ProviderHealthRepository):

    def __init__(self):
        self._records: Dict[Tuple[str, str], ProviderHealth] = {}

    async def find_by_provider(self, tenant_id: str, provider_id: str) -> Optional[ProviderHealth]:
        health = self._records.get((tenant_id, provider_id))
        return copy.deepcopy(health) if health else None

    async def list_for_tenant(self, tenant_id: str) -> List[ProviderHealth]:
        records = [copy.deepcopy(h) for (tenant, _), h in self._records.items() if tenant == tenant_id]
        return sorted(records, key=lambda h: h.provider_id)

    async def save(self, health: ProviderHealth) -> None:
        self._records[(health.tenant_id, health.provider_id)] = copy.deepcopy(health)


class InMemoryJobRepository(JobRepository):

    def __init__(self):
        self._jobs: Dict[Tuple[str, str], EnrichmentJob] = {}
        self._by_contact: Dict[Tuple[str, str], List[str]] = defaultdict(list)

    async def save(self, job: EnrichmentJob) -> None:
        key = (job.tenant_id, job.id)
        if key not in self._jobs:
            self._by_contact[(job.tenant_id, job.contact_id)].append(job.id)
        self._jobs[key] = copy.deepcopy(job)

    async def get(self, tenant_id: str, job_id: str) -> Optional[EnrichmentJob]:
        job = self._jobs.get((tenant_id, job_id))
        return copy.deepcopy(job) if job else None

    async def list_by_contact(self, tenant_id: str, contact_id: str) -> List[EnrichmentJob]:
        """Enrichment history for a contact, newest first"""
        ids = self._by_contact.get((tenant_id, contact_id), [])
        return [copy.deepcopy(self._jobs[(tenant_id, job_id)]) for job_id in reversed(ids)]


class InMemoryContactRepository(ContactRepository):

    def __init__(self):
        self._contacts: Dict[Tuple[str, str], ContactRecord] = {}
        self._tenants = set()

    def add_tenant(self, tenant_id: str) -> None:
        self._tenants.add(tenant_id)

    def add(self, contact: ContactRecord) -> None:
        self._tenants.add(contact.tenant_id)
        self._contacts[(contact.tenant_id, contact.id)] = copy.deepcopy(contact)

    async def has_tenant(self, tenant_id: str) -> bool:
        return tenant_id in self._tenants

    async def get(self, tenant_id: str, contact_id: str) -> Optional[ContactRecord]:
        contact = self._contacts.get((tenant_id, contact_id))
        return copy.deepcopy(contact) if contact else None
