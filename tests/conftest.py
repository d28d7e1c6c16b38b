"""Pytest configuration and shared fixtures."""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Union

import pytest

from lead_enrichment.config.config import EngineConfig
from lead_enrichment.config.config_manager import reset_config_manager
from lead_enrichment.core.models import (
    AdapterResult,
    ContactRecord,
    EnrichmentProvider,
    EnrichmentRequest,
    FieldValue,
)
from lead_enrichment.enrichment.cache import InMemoryEnrichmentCache
from lead_enrichment.enrichment.health import ProviderHealthTracker
from lead_enrichment.enrichment.orchestrator import WaterfallOrchestrator
from lead_enrichment.enrichment.registry import ProviderRegistry
from lead_enrichment.enrichment.repositories import (
    InMemoryContactRepository,
    InMemoryJobRepository,
    InMemoryProviderHealthRepository,
    InMemoryWaterfallConfigStore,
)

TENANT = "tenant-1"
CONTACT = "contact-1"

VENDOR_KEY_VARS = (
    "CLEARBIT_API_KEY", "APOLLO_API_KEY", "HUNTER_API_KEY", "PDL_API_KEY",
    "ZOOMINFO_API_KEY", "LUSHA_API_KEY", "ROCKETREACH_API_KEY",
)


class FakeClock:
    """Manually advanced UTC clock"""

    def __init__(self, start: Optional[datetime] = None):
        self.now = start or datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float = 0, days: float = 0) -> None:
        self.now += timedelta(seconds=seconds, days=days)


Outcome = Union[AdapterResult, Exception, str]


class ScriptedAdapter:
    """
    Adapter double returning scripted outcomes in order; the last one repeats.
    The string "timeout" makes the call hang past any waterfall timeout.
    """

    def __init__(self, provider_id: str, *outcomes: Outcome, healthy: bool = True):
        self.provider_id = provider_id
        self.outcomes: List[Outcome] = list(outcomes)
        self.calls: List[EnrichmentRequest] = []
        self.healthy = healthy
        self.before_return = None

    async def enrich(self, request: EnrichmentRequest) -> AdapterResult:
        self.calls.append(request)
        outcome = self.outcomes[min(len(self.calls), len(self.outcomes)) - 1]
        if self.before_return is not None:
            await self.before_return()
        if outcome == "timeout":
            await asyncio.sleep(5)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    async def health_check(self) -> bool:
        return self.healthy


def hit(field: str, value, confidence: float, cost: float, latency_ms: int = 10) -> AdapterResult:
    return AdapterResult(success=True, fields=[FieldValue(field, value, confidence)],
                         cost=cost, latency_ms=latency_ms)


def miss(cost: float = 0.0, error: str = "No match found") -> AdapterResult:
    return AdapterResult(success=False, cost=cost, error=error, latency_ms=5)


def make_provider(provider_id: str, cost: float, fields=("email",), priority: int = 0,
                  enabled: bool = True, tenant_id: str = TENANT) -> EnrichmentProvider:
    return EnrichmentProvider.create(
        id=provider_id,
        tenant_id=tenant_id,
        name=provider_id.title(),
        provider_type="custom",
        supported_fields=list(fields),
        priority=priority,
        cost_per_lookup=cost,
        enabled=enabled,
    ).unwrap()


class EngineHarness:
    """Orchestrator plus direct handles on its collaborators"""

    def __init__(self, clock: FakeClock, accept_best_effort: bool = True,
                 engine_config: Optional[EngineConfig] = None):
        self.clock = clock
        self.registry = ProviderRegistry()
        self.adapters: Dict[str, ScriptedAdapter] = {}
        self.cache = InMemoryEnrichmentCache(clock)
        self.health_repo = InMemoryProviderHealthRepository()
        self.engine_config = engine_config or EngineConfig()
        self.health = ProviderHealthTracker(
            self.health_repo,
            failure_threshold=self.engine_config.failure_threshold,
            open_duration=timedelta(seconds=self.engine_config.open_duration_seconds),
            clock=clock,
        )
        self.configs = InMemoryWaterfallConfigStore()
        self.contacts = InMemoryContactRepository()
        self.jobs = InMemoryJobRepository()
        self.contacts.add(ContactRecord(id=CONTACT, tenant_id=TENANT, email="jane@acme.io",
                                        first_name="Jane", last_name="Doe", company="Acme"))
        self.accept_best_effort = accept_best_effort
        self._orchestrator = None

    def add(self, provider_id: str, cost: float, *outcomes: Outcome, fields=("email",),
            priority: int = 0, enabled: bool = True) -> ScriptedAdapter:
        self.registry.register(make_provider(provider_id, cost, fields, priority, enabled))
        adapter = ScriptedAdapter(provider_id, *outcomes)
        self.adapters[provider_id] = adapter
        return adapter

    @property
    def orchestrator(self) -> WaterfallOrchestrator:
        if self._orchestrator is None:
            self._orchestrator = WaterfallOrchestrator(
                registry=self.registry,
                adapters=self.adapters,
                cache=self.cache,
                health=self.health,
                waterfall_configs=self.configs,
                contacts=self.contacts,
                jobs=self.jobs,
                engine_config=self.engine_config,
                clock=self.clock,
                accept_best_effort=self.accept_best_effort,
            )
        return self._orchestrator


@pytest.fixture(autouse=True)
def isolated_config(monkeypatch):
    """No vendor keys leak in from the environment, and no shared ConfigManager between tests."""
    for name in VENDOR_KEY_VARS:
        monkeypatch.delenv(name, raising=False)
    reset_config_manager()
    yield
    reset_config_manager()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def harness(clock) -> EngineHarness:
    return EngineHarness(clock)
