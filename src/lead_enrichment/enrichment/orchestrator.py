"""
Waterfall Orchestrator
Resolves requested contact fields by walking each field's provider order
under health, cost, attempt and confidence constraints
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from ..config.config import EngineConfig
from ..core.exceptions import ValidationError
from ..core.models import (
    KNOWN_FIELDS,
    AdapterResult,
    ContactRecord,
    EnrichmentCacheEntry,
    EnrichmentJob,
    EnrichmentProvider,
    EnrichmentRequest,
    EnrichmentResult,
    FieldValue,
    JobStatus,
    ResultOutcome,
    WaterfallConfig,
    utc_now,
)
from .cache import EnrichmentCache, InMemoryEnrichmentCache
from .health import ProviderHealthTracker
from .registry import ProviderRegistry
from .repositories import (
    ContactRepository,
    InMemoryContactRepository,
    InMemoryJobRepository,
    InMemoryWaterfallConfigStore,
    JobRepository,
    WaterfallConfigRepository,
)

# Fields requested when a caller does not name any (CLI, batch requests)
DEFAULT_FIELDS = ('email', 'phone', 'company', 'title')
MAX_BATCH_SIZE = 100

# Cost comparisons tolerate float rounding (0.03 + 0.02 must not exceed 0.05)
_COST_EPSILON = 1e-9


@dataclass
class FieldOutcome:
    """Everything one field's waterfall produced, merged into the job afterwards"""
    field_name: str
    results: List[EnrichmentResult] = field(default_factory=list)
    resolved: bool = False
    error: Optional[str] = None


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _malformed_reason(result: Any, field_name: str) -> Optional[str]:
    """Why an adapter's return value cannot be used, or None when it is well formed"""
    if not isinstance(result, AdapterResult):
        return f"expected AdapterResult, got {type(result).__name__}"
    if not _is_number(result.cost) or result.cost < 0:
        return f"invalid cost {result.cost!r}"
    if not _is_number(result.latency_ms) or result.latency_ms < 0:
        return f"invalid latency {result.latency_ms!r}"
    if not isinstance(result.fields, (list, tuple)) \
            or not all(isinstance(f, FieldValue) for f in result.fields):
        return "fields must be FieldValue entries"

    field_value = result.get_field(field_name)
    if field_value is not None and (not _is_number(field_value.confidence)
                                    or not 0.0 <= field_value.confidence <= 1.0):
        return f"invalid confidence {field_value.confidence!r} for {field_name}"
    return None


class WaterfallOrchestrator:
    """
    Main enrichment engine.

    Each requested field runs its own waterfall; fields run concurrently up
    to ``fan_out_limit`` while providers within a field are always tried one
    after another. Results are merged into the job in requested-field order
    so the job record does not depend on task scheduling.
    """

    def __init__(self,
                 registry: ProviderRegistry,
                 adapters: Mapping[str, Any],
                 cache: Optional[EnrichmentCache] = None,
                 health: Optional[ProviderHealthTracker] = None,
                 waterfall_configs: Optional[WaterfallConfigRepository] = None,
                 contacts: Optional[ContactRepository] = None,
                 jobs: Optional[JobRepository] = None,
                 engine_config: Optional[EngineConfig] = None,
                 clock: Callable[[], datetime] = utc_now,
                 accept_best_effort: Optional[bool] = None):
        self.logger = logging.getLogger(__name__)
        self.engine_config = engine_config or EngineConfig()
        self.clock = clock

        self.registry = registry
        self.adapters = dict(adapters)
        self.cache = cache or InMemoryEnrichmentCache(clock)
        self.health = health or ProviderHealthTracker(
            failure_threshold=self.engine_config.failure_threshold,
            open_duration=timedelta(seconds=self.engine_config.open_duration_seconds),
            clock=clock,
        )
        self.waterfall_configs = waterfall_configs or InMemoryWaterfallConfigStore()
        self.contacts = contacts or InMemoryContactRepository()
        self.jobs = jobs or InMemoryJobRepository()

        if accept_best_effort is None:
            accept_best_effort = self.engine_config.accept_best_effort
        self.accept_best_effort = accept_best_effort

        # Running totals across jobs
        self.total_cost = 0.0
        self.total_jobs = 0

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    async def enrich(self, tenant_id: str, contact_id: str, fields: Sequence[str]) -> EnrichmentJob:
        """
        Enrich the requested fields of one contact

        Args:
            tenant_id: Tenant that owns the contact
            contact_id: Contact to enrich
            fields: Field names to resolve

        Returns:
            The finished EnrichmentJob. Invalid requests come back as a
            failed job, never as an exception.
        """
        job = EnrichmentJob.create(tenant_id, contact_id, list(fields or []))
        self.total_jobs += 1

        contact, error = await self._validate_request(tenant_id, contact_id, job.field_requests)
        if error:
            self.logger.warning(f"Rejected enrichment request for contact {contact_id}: {error}")
            job.fail(error)
            await self.jobs.save(job)
            return job

        job.start()
        await self.jobs.save(job)
        self.logger.info(
            f"Starting enrichment job {job.id} for contact {contact_id} "
            f"(fields: {', '.join(job.field_requests)})"
        )
        start_time = time.monotonic()

        outcomes = await self._run_waterfalls(tenant_id, contact, job.field_requests)

        for outcome in outcomes:
            for result in outcome.results:
                job.add_result(result)
            if not outcome.resolved:
                job.mark_unresolved(outcome.field_name)
            if outcome.error:
                job.record_field_error(outcome.field_name, outcome.error)

        if job.unresolved_fields:
            job.exhaust()
        else:
            job.complete()
        await self.jobs.save(job)
        self.total_cost += job.total_cost

        self.logger.info(
            f"Enrichment job {job.id} {job.status.value}: "
            f"{len(job.field_requests) - len(job.unresolved_fields)}/{len(job.field_requests)} fields "
            f"in {time.monotonic() - start_time:.2f}s (${job.total_cost:.2f} cost, "
            f"providers: {', '.join(job.providers_tried) or 'none'})"
        )
        return job

    async def enrich_batch(self, tenant_id: str, contact_ids: Sequence[str],
                           fields: Sequence[str] = DEFAULT_FIELDS) -> List[EnrichmentJob]:
        """Enrich many contacts; jobs are returned in contact_ids order"""
        if not contact_ids:
            return []
        if len(contact_ids) > MAX_BATCH_SIZE:
            raise ValidationError(f"Batch size must be 1-{MAX_BATCH_SIZE} contacts, got {len(contact_ids)}")

        self.logger.info(f"Starting batch enrichment for {len(contact_ids)} contacts")
        semaphore = asyncio.Semaphore(max(1, self.engine_config.batch_concurrency))

        async def run(contact_id: str) -> EnrichmentJob:
            async with semaphore:
                return await self.enrich(tenant_id, contact_id, fields)

        jobs = await asyncio.gather(*(run(contact_id) for contact_id in contact_ids))

        completed = sum(1 for job in jobs if job.status == JobStatus.COMPLETED)
        self.logger.info(
            f"Batch enrichment completed: {completed}/{len(jobs)} jobs completed "
            f"(${sum(job.total_cost for job in jobs):.2f} cost)"
        )
        return list(jobs)

    async def get_history(self, tenant_id: str, contact_id: str) -> List[EnrichmentJob]:
        """Past jobs for a contact, newest first"""
        return await self.jobs.list_by_contact(tenant_id, contact_id)

    async def cleanup(self):
        """Close adapter sessions"""
        for provider_id, adapter in self.adapters.items():
            close = getattr(adapter, 'close', None)
            if close is None:
                continue
            try:
                await close()
            except Exception as e:
                self.logger.warning(f"Failed to cleanup source {provider_id}: {e}")

        self.logger.info(f"Enrichment cleanup completed (${self.total_cost:.2f} total cost)")

    def get_statistics(self) -> Dict[str, Any]:
        """Get enrichment statistics"""
        return {
            'adapters_available': len(self.adapters),
            'adapters': sorted(self.adapters),
            'total_jobs': self.total_jobs,
            'total_cost': round(self.total_cost, 6),
            'accept_best_effort': self.accept_best_effort,
        }

    # ------------------------------------------------------------------
    # Request handling
    # ------------------------------------------------------------------

    async def _validate_request(self, tenant_id: str, contact_id: str, fields: List[str]):
        if not tenant_id or not await self.contacts.has_tenant(tenant_id):
            return None, f"Unknown tenant: {tenant_id}"

        contact = await self.contacts.get(tenant_id, contact_id) if contact_id else None
        if contact is None:
            return None, f"Unknown contact: {contact_id}"

        if not fields:
            return None, "No fields requested"

        unknown = [f for f in fields if f not in KNOWN_FIELDS]
        if unknown:
            return None, f"Unknown fields: {', '.join(unknown)}"

        return contact, None

    async def _run_waterfalls(self, tenant_id: str, contact: ContactRecord,
                              fields: List[str]) -> List[FieldOutcome]:
        request = contact.to_request()
        semaphore = asyncio.Semaphore(max(1, self.engine_config.fan_out_limit))

        async def run(field_name: str) -> FieldOutcome:
            # A broken waterfall keeps whatever it already paid for
            outcome = FieldOutcome(field_name)
            async with semaphore:
                try:
                    await self._enrich_field(tenant_id, contact.id, request, outcome)
                except Exception as e:
                    self.logger.exception(f"Waterfall for {field_name} on contact {contact.id} failed: {e}")
                    outcome.error = f"Internal error: {e}"
                    outcome.resolved = any(r.outcome.resolves_field for r in outcome.results)
            return outcome

        return list(await asyncio.gather(*(run(f) for f in fields)))

    async def _resolve_config(self, tenant_id: str, field_name: str) -> WaterfallConfig:
        """Config snapshot for this job.

        An explicit config is used as stored, even with an empty order (the
        field is then un-enrichable). Unconfigured fields get the default
        policy with the registry's priority order.
        """
        explicit = await self.waterfall_configs.find_by_field(tenant_id, field_name)
        if explicit is not None:
            return explicit.snapshot()

        config = await self.waterfall_configs.get(tenant_id, field_name)
        config.provider_order = self.registry.default_order(tenant_id, field_name)
        return config

    # ------------------------------------------------------------------
    # Per-field waterfall
    # ------------------------------------------------------------------

    async def _enrich_field(self, tenant_id: str, contact_id: str,
                            request: EnrichmentRequest, outcome: FieldOutcome) -> FieldOutcome:
        field_name = outcome.field_name

        # Check cache first
        cached = await self.cache.get(tenant_id, contact_id, field_name)
        if cached is not None:
            self.logger.debug(f"Cache hit for {field_name} on contact {contact_id}")
            outcome.results.append(EnrichmentResult(
                field=field_name,
                provider=cached.provider_id,
                value=cached.value,
                confidence=cached.confidence,
                cost=0.0,
                latency_ms=0,
                outcome=ResultOutcome.CACHE_HIT,
            ))
            outcome.resolved = True
            return outcome

        config = await self._resolve_config(tenant_id, field_name)
        if not config.provider_order:
            self.logger.info(f"No providers can supply {field_name} for tenant {tenant_id}")
            return outcome

        attempts = 0
        spent = 0.0
        fallback_index: Optional[int] = None

        for provider_id in config.provider_order:
            provider = self.registry.get(tenant_id, provider_id)
            adapter = self.adapters.get(provider_id)
            if provider is None or adapter is None or not provider.enabled \
                    or not provider.supports_field(field_name):
                self.logger.debug(f"Skipping {provider_id} for {field_name}: not usable")
                continue

            if attempts >= config.max_attempts:
                break

            if not await self.health.is_available(tenant_id, provider_id):
                self.logger.debug(f"Skipping {provider_id} for {field_name}: circuit open or trial in flight")
                continue

            if config.max_cost_per_lead is not None \
                    and spent + provider.cost_per_lookup > config.max_cost_per_lead + _COST_EPSILON:
                self.health.release_trial(tenant_id, provider_id)
                self.logger.info(
                    f"Cost cap ${config.max_cost_per_lead:.2f} reached for {field_name} "
                    f"(spent ${spent:.2f}, {provider_id} costs ${provider.cost_per_lookup:.2f})"
                )
                break

            try:
                result = await self._attempt(tenant_id, provider, adapter, request, field_name, config)
            finally:
                self.health.release_trial(tenant_id, provider_id)
            attempts += 1
            spent += result.cost
            outcome.results.append(result)

            if result.outcome == ResultOutcome.ACCEPTED:
                await self.cache.set(EnrichmentCacheEntry(
                    tenant_id=tenant_id,
                    contact_id=contact_id,
                    field_name=field_name,
                    provider_id=provider_id,
                    value=result.value,
                    confidence=result.confidence,
                    expires_at=self.clock() + config.cache_ttl,
                ))
                outcome.resolved = True
                return outcome

            if result.outcome == ResultOutcome.LOW_CONFIDENCE and (
                    fallback_index is None
                    or result.confidence > outcome.results[fallback_index].confidence):
                fallback_index = len(outcome.results) - 1

        if fallback_index is not None and self.accept_best_effort:
            best = outcome.results[fallback_index]
            outcome.results[fallback_index] = replace(best, outcome=ResultOutcome.BEST_EFFORT)
            outcome.resolved = True
            self.logger.info(
                f"Accepted best-effort {field_name} from {best.provider} "
                f"(confidence {best.confidence:.2f} < {config.min_confidence:.2f})"
            )
        else:
            self.logger.info(f"Could not resolve {field_name} for contact {contact_id} after {attempts} attempts")

        return outcome

    async def _attempt(self, tenant_id: str, provider: EnrichmentProvider, adapter: Any,
                       request: EnrichmentRequest, field_name: str,
                       config: WaterfallConfig) -> EnrichmentResult:
        """Call one provider and classify the outcome; never raises for provider errors"""
        start_time = time.monotonic()
        try:
            adapter_result: AdapterResult = await asyncio.wait_for(
                adapter.enrich(request), timeout=config.timeout_ms / 1000.0
            )
        except asyncio.TimeoutError:
            latency_ms = int((time.monotonic() - start_time) * 1000)
            self.logger.warning(f"{provider.id} timed out after {config.timeout_ms}ms for {field_name}")
            return await self._failed(tenant_id, provider, field_name, latency_ms,
                                      f"Timed out after {config.timeout_ms}ms")
        except Exception as e:
            latency_ms = int((time.monotonic() - start_time) * 1000)
            self.logger.warning(f"{provider.id} raised {type(e).__name__} for {field_name}: {e}")
            return await self._failed(tenant_id, provider, field_name, latency_ms, str(e) or type(e).__name__)

        problem = _malformed_reason(adapter_result, field_name)
        if problem:
            latency_ms = int((time.monotonic() - start_time) * 1000)
            self.logger.warning(f"{provider.id} returned a malformed result for {field_name}: {problem}")
            return await self._failed(tenant_id, provider, field_name, latency_ms, f"Malformed result: {problem}")

        latency_ms = int(adapter_result.latency_ms) or int((time.monotonic() - start_time) * 1000)
        self.registry.record_observation(tenant_id, provider.id, latency_ms,
                                         adapter_result.success, self.engine_config.ema_alpha)

        if not adapter_result.success:
            await self.health.record_failure(tenant_id, provider.id)
            self.logger.debug(f"{provider.id} reported failure for {field_name}: {adapter_result.error}")
            return EnrichmentResult(
                field=field_name,
                provider=provider.id,
                cost=adapter_result.cost,
                latency_ms=latency_ms,
                outcome=ResultOutcome.FAILED,
                error=adapter_result.error or "Provider reported failure",
            )

        await self.health.record_success(tenant_id, provider.id)

        field_value = adapter_result.get_field(field_name)
        if field_value is None or field_value.value in (None, ''):
            return EnrichmentResult(
                field=field_name,
                provider=provider.id,
                cost=adapter_result.cost,
                latency_ms=latency_ms,
                outcome=ResultOutcome.NO_VALUE,
            )

        accepted = field_value.confidence >= config.min_confidence
        return EnrichmentResult(
            field=field_name,
            provider=provider.id,
            value=field_value.value,
            confidence=field_value.confidence,
            cost=adapter_result.cost,
            latency_ms=latency_ms,
            outcome=ResultOutcome.ACCEPTED if accepted else ResultOutcome.LOW_CONFIDENCE,
        )

    async def _failed(self, tenant_id: str, provider: EnrichmentProvider, field_name: str,
                      latency_ms: int, error: str) -> EnrichmentResult:
        # The vendor may already have billed the call
        await self.health.record_failure(tenant_id, provider.id)
        self.registry.record_observation(tenant_id, provider.id, latency_ms, False,
                                         self.engine_config.ema_alpha)
        return EnrichmentResult(
            field=field_name,
            provider=provider.id,
            cost=provider.cost_per_lookup,
            latency_ms=latency_ms,
            outcome=ResultOutcome.FAILED,
            error=error,
        )
