"""
Provider Health Tracker
Per-(tenant, provider) circuit breakers with serialized updates
"""

import asyncio
import logging
from collections import defaultdict
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional, Set, Tuple

from ..core.models import FAILURE_THRESHOLD, OPEN_DURATION, CircuitState, ProviderHealth, utc_now
from .repositories import InMemoryProviderHealthRepository, ProviderHealthRepository


class ProviderHealthTracker:
    """
    Gatekeeper for provider calls.

    Every read-modify-write of a health record runs under a lock for its
    (tenant, provider) key, so concurrent jobs hitting the same provider never
    lose counter updates. ``is_available`` may change state (open ->
    half_open) and persists that change.
    """

    def __init__(self,
                 repository: Optional[ProviderHealthRepository] = None,
                 failure_threshold: int = FAILURE_THRESHOLD,
                 open_duration: timedelta = OPEN_DURATION,
                 clock: Callable[[], datetime] = utc_now):
        self.logger = logging.getLogger(__name__)
        self.repository = repository or InMemoryProviderHealthRepository()
        self.failure_threshold = failure_threshold
        self.open_duration = open_duration
        self.clock = clock
        self._locks: Dict[Tuple[str, str], asyncio.Lock] = defaultdict(asyncio.Lock)
        # Half-open circuits with a trial call already handed out
        self._trials: Set[Tuple[str, str]] = set()

    async def _load(self, tenant_id: str, provider_id: str) -> Tuple[ProviderHealth, bool]:
        health = await self.repository.find_by_provider(tenant_id, provider_id)
        if health is None:
            return ProviderHealth(tenant_id=tenant_id, provider_id=provider_id), True
        return health, False

    async def is_available(self, tenant_id: str, provider_id: str) -> bool:
        """Whether a call may be sent now.

        A half-open circuit grants a single trial call: the caller that gets
        True holds it until ``record_success``, ``record_failure`` or
        ``release_trial``, and everyone else gets False meanwhile.
        """
        key = (tenant_id, provider_id)
        async with self._locks[key]:
            health, created = await self._load(tenant_id, provider_id)
            before = health.circuit_state
            available = health.is_available(self.clock(), self.open_duration)
            if created or health.circuit_state != before:
                await self.repository.save(health)
            if health.circuit_state != before:
                self.logger.info(f"Circuit for {provider_id} (tenant {tenant_id}) is now half-open")

            if available and health.circuit_state == CircuitState.HALF_OPEN:
                if key in self._trials:
                    return False
                self._trials.add(key)
            return available

    def release_trial(self, tenant_id: str, provider_id: str) -> None:
        """Hand back a half-open trial that was granted but not used"""
        self._trials.discard((tenant_id, provider_id))

    async def record_success(self, tenant_id: str, provider_id: str) -> ProviderHealth:
        async with self._locks[(tenant_id, provider_id)]:
            self._trials.discard((tenant_id, provider_id))
            health, _ = await self._load(tenant_id, provider_id)
            before = health.circuit_state
            health.record_success(self.clock())
            await self.repository.save(health)
            if before != health.circuit_state:
                self.logger.info(f"Circuit for {provider_id} (tenant {tenant_id}) closed")
            return health

    async def record_failure(self, tenant_id: str, provider_id: str) -> ProviderHealth:
        async with self._locks[(tenant_id, provider_id)]:
            self._trials.discard((tenant_id, provider_id))
            health, _ = await self._load(tenant_id, provider_id)
            before = health.circuit_state
            health.record_failure(self.clock(), self.failure_threshold)
            await self.repository.save(health)
            if health.circuit_state == CircuitState.OPEN and before != CircuitState.OPEN:
                self.logger.warning(
                    f"Circuit for {provider_id} (tenant {tenant_id}) opened "
                    f"after {health.failure_count} failures"
                )
            return health

    async def get(self, tenant_id: str, provider_id: str) -> Optional[ProviderHealth]:
        return await self.repository.find_by_provider(tenant_id, provider_id)

    async def list_for_tenant(self, tenant_id: str) -> List[ProviderHealth]:
        return await self.repository.list_for_tenant(tenant_id)
