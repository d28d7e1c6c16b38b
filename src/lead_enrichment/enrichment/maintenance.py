"""
Background maintenance for the enrichment engine
Vendor health-check sweep and expired cache cleanup
"""

import asyncio
import logging
from typing import Any, Dict, Mapping

from .cache import EnrichmentCache


class ProviderHealthMonitor:
    """
    Calls ``health_check()`` on every adapter and reports the outcome.

    The report is informational: circuit breakers only move on real
    enrichment calls, so a failed probe never opens a circuit.
    """

    def __init__(self, adapters: Mapping[str, Any]):
        self.logger = logging.getLogger(__name__)
        self.adapters = dict(adapters)

    async def _check(self, provider_id: str, adapter: Any) -> bool:
        try:
            return bool(await adapter.health_check())
        except Exception as e:
            self.logger.warning(f"Health check for {provider_id} raised {type(e).__name__}: {e}")
            return False

    async def run_health_checks(self) -> Dict[str, bool]:
        if not self.adapters:
            return {}

        provider_ids = sorted(self.adapters)
        outcomes = await asyncio.gather(*(self._check(pid, self.adapters[pid]) for pid in provider_ids))
        report = dict(zip(provider_ids, outcomes))

        unhealthy = [pid for pid, ok in report.items() if not ok]
        if unhealthy:
            self.logger.warning(f"Unhealthy providers: {', '.join(unhealthy)}")
        self.logger.info(f"Health checks completed: {len(report) - len(unhealthy)}/{len(report)} healthy")
        return report


async def cleanup_cache(cache: EnrichmentCache) -> int:
    """Purge expired cache entries; returns how many were removed"""
    removed = await cache.delete_expired()
    logging.getLogger(__name__).info(f"Cache cleanup removed {removed} expired entries")
    return removed
