"""
Base class for enrichment source adapters
Uniform enrich/health_check contract over vendor HTTP APIs
"""

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Tuple

import aiohttp

from ...config.config_manager import get_config_manager
from ...core.exceptions import (
    AuthenticationError,
    EnrichmentError,
    LeadEnrichmentException,
    ProviderError,
    ProviderTimeoutError,
    RateLimitError,
)
from ...core.models import AdapterResult, EnrichmentRequest, FieldValue


class BaseEnrichmentSource(ABC):
    """
    Shared plumbing for vendor adapters.

    Subclasses describe the vendor (id, fields, cost), build the request in
    ``_fetch`` and map the payload in ``_process_response``. Every vendor
    error is turned into ``AdapterResult(success=False)`` here; only a
    connection-level failure escapes ``enrich``.
    """

    provider_id: str = ""
    display_name: str = ""
    supported_fields: Tuple[str, ...] = ()
    cost_per_lookup: float = 0.0
    no_match_cost: float = 0.0
    health_path: str = ""

    def __init__(self,
                 api_key: Optional[str] = None,
                 base_url: Optional[str] = None,
                 timeout: int = 10,
                 session: Optional[aiohttp.ClientSession] = None):
        self.logger = logging.getLogger(f"{self.__class__.__name__}")
        if api_key is None or base_url is None:
            settings = get_config_manager().get_vendor_settings(self.provider_id)
            api_key = settings.get('api_key', '') if api_key is None else api_key
            base_url = settings.get('base_url', '') if base_url is None else base_url
        self.api_key = api_key or ''
        self.base_url = (base_url or '').rstrip('/')
        self.timeout = timeout

        # Session for HTTP requests
        self.session: Optional[aiohttp.ClientSession] = session
        self._owns_session = session is None

    async def __aenter__(self):
        """Async context manager entry"""
        self._ensure_session()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit"""
        await self.close()

    def _ensure_session(self) -> aiohttp.ClientSession:
        if self.session is None or self.session.closed:
            self.session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout),
                headers={
                    'User-Agent': 'LeadEnrichment/1.0',
                    'Accept': 'application/json',
                },
            )
            self._owns_session = True
        return self.session

    async def close(self):
        if self.session and self._owns_session and not self.session.closed:
            await self.session.close()
        self.session = None

    def is_enabled(self) -> bool:
        """Check if the source has credentials"""
        return bool(self.api_key) and self.api_key.strip() != ""

    def _auth_headers(self) -> Dict[str, str]:
        return {}

    async def _request(self, method: str, path: str, **kwargs) -> Optional[Dict[str, Any]]:
        """Send one request; returns the JSON body, or None when the vendor has no match"""
        session = self._ensure_session()
        url = path if path.startswith('http') else f"{self.base_url}{path}"
        headers = {**self._auth_headers(), **kwargs.pop('headers', {})}

        try:
            async with session.request(method, url, headers=headers, **kwargs) as response:
                return await self._handle_response(response)
        except asyncio.TimeoutError:
            raise ProviderTimeoutError(
                f"{self.display_name} did not answer within {self.timeout}s",
                self.provider_id,
                timeout_ms=self.timeout * 1000,
            )

    async def _handle_response(self, response: aiohttp.ClientResponse) -> Optional[Dict[str, Any]]:
        if response.status == 200:
            return await response.json(content_type=None)

        elif response.status == 404:
            self.logger.debug(f"No {self.display_name} data found")
            return None

        elif response.status in (401, 403):
            raise AuthenticationError(f"Invalid {self.display_name} API key", self.provider_id)

        elif response.status == 429:
            retry_after = int(response.headers.get('Retry-After', 60))
            raise RateLimitError(
                f"{self.display_name} rate limit exceeded",
                self.provider_id,
                retry_after=retry_after,
            )

        else:
            error_text = await response.text()
            raise ProviderError(f"HTTP {response.status}: {error_text[:200]}", self.provider_id)

    @abstractmethod
    async def _fetch(self, request: EnrichmentRequest) -> Optional[Dict[str, Any]]:
        """Call the vendor; None means no match"""

    @abstractmethod
    def _process_response(self, data: Dict[str, Any]) -> List[FieldValue]:
        """Map a vendor payload to field values"""

    async def enrich(self, request: EnrichmentRequest) -> AdapterResult:
        """
        Enrich known contact data

        Args:
            request: Contact data known so far

        Returns:
            AdapterResult with the fields the vendor returned
        """
        start_time = time.monotonic()

        def elapsed_ms() -> int:
            return int((time.monotonic() - start_time) * 1000)

        if not self.is_enabled():
            return AdapterResult(success=False, error=f"{self.display_name} not configured")

        try:
            data = await self._fetch(request)

            if not data:
                return AdapterResult(
                    success=False,
                    error="No match found",
                    cost=self.no_match_cost,
                    latency_ms=elapsed_ms(),
                )

            fields = [fv for fv in self._process_response(data) if fv.value not in (None, '', [])]
            self.logger.debug(f"{self.display_name} returned {len(fields)} fields")
            return AdapterResult(
                success=True,
                fields=fields,
                cost=self.cost_per_lookup,
                latency_ms=elapsed_ms(),
            )

        except RateLimitError as e:
            self.logger.warning(f"{self.display_name} rate limit hit: {e}")
            return AdapterResult(success=False, error=f"Rate limit exceeded: {e}", latency_ms=elapsed_ms())

        except AuthenticationError as e:
            self.logger.error(f"{self.display_name} authentication failed: {e}")
            return AdapterResult(success=False, error=f"Authentication failed: {e}", latency_ms=elapsed_ms())

        except LeadEnrichmentException as e:
            self.logger.warning(f"{self.display_name} enrichment failed: {e}")
            return AdapterResult(success=False, error=str(e), latency_ms=elapsed_ms())

        except (aiohttp.ClientResponseError, aiohttp.ContentTypeError, ValueError) as e:
            self.logger.warning(f"{self.display_name} returned a malformed response: {e}")
            return AdapterResult(success=False, error=f"Malformed response: {e}", latency_ms=elapsed_ms())

    async def health_check(self) -> bool:
        """Probe the vendor's health or account endpoint"""
        if not self.is_enabled():
            return False
        if not self.health_path:
            # Vendor has no probe endpoint; credentials are all we can check
            return True
        try:
            await self._request('GET', self.health_path)
            return True
        except (LeadEnrichmentException, aiohttp.ClientError) as e:
            self.logger.warning(f"{self.display_name} health check failed: {e}")
            return False

    def get_cost_estimate(self, contact_count: int) -> Dict[str, float]:
        """Get cost estimate for enriching contacts"""
        return {
            'per_contact': self.cost_per_lookup,
            'total_cost': contact_count * self.cost_per_lookup,
        }

    def get_source_info(self) -> Dict[str, Any]:
        """Get information about this enrichment source"""
        return {
            'provider_id': self.provider_id,
            'name': self.display_name,
            'supported_fields': list(self.supported_fields),
            'cost_per_lookup': self.cost_per_lookup,
            'enabled': self.is_enabled(),
        }


def require_lookup_key(request: EnrichmentRequest, provider_id: str, *keys: str) -> None:
    """Raise when none of the request keys a vendor matches on are present"""
    if not any(getattr(request, key) for key in keys):
        raise EnrichmentError(f"Request needs one of {', '.join(keys)}", provider_id)
