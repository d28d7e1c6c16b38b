"""
Core models for the lead enrichment waterfall
Providers, waterfall policy, circuit-breaker health, jobs and cache entries
"""

import copy
import uuid
from dataclasses import dataclass, field, asdict
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from .exceptions import EnrichmentError
from .validation import Checks, ValidationResult

# Circuit breaker defaults
FAILURE_THRESHOLD = 5
OPEN_DURATION = timedelta(seconds=60)

# Waterfall defaults, applied when a tenant has no explicit config for a field
DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_TIMEOUT_MS = 5000
DEFAULT_MIN_CONFIDENCE = 0.5
DEFAULT_CACHE_TTL_DAYS = 7
MIN_TIMEOUT_MS = 100

# Contact fields the engine knows how to enrich
KNOWN_FIELDS = frozenset({
    'email',
    'phone',
    'first_name',
    'last_name',
    'title',
    'company',
    'industry',
    'company_size',
    'linkedin_url',
    'location',
    'domain',
})


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _parse_dt(value: Any) -> Optional[datetime]:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value))


class ProviderType(Enum):
    CLEARBIT = "clearbit"
    APOLLO = "apollo"
    HUNTER = "hunter"
    PEOPLEDATALABS = "peopledatalabs"
    ZOOMINFO = "zoominfo"
    LUSHA = "lusha"
    ROCKETREACH = "rocketreach"
    BUILTWITH = "builtwith"
    WAPPALYZER = "wappalyzer"
    CUSTOM = "custom"


class CircuitState(Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class JobStatus(Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    EXHAUSTED = "exhausted"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.EXHAUSTED)


class ResultOutcome(Enum):
    """What happened to a single waterfall attempt"""
    ACCEPTED = "accepted"
    CACHE_HIT = "cache_hit"
    BEST_EFFORT = "best_effort"
    LOW_CONFIDENCE = "low_confidence"
    NO_VALUE = "no_value"
    FAILED = "failed"

    @property
    def resolves_field(self) -> bool:
        return self in (ResultOutcome.ACCEPTED, ResultOutcome.CACHE_HIT, ResultOutcome.BEST_EFFORT)


# ---------------------------------------------------------------------------
# Adapter wire types
# ---------------------------------------------------------------------------

@dataclass
class EnrichmentRequest:
    """Known contact data handed to a provider adapter"""
    email: Optional[str] = None
    phone: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    company: Optional[str] = None
    domain: Optional[str] = None
    linkedin_url: Optional[str] = None

    def __post_init__(self):
        if not self.domain and self.email and '@' in self.email:
            self.domain = self.email.split('@')[1].lower()

    @property
    def full_name(self) -> str:
        return " ".join(part for part in (self.first_name, self.last_name) if part)

    def to_dict(self) -> Dict[str, str]:
        return {k: v for k, v in asdict(self).items() if v}


@dataclass(frozen=True)
class FieldValue:
    """A single field returned by a provider"""
    field: str
    value: Any
    confidence: float = 0.0


@dataclass
class AdapterResult:
    """Uniform result of one adapter call"""
    success: bool
    fields: List[FieldValue] = field(default_factory=list)
    cost: float = 0.0
    latency_ms: int = 0
    error: Optional[str] = None

    def get_field(self, name: str) -> Optional[FieldValue]:
        for field_value in self.fields:
            if field_value.field == name:
                return field_value
        return None


# ---------------------------------------------------------------------------
# Contacts
# ---------------------------------------------------------------------------

@dataclass
class ContactRecord:
    """The subset of a CRM contact the engine reads to build adapter requests"""
    id: str
    tenant_id: str
    email: str = ""
    phone: str = ""
    first_name: str = ""
    last_name: str = ""
    company: str = ""
    domain: str = ""
    linkedin_url: str = ""

    def to_request(self) -> EnrichmentRequest:
        return EnrichmentRequest(
            email=self.email or None,
            phone=self.phone or None,
            first_name=self.first_name or None,
            last_name=self.last_name or None,
            company=self.company or None,
            domain=self.domain or None,
            linkedin_url=self.linkedin_url or None,
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ContactRecord':
        known = {f for f in cls.__dataclass_fields__}
        return cls(**{k: ("" if v is None else v) for k, v in data.items() if k in known})


# ---------------------------------------------------------------------------
# Provider registry entry
# ---------------------------------------------------------------------------

@dataclass
class EnrichmentProvider:
    """Registry entry describing an enrichment vendor for a tenant"""
    id: str
    tenant_id: str
    name: str
    provider_type: ProviderType
    supported_fields: List[str] = field(default_factory=list)
    priority: int = 0
    cost_per_lookup: float = 0.0
    avg_latency_ms: float = 0.0
    success_rate: float = 0.0
    batch_supported: bool = False
    config: Dict[str, Any] = field(default_factory=dict)
    enabled: bool = True
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    @staticmethod
    def _check(checks: Checks, provider: 'EnrichmentProvider') -> None:
        checks.require(bool(provider.id), "provider id is required")
        checks.require(bool(provider.tenant_id), "tenant id is required")
        checks.require(bool(provider.name), "provider name is required")
        checks.require(isinstance(provider.priority, int) and provider.priority >= 0,
                       "priority must be a non-negative integer")
        checks.non_negative(provider.cost_per_lookup, "cost_per_lookup")
        checks.non_negative(provider.avg_latency_ms, "avg_latency_ms")
        checks.in_unit_interval(provider.success_rate, "success_rate")
        checks.require(all(isinstance(f, str) and f for f in provider.supported_fields),
                       "supported_fields must be non-empty strings")

    @classmethod
    def create(cls,
               id: str,
               tenant_id: str,
               name: str,
               provider_type: Any,
               supported_fields: List[str],
               priority: int = 0,
               cost_per_lookup: float = 0.0,
               batch_supported: bool = False,
               config: Optional[Dict[str, Any]] = None,
               enabled: bool = True) -> ValidationResult['EnrichmentProvider']:
        checks = Checks()
        try:
            ptype = provider_type if isinstance(provider_type, ProviderType) else ProviderType(provider_type)
        except ValueError:
            return ValidationResult.failure(f"unknown provider type: {provider_type}")

        provider = cls(
            id=id,
            tenant_id=tenant_id,
            name=name,
            provider_type=ptype,
            supported_fields=list(dict.fromkeys(supported_fields or [])),
            priority=priority,
            cost_per_lookup=cost_per_lookup,
            batch_supported=batch_supported,
            config=dict(config or {}),
            enabled=enabled,
        )
        cls._check(checks, provider)
        return checks.result(provider)

    def supports_field(self, field_name: str) -> bool:
        return field_name in self.supported_fields

    def disable(self) -> None:
        self.enabled = False
        self.updated_at = utc_now()

    def enable(self) -> None:
        self.enabled = True
        self.updated_at = utc_now()

    def update(self, **changes) -> ValidationResult['EnrichmentProvider']:
        """Apply administrative changes; nothing is applied if any change is invalid"""
        allowed = {'name', 'provider_type', 'supported_fields', 'priority',
                   'cost_per_lookup', 'batch_supported', 'config', 'enabled'}
        unknown = set(changes) - allowed
        if unknown:
            return ValidationResult.failure(f"unknown provider attributes: {sorted(unknown)}")

        candidate = copy.deepcopy(self)
        for name, value in changes.items():
            if name == 'provider_type' and not isinstance(value, ProviderType):
                try:
                    value = ProviderType(value)
                except ValueError:
                    return ValidationResult.failure(f"unknown provider type: {value}")
            setattr(candidate, name, value)

        checks = Checks()
        self._check(checks, candidate)
        if checks.errors:
            return checks.result(self)

        for name in changes:
            setattr(self, name, getattr(candidate, name))
        self.updated_at = utc_now()
        return ValidationResult.success(self)

    def record_call(self, latency_ms: int, success: bool, alpha: float = 0.2) -> None:
        """Fold one observed call into the rolling latency and success averages"""
        outcome = 1.0 if success else 0.0
        if self.avg_latency_ms == 0 and self.success_rate == 0:
            self.avg_latency_ms = float(latency_ms)
            self.success_rate = outcome
        else:
            self.avg_latency_ms = (1 - alpha) * self.avg_latency_ms + alpha * latency_ms
            self.success_rate = (1 - alpha) * self.success_rate + alpha * outcome
        self.updated_at = utc_now()

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'tenant_id': self.tenant_id,
            'name': self.name,
            'provider_type': self.provider_type.value,
            'supported_fields': list(self.supported_fields),
            'priority': self.priority,
            'cost_per_lookup': self.cost_per_lookup,
            'avg_latency_ms': round(self.avg_latency_ms, 2),
            'success_rate': round(self.success_rate, 4),
            'batch_supported': self.batch_supported,
            'config': dict(self.config),
            'enabled': self.enabled,
            'created_at': _iso(self.created_at),
            'updated_at': _iso(self.updated_at),
        }


# ---------------------------------------------------------------------------
# Waterfall policy
# ---------------------------------------------------------------------------

@dataclass
class WaterfallConfig:
    """Per-(tenant, field) provider order and limits"""
    tenant_id: str
    field_name: str
    provider_order: List[str] = field(default_factory=list)
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    timeout_ms: int = DEFAULT_TIMEOUT_MS
    min_confidence: float = DEFAULT_MIN_CONFIDENCE
    cache_ttl_days: int = DEFAULT_CACHE_TTL_DAYS
    max_cost_per_lead: Optional[float] = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    @staticmethod
    def _check(checks: Checks, config: 'WaterfallConfig') -> None:
        checks.require(bool(config.tenant_id), "tenant id is required")
        checks.require(bool(config.field_name), "field name is required")
        checks.require(isinstance(config.provider_order, list)
                       and all(isinstance(p, str) and p for p in config.provider_order),
                       "provider_order must be a list of provider ids")
        checks.require(isinstance(config.max_attempts, int) and config.max_attempts >= 1,
                       "max_attempts must be >= 1")
        checks.require(isinstance(config.timeout_ms, int) and config.timeout_ms >= MIN_TIMEOUT_MS,
                       f"timeout_ms must be >= {MIN_TIMEOUT_MS}")
        checks.in_unit_interval(config.min_confidence, "min_confidence")
        checks.require(isinstance(config.cache_ttl_days, int) and config.cache_ttl_days >= 0,
                       "cache_ttl_days must be >= 0")
        if config.max_cost_per_lead is not None:
            checks.non_negative(config.max_cost_per_lead, "max_cost_per_lead")

    @classmethod
    def create(cls, tenant_id: str, field_name: str, provider_order: List[str], **policy) -> ValidationResult['WaterfallConfig']:
        unknown = set(policy) - {'max_attempts', 'timeout_ms', 'min_confidence',
                                 'cache_ttl_days', 'max_cost_per_lead'}
        if unknown:
            return ValidationResult.failure(f"unknown waterfall attributes: {sorted(unknown)}")
        policy = {k: v for k, v in policy.items() if v is not None or k == 'max_cost_per_lead'}
        config = cls(tenant_id=tenant_id, field_name=field_name,
                     provider_order=list(provider_order or []), **policy)
        checks = Checks()
        cls._check(checks, config)
        return checks.result(config)

    @classmethod
    def defaults(cls, tenant_id: str, field_name: str, provider_order: Optional[List[str]] = None) -> 'WaterfallConfig':
        """Zero-configuration policy for a field"""
        return cls(tenant_id=tenant_id, field_name=field_name, provider_order=list(provider_order or []))

    @property
    def is_usable(self) -> bool:
        return bool(self.provider_order)

    @property
    def cache_ttl(self) -> timedelta:
        return timedelta(days=self.cache_ttl_days)

    def update(self, **changes) -> ValidationResult['WaterfallConfig']:
        allowed = {'provider_order', 'max_attempts', 'timeout_ms', 'min_confidence',
                   'cache_ttl_days', 'max_cost_per_lead'}
        unknown = set(changes) - allowed
        if unknown:
            return ValidationResult.failure(f"unknown waterfall attributes: {sorted(unknown)}")

        candidate = self.snapshot()
        for name, value in changes.items():
            setattr(candidate, name, list(value) if name == 'provider_order' else value)
        checks = Checks()
        self._check(checks, candidate)
        if checks.errors:
            return checks.result(self)

        for name in changes:
            setattr(self, name, getattr(candidate, name))
        self.updated_at = utc_now()
        return ValidationResult.success(self)

    def snapshot(self) -> 'WaterfallConfig':
        """Independent copy, so later edits never reach an in-flight job"""
        return copy.deepcopy(self)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'tenant_id': self.tenant_id,
            'field_name': self.field_name,
            'provider_order': list(self.provider_order),
            'max_attempts': self.max_attempts,
            'timeout_ms': self.timeout_ms,
            'min_confidence': self.min_confidence,
            'cache_ttl_days': self.cache_ttl_days,
            'max_cost_per_lead': self.max_cost_per_lead,
            'created_at': _iso(self.created_at),
            'updated_at': _iso(self.updated_at),
        }


# ---------------------------------------------------------------------------
# Circuit breaker
# ---------------------------------------------------------------------------

@dataclass
class ProviderHealth:
    """Circuit-breaker state for one (tenant, provider) pair"""
    tenant_id: str
    provider_id: str
    success_count: int = 0
    failure_count: int = 0
    last_success_at: Optional[datetime] = None
    last_failure_at: Optional[datetime] = None
    circuit_state: CircuitState = CircuitState.CLOSED
    circuit_opened_at: Optional[datetime] = None

    def is_available(self, now: Optional[datetime] = None,
                     open_duration: timedelta = OPEN_DURATION) -> bool:
        """Whether a call may be sent to this provider.

        This is a mutating query: once an open circuit has waited
        ``open_duration`` it is moved to HALF_OPEN here, and the caller is
        expected to persist the record afterwards.
        """
        if self.circuit_state in (CircuitState.CLOSED, CircuitState.HALF_OPEN):
            return True

        now = now or utc_now()
        if self.circuit_opened_at is not None and now - self.circuit_opened_at >= open_duration:
            self.circuit_state = CircuitState.HALF_OPEN
            return True
        return False

    def record_success(self, now: Optional[datetime] = None) -> None:
        self.success_count += 1
        self.last_success_at = now or utc_now()
        if self.circuit_state == CircuitState.HALF_OPEN:
            self.circuit_state = CircuitState.CLOSED
            self.failure_count = 0
            self.circuit_opened_at = None

    def record_failure(self, now: Optional[datetime] = None,
                       failure_threshold: int = FAILURE_THRESHOLD) -> None:
        now = now or utc_now()
        self.failure_count += 1
        self.last_failure_at = now
        if self.circuit_state == CircuitState.HALF_OPEN or self.failure_count >= failure_threshold:
            self.circuit_state = CircuitState.OPEN
            self.circuit_opened_at = now

    def to_dict(self) -> Dict[str, Any]:
        return {
            'tenant_id': self.tenant_id,
            'provider_id': self.provider_id,
            'success_count': self.success_count,
            'failure_count': self.failure_count,
            'last_success_at': _iso(self.last_success_at),
            'last_failure_at': _iso(self.last_failure_at),
            'circuit_state': self.circuit_state.value,
            'circuit_opened_at': _iso(self.circuit_opened_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ProviderHealth':
        return cls(
            tenant_id=data['tenant_id'],
            provider_id=data['provider_id'],
            success_count=int(data.get('success_count', 0)),
            failure_count=int(data.get('failure_count', 0)),
            last_success_at=_parse_dt(data.get('last_success_at')),
            last_failure_at=_parse_dt(data.get('last_failure_at')),
            circuit_state=CircuitState(data.get('circuit_state', 'closed')),
            circuit_opened_at=_parse_dt(data.get('circuit_opened_at')),
        )


# ---------------------------------------------------------------------------
# Cache entries
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class EnrichmentCacheEntry:
    tenant_id: str
    contact_id: str
    field_name: str
    provider_id: str
    value: Any
    confidence: float
    expires_at: datetime

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return (now or utc_now()) >= self.expires_at


# ---------------------------------------------------------------------------
# Jobs
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class EnrichmentResult:
    """One waterfall attempt for one field"""
    field: str
    provider: str
    value: Any = None
    confidence: float = 0.0
    cost: float = 0.0
    latency_ms: int = 0
    outcome: ResultOutcome = ResultOutcome.ACCEPTED
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'field': self.field,
            'provider': self.provider,
            'value': self.value,
            'confidence': self.confidence,
            'cost': self.cost,
            'latency_ms': self.latency_ms,
            'outcome': self.outcome.value,
            'error': self.error,
        }


@dataclass
class EnrichmentJob:
    """Progress and outcome of one enrichment request"""
    tenant_id: str
    contact_id: str
    field_requests: List[str]
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    status: JobStatus = JobStatus.PENDING
    results: List[EnrichmentResult] = field(default_factory=list)
    total_cost: float = 0.0
    total_latency_ms: int = 0
    providers_tried: List[str] = field(default_factory=list)
    unresolved_fields: List[str] = field(default_factory=list)
    field_errors: Dict[str, str] = field(default_factory=dict)
    error: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    created_at: datetime = field(default_factory=utc_now)

    @classmethod
    def create(cls, tenant_id: str, contact_id: str, field_requests: List[str],
               job_id: Optional[str] = None) -> 'EnrichmentJob':
        job = cls(tenant_id=tenant_id, contact_id=contact_id,
                  field_requests=list(dict.fromkeys(field_requests or [])))
        if job_id:
            job.id = job_id
        return job

    def _require(self, *allowed: JobStatus) -> None:
        if self.status not in allowed:
            raise EnrichmentError(f"Job {self.id} cannot leave state '{self.status.value}'")

    def start(self) -> None:
        self._require(JobStatus.PENDING)
        self.status = JobStatus.RUNNING
        self.started_at = utc_now()

    def add_result(self, result: EnrichmentResult) -> None:
        self._require(JobStatus.RUNNING)
        self.results.append(result)
        self.total_cost += result.cost
        self.total_latency_ms += result.latency_ms
        if result.outcome != ResultOutcome.CACHE_HIT and result.provider not in self.providers_tried:
            self.providers_tried.append(result.provider)

    def mark_unresolved(self, field_name: str) -> None:
        if field_name not in self.unresolved_fields:
            self.unresolved_fields.append(field_name)

    def record_field_error(self, field_name: str, error: str) -> None:
        """Note an internal error that cut one field's waterfall short"""
        self.field_errors[field_name] = error

    def complete(self) -> None:
        self._require(JobStatus.RUNNING)
        self.status = JobStatus.COMPLETED
        self.completed_at = utc_now()

    def exhaust(self) -> None:
        self._require(JobStatus.RUNNING)
        self.status = JobStatus.EXHAUSTED
        self.completed_at = utc_now()

    def fail(self, error: str) -> None:
        self._require(JobStatus.PENDING, JobStatus.RUNNING)
        self.status = JobStatus.FAILED
        self.error = error
        self.completed_at = utc_now()

    def resolved_result(self, field_name: str) -> Optional[EnrichmentResult]:
        for result in self.results:
            if result.field == field_name and result.outcome.resolves_field:
                return result
        return None

    def resolved_values(self) -> Dict[str, Any]:
        values = {}
        for field_name in self.field_requests:
            result = self.resolved_result(field_name)
            if result is not None:
                values[field_name] = result.value
        return values

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'tenant_id': self.tenant_id,
            'contact_id': self.contact_id,
            'status': self.status.value,
            'field_requests': list(self.field_requests),
            'results': [r.to_dict() for r in self.results],
            'total_cost': round(self.total_cost, 6),
            'total_latency_ms': self.total_latency_ms,
            'providers_tried': list(self.providers_tried),
            'unresolved_fields': list(self.unresolved_fields),
            'field_errors': dict(self.field_errors),
            'error': self.error,
            'started_at': _iso(self.started_at),
            'completed_at': _iso(self.completed_at),
            'created_at': _iso(self.created_at),
        }
