"""Core models, validation and exceptions"""

from .exceptions import (
    AuthenticationError,
    ConfigurationError,
    EnrichmentError,
    LeadEnrichmentException,
    ProviderError,
    ProviderTimeoutError,
    RateLimitError,
    ValidationError,
)
from .models import (
    KNOWN_FIELDS,
    AdapterResult,
    CircuitState,
    ContactRecord,
    EnrichmentCacheEntry,
    EnrichmentJob,
    EnrichmentProvider,
    EnrichmentRequest,
    EnrichmentResult,
    FieldValue,
    JobStatus,
    ProviderHealth,
    ProviderType,
    ResultOutcome,
    WaterfallConfig,
)
from .validation import ValidationResult
