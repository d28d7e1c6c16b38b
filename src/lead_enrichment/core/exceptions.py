"""
Custom exceptions for the lead enrichment waterfall
"""

from typing import List, Optional


class LeadEnrichmentException(Exception):
    def __init__(self, message: str, provider: Optional[str] = None):
        self.message = message
        self.provider = provider
        super().__init__(self.message)


class AuthenticationError(LeadEnrichmentException):
    pass


class ProviderError(LeadEnrichmentException):
    pass


class RateLimitError(LeadEnrichmentException):
    def __init__(self, message: str, provider: Optional[str] = None, retry_after: int = 0):
        super().__init__(message, provider)
        self.retry_after = retry_after


class ProviderTimeoutError(ProviderError):
    def __init__(self, message: str, provider: Optional[str] = None, timeout_ms: int = 0):
        super().__init__(message, provider)
        self.timeout_ms = timeout_ms


class ValidationError(LeadEnrichmentException):
    def __init__(self, message: str, errors: Optional[List[str]] = None):
        super().__init__(message)
        self.errors = errors or [message]


class EnrichmentError(LeadEnrichmentException):
    pass


class ConfigurationError(LeadEnrichmentException):
    pass
