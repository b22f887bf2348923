# Core module - exceptions and retry helpers
from .exceptions import (
    FbrError, LocalValidationError, MappingError,
    GatewayError, GatewayUnreachable, GatewayAuthError, GatewayConfigurationError,
    ValidationRejected, PostFailed,
)
from .retry import fbr_validate_retry

__all__ = [
    # Exceptions
    'FbrError', 'LocalValidationError', 'MappingError',
    'GatewayError', 'GatewayUnreachable', 'GatewayAuthError', 'GatewayConfigurationError',
    'ValidationRejected', 'PostFailed',
    # Retry
    'fbr_validate_retry',
]
