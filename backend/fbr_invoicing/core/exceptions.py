"""
Standard exceptions for the FBR submission pipeline.

Hierarchy:
    FbrError (base)
    ├── LocalValidationError
    ├── MappingError
    ├── GatewayError
    │   ├── GatewayUnreachable        (transient, safe to retry as a new attempt)
    │   ├── GatewayAuthError
    │   └── GatewayConfigurationError (raised before any network call)
    ├── ValidationRejected
    └── PostFailed                    (may or may not be recorded by FBR)
"""
from typing import Optional, Dict, Any, List


class FbrError(Exception):
    """
    Base exception for every FBR pipeline error.

    Attributes:
        message: Human readable description.
        code: Stable identifier for the error kind.
        details: Extra information for debugging and API responses.
    """
    code: str = "FBR_ERROR"

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None
    ):
        self.message = message
        self.details = details or {}
        self.cause = cause
        super().__init__(message)

    @property
    def kind(self) -> str:
        return type(self).__name__

    def to_dict(self) -> Dict[str, Any]:
        """Serialize the error for API responses."""
        return {
            "error": self.message,
            "code": self.code,
            "details": self.details
        }


class LocalValidationError(FbrError):
    """The order failed pre-flight checks. No network call was made."""
    code = "LOCAL_VALIDATION_ERROR"

    def __init__(self, errors: List[str], details: Optional[Dict[str, Any]] = None):
        self.errors = list(errors)
        super().__init__(
            f"Order validation failed: {', '.join(self.errors)}",
            details={"errors": self.errors, **(details or {})},
        )


class MappingError(FbrError):
    """A business rule prevented building the FBR invoice."""
    code = "MAPPING_ERROR"

    def __init__(
        self,
        reason: str,
        field: Optional[str] = None,
        item_index: Optional[int] = None,
    ):
        self.reason = reason
        self.field = field
        self.item_index = item_index
        prefix = f"Item {item_index + 1}: " if item_index is not None else ""
        details: Dict[str, Any] = {}
        if field:
            details["field"] = field
        if item_index is not None:
            details["item_sequence"] = item_index + 1
        super().__init__(f"{prefix}{reason}", details=details)


# ============ Gateway Errors ============

class GatewayError(FbrError):
    """Errors talking to the FBR gateway."""
    code = "GATEWAY_ERROR"
    retryable: bool = False


class GatewayUnreachable(GatewayError):
    """Timeout, connection failure or 5xx from FBR."""
    code = "GATEWAY_UNREACHABLE"
    retryable = True


class GatewayAuthError(GatewayError):
    """FBR rejected the bearer token (401/403)."""
    code = "GATEWAY_AUTH_ERROR"


class GatewayConfigurationError(GatewayError):
    """Missing token or base URL for the requested environment."""
    code = "GATEWAY_CONFIGURATION_ERROR"


# ============ Remote Outcome Errors ============

class ValidationRejected(FbrError):
    """FBR answered the validation call with a status other than Valid."""
    code = "VALIDATION_REJECTED"

    def __init__(self, message: str, response: Any = None):
        self.response = response
        super().__init__(message, details={"status": getattr(response, "status", None)})


class PostFailed(FbrError):
    """Remote validation passed but posting did not succeed."""
    code = "POST_FAILED"

    def __init__(self, message: str, response: Any = None, outcome_unknown: bool = False):
        self.response = response
        self.outcome_unknown = outcome_unknown
        super().__init__(message, details={"outcome_unknown": outcome_unknown})
