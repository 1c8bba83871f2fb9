"""
Error taxonomy for the fault tolerance layer.

Every error that crosses the decoration boundary derives from
``FaultToleranceError`` and carries a severity and a category, so callers and
monitoring can tell "downstream is known-bad" (circuit open) apart from
"downstream is flaky and retries ran out" (retry exhausted).
"""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorSeverity(str, Enum):
    """Error severity levels for categorization and alerting"""

    LOW = "low"  # Minor issues, logging only
    MEDIUM = "medium"  # Important issues, monitoring alerts
    HIGH = "high"  # Critical issues, immediate attention
    CRITICAL = "critical"  # System-threatening issues, emergency response


class ErrorCategory(str, Enum):
    """Error categories for systematic handling"""

    CONFIGURATION = "configuration"  # Config/setup errors
    CIRCUIT_OPEN = "circuit_open"  # Breaker denied the call
    RETRY_EXHAUSTED = "retry_exhausted"  # Timeout or attempt bound reached
    ROUTING = "routing"  # No matching route
    TRANSPORT = "transport"  # Broker/transport errors
    REGISTRY = "registry"  # Endpoint lookup/registration errors


class FaultToleranceError(Exception):
    """Base exception for fault tolerance errors"""

    def __init__(
        self,
        message: str,
        severity: ErrorSeverity = ErrorSeverity.MEDIUM,
        category: ErrorCategory = ErrorCategory.TRANSPORT,
        technical_details: Optional[Dict[str, Any]] = None,
        recovery_suggestions: Optional[list] = None,
    ):
        super().__init__(message)
        self.message = message
        self.severity = severity
        self.category = category
        self.technical_details = technical_details or {}
        self.recovery_suggestions = recovery_suggestions or []

    def to_dict(self) -> Dict[str, Any]:
        """Convert the error to a dictionary for logging/serialization"""
        cause = self.__cause__
        return {
            "error_type": type(self).__name__,
            "error_message": self.message,
            "severity": self.severity.value,
            "category": self.category.value,
            "technical_details": self.technical_details,
            "recovery_suggestions": self.recovery_suggestions,
            "cause": f"{type(cause).__name__}: {cause}" if cause else None,
        }


class ConfigurationError(FaultToleranceError):
    """Raised when fault tolerance configuration is invalid"""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message,
            severity=ErrorSeverity.HIGH,
            category=ErrorCategory.CONFIGURATION,
            **kwargs,
        )


# === Endpoint errors ===


class EndpointError(FaultToleranceError):
    """Base class for errors raised by a decorated endpoint"""

    def __init__(
        self,
        message: str,
        *,
        client: str,
        endpoint: str,
        attempts: int,
        **kwargs,
    ):
        details = {"client": client, "endpoint": endpoint, "attempts": attempts}
        details.update(kwargs.pop("technical_details", None) or {})
        super().__init__(message, technical_details=details, **kwargs)
        self.client = client
        self.endpoint = endpoint
        self.attempts = attempts


class CircuitOpenError(EndpointError):
    """Raised when the circuit breaker denies a call.

    Not retried by the decorator; the caller may try again later.
    """

    def __init__(self, *, client: str, endpoint: str, attempts: int = 0):
        super().__init__(
            f"Circuit open for {client}.{endpoint} after {attempts} attempt(s)",
            client=client,
            endpoint=endpoint,
            attempts=attempts,
            severity=ErrorSeverity.HIGH,
            category=ErrorCategory.CIRCUIT_OPEN,
            recovery_suggestions=[
                "Wait for the breaker recovery timeout",
                "Check broker and downstream service status",
            ],
        )


class RetryExhaustedError(EndpointError):
    """Raised when the retry window or attempt bound is used up"""

    operation = "operation"

    def __init__(
        self,
        *,
        client: str,
        endpoint: str,
        attempts: int,
        elapsed: float,
        last_error: Optional[BaseException],
        category: ErrorCategory = ErrorCategory.RETRY_EXHAUSTED,
    ):
        super().__init__(
            f"{self.operation} failed for {client}.{endpoint} after "
            f"{attempts} attempt(s) in {elapsed:.3f}s: {last_error}",
            client=client,
            endpoint=endpoint,
            attempts=attempts,
            severity=ErrorSeverity.MEDIUM,
            category=category,
            technical_details={"elapsed_seconds": round(elapsed, 3)},
        )
        self.elapsed = elapsed
        self.last_error = last_error


class ConsumeFailedError(RetryExhaustedError):
    """Raised when consuming a message keeps failing"""

    operation = "Consume"


class SendFailedError(RetryExhaustedError):
    """Raised when sending a message keeps failing"""

    operation = "Send"


class RouteFailedError(RetryExhaustedError):
    """Raised when routing fails, either with no route or after dispatch retries"""

    operation = "Route"


# === Registry errors ===


class NotFoundError(FaultToleranceError, KeyError):
    """Raised when a registry lookup uses an unknown key"""

    def __init__(self, key: str):
        FaultToleranceError.__init__(
            self,
            f"No fault tolerant endpoint registered under '{key}'",
            severity=ErrorSeverity.LOW,
            category=ErrorCategory.REGISTRY,
            technical_details={"key": key},
        )
        self.key = key

    def __str__(self) -> str:
        return self.message


class RegistryError(FaultToleranceError):
    """Raised on an invalid registration"""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message,
            severity=ErrorSeverity.HIGH,
            category=ErrorCategory.REGISTRY,
            **kwargs,
        )


# === Transport errors ===


class TransportError(FaultToleranceError):
    """Raised by the bundled transports when the broker misbehaves"""

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault("category", ErrorCategory.TRANSPORT)
        super().__init__(message, **kwargs)


class RouteNotFoundError(TransportError):
    """Raised by a router when no processor matches the message"""

    def __init__(self, topic: Optional[str]):
        super().__init__(
            f"No route for topic '{topic}'",
            severity=ErrorSeverity.LOW,
            category=ErrorCategory.ROUTING,
            technical_details={"topic": topic},
        )
        self.topic = topic
