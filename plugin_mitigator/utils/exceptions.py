"""
Custom exceptions for the plugin mitigator.

Load-time problems (configuration, profile catalog) are raised to the
caller. Failures during a pass are contained by the engine and only
surface through these types when a collaborator raises them.
"""

from typing import Optional


class MitigatorError(Exception):
    """
    Root of the mitigator error hierarchy.

    Carries a stable machine-readable ``code`` and a ``details`` mapping with
    whatever context (slug, option key, host operation) the raiser had.
    """

    default_code = "MITIGATOR_ERROR"

    def __init__(self, message: str, code: Optional[str] = None, details: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        # Context keys left as None carry no information
        self.details = {k: v for k, v in (details or {}).items() if v is not None}

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"

    def to_dict(self) -> dict:
        """JSON-friendly form of the error."""
        return {"error": self.code, "message": self.message, "details": self.details}


class ConfigurationError(MitigatorError):
    """Invalid or unreadable configuration."""

    def __init__(self, message: str, config_key: Optional[str] = None):
        super().__init__(
            message,
            code="CONFIG_ERROR",
            details={"config_key": config_key},
        )


class ProfileError(MitigatorError):
    """Raised when a malware profile catalog is malformed."""

    def __init__(
        self,
        message: str,
        slug: Optional[str] = None,
        source: Optional[str] = None,
    ):
        super().__init__(
            message,
            code="PROFILE_ERROR",
            details={
                "slug": slug,
                "source": source,
            },
        )


class DatabaseError(MitigatorError):
    """Raised when an option store operation fails."""

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        key: Optional[str] = None,
    ):
        super().__init__(
            message,
            code="DATABASE_ERROR",
            details={
                "operation": operation,
                "key": key,
            },
        )


class HostError(MitigatorError):
    """Raised when a host environment call fails."""

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        entry: Optional[str] = None,
    ):
        super().__init__(
            message,
            code="HOST_ERROR",
            details={
                "operation": operation,
                "entry": entry,
            },
        )


class HostUnavailableError(HostError):
    """Raised when the host does not provide a required API."""

    def __init__(self, operation: str):
        super().__init__(
            f"Host API not available: {operation}",
            operation=operation,
        )
        self.code = "HOST_UNAVAILABLE"
