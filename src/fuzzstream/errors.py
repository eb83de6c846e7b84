"""
Error Handling for fuzzstream

Custom exception hierarchy and the contract-check helper used by the
transform core. Contract violations are fatal: they are raised, never
retried and never swallowed.
"""

from typing import Any, Dict, Optional
from datetime import datetime

from fuzzstream.logging_config import get_logger

logger = get_logger(__name__)


# ============================================================================
# Custom Exception Hierarchy
# ============================================================================

class FuzzStreamError(Exception):
    """Base exception for all fuzzstream-specific errors."""

    def __init__(self, message: str, component: str = "unknown",
                 context: Optional[Dict[str, Any]] = None):
        """Initialize exception with metadata.

        Args:
            message: Error message
            component: Component where error occurred
            context: Additional context data
        """
        self.message = message
        self.component = component
        self.context = context or {}
        self.timestamp = datetime.now()
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to structured log format."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "component": self.component,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
        }


class ContractViolation(FuzzStreamError):
    """Raised when an internal invariant or caller precondition is broken."""
    pass


class ConfigurationError(FuzzStreamError):
    """Raised when a configuration file cannot be read or parsed."""
    pass


def require(condition: bool, message: str, component: str = "unknown",
            **context: Any) -> None:
    """
    Assert an invariant, failing loudly when it does not hold.

    Args:
        condition: Value that must be truthy
        message: Diagnostic naming the failed invariant
        component: Component performing the check
        **context: Extra fields attached to the log entry and exception

    Raises:
        ContractViolation: If condition is falsy
    """
    if condition:
        return
    violation = ContractViolation(message, component=component, context=context)
    logger.critical("contract_violation", **violation.to_dict())
    raise violation
