"""
Error taxonomy for the simulation engine.

Every failure that can happen while setting up a run maps onto one of these
classes. The dispatch engine catches them (and anything else) at the message
boundary and turns them into a uniform error response. Non-finite numbers
produced by an integration are not errors and never raise.
"""

from enum import Enum


class ErrorCategory(str, Enum):
    """Error categories for classification."""

    UNKNOWN_SYSTEM = "unknown_system"
    UNSUPPORTED_INTEGRATOR = "unsupported_integrator"
    MALFORMED_STATE = "malformed_state"
    NUMERIC_DOMAIN = "numeric_domain"
    USAGE = "usage"
    VALIDATION = "validation"
    INTERNAL = "internal"


class MechlabError(Exception):
    """Base class for engine errors."""

    category = ErrorCategory.INTERNAL


class UnknownSystem(MechlabError, KeyError):
    """Requested system id is not in the registry."""

    category = ErrorCategory.UNKNOWN_SYSTEM

    def __init__(self, system_id: str, kind: str = "ODE"):
        self.system_id = system_id
        super().__init__(f"Unknown {kind} system: {system_id}")

    def __str__(self) -> str:
        # KeyError would otherwise repr() the message
        return self.args[0]


class UnsupportedIntegrator(MechlabError, ValueError):
    """Integrator kind not declared by the system."""

    category = ErrorCategory.UNSUPPORTED_INTEGRATOR

    def __init__(self, integrator: str, system_id: str):
        self.integrator = integrator
        self.system_id = system_id
        super().__init__(f"Integrator {integrator} is not supported for system {system_id}.")


class MalformedState(MechlabError, ValueError):
    """State vector length cannot be reconciled with any valid grid."""

    category = ErrorCategory.MALFORMED_STATE


class NumericDomainError(MechlabError, ArithmeticError):
    """A user-supplied curve or expression is non-finite or degenerate."""

    category = ErrorCategory.NUMERIC_DOMAIN


class InvalidExpression(NumericDomainError):
    """V(x) text could not be parsed or uses symbols other than x."""


class IntegratorUsageError(MechlabError, ValueError):
    """Integrator called with a state it cannot split."""

    category = ErrorCategory.USAGE


def categorize_error(error: Exception) -> ErrorCategory:
    """
    Categorize an error raised anywhere below the dispatch boundary.

    Args:
        error (Exception): The error that occurred.

    Returns:
        ErrorCategory: Categorized error type.
    """
    if isinstance(error, MechlabError):
        return error.category
    if type(error).__name__ == "ValidationError":
        return ErrorCategory.VALIDATION
    return ErrorCategory.INTERNAL
