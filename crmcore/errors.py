"""
Error classes for crmcore.

These error types enable retry classification at the job/request boundary:
- TransientError: Safe to retry (lock contention, temporary storage failures)
- PermanentError: Do not retry (validation, uniqueness conflicts, bad formulas)

Error handling contract:
- Errors are exceptions, not values
- Repositories and the formula evaluator raise, callers classify
- The only soft path is a formula lookup miss, which logs a notice and
  evaluates to None instead of raising
"""

import json


class CrmError(Exception):
    """Base exception for crmcore."""
    pass


class TransientError(CrmError):
    """
    Transient error - safe to retry.

    The caller (job runner, request layer) may retry operations that raise
    TransientError with a bounded backoff.
    """
    pass


class PermanentError(CrmError):
    """
    Permanent error - do not retry.

    Examples:
    - Required field missing
    - Unique key collision
    - Formula type or arity mismatch
    """
    pass


class LockTimeout(TransientError):
    """Raised when a table/scope lock could not be acquired in time."""

    def __init__(self, scope: str, timeout: float):
        self.scope = scope
        self.timeout = timeout
        super().__init__(f"Could not lock '{scope}' within {timeout}s")


class ValidationError(PermanentError):
    """Missing or invalid required field. The message is user-facing."""
    pass


class ConflictError(PermanentError):
    """
    Uniqueness violation.

    Carries a machine-readable reason code so the UI can render a specific
    duplicate message. str() of the error is the JSON payload.
    """

    def __init__(self, reason: str, **extra):
        self.reason = reason
        self.payload = {"reason": reason, **extra}
        super().__init__(json.dumps(self.payload))


class NotFoundError(PermanentError):
    """Raised when a record or repository that must exist is missing."""
    pass


class AttributeTypeError(PermanentError):
    """Raised by typed Record accessors when the stored value has the wrong type."""

    def __init__(self, name: str, expected: str, value):
        self.name = name
        self.expected = expected
        self.value = value
        super().__init__(
            f"Attribute '{name}' expected {expected}, got {type(value).__name__}"
        )


class FormulaError(PermanentError):
    """Hard failure of a formula evaluation."""
    pass


class UnknownFunctionError(FormulaError):
    """Raised when a formula references a function that is not registered."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Formula: Unknown function '{name}'.")


class FormulaTypeError(FormulaError):
    """Wrong argument count or argument type for a formula function."""
    pass


class FormulaSyntaxError(FormulaError):
    """Raised when a stored formula structure cannot be turned into nodes."""
    pass
