"""Order workflow exceptions.

Raised by the service layer when a transition is illegal.  Each class
carries a machine-readable ``kind``; the API layer maps the class to an
HTTP status and renders ``kind`` + message.  A raised error always means
the order was left exactly as it was before the call.
"""

from __future__ import annotations


class OrderWorkflowError(Exception):
    """Base class for every error the order workflow raises."""

    kind = "order_error"

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.__class__.__doc__ or self.kind)
        self.message = str(self.args[0])


class OrderNotFound(OrderWorkflowError):
    """The requested order does not exist."""

    kind = "not_found"


class PreconditionError(OrderWorkflowError):
    """The transition is illegal for the current state or actor."""

    kind = "precondition_failed"


class WrongRole(PreconditionError):
    """The caller's role or identity may not perform this operation."""

    kind = "wrong_role"


class WrongState(PreconditionError):
    """The order's current status does not allow this operation."""

    kind = "wrong_state"


class AlreadyAssigned(PreconditionError):
    """A designer or delivery person is already assigned."""

    kind = "already_assigned"


class StaleState(PreconditionError):
    """The order changed since it was read; re-fetch before retrying."""

    kind = "stale_state"


class ConcurrencyConflict(StaleState):
    """Another transition committed first (compare-and-swap lost)."""

    kind = "conflict"


class TransitionValidationError(OrderWorkflowError):
    """Malformed input (progress out of range, empty OTP, missing field)."""

    kind = "validation_error"


class OTPMismatch(OrderWorkflowError):
    """The delivery confirmation code does not match."""

    kind = "otp_mismatch"
