"""Delivery OTP gate.

The customer receives a 4-digit code out of band and reads it to the
delivery person, who must enter it to confirm the hand-off.  A code is
generated once per order, the first time the order enters a
delivery-eligible status, and is never regenerated.
"""

from __future__ import annotations

import hmac
import secrets
from datetime import datetime
from typing import Iterable, List

import structlog

from modules.core.identity import ActorRole
from modules.orders.constants import DELIVERY_ELIGIBLE_STATES, OTP_MAX, OTP_MIN
from modules.orders.exceptions import (
    OTPMismatch,
    TransitionValidationError,
    WrongState,
)

logger = structlog.get_logger(__name__)

_VISIBLE_TO = frozenset({ActorRole.CUSTOMER, ActorRole.DELIVERY})


def generate_code() -> str:
    """Draw a code uniformly from [1000, 9999]."""
    return str(OTP_MIN + secrets.randbelow(OTP_MAX - OTP_MIN + 1))


def ensure_delivery_otp(order, now: datetime) -> bool:
    """Give *order* a delivery code if it has none.

    Returns ``True`` when a code was generated.  An existing code, verified
    or not, is always kept.
    """
    if order.delivery_otp_code:
        return False
    order.delivery_otp_code = generate_code()
    order.delivery_otp_generated_at = now
    order.delivery_otp_verified = False
    logger.info("order.otp_generated", order_id=str(order.id))
    return True


def verify_delivery_otp(order, code: str) -> None:
    """Check *code* against the stored one without changing the order.

    Raises:
        TransitionValidationError: no code was supplied.
        WrongState: the order has no code or it was already used.
        OTPMismatch: the code differs; the stored code stays usable.
    """
    supplied = code or ""
    if not supplied:
        raise TransitionValidationError("Delivery OTP is required.")
    if not order.delivery_otp_code:
        raise WrongState(f"Order {order.id} has no delivery OTP.")
    if order.delivery_otp_verified:
        raise WrongState(f"Delivery OTP for order {order.id} was already used.")
    if not hmac.compare_digest(supplied.encode(), order.delivery_otp_code.encode()):
        logger.warning("order.otp_mismatch", order_id=str(order.id))
        raise OTPMismatch("Delivery OTP does not match.")


def otp_visible_to(role: str) -> bool:
    return role in _VISIBLE_TO


def backfill_delivery_otp(orders: Iterable, now: datetime) -> List:
    """Generate codes for orders already in a delivery status without one.

    Returns the orders that received a code; saving them is the caller's
    job.
    """
    updated = []
    for order in orders:
        if order.status not in DELIVERY_ELIGIBLE_STATES:
            continue
        if ensure_delivery_otp(order, now):
            updated.append(order)
    return updated
