"""Unit tests for the delivery OTP gate."""

from __future__ import annotations

from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import patch
from uuid import uuid4

import pytest

from modules.core.identity import ActorRole
from modules.orders.constants import OrderStatus
from modules.orders.exceptions import OTPMismatch, TransitionValidationError, WrongState
from modules.orders.otp import (
    backfill_delivery_otp,
    ensure_delivery_otp,
    generate_code,
    otp_visible_to,
    verify_delivery_otp,
)

pytestmark = pytest.mark.unit

NOW = datetime(2026, 3, 1, 10, 30, tzinfo=timezone.utc)


def _order(status=OrderStatus.READY_FOR_PICKUP, code=None, verified=False):
    return SimpleNamespace(
        id=uuid4(),
        status=status,
        delivery_otp_code=code,
        delivery_otp_generated_at=NOW if code else None,
        delivery_otp_verified=verified,
    )


class TestGenerateCode:
    def test_code_is_four_digits_in_range(self):
        for _ in range(200):
            code = generate_code()
            assert len(code) == 4
            assert code.isdigit()
            assert 1000 <= int(code) <= 9999

    def test_bounds_are_reachable(self):
        with patch("modules.orders.otp.secrets.randbelow", return_value=0):
            assert generate_code() == "1000"
        with patch("modules.orders.otp.secrets.randbelow", return_value=8999):
            assert generate_code() == "9999"


class TestEnsureDeliveryOTP:
    def test_generates_when_missing(self):
        order = _order()

        assert ensure_delivery_otp(order, NOW) is True
        assert len(order.delivery_otp_code) == 4
        assert order.delivery_otp_generated_at == NOW
        assert order.delivery_otp_verified is False

    def test_second_call_keeps_the_same_code(self):
        order = _order()
        ensure_delivery_otp(order, NOW)
        first = order.delivery_otp_code

        assert ensure_delivery_otp(order, datetime.now(timezone.utc)) is False
        assert order.delivery_otp_code == first
        assert order.delivery_otp_generated_at == NOW

    def test_verified_code_is_never_replaced(self):
        order = _order(code="4321", verified=True)

        assert ensure_delivery_otp(order, NOW) is False
        assert order.delivery_otp_code == "4321"
        assert order.delivery_otp_verified is True


class TestVerifyDeliveryOTP:
    def test_matching_code_passes_without_mutation(self):
        order = _order(code="2468")

        verify_delivery_otp(order, "2468")

        assert order.delivery_otp_verified is False

    @pytest.mark.parametrize("code", [" 2468", "2468 ", " 2468 ", "2468\n"])
    def test_padded_code_is_a_mismatch(self, code):
        order = _order(code="2468")

        with pytest.raises(OTPMismatch):
            verify_delivery_otp(order, code)

        assert order.delivery_otp_verified is False

    def test_mismatch_raises_and_code_stays_usable(self):
        order = _order(code="2468")

        with pytest.raises(OTPMismatch):
            verify_delivery_otp(order, "1357")

        verify_delivery_otp(order, "2468")

    @pytest.mark.parametrize("code", ["", None])
    def test_empty_code_is_a_validation_error(self, code):
        with pytest.raises(TransitionValidationError):
            verify_delivery_otp(_order(code="2468"), code)

    def test_order_without_code_is_wrong_state(self):
        with pytest.raises(WrongState):
            verify_delivery_otp(_order(), "2468")

    def test_used_code_is_wrong_state(self):
        with pytest.raises(WrongState):
            verify_delivery_otp(_order(code="2468", verified=True), "2468")

    def test_non_ascii_input_is_a_mismatch(self):
        with pytest.raises(OTPMismatch):
            verify_delivery_otp(_order(code="2468"), "२४६८")


class TestVisibility:
    @pytest.mark.parametrize("role", [ActorRole.CUSTOMER, ActorRole.DELIVERY])
    def test_visible(self, role):
        assert otp_visible_to(role)

    @pytest.mark.parametrize("role", [ActorRole.MANAGER, ActorRole.DESIGNER, "guest"])
    def test_hidden(self, role):
        assert not otp_visible_to(role)


class TestBackfill:
    def test_only_delivery_statuses_without_code_are_updated(self):
        missing = _order(status=OrderStatus.OUT_FOR_DELIVERY)
        has_code = _order(status=OrderStatus.PICKED_UP, code="1111")
        pending = _order(status=OrderStatus.PENDING)

        updated = backfill_delivery_otp([missing, has_code, pending], NOW)

        assert updated == [missing]
        assert missing.delivery_otp_code is not None
        assert has_code.delivery_otp_code == "1111"
        assert pending.delivery_otp_code is None
