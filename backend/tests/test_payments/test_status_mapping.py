"""
Tests for gateway status translation and webhook transition rules.
"""

import pytest

from src.database.models.order import OrderStatus
from src.services.payments.status_mapping import (
    can_apply_gateway_status,
    is_known_gateway_status,
    map_gateway_status,
)


class TestMapGatewayStatus:
    @pytest.mark.parametrize(
        "vendor_status,expected",
        [
            ("completed", OrderStatus.PAID),
            ("failed", OrderStatus.CANCELLED),
            ("expired", OrderStatus.CANCELLED),
            ("refunded", OrderStatus.REFUNDED),
            ("COMPLETED", OrderStatus.PAID),
            (" expired ", OrderStatus.CANCELLED),
        ],
    )
    def test_known_statuses(self, vendor_status, expected):
        assert map_gateway_status(vendor_status) == expected
        assert is_known_gateway_status(vendor_status) is True

    @pytest.mark.parametrize("vendor_status", ["pending", "processing", "mystery", "", None])
    def test_unknown_statuses_map_to_pending(self, vendor_status):
        assert map_gateway_status(vendor_status) == OrderStatus.PENDING
        assert is_known_gateway_status(vendor_status) is False


class TestCanApplyGatewayStatus:
    def test_initiated_order_can_be_paid(self):
        assert can_apply_gateway_status(OrderStatus.PAYMENT_INITIATED, OrderStatus.PAID)

    def test_initiated_order_can_fall_back_to_pending(self):
        assert can_apply_gateway_status(OrderStatus.PAYMENT_INITIATED, OrderStatus.PENDING)

    @pytest.mark.parametrize(
        "current",
        [
            OrderStatus.PAID,
            OrderStatus.PROCESSING,
            OrderStatus.SHIPPED,
            OrderStatus.DELIVERED,
        ],
    )
    def test_settled_orders_never_regress(self, current):
        assert not can_apply_gateway_status(current, OrderStatus.PENDING)
        assert not can_apply_gateway_status(current, OrderStatus.CANCELLED)
        assert can_apply_gateway_status(current, OrderStatus.REFUNDED)

    def test_cancelled_order_can_still_be_paid(self):
        assert can_apply_gateway_status(OrderStatus.CANCELLED, OrderStatus.PAID)
        assert not can_apply_gateway_status(OrderStatus.CANCELLED, OrderStatus.PENDING)

    def test_refunded_is_final(self):
        for target in OrderStatus:
            assert not can_apply_gateway_status(OrderStatus.REFUNDED, target)
