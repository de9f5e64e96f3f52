"""
Unit tests for checkout and webhook reconciliation in PaymentService.

The order repository and gateway client are mocked; the database-backed
flow is covered by the API tests.
"""

import json
import re
import uuid
from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.core.context import PermissionDeniedError
from src.database.models.order import OrderStatus
from src.database.models.user import UserRole
from src.schemas.payments import CheckoutRequest
from src.services.notifications.service import NotificationService
from src.services.orders.repository import OrderCreationError, OrderRepository, OrderUpdateError
from src.services.payments.hitpay_client import (
    HitPayClient,
    HitPayConnectionError,
    HitPayPaymentRequest,
)
from src.services.payments.service import (
    CheckoutValidationError,
    PaymentProcessingError,
    PaymentService,
    WebhookPayloadError,
    WebhookSignatureError,
    extract_payment_details,
    generate_reference_number,
    parse_webhook_payload,
)
from src.services.payments.signature import compute_signature
from tests.conftest import WEBHOOK_SALT, make_context


# ============================================================================
# Test Fixtures and Factories
# ============================================================================


@pytest.fixture
def mock_repository():
    """Create mock order repository."""
    repository = AsyncMock(spec=OrderRepository)
    repository.create_order.side_effect = lambda **kwargs: SimpleNamespace(id=uuid.uuid4(), **kwargs)
    repository.get_order_by_payment_id.return_value = None
    repository.get_order_by_reference.return_value = None
    return repository


@pytest.fixture
def mock_hitpay_client():
    """Create mock gateway client."""
    client = MagicMock(spec=HitPayClient)
    client.create_payment_request = AsyncMock(
        return_value=HitPayPaymentRequest(
            id="pr-abc",
            url="https://pay.example/pr-abc",
            status="pending",
        )
    )
    client.get_payment_request = AsyncMock()
    return client


@pytest.fixture
def mock_notifications():
    notifications = MagicMock(spec=NotificationService)
    notifications.send_order_confirmation = AsyncMock(return_value=True)
    notifications.send_order_status_update = AsyncMock(return_value=True)
    return notifications


@pytest.fixture
def payment_service(mock_repository, mock_hitpay_client, mock_notifications):
    """Create payment service with mocked dependencies."""
    return PaymentService(
        repository=mock_repository,
        hitpay_client=mock_hitpay_client,
        notification_service=mock_notifications,
    )


def checkout_payload(**overrides):
    payload = {
        "items": [
            {"id": "sofa-001", "name": "Oslo Sofa", "price": "100.00", "quantity": 1},
            {"id": "stool-014", "name": "Birch Stool", "price": "25.00", "quantity": 2},
        ],
        "customerEmail": "Buyer@Example.com",
        "customerName": "Tan Mei Ling",
        "shippingAddress": {"addressLine1": "1 Orchard Road", "postalCode": "238824"},
        "total": "150.00",
    }
    payload.update(overrides)
    return CheckoutRequest.model_validate(payload)


def stored_order(status: OrderStatus, payment_id: str = "pr-abc"):
    return SimpleNamespace(
        id=uuid.uuid4(),
        reference_number="ORDER-1a2b3c4d",
        status=status,
        payment_id=payment_id,
        customer_email="buyer@example.com",
    )


def signed(payload) -> tuple[bytes, str]:
    body = json.dumps(payload).encode()
    return body, compute_signature(body, WEBHOOK_SALT)


# ============================================================================
# Helpers
# ============================================================================


class TestReferenceNumber:
    def test_format(self):
        assert re.fullmatch(r"ORDER-[0-9a-f]{8}", generate_reference_number())

    def test_unique(self):
        assert len({generate_reference_number() for _ in range(200)}) == 200


class TestParseWebhookPayload:
    def test_json_object(self):
        assert parse_webhook_payload(b'{"status": "completed"}') == {"status": "completed"}

    def test_form_fallback(self):
        payload = parse_webhook_payload(b"payment_id=pr-1&status=completed&hmac=")

        assert payload == {"payment_id": "pr-1", "status": "completed", "hmac": ""}

    @pytest.mark.parametrize("body", [b"", b"\xff\xfe"])
    def test_unreadable_body(self, body):
        with pytest.raises(WebhookPayloadError, match="Invalid payload format"):
            parse_webhook_payload(body)


class TestExtractPaymentDetails:
    def test_candidate_order(self):
        ids, reference, status = extract_payment_details(
            {
                "payment_id": "p1",
                "payment_request_id": "p2",
                "id": "p3",
                "payment_request": {"id": "p4"},
                "reference_number": "ORDER-1",
                "status": "completed",
            }
        )

        assert ids == ["p1", "p2", "p3", "p4"]
        assert reference == "ORDER-1"
        assert status == "completed"

    def test_nested_payment_request(self):
        ids, reference, status = extract_payment_details(
            {"payment_request": {"id": "p4", "status": "failed", "reference_number": "ORDER-2"}}
        )

        assert ids == ["p4"]
        assert reference == "ORDER-2"
        assert status == "failed"

    def test_duplicates_and_blanks_skipped(self):
        ids, _, _ = extract_payment_details({"payment_id": "p1", "id": "p1", "payment_request_id": ""})

        assert ids == ["p1"]


# ============================================================================
# Checkout
# ============================================================================


class TestInitiateCheckout:
    async def test_successful_checkout(
        self, payment_service, mock_repository, mock_hitpay_client, mock_notifications
    ):
        # Act
        result = await payment_service.initiate_checkout(checkout_payload())

        # Assert
        assert result["success"] is True
        assert result["payment_url"] == "https://pay.example/pr-abc"
        assert re.fullmatch(r"ORDER-[0-9a-f]{8}", result["reference_number"])

        gateway_kwargs = mock_hitpay_client.create_payment_request.await_args.kwargs
        assert gateway_kwargs["amount"] == Decimal("150.00")
        assert gateway_kwargs["reference_number"] == result["reference_number"]
        assert gateway_kwargs["email"] == "buyer@example.com"
        assert gateway_kwargs["purpose"] == f"ESSEN Order #{result['reference_number']}"

        order_kwargs = mock_repository.create_order.await_args.kwargs
        assert order_kwargs["status"] == OrderStatus.PAYMENT_INITIATED
        assert order_kwargs["payment_id"] == "pr-abc"
        assert order_kwargs["payment_provider"] == "hitpay"
        assert order_kwargs["subtotal"] == Decimal("150.00")
        assert order_kwargs["items"][1] == {
            "product_id": "stool-014",
            "product_name": "Birch Stool",
            "product_slug": None,
            "price": 25.0,
            "quantity": 2,
            "image": None,
        }
        mock_repository.commit.assert_awaited_once()
        mock_notifications.send_order_confirmation.assert_awaited_once()

    @pytest.mark.parametrize(
        "overrides,message",
        [
            ({"items": []}, "Cart items are required"),
            ({"items": None}, "Cart items are required"),
            ({"customerEmail": ""}, "Customer information is required"),
            ({"customerName": None}, "Customer information is required"),
            ({"shippingAddress": None}, "Shipping address is required"),
        ],
    )
    async def test_incomplete_checkout_never_reaches_gateway(
        self, payment_service, mock_hitpay_client, mock_repository, overrides, message
    ):
        with pytest.raises(CheckoutValidationError, match=message):
            await payment_service.initiate_checkout(checkout_payload(**overrides))

        mock_hitpay_client.create_payment_request.assert_not_awaited()
        mock_repository.create_order.assert_not_awaited()

    async def test_total_mismatch_rejected(self, payment_service, mock_hitpay_client):
        with pytest.raises(CheckoutValidationError, match="does not match"):
            await payment_service.initiate_checkout(checkout_payload(total="149.00"))

        mock_hitpay_client.create_payment_request.assert_not_awaited()

    async def test_total_within_a_cent_accepted(self, payment_service):
        result = await payment_service.initiate_checkout(checkout_payload(total="150.01"))

        assert result["success"] is True

    async def test_gateway_failure(self, payment_service, mock_hitpay_client, mock_repository):
        mock_hitpay_client.create_payment_request.side_effect = HitPayConnectionError(
            "Payment gateway timed out",
            code="HITPAY_TIMEOUT",
        )

        with pytest.raises(PaymentProcessingError, match="Failed to create payment"):
            await payment_service.initiate_checkout(checkout_payload())

        mock_repository.create_order.assert_not_awaited()

    async def test_persistence_failure(self, payment_service, mock_repository, mock_notifications):
        mock_repository.create_order.side_effect = OrderCreationError("Failed to create order")

        with pytest.raises(PaymentProcessingError, match="Failed to create payment"):
            await payment_service.initiate_checkout(checkout_payload())

        mock_notifications.send_order_confirmation.assert_not_awaited()


# ============================================================================
# Webhooks
# ============================================================================


class TestHandleWebhook:
    async def test_missing_signature(self, payment_service, mock_repository):
        body, _ = signed({"payment_id": "pr-abc", "status": "completed"})

        with pytest.raises(WebhookSignatureError, match="Missing signature"):
            await payment_service.handle_webhook(body, None)

        mock_repository.get_order_by_payment_id.assert_not_awaited()

    async def test_invalid_signature(self, payment_service, mock_repository):
        body, _ = signed({"payment_id": "pr-abc", "status": "completed"})

        with pytest.raises(WebhookSignatureError, match="Invalid signature"):
            await payment_service.handle_webhook(body, "0" * 64)

        mock_repository.get_order_by_payment_id.assert_not_awaited()

    async def test_missing_payment_information(self, payment_service):
        body, signature = signed({"status": "completed"})

        with pytest.raises(WebhookPayloadError, match="Missing payment information"):
            await payment_service.handle_webhook(body, signature)

    async def test_completed_marks_order_paid(
        self, payment_service, mock_repository, mock_notifications
    ):
        # Arrange
        order = stored_order(OrderStatus.PAYMENT_INITIATED)
        mock_repository.get_order_by_payment_id.return_value = order
        body, signature = signed({"payment_id": "pr-abc", "status": "completed"})

        # Act
        result = await payment_service.handle_webhook(body, signature)

        # Assert
        assert result == {"success": True}
        mock_repository.update_order_status.assert_awaited_once_with(order, OrderStatus.PAID)
        mock_repository.commit.assert_awaited_once()
        mock_notifications.send_order_status_update.assert_awaited_once_with(
            order, OrderStatus.PAYMENT_INITIATED
        )

    async def test_same_status_is_noop(self, payment_service, mock_repository, mock_notifications):
        mock_repository.get_order_by_payment_id.return_value = stored_order(OrderStatus.PAID)
        body, signature = signed({"payment_id": "pr-abc", "status": "completed"})

        assert await payment_service.handle_webhook(body, signature) == {"success": True}

        mock_repository.update_order_status.assert_not_awaited()
        mock_notifications.send_order_status_update.assert_not_awaited()

    async def test_stale_failure_does_not_regress_paid_order(self, payment_service, mock_repository):
        mock_repository.get_order_by_payment_id.return_value = stored_order(OrderStatus.SHIPPED)
        body, signature = signed({"payment_id": "pr-abc", "status": "failed"})

        assert await payment_service.handle_webhook(body, signature) == {"success": True}

        mock_repository.update_order_status.assert_not_awaited()

    async def test_refund_after_payment_applies(self, payment_service, mock_repository):
        order = stored_order(OrderStatus.PAID)
        mock_repository.get_order_by_payment_id.return_value = order
        body, signature = signed({"payment_id": "pr-abc", "status": "refunded"})

        await payment_service.handle_webhook(body, signature)

        mock_repository.update_order_status.assert_awaited_once_with(order, OrderStatus.REFUNDED)

    async def test_unknown_payment_is_acknowledged(self, payment_service, mock_repository):
        body, signature = signed(
            {"payment_id": "pr-unknown", "reference_number": "ORDER-00000000", "status": "completed"}
        )

        assert await payment_service.handle_webhook(body, signature) == {"success": True}

        mock_repository.get_order_by_reference.assert_awaited_once_with("ORDER-00000000")
        mock_repository.update_order_status.assert_not_awaited()

    async def test_falls_back_through_candidate_ids(self, payment_service, mock_repository):
        order = stored_order(OrderStatus.PAYMENT_INITIATED, payment_id="pr-second")
        mock_repository.get_order_by_payment_id.side_effect = (
            lambda payment_id: order if payment_id == "pr-second" else None
        )
        body, signature = signed(
            {"payment_id": "pr-first", "payment_request_id": "pr-second", "status": "expired"}
        )

        await payment_service.handle_webhook(body, signature)

        mock_repository.update_order_status.assert_awaited_once_with(order, OrderStatus.CANCELLED)

    async def test_persistence_failure_is_still_acknowledged(self, payment_service, mock_repository):
        mock_repository.get_order_by_payment_id.return_value = stored_order(OrderStatus.PAYMENT_INITIATED)
        mock_repository.update_order_status.side_effect = OrderUpdateError("Failed to update order status")
        body, signature = signed({"payment_id": "pr-abc", "status": "completed"})

        assert await payment_service.handle_webhook(body, signature) == {"success": True}


class TestGetPaymentStatus:
    async def test_admin_lookup(self, payment_service, mock_hitpay_client):
        mock_hitpay_client.get_payment_request.return_value = HitPayPaymentRequest(
            id="pr-abc",
            url=None,
            status="completed",
            reference_number="ORDER-1a2b3c4d",
        )

        result = await payment_service.get_payment_status(make_context(UserRole.ADMIN), "pr-abc")

        assert result["gateway_status"] == "completed"
        assert result["order_status"] == "paid"

    async def test_editor_denied(self, payment_service, mock_hitpay_client):
        with pytest.raises(PermissionDeniedError):
            await payment_service.get_payment_status(make_context(UserRole.EDITOR), "pr-abc")

        mock_hitpay_client.get_payment_request.assert_not_awaited()
