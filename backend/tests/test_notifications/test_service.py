"""
Tests for order and contact e-mail rendering and delivery.
"""

from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import MagicMock, patch

import pytest
from botocore.exceptions import NoRegionError

from src.database.models import Order, OrderStatus
from src.schemas.contact import ContactRequest
from src.services.notifications.aws_clients import SESClient, SESClientError
from src.services.notifications.service import NotificationService
from src.services.notifications.templates import (
    TemplateEngine,
    TemplateNotFoundError,
    TemplateRenderError,
    format_currency,
    format_status,
)


@pytest.fixture
def order() -> Order:
    return Order(
        reference_number="ORDER-1a2b3c4d",
        customer_email="buyer@example.com",
        customer_name="Tan Mei Ling",
        items=[
            {
                "product_id": "chair-002",
                "product_name": "Bergen Dining Chair",
                "product_slug": "bergen-dining-chair",
                "price": 120.0,
                "quantity": 2,
                "image": None,
            }
        ],
        shipping_address={
            "address_line1": "1 Orchard Road",
            "city": "Singapore",
            "postal_code": "238824",
            "country": "SG",
        },
        subtotal=Decimal("240.00"),
        shipping=Decimal("20.00"),
        tax=Decimal("0.00"),
        total=Decimal("260.00"),
        status=OrderStatus.SHIPPED,
        tracking_number="SG123456789",
        created_at=datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc),
    )


@pytest.fixture
def ses_client() -> MagicMock:
    client = MagicMock(spec=SESClient)
    client.send_email.return_value = {"message_id": "msg-1", "status": "sent"}
    return client


class TestTemplateEngine:
    def test_order_confirmation(self, order):
        rendered = TemplateEngine().render_email(
            "order_confirmation",
            {"order": order, "store_name": "ESSEN", "tracking_url": "https://essen.sg/track-order"},
        )

        assert rendered["subject"] == "ESSEN order ORDER-1a2b3c4d received"
        assert "Bergen Dining Chair x 2: $240.00" in rendered["text_body"]
        assert "Total: $260.00" in rendered["text_body"]
        assert "01 March 2026" in rendered["text_body"]
        assert "<strong>Total: $260.00</strong>" in rendered["html_body"]

    def test_html_is_escaped(self, order):
        order.customer_name = "<script>alert(1)</script>"

        rendered = TemplateEngine().render_email(
            "order_confirmation",
            {"order": order, "store_name": "ESSEN", "tracking_url": ""},
        )

        assert "<script>" not in rendered["html_body"]
        assert "&lt;script&gt;" in rendered["html_body"]

    def test_missing_template(self):
        with pytest.raises(TemplateNotFoundError):
            TemplateEngine().render_email("does_not_exist", {})

    def test_bad_amount_is_a_render_error(self, order):
        order.total = "n/a"

        with pytest.raises(TemplateRenderError):
            TemplateEngine().render_email(
                "order_confirmation",
                {"order": order, "store_name": "ESSEN", "tracking_url": ""},
            )

    def test_filters(self):
        assert format_currency(Decimal("1234.5")) == "$1,234.50"
        assert format_currency(None) == "$0.00"
        assert format_status(OrderStatus.PAYMENT_INITIATED) == "Payment Initiated"


class TestNotificationService:
    async def test_confirmation_sent_through_ses(self, order, ses_client):
        service = NotificationService(ses_client=ses_client, enabled=True)

        assert await service.send_order_confirmation(order) is True

        kwargs = ses_client.send_email.call_args.kwargs
        assert kwargs["to_addresses"] == ["buyer@example.com"]
        assert kwargs["subject"] == "ESSEN order ORDER-1a2b3c4d received"
        assert "track-order?reference=ORDER-1a2b3c4d" in kwargs["body_text"]
        assert kwargs["body_html"].startswith("<!DOCTYPE html>")

    async def test_status_update_mentions_both_statuses(self, order, ses_client):
        service = NotificationService(ses_client=ses_client, enabled=True)

        assert await service.send_order_status_update(order, OrderStatus.PROCESSING) is True

        kwargs = ses_client.send_email.call_args.kwargs
        assert kwargs["subject"] == "ESSEN order ORDER-1a2b3c4d is now Shipped"
        assert "changed from\nProcessing to Shipped." in kwargs["body_text"]
        assert "Tracking number: SG123456789" in kwargs["body_text"]

    async def test_disabled_does_not_send(self, order, ses_client):
        service = NotificationService(ses_client=ses_client, enabled=False)

        assert await service.send_order_confirmation(order) is False
        ses_client.send_email.assert_not_called()

    async def test_ses_failure_reported_not_raised(self, order, ses_client):
        ses_client.send_email.side_effect = SESClientError("throttled", error_code="Throttling")
        service = NotificationService(ses_client=ses_client, enabled=True)

        assert await service.send_order_confirmation(order) is False

    async def test_render_failure_reported_not_raised(self, order, ses_client, tmp_path):
        service = NotificationService(
            ses_client=ses_client,
            template_engine=TemplateEngine(template_dir=tmp_path),
            enabled=True,
        )

        assert await service.send_order_confirmation(order) is False
        ses_client.send_email.assert_not_called()

    async def test_unconfigured_aws_reported_not_raised(self, order):
        service = NotificationService(enabled=True)

        with patch(
            "src.services.notifications.aws_clients.boto3.client",
            side_effect=NoRegionError(),
        ):
            assert await service.send_order_confirmation(order) is False

    async def test_unformattable_amount_reported_not_raised(self, order, ses_client):
        order.subtotal = "n/a"
        service = NotificationService(ses_client=ses_client, enabled=True)

        assert await service.send_order_confirmation(order) is False
        ses_client.send_email.assert_not_called()

    async def test_contact_request_goes_to_enquiry_inbox(self, ses_client):
        service = NotificationService(ses_client=ses_client, enabled=True)
        request = ContactRequest(
            name="Tan Mei Ling",
            email="meiling@example.com",
            phone="+65 8123 4567",
            consent=True,
        )

        assert await service.send_contact_request(request) is True

        kwargs = ses_client.send_email.call_args.kwargs
        assert kwargs["to_addresses"] == ["enquiry@essen.sg"]
        assert kwargs["subject"] == "Special In-Store Offer Claim from Tan Mei Ling"
        assert "Phone: +65 8123 4567" in kwargs["body_text"]
        assert "<strong>Email:</strong> meiling@example.com" in kwargs["body_html"]
