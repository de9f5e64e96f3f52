"""
Payment service orchestrating checkout and gateway reconciliation.

This module implements the PaymentService class for the two payment flows of
the storefront: starting a checkout (validate cart, create a hosted payment
request, record the order) and reconciling gateway callbacks into order
status changes.
"""

import json
import uuid
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Optional
from urllib.parse import parse_qsl

from src.core.config import Settings, get_settings
from src.core.context import RequestContext
from src.core.logging import get_logger, log_performance
from src.database.models.order import Order, OrderStatus
from src.database.models.user import UserRole
from src.schemas.payments import CheckoutRequest
from src.services.notifications.service import NotificationService
from src.services.orders.repository import (
    OrderRepository,
    OrderRepositoryError,
)
from src.services.payments.hitpay_client import HitPayClient, HitPayClientError
from src.services.payments.signature import verify_signature
from src.services.payments.status_mapping import (
    can_apply_gateway_status,
    is_known_gateway_status,
    map_gateway_status,
)

logger = get_logger(__name__)

PAYMENT_PROVIDER = "hitpay"
REFERENCE_PREFIX = "ORDER-"
TOTAL_TOLERANCE = Decimal("0.01")
CENTS = Decimal("0.01")


class PaymentServiceError(Exception):
    """Base exception for payment service errors."""

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.context = context


class CheckoutValidationError(PaymentServiceError):
    """Exception for incomplete or inconsistent checkout requests."""

    pass


class PaymentProcessingError(PaymentServiceError):
    """Exception for gateway or persistence failures during checkout."""

    pass


class WebhookSignatureError(PaymentServiceError):
    """Exception for callbacks with a missing or invalid signature."""

    pass


class WebhookPayloadError(PaymentServiceError):
    """Exception for callbacks whose body cannot be interpreted."""

    pass


def generate_reference_number() -> str:
    return f"{REFERENCE_PREFIX}{uuid.uuid4().hex[:8]}"


def parse_webhook_payload(raw_body: bytes) -> dict[str, Any]:
    """
    Decode a callback body as JSON, falling back to form encoding.

    Raises:
        WebhookPayloadError: If the body is neither a JSON object nor a form
    """
    try:
        text = raw_body.decode("utf-8")
    except UnicodeDecodeError as e:
        raise WebhookPayloadError("Invalid payload format") from e

    try:
        payload = json.loads(text)
        if isinstance(payload, dict):
            return payload
    except ValueError:
        pass

    form = dict(parse_qsl(text, keep_blank_values=True))
    if not form:
        raise WebhookPayloadError("Invalid payload format")
    return form


def extract_payment_details(
    payload: dict[str, Any],
) -> tuple[list[str], Optional[str], Optional[str]]:
    """
    Pull payment identifiers, reference number and status from a callback.

    Returns:
        Tuple of (candidate payment ids in lookup order, reference, status)
    """
    nested = payload.get("payment_request")
    nested = nested if isinstance(nested, dict) else {}

    candidates: list[str] = []
    for value in (
        payload.get("payment_id"),
        payload.get("payment_request_id"),
        payload.get("id"),
        nested.get("id"),
    ):
        if value not in (None, "") and str(value) not in candidates:
            candidates.append(str(value))

    reference_number = payload.get("reference_number") or nested.get("reference_number")
    status = payload.get("status") or nested.get("status")

    return (
        candidates,
        str(reference_number) if reference_number else None,
        str(status) if status else None,
    )


class PaymentService:
    """
    Payment service orchestrating gateway integration and order records.

    Attributes:
        repository: Order repository for data access
        hitpay_client: Payment gateway client
        notification_service: Sends order e-mails, best effort
    """

    def __init__(
        self,
        repository: OrderRepository,
        hitpay_client: HitPayClient,
        notification_service: Optional[NotificationService] = None,
        settings: Optional[Settings] = None,
    ):
        self.repository = repository
        self.hitpay_client = hitpay_client
        self.notification_service = notification_service
        self.settings = settings or get_settings()

    def _validate_checkout(self, request: CheckoutRequest) -> None:
        if not request.items:
            raise CheckoutValidationError("Cart items are required", field="items")
        if not request.customer_email or not request.customer_name:
            raise CheckoutValidationError(
                "Customer information is required",
                field="customer",
            )
        if request.shipping_address is None:
            raise CheckoutValidationError(
                "Shipping address is required",
                field="shipping_address",
            )

    def _price(self, request: CheckoutRequest) -> dict[str, Decimal]:
        subtotal = sum(
            (item.price * item.quantity for item in request.items),
            Decimal("0"),
        ).quantize(CENTS, rounding=ROUND_HALF_UP)
        shipping = (request.shipping or Decimal("0")).quantize(CENTS, rounding=ROUND_HALF_UP)
        tax = (request.tax or Decimal("0")).quantize(CENTS, rounding=ROUND_HALF_UP)
        total = subtotal + shipping + tax

        if request.total is not None and abs(request.total - total) > TOTAL_TOLERANCE:
            raise CheckoutValidationError(
                "Order total does not match cart contents",
                field="total",
                submitted_total=str(request.total),
                computed_total=str(total),
            )

        if total <= 0:
            raise CheckoutValidationError(
                "Order total must be greater than zero",
                field="total",
            )

        return {"subtotal": subtotal, "shipping": shipping, "tax": tax, "total": total}

    async def initiate_checkout(self, request: CheckoutRequest) -> dict[str, Any]:
        """
        Start a checkout: create the hosted payment request and record the order.

        Args:
            request: Checkout request from the storefront

        Returns:
            Dictionary with ``success``, ``payment_url`` and ``reference_number``

        Raises:
            CheckoutValidationError: If the request is incomplete, before any
                call to the gateway
            PaymentProcessingError: If the gateway call or persistence fails
        """
        self._validate_checkout(request)
        amounts = self._price(request)
        reference_number = generate_reference_number()
        items = [item.to_snapshot() for item in request.items]

        logger.info(
            "Starting checkout",
            reference_number=reference_number,
            item_count=len(items),
            total=str(amounts["total"]),
        )

        try:
            with log_performance(logger, "create_payment_request", reference_number=reference_number):
                payment_request = await self.hitpay_client.create_payment_request(
                    amount=amounts["total"],
                    currency=self.settings.payment_currency,
                    email=request.customer_email,
                    name=request.customer_name,
                    purpose=f"{self.settings.store_name} Order #{reference_number}",
                    reference_number=reference_number,
                    redirect_url=self.settings.payment_redirect_url,
                    webhook_url=self.settings.payment_webhook_url,
                )
        except HitPayClientError as e:
            logger.error(
                "Payment request creation failed",
                reference_number=reference_number,
                error=str(e),
                code=e.code,
            )
            raise PaymentProcessingError(
                "Failed to create payment",
                reference_number=reference_number,
                gateway_code=e.code,
            ) from e

        try:
            order = await self.repository.create_order(
                reference_number=reference_number,
                customer_email=request.customer_email,
                customer_name=request.customer_name,
                customer_phone=request.customer_phone or request.shipping_address.phone,
                items=items,
                shipping_address=request.shipping_address.model_dump(),
                status=OrderStatus.PAYMENT_INITIATED,
                payment_id=payment_request.id,
                payment_provider=PAYMENT_PROVIDER,
                **amounts,
            )
            await self.repository.commit()
        except OrderRepositoryError as e:
            # The gateway already holds a live payment request for this order.
            logger.error(
                "Order not recorded after payment request was created",
                reference_number=reference_number,
                payment_id=payment_request.id,
                error=str(e),
                **e.context,
            )
            raise PaymentProcessingError(
                "Failed to create payment",
                reference_number=reference_number,
                payment_id=payment_request.id,
            ) from e

        if self.notification_service is not None:
            await self.notification_service.send_order_confirmation(order)

        logger.info(
            "Checkout started",
            order_id=str(order.id),
            reference_number=reference_number,
            payment_id=payment_request.id,
        )

        return {
            "success": True,
            "payment_url": payment_request.url,
            "reference_number": reference_number,
        }

    async def handle_webhook(
        self,
        raw_body: bytes,
        signature: Optional[str],
    ) -> dict[str, Any]:
        """
        Reconcile a gateway callback into the matching order's status.

        Once the signature and payload are accepted the callback is always
        acknowledged; lookup misses, ignored transitions and persistence
        failures are logged only.

        Args:
            raw_body: Body bytes exactly as received
            signature: Value of the signature header, if any

        Returns:
            ``{"success": True}``

        Raises:
            WebhookSignatureError: If the signature is missing or wrong
            WebhookPayloadError: If the body cannot be interpreted
        """
        if not signature:
            logger.warning("Webhook rejected: missing signature")
            raise WebhookSignatureError("Missing signature")

        if not verify_signature(raw_body, signature, self.settings.hitpay_webhook_salt):
            logger.warning("Webhook rejected: invalid signature", body_size=len(raw_body))
            raise WebhookSignatureError("Invalid signature")

        payload = parse_webhook_payload(raw_body)
        payment_ids, reference_number, vendor_status = extract_payment_details(payload)

        if not payment_ids or not vendor_status:
            logger.warning(
                "Webhook missing payment information",
                keys=sorted(payload.keys()),
            )
            raise WebhookPayloadError("Missing payment information")

        target_status = map_gateway_status(vendor_status)
        if not is_known_gateway_status(vendor_status):
            logger.warning(
                "Unrecognized gateway status mapped to pending",
                vendor_status=vendor_status,
                payment_ids=payment_ids,
            )

        logger.info(
            "Webhook received",
            payment_ids=payment_ids,
            reference_number=reference_number,
            vendor_status=vendor_status,
            target_status=target_status.value,
        )

        try:
            await self._apply_gateway_status(
                payment_ids,
                reference_number,
                target_status,
            )
        except OrderRepositoryError as e:
            logger.error(
                "Failed to apply webhook status",
                payment_ids=payment_ids,
                reference_number=reference_number,
                error=str(e),
                **e.context,
            )

        return {"success": True}

    async def _find_order_for_callback(
        self,
        payment_ids: list[str],
        reference_number: Optional[str],
    ) -> Optional[Order]:
        for payment_id in payment_ids:
            order = await self.repository.get_order_by_payment_id(payment_id)
            if order is not None:
                return order
        if reference_number:
            return await self.repository.get_order_by_reference(reference_number)
        return None

    async def _apply_gateway_status(
        self,
        payment_ids: list[str],
        reference_number: Optional[str],
        target_status: OrderStatus,
    ) -> None:
        order = await self._find_order_for_callback(payment_ids, reference_number)
        if order is None:
            logger.warning(
                "No order found for webhook",
                payment_ids=payment_ids,
                reference_number=reference_number,
            )
            return

        current_status = order.status
        if current_status == target_status:
            logger.info(
                "Webhook status already applied",
                order_id=str(order.id),
                status=current_status.value,
            )
            return

        if not can_apply_gateway_status(current_status, target_status):
            logger.warning(
                "Ignoring stale webhook status",
                order_id=str(order.id),
                current_status=current_status.value,
                target_status=target_status.value,
            )
            return

        await self.repository.update_order_status(order, target_status)
        await self.repository.commit()

        logger.info(
            "Order status reconciled from webhook",
            order_id=str(order.id),
            reference_number=order.reference_number,
            old_status=current_status.value,
            new_status=target_status.value,
        )

        if self.notification_service is not None:
            await self.notification_service.send_order_status_update(order, current_status)

    async def get_payment_status(
        self,
        ctx: RequestContext,
        payment_id: str,
    ) -> dict[str, Any]:
        """
        Look up a payment request at the gateway.

        Raises:
            PermissionDeniedError: If the caller is not an admin
            PaymentProcessingError: If the gateway call fails
        """
        ctx.require_role(UserRole.ADMIN, UserRole.SUPER_ADMIN)

        try:
            payment_request = await self.hitpay_client.get_payment_request(payment_id)
        except HitPayClientError as e:
            logger.error("Payment lookup failed", payment_id=payment_id, error=str(e))
            raise PaymentProcessingError(
                "Failed to retrieve payment",
                payment_id=payment_id,
                gateway_code=e.code,
            ) from e

        return {
            "payment_id": payment_request.id,
            "gateway_status": payment_request.status,
            "order_status": map_gateway_status(payment_request.status).value,
            "reference_number": payment_request.reference_number,
            "payment_url": payment_request.url,
        }
