"""
Customer and store e-mail notifications.

This module provides the NotificationService that renders order and contact
e-mails and sends them through SES. Sending is best effort: failures are
logged and reported as ``False`` so that order processing never depends on
mail delivery.
"""

import asyncio
from typing import Any, Optional

from botocore.exceptions import BotoCoreError

from src.core.config import get_settings
from src.core.logging import get_logger
from src.database.models.order import Order, OrderStatus
from src.schemas.contact import ContactRequest
from src.services.notifications.aws_clients import SESClient, SESClientError
from src.services.notifications.templates import (
    TemplateEngine,
    TemplateEngineError,
    get_template_engine,
)

logger = get_logger(__name__)
settings = get_settings()

ORDER_CONFIRMATION_TEMPLATE = "order_confirmation"
ORDER_STATUS_UPDATE_TEMPLATE = "order_status_update"
CONTACT_REQUEST_TEMPLATE = "contact_request"


class NotificationService:
    """
    Sends customer-facing order e-mails.

    When e-mail is disabled the rendered message is logged instead of sent,
    which keeps local development and tests free of AWS calls.
    """

    def __init__(
        self,
        ses_client: Optional[SESClient] = None,
        template_engine: Optional[TemplateEngine] = None,
        enabled: Optional[bool] = None,
    ) -> None:
        """
        Initialize notification service.

        Args:
            ses_client: AWS SES client (created on first send when omitted)
            template_engine: Template engine (defaults to new instance)
            enabled: Override for the ``email_enabled`` setting
        """
        self._ses_client = ses_client
        self.template_engine = template_engine or get_template_engine()
        self.enabled = settings.email_enabled if enabled is None else enabled

    @property
    def ses_client(self) -> SESClient:
        if self._ses_client is None:
            self._ses_client = SESClient()
        return self._ses_client

    def _order_context(self, order: Order, **extra: Any) -> dict[str, Any]:
        return {
            "order": order,
            "store_name": settings.store_name,
            "tracking_url": (
                f"{settings.public_app_url}/track-order"
                f"?reference={order.reference_number}"
            ),
            **extra,
        }

    async def _send(
        self,
        template_name: str,
        recipient: str,
        context: dict[str, Any],
    ) -> bool:
        try:
            rendered = self.template_engine.render_email(template_name, context)
        except TemplateEngineError as e:
            logger.error(
                "Failed to render notification",
                template_name=template_name,
                error=str(e),
            )
            return False

        if not self.enabled:
            logger.info(
                "E-mail disabled, notification not sent",
                template_name=template_name,
                recipient=recipient,
                subject=rendered["subject"],
            )
            return False

        try:
            await asyncio.to_thread(
                self.ses_client.send_email,
                to_addresses=[recipient],
                subject=rendered["subject"],
                body_text=rendered["text_body"],
                body_html=rendered["html_body"],
            )
        except SESClientError as e:
            logger.error(
                "Failed to send notification",
                template_name=template_name,
                recipient=recipient,
                error=str(e),
                **e.context,
            )
            return False
        except BotoCoreError as e:
            logger.error(
                "SES client unavailable",
                template_name=template_name,
                recipient=recipient,
                error=str(e),
                error_type=type(e).__name__,
            )
            return False

        return True

    async def send_order_confirmation(self, order: Order) -> bool:
        """
        Send the order-received e-mail to the buyer.

        Returns:
            True if the message was handed to SES
        """
        return await self._send(
            ORDER_CONFIRMATION_TEMPLATE,
            order.customer_email,
            self._order_context(order),
        )

    async def send_order_status_update(
        self,
        order: Order,
        previous_status: OrderStatus,
    ) -> bool:
        """
        Notify the buyer that their order moved to a new status.

        Returns:
            True if the message was handed to SES
        """
        return await self._send(
            ORDER_STATUS_UPDATE_TEMPLATE,
            order.customer_email,
            self._order_context(order, previous_status=previous_status),
        )

    async def send_contact_request(self, request: ContactRequest) -> bool:
        """
        Forward a storefront offer claim to the store enquiry inbox.

        Returns:
            True if the message was handed to SES
        """
        return await self._send(
            CONTACT_REQUEST_TEMPLATE,
            settings.contact_email,
            {"request": request, "store_name": settings.store_name},
        )


def get_notification_service() -> NotificationService:
    """
    Factory function to create notification service instance.

    Returns:
        Configured NotificationService instance
    """
    return NotificationService()
