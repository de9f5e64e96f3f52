"""
AWS SES client wrapper with error handling.

This module wraps boto3's SES client for sending transactional e-mails with
retries on throttling and transient connection errors.
"""

import time
from typing import Any, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from src.core.config import get_settings
from src.core.logging import get_logger

logger = get_logger(__name__)
settings = get_settings()

NON_RETRYABLE_ERRORS = frozenset(
    {
        "MessageRejected",
        "MailFromDomainNotVerified",
        "ConfigurationSetDoesNotExist",
    }
)


class SESClientError(Exception):
    """Exception for SES errors."""

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.context = context


class SESClient:
    """
    AWS SES client wrapper with retry logic.

    Credentials are resolved by boto3's default chain (environment, profile
    or instance role).
    """

    def __init__(
        self,
        region_name: Optional[str] = None,
        max_retries: int = 3,
        retry_backoff: float = 1.0,
        client: Any = None,
    ) -> None:
        """
        Initialize SES client.

        Args:
            region_name: AWS region name (defaults to settings)
            max_retries: Maximum number of send attempts
            retry_backoff: Initial backoff time in seconds for retries
            client: Pre-built boto3 SES client
        """
        self.max_retries = max_retries
        self.retry_backoff = retry_backoff
        self._client = client or boto3.client(
            "ses",
            region_name=region_name or settings.aws_region,
        )

    def send_email(
        self,
        to_addresses: list[str],
        subject: str,
        body_text: str,
        body_html: Optional[str] = None,
        from_address: Optional[str] = None,
    ) -> dict[str, Any]:
        """
        Send email via AWS SES with retry logic.

        Args:
            to_addresses: List of recipient email addresses
            subject: Email subject
            body_text: Plain text email body
            body_html: HTML email body (optional)
            from_address: Sender email address (defaults to settings)

        Returns:
            Dictionary containing message ID and delivery status

        Raises:
            SESClientError: If email sending fails after retries
        """
        from_address = from_address or settings.ses_from_email

        if not to_addresses:
            raise SESClientError("At least one recipient email address is required")

        message: dict[str, Any] = {
            "Subject": {"Data": subject, "Charset": "UTF-8"},
            "Body": {"Text": {"Data": body_text, "Charset": "UTF-8"}},
        }
        if body_html:
            message["Body"]["Html"] = {"Data": body_html, "Charset": "UTF-8"}

        last_exception: Optional[Exception] = None
        for attempt in range(self.max_retries):
            try:
                response = self._client.send_email(
                    Source=from_address,
                    Destination={"ToAddresses": to_addresses},
                    Message=message,
                )
                logger.info(
                    "Email sent via SES",
                    message_id=response["MessageId"],
                    to_addresses=to_addresses,
                    subject=subject,
                )
                return {"message_id": response["MessageId"], "status": "sent"}

            except ClientError as e:
                error_code = e.response.get("Error", {}).get("Code", "Unknown")
                logger.warning(
                    "SES client error",
                    attempt=attempt + 1,
                    error_code=error_code,
                    to_addresses=to_addresses,
                )
                last_exception = e
                if error_code in NON_RETRYABLE_ERRORS:
                    raise SESClientError(
                        f"SES rejected the message: {error_code}",
                        error_code=error_code,
                        to_addresses=to_addresses,
                    ) from e

            except BotoCoreError as e:
                logger.warning(
                    "SES connection error",
                    attempt=attempt + 1,
                    error=str(e),
                )
                last_exception = e

            if attempt < self.max_retries - 1:
                time.sleep(self.retry_backoff * (2**attempt))

        raise SESClientError(
            f"Failed to send email after {self.max_retries} attempts",
            to_addresses=to_addresses,
            last_error=str(last_exception),
        ) from last_exception


def get_ses_client() -> SESClient:
    return SESClient()
