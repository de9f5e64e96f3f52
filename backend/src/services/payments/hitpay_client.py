"""
HitPay payment-requests API client.

Creates hosted payment requests and reads their status back. Requests are
form-encoded and authenticated with the business API key header. The client
never retries: a failed create is reported to the caller, which decides how
to surface it to the shopper.
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Optional

import httpx

from src.core.config import get_settings
from src.core.logging import get_logger

logger = get_logger(__name__)
settings = get_settings()


class HitPayClientError(Exception):
    """Base exception for HitPay client errors."""

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        **context: Any,
    ):
        super().__init__(message)
        self.code = code
        self.context = context


class HitPayConnectionError(HitPayClientError):
    """Exception for transport failures and timeouts."""

    pass


class HitPayAPIError(HitPayClientError):
    """Exception for non-success responses from the API."""

    def __init__(self, message: str, status_code: int, **context: Any):
        super().__init__(message, code="HITPAY_API_ERROR", status_code=status_code, **context)
        self.status_code = status_code


@dataclass(frozen=True)
class HitPayPaymentRequest:
    """Payment request as returned by the gateway."""

    id: str
    url: Optional[str]
    status: str
    reference_number: Optional[str] = None
    amount: Optional[str] = None
    currency: Optional[str] = None

    @classmethod
    def from_response(cls, payload: dict[str, Any]) -> "HitPayPaymentRequest":
        if not payload.get("id"):
            raise HitPayClientError(
                "Payment request response has no id",
                code="HITPAY_INVALID_RESPONSE",
                keys=sorted(payload.keys()),
            )
        return cls(
            id=str(payload["id"]),
            url=payload.get("url"),
            status=str(payload.get("status", "")),
            reference_number=payload.get("reference_number"),
            amount=payload.get("amount"),
            currency=payload.get("currency"),
        )


def format_amount(amount: Decimal) -> str:
    """Render an amount with exactly two decimals, as the API expects."""
    return str(Decimal(amount).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


class HitPayClient:
    """
    Async client for the HitPay payment-requests resource.

    Args:
        api_key: Business API key (defaults to settings)
        api_url: API base URL (defaults to settings)
        timeout: Request timeout in seconds (defaults to settings)
        transport: Optional httpx transport, used to stub the API in tests
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        api_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key if api_key is not None else settings.hitpay_api_key
        self.api_url = (api_url or settings.hitpay_api_url).rstrip("/")
        self.timeout = timeout or settings.hitpay_timeout_seconds
        self._transport = transport

    def _headers(self) -> dict[str, str]:
        return {
            "X-BUSINESS-API-KEY": self.api_key,
            "X-Requested-With": "XMLHttpRequest",
            "Accept": "application/json",
        }

    async def _request(
        self,
        method: str,
        path: str,
        data: Optional[dict[str, str]] = None,
    ) -> dict[str, Any]:
        url = f"{self.api_url}/{path.lstrip('/')}"

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout,
                transport=self._transport,
            ) as client:
                response = await client.request(
                    method,
                    url,
                    data=data,
                    headers=self._headers(),
                )
        except httpx.TimeoutException as e:
            logger.error("HitPay request timed out", method=method, path=path)
            raise HitPayConnectionError(
                "Payment gateway timed out",
                code="HITPAY_TIMEOUT",
                path=path,
            ) from e
        except httpx.HTTPError as e:
            logger.error(
                "HitPay request failed",
                method=method,
                path=path,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise HitPayConnectionError(
                "Payment gateway unreachable",
                code="HITPAY_CONNECTION_ERROR",
                path=path,
            ) from e

        if response.is_error:
            logger.error(
                "HitPay returned an error response",
                method=method,
                path=path,
                status_code=response.status_code,
                body=response.text[:500],
            )
            raise HitPayAPIError(
                f"Payment gateway returned HTTP {response.status_code}",
                status_code=response.status_code,
                path=path,
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise HitPayClientError(
                "Payment gateway returned a non-JSON response",
                code="HITPAY_INVALID_RESPONSE",
                path=path,
            ) from e

        if not isinstance(payload, dict):
            raise HitPayClientError(
                "Payment gateway returned an unexpected response",
                code="HITPAY_INVALID_RESPONSE",
                path=path,
            )
        return payload

    async def create_payment_request(
        self,
        amount: Decimal,
        currency: str,
        email: str,
        name: str,
        purpose: str,
        reference_number: str,
        redirect_url: str,
        webhook_url: str,
    ) -> HitPayPaymentRequest:
        """
        Create a hosted payment request.

        Args:
            amount: Amount to charge
            currency: ISO currency code
            email: Payer e-mail
            name: Payer name
            purpose: Description shown on the payment page
            reference_number: Merchant order reference
            redirect_url: Where the shopper lands after paying
            webhook_url: Where the gateway posts status callbacks

        Returns:
            Created payment request with its hosted page URL

        Raises:
            HitPayConnectionError: On transport failure or timeout
            HitPayAPIError: On a non-success response
            HitPayClientError: On a malformed response
        """
        form = {
            "amount": format_amount(amount),
            "currency": currency,
            "email": email,
            "name": name,
            "purpose": purpose,
            "reference_number": reference_number,
            "redirect_url": redirect_url,
            "webhook": webhook_url,
        }

        logger.info(
            "Creating payment request",
            reference_number=reference_number,
            amount=form["amount"],
            currency=currency,
        )
        payload = await self._request("POST", "payment-requests", data=form)
        payment_request = HitPayPaymentRequest.from_response(payload)

        if not payment_request.url:
            raise HitPayClientError(
                "Payment request response has no checkout URL",
                code="HITPAY_INVALID_RESPONSE",
                payment_id=payment_request.id,
            )

        logger.info(
            "Payment request created",
            reference_number=reference_number,
            payment_id=payment_request.id,
            status=payment_request.status,
        )
        return payment_request

    async def get_payment_request(self, payment_request_id: str) -> HitPayPaymentRequest:
        """
        Retrieve a payment request by id.

        Raises:
            HitPayConnectionError: On transport failure or timeout
            HitPayAPIError: On a non-success response
        """
        payload = await self._request("GET", f"payment-requests/{payment_request_id}")
        return HitPayPaymentRequest.from_response(payload)


def get_hitpay_client() -> HitPayClient:
    """
    Get configured HitPay client instance.

    Returns:
        HitPayClient built from application settings
    """
    return HitPayClient()
