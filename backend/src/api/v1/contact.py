"""
Storefront contact form endpoint.

Shoppers claim the special in-store offer here; the request is e-mailed to
the store's enquiry inbox. Nothing is stored.
"""

from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException, Request, status

from src.api.limiter import limiter
from src.core.config import get_settings
from src.core.logging import get_logger
from src.schemas.contact import ContactRequest, ContactResponse
from src.services.notifications.service import NotificationService, get_notification_service

logger = get_logger(__name__)
settings = get_settings()

router = APIRouter(prefix="/contact", tags=["contact"])


@router.post(
    "",
    response_model=ContactResponse,
    summary="Claim the in-store offer",
)
@limiter.limit(settings.contact_rate_limit)
async def submit_contact_request(
    request: Request,
    data: ContactRequest,
    notifications: Annotated[NotificationService, Depends(get_notification_service)],
) -> dict[str, Any]:
    """
    Forward a contact request to the enquiry inbox.

    Raises:
        HTTPException: 503 when the e-mail could not be sent,
            429 when the rate limit is exceeded
    """
    logger.info("Contact request received", email=data.email)

    if not await notifications.send_contact_request(data):
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={
                "message": "Failed to send your request. Please try again or contact us directly.",
                "code": "CONTACT_SEND_FAILED",
            },
        )

    return {
        "success": True,
        "message": "Your request has been sent successfully! We will contact you shortly.",
    }
