"""
Integration tests for the storefront contact form.
"""

import pytest
from fastapi import status

CONTACT_URL = "/api/v1/contact"


@pytest.fixture
def contact_body():
    return {
        "name": "Tan Mei Ling",
        "email": "meiling@example.com",
        "phone": "+65 8123 4567",
        "consent": True,
    }


class TestContact:
    async def test_request_forwarded(self, async_client, mock_notifications, contact_body):
        response = await async_client.post(CONTACT_URL, json=contact_body)

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["success"] is True
        request = mock_notifications.send_contact_request.await_args.args[0]
        assert request.email == "meiling@example.com"
        assert request.phone == "+65 8123 4567"

    async def test_consent_required(self, async_client, mock_notifications, contact_body):
        contact_body["consent"] = False

        response = await async_client.post(CONTACT_URL, json=contact_body)

        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
        mock_notifications.send_contact_request.assert_not_awaited()

    async def test_phone_required(self, async_client, contact_body):
        contact_body["phone"] = "  "

        response = await async_client.post(CONTACT_URL, json=contact_body)

        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY

    async def test_send_failure_reported(self, async_client, mock_notifications, contact_body):
        mock_notifications.send_contact_request.return_value = False

        response = await async_client.post(CONTACT_URL, json=contact_body)

        assert response.status_code == status.HTTP_503_SERVICE_UNAVAILABLE
        assert response.json()["detail"]["code"] == "CONTACT_SEND_FAILED"
