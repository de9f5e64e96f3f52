"""
Pytest configuration and shared test fixtures.

Settings are read from the environment when ``src`` is first imported, so the
test environment is set up here before any application import. Every test
gets a fresh in-memory SQLite database; the payment gateway is stubbed with
an httpx mock transport and e-mail with a mock notification service.
"""

import os

os.environ["APP_ENVIRONMENT"] = "test"
os.environ["APP_DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["APP_SECRET_KEY"] = "test-secret-key-that-is-long-enough-for-jwt-signing"
os.environ["APP_HITPAY_API_KEY"] = "test-api-key"
os.environ["APP_HITPAY_WEBHOOK_SALT"] = "test-webhook-salt"
os.environ["APP_RATE_LIMIT_ENABLED"] = "false"
os.environ["APP_BCRYPT_ROUNDS"] = "4"
os.environ["APP_EMAIL_ENABLED"] = "false"
os.environ["APP_LOG_LEVEL"] = "WARNING"

import json  # noqa: E402
import uuid  # noqa: E402
from decimal import Decimal  # noqa: E402
from typing import Any, AsyncGenerator, Callable, Optional  # noqa: E402
from unittest.mock import AsyncMock, MagicMock  # noqa: E402

import httpx  # noqa: E402
import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool  # noqa: E402

from src.core.context import RequestContext  # noqa: E402
from src.core.security import create_access_token, hash_password  # noqa: E402
from src.database.base import Base  # noqa: E402
from src.database.connection import close_database_connections, get_db  # noqa: E402
from src.database.models import (  # noqa: E402
    Category,
    Order,
    OrderStatus,
    Product,
    User,
    UserRole,
)
from src.main import app  # noqa: E402
from src.schemas.catalog import slugify  # noqa: E402
from src.services.notifications.service import (  # noqa: E402
    NotificationService,
    get_notification_service,
)
from src.services.payments.hitpay_client import HitPayClient, get_hitpay_client  # noqa: E402
from src.services.payments.signature import compute_signature  # noqa: E402

WEBHOOK_SALT = os.environ["APP_HITPAY_WEBHOOK_SALT"]
TEST_PASSWORD = "Secret123"


class FakeHitPay:
    """
    In-process stand-in for the payment-requests API.

    Records every request and answers create calls with a fresh payment
    request id; set ``fail_with`` to an HTTP status to make calls fail.
    """

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.fail_with: Optional[int] = None
        self.created: list[dict[str, Any]] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.fail_with is not None:
            return httpx.Response(self.fail_with, json={"message": "gateway error"})

        if request.method == "POST":
            form = dict(httpx.QueryParams(request.content.decode()))
            payment_id = f"pr-{uuid.uuid4().hex[:12]}"
            body = {
                "id": payment_id,
                "url": f"https://securecheckout.sandbox.hit-pay.com/payment-request/@essen/{payment_id}/checkout",
                "status": "pending",
                "reference_number": form.get("reference_number"),
                "amount": form.get("amount"),
                "currency": form.get("currency"),
            }
            self.created.append(body)
            return httpx.Response(201, json=body)

        payment_id = request.url.path.rsplit("/", 1)[-1]
        return httpx.Response(
            200,
            json={
                "id": payment_id,
                "url": None,
                "status": "completed",
                "reference_number": "ORDER-abcdef12",
            },
        )

    @property
    def last_form(self) -> dict[str, str]:
        return dict(httpx.QueryParams(self.requests[-1].content.decode()))


@pytest.fixture
async def reset_app_engine():
    """Dispose the application engine so no connection outlives its event loop."""
    yield
    await close_database_connections()


@pytest.fixture
async def engine():
    """Fresh in-memory database shared by every session in one test."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, expire_on_commit=False, autoflush=False)


@pytest.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def fake_hitpay() -> FakeHitPay:
    return FakeHitPay()


@pytest.fixture
def hitpay_client(fake_hitpay) -> HitPayClient:
    return HitPayClient(
        api_key="test-api-key",
        api_url="https://api.sandbox.hit-pay.com/v1",
        transport=httpx.MockTransport(fake_hitpay),
    )


@pytest.fixture
def mock_notifications() -> MagicMock:
    notifications = MagicMock(spec=NotificationService)
    notifications.send_order_confirmation = AsyncMock(return_value=True)
    notifications.send_order_status_update = AsyncMock(return_value=True)
    notifications.send_contact_request = AsyncMock(return_value=True)
    return notifications


@pytest.fixture
async def async_client(
    reset_app_engine,
    session_factory,
    hitpay_client,
    mock_notifications,
) -> AsyncGenerator[AsyncClient, None]:
    """
    Asynchronous test client wired to the per-test database.

    Example:
        async def test_health_endpoint_async(async_client):
            response = await async_client.get("/health")
            assert response.status_code == 200
    """

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_hitpay_client] = lambda: hitpay_client
    app.dependency_overrides[get_notification_service] = lambda: mock_notifications

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
def make_user(session_factory) -> Callable:
    """Factory persisting a back-office user."""

    async def _make_user(
        role: UserRole = UserRole.ADMIN,
        email: Optional[str] = None,
        name: str = "Test User",
        is_active: bool = True,
        password: str = TEST_PASSWORD,
    ) -> User:
        user = User(
            name=name,
            email=email or f"{role.value}-{uuid.uuid4().hex[:6]}@essen.sg",
            password_hash=hash_password(password),
            role=role,
            is_active=is_active,
        )
        async with session_factory() as session:
            session.add(user)
            await session.commit()
        return user

    return _make_user


@pytest.fixture
def make_order(session_factory) -> Callable:
    """Factory persisting an order."""

    async def _make_order(
        status: OrderStatus = OrderStatus.PAYMENT_INITIATED,
        payment_id: Optional[str] = "pr-existing-001",
        customer_email: str = "buyer@example.com",
        reference_number: Optional[str] = None,
        total: Decimal = Decimal("150.00"),
    ) -> Order:
        order = Order(
            reference_number=reference_number or f"ORDER-{uuid.uuid4().hex[:8]}",
            customer_email=customer_email,
            customer_name="Tan Mei Ling",
            items=[
                {
                    "product_id": "sofa-001",
                    "product_name": "Oslo 3-Seater Sofa",
                    "product_slug": "oslo-3-seater-sofa",
                    "price": float(total),
                    "quantity": 1,
                    "image": None,
                }
            ],
            shipping_address={"address_line1": "1 Orchard Road", "postal_code": "238824"},
            subtotal=total,
            shipping=Decimal("0.00"),
            tax=Decimal("0.00"),
            total=total,
            status=status,
            payment_id=payment_id,
            payment_provider="hitpay",
        )
        async with session_factory() as session:
            session.add(order)
            await session.commit()
        return order

    return _make_order


@pytest.fixture
def make_category(session_factory) -> Callable:
    """Factory persisting a category."""

    async def _make_category(name: str = "Sofas", slug: Optional[str] = None) -> Category:
        category = Category(name=name, slug=slug or slugify(name))
        async with session_factory() as session:
            session.add(category)
            await session.commit()
        return category

    return _make_category


@pytest.fixture
def make_product(session_factory) -> Callable:
    """Factory persisting a product in ``category``."""

    async def _make_product(
        category: Category,
        name: str = "Oslo 3-Seater Sofa",
        slug: Optional[str] = None,
        price: Optional[Decimal] = Decimal("1299.00"),
        **fields: Any,
    ) -> Product:
        fields.setdefault("description", "Deep-seated sofa in washed linen.")
        product = Product(
            name=name,
            slug=slug or slugify(name),
            category_id=category.id,
            price=price,
            **fields,
        )
        async with session_factory() as session:
            session.add(product)
            await session.commit()
        return product

    return _make_product


@pytest.fixture
def fetch_order(session_factory) -> Callable:
    """Re-read an order in a fresh session."""

    async def _fetch(order_id: uuid.UUID) -> Optional[Order]:
        async with session_factory() as session:
            return await session.get(Order, order_id)

    return _fetch


def auth_headers(user: User) -> dict[str, str]:
    token = create_access_token(user.id, user.email, user.role.value)
    return {"Authorization": f"Bearer {token}"}


def make_context(role: UserRole = UserRole.ADMIN, user_id: Optional[uuid.UUID] = None) -> RequestContext:
    return RequestContext(
        user_id=user_id or uuid.uuid4(),
        email=f"{role.value}@essen.sg",
        role=role,
        ip_address="203.0.113.7",
        user_agent="pytest",
    )


def signed_webhook(payload: Any, as_form: bool = False) -> tuple[bytes, dict[str, str]]:
    """Body and headers for a webhook signed with the test salt."""
    if as_form:
        body = str(httpx.QueryParams(payload)).encode()
        content_type = "application/x-www-form-urlencoded"
    else:
        body = json.dumps(payload).encode()
        content_type = "application/json"
    return body, {
        "Content-Type": content_type,
        "X-HitPay-HMAC-SHA256": compute_signature(body, WEBHOOK_SALT),
    }
