"""
API v1 routers.
"""

from src.api.v1.activity_logs import router as activity_logs_router
from src.api.v1.auth import router as auth_router
from src.api.v1.catalog import categories_router, products_router
from src.api.v1.contact import router as contact_router
from src.api.v1.orders import router as orders_router
from src.api.v1.payments import router as payments_router
from src.api.v1.users import router as users_router

__all__ = [
    "activity_logs_router",
    "auth_router",
    "categories_router",
    "contact_router",
    "orders_router",
    "payments_router",
    "products_router",
    "users_router",
]
