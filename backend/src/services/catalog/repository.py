"""
Catalog data access repositories.

Writes run inside a savepoint so a rejected row (duplicate slug, constraint
failure) rolls back only that write. Bulk imports rely on this to keep the
rows that did succeed.
"""

import uuid
from typing import Any, Awaitable, Callable, Optional, Sequence

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.logging import get_logger
from src.database.models.catalog import Category, Product
from src.schemas.catalog import ProductFilter

logger = get_logger(__name__)


class CatalogRepositoryError(Exception):
    """Base exception for catalog repository errors."""

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.context = context


class DuplicateSlugError(CatalogRepositoryError):
    """Raised when a slug is already taken."""

    pass


class _SluggedRepository:
    """Shared lookups and savepoint writes for slug-addressed records."""

    model: Any
    entity: str

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, record_id: uuid.UUID) -> Optional[Any]:
        try:
            return await self.session.get(self.model, record_id)
        except SQLAlchemyError as e:
            raise CatalogRepositoryError(
                f"Failed to fetch {self.entity}",
                id=str(record_id),
                error=str(e),
            ) from e

    async def get_by_slug(self, slug: str) -> Optional[Any]:
        try:
            result = await self.session.execute(
                select(self.model).where(self.model.slug == slug.strip().lower())
            )
        except SQLAlchemyError as e:
            raise CatalogRepositoryError(
                f"Failed to fetch {self.entity} by slug",
                slug=slug,
                error=str(e),
            ) from e
        return result.scalars().first()

    async def _write(
        self,
        operation: str,
        slug: str,
        change: Callable[[], Awaitable[None]],
    ) -> None:
        try:
            async with self.session.begin_nested():
                await change()
        except IntegrityError as e:
            logger.warning(f"{self.entity.title()} {operation} violated a constraint", slug=slug)
            raise DuplicateSlugError(
                f"A {self.entity} with this slug already exists",
                slug=slug,
            ) from e
        except SQLAlchemyError as e:
            logger.error(f"Failed to {operation} {self.entity}", slug=slug, error=str(e))
            raise CatalogRepositoryError(
                f"Failed to {operation} {self.entity}",
                slug=slug,
                error=str(e),
            ) from e

    async def create(self, record: Any) -> Any:
        async def add() -> None:
            self.session.add(record)

        await self._write("create", record.slug, add)
        logger.info(f"{self.entity.title()} created", id=str(record.id), slug=record.slug)
        return record

    async def update(self, record: Any, changes: dict[str, Any]) -> Any:
        """
        Apply ``changes`` to ``record`` and flush them.

        The attributes are assigned inside the savepoint; a failed flush
        leaves the record expired rather than half-updated.
        """
        slug = changes.get("slug") or record.slug

        async def apply() -> None:
            for field, value in changes.items():
                setattr(record, field, value)

        await self._write("update", slug, apply)
        return record

    async def delete(self, record: Any) -> None:
        slug = record.slug

        async def remove() -> None:
            await self.session.delete(record)

        await self._write("delete", slug, remove)
        logger.info(f"{self.entity.title()} deleted", slug=slug)


class CategoryRepository(_SluggedRepository):
    """Repository for product categories."""

    model = Category
    entity = "category"

    async def get_by_name(self, name: str) -> Optional[Category]:
        """Case-insensitive lookup used by spreadsheet imports."""
        try:
            result = await self.session.execute(
                select(Category).where(func.lower(Category.name) == name.strip().lower())
            )
        except SQLAlchemyError as e:
            raise CatalogRepositoryError(
                "Failed to fetch category by name",
                name=name,
                error=str(e),
            ) from e
        return result.scalars().first()

    async def list_categories(self) -> Sequence[Category]:
        try:
            result = await self.session.execute(select(Category).order_by(Category.name))
        except SQLAlchemyError as e:
            raise CatalogRepositoryError("Failed to list categories", error=str(e)) from e
        return result.scalars().all()

    async def count_products(self, category_id: uuid.UUID) -> int:
        try:
            result = await self.session.execute(
                select(func.count())
                .select_from(Product)
                .where(Product.category_id == category_id)
            )
        except SQLAlchemyError as e:
            raise CatalogRepositoryError(
                "Failed to count category products",
                category_id=str(category_id),
                error=str(e),
            ) from e
        return result.scalar_one()


class ProductRepository(_SluggedRepository):
    """Repository for catalog products."""

    model = Product
    entity = "product"

    @staticmethod
    def _conditions(filters: ProductFilter) -> list[Any]:
        conditions = []
        if filters.categories:
            conditions.append(Category.slug.in_(filters.categories))
        if filters.min_price is not None:
            conditions.append(Product.price >= filters.min_price)
        if filters.max_price is not None:
            conditions.append(Product.price <= filters.max_price)
        if filters.in_stock is not None:
            conditions.append(Product.in_stock.is_(filters.in_stock))
        if filters.best_sellers_only:
            conditions.append(Product.is_weekly_best_seller.is_(True))
        if filters.search:
            conditions.append(Product.name.ilike(f"%{filters.search}%"))
        return conditions

    async def list_products(
        self,
        filters: ProductFilter,
        skip: int = 0,
        limit: int = 24,
    ) -> tuple[Sequence[Product], int]:
        """
        List products newest first.

        Returns:
            Tuple of (products, total_count)

        Raises:
            CatalogRepositoryError: If query fails
        """
        conditions = self._conditions(filters)
        stmt = (
            select(Product)
            .join(Category, Product.category_id == Category.id)
            .where(*conditions)
            .order_by(Product.created_at.desc())
            .offset(skip)
            .limit(limit)
        )
        count_stmt = (
            select(func.count())
            .select_from(Product)
            .join(Category, Product.category_id == Category.id)
            .where(*conditions)
        )

        try:
            result = await self.session.execute(stmt)
            count_result = await self.session.execute(count_stmt)
        except SQLAlchemyError as e:
            logger.error("Failed to list products", error=str(e))
            raise CatalogRepositoryError("Failed to list products", error=str(e)) from e

        return result.scalars().all(), count_result.scalar_one()
