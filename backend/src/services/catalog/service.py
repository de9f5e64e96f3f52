"""
Product catalog management.

Browsing is public. Creating, editing, deleting and importing products
and categories is open to every back-office role, and each change is
recorded in the activity log.
"""

import asyncio
import math
import uuid
from typing import Any, Optional

from src.core.context import RequestContext
from src.core.logging import get_logger
from src.database.models.activity_log import ActivityAction
from src.database.models.catalog import Category, Product
from src.database.models.user import UserRole
from src.schemas.catalog import (
    CategoryCreate,
    CategoryUpdate,
    ProductCreate,
    ProductFilter,
    ProductImportRow,
    ProductUpdate,
)
from src.services.activity.service import ActivityService
from src.services.catalog.file_processor import ProductFileProcessor
from src.services.catalog.repository import (
    CatalogRepositoryError,
    CategoryRepository,
    DuplicateSlugError,
    ProductRepository,
)

logger = get_logger(__name__)

PRODUCT_ENTITY = "product"
CATEGORY_ENTITY = "category"
CATALOG_EDITOR_ROLES = (UserRole.SUPER_ADMIN, UserRole.ADMIN, UserRole.EDITOR)

# Columns that may be cleared with an explicit null; every other field keeps
# its value when null is sent.
NULLABLE_PRODUCT_FIELDS = {
    "price",
    "dimensions",
    "delivery_time",
    "return_policy",
    "warranty",
}


class CatalogServiceError(Exception):
    """Base exception for catalog service errors."""

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.context = context


class ProductNotFoundError(CatalogServiceError):
    """Raised when a product does not exist."""

    pass


class CategoryNotFoundError(CatalogServiceError):
    """Raised when a category does not exist."""

    pass


class SlugConflictError(CatalogServiceError):
    """Raised when a slug is already used by another record."""

    pass


class CategoryInUseError(CatalogServiceError):
    """Raised when deleting a category that products still reference."""

    pass


class CatalogService:
    """
    Catalog browsing, administration and spreadsheet import.

    Attributes:
        products: Product repository
        categories: Category repository
        activity_service: Records catalog changes
        file_processor: Parses uploaded product spreadsheets
    """

    def __init__(
        self,
        products: ProductRepository,
        categories: CategoryRepository,
        activity_service: ActivityService,
        file_processor: Optional[ProductFileProcessor] = None,
    ):
        self.products = products
        self.categories = categories
        self.activity_service = activity_service
        self.file_processor = file_processor or ProductFileProcessor()

    # Categories

    async def list_categories(self) -> list[Category]:
        try:
            return list(await self.categories.list_categories())
        except CatalogRepositoryError as e:
            raise CatalogServiceError("Failed to list categories", **e.context) from e

    async def get_category(self, identifier: str) -> Category:
        """Look a category up by id or slug."""
        try:
            category = await self._lookup(self.categories, identifier)
        except CatalogRepositoryError as e:
            raise CatalogServiceError("Failed to fetch category", **e.context) from e
        if category is None:
            raise CategoryNotFoundError("Category not found", identifier=identifier)
        return category

    async def create_category(self, ctx: RequestContext, data: CategoryCreate) -> Category:
        """
        Create a category.

        Raises:
            PermissionDeniedError: If the caller has no back-office role
            SlugConflictError: If the slug is taken
        """
        ctx.require_role(*CATALOG_EDITOR_ROLES)
        await self._ensure_slug_free(self.categories, data.slug, CATEGORY_ENTITY)

        category = Category(name=data.name, slug=data.slug, description=data.description)
        try:
            category = await self.categories.create(category)
        except DuplicateSlugError as e:
            raise SlugConflictError(str(e), **e.context) from e
        except CatalogRepositoryError as e:
            raise CatalogServiceError("Failed to create category", **e.context) from e

        await self.activity_service.log_activity(
            ctx,
            ActivityAction.CREATE_CATEGORY,
            f"Created category {category.name}",
            entity_id=str(category.id),
            entity_type=CATEGORY_ENTITY,
        )
        return category

    async def update_category(
        self,
        ctx: RequestContext,
        category_id: uuid.UUID,
        data: CategoryUpdate,
    ) -> Category:
        ctx.require_role(*CATALOG_EDITOR_ROLES)
        category = await self._get_category_or_raise(category_id)

        changes = data.model_dump(exclude_unset=True)
        for field in ("name", "slug"):
            if changes.get(field) is None:
                changes.pop(field, None)
        if "slug" in changes and changes["slug"] != category.slug:
            await self._ensure_slug_free(self.categories, changes["slug"], CATEGORY_ENTITY)

        try:
            category = await self.categories.update(category, changes)
        except DuplicateSlugError as e:
            raise SlugConflictError(str(e), **e.context) from e
        except CatalogRepositoryError as e:
            raise CatalogServiceError("Failed to update category", **e.context) from e

        await self.activity_service.log_activity(
            ctx,
            ActivityAction.UPDATE_CATEGORY,
            f"Updated category {category.name} ({', '.join(sorted(changes)) or 'no changes'})",
            entity_id=str(category.id),
            entity_type=CATEGORY_ENTITY,
        )
        return category

    async def delete_category(self, ctx: RequestContext, category_id: uuid.UUID) -> None:
        """
        Delete a category that no product uses.

        Raises:
            CategoryInUseError: If products still reference the category
        """
        ctx.require_role(*CATALOG_EDITOR_ROLES)
        category = await self._get_category_or_raise(category_id)

        try:
            in_use = await self.categories.count_products(category.id)
        except CatalogRepositoryError as e:
            raise CatalogServiceError("Failed to delete category", **e.context) from e
        if in_use:
            raise CategoryInUseError(
                f"Cannot delete category: {in_use} product(s) are using this category. "
                "Reassign or delete those products first.",
                category_id=str(category_id),
                product_count=in_use,
            )

        name = category.name
        try:
            await self.categories.delete(category)
        except CatalogRepositoryError as e:
            raise CatalogServiceError("Failed to delete category", **e.context) from e

        await self.activity_service.log_activity(
            ctx,
            ActivityAction.DELETE_CATEGORY,
            f"Deleted category {name}",
            entity_id=str(category_id),
            entity_type=CATEGORY_ENTITY,
        )

    # Products

    async def list_products(
        self,
        filters: ProductFilter,
        page: int = 1,
        page_size: int = 24,
    ) -> dict[str, Any]:
        try:
            products, total = await self.products.list_products(
                filters,
                skip=(page - 1) * page_size,
                limit=page_size,
            )
        except CatalogRepositoryError as e:
            raise CatalogServiceError("Failed to list products", **e.context) from e

        return {
            "products": list(products),
            "total": total,
            "page": page,
            "page_size": page_size,
            "pages": math.ceil(total / page_size),
        }

    async def get_product(self, identifier: str) -> Product:
        """Look a product up by id or slug."""
        try:
            product = await self._lookup(self.products, identifier)
        except CatalogRepositoryError as e:
            raise CatalogServiceError("Failed to fetch product", **e.context) from e
        if product is None:
            raise ProductNotFoundError("Product not found", identifier=identifier)
        return product

    async def create_product(self, ctx: RequestContext, data: ProductCreate) -> Product:
        """
        Create a product.

        Raises:
            PermissionDeniedError: If the caller has no back-office role
            CategoryNotFoundError: If ``category_id`` names no category
            SlugConflictError: If the slug is taken
        """
        ctx.require_role(*CATALOG_EDITOR_ROLES)
        category = await self._get_category_or_raise(data.category_id)
        await self._ensure_slug_free(self.products, data.slug, PRODUCT_ENTITY)

        product = Product(**data.model_dump(exclude={"category_id"}), category=category)
        try:
            product = await self.products.create(product)
        except DuplicateSlugError as e:
            raise SlugConflictError(str(e), **e.context) from e
        except CatalogRepositoryError as e:
            raise CatalogServiceError("Failed to create product", **e.context) from e

        await self.activity_service.log_activity(
            ctx,
            ActivityAction.CREATE_PRODUCT,
            f"Created product {product.name}",
            entity_id=str(product.id),
            entity_type=PRODUCT_ENTITY,
        )
        return product

    async def update_product(
        self,
        ctx: RequestContext,
        product_id: uuid.UUID,
        data: ProductUpdate,
    ) -> Product:
        """
        Apply a partial update to a product.

        Raises:
            ProductNotFoundError: If the product does not exist
            CategoryNotFoundError: If a new ``category_id`` names no category
            SlugConflictError: If the new slug is taken
        """
        ctx.require_role(*CATALOG_EDITOR_ROLES)
        product = await self._get_product_or_raise(product_id)

        changes = data.model_dump(exclude_unset=True)
        for field in list(changes):
            if changes[field] is None and field not in NULLABLE_PRODUCT_FIELDS:
                del changes[field]
        updated_fields = sorted(changes)

        if "slug" in changes and changes["slug"] != product.slug:
            await self._ensure_slug_free(self.products, changes["slug"], PRODUCT_ENTITY)
        if "category_id" in changes:
            changes["category"] = await self._get_category_or_raise(changes.pop("category_id"))

        try:
            product = await self.products.update(product, changes)
        except DuplicateSlugError as e:
            raise SlugConflictError(str(e), **e.context) from e
        except CatalogRepositoryError as e:
            raise CatalogServiceError("Failed to update product", **e.context) from e

        await self.activity_service.log_activity(
            ctx,
            ActivityAction.UPDATE_PRODUCT,
            f"Updated product {product.name} ({', '.join(updated_fields) or 'no changes'})",
            entity_id=str(product.id),
            entity_type=PRODUCT_ENTITY,
        )
        return product

    async def delete_product(self, ctx: RequestContext, product_id: uuid.UUID) -> None:
        ctx.require_role(*CATALOG_EDITOR_ROLES)
        product = await self._get_product_or_raise(product_id)

        name = product.name
        try:
            await self.products.delete(product)
        except CatalogRepositoryError as e:
            raise CatalogServiceError("Failed to delete product", **e.context) from e

        await self.activity_service.log_activity(
            ctx,
            ActivityAction.DELETE_PRODUCT,
            f"Deleted product {name}",
            entity_id=str(product_id),
            entity_type=PRODUCT_ENTITY,
        )

    async def import_products(
        self,
        ctx: RequestContext,
        content: bytes,
        filename: str,
        overwrite_existing: bool = False,
        sheet_name: Optional[str] = None,
    ) -> dict[str, Any]:
        """
        Import products from an uploaded CSV or Excel file.

        Each row is written on its own: an existing slug is skipped unless
        ``overwrite_existing`` is set, in which case the row's columns replace
        the stored values while images and the creation date are kept.

        Returns:
            Dictionary matching ``ProductImportResponse``

        Raises:
            PermissionDeniedError: If the caller has no back-office role
            FileProcessingError: If the file itself cannot be used
        """
        ctx.require_role(*CATALOG_EDITOR_ROLES)

        parsed = await asyncio.to_thread(
            self.file_processor.process,
            content,
            filename,
            sheet_name,
        )

        results: list[dict[str, Any]] = [
            {
                "line_number": error["line_number"],
                "name": error["name"],
                "status": "failed",
                "success": False,
                "message": error["error"],
            }
            for error in parsed["errors"]
        ]
        category_cache: dict[str, Optional[Category]] = {}

        for line_number, row in parsed["rows"]:
            status, message = await self._import_row(ctx, row, overwrite_existing, category_cache)
            results.append(
                {
                    "line_number": line_number,
                    "name": row.name,
                    "status": status,
                    "success": status in ("created", "updated"),
                    "message": message,
                }
            )

        results.sort(key=lambda result: result["line_number"])
        counts = {
            status: sum(1 for result in results if result["status"] == status)
            for status in ("created", "updated", "skipped", "failed")
        }
        summary = (
            f"Import completed: {counts['created']} products imported successfully, "
            f"{counts['updated']} overwritten, {counts['failed']} failed, "
            f"{counts['skipped']} skipped."
        )

        logger.info("Product import finished", filename=filename, **counts)
        await self.activity_service.log_activity(
            ctx,
            ActivityAction.IMPORT_PRODUCTS,
            f"Imported {filename}: {summary}",
            entity_type=PRODUCT_ENTITY,
        )

        return {
            "success": counts["failed"] == 0,
            "message": summary,
            **counts,
            "results": results,
        }

    async def _import_row(
        self,
        ctx: RequestContext,
        row: ProductImportRow,
        overwrite_existing: bool,
        category_cache: dict[str, Optional[Category]],
    ) -> tuple[str, str]:
        key = row.category.lower()
        try:
            if key not in category_cache:
                category_cache[key] = await self.categories.get_by_name(row.category)
            category = category_cache[key]
            if category is None:
                return "failed", f"Category '{row.category}' not found"

            existing = await self.products.get_by_slug(row.slug)
            if existing is not None and not overwrite_existing:
                return "skipped", f"Product with slug '{row.slug}' already exists"

            if existing is not None:
                changes = row.model_dump(exclude_unset=True, exclude={"category", "slug"})
                changes["category"] = category
                product = await self.products.update(existing, changes)
                action, verb = ActivityAction.UPDATE_PRODUCT, "Overwrote"
                status, message = "updated", "Product overwritten"
            else:
                product = Product(
                    **row.model_dump(exclude={"category"}),
                    category=category,
                )
                product = await self.products.create(product)
                action, verb = ActivityAction.CREATE_PRODUCT, "Imported"
                status, message = "created", "Product imported"
        except CatalogRepositoryError as e:
            logger.warning("Import row failed", slug=row.slug, error=str(e))
            return "failed", str(e)

        await self.activity_service.log_activity(
            ctx,
            action,
            f"{verb} product {product.name} from spreadsheet",
            entity_id=str(product.id),
            entity_type=PRODUCT_ENTITY,
        )
        return status, message

    # Helpers

    @staticmethod
    async def _lookup(repository: Any, identifier: str) -> Optional[Any]:
        try:
            record_id = uuid.UUID(identifier)
        except ValueError:
            return await repository.get_by_slug(identifier)
        return await repository.get_by_id(record_id)

    async def _ensure_slug_free(self, repository: Any, slug: str, entity: str) -> None:
        try:
            existing = await repository.get_by_slug(slug)
        except CatalogRepositoryError as e:
            raise CatalogServiceError(f"Failed to check {entity} slug", **e.context) from e
        if existing is not None:
            raise SlugConflictError(f"A {entity} with this slug already exists", slug=slug)

    async def _get_category_or_raise(self, category_id: uuid.UUID) -> Category:
        try:
            category = await self.categories.get_by_id(category_id)
        except CatalogRepositoryError as e:
            raise CatalogServiceError("Failed to fetch category", **e.context) from e
        if category is None:
            raise CategoryNotFoundError("Category not found", category_id=str(category_id))
        return category

    async def _get_product_or_raise(self, product_id: uuid.UUID) -> Product:
        try:
            product = await self.products.get_by_id(product_id)
        except CatalogRepositoryError as e:
            raise CatalogServiceError("Failed to fetch product", **e.context) from e
        if product is None:
            raise ProductNotFoundError("Product not found", product_id=str(product_id))
        return product
