"""
Product catalog API endpoints.

Listing and detail endpoints are public so the storefront can render the
catalog. Every write needs a back-office login.
"""

from typing import Annotated, Any, Optional
from uuid import UUID

from fastapi import (
    APIRouter,
    Depends,
    File,
    Form,
    HTTPException,
    Query,
    Response,
    UploadFile,
    status,
)

from src.api.deps import CurrentContext, get_catalog_service
from src.core.logging import get_logger
from src.database.models.catalog import Category, Product
from src.schemas.catalog import (
    CategoryCreate,
    CategoryResponse,
    CategoryUpdate,
    ProductCreate,
    ProductFilter,
    ProductImportResponse,
    ProductListResponse,
    ProductResponse,
    ProductUpdate,
)
from src.services.catalog.file_processor import FileProcessingError
from src.services.catalog.service import (
    CatalogService,
    CatalogServiceError,
    CategoryInUseError,
    CategoryNotFoundError,
    ProductNotFoundError,
    SlugConflictError,
)

logger = get_logger(__name__)

products_router = APIRouter(prefix="/products", tags=["products"])
categories_router = APIRouter(prefix="/categories", tags=["categories"])

CatalogServiceDep = Annotated[CatalogService, Depends(get_catalog_service)]


def _to_http_error(e: CatalogServiceError) -> HTTPException:
    if isinstance(e, ProductNotFoundError):
        return HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"message": str(e), "code": "PRODUCT_NOT_FOUND"},
        )
    if isinstance(e, CategoryNotFoundError):
        return HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"message": str(e), "code": "CATEGORY_NOT_FOUND"},
        )
    if isinstance(e, SlugConflictError):
        return HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={"message": str(e), "code": "SLUG_EXISTS"},
        )
    if isinstance(e, CategoryInUseError):
        return HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={"message": str(e), "code": "CATEGORY_IN_USE"},
        )
    logger.error("Catalog operation failed", error=str(e), **e.context)
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail={"message": str(e), "code": "CATALOG_ERROR"},
    )


@products_router.get("", response_model=ProductListResponse, summary="List products")
async def list_products(
    filters: Annotated[ProductFilter, Query()],
    service: CatalogServiceDep,
    page: Annotated[int, Query(ge=1)] = 1,
    page_size: Annotated[int, Query(ge=1, le=100)] = 24,
) -> dict[str, Any]:
    try:
        return await service.list_products(filters, page=page, page_size=page_size)
    except CatalogServiceError as e:
        raise _to_http_error(e)


@products_router.post(
    "",
    response_model=ProductResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create product",
)
async def create_product(
    data: ProductCreate,
    ctx: CurrentContext,
    service: CatalogServiceDep,
) -> Product:
    logger.info("Creating product", slug=data.slug)
    try:
        return await service.create_product(ctx, data)
    except CatalogServiceError as e:
        raise _to_http_error(e)


@products_router.post(
    "/import",
    response_model=ProductImportResponse,
    summary="Import products from a spreadsheet",
    description=(
        "Upload a .csv or .xlsx file with name, category and description "
        "columns. Rows whose slug already exists are skipped unless "
        "overwrite_existing is set."
    ),
)
async def import_products(
    ctx: CurrentContext,
    service: CatalogServiceDep,
    file: Annotated[UploadFile, File(description="Product sheet (.csv or .xlsx)")],
    overwrite_existing: Annotated[bool, Form()] = False,
    sheet_name: Annotated[Optional[str], Form()] = None,
) -> dict[str, Any]:
    """
    Bulk import products.

    Raises:
        HTTPException: 400 when the file itself is unusable (type, size,
            missing columns); per-row problems are reported in the body
    """
    content = await file.read()
    logger.info(
        "Product import uploaded",
        filename=file.filename,
        size=len(content),
        overwrite_existing=overwrite_existing,
    )
    try:
        return await service.import_products(
            ctx,
            content,
            file.filename or "",
            overwrite_existing=overwrite_existing,
            sheet_name=sheet_name or None,
        )
    except FileProcessingError as e:
        logger.warning("Product import rejected", code=e.code, error=str(e), **e.context)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"message": str(e), "code": e.code},
        )
    except CatalogServiceError as e:
        raise _to_http_error(e)


@products_router.get(
    "/{identifier}",
    response_model=ProductResponse,
    summary="Get product by id or slug",
)
async def get_product(identifier: str, service: CatalogServiceDep) -> Product:
    try:
        return await service.get_product(identifier)
    except CatalogServiceError as e:
        raise _to_http_error(e)


@products_router.patch("/{product_id}", response_model=ProductResponse, summary="Update product")
async def update_product(
    product_id: UUID,
    data: ProductUpdate,
    ctx: CurrentContext,
    service: CatalogServiceDep,
) -> Product:
    try:
        return await service.update_product(ctx, product_id, data)
    except CatalogServiceError as e:
        raise _to_http_error(e)


@products_router.delete(
    "/{product_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
    summary="Delete product",
)
async def delete_product(
    product_id: UUID,
    ctx: CurrentContext,
    service: CatalogServiceDep,
) -> Response:
    try:
        await service.delete_product(ctx, product_id)
    except CatalogServiceError as e:
        raise _to_http_error(e)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@categories_router.get("", response_model=list[CategoryResponse], summary="List categories")
async def list_categories(service: CatalogServiceDep) -> list[Category]:
    try:
        return await service.list_categories()
    except CatalogServiceError as e:
        raise _to_http_error(e)


@categories_router.post(
    "",
    response_model=CategoryResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create category",
)
async def create_category(
    data: CategoryCreate,
    ctx: CurrentContext,
    service: CatalogServiceDep,
) -> Category:
    try:
        return await service.create_category(ctx, data)
    except CatalogServiceError as e:
        raise _to_http_error(e)


@categories_router.get(
    "/{identifier}",
    response_model=CategoryResponse,
    summary="Get category by id or slug",
)
async def get_category(identifier: str, service: CatalogServiceDep) -> Category:
    try:
        return await service.get_category(identifier)
    except CatalogServiceError as e:
        raise _to_http_error(e)


@categories_router.patch(
    "/{category_id}",
    response_model=CategoryResponse,
    summary="Update category",
)
async def update_category(
    category_id: UUID,
    data: CategoryUpdate,
    ctx: CurrentContext,
    service: CatalogServiceDep,
) -> Category:
    try:
        return await service.update_category(ctx, category_id, data)
    except CatalogServiceError as e:
        raise _to_http_error(e)


@categories_router.delete(
    "/{category_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
    summary="Delete category",
)
async def delete_category(
    category_id: UUID,
    ctx: CurrentContext,
    service: CatalogServiceDep,
) -> Response:
    """
    Delete an unused category.

    Raises:
        HTTPException: 409 while products still reference the category
    """
    try:
        await service.delete_category(ctx, category_id)
    except CatalogServiceError as e:
        raise _to_http_error(e)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
