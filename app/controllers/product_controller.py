from typing import Optional
from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, Request, UploadFile, status
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession
from app.core.database import get_async_session
from app.core.exceptions import (
    DuplicateSlugError,
    InvalidImageError,
    ProductNotFoundError,
    ProductValidationError,
)
from app.models.product import Product
from app.schemas.product_schemas import (
    DeleteProductResponse,
    PaginationInfo,
    ProductForm,
    ProductListResponse,
    ProductResponse,
    ProductSearchRequest,
    total_pages,
)
from app.services.image_service import ImageStorage, request_image_url
from app.services.product_service import product_service
import structlog

logger = structlog.get_logger()

router = APIRouter(prefix="/products", tags=["Products"])


def get_image_storage(request: Request) -> ImageStorage:
    return request.app.state.image_storage


def to_response(product: Product, request: Request) -> ProductResponse:
    response = ProductResponse.model_validate(product)
    response.image_url = request_image_url(product.image_url, request)
    return response


def product_form(
    name: Optional[str] = Form(None),
    slug: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    price: Optional[str] = Form(None),
    category: Optional[str] = Form(None),
    stock: Optional[str] = Form(None),
    image_url: Optional[str] = Form(None, alias="imageUrl"),
) -> ProductForm:
    return ProductForm(
        name=name,
        slug=slug,
        description=description,
        price=price,
        category=category,
        stock=stock,
        image_url=image_url,
    )


def uploaded_image(image: Optional[UploadFile] = File(None)) -> Optional[UploadFile]:
    # Browsers submit an empty part when no file was chosen
    if image is None or not image.filename:
        return None
    return image


@router.get("", response_model=ProductListResponse)
async def list_products(
    request: Request,
    search: Optional[str] = None,
    category: Optional[str] = None,
    min_price: Optional[str] = Query(None, alias="minPrice"),
    max_price: Optional[str] = Query(None, alias="maxPrice"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1),
    db: AsyncSession = Depends(get_async_session),
):
    """List products with search, category and price filters, newest first"""
    try:
        filters = ProductSearchRequest(
            search=search,
            category=category,
            minPrice=min_price,
            maxPrice=max_price,
            page=page,
            limit=limit,
        )
    except ValidationError as e:
        logger.warning("Invalid product filters", errors=e.errors(include_url=False))
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid query parameters")

    try:
        products, total = await product_service.list_products(db, filters)
    except Exception as e:
        logger.error("Failed to fetch products", error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to fetch products"
        )

    return ProductListResponse(
        data=[to_response(p, request) for p in products],
        pagination=PaginationInfo(
            total=total,
            page=filters.page,
            limit=filters.limit,
            total_pages=total_pages(total, filters.limit),
        ),
    )


@router.get("/{product_id}", response_model=ProductResponse)
async def get_product(
    product_id: int,
    request: Request,
    db: AsyncSession = Depends(get_async_session),
):
    """Get a single product by ID"""
    try:
        product = await product_service.get_product(db, product_id)
    except ProductNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)
    except Exception as e:
        logger.error("Failed to fetch product", product_id=product_id, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to fetch product"
        )
    return to_response(product, request)


@router.post("", response_model=ProductResponse, status_code=status.HTTP_201_CREATED)
async def create_product(
    request: Request,
    form: ProductForm = Depends(product_form),
    image: Optional[UploadFile] = Depends(uploaded_image),
    storage: ImageStorage = Depends(get_image_storage),
    db: AsyncSession = Depends(get_async_session),
):
    """Create a product from multipart fields and an optional image file"""
    try:
        product = await product_service.create_product(db, form, storage, image)
    except (ProductValidationError, InvalidImageError, DuplicateSlugError) as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)
    except Exception as e:
        logger.error("Failed to create product", slug=form.slug, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create product"
        )
    return to_response(product, request)


@router.put("/{product_id}", response_model=ProductResponse)
async def update_product(
    product_id: int,
    request: Request,
    form: ProductForm = Depends(product_form),
    image: Optional[UploadFile] = Depends(uploaded_image),
    storage: ImageStorage = Depends(get_image_storage),
    db: AsyncSession = Depends(get_async_session),
):
    """Update a product; the stored image is kept unless a new one is sent"""
    try:
        product = await product_service.update_product(db, product_id, form, storage, image)
    except ProductNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)
    except (ProductValidationError, InvalidImageError, DuplicateSlugError) as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)
    except Exception as e:
        logger.error("Failed to update product", product_id=product_id, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update product"
        )
    return to_response(product, request)


@router.delete("/{product_id}", response_model=DeleteProductResponse)
async def delete_product(
    product_id: int,
    db: AsyncSession = Depends(get_async_session),
):
    """Delete a product by ID"""
    try:
        deleted_id = await product_service.delete_product(db, product_id)
    except ProductNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)
    except Exception as e:
        logger.error("Failed to delete product", product_id=product_id, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to delete product"
        )
    return DeleteProductResponse(message="Product deleted", id=deleted_id)
