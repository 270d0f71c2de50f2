from decimal import Decimal, InvalidOperation
from typing import List, Optional, Tuple
from fastapi import UploadFile
from sqlalchemy.ext.asyncio import AsyncSession
from app.core.exceptions import ProductNotFoundError, ProductValidationError
from app.dao.product_dao import product_dao
from app.models.product import Product
from app.schemas.product_schemas import ProductForm, ProductSearchRequest
from app.services.image_service import ImageStorage, resolve_image_reference
import structlog

logger = structlog.get_logger()

REQUIRED_FIELDS = ("name", "slug", "price", "category")


def parse_price(value: str) -> Decimal:
    try:
        price = Decimal(value.strip())
    except InvalidOperation:
        raise ProductValidationError("Invalid price", {"price": value})
    if not price.is_finite() or price < 0:
        raise ProductValidationError("Invalid price", {"price": value})
    return price


def parse_stock(value: Optional[str]) -> int:
    """Unparsable or missing stock counts as 0; negative stock is rejected."""
    try:
        stock = int(value.strip()) if value is not None else 0
    except ValueError:
        return 0
    if stock < 0:
        raise ProductValidationError("Stock must be a non-negative integer", {"stock": value})
    return stock


def _supplied(value: Optional[str]) -> bool:
    return value is not None and value.strip() != ""


class ProductService:
    def __init__(self):
        self.product_dao = product_dao

    async def list_products(
        self, db: AsyncSession, filters: ProductSearchRequest
    ) -> Tuple[List[Product], int]:
        products, total = await self.product_dao.list_products(db, filters)
        logger.info(
            "Retrieved products",
            count=len(products),
            total=total,
            page=filters.page,
            limit=filters.limit,
        )
        return products, total

    async def get_product(self, db: AsyncSession, product_id: int) -> Product:
        product = await self.product_dao.get_by_id(db, product_id)
        if not product:
            logger.warning("Product not found", product_id=product_id)
            raise ProductNotFoundError(product_id)
        return product

    async def get_categories(self, db: AsyncSession) -> List[str]:
        return await self.product_dao.get_categories(db)

    async def create_product(
        self,
        db: AsyncSession,
        form: ProductForm,
        storage: ImageStorage,
        image: Optional[UploadFile] = None,
    ) -> Product:
        missing = [field for field in REQUIRED_FIELDS if not _supplied(getattr(form, field))]
        if missing:
            logger.warning("Product creation rejected", missing=missing)
            raise ProductValidationError("Missing required fields", {"missing": missing})

        product_data = {
            "name": form.name,
            "slug": form.slug,
            "description": form.description or None,
            "price": parse_price(form.price),
            "category": form.category,
            "stock": parse_stock(form.stock),
        }

        uploaded = await storage.save(image) if image is not None else None
        product_data["image_url"] = resolve_image_reference(uploaded, form.image_url)

        try:
            product = await self.product_dao.create(db, obj_in=product_data)
        except Exception:
            await storage.discard(uploaded)
            raise

        logger.info("Product created successfully", product_id=product.id, slug=product.slug)
        return product

    async def update_product(
        self,
        db: AsyncSession,
        product_id: int,
        form: ProductForm,
        storage: ImageStorage,
        image: Optional[UploadFile] = None,
    ) -> Product:
        product = await self.get_product(db, product_id)

        update_data = {}
        for field in ("name", "slug", "category"):
            value = getattr(form, field)
            if _supplied(value):
                update_data[field] = value
        if form.description is not None:
            update_data["description"] = form.description or None
        if _supplied(form.price):
            update_data["price"] = parse_price(form.price)
        if form.stock is not None:
            update_data["stock"] = parse_stock(form.stock)

        uploaded = await storage.save(image) if image is not None else None
        update_data["image_url"] = resolve_image_reference(uploaded, form.image_url, product.image_url)

        try:
            product = await self.product_dao.update(db, db_obj=product, obj_in=update_data)
        except Exception:
            await storage.discard(uploaded)
            raise

        logger.info("Product updated successfully", product_id=product_id)
        return product

    async def delete_product(self, db: AsyncSession, product_id: int) -> int:
        deleted = await self.product_dao.delete(db, id=product_id)
        if not deleted:
            logger.warning("Product not found for delete", product_id=product_id)
            raise ProductNotFoundError(product_id)
        logger.info("Product deleted successfully", product_id=product_id)
        return product_id


product_service = ProductService()
