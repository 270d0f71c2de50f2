from typing import List, Optional, Tuple
from sqlmodel import select
from sqlalchemy import func, or_, and_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.sql import ColumnElement, Select
from sqlalchemy.ext.asyncio import AsyncSession
from app.dao.base_dao import BaseDAO
from app.core.exceptions import DuplicateSlugError
from app.models.product import Product
from app.schemas.product_schemas import ProductSearchRequest
import structlog

logger = structlog.get_logger()


def build_product_conditions(filters: ProductSearchRequest) -> List[ColumnElement]:
    """Translate the search parameters into WHERE predicates.

    Predicates are emitted in a fixed order (search, category, min price,
    max price) so the list and count statements bind identical parameters.
    Absent filters add nothing.
    """
    conditions = []
    if filters.search:
        term = f"%{filters.search}%"
        conditions.append(or_(Product.name.ilike(term), Product.description.ilike(term)))
    if filters.category:
        conditions.append(Product.category == filters.category)
    if filters.min_price is not None:
        conditions.append(Product.price >= filters.min_price)
    if filters.max_price is not None:
        conditions.append(Product.price <= filters.max_price)
    return conditions


def build_list_query(filters: ProductSearchRequest) -> Select:
    query = select(Product)
    conditions = build_product_conditions(filters)
    if conditions:
        query = query.where(and_(*conditions))
    return (
        query
        .order_by(Product.created_at.desc(), Product.id.desc())
        .offset(filters.offset)
        .limit(filters.limit)
    )


def build_count_query(filters: ProductSearchRequest) -> Select:
    query = select(func.count()).select_from(Product)
    conditions = build_product_conditions(filters)
    if conditions:
        query = query.where(and_(*conditions))
    return query


def _is_duplicate_slug(error: IntegrityError) -> bool:
    # sqlite: "UNIQUE constraint failed: products.slug"
    # postgres: duplicate key value violates unique constraint "ix_products_slug"
    # mysql: Duplicate entry 'x' for key 'ix_products_slug'
    message = str(error.orig).lower()
    return "slug" in message and ("unique" in message or "duplicate" in message)


class ProductDAO(BaseDAO[Product]):
    def __init__(self):
        super().__init__(Product)

    async def list_products(
        self, db: AsyncSession, filters: ProductSearchRequest
    ) -> Tuple[List[Product], int]:
        """Return one page of matching products and the unpaginated match count."""
        try:
            result = await db.execute(build_list_query(filters))
            products = list(result.scalars().all())

            total_result = await db.execute(build_count_query(filters))
            total = total_result.scalar_one()
            return products, total
        except Exception as e:
            logger.error("Error listing products", filters=filters.model_dump(exclude_none=True), error=str(e))
            raise

    async def get_categories(self, db: AsyncSession) -> List[str]:
        try:
            result = await db.execute(
                select(Product.category).distinct().order_by(Product.category)
            )
            return list(result.scalars().all())
        except Exception as e:
            logger.error("Error getting categories", error=str(e))
            raise

    def translate_integrity_error(self, error: IntegrityError, obj_in: dict) -> Optional[Exception]:
        if _is_duplicate_slug(error):
            return DuplicateSlugError(obj_in.get("slug"))
        return None


product_dao = ProductDAO()
