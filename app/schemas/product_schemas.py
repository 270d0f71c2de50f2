from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel
from typing import Optional, List
from decimal import Decimal
from datetime import datetime
import math


class ProductResponse(BaseModel):
    id: int
    name: str
    slug: str
    description: Optional[str]
    price: Decimal
    category: str
    stock: int
    image_url: Optional[str]
    created_at: datetime

    model_config = ConfigDict(from_attributes=True, alias_generator=to_camel, populate_by_name=True)


class PaginationInfo(BaseModel):
    total: int
    page: int
    limit: int
    total_pages: int

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ProductListResponse(BaseModel):
    data: List[ProductResponse]
    pagination: PaginationInfo


class ProductSearchRequest(BaseModel):
    """Query parameters accepted by GET /products.

    Blank values are treated as absent so that an empty search box or price
    field adds no predicate.
    """
    search: Optional[str] = None
    category: Optional[str] = None
    min_price: Optional[Decimal] = Field(None, alias="minPrice")
    max_price: Optional[Decimal] = Field(None, alias="maxPrice")
    page: int = Field(1, ge=1)
    # No upper bound on limit, see DESIGN.md
    limit: int = Field(20, ge=1)

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("search", "category", "min_price", "max_price", mode="before")
    @classmethod
    def blank_as_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


class ProductForm(BaseModel):
    """Raw multipart fields of a create/update request, parsed by the service."""
    name: Optional[str] = None
    slug: Optional[str] = None
    description: Optional[str] = None
    price: Optional[str] = None
    category: Optional[str] = None
    stock: Optional[str] = None
    image_url: Optional[str] = None


class DeleteProductResponse(BaseModel):
    message: str
    id: int


class HealthResponse(BaseModel):
    status: str
    db: bool


def total_pages(total: int, limit: int) -> int:
    return math.ceil(total / limit) if total else 0
