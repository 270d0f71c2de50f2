"""
Domain exceptions for the product catalog.

Raised by the DAO and service layers; controllers translate them into HTTP
responses.
"""
from typing import Optional, Dict, Any


class ProductCatalogError(Exception):
    """Base exception for catalog errors.

    Carries a client-safe message plus optional context for logging.
    """

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            return f"{self.message} (Context: {context_str})"
        return self.message


class ProductValidationError(ProductCatalogError):
    """Raised when submitted product fields are missing or malformed."""


class InvalidImageError(ProductCatalogError):
    """Raised when an uploaded image has a rejected type or exceeds the size limit."""

    def __init__(self, message: str, filename: Optional[str] = None,
                 content_type: Optional[str] = None):
        context = {}
        if filename is not None:
            context["filename"] = filename
        if content_type is not None:
            context["content_type"] = content_type
        super().__init__(message, context)


class DuplicateSlugError(ProductCatalogError):
    """Raised when the unique slug index rejects a write."""

    def __init__(self, slug: Optional[str] = None):
        context = {"slug": slug} if slug is not None else {}
        super().__init__("Product slug already exists", context)
        self.slug = slug


class ProductNotFoundError(ProductCatalogError):
    """Raised when no product has the requested id."""

    def __init__(self, product_id: int):
        super().__init__("Product not found", {"product_id": product_id})
        self.product_id = product_id
