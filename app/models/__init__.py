# Import all models for easy access
from .product import Product

__all__ = [
    "Product",
]
