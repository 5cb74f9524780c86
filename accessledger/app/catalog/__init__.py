"""Product catalog and identifier normalization."""

from .definitions import PRODUCT_CATALOG, get_catalog_entry
from .models import MatchKind, NormalizationResult, ProductCatalogEntry
from .normalizer import (
    UNKNOWN_PRODUCT_KEY,
    CatalogConfigurationError,
    ProductNormalizer,
    get_normalizer,
)

__all__ = [
    "PRODUCT_CATALOG",
    "UNKNOWN_PRODUCT_KEY",
    "CatalogConfigurationError",
    "MatchKind",
    "NormalizationResult",
    "ProductCatalogEntry",
    "ProductNormalizer",
    "get_catalog_entry",
    "get_normalizer",
]
