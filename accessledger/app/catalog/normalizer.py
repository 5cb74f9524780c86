"""Resolution of upstream product identifiers to canonical product keys."""
from __future__ import annotations

import logging
import re
from functools import lru_cache
from typing import Dict, FrozenSet, Optional, Sequence, Tuple

from .definitions import PRODUCT_CATALOG
from .models import MatchKind, NormalizationResult, ProductCatalogEntry

logger = logging.getLogger("catalog")

UNKNOWN_PRODUCT_KEY = "unknown"

_SLUG_PATTERN = re.compile(r"[^a-z0-9]+")


class CatalogConfigurationError(RuntimeError):
    """Raised at startup when the catalog cannot be compiled safely."""


def _fold(value: str) -> str:
    return value.strip().lower()


def _slugify(value: str) -> str:
    return _SLUG_PATTERN.sub("-", _fold(value)).strip("-")


class ProductNormalizer:
    """Compiled, read-only lookup tables built from the product catalog.

    Lookups are case-insensitive. Every identifier (canonical key, alias or
    reverse alias) must point at exactly one canonical key; a collision is a
    configuration error raised from the constructor, never at lookup time.
    """

    def __init__(self, entries: Sequence[ProductCatalogEntry]) -> None:
        if not entries:
            raise CatalogConfigurationError("product catalog is empty")

        self._entries: Tuple[ProductCatalogEntry, ...] = tuple(entries)
        self._canonical: Dict[str, str] = {}
        self._aliases: Dict[str, str] = {}
        self._reverse_aliases: Dict[str, str] = {}
        self._keywords: Tuple[Tuple[str, str], ...] = ()
        self._compile()

    def _compile(self) -> None:
        owners: Dict[str, str] = {}

        def claim(identifier: str, canonical_key: str, table: Dict[str, str]) -> None:
            folded = _fold(identifier)
            if not folded:
                raise CatalogConfigurationError(
                    f"empty identifier configured for product {canonical_key!r}"
                )
            owner = owners.get(folded)
            if owner is not None and owner != canonical_key:
                raise CatalogConfigurationError(
                    f"identifier {identifier!r} maps to both {owner!r} and {canonical_key!r}"
                )
            owners[folded] = canonical_key
            table[folded] = canonical_key

        for entry in self._entries:
            if entry.canonical_key in self._canonical.values():
                raise CatalogConfigurationError(
                    f"duplicate canonical key {entry.canonical_key!r}"
                )
            claim(entry.canonical_key, entry.canonical_key, self._canonical)

        for entry in self._entries:
            for alias in entry.aliases:
                claim(alias, entry.canonical_key, self._aliases)

        for entry in self._entries:
            for reverse in {entry.display_name, _slugify(entry.display_name)}:
                if _fold(reverse) in owners and owners[_fold(reverse)] == entry.canonical_key:
                    continue
                claim(reverse, entry.canonical_key, self._reverse_aliases)

        self._keywords = tuple(
            (_fold(keyword), entry.canonical_key)
            for entry in self._entries
            for keyword in entry.keywords
            if _fold(keyword)
        )

    @property
    def entries(self) -> Tuple[ProductCatalogEntry, ...]:
        return self._entries

    @property
    def canonical_keys(self) -> FrozenSet[str]:
        return frozenset(entry.canonical_key for entry in self._entries)

    def normalize(self, raw_id: Optional[str], *, name_hint: Optional[str] = None) -> NormalizationResult:
        """Map ``raw_id`` to a canonical key. Never raises.

        ``name_hint`` is an optional upstream display name tried only when the
        raw identifier itself cannot be mapped.
        """

        raw = "" if raw_id is None else str(raw_id)
        result = self._lookup(raw)
        if result is not None:
            return result

        if name_hint:
            hinted = self._lookup(str(name_hint))
            if hinted is not None:
                logger.info(
                    "Product identifier resolved from display name",
                    extra={"raw_product_id": raw, "name_hint": name_hint, "canonical_key": hinted.canonical_key},
                )
                return hinted.model_copy(update={"raw_id": raw})

        fallback_key = raw if raw.strip() else UNKNOWN_PRODUCT_KEY
        logger.warning(
            "Unmapped product identifier %r; recording as-is",
            raw,
            extra={"raw_product_id": raw, "canonical_key": fallback_key},
        )
        return NormalizationResult(
            raw_id=raw,
            canonical_key=fallback_key,
            match=MatchKind.FALLBACK,
            unmapped=True,
        )

    def owns(self, raw_id: Optional[str], canonical_key: str) -> bool:
        """Return ``True`` when ``raw_id`` identifies the product ``canonical_key``."""

        return self.normalize(raw_id).canonical_key == canonical_key

    def _lookup(self, raw: str) -> Optional[NormalizationResult]:
        folded = _fold(raw)
        if not folded:
            return None

        for table, kind in (
            (self._canonical, MatchKind.CANONICAL),
            (self._aliases, MatchKind.ALIAS),
            (self._reverse_aliases, MatchKind.REVERSE_ALIAS),
        ):
            canonical_key = table.get(folded)
            if canonical_key is not None:
                return NormalizationResult(raw_id=raw, canonical_key=canonical_key, match=kind)

        for keyword, canonical_key in self._keywords:
            if keyword in folded:
                logger.info(
                    "Soft keyword match %r -> %s",
                    raw,
                    canonical_key,
                    extra={"raw_product_id": raw, "keyword": keyword, "canonical_key": canonical_key},
                )
                return NormalizationResult(raw_id=raw, canonical_key=canonical_key, match=MatchKind.KEYWORD)
        return None


@lru_cache(maxsize=1)
def get_normalizer() -> ProductNormalizer:
    """Return the process-wide normalizer compiled from the static catalog."""

    return ProductNormalizer(PRODUCT_CATALOG)


__all__ = [
    "CatalogConfigurationError",
    "ProductNormalizer",
    "UNKNOWN_PRODUCT_KEY",
    "get_normalizer",
]
