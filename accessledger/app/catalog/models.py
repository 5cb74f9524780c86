"""Domain models for the product catalog and identifier normalization."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Tuple

from pydantic import BaseModel, ConfigDict


class MatchKind(str, Enum):
    """How a raw identifier was resolved to a canonical key."""

    CANONICAL = "canonical"
    ALIAS = "alias"
    REVERSE_ALIAS = "reverse_alias"
    KEYWORD = "keyword"
    FALLBACK = "fallback"


@dataclass(frozen=True)
class ProductCatalogEntry:
    """Describes a sellable product and every identifier it has been known by."""

    canonical_key: str
    display_name: str
    aliases: Tuple[str, ...] = ()
    keywords: Tuple[str, ...] = ()


class NormalizationResult(BaseModel):
    """Outcome of normalizing an upstream product identifier."""

    raw_id: str
    canonical_key: str
    match: MatchKind
    unmapped: bool = False

    model_config = ConfigDict(frozen=True)

    @property
    def is_soft_match(self) -> bool:
        return self.match == MatchKind.KEYWORD
