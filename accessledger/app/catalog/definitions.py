"""Static catalog definitions for every product sold through checkout."""
from __future__ import annotations

from typing import Tuple

from .models import ProductCatalogEntry


EBOOK = ProductCatalogEntry(
    canonical_key="ebook",
    display_name="AI Tools Mastery Guide 2025",
    aliases=("1", "ai-tools-mastery-guide-2025"),
    keywords=("e-book", "ebook", "mastery guide", "tools guide"),
)

PROMPTS = ProductCatalogEntry(
    canonical_key="prompts",
    display_name="AI Prompts Arsenal 2025",
    aliases=("2", "ai-prompts-arsenal-2025", "ai-prompts-arsenal"),
    keywords=("prompt", "arsenal"),
)

COACHING = ProductCatalogEntry(
    canonical_key="coaching",
    display_name="1:1 AI Coaching Session",
    aliases=("3", "coaching-session"),
    keywords=("coaching", "consultation", "session"),
)

VIDEO = ProductCatalogEntry(
    canonical_key="video",
    display_name="AI Business Video Guide 2025",
    aliases=(
        "4",
        "ai-business-video-guide-2025",
        "masterclass",
        "ai-web-creation-masterclass",
    ),
    keywords=("masterclass", "video", "web creation"),
)

SUPPORT = ProductCatalogEntry(
    canonical_key="support",
    display_name="Weekly Support Contract 2025",
    aliases=("5", "weekly-support-contract-2025", "support-package"),
    keywords=("support",),
)

# Order is the keyword heuristic priority.
PRODUCT_CATALOG: Tuple[ProductCatalogEntry, ...] = (
    PROMPTS,
    EBOOK,
    COACHING,
    VIDEO,
    SUPPORT,
)


def get_catalog_entry(canonical_key: str) -> ProductCatalogEntry:
    """Return a catalog entry, raising if the key is not a canonical product."""

    for entry in PRODUCT_CATALOG:
        if entry.canonical_key == canonical_key:
            return entry
    raise KeyError(f"Unknown product key: {canonical_key}")
