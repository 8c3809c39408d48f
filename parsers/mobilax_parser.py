"""Mobilax (PrestaShop) search results extractor."""

from typing import Optional

from core.types import SearchSettings
from parsers.field_extractors import FieldSelectors, SupplierExtractor

CARD_SELECTORS = (
    ".product-miniature",
    ".js-product-miniature",
    "article.product-miniature",
    ".product-container",
    "[data-id-product]",
)

FIELDS = FieldSelectors(
    name=(
        ".product-title a",
        "h3.product-title a",
        ".product-title",
        "h2 a",
        "a.product-name",
        '[itemprop="name"]',
    ),
    price=(
        ".product-price-and-shipping .price",
        ".price",
        '[itemprop="price"]',
        ".product-price",
    ),
    reference=(".product-reference", '[itemprop="sku"]'),
    login=(
        ".login-to-see-price",
        ".js-login-required",
        "[data-login-required]",
        'a[href*="/connexion?"]',
        'a[href$="/connexion"]',
    ),
)

# Non-rewritten PrestaShop product links
PRODUCT_PATH_SEGMENTS = ("id_product=",)


def build_extractor(
    label: str = "Mobilax",
    origin: str = "https://www.mobilax.fr",
    settings: Optional[SearchSettings] = None,
) -> SupplierExtractor:
    return SupplierExtractor(
        label=label,
        origin=origin,
        card_selectors=CARD_SELECTORS,
        fields=FIELDS,
        product_path_segments=PRODUCT_PATH_SEGMENTS,
        settings=settings,
    )
