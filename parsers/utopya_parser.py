"""Utopya (Magento) search results extractor."""

from typing import Optional

from core.types import SearchSettings
from parsers.field_extractors import FieldSelectors, SupplierExtractor

CARD_SELECTORS = (
    ".product-item",
    ".product-item-info",
    ".products-grid .item",
    ".products.list .item",
    "li.product-item",
    ".product.photo",
)

FIELDS = FieldSelectors(
    name=(
        ".product-item-link",
        "a.product-item-link",
        ".product-name a",
        "[data-product-name]",
    ),
    price=(
        "[data-price-amount]",
        ".special-price .price",
        ".price",
    ),
    reference=(".sku", ".product-sku", '[itemprop="sku"]'),
    login=(
        ".login-to-see-price",
        "[data-login-required]",
        'a[href*="customer/account/login"]',
    ),
    image=("img.product-image-photo", "img"),
)

PRODUCT_PATH_SEGMENTS = ("catalog/product/view",)


def build_extractor(
    label: str = "Utopya",
    origin: str = "https://www.utopya.fr",
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
