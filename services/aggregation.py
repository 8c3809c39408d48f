"""Combine per-supplier search results for display."""

from typing import Iterable, List, Tuple

from core.types import ProductRecord, SearchResult
from parsers.field_extractors import normalize_name


def sort_by_price(products: Iterable[ProductRecord]) -> List[ProductRecord]:
    """Cheapest first; unknown (0) prices after every known price.

    The sort is stable, so ties keep their arrival order.
    """
    return sorted(products, key=lambda product: (not product.has_known_price, product.price))


def _identity(product: ProductRecord) -> Tuple[str, str, str]:
    return (
        product.supplier_label.casefold(),
        normalize_name(product.name),
        product.reference.strip().casefold(),
    )


def merge_results(results: Iterable[SearchResult]) -> List[ProductRecord]:
    """Concatenate results in request order, drop exact repeats, sort by price.

    Login-gated records (price 0) are kept.
    """
    seen = set()
    merged: List[ProductRecord] = []
    for result in results:
        for product in result.products:
            identity = _identity(product)
            if identity in seen:
                continue
            seen.add(identity)
            merged.append(product)
    return sort_by_price(merged)
