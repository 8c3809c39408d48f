"""Selector-cascade product extraction shared by the supplier parsers.

A supplier parser is an ordered list of ``CardStrategy`` entries (a
``locate`` callable that finds product-card containers, paired with a
``derive`` callable that turns one container into a ``ProductRecord``), plus
an anchor-based fallback. The first strategy that locates at least one
container wins; later strategies are never evaluated.

Every function here works on a parsed document snapshot and never mutates
shared state.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Callable, Iterable, List, Optional, Sequence, Tuple, Union
from urllib.parse import urljoin

from bs4 import BeautifulSoup, Tag

from core.types import (
    NAME_MIN_LENGTH,
    Availability,
    HTMLContent,
    ProductRecord,
    SearchSettings,
)

logger = logging.getLogger(__name__)

Document = Union[HTMLContent, BeautifulSoup, Tag]

PRICE_PATTERN = re.compile(r"(\d+)[,.](\d{2})(?!\d)")
REFERENCE_LABEL = re.compile(r"^\s*r[ée]f(?:[ée]rence)?\.?\s*:?\s*", re.IGNORECASE)
REFERENCE_TOKEN = re.compile(r"[A-Za-z0-9][A-Za-z0-9._/-]{2,}")
WHITESPACE = re.compile(r"\s+")

OUT_OF_STOCK_LEXICON: Tuple[str, ...] = (
    "rupture",
    "indisponible",
    "épuisé",
    "epuise",
    "out of stock",
    "sold out",
    "unavailable",
    "agotado",
    "nicht verfügbar",
    "ausverkauft",
    "esaurito",
)

OUT_OF_STOCK_CLASSES = frozenset({"out-of-stock", "unavailable", "outofstock"})

PRICE_ATTRIBUTES = ("data-price-amount", "content", "data-price")
REFERENCE_ATTRIBUTES = ("data-product-sku", "data-reference", "data-sku")
IMAGE_ATTRIBUTES = ("src", "data-src", "data-lazy-src", "data-original")


# ============================================================================
# Field derivation helpers
# ============================================================================


def load_document(document: Document) -> Tag:
    if isinstance(document, Tag):
        return document
    return BeautifulSoup(document or "", "html.parser")


def clean_text(text: Optional[str]) -> str:
    if not text:
        return ""
    return WHITESPACE.sub(" ", text).strip()


def normalize_name(name: str) -> str:
    """Case-insensitive, whitespace-collapsed key used for deduplication."""
    return clean_text(name).casefold()


def parse_price(text: Optional[str]) -> float:
    """First ``digits(,|.)dd`` amount in ``text``; 0.0 when there is none.

    >>> parse_price("12,99 €"), parse_price("12.99€"), parse_price("Prix sur demande")
    (12.99, 12.99, 0.0)
    """
    if not text:
        return 0.0
    match = PRICE_PATTERN.search(text)
    if not match:
        return 0.0
    return float(f"{match.group(1)}.{match.group(2)}")


def parse_price_attribute(value: Optional[str]) -> Optional[float]:
    if value is None:
        return None
    cleaned = str(value).strip().replace(",", ".")
    if not cleaned:
        return None
    try:
        price = float(cleaned)
    except ValueError:
        return None
    return price if price >= 0 else None


def first_match(container: Tag, selectors: Iterable[str]) -> Optional[Tag]:
    for selector in selectors:
        element = container.select_one(selector)
        if element is not None:
            return element
    return None


def absolute_url(href: Optional[str], origin: str) -> str:
    if not href:
        return ""
    href = href.strip()
    if href.startswith(("#", "javascript:", "data:")):
        return ""
    if href.startswith(("http://", "https://")):
        return href
    return urljoin(origin.rstrip("/") + "/", href)


def dedupe_records(records: Iterable[ProductRecord]) -> List[ProductRecord]:
    """Keep the first record per normalized name, preserving order."""
    seen = set()
    unique: List[ProductRecord] = []
    for record in records:
        key = normalize_name(record.name)
        if key in seen:
            continue
        seen.add(key)
        unique.append(record)
    return unique


@dataclass(frozen=True)
class FieldSelectors:
    """Per-supplier selectors used when deriving fields from one card."""

    name: Tuple[str, ...] = ()
    price: Tuple[str, ...] = ()
    reference: Tuple[str, ...] = ()
    login: Tuple[str, ...] = ()
    image: Tuple[str, ...] = ("img",)


def derive_name(container: Tag, selectors: FieldSelectors) -> str:
    for selector in selectors.name:
        element = container.select_one(selector)
        if element is None:
            continue
        text = (
            clean_text(element.get_text(" ", strip=True))
            or clean_text(element.get("data-product-name"))
            or clean_text(element.get("title"))
        )
        if text:
            return text

    links = [container] if container.name == "a" else container.select("a[title]")
    for link in links:
        title = clean_text(link.get("title"))
        if title:
            return title

    for line in container.get_text("\n").splitlines():
        line = clean_text(line)
        if line:
            return line
    return ""


def derive_price(container: Tag, selectors: FieldSelectors) -> float:
    for selector in selectors.price:
        element = container.select_one(selector)
        if element is None:
            continue
        for attribute in PRICE_ATTRIBUTES:
            value = parse_price_attribute(element.get(attribute))
            if value is not None:
                return value
        price = parse_price(element.get_text(" "))
        if price:
            return price
    return parse_price(container.get_text(" "))


def derive_reference(container: Tag, selectors: FieldSelectors) -> str:
    for attribute in REFERENCE_ATTRIBUTES:
        value = container.get(attribute)
        if not value:
            element = container.select_one(f"[{attribute}]")
            value = element.get(attribute) if element is not None else None
        if value and str(value).strip():
            return str(value).strip()

    for selector in selectors.reference:
        element = container.select_one(selector)
        if element is None:
            continue
        raw = element.get("content") or element.get_text(" ", strip=True)
        match = REFERENCE_TOKEN.search(REFERENCE_LABEL.sub("", clean_text(raw)))
        if match:
            return match.group(0)
    return ""


def derive_availability(container: Tag, selectors: FieldSelectors) -> Availability:
    if first_match(container, selectors.login) is not None:
        return Availability.NEEDS_LOGIN

    classes = {cls.lower() for cls in container.get("class") or []}
    if classes & OUT_OF_STOCK_CLASSES:
        return Availability.OUT_OF_STOCK

    text = container.get_text(" ").casefold()
    if any(phrase in text for phrase in OUT_OF_STOCK_LEXICON):
        return Availability.OUT_OF_STOCK
    return Availability.IN_STOCK


def derive_image_url(container: Tag, selectors: FieldSelectors, origin: str) -> str:
    image = container if container.name == "img" else first_match(container, selectors.image)
    if image is None:
        return ""
    for attribute in IMAGE_ATTRIBUTES:
        value = image.get(attribute)
        # Lazy loaders put a data: placeholder in src
        if value and not str(value).startswith("data:"):
            return absolute_url(value, origin)
    return ""


def derive_source_url(container: Tag, origin: str) -> str:
    link = container if container.name == "a" else container.find("a", href=True)
    if link is None:
        return ""
    return absolute_url(link.get("href"), origin)


# ============================================================================
# Selector cascade
# ============================================================================


Locate = Callable[[Tag], List[Tag]]
Derive = Callable[[Tag], Optional[ProductRecord]]


@dataclass(frozen=True)
class CardStrategy:
    """One cascade entry: how to find cards, and how to read one."""

    name: str
    locate: Locate
    derive: Derive


@dataclass
class ExtractionReport:
    records: List[ProductRecord] = field(default_factory=list)
    strategy: Optional[str] = None
    candidates: int = 0
    skipped: int = 0


class SupplierExtractor:
    """Runs a supplier's selector cascade over a document snapshot."""

    def __init__(
        self,
        label: str,
        origin: str,
        card_selectors: Sequence[str],
        fields: FieldSelectors,
        product_path_segments: Sequence[str] = (),
        settings: Optional[SearchSettings] = None,
    ) -> None:
        self.label = label
        self.origin = origin
        self.fields = fields
        self.product_path_segments = tuple(product_path_segments)
        self.settings = settings or SearchSettings()
        self.strategies: List[CardStrategy] = [
            css_strategy(selector, self.derive_record) for selector in card_selectors
        ]
        self.fallback = CardStrategy(
            name="anchor-fallback",
            locate=self._locate_product_anchors,
            derive=self.derive_record,
        )

    def extract(self, document: Document) -> List[ProductRecord]:
        return self.extract_with_report(document).records

    def extract_with_report(self, document: Document) -> ExtractionReport:
        report = ExtractionReport()
        try:
            root = load_document(document)
        except Exception:  # noqa: BLE001
            logger.warning("%s: document could not be parsed", self.label, exc_info=True)
            return report

        strategy, candidates = self.select_candidates(root)
        report.strategy = strategy.name if strategy else None
        report.candidates = len(candidates)

        records: List[ProductRecord] = []
        for candidate in candidates:
            try:
                record = strategy.derive(candidate)
            except Exception:  # noqa: BLE001
                logger.debug("%s: skipping unreadable card", self.label, exc_info=True)
                record = None
            if record is None:
                report.skipped += 1
                continue
            records.append(record)

        report.records = dedupe_records(records)[: self.settings.max_results]
        logger.debug(
            "%s: %d products via %s",
            self.label,
            len(report.records),
            report.strategy,
            extra={
                "event_type": "extraction",
                "event_data": {
                    "supplier": self.label,
                    "strategy": report.strategy,
                    "candidates": report.candidates,
                    "skipped": report.skipped,
                },
            },
        )
        return report

    def select_candidates(self, root: Tag) -> Tuple[Optional[CardStrategy], List[Tag]]:
        for strategy in self.strategies:
            candidates = strategy.locate(root)
            if candidates:
                return strategy, candidates
        candidates = self.fallback.locate(root)
        if candidates:
            return self.fallback, candidates
        return None, []

    def derive_record(self, container: Tag) -> Optional[ProductRecord]:
        name = derive_name(container, self.fields)[: self.settings.name_max_length]
        if len(name) < NAME_MIN_LENGTH:
            return None

        price = derive_price(container, self.fields)
        if price > self.settings.max_plausible_price:
            return None

        return ProductRecord(
            name=name,
            reference=derive_reference(container, self.fields),
            supplier_label=self.label,
            price=price,
            availability=derive_availability(container, self.fields),
            source_url=derive_source_url(container, self.origin),
            image_url=derive_image_url(container, self.fields, self.origin),
        )

    def _locate_product_anchors(self, root: Tag) -> List[Tag]:
        if not self.product_path_segments:
            return []
        return [
            anchor
            for anchor in root.find_all("a", href=True)
            if any(segment in anchor["href"] for segment in self.product_path_segments)
        ]


def css_strategy(selector: str, derive: Derive) -> CardStrategy:
    return CardStrategy(name=selector, locate=lambda root: root.select(selector), derive=derive)
