"""
Core data types for the supplier parts search.

This module holds the enums, value objects and typed settings shared by the
tab session manager, the page probe, the field extractors and the
orchestrator.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Union


# ============================================================================
# Base type aliases
# ============================================================================

URL = str
TabID = str
Price = float
HTMLContent = str
AgentMessage = Dict[str, Any]

NAME_MIN_LENGTH = 3
DEFAULT_NAME_MAX_LENGTH = 150


# ============================================================================
# Enums
# ============================================================================


class Supplier(str, Enum):
    """Built-in suppliers. Further suppliers may come from configuration."""

    MOBILAX = "mobilax"
    UTOPYA = "utopya"


# Either a built-in ``Supplier`` or a configured supplier id.
SupplierIdentifier = Union[Supplier, str]


class Availability(str, Enum):
    """Stock availability of a product record."""

    IN_STOCK = "in_stock"
    OUT_OF_STOCK = "out_of_stock"
    NEEDS_LOGIN = "needs_login"


class ExtractionFailure(str, Enum):
    """Why an extraction attempt produced no product list."""

    NO_AGENT = "no_agent"
    TIMEOUT = "timeout"
    PARSE_ERROR = "parse_error"


class TabState(str, Enum):
    """Lifecycle of a tab session."""

    IDLE = "idle"
    LOCATING = "locating"
    CREATING = "creating"
    NAVIGATING = "navigating"
    WAITING_LOAD = "waiting_load"
    SETTLED = "settled"


class LoadOutcome(str, Enum):
    """How a load wait ended."""

    COMPLETE = "complete"
    TIMEOUT = "timeout"


# Legacy availability labels sent by older page agents.
_AVAILABILITY_ALIASES = {
    "en stock": Availability.IN_STOCK,
    "in stock": Availability.IN_STOCK,
    "rupture": Availability.OUT_OF_STOCK,
    "out of stock": Availability.OUT_OF_STOCK,
    "connexion requise": Availability.NEEDS_LOGIN,
}


def supplier_key(supplier: SupplierIdentifier) -> str:
    """Normalise a supplier identifier to its configuration key."""
    if isinstance(supplier, Supplier):
        return supplier.value
    return str(supplier).strip().lower()


# ============================================================================
# Value objects
# ============================================================================


@dataclass(frozen=True)
class ProductRecord:
    """One product found on a supplier results page.

    ``price`` is never negative; 0 means the price is unknown or hidden
    behind a login.
    """

    name: str
    reference: str
    supplier_label: str
    price: Price
    availability: Availability
    source_url: URL = ""
    image_url: URL = ""

    def __post_init__(self):
        if self.price < 0:
            raise ValueError(f"price must be >= 0, got {self.price}")

    @property
    def has_known_price(self) -> bool:
        return self.price > 0

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["availability"] = self.availability.value
        return data

    @classmethod
    def from_mapping(
        cls,
        data: Mapping[str, Any],
        supplier_label: str = "",
        name_max_length: int = DEFAULT_NAME_MAX_LENGTH,
    ) -> "ProductRecord":
        """Build a record from an agent reply entry.

        Accepts snake_case and camelCase keys as well as the legacy
        ``supplier``/``url`` keys and French availability labels.
        """
        name = str(data.get("name") or "").strip()[:name_max_length]
        try:
            price = float(data.get("price") or 0)
        except (TypeError, ValueError):
            price = 0.0

        raw_availability = str(data.get("availability") or "").strip().lower()
        try:
            availability = Availability(raw_availability)
        except ValueError:
            availability = _AVAILABILITY_ALIASES.get(
                raw_availability, Availability.IN_STOCK
            )

        return cls(
            name=name,
            reference=str(data.get("reference") or ""),
            supplier_label=str(
                data.get("supplier_label")
                or data.get("supplierLabel")
                or data.get("supplier")
                or supplier_label
            ),
            price=max(price, 0.0),
            availability=availability,
            source_url=str(
                data.get("source_url") or data.get("sourceUrl") or data.get("url") or ""
            ),
            image_url=str(data.get("image_url") or data.get("imageUrl") or ""),
        )


@dataclass
class ExtractionOutcome:
    """Result of one extraction attempt: products, or a failure reason."""

    products: List[ProductRecord] = field(default_factory=list)
    failure: Optional[ExtractionFailure] = None
    detail: str = ""

    @property
    def ok(self) -> bool:
        return self.failure is None

    @property
    def is_channel_failure(self) -> bool:
        return self.failure in (ExtractionFailure.NO_AGENT, ExtractionFailure.TIMEOUT)

    @classmethod
    def success(cls, products: List[ProductRecord]) -> "ExtractionOutcome":
        return cls(products=list(products))

    @classmethod
    def failed(cls, failure: ExtractionFailure, detail: str = "") -> "ExtractionOutcome":
        return cls(products=[], failure=failure, detail=detail)


@dataclass
class SearchResult:
    """What a caller gets back from one supplier search."""

    supplier: str
    products: List[ProductRecord] = field(default_factory=list)
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "supplier": self.supplier,
            "products": [product.to_dict() for product in self.products],
        }
        if self.error:
            payload["error"] = self.error
        return payload


# ============================================================================
# Settings
# ============================================================================


@dataclass
class SearchSettings:
    """Timings and limits for one search, in seconds where applicable."""

    load_timeout_seconds: float = 15.0
    hydration_delay_seconds: float = 2.0
    agent_settle_seconds: float = 1.0
    agent_response_timeout_seconds: float = 10.0
    max_results: int = 20
    name_max_length: int = DEFAULT_NAME_MAX_LENGTH
    max_plausible_price: float = 5000.0

    @classmethod
    def from_config(cls, config: Optional[Mapping[str, Any]]) -> "SearchSettings":
        section = (config or {}).get("search", {}) or {}
        defaults = cls()
        return cls(
            load_timeout_seconds=float(
                section.get("load_timeout_seconds", defaults.load_timeout_seconds)
            ),
            hydration_delay_seconds=float(
                section.get("hydration_delay_seconds", defaults.hydration_delay_seconds)
            ),
            agent_settle_seconds=float(
                section.get("agent_settle_seconds", defaults.agent_settle_seconds)
            ),
            agent_response_timeout_seconds=float(
                section.get(
                    "agent_response_timeout_seconds",
                    defaults.agent_response_timeout_seconds,
                )
            ),
            max_results=int(section.get("max_results", defaults.max_results)),
            name_max_length=int(section.get("name_max_length", defaults.name_max_length)),
            max_plausible_price=float(
                section.get("max_plausible_price", defaults.max_plausible_price)
            ),
        )
