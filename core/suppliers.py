"""Supplier profiles: search URL templates, domain predicates and agent scripts."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple
from urllib.parse import quote, urlparse

from core.types import Supplier, SupplierIdentifier, supplier_key
from utils.error_handling import ConfigurationError, UnknownSupplierError

logger = logging.getLogger(__name__)

AGENTS_DIR = Path(__file__).resolve().parent / "agents"


@dataclass(frozen=True)
class SupplierProfile:
    """Everything the orchestrator needs to know about one supplier."""

    key: str
    label: str
    search_url: str
    domains: Tuple[str, ...]
    extractor: str
    origin: str = ""
    agent_script: Optional[Path] = None

    def build_search_url(self, query: str) -> str:
        return self.search_url.format(query=quote(query.strip(), safe=""))

    def matches_url(self, url: Optional[str]) -> bool:
        if not url:
            return False
        hostname = (urlparse(url).hostname or "").lower()
        return any(
            hostname == domain or hostname.endswith("." + domain)
            for domain in self.domains
        )

    @property
    def base_origin(self) -> str:
        if self.origin:
            return self.origin
        parsed = urlparse(self.search_url)
        return f"{parsed.scheme}://{parsed.netloc}"

    @property
    def agent_script_path(self) -> Path:
        return self.agent_script or AGENTS_DIR / f"{self.extractor}.js"


DEFAULT_SUPPLIERS: Dict[str, SupplierProfile] = {
    Supplier.MOBILAX.value: SupplierProfile(
        key=Supplier.MOBILAX.value,
        label="Mobilax",
        search_url="https://www.mobilax.fr/recherche?controller=search&s={query}",
        domains=("mobilax.fr",),
        extractor="mobilax",
        origin="https://www.mobilax.fr",
    ),
    Supplier.UTOPYA.value: SupplierProfile(
        key=Supplier.UTOPYA.value,
        label="Utopya",
        search_url="https://www.utopya.fr/catalogsearch/result/?q={query}",
        domains=("utopya.fr",),
        extractor="utopya",
        origin="https://www.utopya.fr",
    ),
}


def _profile_from_entry(key: str, entry: Mapping[str, Any], base: Optional[SupplierProfile]) -> SupplierProfile:
    if base is None:
        missing = [name for name in ("label", "search_url", "extractor") if not entry.get(name)]
        if missing:
            raise ConfigurationError(
                f"Supplier '{key}' is missing {', '.join(missing)}",
                {"supplier": key, "missing": missing},
            )
        base = SupplierProfile(
            key=key,
            label=entry["label"],
            search_url=entry["search_url"],
            domains=(),
            extractor=entry["extractor"],
        )

    domains = entry.get("domains")
    if domains is None and not base.domains:
        domains = [urlparse(entry.get("search_url", base.search_url)).hostname or ""]
    agent_script = entry.get("agent_script")

    return replace(
        base,
        label=entry.get("label", base.label),
        search_url=entry.get("search_url", base.search_url),
        domains=tuple(d.lower().lstrip(".") for d in domains) if domains is not None else base.domains,
        extractor=entry.get("extractor", base.extractor),
        origin=entry.get("origin", base.origin),
        agent_script=Path(agent_script) if agent_script else base.agent_script,
    )


@dataclass
class SupplierRegistry:
    """Lookup table from supplier identifier to profile."""

    profiles: Dict[str, SupplierProfile] = field(
        default_factory=lambda: dict(DEFAULT_SUPPLIERS)
    )

    @classmethod
    def from_config(cls, config: Optional[Mapping[str, Any]]) -> "SupplierRegistry":
        profiles = dict(DEFAULT_SUPPLIERS)
        section = (config or {}).get("suppliers", {}) or {}
        for raw_key, entry in section.items():
            key = supplier_key(raw_key)
            if entry is None or entry.get("enabled", True) is False:
                profiles.pop(key, None)
                logger.debug("Supplier %s disabled by configuration", key)
                continue
            profiles[key] = _profile_from_entry(key, entry, profiles.get(key))
        return cls(profiles=profiles)

    def resolve(self, supplier: SupplierIdentifier) -> SupplierProfile:
        key = supplier_key(supplier)
        try:
            return self.profiles[key]
        except KeyError:
            raise UnknownSupplierError(key, list(self.profiles)) from None

    def __contains__(self, supplier: object) -> bool:
        if not isinstance(supplier, str):
            return False
        return supplier_key(supplier) in self.profiles

    def __iter__(self) -> Iterator[SupplierProfile]:
        return iter(self.profiles.values())

    def keys(self) -> List[str]:
        return list(self.profiles)
