from __future__ import annotations

import importlib
from functools import lru_cache
from types import ModuleType
from typing import Dict, Optional

from core.suppliers import SupplierProfile
from core.types import SearchSettings
from parsers.field_extractors import SupplierExtractor
from utils.error_handling import ConfigurationError


_REGISTRY: Dict[str, str] = {
    "mobilax": "parsers.mobilax_parser",
    "utopya": "parsers.utopya_parser",
}


@lru_cache(maxsize=None)
def _load_module(path: str) -> ModuleType:
    return importlib.import_module(path)


def available_extractors() -> list[str]:
    return sorted(_REGISTRY)


def get_extractor(
    profile: SupplierProfile, settings: Optional[SearchSettings] = None
) -> SupplierExtractor:
    """Build the field extractor for ``profile`` labelled with its display name."""
    if profile.extractor not in _REGISTRY:
        raise ConfigurationError(
            f"No extractor '{profile.extractor}' for supplier '{profile.key}'",
            {"available": available_extractors()},
        )
    module = _load_module(_REGISTRY[profile.extractor])
    return module.build_extractor(
        label=profile.label, origin=profile.base_origin, settings=settings
    )
