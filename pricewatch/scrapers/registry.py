# pricewatch/scrapers/registry.py

"""Platform id -> extractor lookup driven by ``Settings.PLATFORMS``."""

import importlib
import threading
from typing import Any

from pricewatch.config.settings import Settings
from pricewatch.errors import ExtractionError
from pricewatch.scrapers.base_extractor import BaseExtractor

_cache: dict[str, BaseExtractor] = {}
_lock = threading.Lock()


def _load_extractor_class(dotted_path: str) -> type[Any]:
    """Dynamically import an extractor class from its dotted module path."""
    module_path, class_name = dotted_path.rsplit(".", 1)
    module = importlib.import_module(module_path)
    cls: type[Any] = getattr(module, class_name)
    return cls


def get_extractor(platform: str) -> BaseExtractor:
    """Return the (cached) extractor for *platform*.

    Raises:
        ExtractionError: for ``"unknown"`` or unregistered platforms.
    """
    with _lock:
        cached = _cache.get(platform)
        if cached is not None:
            return cached
        entry = next(
            (p for p in Settings.PLATFORMS if p["id"] == platform), None
        )
        if entry is None:
            raise ExtractionError(f"unsupported platform '{platform}'")
        extractor: BaseExtractor = _load_extractor_class(
            entry["extractor"]
        )()
        _cache[platform] = extractor
        return extractor
