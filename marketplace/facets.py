# marketplace/facets.py
"""Free-text to category resolution.

A search like "graphics card" should behave like picking the GPU category,
not like a substring search that also matches every PSU whose description
mentions a GPU. Resolution is exact-match only: first the alias table, then
the canonical tokens (category name, slug or display name).
"""
from dataclasses import dataclass
from typing import Dict, Iterable, Mapping, Optional

from .utils import normalize_whitespace

# normalized search text -> canonical category name
DEFAULT_ALIASES: Dict[str, str] = {
    "GRAPHICS CARD": "GPU",
    "GRAPHICS CARDS": "GPU",
    "VIDEO CARD": "GPU",
    "VIDEO CARDS": "GPU",
    "GPUS": "GPU",
    "PROCESSOR": "CPU",
    "PROCESSORS": "CPU",
    "CPUS": "CPU",
    "MEMORY": "RAM",
    "DDR4": "RAM",
    "DDR5": "RAM",
    "MOBO": "Motherboard",
    "MOBOS": "Motherboard",
    "MAINBOARD": "Motherboard",
    "MOTHERBOARDS": "Motherboard",
    "SSD": "Storage",
    "SSDS": "Storage",
    "HDD": "Storage",
    "HDDS": "Storage",
    "NVME": "Storage",
    "HARD DRIVE": "Storage",
    "POWER SUPPLY": "PSU",
    "POWER SUPPLIES": "PSU",
    "PC CASE": "Case",
    "CASES": "Case",
    "TOWER": "Case",
    "GAMING PC": "Case",
    "GAMING PCS": "Case",
    "COOLER": "Cooling",
    "CPU COOLER": "Cooling",
    "FANS": "Cooling",
    "AIO": "Cooling",
    "KEYBOARD": "Peripheral",
    "MOUSE": "Peripheral",
    "HEADSET": "Peripheral",
    "PERIPHERALS": "Peripheral",
    "DISPLAY": "Monitor",
    "MONITORS": "Monitor",
    "SCREEN": "Monitor",
}


def normalize_search(text: Optional[str]) -> str:
    """Uppercase, trim and collapse internal whitespace."""
    if not text:
        return ""
    return normalize_whitespace(text).upper()


@dataclass(frozen=True)
class SearchResolution:
    """Outcome of resolving free text.

    Exactly one of ``category_id`` and ``text`` is set for a non-empty search.
    """
    category_id: Optional[str] = None
    category_name: Optional[str] = None
    text: Optional[str] = None

    @property
    def resolved(self) -> bool:
        return self.category_id is not None


class FacetNormalizer:
    def __init__(self, aliases: Mapping[str, str] = None):
        self.aliases = {normalize_search(k): v for k, v in (aliases or DEFAULT_ALIASES).items()}

    @staticmethod
    def canonical_index(categories: Iterable) -> Dict[str, object]:
        """Map every normalized name, slug and display name to its category."""
        index = {}
        for category in categories:
            for token in (category.name, category.slug, category.display_name):
                if token:
                    index.setdefault(normalize_search(token), category)
        return index

    def resolve_token(self, text: Optional[str], categories: Iterable):
        """Resolve ``text`` to a category via alias then canonical token. None if neither matches."""
        key = normalize_search(text)
        if not key:
            return None
        index = self.canonical_index(categories)
        alias = self.aliases.get(key)
        if alias is not None:
            category = index.get(normalize_search(alias))
            if category is not None:
                return category
        return index.get(key)

    def resolve_search(self, search: Optional[str], categories: Iterable) -> SearchResolution:
        if search is None or not search.strip():
            return SearchResolution()
        category = self.resolve_token(search, categories)
        if category is not None:
            return SearchResolution(category_id=category.id, category_name=category.name)
        return SearchResolution(text=search.strip())

    @staticmethod
    def choose_category(explicit_id: Optional[str], resolution: SearchResolution) -> Optional[str]:
        """An explicit filter always wins; the search-resolved category is a fallback only."""
        if explicit_id is not None:
            return explicit_id
        return resolution.category_id
