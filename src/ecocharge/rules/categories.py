"""Eco category tags and their canonical categories.

Merchants flag products with ``eco-category-*`` tags. Several spellings can
denote the same physical category (the older ``monitor`` tags predate the
size-bracketed ``display`` tags), so every tag is mapped onto one canonical
category before it is used as a fee-schedule key.

Display size brackets as tagged by merchants:

  - display-small:  <= 30"
  - display-large:  > 30" and < 46"
  - display-xlarge: >= 46"
"""
from __future__ import annotations

from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping, Optional


class CanonicalCategory(Enum):
    COMPUTERS = "computers"
    LAPTOPS = "laptops"
    PRINTERS = "printers"
    PERIPHERALS = "peripherals"
    AV = "av"
    CELLPHONES = "cellphones"
    DISPLAY_SMALL = "display-small"
    DISPLAY_LARGE = "display-large"
    DISPLAY_XLARGE = "display-xlarge"
    ALL_IN_ONE = "all-in-one"
    SMALL_APPLIANCES = "small-appliances"
    TOOLS = "tools"


TAG_CATEGORY_MAP: Mapping[str, CanonicalCategory] = MappingProxyType({
    # Computers
    "eco-category-computers": CanonicalCategory.COMPUTERS,
    "eco-category-laptops": CanonicalCategory.LAPTOPS,
    "eco-category-printers": CanonicalCategory.PRINTERS,
    "eco-category-peripherals": CanonicalCategory.PERIPHERALS,
    "eco-category-av": CanonicalCategory.AV,
    "eco-category-cellphones": CanonicalCategory.CELLPHONES,

    # Displays
    "eco-category-display-small": CanonicalCategory.DISPLAY_SMALL,
    "eco-category-display-large": CanonicalCategory.DISPLAY_LARGE,
    "eco-category-display-xlarge": CanonicalCategory.DISPLAY_XLARGE,
    "eco-category-all-in-one": CanonicalCategory.ALL_IN_ONE,

    # Displays (legacy monitor tags)
    "eco-category-monitor-small": CanonicalCategory.DISPLAY_SMALL,
    "eco-category-monitor-large": CanonicalCategory.DISPLAY_LARGE,
    "eco-category-monitor-xlarge": CanonicalCategory.DISPLAY_XLARGE,

    # Other
    "eco-category-small-appliances": CanonicalCategory.SMALL_APPLIANCES,
    "eco-category-tools": CanonicalCategory.TOOLS,
})


def _check_every_category_is_taggable() -> None:
    reachable = set(TAG_CATEGORY_MAP.values())
    missing = [c.value for c in CanonicalCategory if c not in reachable]
    if missing:
        raise RuntimeError(f"categories without a tag: {', '.join(missing)}")


_check_every_category_is_taggable()


def normalize(raw_tag: Any) -> Optional[CanonicalCategory]:
    """Map a raw tag name to its canonical category, or None when unknown."""

    if not isinstance(raw_tag, str):
        return None
    return TAG_CATEGORY_MAP.get(raw_tag)
