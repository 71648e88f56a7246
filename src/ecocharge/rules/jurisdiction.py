from __future__ import annotations

from typing import Any, Optional

from .fee_schedule import JurisdictionCode


def resolve(raw_value: Any) -> Optional[JurisdictionCode]:
    """Resolve a configured jurisdiction value ("ab ", "SK", ...) to a code.

    Non-strings, blanks and unknown codes resolve to None, which callers
    treat as "not configured".
    """

    if not isinstance(raw_value, str):
        return None
    candidate = raw_value.strip().upper()
    if not candidate:
        return None
    try:
        return JurisdictionCode(candidate)
    except ValueError:
        return None
