"""Per-jurisdiction eco fee schedules.

Shipping jurisdictions for v1 are AB, BC and SK. Every other province or
territory is present as a disabled placeholder so that enabling one later is
a table change only.

All-in-one devices are treated as displays by the published schedules, where
the fee depends on screen size. Merchants should tag AIOs with the matching
display size tag; an untagged AIO falls back to the small display fee.

The table is checked when this module is imported: a jurisdiction without a
schedule, an unknown category key or a negative amount is a deployment error.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from types import MappingProxyType
from typing import Dict, Mapping, Tuple

from .categories import CanonicalCategory as C


class JurisdictionCode(Enum):
    AB = "AB"
    BC = "BC"
    SK = "SK"
    MB = "MB"
    ON = "ON"
    QC = "QC"
    NS = "NS"
    NB = "NB"
    NL = "NL"
    PE = "PE"
    NT = "NT"
    NU = "NU"
    YT = "YT"


@dataclass(frozen=True)
class FeeSchedule:
    enabled: bool
    label: str
    fee_by_category: Mapping[C, Decimal] = field(default_factory=lambda: MappingProxyType({}))

    def fee_for(self, category: C) -> Decimal:
        return self.fee_by_category.get(category, Decimal("0"))


def _schedule(enabled: bool, label: str, fees: Dict[C, str]) -> FeeSchedule:
    amounts: Dict[C, Decimal] = {}
    for category, raw in fees.items():
        if not isinstance(category, C):
            raise TypeError(f"{label}: unknown fee category {category!r}")
        amount = Decimal(raw)
        if amount < 0:
            raise ValueError(f"{label}: negative fee for {category.value}")
        amounts[category] = amount
    return FeeSchedule(enabled=enabled, label=label, fee_by_category=MappingProxyType(amounts))


def _disabled(code: str) -> FeeSchedule:
    return _schedule(False, f"{code} Environmental Fee", {})


def _build_registry(entries: Tuple[Tuple[JurisdictionCode, FeeSchedule], ...]) -> Mapping[JurisdictionCode, FeeSchedule]:
    table: Dict[JurisdictionCode, FeeSchedule] = {}
    for code, schedule in entries:
        if code in table:
            raise ValueError(f"duplicate fee schedule for {code.value}")
        table[code] = schedule
    missing = [c.value for c in JurisdictionCode if c not in table]
    if missing:
        raise RuntimeError(f"missing fee schedule for: {', '.join(missing)}")
    return MappingProxyType(table)


FEE_SCHEDULES: Mapping[JurisdictionCode, FeeSchedule] = _build_registry((
    (JurisdictionCode.AB, _schedule(True, "AB Environmental Fee", {
        C.COMPUTERS: "0.45",
        C.LAPTOPS: "0.30",
        C.PRINTERS: "1.65",
        C.PERIPHERALS: "0",
        C.AV: "0.55",
        C.CELLPHONES: "0",
        C.DISPLAY_SMALL: "1.30",
        C.DISPLAY_LARGE: "1.30",
        C.DISPLAY_XLARGE: "2.75",
        C.ALL_IN_ONE: "1.30",
        C.SMALL_APPLIANCES: "0.40",
        C.TOOLS: "0.65",
    })),
    (JurisdictionCode.BC, _schedule(True, "BC Environmental Fee", {
        C.COMPUTERS: "0.70",
        C.LAPTOPS: "0.45",
        C.PRINTERS: "6.50",
        C.PERIPHERALS: "0.35",
        C.AV: "2.80",
        C.CELLPHONES: "0.20",
        C.DISPLAY_SMALL: "3.50",
        C.DISPLAY_LARGE: "4.50",
        C.DISPLAY_XLARGE: "7.75",
        C.ALL_IN_ONE: "3.50",
        C.SMALL_APPLIANCES: "0",
        C.TOOLS: "0",
    })),
    # SK values from the Jan 5, 2026 schedule
    (JurisdictionCode.SK, _schedule(True, "SK Environmental Fee", {
        C.COMPUTERS: "0.80",        # desktop computers
        C.LAPTOPS: "0.45",          # portable computers
        C.PRINTERS: "4.50",         # desktop printers
        C.PERIPHERALS: "0.20",
        C.AV: "1.25",               # home audio/video systems
        C.CELLPHONES: "0",          # not scheduled
        C.DISPLAY_SMALL: "1.80",    # <= 29", AIO included
        C.DISPLAY_LARGE: "3.10",    # 30-45", AIO included
        C.DISPLAY_XLARGE: "7.00",   # >= 46", AIO included
        C.ALL_IN_ONE: "1.80",
        C.SMALL_APPLIANCES: "0",
        C.TOOLS: "0",
    })),
    # Future jurisdictions
    (JurisdictionCode.MB, _disabled("MB")),
    (JurisdictionCode.ON, _disabled("ON")),
    (JurisdictionCode.QC, _disabled("QC")),
    (JurisdictionCode.NS, _disabled("NS")),
    (JurisdictionCode.NB, _disabled("NB")),
    (JurisdictionCode.NL, _disabled("NL")),
    (JurisdictionCode.PE, _disabled("PE")),
    (JurisdictionCode.NT, _disabled("NT")),
    (JurisdictionCode.NU, _disabled("NU")),
    (JurisdictionCode.YT, _disabled("YT")),
))


def lookup(code: JurisdictionCode) -> FeeSchedule:
    return FEE_SCHEDULES[code]


def enabled_codes() -> Tuple[JurisdictionCode, ...]:
    """Enabled jurisdictions in declaration order."""

    return tuple(code for code in JurisdictionCode if FEE_SCHEDULES[code].enabled)
