# src/ecocharge/rules/fee_engine.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from .categories import CanonicalCategory, normalize
from .fee_schedule import FeeSchedule, JurisdictionCode, lookup
from .jurisdiction import resolve

logger = logging.getLogger(__name__)


# -------------------------------
# Helpers & data models
# -------------------------------

def _money(x: Decimal | int | float | str) -> Decimal:
    if not isinstance(x, Decimal):
        x = Decimal(str(x))
    return x.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def _parse_amount(raw: Any) -> Optional[Decimal]:
    """Parse a per-unit price; None for anything that is not a finite, non-negative number."""

    if raw is None or isinstance(raw, bool):
        return None
    if not isinstance(raw, (Decimal, int, float, str)):
        return None
    if isinstance(raw, str) and "_" in raw:
        # Decimal accepts digit grouping ("1_000"); prices never carry it
        return None
    try:
        value = raw if isinstance(raw, Decimal) else Decimal(str(raw).strip())
    except (InvalidOperation, ValueError):
        return None
    if not value.is_finite() or value < 0:
        return None
    return value


PRODUCT_VARIANT = "ProductVariant"
DEFAULT_TITLE = "Item"


@dataclass(frozen=True)
class CategoryFlag:
    tag: str
    has_tag: bool


@dataclass(frozen=True)
class CartLine:
    id: str
    merchandise_type: Optional[str]
    amount_per_quantity: Any
    product_title: Optional[str] = None
    flags: Tuple[CategoryFlag, ...] = ()


@dataclass(frozen=True)
class Cart:
    lines: Tuple[CartLine, ...] = ()


@dataclass(frozen=True)
class ShopConfig:
    jurisdiction_value: Any = None


@dataclass(frozen=True)
class MutationInstruction:
    cart_line_id: str
    title: str
    price_per_unit: Decimal


@dataclass(frozen=True)
class FeeSelection:
    """The winning per-unit fee for a line and the category that supplied it."""
    amount: Decimal = Decimal("0")
    category: Optional[CanonicalCategory] = None


NO_CHANGES: Tuple[MutationInstruction, ...] = ()


# -------------------------------
# Fee selection
# -------------------------------

def select_fee(flags: Optional[Iterable[CategoryFlag]], schedule: FeeSchedule) -> FeeSelection:
    """
    Pick the highest applicable per-unit fee among the line's active flags.

    Overlapping tags (a general display tag plus a size tag, or a legacy
    monitor tag next to its display replacement) describe one obligation, so
    the fee is the maximum, never the sum. Unknown tags and categories the
    schedule does not price contribute nothing. On ties the first flag
    reaching the maximum supplies the category.
    """
    best = FeeSelection()
    for flag in flags or ():
        if not flag.has_tag:
            continue
        category = normalize(flag.tag)
        if category is None:
            continue
        amount = schedule.fee_for(category)
        if amount > best.amount:
            best = FeeSelection(amount=amount, category=category)
    return best


def compute_fee_per_unit(flags: Optional[Iterable[CategoryFlag]], schedule: FeeSchedule) -> Decimal:
    return select_fee(flags, schedule).amount


def format_fee_suffix(label: str, fee: Decimal) -> str:
    return f"♻️ {label}: +${_money(fee):.2f} per unit"


# -------------------------------
# Cart transform engine
# -------------------------------

class CartTransformEngine:
    """
    Single-pass, stateless evaluation of a cart against the shop's fee schedule.

    Every unresolved condition (no jurisdiction, disabled schedule, ineligible
    merchandise, zero fee, malformed price) routes to "no mutation" for the
    affected scope; nothing here raises for bad input data.
    """

    def schedule_for(self, shop_config: ShopConfig) -> Optional[Tuple[JurisdictionCode, FeeSchedule]]:
        code = resolve(shop_config.jurisdiction_value)
        if code is None:
            logger.debug("No jurisdiction configured (value=%r)", shop_config.jurisdiction_value)
            return None
        schedule = lookup(code)
        if not schedule.enabled:
            logger.debug("Jurisdiction %s is not enabled", code.value)
            return None
        return code, schedule

    def evaluate_line(self, line: CartLine, schedule: FeeSchedule) -> Optional[MutationInstruction]:
        if line.merchandise_type != PRODUCT_VARIANT:
            logger.debug("Line %s skipped: merchandise %r", line.id, line.merchandise_type)
            return None

        fee = select_fee(line.flags, schedule)
        if fee.amount <= 0:
            return None

        base = _parse_amount(line.amount_per_quantity)
        if base is None:
            logger.debug("Line %s skipped: unusable price %r", line.id, line.amount_per_quantity)
            return None

        try:
            new_price = _money(base + fee.amount)
        except InvalidOperation:
            # beyond Decimal context precision
            logger.debug("Line %s skipped: price %r out of range", line.id, line.amount_per_quantity)
            return None

        title = line.product_title if line.product_title is not None else DEFAULT_TITLE
        return MutationInstruction(
            cart_line_id=line.id,
            title=f"{title} – {format_fee_suffix(schedule.label, fee.amount)}",
            price_per_unit=new_price,
        )

    def run(self, cart: Cart, shop_config: ShopConfig) -> Tuple[MutationInstruction, ...]:
        resolved = self.schedule_for(shop_config)
        if resolved is None:
            return NO_CHANGES
        code, schedule = resolved

        instructions: List[MutationInstruction] = []
        for line in cart.lines:
            instruction = self.evaluate_line(line, schedule)
            if instruction is not None:
                instructions.append(instruction)

        logger.info("Eco fee run: jurisdiction=%s lines=%d updates=%d",
                    code.value, len(cart.lines), len(instructions))
        return tuple(instructions) if instructions else NO_CHANGES


# -------------------------------
# Checkout pipeline wire format
# -------------------------------

def _get(obj: Any, *path: str) -> Any:
    for key in path:
        if not isinstance(obj, Mapping):
            return None
        obj = obj.get(key)
    return obj


def _parse_flags(raw: Any) -> Tuple[CategoryFlag, ...]:
    if not isinstance(raw, Sequence) or isinstance(raw, (str, bytes)):
        return ()
    flags: List[CategoryFlag] = []
    for item in raw:
        tag = _get(item, "tag")
        if not isinstance(tag, str):
            continue
        flags.append(CategoryFlag(tag=tag, has_tag=_get(item, "hasTag") is True))
    return tuple(flags)


def _parse_line(raw: Any) -> Optional[CartLine]:
    line_id = _get(raw, "id")
    if not isinstance(line_id, str) or not line_id:
        return None
    merchandise_type = _get(raw, "merchandise", "__typename")
    title = _get(raw, "merchandise", "product", "title")
    return CartLine(
        id=line_id,
        merchandise_type=merchandise_type if isinstance(merchandise_type, str) else None,
        amount_per_quantity=_get(raw, "cost", "amountPerQuantity", "amount"),
        product_title=title if isinstance(title, str) else None,
        flags=_parse_flags(_get(raw, "merchandise", "product", "ecoCategoryTags")),
    )


def parse_run_input(payload: Any) -> Tuple[Cart, ShopConfig]:
    """Build engine inputs from a cart transform run input document."""
    shop_config = ShopConfig(jurisdiction_value=_get(payload, "shop", "jurisdiction", "value"))

    raw_lines = _get(payload, "cart", "lines")
    lines: List[CartLine] = []
    if isinstance(raw_lines, Sequence) and not isinstance(raw_lines, (str, bytes)):
        for raw in raw_lines:
            line = _parse_line(raw)
            if line is not None:
                lines.append(line)
    return Cart(lines=tuple(lines)), shop_config


def to_operations(instructions: Sequence[MutationInstruction]) -> Dict[str, Any]:
    return {
        "operations": [
            {
                "lineUpdate": {
                    "cartLineId": ins.cart_line_id,
                    "title": ins.title,
                    "price": {
                        "adjustment": {
                            "fixedPricePerUnit": {"amount": f"{ins.price_per_unit:.2f}"}
                        }
                    },
                }
            }
            for ins in instructions
        ]
    }


def run_cart_transform(payload: Any, engine: Optional[CartTransformEngine] = None) -> Dict[str, Any]:
    cart, shop_config = parse_run_input(payload)
    return to_operations((engine or CartTransformEngine()).run(cart, shop_config))
