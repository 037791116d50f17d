"""In-memory sanity rule constants built from parsed TOML layers."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any


@dataclass(frozen=True)
class SanityRules:
    food_keywords: tuple[str, ...] = ("burger", "chicken", "steak", "lasagna", "smoothie", "coffee", "drink", "chips")
    min_food_price: Decimal = Decimal("1.00")
    typical_min: Decimal = Decimal("10.00")
    typical_max: Decimal = Decimal("50.00")
    suggested_leading_digit: str = "2"
    common_cents: frozenset[int] = frozenset({95, 90, 50, 99, 0})
    suspicious_quantity: int = 6
    receipt_total_ratio: Decimal = Decimal("1.1")
    max_item_ratio: Decimal = Decimal("2")
    mean_item_ratio: Decimal = Decimal("5")
    quantity_tolerance: Decimal = Decimal("0.02")


DEFAULT_SANITY_RULES = SanityRules()


def _decimal(value: Any) -> Decimal:
    return Decimal(str(value))


def build_sanity_rules(configs: tuple[dict[str, Any], ...]) -> SanityRules:
    """Fold TOML layers over the defaults; later layers win key by key."""
    rules = DEFAULT_SANITY_RULES
    for config in configs:
        low = config.get("low_unit_price", {})
        cents = config.get("cents", {})
        quantity = config.get("quantity", {})
        outliers = config.get("outliers", {})
        tolerance = config.get("tolerance", {})
        rules = SanityRules(
            food_keywords=tuple(k.lower() for k in low.get("food_keywords", rules.food_keywords)),
            min_food_price=_decimal(low.get("min_price", rules.min_food_price)),
            typical_min=_decimal(low.get("typical_min", rules.typical_min)),
            typical_max=_decimal(low.get("typical_max", rules.typical_max)),
            suggested_leading_digit=str(low.get("suggested_leading_digit", rules.suggested_leading_digit)),
            common_cents=frozenset(int(c) for c in cents.get("common", rules.common_cents)),
            suspicious_quantity=int(quantity.get("suspicious_above", rules.suspicious_quantity)),
            receipt_total_ratio=_decimal(outliers.get("receipt_total_ratio", rules.receipt_total_ratio)),
            max_item_ratio=_decimal(outliers.get("max_item_ratio", rules.max_item_ratio)),
            mean_item_ratio=_decimal(outliers.get("mean_item_ratio", rules.mean_item_ratio)),
            quantity_tolerance=_decimal(tolerance.get("quantity_mismatch", rules.quantity_tolerance)),
        )
    return rules
