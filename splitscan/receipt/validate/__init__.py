"""Receipt-level validation: sanity checks and correction proposals."""

from .autocorrect import auto_correct_amount
from .rules import DEFAULT_SANITY_RULES, SanityRules, build_sanity_rules
from .sanity import check_item_sanity

__all__ = [
    "DEFAULT_SANITY_RULES",
    "SanityRules",
    "auto_correct_amount",
    "build_sanity_rules",
    "check_item_sanity",
]
