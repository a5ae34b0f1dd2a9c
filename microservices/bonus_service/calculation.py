"""
Bonus Calculation Strategy

Pure functions computing bonus value, turnover requirement, expiry and
per-category turnover contribution from a template and a context.
"""

import math
from datetime import datetime, timedelta
from typing import Optional

from .models import BonusTemplate, EligibilityContext

TIER_MULTIPLIERS = {
    "bronze": 1.0,
    "silver": 1.25,
    "gold": 1.5,
    "platinum": 2.0,
    "diamond": 2.5,
}

DEFAULT_COMBO_MULTIPLIER = 1.1
DEFAULT_MIN_ACTIONS = 3
MAX_STREAK_DAYS = 7
DEFAULT_EXPIRATION_DAYS = 30
FULL_CONTRIBUTION = 100.0


def base_amount(context: EligibilityContext) -> float:
    """Deposit amount when present, otherwise activity amount, otherwise 0"""
    if context.deposit_amount is not None:
        return context.deposit_amount
    if context.activity_amount is not None:
        return context.activity_amount
    return 0.0


def get_tier_multiplier(user_tier: Optional[str]) -> float:
    return TIER_MULTIPLIERS.get((user_tier or "").lower(), 1.0)


def calculate_dynamic_value(template: BonusTemplate, context: EligibilityContext) -> float:
    # Combo grows geometrically with each selection beyond the minimum
    if template.type == "combo" and context.selection_count:
        multiplier = template.combo_multiplier or DEFAULT_COMBO_MULTIPLIER
        min_actions = template.min_actions if template.min_actions is not None else DEFAULT_MIN_ACTIONS
        extra = max(0, context.selection_count - min_actions)
        return template.value * (multiplier ** extra)

    if template.type == "streak" and context.consecutive_days:
        return template.value * min(context.consecutive_days, MAX_STREAK_DAYS)

    return template.value


def calculate_value(template: BonusTemplate, context: EligibilityContext) -> float:
    """Bonus value for the template's value type"""
    if template.value_type == "fixed":
        return template.value

    if template.value_type == "percentage":
        calculated = base_amount(context) * (template.value / 100)
        if template.max_value:
            return min(calculated, template.max_value)
        return calculated

    if template.value_type == "tiered":
        return template.value * get_tier_multiplier(context.user_tier)

    if template.value_type == "dynamic":
        return calculate_dynamic_value(template, context)

    return template.value


def calculate_turnover(
    template: BonusTemplate,
    context: EligibilityContext,
    bonus_value: Optional[float] = None,
) -> float:
    """Turnover requirement: bonus value times the template's multiplier"""
    if bonus_value is None:
        bonus_value = calculate_value(template, context)
    return bonus_value * template.turnover_multiplier


def calculate_expiration(
    template: BonusTemplate,
    now: datetime,
    default_days: int = DEFAULT_EXPIRATION_DAYS,
) -> datetime:
    return now + timedelta(days=template.expiration_days or default_days)


def get_contribution_rate(template: BonusTemplate, category: Optional[str]) -> float:
    """
    Percentage of an activity amount that counts toward turnover.

    No contribution map at all, or an uncategorised activity, contributes
    fully; a map that omits the category means it contributes nothing.
    """
    if template.activity_contributions is None or category is None:
        return FULL_CONTRIBUTION
    return template.activity_contributions.get(category or "", 0.0)


def calculate_turnover_contribution(amount: float, rate: float) -> float:
    return float(math.floor(amount * rate / 100))


def floor_capped(amount: float, max_value: Optional[float]) -> float:
    """Whole-unit value capped at max_value when one is set"""
    value = float(math.floor(amount))
    if max_value and value > max_value:
        return max_value
    return value


__all__ = [
    "TIER_MULTIPLIERS",
    "base_amount",
    "get_tier_multiplier",
    "calculate_dynamic_value",
    "calculate_value",
    "calculate_turnover",
    "calculate_expiration",
    "get_contribution_rate",
    "calculate_turnover_contribution",
    "floor_capped",
]
