"""
Activity and recovery handlers

activity, streak, winback, cashback, consolation
"""

import logging
from datetime import timedelta
from typing import List, Optional

from ..calculation import calculate_value, floor_capped
from ..models import BonusTemplate, EligibilityContext
from ..validators import check_claimed_since, hours_until_cooldown_ends
from .base import BonusHandler, HandlerDeps

logger = logging.getLogger(__name__)

DEFAULT_MIN_STREAK_DAYS = 3
DEFAULT_MIN_INACTIVE_DAYS = 14
WINBACK_WINDOW_DAYS = 30
DEFAULT_CONSOLATION_COOLDOWN_HOURS = 24

# (minimum streak length, multiplier), longest first
STREAK_MULTIPLIERS = [(30, 2.0), (14, 1.5), (7, 1.25)]


# ====================
# Activity
# ====================

async def validate_activity(deps: HandlerDeps, template: BonusTemplate, context: EligibilityContext) -> Optional[str]:
    if not context.activity_amount or context.activity_amount <= 0:
        return "Activity amount required"
    return None


def activity_value(template: BonusTemplate, context: EligibilityContext) -> float:
    if template.value_type == "percentage":
        return floor_capped((context.activity_amount or 0) * template.value / 100, template.max_value)
    return template.value


async def validate_streak(deps: HandlerDeps, template: BonusTemplate, context: EligibilityContext) -> Optional[str]:
    if context.consecutive_days is None:
        return "Streak data required"
    min_days = template.setting("min_streak_days", DEFAULT_MIN_STREAK_DAYS)
    if context.consecutive_days < min_days:
        return f"Minimum {min_days} day streak required"
    return None


def streak_value(template: BonusTemplate, context: EligibilityContext) -> float:
    days = context.consecutive_days or 0
    multiplier = 1.0
    for threshold, tier_multiplier in STREAK_MULTIPLIERS:
        if days >= threshold:
            multiplier = tier_multiplier
            break
    return floor_capped(template.value * multiplier, template.max_value)


async def validate_winback(deps: HandlerDeps, template: BonusTemplate, context: EligibilityContext) -> Optional[str]:
    since = context.now() - timedelta(days=WINBACK_WINDOW_DAYS)
    reason = await check_claimed_since(deps, context, since, {"type": "winback"}, "Winback bonus recently claimed")
    if reason:
        return reason

    min_inactive = template.setting("min_inactive_days", DEFAULT_MIN_INACTIVE_DAYS)
    days_inactive = context.metadata.get("days_inactive")
    if days_inactive is None or days_inactive < min_inactive:
        return f"User must be inactive for at least {min_inactive} days"
    return None


# ====================
# Recovery
# ====================

async def validate_cashback(deps: HandlerDeps, template: BonusTemplate, context: EligibilityContext) -> Optional[str]:
    if not context.loss_amount or context.loss_amount <= 0:
        return "No losses to cashback"
    # min_deposit doubles as the minimum qualifying loss
    if template.min_deposit and context.loss_amount < template.min_deposit:
        return f"Minimum loss of {template.min_deposit} required for cashback"
    return None


def loss_percentage_value(template: BonusTemplate, context: EligibilityContext) -> float:
    if template.value_type != "percentage":
        return calculate_value(template, context)
    return floor_capped((context.loss_amount or 0) * template.value / 100, template.max_value)


async def validate_consolation(deps: HandlerDeps, template: BonusTemplate, context: EligibilityContext) -> Optional[str]:
    if not context.loss_amount or context.loss_amount <= 0:
        return "No loss to console"

    min_loss = template.setting("min_loss")
    if min_loss and context.loss_amount < min_loss:
        return f"Minimum loss of {min_loss} required"

    cooldown = template.cooldown_hours or DEFAULT_CONSOLATION_COOLDOWN_HOURS
    remaining = await hours_until_cooldown_ends(deps, context, cooldown, {"type": "consolation"})
    if remaining is not None:
        return "Consolation bonus on cooldown"
    return None


def create_activity_handlers() -> List[BonusHandler]:
    return [
        BonusHandler("activity", "activity", validate_specific=validate_activity, calculate_value=activity_value),
        BonusHandler(
            "streak", "activity",
            validate_specific=validate_streak,
            calculate_value=streak_value,
            build_metadata=lambda t, c: {"metadata": {"streak_days": c.consecutive_days}},
        ),
        BonusHandler("winback", "activity", validate_specific=validate_winback),
        BonusHandler(
            "cashback", "recovery",
            validate_specific=validate_cashback,
            calculate_value=loss_percentage_value,
            build_metadata=lambda t, c: {"metadata": {"loss_amount": c.loss_amount}},
        ),
        BonusHandler(
            "consolation", "recovery",
            validate_specific=validate_consolation,
            calculate_value=loss_percentage_value,
            build_metadata=lambda t, c: {"metadata": {"loss_amount": c.loss_amount}},
        ),
    ]
