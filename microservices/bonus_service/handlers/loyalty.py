"""
Loyalty and time-based handlers

Loyalty: loyalty, vip, loyalty_points, tier_upgrade
Time-based: daily_login, birthday, anniversary, seasonal, flash
"""

import logging
import math
from typing import Any, Dict, List, Optional

from ..calculation import calculate_value
from ..models import BonusTemplate, EligibilityContext, as_utc
from ..validators import check_already_claimed, check_claimed_since, start_of_day, start_of_year
from .base import BonusHandler, HandlerDeps

logger = logging.getLogger(__name__)

DEFAULT_VIP_TIERS = ["vip", "platinum", "diamond", "elite"]
VIP_TIER_MULTIPLIERS = {
    "vip": 1.0,
    "platinum": 1.25,
    "diamond": 1.5,
    "elite": 2.0,
}
LOYALTY_POINTS_EXPIRATION_DAYS = 365
MAX_ANNIVERSARY_YEARS = 5


# ====================
# Loyalty
# ====================

async def validate_loyalty(deps: HandlerDeps, template: BonusTemplate, context: EligibilityContext) -> Optional[str]:
    if template.eligible_tiers:
        if not context.user_tier or context.user_tier not in template.eligible_tiers:
            return f"Tier {context.user_tier or 'none'} not eligible for this loyalty bonus"
    return None


async def validate_vip(deps: HandlerDeps, template: BonusTemplate, context: EligibilityContext) -> Optional[str]:
    vip_tiers = template.eligible_tiers or DEFAULT_VIP_TIERS
    if not context.user_tier or context.user_tier.lower() not in vip_tiers:
        return "VIP status required"
    return None


def vip_value(template: BonusTemplate, context: EligibilityContext) -> float:
    multiplier = VIP_TIER_MULTIPLIERS.get((context.user_tier or "").lower(), 1.0)
    return float(math.floor(calculate_value(template, context) * multiplier))


def loyalty_points_turnover(template: BonusTemplate, context: EligibilityContext, bonus_value: float) -> float:
    if template.turnover_multiplier > 0:
        return bonus_value * template.turnover_multiplier
    return 0.0


async def validate_tier_upgrade(deps: HandlerDeps, template: BonusTemplate, context: EligibilityContext) -> Optional[str]:
    new_tier = context.metadata.get("new_tier")
    if not new_tier:
        return "New tier not specified"
    if template.eligible_tiers and new_tier not in template.eligible_tiers:
        return f"Bonus not available for tier: {new_tier}"
    return None


# ====================
# Time-based
# ====================

async def validate_daily_login(deps: HandlerDeps, template: BonusTemplate, context: EligibilityContext) -> Optional[str]:
    return await check_claimed_since(
        deps, context, start_of_day(context.now()),
        {"type": "daily_login"}, "Daily login bonus already claimed today",
    )


def daily_login_value(template: BonusTemplate, context: EligibilityContext) -> float:
    value = calculate_value(template, context)
    streak_multipliers = template.setting("streak_multipliers")
    if context.consecutive_days and streak_multipliers:
        # JSON round-trips turn integer keys into strings
        multiplier = streak_multipliers.get(
            context.consecutive_days, streak_multipliers.get(str(context.consecutive_days), 1)
        )
        value = float(math.floor(value * multiplier))
    return value


def daily_login_metadata(template: BonusTemplate, context: EligibilityContext) -> Dict[str, Any]:
    return {"metadata": {"streak_day": context.consecutive_days or 1}}


def _once_per_year(bonus_type: str, label: str):
    async def validate(deps: HandlerDeps, template: BonusTemplate, context: EligibilityContext) -> Optional[str]:
        return await check_claimed_since(
            deps, context, start_of_year(context.now()),
            {"type": bonus_type}, f"{label} bonus already claimed this year",
        )
    return validate


def anniversary_value(template: BonusTemplate, context: EligibilityContext) -> float:
    years = context.metadata.get("account_years") or 1
    return float(math.floor(calculate_value(template, context) * min(years, MAX_ANNIVERSARY_YEARS)))


async def validate_seasonal(deps: HandlerDeps, template: BonusTemplate, context: EligibilityContext) -> Optional[str]:
    return await check_already_claimed(
        deps, context, {"template_code": template.code}, "Seasonal bonus already claimed"
    )


async def validate_flash(deps: HandlerDeps, template: BonusTemplate, context: EligibilityContext) -> Optional[str]:
    now = context.now()
    if (template.valid_from and now < as_utc(template.valid_from)) or (
        template.valid_until and now > as_utc(template.valid_until)
    ):
        return "Flash bonus window has passed"
    if template.max_uses_total and template.current_uses_total >= template.max_uses_total:
        return "Flash bonus sold out"
    return None


def create_loyalty_handlers() -> List[BonusHandler]:
    return [
        BonusHandler("loyalty", "loyalty", validate_specific=validate_loyalty),
        BonusHandler("vip", "loyalty", validate_specific=validate_vip, calculate_value=vip_value),
        BonusHandler(
            "loyalty_points", "loyalty",
            calculate_turnover=loyalty_points_turnover,
            expiration_days=LOYALTY_POINTS_EXPIRATION_DAYS,
        ),
        BonusHandler(
            "tier_upgrade", "loyalty",
            validate_specific=validate_tier_upgrade,
            build_metadata=lambda t, c: {"metadata": {"upgraded_to_tier": c.metadata.get("new_tier")}},
            claim_key=lambda t, c: f"tier_upgrade:{c.metadata.get('new_tier')}",
        ),
        BonusHandler(
            "daily_login", "time_based",
            validate_specific=validate_daily_login,
            calculate_value=daily_login_value,
            build_metadata=daily_login_metadata,
            claim_key=lambda t, c: f"daily_login:{start_of_day(c.now()).date().isoformat()}",
        ),
        BonusHandler(
            "birthday", "time_based",
            validate_specific=_once_per_year("birthday", "Birthday"),
            claim_key=lambda t, c: f"birthday:{c.now().year}",
        ),
        BonusHandler(
            "anniversary", "time_based",
            validate_specific=_once_per_year("anniversary", "Anniversary"),
            calculate_value=anniversary_value,
            claim_key=lambda t, c: f"anniversary:{c.now().year}",
        ),
        BonusHandler(
            "seasonal", "time_based",
            validate_specific=validate_seasonal,
            claim_key=lambda t, c: f"seasonal:{t.code}",
        ),
        BonusHandler("flash", "time_based", validate_specific=validate_flash),
    ]
