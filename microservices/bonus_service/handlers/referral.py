"""
Referral handlers

referral (paid to the referrer), referee (paid to the referred user) and
commission (a share of the referee's activity, paid to the referrer).
"""

import logging
import math
from typing import Any, Dict, List, Optional

from ..calculation import calculate_value, floor_capped
from ..models import BonusTemplate, EligibilityContext
from .base import BonusHandler, HandlerDeps

logger = logging.getLogger(__name__)


async def validate_referral(deps: HandlerDeps, template: BonusTemplate, context: EligibilityContext) -> Optional[str]:
    if not context.referee_id:
        return "Referee ID required"

    max_referrals = template.setting("max_referrals_per_user")
    if max_referrals:
        referrals = await deps.user_bonuses.find_by_user_id(context.user_id, {"type": "referral"})
        if len(referrals) >= max_referrals:
            return f"Maximum referrals ({max_referrals}) reached"

    existing = await deps.user_bonuses.find_by_user_id(
        context.user_id, {"type": "referral", "referee_id": context.referee_id}
    )
    if existing:
        return "Referral bonus already claimed for this user"

    min_referee_deposit = template.setting("min_referee_deposit")
    if template.setting("require_referee_deposit") and min_referee_deposit:
        if (context.deposit_amount or 0) < min_referee_deposit:
            return f"Referee must deposit at least {min_referee_deposit}"
    return None


def referral_value(template: BonusTemplate, context: EligibilityContext) -> float:
    """Tiered referral rewards: the highest tier the referrer has reached applies"""
    tiers = template.setting("referral_tiers") or []
    if not tiers:
        return calculate_value(template, context)

    referral_count = context.metadata.get("referral_count", 0) or 0
    multiplier = 1.0
    for tier in sorted(tiers, key=lambda t: t["referrals_required"], reverse=True):
        if referral_count >= tier["referrals_required"]:
            multiplier = tier["bonus_multiplier"]
            break
    return float(math.floor(template.value * multiplier))


def referral_metadata(template: BonusTemplate, context: EligibilityContext) -> Dict[str, Any]:
    return {"referee_id": context.referee_id}


async def validate_referee(deps: HandlerDeps, template: BonusTemplate, context: EligibilityContext) -> Optional[str]:
    if not context.referrer_id:
        return "User was not referred"
    existing = await deps.user_bonuses.find_latest(context.user_id, {"type": "referee"})
    if existing:
        return "Referee bonus already claimed"
    return None


async def validate_commission(deps: HandlerDeps, template: BonusTemplate, context: EligibilityContext) -> Optional[str]:
    if not context.activity_amount or context.activity_amount <= 0:
        return "No referral activity to commission"
    if not context.referee_id:
        return "Referee ID required for commission"

    referrals = await deps.user_bonuses.find_by_user_id(
        context.user_id, {"type": "referral", "referee_id": context.referee_id}
    )
    if not referrals:
        return "User did not refer this referee"

    max_reward = template.setting("max_reward_per_user")
    if max_reward:
        commissions = await deps.user_bonuses.find_by_user_id(context.user_id, {"type": "commission"})
        earned = sum(b.get("original_value", 0) for b in commissions)
        if earned >= max_reward:
            return "Maximum commission reward reached"
    return None


def commission_value(template: BonusTemplate, context: EligibilityContext) -> float:
    return floor_capped((context.activity_amount or 0) * template.value / 100, template.max_value)


def create_referral_handlers() -> List[BonusHandler]:
    return [
        BonusHandler(
            "referral", "referral",
            validate_specific=validate_referral,
            calculate_value=referral_value,
            build_metadata=referral_metadata,
            claim_key=lambda t, c: f"referral:{c.referee_id}",
        ),
        BonusHandler(
            "referee", "referral",
            validate_specific=validate_referee,
            build_metadata=lambda t, c: {"referrer_id": c.referrer_id},
            claim_key=lambda t, c: "referee",
        ),
        BonusHandler(
            "commission", "referral",
            validate_specific=validate_commission,
            calculate_value=commission_value,
            build_metadata=referral_metadata,
        ),
    ]
