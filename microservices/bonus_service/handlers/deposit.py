"""
Onboarding and recurring deposit handlers

welcome, first_deposit, first_purchase, first_action, reload, top_up
"""

import logging
import math
from typing import List, Optional

from ..models import BonusTemplate, EligibilityContext
from ..validators import check_already_claimed, hours_until_cooldown_ends
from .base import BonusHandler, HandlerDeps

logger = logging.getLogger(__name__)

FIRST_DEPOSIT_TYPES = ["first_deposit", "welcome"]


async def _account_flag(deps: HandlerDeps, user_id: str, flag: str) -> bool:
    """Ask the account service about a first-time flag; unknown means not set"""
    if deps.account_client is None:
        return False
    return await deps.account_client.has_user_flag(user_id, flag)


async def validate_first_deposit(deps: HandlerDeps, template: BonusTemplate, context: EligibilityContext) -> Optional[str]:
    reason = await check_already_claimed(
        deps, context, {"type": FIRST_DEPOSIT_TYPES}, "First deposit bonus already claimed"
    )
    if reason:
        return reason
    if await _account_flag(deps, context.user_id, "has_made_first_deposit"):
        return "User has already made their first deposit"
    return None


async def validate_welcome(deps: HandlerDeps, template: BonusTemplate, context: EligibilityContext) -> Optional[str]:
    return await check_already_claimed(
        deps, context, {"type": FIRST_DEPOSIT_TYPES}, "Welcome bonus already claimed"
    )


async def validate_first_purchase(deps: HandlerDeps, template: BonusTemplate, context: EligibilityContext) -> Optional[str]:
    reason = await check_already_claimed(
        deps, context, {"type": "first_purchase"}, "First purchase bonus already claimed"
    )
    if reason:
        return reason
    if await _account_flag(deps, context.user_id, "has_made_first_purchase"):
        return "User has already made their first purchase"
    return None


async def validate_first_action(deps: HandlerDeps, template: BonusTemplate, context: EligibilityContext) -> Optional[str]:
    reason = await check_already_claimed(
        deps, context, {"type": "first_action"}, "First action bonus already claimed"
    )
    if reason:
        return reason
    if await _account_flag(deps, context.user_id, "has_completed_first_action"):
        return "User has already completed their first action"
    return None


async def validate_reload(deps: HandlerDeps, template: BonusTemplate, context: EligibilityContext) -> Optional[str]:
    if not template.cooldown_hours:
        return None
    remaining = await hours_until_cooldown_ends(deps, context, template.cooldown_hours, {"type": "reload"})
    if remaining is not None:
        return f"Reload bonus available in {math.ceil(remaining)} hours"
    return None


async def validate_top_up(deps: HandlerDeps, template: BonusTemplate, context: EligibilityContext) -> Optional[str]:
    if not context.deposit_amount or context.deposit_amount <= 0:
        return "Top-up amount required"
    return None


def _once(key: str):
    return lambda template, context: key


def create_deposit_handlers() -> List[BonusHandler]:
    return [
        BonusHandler("welcome", "onboarding", validate_specific=validate_welcome, claim_key=_once("first_deposit")),
        BonusHandler(
            "first_deposit", "onboarding",
            validate_specific=validate_first_deposit,
            claim_key=_once("first_deposit"),
        ),
        BonusHandler(
            "first_purchase", "onboarding",
            validate_specific=validate_first_purchase,
            claim_key=_once("first_purchase"),
        ),
        BonusHandler(
            "first_action", "onboarding",
            validate_specific=validate_first_action,
            claim_key=_once("first_action"),
        ),
        BonusHandler("reload", "recurring", validate_specific=validate_reload),
        BonusHandler("top_up", "recurring", validate_specific=validate_top_up),
    ]
