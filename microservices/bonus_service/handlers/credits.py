"""
Credit handlers

free_credit and trial
"""

import logging
from typing import List, Optional

from ..models import BonusTemplate, EligibilityContext
from ..validators import check_already_claimed, hours_until_cooldown_ends
from .base import BonusHandler, HandlerDeps

logger = logging.getLogger(__name__)

DEFAULT_FREE_CREDIT_COOLDOWN_HOURS = 24
TRIAL_EXPIRATION_DAYS = 7


async def validate_free_credit(deps: HandlerDeps, template: BonusTemplate, context: EligibilityContext) -> Optional[str]:
    cooldown = template.cooldown_hours or DEFAULT_FREE_CREDIT_COOLDOWN_HOURS
    remaining = await hours_until_cooldown_ends(deps, context, cooldown, {"template_id": template.id})
    if remaining is not None:
        return "Free credit already claimed recently"
    return None


def free_credit_turnover(template: BonusTemplate, context: EligibilityContext, bonus_value: float) -> float:
    # Wagered once when the template sets no multiplier
    if template.turnover_multiplier > 0:
        return bonus_value * template.turnover_multiplier
    return bonus_value


async def validate_trial(deps: HandlerDeps, template: BonusTemplate, context: EligibilityContext) -> Optional[str]:
    return await check_already_claimed(deps, context, {"type": "trial"}, "Trial bonus already used")


def create_credit_handlers(trial_expiration_days: int = TRIAL_EXPIRATION_DAYS) -> List[BonusHandler]:
    return [
        BonusHandler(
            "free_credit", "credits",
            validate_specific=validate_free_credit,
            calculate_turnover=free_credit_turnover,
        ),
        BonusHandler(
            "trial", "credits",
            validate_specific=validate_trial,
            expiration_days=trial_expiration_days,
            claim_key=lambda t, c: "trial",
        ),
    ]
