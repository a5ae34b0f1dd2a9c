"""
Bonus Claim Validators

Persistence-backed checks shared by handlers. Each returns a denial reason,
or None when the check passes.

These are read-then-decide checks. The unique claim key on user_bonuses is
what actually stops two concurrent awards for the same claim.
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from .models import BonusStatusEnum, BonusTemplate, EligibilityContext, as_utc

logger = logging.getLogger(__name__)

HELD_STATUSES = [BonusStatusEnum.ACTIVE.value, BonusStatusEnum.IN_PROGRESS.value]


async def check_max_uses_per_user(deps, template: BonusTemplate, context: EligibilityContext) -> Optional[str]:
    if not template.max_uses_per_user:
        return None
    count = await deps.user_bonuses.count_by_template(context.user_id, template.id)
    if count >= template.max_uses_per_user:
        return "Maximum bonus claims reached"
    return None


async def check_stacking(deps, template: BonusTemplate, context: EligibilityContext) -> Optional[str]:
    if template.stackable is False:
        held = await deps.user_bonuses.find_by_user_id(context.user_id, {"status": HELD_STATUSES})
        if held:
            return "Cannot stack with active bonus"

    if template.excluded_bonus_types:
        conflicting = await deps.user_bonuses.find_by_user_id(
            context.user_id,
            {"status": HELD_STATUSES, "type": list(template.excluded_bonus_types)},
        )
        if conflicting:
            return f"Cannot combine with {conflicting[0]['type']} bonus"
    return None


async def check_already_claimed(
    deps,
    context: EligibilityContext,
    filters: Dict[str, Any],
    message: str,
) -> Optional[str]:
    """Deny when any bonus matching the filters exists for the user"""
    existing = await deps.user_bonuses.find_latest(context.user_id, filters)
    return message if existing else None


async def check_claimed_since(
    deps,
    context: EligibilityContext,
    since: datetime,
    filters: Dict[str, Any],
    message: str,
) -> Optional[str]:
    """Deny when a matching bonus was claimed at or after `since`"""
    return await check_already_claimed(deps, context, {**filters, "claimed_after": since}, message)


async def hours_until_cooldown_ends(
    deps,
    context: EligibilityContext,
    cooldown_hours: float,
    filters: Dict[str, Any],
) -> Optional[float]:
    """
    Remaining cooldown in hours based on the most recent matching claim,
    or None when no cooldown is running.
    """
    latest = await deps.user_bonuses.find_latest(context.user_id, filters)
    if not latest or not latest.get("claimed_at"):
        return None
    elapsed = context.now() - as_utc(latest["claimed_at"])
    remaining = timedelta(hours=cooldown_hours) - elapsed
    if remaining.total_seconds() > 0:
        return remaining.total_seconds() / 3600
    return None


def start_of_day(now: datetime) -> datetime:
    return now.replace(hour=0, minute=0, second=0, microsecond=0)


def start_of_year(now: datetime) -> datetime:
    return now.replace(month=1, day=1, hour=0, minute=0, second=0, microsecond=0)
