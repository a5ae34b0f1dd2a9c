"""
Competition handlers

tournament and leaderboard rewards scale with the user's placing.
"""

import logging
import math
from typing import List, Optional

from ..models import BonusTemplate, EligibilityContext
from ..validators import check_already_claimed
from .base import BonusHandler, HandlerDeps

logger = logging.getLogger(__name__)

DEFAULT_POSITION_MULTIPLIERS = {1: 1.0, 2: 0.6, 3: 0.4, 4: 0.2, 5: 0.15}
DEFAULT_POSITION_FALLBACK = 0.1

# Rank thresholds: the first threshold at or above the rank applies
DEFAULT_RANK_MULTIPLIERS = {1: 1.0, 2: 0.7, 3: 0.5, 4: 0.35, 5: 0.25, 10: 0.15, 20: 0.1, 50: 0.05}
DEFAULT_RANK_FALLBACK = 0.05


def _int_keys(mapping):
    return {int(k): v for k, v in mapping.items()}


async def validate_tournament(deps: HandlerDeps, template: BonusTemplate, context: EligibilityContext) -> Optional[str]:
    tournament_id = context.metadata.get("tournament_id")
    position = context.metadata.get("position")
    if not tournament_id:
        return "Tournament ID required"
    if not position or position < 1:
        return "Valid tournament position required"
    return await check_already_claimed(
        deps, context,
        {"type": "tournament", "metadata": {"tournament_id": tournament_id}},
        "Tournament bonus already claimed",
    )


def tournament_value(template: BonusTemplate, context: EligibilityContext) -> float:
    position = context.metadata.get("position") or 1
    multipliers = _int_keys(template.setting("position_multipliers") or DEFAULT_POSITION_MULTIPLIERS)
    return float(math.floor(template.value * multipliers.get(position, DEFAULT_POSITION_FALLBACK)))


async def validate_leaderboard(deps: HandlerDeps, template: BonusTemplate, context: EligibilityContext) -> Optional[str]:
    leaderboard_id = context.metadata.get("leaderboard_id")
    period = context.metadata.get("period")
    rank = context.metadata.get("rank")
    if not leaderboard_id or not period:
        return "Leaderboard ID and period required"
    if not rank or rank < 1:
        return "Valid leaderboard rank required"
    return await check_already_claimed(
        deps, context,
        {"type": "leaderboard", "metadata": {"leaderboard_id": leaderboard_id, "period": period}},
        "Leaderboard bonus already claimed for this period",
    )


def leaderboard_value(template: BonusTemplate, context: EligibilityContext) -> float:
    rank = context.metadata.get("rank") or 1
    multipliers = _int_keys(template.setting("rank_multipliers") or DEFAULT_RANK_MULTIPLIERS)
    multiplier = DEFAULT_RANK_FALLBACK
    for threshold in sorted(multipliers):
        if rank <= threshold:
            multiplier = multipliers[threshold]
            break
    return float(math.floor(template.value * multiplier))


def create_competition_handlers() -> List[BonusHandler]:
    return [
        BonusHandler(
            "tournament", "competition",
            validate_specific=validate_tournament,
            calculate_value=tournament_value,
            build_metadata=lambda t, c: {"metadata": {
                "tournament_id": c.metadata.get("tournament_id"),
                "tournament_name": c.metadata.get("tournament_name"),
                "position": c.metadata.get("position"),
            }},
            claim_key=lambda t, c: f"tournament:{c.metadata.get('tournament_id')}",
        ),
        BonusHandler(
            "leaderboard", "competition",
            validate_specific=validate_leaderboard,
            calculate_value=leaderboard_value,
            build_metadata=lambda t, c: {"metadata": {
                "leaderboard_id": c.metadata.get("leaderboard_id"),
                "leaderboard_name": c.metadata.get("leaderboard_name"),
                "period": c.metadata.get("period"),
                "rank": c.metadata.get("rank"),
            }},
            claim_key=lambda t, c: f"leaderboard:{c.metadata.get('leaderboard_id')}:{c.metadata.get('period')}",
        ),
    ]
