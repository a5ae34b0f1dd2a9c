"""
Achievement handlers

achievement, milestone, task_completion, challenge. Each is claimable once
per achievement/milestone/task/challenge identity.
"""

import logging
from typing import Any, Dict, List, Optional, Union

from ..models import BonusTemplate, EligibilityContext
from ..validators import check_already_claimed
from .base import BonusHandler, HandlerDeps, load_template

logger = logging.getLogger(__name__)


async def resolve_achievement_template(deps: HandlerDeps, context: EligibilityContext) -> Union[BonusTemplate, str]:
    """Achievement templates are tagged with the achievement code they reward"""
    if not context.achievement_code:
        return "Achievement code required"
    rows = await deps.templates.find_active({"type": "achievement", "tag": context.achievement_code})
    if not rows:
        return "No bonus for this achievement"
    return load_template(rows[0])


async def validate_achievement(deps: HandlerDeps, template: BonusTemplate, context: EligibilityContext) -> Optional[str]:
    return await check_already_claimed(
        deps, context,
        {"type": "achievement", "metadata": {"achievement_code": context.achievement_code}},
        "Achievement bonus already claimed",
    )


def _milestone(context: EligibilityContext) -> Dict[str, Any]:
    return {
        "milestone_type": context.metadata.get("milestone_type"),
        "milestone_value": context.metadata.get("milestone_value"),
    }


async def validate_milestone(deps: HandlerDeps, template: BonusTemplate, context: EligibilityContext) -> Optional[str]:
    milestone = _milestone(context)
    if not milestone["milestone_type"] or milestone["milestone_value"] is None:
        return "Milestone type and value required"
    return await check_already_claimed(
        deps, context, {"type": "milestone", "metadata": milestone}, "Milestone bonus already claimed"
    )


async def validate_task_completion(deps: HandlerDeps, template: BonusTemplate, context: EligibilityContext) -> Optional[str]:
    task_id = context.metadata.get("task_id")
    if not task_id:
        return "Task ID required"
    return await check_already_claimed(
        deps, context,
        {"type": "task_completion", "metadata": {"task_id": task_id}},
        "Task completion bonus already claimed",
    )


async def validate_challenge(deps: HandlerDeps, template: BonusTemplate, context: EligibilityContext) -> Optional[str]:
    challenge_id = context.metadata.get("challenge_id")
    if not challenge_id:
        return "Challenge ID required"
    return await check_already_claimed(
        deps, context,
        {"type": "challenge", "metadata": {"challenge_id": challenge_id}},
        "Challenge bonus already claimed",
    )


def create_achievement_handlers() -> List[BonusHandler]:
    return [
        BonusHandler(
            "achievement", "achievement",
            resolve_template=resolve_achievement_template,
            validate_specific=validate_achievement,
            build_metadata=lambda t, c: {"metadata": {"achievement_code": c.achievement_code}},
            claim_key=lambda t, c: f"achievement:{c.achievement_code}",
        ),
        BonusHandler(
            "milestone", "achievement",
            validate_specific=validate_milestone,
            build_metadata=lambda t, c: {"metadata": _milestone(c)},
            claim_key=lambda t, c: "milestone:{milestone_type}:{milestone_value}".format(**_milestone(c)),
        ),
        BonusHandler(
            "task_completion", "achievement",
            validate_specific=validate_task_completion,
            build_metadata=lambda t, c: {"metadata": {
                "task_id": c.metadata.get("task_id"),
                "task_name": c.metadata.get("task_name"),
            }},
            claim_key=lambda t, c: f"task_completion:{c.metadata.get('task_id')}",
        ),
        BonusHandler(
            "challenge", "achievement",
            validate_specific=validate_challenge,
            build_metadata=lambda t, c: {"metadata": {
                "challenge_id": c.metadata.get("challenge_id"),
                "challenge_name": c.metadata.get("challenge_name"),
            }},
            claim_key=lambda t, c: f"challenge:{c.metadata.get('challenge_id')}",
        ),
    ]
