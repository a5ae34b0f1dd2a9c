"""
Selection handlers

selection, combo, bundle
"""

import logging
import math
from typing import Any, Dict, List, Optional

from ..calculation import calculate_value, floor_capped
from ..models import BonusTemplate, EligibilityContext
from ..validators import check_already_claimed
from .base import BonusHandler, HandlerDeps

logger = logging.getLogger(__name__)

DEFAULT_COMBO_MULTIPLIERS = {2: 1.0, 3: 1.5, 4: 2.0, 5: 3.0}


async def validate_selection(deps: HandlerDeps, template: BonusTemplate, context: EligibilityContext) -> Optional[str]:
    selection_id = context.metadata.get("selection_id")
    if not selection_id:
        return "Selection ID required"
    return await check_already_claimed(
        deps, context,
        {"type": "selection", "metadata": {"selection_id": selection_id}},
        "Selection already made for this offer",
    )


def _combo_actions(context: EligibilityContext) -> List[str]:
    return list(context.metadata.get("combo_actions") or [])


async def validate_combo(deps: HandlerDeps, template: BonusTemplate, context: EligibilityContext) -> Optional[str]:
    actions = _combo_actions(context)
    if not actions:
        return "Combo actions required"
    missing = [a for a in template.required_actions if a not in actions]
    if missing:
        return f"Missing actions: {', '.join(missing)}"
    return None


def combo_value(template: BonusTemplate, context: EligibilityContext) -> float:
    multipliers = template.combo_multipliers or DEFAULT_COMBO_MULTIPLIERS
    multiplier = multipliers.get(len(_combo_actions(context)), 1.0)
    return float(math.floor(template.value * multiplier))


def combo_metadata(template: BonusTemplate, context: EligibilityContext) -> Dict[str, Any]:
    actions = _combo_actions(context)
    return {"metadata": {"combo_actions": actions, "combo_length": len(actions)}}


def _bundle_amount(context: EligibilityContext) -> float:
    return context.metadata.get("bundle_amount") or context.deposit_amount or 0


async def validate_bundle(deps: HandlerDeps, template: BonusTemplate, context: EligibilityContext) -> Optional[str]:
    if not context.metadata.get("bundle_id"):
        return "Bundle ID required"
    min_amount = template.setting("min_bundle_amount") or template.min_deposit or 0
    if _bundle_amount(context) < min_amount:
        return f"Minimum bundle purchase of {min_amount} required"
    return None


def bundle_value(template: BonusTemplate, context: EligibilityContext) -> float:
    if template.value_type == "percentage":
        return floor_capped(_bundle_amount(context) * template.value / 100, template.max_value)
    return calculate_value(template, context)


def create_selection_handlers() -> List[BonusHandler]:
    return [
        BonusHandler(
            "selection", "selection",
            validate_specific=validate_selection,
            build_metadata=lambda t, c: {"metadata": {
                "selection_id": c.metadata.get("selection_id"),
                "selection_name": c.metadata.get("selection_name"),
            }},
            claim_key=lambda t, c: f"selection:{t.id}:{c.metadata.get('selection_id')}",
        ),
        BonusHandler(
            "combo", "selection",
            validate_specific=validate_combo,
            calculate_value=combo_value,
            build_metadata=combo_metadata,
        ),
        BonusHandler(
            "bundle", "selection",
            validate_specific=validate_bundle,
            calculate_value=bundle_value,
            build_metadata=lambda t, c: {"metadata": {
                "bundle_id": c.metadata.get("bundle_id"),
                "bundle_name": c.metadata.get("bundle_name"),
                "bundle_amount": c.metadata.get("bundle_amount"),
            }},
        ),
    ]
