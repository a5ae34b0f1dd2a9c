"""
Promotional handlers

special_event, promo_code, custom
"""

import logging
from typing import List, Optional, Union

from ..models import BonusTemplate, EligibilityContext, as_utc
from ..validators import check_already_claimed
from .base import BonusHandler, HandlerDeps, load_template

logger = logging.getLogger(__name__)


async def validate_special_event(deps: HandlerDeps, template: BonusTemplate, context: EligibilityContext) -> Optional[str]:
    now = context.now()
    if (template.valid_from and as_utc(template.valid_from) > now) or (
        template.valid_until and as_utc(template.valid_until) < now
    ):
        return "Special event is not active"
    return None


def _promo_code(context: EligibilityContext) -> Optional[str]:
    code = context.promo_code or context.metadata.get("promo_code")
    return code.upper() if code else None


async def resolve_promo_template(deps: HandlerDeps, context: EligibilityContext) -> Union[BonusTemplate, str]:
    """Promo templates are looked up by their code, case-insensitively"""
    code = _promo_code(context)
    if not code:
        return "Promo code required"
    row = await deps.templates.find_by_code(code)
    if not row or row.get("type") != "promo_code" or not row.get("is_active"):
        return "Invalid or expired promo code"
    template = load_template(row)
    if isinstance(template, str):
        return template
    now = context.now()
    if (template.valid_from and as_utc(template.valid_from) > now) or (
        template.valid_until and as_utc(template.valid_until) < now
    ):
        return "Invalid or expired promo code"
    return template


async def validate_promo_code(deps: HandlerDeps, template: BonusTemplate, context: EligibilityContext) -> Optional[str]:
    return await check_already_claimed(
        deps, context, {"template_code": _promo_code(context)}, "Promo code already used"
    )


async def validate_custom(deps: HandlerDeps, template: BonusTemplate, context: EligibilityContext) -> Optional[str]:
    if template.max_uses_per_user:
        count = await deps.user_bonuses.count_by_template(context.user_id, template.id)
        if count >= template.max_uses_per_user:
            return f"Maximum uses ({template.max_uses_per_user}) reached for this user"
    return None


def create_promotional_handlers() -> List[BonusHandler]:
    return [
        BonusHandler("special_event", "promotional", validate_specific=validate_special_event),
        BonusHandler(
            "promo_code", "promotional",
            resolve_template=resolve_promo_template,
            validate_specific=validate_promo_code,
            build_metadata=lambda t, c: {"metadata": {"promo_code": _promo_code(c)}},
            claim_key=lambda t, c: f"promo_code:{_promo_code(c)}",
        ),
        BonusHandler(
            "custom", "promotional",
            validate_specific=validate_custom,
            build_metadata=lambda t, c: {"metadata": dict(c.metadata)},
        ),
    ]
