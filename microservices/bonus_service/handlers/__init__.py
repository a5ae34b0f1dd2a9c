"""
Bonus handlers, one per bonus type, grouped by family.
"""

from typing import List

from .achievement import create_achievement_handlers
from .activity import create_activity_handlers
from .base import BonusHandler, HandlerDeps, load_template, requires_approval, resolve_template_by_type
from .competition import create_competition_handlers
from .credits import TRIAL_EXPIRATION_DAYS, create_credit_handlers
from .deposit import create_deposit_handlers
from .loyalty import create_loyalty_handlers
from .promotional import create_promotional_handlers
from .referral import create_referral_handlers
from .selection import create_selection_handlers


def create_builtin_handlers(trial_expiration_days: int = TRIAL_EXPIRATION_DAYS) -> List[BonusHandler]:
    """Every built-in handler, in registration order"""
    return [
        *create_deposit_handlers(),
        *create_referral_handlers(),
        *create_activity_handlers(),
        *create_credit_handlers(trial_expiration_days),
        *create_loyalty_handlers(),
        *create_achievement_handlers(),
        *create_competition_handlers(),
        *create_selection_handlers(),
        *create_promotional_handlers(),
    ]


__all__ = [
    "BonusHandler",
    "HandlerDeps",
    "load_template",
    "requires_approval",
    "resolve_template_by_type",
    "create_builtin_handlers",
]
