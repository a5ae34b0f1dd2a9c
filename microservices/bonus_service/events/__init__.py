"""
Bonus Service Event Package

Event-driven architecture for bonus service:
- Publishing: bonus lifecycle events (awarded, requirements_met, converted, ...)
- Subscription: deposit, order, action and activity events for automatic awards and turnover
"""

from .models import (
    BonusAwardedEventData,
    BonusRequirementsMetEventData,
    BonusConvertedEventData,
    BonusForfeitedEventData,
    BonusExpiredEventData,
    BonusCancelledEventData,
    BonusApprovalRequestedEventData,
)

from .publishers import (
    publish_bonus_awarded,
    publish_requirements_met,
    publish_bonus_converted,
    publish_bonus_forfeited,
    publish_bonus_expired,
    publish_bonus_cancelled,
    publish_approval_requested,
)

from .handlers import get_event_handlers

__all__ = [
    # Event models
    "BonusAwardedEventData",
    "BonusRequirementsMetEventData",
    "BonusConvertedEventData",
    "BonusForfeitedEventData",
    "BonusExpiredEventData",
    "BonusCancelledEventData",
    "BonusApprovalRequestedEventData",
    # Publishers
    "publish_bonus_awarded",
    "publish_requirements_met",
    "publish_bonus_converted",
    "publish_bonus_forfeited",
    "publish_bonus_expired",
    "publish_bonus_cancelled",
    "publish_approval_requested",
    # Handlers
    "get_event_handlers",
]
