"""
Bonus Service Event Publishers

Publish events for the bonus lifecycle. Publishing is best effort: the state
change an event describes is already committed, so failures are logged and
never raised.
"""

import logging
from typing import Any, Dict, Optional

from core.nats_client import Event, EventType, ServiceSource

from .models import (
    create_approval_requested_event_data,
    create_bonus_awarded_event_data,
    create_bonus_cancelled_event_data,
    create_bonus_converted_event_data,
    create_bonus_expired_event_data,
    create_bonus_forfeited_event_data,
    create_requirements_met_event_data,
)

logger = logging.getLogger(__name__)


async def _publish(event_bus, event_type: EventType, data: Dict[str, Any], label: str) -> bool:
    if event_bus is None:
        logger.debug(f"No event bus configured, skipping {event_type.value} for {label}")
        return False
    try:
        event = Event(
            event_type=event_type,
            source=ServiceSource.BONUS_SERVICE,
            data=data,
        )
        published = await event_bus.publish_event(event)
        logger.info(f"Published {event_type.value} for {label}")
        return bool(published)
    except Exception as e:
        logger.error(f"Failed to publish {event_type.value} for {label}: {e}")
        return False


# ============================================================================
# Bonus Lifecycle Event Publishers
# ============================================================================


async def publish_bonus_awarded(event_bus, bonus: Dict[str, Any]) -> bool:
    """
    Publish bonus.awarded event

    Args:
        event_bus: NATS event bus instance
        bonus: Persisted user bonus record
    """
    try:
        event_data = create_bonus_awarded_event_data(bonus)
    except Exception as e:
        logger.error(f"Failed to build bonus.awarded payload: {e}")
        return False
    return await _publish(
        event_bus, EventType.BONUS_AWARDED, event_data.model_dump(mode='json'), bonus.get("bonus_id")
    )


async def publish_requirements_met(event_bus, bonus: Dict[str, Any], turnover_progress: float) -> bool:
    """
    Publish bonus.requirements_met event

    Args:
        event_bus: NATS event bus instance
        bonus: User bonus record as read before the crossing update
        turnover_progress: Progress after the crossing contribution
    """
    try:
        event_data = create_requirements_met_event_data(bonus, turnover_progress)
    except Exception as e:
        logger.error(f"Failed to build bonus.requirements_met payload: {e}")
        return False
    return await _publish(
        event_bus, EventType.BONUS_REQUIREMENTS_MET, event_data.model_dump(mode='json'), bonus.get("bonus_id")
    )


async def publish_bonus_converted(event_bus, bonus: Dict[str, Any]) -> bool:
    try:
        event_data = create_bonus_converted_event_data(bonus)
    except Exception as e:
        logger.error(f"Failed to build bonus.converted payload: {e}")
        return False
    return await _publish(
        event_bus, EventType.BONUS_CONVERTED, event_data.model_dump(mode='json'), bonus.get("bonus_id")
    )


async def publish_bonus_forfeited(event_bus, bonus: Dict[str, Any], reason: str) -> bool:
    """
    Publish bonus.forfeited event

    Args:
        bonus: User bonus record holding the pre-forfeit value
        reason: Forfeit reason
    """
    try:
        event_data = create_bonus_forfeited_event_data(bonus, reason)
    except Exception as e:
        logger.error(f"Failed to build bonus.forfeited payload: {e}")
        return False
    return await _publish(
        event_bus, EventType.BONUS_FORFEITED, event_data.model_dump(mode='json'), bonus.get("bonus_id")
    )


async def publish_bonus_expired(event_bus, bonus: Dict[str, Any]) -> bool:
    try:
        event_data = create_bonus_expired_event_data(bonus)
    except Exception as e:
        logger.error(f"Failed to build bonus.expired payload: {e}")
        return False
    return await _publish(
        event_bus, EventType.BONUS_EXPIRED, event_data.model_dump(mode='json'), bonus.get("bonus_id")
    )


async def publish_bonus_cancelled(event_bus, bonus: Dict[str, Any]) -> bool:
    try:
        event_data = create_bonus_cancelled_event_data(bonus)
    except Exception as e:
        logger.error(f"Failed to build bonus.cancelled payload: {e}")
        return False
    return await _publish(
        event_bus, EventType.BONUS_CANCELLED, event_data.model_dump(mode='json'), bonus.get("bonus_id")
    )


async def publish_approval_requested(
    event_bus,
    token: str,
    template,
    context,
    value: float,
) -> bool:
    """
    Publish bonus.approval_requested event

    Args:
        event_bus: NATS event bus instance
        token: Pending approval token
        template: BonusTemplate awaiting approval
        context: EligibilityContext of the parked award
        value: Calculated bonus value
    """
    try:
        event_data = create_approval_requested_event_data(
            token=token,
            tenant_id=context.tenant_id,
            user_id=context.user_id,
            bonus_type=template.type,
            template_id=template.id,
            template_code=template.code,
            value=value,
            currency=template.currency,
            requested_by=context.requested_by,
            reason=context.reason,
        )
    except Exception as e:
        logger.error(f"Failed to build bonus.approval_requested payload: {e}")
        return False
    return await _publish(
        event_bus, EventType.BONUS_APPROVAL_REQUESTED, event_data.model_dump(mode='json'), f"approval {token}"
    )
