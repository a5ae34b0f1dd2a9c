"""
Bonus Service Event Handlers

Handle upstream activity events that trigger automatic awards and turnover
accumulation.
"""

import logging
from typing import Any, Callable, Dict, Union

from pydantic import ValidationError

from ..models import ActionEvent, ActivityEvent, DepositEvent, PurchaseEvent

logger = logging.getLogger(__name__)


def extract_event_data(event_or_data: Union[Dict[str, Any], Any]) -> Dict[str, Any]:
    """
    Extract data from either an Event object or a raw dict.

    Handles both:
    - Event objects with .data attribute (from NATS)
    - Raw dict (for testing or direct calls)
    """
    if hasattr(event_or_data, 'data'):
        return event_or_data.data
    return event_or_data


# ============================================================================
# Event Handlers
# ============================================================================


async def handle_deposit_completed(event_or_data: Union[Dict[str, Any], Any], bonus_engine=None):
    """
    Handle payment.deposit.completed event

    Attempts first-deposit and reload awards.

    Event data:
        - user_id, tenant_id
        - amount, currency
        - transaction_id, wallet_id
        - is_first_deposit (optional)
    """
    try:
        event = DepositEvent.model_validate(extract_event_data(event_or_data))
    except ValidationError as e:
        logger.warning(f"Invalid payment.deposit.completed event: {e}")
        return

    logger.info(f"Processing payment.deposit.completed for user {event.user_id}")
    if bonus_engine:
        try:
            awarded = await bonus_engine.handle_deposit(event)
            logger.info(f"Deposit {event.transaction_id} awarded {len(awarded)} bonuses")
        except Exception as e:
            logger.error(f"Error handling payment.deposit.completed event: {e}")


async def handle_order_completed(event_or_data: Union[Dict[str, Any], Any], bonus_engine=None):
    """
    Handle order.completed event from order_service

    Event data:
        - user_id, tenant_id
        - amount, currency
        - transaction_id, wallet_id
        - is_first_purchase (optional)
    """
    try:
        event = PurchaseEvent.model_validate(extract_event_data(event_or_data))
    except ValidationError as e:
        logger.warning(f"Invalid order.completed event: {e}")
        return

    logger.info(f"Processing order.completed for user {event.user_id}")
    if bonus_engine:
        try:
            await bonus_engine.handle_purchase(event)
        except Exception as e:
            logger.error(f"Error handling order.completed event: {e}")


async def handle_action_completed(event_or_data: Union[Dict[str, Any], Any], bonus_engine=None):
    """Handle user.action.completed event"""
    try:
        event = ActionEvent.model_validate(extract_event_data(event_or_data))
    except ValidationError as e:
        logger.warning(f"Invalid user.action.completed event: {e}")
        return

    logger.info(f"Processing user.action.completed for user {event.user_id}")
    if bonus_engine:
        try:
            await bonus_engine.handle_action(event)
        except Exception as e:
            logger.error(f"Error handling user.action.completed event: {e}")


async def handle_activity_recorded(event_or_data: Union[Dict[str, Any], Any], bonus_engine=None):
    """
    Handle activity.recorded event

    Adds turnover to the user's running bonuses.

    Event data:
        - user_id, tenant_id
        - amount, currency, category
        - transaction_id
    """
    try:
        event = ActivityEvent.model_validate(extract_event_data(event_or_data))
    except ValidationError as e:
        logger.warning(f"Invalid activity.recorded event: {e}")
        return

    if event.amount <= 0:
        return

    logger.debug(f"Processing activity.recorded for user {event.user_id}: {event.amount} {event.category}")
    if bonus_engine:
        try:
            await bonus_engine.handle_activity(event)
        except Exception as e:
            logger.error(f"Error handling activity.recorded event: {e}")


# ============================================================================
# Event Handler Registry
# ============================================================================


def get_event_handlers(bonus_engine) -> Dict[str, Callable]:
    """
    Get all event handlers for bonus service.

    Returns a dict mapping event patterns to handler functions.
    """
    return {
        "payment.deposit.completed": lambda event: handle_deposit_completed(event, bonus_engine),
        "order.completed": lambda event: handle_order_completed(event, bonus_engine),
        "user.action.completed": lambda event: handle_action_completed(event, bonus_engine),
        "activity.recorded": lambda event: handle_activity_recorded(event, bonus_engine),
    }
