"""
Bonus Service Event Models

Event data models for bonus lifecycle events.
"""

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..models import utc_now

# ============================================================================
# Bonus Lifecycle Event Models
# ============================================================================


class BonusAwardedEventData(BaseModel):
    """
    Event: bonus.awarded
    Triggered when a bonus is created for a user
    """

    bonus_id: str = Field(..., description="Awarded bonus ID")
    tenant_id: str = Field(..., description="Tenant")
    user_id: str = Field(..., description="User receiving the bonus")
    bonus_type: str = Field(..., description="Bonus type")
    template_id: str = Field(..., description="Source template")
    template_code: str = Field(..., description="Source template code")
    wallet_id: Optional[str] = Field(None, description="Wallet to credit")
    amount: float = Field(..., description="Awarded value")
    currency: str = Field(..., description="Bonus currency")
    turnover_required: float = Field(0, description="Turnover required before conversion")
    expires_at: Optional[datetime] = Field(None, description="Bonus expiry")
    timestamp: datetime = Field(default_factory=utc_now)

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "bonus_id": "bonus_3f1c9a7b2e4d5f6a7b8c",
            "tenant_id": "tenant_default",
            "user_id": "usr_xyz789",
            "bonus_type": "first_deposit",
            "template_id": "tpl_welcome_100",
            "template_code": "WELCOME100",
            "wallet_id": "wal_abc123",
            "amount": 100,
            "currency": "USD",
            "turnover_required": 3000,
            "expires_at": "2026-02-01T00:00:00Z",
            "timestamp": "2026-01-02T10:00:00Z",
        }
    })


class BonusRequirementsMetEventData(BaseModel):
    """
    Event: bonus.requirements_met
    Triggered once, when turnover progress first reaches the requirement
    """

    bonus_id: str
    tenant_id: str
    user_id: str
    bonus_type: str
    wallet_id: Optional[str] = None
    value: float
    currency: str
    turnover_progress: float
    turnover_required: float
    timestamp: datetime = Field(default_factory=utc_now)


class BonusConvertedEventData(BaseModel):
    """
    Event: bonus.converted
    Triggered after the ledger conversion transfer succeeded and the bonus was marked converted
    """

    bonus_id: str
    tenant_id: str
    user_id: str
    bonus_type: str
    wallet_id: Optional[str] = Field(None, description="Wallet the value is released to")
    amount: float
    currency: str
    timestamp: datetime = Field(default_factory=utc_now)


class BonusForfeitedEventData(BaseModel):
    """
    Event: bonus.forfeited
    Triggered after the ledger forfeit transfer succeeded and the bonus was zeroed
    """

    bonus_id: str
    tenant_id: str
    user_id: str
    bonus_type: str
    wallet_id: Optional[str] = Field(None, description="Wallet to debit")
    forfeited_value: float = Field(..., description="Value before forfeiture")
    currency: str
    reason: str
    timestamp: datetime = Field(default_factory=utc_now)


class BonusExpiredEventData(BonusForfeitedEventData):
    """
    Event: bonus.expired
    Same payload as bonus.forfeited, emitted by the expiry sweep
    """
    reason: str = "Bonus expired"


class BonusCancelledEventData(BaseModel):
    """
    Event: bonus.cancelled
    Triggered when the owner cancels an unused bonus
    """

    bonus_id: str
    tenant_id: str
    user_id: str
    bonus_type: str
    wallet_id: Optional[str] = None
    cancelled_value: float
    currency: str
    timestamp: datetime = Field(default_factory=utc_now)


class BonusApprovalRequestedEventData(BaseModel):
    """
    Event: bonus.approval_requested
    Triggered when an award is parked for manual approval
    """

    token: str = Field(..., description="Pending approval token")
    tenant_id: str
    user_id: str
    bonus_type: str
    template_id: str
    template_code: str
    value: float = Field(..., description="Calculated value awaiting approval")
    currency: str
    requested_by: Optional[str] = None
    reason: Optional[str] = None
    timestamp: datetime = Field(default_factory=utc_now)


# ============================================================================
# Helper Functions
# ============================================================================


def _common(bonus: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "bonus_id": bonus["bonus_id"],
        "tenant_id": bonus["tenant_id"],
        "user_id": bonus["user_id"],
        "bonus_type": bonus["type"],
        "wallet_id": bonus.get("wallet_id"),
        "currency": bonus["currency"],
    }


def create_bonus_awarded_event_data(bonus: Dict[str, Any]) -> BonusAwardedEventData:
    return BonusAwardedEventData(
        **_common(bonus),
        template_id=bonus["template_id"],
        template_code=bonus["template_code"],
        amount=bonus["original_value"],
        turnover_required=bonus.get("turnover_required", 0),
        expires_at=bonus.get("expires_at"),
    )


def create_requirements_met_event_data(
    bonus: Dict[str, Any],
    turnover_progress: float,
) -> BonusRequirementsMetEventData:
    return BonusRequirementsMetEventData(
        **_common(bonus),
        value=bonus["current_value"],
        turnover_progress=turnover_progress,
        turnover_required=bonus["turnover_required"],
    )


def create_bonus_converted_event_data(bonus: Dict[str, Any]) -> BonusConvertedEventData:
    return BonusConvertedEventData(**_common(bonus), amount=bonus["current_value"])


def create_bonus_forfeited_event_data(bonus: Dict[str, Any], reason: str) -> BonusForfeitedEventData:
    return BonusForfeitedEventData(**_common(bonus), forfeited_value=bonus["current_value"], reason=reason)


def create_bonus_expired_event_data(bonus: Dict[str, Any]) -> BonusExpiredEventData:
    """forfeited_value carries the value the bonus held before expiry"""
    return BonusExpiredEventData(**_common(bonus), forfeited_value=bonus["current_value"])


def create_bonus_cancelled_event_data(bonus: Dict[str, Any]) -> BonusCancelledEventData:
    return BonusCancelledEventData(**_common(bonus), cancelled_value=bonus["current_value"])


def create_approval_requested_event_data(
    token: str,
    tenant_id: str,
    user_id: str,
    bonus_type: str,
    template_id: str,
    template_code: str,
    value: float,
    currency: str,
    requested_by: Optional[str] = None,
    reason: Optional[str] = None,
) -> BonusApprovalRequestedEventData:
    return BonusApprovalRequestedEventData(
        token=token,
        tenant_id=tenant_id,
        user_id=user_id,
        bonus_type=bonus_type,
        template_id=template_id,
        template_code=template_code,
        value=value,
        currency=currency,
        requested_by=requested_by,
        reason=reason,
    )
