"""
Bonus Service Data Models

Bonus templates, awarded user bonuses, turnover transactions and the
per-evaluation eligibility context, plus request/response models for the API.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


# ====================
# Enumerations
# ====================

# Bonus types are open-ended: any registered handler type is valid.
# Built-in types live in handlers/ and are enumerated by the registry.
BONUS_TYPE_PATTERN = r"^[a-z][a-z0-9_]*$"


class BonusStatusEnum(str, Enum):
    """User bonus lifecycle states"""
    PENDING = "pending"
    ACTIVE = "active"
    IN_PROGRESS = "in_progress"
    REQUIREMENTS_MET = "requirements_met"
    CONVERTED = "converted"
    FORFEITED = "forfeited"
    EXPIRED = "expired"
    CANCELLED = "cancelled"


TERMINAL_STATUSES = {
    BonusStatusEnum.CONVERTED.value,
    BonusStatusEnum.FORFEITED.value,
    BonusStatusEnum.EXPIRED.value,
    BonusStatusEnum.CANCELLED.value,
}


class ValueTypeEnum(str, Enum):
    """How a template's value is computed"""
    FIXED = "fixed"
    PERCENTAGE = "percentage"
    TIERED = "tiered"
    DYNAMIC = "dynamic"


class KycTierEnum(str, Enum):
    """KYC tiers in ascending order of assurance"""
    NONE = "none"
    BASIC = "basic"
    STANDARD = "standard"
    ENHANCED = "enhanced"
    FULL = "full"
    PROFESSIONAL = "professional"


KYC_TIER_ORDER = [tier.value for tier in KycTierEnum]


class TransactionTypeEnum(str, Enum):
    """Bonus transaction types"""
    TURNOVER = "turnover"


# ====================
# Core Data Models
# ====================

def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class BonusTemplate(BaseModel):
    """
    Bonus template - administrator-defined configuration for a class of bonus.
    Read-only to the engine.
    """
    model_config = ConfigDict(use_enum_values=True, validate_default=True)

    id: str = Field(..., min_length=1, description="Template identifier")
    code: str = Field(..., min_length=1, description="Unique template code")
    name: str = Field("", description="Display name")
    type: str = Field(..., pattern=BONUS_TYPE_PATTERN, description="Bonus type (a registered handler type)")
    domain: Optional[str] = Field(None, description="Product domain (casino, sports, ecommerce, ...)")
    description: Optional[str] = None

    # Value model
    value_type: ValueTypeEnum = Field(ValueTypeEnum.FIXED, description="Value formula")
    value: float = Field(0, ge=0, description="Fixed amount, percentage or base value")
    currency: str = Field("USD", description="Bonus currency")
    supported_currencies: List[str] = Field(default_factory=list)
    max_value: Optional[float] = Field(None, ge=0, description="Cap on calculated value")
    min_deposit: Optional[float] = Field(None, ge=0)

    # Turnover model
    turnover_multiplier: float = Field(0, ge=0)
    activity_contributions: Optional[Dict[str, float]] = Field(
        None, description="Contribution percentage per activity category"
    )

    # Validity
    valid_from: Optional[datetime] = None
    valid_until: Optional[datetime] = None
    expiration_days: Optional[int] = Field(None, gt=0)

    # Usage limits
    max_uses_total: Optional[int] = Field(None, ge=0)
    max_uses_per_user: Optional[int] = Field(None, ge=0)
    current_uses_total: int = Field(0, ge=0)

    # Eligibility constraints
    eligible_tiers: List[str] = Field(default_factory=list)
    eligible_countries: List[str] = Field(default_factory=list)
    excluded_countries: List[str] = Field(default_factory=list)
    min_kyc_tier: Optional[KycTierEnum] = None
    min_account_age_days: Optional[int] = Field(None, ge=0)
    require_verification: bool = False
    eligible_categories: List[str] = Field(default_factory=list)

    # Selection bounds (selection/combo/bundle)
    min_selections: Optional[int] = Field(None, ge=0)
    max_selections: Optional[int] = Field(None, ge=0)
    min_selection_value: Optional[float] = None
    max_selection_value: Optional[float] = None
    min_total_value: Optional[float] = None
    max_total_value: Optional[float] = None

    # Combo settings
    combo_multiplier: Optional[float] = Field(None, gt=0)
    min_actions: Optional[int] = Field(None, ge=0)
    required_actions: List[str] = Field(default_factory=list)
    combo_multipliers: Optional[Dict[int, float]] = None

    cooldown_hours: Optional[float] = Field(None, ge=0)

    # Stacking
    stackable: bool = True
    excluded_bonus_types: List[str] = Field(default_factory=list)

    # Approval
    requires_approval: bool = False
    approval_threshold: Optional[float] = Field(None, ge=0)

    priority: int = 0
    is_active: bool = True
    tags: List[str] = Field(default_factory=list)

    # Type-specific knobs (min_streak_days, referral_tiers, position_multipliers, ...)
    settings: Dict[str, Any] = Field(default_factory=dict)

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def setting(self, key: str, default: Any = None) -> Any:
        value = self.settings.get(key)
        return default if value is None else value


class BonusHistoryEntry(BaseModel):
    """Append-only state change entry on a user bonus"""
    model_config = ConfigDict(use_enum_values=True, validate_default=True)

    timestamp: datetime = Field(default_factory=utc_now)
    action: str
    previous_status: Optional[BonusStatusEnum] = None
    new_status: BonusStatusEnum
    amount: Optional[float] = None
    turnover: Optional[float] = None
    triggered_by: str = "system"
    reason: Optional[str] = None


class UserBonus(BaseModel):
    """
    User bonus - a template awarded to one user, with its own monetary and
    lifecycle state. Mutated only by the engine, never deleted.
    """
    model_config = ConfigDict(use_enum_values=True, validate_default=True)

    bonus_id: str = Field(..., min_length=1)
    user_id: str = Field(..., min_length=1)
    tenant_id: str = Field(..., min_length=1)
    template_id: str
    template_code: str
    type: str = Field(..., pattern=BONUS_TYPE_PATTERN)
    domain: Optional[str] = None

    status: BonusStatusEnum = BonusStatusEnum.ACTIVE
    currency: str = "USD"
    original_value: float = Field(0, ge=0)
    current_value: float = Field(0, ge=0)

    turnover_required: float = Field(0, ge=0)
    turnover_progress: float = Field(0, ge=0)

    wallet_id: Optional[str] = None
    wallet_category: Optional[str] = None
    trigger_transaction_id: Optional[str] = None
    deposit_id: Optional[str] = None
    referrer_id: Optional[str] = None
    referee_id: Optional[str] = None
    claim_key: Optional[str] = None

    qualified_at: Optional[datetime] = None
    claimed_at: Optional[datetime] = None
    activated_at: Optional[datetime] = None
    requirements_met_at: Optional[datetime] = None
    converted_at: Optional[datetime] = None
    forfeited_at: Optional[datetime] = None
    expired_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    forfeit_reason: Optional[str] = None

    history: List[BonusHistoryEntry] = Field(default_factory=list)
    metadata: Dict[str, Any] = Field(default_factory=dict)

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class BonusTransaction(BaseModel):
    """Append-only audit record of a turnover contribution"""
    model_config = ConfigDict(use_enum_values=True, validate_default=True)

    transaction_id: str
    bonus_id: str
    user_id: str
    tenant_id: str
    type: TransactionTypeEnum = TransactionTypeEnum.TURNOVER
    currency: str = "USD"
    amount: float
    balance_before: float
    balance_after: float
    turnover_before: float
    turnover_after: float
    turnover_contribution: float
    contribution_rate: float
    related_transaction_id: Optional[str] = None
    activity_category: Optional[str] = None
    created_at: datetime = Field(default_factory=utc_now)


class Selection(BaseModel):
    """One selection inside a selection/combo/bundle request"""
    id: Optional[str] = None
    value: float


class EligibilityContext(BaseModel):
    """Per-evaluation input. Constructed fresh per call, never persisted."""
    model_config = ConfigDict(use_enum_values=True, validate_default=True)

    user_id: str = Field(..., min_length=1)
    tenant_id: str = Field(..., min_length=1)

    currency: Optional[str] = None
    user_tier: Optional[str] = None
    country: Optional[str] = None
    kyc_tier: Optional[KycTierEnum] = None
    is_verified: Optional[bool] = None
    account_age_days: Optional[int] = Field(None, ge=0)

    deposit_amount: Optional[float] = Field(None, ge=0)
    activity_amount: Optional[float] = Field(None, ge=0)
    loss_amount: Optional[float] = Field(None, ge=0)
    activity_category: Optional[str] = None

    is_first_deposit: Optional[bool] = None
    is_first_purchase: Optional[bool] = None

    selections: Optional[List[Selection]] = None
    selection_count: Optional[int] = Field(None, ge=0)
    selections_total: Optional[float] = None
    consecutive_days: Optional[int] = Field(None, ge=0)

    wallet_id: Optional[str] = None
    transaction_id: Optional[str] = None
    deposit_id: Optional[str] = None
    referrer_id: Optional[str] = None
    referee_id: Optional[str] = None
    promo_code: Optional[str] = None
    achievement_code: Optional[str] = None

    requested_by: Optional[str] = None
    reason: Optional[str] = None
    current_date: Optional[datetime] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @field_validator('user_id', 'tenant_id')
    @classmethod
    def validate_identity(cls, v):
        if not v or not v.strip():
            raise ValueError("identity fields cannot be empty")
        return v.strip()

    def now(self) -> datetime:
        return as_utc(self.current_date) if self.current_date else utc_now()


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC"""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# ====================
# Upstream Activity Events
# ====================

class UpstreamEvent(BaseModel):
    """Fields shared by every upstream activity event"""
    user_id: str = Field(..., min_length=1)
    tenant_id: str = Field("default", min_length=1)
    amount: float = Field(0, ge=0)
    currency: Optional[str] = None
    transaction_id: Optional[str] = None
    wallet_id: Optional[str] = None


class DepositEvent(UpstreamEvent):
    """payment.deposit.completed"""
    is_first_deposit: Optional[bool] = None


class PurchaseEvent(UpstreamEvent):
    """order.completed"""
    is_first_purchase: Optional[bool] = None


class ActionEvent(UpstreamEvent):
    """user.action.completed"""
    action: Optional[str] = None


class ActivityEvent(UpstreamEvent):
    """activity.recorded; category selects the turnover contribution rate"""
    category: Optional[str] = None


# ====================
# Results
# ====================

class EligibilityResult(BaseModel):
    """Outcome of an eligibility check; ineligibility is a value, not an error"""
    eligible: bool
    reason: Optional[str] = None
    reasons: List[str] = Field(default_factory=list)
    template: Optional[BonusTemplate] = None

    @classmethod
    def ok(cls, template: Optional[BonusTemplate] = None) -> "EligibilityResult":
        return cls(eligible=True, template=template)

    @classmethod
    def denied(cls, *reasons: str, template: Optional[BonusTemplate] = None) -> "EligibilityResult":
        return cls(eligible=False, reason="; ".join(reasons), reasons=list(reasons), template=template)


class AwardResult(BaseModel):
    """Outcome of an award attempt"""
    success: bool
    bonus: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    error_code: Optional[str] = None
    pending_token: Optional[str] = None


class BonusCalculation(BaseModel):
    """Value, turnover and expiry computed for an award"""
    bonus_value: float
    turnover_required: float
    expires_at: datetime


# ====================
# Request Models
# ====================

class CheckEligibilityRequest(BaseModel):
    """Check eligibility for a bonus type"""
    bonus_type: str = Field(..., pattern=BONUS_TYPE_PATTERN)
    context: EligibilityContext


class AwardBonusRequest(BaseModel):
    """Award a bonus of a type"""
    bonus_type: str = Field(..., pattern=BONUS_TYPE_PATTERN)
    context: EligibilityContext


class FindEligibleRequest(BaseModel):
    """List every template the context qualifies for"""
    context: EligibilityContext


class BonusActionRequest(BaseModel):
    """Convert or cancel a bonus on behalf of its owner"""
    user_id: str = Field(..., min_length=1)

    @field_validator('user_id')
    @classmethod
    def validate_user_id(cls, v):
        if not v or not v.strip():
            raise ValueError("user_id cannot be empty")
        return v.strip()


class ForfeitBonusRequest(BonusActionRequest):
    """Forfeit a bonus"""
    reason: str = Field("Forfeited", min_length=1, max_length=500)


class ApprovalDecisionRequest(BaseModel):
    """Approve or reject a pending bonus"""
    actor: str = Field(..., min_length=1)
    reason: Optional[str] = Field(None, max_length=500)


# ====================
# Response Models
# ====================

class EligibilityResponse(BaseModel):
    eligible: bool
    reason: Optional[str] = None
    reasons: List[str] = Field(default_factory=list)
    template_id: Optional[str] = None
    template_code: Optional[str] = None


class EligibleTemplateResponse(BaseModel):
    bonus_type: str
    template_id: str
    template_code: str
    name: str
    priority: int


class AwardResponse(BaseModel):
    success: bool
    bonus: Optional[UserBonus] = None
    error: Optional[str] = None
    error_code: Optional[str] = None
    pending_token: Optional[str] = None


class UserBonusListResponse(BaseModel):
    bonuses: List[UserBonus]
    total: int


class BonusTransactionListResponse(BaseModel):
    bonus_id: str
    transactions: List[BonusTransaction]
    total: int


class BonusTypesResponse(BaseModel):
    types: List[str]
    categories: Dict[str, List[str]]


class HealthCheckResponse(BaseModel):
    status: str
    service: str
    port: int
    version: str
    timestamp: str
    dependencies: Dict[str, str] = Field(default_factory=dict)
