"""
Bonus Service - Data Contract

Test data factory and request builders for bonus_service.
Zero hardcoded data - all test data generated through factory methods.

This module defines:
1. BonusTestDataFactory - Template, context, bonus and event generation
2. TemplateBuilder - Fluent API for building bonus templates
"""

import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from microservices.bonus_service.models import (
    ActivityEvent,
    DepositEvent,
    EligibilityContext,
    Selection,
)


# ============================================================================
# Test Data Factory
# ============================================================================


class BonusTestDataFactory:
    """
    Test data factory for bonus_service.

    Templates and user bonuses are plain dicts, the shape the stores return.
    """

    # ========================================================================
    # Identifiers
    # ========================================================================

    @staticmethod
    def make_user_id() -> str:
        return f"user_test_{uuid.uuid4().hex[:12]}"

    @staticmethod
    def make_tenant_id() -> str:
        return f"tenant_test_{uuid.uuid4().hex[:8]}"

    @staticmethod
    def make_template_id() -> str:
        return f"tpl_test_{uuid.uuid4().hex[:12]}"

    @staticmethod
    def make_bonus_id() -> str:
        return f"bonus_test_{uuid.uuid4().hex[:12]}"

    @staticmethod
    def make_transaction_id() -> str:
        return f"txn_test_{uuid.uuid4().hex[:12]}"

    @staticmethod
    def make_code(prefix: str = "BONUS") -> str:
        return f"{prefix}_{uuid.uuid4().hex[:6].upper()}"

    @staticmethod
    def now() -> datetime:
        return datetime.now(timezone.utc)

    # ========================================================================
    # Templates
    # ========================================================================

    @classmethod
    def make_template(cls, bonus_type: str = "reload", **overrides) -> Dict[str, Any]:
        """Active fixed-value template with no restrictions unless overridden"""
        template = {
            "id": cls.make_template_id(),
            "code": cls.make_code(bonus_type.upper()),
            "name": f"Test {bonus_type} bonus",
            "type": bonus_type,
            "value_type": "fixed",
            "value": 50,
            "currency": "USD",
            "turnover_multiplier": 0,
            "priority": 0,
            "is_active": True,
            "current_uses_total": 0,
            "tags": [],
            "settings": {},
        }
        template.update(overrides)
        return template

    @classmethod
    def make_percentage_template(
        cls,
        bonus_type: str = "first_deposit",
        percent: float = 10,
        max_value: Optional[float] = None,
        **overrides,
    ) -> Dict[str, Any]:
        return cls.make_template(
            bonus_type,
            value_type="percentage",
            value=percent,
            max_value=max_value,
            **overrides,
        )

    @classmethod
    def make_turnover_template(
        cls,
        bonus_type: str = "reload",
        value: float = 10,
        multiplier: float = 10,
        contributions: Optional[Dict[str, float]] = None,
        **overrides,
    ) -> Dict[str, Any]:
        return cls.make_template(
            bonus_type,
            value=value,
            turnover_multiplier=multiplier,
            activity_contributions=contributions,
            **overrides,
        )

    # ========================================================================
    # Contexts
    # ========================================================================

    @classmethod
    def make_context(cls, user_id: Optional[str] = None, **overrides) -> EligibilityContext:
        data = {
            "user_id": user_id or cls.make_user_id(),
            "tenant_id": overrides.pop("tenant_id", "tenant_test"),
        }
        data.update(overrides)
        return EligibilityContext(**data)

    @classmethod
    def make_deposit_context(cls, amount: float = 100, user_id: Optional[str] = None, **overrides) -> EligibilityContext:
        overrides.setdefault("deposit_id", cls.make_transaction_id())
        return cls.make_context(user_id=user_id, deposit_amount=amount, **overrides)

    @staticmethod
    def make_selections(values: List[float]) -> List[Selection]:
        return [Selection(id=f"sel_{index}", value=value) for index, value in enumerate(values)]

    # ========================================================================
    # User Bonuses
    # ========================================================================

    @classmethod
    def make_user_bonus(
        cls,
        user_id: Optional[str] = None,
        template: Optional[Dict[str, Any]] = None,
        **overrides,
    ) -> Dict[str, Any]:
        template = template or cls.make_template()
        now = cls.now()
        bonus = {
            "bonus_id": cls.make_bonus_id(),
            "user_id": user_id or cls.make_user_id(),
            "tenant_id": "tenant_test",
            "template_id": template["id"],
            "template_code": template["code"],
            "type": template["type"],
            "domain": None,
            "status": "active",
            "currency": template.get("currency", "USD"),
            "original_value": 100.0,
            "current_value": 100.0,
            "turnover_required": 0.0,
            "turnover_progress": 0.0,
            "wallet_id": None,
            "claim_key": None,
            "claimed_at": now,
            "activated_at": now,
            "expires_at": now + timedelta(days=30),
            "history": [],
            "metadata": {},
            "created_at": now,
            "updated_at": now,
        }
        bonus.update(overrides)
        return bonus

    @classmethod
    def make_expired_bonus(cls, user_id: Optional[str] = None, **overrides) -> Dict[str, Any]:
        overrides.setdefault("expires_at", cls.now() - timedelta(hours=1))
        return cls.make_user_bonus(user_id=user_id, **overrides)

    @classmethod
    def make_bonus_transaction(cls, bonus: Dict[str, Any], contribution: float, **overrides) -> Dict[str, Any]:
        """Turnover record against an existing user bonus"""
        progress = bonus.get("turnover_progress", 0.0)
        record = {
            "transaction_id": f"btx_{uuid.uuid4().hex[:16]}",
            "bonus_id": bonus["bonus_id"],
            "user_id": bonus["user_id"],
            "tenant_id": bonus["tenant_id"],
            "type": "turnover",
            "currency": bonus.get("currency", "USD"),
            "amount": contribution,
            "balance_before": bonus["current_value"],
            "balance_after": bonus["current_value"],
            "turnover_before": progress,
            "turnover_after": progress + contribution,
            "turnover_contribution": contribution,
            "contribution_rate": 1.0,
            "related_transaction_id": cls.make_transaction_id(),
            "created_at": cls.now(),
        }
        record.update(overrides)
        return record

    # ========================================================================
    # Upstream Events
    # ========================================================================

    @classmethod
    def make_activity_event(
        cls,
        user_id: str,
        amount: float,
        category: Optional[str] = None,
        **overrides,
    ) -> ActivityEvent:
        return ActivityEvent(
            user_id=user_id,
            tenant_id=overrides.pop("tenant_id", "tenant_test"),
            amount=amount,
            category=category,
            transaction_id=overrides.pop("transaction_id", cls.make_transaction_id()),
            **overrides,
        )

    @classmethod
    def make_deposit_event(cls, user_id: str, amount: float, **overrides) -> DepositEvent:
        return DepositEvent(
            user_id=user_id,
            tenant_id=overrides.pop("tenant_id", "tenant_test"),
            amount=amount,
            transaction_id=overrides.pop("transaction_id", cls.make_transaction_id()),
            **overrides,
        )

    @classmethod
    def make_event_payload(cls, user_id: str, amount: float, **data) -> Dict[str, Any]:
        """Event data as carried by an upstream NATS event"""
        payload = {
            "user_id": user_id,
            "tenant_id": "tenant_test",
            "amount": amount,
            "currency": "USD",
            "transaction_id": cls.make_transaction_id(),
        }
        payload.update(data)
        return payload


# ============================================================================
# Request Builders
# ============================================================================


class TemplateBuilder:
    """Fluent builder for bonus templates"""

    def __init__(self, bonus_type: str = "reload"):
        self._data = BonusTestDataFactory.make_template(bonus_type)

    def with_value(self, value: float, value_type: str = "fixed") -> "TemplateBuilder":
        self._data["value"] = value
        self._data["value_type"] = value_type
        return self

    def with_window(self, valid_from: Optional[datetime], valid_until: Optional[datetime]) -> "TemplateBuilder":
        self._data["valid_from"] = valid_from
        self._data["valid_until"] = valid_until
        return self

    def with_selection_bounds(self, **bounds) -> "TemplateBuilder":
        self._data.update(bounds)
        return self

    def with_settings(self, **settings) -> "TemplateBuilder":
        self._data["settings"] = {**self._data["settings"], **settings}
        return self

    def inactive(self) -> "TemplateBuilder":
        self._data["is_active"] = False
        return self

    def with_fields(self, **fields) -> "TemplateBuilder":
        self._data.update(fields)
        return self

    def build(self) -> Dict[str, Any]:
        return dict(self._data)
