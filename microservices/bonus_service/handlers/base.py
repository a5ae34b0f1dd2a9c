"""
Bonus Handler Skeleton

A handler is a small record of optional hooks around one fixed algorithm:

    resolve template -> rule set -> common claim checks -> type-specific check
    -> calculate value/turnover/expiry -> approval gate -> build record
    -> persist -> usage counter -> bonus.awarded

Unset hooks fall back to the shared behaviour below.
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, Optional, Union

from pydantic import ValidationError

from ..calculation import calculate_expiration
from ..calculation import calculate_turnover as default_turnover
from ..calculation import calculate_value as default_value
from ..eligibility import RuleSet
from ..events.publishers import publish_approval_requested, publish_bonus_awarded
from ..models import (
    AwardResult,
    BonusCalculation,
    BonusHistoryEntry,
    BonusStatusEnum,
    BonusTemplate,
    EligibilityContext,
    EligibilityResult,
    UserBonus,
    utc_now,
)
from ..protocols import (
    NOT_ELIGIBLE_ERROR_CODE,
    REQUIRES_APPROVAL_ERROR_CODE,
    AccountClientProtocol,
    ApprovalRepositoryProtocol,
    EventBusProtocol,
    TemplateRepositoryProtocol,
    UserBonusRepositoryProtocol,
)
from ..validators import check_max_uses_per_user, check_stacking

logger = logging.getLogger(__name__)


@dataclass
class HandlerDeps:
    """Collaborators a handler needs; owned by the engine"""
    templates: TemplateRepositoryProtocol
    user_bonuses: UserBonusRepositoryProtocol
    rule_set: RuleSet
    event_bus: Optional[EventBusProtocol] = None
    approvals: Optional[ApprovalRepositoryProtocol] = None
    account_client: Optional[AccountClientProtocol] = None
    default_expiration_days: int = 30


SpecificValidator = Callable[[HandlerDeps, BonusTemplate, EligibilityContext], Awaitable[Optional[str]]]
TemplateResolver = Callable[[HandlerDeps, EligibilityContext], Awaitable[Union[BonusTemplate, str]]]
ValueCalculator = Callable[[BonusTemplate, EligibilityContext], float]
TurnoverCalculator = Callable[[BonusTemplate, EligibilityContext, float], float]
MetadataBuilder = Callable[[BonusTemplate, EligibilityContext], Dict[str, Any]]
ClaimKeyBuilder = Callable[[BonusTemplate, EligibilityContext], Optional[str]]


async def resolve_template_by_type(deps: HandlerDeps, bonus_type: str) -> Union[BonusTemplate, str]:
    """First active template of the type, or a denial reason"""
    rows = await deps.templates.find_by_type(bonus_type)
    if not rows:
        return "No active bonus template found"
    return load_template(rows[0])


def load_template(row: Dict[str, Any]) -> Union[BonusTemplate, str]:
    """Validate a stored template row; a malformed row is a denial reason, not a crash"""
    try:
        return BonusTemplate.model_validate(row)
    except ValidationError as e:
        logger.error(f"Invalid bonus template {row.get('id')}: {e}")
        return "Invalid bonus template"


@dataclass
class BonusHandler:
    """
    Per-type bonus strategy.

    Hooks:
        resolve_template: find the template for a context (default: first active of the type)
        validate_specific: type-specific check needing persistence; returns a denial reason
        calculate_value / calculate_turnover: override the shared calculation strategy
        expiration_days: default lifetime when the template sets none
        build_metadata: extra record fields; a "metadata" key is merged into bonus metadata
        claim_key: uniqueness key enforced by the store
    """
    bonus_type: str
    category: str
    validate_specific: Optional[SpecificValidator] = None
    resolve_template: Optional[TemplateResolver] = None
    calculate_value: Optional[ValueCalculator] = None
    calculate_turnover: Optional[TurnoverCalculator] = None
    expiration_days: Optional[int] = None
    build_metadata: Optional[MetadataBuilder] = None
    claim_key: Optional[ClaimKeyBuilder] = None
    description: str = field(default="")

    # ====================
    # Eligibility
    # ====================

    async def check_eligibility(self, deps: HandlerDeps, context: EligibilityContext) -> EligibilityResult:
        if self.resolve_template:
            resolved = await self.resolve_template(deps, context)
        else:
            resolved = await resolve_template_by_type(deps, self.bonus_type)
        if isinstance(resolved, str):
            return EligibilityResult.denied(resolved)
        return await self.evaluate_template(deps, resolved, context)

    async def evaluate_template(
        self, deps: HandlerDeps, template: BonusTemplate, context: EligibilityContext
    ) -> EligibilityResult:
        """Rule set, common claim checks and the type-specific check against one template"""
        result = deps.rule_set.evaluate(template, context)
        if not result.eligible:
            return result

        for check in (check_max_uses_per_user, check_stacking):
            reason = await check(deps, template, context)
            if reason:
                return EligibilityResult.denied(reason, template=template)

        if self.validate_specific:
            reason = await self.validate_specific(deps, template, context)
            if reason:
                return EligibilityResult.denied(reason, template=template)

        return EligibilityResult.ok(template)

    # ====================
    # Calculation
    # ====================

    def calculate(self, deps: HandlerDeps, template: BonusTemplate, context: EligibilityContext) -> BonusCalculation:
        value_fn = self.calculate_value or default_value
        bonus_value = value_fn(template, context)

        if self.calculate_turnover:
            turnover = self.calculate_turnover(template, context, bonus_value)
        else:
            turnover = default_turnover(template, context, bonus_value)

        expires_at = calculate_expiration(
            template,
            utc_now(),
            default_days=self.expiration_days or deps.default_expiration_days,
        )
        return BonusCalculation(bonus_value=bonus_value, turnover_required=turnover, expires_at=expires_at)

    # ====================
    # Award
    # ====================

    async def award(
        self,
        deps: HandlerDeps,
        template: BonusTemplate,
        context: EligibilityContext,
        skip_approval_check: bool = False,
    ) -> AwardResult:
        """Award an already-validated template to the context's user"""
        calculation = self.calculate(deps, template, context)

        if calculation.bonus_value <= 0:
            logger.warning(
                f"Bonus value is zero or negative for user {context.user_id}, template {template.id}"
            )
            return AwardResult(
                success=False,
                error="Bonus value is zero or negative",
                error_code=NOT_ELIGIBLE_ERROR_CODE,
            )

        if not skip_approval_check and requires_approval(template, calculation.bonus_value):
            return await self._request_approval(deps, template, context, calculation)

        record = self.build_user_bonus(template, context, calculation, utc_now())
        created = await deps.user_bonuses.create(record)

        await publish_bonus_awarded(deps.event_bus, created)

        try:
            await deps.templates.increment_usage(template.id)
        except Exception as e:
            # The award is committed; a stale counter is only an accounting drift
            logger.error(f"Failed to increment usage for template {template.id}: {e}")

        logger.info(
            f"Bonus awarded: user={context.user_id} bonus={created['bonus_id']} "
            f"type={template.type} value={calculation.bonus_value}"
        )
        return AwardResult(success=True, bonus=created)

    def build_user_bonus(
        self,
        template: BonusTemplate,
        context: EligibilityContext,
        calculation: BonusCalculation,
        now: datetime,
    ) -> Dict[str, Any]:
        bonus = UserBonus(
            bonus_id=f"bonus_{uuid.uuid4().hex[:20]}",
            user_id=context.user_id,
            tenant_id=context.tenant_id,
            template_id=template.id,
            template_code=template.code,
            type=template.type,
            domain=template.domain,
            status=BonusStatusEnum.ACTIVE,
            currency=template.currency,
            original_value=calculation.bonus_value,
            current_value=calculation.bonus_value,
            turnover_required=calculation.turnover_required,
            turnover_progress=0,
            wallet_id=context.wallet_id,
            trigger_transaction_id=context.deposit_id or context.transaction_id,
            deposit_id=context.deposit_id,
            referrer_id=context.referrer_id,
            claim_key=self.claim_key(template, context) if self.claim_key else None,
            qualified_at=now,
            claimed_at=now,
            activated_at=now,
            expires_at=calculation.expires_at,
            history=[
                BonusHistoryEntry(
                    timestamp=now,
                    action="awarded",
                    new_status=BonusStatusEnum.ACTIVE,
                    amount=calculation.bonus_value,
                    triggered_by="system",
                )
            ],
            created_at=now,
            updated_at=now,
        ).model_dump()

        if self.build_metadata:
            extra = dict(self.build_metadata(template, context))
            metadata = extra.pop("metadata", None)
            bonus.update(extra)
            if metadata:
                bonus["metadata"] = {**bonus["metadata"], **metadata}
        return bonus

    async def _request_approval(
        self,
        deps: HandlerDeps,
        template: BonusTemplate,
        context: EligibilityContext,
        calculation: BonusCalculation,
    ) -> AwardResult:
        if deps.approvals is None:
            logger.warning(f"Template {template.code} requires approval but no approval store is configured")
            return AwardResult(
                success=False,
                error="Bonus requires approval",
                error_code=REQUIRES_APPROVAL_ERROR_CODE,
            )

        token = await deps.approvals.create_pending({
            "bonus_type": self.bonus_type,
            "template_id": template.id,
            "template_code": template.code,
            "user_id": context.user_id,
            "tenant_id": context.tenant_id,
            "calculated_value": calculation.bonus_value,
            "currency": template.currency,
            "requested_by": context.requested_by,
            "reason": context.reason,
            "context": context.model_dump(mode="json"),
            "created_at": utc_now(),
        })

        await publish_approval_requested(
            deps.event_bus,
            token=token,
            template=template,
            context=context,
            value=calculation.bonus_value,
        )

        logger.info(
            f"Bonus requires approval: user={context.user_id} template={template.code} "
            f"value={calculation.bonus_value} token={token}"
        )
        return AwardResult(
            success=False,
            error="Bonus requires approval",
            error_code=REQUIRES_APPROVAL_ERROR_CODE,
            pending_token=token,
        )


def requires_approval(template: BonusTemplate, calculated_value: float) -> bool:
    if not template.requires_approval:
        return False
    if template.approval_threshold:
        return calculated_value >= template.approval_threshold
    return True
