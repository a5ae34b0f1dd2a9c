"""
Bonus Engine - Business Logic Layer

Facade over the handler registry and the user-bonus state machine:

    pending/active -> in_progress -> requirements_met -> converted
    active/in_progress/requirements_met -> forfeited
    pending/active (no turnover yet) -> cancelled
    any non-terminal past expiry -> expired

Money-moving transitions (convert, forfeit, expire) write to the ledger
first and only then change local state. A ledger failure leaves the bonus
untouched and is raised to the caller.
"""

import logging
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from .calculation import FULL_CONTRIBUTION, calculate_turnover_contribution, get_contribution_rate
from .eligibility import RuleSet, ValidationRule, create_default_rule_set
from .events.publishers import (
    publish_bonus_cancelled,
    publish_bonus_converted,
    publish_bonus_expired,
    publish_bonus_forfeited,
    publish_requirements_met,
)
from .handlers import BonusHandler, HandlerDeps, load_template
from .models import (
    ActionEvent,
    ActivityEvent,
    AwardResult,
    BonusHistoryEntry,
    BonusStatusEnum,
    BonusTemplate,
    BonusTransaction,
    DepositEvent,
    EligibilityContext,
    EligibilityResult,
    PurchaseEvent,
    utc_now,
)
from .protocols import (
    NO_HANDLER_ERROR_CODE,
    NOT_ELIGIBLE_ERROR_CODE,
    AccountClientProtocol,
    ApprovalNotFoundError,
    ApprovalRepositoryProtocol,
    EventBusProtocol,
    InvalidBonusStateError,
    LedgerClientProtocol,
    LedgerTransferError,
    TemplateNotFoundError,
    TemplateRepositoryProtocol,
    TransactionRepositoryProtocol,
    UserBonusNotFoundError,
    UserBonusRepositoryProtocol,
)
from .registry import HandlerRegistry, create_default_registry
from .validators import HELD_STATUSES

logger = logging.getLogger(__name__)

CONVERTIBLE_STATUSES = [BonusStatusEnum.REQUIREMENTS_MET.value]
FORFEITABLE_STATUSES = [
    BonusStatusEnum.ACTIVE.value,
    BonusStatusEnum.IN_PROGRESS.value,
    BonusStatusEnum.REQUIREMENTS_MET.value,
]
CANCELLABLE_STATUSES = [BonusStatusEnum.PENDING.value, BonusStatusEnum.ACTIVE.value]
EXPIRABLE_STATUSES = [BonusStatusEnum.PENDING.value, *FORFEITABLE_STATUSES]

EXPIRED_REASON = "Bonus expired"


class BonusEngine:
    """
    Bonus Engine - orchestrates handlers, turnover and lifecycle transitions

    Holds no in-process locks; per-record atomicity comes from the store's
    conditional updates.
    """

    # Conditional turnover writes retried after a concurrent update
    MAX_TURNOVER_RETRIES = 3

    def __init__(
        self,
        templates: TemplateRepositoryProtocol,
        user_bonuses: UserBonusRepositoryProtocol,
        transactions: TransactionRepositoryProtocol,
        ledger_client: LedgerClientProtocol,
        registry: Optional[HandlerRegistry] = None,
        rule_set: Optional[RuleSet] = None,
        event_bus: Optional[EventBusProtocol] = None,
        approvals: Optional[ApprovalRepositoryProtocol] = None,
        account_client: Optional[AccountClientProtocol] = None,
        default_expiration_days: int = 30,
    ):
        """
        Initialize bonus engine with dependencies.

        Args:
            templates: Bonus template store
            user_bonuses: User bonus store
            transactions: Turnover transaction log
            ledger_client: Wallet ledger for conversion/forfeit transfers
            registry: Handler registry (default: every built-in handler)
            rule_set: Eligibility rule set (default: the standard rules)
            event_bus: Event bus for publishing events (optional)
            approvals: Pending approval store (optional)
            account_client: Account service client (optional)
            default_expiration_days: Bonus lifetime when neither template nor handler sets one
        """
        self.registry = registry or create_default_registry()
        self.rule_set = rule_set or create_default_rule_set()
        self.templates = templates
        self.user_bonuses = user_bonuses
        self.transactions = transactions
        self.ledger_client = ledger_client
        self.event_bus = event_bus
        self.approvals = approvals

        self.deps = HandlerDeps(
            templates=templates,
            user_bonuses=user_bonuses,
            rule_set=self.rule_set,
            event_bus=event_bus,
            approvals=approvals,
            account_client=account_client,
            default_expiration_days=default_expiration_days,
        )

    # ====================
    # Eligibility & Award
    # ====================

    async def check_eligibility(self, bonus_type: str, context: EligibilityContext) -> EligibilityResult:
        handler = self.registry.get_handler(bonus_type)
        if not handler:
            return EligibilityResult.denied(f"No handler for bonus type: {bonus_type}")
        return await handler.check_eligibility(self.deps, context)

    async def award(self, bonus_type: str, context: EligibilityContext) -> AwardResult:
        """
        Award a bonus of a type.

        Eligibility is always re-checked here; callers cannot pass it in.

        Raises:
            BonusAwardFailedError: the store refused the record (e.g. duplicate claim)
        """
        handler = self.registry.get_handler(bonus_type)
        if not handler:
            logger.warning(f"No handler for bonus type: {bonus_type}")
            return AwardResult(
                success=False,
                error=f"No handler for bonus type: {bonus_type}",
                error_code=NO_HANDLER_ERROR_CODE,
            )

        eligibility = await handler.check_eligibility(self.deps, context)
        if not eligibility.eligible or not eligibility.template:
            logger.debug(f"User {context.user_id} not eligible for {bonus_type}: {eligibility.reason}")
            return AwardResult(
                success=False,
                error=eligibility.reason or "Not eligible",
                error_code=NOT_ELIGIBLE_ERROR_CODE,
            )

        return await handler.award(self.deps, eligibility.template, context)

    async def find_eligible_bonuses(self, context: EligibilityContext) -> List[BonusTemplate]:
        """Every template the context qualifies for, highest priority first"""
        eligible: Dict[str, BonusTemplate] = {}
        for handler in self.registry.get_all_handlers():
            result = await handler.check_eligibility(self.deps, context)
            if result.eligible and result.template:
                eligible.setdefault(result.template.id, result.template)
        return sorted(eligible.values(), key=lambda t: t.priority, reverse=True)

    # ====================
    # Approval Workflow
    # ====================

    async def approve_pending(self, token: str, approved_by: str) -> AwardResult:
        """
        Award a parked bonus.

        Eligibility is re-checked against the parked template; the approval gate is not.

        Raises:
            ApprovalNotFoundError: unknown or already decided token
            TemplateNotFoundError: the template was deleted meanwhile
        """
        pending = await self._get_pending(token)

        handler = self.registry.get_handler(pending["bonus_type"])
        if not handler:
            return AwardResult(
                success=False,
                error=f"No handler for bonus type: {pending['bonus_type']}",
                error_code=NO_HANDLER_ERROR_CODE,
            )

        row = await self.templates.find_by_id(pending["template_id"])
        if not row:
            raise TemplateNotFoundError(f"Template {pending['template_id']} not found")
        context = EligibilityContext.model_validate(pending["context"])

        # Re-check the parked template itself; it may have been deactivated or used up since
        template = load_template(row)
        if isinstance(template, str):
            eligibility = EligibilityResult.denied(template)
        else:
            eligibility = await handler.evaluate_template(self.deps, template, context)
        if not eligibility.eligible:
            await self.approvals.delete_pending(token)
            logger.info(f"Approval {token} dropped, user no longer eligible: {eligibility.reason}")
            return AwardResult(
                success=False,
                error=eligibility.reason or "Not eligible",
                error_code=NOT_ELIGIBLE_ERROR_CODE,
            )

        result = await handler.award(self.deps, template, context, skip_approval_check=True)
        if result.success:
            await self.approvals.delete_pending(token)
            logger.info(f"Approval {token} granted by {approved_by}: bonus {result.bonus['bonus_id']}")
        return result

    async def reject_pending(self, token: str, rejected_by: str, reason: Optional[str] = None) -> Dict[str, Any]:
        pending = await self._get_pending(token)
        await self.approvals.delete_pending(token)
        logger.info(
            f"Approval {token} rejected by {rejected_by} for user {pending['user_id']}: {reason or 'no reason'}"
        )
        return pending

    async def _get_pending(self, token: str) -> Dict[str, Any]:
        if self.approvals is None:
            raise ApprovalNotFoundError(f"Pending approval {token} not found")
        pending = await self.approvals.get_pending(token)
        if not pending:
            raise ApprovalNotFoundError(f"Pending approval {token} not found")
        return pending

    # ====================
    # Upstream Activity
    # ====================

    async def handle_deposit(self, event: DepositEvent) -> List[Dict[str, Any]]:
        """Try first-deposit and reload awards for a completed deposit"""
        context = EligibilityContext(
            user_id=event.user_id,
            tenant_id=event.tenant_id,
            deposit_amount=event.amount,
            deposit_id=event.transaction_id,
            wallet_id=event.wallet_id,
            currency=event.currency,
            is_first_deposit=event.is_first_deposit,
        )

        bonus_types = []
        if event.is_first_deposit is not False:
            bonus_types.append("first_deposit")
        bonus_types.append("reload")

        awarded = await self._award_each(bonus_types, context)
        logger.info(
            f"Deposit bonuses processed: user={event.user_id} deposit={event.transaction_id} "
            f"awarded={[b['bonus_id'] for b in awarded]}"
        )
        return awarded

    async def handle_purchase(self, event: PurchaseEvent) -> List[Dict[str, Any]]:
        # Purchase amount drives value like a deposit
        context = EligibilityContext(
            user_id=event.user_id,
            tenant_id=event.tenant_id,
            deposit_amount=event.amount,
            transaction_id=event.transaction_id,
            wallet_id=event.wallet_id,
            currency=event.currency,
            is_first_purchase=event.is_first_purchase,
        )
        awarded = await self._award_each(["first_purchase"], context)
        logger.info(
            f"Purchase bonuses processed: user={event.user_id} transaction={event.transaction_id} "
            f"awarded={[b['bonus_id'] for b in awarded]}"
        )
        return awarded

    async def handle_action(self, event: ActionEvent) -> List[Dict[str, Any]]:
        context = EligibilityContext(
            user_id=event.user_id,
            tenant_id=event.tenant_id,
            activity_amount=event.amount,
            transaction_id=event.transaction_id,
            wallet_id=event.wallet_id,
            currency=event.currency,
            metadata={"action": event.action} if event.action else {},
        )
        awarded = await self._award_each(["first_action"], context)
        logger.info(
            f"Action bonuses processed: user={event.user_id} transaction={event.transaction_id} "
            f"awarded={[b['bonus_id'] for b in awarded]}"
        )
        return awarded

    async def _award_each(self, bonus_types: List[str], context: EligibilityContext) -> List[Dict[str, Any]]:
        # One type failing must not stop its siblings
        awarded = []
        for bonus_type in bonus_types:
            try:
                result = await self.award(bonus_type, context)
            except Exception as e:
                logger.error(f"Failed to award {bonus_type} for user {context.user_id}: {e}")
                continue
            if result.success and result.bonus:
                awarded.append(result.bonus)
        return awarded

    async def handle_activity(self, event: ActivityEvent) -> List[Dict[str, Any]]:
        """
        Add turnover from one activity to each of the user's running bonuses.

        Each bonus is handled on its own; a failure is logged and the
        remaining bonuses still receive their contribution.

        Returns:
            Updated bonus records
        """
        bonuses = await self.user_bonuses.find_by_user_id(
            event.user_id,
            {"status": HELD_STATUSES, "turnover_required_gt": 0},
        )

        updated = []
        for bonus in bonuses:
            try:
                result = await self._record_turnover(bonus, event)
            except Exception as e:
                logger.error(f"Failed to record turnover on bonus {bonus['bonus_id']}: {e}")
                continue
            if result:
                updated.append(result)
        return updated

    async def _record_turnover(self, bonus: Dict[str, Any], event: ActivityEvent) -> Optional[Dict[str, Any]]:
        row = await self.templates.find_by_id(bonus["template_id"])
        template = load_template(row) if row else None
        if isinstance(template, BonusTemplate):
            rate = get_contribution_rate(template, event.category)
        else:
            rate = FULL_CONTRIBUTION

        contribution = calculate_turnover_contribution(event.amount, rate)
        if contribution <= 0:
            return None

        for _ in range(self.MAX_TURNOVER_RETRIES):
            before = bonus["turnover_progress"]
            new_progress = before + contribution
            if new_progress >= bonus["turnover_required"]:
                new_status = BonusStatusEnum.REQUIREMENTS_MET.value
            else:
                new_status = BonusStatusEnum.IN_PROGRESS.value

            history_entry = BonusHistoryEntry(
                action="turnover_recorded",
                previous_status=bonus["status"],
                new_status=new_status,
                turnover=contribution,
                triggered_by="system",
            ).model_dump()
            transaction = BonusTransaction(
                transaction_id=f"btx_{uuid.uuid4().hex[:20]}",
                bonus_id=bonus["bonus_id"],
                user_id=event.user_id,
                tenant_id=event.tenant_id,
                currency=event.currency or bonus["currency"],
                amount=contribution,
                balance_before=bonus["current_value"],
                balance_after=bonus["current_value"],
                turnover_before=before,
                turnover_after=new_progress,
                turnover_contribution=contribution,
                contribution_rate=rate,
                related_transaction_id=event.transaction_id,
                activity_category=event.category,
            ).model_dump()

            # Progress and its transaction row are written together
            updated = await self.user_bonuses.update_turnover(
                bonus["bonus_id"], new_progress, new_status, history_entry,
                expected_progress=before, transaction=transaction,
            )
            if updated:
                break

            # Lost a race with another activity; re-read and try again
            bonus = await self.user_bonuses.find_by_id(bonus["bonus_id"])
            if not bonus or bonus["status"] not in HELD_STATUSES:
                return None
        else:
            logger.warning(f"Gave up recording turnover on bonus {bonus['bonus_id']} after concurrent updates")
            return None

        if new_status == BonusStatusEnum.REQUIREMENTS_MET.value:
            await publish_requirements_met(self.event_bus, bonus, new_progress)

        logger.debug(
            f"Turnover recorded: bonus={bonus['bonus_id']} contribution={contribution} "
            f"progress={new_progress}/{bonus['turnover_required']}"
        )
        return updated

    # ====================
    # Lifecycle Transitions
    # ====================

    async def convert(self, bonus_id: str, user_id: str) -> Dict[str, Any]:
        """
        Release a bonus whose requirements are met.

        Raises:
            UserBonusNotFoundError: unknown bonus or another user's
            InvalidBonusStateError: not in requirements_met, or already being settled
            LedgerTransferError: ledger refused; bonus left unchanged
        """
        bonus = await self.get_bonus(bonus_id, user_id)
        self._require_status(bonus, CONVERTIBLE_STATUSES, "convert")
        bonus, lease = await self._claim_settlement(bonus, CONVERTIBLE_STATUSES, "convert")

        try:
            await self.ledger_client.record_bonus_conversion_transfer(
                user_id=user_id,
                amount=bonus["current_value"],
                currency=bonus["currency"],
                tenant_id=bonus["tenant_id"],
                bonus_id=bonus_id,
                description=f"Bonus converted: {bonus['type']}",
            )
        except LedgerTransferError:
            logger.error(f"Failed to record bonus conversion in ledger for {bonus_id}")
            await self._release_settlement(bonus_id, lease)
            raise
        except Exception as e:
            logger.error(f"Failed to record bonus conversion in ledger for {bonus_id}: {e}")
            await self._release_settlement(bonus_id, lease)
            raise LedgerTransferError(
                "Failed to record bonus conversion in ledger",
                bonus_id=bonus_id, operation="convert", reason=str(e),
            ) from e

        now = utc_now()
        history_entry = BonusHistoryEntry(
            timestamp=now,
            action="converted",
            previous_status=bonus["status"],
            new_status=BonusStatusEnum.CONVERTED,
            amount=bonus["current_value"],
            triggered_by="user",
        ).model_dump()
        updated = await self._commit_after_ledger(
            bonus, BonusStatusEnum.CONVERTED.value, history_entry, {"converted_at": now},
            CONVERTIBLE_STATUSES, lease,
        )

        await publish_bonus_converted(self.event_bus, bonus)
        logger.info(f"Bonus converted: {bonus_id} value={bonus['current_value']}")
        return updated

    async def forfeit(self, bonus_id: str, user_id: str, reason: str = "Forfeited") -> Dict[str, Any]:
        """
        Forfeit a running bonus and zero its value.

        Raises:
            UserBonusNotFoundError, InvalidBonusStateError, LedgerTransferError
        """
        bonus = await self.get_bonus(bonus_id, user_id)
        self._require_status(bonus, FORFEITABLE_STATUSES, "forfeit")
        bonus, lease = await self._claim_settlement(bonus, FORFEITABLE_STATUSES, "forfeit")

        await self._record_forfeit_transfer(bonus, lease, reason, f"Bonus forfeited: {reason}", "forfeit")

        now = utc_now()
        history_entry = BonusHistoryEntry(
            timestamp=now,
            action="forfeited",
            previous_status=bonus["status"],
            new_status=BonusStatusEnum.FORFEITED,
            amount=bonus["current_value"],
            triggered_by="system",
            reason=reason,
        ).model_dump()
        updated = await self._commit_after_ledger(
            bonus,
            BonusStatusEnum.FORFEITED.value,
            history_entry,
            {"current_value": 0, "forfeited_at": now, "forfeit_reason": reason},
            FORFEITABLE_STATUSES,
            lease,
        )

        await publish_bonus_forfeited(self.event_bus, bonus, reason)
        logger.info(f"Bonus forfeited: {bonus_id} reason={reason}")
        return updated

    async def cancel(self, bonus_id: str, user_id: str) -> Dict[str, Any]:
        """
        Cancel a bonus that has not been played through yet. No ledger movement.

        Raises:
            UserBonusNotFoundError, InvalidBonusStateError
        """
        bonus = await self.get_bonus(bonus_id, user_id)
        self._require_status(bonus, CANCELLABLE_STATUSES, "cancel")
        if bonus.get("turnover_progress", 0) > 0:
            raise InvalidBonusStateError(
                f"Bonus {bonus_id} cannot be cancelled after turnover has been recorded",
                bonus_id=bonus_id,
                current_status=bonus["status"],
                required_statuses=CANCELLABLE_STATUSES,
            )

        now = utc_now()
        history_entry = BonusHistoryEntry(
            timestamp=now,
            action="cancelled",
            previous_status=bonus["status"],
            new_status=BonusStatusEnum.CANCELLED,
            triggered_by="user",
        ).model_dump()
        # Recorded turnover moves the bonus to in_progress, so the status guard also covers it
        updated = await self.user_bonuses.update_status(
            bonus_id,
            BonusStatusEnum.CANCELLED.value,
            history_entry,
            {"current_value": 0, "cancelled_at": now},
            expected_statuses=CANCELLABLE_STATUSES,
        )
        if updated is None:
            raise InvalidBonusStateError(
                f"Bonus {bonus_id} changed state before it could be cancelled",
                bonus_id=bonus_id,
                current_status=bonus["status"],
                required_statuses=CANCELLABLE_STATUSES,
            )

        await publish_bonus_cancelled(self.event_bus, bonus)
        logger.info(f"Bonus cancelled: {bonus_id}")
        return updated

    async def expire_old_bonuses(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        """
        Expire every non-terminal bonus past its expiry (scheduled job).

        Each bonus is handled on its own; a failure is logged and the bonus
        stays as it was, to be retried on the next sweep. A bonus settled
        concurrently by convert or forfeit is skipped.

        Returns:
            Summary of expiration processing
        """
        now = now or utc_now()
        candidates = await self.user_bonuses.find_expiring(now)

        expired_count = 0
        skipped_count = 0
        total_forfeited = 0.0
        failed: List[str] = []

        for bonus in candidates:
            try:
                expired = await self._expire_bonus(bonus, now)
                expired_count += 1
                total_forfeited += expired.get("forfeited_value", 0)
            except InvalidBonusStateError as e:
                logger.info(f"Skipped expiring bonus {bonus['bonus_id']}: {e}")
                skipped_count += 1
            except Exception as e:
                logger.error(f"Failed to expire bonus {bonus['bonus_id']}: {e}")
                failed.append(bonus["bonus_id"])

        if candidates:
            logger.info(
                f"Expired {expired_count} of {len(candidates)} bonuses "
                f"({skipped_count} skipped, {len(failed)} failed)"
            )

        return {
            "processed": len(candidates),
            "expired_count": expired_count,
            "skipped_count": skipped_count,
            "failed_count": len(failed),
            "failed_bonus_ids": failed,
            "total_forfeited_value": total_forfeited,
            "timestamp": now.isoformat(),
        }

    async def _expire_bonus(self, bonus: Dict[str, Any], now: datetime) -> Dict[str, Any]:
        bonus, lease = await self._claim_settlement(bonus, EXPIRABLE_STATUSES, "expire")
        await self._record_forfeit_transfer(
            bonus, lease, EXPIRED_REASON, f"Bonus expired: {bonus['type']}", "expire"
        )

        history_entry = BonusHistoryEntry(
            timestamp=now,
            action="expired",
            previous_status=bonus["status"],
            new_status=BonusStatusEnum.EXPIRED,
            amount=bonus["current_value"],
            triggered_by="system",
            reason=EXPIRED_REASON,
        ).model_dump()
        updated = await self._commit_after_ledger(
            bonus,
            BonusStatusEnum.EXPIRED.value,
            history_entry,
            {"current_value": 0, "expired_at": now, "forfeit_reason": EXPIRED_REASON},
            EXPIRABLE_STATUSES,
            lease,
        )

        # bonus still carries the pre-expiry value reported as forfeited_value
        await publish_bonus_expired(self.event_bus, bonus)
        return {**updated, "forfeited_value": bonus["current_value"]}

    async def _claim_settlement(
        self, bonus: Dict[str, Any], allowed: List[str], operation: str
    ) -> Tuple[Dict[str, Any], str]:
        """
        Take the bonus's settlement lease so one ledger transfer at a time can run.

        Returns the record as it stood when the lease was taken.
        """
        lease = f"{operation}:{uuid.uuid4().hex}"
        claimed = await self.user_bonuses.claim_settlement(bonus["bonus_id"], lease, allowed)
        if not claimed:
            raise InvalidBonusStateError(
                f"Bonus {bonus['bonus_id']} is already being settled or is no longer "
                f"in a state that allows {operation}",
                bonus_id=bonus["bonus_id"],
                current_status=bonus["status"],
                required_statuses=allowed,
            )
        return claimed, lease

    async def _release_settlement(self, bonus_id: str, lease: str) -> None:
        try:
            await self.user_bonuses.release_settlement(bonus_id, lease)
        except Exception as e:
            # The lease lapses on its own; the caller's error is the one to surface
            logger.error(f"Failed to release settlement lease on bonus {bonus_id}: {e}")

    async def _record_forfeit_transfer(
        self,
        bonus: Dict[str, Any],
        lease: str,
        reason: str,
        description: str,
        operation: str,
    ) -> None:
        try:
            await self.ledger_client.record_bonus_forfeit_transfer(
                user_id=bonus["user_id"],
                amount=bonus["current_value"],
                currency=bonus["currency"],
                tenant_id=bonus["tenant_id"],
                bonus_id=bonus["bonus_id"],
                reason=reason,
                description=description,
            )
        except LedgerTransferError:
            logger.error(f"Failed to record bonus {operation} in ledger for {bonus['bonus_id']}")
            await self._release_settlement(bonus["bonus_id"], lease)
            raise
        except Exception as e:
            logger.error(f"Failed to record bonus {operation} in ledger for {bonus['bonus_id']}: {e}")
            await self._release_settlement(bonus["bonus_id"], lease)
            raise LedgerTransferError(
                f"Failed to record bonus {operation} in ledger",
                bonus_id=bonus["bonus_id"], operation=operation, reason=str(e),
            ) from e

    async def _commit_after_ledger(
        self,
        bonus: Dict[str, Any],
        status: str,
        history_entry: Dict[str, Any],
        extra_fields: Dict[str, Any],
        allowed: List[str],
        lease: str,
    ) -> Dict[str, Any]:
        """Local status write following a successful ledger transfer"""
        try:
            updated = await self.user_bonuses.update_status(
                bonus["bonus_id"], status, history_entry, extra_fields,
                expected_statuses=allowed, lease=lease,
            )
        except Exception as e:
            # Ledger already moved the money; this record now needs manual reconciliation
            logger.critical(
                f"Ledger transfer succeeded but bonus {bonus['bonus_id']} could not be marked {status}: {e}"
            )
            raise
        if updated is None:
            logger.critical(
                f"Ledger transfer succeeded but bonus {bonus['bonus_id']} lost its settlement lease before {status}"
            )
            raise InvalidBonusStateError(
                f"Bonus {bonus['bonus_id']} changed state during settlement",
                bonus_id=bonus["bonus_id"],
                current_status=bonus["status"],
                required_statuses=allowed,
            )
        return updated

    @staticmethod
    def _require_status(bonus: Dict[str, Any], allowed: List[str], operation: str) -> None:
        if bonus["status"] not in allowed:
            raise InvalidBonusStateError(
                f"Bonus {bonus['bonus_id']} is not in required state for {operation} "
                f"(status: {bonus['status']}, required: {', '.join(allowed)})",
                bonus_id=bonus["bonus_id"],
                current_status=bonus["status"],
                required_statuses=allowed,
            )

    # ====================
    # Queries
    # ====================

    async def get_bonus(self, bonus_id: str, user_id: Optional[str] = None) -> Dict[str, Any]:
        """
        Raises:
            UserBonusNotFoundError: unknown bonus, or not owned by user_id when given
        """
        bonus = await self.user_bonuses.find_by_id(bonus_id)
        if not bonus or (user_id is not None and bonus["user_id"] != user_id):
            raise UserBonusNotFoundError(f"Bonus {bonus_id} not found")
        return bonus

    async def list_user_bonuses(self, user_id: str, status: Optional[str] = None) -> List[Dict[str, Any]]:
        filters = {"status": status} if status else None
        return await self.user_bonuses.find_by_user_id(user_id, filters)

    async def get_bonus_transactions(self, bonus_id: str, user_id: Optional[str] = None) -> List[Dict[str, Any]]:
        """
        Raises:
            UserBonusNotFoundError: unknown bonus, or not owned by user_id when given
        """
        await self.get_bonus(bonus_id, user_id)
        return await self.transactions.find_by_bonus_id(bonus_id)

    # ====================
    # Registry Access
    # ====================

    def get_supported_types(self) -> List[str]:
        return self.registry.get_registered_types()

    def get_types_by_category(self) -> Dict[str, List[str]]:
        return self.registry.get_handlers_by_category()

    def register_handler(self, handler: BonusHandler) -> None:
        self.registry.register(handler)

    def add_rule(self, rule: ValidationRule) -> None:
        self.rule_set.add_rule(rule)
