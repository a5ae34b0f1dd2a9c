"""
Bonus Service Protocols

Defines interfaces for dependency injection and testing.
Following the protocol-based architecture pattern.

Stores return plain dicts; the engine never depends on a concrete database.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol, runtime_checkable


# ====================
# Repository Protocols
# ====================


@runtime_checkable
class TemplateRepositoryProtocol(Protocol):
    """Read access to bonus templates"""

    async def find_active(self, filters: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        """
        Templates flagged active. The validity window is left to the rule set
        so that an out-of-window template is reported, not hidden.

        Args:
            filters: Optional filters (type, code, tag)

        Returns:
            Templates ordered by priority, highest first
        """
        ...

    async def find_by_id(self, template_id: str) -> Optional[Dict[str, Any]]:
        ...

    async def find_by_code(self, code: str) -> Optional[Dict[str, Any]]:
        ...

    async def find_by_type(self, bonus_type: str) -> List[Dict[str, Any]]:
        """Active templates of one bonus type, highest priority first"""
        ...

    async def increment_usage(self, template_id: str) -> bool:
        """Atomically increment current_uses_total"""
        ...


@runtime_checkable
class UserBonusRepositoryProtocol(Protocol):
    """
    Read/write access to awarded bonuses.

    Filter vocabulary for find_by_user_id / find_latest:
        status, type: value or list of values
        template_id, template_code, referee_id, referrer_id: equality
        claimed_after: datetime lower bound on claimed_at
        metadata: dict matched by containment
        turnover_required_gt: number
    """

    async def create(self, bonus_data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Persist a new user bonus.

        Raises:
            BonusAwardFailedError: on a duplicate claim key
        """
        ...

    async def find_by_id(self, bonus_id: str) -> Optional[Dict[str, Any]]:
        ...

    async def find_by_user_id(self, user_id: str, filters: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        ...

    async def find_latest(self, user_id: str, filters: Optional[Dict[str, Any]] = None) -> Optional[Dict[str, Any]]:
        """Most recently claimed bonus matching the filters"""
        ...

    async def count_by_template(self, user_id: str, template_id: str) -> int:
        ...

    async def update_status(
        self,
        bonus_id: str,
        status: str,
        history_entry: Dict[str, Any],
        extra_fields: Optional[Dict[str, Any]] = None,
        expected_statuses: Optional[List[str]] = None,
        lease: Optional[str] = None,
    ) -> Optional[Dict[str, Any]]:
        """
        Set status, append a history entry and apply extra fields.

        The write applies only while status is in expected_statuses (when
        given) and the settlement lease equals `lease`; it clears the lease.

        Returns:
            Updated record, or None if not found or the condition did not hold
        """
        ...

    async def claim_settlement(
        self, bonus_id: str, lease: str, expected_statuses: List[str]
    ) -> Optional[Dict[str, Any]]:
        """
        Take the per-bonus settlement lease ahead of a ledger transfer.

        Returns:
            Current record, or None when leased elsewhere or not in expected_statuses
        """
        ...

    async def release_settlement(self, bonus_id: str, lease: str) -> bool:
        ...

    async def update_turnover(
        self,
        bonus_id: str,
        new_progress: float,
        new_status: str,
        history_entry: Dict[str, Any],
        expected_progress: Optional[float] = None,
        transaction: Optional[Dict[str, Any]] = None,
    ) -> Optional[Dict[str, Any]]:
        """
        Conditional turnover update.

        When expected_progress is given the write only applies if the stored
        progress still equals it, making read-modify-write atomic per record.
        A transaction record is stored atomically with the update.

        Returns:
            Updated record, or None when the condition did not hold
        """
        ...

    async def find_expiring(self, now: datetime) -> List[Dict[str, Any]]:
        """Non-terminal bonuses whose expires_at is before now"""
        ...


@runtime_checkable
class TransactionRepositoryProtocol(Protocol):
    """Append-only bonus transaction log"""

    async def create(self, record: Dict[str, Any]) -> Dict[str, Any]:
        ...

    async def find_by_bonus_id(self, bonus_id: str) -> List[Dict[str, Any]]:
        ...


@runtime_checkable
class ApprovalRepositoryProtocol(Protocol):
    """Pending approval requests for high-value awards"""

    async def create_pending(self, record: Dict[str, Any]) -> str:
        """Store a pending approval and return its token"""
        ...

    async def get_pending(self, token: str) -> Optional[Dict[str, Any]]:
        ...

    async def delete_pending(self, token: str) -> bool:
        ...


# ====================
# Event Bus Protocol
# ====================


@runtime_checkable
class EventBusProtocol(Protocol):
    """Event bus interface for publishing events"""

    async def publish_event(self, event: Any) -> bool:
        """
        Publish event to NATS.

        Args:
            event: core.nats_client.Event envelope
        """
        ...


# ====================
# Service Client Protocols
# ====================


@runtime_checkable
class LedgerClientProtocol(Protocol):
    """Interface for the wallet ledger. Failures raise LedgerTransferError."""

    async def record_bonus_conversion_transfer(
        self,
        user_id: str,
        amount: float,
        currency: str,
        tenant_id: str,
        bonus_id: str,
        description: str,
    ) -> Dict[str, Any]:
        ...

    async def record_bonus_forfeit_transfer(
        self,
        user_id: str,
        amount: float,
        currency: str,
        tenant_id: str,
        bonus_id: str,
        reason: str,
        description: str,
    ) -> Dict[str, Any]:
        ...


@runtime_checkable
class AccountClientProtocol(Protocol):
    """Interface for account_service client"""

    async def get_user(self, user_id: str) -> Optional[Dict[str, Any]]:
        ...

    async def has_user_flag(self, user_id: str, flag: str) -> bool:
        """
        True when the account carries a first-time flag
        (has_made_first_deposit, has_made_first_purchase, has_completed_first_action)
        """
        ...


# ====================
# Custom Exceptions (no I/O operations)
# ====================


class BonusServiceError(Exception):
    """Base exception for bonus service errors"""
    code = "MSBonusError"


class TemplateNotFoundError(BonusServiceError):
    """Raised when a bonus template is not found"""
    code = "MSBonusTemplateNotFound"


class TemplateNotActiveError(BonusServiceError):
    """Raised when a bonus template is inactive"""
    code = "MSBonusTemplateNotActive"


class UserBonusNotFoundError(BonusServiceError):
    """Raised when a user bonus is not found or belongs to another user"""
    code = "MSBonusAwardedBonusNotFound"


class InvalidBonusStateError(BonusServiceError):
    """Raised when a transition is requested from a state that does not allow it"""
    code = "MSBonusInvalidState"

    def __init__(
        self,
        message: str,
        bonus_id: Optional[str] = None,
        current_status: Optional[str] = None,
        required_statuses: Optional[List[str]] = None,
    ):
        super().__init__(message)
        self.bonus_id = bonus_id
        self.current_status = current_status
        self.required_statuses = required_statuses or []


class LedgerTransferError(BonusServiceError):
    """Raised when the ledger rejects or fails a transfer; local state is untouched"""
    code = "MSBonusLedgerTransferFailed"

    def __init__(
        self,
        message: str,
        bonus_id: Optional[str] = None,
        operation: Optional[str] = None,
        reason: Optional[str] = None,
    ):
        super().__init__(message)
        self.bonus_id = bonus_id
        self.operation = operation
        self.reason = reason


class BonusAwardFailedError(BonusServiceError):
    """Raised when persisting an award fails"""
    code = "MSBonusBonusAwardFailed"

    def __init__(self, message: str, reason: Optional[str] = None):
        super().__init__(message)
        self.reason = reason


class ApprovalNotFoundError(BonusServiceError):
    """Raised when a pending approval token is unknown"""
    code = "MSBonusApprovalNotFound"


# Result-level error codes (returned, not raised)
NO_HANDLER_ERROR_CODE = "MSBonusNoHandlerForBonusType"
NOT_ELIGIBLE_ERROR_CODE = "MSBonusUserNotEligible"
REQUIRES_APPROVAL_ERROR_CODE = "MSBonusBonusRequiresApproval"


__all__ = [
    "TemplateRepositoryProtocol",
    "UserBonusRepositoryProtocol",
    "TransactionRepositoryProtocol",
    "ApprovalRepositoryProtocol",
    "EventBusProtocol",
    "LedgerClientProtocol",
    "AccountClientProtocol",
    "BonusServiceError",
    "TemplateNotFoundError",
    "TemplateNotActiveError",
    "UserBonusNotFoundError",
    "InvalidBonusStateError",
    "LedgerTransferError",
    "BonusAwardFailedError",
    "ApprovalNotFoundError",
    "NO_HANDLER_ERROR_CODE",
    "NOT_ELIGIBLE_ERROR_CODE",
    "REQUIRES_APPROVAL_ERROR_CODE",
]
