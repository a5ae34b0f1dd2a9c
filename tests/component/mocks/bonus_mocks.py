"""
Bonus Service Mocks for Component Testing

In-memory implementations of the bonus service protocols:
- MockTemplateRepository: TemplateRepositoryProtocol
- MockUserBonusRepository: UserBonusRepositoryProtocol (filter vocabulary, claim keys, CAS turnover,
  settlement leases)
- MockTransactionRepository / MockApprovalRepository
- MockLedgerClient: records transfers, can be told to fail
- MockAccountClient: first-time account flags
"""

import asyncio
import copy
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Set

from microservices.bonus_service.bonus_repository import SETTLEMENT_LEASE_SECONDS
from microservices.bonus_service.models import TERMINAL_STATUSES
from microservices.bonus_service.protocols import BonusAwardFailedError, LedgerTransferError


def _as_list(value) -> List[Any]:
    return list(value) if isinstance(value, (list, tuple, set)) else [value]


# =============================================================================
# Mock Repository Implementations
# =============================================================================


class MockTemplateRepository:
    """In-memory template store"""

    def __init__(self):
        self.templates: Dict[str, Dict[str, Any]] = {}
        self.fail_increment = False
        self.method_calls = []

    def add(self, template: Dict[str, Any]) -> Dict[str, Any]:
        self.templates[template["id"]] = copy.deepcopy(template)
        return template

    async def find_active(self, filters: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        self.method_calls.append(("find_active", filters))
        filters = filters or {}
        result = []
        for template in self.templates.values():
            if not template.get("is_active", True):
                continue
            if filters.get("type") and template["type"] != filters["type"]:
                continue
            if filters.get("code") and template["code"] != filters["code"]:
                continue
            if filters.get("tag") and filters["tag"] not in template.get("tags", []):
                continue
            result.append(copy.deepcopy(template))
        return sorted(result, key=lambda t: t.get("priority", 0), reverse=True)

    async def find_by_id(self, template_id: str) -> Optional[Dict[str, Any]]:
        template = self.templates.get(template_id)
        return copy.deepcopy(template) if template else None

    async def find_by_code(self, code: str) -> Optional[Dict[str, Any]]:
        for template in self.templates.values():
            if template["code"] == code:
                return copy.deepcopy(template)
        return None

    async def find_by_type(self, bonus_type: str) -> List[Dict[str, Any]]:
        return await self.find_active({"type": bonus_type})

    async def increment_usage(self, template_id: str) -> bool:
        self.method_calls.append(("increment_usage", template_id))
        if self.fail_increment:
            raise RuntimeError("usage counter unavailable")
        template = self.templates.get(template_id)
        if not template:
            return False
        template["current_uses_total"] = template.get("current_uses_total", 0) + 1
        return True


class MockUserBonusRepository:
    """In-memory user bonus store honouring the repository filter vocabulary"""

    def __init__(self, transactions: Optional["MockTransactionRepository"] = None):
        self.bonuses: Dict[str, Dict[str, Any]] = {}
        self.transactions = transactions
        self.fail_status_updates = False
        # Number of upcoming update_turnover calls that lose a race
        self.turnover_conflicts = 0
        self.conflict_increment = 0.0
        self.method_calls = []

    def add(self, bonus: Dict[str, Any]) -> Dict[str, Any]:
        self.bonuses[bonus["bonus_id"]] = copy.deepcopy(bonus)
        return bonus

    def get(self, bonus_id: str) -> Dict[str, Any]:
        return self.bonuses[bonus_id]

    async def create(self, bonus_data: Dict[str, Any]) -> Dict[str, Any]:
        self.method_calls.append(("create", bonus_data["bonus_id"]))
        claim_key = bonus_data.get("claim_key")
        if claim_key:
            for existing in self.bonuses.values():
                if existing["user_id"] == bonus_data["user_id"] and existing.get("claim_key") == claim_key:
                    raise BonusAwardFailedError("Bonus already claimed", reason="duplicate_claim")
        self.bonuses[bonus_data["bonus_id"]] = copy.deepcopy(bonus_data)
        return copy.deepcopy(bonus_data)

    async def find_by_id(self, bonus_id: str) -> Optional[Dict[str, Any]]:
        bonus = self.bonuses.get(bonus_id)
        return copy.deepcopy(bonus) if bonus else None

    async def find_by_user_id(self, user_id: str, filters: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        self.method_calls.append(("find_by_user_id", user_id, filters))
        filters = filters or {}
        result = [copy.deepcopy(b) for b in self.bonuses.values() if self._matches(b, user_id, filters)]
        return sorted(result, key=lambda b: b.get("claimed_at") or datetime.min.replace(tzinfo=timezone.utc), reverse=True)

    async def find_latest(self, user_id: str, filters: Optional[Dict[str, Any]] = None) -> Optional[Dict[str, Any]]:
        matches = await self.find_by_user_id(user_id, filters)
        return matches[0] if matches else None

    async def count_by_template(self, user_id: str, template_id: str) -> int:
        return len(await self.find_by_user_id(user_id, {"template_id": template_id}))

    async def update_status(
        self,
        bonus_id: str,
        status: str,
        history_entry: Dict[str, Any],
        extra_fields: Optional[Dict[str, Any]] = None,
        expected_statuses: Optional[List[str]] = None,
        lease: Optional[str] = None,
    ) -> Optional[Dict[str, Any]]:
        self.method_calls.append(("update_status", bonus_id, status))
        if self.fail_status_updates:
            raise RuntimeError("database unavailable")
        bonus = self.bonuses.get(bonus_id)
        if not bonus:
            return None
        if expected_statuses is not None and bonus["status"] not in expected_statuses:
            return None
        if bonus.get("settlement_lease") != lease:
            return None
        bonus["status"] = status
        bonus["history"] = bonus.get("history", []) + [history_entry]
        for key, value in (extra_fields or {}).items():
            if key == "metadata":
                bonus["metadata"] = {**bonus.get("metadata", {}), **value}
            else:
                bonus[key] = value
        bonus["settlement_lease"] = None
        bonus["settlement_started_at"] = None
        bonus["updated_at"] = datetime.now(timezone.utc)
        return copy.deepcopy(bonus)

    async def claim_settlement(
        self, bonus_id: str, lease: str, expected_statuses: List[str]
    ) -> Optional[Dict[str, Any]]:
        self.method_calls.append(("claim_settlement", bonus_id, lease))
        bonus = self.bonuses.get(bonus_id)
        if not bonus or bonus["status"] not in expected_statuses:
            return None
        now = datetime.now(timezone.utc)
        started = bonus.get("settlement_started_at")
        if bonus.get("settlement_lease") and started and started >= now - timedelta(seconds=SETTLEMENT_LEASE_SECONDS):
            return None
        bonus["settlement_lease"] = lease
        bonus["settlement_started_at"] = now
        return copy.deepcopy(bonus)

    async def release_settlement(self, bonus_id: str, lease: str) -> bool:
        bonus = self.bonuses.get(bonus_id)
        if not bonus or bonus.get("settlement_lease") != lease:
            return False
        bonus["settlement_lease"] = None
        bonus["settlement_started_at"] = None
        return True

    async def update_turnover(
        self,
        bonus_id: str,
        new_progress: float,
        new_status: str,
        history_entry: Dict[str, Any],
        expected_progress: Optional[float] = None,
        transaction: Optional[Dict[str, Any]] = None,
    ) -> Optional[Dict[str, Any]]:
        self.method_calls.append(("update_turnover", bonus_id, new_progress, expected_progress))
        bonus = self.bonuses.get(bonus_id)
        if not bonus or bonus["status"] not in ("active", "in_progress"):
            return None

        if self.turnover_conflicts > 0:
            # Simulate another writer landing first
            self.turnover_conflicts -= 1
            bonus["turnover_progress"] += self.conflict_increment
            return None

        if expected_progress is not None and bonus["turnover_progress"] != expected_progress:
            return None

        # The log row goes first so a failing log leaves progress untouched
        if transaction is not None and self.transactions is not None:
            await self.transactions.create(transaction)

        now = datetime.now(timezone.utc)
        bonus["turnover_progress"] = new_progress
        bonus["status"] = new_status
        bonus["history"] = bonus.get("history", []) + [history_entry]
        if new_status == "requirements_met":
            bonus["requirements_met_at"] = now
        bonus["updated_at"] = now
        return copy.deepcopy(bonus)

    async def find_expiring(self, now: datetime) -> List[Dict[str, Any]]:
        return [
            copy.deepcopy(b)
            for b in self.bonuses.values()
            if b["status"] not in TERMINAL_STATUSES and b.get("expires_at") and b["expires_at"] < now
        ]

    @staticmethod
    def _matches(bonus: Dict[str, Any], user_id: str, filters: Dict[str, Any]) -> bool:
        if bonus["user_id"] != user_id:
            return False
        for column in ("status", "type"):
            if filters.get(column) is not None and bonus.get(column) not in _as_list(filters[column]):
                return False
        for column in ("template_id", "template_code", "referee_id", "referrer_id"):
            if filters.get(column) is not None and bonus.get(column) != filters[column]:
                return False
        if filters.get("claimed_after") is not None:
            claimed_at = bonus.get("claimed_at")
            if not claimed_at or claimed_at < filters["claimed_after"]:
                return False
        for key, value in (filters.get("metadata") or {}).items():
            if bonus.get("metadata", {}).get(key) != value:
                return False
        if filters.get("turnover_required_gt") is not None:
            if not bonus.get("turnover_required", 0) > filters["turnover_required_gt"]:
                return False
        return True


class MockTransactionRepository:
    """Append-only transaction log"""

    def __init__(self):
        self.transactions: List[Dict[str, Any]] = []
        self.fail = False
        self.fail_for: Set[str] = set()

    async def create(self, record: Dict[str, Any]) -> Dict[str, Any]:
        if self.fail or record["bonus_id"] in self.fail_for:
            raise RuntimeError("transaction store down")
        self.transactions.append(copy.deepcopy(record))
        return record

    async def find_by_bonus_id(self, bonus_id: str) -> List[Dict[str, Any]]:
        return [t for t in self.transactions if t["bonus_id"] == bonus_id]


class MockApprovalRepository:
    """Pending approvals keyed by token"""

    def __init__(self):
        self.pending: Dict[str, Dict[str, Any]] = {}

    async def create_pending(self, record: Dict[str, Any]) -> str:
        token = f"apr_{uuid.uuid4().hex}"
        self.pending[token] = copy.deepcopy(record)
        return token

    async def get_pending(self, token: str) -> Optional[Dict[str, Any]]:
        record = self.pending.get(token)
        return {**copy.deepcopy(record), "token": token} if record else None

    async def delete_pending(self, token: str) -> bool:
        return self.pending.pop(token, None) is not None


# =============================================================================
# Mock Service Clients
# =============================================================================


class MockLedgerClient:
    """Mock wallet ledger"""

    def __init__(self):
        self.conversions: List[Dict[str, Any]] = []
        self.forfeits: List[Dict[str, Any]] = []
        self.fail = False
        self.fail_for: Set[str] = set()
        # Suspend inside each transfer so concurrent callers interleave
        self.yield_control = False

    async def _check(self, bonus_id: str, operation: str) -> None:
        if self.yield_control:
            await asyncio.sleep(0)
        if self.fail or bonus_id in self.fail_for:
            raise LedgerTransferError(
                "Ledger rejected transfer", bonus_id=bonus_id, operation=operation, reason="unavailable"
            )

    async def record_bonus_conversion_transfer(self, **kwargs) -> Dict[str, Any]:
        await self._check(kwargs["bonus_id"], "convert")
        self.conversions.append(kwargs)
        return {"success": True, "transaction_id": f"ltx_{uuid.uuid4().hex[:12]}"}

    async def record_bonus_forfeit_transfer(self, **kwargs) -> Dict[str, Any]:
        await self._check(kwargs["bonus_id"], "forfeit")
        self.forfeits.append(kwargs)
        return {"success": True, "transaction_id": f"ltx_{uuid.uuid4().hex[:12]}"}


class MockAccountClient:
    """Mock account service client"""

    def __init__(self):
        self.users: Dict[str, Dict[str, Any]] = {}
        self.method_calls = []

    def add_user(self, user_id: str, **flags):
        """Add a user to the mock"""
        self.users[user_id] = {"user_id": user_id, **flags}

    async def get_user(self, user_id: str) -> Optional[Dict[str, Any]]:
        self.method_calls.append(("get_user", user_id))
        return self.users.get(user_id)

    async def has_user_flag(self, user_id: str, flag: str) -> bool:
        self.method_calls.append(("has_user_flag", user_id, flag))
        return bool(self.users.get(user_id, {}).get(flag))


