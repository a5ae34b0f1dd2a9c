"""
Bonus Service Data Repository

Data access layer - PostgreSQL (asyncpg)
Implements the store protocols from protocols.py
"""

import json
import logging
import uuid
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

import asyncpg

from core.config import BonusServiceConfig
from core.postgres_client import PostgresClient

from .models import TERMINAL_STATUSES, utc_now
from .protocols import BonusAwardFailedError

logger = logging.getLogger(__name__)

SCHEMA = "bonus"

JSON_COLUMNS = ("history", "metadata", "definition", "tags", "payload")

# Template fields kept as real columns; everything else lives in `definition`
TEMPLATE_COLUMNS = (
    "code", "name", "type", "is_active", "priority", "valid_from", "valid_until", "current_uses_total",
)

USER_BONUS_COLUMNS = (
    "bonus_id", "user_id", "tenant_id", "template_id", "template_code", "type", "domain", "status",
    "currency", "original_value", "current_value", "turnover_required", "turnover_progress",
    "wallet_id", "wallet_category", "trigger_transaction_id", "deposit_id", "referrer_id", "referee_id",
    "claim_key", "qualified_at", "claimed_at", "activated_at", "requirements_met_at", "converted_at",
    "forfeited_at", "expired_at", "cancelled_at", "expires_at", "forfeit_reason", "history", "metadata",
    "created_at", "updated_at",
)

# Columns update_status may touch through extra_fields
UPDATABLE_COLUMNS = {
    "current_value", "converted_at", "forfeited_at", "expired_at", "cancelled_at",
    "requirements_met_at", "forfeit_reason", "wallet_id", "metadata",
}

TRANSACTION_COLUMNS = (
    "transaction_id", "bonus_id", "user_id", "tenant_id", "type", "currency", "amount",
    "balance_before", "balance_after", "turnover_before", "turnover_after", "turnover_contribution",
    "contribution_rate", "related_transaction_id", "activity_category", "created_at",
)

INSERT_TRANSACTION_SQL = f'''
    INSERT INTO {SCHEMA}.bonus_transactions ({", ".join(TRANSACTION_COLUMNS)})
    VALUES ({", ".join(f"${i}" for i in range(1, len(TRANSACTION_COLUMNS) + 1))})
    RETURNING *
'''

# A settlement lease older than this is treated as abandoned by a crashed worker
SETTLEMENT_LEASE_SECONDS = 300

SCHEMA_SQL = f'''
CREATE SCHEMA IF NOT EXISTS {SCHEMA};

CREATE TABLE IF NOT EXISTS {SCHEMA}.bonus_templates (
    template_id VARCHAR(100) PRIMARY KEY,
    code VARCHAR(100) NOT NULL UNIQUE,
    name VARCHAR(255) NOT NULL DEFAULT '',
    type VARCHAR(50) NOT NULL,
    is_active BOOLEAN NOT NULL DEFAULT TRUE,
    priority INTEGER NOT NULL DEFAULT 0,
    valid_from TIMESTAMPTZ,
    valid_until TIMESTAMPTZ,
    current_uses_total INTEGER NOT NULL DEFAULT 0,
    tags JSONB NOT NULL DEFAULT '[]'::jsonb,
    definition JSONB NOT NULL DEFAULT '{{}}'::jsonb,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);
CREATE INDEX IF NOT EXISTS idx_bonus_templates_type ON {SCHEMA}.bonus_templates (type, is_active);

CREATE TABLE IF NOT EXISTS {SCHEMA}.user_bonuses (
    bonus_id VARCHAR(100) PRIMARY KEY,
    user_id VARCHAR(100) NOT NULL,
    tenant_id VARCHAR(100) NOT NULL,
    template_id VARCHAR(100) NOT NULL,
    template_code VARCHAR(100) NOT NULL,
    type VARCHAR(50) NOT NULL,
    domain VARCHAR(50),
    status VARCHAR(30) NOT NULL,
    currency VARCHAR(10) NOT NULL,
    original_value DOUBLE PRECISION NOT NULL DEFAULT 0,
    current_value DOUBLE PRECISION NOT NULL DEFAULT 0,
    turnover_required DOUBLE PRECISION NOT NULL DEFAULT 0,
    turnover_progress DOUBLE PRECISION NOT NULL DEFAULT 0,
    wallet_id VARCHAR(100),
    wallet_category VARCHAR(50),
    trigger_transaction_id VARCHAR(100),
    deposit_id VARCHAR(100),
    referrer_id VARCHAR(100),
    referee_id VARCHAR(100),
    claim_key VARCHAR(255),
    qualified_at TIMESTAMPTZ,
    claimed_at TIMESTAMPTZ,
    activated_at TIMESTAMPTZ,
    requirements_met_at TIMESTAMPTZ,
    converted_at TIMESTAMPTZ,
    forfeited_at TIMESTAMPTZ,
    expired_at TIMESTAMPTZ,
    cancelled_at TIMESTAMPTZ,
    expires_at TIMESTAMPTZ,
    forfeit_reason TEXT,
    settlement_lease VARCHAR(100),
    settlement_started_at TIMESTAMPTZ,
    history JSONB NOT NULL DEFAULT '[]'::jsonb,
    metadata JSONB NOT NULL DEFAULT '{{}}'::jsonb,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);
ALTER TABLE {SCHEMA}.user_bonuses ADD COLUMN IF NOT EXISTS settlement_lease VARCHAR(100);
ALTER TABLE {SCHEMA}.user_bonuses ADD COLUMN IF NOT EXISTS settlement_started_at TIMESTAMPTZ;
CREATE INDEX IF NOT EXISTS idx_user_bonuses_user ON {SCHEMA}.user_bonuses (user_id, status);
CREATE INDEX IF NOT EXISTS idx_user_bonuses_expiry ON {SCHEMA}.user_bonuses (expires_at)
    WHERE status NOT IN ('converted', 'forfeited', 'expired', 'cancelled');
CREATE UNIQUE INDEX IF NOT EXISTS uq_user_bonuses_claim ON {SCHEMA}.user_bonuses (user_id, claim_key)
    WHERE claim_key IS NOT NULL;

CREATE TABLE IF NOT EXISTS {SCHEMA}.bonus_transactions (
    transaction_id VARCHAR(100) PRIMARY KEY,
    bonus_id VARCHAR(100) NOT NULL,
    user_id VARCHAR(100) NOT NULL,
    tenant_id VARCHAR(100) NOT NULL,
    type VARCHAR(30) NOT NULL,
    currency VARCHAR(10) NOT NULL,
    amount DOUBLE PRECISION NOT NULL,
    balance_before DOUBLE PRECISION NOT NULL,
    balance_after DOUBLE PRECISION NOT NULL,
    turnover_before DOUBLE PRECISION NOT NULL,
    turnover_after DOUBLE PRECISION NOT NULL,
    turnover_contribution DOUBLE PRECISION NOT NULL,
    contribution_rate DOUBLE PRECISION NOT NULL,
    related_transaction_id VARCHAR(100),
    activity_category VARCHAR(50),
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);
CREATE INDEX IF NOT EXISTS idx_bonus_transactions_bonus ON {SCHEMA}.bonus_transactions (bonus_id);

CREATE TABLE IF NOT EXISTS {SCHEMA}.bonus_approvals (
    token VARCHAR(100) PRIMARY KEY,
    payload JSONB NOT NULL,
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);
'''


def _json_default(value: Any):
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Decimal):
        return float(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def _dumps(value: Any) -> str:
    return json.dumps(value, default=_json_default)


def _transaction_params(record: Dict[str, Any]) -> List[Any]:
    params = [record.get(column) for column in TRANSACTION_COLUMNS]
    if params[-1] is None:
        params[-1] = utc_now()
    return params


def _row_to_dict(row: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Convert database row to dictionary, decoding JSONB columns"""
    if not row:
        return {}

    result = {}
    for key, value in row.items():
        if key in JSON_COLUMNS and isinstance(value, str):
            try:
                result[key] = json.loads(value)
            except (json.JSONDecodeError, TypeError):
                result[key] = [] if key in ("history", "tags") else {}
        else:
            result[key] = value
    return result


class TemplateRepository:
    """Bonus templates - read side plus the usage counter"""

    def __init__(self, db: PostgresClient):
        self.db = db
        self.table = f"{SCHEMA}.bonus_templates"

    async def find_active(self, filters: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        filters = filters or {}
        conditions = ["is_active = TRUE"]
        params: List[Any] = []

        if filters.get("type"):
            params.append(filters["type"])
            conditions.append(f"type = ${len(params)}")
        if filters.get("code"):
            params.append(filters["code"])
            conditions.append(f"code = ${len(params)}")
        if filters.get("tag"):
            params.append(_dumps([filters["tag"]]))
            conditions.append(f"tags @> ${len(params)}::jsonb")

        query = f'''
            SELECT * FROM {self.table}
            WHERE {" AND ".join(conditions)}
            ORDER BY priority DESC, created_at ASC
        '''
        try:
            async with self.db:
                rows = await self.db.query(query, params=params)
            return [self._to_template(row) for row in rows]
        except Exception as e:
            logger.error(f"Error finding active templates with {filters}: {e}")
            raise

    async def find_by_id(self, template_id: str) -> Optional[Dict[str, Any]]:
        async with self.db:
            row = await self.db.query_row(f"SELECT * FROM {self.table} WHERE template_id = $1", params=[template_id])
        return self._to_template(row) if row else None

    async def find_by_code(self, code: str) -> Optional[Dict[str, Any]]:
        async with self.db:
            row = await self.db.query_row(f"SELECT * FROM {self.table} WHERE code = $1", params=[code])
        return self._to_template(row) if row else None

    async def find_by_type(self, bonus_type: str) -> List[Dict[str, Any]]:
        return await self.find_active({"type": bonus_type})

    async def increment_usage(self, template_id: str) -> bool:
        query = f'''
            UPDATE {self.table}
            SET current_uses_total = current_uses_total + 1, updated_at = $2
            WHERE template_id = $1
        '''
        async with self.db:
            status = await self.db.execute(query, params=[template_id, utc_now()])
        return status.endswith(" 1")

    async def save(self, template: Dict[str, Any]) -> Dict[str, Any]:
        """Insert or replace a template (administration and seeding)"""
        definition = {
            k: v for k, v in template.items()
            if k not in TEMPLATE_COLUMNS and k not in ("id", "tags", "created_at", "updated_at")
        }
        now = utc_now()
        query = f'''
            INSERT INTO {self.table} (
                template_id, code, name, type, is_active, priority, valid_from, valid_until,
                current_uses_total, tags, definition, created_at, updated_at
            ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10::jsonb, $11::jsonb, $12, $12)
            ON CONFLICT (template_id) DO UPDATE SET
                code = EXCLUDED.code, name = EXCLUDED.name, type = EXCLUDED.type,
                is_active = EXCLUDED.is_active, priority = EXCLUDED.priority,
                valid_from = EXCLUDED.valid_from, valid_until = EXCLUDED.valid_until,
                tags = EXCLUDED.tags, definition = EXCLUDED.definition, updated_at = EXCLUDED.updated_at
            RETURNING *
        '''
        params = [
            template["id"],
            template["code"],
            template.get("name", ""),
            template["type"],
            template.get("is_active", True),
            template.get("priority", 0),
            template.get("valid_from"),
            template.get("valid_until"),
            template.get("current_uses_total", 0),
            _dumps(template.get("tags", [])),
            _dumps(definition),
            now,
        ]
        async with self.db:
            row = await self.db.query_row(query, params=params)
        return self._to_template(row)

    @staticmethod
    def _to_template(row: Dict[str, Any]) -> Dict[str, Any]:
        data = _row_to_dict(row)
        definition = data.pop("definition", {}) or {}
        data["id"] = data.pop("template_id")
        return {**definition, **data}


class UserBonusRepository:
    """Awarded bonuses and their lifecycle state"""

    def __init__(self, db: PostgresClient):
        self.db = db
        self.table = f"{SCHEMA}.user_bonuses"

    async def create(self, bonus_data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Raises:
            BonusAwardFailedError: duplicate claim key, or insert failure
        """
        values = []
        for column in USER_BONUS_COLUMNS:
            value = bonus_data.get(column)
            if column in ("history", "metadata"):
                value = _dumps(value if value is not None else ([] if column == "history" else {}))
            values.append(value)

        placeholders = ", ".join(
            f"${i}::jsonb" if column in ("history", "metadata") else f"${i}"
            for i, column in enumerate(USER_BONUS_COLUMNS, start=1)
        )
        query = f'''
            INSERT INTO {self.table} ({", ".join(USER_BONUS_COLUMNS)})
            VALUES ({placeholders})
            RETURNING *
        '''
        try:
            async with self.db:
                row = await self.db.query_row(query, params=values)
        except asyncpg.UniqueViolationError as e:
            logger.warning(
                f"Duplicate claim for user {bonus_data.get('user_id')}: {bonus_data.get('claim_key')}"
            )
            raise BonusAwardFailedError("Bonus already claimed", reason="duplicate_claim") from e
        except Exception as e:
            logger.error(f"Error creating user bonus: {e}", exc_info=True)
            raise BonusAwardFailedError("Failed to persist bonus", reason=str(e)) from e

        if not row:
            raise BonusAwardFailedError("Failed to persist bonus", reason="no row returned")
        return _row_to_dict(row)

    async def find_by_id(self, bonus_id: str) -> Optional[Dict[str, Any]]:
        async with self.db:
            row = await self.db.query_row(f"SELECT * FROM {self.table} WHERE bonus_id = $1", params=[bonus_id])
        return _row_to_dict(row) if row else None

    async def find_by_user_id(self, user_id: str, filters: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        where, params = self._build_filters(user_id, filters or {})
        query = f'''
            SELECT * FROM {self.table}
            WHERE {where}
            ORDER BY created_at DESC
        '''
        try:
            async with self.db:
                rows = await self.db.query(query, params=params)
            return [_row_to_dict(row) for row in rows]
        except Exception as e:
            logger.error(f"Error getting bonuses for user {user_id}: {e}")
            raise

    async def find_latest(self, user_id: str, filters: Optional[Dict[str, Any]] = None) -> Optional[Dict[str, Any]]:
        where, params = self._build_filters(user_id, filters or {})
        query = f'''
            SELECT * FROM {self.table}
            WHERE {where}
            ORDER BY claimed_at DESC NULLS LAST
            LIMIT 1
        '''
        async with self.db:
            row = await self.db.query_row(query, params=params)
        return _row_to_dict(row) if row else None

    async def count_by_template(self, user_id: str, template_id: str) -> int:
        query = f"SELECT COUNT(*) AS count FROM {self.table} WHERE user_id = $1 AND template_id = $2"
        async with self.db:
            row = await self.db.query_row(query, params=[user_id, template_id])
        return int(row["count"]) if row else 0

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
        Conditional status transition.

        Applies only while the bonus is in one of expected_statuses (when given)
        and its settlement lease equals `lease` (no lease when None). The lease
        is released by the write.

        Returns:
            Updated record, or None when the bonus is missing or the condition failed
        """
        now = utc_now()
        params: List[Any] = [
            bonus_id, status, _dumps([history_entry]), now,
            list(expected_statuses) if expected_statuses is not None else None, lease,
        ]
        assignments = [
            "status = $2", "history = history || $3::jsonb", "updated_at = $4",
            "settlement_lease = NULL", "settlement_started_at = NULL",
        ]

        for column, value in (extra_fields or {}).items():
            if column not in UPDATABLE_COLUMNS:
                raise ValueError(f"Column {column} cannot be updated")
            if column == "metadata":
                params.append(_dumps(value))
                assignments.append(f"metadata = metadata || ${len(params)}::jsonb")
            else:
                params.append(value)
                assignments.append(f"{column} = ${len(params)}")

        query = f'''
            UPDATE {self.table}
            SET {", ".join(assignments)}
            WHERE bonus_id = $1
              AND ($5::text[] IS NULL OR status = ANY($5::text[]))
              AND settlement_lease IS NOT DISTINCT FROM $6::text
            RETURNING *
        '''
        try:
            async with self.db:
                row = await self.db.query_row(query, params=params)
            return _row_to_dict(row) if row else None
        except Exception as e:
            logger.error(f"Error updating bonus {bonus_id} to {status}: {e}")
            raise

    async def claim_settlement(
        self, bonus_id: str, lease: str, expected_statuses: List[str]
    ) -> Optional[Dict[str, Any]]:
        """
        Take the settlement lease before a ledger transfer.

        Only one convert/forfeit/expire may hold it at a time. A lease older
        than SETTLEMENT_LEASE_SECONDS is taken over.

        Returns:
            The current record, or None when the bonus is leased or not in expected_statuses
        """
        now = utc_now()
        query = f'''
            UPDATE {self.table}
            SET settlement_lease = $2, settlement_started_at = $3
            WHERE bonus_id = $1
              AND status = ANY($4::text[])
              AND (settlement_lease IS NULL OR settlement_started_at < $5)
            RETURNING *
        '''
        params = [bonus_id, lease, now, list(expected_statuses), now - timedelta(seconds=SETTLEMENT_LEASE_SECONDS)]
        async with self.db:
            row = await self.db.query_row(query, params=params)
        return _row_to_dict(row) if row else None

    async def release_settlement(self, bonus_id: str, lease: str) -> bool:
        query = f'''
            UPDATE {self.table}
            SET settlement_lease = NULL, settlement_started_at = NULL
            WHERE bonus_id = $1 AND settlement_lease = $2
        '''
        async with self.db:
            status = await self.db.execute(query, params=[bonus_id, lease])
        return status.endswith(" 1")

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
        Compare-and-set on turnover_progress; None when another write got there first.

        A transaction record, when given, is inserted in the same database
        transaction, so progress never moves without its log row.
        """
        query = f'''
            UPDATE {self.table}
            SET turnover_progress = $2,
                status = $3,
                history = history || $4::jsonb,
                requirements_met_at = CASE WHEN $3 = 'requirements_met' THEN $5 ELSE requirements_met_at END,
                updated_at = $5
            WHERE bonus_id = $1
              AND status IN ('active', 'in_progress')
              AND ($6::double precision IS NULL OR turnover_progress = $6)
            RETURNING *
        '''
        params = [bonus_id, new_progress, new_status, _dumps([history_entry]), utc_now(), expected_progress]

        if transaction is None:
            async with self.db:
                row = await self.db.query_row(query, params=params)
            return _row_to_dict(row) if row else None

        try:
            async with self.db.transaction() as conn:
                row = await conn.fetchrow(query, *params)
                if row:
                    await conn.fetchrow(INSERT_TRANSACTION_SQL, *_transaction_params(transaction))
        except Exception as e:
            logger.error(f"Error recording turnover on bonus {bonus_id}: {e}")
            raise
        return _row_to_dict(dict(row)) if row else None

    async def find_expiring(self, now: datetime) -> List[Dict[str, Any]]:
        query = f'''
            SELECT * FROM {self.table}
            WHERE status <> ALL($1::text[])
              AND expires_at IS NOT NULL
              AND expires_at < $2
            ORDER BY expires_at ASC
        '''
        async with self.db:
            rows = await self.db.query(query, params=[sorted(TERMINAL_STATUSES), now])
        return [_row_to_dict(row) for row in rows]

    @staticmethod
    def _build_filters(user_id: str, filters: Dict[str, Any]) -> Tuple[str, List[Any]]:
        conditions = ["user_id = $1"]
        params: List[Any] = [user_id]

        for column in ("status", "type"):
            value = filters.get(column)
            if value is None:
                continue
            params.append(value)
            if isinstance(value, (list, tuple, set)):
                params[-1] = list(value)
                conditions.append(f"{column} = ANY(${len(params)}::text[])")
            else:
                conditions.append(f"{column} = ${len(params)}")

        for column in ("template_id", "template_code", "referee_id", "referrer_id"):
            if filters.get(column) is not None:
                params.append(filters[column])
                conditions.append(f"{column} = ${len(params)}")

        if filters.get("claimed_after") is not None:
            params.append(filters["claimed_after"])
            conditions.append(f"claimed_at >= ${len(params)}")

        if filters.get("metadata"):
            params.append(_dumps(filters["metadata"]))
            conditions.append(f"metadata @> ${len(params)}::jsonb")

        if filters.get("turnover_required_gt") is not None:
            params.append(filters["turnover_required_gt"])
            conditions.append(f"turnover_required > ${len(params)}")

        return " AND ".join(conditions), params


class TransactionRepository:
    """Append-only turnover transaction log"""

    def __init__(self, db: PostgresClient):
        self.db = db
        self.table = f"{SCHEMA}.bonus_transactions"

    async def create(self, record: Dict[str, Any]) -> Dict[str, Any]:
        try:
            async with self.db:
                row = await self.db.query_row(INSERT_TRANSACTION_SQL, params=_transaction_params(record))
            return _row_to_dict(row)
        except Exception as e:
            logger.error(f"Error recording bonus transaction for {record.get('bonus_id')}: {e}")
            raise

    async def find_by_bonus_id(self, bonus_id: str) -> List[Dict[str, Any]]:
        query = f"SELECT * FROM {self.table} WHERE bonus_id = $1 ORDER BY created_at ASC"
        async with self.db:
            rows = await self.db.query(query, params=[bonus_id])
        return [_row_to_dict(row) for row in rows]


class ApprovalRepository:
    """Awards parked until an operator approves them"""

    def __init__(self, db: PostgresClient):
        self.db = db
        self.table = f"{SCHEMA}.bonus_approvals"

    async def create_pending(self, record: Dict[str, Any]) -> str:
        token = f"apr_{uuid.uuid4().hex}"
        query = f"INSERT INTO {self.table} (token, payload, created_at) VALUES ($1, $2::jsonb, $3)"
        async with self.db:
            await self.db.execute(query, params=[token, _dumps(record), utc_now()])
        return token

    async def get_pending(self, token: str) -> Optional[Dict[str, Any]]:
        async with self.db:
            row = await self.db.query_row(f"SELECT * FROM {self.table} WHERE token = $1", params=[token])
        if not row:
            return None
        data = _row_to_dict(row)
        return {**data["payload"], "token": data["token"]}

    async def delete_pending(self, token: str) -> bool:
        async with self.db:
            status = await self.db.execute(f"DELETE FROM {self.table} WHERE token = $1", params=[token])
        return status.endswith(" 1")


class BonusRepository:
    """Bonus service data repository - PostgreSQL (asyncpg)"""

    def __init__(self, config: Optional[BonusServiceConfig] = None, db: Optional[PostgresClient] = None):
        if db is None:
            if config is None:
                config = BonusServiceConfig.from_env()
            infra = config.infra
            logger.info(f"Connecting to PostgreSQL at {infra.postgres_host}:{infra.postgres_port}")
            db = PostgresClient(
                service_name=config.service_name,
                dsn=infra.postgres_dsn,
                min_size=infra.postgres_pool_min,
                max_size=infra.postgres_pool_max,
            )
        self.db = db
        self.templates = TemplateRepository(db)
        self.user_bonuses = UserBonusRepository(db)
        self.transactions = TransactionRepository(db)
        self.approvals = ApprovalRepository(db)

    async def initialize(self):
        """Create the schema and tables if missing"""
        async with self.db:
            await self.db.execute(SCHEMA_SQL)
        logger.info("Bonus repository initialized with PostgreSQL")

    async def health_check(self) -> bool:
        result = await self.db.health_check()
        return bool(result and result.get("healthy"))

    async def close(self):
        """Close database connection"""
        await self.db.close()
        logger.info("Bonus repository database connection closed")


__all__ = [
    "BonusRepository",
    "TemplateRepository",
    "UserBonusRepository",
    "TransactionRepository",
    "ApprovalRepository",
]
