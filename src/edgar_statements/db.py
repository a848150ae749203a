"""MongoDB persistence layer for the statement collector.

Collections:
  - stocks                — roster of tracked securities (read only here)
  - financial_statements  — normalized statements, unique per
                            (company_id, fiscal_year, report_type)
  - jobs                  — collection job status documents

Roster reads and statement writes are required by a collection job, so
they raise PersistenceUnavailable when MongoDB is missing.  Job status
updates are best effort and never crash a running job.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime, timezone
from typing import Any

from bson.decimal128 import Decimal128
from pymongo import ASCENDING, MongoClient, UpdateOne
from pymongo.errors import PyMongoError

from edgar_statements.errors import PersistenceUnavailable
from edgar_statements.models import Company, FinancialStatement
from edgar_statements.xbrl_mappings import METRIC_NAMES

log = logging.getLogger(__name__)

US_MARKETS = ("US_NYSE", "US_NASDAQ")
DEFAULT_CHUNK_SIZE = 2000

_client: Any = None
_db: Any = None


def _get_db():
    """Lazy-init MongoDB connection. Raises PersistenceUnavailable if unreachable."""
    global _client, _db
    if _db is not None:
        return _db

    from edgar_statements.config import get_config
    config = get_config()
    if not config.mongodb_uri:
        raise PersistenceUnavailable("MONGODB_URI not set")

    try:
        client = MongoClient(config.mongodb_uri, serverSelectionTimeoutMS=5000)
        # Ping confirms connectivity before any job work starts
        client.admin.command("ping")
        db = client[config.mongodb_database]
        ensure_indexes(db)
    except PyMongoError as exc:
        raise PersistenceUnavailable(f"MongoDB unavailable: {exc}") from exc

    _client, _db = client, db
    log.info("MongoDB connected (database %s)", config.mongodb_database)
    return _db


def ensure_indexes(db) -> None:
    db.financial_statements.create_index(
        [("company_id", ASCENDING), ("fiscal_year", ASCENDING), ("report_type", ASCENDING)],
        unique=True,
    )
    db.jobs.create_index("job_id", unique=True)


# ── Roster ─────────────────────────────────────────────────────────────

def get_active_us_stocks(db=None) -> list[Company]:
    """Active NYSE/NASDAQ stocks as (company_id, symbol) roster entries."""
    db = db if db is not None else _get_db()
    try:
        cursor = db.stocks.find(
            {"market": {"$in": list(US_MARKETS)}, "is_active": True},
            {"_id": 1, "symbol": 1},
        )
        roster = []
        for doc in cursor:
            symbol = doc.get("symbol")
            if not isinstance(symbol, str) or not symbol.strip():
                log.debug("Stock %s has no symbol, skipping", doc.get("_id"))
                continue
            roster.append(Company(company_id=int(doc["_id"]), symbol=symbol))
    except PyMongoError as exc:
        raise PersistenceUnavailable(f"Could not read stocks: {exc}") from exc
    log.info("Loaded %d active US stocks", len(roster))
    return roster


# ── Financial statements ──────────────────────────────────────────────

def statement_key(stmt: FinancialStatement) -> dict:
    return {
        "company_id": stmt.company_id,
        "fiscal_year": stmt.fiscal_year,
        "report_type": stmt.report_type.value,
    }


def statement_fields(stmt: FinancialStatement) -> dict:
    """Stored values: Decimal128 metrics (never float) and integer shares."""
    fields: dict[str, Any] = {}
    for name in METRIC_NAMES:
        value = getattr(stmt, name)
        fields[name] = Decimal128(value) if value is not None else None
    fields["shares_outstanding"] = stmt.shares_outstanding
    return fields


def _statement_update(stmt: FinancialStatement) -> UpdateOne:
    # No timestamps in $set: re-writing unchanged data must modify nothing
    return UpdateOne(
        statement_key(stmt),
        {
            "$set": statement_fields(stmt),
            "$setOnInsert": {"created_at": datetime.now(timezone.utc)},
        },
        upsert=True,
    )


def upsert_statements(
    statements: Sequence[FinancialStatement],
    *,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    db=None,
) -> int:
    """Upsert statements in chunks; returns the number of statements written.

    Keyed by (company_id, fiscal_year, report_type): unchanged input is a
    no-op, revised values overwrite the stored ones.
    """
    if not statements:
        return 0
    if chunk_size < 1:
        raise ValueError(f"chunk_size must be >= 1, got {chunk_size}")
    db = db if db is not None else _get_db()

    total = inserted = modified = 0
    for start in range(0, len(statements), chunk_size):
        chunk = statements[start:start + chunk_size]
        try:
            result = db.financial_statements.bulk_write(
                [_statement_update(s) for s in chunk], ordered=False,
            )
        except PyMongoError as exc:
            raise PersistenceUnavailable(
                f"Statement upsert failed after {total} rows: {exc}"
            ) from exc
        total += len(chunk)
        inserted += result.upserted_count
        modified += result.modified_count

    log.info(
        "Upserted %d financial statements (%d new, %d changed)",
        total, inserted, modified,
    )
    return total


# ── Collection jobs ────────────────────────────────────────────────────

def set_job(
    job_id: str,
    status: str,
    *,
    phase: str = "",
    parsed: int | None = None,
    total: int | None = None,
    result: dict | None = None,
    error: str | None = None,
    db=None,
) -> None:
    """Update collection job status. Logs and carries on if MongoDB fails."""
    try:
        db = db if db is not None else _get_db()
        db.jobs.update_one(
            {"job_id": job_id},
            {"$set": {
                "job_id": job_id,
                "status": status,
                "progress": {"phase": phase, "parsed": parsed, "total": total},
                "result": result,
                "error": error,
                "updated_at": datetime.now(timezone.utc).isoformat(),
            }},
            upsert=True,
        )
    except (PersistenceUnavailable, PyMongoError) as exc:
        log.debug("set_job failed: %s", exc)
