"""Financial statement extraction from companyfacts documents.

Turns one company's companyfacts document into a short, normalized time
series: the 3 latest fiscal years and the 8 latest fiscal quarters, each
carrying six headline metrics and the outstanding share count.

Data flow:
  1. decode_document()      → tolerant view over the raw JSON
  2. resolve_concept()      → pick the concept this filer actually uses now
  3. classify_observation() → annual bucket, quarterly bucket, or reject
  4. extract_shares()       → share counts keyed by (fiscal period, year)
  5. assemble_statements()  → bounded recent window of FinancialStatement

Everything here is pure and per-company: bucket maps are local to one
extract_statements() call and never shared between threads.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, NamedTuple

from edgar_statements.facts import CompanyFacts, decode_document
from edgar_statements.models import FinancialStatement, RawObservation, ReportType
from edgar_statements.xbrl_mappings import (
    ANNUAL_FORMS,
    METRIC_CONCEPTS,
    METRIC_NAMES,
    QUARTERLY_FORMS,
    QUARTERLY_PERIODS,
    SHARES_CONCEPTS,
    is_balance_sheet_metric,
    is_income_statement_metric,
    is_instant_frame,
    is_single_quarter_frame,
)

log = logging.getLogger(__name__)

MIN_FISCAL_YEAR = 1900
MAX_FISCAL_YEAR = 2100
RECENT_YEARS = 3
MAX_ANNUAL_STATEMENTS = 3
MAX_QUARTERLY_STATEMENTS = 8

AccountBucket = dict[str, Decimal]
AnnualBuckets = dict[int, AccountBucket]
QuarterKey = tuple[int, str]
QuarterlyBuckets = dict[QuarterKey, AccountBucket]
SharesTable = dict[tuple[str, int], int]


# ═══════════════════════════════════════════════════════════════════════════
#  Concept resolution
# ═══════════════════════════════════════════════════════════════════════════

def resolve_concept(
    facts: CompanyFacts,
    candidates: Iterable[str],
    *,
    taxonomy: str = "us-gaap",
    current_year: int | None = None,
    recent_years: int = RECENT_YEARS,
) -> list[RawObservation]:
    """Return the USD observations of the best-populated candidate concept.

    Filers switch concepts across taxonomy eras (SalesRevenueNet gave way
    to RevenueFromContractWithCustomer... in 2018), so candidates are
    ranked by how many observations fall in the last *recent_years*
    fiscal years.  A strictly higher count wins; ties keep the earlier
    candidate.  Returns [] when no candidate has any observation.
    """
    if current_year is None:
        current_year = datetime.now().year
    min_year = current_year - recent_years

    best: list[RawObservation] = []
    best_count = -1
    for concept in candidates:
        observations = facts.observations(taxonomy, concept)
        if not observations:
            continue
        recent = sum(1 for o in observations if (o.fiscal_year or 0) >= min_year)
        if recent > best_count:
            best, best_count = observations, recent
    return best


# ═══════════════════════════════════════════════════════════════════════════
#  Observation classification
# ═══════════════════════════════════════════════════════════════════════════

class BucketKind(str, Enum):
    ANNUAL = "annual"
    QUARTERLY = "quarterly"
    REJECT = "reject"


class Classification(NamedTuple):
    kind: BucketKind
    key: int | QuarterKey | None = None
    precise: bool = False   # single-quarter frame: overrides earlier values


REJECTED = Classification(BucketKind.REJECT)


def classify_observation(observation: RawObservation, metric: str) -> Classification:
    """Decide which bucket (if any) an observation belongs to.

    Annual: 10-K family with fp=FY.  Balance-sheet metrics carrying a frame
    must be point-in-time (CY2023Q4I); flows are not frame-filtered.

    Quarterly: 10-Q family with fp in Q1-Q3.  A frame, when present, must be
    a single quarter (CY2023Q3) for flows or point-in-time for balances.
    A 10-Q also repeats year-to-date and prior-year figures under the same
    fp; the single-quarter frame is what marks the value for this quarter.
    """
    fy = observation.fiscal_year
    if not fy or observation.value is None:
        return REJECTED
    if fy < MIN_FISCAL_YEAR or fy > MAX_FISCAL_YEAR:
        return REJECTED

    frame = observation.frame
    fp = observation.fiscal_period

    if observation.form in ANNUAL_FORMS and fp == "FY":
        if is_balance_sheet_metric(metric) and frame and not is_instant_frame(frame):
            return REJECTED
        return Classification(BucketKind.ANNUAL, fy)

    if observation.form in QUARTERLY_FORMS and fp in QUARTERLY_PERIODS:
        if frame:
            if is_income_statement_metric(metric) and not is_single_quarter_frame(frame):
                return REJECTED
            if is_balance_sheet_metric(metric) and not is_instant_frame(frame):
                return REJECTED
        precise = bool(frame) and is_single_quarter_frame(frame)
        return Classification(BucketKind.QUARTERLY, (fy, fp), precise)

    return REJECTED


def place_observation(
    observation: RawObservation,
    metric: str,
    annual: AnnualBuckets,
    quarterly: QuarterlyBuckets,
) -> BucketKind:
    """Classify *observation* and write it into the matching bucket.

    First writer wins per metric and period, except that a quarterly value
    with a single-quarter frame replaces whatever was there.
    """
    result = classify_observation(observation, metric)
    if result.kind is BucketKind.ANNUAL:
        annual.setdefault(result.key, {}).setdefault(metric, observation.value)
    elif result.kind is BucketKind.QUARTERLY:
        bucket = quarterly.setdefault(result.key, {})
        if result.precise or metric not in bucket:
            bucket[metric] = observation.value
    return result.kind


# ═══════════════════════════════════════════════════════════════════════════
#  Outstanding shares
# ═══════════════════════════════════════════════════════════════════════════

def extract_shares(facts: CompanyFacts) -> SharesTable:
    """Share counts keyed by (fiscal period, fiscal year).

    Sources are tried one at a time in SHARES_CONCEPTS order; the first
    source that yields anything is used exclusively.  Within it, the first
    non-zero value seen for a period wins.
    """
    shares: SharesTable = {}
    for taxonomy, concept in SHARES_CONCEPTS:
        for observations in facts.unit_observations(taxonomy, concept).values():
            for obs in observations:
                if obs.fiscal_year and obs.fiscal_period and obs.value:
                    shares.setdefault((obs.fiscal_period, obs.fiscal_year), int(obs.value))
        if shares:
            break
    return shares


# ═══════════════════════════════════════════════════════════════════════════
#  Statement assembly
# ═══════════════════════════════════════════════════════════════════════════

def _build_statement(
    company_id: int,
    fiscal_year: int,
    report_type: ReportType,
    accounts: Mapping[str, Decimal],
    shares: int | None,
) -> FinancialStatement:
    metrics = {name: accounts[name] for name in METRIC_NAMES if name in accounts}
    return FinancialStatement(
        company_id=company_id,
        fiscal_year=fiscal_year,
        report_type=report_type,
        shares_outstanding=shares,
        **metrics,
    )


def assemble_statements(
    company_id: int,
    annual: AnnualBuckets,
    quarterly: QuarterlyBuckets,
    shares: SharesTable,
    *,
    max_annual: int = MAX_ANNUAL_STATEMENTS,
    max_quarterly: int = MAX_QUARTERLY_STATEMENTS,
) -> list[FinancialStatement]:
    """Build the recent window: annual (newest first), then quarterly (newest first)."""
    statements: list[FinancialStatement] = []

    years = sorted((fy for fy, accounts in annual.items() if accounts), reverse=True)
    for fy in years[:max_annual]:
        statements.append(
            _build_statement(company_id, fy, ReportType.FY, annual[fy], shares.get(("FY", fy)))
        )

    quarters = sorted(
        (key for key, accounts in quarterly.items()
         if accounts and key[1] in QUARTERLY_PERIODS),
        reverse=True,
    )
    for fy, fp in quarters[:max_quarterly]:
        statements.append(
            _build_statement(
                company_id, fy, ReportType(fp), quarterly[(fy, fp)], shares.get((fp, fy)),
            )
        )

    return statements


# ═══════════════════════════════════════════════════════════════════════════
#  Per-company extraction
# ═══════════════════════════════════════════════════════════════════════════

def extract_statements(
    company_id: int,
    document: CompanyFacts | bytes | str | Mapping[str, Any],
    *,
    current_year: int | None = None,
    recent_years: int = RECENT_YEARS,
) -> list[FinancialStatement]:
    """Extract the normalized statement window from one companyfacts document.

    Args:
        company_id: Internal id stamped on every statement.
        document: Raw JSON (bytes/str), a parsed mapping, or CompanyFacts.
        current_year: Reference year for concept recency (default: today).
        recent_years: Recency window for concept resolution.

    Raises:
        DocumentDecodeError: the document's top level is not a JSON object.
            Anything missing below the top level just yields fewer statements.
    """
    facts = document if isinstance(document, CompanyFacts) else decode_document(document)

    annual: AnnualBuckets = {}
    quarterly: QuarterlyBuckets = {}
    for metric in METRIC_CONCEPTS:
        observations = resolve_concept(
            facts, metric.concepts,
            current_year=current_year, recent_years=recent_years,
        )
        for obs in observations:
            place_observation(obs, metric.metric, annual, quarterly)

    shares = extract_shares(facts)
    statements = assemble_statements(company_id, annual, quarterly, shares)
    log.debug(
        "Company %d: %d annual / %d quarterly periods → %d statements",
        company_id, len(annual), len(quarterly), len(statements),
    )
    return statements
