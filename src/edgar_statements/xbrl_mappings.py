"""XBRL concept → normalized metric mappings for companyfacts documents.

Each normalized metric maps to an ordered list of us-gaap concepts that
filers have used for it across taxonomy eras.  List order is priority
order: when two concepts are equally well populated, the earlier wins.

Also holds the filing-form families, the frame (aggregation tag) shapes
used to tell single-quarter and point-in-time values apart, and the
prioritized sources for outstanding share counts.
"""

from __future__ import annotations

import re
from enum import Enum
from typing import NamedTuple


# ═══════════════════════════════════════════════════════════════════════════
#  Metric concepts
# ═══════════════════════════════════════════════════════════════════════════

class StatementKind(str, Enum):
    INCOME = "income"
    BALANCE = "balance"


class MetricConcept(NamedTuple):
    metric: str                 # normalized metric name
    concepts: tuple[str, ...]   # us-gaap tags, highest priority first
    statement: StatementKind


REVENUE = MetricConcept(
    "revenue",
    (
        "RevenueFromContractWithCustomerExcludingAssessedTax",
        "Revenues",
        "SalesRevenueNet",
        "RevenueFromContractWithCustomerIncludingAssessedTax",
        "SalesRevenueGoodsNet",
        "SalesRevenueServicesNet",
        "RegulatedAndUnregulatedOperatingRevenue",
        "HealthCareOrganizationRevenue",
        "RealEstateRevenueNet",
        "OilAndGasRevenue",
        # Banks and broker-dealers
        "InterestAndDividendIncomeOperating",
        "InterestIncomeExpenseAfterProvisionForLoanLoss",
        "BrokerageCommissionsRevenue",
    ),
    StatementKind.INCOME,
)

OPERATING_INCOME = MetricConcept(
    "operating_income",
    ("OperatingIncomeLoss",),
    StatementKind.INCOME,
)

NET_INCOME = MetricConcept(
    "net_income",
    (
        "NetIncomeLoss",
        "ProfitLoss",
        "IncomeLossAttributableToParent",
        "NetIncomeLossAvailableToCommonStockholdersBasic",
    ),
    StatementKind.INCOME,
)

TOTAL_ASSETS = MetricConcept(
    "total_assets",
    ("Assets",),
    StatementKind.BALANCE,
)

TOTAL_LIABILITIES = MetricConcept(
    "total_liabilities",
    ("Liabilities",),
    StatementKind.BALANCE,
)

TOTAL_EQUITY = MetricConcept(
    "total_equity",
    (
        "StockholdersEquity",
        "StockholdersEquityIncludingPortionAttributableToNoncontrollingInterest",
        "MembersEquity",
    ),
    StatementKind.BALANCE,
)

METRIC_CONCEPTS: tuple[MetricConcept, ...] = (
    REVENUE,
    OPERATING_INCOME,
    NET_INCOME,
    TOTAL_ASSETS,
    TOTAL_LIABILITIES,
    TOTAL_EQUITY,
)

METRIC_NAMES: tuple[str, ...] = tuple(m.metric for m in METRIC_CONCEPTS)

BALANCE_SHEET_METRICS = frozenset(
    m.metric for m in METRIC_CONCEPTS if m.statement is StatementKind.BALANCE
)
INCOME_STATEMENT_METRICS = frozenset(
    m.metric for m in METRIC_CONCEPTS if m.statement is StatementKind.INCOME
)


def is_balance_sheet_metric(metric: str) -> bool:
    return metric in BALANCE_SHEET_METRICS


def is_income_statement_metric(metric: str) -> bool:
    return metric in INCOME_STATEMENT_METRICS


# ═══════════════════════════════════════════════════════════════════════════
#  Outstanding shares (first populated source wins)
# ═══════════════════════════════════════════════════════════════════════════

SHARES_CONCEPTS: tuple[tuple[str, str], ...] = (
    ("dei", "EntityCommonStockSharesOutstanding"),
    ("us-gaap", "CommonStockSharesOutstanding"),
    ("us-gaap", "SharesOutstanding"),
    ("us-gaap", "WeightedAverageNumberOfSharesOutstandingBasic"),
)


# ═══════════════════════════════════════════════════════════════════════════
#  Forms, fiscal periods and frames
# ═══════════════════════════════════════════════════════════════════════════

ANNUAL_FORMS = frozenset({"10-K", "10-K/A"})
QUARTERLY_FORMS = frozenset({"10-Q", "10-Q/A"})

# Q4 is never reported on a 10-Q; its values only appear inside the 10-K
QUARTERLY_PERIODS = ("Q1", "Q2", "Q3")

# CY2023Q4I: balance at a quarter end
INSTANT_FRAME_RE = re.compile(r"^CY\d{4}Q[1-4]I$")
# CY2023Q3: flow over exactly one calendar quarter
SINGLE_QUARTER_FRAME_RE = re.compile(r"^CY\d{4}Q[1-4]$")


def is_instant_frame(frame: str) -> bool:
    return bool(INSTANT_FRAME_RE.match(frame))


def is_single_quarter_frame(frame: str) -> bool:
    return bool(SINGLE_QUARTER_FRAME_RE.match(frame))
