"""Tests for the extraction engine (concept resolution → statements)."""

import json
from decimal import Decimal

import pytest

from edgar_statements.errors import DocumentDecodeError
from edgar_statements.extraction import (
    BucketKind,
    assemble_statements,
    classify_observation,
    extract_shares,
    extract_statements,
    place_observation,
    resolve_concept,
)
from edgar_statements.facts import decode_document
from edgar_statements.models import RawObservation, ReportType


def fact(val, fy, fp="FY", form="10-K", frame=None):
    entry = {"val": val, "fy": fy, "fp": fp, "form": form}
    if frame is not None:
        entry["frame"] = frame
    return entry


def make_doc(us_gaap=None, shares=None):
    """Build a companyfacts document.

    us_gaap: {concept: [fact, ...]} reported in USD
    shares:  {(taxonomy, concept): [fact, ...]} reported in shares
    """
    facts = {}
    for concept, entries in (us_gaap or {}).items():
        facts.setdefault("us-gaap", {})[concept] = {"units": {"USD": entries}}
    for (taxonomy, concept), entries in (shares or {}).items():
        facts.setdefault(taxonomy, {})[concept] = {"units": {"shares": entries}}
    return {"cik": 1234, "entityName": "Test Corp", "facts": facts}


def make_obs(val=100, fy=2023, fp="FY", form="10-K", frame=None):
    return RawObservation.from_raw(fact(val, fy, fp, form, frame))


# --- Concept resolution ---


def test_resolve_prefers_strictly_more_recent_observations():
    doc = decode_document(make_doc({
        "SalesRevenueNet": [fact(1, 2023)],
        "Revenues": [fact(2, 2023), fact(3, 2022)],
    }))
    chosen = resolve_concept(doc, ["SalesRevenueNet", "Revenues"], current_year=2024)
    assert [o.value for o in chosen] == [Decimal(2), Decimal(3)]


def test_resolve_tie_keeps_first_candidate():
    doc = decode_document(make_doc({
        "Revenues": [fact(1, 2023)],
        "SalesRevenueNet": [fact(2, 2024)],
    }))
    chosen = resolve_concept(doc, ["Revenues", "SalesRevenueNet"], current_year=2024)
    assert [o.value for o in chosen] == [Decimal(1)]


def test_resolve_ignores_old_rows_when_counting():
    # Legacy concept has many rows but none recent
    doc = decode_document(make_doc({
        "SalesRevenueNet": [fact(v, 2010 + v) for v in range(5)],
        "RevenueFromContractWithCustomerExcludingAssessedTax": [fact(9, 2023)],
    }))
    chosen = resolve_concept(
        doc,
        ["SalesRevenueNet", "RevenueFromContractWithCustomerExcludingAssessedTax"],
        current_year=2024,
    )
    assert [o.value for o in chosen] == [Decimal(9)]


def test_resolve_returns_populated_concept_without_recent_rows():
    doc = decode_document(make_doc({"Revenues": [fact(5, 2012)]}))
    chosen = resolve_concept(doc, ["SalesRevenueNet", "Revenues"], current_year=2024)
    assert [o.value for o in chosen] == [Decimal(5)]


def test_resolve_recent_window_boundary():
    doc = decode_document(make_doc({
        "A": [fact(1, 2020)],          # 2024 - 3 = 2021, outside
        "B": [fact(2, 2021)],          # inside
    }))
    chosen = resolve_concept(doc, ["A", "B"], current_year=2024)
    assert [o.value for o in chosen] == [Decimal(2)]


def test_resolve_skips_missing_and_empty_candidates():
    doc = decode_document(make_doc({"Revenues": [], "SalesRevenueNet": [fact(7, 2023)]}))
    chosen = resolve_concept(doc, ["Missing", "Revenues", "SalesRevenueNet"], current_year=2024)
    assert [o.value for o in chosen] == [Decimal(7)]


def test_resolve_nothing_populated():
    doc = decode_document(make_doc({}))
    assert resolve_concept(doc, ["Revenues", "SalesRevenueNet"], current_year=2024) == []


# --- Observation classification ---


@pytest.mark.parametrize("fy", [1899, 2101, 0, -5, 3000])
def test_classify_rejects_out_of_range_years(fy):
    for metric in ("revenue", "total_assets"):
        assert classify_observation(make_obs(fy=fy), metric).kind is BucketKind.REJECT


@pytest.mark.parametrize("fy", [1900, 2100])
def test_classify_accepts_range_bounds(fy):
    assert classify_observation(make_obs(fy=fy), "revenue").kind is BucketKind.ANNUAL


def test_classify_rejects_missing_value_or_year():
    assert classify_observation(make_obs(val=None), "revenue").kind is BucketKind.REJECT
    assert classify_observation(make_obs(fy=None), "revenue").kind is BucketKind.REJECT


def test_classify_annual_income_metric_ignores_frame():
    result = classify_observation(make_obs(frame="CY2023"), "revenue")
    assert result.kind is BucketKind.ANNUAL
    assert result.key == 2023
    assert result.precise is False


def test_classify_annual_amendment_form():
    assert classify_observation(make_obs(form="10-K/A"), "net_income").kind is BucketKind.ANNUAL


@pytest.mark.parametrize("metric", ["total_assets", "total_liabilities", "total_equity"])
def test_classify_annual_balance_sheet_frames(metric):
    assert classify_observation(make_obs(frame="CY2023Q4I"), metric).kind is BucketKind.ANNUAL
    assert classify_observation(make_obs(frame=None), metric).kind is BucketKind.ANNUAL
    assert classify_observation(make_obs(frame="CY2023"), metric).kind is BucketKind.REJECT
    assert classify_observation(make_obs(frame="CY2023Q4"), metric).kind is BucketKind.REJECT


def test_classify_quarterly_income_metric():
    precise = classify_observation(
        make_obs(fp="Q2", form="10-Q", frame="CY2023Q2"), "revenue",
    )
    assert precise.kind is BucketKind.QUARTERLY
    assert precise.key == (2023, "Q2")
    assert precise.precise is True

    untagged = classify_observation(make_obs(fp="Q2", form="10-Q"), "revenue")
    assert untagged.kind is BucketKind.QUARTERLY
    assert untagged.precise is False

    # Year-to-date or instant frames are not single-quarter flows
    for frame in ("CY2023", "CY2023Q2I", "CY2022Q2X"):
        result = classify_observation(make_obs(fp="Q2", form="10-Q", frame=frame), "revenue")
        assert result.kind is BucketKind.REJECT


def test_classify_quarterly_balance_sheet_metric():
    result = classify_observation(
        make_obs(fp="Q1", form="10-Q/A", frame="CY2023Q1I"), "total_assets",
    )
    assert result.kind is BucketKind.QUARTERLY
    assert result.key == (2023, "Q1")
    assert result.precise is False

    result = classify_observation(
        make_obs(fp="Q1", form="10-Q", frame="CY2023Q1"), "total_assets",
    )
    assert result.kind is BucketKind.REJECT


@pytest.mark.parametrize("form,fp", [
    ("10-Q", "Q4"),
    ("10-Q", "FY"),
    ("10-K", "Q2"),
    ("8-K", "FY"),
    ("20-F", "FY"),
    ("", "FY"),
    ("10-K", None),
])
def test_classify_rejects_unusable_form_period(form, fp):
    assert classify_observation(make_obs(fp=fp, form=form), "revenue").kind is BucketKind.REJECT


# --- Bucket placement ---


def test_annual_first_writer_wins():
    annual, quarterly = {}, {}
    place_observation(make_obs(val=10), "revenue", annual, quarterly)
    place_observation(make_obs(val=20), "revenue", annual, quarterly)
    assert annual == {2023: {"revenue": Decimal(10)}}
    assert quarterly == {}


def test_quarterly_single_quarter_frame_overrides():
    annual, quarterly = {}, {}
    # Year-to-date value arrives first without a frame, then the true quarter
    place_observation(make_obs(val=300, fp="Q3", form="10-Q"), "revenue", annual, quarterly)
    place_observation(
        make_obs(val=110, fp="Q3", form="10-Q", frame="CY2023Q3"), "revenue", annual, quarterly,
    )
    place_observation(make_obs(val=999, fp="Q3", form="10-Q"), "revenue", annual, quarterly)
    assert quarterly == {(2023, "Q3"): {"revenue": Decimal(110)}}


def test_placement_reports_bucket_kind():
    annual, quarterly = {}, {}
    kind = place_observation(make_obs(fy=1800), "revenue", annual, quarterly)
    assert kind is BucketKind.REJECT
    assert annual == {} and quarterly == {}


def test_balance_sheet_concept_discarded_when_only_non_instant_frames():
    annual, quarterly = {}, {}
    place_observation(make_obs(frame="CY2023"), "total_assets", annual, quarterly)
    assert annual == {}


# --- Shares ---


def test_shares_first_populated_source_wins():
    doc = decode_document(make_doc(shares={
        ("dei", "EntityCommonStockSharesOutstanding"): [fact(500, 2023)],
        ("us-gaap", "CommonStockSharesOutstanding"): [fact(400, 2023), fact(300, 2022)],
    }))
    assert extract_shares(doc) == {("FY", 2023): 500}


def test_shares_falls_back_when_earlier_source_is_empty():
    doc = decode_document(make_doc(shares={
        ("dei", "EntityCommonStockSharesOutstanding"): [fact(0, 2023), fact(5, None)],
        ("us-gaap", "CommonStockSharesOutstanding"): [fact(400, 2023, fp="Q1", form="10-Q")],
    }))
    assert extract_shares(doc) == {("Q1", 2023): 400}


def test_shares_first_value_per_period_and_truncation():
    doc = decode_document(make_doc(shares={
        ("us-gaap", "SharesOutstanding"): [fact(1000.9, 2023), fact(2000, 2023)],
    }))
    assert extract_shares(doc) == {("FY", 2023): 1000}


def test_shares_absent():
    assert extract_shares(decode_document(make_doc())) == {}


# --- Statement assembly ---


def test_assemble_bounds_and_order():
    annual = {fy: {"revenue": Decimal(fy)} for fy in range(2015, 2024)}
    annual[2024] = {}   # empty bucket is skipped
    quarterly = {
        (fy, fp): {"net_income": Decimal(1)}
        for fy in range(2019, 2024) for fp in ("Q1", "Q2", "Q3")
    }
    statements = assemble_statements(7, annual, quarterly, {})

    fy_rows = [s for s in statements if s.report_type is ReportType.FY]
    q_rows = [s for s in statements if s.report_type is not ReportType.FY]
    assert [s.fiscal_year for s in fy_rows] == [2023, 2022, 2021]
    assert len(q_rows) == 8
    assert [(s.fiscal_year, s.report_type.value) for s in q_rows[:4]] == [
        (2023, "Q3"), (2023, "Q2"), (2023, "Q1"), (2022, "Q3"),
    ]
    keys = [(s.fiscal_year, s.report_type.value) for s in q_rows]
    assert keys == sorted(keys, reverse=True)
    assert len(set(keys)) == len(keys)
    # Annual block comes first
    assert statements[:3] == fy_rows
    assert all(s.company_id == 7 for s in statements)


def test_assemble_missing_metrics_are_none_and_shares_join():
    annual = {2023: {"revenue": Decimal("1.50")}}
    quarterly = {(2023, "Q2"): {"total_assets": Decimal(9)}}
    shares = {("FY", 2023): 100, ("Q2", 2023): 90, ("Q1", 2023): 80}
    fy, q2 = assemble_statements(1, annual, quarterly, shares)

    assert fy.revenue == "1.50"
    assert fy.net_income is None
    assert fy.total_assets is None
    assert fy.shares_outstanding == 100

    assert q2.report_type is ReportType.Q2
    assert q2.total_assets == "9"
    assert q2.revenue is None
    assert q2.shares_outstanding == 90


def test_assemble_unmatched_shares_are_none():
    (stmt,) = assemble_statements(1, {2023: {"revenue": Decimal(1)}}, {}, {("Q1", 2023): 5})
    assert stmt.shares_outstanding is None


# --- End to end ---


def test_extract_net_income_only_document():
    doc = make_doc({
        "NetIncomeLoss": [
            fact(100, 2022),
            fact(80, 2021),
        ],
    })
    statements = extract_statements(5, doc)
    assert [(s.fiscal_year, s.report_type, s.net_income) for s in statements] == [
        (2022, ReportType.FY, "100"),
        (2021, ReportType.FY, "80"),
    ]
    for s in statements:
        assert s.revenue is None
        assert s.operating_income is None
        assert s.total_assets is None
        assert s.total_liabilities is None
        assert s.total_equity is None
        assert s.shares_outstanding is None


def test_extract_full_document_from_json_text():
    doc = make_doc(
        {
            "Revenues": [
                fact(1000, 2023, frame="CY2023"),
                fact(250, 2023, fp="Q1", form="10-Q", frame="CY2023Q1"),
                # 10-Q Q2 repeats the six-month total and the prior year
                fact(520, 2023, fp="Q2", form="10-Q"),
                fact(270, 2023, fp="Q2", form="10-Q", frame="CY2023Q2"),
            ],
            "Assets": [
                fact(5000, 2023, frame="CY2023Q4I"),
                fact(4000, 2023, frame="CY2022Q4I"),
                fact(4800, 2023, fp="Q2", form="10-Q", frame="CY2023Q2I"),
            ],
            "Liabilities": [fact(3000, 2023)],
            "StockholdersEquity": [fact(2000, 2023, frame="CY2023")],
            "OperatingIncomeLoss": [fact(123.456789, 2023)],
        },
        shares={("dei", "EntityCommonStockSharesOutstanding"): [fact(77, 2023)]},
    )
    statements = extract_statements(9, json.dumps(doc), current_year=2024)

    fy, q2, q1 = statements
    assert (fy.fiscal_year, fy.report_type) == (2023, ReportType.FY)
    assert fy.revenue == "1000"
    assert fy.operating_income == "123.456789"
    assert fy.total_assets == "5000"
    assert fy.total_liabilities == "3000"
    assert fy.total_equity is None      # annual balance with a non-instant frame
    assert fy.shares_outstanding == 77

    assert q2.report_type is ReportType.Q2
    assert q2.revenue == "270"
    assert q2.total_assets == "4800"
    assert q1.report_type is ReportType.Q1
    assert q1.revenue == "250"


def test_extract_keeps_full_decimal_precision():
    raw = (
        '{"facts": {"us-gaap": {"NetIncomeLoss": {"units": {"USD": ['
        '{"val": 12345678901234567.891, "fy": 2023, "fp": "FY", "form": "10-K"}'
        ']}}}}}'
    )
    (stmt,) = extract_statements(1, raw.encode())
    assert stmt.net_income == "12345678901234567.891"


def test_extract_ignores_non_usd_units():
    doc = {"facts": {"us-gaap": {"Revenues": {"units": {"EUR": [fact(5, 2023)]}}}}}
    assert extract_statements(1, doc) == []


@pytest.mark.parametrize("raw", [b"not json", "[1, 2, 3]", "42", b"\xff\xfe"])
def test_extract_rejects_undecodable_top_level(raw):
    with pytest.raises(DocumentDecodeError):
        extract_statements(1, raw)


@pytest.mark.parametrize("doc", [
    {},
    {"facts": []},
    {"facts": {"us-gaap": "oops"}},
    {"facts": {"us-gaap": {"NetIncomeLoss": {"units": {"USD": "oops"}}}}},
    {"facts": {"us-gaap": {"NetIncomeLoss": {"units": {"USD": [1, None, "x"]}}}}},
    {"facts": {"us-gaap": {"NetIncomeLoss": {"units": {"USD": [{"val": "abc", "fy": 2023}]}}}}},
])
def test_extract_malformed_nested_structure_degrades_to_empty(doc):
    assert extract_statements(1, doc) == []
