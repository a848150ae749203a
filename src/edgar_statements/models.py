"""Pydantic models for raw companyfacts observations and normalized statements."""

from __future__ import annotations

import math
from collections.abc import Mapping
from decimal import Decimal, DecimalException, InvalidOperation
from enum import Enum
from typing import Any

from bson.decimal128 import Decimal128
from pydantic import BaseModel, ConfigDict, field_validator


# ---------------------------------------------------------------------------
# Numeric helpers
# ---------------------------------------------------------------------------

# MongoDB stores integers in at most 8 bytes
MAX_INT64 = 2 ** 63 - 1

def _to_decimal(v: Any) -> Decimal | None:
    """Convert a raw JSON number to Decimal, returning None for anything unusable."""
    if v is None or isinstance(v, bool):
        return None
    if isinstance(v, Decimal):
        return v if v.is_finite() else None
    if isinstance(v, int):
        return Decimal(v)
    if isinstance(v, float):
        if math.isnan(v) or math.isinf(v):
            return None
        return Decimal(repr(v))
    if isinstance(v, str):
        try:
            d = Decimal(v.strip())
        except InvalidOperation:
            return None
        return d if d.is_finite() else None
    return None


def _to_int(v: Any) -> int | None:
    """Convert a raw JSON fiscal year to int; non-integral values are None."""
    d = _to_decimal(v)
    if d is None or d != d.to_integral_value():
        return None
    return int(d)


def format_decimal(v: Decimal | int) -> str:
    """Render a number as a plain numeric string (no exponent, full precision)."""
    if isinstance(v, int):
        return str(v)
    return format(v, "f")


# ---------------------------------------------------------------------------
# Raw companyfacts observation
# ---------------------------------------------------------------------------

class RawObservation(BaseModel):
    """One disclosed fact: ``{"val", "form", "fy", "fp", "frame"}``.

    Decoding is schema tolerant: a missing or mistyped field becomes
    absent instead of failing the whole document.
    """

    model_config = ConfigDict(frozen=True)

    value: Decimal | None = None
    form: str = ""
    fiscal_year: int | None = None
    fiscal_period: str | None = None
    frame: str | None = None

    @field_validator("value", mode="before")
    @classmethod
    def _coerce_value(cls, v: Any) -> Decimal | None:
        return _to_decimal(v)

    @field_validator("fiscal_year", mode="before")
    @classmethod
    def _coerce_year(cls, v: Any) -> int | None:
        return _to_int(v)

    @field_validator("form", mode="before")
    @classmethod
    def _coerce_form(cls, v: Any) -> str:
        return v.strip() if isinstance(v, str) else ""

    @field_validator("fiscal_period", "frame", mode="before")
    @classmethod
    def _coerce_label(cls, v: Any) -> str | None:
        if isinstance(v, str) and v.strip():
            return v.strip()
        return None

    @classmethod
    def from_raw(cls, entry: Any) -> RawObservation | None:
        """Decode one companyfacts list entry; non-objects yield None."""
        if not isinstance(entry, Mapping):
            return None
        return cls(
            value=entry.get("val"),
            form=entry.get("form"),
            fiscal_year=entry.get("fy"),
            fiscal_period=entry.get("fp"),
            frame=entry.get("frame"),
        )


# ---------------------------------------------------------------------------
# Roster and normalized output
# ---------------------------------------------------------------------------

class ReportType(str, Enum):
    Q1 = "Q1"
    Q2 = "Q2"
    Q3 = "Q3"
    FY = "FY"


class Company(BaseModel):
    """A tracked security: internal company id + exchange symbol."""

    model_config = ConfigDict(frozen=True)

    company_id: int
    symbol: str


class FinancialStatement(BaseModel):
    """One normalized statement.  None means the metric was not disclosed."""

    model_config = ConfigDict(frozen=True)

    company_id: int
    fiscal_year: int
    report_type: ReportType
    revenue: str | None = None
    operating_income: str | None = None
    net_income: str | None = None
    total_assets: str | None = None
    total_liabilities: str | None = None
    total_equity: str | None = None
    shares_outstanding: int | None = None

    @field_validator(
        "revenue", "operating_income", "net_income",
        "total_assets", "total_liabilities", "total_equity",
        mode="before",
    )
    @classmethod
    def _numeric_string(cls, v: Any) -> str | None:
        if v is None:
            return None
        d = _to_decimal(v)
        if d is None:
            raise ValueError(f"not a finite number: {v!r}")
        try:
            Decimal128(d)
        except DecimalException as exc:
            raise ValueError(f"not representable as Decimal128: {v!r}") from exc
        return format_decimal(d)

    @field_validator("shares_outstanding")
    @classmethod
    def _int64(cls, v: int | None) -> int | None:
        if v is not None and not -MAX_INT64 - 1 <= v <= MAX_INT64:
            raise ValueError(f"share count out of 64-bit range: {v}")
        return v


class BatchResult(BaseModel):
    """Aggregated outcome of one pipeline run."""

    model_config = ConfigDict(frozen=True)

    statements: list[FinancialStatement] = []
    matched_count: int = 0
    failed_count: int = 0
