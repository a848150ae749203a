"""Schema-tolerant access to SEC companyfacts documents.

A companyfacts document (one per CIK, as served by
``api/xbrl/companyfacts/CIK##########.json`` and shipped in the nightly
``companyfacts.zip`` bulk archive) nests its data as::

    {"cik": 320193, "entityName": "...",
     "facts": {"us-gaap": {"Revenues": {"label": ..., "units": {
         "USD": [{"val": 1, "fy": 2023, "fp": "FY", "form": "10-K",
                  "frame": "CY2023", ...}, ...]}}}}}

Only the top level has to be a JSON object.  Every nested level is read
tolerantly: a missing or mistyped node reads as empty and a malformed
observation is dropped.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from decimal import Decimal
from typing import Any

from edgar_statements.errors import DocumentDecodeError
from edgar_statements.models import RawObservation


def _mapping(node: Any) -> Mapping[str, Any]:
    return node if isinstance(node, Mapping) else {}


def decode_document(raw: bytes | str | Mapping[str, Any]) -> CompanyFacts:
    """Decode a companyfacts document from raw JSON text or a parsed mapping.

    Floats are parsed as Decimal so reported values keep full precision.

    Raises:
        DocumentDecodeError: the text is not JSON, or its top level is
            not an object.
    """
    if isinstance(raw, Mapping):
        return CompanyFacts(raw)
    if isinstance(raw, (bytes, bytearray)):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise DocumentDecodeError(f"document is not UTF-8: {exc}") from exc
    if not isinstance(raw, str):
        raise DocumentDecodeError(f"unsupported document type {type(raw).__name__}")
    try:
        data = json.loads(raw, parse_float=Decimal)
    except json.JSONDecodeError as exc:
        raise DocumentDecodeError(f"invalid JSON: {exc}") from exc
    if not isinstance(data, Mapping):
        raise DocumentDecodeError(
            f"top-level JSON value is {type(data).__name__}, expected object"
        )
    return CompanyFacts(data)


class CompanyFacts:
    """Read-only view over one decoded companyfacts document."""

    __slots__ = ("_facts",)

    def __init__(self, data: Mapping[str, Any]):
        self._facts = _mapping(data.get("facts"))

    def _units(self, taxonomy: str, concept: str) -> Mapping[str, Any]:
        node = _mapping(_mapping(self._facts.get(taxonomy)).get(concept))
        return _mapping(node.get("units"))

    @staticmethod
    def _decode_list(entries: Any) -> list[RawObservation]:
        if not isinstance(entries, list):
            return []
        observations = []
        for entry in entries:
            obs = RawObservation.from_raw(entry)
            if obs is not None:
                observations.append(obs)
        return observations

    def observations(
        self, taxonomy: str, concept: str, unit: str = "USD",
    ) -> list[RawObservation]:
        """Observations for one concept in one unit ([] when absent)."""
        return self._decode_list(self._units(taxonomy, concept).get(unit))

    def unit_observations(
        self, taxonomy: str, concept: str,
    ) -> dict[str, list[RawObservation]]:
        """Observations for one concept in every unit it is reported in."""
        return {
            unit: self._decode_list(entries)
            for unit, entries in self._units(taxonomy, concept).items()
        }
