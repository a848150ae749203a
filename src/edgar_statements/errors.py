"""Exception types raised by the extraction pipeline and its collaborators."""

from __future__ import annotations


class StatementsError(Exception):
    """Base class for edgar-statements errors."""


class DocumentDecodeError(StatementsError, ValueError):
    """A companyfacts document is not a decodable JSON object."""


class TickerMapError(StatementsError):
    """The ticker → CIK map could not be obtained."""


class PersistenceUnavailable(StatementsError):
    """MongoDB is not configured or not reachable."""
