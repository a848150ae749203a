"""SEC EDGAR HTTP client for the ticker → CIK map and single-company facts.

Uses only public SEC endpoints (no API key needed, just User-Agent header):
  - files/company_tickers.json               — ticker→CIK resolution
  - api/xbrl/companyfacts/CIK{cik}.json      — ALL XBRL facts for a company

Rate limited to 10 req/sec per SEC guidelines.
"""

from __future__ import annotations

import logging
import threading
import time

import requests

from edgar_statements.errors import TickerMapError
from edgar_statements.loader import cik_filename

log = logging.getLogger(__name__)

# ═══════════════════════════════════════════════════════════════════════════
#  Constants
# ═══════════════════════════════════════════════════════════════════════════

SEC_BASE = "https://www.sec.gov"
DATA_BASE = "https://data.sec.gov"
TICKERS_URL = f"{SEC_BASE}/files/company_tickers.json"
COMPANY_FACTS_URL = f"{DATA_BASE}/api/xbrl/companyfacts/{{filename}}"

# SEC requires a descriptive User-Agent with contact email
DEFAULT_USER_AGENT = "edgar-statements edgar-statements@example.com"

# SEC allows up to 10 req/s
MIN_REQUEST_INTERVAL = 0.1
REQUEST_TIMEOUT = 30
REQUEST_ATTEMPTS = 3
RETRY_STATUSES = frozenset({429, 500, 502, 503, 504})

TICKER_MAP_ATTEMPTS = 3


# ═══════════════════════════════════════════════════════════════════════════
#  SEC EDGAR Client
# ═══════════════════════════════════════════════════════════════════════════

class SECClient:
    """Direct HTTP client for SEC EDGAR public APIs.

    Thread-safe with rate limiting.
    """

    def __init__(self, user_agent: str = DEFAULT_USER_AGENT):
        self.user_agent = user_agent
        self.headers = {
            "User-Agent": user_agent,
            "Accept-Encoding": "gzip, deflate",
        }
        self._last_request_time = 0.0
        self._rate_lock = threading.Lock()

    # ── Rate-limited HTTP request ─────────────────────────────────────

    def _throttle(self) -> None:
        """Block until MIN_REQUEST_INTERVAL has passed since the last call."""
        with self._rate_lock:
            wait = self._last_request_time + MIN_REQUEST_INTERVAL - time.time()
            if wait > 0:
                time.sleep(wait)
            self._last_request_time = time.time()

    def _request(self, url: str) -> requests.Response:
        """Rate-limited GET; 429/5xx and connection errors are retried with backoff."""
        for attempt in range(REQUEST_ATTEMPTS):
            last = attempt == REQUEST_ATTEMPTS - 1
            self._throttle()
            try:
                resp = requests.get(url, headers=self.headers, timeout=REQUEST_TIMEOUT)
            except (requests.ConnectionError, requests.Timeout) as exc:
                if last:
                    raise
                log.warning("Connection error on %s, retrying: %s", url, exc)
            else:
                if resp.status_code not in RETRY_STATUSES or last:
                    resp.raise_for_status()
                    return resp
                log.warning("SEC %d on %s, retrying", resp.status_code, url)
            time.sleep(2 ** attempt)
        raise AssertionError("unreachable")

    # ── Ticker → CIK map ──────────────────────────────────────────────

    def fetch_ticker_map(self) -> dict[str, int]:
        """Download company_tickers.json as an uppercase ticker → CIK map.

        Format: {"0": {"cik_str": 320193, "ticker": "AAPL", "title": "..."}, ...}
        Entries without a ticker or CIK are skipped.

        Raises:
            TickerMapError: every attempt failed.
        """
        for attempt in range(1, TICKER_MAP_ATTEMPTS + 1):
            try:
                raw = self._request(TICKERS_URL).json()
                ticker_map = _parse_ticker_map(raw)
                log.info("Loaded %d ticker-to-CIK mappings", len(ticker_map))
                return ticker_map
            except (requests.RequestException, ValueError) as exc:
                log.warning("Ticker fetch attempt %d failed: %s", attempt, exc)
                if attempt == TICKER_MAP_ATTEMPTS:
                    raise TickerMapError(
                        f"Could not load {TICKERS_URL} after {attempt} attempts: {exc}"
                    ) from exc
                time.sleep(1.0 * attempt)
        raise AssertionError("unreachable")

    # ── Company facts ─────────────────────────────────────────────────

    def get_company_facts(self, cik: int | str) -> bytes | None:
        """Fetch one companyfacts document; None when SEC has none (404)."""
        url = COMPANY_FACTS_URL.format(filename=cik_filename(cik))
        log.info("Fetching XBRL companyfacts: %s", url)
        try:
            return self._request(url).content
        except requests.HTTPError as exc:
            if exc.response is not None and exc.response.status_code == 404:
                return None
            raise


def _parse_ticker_map(raw: object) -> dict[str, int]:
    if not isinstance(raw, dict):
        raise ValueError(f"unexpected company_tickers.json payload: {type(raw).__name__}")
    ticker_map: dict[str, int] = {}
    for entry in raw.values():
        if not isinstance(entry, dict):
            continue
        ticker = entry.get("ticker")
        cik = entry.get("cik_str")
        if not ticker or not cik:
            continue
        try:
            ticker_map[str(ticker).strip().upper()] = int(cik)
        except (TypeError, ValueError):
            continue
    return ticker_map


# ═══════════════════════════════════════════════════════════════════════════
#  Singleton
# ═══════════════════════════════════════════════════════════════════════════

_client: SECClient | None = None


def get_sec_client() -> SECClient:
    """Get or create the shared SECClient singleton.

    Reads EDGAR_IDENTITY from config for the User-Agent header.
    """
    global _client
    if _client is None:
        from edgar_statements.config import get_config
        config = get_config()
        _client = SECClient(user_agent=config.edgar_identity)
    return _client
