"""Command line entry point.

Usage:

  # Statements from one companyfacts document (file path or ticker)
  python -m edgar_statements extract /tmp/edgar/companyfacts/CIK0000320193.json
  python -m edgar_statements extract AAPL 42

  # Full collection job (bulk directory → MongoDB), run in the foreground
  python -m edgar_statements collect

  # Ticker → CIK lookups
  python -m edgar_statements tickers AAPL MSFT brk-b
"""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path


def _print_json(val) -> None:
    print(json.dumps(val, indent=2, default=str))


def cmd_extract(source: str, company_id: int = 0) -> int:
    """Extract statements from a local document, or fetch one by ticker."""
    from edgar_statements.extraction import extract_statements

    path = Path(source)
    if path.exists():
        raw = path.read_bytes()
    else:
        from edgar_statements.sec_client import get_sec_client
        client = get_sec_client()
        cik = client.fetch_ticker_map().get(source.upper())
        if cik is None:
            print(f"  Unknown ticker or file: {source}")
            return 1
        raw = client.get_company_facts(cik)
        if raw is None:
            print(f"  SEC has no companyfacts for {source} (CIK {cik})")
            return 1

    statements = extract_statements(company_id, raw)
    _print_json([s.model_dump(mode="json") for s in statements])
    print(f"\n  Total: {len(statements)} statement(s)")
    return 0


def cmd_collect() -> int:
    """Run a full collection job synchronously."""
    from edgar_statements.jobs import new_job_id, run_collection_job

    job_id = new_job_id()
    print(f"  Job {job_id}")
    result = run_collection_job(job_id)
    _print_json(result.model_dump())
    return 0


def cmd_tickers(*symbols: str) -> int:
    """Print the CIK for each symbol (or the map size when none given)."""
    from edgar_statements.sec_client import get_sec_client

    ticker_map = get_sec_client().fetch_ticker_map()
    if not symbols:
        print(f"  {len(ticker_map)} tickers")
        return 0
    for symbol in symbols:
        cik = ticker_map.get(symbol.upper())
        print(f"  {symbol.upper():8s}  {cik if cik is not None else '-'}")
    return 0


COMMANDS = {
    "extract": (cmd_extract, "<file|ticker> [company_id]"),
    "collect": (cmd_collect, ""),
    "tickers": (cmd_tickers, "[SYMBOL ...]"),
}


def _usage() -> None:
    print("\nUsage: python -m edgar_statements <command> [args]\n")
    print("Commands:")
    for cmd, (_, args) in COMMANDS.items():
        print(f"  {cmd:10s}  {args}")
    print()


def main(argv: list[str] | None = None) -> int:
    argv = sys.argv[1:] if argv is None else argv
    if not argv or argv[0] in ("-h", "--help", "help"):
        _usage()
        return 0

    cmd_name = argv[0].lower()
    if cmd_name not in COMMANDS:
        print(f"Unknown command: {cmd_name}")
        print(f"Available: {', '.join(COMMANDS.keys())}")
        return 2

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    fn, _ = COMMANDS[cmd_name]
    args = argv[1:]

    if cmd_name == "extract":
        if not args:
            _usage()
            return 2
        company_id = int(args[1]) if len(args) > 1 else 0
        return fn(args[0], company_id)
    return fn(*args)


if __name__ == "__main__":
    sys.exit(main())
