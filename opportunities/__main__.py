"""Run every active source once: ``python -m opportunities``.

Exit status is 0 when the run completes (even if some sources failed) and 1
on a fatal error: invalid settings, login failure or a failed save.
"""

from __future__ import annotations

import argparse
import sys
from typing import Optional, Sequence

from opportunities.models.domain import RunStats
from opportunities.repositories.sheets import SheetsStore
from opportunities.settings import ConfigError, get_settings
from opportunities.tasks.collect import run_once
from opportunities.utils.logging import configure_logging, get_logger


def _print_summary(stats: RunStats) -> None:
    print("=" * 60)
    print("   SUMMARY")
    print("=" * 60)
    print(f"   Sources processed:  {stats.sources_processed}")
    print(f"   Sources success:    {stats.sources_success}")
    print(f"   Sources failed:     {stats.sources_failed}")
    print(f"   Items found:        {stats.items_found}")
    print(f"   Items saved:        {stats.items_saved}")
    print(f"   Items skipped:      {stats.items_skipped} (duplicates)")
    print("=" * 60)


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="opportunities-scrape",
        description="Scrape active Facebook sources once and append new items to Google Sheets.",
    )
    parser.parse_args(argv)

    logger = get_logger("opportunities.cli")
    try:
        settings = get_settings()
    except ConfigError as exc:
        configure_logging()
        logger.error("cli.config_error", extra={"error": str(exc)})
        print(f"[opportunities] config error: {exc}", file=sys.stderr)
        return 1

    configure_logging(settings.log_level, json_enabled=settings.log_json)
    store: Optional[SheetsStore] = None
    try:
        store = SheetsStore(settings)
        stats = run_once(settings, store=store)
    except Exception as exc:
        logger.error("cli.fatal", extra={"error": str(exc)})
        print(f"[opportunities] fatal: {exc}", file=sys.stderr)
        return 1
    finally:
        if store is not None:
            store.close()

    _print_summary(stats)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
