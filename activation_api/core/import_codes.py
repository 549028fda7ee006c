# activation_api/core/import_codes.py
"""Bulk load activation codes from a text file, one code per line.

Lines that are not a 20 character [0-9a-z] code are skipped. Codes already in
the table are left untouched, so the import can be re-run safely.

    python -m activation_api.core.import_codes codes.txt --batch-size 10000

Large files can be loaded in slices with --start-from and --limit; each run
logs the command that picks up where it stopped.
"""

import argparse
import asyncio
import logging
import os
import time
from dataclasses import dataclass
from typing import Optional

from activation_api.core.config import get_settings
from activation_api.core.log import setup_logging
from activation_api.services.code_store import CodeStore
from activation_api.services.database import create_engine, create_session_factory
from activation_api.services.redemption import is_well_formed

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 10000
PROGRESS_EVERY = 50000


@dataclass
class ImportReport:
    lines: int = 0
    accepted: int = 0
    inserted: int = 0
    elapsed: float = 0.0
    # Last line consumed when the run stopped at its limit, None once the file is done
    resume_from: Optional[int] = None


async def import_codes(store: CodeStore, lines, batch_size: int = DEFAULT_BATCH_SIZE,
                       start_from: int = 0, limit: Optional[int] = None) -> ImportReport:
    """Import codes from ``lines``.

    Lines numbered up to ``start_from`` (1-based) are skipped. With ``limit``,
    the run stops once that many valid codes were taken and records in
    ``resume_from`` the line number to pass as ``start_from`` next time.
    """
    report = ImportReport()
    started = time.monotonic()
    batch = []

    for line_no, line in enumerate(lines, start=1):
        if line_no <= start_from:
            continue
        if limit is not None and report.accepted >= limit:
            report.resume_from = line_no - 1
            break
        report.lines += 1
        code = line.strip()
        if is_well_formed(code):
            batch.append(code)
            report.accepted += 1
            if len(batch) >= batch_size:
                report.inserted += await store.insert_codes(batch)
                batch = []
        elif code:
            logger.debug("Skipping line %d, not an activation code: %r", line_no, code)
        if report.lines % PROGRESS_EVERY == 0:
            logger.info("Processed %d lines", report.lines)

    # Last partial batch
    if batch:
        report.inserted += await store.insert_codes(batch)

    report.elapsed = time.monotonic() - started
    return report


async def run(path, batch_size=DEFAULT_BATCH_SIZE, skip_if_over=None, start_from=0, limit=None):
    settings = get_settings()
    if not settings.database_url:
        logger.warning("No database connection configured, skipping import")
        return None
    if not os.path.exists(path):
        logger.error("Activation code file not found: %s", path)
        return None
    logger.info("Found activation code file %s (%d bytes)", path, os.path.getsize(path))

    engine = create_engine(settings)
    store = CodeStore(create_session_factory(engine))
    try:
        existing = await store.count()
        if existing:
            logger.info("Store already holds %d codes", existing)
            if skip_if_over is not None and existing > skip_if_over:
                logger.info("More than %d codes present, skipping import", skip_if_over)
                return None

        if start_from or limit:
            logger.info("Importing from line %d, at most %s codes", start_from + 1, limit or "all")
        with open(path, encoding="utf-8") as f:
            report = await import_codes(store, f, batch_size=batch_size, start_from=start_from, limit=limit)

        logger.info(
            "Import finished: %d lines, %d valid, %d inserted in %.1fs",
            report.lines, report.accepted, report.inserted, report.elapsed,
        )
        logger.info("Store now holds %d codes", await store.count())
        if report.resume_from is not None:
            logger.info(
                "More codes remain, continue with: python -m activation_api.core.import_codes %s "
                "--start-from %d --limit %d",
                path, report.resume_from, limit,
            )
        return report
    finally:
        await engine.dispose()


def main(argv=None):
    parser = argparse.ArgumentParser(description="Import activation codes into the database")
    parser.add_argument("path", nargs="?", default="codes.txt")
    parser.add_argument("--batch-size", type=int, default=DEFAULT_BATCH_SIZE)
    parser.add_argument("--skip-if-over", type=int, default=None,
                        help="do nothing when the store already holds more codes than this")
    parser.add_argument("--start-from", type=int, default=0,
                        help="skip this many lines from the top of the file")
    parser.add_argument("--limit", type=int, default=None,
                        help="stop after this many valid codes")
    args = parser.parse_args(argv)

    setup_logging(get_settings().log_level)
    asyncio.run(run(
        args.path,
        batch_size=args.batch_size,
        skip_if_over=args.skip_if_over,
        start_from=args.start_from,
        limit=args.limit,
    ))


if __name__ == "__main__":
    main()
