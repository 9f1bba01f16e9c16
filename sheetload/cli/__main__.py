from __future__ import annotations

import argparse
import sys
from pathlib import Path

from dotenv import load_dotenv

from sheetload.config.loader import resolve_root
from sheetload.logging.init import log_summary, setup_logging
from sheetload.services.orchestrator import DATABASES_DIRNAME, ProcessingError, process_all
from sheetload.services.summary import render_summary_line

"""CLI entrypoint.

    python -m sheetload.cli [--debug] [--root PATH]

- Load .env (override=True) so PG* variables are visible to connection resolution
- Run every database folder under <root>/databases
- Emit exactly one SUMMARY line

Exit codes:
    0  every table (and database folder) succeeded
    2  at least one database folder or table failed
    1  fatal: root / databases directory missing
"""

EXIT_SUCCESS_ALL = 0
EXIT_PARTIAL_FAILURE = 2
EXIT_FATAL = 1


def _load_env_file(path: Path, override: bool = True) -> None:
    """Load .env using python-dotenv. A broken file only produces a warning."""
    if not path.exists():
        return
    try:
        load_dotenv(dotenv_path=path, override=override)
    except (OSError, ValueError) as e:  # pragma: no cover
        print(f"WARNING: failed to load .env via python-dotenv: {e}")


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Spreadsheet -> PostgreSQL importer")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    p.add_argument(
        "--root",
        type=Path,
        default=None,
        help="Directory containing databases/ (default: $SHEETLOAD_ROOT or cwd)",
    )
    return p.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    # None -> read sys.argv; an explicit [] must not pick up pytest's arguments
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    logger = setup_logging(debug=args.debug)
    if args.debug:
        logger.debug("debug mode enabled")

    _load_env_file(Path(".env"), override=True)

    root = resolve_root(args.root)
    if not root.is_dir():
        logger.error(f"root directory not found: {root}")
        return EXIT_FATAL
    logger.info(f"Processing databases from: {root / DATABASES_DIRNAME}")

    try:
        result = process_all(root)
    except ProcessingError as e:
        logger.error(f"processing: {e}")
        return EXIT_FATAL

    # log_summary adds the "SUMMARY " label itself
    summary_line = render_summary_line(result)
    log_summary(summary_line.removeprefix("SUMMARY "))

    if result.failed_databases or result.failed_tables:
        return EXIT_PARTIAL_FAILURE
    return EXIT_SUCCESS_ALL


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
