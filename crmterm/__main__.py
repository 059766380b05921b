"""Module entry point for running crmterm via ``python -m crmterm``.

The default front end runs inside :func:`curses.wrapper`, which initialises
and tears down the terminal. ``--plain`` swaps in the questionary prompts.
"""

import argparse
import curses
import logging
import os
import sys

from .config import ConfigError, Settings, config_path


def configure_logging() -> None:
    """Send log records to a file; curses owns the terminal."""
    level = os.getenv("CRMTERM_LOG_LEVEL", "WARNING").upper()
    log_file = config_path().parent / "crmterm.log"
    try:
        log_file.parent.mkdir(parents=True, exist_ok=True)
    except OSError:
        log_file = None
    logging.basicConfig(
        filename=str(log_file) if log_file else None,
        level=getattr(logging, level, logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def entry_point(argv=None) -> None:
    parser = argparse.ArgumentParser(
        prog="crmterm", description="Keyboard-driven terminal CRM."
    )
    parser.add_argument(
        "--plain", action="store_true", help="use line prompts instead of curses"
    )
    args = parser.parse_args(argv)

    configure_logging()
    logger = logging.getLogger("crmterm")

    from sqlalchemy.exc import SQLAlchemyError

    from .database import init_db
    from .session import Session
    from .storage import Store

    try:
        settings = Settings.load()
    except ConfigError as exc:
        logger.error("load config: %s", exc)
        print(f"crmterm: {exc}", file=sys.stderr)
        sys.exit(1)
    try:
        init_db()
    except (SQLAlchemyError, OSError) as exc:
        logger.error("open database: %s", exc)
        print(f"crmterm: open database: {exc}", file=sys.stderr)
        sys.exit(1)

    session = Session(Store(), settings)
    if args.plain:
        from . import prompt

        prompt.main(session)
        return

    from . import cli

    os.environ.setdefault("ESCDELAY", "25")
    curses.wrapper(cli.main, session)


if __name__ == "__main__":  # pragma: no cover - manual execution entry
    entry_point()
