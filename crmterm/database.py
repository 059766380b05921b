import os
from datetime import datetime, timezone
from pathlib import Path
from sqlalchemy import create_engine, text, inspect
from sqlalchemy.types import DateTime, TypeDecorator
from sqlalchemy.orm import sessionmaker, declarative_base


def data_dir() -> Path:
    """Return the per-user directory holding the database and config."""
    base = os.getenv("XDG_CONFIG_HOME")
    root = Path(base) if base else Path.home() / ".config"
    return root / "crmterm"


# Determine database path; allow override with environment variable for testing
DB_FILE = os.getenv("CRMTERM_DB", None)
if DB_FILE is None:
    DB_FILE = data_dir() / "crmterm.db"
else:
    DB_FILE = Path(DB_FILE)

engine = create_engine(f"sqlite:///{DB_FILE}", echo=False, future=True)
SessionLocal = sessionmaker(
    bind=engine, autoflush=False, autocommit=False, expire_on_commit=False
)

Base = declarative_base()


class UTCDateTime(TypeDecorator):
    """Store naive UTC timestamps and hand back timezone-aware values."""

    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value
        return value.astimezone(timezone.utc).replace(tzinfo=None)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if isinstance(value, str):
            value = datetime.fromisoformat(value)
        return value.replace(tzinfo=timezone.utc)


def init_db() -> None:
    """Create database tables if they do not exist."""
    from . import models  # noqa: F401

    if engine.url.database not in (None, "", ":memory:"):
        Path(engine.url.database).parent.mkdir(parents=True, exist_ok=True)

    insp = inspect(engine)
    required = {"accounts", "notes", "events"}
    existing = set(insp.get_table_names())
    if not required.issubset(existing):
        Base.metadata.create_all(engine)

    SessionLocal.configure(bind=engine)

    with engine.begin() as conn:
        conn.execute(text("PRAGMA foreign_keys = ON"))

        # Older databases predate the contact columns on accounts
        cols = [r[1] for r in conn.execute(text("PRAGMA table_info(accounts)"))]
        for column in ("phone", "address", "email", "decision_maker"):
            if column not in cols:
                conn.execute(text(f"ALTER TABLE accounts ADD COLUMN {column} TEXT"))

        cols = [r[1] for r in conn.execute(text("PRAGMA table_info(events)"))]
        if "details" not in cols:
            conn.execute(text("ALTER TABLE events ADD COLUMN details TEXT"))

        for table in ("notes", "events"):
            conn.execute(
                text(
                    f"CREATE INDEX IF NOT EXISTS ix_{table}_account_id ON {table}(account_id)"
                )
            )
        conn.execute(
            text("CREATE INDEX IF NOT EXISTS ix_events_event_time ON events(event_time)")
        )
