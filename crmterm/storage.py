"""Storage layer for crmterm records.

:class:`Store` is the only way the interactive session talks to the database.
Every method opens a short-lived session from the configured ``sessionmaker``,
commits or rolls back, and returns detached snapshots: the session factory is
created with ``expire_on_commit=False`` so loaded attributes stay readable after
the session closes.

Failures are reported through a small exception hierarchy so the caller can
tell "not there" and "name already taken" apart from everything else:

``StorageError``
    Base class; wraps any SQLAlchemy error.
``NotFoundError``
    A lookup by name or id matched nothing.
``AccountExistsError``
    An insert or update collided with the unique account name.
"""
from __future__ import annotations

import csv
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone, tzinfo
from email.utils import parsedate_to_datetime
from typing import IO

from sqlalchemy import func, literal, select, union_all
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from .database import SessionLocal
from .models import Account, Event, Note

logger = logging.getLogger(__name__)

DEFAULT_ACTIVITY_LIMIT = 20
SNIPPET_LENGTH = 80
ACTIVITY_KINDS = ("account", "note", "event")


class StorageError(Exception):
    """A storage operation failed."""


class NotFoundError(StorageError):
    """The requested record does not exist."""


class AccountExistsError(StorageError):
    """An account with the same name already exists."""

    def __init__(self, name: str):
        super().__init__(f"account already exists: {name}")
        self.name = name


@dataclass(frozen=True)
class Activity:
    """One row of the combined activity feed."""

    kind: str
    id: int
    title: str
    detail: str
    created_at: datetime


@dataclass
class ImportResult:
    created: int = 0
    skipped: int = 0
    errors: list[str] = field(default_factory=list)


def _is_unique_violation(exc: IntegrityError) -> bool:
    return "unique" in str(exc.orig).lower()


def _as_utc(value) -> datetime:
    if isinstance(value, str):
        value = datetime.fromisoformat(value)
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _blank_to_none(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None


class Store:
    """Storage collaborator used by the session."""

    def __init__(self, session_factory=None):
        self.session_factory = session_factory or SessionLocal

    # Accounts
    def list_accounts(self) -> list[Account]:
        """Return every account ordered case-insensitively by name."""
        try:
            with self.session_factory() as s:
                stmt = select(Account).order_by(func.lower(Account.name), Account.id)
                return list(s.scalars(stmt).all())
        except SQLAlchemyError as exc:
            raise StorageError(f"query accounts: {exc}") from exc

    def search_accounts(self, term: str) -> list[Account]:
        """Case-insensitive substring search on account names."""
        term = (term or "").strip()
        if not term:
            return self.list_accounts()
        like = func.lower(f"%{term}%")
        try:
            with self.session_factory() as s:
                stmt = (
                    select(Account)
                    .where(func.lower(Account.name).like(like))
                    .order_by(func.lower(Account.name), Account.id)
                )
                return list(s.scalars(stmt).all())
        except SQLAlchemyError as exc:
            raise StorageError(f"search accounts: {exc}") from exc

    def account_by_name(self, name: str) -> Account:
        try:
            with self.session_factory() as s:
                stmt = select(Account).where(
                    func.lower(Account.name) == func.lower((name or "").strip())
                )
                account = s.scalars(stmt).first()
        except SQLAlchemyError as exc:
            raise StorageError(f"get account: {exc}") from exc
        if account is None:
            raise NotFoundError(f"no account named {name!r}")
        return account

    def account_by_id(self, account_id: int) -> Account:
        try:
            with self.session_factory() as s:
                account = s.get(Account, account_id)
        except SQLAlchemyError as exc:
            raise StorageError(f"get account: {exc}") from exc
        if account is None:
            raise NotFoundError(f"no account with id {account_id}")
        return account

    def create_account(self, account: Account) -> Account:
        """Insert ``account``; raise :class:`AccountExistsError` on a name clash."""
        name = (account.name or "").strip()
        if not name:
            raise StorageError("account name required")
        account.name = name
        for attr in ("phone", "address", "email", "decision_maker"):
            setattr(account, attr, _blank_to_none(getattr(account, attr)))
        if account.created_at is None:
            account.created_at = datetime.now(timezone.utc)
        if account.creator is None:
            account.creator = ""
        with self.session_factory() as s:
            try:
                s.add(account)
                s.commit()
            except IntegrityError as exc:
                s.rollback()
                if _is_unique_violation(exc):
                    raise AccountExistsError(name) from exc
                raise StorageError(f"insert account: {exc}") from exc
            except SQLAlchemyError as exc:
                s.rollback()
                raise StorageError(f"insert account: {exc}") from exc
        logger.info("created account %s (id=%s)", name, account.id)
        return account

    def update_account(self, account: Account) -> Account:
        """Persist edited fields of an existing account."""
        if account is None or account.id is None:
            raise StorageError("nil account")
        name = (account.name or "").strip()
        if not name:
            raise StorageError("account name required")
        with self.session_factory() as s:
            try:
                row = s.get(Account, account.id)
                if row is None:
                    raise NotFoundError(f"no account with id {account.id}")
                row.name = name
                row.phone = _blank_to_none(account.phone)
                row.address = _blank_to_none(account.address)
                row.email = _blank_to_none(account.email)
                row.decision_maker = _blank_to_none(account.decision_maker)
                s.commit()
            except IntegrityError as exc:
                s.rollback()
                if _is_unique_violation(exc):
                    raise AccountExistsError(name) from exc
                raise StorageError(f"update account: {exc}") from exc
            except SQLAlchemyError as exc:
                s.rollback()
                raise StorageError(f"update account: {exc}") from exc
        logger.info("updated account %s (id=%s)", name, row.id)
        return row

    # Notes and events
    def create_note(self, note: Note) -> Note:
        if not (note.content or "").strip():
            raise StorageError("note content required")
        if note.created_at is None:
            note.created_at = datetime.now(timezone.utc)
        with self.session_factory() as s:
            try:
                s.add(note)
                s.commit()
            except SQLAlchemyError as exc:
                s.rollback()
                raise StorageError(f"insert note: {exc}") from exc
        logger.info("created note id=%s account_id=%s", note.id, note.account_id)
        return note

    def create_event(self, event: Event) -> Event:
        if not (event.title or "").strip():
            raise StorageError("event title required")
        now = datetime.now(timezone.utc)
        if event.event_time is None:
            event.event_time = now
        if event.created_at is None:
            event.created_at = now
        event.details = _blank_to_none(event.details)
        with self.session_factory() as s:
            try:
                s.add(event)
                s.commit()
            except SQLAlchemyError as exc:
                s.rollback()
                raise StorageError(f"insert event: {exc}") from exc
        logger.info("created event id=%s account_id=%s", event.id, event.account_id)
        return event

    def list_events(self) -> list[Event]:
        """All events, soonest first, with the linked account eagerly loaded."""
        try:
            with self.session_factory() as s:
                stmt = select(Event).order_by(Event.event_time, Event.id)
                return list(s.scalars(stmt).all())
        except SQLAlchemyError as exc:
            raise StorageError(f"query events: {exc}") from exc

    # Activity
    def list_activities(self, limit: int = DEFAULT_ACTIVITY_LIMIT) -> list[Activity]:
        return self._activity(None, limit)

    def list_account_activity(
        self, account_id: int, limit: int = DEFAULT_ACTIVITY_LIMIT
    ) -> list[Activity]:
        return self._activity(account_id, limit)

    def _activity(self, account_id: int | None, limit: int) -> list[Activity]:
        if limit <= 0:
            limit = DEFAULT_ACTIVITY_LIMIT
        accounts = select(
            literal("account").label("kind"),
            Account.id.label("id"),
            Account.name.label("title"),
            Account.phone.label("detail"),
            Account.created_at.label("created_at"),
        )
        notes = select(
            literal("note"),
            Note.id,
            func.substr(Note.content, 1, SNIPPET_LENGTH),
            literal(""),
            Note.created_at,
        )
        events = select(
            literal("event"),
            Event.id,
            Event.title,
            func.substr(Event.details, 1, SNIPPET_LENGTH),
            Event.created_at,
        )
        if account_id is not None:
            accounts = accounts.where(Account.id == account_id)
            notes = notes.where(Note.account_id == account_id)
            events = events.where(Event.account_id == account_id)
        feed = union_all(accounts, notes, events).subquery()
        stmt = (
            select(feed)
            .order_by(feed.c.created_at.desc(), feed.c.id.desc())
            .limit(limit)
        )
        try:
            with self.session_factory() as s:
                rows = s.execute(stmt).all()
        except SQLAlchemyError as exc:
            raise StorageError(f"query activities: {exc}") from exc
        return [
            Activity(
                kind=row.kind,
                id=row.id,
                title=row.title or "",
                detail=row.detail or "",
                created_at=_as_utc(row.created_at),
            )
            for row in rows
        ]

    # Import
    def import_accounts_csv(
        self, stream: IO[str], default_creator: str, location: tzinfo | None = None
    ) -> ImportResult:
        """Create accounts from CSV rows; duplicates and blanks are skipped."""
        result = ImportResult()
        reader = csv.reader(stream, skipinitialspace=True)
        try:
            header = next(reader)
        except StopIteration:
            raise StorageError("read header: empty file") from None
        except csv.Error as exc:
            raise StorageError(f"read header: {exc}") from exc
        index = {}
        for i, h in enumerate(header):
            key = h.strip().lower()
            if key:
                index[key] = i
        if "name" not in index:
            raise StorageError("csv missing 'name' column")
        loc = location or timezone.utc

        def cell(record, key):
            idx = index.get(key)
            if idx is None or idx >= len(record):
                return ""
            return record[idx].strip()

        row = 1
        while True:
            try:
                record = next(reader)
            except StopIteration:
                break
            except csv.Error as exc:
                row += 1
                result.errors.append(f"row {row}: {exc}")
                result.skipped += 1
                continue
            row += 1
            if not record:
                continue
            if index["name"] >= len(record):
                result.errors.append(f"row {row}: missing name field")
                result.skipped += 1
                continue
            name = cell(record, "name")
            if not name:
                result.errors.append(f"row {row}: account name required")
                result.skipped += 1
                continue
            created_at = None
            stamp = cell(record, "created_at")
            if stamp:
                created_at = parse_import_time(stamp, loc)
            account = Account(
                name=name,
                phone=cell(record, "phone"),
                address=cell(record, "address"),
                email=cell(record, "email"),
                decision_maker=cell(record, "decision_maker"),
                creator=cell(record, "creator") or default_creator or "Import",
                created_at=created_at or datetime.now(loc),
            )
            try:
                self.create_account(account)
            except AccountExistsError:
                result.skipped += 1
                result.errors.append(f"row {row}: duplicate account '{name}'")
                continue
            except StorageError as exc:
                result.skipped += 1
                result.errors.append(f"row {row}: {exc}")
                continue
            result.created += 1
        logger.info(
            "csv import: %d created, %d skipped", result.created, result.skipped
        )
        return result


IMPORT_LAYOUTS = ("%Y-%m-%d %H:%M", "%Y-%m-%d")


def parse_import_time(value: str, location: tzinfo) -> datetime | None:
    """Parse a CSV timestamp; naive values are taken to be in ``location``."""
    value = value.strip()
    parsed = None
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        for layout in IMPORT_LAYOUTS:
            try:
                parsed = datetime.strptime(value, layout)
                break
            except ValueError:
                continue
    if parsed is None:
        try:
            parsed = parsedate_to_datetime(value)
        except (TypeError, ValueError):
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=location)
    return parsed
