from datetime import datetime, timezone
from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    ForeignKey,
)
from sqlalchemy.orm import relationship

from .database import Base, UTCDateTime


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Account(Base):
    """Customer account that notes and events can be linked to."""

    __tablename__ = "accounts"

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False, unique=True)
    phone = Column(String)
    address = Column(String)
    email = Column(String)
    decision_maker = Column(String)
    creator = Column(String, nullable=False, default="")
    created_at = Column(UTCDateTime, nullable=False, default=utcnow)


class Note(Base):
    """Free-form note, optionally tied to an account."""

    __tablename__ = "notes"

    id = Column(Integer, primary_key=True)
    content = Column(Text, nullable=False)
    account_id = Column(
        Integer, ForeignKey("accounts.id", ondelete="SET NULL"), index=True
    )
    creator = Column(String, nullable=False, default="")
    created_at = Column(UTCDateTime, nullable=False, default=utcnow)

    account = relationship("Account")


class Event(Base):
    """Scheduled interaction, optionally tied to an account."""

    __tablename__ = "events"

    id = Column(Integer, primary_key=True)
    title = Column(String, nullable=False)
    details = Column(Text)
    event_time = Column(UTCDateTime, nullable=False, default=utcnow, index=True)
    account_id = Column(
        Integer, ForeignKey("accounts.id", ondelete="SET NULL"), index=True
    )
    creator = Column(String, nullable=False, default="")
    created_at = Column(UTCDateTime, nullable=False, default=utcnow)

    account = relationship("Account", lazy="joined")

    @property
    def account_name(self) -> str | None:
        return self.account.name if self.account is not None else None
