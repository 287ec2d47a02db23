import datetime
import uuid

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, String, Text
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


def _new_id() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


# PUBLIC_INTERFACE
class User(Base):
    """
    Database model for a user.
    """
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=_new_id)
    email = Column(String, unique=True, index=True, nullable=False)
    password_hash = Column(String, nullable=False)
    salt = Column(String, nullable=False)
    name = Column(String, nullable=False)
    lastname = Column(String, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)

    notes = relationship("Note", back_populates="owner", cascade="all, delete-orphan", passive_deletes=True)


# PUBLIC_INTERFACE
class Note(Base):
    """
    Database model for a note.

    A note can only be deleted once ``finished`` is true.
    """
    __tablename__ = "notes"

    id = Column(String(36), primary_key=True, default=_new_id)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=False, default="")
    timestamp = Column(DateTime(timezone=True), default=_utcnow, nullable=False, index=True)
    finished = Column(Boolean, nullable=False, default=False)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    owner = relationship("User", back_populates="notes")
