"""
SQLAlchemy ORM base and the User model.

Architecture:
- Primary Keys: UUID for all tables (portable ``Uuid`` type, native on PostgreSQL)
- Timestamps: naive UTC datetimes
- The User table belongs to the wider back office; the authorization engine
  only references it (identity, active flag, display fields).
"""

from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import Boolean, Column, DateTime, Index, String, Uuid
from sqlalchemy.orm import declarative_base


Base = declarative_base()


def utcnow() -> datetime:
    """Current UTC time as a naive datetime (the storage convention)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


# =============================================================================
# USER MODEL
# =============================================================================

class User(Base):
    """
    Back office user.

    Credentials are hashed upstream (see ``core.rbac.seed.hash_password``);
    the engine reads ``is_active`` and the display fields only.
    """
    __tablename__ = "users"

    user_id = Column(Uuid, primary_key=True, default=uuid4)

    email = Column(String(255), nullable=False, unique=True, index=True)
    first_name = Column(String(100), nullable=False, default="")
    last_name = Column(String(100), nullable=False, default="")
    password_hash = Column(String(255), nullable=True)

    is_active = Column(Boolean, default=True, nullable=False, index=True)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        Index("ix_user_active_email", "is_active", "email"),
    )

    def __repr__(self):
        return f"<User(email={self.email}, active={self.is_active})>"
