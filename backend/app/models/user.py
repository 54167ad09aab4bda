# backend/app/models/user.py
"""
User model for the practice space.

Only what the booking core needs from the identity provider lives here:
a stable id, contact details for diagnostics, and whether the member is
entitled to credit-funded hours.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, String
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func
import ulid

from ..database import Base


class User(Base):
    """A member who can book the space."""

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    is_sustaining_member: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), nullable=False)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime, onupdate=func.now())

    @property
    def is_credit_eligible(self) -> bool:
        """Sustaining members get free practice hours funded from credits."""
        return bool(self.is_sustaining_member)

    def __repr__(self) -> str:
        return f"<User {self.email} sustaining={self.is_sustaining_member}>"
