# backend/app/models/user.py
"""
User and child models.

Parents own children and wallets; admins confirm TFC payments and
cancel on behalf of providers. Authentication lives outside this service,
so a user row only carries identity and contact fields.
"""

from sqlalchemy import Boolean, Column, Date, DateTime, ForeignKey, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import ulid

from ..core.enums import UserRole
from ..database import Base


class User(Base):
    """A parent, provider staff member or platform admin."""

    __tablename__ = "users"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    email = Column(String, unique=True, index=True, nullable=False)
    first_name = Column(String(50), nullable=False)
    last_name = Column(String(50), nullable=False)
    phone = Column(String(20), nullable=True)
    role = Column(String(20), nullable=False, default=UserRole.PARENT.value)
    is_active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    children = relationship("Child", back_populates="parent", cascade="all, delete-orphan")
    wallet_credits = relationship(
        "WalletCredit", back_populates="parent", cascade="all, delete-orphan"
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    def __repr__(self) -> str:
        return f"<User {self.email} role={self.role}>"


class Child(Base):
    __tablename__ = "children"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    parent_id = Column(
        String(26), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    first_name = Column(String(50), nullable=False)
    last_name = Column(String(50), nullable=False)
    date_of_birth = Column(Date, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    parent = relationship("User", back_populates="children")

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    def __repr__(self) -> str:
        return f"<Child {self.full_name} parent={self.parent_id}>"
