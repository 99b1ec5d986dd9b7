"""Authentication models: client and administrator accounts.

Only the columns needed to authenticate and describe a principal live here;
bookings and travel entities reference ``clients.id``.
"""

from db.session import Base
from sqlalchemy import Boolean, Column, DateTime, Integer, String
from sqlalchemy.sql import func


class Client(Base):
    """Database model representing an end-user account.

    Attributes:
        id: Primary key.
        username: Unique login name.
        email: Unique email, also accepted at login.
        password: Password hash.
        first_name: Given name.
        last_name: Family name.
        phone: Optional phone number for booking confirmations.
        address: Optional billing/contact address.
        enabled: Whether the account is active.
        account_locked: Whether the account is temporarily locked.
        created_at: Account creation timestamp.
        last_login: Timestamp of the last successful login.
    """

    __tablename__ = "clients"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String, nullable=False, unique=True)
    email = Column(String, nullable=False, unique=True)
    password = Column(String, nullable=False)
    first_name = Column(String, nullable=False)
    last_name = Column(String, nullable=False)
    phone = Column(String, nullable=True)
    address = Column(String, nullable=True)
    enabled = Column(Boolean, nullable=False, default=True)
    account_locked = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    last_login = Column(DateTime(timezone=True), nullable=True)

    @property
    def full_name(self) -> str:
        return f"{self.first_name or ''} {self.last_name or ''}".strip()

    @property
    def can_login(self) -> bool:
        return bool(self.enabled) and not self.account_locked


class AdminUser(Base):
    """Database model representing an administrator account."""

    __tablename__ = "admin_users"

    id = Column(Integer, primary_key=True, index=True)
    admin_username = Column(String, nullable=False, unique=True)
    admin_password = Column(String, nullable=False)
    enabled = Column(Boolean, nullable=False, default=True)
    account_locked = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    last_login = Column(DateTime(timezone=True), nullable=True)

    @property
    def can_login(self) -> bool:
        return bool(self.enabled) and not self.account_locked
