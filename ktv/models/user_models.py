"""
Resident account models for KTV Request Hub.
"""

from datetime import datetime, timezone
from sqlalchemy import Column, Integer, String, DateTime, Boolean, JSON
from werkzeug.security import generate_password_hash, check_password_hash
from .database_config import Base


class UserModel(Base):
    __tablename__ = "users"

    id = Column(String(64), primary_key=True)
    email = Column(String(120), unique=True, nullable=False)
    password_hash = Column(String(255), nullable=False, default="")
    name = Column(String(80), nullable=False)
    building = Column(String(8), nullable=False, default="A")
    floor = Column(String(8), nullable=False, default="")
    door = Column(String(8), nullable=False, default="")
    role = Column(String(16), nullable=False, default="USER")  # 'ADMIN' or 'USER'
    is_suspended = Column(Boolean, nullable=False, default=False)
    favorites = Column(JSON, nullable=False, default=list)
    login_count = Column(Integer, nullable=False, default=0)
    last_login = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    def set_password(self, password):
        """Set password hash"""
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        """Check if provided password matches hash"""
        return bool(self.password_hash) and check_password_hash(self.password_hash, password)

    def __repr__(self):
        return f"<User {self.email} ({self.role})>"
