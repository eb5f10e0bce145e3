"""
SQLAlchemy ORM models for database tables.

This module contains database table definitions using SQLAlchemy.
For Pydantic request/response schemas, see schemas.py.
"""

from sqlalchemy import Column, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from messagely.storage import Base


class User(Base):
    """
    A registered user.

    Table: users
    Primary Key: username (immutable; the only key messages refer to)
    """
    __tablename__ = "users"

    username = Column(String, primary_key=True, index=True)
    password = Column(String, nullable=False)  # bcrypt hash, never returned
    first_name = Column(String, nullable=False)
    last_name = Column(String, nullable=False)
    phone = Column(String, nullable=False)
    join_at = Column(String, nullable=False)  # ISO-8601 UTC, set once
    last_login_at = Column(String, nullable=True)  # ISO-8601 UTC

    def public_summary(self) -> dict:
        return {
            "username": self.username,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "phone": self.phone,
        }


class Message(Base):
    """
    A private message between two users.

    Table: messages
    Primary Key: id (autoincrement, follows creation order)
    """
    __tablename__ = "messages"

    id = Column(Integer, primary_key=True, autoincrement=True)
    from_username = Column(String, ForeignKey("users.username"), nullable=False, index=True)
    to_username = Column(String, ForeignKey("users.username"), nullable=False, index=True)
    body = Column(Text, nullable=False)
    sent_at = Column(String, nullable=False)  # ISO-8601 UTC, immutable
    read_at = Column(String, nullable=True)  # null until the recipient reads it

    from_user = relationship("User", foreign_keys=[from_username], lazy="joined")
    to_user = relationship("User", foreign_keys=[to_username], lazy="joined")
