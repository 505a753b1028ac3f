"""
SQLAlchemy ORM models for database tables.

This module contains database table definitions using SQLAlchemy.
For Pydantic request/response schemas, see schemas.py.
"""

from sqlalchemy import Boolean, Column, DateTime, Integer, String

from app.storage import Base


class Message(Base):
    """
    SQLAlchemy model for storing contact messages.

    Table: messages
    Primary Key: id (AUTOINCREMENT on SQLite, so ids are never reused)
    """
    __tablename__ = "messages"
    __table_args__ = {"sqlite_autoincrement": True}

    id = Column(Integer, primary_key=True, autoincrement=True)
    sender_name = Column(String(100), nullable=False)
    sender_email = Column(String(150), nullable=False, index=True)
    content = Column(String(1000), nullable=False)
    created_at = Column(DateTime, nullable=False, index=True)  # naive UTC
    is_read = Column(Boolean, nullable=False, default=False, index=True)

    def __repr__(self) -> str:
        return f"<Message id={self.id} email={self.sender_email!r} is_read={self.is_read}>"
