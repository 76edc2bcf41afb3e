"""
User profile database model.

Credentials live with the identity provider. This table only keeps the
profile a registered user's sender details are copied from.
"""

from sqlalchemy import Column, Integer, String, Text, DateTime
from backend.app.db.session import Base, utcnow


class User(Base):
    """
    Stored profile of an identity-provider user.

    The primary key is the identity provider's user id, not a local sequence.
    """
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True, autoincrement=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    full_name = Column(String(100), nullable=True)
    phone = Column(String(20), nullable=True)

    # Structured address, never a single free-text line
    address = Column(Text, nullable=True)
    city = Column(String(100), nullable=True)
    postal_code = Column(String(20), nullable=True)
    country = Column(String(100), nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    def __repr__(self):
        return f"<User(id={self.id}, email='{self.email}')>"
