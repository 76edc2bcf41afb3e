"""
Destination Country database model.
"""

from sqlalchemy import Column, Integer, String, Numeric, Boolean, DateTime
from backend.app.db.session import Base, utcnow


class Country(Base):
    """
    Destination country with its price multiplier.

    Multiplier changes go through the pricing catalog, which logs the previous
    value to country_multiplier_logs before overwriting it here.
    """
    __tablename__ = "countries"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    name = Column(String(100), unique=True, nullable=False)
    code = Column(String(3), unique=True, nullable=False, index=True)
    multiplier = Column(Numeric(10, 3), nullable=False, default=1)
    is_active = Column(Boolean, default=True, nullable=False, index=True)

    # Origin jurisdiction, conventionally multiplier 1.000
    is_source_country = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    def __repr__(self):
        return f"<Country(id={self.id}, code='{self.code}', multiplier={self.multiplier})>"
