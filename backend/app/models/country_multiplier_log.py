"""
Country Multiplier Log database model.

Append-only record of every multiplier change so prior prices stay recoverable.
"""

from sqlalchemy import Column, Integer, Numeric, Text, DateTime, ForeignKey
from backend.app.db.session import Base, utcnow


class CountryMultiplierLog(Base):
    __tablename__ = "country_multiplier_logs"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    country_id = Column(Integer, ForeignKey("countries.id"), nullable=False, index=True)

    previous_multiplier = Column(Numeric(10, 3), nullable=False)
    new_multiplier = Column(Numeric(10, 3), nullable=False)

    # Administrator who made the change
    changed_by = Column(Integer, nullable=False, index=True)
    reason = Column(Text, nullable=True)

    effective_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    def __repr__(self):
        return (
            f"<CountryMultiplierLog(country_id={self.country_id}, "
            f"{self.previous_multiplier} -> {self.new_multiplier})>"
        )
