"""
Box Type database model.

Box types carry the base cost every shipment price starts from.
"""

from sqlalchemy import Column, Integer, String, Numeric, Boolean, DateTime
from backend.app.db.session import Base, utcnow


class BoxType(Base):
    """
    Box Type model.

    base_cost may be corrected by an administrator; shipments keep the cost
    they were created with.
    """
    __tablename__ = "box_types"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    name = Column(String(50), unique=True, nullable=False)
    size = Column(String(50), nullable=False)  # LxWxH cm
    base_cost = Column(Numeric(10, 2), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False, index=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    def __repr__(self):
        return f"<BoxType(id={self.id}, name='{self.name}', base_cost={self.base_cost})>"
