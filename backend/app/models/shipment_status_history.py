"""
Shipment Status History database model.

Append-only. The rows of one shipment, ordered by (changed_at, id), replay a
legal path through the status state machine starting at CREATED.
"""

from sqlalchemy import Column, Integer, Text, DateTime, ForeignKey, Enum
from backend.app.db.session import Base, utcnow
from backend.app.models.shipment_enums import ShipmentStatus


class ShipmentStatusHistory(Base):
    __tablename__ = "shipment_status_history"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    shipment_id = Column(Integer, ForeignKey("shipments.id"), nullable=False, index=True)
    status = Column(Enum(ShipmentStatus), nullable=False)

    # None for system-driven changes
    actor_id = Column(Integer, nullable=True, index=True)
    note = Column(Text, nullable=True)

    changed_at = Column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)

    def __repr__(self):
        return f"<ShipmentStatusHistory(shipment_id={self.shipment_id}, status='{self.status.value}')>"
