"""
Notification Database Model.

Outbox of shipment e-mails. Rows are written after the shipment transaction
has committed; the mail transport picks them up from here.
"""

from sqlalchemy import Column, Integer, String, DateTime, JSON, Enum
from backend.app.db.session import Base, utcnow
import enum


class NotificationTemplate(str, enum.Enum):
    SHIPMENT_CREATED = "SHIPMENT_CREATED"
    SHIPMENT_STATUS_CHANGED = "SHIPMENT_STATUS_CHANGED"


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Recipient
    recipient_email = Column(String(255), nullable=False, index=True)

    # Content
    template = Column(Enum(NotificationTemplate), nullable=False)
    payload = Column(JSON, nullable=True)
    shipment_id = Column(Integer, nullable=True, index=True)  # no FK: outlives deleted shipments

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    def __repr__(self):
        return f"<Notification(id={self.id}, to='{self.recipient_email}', template='{self.template.value}')>"
