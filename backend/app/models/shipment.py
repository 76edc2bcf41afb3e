"""
Shipment database model.

A shipment is created by a registered user or a guest, priced once at creation
and then moved through the status lifecycle by the lifecycle manager.
"""

from sqlalchemy import Column, Integer, String, Numeric, Text, DateTime, ForeignKey, Enum
from backend.app.db.session import Base, utcnow
from backend.app.models.shipment_enums import ShipmentStatus


class Shipment(Base):
    """
    Shipment model.

    Sender and receiver details are snapshots taken at creation time.
    cost and tracking_number never change after insert. version guards
    concurrent status updates (optimistic concurrency).
    """
    __tablename__ = "shipments"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Ownership - null user_id means the shipment was created by a guest
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    guest_email = Column(String(255), nullable=True)

    tracking_number = Column(String(40), unique=True, nullable=False, index=True)

    # Sender snapshot
    sender_name = Column(String(100), nullable=False)
    sender_email = Column(String(255), nullable=True)
    sender_phone = Column(String(20), nullable=False)
    sender_address = Column(Text, nullable=False)
    sender_city = Column(String(100), nullable=False)
    sender_postal_code = Column(String(20), nullable=False)
    sender_country = Column(String(100), nullable=False)

    # Receiver snapshot
    receiver_name = Column(String(100), nullable=False)
    receiver_email = Column(String(255), nullable=True)
    receiver_phone = Column(String(20), nullable=False)
    receiver_address = Column(Text, nullable=False)
    receiver_city = Column(String(100), nullable=False)
    receiver_postal_code = Column(String(20), nullable=False)
    receiver_country = Column(String(100), nullable=False)

    # Pricing inputs and result, frozen at creation
    box_type_id = Column(Integer, ForeignKey("box_types.id"), nullable=False, index=True)
    country_id = Column(Integer, ForeignKey("countries.id"), nullable=False, index=True)
    weight_kg = Column(Numeric(10, 2), nullable=True)
    base_cost = Column(Numeric(10, 2), nullable=False)
    multiplier = Column(Numeric(10, 3), nullable=False)
    cost = Column(Numeric(10, 2), nullable=False)
    currency = Column(String(3), nullable=False, default="USD")

    status = Column(Enum(ShipmentStatus), default=ShipmentStatus.CREATED, nullable=False, index=True)
    version = Column(Integer, nullable=False, default=1)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    @property
    def contact_email(self):
        """Address status notifications go to."""
        return self.guest_email or self.sender_email

    def __repr__(self):
        return f"<Shipment(id={self.id}, tracking='{self.tracking_number}', status='{self.status.value}')>"
