"""
Admin Action Log Database Model.

Tracks administrator mutations of pricing, users and shipments with
before/after snapshots.
"""

from sqlalchemy import Column, Integer, String, Text, DateTime, JSON
from backend.app.db.session import Base, utcnow


class AdminActionLog(Base):
    """
    Audit log model for administrator actions.

    Actions logged:
    - SHIPMENT_STATUS_UPDATED
    - SHIPMENT_DELETED
    - COUNTRY_CREATED
    - COUNTRY_MULTIPLIER_UPDATED
    - BOX_TYPE_PRICE_CORRECTED

    Rows are never updated or deleted by the application.
    """
    __tablename__ = "admin_action_logs"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Who performed the action (None for system actions)
    actor_id = Column(Integer, index=True, nullable=True)
    actor_email = Column(String(255), nullable=True)

    # What action was performed
    action = Column(String(100), nullable=False, index=True)

    # What it was performed on
    target_type = Column(String(50), nullable=True, index=True)
    target_id = Column(Integer, nullable=True, index=True)
    description = Column(Text, nullable=True)

    # State snapshots (JSON-safe dicts)
    before_data = Column(JSON, nullable=True)
    after_data = Column(JSON, nullable=True)

    ip_address = Column(String(50), nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)

    def __repr__(self):
        return f"<AdminActionLog(id={self.id}, action='{self.action}', target={self.target_type}:{self.target_id})>"
