"""
Shipment Status Enumeration and transition table.
"""

import enum
from typing import Dict, FrozenSet


class ShipmentStatus(str, enum.Enum):
    """
    Shipment status enumeration.

    Status flow:
        CREATED → RECEIVED → IN_TRANSIT → DELIVERED
        CREATED / RECEIVED → CANCELLED
    DELIVERED and CANCELLED are terminal.
    """
    CREATED = "CREATED"
    RECEIVED = "RECEIVED"
    IN_TRANSIT = "IN_TRANSIT"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"


ALLOWED_TRANSITIONS: Dict[ShipmentStatus, FrozenSet[ShipmentStatus]] = {
    ShipmentStatus.CREATED: frozenset({ShipmentStatus.RECEIVED, ShipmentStatus.CANCELLED}),
    ShipmentStatus.RECEIVED: frozenset({ShipmentStatus.IN_TRANSIT, ShipmentStatus.CANCELLED}),
    ShipmentStatus.IN_TRANSIT: frozenset({ShipmentStatus.DELIVERED}),
    ShipmentStatus.DELIVERED: frozenset(),
    ShipmentStatus.CANCELLED: frozenset(),
}


def is_legal_transition(current: ShipmentStatus, new: ShipmentStatus) -> bool:
    """Self-transitions are never legal."""
    return new in ALLOWED_TRANSITIONS.get(current, frozenset())
