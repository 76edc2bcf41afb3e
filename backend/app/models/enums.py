"""
User roles enumeration.

The shipment core only ever sees these three roles. Translating whatever the
identity provider emits into one of them happens in backend.app.core.identity.
"""

import enum


class UserRole(str, enum.Enum):
    """
    User role enumeration.

    Roles:
        GUEST: Unauthenticated caller, may create shipments with a contact email
        REGISTERED_USER: Authenticated customer owning their shipments
        ADMINISTRATOR: Manages shipments, pricing and audit trails
    """
    GUEST = "GUEST"
    REGISTERED_USER = "REGISTERED_USER"
    ADMINISTRATOR = "ADMINISTRATOR"
