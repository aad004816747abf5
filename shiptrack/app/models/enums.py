"""
User roles enumeration.

Defines the role types for the shipment tracking system.
"""

import enum


class UserRole(str, enum.Enum):
    """
    User role enumeration.

    Roles:
        USER: Registered customer who books and follows shipments (default role)
        AGENT: Field/operations staff who post tracking events
        ADMIN: Supreme user with system-level access
    """
    USER = "user"
    AGENT = "agent"
    ADMIN = "admin"


class Language(str, enum.Enum):
    """Supported interface languages."""
    EN = "en"
    HI = "hi"
    TA = "ta"
    TE = "te"
    BN = "bn"
    MR = "mr"
    GU = "gu"


class Theme(str, enum.Enum):
    LIGHT = "light"
    DARK = "dark"
