# tiretrack/constants.py
"""Enumerations shared by models, services and schemas."""

import enum


class TirePosition(str, enum.Enum):
    """Wheel positions. Values are the stored short codes."""
    FL = "FL"   # front-left
    FR = "FR"   # front-right
    RL = "RL"   # rear-left
    RR = "RR"   # rear-right
    SP = "SP"   # spare


ALL_POSITIONS = (TirePosition.FL, TirePosition.FR, TirePosition.RL, TirePosition.RR, TirePosition.SP)

# A rotation without explicit positions moves the four road wheels, not the spare.
ROAD_WHEELS = (TirePosition.FL, TirePosition.FR, TirePosition.RL, TirePosition.RR)


class VehicleState(str, enum.Enum):
    ACTIVE = "active"
    SOFT_DELETED = "soft_deleted"


class SessionKind(str, enum.Enum):
    OWNER = "owner"
    ADMIN = "admin"


class AdminRole(str, enum.Enum):
    SUPER_ADMIN = "SUPER_ADMIN"
    ADMIN = "ADMIN"
    STAFF = "STAFF"
