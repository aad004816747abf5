"""
Shipment-related enumerations.
"""

import enum


class ShipmentStatus(str, enum.Enum):
    """
    Shipment status enumeration.

    Status flow:
        ORDER_PLACED → IN_TRANSIT → OUT_FOR_DELIVERY → DELIVERED
        Side exits: RETURNED, CANCELLED (terminal), EXCEPTION (re-enterable)
    """
    ORDER_PLACED = "Order Placed"
    IN_TRANSIT = "In Transit"
    OUT_FOR_DELIVERY = "Out for Delivery"
    DELIVERED = "Delivered"
    RETURNED = "Returned"
    CANCELLED = "Cancelled"
    EXCEPTION = "Exception"


class PackageCategory(str, enum.Enum):
    DOCUMENTS = "Documents"
    ELECTRONICS = "Electronics"
    CLOTHING = "Clothing"
    FOOD = "Food"
    FRAGILE = "Fragile"
    LIQUID = "Liquid"
    OTHER = "Other"


class ServiceType(str, enum.Enum):
    """Service levels; each maps to a fixed delivery offset."""
    HYPERLOCAL = "hyperlocal"
    SAME_DAY = "same-day"
    NEXT_DAY = "next-day"
    STANDARD = "standard"
    ECONOMY = "economy"
    EXPRESS = "express"


class ServicePriority(str, enum.Enum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"
    COD = "cod"


class PaymentMethod(str, enum.Enum):
    ONLINE = "online"
    COD = "cod"
    WALLET = "wallet"
    UPI = "upi"
