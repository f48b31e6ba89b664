"""
数据模型模块
"""
from hms.models.ontology import (
    RoomStatus, StayStatus, SportReservationStatus, OrderType, OrderStatus,
    PaymentStatus, PaymentMethod, CategoryType, ServiceMode, TableStatus,
    Client, Room, Category, Product, Stay, SportReservation,
    Order, OrderItem, RestaurantTable, Payment,
)

__all__ = [
    "RoomStatus", "StayStatus", "SportReservationStatus", "OrderType", "OrderStatus",
    "PaymentStatus", "PaymentMethod", "CategoryType", "ServiceMode", "TableStatus",
    "Client", "Room", "Category", "Product", "Stay", "SportReservation",
    "Order", "OrderItem", "RestaurantTable", "Payment",
]
