# Business Services
from hms.services.interval_allocator import IntervalAllocator
from hms.services.order_ledger import OrderLedger, ORDER_TYPE_RULES
from hms.services.order_service import (
    OrderService, RestaurantOrderService, SupermarketOrderService, LaundryOrderService
)
from hms.services.stay_service import StayService
from hms.services.sport_reservation_service import SportReservationService
from hms.services.restaurant_table_service import RestaurantTableService

__all__ = [
    'IntervalAllocator', 'OrderLedger', 'ORDER_TYPE_RULES',
    'OrderService', 'RestaurantOrderService', 'SupermarketOrderService', 'LaundryOrderService',
    'StayService', 'SportReservationService', 'RestaurantTableService'
]
