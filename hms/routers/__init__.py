# API Routers
from hms.routers import stays, sport_reservations, orders, restaurant_tables

__all__ = ['stays', 'sport_reservations', 'orders', 'restaurant_tables']
