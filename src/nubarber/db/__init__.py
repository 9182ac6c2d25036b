from nubarber.db.models import Base, Shop, Service, StaffMember, StaffAvailability, TimeOff, Booking
from nubarber.db.database import DatabaseRouter, build_router

__all__ = [
    'Base',
    'Shop',
    'Service',
    'StaffMember',
    'StaffAvailability',
    'TimeOff',
    'Booking',
    'DatabaseRouter',
    'build_router',
]
