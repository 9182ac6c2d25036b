"""NuBarber: multi-tenant barbershop booking backend."""

__version__ = "0.1.0"
