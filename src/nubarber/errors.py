"""
Error taxonomy shared by the workflow, the data layer and the API.

Routes translate these into HTTP responses in one place (see api/main.py),
so services raise domain errors and never HTTPException.
"""


class NuBarberError(Exception):
    """Base class for all application errors."""


# --- Validation (caught before any write, surfaced inline) ---

class InputValidationError(NuBarberError, ValueError):
    """Missing or malformed input."""

class BookingValidationError(InputValidationError):
    """A booking form is incomplete or asks for an unavailable slot."""


# --- Lookups ---

class NotFoundError(NuBarberError, LookupError):
    """A referenced record does not exist for this shop."""

class ShopNotFoundError(NotFoundError):
    pass

class BookingNotFoundError(NotFoundError):
    pass


# --- External services (attempted once, never retried) ---

class ExternalServiceError(NuBarberError):
    """A hosted collaborator (payments, email, storage) failed."""

class PaymentError(ExternalServiceError):
    """Checkout session or Connect onboarding could not be created."""
