"""SQLAlchemy models for the Hospede engine.

All models are imported here so that Alembic's autogenerate can discover
them via Base.metadata. If you add a new model, import it in this file.
"""

from hospede.models.availability import AvailabilityDay
from hospede.models.property import Property
from hospede.models.reservation import BLOCKING_STATUSES, Reservation, ReservationStatus

__all__ = [
    "AvailabilityDay",
    "BLOCKING_STATUSES",
    "Property",
    "Reservation",
    "ReservationStatus",
]
