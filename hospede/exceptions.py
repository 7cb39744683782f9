"""Domain errors raised by the availability and pricing engine.

The HTTP layer maps each class to a status code (see ``hospede.main``), so
services never import FastAPI.
"""

from datetime import date


class EngineError(Exception):
    """Base class for all engine errors."""

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_detail(self) -> str | dict:
        return self.message


class NotFoundError(EngineError):
    """A property or reservation does not exist."""

    status_code = 404


class InvalidRangeError(EngineError):
    """A date range is malformed or too long. Raised before any store access."""

    status_code = 422


class StayPolicyError(EngineError):
    """The stay breaks a property rule (stay length, guest capacity, pets)."""

    status_code = 422


class CalendarRuleError(EngineError):
    """A calendar rule cannot be expanded (e.g. recurrence ends before it starts)."""

    status_code = 422


class ReservationConflictError(EngineError):
    """The requested dates are unavailable for the property."""

    status_code = 409

    def __init__(
        self,
        message: str = "Dates unavailable",
        conflicting_reservation_ids: list | None = None,
        blocked_dates: list[date] | None = None,
    ) -> None:
        super().__init__(message)
        self.conflicting_reservation_ids = conflicting_reservation_ids or []
        self.blocked_dates = blocked_dates or []

    def to_detail(self) -> dict:
        return {
            "message": self.message,
            "conflicting_reservation_ids": [str(rid) for rid in self.conflicting_reservation_ids],
            "blocked_dates": [d.isoformat() for d in self.blocked_dates],
        }


class ReservationStateError(EngineError):
    """The reservation's lifecycle status does not allow the operation."""

    status_code = 409


class CalendarUpdateError(EngineError):
    """A bulk calendar mutation failed and was rolled back as a whole."""

    status_code = 500


class ServiceBusyError(EngineError):
    """The per-property booking lock could not be acquired in time."""

    status_code = 503
