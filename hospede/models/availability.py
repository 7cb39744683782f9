"""AvailabilityDay model: per-property, per-date calendar overrides."""

import uuid
from datetime import date
from decimal import Decimal

from sqlalchemy import Date, ForeignKey, Numeric, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from hospede.database import Base, TimestampMixin, UUIDPrimaryKeyMixin


class AvailabilityDay(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """Calendar state for one property on one date.

    Rows are created lazily on the first mutation of a date and overwritten
    afterwards; they are never deleted. A missing row, or a NULL override,
    means "available at the property's base settings".
    """

    __tablename__ = "availability_days"

    property_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("properties.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    day: Mapped[date] = mapped_column("date", Date, nullable=False)
    is_blocked: Mapped[bool] = mapped_column(default=False)
    price: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    min_stay: Mapped[int | None] = mapped_column(nullable=True)
    advance_notice_hours: Mapped[int | None] = mapped_column(nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (UniqueConstraint("property_id", "date", name="uq_availability_days_property_date"),)

    def __repr__(self) -> str:
        return f"<AvailabilityDay(property_id={self.property_id}, day={self.day}, blocked={self.is_blocked})>"
