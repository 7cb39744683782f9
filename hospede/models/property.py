"""Property model: short-term-rental listings."""

import uuid
from datetime import time
from decimal import Decimal

from sqlalchemy import JSON, Index, Numeric, String, Time
from sqlalchemy.orm import Mapped, mapped_column, relationship

from hospede.database import Base, TimestampMixin, UUIDPrimaryKeyMixin


class Property(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """A rentable listing owned by a host.

    Listing CRUD lives outside this service; the engine only reads these rows
    and never mutates them during a pricing or availability computation.
    """

    __tablename__ = "properties"

    host_id: Mapped[uuid.UUID] = mapped_column(nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    city: Mapped[str] = mapped_column(String(120), nullable=False)
    state: Mapped[str] = mapped_column(String(2), nullable=False)
    neighborhood: Mapped[str | None] = mapped_column(String(120), default=None)
    property_type: Mapped[str] = mapped_column(String(20), nullable=False)  # APARTMENT, HOUSE, CHALET, ...
    bedrooms: Mapped[int] = mapped_column(default=1)
    bathrooms: Mapped[int] = mapped_column(default=1)
    max_guests: Mapped[int] = mapped_column(default=2)
    base_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    cleaning_fee: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0.00"))
    min_stay: Mapped[int] = mapped_column(default=1)
    max_stay: Mapped[int | None] = mapped_column(default=None)
    pets_allowed: Mapped[bool] = mapped_column(default=False)
    amenities: Mapped[list] = mapped_column(JSON, default=list)
    average_rating: Mapped[float] = mapped_column(default=0.0)
    review_count: Mapped[int] = mapped_column(default=0)
    check_in_time: Mapped[time] = mapped_column(Time, default=time(15, 0))
    status: Mapped[str] = mapped_column(String(20), default="ACTIVE")  # ACTIVE, INACTIVE

    # Relationships
    reservations: Mapped[list["Reservation"]] = relationship(  # type: ignore[name-defined]  # noqa: F821
        back_populates="property", lazy="raise", cascade="all, delete-orphan", passive_deletes=True
    )

    __table_args__ = (
        Index("ix_properties_cohort", "city", "state", "property_type", "bedrooms"),
    )

    def __repr__(self) -> str:
        return f"<Property(id={self.id}, title={self.title!r}, city={self.city!r})>"
