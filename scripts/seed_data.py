"""Seed the database with sample Brazilian short-term-rental listings.

Creates a comparable cohort of 2-bedroom apartments in Florianópolis (so market
snapshots have competitors), a chalet in Gramado, and a house in São Paulo,
with a spread of reservations and a few calendar rules.

Run from the project root:
    python -m scripts.seed_data
"""

import asyncio
import sys
import uuid
from datetime import date, timedelta
from decimal import Decimal
from pathlib import Path

# Add the project root to path so imports work when run as a script
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from sqlalchemy import delete

from hospede.database import async_session_factory, engine, utcnow
from hospede.models import Property, Reservation
from hospede.schemas.calendar import BlockRule, PriceRule, Recurrence
from hospede.services.calendar_store import apply_rule
from hospede.services.reservations import quote_stay

# Stable ids so re-seeding replaces the same rows
DEMO_HOST_ID = uuid.uuid5(uuid.NAMESPACE_DNS, "host.demo.hospede")

# ---------------------------------------------------------------------------
# Seed data definitions
# ---------------------------------------------------------------------------

_FLORIPA_APARTMENT = {
    "city": "Florianópolis",
    "state": "SC",
    "property_type": "APARTMENT",
    "bedrooms": 2,
    "bathrooms": 1,
    "max_guests": 4,
    "cleaning_fee": Decimal("80.00"),
}

PROPERTIES = [
    {
        **_FLORIPA_APARTMENT,
        "title": "Apartamento pé na areia em Jurerê",
        "neighborhood": "Jurerê Internacional",
        "base_price": Decimal("420.00"),
        "amenities": ["pool", "wifi", "air_conditioning", "parking"],
        "average_rating": 4.8,
        "review_count": 37,
        "min_stay": 2,
    },
    {
        **_FLORIPA_APARTMENT,
        "title": "Cobertura com vista para a Lagoa",
        "neighborhood": "Lagoa da Conceição",
        "base_price": Decimal("380.00"),
        "amenities": ["wifi", "kitchen"],
        "average_rating": 4.6,
        "review_count": 18,
    },
    {
        **_FLORIPA_APARTMENT,
        "title": "Apartamento perto da Praia Mole",
        "neighborhood": "Barra da Lagoa",
        "base_price": Decimal("300.00"),
        "amenities": ["wifi"],
        "average_rating": 4.2,
        "review_count": 6,
    },
    {
        **_FLORIPA_APARTMENT,
        "title": "Apê familiar em Canasvieiras",
        "neighborhood": "Canasvieiras",
        "base_price": Decimal("260.00"),
        "amenities": ["kitchen", "parking"],
        "average_rating": 4.0,
        "review_count": 3,
        "pets_allowed": True,
    },
    {
        **_FLORIPA_APARTMENT,
        "title": "Studio duplo no Centro",
        "neighborhood": "Centro",
        "base_price": Decimal("240.00"),
        "amenities": [],
        "average_rating": 0.0,
        "review_count": 0,
    },
    {
        "title": "Chalé com lareira no Bavária",
        "city": "Gramado",
        "state": "RS",
        "neighborhood": "Bavária",
        "property_type": "CHALET",
        "bedrooms": 1,
        "bathrooms": 1,
        "max_guests": 2,
        "base_price": Decimal("550.00"),
        "cleaning_fee": Decimal("120.00"),
        "min_stay": 2,
        "max_stay": 14,
        "amenities": ["wifi", "fireplace", "parking"],
        "average_rating": 4.9,
        "review_count": 52,
    },
    {
        "title": "Casa com jardim na Vila Madalena",
        "city": "São Paulo",
        "state": "SP",
        "neighborhood": "Vila Madalena",
        "property_type": "HOUSE",
        "bedrooms": 3,
        "bathrooms": 2,
        "max_guests": 6,
        "base_price": Decimal("650.00"),
        "cleaning_fee": Decimal("150.00"),
        "amenities": ["wifi", "kitchen", "air_conditioning"],
        "average_rating": 4.7,
        "review_count": 24,
        "pets_allowed": True,
    },
]


def _build_reservations(properties: list[Property], today: date) -> list[dict]:
    """Reservations around today, never overlapping on one property."""
    p = {prop.title: prop for prop in properties}
    jurere = p["Apartamento pé na areia em Jurerê"]
    lagoa = p["Cobertura com vista para a Lagoa"]
    gramado = p["Chalé com lareira no Bavária"]
    vila = p["Casa com jardim na Vila Madalena"]

    return [
        {"property": jurere, "offset": -20, "nights": 5, "status": "COMPLETED", "num_guests": 2},
        {"property": jurere, "offset": -2, "nights": 5, "status": "IN_PROGRESS", "num_guests": 4},
        {"property": jurere, "offset": 10, "nights": 4, "status": "CONFIRMED", "num_guests": 3},
        {"property": jurere, "offset": 14, "nights": 3, "status": "PENDING", "num_guests": 2},
        {"property": lagoa, "offset": -12, "nights": 3, "status": "COMPLETED", "num_guests": 2},
        {"property": lagoa, "offset": 5, "nights": 7, "status": "CONFIRMED", "num_guests": 4},
        {"property": lagoa, "offset": 20, "nights": 2, "status": "CANCELLED", "num_guests": 2},
        {"property": gramado, "offset": 3, "nights": 3, "status": "CONFIRMED", "num_guests": 2},
        {"property": gramado, "offset": 40, "nights": 2, "status": "NO_SHOW", "num_guests": 2},
        {"property": vila, "offset": 1, "nights": 2, "status": "CONFIRMED", "num_guests": 5},
    ]


async def seed() -> None:
    """Populate the database with sample listings and their bookings.

    Idempotent: deletes everything owned by the demo host and re-seeds.
    """
    async with async_session_factory() as session:
        await session.execute(delete(Property).where(Property.host_id == DEMO_HOST_ID))
        await session.flush()

        # ------------------------------------------------------------------
        # 1. Properties
        # ------------------------------------------------------------------
        created: list[Property] = []
        for data in PROPERTIES:
            prop = Property(host_id=DEMO_HOST_ID, **data)
            session.add(prop)
            created.append(prop)
        await session.flush()
        for prop in created:
            print(f"   {prop.title}: {prop.city}/{prop.state} (R$ {prop.base_price}/night)")

        # ------------------------------------------------------------------
        # 2. Reservations
        # ------------------------------------------------------------------
        today = date.today()
        reservations = _build_reservations(created, today)
        for data in reservations:
            prop = data["property"]
            check_in = today + timedelta(days=data["offset"])
            check_out = check_in + timedelta(days=data["nights"])
            quote = await quote_stay(session, prop, check_in, check_out)
            session.add(
                Reservation(
                    property_id=prop.id,
                    guest_id=uuid.uuid4(),
                    check_in=check_in,
                    check_out=check_out,
                    num_guests=data["num_guests"],
                    status=data["status"],
                    nightly_subtotal=quote.nightly_subtotal,
                    cleaning_fee=quote.cleaning_fee,
                    service_fee=quote.service_fee,
                    taxes=quote.taxes,
                    total_price=quote.total_price,
                    created_at=utcnow() - timedelta(days=max(-data["offset"], 1)),
                    cancellation_reason="guest" if data["status"] == "CANCELLED" else None,
                )
            )
        await session.flush()
        print(f"Created {len(reservations)} reservations")

        # ------------------------------------------------------------------
        # 3. Calendar rules
        # ------------------------------------------------------------------
        jurere, gramado = created[0], created[5]
        year_end = date(today.year, 12, 31)
        weekend_dates = await apply_rule(
            session,
            jurere.id,
            PriceRule(
                start_date=today,
                end_date=today + timedelta(days=90),
                value=Decimal("520.00"),
                recurrence=Recurrence(frequency="WEEKLY", days_of_week=[4, 5]),
            ),
        )
        maintenance_dates = await apply_rule(
            session,
            gramado.id,
            BlockRule(
                start_date=today + timedelta(days=30),
                end_date=today + timedelta(days=32),
                notes="Manutenção da lareira",
            ),
        )
        new_year_dates = await apply_rule(
            session,
            jurere.id,
            PriceRule(start_date=year_end, end_date=year_end, value=Decimal("1200.00")),
        )

        day_count = len(weekend_dates) + len(maintenance_dates) + len(new_year_dates)
        await session.commit()

    await engine.dispose()

    print()
    print("=" * 60)
    print("Seed Summary")
    print("=" * 60)
    print(f"   Host:          {DEMO_HOST_ID}")
    print(f"   Properties:    {len(created)}")
    print(f"   Reservations:  {len(reservations)}")
    print(f"   Calendar days: {day_count}")
    print("=" * 60)


if __name__ == "__main__":
    asyncio.run(seed())
