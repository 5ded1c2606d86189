"""Shared fixtures: in-memory database, seeded lots/spots and a fixed clock."""

from datetime import datetime
from decimal import Decimal

import pytest
from sqlalchemy import create_engine, select
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from backend.services.database.database import Base
from backend.services.database.models import ParkingLot, ParkingSpot, Reservation
from backend.services.reservations.schemas import Principal, Role
from backend.services.reservations.service import ReservationService
from backend.services.settings.reservation_settings import ReservationSettings

NOW = datetime(2025, 7, 1, 8, 0)

ADMIN_ID = 1
OWNER_ID = 10
TENANT_ID = 20
STRANGER_ID = 30


# ── Test-only in-memory engine & session ─────────────────────────────────────

@pytest.fixture()
def engine():
    eng = create_engine(
        "sqlite://",
        echo=False,
        future=True,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(bind=eng)
    yield eng
    Base.metadata.drop_all(bind=eng)
    eng.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)


@pytest.fixture()
def clock():
    return lambda: NOW


@pytest.fixture()
def service(session_factory, clock):
    return ReservationService(session_factory, ReservationSettings(), clock=clock)


# ── Principals ───────────────────────────────────────────────────────────────

@pytest.fixture()
def admin():
    return Principal(user_id=ADMIN_ID, role=Role.ADMIN)


@pytest.fixture()
def owner():
    return Principal(user_id=OWNER_ID, role=Role.OWNER)


@pytest.fixture()
def tenant():
    return Principal(user_id=TENANT_ID, role=Role.TENANT)


@pytest.fixture()
def stranger():
    return Principal(user_id=STRANGER_ID, role=Role.TENANT)


# ── Seed data ────────────────────────────────────────────────────────────────

class Seeder:
    def __init__(self, session_factory):
        self.session_factory = session_factory

    def parking(self, name="Central", is_active=True, total_capacity=20, owner_id=OWNER_ID, street="Main Street"):
        with self.session_factory() as s:
            lot = ParkingLot(
                name=name,
                street=street,
                location_number="1",
                zip_code="1000",
                city="Brussels",
                country="Belgium",
                total_capacity=total_capacity,
                owner_id=owner_id,
                is_active=is_active,
            )
            s.add(lot)
            s.commit()
            return lot.id

    def spot(
        self,
        parking_id,
        identifier,
        per_day_only=False,
        price_per_hour="3.50",
        price_per_day="25.00",
        is_available=True,
        owner_id=OWNER_ID,
    ):
        with self.session_factory() as s:
            spot = ParkingSpot(
                parking_id=parking_id,
                owner_id=owner_id,
                identifier=identifier,
                per_day_only=per_day_only,
                price_per_hour=Decimal(price_per_hour),
                price_per_day=Decimal(price_per_day),
                is_available=is_available,
            )
            s.add(spot)
            s.commit()
            return spot.id

    def reservations(self, **filters):
        with self.session_factory() as s:
            stmt = select(Reservation).filter_by(**filters).order_by(Reservation.id)
            rows = list(s.scalars(stmt))
            s.expunge_all()
            return rows

    def spot_row(self, spot_id):
        with self.session_factory() as s:
            spot = s.get(ParkingSpot, spot_id)
            s.expunge(spot)
            return spot


@pytest.fixture()
def seed(session_factory):
    return Seeder(session_factory)


@pytest.fixture()
def lot(seed):
    """One active lot with spots A1-A3 (hybrid) and D1 (per-day-only)."""
    parking_id = seed.parking()
    spots = {identifier: seed.spot(parking_id, identifier) for identifier in ("A1", "A2", "A3")}
    spots["D1"] = seed.spot(parking_id, "D1", per_day_only=True)
    return {"parking_id": parking_id, "spots": spots}
