from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from backend.services.reservations.schemas import BLOCKING_STATUSES, ReservationStatus

from .database import Base


# Partial-index predicate shared by SQLite and PostgreSQL: only the blocking
# status class takes part in the timeframe uniqueness check.
_BLOCKING_PREDICATE = text(
    "status IN ({})".format(
        ", ".join(f"'{s.value}'" for s in sorted(BLOCKING_STATUSES, key=lambda s: s.value))
    )
)


class ParkingLot(Base):
    __tablename__ = "parkings"
    __table_args__ = (
        UniqueConstraint("street", "location_number", "zip_code", "city", name="uq_parking_location"),
    )

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)

    # Address
    street = Column(String(255), nullable=False)
    location_number = Column(String(32), nullable=False)
    zip_code = Column(String(32), nullable=False)
    city = Column(String(255), nullable=False)
    country = Column(String(255), nullable=False)

    total_capacity = Column(Integer, nullable=False)
    owner_id = Column(Integer, nullable=False, index=True)

    # Soft delete: deactivating a lot cascades to its spots
    is_active = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    spots = relationship("ParkingSpot", back_populates="parking", order_by="ParkingSpot.id")

    @property
    def address(self) -> str:
        return f"{self.street} {self.location_number}, {self.zip_code} {self.city}, {self.country}"


class ParkingSpot(Base):
    __tablename__ = "parking_spots"
    __table_args__ = (
        UniqueConstraint("parking_id", "identifier", name="uq_spot_identifier_per_parking"),
    )

    id = Column(Integer, primary_key=True, index=True)
    parking_id = Column(Integer, ForeignKey("parkings.id", ondelete="CASCADE"), nullable=False, index=True)
    owner_id = Column(Integer, nullable=False, index=True)

    # Human readable label, e.g. "A1"
    identifier = Column(String(64), nullable=False)

    allow_electric_charge = Column(Boolean, nullable=False, default=False)

    # Operator controlled, independent of bookings
    is_available = Column(Boolean, nullable=False, default=True)

    per_day_only = Column(Boolean, nullable=False, default=False)
    price_per_day = Column(Numeric(10, 2), nullable=False, default=99)
    price_per_hour = Column(Numeric(6, 2), nullable=False, default=3.5)

    note = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    parking = relationship("ParkingLot", back_populates="spots")
    reservations = relationship("Reservation", back_populates="spot")


class Reservation(Base):
    __tablename__ = "reservations"
    __table_args__ = (
        # Last-resort guard against two racing transactions that both passed
        # the application-level conflict check.
        Index(
            "uq_reservation_timeframe",
            "parking_spot_id",
            "start_datetime",
            "end_datetime",
            unique=True,
            sqlite_where=_BLOCKING_PREDICATE,
            postgresql_where=_BLOCKING_PREDICATE,
        ),
        Index("ix_reservation_spot_window", "parking_spot_id", "start_datetime", "end_datetime"),
    )

    id = Column(Integer, primary_key=True, index=True)

    # NULL for manual (administrative) occupation
    user_id = Column(Integer, nullable=True, index=True)

    parking_id = Column(Integer, ForeignKey("parkings.id", ondelete="CASCADE"), nullable=False)
    parking_spot_id = Column(Integer, ForeignKey("parking_spots.id", ondelete="CASCADE"), nullable=False)

    # Half-open interval [start_datetime, end_datetime)
    start_datetime = Column(DateTime, nullable=False)
    end_datetime = Column(DateTime, nullable=False)

    license_plate = Column(String(32), nullable=True)

    status = Column(
        Enum(
            ReservationStatus,
            name="reservation_status",
            values_callable=lambda enum_cls: [member.value for member in enum_cls],
            native_enum=False,
            length=32,
        ),
        nullable=False,
        default=ReservationStatus.ACTIVE,
    )

    group_token = Column(String(36), nullable=True, index=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    spot = relationship("ParkingSpot", back_populates="reservations")
    parking = relationship("ParkingLot")

    @property
    def is_blocking(self) -> bool:
        return self.status in BLOCKING_STATUSES
