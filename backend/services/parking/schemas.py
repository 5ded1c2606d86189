from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class SpotProvisionRequest(BaseModel):
    """
    Creates one spot per expanded identifier.

    Example:
    {
      "identifiers": "A1-A5,B1,B2-B3",
      "per_day_only": false,
      "price_per_hour": "3.50",
      "price_per_day": "25.00"
    }
    """
    identifiers: str = Field(..., min_length=1, description="Comma separated identifiers or ranges")
    allow_electric_charge: bool = False
    is_available: bool = True
    per_day_only: bool = False
    price_per_day: Optional[Decimal] = Field(default=None, ge=0)
    price_per_hour: Optional[Decimal] = Field(default=None, ge=0)
    note: Optional[str] = Field(default=None, max_length=255)


class SpotView(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    parking_id: int
    owner_id: int
    identifier: str
    allow_electric_charge: bool
    is_available: bool
    per_day_only: bool
    price_per_day: Decimal
    price_per_hour: Decimal
    note: Optional[str] = None


class AvailabilityResult(BaseModel):
    parking_id: int
    parking_name: str
    address: str
    number_of_available_spots: int
    price_range_per_day: str
    price_range_hourly_tariff: str
    spots: List[SpotView]
