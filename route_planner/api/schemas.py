from typing import List, Optional, Dict, Literal
from datetime import date, datetime
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

Transport = Literal["public", "drive", "mixed"]
Intensity = Literal["relaxed", "moderate", "high"]


class CamelModel(BaseModel):
    """Snake_case attributes, camelCase on the wire."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ===== ITINERARY GENERATION SCHEMAS =====

class ItineraryRequest(CamelModel):
    departure_city: Optional[str] = Field(None, max_length=100)
    destinations: List[str] = Field(default_factory=list, description="Destination names, first one drives the fallback pools")
    start_date: date
    end_date: date
    total_budget: int = Field(default=8000, ge=0, description="Total budget for the whole group")
    people_count: int = Field(default=2, ge=1)
    transport: Transport = "mixed"
    intensity: Intensity = "moderate"
    interest_weights: Dict[str, int] = Field(default_factory=dict, description="Opaque interest weights, 0-100")

    @field_validator('destinations')
    @classmethod
    def strip_destinations(cls, v):
        return [d.strip() for d in v if d and d.strip()]

    @field_validator('interest_weights')
    @classmethod
    def validate_interest_weights(cls, v):
        for key, weight in v.items():
            if weight < 0 or weight > 100:
                raise ValueError(f"Interest weight for '{key}' must be between 0 and 100")
        return v


class PoiItem(CamelModel):
    id: str
    name: str
    image: Optional[str] = None
    stay_minutes: int = 60
    tags: List[str] = Field(default_factory=list)
    lng: Optional[float] = Field(None, allow_inf_nan=False)
    lat: Optional[float] = Field(None, allow_inf_nan=False)

    @model_validator(mode="after")
    def check_coordinate_pair(self):
        if (self.lng is None) != (self.lat is None):
            raise ValueError("lng and lat must be set together")
        return self

    @property
    def has_coordinates(self) -> bool:
        return self.lng is not None and self.lat is not None


class DayPlan(CamelModel):
    day_index: int = Field(..., ge=1)
    date: date
    duration_minutes: int = 180
    distance_km: int = 10
    commute_minutes: int = 20
    items: List[PoiItem] = Field(default_factory=list)


class PlanVariant(CamelModel):
    id: str
    name: str
    days: List[DayPlan]


class GenerateResult(CamelModel):
    variants: List[PlanVariant]


# ===== TRENDING ROUTE SCHEMAS =====

class HotRoute(CamelModel):
    id: int
    title: str
    destination: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    budget: Optional[int] = None
    people_count: Optional[int] = None
    pace: Optional[str] = None
    created_at: Optional[datetime] = None
    like_count: int = 0
    favorite_count: int = 0
    score: int = 0
