"""Routing request/response schemas."""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field


class CoordinatesModel(BaseModel):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)


class StopModel(BaseModel):
    id: str
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    address: str
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    priority_score: Optional[float] = Field(
        default=None, ge=0, le=100, description="Lead importance; defaults to the configured score when omitted."
    )


class OptimizeRequest(BaseModel):
    origin: CoordinatesModel
    start_address: str
    end_address: Optional[str] = Field(default=None, description="Defaults to the start address.")
    stops: List[StopModel] = Field(default_factory=list)
    return_to_origin: bool = True
    use_provider: bool = Field(
        default=True,
        description="If False, only the local nearest-neighbour ordering is used.",
    )
    activate: bool = Field(default=True, description="Install the result as the active route.")
    confirm_replace: bool = Field(
        default=False,
        description="Allow replacing an unfinished active route.",
    )


class LegModel(BaseModel):
    to_stop_id: Optional[str]
    distance_miles: float
    duration_minutes: float
    estimated: bool


class RouteStopModel(BaseModel):
    order: int
    visited: bool
    distance_from_previous: float
    estimated_minutes_from_previous: int
    stop: StopModel


class RouteModel(BaseModel):
    id: str
    start_address: str
    end_address: str
    total_distance: float
    total_duration: int
    started_at: str
    completed_at: Optional[str]
    current_stop_index: int
    stops: List[RouteStopModel]


class ActiveRouteResponse(BaseModel):
    state: str
    visited: int
    remaining: int
    percent_complete: float
    elapsed_minutes: int
    timer_running: bool
    route: RouteModel


class OptimizeResponse(BaseModel):
    total_distance: float
    total_duration: float
    legs: List[LegModel]
    metadata: dict
    route: RouteModel
    activated: bool
    active_route: Optional[ActiveRouteResponse] = None
