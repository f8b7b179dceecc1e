"""Wire models for the drone logistics backend.

Field names follow the backend's JSON (camelCase) through aliases so the same
objects can be validated from model tool input, sent to the backend, and
echoed back to the model.
"""

from __future__ import annotations

from typing import List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class LngLat(BaseModel):
    model_config = ConfigDict(frozen=True)

    lng: float = Field(ge=-180, le=180)
    lat: float = Field(ge=-90, le=90)


class Requirements(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    capacity: float = Field(gt=0)
    cooling: Optional[bool] = None
    heating: Optional[bool] = None
    max_cost: Optional[float] = Field(default=None, alias="maxCost")


class DeliveryRequest(BaseModel):
    """One delivery's requirements, target coordinates and timing.

    The backend calls the target `delivery`; `deliveryId` in plan output
    refers back to `id`.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: int
    date: str = Field(pattern=r"^\d{4}-\d{2}-\d{2}$")
    time: str = Field(pattern=r"^\d{2}:\d{2}$")
    requirements: Requirements
    location: LngLat = Field(alias="delivery")

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


class Segment(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    delivery_id: Optional[int] = Field(default=None, alias="deliveryId")
    flight_path: List[LngLat] = Field(default_factory=list, alias="flightPath")


class DroneAssignment(BaseModel):
    model_config = ConfigDict(populate_by_name=True, coerce_numbers_to_str=True)

    drone_id: str = Field(alias="droneId")
    segments: List[Segment] = Field(
        default_factory=list,
        validation_alias=AliasChoices("deliveries", "segments"),
        serialization_alias="deliveries",
    )

    def delivery_ids(self) -> List[int]:
        seen: List[int] = []
        for seg in self.segments:
            if seg.delivery_id is not None and seg.delivery_id not in seen:
                seen.append(seg.delivery_id)
        return seen


class PlanResult(BaseModel):
    """Backend routing answer. Accepts both `cost`/`dronePaths` (backend)
    and `totalCost`/`assignments` spellings."""

    model_config = ConfigDict(populate_by_name=True)

    total_cost: float = Field(
        validation_alias=AliasChoices("totalCost", "cost", "total_cost"),
        serialization_alias="totalCost",
    )
    total_moves: int = Field(
        validation_alias=AliasChoices("totalMoves", "total_moves"),
        serialization_alias="totalMoves",
    )
    assignments: List[DroneAssignment] = Field(
        default_factory=list,
        validation_alias=AliasChoices("dronePaths", "assignments"),
        serialization_alias="dronePaths",
    )

    @property
    def planned_count(self) -> int:
        return sum(len(a.segments) for a in self.assignments)


class Capability(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    cooling: bool = False
    heating: bool = False
    capacity: float = 0.0
    max_moves: int = Field(default=0, alias="maxMoves")
    cost_per_move: float = Field(default=0.0, alias="costPerMove")
    cost_initial: float = Field(default=0.0, alias="costInitial")
    cost_final: float = Field(default=0.0, alias="costFinal")


class Drone(BaseModel):
    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)

    id: str
    name: str = ""
    capability: Capability = Field(default_factory=Capability)


class DroneCheck(BaseModel):
    model_config = ConfigDict(populate_by_name=True, coerce_numbers_to_str=True)

    drone_id: str = Field(alias="droneId")
    drone_name: str = Field(default="", alias="droneName")
    available: bool
    reasons: List[str] = Field(default_factory=list)


class AvailabilityExplanation(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    drone_checks: List[DroneCheck] = Field(default_factory=list, alias="droneChecks")
    suggestions: List[str] = Field(default_factory=list)


__all__ = [
    "LngLat",
    "Requirements",
    "DeliveryRequest",
    "Segment",
    "DroneAssignment",
    "PlanResult",
    "Capability",
    "Drone",
    "DroneCheck",
    "AvailabilityExplanation",
]
