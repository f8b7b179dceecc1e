"""Tool catalogue offered to the model, and validated inputs per tool.

`TOOLS` is sent verbatim with every model request. `parse_tool_input` turns
the model's free-form JSON into the pydantic model registered for that tool
name, so malformed input is rejected before it reaches the backend.
"""

from __future__ import annotations

import copy
from typing import Any, Dict, List, Type, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from dispatch_agent.models import DeliveryRequest


class ToolInputError(ValueError):
    """Tool input that does not match the tool's schema."""


_DELIVERY_SCHEMA: Dict[str, Any] = {
    "type": "object",
    "properties": {
        "id": {"type": "number", "description": "Unique delivery ID"},
        "date": {"type": "string", "description": "Delivery date in YYYY-MM-DD format"},
        "time": {"type": "string", "description": "Delivery time in HH:MM format (24-hour)"},
        "requirements": {
            "type": "object",
            "properties": {
                "capacity": {"type": "number", "description": "Required capacity in kg"},
                "cooling": {"type": "boolean", "description": "Whether cooling is required"},
                "heating": {"type": "boolean", "description": "Whether heating is required"},
                "maxCost": {"type": "number", "description": "Maximum acceptable cost in GBP"},
            },
            "required": ["capacity"],
        },
        "delivery": {
            "type": "object",
            "properties": {
                "lng": {"type": "number", "description": "Delivery longitude"},
                "lat": {"type": "number", "description": "Delivery latitude"},
            },
            "required": ["lng", "lat"],
        },
    },
    "required": ["id", "date", "time", "requirements", "delivery"],
}


def _deliveries_schema(description: str) -> Dict[str, Any]:
    return {
        "type": "object",
        "properties": {
            "deliveries": {
                "type": "array",
                "description": description,
                "items": copy.deepcopy(_DELIVERY_SCHEMA),
            }
        },
        "required": ["deliveries"],
    }


TOOLS: List[Dict[str, Any]] = [
    {
        "name": "query_available_drones",
        "description": (
            "Finds drones that can handle one or more deliveries based on their requirements "
            "(capacity, cooling, heating, time windows, max cost). Returns list of drone IDs that "
            "meet ALL requirements for ALL deliveries."
        ),
        "input_schema": _deliveries_schema("Array of delivery requests to check availability for"),
    },
    {
        "name": "plan_delivery_path",
        "description": (
            "Calculates the optimal delivery path for one or more deliveries. Returns complete "
            "flight paths, costs, and move counts. Handles multi-delivery optimization. Call it "
            "with exactly the deliveries passed to query_available_drones."
        ),
        "input_schema": _deliveries_schema("Array of delivery requests to plan"),
    },
    {
        "name": "get_drone_details",
        "description": (
            "Gets detailed information about a specific drone by its ID, including capabilities, "
            "costs, and capacity"
        ),
        "input_schema": {
            "type": "object",
            "properties": {
                "droneId": {"type": "string", "description": "The ID of the drone (e.g., '1', '4', '7')"},
            },
            "required": ["droneId"],
        },
    },
    {
        "name": "find_drones_with_cooling",
        "description": (
            "Finds all drones that have (or don't have) cooling capability. Useful when deliveries "
            "require temperature-controlled transport."
        ),
        "input_schema": {
            "type": "object",
            "properties": {
                "hasCooling": {
                    "type": "boolean",
                    "description": "True to find drones WITH cooling, false to find drones WITHOUT cooling",
                },
            },
            "required": ["hasCooling"],
        },
    },
    {
        "name": "explain_why_unavailable",
        "description": (
            "When no drones are available for a delivery, this explains WHY each drone cannot "
            "handle it. Provides detailed breakdown of constraint failures and suggestions for "
            "alternatives."
        ),
        "input_schema": {
            "type": "object",
            "properties": {"delivery": copy.deepcopy(_DELIVERY_SCHEMA)},
            "required": ["delivery"],
        },
    },
]


class DeliveriesInput(BaseModel):
    deliveries: List[DeliveryRequest] = Field(min_length=1)


class QueryAvailableDronesInput(DeliveriesInput):
    pass


class PlanDeliveryPathInput(DeliveriesInput):
    pass


class GetDroneDetailsInput(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    drone_id: str = Field(alias="droneId", min_length=1)

    @field_validator("drone_id", mode="before")
    @classmethod
    def _as_str(cls, v: Any) -> Any:
        return str(v) if isinstance(v, (int, float)) and not isinstance(v, bool) else v


class FindDronesWithCoolingInput(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    has_cooling: bool = Field(alias="hasCooling")


class ExplainWhyUnavailableInput(BaseModel):
    delivery: DeliveryRequest


ToolInput = Union[
    QueryAvailableDronesInput,
    PlanDeliveryPathInput,
    GetDroneDetailsInput,
    FindDronesWithCoolingInput,
    ExplainWhyUnavailableInput,
]

TOOL_INPUTS: Dict[str, Type[BaseModel]] = {
    "query_available_drones": QueryAvailableDronesInput,
    "plan_delivery_path": PlanDeliveryPathInput,
    "get_drone_details": GetDroneDetailsInput,
    "find_drones_with_cooling": FindDronesWithCoolingInput,
    "explain_why_unavailable": ExplainWhyUnavailableInput,
}


def parse_tool_input(name: str, raw: Any) -> ToolInput:
    model = TOOL_INPUTS.get(name)
    if model is None:
        raise ToolInputError(f"Unknown tool: {name}")
    if not isinstance(raw, dict):
        raise ToolInputError(f"{name}: input must be an object, got {type(raw).__name__}")
    try:
        return model.model_validate(raw)
    except ValidationError as exc:
        raise ToolInputError(f"{name}: invalid input: {exc.errors(include_url=False)}") from exc


__all__ = [
    "TOOLS",
    "TOOL_INPUTS",
    "ToolInput",
    "ToolInputError",
    "QueryAvailableDronesInput",
    "PlanDeliveryPathInput",
    "GetDroneDetailsInput",
    "FindDronesWithCoolingInput",
    "ExplainWhyUnavailableInput",
    "parse_tool_input",
]
