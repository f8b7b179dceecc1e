"""Agent state for the tool-calling loop and the confirmation flow.

`TurnState` is the langgraph state of a single user turn (transcript, trace,
round counter). `ConversationState` is the single-owner state carried between
turns by whoever hosts the conversation; the pending-delivery functions take
one and return a new one.
"""

from __future__ import annotations

import itertools
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from dispatch_agent.models import DeliveryRequest, DroneAssignment, LngLat, Segment


DeliveryStatus = Literal["pending", "assigned", "in-flight", "delivered"]

_delivery_ids = itertools.count(1)


class ToolCallRecord(BaseModel):
    """One tool invocation as seen by the presentation layer."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = ""
    name: str
    input: Dict[str, Any] = Field(default_factory=dict)
    status: Literal["completed", "error"]
    result: Any = None

    @property
    def succeeded(self) -> bool:
        return self.status == "completed"


class TurnState(BaseModel):
    """Holds the evolving state of one orchestrated turn."""

    messages: List[Dict[str, Any]] = Field(default_factory=list)
    tool_calls: List[ToolCallRecord] = Field(default_factory=list)
    # Raw blocks of the latest model reply still waiting for tool results
    assistant_content: List[Dict[str, Any]] = Field(default_factory=list)
    pending_tool_uses: List[Dict[str, Any]] = Field(default_factory=list)
    iterations: int = 0
    final_text: Optional[str] = None
    converged: bool = False


class PendingDelivery(BaseModel):
    weight: Optional[float] = None
    cooling: Optional[bool] = None
    heating: Optional[bool] = None
    date: Optional[str] = None
    time: Optional[str] = None
    location: Optional[str] = None
    coordinates: Optional[LngLat] = None

    def merged(self, other: "PendingDelivery") -> "PendingDelivery":
        """Fields present in `other` win; gaps keep the current values."""
        updates = {k: v for k, v in other.model_dump(exclude_none=True).items()}
        if other.coordinates is not None:
            updates["coordinates"] = other.coordinates
        return self.model_copy(update=updates)


class PlannedPath(BaseModel):
    """Drone paths of the last successful plan plus the requests behind them."""

    assignments: List[DroneAssignment] = Field(default_factory=list)
    requests: List[DeliveryRequest] = Field(default_factory=list)
    total_cost: Optional[float] = None

    def request_by_id(self, delivery_id: int) -> Optional[DeliveryRequest]:
        for req in self.requests:
            if req.id == delivery_id:
                return req
        return None


class ConversationState(BaseModel):
    pending: Optional[PendingDelivery] = None
    planned: Optional[PlannedPath] = None
    awaiting_confirmation: bool = False


class Delivery(BaseModel):
    """A confirmed delivery record handed to the presentation layer."""

    model_config = ConfigDict(populate_by_name=True)

    id: int = Field(default_factory=lambda: next(_delivery_ids))
    weight: float = 0.0
    location: str
    date: Optional[str] = None
    time: Optional[str] = None
    cooling: bool = False
    heating: bool = False
    status: DeliveryStatus = "assigned"
    assigned_drone: Optional[str] = Field(default=None, alias="assignedDrone")
    cost: Optional[float] = None
    coordinates: Optional[LngLat] = None
    path: List[Segment] = Field(default_factory=list)
    progress: float = 0.0


__all__ = [
    "DeliveryStatus",
    "ToolCallRecord",
    "TurnState",
    "PendingDelivery",
    "PlannedPath",
    "ConversationState",
    "Delivery",
]
