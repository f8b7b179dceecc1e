"""Pending-delivery state machine.

Decides when a user's "confirm" turns the last successful plan into
`Delivery` records. Functions take a `ConversationState` and return a new
one; nothing here performs I/O, so the caller owns persistence.

    empty -> pending -> (plan succeeded) awaiting confirmation -> confirmed -> empty
"""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional

from pydantic import BaseModel, Field, ValidationError

from dispatch_agent.agent.extract import is_confirmation, nearest_location, parse_cost, parse_delivery_request
from dispatch_agent.agent.state import (
    ConversationState,
    Delivery,
    PendingDelivery,
    PlannedPath,
    ToolCallRecord,
)
from dispatch_agent.models import DeliveryRequest, DroneAssignment


logger = logging.getLogger(__name__)

COST_WARNING = "⚠️ I couldn't extract the delivery cost. Please try scheduling again."
NO_PATH_WARNING = "⚠️ I couldn't find the planned flight path. Please try scheduling again."
COST_MISMATCH_TOLERANCE = 0.01


class ConfirmationOutcome(BaseModel):
    state: ConversationState
    deliveries: List[Delivery] = Field(default_factory=list)
    message: str

    @property
    def scheduled(self) -> bool:
        return bool(self.deliveries)


def observe_user_text(state: ConversationState, text: str) -> ConversationState:
    """Fold delivery fields mentioned in a user message into the pending draft."""
    parsed = parse_delivery_request(text)
    if parsed is None:
        return state
    if state.pending is None:
        return state.model_copy(update={"pending": parsed})
    if state.awaiting_confirmation and (parsed.weight is not None or parsed.coordinates is not None):
        # A new request while a plan awaits confirmation starts over
        return ConversationState(pending=parsed)
    return state.model_copy(update={"pending": state.pending.merged(parsed)})


def _pending_from_requests(requests: List[DeliveryRequest]) -> PendingDelivery:
    first = requests[0]
    if len(requests) > 1:
        location = f"Multi-stop delivery ({len(requests)} stops)"
    else:
        location = nearest_location(first.location.lng, first.location.lat) or "Delivery location"
    return PendingDelivery(
        weight=sum(r.requirements.capacity for r in requests),
        cooling=any(r.requirements.cooling for r in requests),
        heating=any(r.requirements.heating for r in requests),
        date=first.date,
        time=first.time,
        location=location,
        coordinates=first.location,
    )


def _planned_from_call(call: ToolCallRecord) -> Optional[PlannedPath]:
    result = call.result if isinstance(call.result, dict) else {}
    if not result.get("success"):
        return None
    try:
        requests = [DeliveryRequest.model_validate(d) for d in call.input.get("deliveries") or []]
        assignments = [DroneAssignment.model_validate(p) for p in result.get("dronePaths") or []]
    except ValidationError as exc:
        logger.warning("Ignoring plan_delivery_path call with unreadable data: %s", exc)
        return None
    if not requests or not assignments:
        return None
    return PlannedPath(assignments=assignments, requests=requests, total_cost=result.get("totalCost"))


def observe_tool_calls(state: ConversationState, tool_calls: Iterable[ToolCallRecord]) -> ConversationState:
    """Update state from one assistant turn's tool trace.

    The structured input of the last successful planner call replaces any
    pending draft built from free text.
    """
    planned = None
    for call in tool_calls:
        if call.name == "plan_delivery_path" and call.succeeded:
            planned = _planned_from_call(call) or planned
    if planned is None:
        return state.model_copy(update={"awaiting_confirmation": False})
    return ConversationState(
        pending=_pending_from_requests(planned.requests),
        planned=planned,
        awaiting_confirmation=True,
    )


def can_confirm(state: ConversationState, text: str) -> bool:
    return is_confirmation(text) and state.pending is not None and state.awaiting_confirmation


def _display_name(lng: float, lat: float) -> str:
    return nearest_location(lng, lat) or f"{lat:.4f}, {lng:.4f}"


def _delivery_for(assignment: DroneAssignment, planned: PlannedPath, pending: PendingDelivery, cost: float) -> Delivery:
    names: List[str] = []
    weight = 0.0
    carried: List[DeliveryRequest] = []
    for delivery_id in assignment.delivery_ids():
        request = planned.request_by_id(delivery_id)
        if request is None:
            logger.warning("Drone %s segment for unknown delivery %s", assignment.drone_id, delivery_id)
            continue
        carried.append(request)
        names.append(_display_name(request.location.lng, request.location.lat))
        weight += request.requirements.capacity

    if not carried:
        return Delivery(
            weight=weight,
            location="Delivery location",
            date=pending.date,
            time=pending.time,
            cooling=bool(pending.cooling),
            heating=bool(pending.heating),
            status="assigned",
            assigned_drone=assignment.drone_id,
            cost=cost,
            coordinates=pending.coordinates,
            path=assignment.segments,
        )

    # Each record describes the requests its own drone carries
    first_request = carried[0]
    return Delivery(
        weight=weight,
        location=" → ".join(names),
        date=first_request.date,
        time=first_request.time,
        cooling=any(r.requirements.cooling for r in carried),
        heating=any(r.requirements.heating for r in carried),
        status="assigned",
        assigned_drone=assignment.drone_id,
        cost=cost,
        coordinates=first_request.location,
        path=assignment.segments,
    )


def confirm(state: ConversationState, last_assistant_text: str) -> ConfirmationOutcome:
    """Materialize deliveries for the plan awaiting confirmation.

    Without a recoverable non-zero cost in the assistant's last message the
    state is returned unchanged so the user can confirm again.
    """
    if state.pending is None or not state.awaiting_confirmation:
        return ConfirmationOutcome(state=state, message="There is no planned delivery waiting for confirmation.")

    cost_info = parse_cost(last_assistant_text)
    if cost_info is None or cost_info.cost == 0:
        logger.warning("Confirmation blocked: no cost in last assistant message")
        return ConfirmationOutcome(state=state, message=COST_WARNING)

    planned = state.planned
    if planned is None or not planned.assignments:
        logger.warning("Confirmation blocked: no stored drone paths")
        return ConfirmationOutcome(state=state, message=NO_PATH_WARNING)

    if planned.total_cost is not None and abs(planned.total_cost - cost_info.cost) > COST_MISMATCH_TOLERANCE:
        logger.warning(
            "Narrated cost %.2f differs from planned cost %.2f", cost_info.cost, planned.total_cost
        )
    planned_drones = [a.drone_id for a in planned.assignments]
    if cost_info.drones and sorted(cost_info.drones) != sorted(planned_drones):
        logger.warning("Narrated drones %s differ from planned drones %s", cost_info.drones, planned_drones)

    share = cost_info.cost / len(planned.assignments)
    deliveries = [_delivery_for(a, planned, state.pending, share) for a in planned.assignments]
    count = len(deliveries)
    noun = "delivery" if count == 1 else "deliveries"
    return ConfirmationOutcome(
        state=ConversationState(),
        deliveries=deliveries,
        message=(
            f"✅ {count} {noun} scheduled successfully! Your deliveries have been added to the "
            "dashboard. You can track them on the live map once they're in flight."
        ),
    )


__all__ = [
    "ConfirmationOutcome",
    "COST_WARNING",
    "NO_PATH_WARNING",
    "observe_user_text",
    "observe_tool_calls",
    "can_confirm",
    "confirm",
]
