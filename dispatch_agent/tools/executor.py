"""Execute one model-requested tool against the backend.

Each tool maps to a single gateway call; the raw answer is reshaped into a
summary the model can reason about. Transport errors propagate to the caller
(the orchestration loop turns them into error-tagged tool results).
"""

from __future__ import annotations

import json
import math
from typing import Any, Dict, List, Sequence

from pydantic import ValidationError

from dispatch_agent.models import DeliveryRequest, PlanResult
from dispatch_agent.tools.backend import BackendGateway
from dispatch_agent.tools.schemas import ExplainWhyUnavailableInput, ToolInputError, parse_tool_input


MOVES_PER_MINUTE = 60


def time_window(requests: Sequence[DeliveryRequest]) -> str:
    times = sorted(r.time for r in requests)
    if not times:
        return ""
    return times[0] if len(times) == 1 else f"{times[0]} to {times[-1]}"


def flight_time_minutes(total_moves: int) -> int:
    return math.ceil(total_moves / MOVES_PER_MINUTE)


def summarize_plan(plan: PlanResult, requests: Sequence[DeliveryRequest]) -> Dict[str, Any]:
    """Success- or failure-shaped plan result.

    A plan that routed fewer deliveries than requested carries no cost or
    time fields, so the model cannot quote a price for dropped deliveries.
    """
    requested = len(requests)
    planned = plan.planned_count
    if planned < requested:
        planned_ids = sorted({i for a in plan.assignments for i in a.delivery_ids()})
        return {
            "success": False,
            "reason": (
                f"Only {planned} of {requested} deliveries could be planned. "
                "Do not quote a cost; offer to plan the deliveries that succeeded "
                "or call explain_why_unavailable for the others."
            ),
            "requestedCount": requested,
            "plannedCount": planned,
            "plannedDeliveryIds": planned_ids,
            "unplannedDeliveryIds": [r.id for r in requests if r.id not in planned_ids],
        }

    minutes = flight_time_minutes(plan.total_moves)
    window = time_window(requests)
    return {
        "success": True,
        "totalCost": plan.total_cost,
        "totalMoves": plan.total_moves,
        "flightTimeMinutes": minutes,
        "timeWindow": window,
        "dronesUsed": [a.drone_id for a in plan.assignments],
        "assignments": [
            {"droneId": a.drone_id, "deliveryIds": a.delivery_ids()} for a in plan.assignments
        ],
        "dronePaths": [a.model_dump(by_alias=True) for a in plan.assignments],
        "summary": f"Cost: £{plan.total_cost:.2f}, Flight time: ~{minutes} min, Window: {window}",
    }


def _cannot_explain(reason: str) -> Dict[str, Any]:
    return {"canExplain": False, "reason": reason}


class ToolExecutor:
    def __init__(self, gateway: BackendGateway) -> None:
        self.gateway = gateway

    async def execute(self, name: str, raw_input: Any) -> Any:
        if name == "explain_why_unavailable":
            return await self._explain_why_unavailable(raw_input)

        args = parse_tool_input(name, raw_input)
        if name == "query_available_drones":
            return await self._query_available_drones(args.deliveries)
        if name == "plan_delivery_path":
            plan = await self.gateway.calc_delivery_path(args.deliveries)
            return summarize_plan(plan, args.deliveries)
        if name == "get_drone_details":
            drone = await self.gateway.drone_details(args.drone_id)
            return drone.model_dump(by_alias=True) if drone is not None else None
        if name == "find_drones_with_cooling":
            return await self.gateway.drones_with_cooling(args.has_cooling)
        raise ToolInputError(f"Unknown tool: {name}")

    async def _query_available_drones(self, deliveries: List[DeliveryRequest]) -> Dict[str, Any]:
        drone_ids = await self.gateway.query_available_drones(deliveries)
        result: Dict[str, Any] = {"availableDrones": drone_ids, "count": len(drone_ids)}
        if drone_ids:
            result["nextStep"] = {
                "tool": "plan_delivery_path",
                "instruction": (
                    "Call plan_delivery_path now with exactly the same deliveries array "
                    "to get the cost and flight path before answering the user."
                ),
            }
        else:
            result["nextStep"] = {
                "tool": "explain_why_unavailable",
                "instruction": "No drone meets all requirements; explain why for each delivery.",
            }
        return result

    async def _explain_why_unavailable(self, raw_input: Any) -> Dict[str, Any]:
        payload = raw_input if isinstance(raw_input, dict) else {"delivery": raw_input}
        delivery = payload.get("delivery")
        # The model sometimes sends the delivery object as a JSON string
        if isinstance(delivery, str):
            try:
                delivery = json.loads(delivery)
            except ValueError:
                return _cannot_explain("delivery is not valid JSON")
        try:
            args = ExplainWhyUnavailableInput.model_validate({"delivery": delivery})
        except ValidationError as exc:
            return _cannot_explain(f"delivery does not match the expected shape: {exc.error_count()} error(s)")

        explanation = await self.gateway.explain_availability(args.delivery)
        available = [c for c in explanation.drone_checks if c.available]
        unavailable = [c for c in explanation.drone_checks if not c.available]
        return {
            "canExplain": True,
            "availableCount": len(available),
            "unavailableCount": len(unavailable),
            "available": [f"Drone {c.drone_id} ({c.drone_name})" for c in available],
            "unavailableReasons": [
                {"drone": f"Drone {c.drone_id}", "reasons": [r for r in c.reasons if "❌" in r] or c.reasons}
                for c in unavailable
            ],
            "suggestions": explanation.suggestions,
        }


__all__ = ["ToolExecutor", "summarize_plan", "time_window", "flight_time_minutes", "MOVES_PER_MINUTE"]
