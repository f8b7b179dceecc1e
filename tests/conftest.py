import copy
import os
from typing import Any, Dict, List, Optional

import pytest

from dispatch_agent.agent.llm import ModelResponse
from dispatch_agent.models import AvailabilityExplanation, Drone, PlanResult

# Keep progress lines out of test output
os.environ["AGENT_PROGRESS"] = "0"


WESTERN_GENERAL = {
    "id": 1,
    "date": "2025-12-15",
    "time": "14:00",
    "requirements": {"capacity": 2, "cooling": True},
    "delivery": {"lng": -3.2351, "lat": 55.9623},
}


def delivery(**overrides) -> Dict[str, Any]:
    d = copy.deepcopy(WESTERN_GENERAL)
    d.update(overrides)
    return d


def plan_payload(assignments: List[tuple], cost: float = 12.5, moves: int = 130) -> Dict[str, Any]:
    """Backend-shaped plan: assignments are (drone_id, [delivery ids])."""
    return {
        "cost": cost,
        "totalMoves": moves,
        "dronePaths": [
            {
                "droneId": drone_id,
                "deliveries": [
                    {"deliveryId": i, "flightPath": [{"lng": -3.19, "lat": 55.94}, {"lng": -3.2351, "lat": 55.9623}]}
                    for i in ids
                ],
            }
            for drone_id, ids in assignments
        ],
    }


class FakeGateway:
    def __init__(
        self,
        available: Optional[List[str]] = None,
        plan: Optional[Dict[str, Any]] = None,
        drones: Optional[Dict[str, Dict[str, Any]]] = None,
        explanation: Optional[Dict[str, Any]] = None,
        fail: Optional[Exception] = None,
    ) -> None:
        self.available = ["5"] if available is None else available
        self.plan = plan or plan_payload([("5", [1])])
        self.drones = drones or {}
        self.explanation = explanation or {"droneChecks": [], "suggestions": []}
        self.fail = fail
        self.calls: List[tuple] = []

    def _maybe_fail(self):
        if self.fail is not None:
            raise self.fail

    async def query_available_drones(self, requests):
        self.calls.append(("query_available_drones", [r.id for r in requests]))
        self._maybe_fail()
        return list(self.available)

    async def calc_delivery_path(self, requests):
        self.calls.append(("calc_delivery_path", [r.id for r in requests]))
        self._maybe_fail()
        return PlanResult.model_validate(self.plan)

    async def drone_details(self, drone_id):
        self.calls.append(("drone_details", drone_id))
        self._maybe_fail()
        data = self.drones.get(drone_id)
        return Drone.model_validate(data) if data else None

    async def drones_with_cooling(self, has_cooling):
        self.calls.append(("drones_with_cooling", has_cooling))
        self._maybe_fail()
        return ["1", "5"] if has_cooling else ["2"]

    async def explain_availability(self, request):
        self.calls.append(("explain_availability", request.id))
        self._maybe_fail()
        return AvailabilityExplanation.model_validate(self.explanation)


def text_reply(text: str) -> ModelResponse:
    return ModelResponse(content=[{"type": "text", "text": text}], stop_reason="end_turn")


def tool_reply(*uses: tuple, text: str = "") -> ModelResponse:
    """uses: (id, name, input) triples."""
    content = [{"type": "text", "text": text}] if text else []
    content += [{"type": "tool_use", "id": i, "name": n, "input": inp} for i, n, inp in uses]
    return ModelResponse(content=content, stop_reason="tool_use")


class ScriptedModel:
    """Stands in for RetryingModelClient; replays canned responses."""

    def __init__(self, responses: List[ModelResponse], repeat_last: bool = False) -> None:
        self.responses = list(responses)
        self.repeat_last = repeat_last
        self.requests: List[Dict[str, Any]] = []

    async def call(self, params):
        self.requests.append(copy.deepcopy(params))
        if len(self.responses) == 1 and self.repeat_last:
            return self.responses[0]
        return self.responses.pop(0)


@pytest.fixture
def gateway():
    return FakeGateway()
