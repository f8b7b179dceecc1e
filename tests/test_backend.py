import asyncio
import json

import httpx
import pytest

from conftest import delivery, plan_payload
from dispatch_agent.models import DeliveryRequest
from dispatch_agent.tools.backend import BackendError, BackendGateway


def _gateway(handler):
    return BackendGateway("http://backend.test", transport=httpx.MockTransport(handler))


def test_query_available_drones_sends_wire_shape():
    seen = {}

    def handler(request):
        seen["path"] = request.url.path
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json=["1", 5])

    req = DeliveryRequest.model_validate(delivery())
    ids = asyncio.run(_gateway(handler).query_available_drones([req]))
    assert ids == ["1", "5"]
    assert seen["path"] == "/api/v1/queryAvailableDrones"
    body = seen["body"][0]
    assert body["delivery"] == {"lng": -3.2351, "lat": 55.9623}
    assert body["requirements"] == {"capacity": 2.0, "cooling": True}
    assert "location" not in body


def test_calc_delivery_path_parses_backend_names():
    def handler(request):
        return httpx.Response(200, json=plan_payload([("5", [1]), ("9", [2, 3])], cost=40.0, moves=200))

    plan = asyncio.run(_gateway(handler).calc_delivery_path([DeliveryRequest.model_validate(delivery())]))
    assert plan.total_cost == 40.0
    assert plan.total_moves == 200
    assert [a.drone_id for a in plan.assignments] == ["5", "9"]
    assert plan.planned_count == 3


def test_drone_details_404_is_none():
    def handler(request):
        assert request.url.path == "/api/v1/droneDetails/99"
        return httpx.Response(404)

    assert asyncio.run(_gateway(handler).drone_details("99")) is None


def test_drone_details_parses_capability():
    def handler(request):
        return httpx.Response(
            200,
            json={"id": 4, "name": "Drone 4", "capability": {"cooling": True, "capacity": 8, "maxMoves": 1000}},
        )

    drone = asyncio.run(_gateway(handler).drone_details("4"))
    assert drone.id == "4"
    assert drone.capability.cooling is True
    assert drone.capability.max_moves == 1000


def test_drones_with_cooling_path():
    def handler(request):
        assert request.url.path == "/api/v1/dronesWithCooling/true"
        return httpx.Response(200, json=["1", "5"])

    assert asyncio.run(_gateway(handler).drones_with_cooling(True)) == ["1", "5"]


def test_non_2xx_raises_backend_error():
    def handler(request):
        return httpx.Response(400, text="bad dispatch")

    with pytest.raises(BackendError) as info:
        asyncio.run(_gateway(handler).calc_delivery_path([DeliveryRequest.model_validate(delivery())]))
    assert info.value.status_code == 400
    assert "bad dispatch" in info.value.body


def test_explain_availability_posts_single_dispatch():
    def handler(request):
        body = json.loads(request.content)
        assert body["id"] == 1
        return httpx.Response(
            200,
            json={
                "droneChecks": [{"droneId": "2", "droneName": "Drone 2", "available": False, "reasons": ["❌ No cooling"]}],
                "suggestions": ["💡 Try another time"],
            },
        )

    exp = asyncio.run(_gateway(handler).explain_availability(DeliveryRequest.model_validate(delivery())))
    assert exp.drone_checks[0].drone_id == "2"
    assert exp.suggestions == ["💡 Try another time"]
