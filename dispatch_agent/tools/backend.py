"""Typed client for the drone logistics backend.

Transport and status-code translation only: every method maps to one
endpoint under `/api/v1`, returns parsed models, and raises `BackendError`
for non-2xx answers (except a 404 from `droneDetails`, which means "no such
drone").
"""

from __future__ import annotations

import logging
from typing import Any, List, Optional, Sequence

import httpx

from dispatch_agent.models import AvailabilityExplanation, DeliveryRequest, Drone, PlanResult


logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"


class BackendError(RuntimeError):
    def __init__(self, status_code: int, body: str = "") -> None:
        super().__init__(f"Backend error: {status_code} - {body[:200]}")
        self.status_code = status_code
        self.body = body


class BackendGateway:
    def __init__(
        self,
        base_url: str = "http://localhost:8080",
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url + API_PREFIX,
            timeout=httpx.Timeout(self.timeout),
            transport=self._transport,
        )

    async def _request(self, method: str, path: str, json: Any = None) -> httpx.Response:
        logger.debug("backend %s %s", method, path)
        async with self._client() as client:
            r = await client.request(method, path, json=json)
        logger.debug("backend %s %s -> %s", method, path, r.status_code)
        return r

    @staticmethod
    def _ok_json(r: httpx.Response) -> Any:
        if r.is_success:
            return r.json()
        raise BackendError(r.status_code, r.text)

    async def query_available_drones(self, requests: Sequence[DeliveryRequest]) -> List[str]:
        r = await self._request("POST", "/queryAvailableDrones", [d.to_wire() for d in requests])
        return [str(x) for x in self._ok_json(r)]

    async def calc_delivery_path(self, requests: Sequence[DeliveryRequest]) -> PlanResult:
        r = await self._request("POST", "/calcDeliveryPath", [d.to_wire() for d in requests])
        return PlanResult.model_validate(self._ok_json(r))

    async def drone_details(self, drone_id: str) -> Optional[Drone]:
        r = await self._request("GET", f"/droneDetails/{drone_id}")
        if r.status_code == 404:
            return None
        return Drone.model_validate(self._ok_json(r))

    async def drones_with_cooling(self, has_cooling: bool) -> List[str]:
        r = await self._request("GET", f"/dronesWithCooling/{'true' if has_cooling else 'false'}")
        return [str(x) for x in self._ok_json(r)]

    async def explain_availability(self, request: DeliveryRequest) -> AvailabilityExplanation:
        r = await self._request("POST", "/explainAvailability", request.to_wire())
        return AvailabilityExplanation.model_validate(self._ok_json(r))


__all__ = ["API_PREFIX", "BackendError", "BackendGateway"]
