"""In-memory delivery store read by the presentation layer."""

from __future__ import annotations

import time
from typing import Dict, List, Optional

from dispatch_agent.agent.state import Delivery, DeliveryStatus


class DeliveryStore:
    def __init__(self) -> None:
        self._deliveries: Dict[int, Delivery] = {}
        self._flight_started: Dict[int, float] = {}

    def add(self, delivery: Delivery) -> Delivery:
        self._deliveries[delivery.id] = delivery
        return delivery

    def get(self, delivery_id: int) -> Optional[Delivery]:
        return self._deliveries.get(delivery_id)

    def list(self) -> List[Delivery]:
        return list(self._deliveries.values())

    def update_status(self, delivery_id: int, status: DeliveryStatus) -> Optional[Delivery]:
        current = self._deliveries.get(delivery_id)
        if current is None:
            return None
        if status == "in-flight" and current.status != "in-flight":
            self._flight_started[delivery_id] = time.time()
        updated = current.model_copy(update={"status": status})
        self._deliveries[delivery_id] = updated
        return updated

    def update_progress(self, delivery_id: int, progress: float) -> Optional[Delivery]:
        current = self._deliveries.get(delivery_id)
        if current is None:
            return None
        updated = current.model_copy(update={"progress": max(0.0, min(1.0, progress))})
        self._deliveries[delivery_id] = updated
        return updated

    def flight_started_at(self, delivery_id: int) -> Optional[float]:
        return self._flight_started.get(delivery_id)


__all__ = ["DeliveryStore"]
