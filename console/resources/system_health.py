"""System health: monitored devices. Read-only."""

from typing import Any, Dict, List, Optional

from console.resources.base import ResourceGateway, WireModel
from shared.api_client import unwrap

DEVICE_STATUSES = ("online", "degraded", "offline")


class Device(WireModel):
    id: str
    name: str = ""
    type: str = ""
    location: Optional[str] = None
    status: str = "online"
    battery_level: Optional[float] = None
    last_seen: Optional[str] = None
    metrics: Dict[str, Any] = {}


class HealthSummary(WireModel):
    total_devices: int = 0
    online: int = 0
    degraded: int = 0
    offline: int = 0
    overall_status: str = "healthy"


class DevicesGateway(ResourceGateway):
    name = "devices"

    def __init__(self, client, status: Optional[str] = None):
        super().__init__(client)
        self.status = status

    async def fetch_snapshot(self) -> List[Dict[str, Any]]:
        payload = await self.client.get("/shared/system-health/devices", params={"status": self.status})
        return self.parse_list(Device, unwrap(payload, "devices"))

    async def fetch_detail(self, entity_id: str) -> Dict[str, Any]:
        payload = await self.client.get(f"/shared/system-health/devices/{entity_id}")
        return Device.model_validate(unwrap(payload, "device")).to_entity()

    async def summary(self) -> Dict[str, Any]:
        payload = await self.client.get("/shared/system-health/summary")
        return HealthSummary.model_validate(unwrap(payload)).to_entity()
