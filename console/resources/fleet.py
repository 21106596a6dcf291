"""Fleet management: rider vehicles."""

from typing import Any, Dict, List, Mapping, Optional

from pydantic import field_validator

from console.resources.base import ResourceGateway, WireModel, to_wire
from shared.api_client import unwrap

VEHICLE_STATUSES = ("active", "maintenance", "offline")
FUEL_TYPES = ("EV", "Gas", "Other")


class Vehicle(WireModel):
    id: str
    vehicle_id: str = ""
    type: str = ""
    assigned_rider_name: Optional[str] = None
    status: str = "active"
    condition_score: float = 0
    fuel_type: str = "Other"

    @field_validator("id", "vehicle_id", mode="before")
    @classmethod
    def _as_str(cls, value):
        return "" if value is None else str(value)

    @field_validator("status", mode="before")
    @classmethod
    def _normalize_status(cls, value):
        return "offline" if value == "inactive" else value

    @field_validator("fuel_type", mode="before")
    @classmethod
    def _normalize_fuel(cls, value):
        if value in ("Petrol", "Diesel"):
            return "Gas"
        return value or "Other"


class FleetSummary(WireModel):
    total_fleet: int = 0
    in_maintenance: int = 0
    ev_usage_percent: float = 0
    scheduled_services_next_week: int = 0


class FleetGateway(ResourceGateway):
    name = "vehicles"

    def __init__(self, client, filters: Optional[Dict[str, str]] = None):
        super().__init__(client)
        self.filters = dict(filters or {})

    async def fetch_snapshot(self) -> List[Dict[str, Any]]:
        payload = await self.client.get("/rider/fleet/vehicles", params=self.filters)
        return self.parse_list(Vehicle, unwrap(payload, "vehicles"))

    async def fetch_detail(self, entity_id: str) -> Dict[str, Any]:
        payload = await self.client.get(f"/rider/fleet/vehicles/{entity_id}")
        return Vehicle.model_validate(unwrap(payload, "vehicle")).to_entity()

    async def mutate(self, entity_id: str, fields: Mapping[str, Any]) -> Dict[str, Any]:
        payload = await self.client.put(f"/rider/fleet/vehicles/{entity_id}", json=to_wire(fields))
        return Vehicle.model_validate(unwrap(payload, "vehicle")).to_entity()

    async def create(self, fields: Mapping[str, Any]) -> Dict[str, Any]:
        body = {
            "vehicleId": fields.get("vehicle_id"),
            "type": fields.get("type"),
            "fuelType": fields.get("fuel_type") or "EV",
            "status": fields.get("status") or "active",
            "conditionScore": fields.get("condition_score", 100),
            "assignedRiderName": fields.get("assigned_rider_name"),
        }
        payload = await self.client.post("/rider/fleet/vehicles", json=body)
        return Vehicle.model_validate(unwrap(payload, "vehicle")).to_entity()

    async def summary(self) -> Dict[str, Any]:
        payload = await self.client.get("/rider/fleet/summary")
        return FleetSummary.model_validate(unwrap(payload)).to_entity()

    def describe(self, fields: Mapping[str, Any]) -> str:
        status = fields.get("status")
        if status == "maintenance":
            return "sent to maintenance"
        if status == "active":
            return "activated"
        if status == "offline":
            return "taken offline"
        return "updated"
