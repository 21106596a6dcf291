from typing import Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from mockapi.state import get_state

router = APIRouter(prefix="/rider/fleet", tags=["fleet"])

VALID_STATUSES = {"active", "maintenance", "offline", "inactive"}
VALID_FUEL = {"EV", "Gas", "Petrol", "Diesel", "Other"}


class VehicleCreate(BaseModel):
    vehicleId: str
    type: str
    fuelType: str = "EV"
    status: str = "active"
    conditionScore: float = 100
    assignedRiderName: Optional[str] = None


class VehicleUpdate(BaseModel):
    type: Optional[str] = None
    status: Optional[str] = None
    fuelType: Optional[str] = None
    conditionScore: Optional[float] = None
    assignedRiderName: Optional[str] = None


def _check(status: Optional[str], fuel: Optional[str]):
    if status is not None and status not in VALID_STATUSES:
        raise HTTPException(status_code=400, detail=f"Invalid vehicle status '{status}'")
    if fuel is not None and fuel not in VALID_FUEL:
        raise HTTPException(status_code=400, detail=f"Invalid fuel type '{fuel}'")


@router.get("/vehicles")
def list_vehicles(status: Optional[str] = None, fuelType: Optional[str] = None):
    vehicles = [
        v for v in get_state().vehicles.values()
        if (status is None or v["status"] == status) and (fuelType is None or v["fuelType"] == fuelType)
    ]
    return {"success": True, "data": vehicles}


@router.get("/vehicles/{vehicle_id}")
def get_vehicle(vehicle_id: str):
    vehicle = get_state().vehicles.get(vehicle_id)
    if not vehicle:
        raise HTTPException(status_code=404, detail="Vehicle not found")
    return {"success": True, "data": vehicle}


@router.put("/vehicles/{vehicle_id}")
def update_vehicle(vehicle_id: str, update: VehicleUpdate):
    vehicle = get_state().vehicles.get(vehicle_id)
    if not vehicle:
        raise HTTPException(status_code=404, detail="Vehicle not found")
    changes = update.model_dump(exclude_unset=True)
    _check(changes.get("status"), changes.get("fuelType"))
    vehicle.update(changes)
    return {"success": True, "data": vehicle}


@router.post("/vehicles", status_code=201)
def create_vehicle(body: VehicleCreate):
    state = get_state()
    _check(body.status, body.fuelType)
    if any(v["vehicleId"] == body.vehicleId for v in state.vehicles.values()):
        raise HTTPException(status_code=409, detail=f"Vehicle '{body.vehicleId}' already exists")
    vehicle_id = state.next_id("vh")
    vehicle = {"id": vehicle_id, **body.model_dump()}
    state.vehicles[vehicle_id] = vehicle
    return {"success": True, "data": vehicle}


@router.get("/summary")
def fleet_summary():
    vehicles = list(get_state().vehicles.values())
    total = len(vehicles)
    ev = sum(1 for v in vehicles if v["fuelType"] == "EV")
    return {
        "success": True,
        "data": {
            "totalFleet": total,
            "inMaintenance": sum(1 for v in vehicles if v["status"] == "maintenance"),
            "evUsagePercent": round(100.0 * ev / total, 1) if total else 0,
            "scheduledServicesNextWeek": 0,
        },
    }
