from typing import Optional

from fastapi import APIRouter, HTTPException

from mockapi.state import get_state

router = APIRouter(prefix="/shared/system-health", tags=["system-health"])


@router.get("/devices")
def list_devices(status: Optional[str] = None):
    devices = [d for d in get_state().devices.values() if status is None or d["status"] == status]
    return {"success": True, "data": devices}


@router.get("/devices/{device_id}")
def get_device(device_id: str):
    device = get_state().devices.get(device_id)
    if not device:
        raise HTTPException(status_code=404, detail="Device not found")
    return {"success": True, "data": device}


@router.get("/summary")
def health_summary():
    devices = list(get_state().devices.values())
    counts = {status: sum(1 for d in devices if d["status"] == status) for status in ("online", "degraded", "offline")}
    if counts["offline"]:
        overall = "critical"
    elif counts["degraded"]:
        overall = "degraded"
    else:
        overall = "healthy"
    return {"success": True, "data": {"totalDevices": len(devices), **counts, "overallStatus": overall}}
