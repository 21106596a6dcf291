from typing import Any, Dict, Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from mockapi.state import get_state, utc_now

router = APIRouter(prefix="/shared/alerts", tags=["alerts"])

ACTION_STATUS = {
    "acknowledge": "acknowledged",
    "start_progress": "in_progress",
    "resolve": "resolved",
    "dismiss": "dismissed",
}
CLOSED = {"resolved", "dismissed"}


class AlertAction(BaseModel):
    actionType: str
    metadata: Optional[Dict[str, Any]] = None


@router.get("")
def list_alerts(status: Optional[str] = None, priority: Optional[str] = None):
    alerts = [
        a for a in get_state().alerts.values()
        if (status is None or a["status"] == status) and (priority is None or a["priority"] == priority)
    ]
    return {"success": True, "alerts": alerts}


@router.get("/{alert_id}")
def get_alert(alert_id: str):
    alert = get_state().alerts.get(alert_id)
    if not alert:
        raise HTTPException(status_code=404, detail="Alert not found")
    return {"success": True, "alert": alert}


@router.post("/{alert_id}/action")
def alert_action(alert_id: str, action: AlertAction):
    alert = get_state().alerts.get(alert_id)
    if not alert:
        raise HTTPException(status_code=404, detail="Alert not found")
    status = ACTION_STATUS.get(action.actionType)
    if status is None:
        raise HTTPException(status_code=400, detail=f"Unknown action '{action.actionType}'")
    if alert["status"] in CLOSED:
        raise HTTPException(status_code=400, detail=f"Alert already {alert['status']}")
    now = utc_now()
    note = (action.metadata or {}).get("note")
    alert.update(status=status, lastUpdatedAt=now)
    alert["timeline"].append({"at": now, "status": status, "note": note, "actor": "ops-console"})
    return {"success": True, "alert": alert, "message": f"Alert {status}"}
