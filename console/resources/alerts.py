"""Operational alerts. Status changes go through the alert action endpoint."""

from typing import Any, Dict, List, Mapping, Optional

from console.resources.base import ResourceGateway, WireModel
from shared.api_client import unwrap
from shared.errors import UnsupportedOperation

ALERT_PRIORITIES = ("critical", "high", "medium", "low")
ALERT_STATUSES = ("open", "acknowledged", "in_progress", "resolved", "dismissed")

# status requested by the operator -> actionType understood by the backend
STATUS_ACTIONS = {
    "acknowledged": "acknowledge",
    "in_progress": "start_progress",
    "resolved": "resolve",
    "dismissed": "dismiss",
}

ACTION_VERBS = {
    "acknowledged": "acknowledged",
    "in_progress": "taken in progress",
    "resolved": "resolved",
    "dismissed": "dismissed",
}


class AlertTimelineEntry(WireModel):
    at: str
    status: str
    note: Optional[str] = None
    actor: Optional[str] = None


class Alert(WireModel):
    id: str
    type: str = "other"
    title: str = ""
    description: str = ""
    priority: str = "medium"
    status: str = "open"
    created_at: Optional[str] = None
    last_updated_at: Optional[str] = None
    actions_suggested: List[str] = []
    timeline: List[AlertTimelineEntry] = []


class AlertsGateway(ResourceGateway):
    name = "alerts"
    action_params = ("note",)

    def __init__(self, client, status: Optional[str] = None):
        super().__init__(client)
        self.status = status

    async def fetch_snapshot(self) -> List[Dict[str, Any]]:
        payload = await self.client.get("/shared/alerts", params={"status": self.status})
        return self.parse_list(Alert, unwrap(payload, "alerts"))

    async def fetch_detail(self, entity_id: str) -> Dict[str, Any]:
        payload = await self.client.get(f"/shared/alerts/{entity_id}")
        return Alert.model_validate(unwrap(payload, "alert")).to_entity()

    async def mutate(self, entity_id: str, fields: Mapping[str, Any]) -> Dict[str, Any]:
        action = STATUS_ACTIONS.get(fields.get("status"))
        if action is None or set(fields) - {"status", "note"}:
            raise UnsupportedOperation(f"Alerts only support status changes, not {dict(fields)!r}")
        body = {"actionType": action}
        if fields.get("note"):
            body["metadata"] = {"note": fields["note"]}
        payload = await self.client.post(f"/shared/alerts/{entity_id}/action", json=body)
        return Alert.model_validate(unwrap(payload, "alert")).to_entity()

    def describe(self, fields: Mapping[str, Any]) -> str:
        return ACTION_VERBS.get(fields.get("status"), "updated")
