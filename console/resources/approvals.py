"""
Task approvals queue.

Approve and reject are separate endpoints, and the backend offers a bulk
approve whose per-item results map directly onto a BatchResult.
"""

import logging
from typing import Any, Dict, List, Mapping, Optional

from console.batch import BatchFailure, BatchResult
from console.resources.base import ResourceGateway, WireModel
from shared.api_client import unwrap
from shared.errors import UnsupportedOperation

logger = logging.getLogger(__name__)

APPROVAL_TYPES = ("order_exception", "vehicle_request", "document_approval", "other")
APPROVAL_STATUSES = ("pending", "approved", "rejected")


class ApprovalRequest(WireModel):
    id: str
    type: str = "other"
    title: str = ""
    description: str = ""
    reason: Optional[str] = None
    requested_by: str = ""
    requested_by_id: str = ""
    requester_role: Optional[str] = None
    status: str = "pending"
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    approved_by: Optional[str] = None
    approved_at: Optional[str] = None
    rejection_reason: Optional[str] = None
    metadata: Dict[str, Any] = {}


class ApprovalSummary(WireModel):
    pending_count: int = 0
    approved_today: int = 0
    rejected_today: int = 0
    date: Optional[str] = None


class ApprovalsGateway(ResourceGateway):
    name = "approvals"
    action_params = ("notes",)

    def __init__(self, client, status: Optional[str] = None, limit: int = 100):
        super().__init__(client)
        self.status = status
        self.limit = limit

    async def fetch_snapshot(self) -> List[Dict[str, Any]]:
        params = {"status": self.status, "limit": self.limit}
        payload = await self.client.get("/shared/approvals/queue", params=params)
        return self.parse_list(ApprovalRequest, unwrap(payload, "approvals"))

    async def fetch_detail(self, entity_id: str) -> Dict[str, Any]:
        payload = await self.client.get(f"/shared/approvals/queue/{entity_id}")
        return ApprovalRequest.model_validate(unwrap(payload, "approval")).to_entity()

    async def mutate(self, entity_id: str, fields: Mapping[str, Any]) -> Dict[str, Any]:
        status = fields.get("status")
        notes = fields.get("notes", "")
        if status == "approved":
            payload = await self.client.post(f"/shared/approvals/queue/{entity_id}/approve", json={"notes": notes})
        elif status == "rejected":
            reason = fields.get("rejection_reason")
            if not reason:
                raise UnsupportedOperation("A rejection reason is required")
            payload = await self.client.post(
                f"/shared/approvals/queue/{entity_id}/reject",
                json={"reason": reason, "notes": notes},
            )
        else:
            raise UnsupportedOperation(f"Approvals can only be approved or rejected, not {fields!r}")
        return ApprovalRequest.model_validate(unwrap(payload, "approval")).to_entity()

    async def mutate_many(self, entity_ids: List[str], fields: Mapping[str, Any]) -> Optional[BatchResult]:
        if fields.get("status") != "approved":
            # No bulk reject endpoint; fall back to one call per id.
            return None
        payload = await self.client.post(
            "/shared/approvals/batch-approve",
            json={"approvalIds": list(entity_ids), "notes": fields.get("notes", "")},
        )
        result = BatchResult()
        for item in unwrap(payload).get("results", []):
            if item.get("approvalId") is None:
                logger.warning(f"Bulk approve result without approvalId skipped: {item!r}")
                continue
            approval_id = str(item["approvalId"])
            if item.get("status") == "approved":
                result.succeeded.append(approval_id)
            else:
                result.failed.append(BatchFailure(id=approval_id, reason=item.get("error") or "Approval failed"))
        logger.debug(f"Bulk approve returned {len(result.succeeded)} approved, {len(result.failed)} failed")
        return result

    async def summary(self, date: Optional[str] = None) -> Dict[str, Any]:
        payload = await self.client.get("/shared/approvals/summary", params={"date": date})
        return ApprovalSummary.model_validate(unwrap(payload)).to_entity()

    def describe(self, fields: Mapping[str, Any]) -> str:
        return {"approved": "approved", "rejected": "rejected"}.get(fields.get("status"), "updated")
