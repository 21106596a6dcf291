from datetime import date as date_cls
from typing import List, Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from mockapi.state import get_state, utc_now

router = APIRouter(prefix="/shared/approvals", tags=["approvals"])


class ApproveRequest(BaseModel):
    notes: Optional[str] = None


class RejectRequest(BaseModel):
    reason: str
    notes: Optional[str] = None


class BatchApproveRequest(BaseModel):
    approvalIds: List[str]
    notes: Optional[str] = None


def _pending(approval_id: str):
    approval = get_state().approvals.get(approval_id)
    if not approval:
        raise HTTPException(status_code=404, detail="Approval not found")
    if approval["status"] != "pending":
        raise HTTPException(status_code=400, detail=f"Approval already {approval['status']}")
    return approval


@router.get("/queue")
def approval_queue(status: Optional[str] = None, type: Optional[str] = None, limit: int = 100):
    approvals = [
        a for a in get_state().approvals.values()
        if (status is None or a["status"] == status) and (type is None or a["type"] == type)
    ]
    return {"success": True, "data": approvals[:limit]}


@router.get("/queue/{approval_id}")
def get_approval(approval_id: str):
    approval = get_state().approvals.get(approval_id)
    if not approval:
        raise HTTPException(status_code=404, detail="Approval not found")
    return {"success": True, "data": approval}


@router.post("/queue/{approval_id}/approve")
def approve(approval_id: str, body: ApproveRequest):
    approval = _pending(approval_id)
    now = utc_now()
    approval.update(status="approved", approvedBy="ops-console", approvedAt=now, updatedAt=now)
    if body.notes:
        approval["metadata"] = {**approval.get("metadata", {}), "notes": body.notes}
    return {"success": True, "data": approval}


@router.post("/queue/{approval_id}/reject")
def reject(approval_id: str, body: RejectRequest):
    if not body.reason.strip():
        raise HTTPException(status_code=400, detail="Rejection reason is required")
    approval = _pending(approval_id)
    approval.update(status="rejected", rejectionReason=body.reason, updatedAt=utc_now())
    return {"success": True, "data": approval}


@router.post("/batch-approve")
def batch_approve(body: BatchApproveRequest):
    results = []
    for approval_id in body.approvalIds:
        try:
            approve(approval_id, ApproveRequest(notes=body.notes))
        except HTTPException as e:
            results.append({"approvalId": approval_id, "status": "failed", "error": e.detail})
        else:
            results.append({"approvalId": approval_id, "status": "approved"})
    approved = sum(1 for r in results if r["status"] == "approved")
    return {
        "success": True,
        "data": {"approved": approved, "failed": len(results) - approved, "results": results},
    }


@router.get("/summary")
def approvals_summary(date: Optional[str] = None):
    approvals = list(get_state().approvals.values())
    return {
        "success": True,
        "data": {
            "pendingCount": sum(1 for a in approvals if a["status"] == "pending"),
            "approvedToday": sum(1 for a in approvals if a["status"] == "approved"),
            "rejectedToday": sum(1 for a in approvals if a["status"] == "rejected"),
            "date": date or date_cls.today().isoformat(),
        },
    }
