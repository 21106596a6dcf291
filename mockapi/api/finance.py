from typing import List, Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from mockapi.state import get_state, utc_now

router = APIRouter(prefix="/finance/vendor-payments", tags=["finance"])

APPROVABLE = ("pending_approval", "overdue")


class RejectInvoiceRequest(BaseModel):
    reason: str


class BulkApproveRequest(BaseModel):
    ids: List[str]


def _invoice(invoice_id: str):
    invoice = get_state().invoices.get(invoice_id)
    if not invoice:
        raise HTTPException(status_code=404, detail="Invoice not found")
    return invoice


def _approvable(invoice_id: str):
    invoice = _invoice(invoice_id)
    if invoice["status"] not in APPROVABLE:
        raise HTTPException(status_code=400, detail=f"Invoice already {invoice['status']}")
    return invoice


@router.get("/invoices")
def list_invoices(
    status: Optional[str] = None,
    vendorId: Optional[str] = None,
    page: int = 1,
    pageSize: int = 20,
):
    invoices = [
        i for i in get_state().invoices.values()
        if (status is None or i["status"] == status) and (vendorId is None or i["vendorId"] == vendorId)
    ]
    start = (max(page, 1) - 1) * pageSize
    return {
        "success": True,
        "data": {"data": invoices[start:start + pageSize], "total": len(invoices), "page": page, "pageSize": pageSize},
    }


@router.get("/invoices/{invoice_id}")
def get_invoice(invoice_id: str):
    return {"success": True, "data": _invoice(invoice_id)}


@router.post("/invoices/bulk-approve")
def bulk_approve(body: BulkApproveRequest):
    approved = []
    for invoice_id in body.ids:
        invoice = get_state().invoices.get(invoice_id)
        if invoice is None or invoice["status"] not in APPROVABLE:
            continue
        invoice["status"] = "approved"
        approved.append(invoice)
    return {
        "success": True,
        "data": {"approvedCount": len(approved), "totalRequested": len(body.ids), "data": approved},
    }


@router.post("/invoices/{invoice_id}/approve")
def approve_invoice(invoice_id: str):
    invoice = _approvable(invoice_id)
    invoice["status"] = "approved"
    return {"success": True, "data": invoice}


@router.post("/invoices/{invoice_id}/reject")
def reject_invoice(invoice_id: str, body: RejectInvoiceRequest):
    if not body.reason.strip():
        raise HTTPException(status_code=400, detail="Rejection reason is required")
    invoice = _approvable(invoice_id)
    invoice.update(status="rejected", rejectionReason=body.reason)
    return {"success": True, "data": invoice}


@router.post("/invoices/{invoice_id}/mark-paid")
def mark_paid(invoice_id: str):
    invoice = _invoice(invoice_id)
    if invoice["status"] != "approved":
        raise HTTPException(status_code=400, detail=f"Only approved invoices can be paid, invoice is {invoice['status']}")
    invoice.update(status="paid", paymentId=get_state().next_id("pay"), paidAt=utc_now())
    return {"success": True, "data": invoice}


@router.get("/summary")
def payables_summary():
    invoices = list(get_state().invoices.values())
    outstanding = [i for i in invoices if i["status"] not in ("paid", "rejected")]
    overdue = [i for i in invoices if i["status"] == "overdue"]
    return {
        "success": True,
        "data": {
            "outstandingPayablesAmount": sum(i["amount"] for i in outstanding),
            "outstandingHorizonText": "Due next 30 days",
            "pendingApprovalCount": sum(1 for i in invoices if i["status"] == "pending_approval"),
            "overdueAmount": sum(i["amount"] for i in overdue),
            "overdueVendorsCount": len({i["vendorId"] for i in overdue}),
        },
    }
