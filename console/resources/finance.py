"""
Finance: vendor payables.

Invoices move pending_approval -> approved -> paid, or get rejected with a
reason. The bulk approve endpoint reports a count and the invoices it
approved rather than a per-item result list, so the BatchResult is rebuilt
from the returned invoices: a requested id that comes back approved
succeeded, every other requested id failed.
"""

import logging
from typing import Any, Dict, List, Mapping, Optional

from pydantic import field_validator

from console.batch import BatchFailure, BatchResult
from console.resources.base import ResourceGateway, WireModel
from shared.api_client import unwrap
from shared.errors import UnsupportedOperation

logger = logging.getLogger(__name__)

INVOICE_STATUSES = ("pending_approval", "approved", "scheduled", "paid", "overdue", "rejected")

NOT_APPROVED = "Invoice was not approved"


class InvoiceLine(WireModel):
    description: str = ""
    quantity: float = 0
    unit_price: float = 0
    total: float = 0


class VendorInvoice(WireModel):
    id: str
    vendor_id: str = ""
    vendor_name: str = ""
    invoice_number: str = ""
    invoice_date: Optional[str] = None
    due_date: Optional[str] = None
    amount: float = 0
    currency: str = "INR"
    status: str = "pending_approval"
    payment_id: Optional[str] = None
    uploaded_by: str = ""
    uploaded_at: Optional[str] = None
    notes: Optional[str] = None
    rejection_reason: Optional[str] = None
    items: Optional[List[InvoiceLine]] = None

    @field_validator("id", "vendor_id", mode="before")
    @classmethod
    def _as_str(cls, value):
        return "" if value is None else str(value)


class PayablesSummary(WireModel):
    outstanding_payables_amount: float = 0
    outstanding_horizon_text: str = "Due next 30 days"
    pending_approval_count: int = 0
    overdue_amount: float = 0
    overdue_vendors_count: int = 0


def bulk_result(requested: List[str], payload: Mapping[str, Any]) -> BatchResult:
    """Map a bulk-approve response ``{approvedCount, totalRequested, data}`` onto the requested ids."""
    approved = set()
    for raw in payload.get("data") or []:
        if not isinstance(raw, dict) or raw.get("id") is None:
            continue
        invoice = VendorInvoice.model_validate(raw)
        if invoice.status == "approved":
            approved.add(invoice.id)

    result = BatchResult()
    for invoice_id in requested:
        if invoice_id in approved:
            result.succeeded.append(invoice_id)
        else:
            result.failed.append(BatchFailure(id=invoice_id, reason=NOT_APPROVED))

    reported = payload.get("approvedCount")
    if reported is not None and int(reported) != len(result.succeeded):
        logger.warning(
            f"Bulk approve reported {reported} approved but returned {len(result.succeeded)} "
            f"of the {len(requested)} requested invoices"
        )
    return result


class VendorInvoicesGateway(ResourceGateway):
    name = "invoices"
    # Sent with a reject; the invoice itself records it as rejectionReason.
    action_params = ("reason",)

    def __init__(self, client, status: Optional[str] = None, vendor_id: Optional[str] = None, page_size: int = 100):
        super().__init__(client)
        self.status = status
        self.vendor_id = vendor_id
        self.page_size = page_size

    async def fetch_snapshot(self) -> List[Dict[str, Any]]:
        params = {"status": self.status, "vendorId": self.vendor_id, "page": 1, "pageSize": self.page_size}
        payload = await self.client.get("/finance/vendor-payments/invoices", params=params)
        page = unwrap(payload)
        # {"data": {"data": [...], "total": n, ...}}: the list is one level further in
        return self.parse_list(VendorInvoice, unwrap(page, "invoices"))

    async def fetch_detail(self, entity_id: str) -> Dict[str, Any]:
        payload = await self.client.get(f"/finance/vendor-payments/invoices/{entity_id}")
        return VendorInvoice.model_validate(unwrap(payload, "invoice")).to_entity()

    async def mutate(self, entity_id: str, fields: Mapping[str, Any]) -> Dict[str, Any]:
        status = fields.get("status")
        base = f"/finance/vendor-payments/invoices/{entity_id}"
        if status == "approved":
            payload = await self.client.post(f"{base}/approve")
        elif status == "rejected":
            reason = fields.get("reason") or fields.get("rejection_reason")
            if not reason:
                raise UnsupportedOperation("A rejection reason is required")
            payload = await self.client.post(f"{base}/reject", json={"reason": reason})
        elif status == "paid":
            payload = await self.client.post(f"{base}/mark-paid")
        else:
            raise UnsupportedOperation(f"Invoices can be approved, rejected or marked paid, not {dict(fields)!r}")
        return VendorInvoice.model_validate(unwrap(payload, "invoice")).to_entity()

    async def mutate_many(self, entity_ids: List[str], fields: Mapping[str, Any]) -> Optional[BatchResult]:
        if fields.get("status") != "approved":
            return None
        payload = await self.client.post("/finance/vendor-payments/invoices/bulk-approve", json={"ids": list(entity_ids)})
        return bulk_result(list(entity_ids), unwrap(payload))

    async def summary(self) -> Dict[str, Any]:
        payload = await self.client.get("/finance/vendor-payments/summary")
        return PayablesSummary.model_validate(unwrap(payload)).to_entity()

    def describe(self, fields: Mapping[str, Any]) -> str:
        return {"approved": "approved", "rejected": "rejected", "paid": "marked paid"}.get(
            fields.get("status"), "updated"
        )
