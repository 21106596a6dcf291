"""
In-memory backend state.

Records are kept in wire shape (camelCase) so routers can return them as-is.
reset_state() restores the seed data; tests call it between cases.
"""

import itertools
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


class MockState:
    def __init__(self):
        self.vehicles: Dict[str, Dict[str, Any]] = {}
        self.approvals: Dict[str, Dict[str, Any]] = {}
        self.alerts: Dict[str, Dict[str, Any]] = {}
        self.chats: Dict[str, Dict[str, Any]] = {}
        self.messages: Dict[str, List[Dict[str, Any]]] = {}
        self.devices: Dict[str, Dict[str, Any]] = {}
        self.invoices: Dict[str, Dict[str, Any]] = {}
        self._ids = itertools.count(1000)
        self.seed()

    def next_id(self, prefix: str) -> str:
        return f"{prefix}-{next(self._ids)}"

    def seed(self) -> None:
        now = utc_now()
        for vid, vtype, rider, status, score, fuel in [
            ("VH-001", "E-Scooter", "Ravi Kumar", "active", 92, "EV"),
            ("VH-002", "Motorbike", "Anil Singh", "active", 78, "Petrol"),
            ("VH-003", "E-Scooter", None, "maintenance", 54, "EV"),
            ("VH-004", "Bicycle", "Meena Das", "inactive", 88, "Other"),
        ]:
            key = vid.lower()
            self.vehicles[key] = {
                "id": key,
                "vehicleId": vid,
                "type": vtype,
                "assignedRiderName": rider,
                "status": status,
                "conditionScore": score,
                "fuelType": fuel,
            }

        for aid, atype, title, requester in [
            ("apr-1", "order_exception", "Refund above limit for ORD-7781", "Store Manager A"),
            ("apr-2", "vehicle_request", "Replacement scooter for zone 4", "Fleet Lead B"),
            ("apr-3", "document_approval", "Rider KYC re-verification", "Ops Executive C"),
            ("apr-4", "other", "Extra shift allowance", "Hub Manager D"),
        ]:
            self.approvals[aid] = {
                "id": aid,
                "type": atype,
                "title": title,
                "description": f"{title} pending review",
                "requestedBy": requester,
                "requestedById": f"user-{aid}",
                "status": "pending",
                "createdAt": now,
                "updatedAt": now,
                "metadata": {},
            }

        for alid, atype, title, priority in [
            ("alert-1", "rider_delay", "Rider delayed on ORD-1201", "high"),
            ("alert-2", "sla_breach", "SLA breach risk at Hub 3", "critical"),
            ("alert-3", "device_offline", "Scanner offline at Pack Station 2", "medium"),
        ]:
            self.alerts[alid] = {
                "id": alid,
                "type": atype,
                "title": title,
                "description": title,
                "priority": priority,
                "status": "open",
                "createdAt": now,
                "lastUpdatedAt": now,
                "actionsSuggested": ["acknowledge", "resolve"],
                "timeline": [{"at": now, "status": "open", "note": "Alert raised", "actor": "system"}],
            }

        for cid, name, ptype, unread in [
            ("chat-1", "Ravi Kumar", "rider", 2),
            ("chat-2", "Priya Nair", "customer", 0),
        ]:
            self.chats[cid] = {
                "id": cid,
                "participantId": f"p-{cid}",
                "participantName": name,
                "participantType": ptype,
                "isOnline": True,
                "lastMessage": "On my way",
                "lastMessageTime": now,
                "unreadCount": unread,
            }
            self.messages[cid] = [
                {
                    "id": f"{cid}-m1",
                    "chatId": cid,
                    "senderId": f"p-{cid}",
                    "senderName": name,
                    "content": "On my way",
                    "direction": "incoming",
                    "read": unread == 0,
                    "createdAt": now,
                }
            ]

        for did, name, dtype, status, battery in [
            ("dev-1", "Pack Station 2 Scanner", "scanner", "offline", 12),
            ("dev-2", "Hub 3 Printer", "printer", "online", None),
            ("dev-3", "Dock Tablet", "tablet", "degraded", 41),
        ]:
            self.devices[did] = {
                "id": did,
                "name": name,
                "type": dtype,
                "location": "Hub 3",
                "status": status,
                "batteryLevel": battery,
                "lastSeen": now,
                "metrics": {},
            }
        for iid, vendor, number, amount, status in [
            ("inv-1", "Voltline Batteries", "VB-2201", 48000, "pending_approval"),
            ("inv-2", "Urban Tyres", "UT-0912", 12500, "pending_approval"),
            ("inv-3", "Urban Tyres", "UT-0913", 9800, "paid"),
            ("inv-4", "Hub Cleaners", "HC-330", 4200, "overdue"),
        ]:
            self.invoices[iid] = {
                "id": iid,
                "vendorId": f"vendor-{vendor.split()[0].lower()}",
                "vendorName": vendor,
                "invoiceNumber": number,
                "invoiceDate": now,
                "dueDate": now,
                "amount": amount,
                "currency": "INR",
                "status": status,
                "uploadedBy": "finance-ops",
                "uploadedAt": now,
                "items": [{"description": "Services", "quantity": 1, "unitPrice": amount, "total": amount}],
            }
        logger.debug("Mock state seeded")

    def chat_detail(self, chat_id: str) -> Optional[Dict[str, Any]]:
        chat = self.chats.get(chat_id)
        if chat is None:
            return None
        return {**chat, "messages": list(self.messages.get(chat_id, []))}


_state = MockState()


def get_state() -> MockState:
    return _state


def reset_state() -> MockState:
    global _state
    _state = MockState()
    return _state
