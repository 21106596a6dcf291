"""
Resource gateways, one per dashboard screen.

- fleet: rider vehicles (update, create, summary)
- approvals: task approvals queue (approve, reject, bulk approve)
- alerts: operational alerts (status actions)
- communication: chats (mark read, send message)
- system_health: monitored devices (read-only)
- finance: vendor invoices (approve, reject, mark paid, bulk approve)
"""

from console.resources.alerts import AlertsGateway
from console.resources.approvals import ApprovalsGateway
from console.resources.base import ResourceGateway
from console.resources.communication import ChatsGateway
from console.resources.finance import VendorInvoicesGateway
from console.resources.fleet import FleetGateway
from console.resources.system_health import DevicesGateway


def build_default_gateways(client):
    return [
        FleetGateway(client),
        ApprovalsGateway(client),
        AlertsGateway(client),
        ChatsGateway(client),
        DevicesGateway(client),
        VendorInvoicesGateway(client),
    ]


__all__ = [
    "AlertsGateway",
    "ApprovalsGateway",
    "ChatsGateway",
    "DevicesGateway",
    "FleetGateway",
    "ResourceGateway",
    "VendorInvoicesGateway",
    "build_default_gateways",
]
