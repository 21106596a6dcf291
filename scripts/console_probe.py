"""
Console Probe

Opens a dashboard session against the configured API, refreshes one
resource, optionally runs a mutation or a batch through the reconciliation
layer, and prints the reconciled list as JSON.

Usage:
    python scripts/console_probe.py approvals --status pending
    python scripts/console_probe.py vehicles --id vh-003 --set status=active
    python scripts/console_probe.py approvals --batch apr-1 apr-2 --set status=approved
    python scripts/console_probe.py invoices --batch inv-1 inv-2 --set status=approved

Exit code 1 when the initial refresh fails.
"""
import argparse
import asyncio
import json
import sys
from dataclasses import replace
from pathlib import Path
from typing import Any, Dict, List, Optional

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from console.resources import (
    AlertsGateway,
    ApprovalsGateway,
    ChatsGateway,
    DevicesGateway,
    FleetGateway,
    VendorInvoicesGateway,
)
from console.session import DashboardSession
from shared.api_client import ApiClient
from shared.config import ConsoleConfig, validate_config
from shared.errors import ConsoleError
from shared.logging_config import setup_logging

RESOURCES = ("vehicles", "approvals", "alerts", "chats", "devices", "invoices")


def parse_assignments(pairs: List[str]) -> Dict[str, Any]:
    """field=value pairs; values are read as JSON when they parse, else as strings."""
    fields: Dict[str, Any] = {}
    for pair in pairs:
        name, sep, raw = pair.partition("=")
        if not sep or not name:
            raise ValueError(f"Expected field=value, got '{pair}'")
        try:
            fields[name] = json.loads(raw)
        except ValueError:
            fields[name] = raw
    return fields


def build_gateway(resource: str, client: ApiClient, status: Optional[str] = None):
    if resource == "vehicles":
        return FleetGateway(client, filters={"status": status} if status else None)
    if resource == "approvals":
        return ApprovalsGateway(client, status=status)
    if resource == "alerts":
        return AlertsGateway(client, status=status)
    if resource == "chats":
        return ChatsGateway(client)
    if resource == "devices":
        return DevicesGateway(client, status=status)
    if resource == "invoices":
        return VendorInvoicesGateway(client, status=status)
    raise ValueError(f"Unknown resource '{resource}'")


async def run_probe(args, config: ConsoleConfig) -> Dict[str, Any]:
    client = ApiClient(config.api_base_url, timeout=config.api_timeout)
    report: Dict[str, Any] = {"resource": args.resource, "api": config.api_base_url}

    async with DashboardSession(client=client, config=config) as session:
        session.register(build_gateway(args.resource, client, args.status), refresh_interval=0)
        view = session.open_view(args.resource, visible=False)
        if not await view.refresh():
            report["error"] = session.notifications.recent(1)[-1].message
            return report

        fields = parse_assignments(args.set)
        if args.id:
            result = await view.run_mutation(args.id, fields)
            report["mutation"] = {"id": result.entity_id, "ok": result.ok, "reason": result.reason}
        elif args.batch:
            result = await view.run_batch(args.batch, fields)
            report["batch"] = {
                "succeeded": result.succeeded,
                "failed": [{"id": f.id, "reason": f.reason} for f in result.failed],
                "summary": result.summary(session.store(args.resource).gateway.describe(fields)),
            }
        if args.id or args.batch:
            await view.refresh()

        report["items"] = view.current_list()
        report["notices"] = [f"{n.level.value}: {n.message}" for n in session.notifications.recent()]
    return report


def main() -> None:
    parser = argparse.ArgumentParser(description="Probe one dashboard resource through the console layer")
    parser.add_argument("resource", choices=RESOURCES)
    parser.add_argument("--status", default=None, help="Server-side status filter")
    parser.add_argument("--set", nargs="*", default=[], metavar="FIELD=VALUE", help="Fields to write")
    group = parser.add_mutually_exclusive_group()
    group.add_argument("--id", default=None, help="Entity to mutate")
    group.add_argument("--batch", nargs="+", default=None, metavar="ID", help="Entities to mutate together")
    parser.add_argument("--base-url", default=None, help="Override OPSCONSOLE_API_BASE_URL")
    args = parser.parse_args()

    config = ConsoleConfig.from_env()
    if args.base_url:
        config = replace(config, api_base_url=args.base_url.rstrip("/"))
    validate_config(config)
    setup_logging("probe", level=config.log_level)

    if (args.id or args.batch) and not args.set:
        parser.error("--id/--batch need at least one --set FIELD=VALUE")

    try:
        report = asyncio.run(run_probe(args, config))
    except ConsoleError as e:
        print(f"Probe failed: {e}", file=sys.stderr)
        sys.exit(1)

    print(json.dumps(report, indent=2, default=str))
    if "error" in report:
        sys.exit(1)


if __name__ == "__main__":
    main()
