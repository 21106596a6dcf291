"""
Mock API Service Entrypoint

FastAPI application serving the dashboard endpoints the console talks to,
backed by in-memory seed data.
"""
import logging

from fastapi import FastAPI

from mockapi.api import alerts, approvals, communication, finance, fleet, system_health
from mockapi.state import get_state

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"

app = FastAPI(title="Rider Ops Mock Dashboard API")

app.include_router(fleet.router, prefix=API_PREFIX)
app.include_router(approvals.router, prefix=API_PREFIX)
app.include_router(alerts.router, prefix=API_PREFIX)
app.include_router(communication.router, prefix=API_PREFIX)
app.include_router(system_health.router, prefix=API_PREFIX)
app.include_router(finance.router, prefix=API_PREFIX)


@app.on_event("startup")
def startup_init():
    state = get_state()
    logger.info(
        f"Mock API ready: {len(state.vehicles)} vehicles, {len(state.approvals)} approvals, "
        f"{len(state.alerts)} alerts, {len(state.chats)} chats, {len(state.devices)} devices, "
        f"{len(state.invoices)} invoices"
    )


@app.get("/")
def root():
    return {
        "service": "mockapi",
        "message": "Rider Ops mock dashboard API running",
        "prefix": API_PREFIX,
    }
