"""
FastAPI application entry point for the Phototheology GuestHouse runtime.

Responsibilities:
- configure process logging
- construct shared singletons (GuestHouseStore, BroadcastHub, StateChangePublisher,
  LogStore, LiveSessionCoordinator, AutoGrader)
- include guesthouse routes under /guesthouse and scripture routes under /scripture
- expose /healthz
"""

import logging

from fastapi import FastAPI

from configs.settings import settings
from core.grading.auto_grader import AutoGrader, build_backend
from runtime.agents.session_coordinator import LiveSessionCoordinator
from runtime.realtime.broadcast import BroadcastHub
from runtime.realtime.notifier import BroadcastSink, RowChangeSink, StateChangePublisher
from runtime.store.guesthouse_store import GuestHouseStore
from runtime.store.log_store import LogStore
from . import scripture_routes, session_routes


logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

# ---------------------------------------------------------------------------
# Shared singletons
# ---------------------------------------------------------------------------

# Event storage: in-memory with a JSON snapshot per event under runtime/data.
store = GuestHouseStore(data_dir=str(settings.data_dir))

# One hub carries both the session broadcast channels and the row-change channels.
hub = BroadcastHub()
publisher = StateChangePublisher(
    broadcast_sink=BroadcastSink(hub, prefix=settings.channel_prefix),
    row_change_sink=RowChangeSink(hub),
)

# JSONL activity log under runtime/data/logs.
log_store = LogStore(log_dir=str(settings.log_dir))

coordinator = LiveSessionCoordinator(
    store=store,
    publisher=publisher,
    log_store=log_store,
    default_max_guests=settings.default_max_guests,
)

# Grader backend chosen by PT_GRADER_BACKEND ("answer_key" or "openai").
auto_grader = AutoGrader(coordinator, build_backend())

# ---------------------------------------------------------------------------
# FastAPI app + route registration
# ---------------------------------------------------------------------------

app = FastAPI(title="Phototheology GuestHouse Runtime")

# Initialize the router module with our shared objects, then include it.
session_routes.init_routes(
    coordinator=coordinator,
    auto_grader=auto_grader,
    hub=hub,
    channel_prefix=settings.channel_prefix,
)
app.include_router(session_routes.router, prefix="/guesthouse")
app.include_router(scripture_routes.router, prefix="/scripture")


# --------------------------------------------------------
# Endpoint: GET /healthz
# --------------------------------------------------------
@app.get("/healthz")
def health_check():
    """
    Simple health check endpoint for uptime monitoring.
    """
    return {"status": "ok"}
