"""FastAPI application entrypoint. No business logic; only wiring, lifespan and middleware."""

from dotenv import load_dotenv

load_dotenv()

import asyncio
import contextlib
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from trustgate.api.deps import get_event_bus, get_governance_engine, get_radar_engine
from trustgate.api.v1 import router as v1_router
from trustgate.core.config import settings


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    """Subscribe radar and governance to the event bus and run delivery in the background."""
    bus = get_event_bus()
    get_radar_engine().register()
    get_governance_engine().register()
    worker = asyncio.create_task(bus.run(poll_interval=settings.EVENT_BUS_POLL_INTERVAL_SEC))
    try:
        yield
    finally:
        worker.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await worker


app = FastAPI(
    title="TrustGate API",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if settings.APP_ENV == "dev" else [],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(v1_router, prefix=settings.API_V1_PREFIX)


@app.get("/")
def root() -> dict[str, str]:
    """Root route; minimal payload for discovery."""
    return {"message": "TrustGate API"}
