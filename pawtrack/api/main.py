"""FastAPI application entrypoint."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from pawtrack.api.routes import activities, camera, config, health, override, ws, zones


@asynccontextmanager
async def lifespan(_: FastAPI) -> AsyncIterator[None]:
    """Application lifespan handler.

    Runs the broadcast consumer for the app's lifetime and stops the camera
    session on shutdown.
    """

    from pawtrack.api.services.state import get_broadcaster, stop_camera

    broadcaster = get_broadcaster()
    await broadcaster.start()
    yield
    stop_camera()
    await broadcaster.stop()


app = FastAPI(title="PawTrack API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router)
app.include_router(config.router)
app.include_router(zones.router)
app.include_router(override.router)
app.include_router(camera.router)
app.include_router(activities.router)
app.include_router(ws.router)


if __name__ == "__main__":
    uvicorn.run("pawtrack.api.main:app", host="0.0.0.0", port=8000, reload=True)
