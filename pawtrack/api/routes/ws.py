"""WebSocket channel shared by detection clients and dashboards."""

from __future__ import annotations

import logging
import uuid

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from pydantic import ValidationError

from pawtrack.api.schemas.models import ActivityEventSchema
from pawtrack.api.services.broadcaster import IngestActivity, RequestSnapshot, SourceDisconnected
from pawtrack.api.services.state import get_broadcaster

router = APIRouter()

logger = logging.getLogger(__name__)

ACTIVITY_EVENT = "pet-activity"
REQUEST_EVENT = "request-pet-activities"


@router.websocket("/ws")
async def activity_socket(ws: WebSocket):
    await ws.accept()
    broadcaster = get_broadcaster()
    source_id = uuid.uuid4().hex
    broadcaster.register(source_id, ws)
    logger.info("Client connected: %s", source_id)

    try:
        while True:
            msg = await ws.receive_json()
            if not isinstance(msg, dict):
                continue
            event = msg.get("event")
            if event == ACTIVITY_EVENT:
                try:
                    payload = ActivityEventSchema.model_validate(msg.get("data") or {})
                except ValidationError as exc:
                    logger.warning("Dropping malformed %s from %s: %s", event, source_id, exc.errors())
                    continue
                await broadcaster.submit(IngestActivity(source_id, payload.to_event(source_id)))
            elif event == REQUEST_EVENT:
                await broadcaster.submit(RequestSnapshot(source_id))
    except WebSocketDisconnect:
        pass
    except ValueError:
        # receive_json on a non-JSON text frame
        logger.warning("Closing %s after a non-JSON message", source_id)
        await ws.close(code=1003)
    finally:
        await broadcaster.submit(SourceDisconnected(source_id))
