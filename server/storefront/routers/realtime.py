"""Realtime router streaming catalogue changes over a WebSocket."""

import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from ..services.change_feed import WATCHED_TABLES, change_feed

logger = logging.getLogger(__name__)

router = APIRouter(tags=["realtime"])


@router.websocket("/v1/realtime")
async def realtime_changes(websocket: WebSocket, tables: str | None = None) -> None:
    """
    Push ``{table, event, id, occurred_at}`` messages as tours, tour dates and
    products change.

    ``tables`` is an optional comma-separated subset of the watched tables.
    """
    requested = {t.strip() for t in tables.split(",") if t.strip()} if tables else set()
    if requested - WATCHED_TABLES:
        await websocket.close(code=1008, reason="Unknown table")
        return

    await websocket.accept()

    async with change_feed.subscribe(requested or None) as subscription:
        try:
            async for change in subscription:
                await websocket.send_json(change.to_dict())
        except WebSocketDisconnect:
            logger.info(
                "Realtime client disconnected",
                extra={"subscriber_id": subscription.subscriber_id}
            )
