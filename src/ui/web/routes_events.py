"""
SSE event stream endpoint.

Provides ``GET /events`` — a Server-Sent Events stream carrying the
installer's progress events to the browser in real time.

Wire format::

    event: step:log
    id: 47
    data: {"v":1,"ts":1739648400.123,"seq":47,"type":"step:log","key":"SETUP","data":{...}}

The first two events on every connection are ``sys:ready`` and a
``state:snapshot`` of the run state.  Events published while the
browser is disconnected are not replayed; the snapshot on reconnect
is enough to redraw the progress view.
"""

from __future__ import annotations

import json

from flask import Blueprint, Response, current_app

events_bp = Blueprint("events", __name__)


@events_bp.route("/events")
def event_stream():  # type: ignore[no-untyped-def]
    """SSE endpoint — streams progress events to the browser."""
    bus = current_app.extensions["event_bus"]

    def generate():  # type: ignore[no-untyped-def]
        for event in bus.subscribe():
            yield (
                f"event: {event['type']}\n"
                f"id: {event['seq']}\n"
                f"data: {json.dumps(event, default=str)}\n\n"
            )

    return Response(
        generate(),
        mimetype="text/event-stream",
        headers={
            "Cache-Control": "no-cache, no-store, must-revalidate",
            "X-Accel-Buffering": "no",
            "Connection": "keep-alive",
        },
    )
