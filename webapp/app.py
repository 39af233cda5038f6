"""FastAPI surface exposing analysis sessions to the dashboard panels."""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from datetime import datetime, timezone
import json
from typing import Any, Dict

from fastapi import FastAPI, HTTPException
from fastapi.responses import StreamingResponse

from core import SessionSnapshot
from utils.exceptions import ValidationError
from webapp.runtime import get_orchestrator, shutdown_orchestrator


@asynccontextmanager
async def _lifespan(_: FastAPI):
    yield
    await shutdown_orchestrator()


app = FastAPI(title="UCIE Analysis API", lifespan=_lifespan)


def _dump(snapshot: SessionSnapshot) -> Dict[str, Any]:
    return snapshot.model_dump(mode="json")


def _sse(event: str, data: Dict[str, Any]) -> str:
    payload = json.dumps(data, ensure_ascii=False, default=str)
    return f"event: {event}\ndata: {payload}\n\n"


def _session_or_400(subject: str):
    try:
        return get_orchestrator().session(subject)
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=exc.message) from exc


@app.get("/api/health")
def health() -> Dict[str, Any]:
    return {"ok": True, "ts": datetime.now(timezone.utc).isoformat(timespec="seconds")}


@app.post("/api/sessions/{subject}/start")
async def start_session(subject: str, research: bool = False) -> Dict[str, Any]:
    session = _session_or_400(subject)
    started = session.start(include_research=research)
    return {"started": started, "session": _dump(session.snapshot())}


@app.get("/api/sessions/{subject}")
async def get_session(subject: str) -> Dict[str, Any]:
    snapshot = get_orchestrator().status(subject)
    if snapshot is None:
        raise HTTPException(status_code=404, detail="session not found")
    return {"session": _dump(snapshot)}


@app.post("/api/sessions/{subject}/cancel")
async def cancel_session(subject: str) -> Dict[str, Any]:
    orchestrator = get_orchestrator()
    snapshot = orchestrator.status(subject)
    if snapshot is None:
        raise HTTPException(status_code=404, detail="session not found")
    cancelled = orchestrator.cancel(subject)
    return {"cancelled": cancelled, "session": _dump(orchestrator.status(subject))}


@app.post("/api/sessions/{subject}/reset")
async def reset_session(subject: str) -> Dict[str, Any]:
    snapshot = get_orchestrator().reset(subject)
    if snapshot is None:
        raise HTTPException(status_code=404, detail="session not found")
    return {"session": _dump(snapshot)}


@app.get("/api/sessions/{subject}/events")
async def stream_session_events(subject: str) -> StreamingResponse:
    session = get_orchestrator().get_session(subject)
    if session is None:
        raise HTTPException(status_code=404, detail="session not found")

    queue: "asyncio.Queue[SessionSnapshot]" = asyncio.Queue()
    unsubscribe = session.subscribe(queue.put_nowait)

    async def _event_stream():
        try:
            yield "retry: 3000\n\n"
            current = session.snapshot()
            yield _sse("snapshot", _dump(current))
            while current.status.is_active:
                try:
                    current = await asyncio.wait_for(queue.get(), timeout=3.0)
                except asyncio.TimeoutError:
                    current = session.snapshot()
                    yield _sse("heartbeat", {"status": current.status.value, "elapsed_time": current.elapsed_time})
                    continue
                yield _sse("snapshot", _dump(current))
            yield _sse("stream_end", {"status": current.status.value, "error": current.error})
        finally:
            unsubscribe()

    headers = {
        "Cache-Control": "no-cache",
        "Connection": "keep-alive",
        "X-Accel-Buffering": "no",
    }
    return StreamingResponse(_event_stream(), media_type="text/event-stream", headers=headers)
