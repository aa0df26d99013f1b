from __future__ import annotations
import asyncio
import json
import logging
from contextlib import asynccontextmanager
from dataclasses import asdict
from typing import List, Literal, Optional, Set

from fastapi import FastAPI, HTTPException, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, ValidationError

from repgate.common.config import get_settings, setup_logging
from repgate.common.events import EventType
from repgate.counter.exercises import EXERCISES, UnknownExerciseError
from repgate.counter.keypoints import from_movenet
from repgate.counter.session import RepSessionManager, Source

logger = logging.getLogger(__name__)


class KeypointIn(BaseModel):
    name: str
    x: float
    y: float
    z: Optional[float] = None
    score: Optional[float] = Field(None, ge=0.0, le=1.0)


class PoseMessage(BaseModel):
    type: Literal["pose"]
    ts: Optional[float] = Field(None, description="Frame time in seconds; server clock if omitted")
    keypoints: List[KeypointIn] = Field(default_factory=list)


class EmptyMessage(BaseModel):
    type: Literal["empty"]
    ts: Optional[float] = None


def create_app(manager: Optional[RepSessionManager] = None) -> FastAPI:
    mgr = manager or RepSessionManager()
    clients: Set[WebSocket] = set()
    loop_ref: dict = {}

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        loop_ref["loop"] = asyncio.get_running_loop()
        yield
        await asyncio.to_thread(mgr.stop, mgr.active_id)
        mgr.loader.close()

    app = FastAPI(title="repgate", lifespan=lifespan)
    app.state.manager = mgr

    async def broadcast(obj: dict):
        dead = []
        for ws in list(clients):
            try:
                await ws.send_text(json.dumps(obj))
            except Exception:
                dead.append(ws)
        for d in dead:
            clients.discard(d)

    # let the manager emit events to all WS clients, from the loop, a worker thread or the camera thread
    def _sink(ev: dict):
        try:
            asyncio.get_running_loop().create_task(broadcast(ev))
        except RuntimeError:
            loop = loop_ref.get("loop")
            if loop is not None and loop.is_running():
                asyncio.run_coroutine_threadsafe(broadcast(ev), loop)

    mgr.set_event_sink(_sink)

    @app.get("/health")
    async def health():
        return {"ok": True}

    @app.get("/exercises")
    async def exercises():
        return [p.describe() for p in EXERCISES.values()]

    @app.get("/sessions/current")
    async def current():
        st = mgr.status()
        return JSONResponse(asdict(st))

    @app.post("/counter/start")
    def start(exercise: str, source: Source = "web"):
        try:
            sid, status = mgr.start(exercise=exercise, source=source)
        except UnknownExerciseError as e:
            raise HTTPException(status_code=400, detail=str(e.args[0]))
        return {"session_id": sid, "status": status}

    @app.post("/counter/stop")
    def stop():
        final = mgr.stop(mgr.active_id)
        return {"stopped": True, "session_id": final.session_id, "total_reps": final.total_reps}

    @app.post("/counter/pause")
    def pause():
        return {"paused": True, "session_id": mgr.pause()}

    @app.post("/counter/resume")
    def resume():
        return {"resumed": True, "session_id": mgr.resume()}

    @app.post("/counter/reset")
    def reset():
        return {"reset": True, "session_id": mgr.reset(), "count": mgr.count}

    @app.websocket("/ws/pose")
    async def ws_pose(ws: WebSocket):
        await ws.accept()
        clients.add(ws)
        await broadcast({"type": EventType.TRACE.value, "msg": "ws: client connected"})
        try:
            while True:
                raw = await ws.receive_text()
                try:
                    data = json.loads(raw)
                    kind = data.get("type") if isinstance(data, dict) else None
                    if kind == "pose":
                        msg = PoseMessage.model_validate(data)
                        snap = from_movenet((kp.model_dump() for kp in msg.keypoints), ts=msg.ts)
                        mgr.push_frame(snap)
                    elif kind == "empty":
                        mgr.push_empty(EmptyMessage.model_validate(data).ts)
                    else:
                        await ws.send_text(json.dumps({"type": EventType.TRACE.value, "msg": f"ignored message type {kind!r}"}))
                except (json.JSONDecodeError, ValidationError) as e:
                    logger.debug("bad ws message: %s", e)
                    await ws.send_text(json.dumps({"type": EventType.TRACE.value, "msg": "invalid message dropped"}))
        except WebSocketDisconnect:
            pass
        finally:
            clients.discard(ws)

    return app


settings = get_settings()
setup_logging(settings.log_level)
app = create_app()
