from __future__ import annotations

import asyncio
import logging
import time
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import uvicorn
from fastapi import FastAPI, HTTPException, Query, WebSocket, WebSocketDisconnect
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import StreamingResponse

from motion import MotionService
from motion.config import MotionSettings
from motion.sources import SourceError

from .config_loader import CONFIG_PATH, load_settings, persist_settings, resolve_database_path
from .db import Database
from .schemas import HistoryResponse, SettingsSchema

HISTORY_WINDOW_SECONDS = 60 * 10

logger = logging.getLogger(__name__)


def time_window(start: Optional[float], end: Optional[float]) -> Tuple[float, float]:
    end_ts = time.time() if end is None else end
    start_ts = end_ts - HISTORY_WINDOW_SECONDS if start is None else start
    return start_ts, end_ts


def create_app(
    config_path: Path = CONFIG_PATH,
    database: Optional[Database] = None,
    service: Optional[MotionService] = None,
) -> FastAPI:
    state: Dict[str, MotionSettings] = {"settings": load_settings(config_path)}

    if database is None:
        database = Database(str(resolve_database_path(state["settings"])))
    if service is None:
        service = MotionService(state["settings"], db=database)

    app = FastAPI(title="motion-monitor", version="0.1.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.service = service
    app.state.database = database

    @app.on_event("startup")
    async def startup() -> None:
        service.loop = asyncio.get_running_loop()
        await run_in_threadpool(service.start)

    @app.on_event("shutdown")
    async def shutdown() -> None:
        await run_in_threadpool(service.stop)

    @app.get("/api/health")
    async def health() -> Dict[str, Any]:
        latest = service.latest_verdict()
        return {
            "status": "ok",
            "monitor_running": service.running,
            "last_verdict": latest.to_dict() if latest else None,
        }

    @app.get("/api/settings", response_model=SettingsSchema)
    async def get_settings() -> SettingsSchema:
        return SettingsSchema(**state["settings"].to_dict())

    # Plain def: a camera restart blocks, so FastAPI runs this in its threadpool.
    @app.post("/api/settings", response_model=SettingsSchema)
    def update_settings(payload: SettingsSchema) -> SettingsSchema:
        data = payload.model_dump()
        settings = MotionSettings.from_dict(data)
        try:
            service.update_settings(settings)
        except SourceError as exc:
            logger.error("Settings rejected: %s", exc)
            raise HTTPException(status_code=503, detail=f"Camera unavailable: {exc}") from exc
        state["settings"] = settings
        persist_settings(config_path, data)
        return payload

    @app.websocket("/api/stream")
    async def websocket_stream(ws: WebSocket) -> None:
        await ws.accept()
        queue = service.subscribe()
        try:
            while True:
                payload = await queue.get()
                await ws.send_text(payload)
        except WebSocketDisconnect:
            logger.debug("Verdict stream client disconnected")
        finally:
            service.unsubscribe(queue)

    @app.get("/api/history", response_model=HistoryResponse)
    async def history(
        start: Optional[float] = Query(None),
        end: Optional[float] = Query(None),
    ) -> HistoryResponse:
        start_ts, end_ts = time_window(start, end)
        verdicts = database.history(start_ts, end_ts)
        events = database.events(start_ts, end_ts)
        return HistoryResponse(verdicts=verdicts, events=events)

    @app.get("/api/export")
    async def export(
        start: Optional[float] = Query(None),
        end: Optional[float] = Query(None),
    ) -> StreamingResponse:
        start_ts, end_ts = time_window(start, end)
        filename = f"motion_{int(start_ts)}_{int(end_ts)}.csv"
        generator = database.export_csv(start_ts, end_ts)
        return StreamingResponse(generator, media_type="text/csv", headers={"Content-Disposition": f'attachment; filename="{filename}"'})

    @app.get("/api/video")
    async def video_feed() -> StreamingResponse:
        boundary = "frame"
        period = state["settings"].acquisition.period

        async def frame_generator():
            while True:
                frame = service.latest_frame()
                if frame:
                    yield b"--" + boundary.encode() + b"\r\n"
                    yield b"Content-Type: image/jpeg\r\n\r\n" + frame + b"\r\n"
                await asyncio.sleep(period)

        media_type = f"multipart/x-mixed-replace; boundary={boundary}"
        return StreamingResponse(frame_generator(), media_type=media_type)

    return app


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    uvicorn.run("backend.main:create_app", factory=True, host="0.0.0.0", port=8000)
