"""Content Engine: FastAPI application entry point.

Serves one in-memory drafting workspace per process. Every operation answers
with ``{ok, result, notifications}``; recoverable errors arrive as
notifications rather than HTTP error codes. Connect to ``/ws/workspace`` to
receive workspace events as they happen.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any

from fastapi import Depends, FastAPI, UploadFile, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from content_engine.config import settings
from content_engine.models.workspace_config import OutputType, Scenario, VersionType
from content_engine.workspace.controller import Workspace

logger = logging.getLogger(__name__)

workspace = Workspace()


def get_workspace() -> Workspace:
    return workspace


@asynccontextmanager
async def lifespan(app: FastAPI):
    workspace.subscribe(_broadcast)
    yield
    workspace.unsubscribe(_broadcast)


app = FastAPI(
    title="Content Engine",
    description="Structured AI drafting workspace",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# --- Request models ---


class ConfigUpdate(BaseModel):
    title: str | None = None
    notes: str | None = None
    selected_types: list[OutputType] | None = None
    scenario: Scenario | None = None
    model_id: str | None = None
    temperature: float | None = None
    max_tokens: int | None = None
    max_words: int | None = None
    public_search: bool | None = None
    version_type: VersionType | None = None

    model_config = {"protected_namespaces": ()}


class TextBody(BaseModel):
    text: str = ""


class UrlBody(BaseModel):
    url: str


class RewriteBody(BaseModel):
    instructions: str | None = None


class BackendBody(BaseModel):
    api_base_url: str = Field(default="")


def _dump(result: Any) -> Any:
    if result is None or isinstance(result, (bool, str, int, float, dict)):
        return result
    if isinstance(result, list):
        return [_dump(item) for item in result]
    if isinstance(result, BaseModel):
        return result.model_dump(mode="json", by_alias=True)
    if hasattr(result, "to_dict"):
        return result.to_dict()
    return getattr(result, "value", result)


def _respond(ws: Workspace, result: Any, ok: bool | None = None) -> dict[str, Any]:
    return {
        "ok": result is not None if ok is None else ok,
        "result": _dump(result),
        "notifications": [n.to_dict() for n in ws.notifications.drain()],
    }


# --- Routes ---


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.get("/api/workspace")
async def get_state(ws: Workspace = Depends(get_workspace)):
    return ws.snapshot()


@app.patch("/api/workspace/config")
async def update_config(body: ConfigUpdate, ws: Workspace = Depends(get_workspace)):
    changes = body.model_dump(exclude_unset=True)
    return _respond(ws, await ws.update_config(**changes))


@app.post("/api/workspace/output-types/{output_type}/toggle")
async def toggle_output_type(output_type: OutputType, ws: Workspace = Depends(get_workspace)):
    changed = await ws.toggle_output_type(output_type)
    return _respond(ws, [t.value for t in ws.config.selected_types], ok=changed)


@app.put("/api/workspace/manual-text")
async def set_manual_text(body: TextBody, ws: Workspace = Depends(get_workspace)):
    await ws.set_manual_text(body.text)
    return _respond(ws, ws.sources.combined_text())


@app.post("/api/workspace/reset")
async def reset_workspace(ws: Workspace = Depends(get_workspace)):
    done = await ws.reset_workspace()
    return _respond(ws, done, ok=done)


@app.get("/api/workspace/diagnostics")
async def diagnostics(ws: Workspace = Depends(get_workspace)):
    return {"messages": ws.diagnostics()}


@app.post("/api/sources/files")
async def upload_files(files: list[UploadFile], ws: Workspace = Depends(get_workspace)):
    added = []
    for upload in files:
        data = await upload.read()
        added.append(await ws.add_upload(upload.filename or "upload.txt", data))
    return _respond(ws, added)


@app.post("/api/sources/url")
async def add_url(body: UrlBody, ws: Workspace = Depends(get_workspace)):
    return _respond(ws, await ws.add_url(body.url))


@app.delete("/api/sources/{index}")
async def remove_source(index: int, ws: Workspace = Depends(get_workspace)):
    return _respond(ws, await ws.remove_source(index))


@app.post("/api/generate")
async def generate(ws: Workspace = Depends(get_workspace)):
    return _respond(ws, await ws.generate())


@app.post("/api/rewrite")
async def rewrite(body: RewriteBody, ws: Workspace = Depends(get_workspace)):
    return _respond(ws, await ws.rewrite(body.instructions))


@app.get("/api/versions")
async def list_versions(order: str = "asc", ws: Workspace = Depends(get_workspace)):
    versions = ws.list_versions(newest_first=order == "desc")
    return {"versions": [v.to_dict() for v in versions]}


@app.post("/api/versions/{version_id}/select")
async def select_version(version_id: str, ws: Workspace = Depends(get_workspace)):
    return _respond(ws, await ws.select_version(version_id))


@app.delete("/api/versions/{version_id}")
async def delete_version(version_id: str, ws: Workspace = Depends(get_workspace)):
    return _respond(ws, await ws.delete_version(version_id))


@app.put("/api/draft")
async def set_draft(body: TextBody, ws: Workspace = Depends(get_workspace)):
    await ws.set_draft_text(body.text)
    return _respond(ws, ws.draft_text)


@app.post("/api/draft/save")
async def save_draft(ws: Workspace = Depends(get_workspace)):
    return _respond(ws, await ws.save_draft_as_version())


@app.post("/api/analysis")
async def analyse(ws: Workspace = Depends(get_workspace)):
    return _respond(ws, await ws.analyse_statements())


@app.put("/api/backend")
async def set_backend(body: BackendBody, ws: Workspace = Depends(get_workspace)):
    ws.set_api_base_url(body.api_base_url)
    return _respond(ws, ws.api_base_url)


@app.post("/api/backend/health")
async def backend_health(ws: Workspace = Depends(get_workspace)):
    status = await ws.check_health()
    return _respond(ws, status.value)


# --- WebSocket ---

_ws_connections: list[WebSocket] = []


@app.websocket("/ws/workspace")
async def workspace_ws(websocket: WebSocket, ws_state: Workspace = Depends(get_workspace)):
    """Send the current workspace, then stream workspace events."""
    await websocket.accept()
    _ws_connections.append(websocket)
    await websocket.send_json({"type": "workspace", "workspace": ws_state.snapshot()})
    try:
        while True:
            data = await websocket.receive_text()
            await websocket.send_json({"type": "ack", "data": data})
    except WebSocketDisconnect:
        if websocket in _ws_connections:
            _ws_connections.remove(websocket)


async def _broadcast(message: dict) -> None:
    """Send a message to every connected WebSocket client."""
    for ws in list(_ws_connections):
        try:
            await ws.send_json(message)
        except Exception as exc:
            logger.warning("Dropping WebSocket client: %s", exc)
            if ws in _ws_connections:
                _ws_connections.remove(ws)


if __name__ == "__main__":
    import uvicorn

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    uvicorn.run(app, host=settings.host, port=settings.port)
