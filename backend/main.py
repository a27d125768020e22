"""
semcanvas Backend - FastAPI Application

This is the main entry point for the structural model editor backend.
It provides:
- REST API for model operations (variables, links, layout, undo/redo)
- Interaction endpoints driving the canvas state machine
- Named snapshot save/list/load/delete
- WebSocket endpoint for real-time updates
- CORS configuration for local frontend development
"""
import asyncio
import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from fastapi import FastAPI, HTTPException, Query, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel

from semcanvas import (
    CreateLinkRequest,
    CreateNodeRequest,
    DropNodeRequest,
    EditorSession,
    Graph,
    InteractionMode,
    JsonFileBackend,
    LinkType,
    MoveNodeRequest,
    ReplaceGraphRequest,
    SaveModelRequest,
    SnapshotStore,
    validation_summary,
)

from .websocket_manager import ws_manager

# --- Configuration ---

STORE_DIR = Path(os.environ.get("SEMCANVAS_STORE_DIR", "~/.semcanvas")).expanduser()
HOST = os.environ.get("SEMCANVAS_HOST", "127.0.0.1")
PORT = int(os.environ.get("SEMCANVAS_PORT", "8765"))
LOG_LEVEL = os.environ.get("SEMCANVAS_LOG_LEVEL", "INFO").upper()

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


def build_session() -> EditorSession:
    """Create the process-wide editor session backed by the JSON file store."""
    return EditorSession(store=SnapshotStore(JsonFileBackend(STORE_DIR)))


session = build_session()


def _answer(confirmed: bool):
    """Confirmation callable for a client that already asked its user."""
    return lambda message: confirmed


def _delete_with_selection(select, confirmed: bool) -> bool:
    """Delete through a temporary selection; a declined delete restores the old one."""
    state = session.interaction
    previous = (state.selected_node_id, state.selected_link_index)
    select()
    if session.delete_selected(confirm=_answer(confirmed)):
        return True
    state.selected_node_id, state.selected_link_index = previous
    return False


# --- Async change notification ---
# Bridge between sync EditorSession callbacks and async WebSocket broadcasts

_change_event = asyncio.Event()


def on_model_change(graph: Graph):
    """Callback for graph changes - sets event for async handler."""
    _change_event.set()


async def change_broadcaster():
    """Background task that broadcasts changes to WebSocket clients."""
    while True:
        await _change_event.wait()
        _change_event.clear()
        await ws_manager.notify_model_updated(len(session.nodes), len(session.links))


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan handler for startup/shutdown tasks."""
    session.on_change(on_model_change)
    logger.info("Saved models stored in %s", STORE_DIR)

    broadcaster_task = asyncio.create_task(change_broadcaster())

    yield

    broadcaster_task.cancel()
    try:
        await broadcaster_task
    except asyncio.CancelledError:
        pass


# --- FastAPI App ---

app = FastAPI(
    title="semcanvas API",
    description="Backend API for the structural model canvas",
    version="1.0.0",
    lifespan=lifespan
)

# CORS for local development
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:5173", "http://localhost:3000", "http://127.0.0.1:5173"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# --- Health Check ---

@app.get("/api/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "ok", "connections": ws_manager.connection_count}


# --- Model State ---

@app.get("/api/model")
async def get_model():
    """Get the current model, interaction and history state."""
    return session.get_state()


@app.put("/api/model")
async def replace_model(request: ReplaceGraphRequest):
    """Replace the whole graph as one undoable edit."""
    changed = session.replace_graph(Graph(nodes=request.nodes, links=request.links))
    return {"success": True, "changed": changed, "model": session.graph.to_json_dict()}


@app.post("/api/model/new")
async def new_model(confirm: bool = Query(default=True)):
    """Start a new empty model."""
    if not session.new_model(confirm=_answer(confirm)):
        raise HTTPException(status_code=409, detail="New model declined")
    return {"success": True, "model": session.graph.to_json_dict()}


@app.get("/api/model/mermaid", response_class=PlainTextResponse)
async def get_mermaid(dark: bool = Query(default=False)):
    """Mermaid code for the read-only diagram view."""
    return session.notation(dark_mode=dark)


@app.get("/api/model/validate")
async def validate_model():
    """
    Validate the current model for structural issues.

    Returns a list of issues (errors, warnings, info) and a summary.
    """
    issues = session.validate()
    return {
        "success": True,
        "issues": [issue.to_dict() for issue in issues],
        "summary": validation_summary(issues)
    }


# --- Undo/Redo ---

@app.post("/api/undo")
async def undo():
    """Undo the last action."""
    graph = session.undo()
    if graph is not None:
        return {"success": True, "model": graph.to_json_dict()}
    return {"success": False, "message": "Nothing to undo"}


@app.post("/api/redo")
async def redo():
    """Redo the last undone action."""
    graph = session.redo()
    if graph is not None:
        return {"success": True, "model": graph.to_json_dict()}
    return {"success": False, "message": "Nothing to redo"}


# --- Node Operations ---

@app.post("/api/nodes")
async def create_node(request: CreateNodeRequest):
    """Create a new variable."""
    node = session.add_node(request.label, request.type)
    if node is None:
        raise HTTPException(status_code=400, detail="Label must not be blank")
    return {"success": True, "node": node.model_dump(mode="json")}


@app.get("/api/nodes/{node_id}")
async def get_node(node_id: str):
    """Get a specific variable."""
    node = session.graph.get_node(node_id)
    if node:
        return {"success": True, "node": node.model_dump(mode="json")}
    raise HTTPException(status_code=404, detail="Node not found")


@app.post("/api/nodes/{node_id}/move")
async def move_node(node_id: str, request: MoveNodeRequest):
    """Move a variable to an absolute top-left position."""
    if session.graph.get_node(node_id) is None:
        raise HTTPException(status_code=404, detail="Node not found")
    session.move_node(node_id, request.x, request.y)
    return {"success": True, "node": session.graph.get_node(node_id).model_dump(mode="json")}


@app.post("/api/nodes/{node_id}/drop")
async def drop_node(node_id: str, request: DropNodeRequest):
    """Finish a drag at a canvas-local drop point."""
    if session.graph.get_node(node_id) is None:
        raise HTTPException(status_code=404, detail="Node not found")
    changed = session.drop_node(node_id, request.x, request.y)
    return {
        "success": True,
        "changed": changed,
        "node": session.graph.get_node(node_id).model_dump(mode="json")
    }


@app.delete("/api/nodes/{node_id}")
async def delete_node(node_id: str, confirm: bool = Query(default=True)):
    """Delete a variable and its links."""
    if session.graph.get_node(node_id) is None:
        raise HTTPException(status_code=404, detail="Node not found")
    if not _delete_with_selection(lambda: session.interaction.select_node(node_id), confirm):
        raise HTTPException(status_code=409, detail="Deletion declined")
    return {"success": True}


# --- Link Operations ---

@app.post("/api/links")
async def create_link(request: CreateLinkRequest):
    """Create a new link. Duplicates, self-links and unknown ends are refused."""
    added = session.add_link(request.source, request.target, request.type)
    if not added:
        raise HTTPException(status_code=400, detail="Link rejected")
    return {"success": True, "links": [link.model_dump(mode="json") for link in session.links]}


@app.delete("/api/links/{index}")
async def delete_link(index: int, confirm: bool = Query(default=True)):
    """Delete the link at a position in the link sequence."""
    if not 0 <= index < len(session.links):
        raise HTTPException(status_code=404, detail="Link not found")
    if not _delete_with_selection(lambda: session.interaction.select_link(index), confirm):
        raise HTTPException(status_code=409, detail="Deletion declined")
    return {"success": True}


# --- Interaction ---

class ModeRequest(BaseModel):
    mode: InteractionMode


class LinkTypeRequest(BaseModel):
    link_type: LinkType


class ClickNodeRequest(BaseModel):
    node_id: str


class ClickLinkRequest(BaseModel):
    index: int


class PointerRequest(BaseModel):
    x: float
    y: float


@app.post("/api/interaction/mode")
async def set_mode(request: ModeRequest):
    session.set_mode(request.mode)
    return {"success": True, "interaction": session.interaction.to_dict()}


@app.post("/api/interaction/link-type")
async def set_link_type(request: LinkTypeRequest):
    session.set_link_type(request.link_type)
    return {"success": True, "interaction": session.interaction.to_dict()}


@app.post("/api/interaction/click-node")
async def click_node(request: ClickNodeRequest):
    """Node click: select in Move mode, draw links in Link mode."""
    changed = session.click_node(request.node_id)
    return {"success": True, "changed": changed, "interaction": session.interaction.to_dict()}


@app.post("/api/interaction/click-link")
async def click_link(request: ClickLinkRequest):
    session.click_link(request.index)
    return {"success": True, "interaction": session.interaction.to_dict()}


@app.post("/api/interaction/click-canvas")
async def click_canvas():
    session.click_canvas()
    return {"success": True, "interaction": session.interaction.to_dict()}


@app.post("/api/interaction/pointer")
async def pointer_move(request: PointerRequest):
    session.pointer_move(request.x, request.y)
    return {"success": True, "interaction": session.interaction.to_dict()}


@app.post("/api/interaction/delete-selected")
async def delete_selected(confirm: bool = Query(default=True)):
    """Delete whatever is selected."""
    changed = session.delete_selected(confirm=_answer(confirm))
    return {"success": True, "changed": changed}


# --- Layout ---

@app.post("/api/layout/auto")
async def auto_layout():
    """Arrange variables by model structure."""
    if not session.nodes:
        raise HTTPException(status_code=400, detail="No nodes to layout")
    changed = session.auto_layout()
    return {"success": True, "changed": changed, "model": session.graph.to_json_dict()}


# --- Snapshots ---

@app.get("/api/snapshots")
async def list_snapshots():
    """List saved models."""
    return {"success": True, "snapshots": [m.summary() for m in session.list_saved_models()]}


@app.post("/api/snapshots")
async def save_snapshot(request: SaveModelRequest):
    """Save the current model under a name."""
    model_id = session.save_model(request.name)
    if model_id is None:
        raise HTTPException(status_code=500, detail="Failed to save model")
    return {"success": True, "id": model_id}


@app.post("/api/snapshots/{model_id}/load")
async def load_snapshot(model_id: str, confirm: bool = Query(default=True)):
    """Replace the canvas with a saved model."""
    if not any(m.id == model_id for m in session.list_saved_models()):
        raise HTTPException(status_code=404, detail="Snapshot not found")
    if not session.load_model(model_id, confirm=_answer(confirm)):
        raise HTTPException(status_code=409, detail="Load declined")
    return {"success": True, "model": session.graph.to_json_dict()}


@app.delete("/api/snapshots/{model_id}")
async def delete_snapshot(model_id: str, confirm: bool = Query(default=True)):
    """Delete a saved model."""
    if not confirm:
        raise HTTPException(status_code=409, detail="Deletion declined")
    if session.delete_saved_model(model_id, confirm=_answer(confirm)):
        return {"success": True}
    raise HTTPException(status_code=404, detail="Snapshot not found")


# --- WebSocket ---

@app.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    """
    WebSocket endpoint for real-time updates.

    Clients connect here to receive model_updated events.
    """
    await ws_manager.connect(websocket)

    try:
        while True:
            data = await websocket.receive_text()
            if data == "ping":
                await websocket.send_text('{"type": "pong"}')
    except WebSocketDisconnect:
        await ws_manager.disconnect(websocket)
    except Exception:
        logger.exception("WebSocket error")
        await ws_manager.disconnect(websocket)


def main(host: Optional[str] = None, port: Optional[int] = None):
    import uvicorn
    uvicorn.run(app, host=host or HOST, port=port or PORT)


if __name__ == "__main__":
    main()
