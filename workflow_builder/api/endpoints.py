"""FastAPI REST and WebSocket endpoints for the workflow builder."""

import json
from typing import Dict, List, Any, Optional
from fastapi import APIRouter, HTTPException, Depends, Request, status, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from ..core.canvas import from_host_event
from ..core.exceptions import WorkflowBuilderError, NotFoundError, SessionNotFoundError
from ..core.execution_client import ExecutionClient
from ..core.logging import get_logger
from ..core.node_registry import list_node_types
from ..core.serializer import RESULTS_FILENAME, content_disposition, export_results
from ..core.session_manager import EditorSession, SessionManager
from ..models.core import (
    CanvasState,
    CanvasUpdate,
    Connection,
    ExecutionReport,
    Node,
    PointerEvent,
    Position,
    SessionSnapshot,
    SessionSummary,
    ValidationResult,
    Workflow,
)

logger = get_logger(__name__)

# Create router
router = APIRouter(prefix="/api/v1", tags=["workflow-builder"])

# Global instances (initialized by the application factory)
_session_manager: Optional[SessionManager] = None
_execution_client: Optional[ExecutionClient] = None


def init_dependencies(session_manager: SessionManager, execution_client: ExecutionClient):
    """Initialize the global dependencies."""
    global _session_manager, _execution_client
    _session_manager = session_manager
    _execution_client = execution_client


def get_session_manager() -> SessionManager:
    """Dependency to get the session manager."""
    if _session_manager is None:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Session manager not initialized"
        )
    return _session_manager


def get_execution_client() -> ExecutionClient:
    """Dependency to get the execution client."""
    if _execution_client is None:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Execution client not initialized"
        )
    return _execution_client


def get_session(session_id: str, manager: SessionManager = Depends(get_session_manager)) -> EditorSession:
    """Dependency to resolve the session named in the path."""
    return manager.get_session(session_id)


# Request/Response models

class CreateSessionRequest(BaseModel):
    """Request model for opening an editor session."""
    name: str = Field(default="", description="Initial workflow name")
    description: str = Field(default="", description="Initial workflow description")


class UpdateWorkflowRequest(BaseModel):
    """Request model for editing workflow metadata."""
    name: Optional[str] = Field(None, description="New workflow name")
    description: Optional[str] = Field(None, description="New workflow description")


class AddNodeRequest(BaseModel):
    """Request model for adding a node from the palette."""
    type: str = Field(..., description="Node kind")
    position: Optional[Position] = Field(None, description="Drop position; random when omitted")
    label: Optional[str] = Field(None, description="Label; '<Kind> <N>' when omitted")


class UpdateNodeRequest(BaseModel):
    """Request model for editing a node."""
    label: Optional[str] = Field(None, description="New label")
    config: Optional[Dict[str, Any]] = Field(None, description="Config fields to change")
    position: Optional[Position] = Field(None, description="New position, clamped to the canvas")


class DeleteNodeResponse(BaseModel):
    """Response model for node deletion."""
    node_id: str
    removed_connections: List[str] = Field(default_factory=list)


class SelectNodeRequest(BaseModel):
    """Request model for changing the selection."""
    node_id: Optional[str] = Field(None, description="Node to select, or null to clear")


class AddConnectionRequest(BaseModel):
    """Request model for connecting two ports."""
    model_config = ConfigDict(populate_by_name=True)

    from_node: str = Field(..., alias="from")
    from_port: str = Field(..., alias="fromPort")
    to_node: str = Field(..., alias="to")
    to_port: str = Field(..., alias="toPort")


# Palette

@router.get("/node-types", summary="List node kinds available in the palette")
async def get_node_types() -> List[Dict[str, Any]]:
    return [node_type.to_dict() for node_type in list_node_types()]


# Sessions

@router.post(
    "/sessions",
    response_model=SessionSnapshot,
    status_code=status.HTTP_201_CREATED,
    summary="Open an editor session"
)
async def create_session(
    request: CreateSessionRequest,
    manager: SessionManager = Depends(get_session_manager)
) -> SessionSnapshot:
    session = manager.create_session(name=request.name, description=request.description)
    return session.snapshot()


@router.get("/sessions", response_model=List[SessionSummary], summary="List editor sessions")
async def list_sessions(manager: SessionManager = Depends(get_session_manager)) -> List[SessionSummary]:
    return manager.list_sessions()


@router.get("/sessions/{session_id}", response_model=SessionSnapshot, summary="Get an editor session")
async def get_session_snapshot(session: EditorSession = Depends(get_session)) -> SessionSnapshot:
    return session.snapshot()


@router.delete("/sessions/{session_id}", summary="Close an editor session")
async def delete_session(session_id: str, manager: SessionManager = Depends(get_session_manager)) -> Dict[str, Any]:
    """Discard a session; its workflow is lost unless it was exported."""
    if not manager.delete_session(session_id):
        raise SessionNotFoundError(session_id)
    return {"session_id": session_id, "message": "Session closed"}


# Graph editing

@router.patch("/sessions/{session_id}/workflow", response_model=Workflow, summary="Edit workflow name and description")
async def update_workflow(request: UpdateWorkflowRequest, session: EditorSession = Depends(get_session)) -> Workflow:
    return session.set_metadata(name=request.name, description=request.description)


@router.post(
    "/sessions/{session_id}/nodes",
    response_model=Node,
    status_code=status.HTTP_201_CREATED,
    summary="Add a node"
)
async def add_node(request: AddNodeRequest, session: EditorSession = Depends(get_session)) -> Node:
    return session.add_node(request.type, position=request.position, label=request.label)


@router.patch("/sessions/{session_id}/nodes/{node_id}", response_model=Node, summary="Edit a node")
async def update_node(node_id: str, request: UpdateNodeRequest, session: EditorSession = Depends(get_session)) -> Node:
    return session.update_node(node_id, label=request.label, config=request.config, position=request.position)


@router.delete(
    "/sessions/{session_id}/nodes/{node_id}",
    response_model=DeleteNodeResponse,
    summary="Delete a node and its connections"
)
async def delete_node(node_id: str, session: EditorSession = Depends(get_session)) -> DeleteNodeResponse:
    removed = session.delete_node(node_id)
    return DeleteNodeResponse(node_id=node_id, removed_connections=[c.id for c in removed])


@router.post("/sessions/{session_id}/selection", response_model=CanvasState, summary="Select a node")
async def select_node(request: SelectNodeRequest, session: EditorSession = Depends(get_session)) -> CanvasState:
    return session.select_node(request.node_id)


@router.post(
    "/sessions/{session_id}/connections",
    response_model=Connection,
    status_code=status.HTTP_201_CREATED,
    summary="Connect an output port to an input port"
)
async def add_connection(request: AddConnectionRequest, session: EditorSession = Depends(get_session)) -> Connection:
    return session.add_connection(request.from_node, request.from_port, request.to_node, request.to_port)


@router.delete("/sessions/{session_id}/connections/{connection_id}", response_model=Connection,
               summary="Delete a connection")
async def delete_connection(connection_id: str, session: EditorSession = Depends(get_session)) -> Connection:
    return session.delete_connection(connection_id)


# Canvas interaction

@router.post("/sessions/{session_id}/pointer", response_model=CanvasUpdate, summary="Feed one pointer event")
async def pointer_event(event: PointerEvent, session: EditorSession = Depends(get_session)) -> CanvasUpdate:
    return session.dispatch_pointer(event)


@router.websocket("/sessions/{session_id}/canvas")
async def canvas_socket(websocket: WebSocket, session_id: str):
    """
    Stream host pointer events into a session's canvas controller.

    Each text message is a JSON pointer event, either in canvas coordinates
    (``{"type": "pointer_move", "x": 10, "y": 20}``) or as a DOM event with
    client coordinates, shifted by the ``left``/``top`` query parameters.
    Every message is answered with the resulting canvas update or an error.
    """
    if _session_manager is None:
        await websocket.close(code=1011, reason="Session manager not initialized")
        return

    try:
        session = _session_manager.get_session(session_id)
    except NotFoundError as e:
        await websocket.close(code=1008, reason=e.message)
        return

    await websocket.accept()
    try:
        canvas_left = float(websocket.query_params.get("left", 0))
        canvas_top = float(websocket.query_params.get("top", 0))
    except ValueError:
        canvas_left = canvas_top = 0.0
    logger.info(f"Canvas stream opened for session {session_id}")

    try:
        while True:
            data = await websocket.receive_text()
            try:
                payload = json.loads(data)
            except json.JSONDecodeError:
                await websocket.send_json({"type": "error", "message": "Invalid JSON message"})
                continue
            if not isinstance(payload, dict):
                await websocket.send_json({"type": "error", "message": "Pointer event must be a JSON object"})
                continue

            try:
                event = from_host_event(payload, canvas_left, canvas_top)
                update = session.dispatch_pointer(event)
            except WorkflowBuilderError as e:
                await websocket.send_json({"type": "error", "message": e.message})
                continue

            await websocket.send_json({"type": "canvas_update", **update.model_dump(mode="json")})
    except WebSocketDisconnect:
        logger.info(f"Canvas stream closed for session {session_id}")


# Validation, export and import

@router.get("/sessions/{session_id}/validate", response_model=ValidationResult, summary="Validate the workflow")
async def validate_session_workflow(session: EditorSession = Depends(get_session)) -> ValidationResult:
    return session.validate()


@router.get("/sessions/{session_id}/export", summary="Download the workflow document")
async def export_session_workflow(session: EditorSession = Depends(get_session)) -> JSONResponse:
    document = session.export_document()
    filename = session.export_filename()
    return JSONResponse(
        content=document,
        headers={"Content-Disposition": content_disposition(filename)}
    )


@router.post("/sessions/{session_id}/import", response_model=Workflow, summary="Replace the workflow from a document")
async def import_session_workflow(request: Request, session: EditorSession = Depends(get_session)) -> Workflow:
    """Import a workflow document sent as the raw request body."""
    body = await request.body()
    return session.import_document(body)


# Execution

@router.post("/sessions/{session_id}/execute", response_model=ExecutionReport, summary="Execute the workflow")
def execute_session_workflow(
    session: EditorSession = Depends(get_session),
    client: ExecutionClient = Depends(get_execution_client)
) -> ExecutionReport:
    """
    Validate the workflow, submit it to the execution engine and render the trace.

    Runs in the worker pool since the engine call blocks.
    """
    response = session.execute(client)
    return session.render(response)


@router.get("/sessions/{session_id}/results", response_model=ExecutionReport, summary="Get the last execution report")
async def get_session_results(session: EditorSession = Depends(get_session)) -> ExecutionReport:
    report = session.report()
    if report is None:
        raise NotFoundError("No execution results available").add_context(session_id=session.session_id)
    return report


@router.get("/sessions/{session_id}/results/export", summary="Download the last execution results")
async def export_session_results(session: EditorSession = Depends(get_session)) -> JSONResponse:
    if session.last_result is None:
        raise NotFoundError("No execution results available").add_context(session_id=session.session_id)
    return JSONResponse(
        content=export_results(session.last_result),
        headers={"Content-Disposition": content_disposition(RESULTS_FILENAME)}
    )
