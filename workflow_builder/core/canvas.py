"""Canvas interaction state machine for node placement and dragging."""

from typing import Any, Dict, Optional

from pydantic import ValidationError

from ..models.core import (
    CanvasBounds,
    CanvasMode,
    CanvasState,
    CanvasUpdate,
    Node,
    NodeMove,
    PointerEvent,
    PointerEventType,
    Position,
    Workflow,
)
from .exceptions import GraphEditError
from .graph_editor import WorkflowEditor
from .logging import get_logger

logger = get_logger(__name__)

# DOM and pointer-API event names mapped onto controller events
HOST_EVENT_TYPES: Dict[str, PointerEventType] = {
    "mousedown": PointerEventType.POINTER_DOWN,
    "pointerdown": PointerEventType.POINTER_DOWN,
    "mousemove": PointerEventType.POINTER_MOVE,
    "pointermove": PointerEventType.POINTER_MOVE,
    "mouseup": PointerEventType.POINTER_UP,
    "pointerup": PointerEventType.POINTER_UP,
    "mouseleave": PointerEventType.POINTER_LEAVE,
    "pointerleave": PointerEventType.POINTER_LEAVE,
}


def find_node_at(workflow: Workflow, bounds: CanvasBounds, x: float, y: float) -> Optional[Node]:
    """Return the topmost node under a canvas point; later nodes are drawn on top."""
    for node in reversed(workflow.nodes):
        if bounds.contains(node.position, x, y):
            return node
    return None


def handle_pointer_event(event: PointerEvent, state: CanvasState, workflow: Workflow,
                         bounds: CanvasBounds) -> CanvasUpdate:
    """
    Compute the next interaction state for a pointer event.

    The function is pure: it never mutates the workflow, it only reports the
    node move the caller should apply.

    Args:
        event: Pointer event in canvas coordinates
        state: Current interaction state
        workflow: Workflow being edited, used for hit-testing and positions
        bounds: Canvas and node dimensions

    Returns:
        CanvasUpdate: New state and an optional node move
    """
    if event.type == PointerEventType.POINTER_DOWN:
        if state.mode == CanvasMode.DRAGGING:
            return CanvasUpdate(state=state)

        if event.node_id is not None:
            node = workflow.get_node(event.node_id)
        else:
            node = find_node_at(workflow, bounds, event.x, event.y)

        if node is None:
            return CanvasUpdate(state=state.model_copy(update={"selected_node_id": None}))

        return CanvasUpdate(state=CanvasState(
            mode=CanvasMode.DRAGGING,
            dragging_node_id=node.id,
            offset=Position(x=event.x - node.position.x, y=event.y - node.position.y),
            selected_node_id=node.id,
        ))

    if event.type == PointerEventType.POINTER_MOVE:
        if state.mode != CanvasMode.DRAGGING:
            return CanvasUpdate(state=state)

        node = workflow.get_node(state.dragging_node_id)
        if node is None:
            # Dragged node was deleted mid-gesture
            selected = None if state.selected_node_id == state.dragging_node_id else state.selected_node_id
            return CanvasUpdate(state=CanvasState(selected_node_id=selected))

        position = bounds.clamp(event.x - state.offset.x, event.y - state.offset.y)
        return CanvasUpdate(state=state, move=NodeMove(node_id=node.id, position=position))

    # pointer_up / pointer_leave
    return CanvasUpdate(state=CanvasState(selected_node_id=state.selected_node_id))


def from_host_event(payload: Dict[str, Any], canvas_left: float = 0.0, canvas_top: float = 0.0) -> PointerEvent:
    """
    Translate a host input event into a canvas pointer event.

    Accepts either controller event names or DOM names, and either canvas
    coordinates (``x``/``y``) or client coordinates (``clientX``/``clientY``)
    which are shifted by the canvas origin.

    Raises:
        GraphEditError: If the payload is not a recognizable pointer event
    """
    raw_type = str(payload.get("type", "")).lower()
    event_type = HOST_EVENT_TYPES.get(raw_type, raw_type)

    try:
        if "clientX" in payload or "clientY" in payload:
            x = float(payload.get("clientX", 0)) - canvas_left
            y = float(payload.get("clientY", 0)) - canvas_top
        else:
            x = payload.get("x", 0)
            y = payload.get("y", 0)
        return PointerEvent(type=event_type, x=x, y=y, node_id=payload.get("node_id", payload.get("nodeId")))
    except ValidationError as e:
        raise GraphEditError(f"Invalid pointer event: {e.errors()[0]['msg']}", operation="pointer_event")
    except (TypeError, ValueError) as e:
        raise GraphEditError(f"Invalid pointer event: {e}", operation="pointer_event")


class CanvasController:
    """Adapter that feeds pointer events to the state machine and applies the result."""

    def __init__(self, editor: WorkflowEditor, state: Optional[CanvasState] = None):
        self.editor = editor
        self.state = state or CanvasState()

    @property
    def selected_node_id(self) -> Optional[str]:
        return self.state.selected_node_id

    @property
    def is_dragging(self) -> bool:
        return self.state.mode == CanvasMode.DRAGGING

    def dispatch(self, event: PointerEvent) -> CanvasUpdate:
        """Process one pointer event and move the dragged node if needed."""
        update = handle_pointer_event(event, self.state, self.editor.workflow, self.editor.bounds)
        if update.move is not None:
            self.editor.move_node(update.move.node_id, update.move.position.x, update.move.position.y)
        if update.state.mode != self.state.mode:
            logger.debug(f"Canvas {self.state.mode.value} -> {update.state.mode.value}")
        self.state = update.state
        return update

    def select(self, node_id: Optional[str]) -> CanvasState:
        """Select a node (or nothing) without changing the drag state."""
        if node_id is not None:
            self.editor.get_node(node_id)
        self.state = self.state.model_copy(update={"selected_node_id": node_id})
        return self.state

    def forget_node(self, node_id: str) -> CanvasState:
        """Drop references to a deleted node from the interaction state."""
        if self.state.dragging_node_id == node_id:
            self.state = CanvasState(selected_node_id=self.state.selected_node_id)
        if self.state.selected_node_id == node_id:
            self.state = self.state.model_copy(update={"selected_node_id": None})
        return self.state

    def reset(self) -> CanvasState:
        """Return to Idle with nothing selected."""
        self.state = CanvasState()
        return self.state
