"""In-memory editor sessions."""

import logging
import threading
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel

from ..models.core import (
    CanvasBounds,
    CanvasState,
    CanvasUpdate,
    Connection,
    ExecutionReport,
    ExecutionResponse,
    Node,
    NodeKind,
    PointerEvent,
    Position,
    SessionSnapshot,
    SessionSummary,
    ValidationResult,
    Workflow,
)
from .canvas import CanvasController
from .exceptions import (
    ResourceExhaustionError,
    SessionNotFoundError,
    SubmissionInProgressError,
    WorkflowBuilderError,
    WorkflowValidationError,
)
from .execution_client import ExecutionClient
from .graph_editor import WorkflowEditor
from .logging import get_logger, log_with_context
from .result_renderer import render_execution
from .serializer import export_filename, export_workflow, import_workflow
from .validator import validate_workflow

logger = get_logger(__name__)


class EditorSession:
    """One workflow being edited, with its selection, canvas state and last run.

    All operations take the session lock, so the graph is only ever
    mutated by one caller at a time. The execution request itself runs
    outside the lock; the ``running`` flag admits a single outstanding
    submission.
    """

    def __init__(self, session_id: str, bounds: Optional[CanvasBounds] = None,
                 workflow: Optional[Workflow] = None):
        self.session_id = session_id
        self.created_at = datetime.now(timezone.utc)
        self.editor = WorkflowEditor(workflow, bounds)
        self.canvas = CanvasController(self.editor)
        self.running = False
        self.last_result: Optional[ExecutionResponse] = None
        self.last_error: Optional[str] = None
        self._lock = threading.RLock()

    @property
    def workflow(self) -> Workflow:
        return self.editor.workflow

    # Graph editing

    def set_metadata(self, name: Optional[str] = None, description: Optional[str] = None) -> Workflow:
        with self._lock:
            return self.editor.set_metadata(name=name, description=description)

    def add_node(self, kind: Union[NodeKind, str], position: Optional[Position] = None,
                 label: Optional[str] = None) -> Node:
        with self._lock:
            return self.editor.add_node(kind, position=position, label=label)

    def update_node(self, node_id: str, label: Optional[str] = None,
                    config: Optional[Union[BaseModel, Dict[str, Any]]] = None,
                    position: Optional[Position] = None) -> Node:
        with self._lock:
            node = self.editor.update_node(node_id, label=label, config=config)
            if position is not None:
                node = self.editor.move_node(node_id, position.x, position.y)
            return node

    def delete_node(self, node_id: str) -> List[Connection]:
        with self._lock:
            removed = self.editor.delete_node(node_id)
            self.canvas.forget_node(node_id)
            return removed

    def add_connection(self, from_node_id: str, from_port: str, to_node_id: str, to_port: str) -> Connection:
        with self._lock:
            return self.editor.add_connection(from_node_id, from_port, to_node_id, to_port)

    def delete_connection(self, connection_id: str) -> Connection:
        with self._lock:
            return self.editor.delete_connection(connection_id)

    # Canvas interaction

    def dispatch_pointer(self, event: PointerEvent) -> CanvasUpdate:
        with self._lock:
            return self.canvas.dispatch(event)

    def select_node(self, node_id: Optional[str]) -> CanvasState:
        with self._lock:
            return self.canvas.select(node_id)

    # Validation, export and import

    def validate(self) -> ValidationResult:
        with self._lock:
            return validate_workflow(self.workflow)

    def export_document(self) -> Dict[str, Any]:
        with self._lock:
            return export_workflow(self.workflow)

    def export_filename(self) -> str:
        with self._lock:
            return export_filename(self.workflow)

    def import_document(self, document: Union[str, bytes, Dict[str, Any]]) -> Workflow:
        """
        Replace the workflow with an imported document and clear the selection.

        Raises:
            FormatError: If the document is malformed; the current workflow is kept
        """
        workflow = import_workflow(document)
        with self._lock:
            self.editor.replace_workflow(workflow)
            self.canvas.reset()
            self.last_result = None
            self.last_error = None
        logger.info(f"Session {self.session_id} now holds imported workflow '{workflow.name}'")
        return workflow

    # Execution

    def execute(self, client: ExecutionClient) -> ExecutionResponse:
        """
        Submit the workflow for execution.

        The workflow is snapshotted before the request is sent. Failures are
        recorded in ``last_error`` and never touch the graph.

        Raises:
            SubmissionInProgressError: If another submission is outstanding
            WorkflowValidationError: If the workflow is not valid
            ExecutionError: If the engine reports a failure or cannot be reached
        """
        with self._lock:
            if self.running:
                raise SubmissionInProgressError(session_id=self.session_id)
            self.running = True
            self.last_error = None
            snapshot = self.workflow.model_copy(deep=True)

        try:
            response = client.submit(snapshot)
        except WorkflowValidationError as e:
            with self._lock:
                self.last_error = ". ".join(e.validation_errors)
            raise
        except WorkflowBuilderError as e:
            with self._lock:
                self.last_error = e.message
            log_with_context(
                logger, logging.WARNING, f"Execution of workflow '{snapshot.name}' failed: {e.message}",
                session_id=self.session_id, error_code=e.error_code
            )
            raise
        finally:
            with self._lock:
                self.running = False

        with self._lock:
            self.last_result = response
        log_with_context(
            logger, logging.INFO, f"Execution of workflow '{snapshot.name}' completed",
            session_id=self.session_id, nodes_executed=response.execution_stats.nodes_executed
        )
        return response

    def render(self, response: ExecutionResponse) -> ExecutionReport:
        """Render an execution result against the current workflow."""
        with self._lock:
            return render_execution(self.workflow, response)

    def report(self) -> Optional[ExecutionReport]:
        """Render the last execution result, if any."""
        with self._lock:
            if self.last_result is None:
                return None
            return self.render(self.last_result)

    # Views

    def summary(self) -> SessionSummary:
        with self._lock:
            return SessionSummary(
                session_id=self.session_id,
                workflow_name=self.workflow.name,
                node_count=len(self.workflow.nodes),
                connection_count=len(self.workflow.connections),
                running=self.running,
                created_at=self.created_at,
            )

    def snapshot(self) -> SessionSnapshot:
        with self._lock:
            return SessionSnapshot(
                session_id=self.session_id,
                workflow=self.workflow.model_copy(deep=True),
                canvas=self.canvas.state,
                running=self.running,
                last_error=self.last_error,
                has_result=self.last_result is not None,
                created_at=self.created_at,
            )


class SessionManager:
    """Creates, looks up and discards editor sessions."""

    def __init__(self, bounds: Optional[CanvasBounds] = None, max_sessions: int = 100):
        """Initialize the SessionManager.

        Args:
            bounds: Canvas dimensions given to every new session
            max_sessions: Upper limit on concurrently open sessions
        """
        self.bounds = bounds or CanvasBounds()
        self.max_sessions = max_sessions
        self._sessions: Dict[str, EditorSession] = {}
        self._lock = threading.RLock()
        logger.info(f"SessionManager initialized with max_sessions={max_sessions}")

    def create_session(self, name: str = "", description: str = "") -> EditorSession:
        """
        Open a new session holding an empty workflow.

        Raises:
            ResourceExhaustionError: If the session limit is reached
        """
        with self._lock:
            if len(self._sessions) >= self.max_sessions:
                raise ResourceExhaustionError(
                    "Maximum number of editor sessions reached",
                    resource_type="sessions",
                    current_usage=len(self._sessions),
                    limit=self.max_sessions
                )
            session_id = str(uuid.uuid4())
            session = EditorSession(
                session_id,
                bounds=self.bounds,
                workflow=Workflow(name=name, description=description),
            )
            self._sessions[session_id] = session

        logger.info(f"Created editor session {session_id}")
        return session

    def get_session(self, session_id: str) -> EditorSession:
        """
        Retrieve a session by its ID.

        Raises:
            SessionNotFoundError: If the session does not exist
        """
        with self._lock:
            session = self._sessions.get(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    def delete_session(self, session_id: str) -> bool:
        """Discard a session and its workflow. Returns False if it did not exist."""
        with self._lock:
            session = self._sessions.pop(session_id, None)
        if session is None:
            logger.warning(f"Session {session_id} not found for deletion")
            return False
        logger.info(f"Deleted editor session {session_id}")
        return True

    def list_sessions(self) -> List[SessionSummary]:
        with self._lock:
            sessions = list(self._sessions.values())
        return [session.summary() for session in sessions]

    def clear(self) -> None:
        """Discard every session."""
        with self._lock:
            self._sessions.clear()
