"""Core workflow builder components."""

from .exceptions import (
    WorkflowBuilderError,
    WorkflowValidationError,
    FormatError,
    GraphEditError,
    NodeTypeError,
    NotFoundError,
    SubmissionInProgressError,
    ExecutionError,
    TransportError,
    ConfigurationError,
)
from .logging import setup_logging, get_logger
from .node_registry import get_node_type, list_node_types
from .graph_editor import WorkflowEditor
from .canvas import CanvasController, handle_pointer_event
from .validator import validate_workflow
from .serializer import export_workflow, import_workflow
from .execution_client import ExecutionClient
from .result_renderer import render_execution
from .session_manager import EditorSession, SessionManager

__all__ = [
    "WorkflowBuilderError",
    "WorkflowValidationError",
    "FormatError",
    "GraphEditError",
    "NodeTypeError",
    "NotFoundError",
    "SubmissionInProgressError",
    "ExecutionError",
    "TransportError",
    "ConfigurationError",
    "setup_logging",
    "get_logger",
    "get_node_type",
    "list_node_types",
    "WorkflowEditor",
    "CanvasController",
    "handle_pointer_event",
    "validate_workflow",
    "export_workflow",
    "import_workflow",
    "ExecutionClient",
    "render_execution",
    "EditorSession",
    "SessionManager",
]
