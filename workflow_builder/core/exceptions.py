"""Custom exceptions for the workflow builder with detailed error information."""

from datetime import datetime, timezone
from typing import Optional, Dict, Any, List
from enum import Enum


class ErrorCategory(Enum):
    """Categories of errors for better classification."""
    VALIDATION = "validation"
    FORMAT = "format"
    EDITING = "editing"
    EXECUTION = "execution"
    NETWORK = "network"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    RESOURCE = "resource"
    CONFIGURATION = "configuration"


class WorkflowBuilderError(Exception):
    """Base exception for all workflow builder errors."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        category: ErrorCategory = ErrorCategory.EDITING,
        details: Optional[Dict[str, Any]] = None,
        recoverable: bool = True,
        context: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.category = category
        self.details = details or {}
        self.recoverable = recoverable
        self.context = context or {}
        self.timestamp = datetime.now(timezone.utc)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging and API responses."""
        return {
            "error_code": self.error_code,
            "message": self.message,
            "category": self.category.value,
            "details": self.details,
            "recoverable": self.recoverable,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
            "exception_type": self.__class__.__name__
        }

    def add_context(self, **kwargs):
        """Add additional context to the exception."""
        self.context.update(kwargs)
        return self

    def add_details(self, **kwargs):
        """Add additional details to the exception."""
        self.details.update(kwargs)
        return self


class WorkflowValidationError(WorkflowBuilderError):
    """Raised when a workflow is not valid for submission."""

    def __init__(
        self,
        message: str,
        validation_errors: Optional[List[str]] = None,
        workflow_name: Optional[str] = None,
        **kwargs
    ):
        super().__init__(message, category=ErrorCategory.VALIDATION, **kwargs)
        self.validation_errors = validation_errors or []
        if workflow_name:
            self.add_context(workflow_name=workflow_name)
        if validation_errors:
            self.add_details(validation_errors=validation_errors)


class FormatError(WorkflowBuilderError):
    """Raised when an imported document is not a valid workflow document."""

    def __init__(self, message: str = "Invalid workflow file format", reason: Optional[str] = None, **kwargs):
        super().__init__(message, category=ErrorCategory.FORMAT, **kwargs)
        if reason:
            self.add_details(reason=reason)


class GraphEditError(WorkflowBuilderError):
    """Raised when a graph mutation would break a graph invariant."""

    def __init__(self, message: str, operation: Optional[str] = None, **kwargs):
        super().__init__(message, category=ErrorCategory.EDITING, **kwargs)
        if operation:
            self.add_context(operation=operation)


class NodeTypeError(GraphEditError):
    """Raised when a node kind is not in the node type registry."""

    def __init__(self, message: str, kind: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        if kind:
            self.add_context(kind=kind)


class NotFoundError(WorkflowBuilderError):
    """Base class for lookups of missing sessions, nodes or connections."""

    def __init__(self, message: str, **kwargs):
        super().__init__(message, category=ErrorCategory.NOT_FOUND, **kwargs)


class SessionNotFoundError(NotFoundError):
    """Raised when an editor session does not exist."""

    def __init__(self, session_id: str, **kwargs):
        super().__init__(f"Session '{session_id}' not found", **kwargs)
        self.add_context(session_id=session_id)


class NodeNotFoundError(NotFoundError):
    """Raised when a node id is not part of the workflow."""

    def __init__(self, node_id: str, **kwargs):
        super().__init__(f"Node '{node_id}' not found", **kwargs)
        self.add_context(node_id=node_id)


class ConnectionNotFoundError(NotFoundError):
    """Raised when a connection id is not part of the workflow."""

    def __init__(self, connection_id: str, **kwargs):
        super().__init__(f"Connection '{connection_id}' not found", **kwargs)
        self.add_context(connection_id=connection_id)


class SubmissionInProgressError(WorkflowBuilderError):
    """Raised when a session already has an outstanding execution request."""

    def __init__(self, message: str = "A workflow execution is already running", session_id: Optional[str] = None, **kwargs):
        super().__init__(message, category=ErrorCategory.CONFLICT, **kwargs)
        if session_id:
            self.add_context(session_id=session_id)


class ResourceExhaustionError(WorkflowBuilderError):
    """Raised when the service cannot hold more editor sessions."""

    def __init__(
        self,
        message: str,
        resource_type: Optional[str] = None,
        current_usage: Optional[int] = None,
        limit: Optional[int] = None,
        **kwargs
    ):
        super().__init__(message, category=ErrorCategory.RESOURCE, **kwargs)
        if resource_type:
            self.add_context(resource_type=resource_type)
        if current_usage is not None and limit is not None:
            self.add_details(current_usage=current_usage, limit=limit)


class ExecutionError(WorkflowBuilderError):
    """Raised when the execution engine responds with a failure."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        endpoint: Optional[str] = None,
        **kwargs
    ):
        super().__init__(message, category=ErrorCategory.EXECUTION, **kwargs)
        self.status_code = status_code
        if endpoint:
            self.add_context(endpoint=endpoint)
        if status_code is not None:
            self.add_details(status_code=status_code)


class TransportError(ExecutionError):
    """Raised when the execution engine cannot be reached."""

    def __init__(self, message: str = "request failed", **kwargs):
        super().__init__(message, **kwargs)
        self.category = ErrorCategory.NETWORK


class ConfigurationError(WorkflowBuilderError):
    """Raised when configuration is invalid or missing."""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        **kwargs
    ):
        super().__init__(
            message,
            category=ErrorCategory.CONFIGURATION,
            recoverable=False,
            **kwargs
        )
        if config_key:
            self.add_context(config_key=config_key)


def create_error_response(error: WorkflowBuilderError) -> Dict[str, Any]:
    """Create a standardized error response from a WorkflowBuilderError."""
    return {
        "error": error.error_code,
        "message": error.message,
        "details": {
            **error.details,
            "category": error.category.value,
            "recoverable": error.recoverable,
            "timestamp": error.timestamp.isoformat()
        },
        "context": error.context
    }


def get_status_code_for_error(error: WorkflowBuilderError) -> int:
    """Determine the HTTP status code for a workflow builder error."""
    if isinstance(error, NotFoundError):
        return 404
    if isinstance(error, SubmissionInProgressError):
        return 409
    if isinstance(error, (WorkflowValidationError, FormatError, GraphEditError)):
        return 400
    if isinstance(error, ExecutionError):
        return 502
    if isinstance(error, ResourceExhaustionError):
        return 503
    return 500
