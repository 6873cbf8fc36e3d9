"""Data models for the workflow builder."""

from .core import (
    NodeKind,
    Position,
    Port,
    Node,
    Connection,
    Workflow,
    ValidationResult,
    CanvasBounds,
    CanvasState,
    PointerEvent,
    ExecutionResponse,
    ExecutionReport,
)

__all__ = [
    "NodeKind",
    "Position",
    "Port",
    "Node",
    "Connection",
    "Workflow",
    "ValidationResult",
    "CanvasBounds",
    "CanvasState",
    "PointerEvent",
    "ExecutionResponse",
    "ExecutionReport",
]
