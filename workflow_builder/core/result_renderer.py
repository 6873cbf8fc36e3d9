"""Correlation of execution traces with workflow nodes for display."""

import json
from typing import Any, Dict, Optional

from ..models.core import (
    ExecutionReport,
    ExecutionResponse,
    ExecutionSummary,
    RenderedNodeResult,
    TraceStep,
    Workflow,
)
from .logging import get_logger

logger = get_logger(__name__)


def fallback_label(node_id: str) -> str:
    return f"Node {node_id}"


def render_value(value: Any) -> Optional[str]:
    """Render an opaque engine value as display text; objects become pretty JSON."""
    if value is None or value == "":
        return None
    if isinstance(value, (dict, list)):
        return json.dumps(value, indent=2, ensure_ascii=False, default=str)
    return str(value)


def format_seconds(value: Optional[float]) -> Optional[str]:
    if not value:
        return None
    return f"{value:g}s"


def format_metrics(metrics: Optional[Dict[str, Any]]) -> Dict[str, str]:
    """Format performance metrics: numbers to two decimals, keys with spaces."""
    formatted: Dict[str, str] = {}
    for key, value in (metrics or {}).items():
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            text = f"{value:.2f}"
        else:
            text = str(value)
        formatted[key.replace("_", " ")] = text
    return formatted


def render_execution(workflow: Workflow, response: ExecutionResponse) -> ExecutionReport:
    """
    Map an execution response onto the workflow's nodes.

    Node IDs that are not part of the workflow (for example after the
    graph was edited or re-imported) are shown as "Node <id>" instead of
    failing the whole report.

    Args:
        workflow: Workflow currently in the editor
        response: Trace returned by the execution engine

    Returns:
        ExecutionReport: Display-ready summary, node rows and trace strip
    """
    stats = response.execution_stats
    summary = ExecutionSummary(
        nodes_executed=stats.nodes_executed,
        total_time=format_seconds(stats.total_time) or "N/A",
        branches_taken=stats.branches_taken,
        loops_completed=stats.loops_completed,
    )

    node_results = []
    unknown = 0
    for result in response.node_results:
        node = workflow.get_node(result.node_id)
        if node is None:
            unknown += 1
        node_results.append(RenderedNodeResult(
            node_id=result.node_id,
            label=node.label if node is not None else fallback_label(result.node_id),
            kind=node.kind.value if node is not None else result.node_type,
            status=result.status,
            output=render_value(result.output),
            error=result.error or None,
            execution_time=format_seconds(result.execution_time),
            known_node=node is not None,
        ))

    trace = []
    for node_id in response.execution_path:
        node = workflow.get_node(node_id)
        trace.append(TraceStep(
            node_id=node_id,
            label=node.label if node is not None else fallback_label(node_id),
            kind=node.kind.value if node is not None else None,
        ))

    if unknown:
        logger.debug(f"{unknown} node result(s) reference nodes missing from workflow '{workflow.name}'")

    return ExecutionReport(
        summary=summary,
        node_results=node_results,
        trace=trace,
        final_output=render_value(response.final_output),
        performance_metrics=format_metrics(response.performance_metrics),
    )
