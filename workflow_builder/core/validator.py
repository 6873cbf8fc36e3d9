"""Structural checks that gate workflow submission."""

from typing import List

from ..models.core import NodeKind, ValidationResult, Workflow
from .logging import get_logger

logger = get_logger(__name__)

NAME_REQUIRED = "Workflow name is required"
NODES_REQUIRED = "At least one node is required"
START_REQUIRED = "Workflow must have a start node"
END_REQUIRED = "Workflow must have an end node"


def find_disconnected_nodes(workflow: Workflow) -> List[str]:
    """
    Find nodes that are not an endpoint of any connection.

    Start nodes are exempt since nothing needs to lead into them.

    Returns:
        List[str]: IDs of disconnected nodes in workflow order
    """
    connected = set()
    for connection in workflow.connections:
        connected.add(connection.from_node)
        connected.add(connection.to_node)

    return [
        node.id for node in workflow.nodes
        if node.kind != NodeKind.START and node.id not in connected
    ]


def validate_workflow(workflow: Workflow) -> ValidationResult:
    """
    Check a workflow against the submission rules.

    All rules are evaluated and every failure is reported, in rule order.
    There is deliberately no cycle, reachability or port compatibility
    analysis here.

    Args:
        workflow: The workflow to validate

    Returns:
        ValidationResult: Validity flag and ordered error messages
    """
    errors: List[str] = []

    if not workflow.name.strip():
        errors.append(NAME_REQUIRED)

    if not workflow.nodes:
        errors.append(NODES_REQUIRED)

    if not workflow.nodes_of_kind(NodeKind.START):
        errors.append(START_REQUIRED)

    if not workflow.nodes_of_kind(NodeKind.END):
        errors.append(END_REQUIRED)

    disconnected = find_disconnected_nodes(workflow)
    if disconnected:
        errors.append(f"{len(disconnected)} nodes are not connected to the workflow")

    logger.debug(f"Validated workflow '{workflow.name}': {len(errors)} error(s)")
    return ValidationResult(is_valid=not errors, errors=errors)
