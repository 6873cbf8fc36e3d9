"""Static catalogue of workflow node kinds."""

import uuid
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple, Type, Union

from pydantic import BaseModel

from ..models.core import CONFIG_MODELS, Node, NodeKind, Position
from .exceptions import NodeTypeError
from .logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class NodeTypeInfo:
    """Palette metadata and port shape of a node kind."""
    kind: NodeKind
    label: str
    icon: str
    color: str
    description: str
    inputs: Tuple[str, ...]
    outputs: Tuple[str, ...]
    config_model: Type[BaseModel]

    def to_dict(self) -> Dict[str, object]:
        """Convert to a JSON-friendly dictionary for palette clients."""
        return {
            "type": self.kind.value,
            "label": self.label,
            "icon": self.icon,
            "color": self.color,
            "description": self.description,
            "inputs": list(self.inputs),
            "outputs": list(self.outputs),
            "default_config": self.config_model().model_dump(),
        }


def _node_type(kind: NodeKind, label: str, icon: str, color: str, description: str,
               inputs: Tuple[str, ...], outputs: Tuple[str, ...]) -> NodeTypeInfo:
    return NodeTypeInfo(
        kind=kind,
        label=label,
        icon=icon,
        color=color,
        description=description,
        inputs=inputs,
        outputs=outputs,
        config_model=CONFIG_MODELS[kind],
    )


# Palette order
NODE_TYPES: Dict[NodeKind, NodeTypeInfo] = {
    info.kind: info for info in (
        _node_type(NodeKind.START, "Start", "🚀", "green", "Workflow entry point", (), ("output",)),
        _node_type(NodeKind.ACTION, "Action", "⚡", "blue", "Execute a task or API call", ("input",), ("success", "error")),
        _node_type(NodeKind.CONDITION, "Condition", "🔀", "yellow", "Decision point with branches", ("input",), ("true", "false")),
        _node_type(NodeKind.LOOP, "Loop", "🔄", "purple", "Repeat actions", ("input",), ("complete", "error")),
        _node_type(NodeKind.DELAY, "Delay", "⏱️", "orange", "Wait for a period", ("input",), ("output",)),
        _node_type(NodeKind.END, "End", "🏁", "red", "Workflow exit point", ("input",), ()),
    )
}


def get_node_type(kind: Union[NodeKind, str]) -> NodeTypeInfo:
    """
    Look up the registry entry for a node kind.

    Raises:
        NodeTypeError: If the kind is not one of the known node kinds
    """
    try:
        return NODE_TYPES[NodeKind(kind)]
    except ValueError:
        raise NodeTypeError(f"Unknown node type: {kind}", kind=str(kind))


def list_node_types() -> List[NodeTypeInfo]:
    """Return all node kinds in palette order."""
    return list(NODE_TYPES.values())


def default_label(kind: Union[NodeKind, str], existing_nodes: List[Node]) -> str:
    """Label a new node "<KindLabel> <N>", N counting existing nodes of the kind."""
    node_type = get_node_type(kind)
    count = sum(1 for node in existing_nodes if node.kind == node_type.kind)
    return f"{node_type.label} {count + 1}"


def generate_id() -> str:
    """Generate a unique identifier for nodes and connections."""
    return uuid.uuid4().hex


def create_node(kind: Union[NodeKind, str], position: Position, label: Optional[str] = None,
                existing_nodes: Optional[List[Node]] = None) -> Node:
    """
    Create a node of the given kind with the registry's ports and a zero config.

    Args:
        kind: Node kind
        position: Initial canvas position, used as given
        label: Display label; "<KindLabel> <N>" when omitted
        existing_nodes: Nodes already in the workflow, used to number the default label

    Returns:
        Node: The new node with a fresh identifier
    """
    node_type = get_node_type(kind)
    node = Node(
        id=generate_id(),
        kind=node_type.kind,
        label=label if label is not None else default_label(node_type.kind, existing_nodes or []),
        position=position,
        config=node_type.config_model(),
    )
    logger.debug(f"Created {node.kind.value} node {node.id}")
    return node
