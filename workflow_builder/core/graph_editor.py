"""In-memory editing of a workflow graph."""

import random
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ValidationError

from ..models.core import (
    CONFIG_MODELS,
    CanvasBounds,
    Connection,
    Node,
    NodeKind,
    Position,
    Workflow,
)
from .exceptions import GraphEditError, NodeNotFoundError, ConnectionNotFoundError
from .logging import get_logger
from .node_registry import create_node, generate_id

logger = get_logger(__name__)

# Area of the canvas where palette nodes are dropped when no position is given
PLACEMENT_ORIGIN = (50.0, 50.0)
PLACEMENT_SPAN = (400.0, 300.0)


class WorkflowEditor:
    """Applies user edits to a workflow while keeping its invariants.

    Node deletion cascades to every connection touching the node, new
    connections must reference existing nodes, and every position written
    through the editor is clamped to the canvas bounds.
    """

    def __init__(self, workflow: Optional[Workflow] = None, bounds: Optional[CanvasBounds] = None,
                 rng: Optional[random.Random] = None):
        self.workflow = workflow if workflow is not None else Workflow()
        self.bounds = bounds or CanvasBounds()
        self._rng = rng or random.Random()

    def set_metadata(self, name: Optional[str] = None, description: Optional[str] = None) -> Workflow:
        """Update the workflow name and/or description."""
        if name is not None:
            self.workflow.name = name
        if description is not None:
            self.workflow.description = description
        return self.workflow

    def get_node(self, node_id: str) -> Node:
        """
        Retrieve a node by its ID.

        Raises:
            NodeNotFoundError: If the node is not part of the workflow
        """
        node = self.workflow.get_node(node_id)
        if node is None:
            raise NodeNotFoundError(node_id)
        return node

    def add_node(self, kind: Union[NodeKind, str], position: Optional[Position] = None,
                 label: Optional[str] = None) -> Node:
        """
        Add a node of the given kind to the workflow.

        Args:
            kind: Node kind from the registry
            position: Requested position; a random drop point when omitted
            label: Display label; "<KindLabel> <N>" when omitted

        Returns:
            Node: The created node
        """
        if position is None:
            position = Position(
                x=self._rng.random() * PLACEMENT_SPAN[0] + PLACEMENT_ORIGIN[0],
                y=self._rng.random() * PLACEMENT_SPAN[1] + PLACEMENT_ORIGIN[1],
            )
        node = create_node(
            kind, self.bounds.clamp(position.x, position.y), label=label, existing_nodes=self.workflow.nodes
        )
        self.workflow.nodes.append(node)
        logger.debug(f"Added node {node.id} ({node.label}) at ({node.position.x:.1f}, {node.position.y:.1f})")
        return node

    def update_node(self, node_id: str, label: Optional[str] = None,
                    config: Optional[Union[BaseModel, Dict[str, Any]]] = None) -> Node:
        """
        Update the mutable attributes of a node.

        Only the label and config can change; the kind and ports are fixed.

        Raises:
            NodeNotFoundError: If the node does not exist
            GraphEditError: If the config does not fit the node kind
        """
        node = self.get_node(node_id)
        config_model = CONFIG_MODELS[node.kind]

        if config is not None:
            if isinstance(config, BaseModel):
                if type(config) is not config_model:
                    raise GraphEditError(
                        f"Config of type {type(config).__name__} does not match node kind '{node.kind.value}'",
                        operation="update_node"
                    )
                new_config = config
            else:
                merged = {**node.config.model_dump(), **config}
                try:
                    new_config = config_model.model_validate(merged)
                except ValidationError as e:
                    raise GraphEditError(
                        f"Invalid config for {node.kind.value} node: {e.errors()[0]['msg']}",
                        operation="update_node"
                    ).add_details(validation_errors=[str(err["msg"]) for err in e.errors()])
            node.config = new_config

        if label is not None:
            node.label = label

        logger.debug(f"Updated node {node_id}")
        return node

    def move_node(self, node_id: str, x: float, y: float) -> Node:
        """Move a node, clamping it to the canvas bounds."""
        node = self.get_node(node_id)
        node.position = self.bounds.clamp(x, y)
        return node

    def delete_node(self, node_id: str) -> List[Connection]:
        """
        Delete a node and every connection that references it.

        Returns:
            List[Connection]: The connections removed along with the node
        """
        node = self.get_node(node_id)
        self.workflow.nodes = [n for n in self.workflow.nodes if n.id != node_id]

        removed = [c for c in self.workflow.connections if c.touches(node_id)]
        self.workflow.connections = [c for c in self.workflow.connections if not c.touches(node_id)]

        logger.debug(f"Deleted node {node_id} ({node.label}) and {len(removed)} connection(s)")
        return removed

    def add_connection(self, from_node_id: str, from_port: str, to_node_id: str, to_port: str) -> Connection:
        """
        Connect an output port to an input port.

        Port names and kinds are not checked, and self-loops are allowed;
        structural soundness is left to the validator.

        Raises:
            GraphEditError: If either endpoint node does not exist
        """
        for endpoint in (from_node_id, to_node_id):
            if self.workflow.get_node(endpoint) is None:
                raise GraphEditError(
                    f"Connection references non-existent node: {endpoint}",
                    operation="add_connection"
                )

        connection = Connection(
            id=generate_id(),
            from_node=from_node_id,
            from_port=from_port,
            to_node=to_node_id,
            to_port=to_port,
        )
        self.workflow.connections.append(connection)
        logger.debug(f"Connected {from_node_id}.{from_port} -> {to_node_id}.{to_port}")
        return connection

    def delete_connection(self, connection_id: str) -> Connection:
        """Remove a connection by its ID."""
        for connection in self.workflow.connections:
            if connection.id == connection_id:
                self.workflow.connections.remove(connection)
                logger.debug(f"Deleted connection {connection_id}")
                return connection
        raise ConnectionNotFoundError(connection_id)

    def replace_workflow(self, workflow: Workflow) -> Workflow:
        """Swap in a different workflow wholesale."""
        self.workflow = workflow
        return workflow

