"""Core Pydantic models for the workflow builder."""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Type, Union
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class NodeKind(str, Enum):
    """Enumeration of workflow node kinds."""
    START = "start"
    ACTION = "action"
    CONDITION = "condition"
    LOOP = "loop"
    DELAY = "delay"
    END = "end"


class PortDirection(str, Enum):
    """Direction of a node port."""
    INPUT = "input"
    OUTPUT = "output"


class NodeStatus(str, Enum):
    """Per-node outcome reported by the execution engine."""
    SUCCESS = "success"
    ERROR = "error"
    PENDING = "pending"


def _coerce_identifier(value):
    """Accept numeric identifiers from older documents as strings."""
    if isinstance(value, bool):
        raise ValueError("Identifier must be a string")
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, str):
        if not value.strip():
            raise ValueError("Identifier cannot be empty")
        return value.strip()
    return value


class Position(BaseModel):
    """Top-left corner of a node on the canvas."""
    x: float = Field(default=0.0, description="Horizontal offset from the canvas origin")
    y: float = Field(default=0.0, description="Vertical offset from the canvas origin")


# Node configuration, one model per kind

class ActionConfig(BaseModel):
    """Free-text instructions for an action node."""
    action: str = Field(default="", description="Description of the action to perform")


class ConditionConfig(BaseModel):
    """Boolean expression evaluated by a condition node."""
    condition: str = Field(default="", description="Expression, e.g. status == 'success'")


class DelayConfig(BaseModel):
    """Wait period of a delay node."""
    delay: int = Field(default=0, ge=0, description="Delay in seconds")


class LoopConfig(BaseModel):
    """Iteration count of a loop node."""
    loop_count: int = Field(default=1, ge=1, description="Number of iterations")


class EmptyConfig(BaseModel):
    """Start and end nodes carry no configuration."""


NodeConfig = Union[ActionConfig, ConditionConfig, DelayConfig, LoopConfig, EmptyConfig]

CONFIG_MODELS: Dict[NodeKind, Type[BaseModel]] = {
    NodeKind.START: EmptyConfig,
    NodeKind.ACTION: ActionConfig,
    NodeKind.CONDITION: ConditionConfig,
    NodeKind.LOOP: LoopConfig,
    NodeKind.DELAY: DelayConfig,
    NodeKind.END: EmptyConfig,
}


class Port(BaseModel):
    """A named attachment point on a node."""
    node_id: str = Field(..., description="Owning node")
    direction: PortDirection = Field(..., description="Input or output")
    name: str = Field(..., description="Kind-specific port name")


class Node(BaseModel):
    """A single step of a workflow graph."""
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., description="Unique identifier for the node")
    kind: NodeKind = Field(..., alias="type", description="Node kind, fixed at creation")
    label: str = Field(default="", description="Display label")
    position: Position = Field(default_factory=Position, description="Canvas position")
    config: NodeConfig = Field(default_factory=EmptyConfig, description="Kind-specific configuration")
    inputs: List[str] = Field(default_factory=list, description="Input port names")
    outputs: List[str] = Field(default_factory=list, description="Output port names")

    @model_validator(mode='before')
    @classmethod
    def resolve_document_shape(cls, data):
        """Select the config model for the kind and stamp the registry ports."""
        if not isinstance(data, dict):
            return data
        data = dict(data)

        # Older documents store the position as flat x/y keys
        if "position" not in data and ("x" in data or "y" in data):
            data["position"] = {"x": data.pop("x", 0), "y": data.pop("y", 0)}

        raw_kind = data.get("type", data.get("kind"))
        try:
            kind = NodeKind(raw_kind)
        except ValueError:
            return data

        config = data.get("config")
        if not isinstance(config, BaseModel):
            if config is None:
                config = {}
            if not isinstance(config, dict):
                raise ValueError("Node config must be an object")
            data["config"] = CONFIG_MODELS[kind].model_validate(config)

        from ..core.node_registry import get_node_type
        node_type = get_node_type(kind)
        data["inputs"] = list(node_type.inputs)
        data["outputs"] = list(node_type.outputs)
        return data

    @field_validator('id', mode='before')
    @classmethod
    def validate_id(cls, id_value):
        """Ensure node ID is a non-empty string."""
        return _coerce_identifier(id_value)

    @model_validator(mode='after')
    def validate_config_kind(self):
        """Ensure the config variant matches the node kind."""
        expected = CONFIG_MODELS[self.kind]
        if type(self.config) is not expected:
            raise ValueError(
                f"Config of type {type(self.config).__name__} does not match node kind '{self.kind.value}'"
            )
        return self

    @property
    def ports(self) -> List[Port]:
        """All ports of the node, inputs first."""
        return (
            [Port(node_id=self.id, direction=PortDirection.INPUT, name=name) for name in self.inputs]
            + [Port(node_id=self.id, direction=PortDirection.OUTPUT, name=name) for name in self.outputs]
        )


class Connection(BaseModel):
    """A directed edge from an output port to an input port."""
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., description="Unique identifier for the connection")
    from_node: str = Field(..., alias="from", description="Source node ID")
    from_port: str = Field(..., alias="fromPort", description="Source output port name")
    to_node: str = Field(..., alias="to", description="Target node ID")
    to_port: str = Field(..., alias="toPort", description="Target input port name")

    @field_validator('id', 'from_node', 'to_node', mode='before')
    @classmethod
    def validate_identifiers(cls, value):
        """Ensure identifiers are non-empty strings."""
        return _coerce_identifier(value)

    def touches(self, node_id: str) -> bool:
        """Whether the node is either endpoint of this connection."""
        return self.from_node == node_id or self.to_node == node_id


class Workflow(BaseModel):
    """Complete workflow graph plus metadata."""
    name: str = Field(default="", description="Workflow name, required for submission")
    description: str = Field(default="", description="Optional description")
    nodes: List[Node] = Field(default_factory=list, description="Nodes of the graph")
    connections: List[Connection] = Field(default_factory=list, description="Connections between nodes")

    @field_validator('name', 'description', mode='before')
    @classmethod
    def default_text(cls, value):
        """Treat missing text as empty."""
        return "" if value is None else value

    @field_validator('nodes')
    @classmethod
    def validate_unique_node_ids(cls, nodes):
        """Ensure all node IDs are unique."""
        node_ids = [node.id for node in nodes]
        if len(node_ids) != len(set(node_ids)):
            raise ValueError("All node IDs must be unique")
        return nodes

    @field_validator('connections')
    @classmethod
    def validate_unique_connection_ids(cls, connections):
        """Ensure all connection IDs are unique."""
        connection_ids = [connection.id for connection in connections]
        if len(connection_ids) != len(set(connection_ids)):
            raise ValueError("All connection IDs must be unique")
        return connections

    @model_validator(mode='after')
    def validate_connection_endpoints(self):
        """Ensure every connection references nodes of this workflow."""
        node_ids = {node.id for node in self.nodes}
        for connection in self.connections:
            if connection.from_node not in node_ids:
                raise ValueError(f"Connection references non-existent source node: {connection.from_node}")
            if connection.to_node not in node_ids:
                raise ValueError(f"Connection references non-existent target node: {connection.to_node}")
        return self

    def get_node(self, node_id: str) -> Optional[Node]:
        """Return the node with the given ID, if present."""
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def nodes_of_kind(self, kind: NodeKind) -> List[Node]:
        return [node for node in self.nodes if node.kind == kind]


class ValidationResult(BaseModel):
    """Result of workflow validation."""
    is_valid: bool = Field(..., description="Whether the workflow may be submitted")
    errors: List[str] = Field(default_factory=list, description="Ordered validation messages")


# Canvas interaction

class CanvasMode(str, Enum):
    """States of the canvas interaction state machine."""
    IDLE = "idle"
    DRAGGING = "dragging"


class PointerEventType(str, Enum):
    """Host pointer events understood by the canvas controller."""
    POINTER_DOWN = "pointer_down"
    POINTER_MOVE = "pointer_move"
    POINTER_UP = "pointer_up"
    POINTER_LEAVE = "pointer_leave"


class PointerEvent(BaseModel):
    """A pointer event in canvas coordinates."""
    type: PointerEventType = Field(..., description="Event type")
    x: float = Field(default=0.0, description="Pointer x in canvas coordinates")
    y: float = Field(default=0.0, description="Pointer y in canvas coordinates")
    node_id: Optional[str] = Field(None, description="Node under the pointer, if the host knows it")

    @field_validator('node_id', mode='before')
    @classmethod
    def validate_node_id(cls, value):
        return None if value is None else _coerce_identifier(value)


class CanvasBounds(BaseModel):
    """Canvas and node dimensions used for clamping."""
    width: float = Field(default=800.0, gt=0)
    height: float = Field(default=500.0, gt=0)
    node_width: float = Field(default=120.0, gt=0)
    node_height: float = Field(default=80.0, gt=0)

    @model_validator(mode='after')
    def validate_node_fits(self):
        """Ensure a node fits inside the canvas."""
        if self.node_width > self.width or self.node_height > self.height:
            raise ValueError("Node dimensions must not exceed canvas dimensions")
        return self

    def clamp(self, x: float, y: float) -> Position:
        """Clamp a node origin so the node stays fully on the canvas."""
        return Position(
            x=max(0.0, min(x, self.width - self.node_width)),
            y=max(0.0, min(y, self.height - self.node_height)),
        )

    def contains(self, position: Position, x: float, y: float) -> bool:
        """Whether the point lies on a node placed at the given position."""
        return (
            position.x <= x <= position.x + self.node_width
            and position.y <= y <= position.y + self.node_height
        )


class CanvasState(BaseModel):
    """Interaction state: Idle, or Dragging a node with a pointer offset."""
    model_config = ConfigDict(frozen=True)

    mode: CanvasMode = Field(default=CanvasMode.IDLE)
    dragging_node_id: Optional[str] = Field(None, description="Node being dragged")
    offset: Position = Field(default_factory=Position, description="Pointer offset from the node origin")
    selected_node_id: Optional[str] = Field(None, description="Currently selected node")


class NodeMove(BaseModel):
    """A position change produced by the canvas controller."""
    node_id: str
    position: Position


class CanvasUpdate(BaseModel):
    """Result of feeding one pointer event to the canvas controller."""
    state: CanvasState
    move: Optional[NodeMove] = None


# Execution engine response

class ExecutionStats(BaseModel):
    """Execution statistics returned by the engine."""
    model_config = ConfigDict(extra='allow')

    nodes_executed: int = Field(default=0)
    branches_taken: int = Field(default=0)
    loops_completed: int = Field(default=0)
    total_time: Optional[float] = Field(None, description="Wall-clock time in seconds")


class NodeResult(BaseModel):
    """Outcome of one executed node."""
    node_id: str
    node_label: Optional[str] = None
    node_type: Optional[str] = None
    status: NodeStatus = NodeStatus.PENDING
    output: Any = None
    error: Optional[str] = None
    execution_time: Optional[float] = None

    @field_validator('node_id', mode='before')
    @classmethod
    def validate_node_id(cls, value):
        return _coerce_identifier(value)


class ExecutionResponse(BaseModel):
    """Execution trace returned by the external engine."""
    success: bool = Field(default=True)
    error: Optional[str] = Field(None)
    execution_stats: ExecutionStats = Field(default_factory=ExecutionStats)
    node_results: List[NodeResult] = Field(default_factory=list)
    execution_path: List[str] = Field(default_factory=list)
    final_output: Any = Field(None)
    performance_metrics: Optional[Dict[str, Any]] = Field(None)

    @field_validator('execution_path', mode='before')
    @classmethod
    def validate_execution_path(cls, execution_path):
        """Coerce path entries to node identifier strings."""
        if execution_path is None:
            return []
        return [_coerce_identifier(node_id) for node_id in execution_path]

    @field_validator('execution_stats', mode='before')
    @classmethod
    def default_stats(cls, value):
        return {} if value is None else value

    @field_validator('node_results', mode='before')
    @classmethod
    def default_results(cls, value):
        return [] if value is None else value


# Rendered execution report

class ExecutionSummary(BaseModel):
    """Headline numbers of an execution."""
    nodes_executed: int
    total_time: str
    branches_taken: int
    loops_completed: int


class RenderedNodeResult(BaseModel):
    """A node result correlated with the workflow's nodes."""
    node_id: str
    label: str
    kind: Optional[str] = None
    status: NodeStatus
    output: Optional[str] = None
    error: Optional[str] = None
    execution_time: Optional[str] = None
    known_node: bool = True


class TraceStep(BaseModel):
    """One entry of the execution path strip."""
    node_id: str
    label: str
    kind: Optional[str] = None


class ExecutionReport(BaseModel):
    """Display-ready mapping of an execution response onto a workflow."""
    summary: ExecutionSummary
    node_results: List[RenderedNodeResult] = Field(default_factory=list)
    trace: List[TraceStep] = Field(default_factory=list)
    final_output: Optional[str] = None
    performance_metrics: Dict[str, str] = Field(default_factory=dict)

    def format_trace(self, separator: str = " → ") -> str:
        """Render the execution path as a single line."""
        return separator.join(step.label for step in self.trace)


# Editor sessions

class SessionSummary(BaseModel):
    """Summary information about an editor session."""
    session_id: str
    workflow_name: str
    node_count: int
    connection_count: int
    running: bool
    created_at: datetime


class SessionSnapshot(BaseModel):
    """Full view of an editor session."""
    session_id: str
    workflow: Workflow
    canvas: CanvasState
    running: bool
    last_error: Optional[str] = None
    has_result: bool = False
    created_at: datetime
