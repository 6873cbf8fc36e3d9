"""Tests for the graph model, node registry, editor, canvas controller and validator."""

import random

import pytest
from pydantic import ValidationError

from workflow_builder.core.canvas import (
    CanvasController,
    find_node_at,
    from_host_event,
    handle_pointer_event,
)
from workflow_builder.core.exceptions import (
    ConnectionNotFoundError,
    GraphEditError,
    NodeNotFoundError,
    NodeTypeError,
)
from workflow_builder.core.graph_editor import WorkflowEditor
from workflow_builder.core.node_registry import (
    create_node,
    default_label,
    get_node_type,
    list_node_types,
)
from workflow_builder.core.validator import validate_workflow
from workflow_builder.models.core import (
    ActionConfig,
    CanvasBounds,
    CanvasMode,
    CanvasState,
    ConditionConfig,
    DelayConfig,
    EmptyConfig,
    LoopConfig,
    Node,
    NodeKind,
    PointerEvent,
    PointerEventType,
    Position,
    PortDirection,
    Workflow,
)


class TestNodeRegistry:
    """Test cases for the node type registry."""

    def test_palette_order(self):
        """Test that node kinds are listed in palette order."""
        kinds = [node_type.kind for node_type in list_node_types()]
        assert kinds == [
            NodeKind.START, NodeKind.ACTION, NodeKind.CONDITION,
            NodeKind.LOOP, NodeKind.DELAY, NodeKind.END,
        ]

    @pytest.mark.parametrize("kind,inputs,outputs", [
        ("start", (), ("output",)),
        ("action", ("input",), ("success", "error")),
        ("condition", ("input",), ("true", "false")),
        ("loop", ("input",), ("complete", "error")),
        ("delay", ("input",), ("output",)),
        ("end", ("input",), ()),
    ])
    def test_port_shapes(self, kind, inputs, outputs):
        """Test the fixed port shape of each kind."""
        node_type = get_node_type(kind)
        assert node_type.inputs == inputs
        assert node_type.outputs == outputs

    def test_unknown_kind(self):
        """Test that unknown kinds are rejected."""
        with pytest.raises(NodeTypeError):
            get_node_type("webhook")

    def test_palette_entry_dict(self):
        """Test the palette representation sent to clients."""
        entry = get_node_type(NodeKind.LOOP).to_dict()
        assert entry["type"] == "loop"
        assert entry["label"] == "Loop"
        assert entry["default_config"] == {"loop_count": 1}

    def test_create_node_stamps_ports_and_default_config(self):
        """Test that created nodes carry registry ports and a zero config."""
        node = create_node(NodeKind.CONDITION, Position(x=10, y=20))
        assert node.outputs == ["true", "false"]
        assert isinstance(node.config, ConditionConfig)
        assert node.config.condition == ""
        assert [(p.direction, p.name) for p in node.ports] == [
            (PortDirection.INPUT, "input"),
            (PortDirection.OUTPUT, "true"),
            (PortDirection.OUTPUT, "false"),
        ]

    def test_default_label_counts_existing_nodes_of_kind(self):
        """Test that default labels number nodes per kind."""
        nodes = [
            create_node(NodeKind.ACTION, Position()),
            create_node(NodeKind.START, Position()),
            create_node(NodeKind.ACTION, Position()),
        ]
        assert default_label(NodeKind.ACTION, nodes) == "Action 3"
        assert default_label(NodeKind.DELAY, nodes) == "Delay 1"

    def test_create_node_without_label_numbers_by_kind(self):
        """Test that an unlabeled node gets "<Kind> <N>" rather than the bare kind name."""
        assert create_node(NodeKind.START, Position()).label == "Start 1"

        existing = [create_node(NodeKind.START, Position()), create_node(NodeKind.START, Position())]
        assert create_node(NodeKind.START, Position(), existing_nodes=existing).label == "Start 3"
        assert create_node(NodeKind.LOOP, Position(), existing_nodes=existing).label == "Loop 1"
        assert create_node(NodeKind.START, Position(), label="Entry").label == "Entry"


class TestGraphModel:
    """Test cases for the node, connection and workflow models."""

    def test_config_variant_follows_kind(self):
        """Test that configs are parsed into the kind's variant."""
        node = Node.model_validate({"id": "n1", "type": "delay", "config": {"delay": 30}})
        assert isinstance(node.config, DelayConfig)
        assert node.config.delay == 30

        start = Node.model_validate({"id": "n2", "type": "start"})
        assert isinstance(start.config, EmptyConfig)

    def test_config_constraints(self):
        """Test that negative delays and zero loop counts are rejected."""
        with pytest.raises(ValidationError):
            Node.model_validate({"id": "n1", "type": "delay", "config": {"delay": -1}})
        with pytest.raises(ValidationError):
            Node.model_validate({"id": "n1", "type": "loop", "config": {"loop_count": 0}})

    def test_mismatched_config_model_is_rejected(self):
        """Test that a config model of another kind cannot be attached."""
        with pytest.raises(ValidationError):
            Node(id="n1", kind=NodeKind.LOOP, config=ActionConfig(action="x"))

    def test_document_ports_are_ignored(self):
        """Test that ports always come from the registry."""
        node = Node.model_validate({"id": "n1", "type": "end", "inputs": ["a", "b"], "outputs": ["c"]})
        assert node.inputs == ["input"]
        assert node.outputs == []

    def test_numeric_identifiers_are_coerced(self):
        """Test that numeric ids from older documents become strings."""
        node = Node.model_validate({"id": 17, "type": "start", "x": 5, "y": 6})
        assert node.id == "17"
        assert node.position == Position(x=5, y=6)

    def test_duplicate_node_ids(self):
        """Test that node ids must be unique."""
        with pytest.raises(ValidationError):
            Workflow.model_validate({
                "name": "Dup",
                "nodes": [{"id": "a", "type": "start"}, {"id": "a", "type": "end"}],
            })

    def test_dangling_connection(self):
        """Test that connections must reference existing nodes."""
        with pytest.raises(ValidationError):
            Workflow.model_validate({
                "name": "Dangling",
                "nodes": [{"id": "a", "type": "start"}],
                "connections": [{"id": "c", "from": "a", "fromPort": "output", "to": "b", "toPort": "input"}],
            })


class TestWorkflowEditor:
    """Test cases for WorkflowEditor."""

    def test_add_node_defaults(self, editor):
        """Test default labels and random placement of palette nodes."""
        first = editor.add_node("action")
        second = editor.add_node("action")

        assert first.label == "Action 1"
        assert second.label == "Action 2"
        for node in (first, second):
            assert 50 <= node.position.x < 450
            assert 50 <= node.position.y < 350
            assert isinstance(node.config, ActionConfig)

    def test_label_counter_uses_current_node_count(self, editor):
        """Test that deleted nodes no longer count towards the default label."""
        first = editor.add_node("delay")
        editor.add_node("delay")
        editor.delete_node(first.id)
        third = editor.add_node("delay")
        assert third.label == "Delay 2"

    def test_add_node_clamps_position(self, editor):
        """Test that explicit positions are clamped to the canvas."""
        node = editor.add_node(NodeKind.END, Position(x=-25, y=1000))
        assert node.position == Position(x=0, y=420)

    def test_add_node_unknown_kind(self, editor):
        """Test that unknown kinds cannot be added."""
        with pytest.raises(NodeTypeError):
            editor.add_node("webhook")
        assert editor.workflow.nodes == []

    def test_update_node_merges_config(self, editor):
        """Test label and partial config updates."""
        node = editor.add_node(NodeKind.LOOP)
        updated = editor.update_node(node.id, label="Retry", config={"loop_count": 3})
        assert updated.label == "Retry"
        assert updated.config == LoopConfig(loop_count=3)
        assert updated.kind == NodeKind.LOOP

    def test_update_node_rejects_invalid_config(self, editor):
        """Test that invalid config values leave the node untouched."""
        node = editor.add_node(NodeKind.DELAY)
        with pytest.raises(GraphEditError):
            editor.update_node(node.id, config={"delay": -5})
        with pytest.raises(GraphEditError):
            editor.update_node(node.id, config=ActionConfig(action="wrong kind"))
        assert node.config == DelayConfig(delay=0)

    def test_update_missing_node(self, editor):
        """Test editing a node that does not exist."""
        with pytest.raises(NodeNotFoundError):
            editor.update_node("missing", label="x")

    def test_move_node_clamps(self, editor):
        """Test that moves stay inside the canvas."""
        node = editor.add_node(NodeKind.START, Position(x=100, y=100))
        editor.move_node(node.id, 5000, -30)
        assert node.position == Position(x=680, y=0)

    def test_delete_node_cascades(self, editor, linear_workflow):
        """Test that deleting a node removes its connections."""
        action = linear_workflow.nodes_of_kind(NodeKind.ACTION)[0]
        removed = editor.delete_node(action.id)

        assert len(removed) == 2
        assert linear_workflow.connections == []
        assert linear_workflow.get_node(action.id) is None
        assert len(linear_workflow.nodes) == 2

    def test_add_connection_requires_existing_nodes(self, editor):
        """Test that connections must reference nodes of the workflow."""
        start = editor.add_node(NodeKind.START)
        with pytest.raises(GraphEditError):
            editor.add_connection(start.id, "output", "ghost", "input")
        assert editor.workflow.connections == []

    def test_add_connection_is_lenient_about_ports(self, editor):
        """Test that any port pair and self-loops are accepted."""
        loop = editor.add_node(NodeKind.LOOP)
        connection = editor.add_connection(loop.id, "complete", loop.id, "input")
        assert connection.from_node == connection.to_node == loop.id
        assert connection in editor.workflow.connections

    def test_delete_connection(self, editor, linear_workflow):
        """Test connection removal by id."""
        connection = linear_workflow.connections[0]
        assert editor.delete_connection(connection.id) == connection
        assert len(linear_workflow.connections) == 1
        with pytest.raises(ConnectionNotFoundError):
            editor.delete_connection(connection.id)


class TestCanvasInteraction:
    """Test cases for the canvas state machine and its controller."""

    @pytest.fixture
    def canvas_editor(self):
        editor = WorkflowEditor(Workflow(name="Canvas"), rng=random.Random(1))
        editor.add_node(NodeKind.START, Position(x=100, y=100))
        return editor

    def test_drag_gesture(self, canvas_editor):
        """Test pointer down, move and up on a node."""
        controller = CanvasController(canvas_editor)
        node = canvas_editor.workflow.nodes[0]

        update = controller.dispatch(PointerEvent(type=PointerEventType.POINTER_DOWN, x=110, y=120))
        assert update.state.mode == CanvasMode.DRAGGING
        assert update.state.dragging_node_id == node.id
        assert update.state.offset == Position(x=10, y=20)
        assert controller.selected_node_id == node.id

        update = controller.dispatch(PointerEvent(type=PointerEventType.POINTER_MOVE, x=300, y=300))
        assert update.move.position == Position(x=290, y=280)
        assert node.position == Position(x=290, y=280)

        controller.dispatch(PointerEvent(type=PointerEventType.POINTER_MOVE, x=2000, y=2000))
        assert node.position == Position(x=680, y=420)

        update = controller.dispatch(PointerEvent(type=PointerEventType.POINTER_UP, x=0, y=0))
        assert update.state.mode == CanvasMode.IDLE
        assert update.move is None
        assert controller.selected_node_id == node.id

    def test_move_while_idle_is_ignored(self, canvas_editor):
        """Test that pointer moves outside a drag change nothing."""
        controller = CanvasController(canvas_editor)
        update = controller.dispatch(PointerEvent(type=PointerEventType.POINTER_MOVE, x=300, y=300))
        assert update.move is None
        assert canvas_editor.workflow.nodes[0].position == Position(x=100, y=100)

    def test_pointer_down_on_empty_canvas_clears_selection(self, canvas_editor):
        """Test that clicking the background deselects."""
        controller = CanvasController(canvas_editor)
        controller.select(canvas_editor.workflow.nodes[0].id)

        update = controller.dispatch(PointerEvent(type=PointerEventType.POINTER_DOWN, x=700, y=10))
        assert update.state.mode == CanvasMode.IDLE
        assert update.state.selected_node_id is None

    def test_pointer_leave_ends_drag(self, canvas_editor):
        """Test that leaving the canvas drops the node."""
        controller = CanvasController(canvas_editor)
        controller.dispatch(PointerEvent(type=PointerEventType.POINTER_DOWN, x=150, y=150))
        update = controller.dispatch(PointerEvent(type=PointerEventType.POINTER_LEAVE))
        assert update.state.mode == CanvasMode.IDLE
        assert not controller.is_dragging

    def test_hit_test_prefers_topmost_node(self, canvas_editor):
        """Test that overlapping nodes resolve to the last one drawn."""
        top = canvas_editor.add_node(NodeKind.END, Position(x=150, y=120))
        hit = find_node_at(canvas_editor.workflow, canvas_editor.bounds, 160, 130)
        assert hit.id == top.id

    def test_explicit_node_id_wins_over_hit_test(self, canvas_editor):
        """Test that the host can name the pressed node directly."""
        other = canvas_editor.add_node(NodeKind.END, Position(x=500, y=300))
        state = CanvasState()
        update = handle_pointer_event(
            PointerEvent(type=PointerEventType.POINTER_DOWN, x=510, y=310, node_id=other.id),
            state, canvas_editor.workflow, canvas_editor.bounds
        )
        assert update.state.dragging_node_id == other.id
        assert state.mode == CanvasMode.IDLE

    def test_dragged_node_deleted_mid_gesture(self, canvas_editor):
        """Test that a drag of a deleted node falls back to idle."""
        controller = CanvasController(canvas_editor)
        node = canvas_editor.workflow.nodes[0]
        controller.dispatch(PointerEvent(type=PointerEventType.POINTER_DOWN, x=110, y=110))
        canvas_editor.delete_node(node.id)

        update = controller.dispatch(PointerEvent(type=PointerEventType.POINTER_MOVE, x=200, y=200))
        assert update.state.mode == CanvasMode.IDLE
        assert update.state.selected_node_id is None
        assert update.move is None

    def test_select_unknown_node(self, canvas_editor):
        """Test that only existing nodes can be selected."""
        controller = CanvasController(canvas_editor)
        with pytest.raises(NodeNotFoundError):
            controller.select("ghost")

    def test_forget_node(self, canvas_editor):
        """Test that forgetting the selected node clears the selection."""
        controller = CanvasController(canvas_editor)
        node_id = canvas_editor.workflow.nodes[0].id
        controller.select(node_id)
        assert controller.forget_node(node_id).selected_node_id is None

    def test_host_event_translation(self):
        """Test translation of DOM mouse events into canvas events."""
        event = from_host_event({"type": "mousedown", "clientX": 260, "clientY": 190, "nodeId": 42},
                                canvas_left=200, canvas_top=100)
        assert event.type == PointerEventType.POINTER_DOWN
        assert (event.x, event.y) == (60, 90)
        assert event.node_id == "42"

        event = from_host_event({"type": "pointer_move", "x": 3, "y": 4})
        assert event.type == PointerEventType.POINTER_MOVE
        assert (event.x, event.y) == (3, 4)

    def test_host_event_rejects_garbage(self):
        """Test that unknown event types and bad coordinates are rejected."""
        with pytest.raises(GraphEditError):
            from_host_event({"type": "keydown"})
        with pytest.raises(GraphEditError):
            from_host_event({"type": "mousemove", "clientX": "left"})

    def test_bounds_must_fit_node(self):
        """Test that canvas bounds smaller than a node are rejected."""
        with pytest.raises(ValidationError):
            CanvasBounds(width=100, height=500)


class TestValidator:
    """Test cases for workflow validation."""

    def test_empty_workflow(self):
        """Test that an unnamed empty workflow reports every structural rule."""
        result = validate_workflow(Workflow(name=""))
        assert not result.is_valid
        assert result.errors == [
            "Workflow name is required",
            "At least one node is required",
            "Workflow must have a start node",
            "Workflow must have an end node",
        ]

    def test_minimal_valid_workflow(self, editor):
        """Test that a connected start -> end workflow is valid."""
        start = editor.add_node(NodeKind.START)
        end = editor.add_node(NodeKind.END)
        editor.add_connection(start.id, "output", end.id, "input")

        result = validate_workflow(editor.workflow)
        assert result.is_valid
        assert result.errors == []

    def test_unconnected_end_node(self, editor):
        """Test that nodes without connections are counted."""
        start = editor.add_node(NodeKind.START)
        action = editor.add_node(NodeKind.ACTION)
        editor.add_node(NodeKind.END)
        editor.add_connection(start.id, "output", action.id, "input")

        result = validate_workflow(editor.workflow)
        assert result.errors == ["1 nodes are not connected to the workflow"]

    def test_whitespace_name(self, linear_workflow):
        """Test that a blank name is treated as missing."""
        linear_workflow.name = "   "
        assert validate_workflow(linear_workflow).errors == ["Workflow name is required"]

    def test_lone_start_node_is_not_disconnected(self, editor):
        """Test that start nodes are exempt from the connectivity rule."""
        editor.add_node(NodeKind.START)
        result = validate_workflow(editor.workflow)
        assert result.errors == ["Workflow must have an end node"]

    def test_cycles_are_allowed(self, editor):
        """Test that the validator performs no cycle analysis."""
        start = editor.add_node(NodeKind.START)
        loop = editor.add_node(NodeKind.LOOP)
        end = editor.add_node(NodeKind.END)
        editor.add_connection(start.id, "output", loop.id, "input")
        editor.add_connection(loop.id, "error", loop.id, "input")
        editor.add_connection(loop.id, "complete", end.id, "input")
        assert validate_workflow(editor.workflow).is_valid
