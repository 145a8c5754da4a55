from typing import Dict, List, Optional, Sequence

import pytest

from nodescribe.core.GraphPrimitives import EXEC_PIN, Edge, Graph, Node, PinType, Port
from nodescribe.core.Types import NodeKind, PortDirection, PortFunction, ValueType
from nodescribe.synth.identity import IdentityCompactor
from nodescribe.synth.templates import trailing_comment


def exec_in(name: str = "execute") -> Port:
    return Port(name, PortDirection.INPUT, PortFunction.CONTROL, EXEC_PIN)


def exec_out(name: str = "then") -> Port:
    return Port(name, PortDirection.OUTPUT, PortFunction.CONTROL, EXEC_PIN)


def data_in(name: str, category: ValueType = ValueType.WILDCARD, default: Optional[str] = None,
            **kwargs) -> Port:
    return Port(name, PortDirection.INPUT, PortFunction.DATA, PinType(category=category),
                default_value=default, **kwargs)


def data_out(name: str, category: ValueType = ValueType.WILDCARD) -> Port:
    return Port(name, PortDirection.OUTPUT, PortFunction.DATA, PinType(category=category))


class GraphBuilder:
    """Small fluent helper for assembling test graphs."""

    def __init__(self, name: str = "EventGraph", category: str = "ubergraph"):
        self.name = name
        self.category = category
        self.nodes: List[Node] = []
        self.edges: List[Edge] = []

    def add(self, node_id: str, kind: NodeKind, type_name: str = "", ports: Sequence[Port] = (),
            title: str = "", x: int = 0, y: int = 0, **attributes) -> "GraphBuilder":
        self.nodes.append(Node(node_id, kind, type_name or kind.name.title(), title, x, y,
                               tuple(ports), attributes))
        return self

    # ── Exec graph nodes ────────────────────────────────────────────────

    def event(self, node_id: str, title: str, y: int = 0) -> "GraphBuilder":
        return self.add(node_id, NodeKind.EVENT, "K2Node_Event", [exec_out()], title=title, y=y)

    def call(self, node_id: str, function: str, inputs: Sequence[Port] = (),
             returns: Optional[ValueType] = None, x: int = 0, y: int = 0) -> "GraphBuilder":
        ports = [exec_in(), exec_out(), *inputs]
        if returns is not None:
            ports.append(data_out("ReturnValue", returns))
        return self.add(node_id, NodeKind.CALL_FUNCTION, "K2Node_CallFunction", ports,
                        x=x, y=y, function=function)

    def getter(self, node_id: str, variable: str, category: ValueType = ValueType.BOOL) -> "GraphBuilder":
        return self.add(node_id, NodeKind.VARIABLE_GET, "K2Node_VariableGet",
                        [data_out(variable, category)], variable=variable)

    def branch(self, node_id: str) -> "GraphBuilder":
        ports = [exec_in(), data_in("Condition", ValueType.BOOL), exec_out("then"), exec_out("else")]
        return self.add(node_id, NodeKind.BRANCH, "K2Node_IfThenElse", ports, title="Branch")

    def sequence(self, node_id: str, outputs: int = 2) -> "GraphBuilder":
        ports = [exec_in()] + [exec_out(f"then_{i}") for i in range(outputs)]
        return self.add(node_id, NodeKind.SEQUENCE, "K2Node_ExecutionSequence", ports, title="Sequence")

    # ── Wiring ──────────────────────────────────────────────────────────

    def flow(self, src: str, dst: str, src_port: str = "then", dst_port: str = "execute") -> "GraphBuilder":
        self.edges.append(Edge(src, src_port, dst, dst_port))
        return self

    def wire(self, src: str, src_port: str, dst: str, dst_port: str) -> "GraphBuilder":
        self.edges.append(Edge(src, src_port, dst, dst_port))
        return self

    def build(self) -> Graph:
        return Graph(self.name, self.nodes, self.edges, category=self.category)


def annotate(graph: Graph, compactor: IdentityCompactor, node_id: str) -> str:
    return trailing_comment(graph.nodes[node_id], compactor)


@pytest.fixture
def builder():
    return GraphBuilder


@pytest.fixture
def compactor():
    return IdentityCompactor()


@pytest.fixture
def ann():
    return annotate


@pytest.fixture
def material_graph():
    """Const(1) -> Add.A, Const(2) -> Add.B, Add -> Sink.P"""
    b = GraphBuilder("Material", category="material")
    b.add("c1", NodeKind.CONSTANT, "MaterialExpressionConstant", [data_out("Output")], value=1)
    b.add("c2", NodeKind.CONSTANT, "MaterialExpressionConstant", [data_out("Output")], value=2)
    b.add("add", NodeKind.EXPRESSION, "MaterialExpressionAdd",
          [data_in("A"), data_in("B"), data_out("Output")])
    b.add("sink", NodeKind.SINK, "MaterialOutput", [data_in("P")])
    b.wire("c1", "Output", "add", "A")
    b.wire("c2", "Output", "add", "B")
    b.wire("add", "Output", "sink", "P")
    return b.build()


def exec_graph_dict() -> Dict:
    """A blueprint snapshot in asset JSON form."""
    return {
        "asset_name": "BP_Door",
        "asset_type": "blueprint",
        "path": "/Game/BP_Door",
        "parent_class": "Actor",
        "variables": [{"name": "bIsOpen", "type": "bool", "default": "false"}],
        "graphs": [
            {
                "graph_name": "EventGraph",
                "nodes": [
                    {
                        "id": "0123456789abcdef0123456789abcdef",
                        "type": "K2Node_Event",
                        "title": "BeginPlay",
                        "ports": [{"name": "then", "direction": "out"}],
                    },
                    {
                        "id": "fedcba9876543210fedcba9876543210",
                        "type": "K2Node_CallFunction",
                        "x": 300,
                        "attributes": {"function": "PrintString"},
                        "ports": [
                            {"name": "execute", "direction": "in"},
                            {"name": "then", "direction": "out"},
                            {"name": "InString", "direction": "in", "type": "string", "default": "Hello"},
                        ],
                    },
                ],
                "edges": [
                    {"from_node": "0123456789abcdef0123456789abcdef", "from_port": "then",
                     "to_node": "fedcba9876543210fedcba9876543210", "to_port": "execute"},
                ],
            },
            {
                "graph_name": "Open",
                "category": "function",
                "nodes": [],
                "edges": [],
            },
        ],
    }


@pytest.fixture
def blueprint_json():
    return exec_graph_dict()
