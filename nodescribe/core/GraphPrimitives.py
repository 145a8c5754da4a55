from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, NamedTuple, Optional, Tuple

from nodescribe.core.Types import (
    ContainerType,
    NodeKind,
    PortDirection,
    PortFunction,
    ValueType,
)

logger = logging.getLogger(__name__)


# Semantic type of a pin. Used for naming hints and literal formatting only,
# never for type checking.
@dataclass(frozen=True)
class PinType:
    category: ValueType = ValueType.WILDCARD
    sub_category: str = ""
    sub_category_object: str = ""
    container: ContainerType = ContainerType.NONE
    # map pins only
    value_category: Optional[ValueType] = None
    value_sub_category: str = ""
    value_object: str = ""
    is_const: bool = False
    is_reference: bool = False

    @property
    def is_exec(self) -> bool:
        return self.category == ValueType.EXEC

    def element(self) -> "PinType":
        """The same type with the container stripped (TArray<T> -> T)."""
        return PinType(
            category=self.category,
            sub_category=self.sub_category,
            sub_category_object=self.sub_category_object,
        )


EXEC_PIN = PinType(category=ValueType.EXEC)


@dataclass(frozen=True)
class Port:
    name: str
    direction: PortDirection
    function: PortFunction = PortFunction.DATA
    pin_type: PinType = field(default_factory=PinType)
    default_value: Optional[str] = None
    autogenerated_default: Optional[str] = None
    case_label: Optional[str] = None   # switch outputs
    spawn_var: bool = False            # spawn-actor exposed property
    broken: bool = False               # wired to a source that no longer exists

    @property
    def is_input(self) -> bool:
        return self.direction == PortDirection.INPUT

    @property
    def is_output(self) -> bool:
        return self.direction == PortDirection.OUTPUT

    @property
    def is_control(self) -> bool:
        return self.function == PortFunction.CONTROL


@dataclass(frozen=True, eq=False)
class Node:
    id: str
    kind: NodeKind
    type_name: str
    title: str = ""
    x: int = 0
    y: int = 0
    ports: Tuple[Port, ...] = ()
    # kind-specific attributes: function name, variable name, macro name,
    # parameter name, constant values ...
    attributes: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "ports", tuple(self.ports))
        object.__setattr__(self, "attributes", MappingProxyType(dict(self.attributes)))

    def __repr__(self) -> str:
        return f"Node({self.id}, {self.kind.name}, {self.type_name!r})"

    # ── Port queries ──────────────────────────────────────────────────────

    def find_port(self, name: str, direction: Optional[PortDirection] = None) -> Optional[Port]:
        for port in self.ports:
            if port.name == name and (direction is None or port.direction == direction):
                return port
        return None

    def inputs(self, function: Optional[PortFunction] = None) -> List[Port]:
        return [p for p in self.ports
                if p.is_input and (function is None or p.function == function)]

    def outputs(self, function: Optional[PortFunction] = None) -> List[Port]:
        return [p for p in self.ports
                if p.is_output and (function is None or p.function == function)]

    @property
    def is_pure(self) -> bool:
        """A pure node has no control ports at all."""
        return not any(p.is_control for p in self.ports)

    def attr(self, key: str, default: Any = None) -> Any:
        value = self.attributes.get(key)
        return default if value is None else value


# Edge is a simple immutable record. The channel is inherited from the source
# port when the Graph is built.
class Edge(NamedTuple):
    from_node_id: str
    from_port_name: str
    to_node_id: str
    to_port_name: str
    channel: PortFunction = PortFunction.DATA

    def __repr__(self):
        return f"Edge({self.from_node_id}.{self.from_port_name} -> {self.to_node_id}.{self.to_port_name})"


@dataclass(frozen=True)
class VariableDecl:
    name: str
    pin_type: PinType = field(default_factory=PinType)
    default_value: Optional[str] = None


class Graph:
    """
    Read-only snapshot of one renderable graph.

    Edges whose endpoints are missing are dropped at construction so every
    stored Edge references ports that exist in this Graph.
    """

    def __init__(self,
                 name: str,
                 nodes: Iterable[Node] = (),
                 edges: Iterable[Edge] = (),
                 category: str = "ubergraph",
                 local_variables: Iterable[VariableDecl] = (),
                 id: Optional[str] = None,
                 ):
        self.name = name
        self.id = id or name
        self.category = category
        self.local_variables: Tuple[VariableDecl, ...] = tuple(local_variables)

        ordered: Dict[str, Node] = {}
        for node in nodes:
            if node.id in ordered:
                raise ValueError(f"Node with id '{node.id}' already exists in graph '{name}'")
            ordered[node.id] = node
        self._nodes = ordered
        self.nodes: Mapping[str, Node] = MappingProxyType(ordered)

        kept: List[Edge] = []
        incoming = defaultdict(list)  # type: Dict[Tuple[str, str], List[Edge]]
        outgoing = defaultdict(list)  # type: Dict[Tuple[str, str], List[Edge]]
        for edge in edges:
            src = ordered.get(edge.from_node_id)
            dst = ordered.get(edge.to_node_id)
            src_port = src.find_port(edge.from_port_name, PortDirection.OUTPUT) if src else None
            dst_port = dst.find_port(edge.to_port_name, PortDirection.INPUT) if dst else None
            if src_port is None or dst_port is None:
                logger.warning("Graph %s: dropping edge with missing endpoint %r", name, edge)
                continue
            edge = edge._replace(channel=src_port.function)
            kept.append(edge)
            incoming[(edge.to_node_id, edge.to_port_name)].append(edge)
            outgoing[(edge.from_node_id, edge.from_port_name)].append(edge)

        self.edges: Tuple[Edge, ...] = tuple(kept)
        self._incoming = dict(incoming)
        self._outgoing = dict(outgoing)

    def __repr__(self) -> str:
        return f"Graph({self.name!r}, nodes={len(self._nodes)}, edges={len(self.edges)})"

    def __len__(self) -> int:
        return len(self._nodes)

    # ── Convenience queries ────────────────────────────────────────────────

    def get_node(self, node_id: str) -> Optional[Node]:
        return self._nodes.get(node_id)

    def get_incoming(self, node_id: str, port_name: str) -> List[Edge]:
        return list(self._incoming.get((node_id, port_name), ()))

    def get_outgoing(self, node_id: str, port_name: str) -> List[Edge]:
        return list(self._outgoing.get((node_id, port_name), ()))

    def get_all_incoming(self, node_id: str, channel: Optional[PortFunction] = None) -> List[Edge]:
        """Incoming edges of a node in port order."""
        node = self._nodes.get(node_id)
        if node is None:
            return []
        result = []
        for port in node.inputs(channel):
            result.extend(self._incoming.get((node_id, port.name), ()))
        return result

    def get_all_outgoing(self, node_id: str, channel: Optional[PortFunction] = None) -> List[Edge]:
        """Outgoing edges of a node in port order."""
        node = self._nodes.get(node_id)
        if node is None:
            return []
        result = []
        for port in node.outputs(channel):
            result.extend(self._outgoing.get((node_id, port.name), ()))
        return result

    def linked_node(self, node_id: str, port_name: str) -> Optional[str]:
        """First node wired to an output port, or None."""
        edges = self._outgoing.get((node_id, port_name))
        return edges[0].to_node_id if edges else None

    def nodes_of_kind(self, *kinds: NodeKind) -> List[Node]:
        return [n for n in self._nodes.values() if n.kind in kinds]


@dataclass(frozen=True)
class Asset:
    """A named collection of graphs, i.e. one blueprint or one material."""
    name: str
    asset_type: str = "blueprint"   # "blueprint" | "material"
    path: str = ""
    parent_class: str = ""
    shading_model: str = ""
    blend_mode: str = ""
    variables: Tuple[VariableDecl, ...] = ()
    graphs: Tuple[Graph, ...] = ()

    @property
    def is_material(self) -> bool:
        return self.asset_type == "material"

    def graph_names(self) -> List[str]:
        return [g.name for g in self.graphs]

    def find_graph(self, name: Optional[str]) -> Optional[Graph]:
        """
        Case-insensitive lookup. An empty name or "EventGraph" selects the
        first ubergraph.
        """
        if not name or name.lower() == "eventgraph":
            for graph in self.graphs:
                if graph.category == "ubergraph":
                    return graph
            if not name:
                return self.graphs[0] if self.graphs else None
        for graph in self.graphs:
            if graph.name.lower() == name.lower():
                return graph
        return None
