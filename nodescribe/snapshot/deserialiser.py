"""
nodescribe Snapshot: JSON Deserialiser
========================================
Converts a serialised asset JSON file (or dict) into the immutable Graph
Model, so the synthesis engine never touches a live editor.

Pipeline
--------
    asset.json  →  [schema.validate]              →  checked dict
    dict        →  [deserialiser.json_to_asset]   →  Asset(graphs=[Graph, ...])
    Asset       →  [synth.render_asset]           →  pseudocode str

JSON format
-----------
See nodescribe/snapshot/schema.py for the full schema definition.

Kind inference
--------------
Each node's NodeKind comes from its editor class name via KIND_BY_TYPE.
An explicit "kind" field wins.  Unknown MaterialExpression* classes become
EXPRESSION (or PARAMETER when the class name ends in "Parameter"), any
other unknown class UNKNOWN.

Port inference
--------------
Ports listed in the JSON are used as given.  PORT_SCHEMA fills in the
fixed ports of a few common classes so snapshots may omit them.  A port
named by an edge but absent from its node is created on the fly; its
class ("data" or "control") is taken from the source port, the pin type
category, or a name heuristic, in that order.

Broken wiring
-------------
An edge whose source node does not exist is dropped by the Graph, and the
target input is flagged `broken` so emitters render it as `???`.
"""

from __future__ import annotations

import json
import logging
from dataclasses import replace
from pathlib import Path
from typing import Any, Dict, List, Optional, Set, Tuple, Union

from nodescribe.core.GraphPrimitives import (
    EXEC_PIN,
    Asset,
    Edge,
    Graph,
    Node,
    PinType,
    Port,
    VariableDecl,
)
from nodescribe.core.Types import ContainerType, NodeKind, PortDirection, PortFunction, ValueType
from nodescribe.snapshot.schema import validate

logger = logging.getLogger(__name__)


# ── Kind table ────────────────────────────────────────────────────────────────

KIND_BY_TYPE: Dict[str, NodeKind] = {
    "K2Node_Event":                   NodeKind.EVENT,
    "K2Node_ComponentBoundEvent":     NodeKind.EVENT,
    "K2Node_InputAction":             NodeKind.EVENT,
    "K2Node_InputKey":                NodeKind.EVENT,
    "K2Node_CustomEvent":             NodeKind.CUSTOM_EVENT,
    "K2Node_FunctionEntry":           NodeKind.FUNCTION_ENTRY,
    "K2Node_FunctionResult":          NodeKind.FUNCTION_RESULT,
    "K2Node_CallFunction":            NodeKind.CALL_FUNCTION,
    "K2Node_CallArrayFunction":       NodeKind.CALL_FUNCTION,
    "K2Node_CallParentFunction":      NodeKind.CALL_FUNCTION,
    "K2Node_VariableGet":             NodeKind.VARIABLE_GET,
    "K2Node_VariableSet":             NodeKind.VARIABLE_SET,
    "K2Node_Self":                    NodeKind.SELF,
    "K2Node_SpawnActorFromClass":     NodeKind.SPAWN_ACTOR,
    "K2Node_MakeArray":               NodeKind.MAKE_ARRAY,
    "K2Node_Select":                  NodeKind.SELECT,
    "K2Node_DynamicCast":             NodeKind.DYNAMIC_CAST,
    "K2Node_IfThenElse":              NodeKind.BRANCH,
    "K2Node_ExecutionSequence":       NodeKind.SEQUENCE,
    "K2Node_MacroInstance":           NodeKind.MACRO_INSTANCE,
    "K2Node_Knot":                    NodeKind.KNOT,
    "EdGraphNode_Comment":            NodeKind.COMMENT,

    "MaterialExpressionComment":                  NodeKind.COMMENT,
    "MaterialExpressionReroute":                  NodeKind.KNOT,
    "MaterialExpressionNamedRerouteDeclaration":  NodeKind.NAMED_REROUTE_DECLARATION,
    "MaterialExpressionNamedRerouteUsage":        NodeKind.NAMED_REROUTE_USAGE,
    "MaterialExpressionConstant":                 NodeKind.CONSTANT,
    "MaterialExpressionConstant2Vector":          NodeKind.CONSTANT,
    "MaterialExpressionConstant3Vector":          NodeKind.CONSTANT,
    "MaterialExpressionConstant4Vector":          NodeKind.CONSTANT,
    "MaterialExpressionScalarParameter":          NodeKind.PARAMETER,
    "MaterialExpressionVectorParameter":          NodeKind.PARAMETER,
    "MaterialExpressionStaticBoolParameter":      NodeKind.PARAMETER,
    "MaterialExpressionStaticSwitchParameter":    NodeKind.PARAMETER,
    "MaterialExpressionTextureSampleParameter2D": NodeKind.PARAMETER,
    "MaterialOutput":                             NodeKind.SINK,
}


# ── Port schema registry ──────────────────────────────────────────────────────
#
# Maps type_name → {port_name → {direction, port_class, type?}}
#
# Only classes whose pins never vary are listed; everything else must carry
# its ports in the JSON.

_P = Dict[str, Dict[str, Any]]   # type alias for a port spec dict

_BINARY_EXPRESSION: _P = {
    "A":      {"direction": "in",  "port_class": "data"},
    "B":      {"direction": "in",  "port_class": "data"},
    "Output": {"direction": "out", "port_class": "data"},
}

_UNARY_EXPRESSION: _P = {
    "Input":  {"direction": "in",  "port_class": "data"},
    "Output": {"direction": "out", "port_class": "data"},
}

_SOURCE_EXPRESSION: _P = {
    "Output": {"direction": "out", "port_class": "data"},
}

PORT_SCHEMA: Dict[str, _P] = {

    "K2Node_Knot": {
        "InputPin":  {"direction": "in",  "port_class": "data"},
        "OutputPin": {"direction": "out", "port_class": "data"},
    },

    "K2Node_IfThenElse": {
        "execute":   {"direction": "in",  "port_class": "control"},
        "Condition": {"direction": "in",  "port_class": "data", "type": "bool"},
        "then":      {"direction": "out", "port_class": "control"},
        "else":      {"direction": "out", "port_class": "control"},
    },

    "K2Node_Self": {
        "self": {"direction": "out", "port_class": "data", "type": "object"},
    },

    "MaterialExpressionAdd":       _BINARY_EXPRESSION,
    "MaterialExpressionSubtract":  _BINARY_EXPRESSION,
    "MaterialExpressionMultiply":  _BINARY_EXPRESSION,
    "MaterialExpressionDivide":    _BINARY_EXPRESSION,
    "MaterialExpressionDotProduct":   _BINARY_EXPRESSION,
    "MaterialExpressionCrossProduct": _BINARY_EXPRESSION,
    "MaterialExpressionAppendVector": _BINARY_EXPRESSION,

    "MaterialExpressionOneMinus":  _UNARY_EXPRESSION,
    "MaterialExpressionAbs":       _UNARY_EXPRESSION,
    "MaterialExpressionSaturate":  _UNARY_EXPRESSION,
    "MaterialExpressionReroute":   _UNARY_EXPRESSION,

    "MaterialExpressionConstant":           _SOURCE_EXPRESSION,
    "MaterialExpressionConstant2Vector":    _SOURCE_EXPRESSION,
    "MaterialExpressionConstant3Vector":    _SOURCE_EXPRESSION,
    "MaterialExpressionConstant4Vector":    _SOURCE_EXPRESSION,
    "MaterialExpressionScalarParameter":    _SOURCE_EXPRESSION,
    "MaterialExpressionStaticBoolParameter": _SOURCE_EXPRESSION,
    "MaterialExpressionTime":               _SOURCE_EXPRESSION,

    "MaterialExpressionNamedRerouteDeclaration": _UNARY_EXPRESSION,
    "MaterialExpressionNamedRerouteUsage":       _SOURCE_EXPRESSION,
}

# Input pin a named reroute usage is wired through to its declaration.
DECLARATION_PIN = "Declaration"


# ── Fallback heuristics ───────────────────────────────────────────────────────

_CONTROL_PORT_NAMES = frozenset({
    "execute", "exec", "then", "else",
    "Completed", "Loop Body", "CastFailed",
})


def _infer_port_class_from_name(port_name: str) -> str:
    """Heuristic: return 'control' for well-known exec pin names, else 'data'."""
    return "control" if port_name in _CONTROL_PORT_NAMES else "data"


def infer_kind(type_name: str, ports: List[Port], override: Optional[str] = None,
               attributes: Optional[Dict[str, Any]] = None) -> NodeKind:
    """NodeKind for an editor class name; see the module docstring."""
    if override:
        return NodeKind[override.upper()]
    if type_name in KIND_BY_TYPE:
        return KIND_BY_TYPE[type_name]
    if type_name == "K2Node_Tunnel":
        attributes = attributes or {}
        can_have_outputs = attributes.get("can_have_outputs")
        if can_have_outputs is None:
            can_have_outputs = any(p.is_output for p in ports)
        return NodeKind.MACRO_ENTRY if can_have_outputs else NodeKind.MACRO_EXIT
    if type_name.startswith("K2Node_Switch"):
        return NodeKind.SWITCH
    if type_name.startswith("MaterialExpression"):
        if type_name.endswith("Parameter"):
            return NodeKind.PARAMETER
        return NodeKind.EXPRESSION
    return NodeKind.UNKNOWN


# ── Core parsing ──────────────────────────────────────────────────────────────

def parse_pin_type(spec: Union[str, Dict[str, Any], None]) -> PinType:
    """Pin type from a category string or a type object."""
    if spec is None:
        return PinType()
    if isinstance(spec, str):
        return PinType(category=ValueType.parse(spec))

    value_category = spec.get("value_category")
    return PinType(
        category=ValueType.parse(spec.get("category") or "wildcard"),
        sub_category=spec.get("sub_category") or "",
        sub_category_object=spec.get("object") or "",
        container=ContainerType((spec.get("container") or "none").lower()),
        value_category=ValueType.parse(value_category) if value_category else None,
        value_sub_category=spec.get("value_sub_category") or "",
        value_object=spec.get("value_object") or "",
        is_const=bool(spec.get("const", False)),
        is_reference=bool(spec.get("reference", False)),
    )


def _direction(value: str) -> PortDirection:
    return PortDirection.INPUT if value in ("in", "input") else PortDirection.OUTPUT


def _default_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _parse_port(port_spec: Dict[str, Any]) -> Port:
    """Convert a JSON port dict → Port."""
    name = port_spec["name"]
    pin_type = parse_pin_type(port_spec.get("type"))

    port_class = port_spec.get("class")
    if port_class is None:
        if pin_type.is_exec:
            port_class = "control"
        elif "type" in port_spec:
            port_class = "data"
        else:
            port_class = _infer_port_class_from_name(name)
    function = PortFunction.CONTROL if port_class == "control" else PortFunction.DATA
    if function == PortFunction.CONTROL and not pin_type.is_exec:
        pin_type = EXEC_PIN

    return Port(
        name=name,
        direction=_direction(port_spec["direction"]),
        function=function,
        pin_type=pin_type,
        default_value=_default_str(port_spec.get("default")),
        autogenerated_default=_default_str(port_spec.get("autogenerated_default")),
        case_label=port_spec.get("case_label"),
        spawn_var=bool(port_spec.get("spawn_var", False)),
    )


def _schema_ports(type_name: str) -> List[Port]:
    ports = []
    for pname, pspec in PORT_SCHEMA.get(type_name, {}).items():
        ports.append(_parse_port({
            "name": pname,
            "direction": pspec["direction"],
            "class": pspec["port_class"],
            "type": pspec.get("type"),
        }))
    return ports


def _parse_node(node_spec: Dict[str, Any]) -> Node:
    """Convert a JSON node dict → Node."""
    type_name = node_spec["type"]
    attributes = dict(node_spec.get("attributes", {}))

    # JSON ports take priority over schema-defined ones of the same name.
    ports = [_parse_port(p) for p in node_spec.get("ports", [])]
    declared = {(p.name, p.direction) for p in ports}
    schema_ports = [p for p in _schema_ports(type_name) if (p.name, p.direction) not in declared]
    ports = schema_ports + ports

    if type_name in ("K2Node_SwitchString", "K2Node_SwitchName"):
        attributes.setdefault("string_switch", True)

    return Node(
        id=node_spec["id"],
        kind=infer_kind(type_name, ports, node_spec.get("kind"), attributes),
        type_name=type_name,
        title=node_spec.get("title") or node_spec.get("name") or "",
        x=int(node_spec.get("x", 0)),
        y=int(node_spec.get("y", 0)),
        ports=tuple(ports),
        attributes=attributes,
    )


def _parse_edge(edge_spec: Dict[str, Any]) -> Edge:
    return Edge(
        from_node_id=edge_spec["from_node"],
        from_port_name=edge_spec["from_port"],
        to_node_id=edge_spec["to_node"],
        to_port_name=edge_spec["to_port"],
    )


def _parse_variables(specs: List[Dict[str, Any]]) -> Tuple[VariableDecl, ...]:
    return tuple(
        VariableDecl(
            name=spec["name"],
            pin_type=parse_pin_type(spec.get("type")),
            default_value=_default_str(spec.get("default")),
        )
        for spec in specs
    )


# ── Graph-level fixups ────────────────────────────────────────────────────────

def _add_ports(node: Node, extra: List[Port]) -> Node:
    return replace(node, ports=tuple(node.ports) + tuple(extra))


def _complete_ports(node_map: Dict[str, Node], edges: List[Edge]) -> None:
    """Create ports that edges name but their (existing) nodes do not declare."""
    missing: Dict[str, List[Port]] = {}
    for edge in edges:
        src = node_map.get(edge.from_node_id)
        dst = node_map.get(edge.to_node_id)

        src_port = src.find_port(edge.from_port_name, PortDirection.OUTPUT) if src else None
        if src is not None and src_port is None:
            cls = _infer_port_class_from_name(edge.from_port_name)
            src_port = _parse_port({"name": edge.from_port_name, "direction": "out", "class": cls})
            pending = missing.setdefault(src.id, [])
            if all(p.name != src_port.name or p.is_input for p in pending):
                pending.append(src_port)

        if dst is not None and dst.find_port(edge.to_port_name, PortDirection.INPUT) is None:
            cls = "control" if src_port is not None and src_port.is_control \
                else _infer_port_class_from_name(edge.to_port_name)
            dst_port = _parse_port({"name": edge.to_port_name, "direction": "in", "class": cls})
            pending = missing.setdefault(dst.id, [])
            if all(p.name != dst_port.name or p.is_output for p in pending):
                pending.append(dst_port)

    for node_id, ports in missing.items():
        logger.debug("node %s: adding undeclared ports %s", node_id, [p.name for p in ports])
        node_map[node_id] = _add_ports(node_map[node_id], ports)


def _mark_broken(node_map: Dict[str, Node], edges: List[Edge]) -> None:
    broken: Dict[str, Set[str]] = {}
    for edge in edges:
        if edge.from_node_id in node_map or edge.to_node_id not in node_map:
            continue
        broken.setdefault(edge.to_node_id, set()).add(edge.to_port_name)

    for node_id, port_names in broken.items():
        node = node_map[node_id]
        ports = tuple(
            replace(p, broken=True) if p.is_input and p.name in port_names else p
            for p in node.ports
        )
        logger.warning("node %s: inputs %s wired to missing nodes", node_id, sorted(port_names))
        node_map[node_id] = replace(node, ports=ports)


def _link_named_reroutes(node_map: Dict[str, Node], edges: List[Edge]) -> None:
    """Wire every named reroute usage to its declaration's first data output."""
    declarations: Dict[str, Node] = {}
    for node in node_map.values():
        if node.kind == NodeKind.NAMED_REROUTE_DECLARATION:
            declarations.setdefault(node.id, node)
            name = node.attr("name")
            if name:
                declarations.setdefault(name, node)

    for node_id, node in list(node_map.items()):
        if node.kind != NodeKind.NAMED_REROUTE_USAGE:
            continue
        decl = declarations.get(node.attr("declaration")) or declarations.get(node.attr("name"))
        if decl is None:
            logger.warning("named reroute usage %s has no declaration", node_id)
            continue
        decl_outputs = decl.outputs(PortFunction.DATA)
        if not decl_outputs:
            continue
        if node.find_port(DECLARATION_PIN, PortDirection.INPUT) is None:
            node = _add_ports(node, [Port(DECLARATION_PIN, PortDirection.INPUT)])
            node_map[node_id] = node
        if not any(e.to_node_id == node_id and e.to_port_name == DECLARATION_PIN for e in edges):
            edges.append(Edge(decl.id, decl_outputs[0].name, node_id, DECLARATION_PIN))


# ── Public entry points ───────────────────────────────────────────────────────

def json_to_graph(data: Dict[str, Any], default_category: str = "ubergraph") -> Graph:
    """Build one Graph from a graph dict (already validated)."""
    node_map: Dict[str, Node] = {}
    for node_spec in data.get("nodes", []):
        node = _parse_node(node_spec)
        node_map[node.id] = node

    edges = [_parse_edge(e) for e in data.get("edges", [])]

    _complete_ports(node_map, edges)
    _link_named_reroutes(node_map, edges)
    _mark_broken(node_map, edges)

    return Graph(
        name=data["graph_name"],
        nodes=node_map.values(),
        edges=edges,
        category=data.get("category") or default_category,
        local_variables=_parse_variables(data.get("local_variables", [])),
        id=data.get("id"),
    )


def _load(source: Union[str, Path, Dict[str, Any]]) -> Dict[str, Any]:
    if isinstance(source, (str, Path)):
        path = Path(source)
        with path.open(encoding="utf-8") as fh:
            return json.load(fh)
    return source


def json_to_asset(source: Union[str, Path, Dict[str, Any]], *, strict: bool = False) -> Asset:
    """
    Parse an asset JSON description and return an Asset.

    Args:
        source: One of:
            - A file path (str or Path) to a JSON file.
            - A pre-parsed dict matching the asset JSON schema.
        strict: Reject unknown node types instead of warning.

    Returns:
        An Asset ready to pass to ``nodescribe.synth.render_asset``.

    Raises:
        FileNotFoundError: If a path is given and the file does not exist.
        json.JSONDecodeError: If the file is not valid JSON.
        SchemaError: If the structure is invalid.
    """
    data = _load(source)
    validate(data, strict=strict)

    if "graphs" not in data:
        graph = json_to_graph(data)
        return Asset(name=data["graph_name"], graphs=(graph,))

    asset_type = data.get("asset_type", "blueprint")
    default_category = "material" if asset_type == "material" else "ubergraph"
    graphs = tuple(json_to_graph(g, default_category) for g in data["graphs"])
    logger.debug("loaded asset %s with %d graph(s)", data["asset_name"], len(graphs))

    return Asset(
        name=data["asset_name"],
        asset_type=asset_type,
        path=data.get("path") or "",
        parent_class=data.get("parent_class") or "",
        shading_model=data.get("shading_model") or "",
        blend_mode=data.get("blend_mode") or "",
        variables=_parse_variables(data.get("variables", [])),
        graphs=graphs,
    )


__all__ = ["KIND_BY_TYPE", "PORT_SCHEMA", "infer_kind", "json_to_asset", "json_to_graph", "parse_pin_type"]
