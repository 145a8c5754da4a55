"""
nodescribe Snapshot: Asset JSON Schema + Validator
====================================================
Defines the serialisation format a graph capture hands to nodescribe and
provides a lightweight validator that runs without any third-party JSON
Schema library.

Asset JSON format
-----------------

    {
      "asset_name":    "BP_Door",                // human label (str, required)
      "asset_type":    "blueprint",              // "blueprint" | "material" (optional)
      "path":          "/Game/BP_Door",          // asset path (str, optional)
      "parent_class":  "Actor",                  // blueprints (str, optional)
      "shading_model": "DefaultLit",             // materials (str, optional)
      "blend_mode":    "Opaque",                 // materials (str, optional)
      "variables": [                             // member variables (list, optional)
        { "name": "bIsOpen", "type": "bool", "default": "false" }
      ],
      "graphs": [
        {
          "graph_name": "EventGraph",            // (str, required)
          "category":   "ubergraph",             // ubergraph | function | macro | material
          "local_variables": [],                 // same shape as "variables"
          "nodes": [
            {
              "id":    "6B0F3C1E...",            // unique within this graph (str, required)
              "type":  "K2Node_CallFunction",    // editor class name (str, required)
              "kind":  "CALL_FUNCTION",          // NodeKind override (str, optional)
              "title": "Print String",           // display title (str, optional)
              "x": 320, "y": 16,                 // editor position (int, optional)
              "attributes": { "function": "PrintString" },
              "ports": [
                { "name": "execute", "direction": "in", "class": "control" },
                { "name": "InString", "direction": "in",
                  "type": "string", "default": "Hello" }
              ]
            }
          ],
          "edges": [
            { "from_node": "...", "from_port": "then",
              "to_node":   "...", "to_port":   "execute" }
          ]
        }
      ]
    }

Port "type" is either a category string ("bool", "object", ...) or an
object: {category, sub_category, object, container, value_category,
value_sub_category, value_object, const, reference}.

A single graph without the asset wrapper ({"graph_name", "nodes",
"edges"}) is accepted too; it is wrapped as a one-graph blueprint.

Edges whose endpoints are missing are NOT a schema violation: a capture
of a half-edited graph can contain them, and the deserialiser marks the
target port broken instead.
"""

from __future__ import annotations

import json
import warnings
from pathlib import Path
from typing import Any, Dict, List, Union

from nodescribe.core.Types import ContainerType, NodeKind


# ── Known types ───────────────────────────────────────────────────────────────

KNOWN_NODE_TYPES: frozenset[str] = frozenset({
    # exec graphs
    "K2Node_Event",
    "K2Node_ComponentBoundEvent",
    "K2Node_InputAction",
    "K2Node_InputKey",
    "K2Node_CustomEvent",
    "K2Node_FunctionEntry",
    "K2Node_FunctionResult",
    "K2Node_Tunnel",
    "K2Node_CallFunction",
    "K2Node_CallArrayFunction",
    "K2Node_CallParentFunction",
    "K2Node_VariableGet",
    "K2Node_VariableSet",
    "K2Node_Self",
    "K2Node_SpawnActorFromClass",
    "K2Node_MakeArray",
    "K2Node_Select",
    "K2Node_DynamicCast",
    "K2Node_IfThenElse",
    "K2Node_ExecutionSequence",
    "K2Node_Switch",
    "K2Node_SwitchInteger",
    "K2Node_SwitchString",
    "K2Node_SwitchName",
    "K2Node_SwitchEnum",
    "K2Node_MacroInstance",
    "K2Node_Knot",
    "EdGraphNode_Comment",
    # expression graphs
    "MaterialExpressionComment",
    "MaterialExpressionReroute",
    "MaterialExpressionNamedRerouteDeclaration",
    "MaterialExpressionNamedRerouteUsage",
    "MaterialExpressionConstant",
    "MaterialExpressionConstant2Vector",
    "MaterialExpressionConstant3Vector",
    "MaterialExpressionConstant4Vector",
    "MaterialExpressionScalarParameter",
    "MaterialExpressionVectorParameter",
    "MaterialExpressionStaticBoolParameter",
    "MaterialExpressionStaticSwitchParameter",
    "MaterialExpressionTextureSampleParameter2D",
    "MaterialOutput",
})

VALID_DIRECTIONS = frozenset({"in", "out", "input", "output"})
VALID_PORT_CLASSES = frozenset({"data", "control"})
VALID_ASSET_TYPES = frozenset({"blueprint", "material"})
VALID_CONTAINERS = frozenset(c.value for c in ContainerType)
VALID_KINDS = frozenset(NodeKind.__members__)


# ── Validation helpers ────────────────────────────────────────────────────────

class SchemaError(ValueError):
    """Raised when asset JSON fails structural validation."""


def _require(condition: bool, message: str) -> None:
    if not condition:
        raise SchemaError(message)


def _require_keys(obj: Dict, keys: List[str], context: str) -> None:
    for key in keys:
        _require(key in obj, f"{context}: missing required field '{key}'")


def is_known_type(type_name: str) -> bool:
    """Any MaterialExpression* class is known; everything else is listed."""
    return type_name in KNOWN_NODE_TYPES or type_name.startswith("MaterialExpression")


def _optional_str(obj: Dict, keys: tuple, ctx: str) -> None:
    for key in keys:
        if obj.get(key) is not None:
            _require(isinstance(obj[key], str), f"{ctx}.{key} must be a string")


_TYPE_STRING_FIELDS = (
    "category", "sub_category", "object", "container",
    "value_category", "value_sub_category", "value_object",
)


def _validate_type(spec: Any, ctx: str) -> None:
    _require(isinstance(spec, (str, dict)), f"{ctx} must be a string or object")
    if isinstance(spec, dict):
        _optional_str(spec, _TYPE_STRING_FIELDS, ctx)
        container = spec.get("container") or "none"
        _require(
            container.lower() in VALID_CONTAINERS,
            f"{ctx}.container must be one of {sorted(VALID_CONTAINERS)}",
        )


def _validate_variables(variables: Any, context: str) -> None:
    _require(isinstance(variables, list), f"{context} must be a list")
    for i, var in enumerate(variables):
        ctx = f"{context}[{i}]"
        _require(isinstance(var, dict), f"{ctx}: each variable must be a JSON object")
        _require_keys(var, ["name"], ctx)
        _require(isinstance(var["name"], str), f"{ctx}.name must be a string")
        if "type" in var:
            _validate_type(var["type"], f"{ctx}.type")


def _validate_port(port: Any, ctx: str) -> None:
    _require(isinstance(port, dict), f"{ctx}: each port must be a JSON object")
    _require_keys(port, ["name", "direction"], ctx)
    _require(isinstance(port["name"], str), f"{ctx}.name must be a string")
    _optional_str(port, ("case_label",), ctx)
    _require(
        port["direction"] in VALID_DIRECTIONS,
        f"{ctx}.direction must be one of {sorted(VALID_DIRECTIONS)}",
    )
    if "class" in port:
        _require(
            port["class"] in VALID_PORT_CLASSES,
            f"{ctx}.class must be one of {sorted(VALID_PORT_CLASSES)}",
        )
    if "type" in port:
        _validate_type(port["type"], f"{ctx}.type")


def validate_graph(data: Dict[str, Any], context: str = "graph", *, strict: bool = False) -> None:
    """Validate one graph dict."""
    _require(isinstance(data, dict), f"{context} must be a JSON object")
    _require_keys(data, ["graph_name", "nodes", "edges"], context)

    _require(isinstance(data["graph_name"], str), f"{context}.graph_name must be a string")
    _optional_str(data, ("category", "id"), context)
    _require(isinstance(data["nodes"],     list), f"{context}.nodes must be a list")
    _require(isinstance(data["edges"],     list), f"{context}.edges must be a list")
    if "local_variables" in data:
        _validate_variables(data["local_variables"], f"{context}.local_variables")

    # ── Validate nodes ──────────────────────────────────────────────────────

    node_ids: set[str] = set()

    for i, node in enumerate(data["nodes"]):
        ctx = f"{context}.nodes[{i}]"
        _require(isinstance(node, dict), f"{ctx}: each node must be a JSON object")
        _require_keys(node, ["id", "type"], ctx)
        _require(isinstance(node["id"],   str), f"{ctx}.id must be a string")
        _require(isinstance(node["type"], str), f"{ctx}.type must be a string")
        _require(
            node["id"] not in node_ids,
            f"{ctx}: duplicate node id '{node['id']}'",
        )
        node_ids.add(node["id"])
        _optional_str(node, ("title", "name"), ctx)

        for coord in ("x", "y"):
            if coord in node:
                _require(isinstance(node[coord], (int, float)), f"{ctx}.{coord} must be a number")
        if "attributes" in node:
            _require(isinstance(node["attributes"], dict), f"{ctx}.attributes must be an object")
        if "ports" in node:
            _require(isinstance(node["ports"], list), f"{ctx}.ports must be a list")
            for j, port in enumerate(node["ports"]):
                _validate_port(port, f"{ctx}.ports[{j}]")

        if "kind" in node:
            _require(
                isinstance(node["kind"], str) and node["kind"].upper() in VALID_KINDS,
                f"{ctx}.kind must be one of {sorted(VALID_KINDS)}",
            )

        type_name = node["type"]
        if not is_known_type(type_name) and "kind" not in node:
            msg = f"{ctx}: unknown node type '{type_name}'"
            if strict:
                raise SchemaError(msg)
            warnings.warn(msg + " (rendered as a generic statement)", stacklevel=3)

    # ── Validate edges ──────────────────────────────────────────────────────

    for i, edge in enumerate(data["edges"]):
        ctx = f"{context}.edges[{i}]"
        _require(isinstance(edge, dict), f"{ctx}: each edge must be a JSON object")
        _require_keys(edge, ["from_node", "from_port", "to_node", "to_port"], ctx)

        for field in ("from_node", "from_port", "to_node", "to_port"):
            _require(isinstance(edge[field], str), f"{ctx}.{field} must be a string")


# ── Public validator ─────────────────────────────────────────────────────────

def validate(data: Dict[str, Any], *, strict: bool = False) -> None:
    """
    Validate a parsed asset (or bare graph) JSON dict.

    Args:
        data:   A pre-parsed dict (result of json.load / json.loads).
        strict: When True, raise SchemaError for unknown node types.
                When False (default), unknown types produce a warning.

    Raises:
        SchemaError: On any structural violation.
    """
    _require(isinstance(data, dict), "asset JSON must be a JSON object at the top level")

    if "graphs" not in data and "graph_name" in data:
        validate_graph(data, "graph", strict=strict)
        return

    _require_keys(data, ["asset_name", "graphs"], "asset root")
    _require(isinstance(data["asset_name"], str), "asset_name must be a string")
    _require(isinstance(data["graphs"], list), "graphs must be a list")
    _optional_str(data, ("path", "parent_class", "shading_model", "blend_mode"), "asset root")
    if "asset_type" in data:
        _require(
            data["asset_type"] in VALID_ASSET_TYPES,
            f"asset_type must be one of {sorted(VALID_ASSET_TYPES)}",
        )
    if "variables" in data:
        _validate_variables(data["variables"], "variables")

    names: set[str] = set()
    for i, graph in enumerate(data["graphs"]):
        validate_graph(graph, f"graphs[{i}]", strict=strict)
        lowered = graph["graph_name"].lower()
        _require(lowered not in names, f"graphs[{i}]: duplicate graph name '{graph['graph_name']}'")
        names.add(lowered)


def validate_file(path: Union[str, Path], *, strict: bool = False) -> Dict[str, Any]:
    """
    Load and validate an asset JSON file.

    Returns:
        The parsed dict on success.

    Raises:
        FileNotFoundError: If the file does not exist.
        json.JSONDecodeError: If the file is not valid JSON.
        SchemaError: If the asset structure is invalid.
    """
    path = Path(path)
    with path.open(encoding="utf-8") as fh:
        data = json.load(fh)
    validate(data, strict=strict)
    return data


__all__ = ["KNOWN_NODE_TYPES", "SchemaError", "is_known_type", "validate", "validate_file", "validate_graph"]
