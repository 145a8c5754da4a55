"""
nodescribe synthesis: Naming Resolver
=======================================
Assigns every node a deterministic, collision-free variable name.

Base names come from the node kind and its salient attribute:

    CALL_FUNCTION   Foo          ->  Local_Foo
    VARIABLE_GET    Health       ->  Local_Health
    VARIABLE_SET    Health       ->  Set_Health
    EVENT           "Begin Play" ->  Event_Begin_Play
    PARAMETER       Tint         ->  Param_Tint
    CONSTANT / EXPRESSION        ->  <Class>_<compact-id>

Collisions are resolved in three tiers, over nodes in discovery order:

  1. a base name held by one node is used verbatim;
  2. otherwise the first holder keeps it and every later holder gets the
     node's compact id appended  (Local_Foo, Local_Foo_AQ);
  3. any name still shared after that gets a zero-based numeric suffix on
     every holder, in discovery order  (X_0, X_1).
"""

from __future__ import annotations

import re
from collections import OrderedDict
from typing import Callable, Dict, List, Sequence

from nodescribe.core.GraphPrimitives import Node
from nodescribe.core.Types import NodeKind
from nodescribe.synth.identity import IdentityCompactor

_NON_ALNUM = re.compile(r"[^0-9A-Za-z]+")

_CLASS_PREFIXES = ("K2Node_", "MaterialExpression", "EdGraphNode_")


def sanitize_name(name: str) -> str:
    """Non-alphanumeric runs become one underscore; never returns ''."""
    text = "" if name is None else str(name)
    result = _NON_ALNUM.sub("_", text).strip("_")
    return result or "Unnamed"


def class_label(node: Node) -> str:
    """The node's class name without its engine prefix."""
    name = node.type_name
    for prefix in _CLASS_PREFIXES:
        name = name.replace(prefix, "")
    return name or node.kind.name.title()


def is_static_switch_parameter(node: Node) -> bool:
    return node.kind == NodeKind.PARAMETER and (
        bool(node.attr("static_switch")) or class_label(node) == "StaticSwitchParameter"
    )


# ── Base names ────────────────────────────────────────────────────────────────

def _compact(node: Node, compactor: IdentityCompactor) -> str:
    return compactor.compact(node.id)


_BASE_NAMES: Dict[NodeKind, Callable[[Node, IdentityCompactor, str], str]] = {
    NodeKind.EVENT:
        lambda n, c, g: "Event_" + sanitize_name(n.title or n.attr("event", "")),
    NodeKind.CUSTOM_EVENT:
        lambda n, c, g: "Event_" + sanitize_name(n.attr("custom_name") or n.title),
    NodeKind.FUNCTION_ENTRY:
        lambda n, c, g: "FunctionEntry",
    NodeKind.MACRO_ENTRY:
        lambda n, c, g: "MacroEntry_" + sanitize_name(g or "Macro"),
    NodeKind.FUNCTION_RESULT:
        lambda n, c, g: "FunctionResult",
    NodeKind.MACRO_EXIT:
        lambda n, c, g: "MacroExit_" + sanitize_name(g or "Macro"),
    NodeKind.CALL_FUNCTION:
        lambda n, c, g: "Local_" + sanitize_name(n.attr("function") or n.title),
    NodeKind.VARIABLE_GET:
        lambda n, c, g: "Local_" + sanitize_name(n.attr("variable") or n.title),
    NodeKind.VARIABLE_SET:
        lambda n, c, g: "Set_" + sanitize_name(n.attr("variable") or n.title),
    NodeKind.SELF:
        lambda n, c, g: "Self",
    NodeKind.SPAWN_ACTOR:
        lambda n, c, g: "Local_Spawn_" + sanitize_name(n.attr("class", "Actor")),
    NodeKind.MAKE_ARRAY:
        lambda n, c, g: "Local_MakeArray",
    NodeKind.SELECT:
        lambda n, c, g: "Local_Select",
    NodeKind.DYNAMIC_CAST:
        lambda n, c, g: "Local_CastTo_" + sanitize_name(n.attr("target_type", "Unknown")),
    NodeKind.BRANCH:
        lambda n, c, g: "Branch",
    NodeKind.SEQUENCE:
        lambda n, c, g: "Sequence",
    NodeKind.SWITCH:
        lambda n, c, g: "Switch",
    NodeKind.MACRO_INSTANCE:
        lambda n, c, g: "Local_" + sanitize_name(n.attr("macro", "Macro")),
    NodeKind.KNOT:
        lambda n, c, g: "Wire_" + _compact(n, c),
    NodeKind.NAMED_REROUTE_DECLARATION:
        lambda n, c, g: "Reroute_" + sanitize_name(n.attr("name") or n.title),
    NodeKind.NAMED_REROUTE_USAGE:
        lambda n, c, g: "RerouteUsage_" + sanitize_name(n.attr("name") or n.title),
    NodeKind.PARAMETER:
        lambda n, c, g: ("Switch_" if is_static_switch_parameter(n) else "Param_")
        + sanitize_name(n.attr("parameter") or n.title),
    NodeKind.CONSTANT:
        lambda n, c, g: f"{sanitize_name(class_label(n))}_{_compact(n, c)}",
    NodeKind.EXPRESSION:
        lambda n, c, g: f"{sanitize_name(class_label(n))}_{_compact(n, c)}",
    NodeKind.SINK:
        lambda n, c, g: f"{sanitize_name(class_label(n))}_{_compact(n, c)}",
    NodeKind.COMMENT:
        lambda n, c, g: f"Local_{sanitize_name(class_label(n))}_{_compact(n, c)}",
    NodeKind.UNKNOWN:
        lambda n, c, g: f"Local_{sanitize_name(class_label(n))}_{_compact(n, c)}",
}


def base_name(node: Node, compactor: IdentityCompactor, graph_name: str = "") -> str:
    return _BASE_NAMES[node.kind](node, compactor, graph_name)


# ── Collision resolution ──────────────────────────────────────────────────────

def _group(names: Dict[str, str], order: List[str]) -> "OrderedDict[str, List[str]]":
    groups: "OrderedDict[str, List[str]]" = OrderedDict()
    for nid in order:
        groups.setdefault(names[nid], []).append(nid)
    return groups


def assign_names(
    nodes: Sequence[Node],
    compactor: IdentityCompactor,
    graph_name: str = "",
) -> Dict[str, str]:
    """Map node id -> variable name for `nodes`, given in discovery order."""
    order: List[str] = []
    by_id: Dict[str, Node] = {}
    for node in nodes:
        if node.id not in by_id:
            by_id[node.id] = node
            order.append(node.id)

    names = {nid: base_name(by_id[nid], compactor, graph_name) for nid in order}

    # tier 2: first holder keeps the base name
    for base, holders in _group(names, order).items():
        for nid in holders[1:]:
            names[nid] = f"{base}_{compactor.compact(nid)}"

    # tier 3: numeric suffix for anything still shared
    for name, holders in _group(names, order).items():
        if len(holders) > 1:
            for i, nid in enumerate(holders):
                names[nid] = f"{name}_{i}"

    return names
