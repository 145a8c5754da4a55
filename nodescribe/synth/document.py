"""
nodescribe synthesis: Asset Documents
=======================================
Wraps emitter output for a whole asset: header, variable listing, one
section per graph.

    // Blueprint: BP_Door (Parent: Actor)
    // [<ID>] (<pos_x>,<pos_y>) - each node has a compact ID and position
    //
    // Variables:
    //   bool bIsOpen = false;

    // Graph: EventGraph (/Game/BP_Door::EventGraph)

    void Event_BeginPlay()
    {
        ...
    }

Structural absence is reported in the text, never raised:

    // Error: Graph 'Foo' not found. Available: EventGraph, Open
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Iterable, List, Optional

from nodescribe.core.GraphPrimitives import Asset, Graph, VariableDecl
from nodescribe.core.Types import NodeKind
from nodescribe.synth.control_emitter import ControlEmitter
from nodescribe.synth.data_emitter import DataEmitter
from nodescribe.synth.formatting import format_default_value, pin_type_to_string
from nodescribe.synth.identity import IdentityCompactor

logger = logging.getLogger(__name__)

LEGEND = "// [<ID>] (<pos_x>,<pos_y>) - each node has a compact ID and position"


class RootSelection(Enum):
    """Which emitter a graph is rendered with."""
    AUTO = "auto"                  # sinks present -> data, otherwise control
    ENTRY_POINTS = "entry_points"  # control emitter
    SINKS = "sinks"                # data emitter


def _choose(graph: Graph, roots: RootSelection) -> RootSelection:
    if roots != RootSelection.AUTO:
        return roots
    if graph.category == "material" or graph.nodes_of_kind(NodeKind.SINK):
        return RootSelection.SINKS
    return RootSelection.ENTRY_POINTS


def graph_lines(
    graph: Graph,
    roots: RootSelection = RootSelection.AUTO,
    compactor: Optional[IdentityCompactor] = None,
) -> List[str]:
    compactor = compactor or IdentityCompactor()
    if _choose(graph, roots) == RootSelection.SINKS:
        return DataEmitter(graph, compactor).render()
    return ControlEmitter(graph, compactor).render()


def render_graph(
    graph: Graph,
    roots: RootSelection = RootSelection.AUTO,
    compactor: Optional[IdentityCompactor] = None,
) -> str:
    """
    Render one graph as pseudocode.

    Args:
        graph:      The snapshot to render.
        roots:      Emitter selection; AUTO picks the data emitter when the
                    graph holds sink nodes.
        compactor:  Shared id compactor.  A fresh one is used when omitted,
                    so compact ids restart at "AA" for every call.

    Returns:
        The text, lines joined by newlines.  Failures come back as a
        `// Error:` comment.
    """
    return "\n".join(_guarded_lines(graph, roots, compactor))


def _guarded_lines(
    graph: Graph,
    roots: RootSelection,
    compactor: Optional[IdentityCompactor],
) -> List[str]:
    try:
        return graph_lines(graph, roots, compactor)
    except Exception as exc:
        logger.exception("failed to render graph %s", graph.name)
        return [f"// Error: failed to render graph '{graph.name}': {exc}"]


# ── Asset headers ─────────────────────────────────────────────────────────────

def _variable_lines(variables: Iterable[VariableDecl]) -> List[str]:
    lines = []
    for var in variables:
        type_str = pin_type_to_string(var.pin_type)
        if var.default_value:
            value = format_default_value(var.pin_type, var.default_value)
            lines.append(f"//   {type_str} {var.name} = {value};")
        else:
            lines.append(f"//   {type_str} {var.name};")
    return lines


def _blueprint_header(asset: Asset) -> List[str]:
    parent = asset.parent_class or "Unknown"
    lines = [f"// Blueprint: {asset.name} (Parent: {parent})", LEGEND]
    if asset.variables:
        lines.append("//")
        lines.append("// Variables:")
        lines.extend(_variable_lines(asset.variables))
    lines.append("")
    return lines


def _material_header(asset: Asset) -> List[str]:
    shading = asset.shading_model or "Unknown"
    blend = asset.blend_mode or "Unknown"
    return [
        f"// Material: {asset.name}",
        f"// Shading Model: {shading} | Blend Mode: {blend}",
        LEGEND,
        "",
    ]


def _graph_section(asset: Asset, graph: Graph, compactor: IdentityCompactor) -> List[str]:
    path = asset.path or asset.name
    lines = [f"// Graph: {graph.name} ({path}::{graph.name})"]
    if graph.local_variables:
        lines.append("// Local Variables:")
        lines.extend(_variable_lines(graph.local_variables))
    lines.append("")
    lines.extend(_guarded_lines(graph, RootSelection.AUTO, compactor))
    return lines


def missing_graph_error(asset: Asset, graph_name: str) -> str:
    available = ", ".join(asset.graph_names()) or "(none)"
    return f"// Error: Graph '{graph_name}' not found. Available: {available}"


def render_asset(
    asset: Asset,
    graph_name: Optional[str] = None,
    compactor: Optional[IdentityCompactor] = None,
) -> str:
    """
    Render a blueprint or material asset.

    `graph_name` selects one graph (case-insensitive; "EventGraph" means
    the first ubergraph).  Without it every graph of a blueprint is
    rendered in order.  Materials always render their expression graph.
    """
    compactor = compactor or IdentityCompactor()
    try:
        if asset.is_material:
            graph = asset.find_graph(graph_name) if graph_name else asset.find_graph(None)
            if graph is None and graph_name:
                return missing_graph_error(asset, graph_name)
            graph = graph or Graph(asset.name, category="material")
            lines = _material_header(asset)
            lines.extend(_guarded_lines(graph, RootSelection.SINKS, compactor))
            return "\n".join(lines)

        if graph_name:
            graph = asset.find_graph(graph_name)
            if graph is None:
                return missing_graph_error(asset, graph_name)
            graphs = [graph]
        else:
            graphs = list(asset.graphs)

        lines = _blueprint_header(asset)
        for graph in graphs:
            lines.extend(_graph_section(asset, graph, compactor))
        return "\n".join(lines)
    except Exception as exc:
        logger.exception("failed to render asset %s", asset.name)
        return f"// Error: failed to render asset '{asset.name}': {exc}"
