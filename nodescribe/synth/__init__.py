"""
nodescribe Synthesis Engine
===========================
Turns an immutable graph snapshot into structured pseudocode.

Pipeline:
    Graph  →  [reachability + naming]   →  discovery order, variable names
    Graph  →  [control_emitter]         →  C++-flavoured event/function code
    Graph  →  [data_emitter]            →  HLSL-flavoured expression list
    Asset  →  [document]                →  headers + one section per graph

Public API
----------
    from nodescribe.synth import render_asset, render_graph

    text = render_asset(asset, graph_name="EventGraph")
    print(text)
    # or, one graph with a forced emitter
    text = render_graph(graph, roots=RootSelection.ENTRY_POINTS)
"""

from __future__ import annotations

from .control_emitter import ControlEmitter, RenderState
from .data_emitter import DataEmitter
from .document import RootSelection, render_asset, render_graph
from .identity import IdentityCompactor

__all__ = [
    "ControlEmitter",
    "DataEmitter",
    "IdentityCompactor",
    "RenderState",
    "RootSelection",
    "render_asset",
    "render_graph",
]
