"""
nodescribe
==========
Renders visual node graphs (event/exec graphs and material-style
expression graphs) as deterministic structured pseudocode.

    from nodescribe import json_to_asset, render_asset

    asset = json_to_asset("BP_Door.json")
    print(render_asset(asset))
"""

from __future__ import annotations

from .snapshot.deserialiser import json_to_asset
from .synth import IdentityCompactor, RootSelection, render_asset, render_graph

__version__ = "0.1.0"

__all__ = [
    "IdentityCompactor",
    "RootSelection",
    "json_to_asset",
    "render_asset",
    "render_graph",
]
