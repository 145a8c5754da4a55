"""
nodescribe Snapshot Provider
============================
Turns serialised asset JSON into the immutable Graph Model.

Public API
----------
    from nodescribe.snapshot import json_to_asset, SchemaError

    try:
        asset = json_to_asset("BP_Door.json", strict=True)
    except SchemaError as exc:
        print(f"invalid snapshot: {exc}")
"""

from __future__ import annotations

from .deserialiser import json_to_asset, json_to_graph
from .schema import SchemaError, validate, validate_file

__all__ = ["SchemaError", "json_to_asset", "json_to_graph", "validate", "validate_file"]
