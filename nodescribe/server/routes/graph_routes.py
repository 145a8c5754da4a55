"""
Asset REST routes.

All routes are mounted under /api by main.py.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Body, HTTPException, Query
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel

from nodescribe.core.GraphPrimitives import Node
from nodescribe.settings import settings
from nodescribe.server.state import asset_store
from nodescribe.snapshot.deserialiser import json_to_asset
from nodescribe.snapshot.schema import SchemaError
from nodescribe.synth.document import render_asset

logger = logging.getLogger(__name__)

router = APIRouter()


def _serialize_node(node: Node, graph_name: str) -> Dict[str, Any]:
    return {
        "id": node.id,
        "compact_id": asset_store.compactor.compact(node.id),
        "graph": graph_name,
        "kind": node.kind.name,
        "type": node.type_name,
        "title": node.title,
        "position": {"x": node.x, "y": node.y},
        "attributes": dict(node.attributes),
        "ports": [
            {
                "name": p.name,
                "direction": "in" if p.is_input else "out",
                "class": "control" if p.is_control else "data",
                "default": p.default_value,
                "broken": p.broken,
            }
            for p in node.ports
        ],
    }


# ── GET /assets ───────────────────────────────────────────────────────────────

@router.get("/assets")
async def list_assets() -> List[Dict[str, Any]]:
    result = []
    for name in asset_store.names():
        asset = asset_store.get(name)
        if asset is None:
            continue
        result.append({
            "name": asset.name,
            "type": asset.asset_type,
            "path": asset.path,
            "graphs": asset.graph_names(),
        })
    return result


# ── POST /assets ──────────────────────────────────────────────────────────────

@router.post("/assets", status_code=201)
async def store_asset(
    data: Dict[str, Any] = Body(...),
    strict: Optional[bool] = Query(None),
) -> Dict[str, Any]:
    strict = settings.STRICT_SCHEMA if strict is None else strict
    try:
        asset = asset_store.load(data, strict=strict)
    except SchemaError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return {"name": asset.name, "graphs": asset.graph_names()}


# ── GET /assets/:name/render ──────────────────────────────────────────────────

@router.get("/assets/{name}/render", response_class=PlainTextResponse)
async def render_stored_asset(name: str, graph: Optional[str] = Query(None)) -> str:
    asset = asset_store.get(name)
    if asset is None:
        available = ", ".join(asset_store.names()) or "(none)"
        return f"// Error: Asset '{name}' not found. Available: {available}"
    return render_asset(asset, graph, asset_store.compactor)


# ── POST /render ──────────────────────────────────────────────────────────────

class RenderBody(BaseModel):
    asset: Dict[str, Any]
    graph: Optional[str] = None
    strict: bool = False


@router.post("/render", response_class=PlainTextResponse)
async def render_posted_asset(body: RenderBody) -> str:
    try:
        asset = json_to_asset(body.asset, strict=body.strict)
    except SchemaError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return render_asset(asset, body.graph, asset_store.compactor)


# ── GET /assets/:name/nodes/:compact_id ───────────────────────────────────────

@router.get("/assets/{name}/nodes/{compact_id}")
async def get_node(name: str, compact_id: str) -> Dict[str, Any]:
    found = asset_store.resolve_node(name, compact_id)
    if found is None:
        raise HTTPException(status_code=404, detail="Node not found")
    graph, node = found
    return _serialize_node(node, graph.name)


# ── DELETE /assets/:name ──────────────────────────────────────────────────────

@router.delete("/assets/{name}")
async def delete_asset(name: str) -> Dict[str, Any]:
    if not asset_store.remove(name):
        raise HTTPException(status_code=404, detail="Asset not found")
    return {"ok": True}
