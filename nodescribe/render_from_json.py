"""
render_from_json.py: CLI for the nodescribe renderer
======================================================
Renders a serialised asset JSON snapshot as structured pseudocode.

Usage
-----
    nodescribe-render <asset.json> [options]
    python -m nodescribe.render_from_json <asset.json> [options]

Options
-------
    --graph   <name>    Render only this graph (default: every graph;
                        "EventGraph" selects the first ubergraph)
    --out     <file>    Write the result to a file instead of stdout
    --list              List the asset's graphs and exit
    --strict            Treat unknown node types as errors (default: warnings only)

Examples
--------
    # Render every graph of a blueprint:
    nodescribe-render snapshots/BP_Door.json

    # Render one function graph into a file:
    nodescribe-render snapshots/BP_Door.json --graph OpenDoor --out BP_Door_OpenDoor.txt
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

from nodescribe.snapshot.deserialiser import json_to_asset
from nodescribe.snapshot.schema import SchemaError
from nodescribe.synth.document import render_asset


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="nodescribe-render",
        description="Render a node graph JSON snapshot as structured pseudocode.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    p.add_argument(
        "asset_json",
        metavar="asset.json",
        help="Path to the asset JSON snapshot to render.",
    )
    p.add_argument(
        "--graph",
        metavar="NAME",
        default=None,
        help="Render only this graph (case-insensitive).",
    )
    p.add_argument(
        "--out",
        metavar="FILE",
        default=None,
        help="Write the rendered text to FILE instead of stdout.",
    )
    p.add_argument(
        "--list",
        dest="list_only",
        action="store_true",
        help="List the asset's graphs and exit.",
    )
    p.add_argument(
        "--strict",
        action="store_true",
        help="Treat unknown node types as errors rather than warnings.",
    )
    return p


def main(argv=None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    json_path = Path(args.asset_json)
    if not json_path.exists():
        print(f"[error] File not found: {json_path}", file=sys.stderr)
        return 1

    # ── Validate + deserialise JSON → Asset ──────────────────────────────────
    try:
        asset = json_to_asset(json_path, strict=args.strict)
    except json.JSONDecodeError as exc:
        print(f"[error] Invalid JSON: {exc}", file=sys.stderr)
        return 1
    except SchemaError as exc:
        print(f"[error] Schema validation failed: {exc}", file=sys.stderr)
        return 1

    print(f"[nodescribe-render] asset  : {asset.name} ({asset.asset_type})", file=sys.stderr)
    print(f"[nodescribe-render] graphs : {len(asset.graphs)}", file=sys.stderr)

    if args.list_only:
        for graph in asset.graphs:
            print(f"{graph.name}\t{graph.category}\t{len(graph)} nodes")
        return 0

    # ── Render ───────────────────────────────────────────────────────────────
    text = render_asset(asset, args.graph)

    # ── Output ───────────────────────────────────────────────────────────────
    if args.out is None:
        print(text)
        return 0

    out_path = Path(args.out)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_text(text + "\n", encoding="utf-8")
    print(f"[nodescribe-render] wrote  : {out_path}", file=sys.stderr)
    return 0


if __name__ == "__main__":
    sys.exit(main())
