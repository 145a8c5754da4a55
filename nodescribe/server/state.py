"""
AssetStore: the server's in-memory catalogue of parsed snapshots.

Assets are immutable once parsed, so render requests read them without
holding the lock; the lock only guards the name -> Asset dict.  One
IdentityCompactor is shared by every request so a compact id handed out
by a render stays resolvable through /nodes/{compact_id}.
"""
from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

from nodescribe.core.GraphPrimitives import Asset, Graph, Node
from nodescribe.snapshot.deserialiser import json_to_asset
from nodescribe.synth.identity import IdentityCompactor

logger = logging.getLogger(__name__)


class AssetStore:
    """Holds parsed assets keyed by name, plus the shared id compactor."""

    def __init__(self) -> None:
        self._assets: Dict[str, Asset] = {}
        self._lock = threading.Lock()
        self.compactor = IdentityCompactor()

    # ── Assets ──────────────────────────────────────────────────────────────

    def add(self, asset: Asset) -> Asset:
        with self._lock:
            replaced = asset.name in self._assets
            self._assets[asset.name] = asset
        logger.info("%s asset %s (%d graphs)", "replaced" if replaced else "stored",
                    asset.name, len(asset.graphs))
        return asset

    def load(self, source: Union[str, Path, Dict[str, Any]], strict: bool = False) -> Asset:
        return self.add(json_to_asset(source, strict=strict))

    def load_directory(self, directory: Union[str, Path], strict: bool = False) -> List[str]:
        """Load every *.json snapshot in `directory`; returns the names stored."""
        loaded = []
        for path in sorted(Path(directory).glob("*.json")):
            try:
                loaded.append(self.load(path, strict=strict).name)
            except (OSError, ValueError) as exc:
                # SchemaError and JSONDecodeError are both ValueErrors
                logger.error("skipping snapshot %s: %s", path, exc)
        return loaded

    def get(self, name: str) -> Optional[Asset]:
        with self._lock:
            return self._assets.get(name)

    def names(self) -> List[str]:
        with self._lock:
            return sorted(self._assets)

    def remove(self, name: str) -> bool:
        with self._lock:
            return self._assets.pop(name, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._assets.clear()

    # ── Node lookup ─────────────────────────────────────────────────────────

    def resolve_node(self, name: str, compact_id: str) -> Optional[Tuple[Graph, Node]]:
        """Expand a compact id and find the node inside asset `name`."""
        asset = self.get(name)
        if asset is None:
            return None
        node_id = self.compactor.expand(compact_id)
        if node_id is None:
            return None
        for graph in asset.graphs:
            node = graph.get_node(node_id)
            if node is not None:
                return graph, node
        return None


asset_store = AssetStore()

__all__ = ["AssetStore", "asset_store"]
