"""
Stable-identity compactor.

Opaque node ids (typically 32 hex digit GUIDs) are long and noisy in rendered
output.  The compactor hands out a short token per id instead: the id's
first-seen index encoded as minimal big-endian bytes, base64url encoded with
the trailing padding stripped.

    index 0    ->  "AA"
    index 1    ->  "AQ"
    index 256  ->  "AQA"

`expand()` maps a token back to its id.  A raw 32 hex digit id is accepted
as-is so callers can pass either form.
"""

from __future__ import annotations

import base64
import binascii
import logging
import re
import threading
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)

_RAW_ID = re.compile(r"^[0-9a-fA-F]{32}$")


def encode_index(index: int) -> str:
    if index < 0:
        raise ValueError(f"index must be non-negative, got {index}")
    raw = index.to_bytes(max(1, (index.bit_length() + 7) // 8), "big")
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def decode_index(token: str) -> Optional[int]:
    padded = token + "=" * (-len(token) % 4)
    try:
        raw = base64.urlsafe_b64decode(padded.encode("ascii"))
    except (binascii.Error, ValueError, UnicodeEncodeError):
        return None
    if not raw:
        return None
    return int.from_bytes(raw, "big")


class IdentityCompactor:
    """Thread-safe two-way map between opaque node ids and short tokens."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._index_by_id: Dict[str, int] = {}
        self._ids: List[str] = []

    def __len__(self) -> int:
        return len(self._ids)

    def compact(self, node_id: str) -> str:
        with self._lock:
            index = self._index_by_id.get(node_id)
            if index is None:
                index = len(self._ids)
                self._index_by_id[node_id] = index
                self._ids.append(node_id)
        return encode_index(index)

    def expand(self, token: str) -> Optional[str]:
        """Resolve a token (or raw id) back to the node id, None if unknown."""
        if len(token) == 32 and _RAW_ID.match(token):
            return token
        index = decode_index(token)
        if index is None:
            logger.debug("expand: %r is not a compact id", token)
            return None
        with self._lock:
            if index < len(self._ids):
                return self._ids[index]
        return None
