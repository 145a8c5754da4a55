"""
nodescribe synthesis: Convergence Detector
============================================
Finds where the branches of a control split rejoin.

The answer is the first common descendant in a fixed BFS order, not a
dominator.  That is enough to render each shared continuation once:

  two branches  reach(A) is collected, then B is walked breadth-first and
                the first node already in reach(A) wins;
  N branches    every branch's reach set is collected, then the first
                branch is walked breadth-first and the first node present
                in all N sets wins.

None means the branches never rejoin.
"""

from __future__ import annotations

import logging
from collections import deque
from typing import Iterator, List, Optional, Sequence, Set

from nodescribe.core.GraphPrimitives import Graph
from nodescribe.core.Types import PortFunction
from nodescribe.synth.reachability import reachable_from

logger = logging.getLogger(__name__)


def _bfs(graph: Graph, start: str) -> Iterator[str]:
    seen: Set[str] = set()
    queue = deque([start])
    while queue:
        nid = queue.popleft()
        if nid in seen or graph.get_node(nid) is None:
            continue
        seen.add(nid)
        yield nid
        for edge in graph.get_all_outgoing(nid, PortFunction.CONTROL):
            queue.append(edge.to_node_id)


def find_convergence(graph: Graph, branch_starts: Sequence[Optional[str]]) -> Optional[str]:
    starts: List[str] = [s for s in branch_starts if s is not None]
    if len(starts) < 2:
        return None

    if len(starts) == 2:
        reach_a = reachable_from(graph, [starts[0]], PortFunction.CONTROL)
        for nid in _bfs(graph, starts[1]):
            if nid in reach_a:
                logger.debug("branches %s converge at %s", starts, nid)
                return nid
        return None

    others = [reachable_from(graph, [s], PortFunction.CONTROL) for s in starts[1:]]
    for nid in _bfs(graph, starts[0]):
        if all(nid in reach for reach in others):
            logger.debug("branches %s converge at %s", starts, nid)
            return nid
    return None
