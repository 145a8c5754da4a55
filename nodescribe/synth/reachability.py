"""
nodescribe synthesis: Reachability & Pure-Dependency Collector
================================================================
Read-only traversals over a Graph snapshot.

  reachable_from            BFS closure over one channel (optionally upstream)
  walk_order                the same closure as a deterministic DFS pre-order
  collect_pure_dependencies data-only predecessors of one node, deps first
  topo_sort                 post-order DFS over a node subset (data emitter)
  resolve_source            input port -> (source node, source port), seeing
                            through reroute knots

Cyclic data wiring is illegal but possible in a snapshot.  Every recursive
walk here carries an in-progress guard so it terminates; callers that care
pass a `cycles` set and get the ids of nodes where a cycle was cut.
"""

from __future__ import annotations

import logging
from collections import deque
from typing import Iterable, List, Optional, Set, Tuple

from nodescribe.core.GraphPrimitives import Graph, Node
from nodescribe.core.Types import NodeKind, PortDirection, PortFunction

logger = logging.getLogger(__name__)


# ── Closure ───────────────────────────────────────────────────────────────────

def _neighbours(graph: Graph, node_id: str, channel: PortFunction, upstream: bool) -> List[str]:
    if upstream:
        return [e.from_node_id for e in graph.get_all_incoming(node_id, channel)]
    return [e.to_node_id for e in graph.get_all_outgoing(node_id, channel)]


def reachable_from(
    graph: Graph,
    roots: Iterable[Optional[str]],
    channel: PortFunction = PortFunction.CONTROL,
    upstream: bool = False,
) -> Set[str]:
    """
    Every node reached from `roots` following only `channel` edges,
    roots included.  `upstream=True` walks edges backwards (consumer to
    source).  Unknown or None roots are ignored.
    """
    seen: Set[str] = set()
    queue = deque(r for r in roots if r is not None and graph.get_node(r) is not None)
    while queue:
        nid = queue.popleft()
        if nid in seen:
            continue
        seen.add(nid)
        queue.extend(n for n in _neighbours(graph, nid, channel, upstream) if n not in seen)
    return seen


def walk_order(
    graph: Graph,
    roots: Iterable[str],
    channel: PortFunction = PortFunction.CONTROL,
    visited: Optional[Set[str]] = None,
) -> List[str]:
    """Depth-first pre-order over `channel` edges, shared visited set across roots."""
    visited = set() if visited is None else visited
    order: List[str] = []

    for root in roots:
        stack = [root]
        while stack:
            nid = stack.pop()
            if nid in visited or graph.get_node(nid) is None:
                continue
            visited.add(nid)
            order.append(nid)
            # reversed so the first port's target is walked first
            stack.extend(reversed(_neighbours(graph, nid, channel, upstream=False)))
    return order


# ── Source resolution ─────────────────────────────────────────────────────────

def follow_knots(graph: Graph, node_id: str, port_name: str) -> Tuple[Optional[str], Optional[str]]:
    """Walk back through reroute knots to the real source output port."""
    seen: Set[str] = set()
    while True:
        node = graph.get_node(node_id)
        if node is None or node.kind != NodeKind.KNOT or node_id in seen:
            return node_id, port_name
        seen.add(node_id)
        knot_inputs = node.inputs()
        if not knot_inputs:
            return node_id, port_name
        incoming = graph.get_incoming(node_id, knot_inputs[0].name)
        if not incoming:
            return node_id, port_name
        node_id, port_name = incoming[0].from_node_id, incoming[0].from_port_name


def resolve_source(graph: Graph, node_id: str, port_name: str) -> Optional[Tuple[Node, str]]:
    """
    Source (node, output port name) feeding an input port, seen through
    knots.  None when the port is unwired.
    """
    incoming = graph.get_incoming(node_id, port_name)
    if not incoming:
        return None
    src_id, src_port = follow_knots(graph, incoming[0].from_node_id, incoming[0].from_port_name)
    src = graph.get_node(src_id)
    if src is None:
        return None
    return src, src_port


# ── Pure dependencies ─────────────────────────────────────────────────────────

def collect_pure_dependencies(
    graph: Graph,
    node_id: str,
    already_emitted: Set[str],
    cycles: Optional[Set[str]] = None,
) -> List[str]:
    """
    Minimal set of pure (control-free) predecessors needed to evaluate the
    data inputs of `node_id`, dependencies before dependents, excluding
    anything in `already_emitted`.  Knots on the way are included so the
    caller can account for them; emitters render them as nothing.
    """
    ordered: List[str] = []
    placed: Set[str] = set()
    in_progress: Set[str] = {node_id}

    def visit(nid: str) -> None:
        for edge in graph.get_all_incoming(nid, PortFunction.DATA):
            src_id = edge.from_node_id
            if src_id in already_emitted or src_id in placed:
                continue
            src = graph.get_node(src_id)
            if src is None or not src.is_pure:
                continue
            if src_id in in_progress:
                if cycles is not None:
                    cycles.add(src_id)
                logger.warning("cyclic data wiring through node %s in graph %s", src_id, graph.name)
                continue
            in_progress.add(src_id)
            visit(src_id)
            in_progress.discard(src_id)
            if src_id not in placed:
                placed.add(src_id)
                ordered.append(src_id)

    visit(node_id)
    return ordered


# ── Topological sort ──────────────────────────────────────────────────────────

def topo_sort(
    graph: Graph,
    seeds: Iterable[str],
    allowed: Set[str],
    cycles: Optional[Set[str]] = None,
) -> List[str]:
    """
    Post-order DFS over data edges restricted to `allowed`: every node is
    placed after all of its allowed sources.
    """
    placed: Set[str] = set()
    on_stack: Set[str] = set()
    order: List[str] = []

    def visit(nid: str) -> None:
        if nid not in allowed or nid in placed:
            return
        if nid in on_stack:
            if cycles is not None:
                cycles.add(nid)
            logger.warning("cyclic data wiring through node %s in graph %s", nid, graph.name)
            return
        on_stack.add(nid)
        for edge in graph.get_all_incoming(nid, PortFunction.DATA):
            visit(edge.from_node_id)
        on_stack.discard(nid)
        placed.add(nid)
        order.append(nid)

    for seed in seeds:
        visit(seed)
    return order


def data_output_count(node: Node) -> int:
    return sum(1 for p in node.ports
               if p.direction == PortDirection.OUTPUT and p.function == PortFunction.DATA)
