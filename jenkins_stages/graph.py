# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""
Jenkins flow graph -> nested stage tree.

The engine reports a build as a flat DAG (each node lists its parent ids). Three passes
turn it into something a human can read:

1. `build_node_index`: id lookup, root detection, parent links inverted into forward edges,
   "Stage : Start" placeholders relabeled from their first child.
2. `build_tree`: walk forward edges from the root and nest nodes between start/end markers.
   Parallel branches share the nesting context, so they end up as ordered siblings.
3. `filter_tree`: keep only nodes the policy allows; children of dropped nodes move up to
   the nearest kept ancestor in depth-first order. Produces fresh `StageNode` records.

Nodes reference each other by id through the `GraphIndex`; nothing here does I/O.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from .exceptions import DanglingParentError, MissingRootError, UnbalancedStructuralMarkerError
from .policy import DEFAULT_POLICY, NodeFilterPolicy
from .stage_types import BuildCoordinates, GraphNode, NodeKind, RawNode, StageNode

logger = logging.getLogger(__name__)

STAGE_START_PLACEHOLDER = "Stage : Start"
STAGE_LABEL_PREFIX = "Stage: "


@dataclass
class GraphIndex:
    """Backing store for the working graph: nodes by id plus input order."""

    nodes: Dict[str, GraphNode] = field(default_factory=dict)
    order: List[str] = field(default_factory=list)
    root_id: str = ""

    @property
    def root(self) -> GraphNode:
        return self.nodes[self.root_id]

    def __getitem__(self, node_id: str) -> GraphNode:
        return self.nodes[node_id]

    def __len__(self) -> int:
        return len(self.order)

    def in_order(self) -> Iterable[GraphNode]:
        for node_id in self.order:
            yield self.nodes[node_id]


def build_node_index(raw_nodes: Iterable[RawNode], coords: Optional[BuildCoordinates] = None) -> GraphIndex:
    """Index nodes by id, find the root and populate forward edges.

    If several nodes have no parents, the last one in input order becomes the root
    (logged as a warning).
    """
    index = GraphIndex()
    roots: List[str] = []
    for raw in raw_nodes:
        node = GraphNode.from_raw(raw)
        if node.id not in index.nodes:
            index.order.append(node.id)
        index.nodes[node.id] = node
        if not node.parents:
            roots.append(node.id)

    if not roots:
        raise MissingRootError(f"no root node (a node with no parents) among {len(index)} nodes")
    if len(roots) > 1:
        logger.warning(f"Flow graph has {len(roots)} parentless nodes {roots}; using the last one as root")
    index.root_id = roots[-1]

    for node in index.in_order():
        for parent_id in node.parents:
            parent = index.nodes.get(parent_id)
            if parent is None:
                raise DanglingParentError(node_id=node.id, parent_id=parent_id)
            parent.forward_edges.append(node.id)
            if STAGE_START_PLACEHOLDER in parent.display_name:
                parent.display_name = STAGE_LABEL_PREFIX + node.display_name
                parent.engine_display_name = parent.display_name

        if node.kind == NodeKind.ATOMIC_STEP and coords is not None:
            node.log_url = coords.node_log_url(node.id)
            node.log_url_full = coords.node_log_url_full(node.id)

    logger.debug(f"Indexed {len(index)} flow nodes, root={index.root_id}")
    return index


def _attach(index: GraphIndex, parent_id: str, child_id: str) -> None:
    child = index[child_id]
    if child.tree_parent is not None:
        return
    child.tree_parent = parent_id
    index[parent_id].tree_children.append(child_id)


def build_tree(index: GraphIndex) -> GraphNode:
    """Nest the forward-linked flow graph between its start/end markers.

    Depth-first from the root with an explicit stack of (node id, nesting context).
    A node reached again under the same context (parallel branches joining) is not
    walked twice; a node is attached to at most one tree parent.
    """
    seen: set = set()
    stack: List[Tuple[str, Optional[str]]] = [(index.root_id, None)]
    while stack:
        node_id, context = stack.pop()
        if (node_id, context) in seen:
            continue
        seen.add((node_id, context))
        node = index[node_id]

        if node.kind == NodeKind.END_MARKER:
            if context is None:
                raise UnbalancedStructuralMarkerError(node_id=node_id)
            context = index[context].tree_parent
        elif context is not None:
            _attach(index, context, node_id)

        if node.kind == NodeKind.START_MARKER:
            context = node_id

        for next_id in reversed(node.forward_edges):
            stack.append((next_id, context))

    return index.root


def filter_tree(
    index: GraphIndex, policy: NodeFilterPolicy = DEFAULT_POLICY
) -> StageNode:
    """Build the display tree of allowed nodes, promoting children of dropped nodes.

    The root is always kept as the head of the tree and receives any promoted children.
    The policy sees the engine's node name, so enrichment cannot un-block a node.
    """
    root = StageNode.from_graph_node(index.root)

    def visit(node_id: str, target: StageNode) -> None:
        node = index[node_id]
        if policy.allows(node.engine_display_name, node.kind):
            out = StageNode.from_graph_node(node)
            target.children.append(out)
            target = out
        for child_id in node.tree_children:
            visit(child_id, target)

    for child_id in index.root.tree_children:
        visit(child_id, root)
    return root


Enricher = Callable[[GraphIndex], None]


def build_stage_tree(
    raw_nodes: Iterable[RawNode],
    coords: Optional[BuildCoordinates] = None,
    *,
    policy: Optional[NodeFilterPolicy] = None,
    enricher: Optional[Enricher] = None,
) -> Optional[StageNode]:
    """Run all passes over a flat node list. Returns None for an empty list.

    `enricher`, if given, runs after nesting and before filtering so it can update
    display names, durations and log links in the output. Filtering still matches
    on the engine's names.
    """
    raw_list = list(raw_nodes or [])
    if not raw_list:
        return None
    index = build_node_index(raw_list, coords)
    build_tree(index)
    if enricher is not None:
        enricher(index)
    return filter_tree(index, policy or DEFAULT_POLICY)
