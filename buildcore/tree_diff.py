"""
Tree Diff Engine.

Compares a tree snapshot with the one before it and classifies every node
and connection as active (kept), added or removed, for the leveling tree
view to color.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, FrozenSet, Iterable, Iterator, List, Optional, Set, Tuple

from buildcore.passive_tree import TreeContext
from buildcore.pob.models import TreeSpec

logger = logging.getLogger(__name__)


class ChangeState(str, Enum):
    ACTIVE = "active"
    ADDED = "added"
    REMOVED = "removed"


@dataclass(frozen=True)
class TreeDiff:
    """Node and connection changes between two snapshots."""
    nodes_active: FrozenSet[str]
    nodes_added: FrozenSet[str]
    nodes_removed: FrozenSet[str]

    # Partitions of the node sets above
    ascendancy_active: FrozenSet[str]
    ascendancy_added: FrozenSet[str]
    ascendancy_removed: FrozenSet[str]
    regular_active: FrozenSet[str]
    regular_added: FrozenSet[str]
    regular_removed: FrozenSet[str]

    # Connection ids "{a}-{b}"; a connection may be in more than one set
    connections_active: FrozenSet[str]
    connections_added: FrozenSet[str]
    connections_removed: FrozenSet[str]

    # Selected ascendancy id, shown at full opacity
    ascendancy: Optional[str] = None

    def node_state(self, node_id: str) -> Optional[ChangeState]:
        if node_id in self.nodes_active:
            return ChangeState.ACTIVE
        if node_id in self.nodes_added:
            return ChangeState.ADDED
        if node_id in self.nodes_removed:
            return ChangeState.REMOVED
        return None

    def connection_state(self, connection_id: str) -> Optional[ChangeState]:
        """Rendering state of a connection (active wins over added over removed)."""
        if connection_id in self.connections_active:
            return ChangeState.ACTIVE
        if connection_id in self.connections_added:
            return ChangeState.ADDED
        if connection_id in self.connections_removed:
            return ChangeState.REMOVED
        return None

    def style_values(self) -> Dict[str, Any]:
        """Values for the state placeholders of the tree style template."""
        return {
            "ascendancy": self.ascendancy,
            "nodesActive": sorted(self.nodes_active),
            "nodesAdded": sorted(self.nodes_added),
            "nodesRemoved": sorted(self.nodes_removed),
            "connectionsActive": sorted(self.connections_active),
            "connectionsAdded": sorted(self.connections_added),
            "connectionsRemoved": sorted(self.connections_removed),
        }


def _resolve_ascendancy(
    context: TreeContext,
    spec: TreeSpec,
    ascendancy_name: Optional[str],
) -> Optional[str]:
    if ascendancy_name:
        return ascendancy_name
    if spec.parsed_url is not None:
        return context.tree.ascendancy_name(spec.parsed_url.class_id, spec.parsed_url.ascendancy_id)
    return context.tree.ascendancy_name(spec.class_id, spec.ascend_class_id)


def _with_ascendancy_start(
    context: TreeContext,
    nodes: Set[str],
    ascendancy_name: Optional[str],
) -> Set[str]:
    """Add the implicit ascendancy start node when the ascendancy is in use."""
    if not ascendancy_name:
        return nodes
    ascendancy = context.tree.ascendancies.get(ascendancy_name)
    if ascendancy is None:
        logger.debug(f"Ascendancy {ascendancy_name} not in tree {context.version}")
        return nodes
    if ascendancy.start_node_id in nodes:
        return nodes

    graph_nodes = context.tree.graphs[ascendancy.graph_index].nodes
    if any(node_id in graph_nodes for node_id in nodes):
        return nodes | {ascendancy.start_node_id}
    return nodes


def _ascendancy_node_ids(context: TreeContext, ascendancy_name: Optional[str]) -> Set[str]:
    """Node ids of the selected ascendancy's graph; other ascendancies count as regular."""
    ascendancy = context.tree.ascendancies.get(ascendancy_name) if ascendancy_name else None
    if ascendancy is None:
        return set()
    return set(context.tree.graphs[ascendancy.graph_index].nodes)


def compute_tree_diff(
    context: TreeContext,
    current: TreeSpec,
    previous: Optional[TreeSpec] = None,
    ascendancy_name: Optional[str] = None,
) -> TreeDiff:
    """
    Diff a snapshot against its predecessor.

    Args:
        context: Tree context for the snapshots' tree version
        current: Snapshot being shown
        previous: Snapshot before it, or None for the first one
        ascendancy_name: Overrides the ascendancy decoded from the tree URL

    Returns:
        TreeDiff with node sets, their ascendancy/regular partitions and
        connection sets
    """
    ascendancy_name = _resolve_ascendancy(context, current, ascendancy_name)
    current_nodes = _with_ascendancy_start(context, set(current.resolved_nodes), ascendancy_name)
    previous_nodes = set(previous.resolved_nodes) if previous is not None else set()

    active = previous_nodes & current_nodes
    added = current_nodes - previous_nodes
    removed = previous_nodes - current_nodes

    ascendancy_ids = _ascendancy_node_ids(context, ascendancy_name)

    connections_active: List[str] = []
    connections_added: List[str] = []
    connections_removed: List[str] = []
    for graph in context.tree.graphs:
        for conn in graph.connections:
            a, b = conn.a, conn.b
            if a in active and b in active:
                connections_active.append(conn.id)
            if (a in added and (b in added or b in active)) or (b in added and (a in added or a in active)):
                connections_added.append(conn.id)
            if (a in removed and (b in removed or b in active)) or (b in removed and (a in removed or a in active)):
                connections_removed.append(conn.id)

    diff = TreeDiff(
        nodes_active=frozenset(active),
        nodes_added=frozenset(added),
        nodes_removed=frozenset(removed),
        ascendancy_active=frozenset(active & ascendancy_ids),
        ascendancy_added=frozenset(added & ascendancy_ids),
        ascendancy_removed=frozenset(removed & ascendancy_ids),
        regular_active=frozenset(active - ascendancy_ids),
        regular_added=frozenset(added - ascendancy_ids),
        regular_removed=frozenset(removed - ascendancy_ids),
        connections_active=frozenset(connections_active),
        connections_added=frozenset(connections_added),
        connections_removed=frozenset(connections_removed),
        ascendancy=ascendancy_name if ascendancy_name in context.tree.ascendancies else None,
    )
    logger.debug(
        f"Tree diff '{current.title}': active={len(active)}, added={len(added)}, "
        f"removed={len(removed)}, connections={len(connections_active)}/"
        f"{len(connections_added)}/{len(connections_removed)}"
    )
    return diff


def diff_tree_specs(
    context: TreeContext,
    specs: Iterable[TreeSpec],
    ascendancy_name: Optional[str] = None,
) -> Iterator[Tuple[TreeSpec, TreeDiff]]:
    """Yield each snapshot with its diff against the snapshot before it."""
    previous: Optional[TreeSpec] = None
    for spec in specs:
        yield spec, compute_tree_diff(context, spec, previous, ascendancy_name)
        previous = spec
