"""
Passive Tree Graph Model.

Loads processed passive tree datasets (one JSON file per tree version) and
builds, once per version, an immutable TreeContext:

- a flat node lookup merging every graph (main tree and ascendancies)
- a static SVG template: main graph connections and nodes, then one bordered
  group per ascendancy

Contexts are collected in a TreeRegistry created at startup and passed to the
parser and the diff engine.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from buildcore.config import ImportSettings
from buildcore.constants import (
    ASCENDANCY_ASCENDANT_BORDER_RADIUS,
    ASCENDANCY_BORDER_RADIUS,
    ASCENDANT_ID,
    CONNECTION_ACTIVE_STROKE_WIDTH,
    CONNECTION_STROKE_WIDTH,
    DEFAULT_TREE_VERSION,
    MASTERY_COLOR,
    NODE_STROKE_WIDTH,
    TREE_PADDING,
)

logger = logging.getLogger(__name__)

# CSS class names used by the template
GROUP_NODE_CLASS = "nodes"
GROUP_CONNECTION_CLASS = "connections"
NODE_MASTERY_CLASS = "mastery"
NODE_KEYSTONE_CLASS = "keystone"
NODE_NOTABLE_CLASS = "notable"
NODE_NORMAL_CLASS = "normal"
ASCENDANCY_CLASS = "ascendancy"
BORDER_CLASS = "border"


class TreeDataError(ValueError):
    """Raised when a tree dataset is malformed or cannot be rendered."""


class NodeKind(str, Enum):
    """Kinds of passive nodes in the processed dataset."""
    NORMAL = "Normal"
    NOTABLE = "Notable"
    KEYSTONE = "Keystone"
    MASTERY = "Mastery"
    JEWEL = "Jewel"
    ASCENDANCY_START = "Ascendancy_Start"


class Winding(str, Enum):
    CW = "CW"
    CCW = "CCW"


@dataclass(frozen=True)
class Arc:
    """Curvature of a non-straight connection."""
    winding: Winding
    radius: float


@dataclass(frozen=True)
class Node:
    """A passive tree node."""
    x: float
    y: float
    kind: NodeKind
    text: str = ""
    stats: Tuple[str, ...] = ()


@dataclass(frozen=True)
class Connection:
    """Edge between two nodes; straight unless it carries an Arc."""
    a: str
    b: str
    arc: Optional[Arc] = None

    @property
    def id(self) -> str:
        return f"{self.a}-{self.b}"


@dataclass(frozen=True)
class Graph:
    nodes: Mapping[str, Node]
    connections: Tuple[Connection, ...]


@dataclass(frozen=True)
class CharacterClass:
    name: str
    ascendancies: Tuple[str, ...]


@dataclass(frozen=True)
class Ascendancy:
    id: str
    start_node_id: str
    graph_index: int


@dataclass(frozen=True)
class Bounds:
    min_x: float
    min_y: float
    max_x: float
    max_y: float


@dataclass(frozen=True)
class SkillTreeData:
    """One processed tree dataset."""
    bounds: Bounds
    classes: Tuple[CharacterClass, ...]
    graphs: Tuple[Graph, ...]
    graph_index: int
    ascendancies: Mapping[str, Ascendancy]
    mastery_effects: Mapping[str, Tuple[str, ...]] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SkillTreeData":
        """
        Build from processed tree JSON.

        Raises:
            TreeDataError: If a required key is missing or has the wrong shape
        """
        try:
            bounds = data["bounds"]
            graphs = tuple(_graph_from_dict(g) for g in data["graphs"])
            tree = cls(
                bounds=Bounds(
                    min_x=bounds["minX"],
                    min_y=bounds["minY"],
                    max_x=bounds["maxX"],
                    max_y=bounds["maxY"],
                ),
                classes=tuple(
                    CharacterClass(name=c["name"], ascendancies=tuple(c.get("ascendancies", [])))
                    for c in data.get("classes", [])
                ),
                graphs=graphs,
                graph_index=int(data["graphIndex"]),
                ascendancies=MappingProxyType({
                    name: Ascendancy(
                        id=str(asc["id"]),
                        start_node_id=str(asc["startNodeId"]),
                        graph_index=int(asc["graphIndex"]),
                    )
                    for name, asc in data.get("ascendancies", {}).items()
                }),
                mastery_effects=MappingProxyType({
                    str(effect_id): tuple(effect.get("stats", []))
                    for effect_id, effect in data.get("masteryEffects", {}).items()
                }),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise TreeDataError(f"Malformed tree data: {e!r}") from e

        if not 0 <= tree.graph_index < len(graphs):
            raise TreeDataError(f"Main graph index {tree.graph_index} out of range")
        return tree

    @property
    def main_graph(self) -> Graph:
        return self.graphs[self.graph_index]

    def ascendancy_name(self, class_id: int, ascendancy_id: int) -> Optional[str]:
        """Map tree URL class/ascendancy ids (ascendancy ids are 1-based) to a name."""
        if ascendancy_id <= 0 or not 0 <= class_id < len(self.classes):
            return None
        names = self.classes[class_id].ascendancies
        if ascendancy_id > len(names):
            return None
        return names[ascendancy_id - 1]


def _graph_from_dict(data: Dict[str, Any]) -> Graph:
    nodes = {
        str(node_id): Node(
            x=node["x"],
            y=node["y"],
            kind=NodeKind(node["k"]),
            text=node.get("text", ""),
            stats=tuple(node.get("stats") or ()),
        )
        for node_id, node in data.get("nodes", {}).items()
    }
    connections = []
    for conn in data.get("connections", []):
        arc = None
        if conn.get("s"):
            arc = Arc(winding=Winding(conn["s"]["w"]), radius=conn["s"]["r"])
        connections.append(Connection(a=str(conn["a"]), b=str(conn["b"]), arc=arc))
    return Graph(nodes=MappingProxyType(nodes), connections=tuple(connections))


def load_tree_data(path: Path) -> SkillTreeData:
    """
    Load a processed tree dataset from disk.

    Raises:
        TreeDataError: If the file cannot be read or is malformed
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise TreeDataError(f"Could not load tree data from {path}: {e}") from e
    return SkillTreeData.from_dict(data)


# ----------------------------------------------------------------------
# SVG template
# ----------------------------------------------------------------------


@dataclass(frozen=True)
class NodeStyle:
    radius: int
    css_class: Optional[str] = None


StyleLookup = Mapping[NodeKind, NodeStyle]

TREE_STYLES: StyleLookup = MappingProxyType({
    NodeKind.MASTERY: NodeStyle(50, NODE_MASTERY_CLASS),
    NodeKind.KEYSTONE: NodeStyle(75, NODE_KEYSTONE_CLASS),
    NodeKind.NOTABLE: NodeStyle(60, NODE_NOTABLE_CLASS),
    NodeKind.JEWEL: NodeStyle(60, NODE_NOTABLE_CLASS),
    NodeKind.NORMAL: NodeStyle(40, NODE_NORMAL_CLASS),
})

ASCENDANCY_STYLES: StyleLookup = MappingProxyType({
    NodeKind.ASCENDANCY_START: NodeStyle(30),
    NodeKind.NOTABLE: NodeStyle(65, NODE_NOTABLE_CLASS),
    NodeKind.NORMAL: NodeStyle(45, NODE_NORMAL_CLASS),
    NodeKind.JEWEL: NodeStyle(65, NODE_NOTABLE_CLASS),
})


@dataclass(frozen=True)
class ViewBox:
    x: float
    y: float
    w: float
    h: float


@dataclass(frozen=True)
class TreeTemplate:
    svg: str
    view_box: ViewBox
    style_template: str


def _render_node(node_id: str, node: Node, styles: StyleLookup) -> str:
    style = styles.get(node.kind)
    if style is None:
        raise TreeDataError(f"Missing style for node kind {node.kind.value} (node {node_id})")
    class_attr = f' class="{style.css_class}"' if style.css_class else ""
    return f'<circle cx="{node.x}" cy="{node.y}" id="n{node_id}" r="{style.radius}"{class_attr}></circle>\n'


def _render_connection(connection: Connection, node_lookup: Mapping[str, Node]) -> str:
    start = node_lookup.get(connection.a)
    end = node_lookup.get(connection.b)
    if start is None or end is None:
        logger.warning(f"Connection references unknown node: {connection.a} -> {connection.b}")
        return ""

    element_id = f"c{connection.id}"
    if connection.arc is not None:
        sweep = 1 if connection.arc.winding == Winding.CW else 0
        r = connection.arc.radius
        return (
            f'<path id="{element_id}" d="M {start.x} {start.y} '
            f'A {r} {r} 0 0 {sweep} {end.x} {end.y}"/>\n'
        )
    return f'<line id="{element_id}" x1="{start.x}" y1="{start.y}" x2="{end.x}" y2="{end.y}"/>\n'


def _render_graph(graph: Graph, node_lookup: Mapping[str, Node], styles: StyleLookup) -> str:
    parts = [f'<g class="{GROUP_CONNECTION_CLASS}">\n']
    parts.extend(_render_connection(c, node_lookup) for c in graph.connections)
    parts.append("</g>\n")

    # Nodes are drawn over connections
    parts.append(f'<g class="{GROUP_NODE_CLASS}">\n')
    parts.extend(_render_node(node_id, node, styles) for node_id, node in graph.nodes.items())
    parts.append("</g>\n")
    return "".join(parts)


STYLE_TEMPLATE = f"""
#{{{{ styleId }}}} {{
  background-color: {{{{ backgroundColor }}}};
}}

#{{{{ styleId }}}} .{GROUP_NODE_CLASS} {{
  fill: {{{{ nodeColor }}}};
  stroke: {{{{ nodeColor }}}};
  stroke-width: {NODE_STROKE_WIDTH};
}}

#{{{{ styleId }}}} .{GROUP_NODE_CLASS} .{NODE_MASTERY_CLASS} {{
  fill: {MASTERY_COLOR};
  stroke: {MASTERY_COLOR};
}}

#{{{{ styleId }}}} .{GROUP_CONNECTION_CLASS} {{
  fill: none;
  stroke: {{{{ connectionColor }}}};
  stroke-width: {CONNECTION_STROKE_WIDTH};
}}

#{{{{ styleId }}}} .{ASCENDANCY_CLASS} {{
  opacity: 0.4;
}}

{{{{#if ascendancy}}}}
#{{{{ styleId }}}} .{ASCENDANCY_CLASS}.{{{{ ascendancy }}}} {{
  opacity: unset;
}}
{{{{/if}}}}

#{{{{ styleId }}}} .{BORDER_CLASS} {{
  fill: none;
  stroke: {{{{ connectionColor }}}};
  stroke-width: {CONNECTION_STROKE_WIDTH};
}}

#{{{{ styleId }}}} :is({{{{#each nodesActive}}}}#n{{{{this}}}}{{{{#unless @last}}}}, {{{{/unless}}}}{{{{/each}}}}) {{
  fill: {{{{ nodeActiveColor }}}};
  stroke: {{{{ nodeActiveColor }}}};
}}

#{{{{ styleId }}}} :is({{{{#each nodesAdded}}}}#n{{{{this}}}}{{{{#unless @last}}}}, {{{{/unless}}}}{{{{/each}}}}) {{
  fill: {{{{ nodeAddedColor }}}};
  stroke: {{{{ nodeAddedColor }}}};
}}

#{{{{ styleId }}}} :is({{{{#each nodesRemoved}}}}#n{{{{this}}}}{{{{#unless @last}}}}, {{{{/unless}}}}{{{{/each}}}}) {{
  fill: {{{{ nodeRemovedColor }}}};
  stroke: {{{{ nodeRemovedColor }}}};
}}

#{{{{ styleId }}}} :is({{{{#each connectionsActive}}}}#c{{{{this}}}}{{{{#unless @last}}}}, {{{{/unless}}}}{{{{/each}}}}) {{
  stroke: {{{{ connectionActiveColor }}}};
  stroke-width: {CONNECTION_ACTIVE_STROKE_WIDTH};
}}

#{{{{ styleId }}}} :is({{{{#each connectionsAdded}}}}#c{{{{this}}}}{{{{#unless @last}}}}, {{{{/unless}}}}{{{{/each}}}}) {{
  stroke: {{{{ connectionAddedColor }}}};
  stroke-width: {CONNECTION_ACTIVE_STROKE_WIDTH};
}}

#{{{{ styleId }}}} :is({{{{#each connectionsRemoved}}}}#c{{{{this}}}}{{{{#unless @last}}}}, {{{{/unless}}}}{{{{/each}}}}) {{
  stroke: {{{{ connectionRemovedColor }}}};
  stroke-width: {CONNECTION_ACTIVE_STROKE_WIDTH};
}}
"""



def build_template(tree: SkillTreeData, node_lookup: Mapping[str, Node]) -> TreeTemplate:
    """
    Render the static SVG template for a dataset.

    Raises:
        TreeDataError: If a node kind has no style in its context, or an
            ascendancy start node is missing
    """
    view_box = ViewBox(
        x=tree.bounds.min_x - TREE_PADDING,
        y=tree.bounds.min_y - TREE_PADDING,
        w=tree.bounds.max_x - tree.bounds.min_x + TREE_PADDING * 2,
        h=tree.bounds.max_y - tree.bounds.min_y + TREE_PADDING * 2,
    )

    parts = [
        f'<svg width="{view_box.w}" height="{view_box.h}" '
        f'viewBox="{view_box.x} {view_box.y} {view_box.w} {view_box.h}" '
        f'xmlns="http://www.w3.org/2000/svg">\n'
    ]
    parts.append(_render_graph(tree.main_graph, node_lookup, TREE_STYLES))

    for name, ascendancy in tree.ascendancies.items():
        start = node_lookup.get(ascendancy.start_node_id)
        if start is None:
            raise TreeDataError(
                f"Ascendancy {name} start node {ascendancy.start_node_id} not in tree"
            )
        radius = (
            ASCENDANCY_ASCENDANT_BORDER_RADIUS
            if ascendancy.id == ASCENDANT_ID
            else ASCENDANCY_BORDER_RADIUS
        )
        parts.append(f'<g class="{ASCENDANCY_CLASS} {ascendancy.id}">\n')
        parts.append(f'<circle cx="{start.x}" cy="{start.y}" r="{radius}" class="{BORDER_CLASS}"/>\n')
        parts.append(_render_graph(tree.graphs[ascendancy.graph_index], node_lookup, ASCENDANCY_STYLES))
        parts.append("</g>\n")

    parts.append("</svg>\n")
    return TreeTemplate(svg="".join(parts), view_box=view_box, style_template=STYLE_TEMPLATE)


# ----------------------------------------------------------------------
# Context and registry
# ----------------------------------------------------------------------


@dataclass(frozen=True)
class TreeContext:
    """Read-only view of one tree version: dataset, node lookup and template."""
    version: str
    tree: SkillTreeData
    node_lookup: Mapping[str, Node]
    template: TreeTemplate

    def has_node(self, node_id: str) -> bool:
        return node_id in self.node_lookup

    def ascendancy_graph_nodes(self, name: str) -> Mapping[str, Node]:
        ascendancy = self.tree.ascendancies.get(name)
        if ascendancy is None:
            return MappingProxyType({})
        return self.tree.graphs[ascendancy.graph_index].nodes


def build_tree_context(version: str, tree: SkillTreeData) -> TreeContext:
    """Merge all graphs into one node lookup and render the template."""
    merged: Dict[str, Node] = {}
    for graph in tree.graphs:
        merged.update(graph.nodes)
    node_lookup = MappingProxyType(merged)

    context = TreeContext(
        version=version,
        tree=tree,
        node_lookup=node_lookup,
        template=build_template(tree, node_lookup),
    )
    logger.info(
        f"Built tree context {version}: {len(node_lookup)} nodes, "
        f"{len(tree.ascendancies)} ascendancies"
    )
    return context


class TreeRegistry:
    """
    Tree contexts keyed by tree version.

    Built once at startup; lookups of versions that are not loaded fall back
    to the default version.
    """

    def __init__(self, contexts: Iterable[TreeContext], default_version: Optional[str] = None):
        self._contexts: Dict[str, TreeContext] = {c.version: c for c in contexts}
        if not self._contexts:
            raise TreeDataError("TreeRegistry needs at least one tree context")
        if default_version is None or default_version not in self._contexts:
            default_version = next(iter(self._contexts))
        self.default_version = default_version

    @classmethod
    def from_directory(
        cls,
        data_dir: Path,
        versions: Iterable[str],
        default_version: Optional[str] = None,
    ) -> "TreeRegistry":
        """
        Load {version}_processed.json for each version in data_dir.

        Raises:
            TreeDataError: If any listed version cannot be loaded
        """
        contexts: List[TreeContext] = []
        for version in versions:
            path = data_dir / f"{version}_processed.json"
            contexts.append(build_tree_context(version, load_tree_data(path)))
        return cls(contexts, default_version)

    @classmethod
    def from_settings(cls, settings: ImportSettings) -> "TreeRegistry":
        """Load the tree versions named in the import settings."""
        logger.info(
            f"Loading tree versions {', '.join(settings.tree_versions)} "
            f"from {settings.resolved_tree_data_dir}"
        )
        return cls.from_directory(
            settings.resolved_tree_data_dir,
            settings.tree_versions,
            settings.default_tree_version,
        )

    @property
    def versions(self) -> Tuple[str, ...]:
        return tuple(self._contexts)

    @property
    def default(self) -> TreeContext:
        return self._contexts[self.default_version]

    def get(self, version: Optional[str]) -> TreeContext:
        """Context for a version, or the default context if it is not loaded."""
        context = self._contexts.get(version or DEFAULT_TREE_VERSION)
        if context is None:
            logger.debug(f"Tree version {version} not loaded, using {self.default_version}")
            return self.default
        return context
