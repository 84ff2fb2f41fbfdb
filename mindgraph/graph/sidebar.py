"""
MindGraph — Sidebar Reconstructor
==================================
Re-derives the two-level (topic → subtopic) navigation hierarchy from a graph.

Input is either a CanonicalGraph or any JSON-like graph object, including the
legacy shapes that link nodes through `parentNode` / `parent` instead of child
id lists. Each lookup is an ordered chain of strategies; a strategy returns
None when it finds nothing and the first non-None result wins.

Only two levels are represented: deeper nodes stay in the graph but are not
part of the sidebar.
"""

import logging
from collections.abc import Mapping
from typing import Any, Callable, List, Optional, Sequence, Tuple

from mindgraph.schemas.mindmap import CanonicalGraph, SidebarSubtopic, SidebarTopic

logger = logging.getLogger(__name__)

Node = Mapping[str, Any]
Strategy = Tuple[str, Callable[..., Any]]

PARENT_KEYS = ("parentId", "parentNode", "parent", "parent_id")
CHILDREN_KEYS = ("childIds", "children", "child_ids")
EDGE_SOURCE_KEYS = ("sourceId", "source", "source_id")
EDGE_TARGET_KEYS = ("targetId", "target", "target_id")
ROOT_IDS = ("central", "root")


# ── Field access across graph shapes ────────────────────────────────────────

def _first_value(obj: Mapping, keys: Tuple[str, ...]) -> Any:
    for key in keys:
        value = obj.get(key)
        if value is not None and value != "":
            return value
    return None


def _node_id(node: Node) -> Optional[str]:
    value = node.get("id")
    return str(value) if value is not None else None


def _parent_ref(node: Node) -> Optional[str]:
    value = _first_value(node, PARENT_KEYS)
    return str(value) if value is not None else None


def _child_ids(node: Node) -> List[str]:
    for key in CHILDREN_KEYS:
        value = node.get(key)
        if not isinstance(value, list):
            continue
        ids = []
        for child in value:
            if isinstance(child, str):
                ids.append(child)
            elif isinstance(child, Mapping) and child.get("id") is not None:
                ids.append(str(child["id"]))
        if ids:
            return ids
    return []


def _level(node: Node) -> Optional[int]:
    value = node.get("level")
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return int(value)


def _edge_targets_from(edges: Optional[Sequence[Mapping]], source_id: Optional[str]) -> set:
    targets = set()
    for edge in edges or []:
        source = _first_value(edge, EDGE_SOURCE_KEYS)
        target = _first_value(edge, EDGE_TARGET_KEYS)
        if source is not None and target is not None and str(source) == source_id:
            targets.add(str(target))
    return targets


def _non_empty(nodes: List[Node]) -> Optional[List[Node]]:
    return nodes or None


def _first_match(chain: Sequence[Strategy], *args: Any) -> Any:
    for name, strategy in chain:
        result = strategy(*args)
        if result is not None:
            logger.debug(f"[SIDEBAR] Strategy '{name}' matched")
            return result
    return None


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# ROOT
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

def _root_by_type(nodes: List[Node]) -> Optional[Node]:
    return next(
        (n for n in nodes if n.get("type") == "root" or n.get("isRoot") is True or n.get("is_root") is True),
        None,
    )


def _root_by_level(nodes: List[Node]) -> Optional[Node]:
    return next((n for n in nodes if _level(n) == 0), None)


def _root_by_id(nodes: List[Node]) -> Optional[Node]:
    return next((n for n in nodes if _node_id(n) in ROOT_IDS), None)


def _root_by_shape(nodes: List[Node]) -> Optional[Node]:
    return next((n for n in nodes if _parent_ref(n) is None and _child_ids(n)), None)


ROOT_STRATEGIES: List[Strategy] = [
    ("type/isRoot", _root_by_type),
    ("level 0", _root_by_level),
    ("well-known id", _root_by_id),
    ("parentless with children", _root_by_shape),
]


def find_root(nodes: List[Node]) -> Optional[Node]:
    """Locate the root node, or None when no strategy recognises one."""
    return _first_match(ROOT_STRATEGIES, nodes)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# CHILD LOOKUPS (shared by topics and subtopics)
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

def _by_child_list(nodes: List[Node], parent: Node, edges: Any = None) -> Optional[List[Node]]:
    wanted = set(_child_ids(parent))
    if not wanted:
        return None
    return _non_empty([n for n in nodes if _node_id(n) in wanted])


def _by_parent_ref(nodes: List[Node], parent: Node, edges: Any = None) -> Optional[List[Node]]:
    parent_id = _node_id(parent)
    return _non_empty([n for n in nodes if _parent_ref(n) == parent_id])


def _by_level(level: int) -> Callable[..., Optional[List[Node]]]:
    def strategy(nodes: List[Node], parent: Node, edges: Any = None) -> Optional[List[Node]]:
        return _non_empty([n for n in nodes if _level(n) == level])
    return strategy


def _by_level_and_parent(level: int) -> Callable[..., Optional[List[Node]]]:
    def strategy(nodes: List[Node], parent: Node, edges: Any = None) -> Optional[List[Node]]:
        parent_id = _node_id(parent)
        return _non_empty([n for n in nodes if _level(n) == level and _parent_ref(n) == parent_id])
    return strategy


def _by_edges(nodes: List[Node], parent: Node, edges: Any = None) -> Optional[List[Node]]:
    if not edges:
        return None
    targets = _edge_targets_from(edges, _node_id(parent))
    return _non_empty([n for n in nodes if _node_id(n) in targets])


TOPIC_STRATEGIES: List[Strategy] = [
    ("root child list", _by_child_list),
    ("parent reference", _by_parent_ref),
    ("level 1", _by_level(1)),
    ("edges from root", _by_edges),
]

SUBTOPIC_STRATEGIES: List[Strategy] = [
    ("topic child list", _by_child_list),
    ("parent reference", _by_parent_ref),
    ("level 2 with parent reference", _by_level_and_parent(2)),
    ("edges from topic", _by_edges),
]


def find_topics(nodes: List[Node], root: Node, edges: Optional[List[Mapping]] = None) -> List[Node]:
    return _first_match(TOPIC_STRATEGIES, nodes, root, edges) or []


def find_subtopics(nodes: List[Node], topic: Node, edges: Optional[List[Mapping]] = None) -> List[Node]:
    return _first_match(SUBTOPIC_STRATEGIES, nodes, topic, edges) or []


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# ENTRY POINT
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

def _display_title(node: Node) -> str:
    value = _first_value(node, ("label", "title"))
    if value is not None:
        return str(value)
    return _node_id(node) or ""


def _mapping_list(value: Any) -> List[Mapping]:
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, Mapping)]


def reconstruct_sidebar(graph: Any) -> List[SidebarTopic]:
    """
    Build the sidebar topic list for a graph.

    Never raises: invalid input, a missing root or missing topics all give [].
    """
    try:
        if isinstance(graph, CanonicalGraph):
            graph = graph.model_dump(by_alias=True)
        if not isinstance(graph, Mapping):
            logger.warning(f"[SIDEBAR] Invalid mind map data ({type(graph).__name__})")
            return []

        nodes = _mapping_list(graph.get("nodes"))
        if not nodes:
            logger.warning("[SIDEBAR] Mind map has no nodes")
            return []
        edges = _mapping_list(graph.get("edges")) or None

        root = find_root(nodes)
        if root is None:
            logger.warning("[SIDEBAR] No root node found in mind map data")
            return []

        topics = find_topics(nodes, root, edges)
        if not topics:
            logger.warning(f"[SIDEBAR] No topics found under root '{_node_id(root)}'")
            return []

        sidebar = [
            SidebarTopic(
                id=_node_id(topic) or "",
                title=_display_title(topic),
                is_read=False,
                subtopics=[
                    SidebarSubtopic(id=_node_id(sub) or "", title=_display_title(sub), is_read=False)
                    for sub in find_subtopics(nodes, topic, edges)
                ],
            )
            for topic in topics
        ]
        logger.info(f"[SIDEBAR] ✓ {len(sidebar)} topics from {len(nodes)} nodes")
        return sidebar

    except Exception as e:
        logger.error(f"[SIDEBAR] Failed to convert mind map data: {e}", exc_info=True)
        return []
