"""
MindGraph — Graph Builder
==========================
Converts the loosely structured mind map returned by the generative model into
a canonical, positioned node/edge graph.

  • Accepts {"mind_map": {...}} or the bare inner object
  • Unlimited nesting depth, any of the known child-array spellings
  • Deterministic ids derived from structural position (never random)
  • Legacy flat "subtopic_nodes" lists are distributed across topics
  • Unexpected shapes are passed through unchanged instead of raising
"""

import logging
import math
from collections.abc import Mapping
from typing import Any, Dict, List, Optional, Tuple, Union

from mindgraph.graph.children import find_children
from mindgraph.graph.labels import clean_label, extract_unit_number
from mindgraph.schemas.mindmap import CanonicalGraph, Edge, GraphNode, Position

logger = logging.getLogger(__name__)

ROOT_ID = "central"
DEFAULT_ROOT_LABEL = "Central Topic"
ROOT_CONTENT_TEMPLATE = (
    "This mind map provides a comprehensive overview of {subject}. "
    "Explore the connected nodes to learn about specific topics and subtopics."
)
EDGE_KIND = "bezier"

TITLE_KEYS = ("title", "name", "label")
CONTENT_KEYS = ("content", "description")
WRAPPER_KEYS = ("mind_map", "mindMap")
PARENT_REF_KEYS = ("parent_unit", "parent_module", "parent_topic")

# ── Layout ───────────────────────────────────────────────────────────────────
ROOT_POSITION = (400.0, 300.0)
LEVEL_X_STEP = 300.0
TOPIC_Y_START = 150.0
TOPIC_Y_STEP = 100.0
SIBLING_SPACING = 100.0


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# RAW ENTRY HELPERS
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

def _as_list(value: Any) -> List[Any]:
    return value if isinstance(value, list) else []


def _as_entry(value: Any) -> Mapping:
    """Entries may arrive as bare strings or numbers instead of objects."""
    if isinstance(value, Mapping):
        return value
    if isinstance(value, (str, int, float)) and not isinstance(value, bool):
        return {"title": str(value)}
    return {}


def _first_text(entry: Any, keys: Tuple[str, ...]) -> str:
    if not isinstance(entry, Mapping):
        return ""
    for key in keys:
        value = entry.get(key)
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            value = str(value)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return ""


def _entry_title(entry: Any) -> str:
    return _first_text(entry, TITLE_KEYS)


def _entry_content(entry: Any) -> str:
    return _first_text(entry, CONTENT_KEYS)


def _parent_reference(entry: Mapping) -> Optional[str]:
    for key in PARENT_REF_KEYS:
        value = entry.get(key)
        if value is not None and str(value).strip():
            return str(value).strip()
    return None


def _unwrap(raw: Any) -> Optional[Mapping]:
    """Return the mind map object inside `raw`, or None if it is not one."""
    if not isinstance(raw, Mapping):
        return None
    for key in WRAPPER_KEYS:
        inner = raw.get(key)
        if isinstance(inner, Mapping):
            return inner
    if "central_node" in raw or "module_nodes" in raw:
        return raw
    return None


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# ARENA
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

def node_type_for_level(level: int) -> str:
    if level == 0:
        return "root"
    if level == 1:
        return "topic"
    if level == 2:
        return "subtopic"
    return f"level{level}"


def node_id_for_path(path: Tuple[int, ...]) -> str:
    """
    Deterministic id from the 1-based sibling indexes leading to a node:
      ()        → "central"
      (2,)      → "topic2"
      (2, 1)    → "subtopic2_1"
      (2, 1, 3) → "level32_1_3"
    """
    if not path:
        return ROOT_ID
    if len(path) == 1:
        return f"topic{path[0]}"
    suffix = "_".join(str(i) for i in path)
    return f"{node_type_for_level(len(path))}{suffix}"


class GraphArena:
    """
    Flat node storage with an id index.

    All parent/child linking goes through `add_child`, which looks the parent
    up by id and updates its `child_ids` / `has_children` in one place.
    """

    def __init__(self) -> None:
        self.nodes: List[GraphNode] = []
        self.edges: List[Edge] = []
        self._index: Dict[str, GraphNode] = {}
        self._paths: Dict[str, Tuple[int, ...]] = {}

    def __contains__(self, node_id: str) -> bool:
        return node_id in self._index

    def __len__(self) -> int:
        return len(self.nodes)

    def get(self, node_id: str) -> GraphNode:
        return self._index[node_id]

    def _insert(self, node: GraphNode, path: Tuple[int, ...]) -> GraphNode:
        if node.id in self._index:
            raise ValueError(f"Duplicate node id '{node.id}'")
        self.nodes.append(node)
        self._index[node.id] = node
        self._paths[node.id] = path
        return node

    def add_root(self, label: str, content: str) -> GraphNode:
        root = GraphNode(
            id=ROOT_ID,
            label=label,
            type="root",
            level=0,
            position=Position(x=ROOT_POSITION[0], y=ROOT_POSITION[1]),
            content=content,
            parent_id=None,
            is_root=True,
        )
        return self._insert(root, ())

    def add_child(
        self,
        parent_id: str,
        label: str,
        content: str = "",
        parent_inferred: bool = False,
    ) -> GraphNode:
        parent = self._index[parent_id]
        level = parent.level + 1
        index = len(parent.child_ids) + 1
        path = self._paths[parent_id] + (index,)

        node = GraphNode(
            id=node_id_for_path(path),
            label=label,
            type=node_type_for_level(level),
            level=level,
            position=self._child_position(parent, level, index),
            content=content,
            parent_id=parent_id,
            parent_inferred=parent_inferred,
        )
        self._insert(node, path)

        parent.child_ids.append(node.id)
        parent.has_children = True
        self.edges.append(
            Edge(
                id=f"{parent_id}-{node.id}",
                source_id=parent_id,
                target_id=node.id,
                kind=EDGE_KIND,
            )
        )
        return node

    @staticmethod
    def _child_position(parent: GraphNode, level: int, index: int) -> Position:
        x = parent.position.x + LEVEL_X_STEP
        if level == 1:
            return Position(x=x, y=TOPIC_Y_START + (index - 1) * TOPIC_Y_STEP)
        # Narrower vertical spread the deeper we go.
        spread = SIBLING_SPACING * max(1, 6 - level)
        return Position(x=x, y=parent.position.y - spread + (index - 1) * spread)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# BUILDER
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class GraphBuilder:
    """Builds one CanonicalGraph from one unwrapped mind map object."""

    def __init__(self, subject_name: Optional[str] = None) -> None:
        self.subject_name = (subject_name or "").strip()
        self.arena = GraphArena()

    def build(self, mind_map: Mapping) -> CanonicalGraph:
        central = _as_entry(mind_map.get("central_node"))
        central_title = _entry_title(central)

        self._add_root(central, central_title)

        modules = _as_list(mind_map.get("module_nodes"))
        for index, module in enumerate(modules, start=1):
            self._add_topic(module, index)

        self._attach_legacy_subtopics(_as_list(mind_map.get("subtopic_nodes")), modules)

        return CanonicalGraph(
            title=central_title or "Mind Map",
            subject=central_title or self.subject_name or "Subject",
            nodes=self.arena.nodes,
            edges=self.arena.edges,
        )

    # ── Root & Topics ────────────────────────────────────────────────────────

    def _add_root(self, central: Any, central_title: str) -> GraphNode:
        label = self.subject_name or central_title or DEFAULT_ROOT_LABEL
        content = _entry_content(central) or ROOT_CONTENT_TEMPLATE.format(
            subject=self.subject_name or central_title or "the subject"
        )
        return self.arena.add_root(label, content)

    def _add_topic(self, module: Any, index: int) -> GraphNode:
        entry = _as_entry(module)
        raw_title = _entry_title(entry)
        unit = extract_unit_number(raw_title) if raw_title else None
        label = clean_label(raw_title, fallback=f"Topic {unit or index} Content")

        topic = self.arena.add_child(ROOT_ID, label, _entry_content(entry))
        self._process_children(find_children(entry), topic.id)
        return topic

    # ── Recursive child processor ────────────────────────────────────────────

    def _process_children(
        self,
        entries: Optional[List[Any]],
        parent_id: str,
        parent_inferred: bool = False,
    ) -> None:
        if not entries:
            return

        for raw_entry in entries:
            entry = _as_entry(raw_entry)
            parent = self.arena.get(parent_id)
            title = _entry_title(entry)
            if title:
                label = clean_label(title)
            else:
                label = _placeholder_label(parent.level + 1, len(parent.child_ids) + 1)

            node = self.arena.add_child(
                parent_id,
                label,
                _entry_content(entry),
                parent_inferred=parent_inferred,
            )
            self._process_children(find_children(entry), node.id)

    # ── Legacy flat subtopic list ────────────────────────────────────────────

    def _attach_legacy_subtopics(self, entries: List[Any], modules: List[Any]) -> None:
        if not entries:
            return

        topic_ids = list(self.arena.get(ROOT_ID).child_ids)
        if not topic_ids:
            logger.warning(
                f"[GRAPH] {len(entries)} subtopic_nodes entries but no topics to attach them to — skipped"
            )
            return

        per_topic = max(1, math.ceil(len(entries) / len(topic_ids)))
        groups: Dict[Tuple[str, bool], List[Any]] = {}
        unreferenced = 0

        for index, raw_entry in enumerate(entries):
            entry = _as_entry(raw_entry)
            reference = _parent_reference(entry)
            if reference is not None:
                parent_id = self._match_topic(reference, modules, topic_ids)
                inferred = False
            else:
                parent_id = topic_ids[min(index // per_topic, len(topic_ids) - 1)]
                inferred = True
                unreferenced += 1
            groups.setdefault((parent_id, inferred), []).append(entry)

        if unreferenced:
            logger.warning(
                f"[GRAPH] {unreferenced} subtopic_nodes entries have no parent reference; "
                f"split evenly across {len(topic_ids)} topics (flagged parentInferred)"
            )

        for (parent_id, inferred), group in groups.items():
            self._process_children(group, parent_id, parent_inferred=inferred)

    def _match_topic(self, reference: str, modules: List[Any], topic_ids: List[str]) -> str:
        if reference in topic_ids:
            return reference
        for module, topic_id in zip(modules, topic_ids):
            entry = _as_entry(module)
            candidates = {_entry_title(entry), self.arena.get(topic_id).label}
            if entry.get("id") is not None:
                candidates.add(str(entry.get("id")))
            if reference in candidates:
                return topic_id

        logger.warning(f"[GRAPH] Unknown parent reference '{reference}' — attaching to {topic_ids[0]}")
        return topic_ids[0]


def _placeholder_label(level: int, index: int) -> str:
    if level == 2:
        return f"Subtopic {index}"
    return f"Level {level} Topic {index}"


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# ENTRY POINT
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

def build_mind_map_graph(
    raw: Any,
    subject_name: Optional[str] = None,
) -> Union[CanonicalGraph, Any]:
    """
    Build a CanonicalGraph from a raw model response.

    Returns `raw` unchanged when it does not look like a mind map at all;
    callers must be prepared to receive a non-canonical object.
    Raises TypeError when `subject_name` is not a string.
    """
    if subject_name is not None and not isinstance(subject_name, str):
        raise TypeError(f"subject_name must be str or None, got {type(subject_name).__name__}")

    mind_map = _unwrap(raw)
    if mind_map is None:
        logger.warning(
            f"[GRAPH] Unexpected mind map shape ({type(raw).__name__}); returning input unchanged"
        )
        return raw

    graph = GraphBuilder(subject_name).build(mind_map)
    depth = max(node.level for node in graph.nodes)
    logger.info(
        f"[GRAPH] ✓ Built '{graph.nodes[0].label}': "
        f"{len(graph.nodes)} nodes, {len(graph.edges)} edges, depth {depth}"
    )
    return graph
