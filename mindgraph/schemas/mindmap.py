from __future__ import annotations
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from typing import Any, List, Optional


class _WireModel(BaseModel):
    """snake_case in Python, camelCase on the wire; either spelling accepted on input."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ── Canonical Graph ──────────────────────────────────────────────────────────

class Position(_WireModel):
    """Layout hint for the renderer. Not a correctness invariant."""
    x: float
    y: float


class GraphNode(_WireModel):
    """A single node of the canonical mind map graph."""
    id: str
    label: str
    type: str = Field(..., description="'root', 'topic', 'subtopic' or 'levelN'")
    level: int = Field(..., ge=0)
    position: Position
    content: str = ""
    parent_id: Optional[str] = None
    child_ids: List[str] = []
    has_children: bool = False
    is_root: bool = False
    parent_inferred: bool = False


class Edge(_WireModel):
    """Directed parent → child edge."""
    id: str
    source_id: str
    target_id: str
    kind: str = "bezier"


class CanonicalGraph(_WireModel):
    """Normalized node/edge graph produced from a raw model response."""
    title: str
    subject: str
    nodes: List[GraphNode]
    edges: List[Edge]


# ── Sidebar ──────────────────────────────────────────────────────────────────

class SidebarSubtopic(_WireModel):
    id: str
    title: str
    is_read: bool = False


class SidebarTopic(_WireModel):
    id: str
    title: str
    is_read: bool = False
    subtopics: List[SidebarSubtopic] = []


# ── Requests ─────────────────────────────────────────────────────────────────

class MindMapBuildRequest(BaseModel):
    """Request body for converting an already generated raw mind map."""
    raw: Any = Field(default=None, description="Raw JSON returned by the generative model")
    subject_name: Optional[str] = Field(default=None, description="Label for the central node")


class MindMapGenerateRequest(BaseModel):
    """Request body for mind map generation."""
    subject_name: str = Field(..., min_length=1, max_length=200, description="Subject to map")
    prompt: str = Field(default="", max_length=2000, description="Additional requirements for the model")
