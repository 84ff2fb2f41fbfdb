# tests/conftest.py
"""
Pytest configuration and fixtures for the MindGraph test suite.

Provides:
- Raw model responses in the shapes the generator is known to emit
- A graph invariant checker shared by builder and API tests
- FastAPI test client

Note: AI providers are never called; tests patch the provider layer.
"""

import os
import pytest
from typing import Any, Dict

# Keep provider clients unconfigured during tests
os.environ["AI_PROVIDER"] = "hybrid"
os.environ["GROQ_API_KEY"] = ""
os.environ["GOOGLE_API_KEY"] = ""

from fastapi.testclient import TestClient

from mindgraph.main import app
from mindgraph.schemas.mindmap import CanonicalGraph


# ============== Raw Model Responses ==============

@pytest.fixture
def biology_raw() -> Dict[str, Any]:
    """Minimal two-level mind map with syllabus boilerplate in the titles."""
    return {
        "central_node": {"title": "Biology"},
        "module_nodes": [
            {
                "title": "Unit I: Cells",
                "subtopics": [{"title": "3 hours Mitochondria"}],
            }
        ],
    }


@pytest.fixture
def deep_raw() -> Dict[str, Any]:
    """One branch nested four levels deep using the snake_case depth keys."""
    return {
        "mind_map": {
            "central_node": {"title": "Physics", "content": "Study of matter and energy."},
            "module_nodes": [
                {
                    "title": "Module 1 - Mechanics",
                    "content": "Motion and forces.",
                    "subtopics": [
                        {
                            "title": "Kinematics",
                            "sub_subtopics": [
                                {
                                    "title": "Projectile Motion",
                                    "sub_sub_subtopics": [
                                        {"title": "Range Equation", "content": "R = v² sin 2θ / g"},
                                    ],
                                }
                            ],
                        }
                    ],
                }
            ],
        }
    }


@pytest.fixture
def chemistry_raw() -> Dict[str, Any]:
    """Three topics, one without children, mixed entry shapes."""
    return {
        "mind_map": {
            "central_node": {"title": "Chemistry", "description": "Matter and its transformations."},
            "module_nodes": [
                {
                    "title": "Unit II: Atomic Structure (6 Lecture Hours)",
                    "content": "Atoms and subatomic particles.",
                    "subtopics": [
                        {"title": "1. Electrons", "content": "Negatively charged."},
                        "Protons",
                        {"title": "• Neutrons - 2 marks"},
                    ],
                },
                {
                    "title": "Chapter 3: Bonding",
                    "children": [
                        {"title": "Ionic Bonds", "subSubtopics": [{"title": "Lattice Energy"}]},
                    ],
                },
                {"title": "Lab Safety"},
            ],
        }
    }


# ============== Graph Invariants ==============

def assert_tree_invariants(graph: CanonicalGraph) -> None:
    """Assert the structural guarantees every built graph must satisfy."""
    nodes = {node.id: node for node in graph.nodes}
    assert len(nodes) == len(graph.nodes), "node ids must be unique"

    roots = [n for n in graph.nodes if n.type == "root"]
    assert len(roots) == 1
    root = roots[0]
    assert root.level == 0 and root.parent_id is None

    for node in graph.nodes:
        if node is root:
            continue
        assert node.parent_id in nodes, f"{node.id} has dangling parent {node.parent_id}"
        parent = nodes[node.parent_id]
        assert node.level == parent.level + 1

        # no node is its own ancestor
        seen = {node.id}
        cursor = parent
        while cursor.parent_id is not None:
            assert cursor.id not in seen
            seen.add(cursor.id)
            cursor = nodes[cursor.parent_id]

    edge_pairs = [(e.source_id, e.target_id) for e in graph.edges]
    assert len(edge_pairs) == len(set(edge_pairs)), "duplicate edges"
    assert len(graph.edges) == len(graph.nodes) - 1

    for node in graph.nodes:
        expected = [m.id for m in graph.nodes if m.parent_id == node.id]
        assert node.child_ids == expected
        assert node.has_children == bool(expected)
        for child_id in expected:
            assert edge_pairs.count((node.id, child_id)) == 1


@pytest.fixture
def check_invariants():
    return assert_tree_invariants


# ============== App ==============

@pytest.fixture
def client():
    with TestClient(app) as test_client:
        yield test_client
