"""Locate the nested child collection of a raw mind map entry."""

from collections.abc import Mapping
from typing import Any, List, Optional

# Ordered from most specific to most generic. Some model outputs carry both a
# deep-named key and a generic one on the same entry; the deep-named key wins.
CHILD_ARRAY_KEYS = (
    # Multi-level explicit nesting
    "sub_sub_sub_sub_subtopics",
    "sub_sub_sub_subtopics",
    "sub_sub_subtopics",
    "sub_subtopics",
    # camelCase variants
    "subSubSubSubSubtopics",
    "subSubSubSubtopics",
    "subSubSubtopics",
    "subSubtopics",
    # Generic naming
    "subtopics",
    "sub_topics",
    "subTopics",
    "nested_topics",
    "nested_subtopics",
    "children",
    "childTopics",
    "child_topics",
)


def find_children(entry: Any) -> Optional[List[Any]]:
    """Return the first non-empty child list found under a known key, else None."""
    if not isinstance(entry, Mapping):
        return None

    for key in CHILD_ARRAY_KEYS:
        value = entry.get(key)
        if isinstance(value, list) and value:
            return value
    return None
