# tests/test_labels.py
"""
Tests for node title cleaning.

Covers:
- Unit/module/chapter prefixes, numbering, bullets
- Hour / marks / credit annotations
- Fallback to the original input when nothing presentable is left
- Idempotence and non-emptiness
"""

import pytest

from mindgraph.graph.labels import clean_label, extract_unit_number


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("Unit I: Cells", "Cells"),
        ("3 hours Mitochondria", "Mitochondria"),
        ("Unit II: Thermodynamics (8 Lecture Hours)", "Thermodynamics"),
        ("3. Kinetics - 4 marks", "Kinetics"),
        ("• Photosynthesis", "Photosynthesis"),
        ("- Osmosis", "Osmosis"),
        ("Module 3 - Waves", "Waves"),
        ("Chapter 2.3 Kinematics", "Kinematics"),
        ("Section: Overview", "Overview"),
        ("Unit-III. Optics", "Optics"),
        ("2.1 Enzymes", "Enzymes"),
        ("Cell Biology (4 hours)", "Cell Biology"),
        ("Genetics 3 credits", "Genetics"),
        ("Unit 1: Unit 2: Cells", "Cells"),
    ],
)
def test_strips_boilerplate(raw, expected):
    assert clean_label(raw) == expected


@pytest.mark.parametrize(
    "raw",
    ["Unit Vectors", "Topical Analysis", "Sectional Drawing", "Top 10 Marksmen", "Lecture Hours"],
)
def test_leaves_real_titles_alone(raw):
    assert clean_label(raw) == raw


@pytest.mark.parametrize("raw", ["Unit II", "Topic 1", "3 hours", "X", "   "])
def test_returns_original_when_nothing_is_left(raw):
    assert clean_label(raw) == raw


def test_fallback_is_used_only_when_cleaning_empties_the_label():
    assert clean_label("Unit II", fallback="Topic II Content") == "Topic II Content"
    assert clean_label("Unit II: Optics", fallback="Topic II Content") == "Optics"


def test_empty_string_stays_empty():
    assert clean_label("") == ""


@pytest.mark.parametrize(
    "raw",
    [
        "Unit I: Cells",
        "3. Unit II: Genetics (2 hours)",
        "3 hours Unit I: Cells",
        "• 1. Module 4 - Ecology",
        "Unit II",
        "Plain Title",
        "Topic 1 Content",
        "  padded :; ",
    ],
)
def test_idempotent(raw):
    once = clean_label(raw)
    assert clean_label(once) == once


@pytest.mark.parametrize("raw", ["Unit I", "-", "1.", "(3 hours)", "Module 2:"])
def test_never_empty_for_non_empty_input(raw):
    assert clean_label(raw) != ""


def test_rejects_non_string():
    with pytest.raises(TypeError):
        clean_label(123)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("Unit I: Cells", "I"),
        ("Module 12 Optics", "12"),
        ("IV. Optics", "IV"),
        ("Cells", None),
        ("Introduction", None),
        ("Community Health", None),
    ],
)
def test_extract_unit_number(raw, expected):
    assert extract_unit_number(raw) == expected
