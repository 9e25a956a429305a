"""
Shared pytest fixtures for the planner tests.

Provides:
  - Raw catalog data for the plate/gear examples
  - Loaded Catalog objects
  - A float-tolerant JSON comparison helper
"""

import copy
import os
import sys

import pytest

# Make the project root importable (planner/, verify_plan.py, gen_plan.py)
PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), '..'))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)


# --- Catalog data ---
# Plate: out 2 per 4 time-units from 3 ingots in a smelter drawing 100.
# Gear: 1 plate + 1 ingot in an assembler drawing 50.
BASE_CATALOG = {
    "machines": {
        "smelter": {"power": 100},
        "assembler": {"power": 50}
    },
    "items": {
        "ore": {"raw": True},
        "ingot": {"raw": True},
        "plate": {"name": "item.plate"},
        "gear": {"name": "item.gear"},
        "rod": {}
    },
    "recipes": {
        "plate": {"machine": "smelter", "time": 4, "in": {"ingot": 3}, "out": 2},
        "gear": {"machine": "assembler", "time": 2, "in": {"plate": 1, "ingot": 1}, "out": 1},
        "rod": {"machine": "assembler", "time": 1, "in": {"plate": 1}, "out": 2}
    }
}

# A <- B <- A, allowed in data but not resolvable
CYCLE_CATALOG = {
    "machines": {"assembler": {"power": 10}},
    "items": {"a": {}, "b": {}, "c": {}},
    "recipes": {
        "a": {"machine": "assembler", "time": 1, "in": {"b": 1}, "out": 1},
        "b": {"machine": "assembler", "time": 1, "in": {"a": 1}, "out": 1},
        "c": {"machine": "assembler", "time": 1, "in": {"a": 1}, "out": 1}
    }
}


@pytest.fixture()
def base_data():
    return copy.deepcopy(BASE_CATALOG)


@pytest.fixture()
def cycle_data():
    return copy.deepcopy(CYCLE_CATALOG)


@pytest.fixture()
def base_catalog(base_data):
    from planner import catalog
    return catalog.load(base_data)


@pytest.fixture()
def cycle_catalog(cycle_data):
    from planner import catalog
    return catalog.load(cycle_data)


@pytest.fixture()
def alternates_catalog(base_data):
    """base catalog plus a second plate recipe, so plate needs a selection."""
    from planner import catalog
    base_data["recipes"]["plate_pressed"] = {
        "item": "plate", "machine": "assembler", "time": 1, "in": {"ingot": 2}, "out": 1
    }
    return catalog.load(base_data)


def assert_json_floats_close(d1, d2, rel_tol=1e-6, abs_tol=1e-9):
    """Recursively compare dicts/lists, allowing floats to be 'close'."""
    if isinstance(d1, (float, int)) and not isinstance(d1, bool) and isinstance(d2, (float, int)):
        assert d1 == pytest.approx(d2, rel=rel_tol, abs=abs_tol)
        return
    assert type(d1) == type(d2)
    if isinstance(d1, dict):
        assert sorted(d1.keys()) == sorted(d2.keys())
        for k in d1:
            assert_json_floats_close(d1[k], d2[k], rel_tol, abs_tol)
    elif isinstance(d1, list):
        assert len(d1) == len(d2)
        for i, _ in enumerate(d1):
            assert_json_floats_close(d1[i], d2[i], rel_tol, abs_tol)
    else:
        assert d1 == d2
