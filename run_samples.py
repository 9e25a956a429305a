#!/usr/bin/env python3
import sys
import subprocess
import json
import argparse

import verify_plan
from gen_plan import generate_simple_case

# --- Planner Sample Data ---
PLAN_SAMPLE_INPUT = generate_simple_case()

# gear x1.2 -> 2.4 assemblers, plate x1.2 -> 2.4 smelters, ingot 1.8 + 1.2
PLAN_SAMPLE_OUTPUT = {
    "status": "ok",
    "mode": "merged",
    "tree": {
        "item_id": "gear",
        "rate": 1.2,
        "recipe_id": "gear",
        "machine_id": "assembler",
        "machine_count": 3,
        "fractional_machines": 2.4,
        "load": 0.8,
        "power": 150.0,
        "raw": False,
        "missing_recipe": False,
        "children": [
            {
                "item_id": "plate",
                "rate": 1.2,
                "recipe_id": "plate",
                "machine_id": "smelter",
                "machine_count": 3,
                "fractional_machines": 2.4,
                "load": 0.8,
                "power": 300.0,
                "raw": False,
                "missing_recipe": False,
                "children": [
                    {"item_id": "ingot", "rate": 1.8, "ref": True}
                ]
            },
            {
                "item_id": "ingot",
                "rate": 3.0,
                "recipe_id": None,
                "machine_id": None,
                "machine_count": 0,
                "fractional_machines": 0.0,
                "load": 0.0,
                "power": 0.0,
                "raw": True,
                "missing_recipe": False,
                "children": []
            }
        ]
    },
    "summary": {
        "machines": {"assembler": 3, "smelter": 3},
        "fractional_machines": {"assembler": 2.4, "smelter": 2.4},
        "total_power": 450.0,
        "raw_materials": {"ingot": 3.0}
    }
}


def _flatten(tree, prefix=""):
    """Tree entries keyed by their item-id path from the root."""
    path = f"{prefix}/{tree['item_id']}"
    yield path, {k: v for k, v in tree.items() if k != "children"}
    for child in tree.get("children", []):
        yield from _flatten(child, path)


def diff_plans(got, expected):
    """Field-level differences between two plan results, floats compared via verify_plan."""
    errors = []
    for key in ("status", "mode"):
        if got.get(key) != expected.get(key):
            errors.append(f"{key}: got {got.get(key)!r}, expected {expected.get(key)!r}")

    got_entries = dict(_flatten(got.get("tree", {"item_id": None})))
    want_entries = dict(_flatten(expected["tree"]))
    pairs = [(path, got_entries.get(path), want) for path, want in want_entries.items()]
    pairs += [(f"summary.{k}", got.get("summary", {}).get(k), v) for k, v in expected["summary"].items()]

    for where, have, want in pairs:
        if have is None:
            errors.append(f"{where}: missing")
        elif isinstance(want, dict):
            for field, value in want.items():
                actual = have.get(field)
                if isinstance(value, float) and isinstance(actual, (int, float)):
                    ok = verify_plan._close(actual, value)
                else:
                    ok = actual == value
                if not ok:
                    errors.append(f"{where}.{field}: got {actual!r}, expected {value!r}")
        elif not verify_plan._close(have, want):
            errors.append(f"{where}: got {have!r}, expected {want!r}")
    for path in got_entries.keys() - want_entries.keys():
        errors.append(f"{path}: unexpected entry")
    return errors


def run_sample(cmd):
    print(f"--- Planner Sample: {cmd} ---")
    process = subprocess.run(
        cmd, shell=True, input=json.dumps(PLAN_SAMPLE_INPUT),
        capture_output=True, text=True, encoding='utf-8', timeout=5,
    )
    if process.stderr:
        print("[❌ FAIL] STDERR was not empty:")
        print(process.stderr)
        return False
    try:
        output_json = json.loads(process.stdout)
    except json.JSONDecodeError:
        print(f"[❌ FAIL] Output was not valid JSON:\n{process.stdout}")
        return False

    errors = verify_plan.verify_solution(PLAN_SAMPLE_INPUT, output_json)
    errors += diff_plans(output_json, PLAN_SAMPLE_OUTPUT)
    if errors:
        print("[❌ FAIL]")
        for err in errors:
            print(f"  - {err}")
        return False
    print("[✅ PASS] Output matches expected.")
    return True


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Run the planner sample.")
    parser.add_argument(
        "planner_cmd",
        nargs="?",
        default=f"{sys.executable} -m planner.main",
        help="Command to run the planner (e.g., 'python -m planner.main')",
    )
    args = parser.parse_args()
    sys.exit(0 if run_sample(args.planner_cmd) else 1)
