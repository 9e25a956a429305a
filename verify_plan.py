#!/usr/bin/env python3
import json
import sys
import argparse
import math
from collections import defaultdict

from planner import catalog as catalog_mod
from planner.errors import DataError

TOL = 1e-6


def _close(a, b):
    return abs(a - b) <= TOL + abs(b) * 1e-9


def _throughput(recipe, catalog):
    machine = catalog.get_machine(recipe.machine)
    return float(recipe.out * machine.speed / recipe.time)


def _check_entry(entry, catalog, errors):
    """Checks the machine figures of a single (non-marker) tree entry."""
    item_id = entry["item_id"]
    recipe_id = entry.get("recipe_id")

    if recipe_id is None:
        if entry["machine_count"] != 0 or abs(entry["power"]) > TOL:
            errors.append(f"Terminal {item_id}: has machines or power")
        if entry["children"]:
            errors.append(f"Terminal {item_id}: has children")
        return None

    recipe = catalog.get_recipe(recipe_id)
    if recipe is None:
        errors.append(f"{item_id}: unknown recipe {recipe_id}")
        return None
    if recipe.item != item_id:
        errors.append(f"{item_id}: recipe {recipe_id} makes {recipe.item}")
        return None

    fractional = entry["fractional_machines"]
    expected_fractional = entry["rate"] / _throughput(recipe, catalog)
    if not _close(fractional, expected_fractional):
        errors.append(f"{item_id}: fractional machines {fractional}, calculated {expected_fractional}")

    count = entry["machine_count"]
    if count != math.ceil(fractional - TOL):
        errors.append(f"{item_id}: machine count {count} is not ceil({fractional})")

    expected_power = count * float(recipe.power)
    if not _close(entry["power"], expected_power):
        errors.append(f"{item_id}: power {entry['power']}, calculated {expected_power}")
    return recipe


def verify_solution(in_data, out_data):
    """
    Checks if a plan is valid for the given request.
    Returns a list of error strings.
    """
    errors = []

    if out_data.get("status") != "ok":
        errors.append(f"Status is not 'ok' (got '{out_data.get('status')}')")
        return errors

    try:
        catalog = catalog_mod.load(in_data["catalog"])
    except DataError as e:
        errors.append(f"Request catalog is invalid: {e}")
        return errors

    tree = out_data["tree"]
    mode = out_data.get("mode", "merged")
    target = in_data["target"]
    target_rate = target.get("rate", target.get("rate_per_min"))

    if tree["item_id"] != target["item"]:
        errors.append(f"Root is {tree['item_id']}, expected {target['item']}")
    if not _close(tree["rate"], target_rate):
        errors.append(f"Root rate {tree['rate']} != target {target_rate}")

    # 1. Walk the tree: per-entry machine figures and demand flowing to children
    full_rate = {}
    demanded = defaultdict(float)
    occurrence_rate = defaultdict(float)
    machines = defaultdict(int)
    power = 0.0
    raw = defaultdict(float)

    stack = [tree]
    while stack:
        entry = stack.pop()
        if entry.get("ref"):
            continue

        item_id = entry["item_id"]
        occurrence_rate[item_id] += entry["rate"]
        if mode == "merged":
            if item_id in full_rate:
                errors.append(f"Merged tree expands {item_id} more than once")
            full_rate[item_id] = entry["rate"]

        recipe = _check_entry(entry, catalog, errors)
        if recipe is None:
            raw[item_id] += entry["rate"]
            continue
        machines[recipe.machine] += entry["machine_count"]
        power += entry["power"]

        qty = dict(recipe.inputs)
        child_ids = [c["item_id"] for c in entry["children"]]
        if child_ids != [input_id for input_id, _ in recipe.inputs]:
            errors.append(f"{item_id}: children {child_ids} do not match recipe inputs")
            continue
        for child in entry["children"]:
            expected = entry["rate"] / float(recipe.out) * float(qty[child["item_id"]])
            demanded[child["item_id"]] += expected
            if (mode != "merged" or child.get("ref")) and not _close(child["rate"], expected):
                errors.append(
                    f"{item_id} -> {child['item_id']}: rate {child['rate']}, calculated {expected}"
                )
            stack.append(child)

    # 2. Merged totals equal the sum of what every parent demands
    if mode == "merged":
        for item_id, rate in full_rate.items():
            if item_id == tree["item_id"]:
                continue
            if not _close(rate, demanded[item_id]):
                errors.append(f"{item_id}: merged rate {rate}, parents demand {demanded[item_id]}")

    # 3. Summary consistency
    summary = out_data["summary"]
    if mode == "merged":
        if dict(machines) != {k: v for k, v in summary["machines"].items()}:
            errors.append(f"Summary machines {summary['machines']}, calculated {dict(machines)}")
        if not _close(summary["total_power"], power):
            errors.append(f"Summary power {summary['total_power']}, calculated {power}")

    for item_id, rate in raw.items():
        reported = summary["raw_materials"].get(item_id, 0.0)
        if not _close(reported, rate):
            errors.append(f"Raw {item_id}: reported {reported}, calculated {rate}")

    for item_id in summary["raw_materials"]:
        if item_id not in raw:
            errors.append(f"Raw {item_id}: reported but not in the tree")

    return errors


def main():
    parser = argparse.ArgumentParser(description="Verify a production plan.")
    parser.add_argument("input_json", help="Path to the request JSON file.")
    parser.add_argument("output_json", help="Path to the plan JSON file.")
    args = parser.parse_args()

    try:
        with open(args.input_json, 'r') as f:
            in_data = json.load(f)
    except Exception as e:
        print(f"Error loading input file {args.input_json}: {e}")
        sys.exit(1)

    try:
        with open(args.output_json, 'r') as f:
            out_data = json.load(f)
    except Exception as e:
        print(f"Error loading output file {args.output_json}: {e}")
        sys.exit(1)

    print("Verifying plan...")
    errors = verify_solution(in_data, out_data)

    if errors:
        print("\n[❌ VERIFICATION FAILED]")
        for err in errors:
            print(f"- {err}")
    else:
        print("\n[✅ VERIFIED] Plan appears correct and self-consistent.")

if __name__ == "__main__":
    main()
