#!/usr/bin/env python3
import json


def generate_simple_case():
    """Generates a gear request where ingot demand is shared by two recipes."""

    case = {
        "catalog": {
            "machines": {
                "smelter": {"power": 100, "tier": 1},
                "assembler": {"power": 50, "tier": 1}
            },
            "items": {
                "ingot": {"name": "item.ingot", "raw": True},
                "plate": {"name": "item.plate"},
                "gear": {"name": "item.gear"}
            },
            "recipes": {
                "plate": {
                    "machine": "smelter",
                    "time": 4,
                    "in": {"ingot": 3},
                    "out": 2
                },
                "plate_pressed": {
                    "item": "plate",
                    "machine": "assembler",
                    "time": 1,
                    "in": {"ingot": 2},
                    "out": 1
                },
                "gear": {
                    "machine": "assembler",
                    "time": 2,
                    "in": {"plate": 1, "ingot": 1},
                    "out": 1
                }
            }
        },
        "target": {"item": "gear", "rate": 1.2},
        "selections": {"plate": "plate"},
        "mode": "merged"
    }
    return case

if __name__ == "__main__":
    # Generate the case and print it to stdout as JSON
    test_case = generate_simple_case()
    print(json.dumps(test_case, indent=2))
