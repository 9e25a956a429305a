"""
Machine and power aggregation over a resolved demand graph.
"""
import logging
import math
from dataclasses import dataclass, field
from fractions import Fraction
from typing import Dict

from planner.errors import AggregationError

logger = logging.getLogger(__name__)


@dataclass
class Summary:
    machines: Dict[str, int] = field(default_factory=dict)
    fractional_machines: Dict[str, Fraction] = field(default_factory=dict)
    total_power: Fraction = Fraction(0)
    raw_materials: Dict[str, Fraction] = field(default_factory=dict)

    def to_dict(self):
        return {
            "machines": dict(self.machines),
            "fractional_machines": {k: float(v) for k, v in self.fractional_machines.items()},
            "total_power": float(self.total_power),
            "raw_materials": {k: float(v) for k, v in self.raw_materials.items()},
        }


def machine_throughput(recipe, machine):
    """Units of the recipe's output one machine makes per time-unit."""
    speed = machine.speed if machine is not None else Fraction(1)
    if recipe.out <= 0:
        raise AggregationError(
            f"recipe '{recipe.id}' has non-positive output quantity {recipe.out}", recipe.id
        )
    if recipe.time <= 0:
        raise AggregationError(
            f"recipe '{recipe.id}' has non-positive duration {recipe.time}", recipe.id
        )
    if speed <= 0:
        raise AggregationError(
            f"recipe '{recipe.id}' runs on machine '{recipe.machine}' with non-positive speed {speed}",
            recipe.id,
        )
    return recipe.throughput(speed)


def machines_for(recipe, machine, rate):
    """Return (fractional machines, whole machines, power) for `rate`."""
    fractional = Fraction(rate) / machine_throughput(recipe, machine)
    count = math.ceil(fractional)
    return fractional, count, count * recipe.power


def annotate(root):
    """
    Fill fractional_machines, machine_count and power on every node reachable
    from `root`, leaves first. Returns `root`.

    Whole machines draw full power even when only partially loaded.
    """
    for node in reversed(root.walk()):
        if node.recipe is None:
            node.fractional_machines = Fraction(0)
            node.machine_count = 0
            node.power = Fraction(0)
            continue
        node.fractional_machines, node.machine_count, node.power = machines_for(
            node.recipe, node.machine, node.rate
        )
        logger.debug(
            "%s: %s machine(s) of '%s' (%.4f needed), power %s",
            node.item_id, node.machine_count, node.recipe.machine,
            float(node.fractional_machines), node.power,
        )
    return root


def summarize(root):
    """Totals per machine type, total power and terminal material demand."""
    summary = Summary()
    for node in root.walk():
        if node.recipe is None:
            summary.raw_materials[node.item_id] = node.rate
            continue
        machine_id = node.recipe.machine
        summary.machines[machine_id] = summary.machines.get(machine_id, 0) + node.machine_count
        summary.fractional_machines[machine_id] = (
            summary.fractional_machines.get(machine_id, Fraction(0)) + node.fractional_machines
        )
        summary.total_power += node.power
    return summary
