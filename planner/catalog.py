"""
Recipe catalog: the immutable index of items, recipes and machine types.

The catalog is built once from a JSON-shaped mapping:

    {
        "machines": {"smelter": {"power": 100, "speed": 1, "tier": 1}},
        "items": {"ingot": {"raw": true}, "plate": {"name": "item.plate"}},
        "recipes": {
            "plate": {"item": "plate", "out": 2, "time": 4,
                      "in": {"ingot": 3}, "machine": "smelter"}
        }
    }

"recipes" may also be a list of records; a record without an "id" gets a
deterministic one of the form item@machine[input:qty,...].
"""
import json
import logging
import math
from dataclasses import dataclass
from fractions import Fraction
from types import MappingProxyType
from typing import Dict, List, Optional, Tuple

import networkx as nx

from planner.errors import DataError

logger = logging.getLogger(__name__)

SELF_REFERENCE_KEYWORD = "this"


@dataclass(frozen=True)
class Item:
    id: str
    name: str
    raw: bool = False


@dataclass(frozen=True)
class MachineType:
    id: str
    power: Fraction
    speed: Fraction = Fraction(1)
    tier: int = 0


@dataclass(frozen=True)
class Recipe:
    id: str
    item: str
    out: Fraction
    time: Fraction
    inputs: Tuple[Tuple[str, Fraction], ...]
    machine: str
    power: Fraction

    def throughput(self, speed=Fraction(1)):
        """Output units per time-unit of a single machine running this recipe."""
        return self.out * speed / self.time


class Catalog:
    def __init__(self, items, recipes, machines):
        self._items = MappingProxyType(dict(items))
        self._recipes = MappingProxyType(dict(recipes))
        self._machines = MappingProxyType(dict(machines))

        by_output: Dict[str, List[Recipe]] = {}
        for recipe in self._recipes.values():
            by_output.setdefault(recipe.item, []).append(recipe)
        self._by_output = MappingProxyType(
            {item_id: tuple(rs) for item_id, rs in by_output.items()}
        )

        graph = nx.DiGraph()
        graph.add_nodes_from(self._items)
        for recipe in self._recipes.values():
            for input_id, _ in recipe.inputs:
                if graph.has_edge(recipe.item, input_id):
                    graph[recipe.item][input_id]["recipes"].append(recipe.id)
                else:
                    graph.add_edge(recipe.item, input_id, recipes=[recipe.id])
        self._graph = nx.freeze(graph)

    @property
    def items(self):
        return self._items

    @property
    def recipes(self):
        return self._recipes

    @property
    def machines(self):
        return self._machines

    @property
    def graph(self):
        return self._graph

    def get_item(self, item_id) -> Optional[Item]:
        return self._items.get(item_id)

    def get_recipes(self, item_id) -> List[Recipe]:
        return list(self._by_output.get(item_id, ()))

    def get_recipe(self, recipe_id) -> Optional[Recipe]:
        return self._recipes.get(recipe_id)

    def get_machine(self, machine_id) -> Optional[MachineType]:
        return self._machines.get(machine_id)

    def consumers(self, item_id) -> List[str]:
        """Items whose recipes take item_id as a direct input."""
        if item_id not in self._graph:
            return []
        return sorted(self._graph.predecessors(item_id))

    def cycles(self) -> List[List[str]]:
        return [list(c) for c in nx.simple_cycles(self._graph)]


# ── Validation helpers ────────────────────────────────────────────────────────


def _fraction(value, where, errors):
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        errors.append(f"{where} must be a number")
        return None
    if not math.isfinite(value):
        errors.append(f"{where} must be finite (got {value})")
        return None
    return Fraction(str(value))


def _positive_fraction(value, where, errors):
    frac = _fraction(value, where, errors)
    if frac is not None and frac <= 0:
        errors.append(f"{where} must be positive (got {value})")
        return None
    return frac


def _non_negative_fraction(value, where, errors):
    frac = _fraction(value, where, errors)
    if frac is not None and frac < 0:
        errors.append(f"{where} must not be negative (got {value})")
        return None
    return frac


def _records(section, name, errors):
    """Normalise a section given either as {id: record} or [record, ...]."""
    if isinstance(section, dict):
        out = []
        for key, record in section.items():
            if not isinstance(record, dict):
                errors.append(f"{name} '{key}' must be an object")
                continue
            out.append((str(key), record))
        return out
    if isinstance(section, list):
        out = []
        for idx, record in enumerate(section):
            if not isinstance(record, dict):
                errors.append(f"{name}[{idx}] must be an object")
                continue
            record_id = record.get("id")
            if record_id is not None and not isinstance(record_id, str):
                errors.append(f"{name}[{idx}]: 'id' must be a string")
                continue
            out.append((record_id, record))
        return out
    errors.append(f"'{name}' must be an object or a list")
    return []


def _parse_inputs(raw_inputs, where, errors):
    if raw_inputs is None:
        return []
    if isinstance(raw_inputs, dict):
        pairs = list(raw_inputs.items())
    elif isinstance(raw_inputs, list):
        pairs = []
        for entry in raw_inputs:
            if isinstance(entry, dict):
                pairs.append((entry.get("item"), entry.get("qty")))
            elif isinstance(entry, (list, tuple)) and len(entry) == 2:
                pairs.append((entry[0], entry[1]))
            else:
                errors.append(f"{where}: input entry {entry!r} is not a (item, qty) pair")
    else:
        errors.append(f"{where}: 'in' must be an object or a list")
        return []

    inputs = []
    for input_id, qty in pairs:
        if not isinstance(input_id, str) or not input_id.strip():
            errors.append(f"{where}: input item id must be a non-empty string")
            continue
        frac = _positive_fraction(qty, f"{where}: quantity of '{input_id}'", errors)
        if frac is not None:
            inputs.append((input_id, frac))
    return inputs


def _parse_output(record, default_item, where, errors):
    """Return (item_id, qty) from the 'item' and 'out' fields of a recipe."""
    item_id = record.get("item") or default_item
    raw_out = record.get("out", 1)

    if isinstance(raw_out, dict):
        if len(raw_out) != 1:
            errors.append(f"{where}: 'out' must name exactly one output item")
            return item_id, None
        (out_id, qty), = raw_out.items()
        if out_id == SELF_REFERENCE_KEYWORD:
            out_id = item_id
        if item_id and out_id != item_id:
            if record.get("item"):
                errors.append(f"{where}: 'out' names '{out_id}' but 'item' is '{item_id}'")
                return item_id, None
        item_id = out_id
        raw_out = qty

    return item_id, _positive_fraction(raw_out, f"{where}: output quantity", errors)


def unique_recipe_id(item_id, machine_id, inputs):
    parts = ",".join(f"{k}:{v}" for k, v in sorted(inputs))
    return f"{item_id}@{machine_id}[{parts}]"


# ── Loading ───────────────────────────────────────────────────────────────────


def load(raw_data) -> Catalog:
    """Build a Catalog, raising DataError listing every problem found."""
    if not isinstance(raw_data, dict):
        raise DataError("catalog data must be an object")

    errors: List[str] = []

    machines: Dict[str, MachineType] = {}
    for machine_id, record in _records(raw_data.get("machines"), "machines", errors):
        if not machine_id:
            errors.append("machine record is missing 'id'")
            continue
        where = f"machine '{machine_id}'"
        power = _non_negative_fraction(record.get("power", 0), f"{where}: power", errors)
        speed = _positive_fraction(record.get("speed", 1), f"{where}: speed", errors)
        tier = record.get("tier", 0)
        if isinstance(tier, bool) or not isinstance(tier, int):
            errors.append(f"{where}: tier must be an integer")
            tier = 0
        if power is None or speed is None:
            continue
        if machine_id in machines:
            errors.append(f"duplicate machine id '{machine_id}'")
            continue
        machines[machine_id] = MachineType(id=machine_id, power=power, speed=speed, tier=tier)

    items: Dict[str, Item] = {}
    for item_id, record in _records(raw_data.get("items"), "items", errors):
        if not item_id:
            errors.append("item record is missing 'id'")
            continue
        if item_id in items:
            errors.append(f"duplicate item id '{item_id}'")
            continue
        items[item_id] = Item(
            id=item_id,
            name=str(record.get("name") or item_id),
            raw=bool(record.get("raw", False)),
        )

    recipes: Dict[str, Recipe] = {}
    for recipe_id, record in _records(raw_data.get("recipes"), "recipes", errors):
        where = f"recipe '{recipe_id}'" if recipe_id else "recipe"
        item_id, out = _parse_output(record, recipe_id, where, errors)
        if not item_id:
            errors.append(f"{where}: missing output 'item'")
            continue
        if not isinstance(item_id, str):
            errors.append(f"{where}: output item id must be a string (got {item_id!r})")
            continue
        time = _positive_fraction(record.get("time", record.get("time_s")), f"{where}: time", errors)
        inputs = _parse_inputs(record.get("in"), where, errors)

        machine_id = record.get("machine")
        if not isinstance(machine_id, str):
            errors.append(f"{where}: machine must be a string (got {machine_id!r})")
            continue
        machine = machines.get(machine_id)
        if machine is None:
            errors.append(f"{where}: unknown machine '{machine_id}'")

        if not recipe_id:
            recipe_id = unique_recipe_id(item_id, machine_id, inputs)
            where = f"recipe '{recipe_id}'"
        if recipe_id in recipes:
            errors.append(f"duplicate recipe id '{recipe_id}'")
            continue

        if item_id not in items:
            errors.append(f"{where}: output item '{item_id}' is not a known item")
        elif items[item_id].raw:
            errors.append(f"{where}: item '{item_id}' is flagged raw and cannot have a recipe")

        seen = set()
        for input_id, _ in inputs:
            if input_id in seen:
                errors.append(f"{where}: input '{input_id}' is listed twice")
            seen.add(input_id)
            if input_id not in items:
                errors.append(f"{where}: input item '{input_id}' is not a known item")
            if input_id == item_id:
                errors.append(f"{where}: '{item_id}' is a direct input to its own recipe")

        if "power" in record:
            power = _non_negative_fraction(record["power"], f"{where}: power", errors)
        else:
            power = machine.power if machine else None

        if out is None or time is None or machine is None or power is None:
            continue
        recipes[recipe_id] = Recipe(
            id=recipe_id,
            item=item_id,
            out=out,
            time=time,
            inputs=tuple(inputs),
            machine=machine_id,
            power=power,
        )

    if errors:
        raise DataError(errors)

    catalog = Catalog(items, recipes, machines)
    logger.info(
        "Loaded %d items, %d recipes and %d machines",
        len(items), len(recipes), len(machines),
    )
    cycles = catalog.cycles()
    if cycles:
        logger.debug("Catalog has %d indirect recipe cycle(s): %s", len(cycles), cycles)
    return catalog


def load_file(path) -> Catalog:
    try:
        with open(path, "r", encoding="utf-8") as f:
            raw_data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise DataError(f"cannot read catalog {path}: {e}") from e
    return load(raw_data)
