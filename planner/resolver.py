"""
Demand resolver: expands a root item and target rate into a merged demand graph.

Every item reached from the root gets exactly one DemandNode per resolution.
Demand for the same item from several parents is summed on that node, and the
node remembers how much each parent contributed so the projector can render
either a merged or a per-branch tree without resolving again.
"""
import logging
from dataclasses import dataclass, field
from fractions import Fraction
from typing import Dict, List, Optional

from planner.catalog import Item, MachineType, Recipe
from planner.errors import ResolutionError

logger = logging.getLogger(__name__)

# Contribution key for the externally requested target rate.
TARGET = None


@dataclass(eq=False)
class DemandNode:
    item: Item
    recipe: Optional[Recipe] = None
    machine: Optional[MachineType] = None
    rate: Fraction = Fraction(0)
    children: List["DemandNode"] = field(default_factory=list)
    contributions: Dict[Optional[str], Fraction] = field(default_factory=dict)
    fractional_machines: Fraction = Fraction(0)
    machine_count: int = 0
    power: Fraction = Fraction(0)

    @property
    def item_id(self):
        return self.item.id

    @property
    def is_terminal(self):
        return self.recipe is None

    @property
    def missing_recipe(self):
        return self.recipe is None and not self.item.raw

    @property
    def load(self):
        """Average utilisation of the machines on this node (0..1)."""
        if self.machine_count == 0:
            return Fraction(0)
        return self.fractional_machines / self.machine_count

    def demand_of(self, parent_item_id):
        return self.contributions.get(parent_item_id, Fraction(0))

    def input_rate(self, child_item_id, rate=None):
        """Rate of child_item_id consumed when this node produces `rate`."""
        if self.recipe is None:
            return Fraction(0)
        if rate is None:
            rate = self.rate
        for input_id, qty in self.recipe.inputs:
            if input_id == child_item_id:
                return rate / self.recipe.out * qty
        return Fraction(0)

    def walk(self):
        """Unique nodes reachable from here, every parent before its children."""
        postorder = []
        seen = set()
        stack = [(self, False)]
        while stack:
            node, exiting = stack.pop()
            if exiting:
                postorder.append(node)
                continue
            if node.item_id in seen:
                continue
            seen.add(node.item_id)
            stack.append((node, True))
            for child in reversed(node.children):
                if child.item_id not in seen:
                    stack.append((child, False))
        return list(reversed(postorder))


def _as_rate(value):
    if isinstance(value, Fraction):
        rate = value
    elif isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ResolutionError(f"target rate must be a number (got {value!r})")
    else:
        try:
            rate = Fraction(str(value))
        except ValueError:
            raise ResolutionError(f"target rate must be finite (got {value!r})")
    if rate <= 0:
        raise ResolutionError(f"target rate must be positive (got {value!r})")
    return rate


def _select_recipe(catalog, item_id, selection):
    recipes = catalog.get_recipes(item_id)

    if item_id in selection:
        chosen = selection[item_id]
        if not isinstance(chosen, (str, Recipe)):
            raise ResolutionError(
                f"selection for '{item_id}' must be a recipe id (got {chosen!r})", item_id=item_id
            )
        recipe = chosen if isinstance(chosen, Recipe) else catalog.get_recipe(chosen)
        if recipe is None:
            raise ResolutionError(
                f"selection for '{item_id}' names unknown recipe '{chosen}'", item_id=item_id
            )
        if recipe.item != item_id:
            raise ResolutionError(
                f"selected recipe '{recipe.id}' produces '{recipe.item}', not '{item_id}'",
                item_id=item_id,
            )
        return recipe

    if not recipes:
        item = catalog.get_item(item_id)
        if not item.raw:
            logger.warning("Item '%s' has no recipe; treating it as a terminal input", item_id)
        return None

    if len(recipes) == 1:
        return recipes[0]

    ids = ", ".join(r.id for r in recipes)
    raise ResolutionError(
        f"item '{item_id}' has {len(recipes)} recipes ({ids}); a recipe selection is required",
        item_id=item_id,
    )


def _plan(catalog, root_item_id, selection):
    """
    Depth-first walk from the root with an explicit work list.

    Picks one recipe per item, rejects cycles, and returns
    (chosen recipes by item, items in topological order).
    """
    chosen = {}
    done = set()
    expanding = set()
    path = []
    postorder = []

    stack = [(root_item_id, False)]
    while stack:
        item_id, exiting = stack.pop()
        if exiting:
            expanding.discard(item_id)
            path.pop()
            done.add(item_id)
            postorder.append(item_id)
            continue
        if item_id in done:
            continue

        recipe = _select_recipe(catalog, item_id, selection)
        chosen[item_id] = recipe
        expanding.add(item_id)
        path.append(item_id)
        stack.append((item_id, True))

        if recipe is None:
            continue
        logger.debug("Expanding '%s' with recipe '%s'", item_id, recipe.id)
        for input_id, _ in reversed(recipe.inputs):
            if input_id in expanding:
                chain = path[path.index(input_id):] + [input_id]
                raise ResolutionError(
                    "recipe cycle detected: " + " -> ".join(chain),
                    item_id=input_id,
                    chain=chain,
                )
            if input_id not in done:
                stack.append((input_id, False))

    return chosen, list(reversed(postorder))


def resolve(catalog, root_item_id, target_rate, selection=None) -> DemandNode:
    """
    Resolve the full demand graph for `target_rate` units of `root_item_id`
    per time-unit. `selection` maps item ids to a recipe (or recipe id) for
    items that have more than one recipe.
    """
    selection = selection or {}
    if catalog.get_item(root_item_id) is None:
        raise ResolutionError(f"unknown item '{root_item_id}'", item_id=root_item_id)
    rate = _as_rate(target_rate)

    chosen, order = _plan(catalog, root_item_id, selection)

    nodes = {}
    for item_id in order:
        recipe = chosen[item_id]
        nodes[item_id] = DemandNode(
            item=catalog.get_item(item_id),
            recipe=recipe,
            machine=catalog.get_machine(recipe.machine) if recipe else None,
        )
    for node in nodes.values():
        if node.recipe is not None:
            node.children = [nodes[input_id] for input_id, _ in node.recipe.inputs]

    root = nodes[root_item_id]
    root.rate = rate
    root.contributions[TARGET] = rate

    # Topological order: a node's total is final before its inputs are expanded.
    for item_id in order:
        node = nodes[item_id]
        if node.recipe is None:
            continue
        crafts = node.rate / node.recipe.out
        for input_id, qty in node.recipe.inputs:
            demand = crafts * qty
            child = nodes[input_id]
            child.rate += demand
            child.contributions[item_id] = child.contributions.get(item_id, Fraction(0)) + demand

    logger.debug("Resolved '%s' at %s/unit into %d nodes", root_item_id, rate, len(nodes))
    return root
