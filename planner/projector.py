"""
Tree projector: turns a resolved, annotated demand graph into a display tree.

Two projections of the same graph are available:

  merged      every item appears once, at its shallowest position, with its
              total rate; later occurrences become {"ref": true} markers
              carrying just that parent's share.
  per-branch  every occurrence is expanded with its own share of the rate,
              so the shares of an item add up to its merged total.
"""
from collections import deque
from fractions import Fraction

from planner.aggregator import machines_for
from planner.resolver import TARGET

MERGED = "merged"
PER_BRANCH = "per-branch"
MODES = (MERGED, PER_BRANCH)


def _entry(node, rate, fractional, count, power):
    recipe = node.recipe
    return {
        "item_id": node.item_id,
        "rate": float(rate),
        "recipe_id": recipe.id if recipe else None,
        "machine_id": recipe.machine if recipe else None,
        "machine_count": count,
        "fractional_machines": float(fractional),
        "load": float(fractional / count) if count else 0.0,
        "power": float(power),
        "raw": node.item.raw,
        "missing_recipe": node.missing_recipe,
        "children": [],
    }


def _canonical_parents(root):
    # Breadth-first, so the first parent seen is the shallowest one.
    parents = {root.item_id: TARGET}
    queue = deque([root])
    while queue:
        node = queue.popleft()
        for child in node.children:
            if child.item_id not in parents:
                parents[child.item_id] = node.item_id
                queue.append(child)
    return parents


def _project_merged(node, parents):
    out = _entry(node, node.rate, node.fractional_machines, node.machine_count, node.power)
    for child in node.children:
        if parents[child.item_id] == node.item_id:
            out["children"].append(_project_merged(child, parents))
        else:
            out["children"].append({
                "item_id": child.item_id,
                "rate": float(child.demand_of(node.item_id)),
                "ref": True,
            })
    return out


def _project_per_branch(node, rate):
    if node.recipe is None:
        fractional, count, power = Fraction(0), 0, Fraction(0)
    else:
        fractional, count, power = machines_for(node.recipe, node.machine, rate)
    out = _entry(node, rate, fractional, count, power)
    for child in node.children:
        out["children"].append(_project_per_branch(child, node.input_rate(child.item_id, rate)))
    return out


def project(root, mode=MERGED):
    if mode == MERGED:
        return _project_merged(root, _canonical_parents(root))
    if mode == PER_BRANCH:
        return _project_per_branch(root, root.rate)
    raise ValueError(f"unknown projection mode '{mode}' (expected one of {', '.join(MODES)})")


def iter_tree(tree):
    """Yield every entry of a projected tree, depth-first, markers included."""
    stack = [tree]
    while stack:
        entry = stack.pop()
        yield entry
        stack.extend(reversed(entry.get("children", [])))
