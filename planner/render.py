"""
Plain-text rendering of a projected tree, for terminal use.
"""
import json

from planner.errors import DataError


class Localizer:
    """Looks up display names; anything missing falls back to the key itself."""

    def __init__(self, items=None, machines=None, ui=None):
        self.items = dict(items or {})
        self.machines = dict(machines or {})
        self.ui = dict(ui or {})

    @classmethod
    def from_file(cls, path):
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise DataError(f"cannot read locale {path}: {e}") from e
        if not isinstance(data, dict):
            raise DataError(f"locale {path} must be an object")
        return cls(data.get("items"), data.get("machines"), data.get("ui"))

    def get_item(self, key):
        return self.items.get(key, key)

    def get_machine(self, key):
        return self.machines.get(key, key)

    def get_ui(self, key):
        return self.ui.get(key, key)


UI_DEFAULTS = {
    "tree_header": "--- Production Line Tree ---",
    "raw_header": "Total Raw Materials Needed:",
    "machines_header": "Total Machines Needed:",
    "power_label": "Total Power Needed",
    "missing_recipe": "MISSING RECIPE",
    "see_above": "see above",
}


def _fmt(value):
    return f"{value:.6g}"


class TextRenderer:
    def __init__(self, catalog=None, localizer=None):
        self.catalog = catalog
        self.localizer = localizer or Localizer()

    def _ui(self, key):
        text = self.localizer.get_ui(key)
        return UI_DEFAULTS.get(key, key) if text == key else text

    def item_name(self, item_id):
        key = item_id
        if self.catalog is not None:
            item = self.catalog.get_item(item_id)
            if item is not None:
                key = item.name
        name = self.localizer.get_item(key)
        return item_id if name == key and key != item_id else name

    def describe(self, entry):
        name = self.item_name(entry["item_id"])
        if entry.get("ref"):
            return f"{name} x{_fmt(entry['rate'])} ({self._ui('see_above')})"
        if entry["missing_recipe"]:
            return f"{name} x{_fmt(entry['rate'])} [{self._ui('missing_recipe')}]"
        if entry["recipe_id"] is None:
            return f"{name} x{_fmt(entry['rate'])}"
        machine = self.localizer.get_machine(entry["machine_id"])
        return (
            f"{name} x{_fmt(entry['rate'])} "
            f"[{machine} x{entry['machine_count']} ({_fmt(entry['fractional_machines'])} needed)]"
        )

    def _lines(self, entry, prefix, is_last, lines):
        connector = "└── " if is_last else "├── "
        lines.append(prefix + connector + self.describe(entry))
        child_prefix = prefix + ("    " if is_last else "│   ")
        children = entry.get("children", [])
        for i, child in enumerate(children):
            self._lines(child, child_prefix, i == len(children) - 1, lines)

    def render(self, tree, summary=None):
        lines = [self._ui("tree_header"), self.describe(tree)]
        children = tree.get("children", [])
        for i, child in enumerate(children):
            self._lines(child, "", i == len(children) - 1, lines)

        if summary is not None:
            lines.append("")
            lines.append(self._ui("raw_header"))
            for item_id, rate in summary["raw_materials"].items():
                lines.append(f" - {self.item_name(item_id)}: {_fmt(rate)}")
            lines.append("")
            lines.append(self._ui("machines_header"))
            for machine_id, count in summary["machines"].items():
                fractional = summary["fractional_machines"].get(machine_id, 0.0)
                lines.append(
                    f" - {self.localizer.get_machine(machine_id)}: {count} ({_fmt(fractional)} needed)"
                )
            lines.append("")
            lines.append(f"{self._ui('power_label')}: {_fmt(summary['total_power'])}")
        return "\n".join(lines)
