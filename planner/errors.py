"""
Error taxonomy for the production planner.

Every failure the engine can report is a PlannerError subclass; the CLI turns
them into {"status": "error", ...} payloads via to_dict().
"""


class PlannerError(Exception):
    kind = "planner_error"

    def __init__(self, message):
        super().__init__(message)
        self.message = message

    def to_dict(self):
        return {"status": "error", "kind": self.kind, "message": self.message}


class DataError(PlannerError):
    """Malformed or inconsistent catalog data, raised at load time."""

    kind = "data_error"

    def __init__(self, problems):
        if isinstance(problems, str):
            problems = [problems]
        self.problems = list(problems)
        super().__init__("; ".join(self.problems))

    def to_dict(self):
        out = super().to_dict()
        out["problems"] = self.problems
        return out


class ResolutionError(PlannerError):
    """A single resolution request could not be expanded."""

    kind = "resolution_error"

    def __init__(self, message, item_id=None, chain=None):
        super().__init__(message)
        self.item_id = item_id
        self.chain = list(chain) if chain else []

    def to_dict(self):
        out = super().to_dict()
        if self.item_id is not None:
            out["item_id"] = self.item_id
        if self.chain:
            out["chain"] = self.chain
        return out


class AggregationError(PlannerError):
    """A selected recipe cannot be turned into a machine count."""

    kind = "aggregation_error"

    def __init__(self, message, recipe_id):
        super().__init__(message)
        self.recipe_id = recipe_id

    def to_dict(self):
        out = super().to_dict()
        out["recipe_id"] = self.recipe_id
        return out
