"""
Production planner (CLI)
Reads a JSON request from stdin and writes the production tree to stdout.
Usage: python -m planner.main [--catalog catalog.json] < request.json > plan.json
"""
import argparse
import json
import logging
import sys

from planner import aggregator, catalog as catalog_mod, projector, resolver
from planner.errors import PlannerError
from planner.render import Localizer, TextRenderer

logger = logging.getLogger(__name__)


def plan_production(catalog, target_item, target_rate, selections=None, mode=projector.MERGED):
    """Resolve, annotate and project one request; returns the result payload."""
    root = resolver.resolve(catalog, target_item, target_rate, selections)
    aggregator.annotate(root)
    summary = aggregator.summarize(root)
    return {
        "status": "ok",
        "mode": mode,
        "tree": projector.project(root, mode),
        "summary": summary.to_dict(),
    }


def _invalid_request(message):
    return {"status": "error", "kind": "invalid_request", "message": message}


def handle_request(request, catalog=None, mode=None):
    if not isinstance(request, dict):
        return _invalid_request("request must be a JSON object")

    try:
        if catalog is None:
            if "catalog" not in request:
                return _invalid_request("no catalog given (use --catalog or a 'catalog' key)")
            catalog = catalog_mod.load(request["catalog"])

        target = request.get("target") or {}
        if not isinstance(target, dict):
            return _invalid_request("'target' must be an object with 'item' and 'rate'")
        target_item = target.get("item")
        target_rate = target.get("rate", target.get("rate_per_min"))
        if target_item is not None and not isinstance(target_item, str):
            return _invalid_request(f"target item must be a string (got {target_item!r})")
        if not target_item or target_rate is None:
            return _invalid_request("Missing 'target' item or 'rate'")

        selections = request.get("selections") or {}
        if not isinstance(selections, dict):
            return _invalid_request("'selections' must be an object of item id -> recipe id")

        mode = mode or request.get("mode") or projector.MERGED
        if mode not in projector.MODES:
            return _invalid_request(f"unknown mode '{mode}'")

        return plan_production(catalog, target_item, target_rate, selections, mode)
    except PlannerError as e:
        logger.debug("Request failed: %s", e)
        return e.to_dict()


def main(argv=None):
    parser = argparse.ArgumentParser(description="Compute production requirements for a target item.")
    parser.add_argument("--catalog", help="Path to a catalog JSON file (otherwise read from the request).")
    parser.add_argument("--mode", choices=projector.MODES, help="Tree projection mode.")
    parser.add_argument("--format", choices=("json", "text"), default="json", help="Output format.")
    parser.add_argument("--locale", help="Path to a locale JSON file used by --format text.")
    parser.add_argument("--verbose", action="store_true", help="Log resolution details to stderr.")
    args = parser.parse_args(argv)

    logging.basicConfig(
        stream=sys.stderr,
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    catalog = None
    localizer = None
    try:
        request = json.load(sys.stdin)
        if args.catalog:
            catalog = catalog_mod.load_file(args.catalog)
        elif isinstance(request, dict) and "catalog" in request:
            catalog = catalog_mod.load(request["catalog"])
        if args.locale:
            localizer = Localizer.from_file(args.locale)
        result = handle_request(request, catalog=catalog, mode=args.mode)
    except json.JSONDecodeError:
        result = _invalid_request("Invalid JSON input.")
    except ValueError as e:
        result = _invalid_request(str(e))
    except PlannerError as e:
        result = e.to_dict()

    if args.format == "text" and result["status"] == "ok":
        renderer = TextRenderer(catalog, localizer)
        sys.stdout.write(renderer.render(result["tree"], result["summary"]) + "\n")
    else:
        json.dump(result, sys.stdout)


if __name__ == "__main__":
    main()
