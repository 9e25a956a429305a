import pytest
import subprocess
import json
import os
import sys

from conftest import PROJECT_ROOT, BASE_CATALOG, CYCLE_CATALOG, assert_json_floats_close

import verify_plan
import run_samples
from gen_plan import generate_simple_case
from planner import main as planner_main


# Command to run; overridable to test an installed entry point
PLANNER_CMD = os.environ.get("PLANNER_CMD", f'"{sys.executable}" -m planner.main')


# --- Test Case Data ---
SAMPLE_INPUT = generate_simple_case()

EXPECTED_SUMMARY = {
    "machines": {"assembler": 3, "smelter": 3},
    "fractional_machines": {"assembler": 2.4, "smelter": 2.4},
    "total_power": 450.0,
    "raw_materials": {"ingot": 3.0}
}

CYCLE_INPUT = {
    "catalog": CYCLE_CATALOG,
    "target": {"item": "a", "rate": 1}
}


# --- Helper Function ---
def run_command(input_data, args="", timeout=10.0):
    try:
        process = subprocess.run(
            f"{PLANNER_CMD} {args}",
            shell=True,
            input=input_data if isinstance(input_data, str) else json.dumps(input_data),
            capture_output=True,
            text=True,
            encoding='utf-8',
            timeout=timeout,
            cwd=PROJECT_ROOT,
        )
        return process
    except subprocess.TimeoutExpired:
        pytest.fail(f"Process exceeded time limit of {timeout}s.")


def run_json(input_data, args=""):
    process = run_command(input_data, args)
    try:
        return json.loads(process.stdout)
    except json.JSONDecodeError:
        pytest.fail(f"Output was not valid JSON. Got:\n{process.stdout}\n{process.stderr}")


# --- CLI Tests ---

def test_sample_case_stdout():
    """The sample case produces no stderr and valid JSON on stdout."""
    process = run_command(SAMPLE_INPUT)
    assert process.stderr == "", "STDERR should be empty on success"
    output_json = json.loads(process.stdout)
    assert output_json["status"] == "ok"


def test_sample_case_summary():
    output_json = run_json(SAMPLE_INPUT)
    assert output_json["mode"] == "merged"
    assert_json_floats_close(output_json["summary"], EXPECTED_SUMMARY)


def test_sample_case_verification():
    """The plan is self-consistent according to verify_plan."""
    output_json = run_json(SAMPLE_INPUT)
    errors = verify_plan.verify_solution(SAMPLE_INPUT, output_json)
    assert not errors, "Verification found errors:\n" + "\n".join(errors)


def test_sample_matches_recorded_plan():
    output_json = run_json(SAMPLE_INPUT)
    assert run_samples.diff_plans(output_json, run_samples.PLAN_SAMPLE_OUTPUT) == []

    output_json["tree"]["children"][0]["machine_count"] = 4
    del output_json["tree"]["children"][1]
    errors = run_samples.diff_plans(output_json, run_samples.PLAN_SAMPLE_OUTPUT)
    assert "/gear/plate.machine_count: got 4, expected 3" in errors
    assert "/gear/ingot: missing" in errors


def test_per_branch_mode_flag():
    output_json = run_json(SAMPLE_INPUT, "--mode per-branch")
    assert output_json["mode"] == "per-branch"
    errors = verify_plan.verify_solution(SAMPLE_INPUT, output_json)
    assert not errors, "\n".join(errors)
    assert_json_floats_close(output_json["summary"], EXPECTED_SUMMARY)


def test_catalog_file_flag(tmp_path):
    path = tmp_path / "catalog.json"
    path.write_text(json.dumps(BASE_CATALOG), encoding="utf-8")
    output_json = run_json({"target": {"item": "plate", "rate": 1}}, f'--catalog "{path}"')
    assert output_json["status"] == "ok"
    assert output_json["tree"]["machine_count"] == 2
    assert output_json["tree"]["power"] == 200.0


def test_cycle_is_reported():
    output_json = run_json(CYCLE_INPUT)
    assert output_json["status"] == "error"
    assert output_json["kind"] == "resolution_error"
    assert output_json["chain"] == ["a", "b", "a"]


def test_invalid_json():
    output_json = run_json("{not json")
    assert output_json["status"] == "error"
    assert output_json["message"] == "Invalid JSON input."


def test_target_not_an_object():
    process = run_command({"catalog": BASE_CATALOG, "target": "gear"})
    assert process.returncode == 0
    assert process.stderr == ""
    output_json = json.loads(process.stdout)
    assert output_json["status"] == "error"
    assert output_json["kind"] == "invalid_request"


def test_text_format(tmp_path):
    locale = tmp_path / "en.json"
    locale.write_text(json.dumps({"items": {"item.gear": "Gear"}, "machines": {"smelter": "Smelter"}}))
    process = run_command(SAMPLE_INPUT, f'--format text --locale "{locale}"')
    assert process.stderr == ""
    lines = process.stdout.splitlines()
    assert lines[0] == "--- Production Line Tree ---"
    assert lines[1] == "Gear x1.2 [assembler x3 (2.4 needed)]"
    assert "├── plate x1.2 [Smelter x3 (2.4 needed)]" in lines
    assert "│   └── ingot x1.8 (see above)" in lines
    assert "└── ingot x3" in lines
    assert "Total Power Needed: 450" in lines


# --- In-process request handling ---

def test_handle_request_missing_target():
    result = planner_main.handle_request({"catalog": BASE_CATALOG})
    assert result["status"] == "error"
    assert result["kind"] == "invalid_request"


@pytest.mark.parametrize("target", ["gear", ["gear", 1], {"item": ["gear"], "rate": 1}, {"item": 7, "rate": 1}])
def test_handle_request_malformed_target(target):
    result = planner_main.handle_request({"catalog": BASE_CATALOG, "target": target})
    assert result["status"] == "error"
    assert result["kind"] == "invalid_request"


def test_handle_request_missing_catalog():
    result = planner_main.handle_request({"target": {"item": "gear", "rate": 1}})
    assert result["kind"] == "invalid_request"


def test_handle_request_bad_catalog():
    bad = json.loads(json.dumps(BASE_CATALOG))
    bad["recipes"]["plate"]["in"]["plate"] = 1
    result = planner_main.handle_request({"catalog": bad, "target": {"item": "plate", "rate": 1}})
    assert result["kind"] == "data_error"
    assert any("own recipe" in p for p in result["problems"])


def test_handle_request_needs_selection():
    request = generate_simple_case()
    del request["selections"]
    result = planner_main.handle_request(request)
    assert result["kind"] == "resolution_error"
    assert result["item_id"] == "plate"


def test_handle_request_unknown_mode():
    request = generate_simple_case()
    request["mode"] = "sideways"
    assert planner_main.handle_request(request)["kind"] == "invalid_request"


def test_handle_request_rate_per_min_alias():
    result = planner_main.handle_request(
        {"catalog": BASE_CATALOG, "target": {"item": "plate", "rate_per_min": 1}}
    )
    assert result["status"] == "ok"
    assert result["tree"]["rate"] == 1.0
