from __future__ import annotations

import json
from pathlib import Path

from typer.testing import CliRunner

from apps.cli.main import app

runner = CliRunner()

_SVG = """<svg xmlns="http://www.w3.org/2000/svg" width="200" height="120">
  <rect id="input-a" x="10" y="10" width="50" height="20"/>
  <rect id="input-b" x="10" y="40" width="50" height="20"/>
  <rect id="output-sum" x="10" y="80" width="50" height="20"/>
  <rect id="output-hidden" width="auto" height="5"/>
</svg>"""


def _write_svg(path: Path, text: str = _SVG) -> Path:
    path.write_text(text, encoding="utf-8")
    return path


def _write_rules(path: Path, body: str) -> Path:
    path.write_text(body, encoding="utf-8")
    return path


def test_validate_rules_accepts_good_file(tmp_path: Path) -> None:
    rules = _write_rules(tmp_path / "rules.yaml", "rules:\n  - type: input\n    prefix: in-\n")

    result = runner.invoke(app, ["validate-rules", "--rules", str(rules)])

    assert result.exit_code == 0
    assert "INFO: 1 rule(s) valid" in result.output


def test_validate_rules_lists_every_problem(tmp_path: Path) -> None:
    rules = _write_rules(
        tmp_path / "rules.yaml",
        "rules:\n  - type: input\n  - type: widget\n    prefix: w-\n",
    )

    result = runner.invoke(app, ["validate-rules", "--rules", str(rules)])

    assert result.exit_code == 2
    assert "ERROR(rules): Rule 0: must have one of ids, prefix, or pattern" in result.output
    assert "ERROR(rules): Rule 1:" in result.output


def test_validate_rules_rejects_non_list_yaml(tmp_path: Path) -> None:
    rules = _write_rules(tmp_path / "rules.yaml", "rules: nope\n")

    result = runner.invoke(app, ["validate-rules", "--rules", str(rules)])

    assert result.exit_code == 2
    assert "must contain a 'rules' list" in result.output


def test_scan_writes_mappings_with_default_rules(tmp_path: Path) -> None:
    document = _write_svg(tmp_path / "form.svg")
    out = tmp_path / "scan.json"

    result = runner.invoke(app, ["scan", "--document", str(document), "--out", str(out)])

    assert result.exit_code == 0
    assert f"INFO: wrote {out}" in result.output
    payload = json.loads(out.read_text(encoding="utf-8"))
    names = [mapping["name"] for mapping in payload["scan"]["mappings"]]
    assert names == ["a", "b", "sum", "hidden"]
    assert payload["scan"]["metadata"]["dialect"] == "direct"
    assert list(tmp_path.glob("scan.json.*.tmp")) == []


def test_scan_without_out_prints_json(tmp_path: Path) -> None:
    document = _write_svg(tmp_path / "form.svg")

    result = runner.invoke(app, ["scan", "--document", str(document)])

    assert result.exit_code == 0
    assert json.loads(result.output)["scan"]["errors"] == []


def test_scan_no_fields_returns_4(tmp_path: Path) -> None:
    document = _write_svg(tmp_path / "plain.svg", '<svg xmlns="http://www.w3.org/2000/svg"><rect id="x"/></svg>')
    out = tmp_path / "scan.json"

    result = runner.invoke(app, ["scan", "--document", str(document), "--out", str(out)])

    assert result.exit_code == 4
    assert "ERROR: No fields matched the configured rules" in result.output
    assert out.exists()


def test_scan_structural_error_returns_3(tmp_path: Path) -> None:
    document = _write_svg(tmp_path / "broken.svg", "<svg><broken")
    out = tmp_path / "scan.json"

    result = runner.invoke(app, ["scan", "--document", str(document), "--out", str(out)])

    assert result.exit_code == 3
    assert "ERROR: Failed to parse SVG document:" in result.output


def test_scan_invalid_rules_returns_2_before_reading_document(tmp_path: Path) -> None:
    document = _write_svg(tmp_path / "form.svg")
    rules = _write_rules(tmp_path / "rules.yaml", "rules:\n  - type: input\n    pattern: '('\n")

    result = runner.invoke(app, ["scan", "--document", str(document), "--rules", str(rules)])

    assert result.exit_code == 2
    assert "ERROR(rules): Rule 0:" in result.output


def test_scan_requires_exactly_one_source(tmp_path: Path) -> None:
    document = _write_svg(tmp_path / "form.svg")

    neither = runner.invoke(app, ["scan"])
    both = runner.invoke(app, ["scan", "--document", str(document), "--url", "https://example.test/a.svg"])

    assert neither.exit_code == 1
    assert both.exit_code == 1
    assert "exactly one of --document or --url" in both.output


def test_scan_rejects_unknown_tool(tmp_path: Path) -> None:
    document = _write_svg(tmp_path / "form.svg")

    result = runner.invoke(app, ["scan", "--document", str(document), "--tool", "sketch"])

    assert result.exit_code == 1
    assert "ERROR: --tool must be one of: drawio, figma, generic, inkscape." in result.output


def test_resolve_writes_fields_and_diagnostics(tmp_path: Path) -> None:
    document = _write_svg(tmp_path / "form.svg")
    out = tmp_path / "resolve.json"

    result = runner.invoke(app, ["resolve", "--document", str(document), "--out", str(out)])

    assert result.exit_code == 0
    assert "WARNING(geometry): unresolved fields: hidden" in result.output
    payload = json.loads(out.read_text(encoding="utf-8"))
    assert payload["fields"][0]["bbox"] == {"x": 10.0, "y": 10.0, "width": 50.0, "height": 20.0}
    assert payload["fields"][3]["bbox"] is None
    diagnostics = payload["diagnostics"]
    assert diagnostics["total_fields"] == 3
    assert diagnostics["unresolved_fields"] == ["hidden"]
    assert diagnostics["document_dimensions"] == {"width": 200.0, "height": 120.0}


def test_bind_writes_svg_with_overlays_and_values(tmp_path: Path) -> None:
    document = _write_svg(tmp_path / "form.svg")
    values = tmp_path / "values.json"
    values.write_text(json.dumps({"a": 7, "b": None}), encoding="utf-8")
    out = tmp_path / "bound" / "form.svg"

    result = runner.invoke(
        app,
        ["bind", "--document", str(document), "--values", str(values), "--out", str(out)],
    )

    assert result.exit_code == 0
    assert f"INFO: mounted 3 overlay(s) into {out}" in result.output
    bound = out.read_text(encoding="utf-8")
    assert bound.count("<foreignObject") == 3
    assert 'data-field-id="input:a"' in bound
    assert 'value="7"' in bound
    assert 'data-field-id="output:hidden"' not in bound


def test_bind_rejects_non_object_values(tmp_path: Path) -> None:
    document = _write_svg(tmp_path / "form.svg")
    values = tmp_path / "values.json"
    values.write_text("[1, 2]", encoding="utf-8")

    result = runner.invoke(
        app,
        ["bind", "--document", str(document), "--values", str(values), "--out", str(tmp_path / "o.svg")],
    )

    assert result.exit_code == 1
    assert "ERROR: values JSON must be an object" in result.output
    assert not (tmp_path / "o.svg").exists()


def test_bind_no_fields_writes_nothing(tmp_path: Path) -> None:
    document = _write_svg(tmp_path / "plain.svg", '<svg xmlns="http://www.w3.org/2000/svg"/>')
    out = tmp_path / "o.svg"

    result = runner.invoke(app, ["bind", "--document", str(document), "--out", str(out)])

    assert result.exit_code == 4
    assert not out.exists()
