from __future__ import annotations

from pathlib import Path

import pytest

from core.matching.models import MatchRule
from core.matching.rule_loader import load_raw_rules, load_rules
from core.utils.errors import RuleConfigError


def test_load_default_rules() -> None:
    rules = load_rules()

    assert rules == [MatchRule.prefix("input", "input-"), MatchRule.prefix("output", "output-")]


def test_load_rules_from_mapping_file(tmp_path: Path) -> None:
    path = tmp_path / "rules.yaml"
    path.write_text(
        """
rules:
  - type: input
    ids: [food-price, num-people]
  - type: output
    attribute: "inkscape:label"
    pattern: "^result (\\\\w+)$"
""",
        encoding="utf-8",
    )

    rules = load_rules(path)

    assert rules[0] == MatchRule.exact("input", ["food-price", "num-people"])
    assert rules[1].attribute == "inkscape:label"


def test_load_raw_rules_accepts_bare_list(tmp_path: Path) -> None:
    path = tmp_path / "rules.yaml"
    path.write_text("- {type: input, prefix: in-}\n", encoding="utf-8")

    assert load_raw_rules(path) == [{"type": "input", "prefix": "in-"}]


def test_load_rules_raises_for_missing_file(tmp_path: Path) -> None:
    with pytest.raises(ValueError, match="Rules file not found"):
        load_rules(tmp_path / "missing.yaml")


def test_load_rules_raises_for_invalid_yaml(tmp_path: Path) -> None:
    path = tmp_path / "rules.yaml"
    path.write_text("rules: [unclosed\n", encoding="utf-8")

    with pytest.raises(ValueError, match="Invalid YAML in rules file"):
        load_rules(path)


def test_load_rules_raises_without_rules_list(tmp_path: Path) -> None:
    path = tmp_path / "rules.yaml"
    path.write_text("prefix: input-\n", encoding="utf-8")

    with pytest.raises(ValueError, match="must contain a 'rules' list"):
        load_rules(path)


def test_load_rules_raises_rule_config_error_for_bad_shape(tmp_path: Path) -> None:
    path = tmp_path / "rules.yaml"
    path.write_text("rules:\n  - type: input\n    ids: []\n", encoding="utf-8")

    with pytest.raises(RuleConfigError) as excinfo:
        load_rules(path)

    assert excinfo.value.problems == ["Rule 0: ids cannot be empty"]
