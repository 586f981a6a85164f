"""Rule loading utilities for YAML rule files."""

from __future__ import annotations

from pathlib import Path

import yaml  # type: ignore[import-untyped]

from core.matching.matcher import build_rules
from core.matching.models import MatchRule


def load_rules(path: Path | None = None) -> list[MatchRule]:
    """Load and validate matching rules from YAML."""

    return build_rules(load_raw_rules(path))


def load_raw_rules(path: Path | None = None) -> list[object]:
    """Load the raw rule list from YAML without validating rule shapes."""

    rules_path = path or Path(__file__).with_name("default_rules.yaml")

    try:
        raw = yaml.safe_load(rules_path.read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        raise ValueError(f"Rules file not found: {rules_path}") from exc
    except yaml.YAMLError as exc:
        raise ValueError(f"Invalid YAML in rules file: {rules_path}") from exc

    if isinstance(raw, dict):
        raw = raw.get("rules")
    if not isinstance(raw, list):
        raise ValueError(f"Rules file must contain a 'rules' list: {rules_path}")
    return raw
