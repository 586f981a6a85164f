"""Pattern matcher evaluating candidate strings against ordered match rules."""

from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from typing import Any, cast

from core.matching.models import (
    FIELD_TYPES,
    ExactSet,
    MatchResult,
    MatchRule,
    Pattern,
    Prefix,
)
from core.utils.errors import RuleConfigError

_STRATEGY_KEYS = ("ids", "prefix", "pattern")


def match_candidate(candidate: str, rules: Sequence[MatchRule]) -> MatchResult | None:
    """Return the first rule match for ``candidate`` in declaration order.

    Rules:
    - exact-set: candidate must equal a member; name is the candidate verbatim.
    - prefix: candidate must start with the prefix; name is the remainder.
    - pattern: regex search; name is capture group 1 when it participated,
      otherwise the whole candidate.
    - An empty candidate only matches an exact-set that lists the empty string.
    """

    for rule in rules:
        strategy = rule.strategy

        if isinstance(strategy, ExactSet):
            if candidate in strategy.values:
                return MatchResult(type=rule.type, name=candidate)
            continue

        if not candidate:
            continue

        if isinstance(strategy, Prefix):
            if candidate.startswith(strategy.value):
                return MatchResult(type=rule.type, name=candidate[len(strategy.value) :])
            continue

        if isinstance(strategy, Pattern):
            found = strategy.regex.search(candidate)
            if found is None:
                continue
            name = candidate
            if strategy.regex.groups >= 1 and found.group(1) is not None:
                name = found.group(1)
            return MatchResult(type=rule.type, name=name)

    return None


def validate_rules(raw_rules: object) -> list[str]:
    """Validate raw rule definitions and return rule-indexed problems.

    Accepts a sequence of mappings (as loaded from YAML/JSON) and/or already
    constructed ``MatchRule`` objects. Never raises.
    """

    if isinstance(raw_rules, (str, bytes)) or not isinstance(raw_rules, Sequence):
        return ["Rules must be a list of rule definitions"]

    problems: list[str] = []
    if len(raw_rules) == 0:
        problems.append("At least one matching rule must be defined")

    for index, raw in enumerate(raw_rules):
        if isinstance(raw, MatchRule):
            continue
        if not isinstance(raw, Mapping):
            problems.append(f"Rule {index}: must be a mapping")
            continue
        problems.extend(_validate_rule_mapping(index, raw))

    return problems


def build_rules(raw_rules: object) -> list[MatchRule]:
    """Validate and convert raw rule definitions, raising on any problem."""

    problems = validate_rules(raw_rules)
    if problems:
        raise RuleConfigError("Invalid matching rules", problems=problems)
    return [_to_rule(raw) for raw in cast(Sequence[Any], raw_rules)]


def build_valid_rules(raw_rules: object) -> tuple[list[MatchRule], list[str]]:
    """Convert the valid subset of raw rules and return problems for the rest."""

    problems = validate_rules(raw_rules)
    if isinstance(raw_rules, (str, bytes)) or not isinstance(raw_rules, Sequence):
        return [], problems

    rules: list[MatchRule] = []
    for index, raw in enumerate(raw_rules):
        if isinstance(raw, MatchRule):
            rules.append(raw)
        elif isinstance(raw, Mapping) and not _validate_rule_mapping(index, raw):
            rules.append(_to_rule(raw))
    return rules, problems


def _validate_rule_mapping(index: int, raw: Mapping[str, object]) -> list[str]:
    problems: list[str] = []
    label = f"Rule {index}"

    rule_type = raw.get("type")
    if rule_type not in FIELD_TYPES:
        problems.append(f"{label}: type must be 'input' or 'output'")

    attribute = raw.get("attribute")
    if attribute is not None and (not isinstance(attribute, str) or not attribute.strip()):
        problems.append(f"{label}: attribute must be a non-empty string")

    present = [key for key in _STRATEGY_KEYS if raw.get(key) is not None]
    if not present:
        problems.append(f"{label}: must have one of ids, prefix, or pattern")
    elif len(present) > 1:
        problems.append(
            f"{label}: cannot use multiple matching strategies ({', '.join(present)})"
        )

    ids = raw.get("ids")
    if ids is not None:
        if isinstance(ids, (str, bytes)) or not isinstance(ids, Sequence):
            problems.append(f"{label}: ids must be a list")
        elif len(ids) == 0:
            problems.append(f"{label}: ids cannot be empty")
        elif not all(isinstance(item, str) for item in ids):
            problems.append(f"{label}: all ids must be strings")

    prefix = raw.get("prefix")
    if prefix is not None and not isinstance(prefix, str):
        problems.append(f"{label}: prefix must be a string")

    pattern = raw.get("pattern")
    if pattern is not None:
        if isinstance(pattern, re.Pattern):
            pass
        elif not isinstance(pattern, str):
            problems.append(f"{label}: pattern must be a string")
        else:
            try:
                re.compile(pattern)
            except re.error as exc:
                problems.append(f"{label}: invalid pattern {pattern!r}: {exc}")

    return problems


def _to_rule(raw: MatchRule | Mapping[str, object]) -> MatchRule:
    if isinstance(raw, MatchRule):
        return raw

    rule_type = raw["type"]
    attribute = raw.get("attribute")
    if raw.get("ids") is not None:
        return MatchRule.exact(rule_type, list(raw["ids"]), attribute=attribute)  # type: ignore[arg-type]
    if raw.get("prefix") is not None:
        return MatchRule.prefix(rule_type, raw["prefix"], attribute=attribute)  # type: ignore[arg-type]
    return MatchRule.pattern(rule_type, raw["pattern"], attribute=attribute)  # type: ignore[arg-type]
