"""Match rule models shared by the matcher, scanner and rule loader."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Literal, get_args

FieldType = Literal["input", "output"]
FIELD_TYPES: tuple[str, ...] = get_args(FieldType)


@dataclass(frozen=True)
class ExactSet:
    """Candidate must equal one of the listed values."""

    values: tuple[str, ...]


@dataclass(frozen=True)
class Prefix:
    """Candidate must start with ``value``; the remainder becomes the name."""

    value: str


@dataclass(frozen=True)
class Pattern:
    """Candidate must match ``regex`` (search semantics)."""

    regex: re.Pattern[str]


Strategy = ExactSet | Prefix | Pattern


@dataclass(frozen=True)
class MatchRule:
    """One matching rule: a field type, a single strategy and an optional attribute.

    ``attribute`` of ``None`` means "the dialect's default attribute"
    (``id`` for direct documents, ``data-id`` for embedded diagrams).
    """

    type: FieldType
    strategy: Strategy
    attribute: str | None = None

    def __post_init__(self) -> None:
        if self.type not in FIELD_TYPES:
            raise ValueError(f"type must be 'input' or 'output', got {self.type!r}")
        if not isinstance(self.strategy, (ExactSet, Prefix, Pattern)):
            raise TypeError(f"Unsupported strategy: {type(self.strategy).__name__}")
        if isinstance(self.strategy, ExactSet):
            if not self.strategy.values:
                raise ValueError("ids cannot be empty")
            if not all(isinstance(item, str) for item in self.strategy.values):
                raise ValueError("all ids must be strings")

    @classmethod
    def exact(
        cls, type: FieldType, ids: list[str] | tuple[str, ...], attribute: str | None = None
    ) -> MatchRule:
        return cls(type=type, strategy=ExactSet(tuple(ids)), attribute=attribute)

    @classmethod
    def prefix(cls, type: FieldType, prefix: str, attribute: str | None = None) -> MatchRule:
        return cls(type=type, strategy=Prefix(prefix), attribute=attribute)

    @classmethod
    def pattern(
        cls, type: FieldType, pattern: str | re.Pattern[str], attribute: str | None = None
    ) -> MatchRule:
        regex = pattern if isinstance(pattern, re.Pattern) else re.compile(pattern)
        return cls(type=type, strategy=Pattern(regex), attribute=attribute)


@dataclass(frozen=True)
class MatchResult:
    """Outcome of a successful match."""

    type: FieldType
    name: str
