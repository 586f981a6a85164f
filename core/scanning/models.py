"""Data models for document scanning."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from core.matching.models import FieldType

Dialect = Literal["direct", "embedded"]
ToolName = Literal["generic", "drawio", "figma", "inkscape"]

NO_FIELDS_MATCHED = "No fields matched the configured rules"


@dataclass(frozen=True)
class FieldMapping:
    """One matched element.

    ``source_element_id`` is what the geometry resolver looks up in the
    rendered document; ``data_id`` is the raw matched attribute value.
    """

    data_id: str
    name: str
    source_element_id: str
    type: FieldType
    matched_attribute: str


class ScanMetadata(BaseModel):
    """Per-scan diagnostics, returned even when the scan failed."""

    model_config = ConfigDict(extra="forbid")

    dialect: Dialect
    tool: ToolName = "generic"
    attributes_used: list[str] = Field(default_factory=list)


class ScanResult(BaseModel):
    """Scanner output.

    Rules:
    - Structural errors always come with zero mappings.
    - A well-formed document with no matches carries exactly one
      ``NO_FIELDS_MATCHED`` error.
    """

    model_config = ConfigDict(extra="forbid")

    mappings: list[FieldMapping] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)
    metadata: ScanMetadata

    @property
    def ok(self) -> bool:
        return not self.errors

    @property
    def no_match(self) -> bool:
        return self.errors == [NO_FIELDS_MATCHED]
