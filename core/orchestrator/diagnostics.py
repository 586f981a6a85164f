"""Debug-surface summary of one scan/resolve pass."""

from __future__ import annotations

from collections.abc import Sequence

from pydantic import BaseModel, ConfigDict, Field

from core.geometry.models import ResolvedField
from core.scanning.models import Dialect, ScanResult, ToolName


class DocumentDimensions(BaseModel):
    model_config = ConfigDict(extra="forbid")

    width: float
    height: float


class DiagnosticInfo(BaseModel):
    model_config = ConfigDict(extra="forbid")

    total_fields: int = 0
    input_fields: int = 0
    output_fields: int = 0
    unresolved_fields: list[str] = Field(default_factory=list)
    dialect: Dialect
    tool: ToolName = "generic"
    document_dimensions: DocumentDimensions | None = None
    errors: list[str] = Field(default_factory=list)


def build_diagnostics(
    scan: ScanResult,
    fields: Sequence[ResolvedField],
    *,
    dimensions: tuple[float, float] | None = None,
    extra_errors: Sequence[str] = (),
) -> DiagnosticInfo:
    """Counts are over resolved fields; unresolved names are listed separately."""

    resolved = [item for item in fields if item.bbox is not None]
    return DiagnosticInfo(
        total_fields=len(resolved),
        input_fields=sum(1 for item in resolved if item.type == "input"),
        output_fields=sum(1 for item in resolved if item.type == "output"),
        unresolved_fields=[item.name for item in fields if item.bbox is None],
        dialect=scan.metadata.dialect,
        tool=scan.metadata.tool,
        document_dimensions=(
            DocumentDimensions(width=dimensions[0], height=dimensions[1]) if dimensions else None
        ),
        errors=[*scan.errors, *extra_errors],
    )
