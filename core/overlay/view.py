"""Controls and the view-mounting capability used by the synchronizer."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Protocol

from core.geometry.models import BoundingBox
from core.matching.models import FieldType
from core.overlay.models import OverlayKey

MISSING_OUTPUT_TEXT = "..."


@dataclass(frozen=True)
class OverlayContainer:
    """Positioned slot the view creates for one overlay."""

    key: OverlayKey
    field_id: str
    type: FieldType
    bbox: BoundingBox


@dataclass(frozen=True)
class InputControlProps:
    name: str
    value: str
    on_change: Callable[[str], None]
    placeholder: str = ""


@dataclass(frozen=True)
class OutputControlProps:
    name: str
    value: str | None


@dataclass(frozen=True)
class DefaultInputControl:
    name: str
    value: str
    placeholder: str = ""


@dataclass(frozen=True)
class DefaultOutputControl:
    name: str
    value: str | None

    @property
    def text(self) -> str:
        return MISSING_OUTPUT_TEXT if self.value in (None, "") else str(self.value)


InputRenderer = Callable[[InputControlProps], Any]
OutputRenderer = Callable[[OutputControlProps], Any]


def default_input_control(props: InputControlProps) -> DefaultInputControl:
    return DefaultInputControl(name=props.name, value=props.value, placeholder=props.placeholder)


def default_output_control(props: OutputControlProps) -> DefaultOutputControl:
    return DefaultOutputControl(name=props.name, value=props.value)


class OverlayView(Protocol):
    """Mount/update/unmount primitives of the host view layer."""

    def mount(self, container: OverlayContainer, control: Any) -> Any:
        """Create the container, attach ``control`` and return a handle."""

    def update(self, handle: Any, *, bbox: BoundingBox | None = None, control: Any = None) -> None:
        """Move the container and/or swap its control in place."""

    def unmount(self, handle: Any) -> None:
        """Remove the container and its control."""
