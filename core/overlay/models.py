"""Overlay identities and reconciliation effects."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field

from core.geometry.models import BoundingBox, ResolvedField
from core.matching.models import FieldType


@dataclass(frozen=True)
class FieldIdentity:
    """Structural identity of one field; equality drives the rebuild guard."""

    name: str
    data_id: str
    source_element_id: str
    type: FieldType


def identity_of(field_: ResolvedField) -> FieldIdentity:
    mapping = field_.mapping
    return FieldIdentity(
        name=mapping.name,
        data_id=mapping.data_id,
        source_element_id=mapping.source_element_id,
        type=mapping.type,
    )


def identity_list(fields: Sequence[ResolvedField]) -> tuple[FieldIdentity, ...]:
    """Ordered identities, count included."""

    return tuple(identity_of(item) for item in fields)


@dataclass(frozen=True)
class OverlayKey:
    """Key of one live overlay: duplicates of a name+type are told apart by ordinal."""

    name: str
    type: FieldType
    ordinal: int = 0

    @property
    def field_id(self) -> str:
        if self.ordinal == 0:
            return f"{self.type}:{self.name}"
        return f"{self.type}:{self.name}:{self.ordinal}"


@dataclass(frozen=True)
class DesiredOverlay:
    key: OverlayKey
    identity: FieldIdentity
    bbox: BoundingBox


@dataclass(frozen=True)
class CreateOverlay:
    overlay: DesiredOverlay


@dataclass(frozen=True)
class RepositionOverlay:
    overlay: DesiredOverlay


@dataclass(frozen=True)
class DestroyOverlay:
    key: OverlayKey


OverlayEffect = CreateOverlay | RepositionOverlay | DestroyOverlay


@dataclass(frozen=True)
class OverlayPlan:
    """Effects in execution order: destroys, then repositions, then creates."""

    identity_changed: bool
    effects: tuple[OverlayEffect, ...] = field(default_factory=tuple)

    @property
    def destroys(self) -> list[DestroyOverlay]:
        return [effect for effect in self.effects if isinstance(effect, DestroyOverlay)]

    @property
    def repositions(self) -> list[RepositionOverlay]:
        return [effect for effect in self.effects if isinstance(effect, RepositionOverlay)]

    @property
    def creates(self) -> list[CreateOverlay]:
        return [effect for effect in self.effects if isinstance(effect, CreateOverlay)]
