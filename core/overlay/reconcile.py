"""Pure overlay reconciliation.

Given the previous pass (identity list and live overlays) and the current
resolved fields, emit the minimal effect list:
- document replaced: destroy every live overlay, create every desired one
- otherwise: destroy keys that vanished, reposition keys whose rectangle or
  identity moved, create keys that are new or newly measurable
Fields with null geometry get no overlay.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence

from core.geometry.models import ResolvedField
from core.overlay.models import (
    CreateOverlay,
    DesiredOverlay,
    DestroyOverlay,
    FieldIdentity,
    OverlayEffect,
    OverlayKey,
    OverlayPlan,
    RepositionOverlay,
    identity_list,
    identity_of,
)


def desired_overlays(fields: Sequence[ResolvedField]) -> list[DesiredOverlay]:
    """One desired overlay per measurable field, keyed by name+type+ordinal."""

    counters: dict[tuple[str, str], int] = {}
    desired: list[DesiredOverlay] = []
    for item in fields:
        slot = (item.name, item.type)
        ordinal = counters.get(slot, 0)
        counters[slot] = ordinal + 1
        if item.bbox is None:
            continue
        desired.append(
            DesiredOverlay(
                key=OverlayKey(name=item.name, type=item.type, ordinal=ordinal),
                identity=identity_of(item),
                bbox=item.bbox,
            )
        )
    return desired


def identities_differ(
    previous: Sequence[FieldIdentity], current: Sequence[FieldIdentity]
) -> bool:
    return tuple(previous) != tuple(current)


def plan_overlays(
    previous_identities: Sequence[FieldIdentity],
    previous_overlays: Mapping[OverlayKey, DesiredOverlay],
    fields: Sequence[ResolvedField],
    *,
    document_replaced: bool = False,
) -> OverlayPlan:
    desired = desired_overlays(fields)
    identity_changed = identities_differ(previous_identities, identity_list(fields))

    if document_replaced:
        effects: list[OverlayEffect] = [DestroyOverlay(key=key) for key in previous_overlays]
        effects.extend(CreateOverlay(overlay=overlay) for overlay in desired)
        return OverlayPlan(identity_changed=True, effects=tuple(effects))

    desired_keys = {overlay.key for overlay in desired}
    destroys = [DestroyOverlay(key=key) for key in previous_overlays if key not in desired_keys]
    repositions: list[RepositionOverlay] = []
    creates: list[CreateOverlay] = []
    for overlay in desired:
        existing = previous_overlays.get(overlay.key)
        if existing is None:
            creates.append(CreateOverlay(overlay=overlay))
        elif existing != overlay:
            repositions.append(RepositionOverlay(overlay=overlay))

    return OverlayPlan(
        identity_changed=identity_changed,
        effects=(*destroys, *repositions, *creates),
    )
