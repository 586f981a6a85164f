from __future__ import annotations

from core.geometry.models import BoundingBox, ResolvedField
from core.overlay.models import (
    CreateOverlay,
    DestroyOverlay,
    OverlayKey,
    RepositionOverlay,
    identity_list,
)
from core.overlay.reconcile import desired_overlays, plan_overlays
from core.scanning.models import FieldMapping


def _field(
    name: str,
    *,
    type: str = "input",
    box: tuple[float, float, float, float] | None = (0, 0, 10, 10),
    source: str | None = None,
) -> ResolvedField:
    element_id = source or f"{type}-{name}"
    return ResolvedField(
        mapping=FieldMapping(
            data_id=element_id,
            name=name,
            source_element_id=element_id,
            type=type,  # type: ignore[arg-type]
            matched_attribute="id",
        ),
        bbox=BoundingBox(*box) if box is not None else None,
    )


def _previous(fields: list[ResolvedField]):
    return identity_list(fields), {overlay.key: overlay for overlay in desired_overlays(fields)}


def test_first_pass_creates_every_measurable_field() -> None:
    fields = [_field("a"), _field("b", box=None), _field("sum", type="output")]

    plan = plan_overlays((), {}, fields)

    assert plan.identity_changed
    assert [type(effect) for effect in plan.effects] == [CreateOverlay, CreateOverlay]
    assert [effect.overlay.key for effect in plan.creates] == [
        OverlayKey("a", "input"),
        OverlayKey("sum", "output"),
    ]


def test_unchanged_fields_produce_no_effects() -> None:
    fields = [_field("a"), _field("sum", type="output")]
    identities, overlays = _previous(fields)

    plan = plan_overlays(identities, overlays, fields)

    assert not plan.identity_changed
    assert plan.effects == ()


def test_position_change_repositions_only_that_field() -> None:
    before = [_field("a"), _field("b", box=(0, 20, 10, 10))]
    after = [_field("a"), _field("b", box=(5, 25, 10, 10))]
    identities, overlays = _previous(before)

    plan = plan_overlays(identities, overlays, after)

    assert not plan.identity_changed
    assert len(plan.effects) == 1
    effect = plan.effects[0]
    assert isinstance(effect, RepositionOverlay)
    assert effect.overlay.key == OverlayKey("b", "input")
    assert effect.overlay.bbox == BoundingBox(5, 25, 10, 10)


def test_identity_change_destroys_before_creating() -> None:
    before = [_field("a"), _field("b")]
    after = [_field("a"), _field("c")]
    identities, overlays = _previous(before)

    plan = plan_overlays(identities, overlays, after)

    assert plan.identity_changed
    assert [type(effect) for effect in plan.effects] == [DestroyOverlay, CreateOverlay]
    assert plan.destroys[0].key == OverlayKey("b", "input")
    assert plan.creates[0].overlay.key == OverlayKey("c", "input")


def test_count_change_is_an_identity_change() -> None:
    before = [_field("a")]
    after = [_field("a"), _field("a", source="input-a-copy")]
    identities, overlays = _previous(before)

    plan = plan_overlays(identities, overlays, after)

    assert plan.identity_changed
    assert [effect.overlay.key for effect in plan.creates] == [OverlayKey("a", "input", 1)]


def test_same_name_different_type_are_distinct_overlays() -> None:
    fields = [_field("x"), _field("x", type="output")]

    keys = [overlay.key for overlay in desired_overlays(fields)]

    assert keys == [OverlayKey("x", "input"), OverlayKey("x", "output")]
    assert {key.field_id for key in keys} == {"input:x", "output:x"}


def test_document_replacement_tears_down_everything() -> None:
    fields = [_field("a"), _field("sum", type="output")]
    identities, overlays = _previous(fields)

    plan = plan_overlays(identities, overlays, fields, document_replaced=True)

    assert plan.identity_changed
    assert [type(effect) for effect in plan.effects] == [
        DestroyOverlay,
        DestroyOverlay,
        CreateOverlay,
        CreateOverlay,
    ]


def test_field_losing_geometry_is_destroyed() -> None:
    before = [_field("a"), _field("b")]
    after = [_field("a"), _field("b", box=None)]
    identities, overlays = _previous(before)

    plan = plan_overlays(identities, overlays, after)

    assert not plan.identity_changed
    assert plan.destroys == [DestroyOverlay(key=OverlayKey("b", "input"))]
