from __future__ import annotations

from lxml import etree

from core.geometry.models import BoundingBox
from core.geometry.rendered import SvgRenderedDocument
from core.overlay.models import OverlayKey
from core.overlay.svg_view import SvgOverlayView
from core.overlay.view import DefaultInputControl, DefaultOutputControl, OverlayContainer
from core.scanning.markup import SVG_NAMESPACE, XHTML_NAMESPACE

_SVG = (
    f'<svg xmlns="{SVG_NAMESPACE}" width="100" height="100">'
    '<rect id="input-a" x="10" y="10" width="50" height="20"/></svg>'
)


def _container(name: str = "a", type: str = "input") -> OverlayContainer:
    key = OverlayKey(name=name, type=type)  # type: ignore[arg-type]
    return OverlayContainer(
        key=key, field_id=key.field_id, type=key.type, bbox=BoundingBox(10, 10, 50, 20.5)
    )


def test_mount_appends_positioned_foreign_object_with_input() -> None:
    rendered = SvgRenderedDocument.from_text(_SVG)
    view = SvgOverlayView(rendered.root)

    handle = view.mount(_container(), DefaultInputControl(name="a", value="3", placeholder="qty"))

    assert handle.tag == f"{{{SVG_NAMESPACE}}}foreignObject"
    assert handle.getparent() is rendered.root
    assert (handle.get("x"), handle.get("y"), handle.get("width"), handle.get("height")) == (
        "10",
        "10",
        "50",
        "20.5",
    )
    assert handle.get("data-field-id") == "input:a"
    assert handle.get("class") == "svg-field svg-field-input"
    control = handle[0]
    assert control.tag == f"{{{XHTML_NAMESPACE}}}input"
    assert control.get("value") == "3"
    assert control.get("placeholder") == "qty"
    assert control.get("data-field-name") == "a"
    assert control.get("id") is None


def test_mounted_overlays_do_not_shadow_document_lookups() -> None:
    rendered = SvgRenderedDocument.from_text(_SVG)
    view = SvgOverlayView(rendered.root)
    view.mount(_container(), DefaultInputControl(name="a", value=""))
    rendered.invalidate()

    found = rendered.find("id", "input-a")

    assert found is not None
    assert found.bounding_box() == BoundingBox(10, 10, 50, 20)
    assert rendered.root.find(f"{{{SVG_NAMESPACE}}}rect") is not None


def test_output_control_shows_placeholder_until_value() -> None:
    view = SvgOverlayView(SvgRenderedDocument.from_text(_SVG).root)

    handle = view.mount(_container("sum", "output"), DefaultOutputControl(name="sum", value=None))
    assert handle[0].text == "..."

    view.update(handle, control=DefaultOutputControl(name="sum", value="12"))
    assert len(handle) == 1
    assert handle[0].text == "12"


def test_update_moves_container_in_place() -> None:
    view = SvgOverlayView(SvgRenderedDocument.from_text(_SVG).root)
    handle = view.mount(_container(), DefaultInputControl(name="a", value=""))
    control = handle[0]

    view.update(handle, bbox=BoundingBox(1.25, 2, 3, 4))

    assert handle.get("x") == "1.25"
    assert handle[0] is control


def test_custom_controls_accept_markup_and_elements() -> None:
    view = SvgOverlayView(SvgRenderedDocument.from_text(_SVG).root)

    from_markup = view.mount(
        _container(), f'<select xmlns="{XHTML_NAMESPACE}"><option>1</option></select>'
    )
    from_text = view.mount(_container("b"), "plain label")
    element = etree.Element(f"{{{XHTML_NAMESPACE}}}span")
    from_element = view.mount(_container("c"), element)

    assert etree.QName(from_markup[0]).localname == "select"
    assert from_text[0].text == "plain label"
    assert from_element[0] is not element


def test_unmount_removes_node_and_is_idempotent() -> None:
    rendered = SvgRenderedDocument.from_text(_SVG)
    view = SvgOverlayView(rendered.root)
    handle = view.mount(_container(), DefaultInputControl(name="a", value=""))

    view.unmount(handle)
    view.unmount(handle)

    assert handle.getparent() is None
    assert "foreignObject" not in view.to_string()


def test_to_string_serializes_bound_document() -> None:
    view = SvgOverlayView(SvgRenderedDocument.from_text(_SVG).root)
    view.mount(_container(), DefaultInputControl(name="a", value="5"))

    output = view.to_string()

    assert output.startswith("<svg")
    assert 'data-field-id="input:a"' in output
    assert 'value="5"' in output
