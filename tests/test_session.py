from __future__ import annotations

import asyncio

import httpx
import pytest

from core.geometry.models import BoundingBox
from core.orchestrator.diagnostics import DiagnosticInfo
from core.orchestrator.session import FieldBindingSession
from core.utils.errors import DocumentFetchError

_SVG = """<svg xmlns="http://www.w3.org/2000/svg" width="200" height="120">
  <rect id="input-a" x="10" y="10" width="50" height="20"/>
  <rect id="input-b" x="10" y="40" width="50" height="20"/>
  <rect id="output-sum" x="10" y="80" width="50" height="20"/>
</svg>"""

_RULES = [{"type": "input", "prefix": "input-"}, {"type": "output", "prefix": "output-"}]


def _sum(values: dict[str, str]) -> dict[str, str]:
    return {"sum": str(sum(int(value or 0) for value in values.values()))}


def test_load_text_mounts_overlays_and_reports_diagnostics() -> None:
    received: list[DiagnosticInfo] = []
    session = FieldBindingSession(_RULES, on_diagnostics=received.append)

    result = session.load_text(_SVG)

    assert [field.name for field in session.fields] == ["a", "b", "sum"]
    assert result.diagnostics.total_fields == 3
    assert received == [result.diagnostics]
    bound = session.to_string()
    assert bound is not None
    assert bound.count("<foreignObject") == 3


def test_inputs_drive_outputs_through_bound_document() -> None:
    changes: list[tuple[str, str]] = []
    session = FieldBindingSession(
        _RULES,
        on_field_change=lambda name, value, values: changes.append((name, value)),
        on_outputs_computed=_sum,
    )
    session.load_text(_SVG)

    session.handle_input("a", "4")
    session.handle_input("b", "6")

    assert changes == [("a", "4"), ("b", "6")]
    bound = session.to_string()
    assert bound is not None
    assert ">10<" in bound


def test_reloading_same_text_rebuilds_but_keeps_inputs() -> None:
    session = FieldBindingSession(_RULES)
    session.load_text(_SVG)
    session.set_input_values({"a": "1"})
    first_handles = session.synchronizer.overlays

    session.load_text(_SVG)

    assert session.last_report is not None
    assert len(session.last_report.created) == 3
    assert set(session.synchronizer.overlays) == set(first_handles)
    assert session.synchronizer.overlays != first_handles
    assert session.synchronizer.input_values == {"a": "1", "b": ""}


def test_set_rules_diffs_overlays_without_rebuilding() -> None:
    session = FieldBindingSession(_RULES)
    session.load_text(_SVG)
    handles = session.synchronizer.overlays

    session.set_rules([{"type": "input", "ids": ["input-a"]}, {"type": "output", "prefix": "output-"}])

    report = session.last_report
    assert report is not None
    assert report.identity_changed
    names = {key.name: handle for key, handle in session.synchronizer.overlays.items()}
    assert set(names) == {"input-a", "sum"}
    sum_key = next(key for key in handles if key.name == "sum")
    assert names["sum"] is handles[sum_key]


def test_set_rules_with_same_identity_reuses_geometry() -> None:
    session = FieldBindingSession(_RULES)
    session.load_text(_SVG)
    previous = session.fields

    session.set_rules(list(_RULES))

    assert session.fields == previous
    assert session.last_report is not None
    assert not session.last_report.identity_changed
    assert session.last_report.created == ()


def test_refresh_geometry_repositions_after_layout_change() -> None:
    session = FieldBindingSession(_RULES)
    session.load_text(_SVG)
    assert session.result is not None and session.result.rendered is not None
    rendered = session.result.rendered
    rendered.find("id", "input-b").element.set("x", "90")  # type: ignore[union-attr]

    report = session.refresh_geometry()

    assert report is not None
    assert report.repositioned == ("input:b",)
    assert session.fields[1].bbox == BoundingBox(90, 40, 50, 20)


def test_unrenderable_document_leaves_no_overlays() -> None:
    session = FieldBindingSession(_RULES)

    result = session.load_text("not svg at all")

    assert result.fields == []
    assert session.view is None
    assert session.to_string() is None
    assert session.synchronizer.overlays == {}


@pytest.mark.anyio
async def test_load_url_fetches_and_loads() -> None:
    transport = httpx.MockTransport(lambda request: httpx.Response(200, text=_SVG))
    session = FieldBindingSession(_RULES)

    async with httpx.AsyncClient(transport=transport) as client:
        result = await session.load_url("https://example.test/form.svg", client=client)

    assert result is not None
    assert len(result.fields) == 3


@pytest.mark.anyio
async def test_stale_fetch_is_discarded() -> None:
    release = asyncio.Event()

    async def handler(request: httpx.Request) -> httpx.Response:
        await release.wait()
        return httpx.Response(200, text=_SVG.replace("input-b", "input-late"))

    session = FieldBindingSession(_RULES)
    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        pending = asyncio.create_task(session.load_url("https://example.test/slow.svg", client=client))
        await asyncio.sleep(0)
        session.load_text(_SVG)
        release.set()
        stale = await pending

    assert stale is None
    assert [field.name for field in session.fields] == ["a", "b", "sum"]


@pytest.mark.anyio
async def test_current_fetch_failure_propagates() -> None:
    transport = httpx.MockTransport(lambda request: httpx.Response(500))
    session = FieldBindingSession(_RULES)

    async with httpx.AsyncClient(transport=transport) as client:
        with pytest.raises(DocumentFetchError, match="Failed to fetch: HTTP 500"):
            await session.load_url("https://example.test/form.svg", client=client)


def test_per_field_output_callback_reaches_bound_document() -> None:
    session = FieldBindingSession(
        _RULES,
        on_outputs_computed=_sum,
        on_output_update={"sum": lambda values: f"{values['a']}+{values['b']}"},
    )
    session.load_text(_SVG)

    session.set_input_values({"a": "2", "b": "3"})

    assert session.synchronizer.output_values == {"sum": "2+3"}
    bound = session.to_string()
    assert bound is not None
    assert ">2+3<" in bound
