"""Session tying scan -> render -> resolve -> sync together for one host."""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from typing import Any

import httpx

from core.geometry.models import ResolvedField
from core.geometry.rendered import SvgRenderedDocument
from core.geometry.resolver import resolve_geometry
from core.orchestrator.diagnostics import build_diagnostics
from core.orchestrator.fetch import DEFAULT_FETCH_TIMEOUT_SECONDS, fetch_document
from core.orchestrator.pipeline import PipelineResult, run_resolve, run_scan
from core.overlay.models import FieldIdentity, identity_list
from core.overlay.svg_view import SvgOverlayView
from core.overlay.synchronizer import (
    DiagnosticsCallback,
    FieldChangeCallback,
    OutputsCallback,
    OutputUpdateCallback,
    OverlaySynchronizer,
    SyncReport,
)
from core.overlay.view import InputRenderer, OutputRenderer, OverlayView
from core.scanning.markup import MarkupParser
from core.scanning.models import Dialect
from core.utils.errors import DocumentFetchError

logger = logging.getLogger("svgbind.pipeline")

ViewFactory = Callable[[SvgRenderedDocument], OverlayView]


def _svg_view(rendered: SvgRenderedDocument) -> OverlayView:
    return SvgOverlayView(rendered.root)


class FieldBindingSession:
    """Owns the current document, its fields and the overlay synchronizer.

    Only the most recent load is reflected: a fetch that completes after a
    newer ``load_text``/``load_url`` call is discarded.
    """

    def __init__(
        self,
        rules: object,
        *,
        view_factory: ViewFactory = _svg_view,
        dialect: Dialect | None = None,
        tool: str = "generic",
        parser: MarkupParser | None = None,
        render_input: InputRenderer | None = None,
        render_output: OutputRenderer | None = None,
        on_field_change: FieldChangeCallback | None = None,
        on_outputs_computed: OutputsCallback | None = None,
        on_output_update: Mapping[str, OutputUpdateCallback] | None = None,
        on_diagnostics: DiagnosticsCallback | None = None,
        fetch_timeout: float = DEFAULT_FETCH_TIMEOUT_SECONDS,
    ) -> None:
        self._rules = rules
        self._view_factory = view_factory
        self._dialect = dialect
        self._tool = tool
        self._parser = parser
        self._fetch_timeout = fetch_timeout

        self.synchronizer = OverlaySynchronizer(
            _DetachedView(),
            render_input=render_input,
            render_output=render_output,
            on_field_change=on_field_change,
            on_outputs_computed=on_outputs_computed,
            on_output_update=on_output_update,
            on_diagnostics=on_diagnostics,
        )
        self.view: OverlayView | None = None
        self.result: PipelineResult | None = None
        self.last_report: SyncReport | None = None
        self._text: str | None = None
        self._generation = 0
        self._cached_identities: tuple[FieldIdentity, ...] | None = None

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def fields(self) -> list[ResolvedField]:
        return list(self.result.fields) if self.result else []

    def load_text(self, text: str) -> PipelineResult:
        """Run the whole pipeline against new document text."""

        self._generation += 1
        return self._load(text)

    async def load_url(
        self, url: str, *, client: httpx.AsyncClient | None = None
    ) -> PipelineResult | None:
        """Fetch and load ``url``; returns None when a newer load superseded it."""

        self._generation += 1
        generation = self._generation
        try:
            text = await fetch_document(url, client=client, timeout=self._fetch_timeout)
        except DocumentFetchError:
            if generation != self._generation:
                logger.debug("discarding stale fetch failure url=%s", url)
                return None
            raise

        if generation != self._generation:
            logger.debug("discarding stale fetch url=%s generation=%d", url, generation)
            return None
        return self._load(text)

    def set_rules(self, rules: object) -> PipelineResult | None:
        """Rescan the current document with new rules; overlays are diffed, not rebuilt."""

        self._rules = rules
        if self._text is None or self.result is None:
            return None

        scan = run_scan(self._text, rules, self._dialect, tool=self._tool, parser=self._parser)
        rendered = self.result.rendered
        identities = identity_list(
            [ResolvedField(mapping=mapping, bbox=None) for mapping in scan.mappings]
        )

        if identities == self._cached_identities and rendered is not None:
            fields = self.result.fields
            result = PipelineResult(
                scan=scan,
                fields=fields,
                diagnostics=build_diagnostics(scan, fields, dimensions=rendered.dimensions()),
                rendered=rendered,
            )
        else:
            result = run_resolve(self._text, scan, rendered=rendered, parser=self._parser)

        self._commit(result, document_replaced=False)
        return result

    def refresh_geometry(self) -> SyncReport | None:
        """Re-measure against the current rendered document and reposition overlays."""

        if self.result is None or self.result.rendered is None:
            return None

        rendered = self.result.rendered
        rendered.invalidate()
        fields = resolve_geometry(rendered, self.result.scan.mappings)
        result = PipelineResult(
            scan=self.result.scan,
            fields=fields,
            diagnostics=build_diagnostics(
                self.result.scan, fields, dimensions=rendered.dimensions()
            ),
            rendered=rendered,
        )
        return self._commit(result, document_replaced=False)

    def handle_input(self, name: str, value: str) -> None:
        self.synchronizer.handle_input(name, value)

    def set_input_values(self, values: Mapping[str, str]) -> None:
        self.synchronizer.set_input_values(values)

    def set_output_values(self, values: Mapping[str, Any] | None) -> None:
        self.synchronizer.set_output_values(values)

    def to_string(self) -> str | None:
        """Serialized document with overlays, when the view supports it."""

        serialize = getattr(self.view, "to_string", None)
        return serialize() if callable(serialize) else None

    def close(self) -> None:
        self.synchronizer.teardown()

    def _load(self, text: str) -> PipelineResult:
        scan = run_scan(text, self._rules, self._dialect, tool=self._tool, parser=self._parser)
        result = run_resolve(text, scan, parser=self._parser)

        if result.rendered is not None:
            self.view = self._view_factory(result.rendered)
            self.synchronizer.replace_view(self.view)
        else:
            self.view = None
            self.synchronizer.replace_view(_DetachedView())

        self._text = text
        self._commit(result, document_replaced=True)
        return result

    def _commit(self, result: PipelineResult, *, document_replaced: bool) -> SyncReport:
        self.result = result
        self._cached_identities = identity_list(result.fields)
        self.last_report = self.synchronizer.sync(
            result.fields, document_replaced=document_replaced, diagnostics=result.diagnostics
        )
        return self.last_report


class _DetachedView:
    """View used before any document is rendered; nothing can be mounted."""

    def mount(self, container: Any, control: Any) -> Any:
        raise RuntimeError("no rendered document to mount into")

    def update(self, handle: Any, *, bbox: Any = None, control: Any = None) -> None:
        return None

    def unmount(self, handle: Any) -> None:
        return None
