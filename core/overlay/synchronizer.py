"""Overlay synchronizer: executes reconciliation plans through an OverlayView.

Rules:
- Effects run in plan order; every destroy finishes before any create.
- Repositioning updates the container in place; the control is kept.
- A custom renderer failing during mount/update falls back to the default
  control for that one field; unmount failures are logged only.
- Input values are keyed by field name and survive identity changes for
  names still present; outputs are recomputed when inputs or identities change.
- Computed outputs start from ``on_outputs_computed`` and are then
  overridden per name by ``on_output_update``; explicit output values
  bypass both.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from core.geometry.models import ResolvedField
from core.overlay.models import (
    CreateOverlay,
    DesiredOverlay,
    DestroyOverlay,
    FieldIdentity,
    OverlayKey,
    RepositionOverlay,
    identity_list,
)
from core.overlay.reconcile import plan_overlays
from core.overlay.view import (
    InputControlProps,
    InputRenderer,
    OutputControlProps,
    OutputRenderer,
    OverlayContainer,
    OverlayView,
    default_input_control,
    default_output_control,
)

logger = logging.getLogger("svgbind.overlay")

FieldChangeCallback = Callable[[str, str, dict[str, str]], None]
OutputsCallback = Callable[[dict[str, str]], Mapping[str, Any]]
OutputUpdateCallback = Callable[[dict[str, str]], Any]
DiagnosticsCallback = Callable[[Any], None]


@dataclass
class LiveOverlay:
    overlay: DesiredOverlay
    handle: Any
    uses_default: bool


@dataclass(frozen=True)
class SyncReport:
    identity_changed: bool
    created: tuple[str, ...] = ()
    repositioned: tuple[str, ...] = ()
    destroyed: tuple[str, ...] = ()
    fallbacks: tuple[str, ...] = ()


@dataclass
class _PassLog:
    created: list[str] = field(default_factory=list)
    repositioned: list[str] = field(default_factory=list)
    destroyed: list[str] = field(default_factory=list)
    fallbacks: list[str] = field(default_factory=list)


class OverlaySynchronizer:
    def __init__(
        self,
        view: OverlayView,
        *,
        render_input: InputRenderer | None = None,
        render_output: OutputRenderer | None = None,
        on_field_change: FieldChangeCallback | None = None,
        on_outputs_computed: OutputsCallback | None = None,
        on_output_update: Mapping[str, OutputUpdateCallback] | None = None,
        on_diagnostics: DiagnosticsCallback | None = None,
    ) -> None:
        self._view = view
        self._render_input = render_input
        self._render_output = render_output
        self._on_field_change = on_field_change
        self._on_outputs_computed = on_outputs_computed
        self._on_output_update = dict(on_output_update or {})
        self._on_diagnostics = on_diagnostics

        self._identities: tuple[FieldIdentity, ...] = ()
        self._live: dict[OverlayKey, LiveOverlay] = {}
        self._inputs: dict[str, str] = {}
        self._explicit_outputs: dict[str, Any] | None = None
        self._outputs: dict[str, Any] = {}

    @property
    def overlays(self) -> dict[OverlayKey, Any]:
        """Live view handles by overlay key."""

        return {key: live.handle for key, live in self._live.items()}

    @property
    def input_values(self) -> dict[str, str]:
        return dict(self._inputs)

    @property
    def output_values(self) -> dict[str, Any]:
        return dict(self._outputs)

    def sync(
        self,
        fields: Sequence[ResolvedField],
        *,
        document_replaced: bool = False,
        diagnostics: Any = None,
    ) -> SyncReport:
        """Bring live overlays in line with ``fields``."""

        previous = {key: live.overlay for key, live in self._live.items()}
        plan = plan_overlays(
            self._identities, previous, fields, document_replaced=document_replaced
        )
        log = _PassLog()

        if plan.identity_changed:
            self._carry_inputs(fields)
            self._recompute_outputs()

        for destroy in plan.destroys:
            self._destroy(destroy, log)
        for reposition in plan.repositions:
            self._reposition(reposition, log)
        for create in plan.creates:
            self._create(create, log)

        if plan.identity_changed and not document_replaced:
            created = {effect.overlay.key for effect in plan.creates}
            self._refresh(lambda key: key.type == "output" and key not in created)

        self._identities = identity_list(fields)
        if plan.effects:
            logger.debug(
                "sync identity_changed=%s created=%d repositioned=%d destroyed=%d",
                plan.identity_changed,
                len(log.created),
                len(log.repositioned),
                len(log.destroyed),
            )

        if self._on_diagnostics is not None and diagnostics is not None:
            self._on_diagnostics(diagnostics)

        return SyncReport(
            identity_changed=plan.identity_changed,
            created=tuple(log.created),
            repositioned=tuple(log.repositioned),
            destroyed=tuple(log.destroyed),
            fallbacks=tuple(log.fallbacks),
        )

    def handle_input(self, name: str, value: str) -> None:
        """Record a value typed into an input control and notify the host."""

        self._inputs[name] = value
        self._refresh(lambda key: key.type == "input" and key.name == name)
        if self._on_field_change is not None:
            self._on_field_change(name, value, dict(self._inputs))
        self._recompute_outputs()
        self._refresh(lambda key: key.type == "output")

    def set_input_values(self, values: Mapping[str, str]) -> None:
        """Host-driven input values; does not call ``on_field_change``."""

        self._inputs.update({name: str(value) for name, value in values.items()})
        self._refresh(lambda key: key.type == "input")
        self._recompute_outputs()
        self._refresh(lambda key: key.type == "output")

    def set_output_values(self, values: Mapping[str, Any] | None) -> None:
        """Host-controlled outputs; ``None`` returns control to the output callbacks."""

        self._explicit_outputs = None if values is None else dict(values)
        self._recompute_outputs()
        self._refresh(lambda key: key.type == "output")

    def teardown(self) -> None:
        log = _PassLog()
        for key in list(self._live):
            self._destroy(DestroyOverlay(key=key), log)
        self._identities = ()

    def replace_view(self, view: OverlayView) -> None:
        """Tear down through the current view, then mount future overlays into ``view``."""

        self.teardown()
        self._view = view

    def _carry_inputs(self, fields: Sequence[ResolvedField]) -> None:
        names = [item.name for item in fields if item.type == "input"]
        self._inputs = {name: self._inputs.get(name, "") for name in dict.fromkeys(names)}

    def _recompute_outputs(self) -> None:
        if self._explicit_outputs is not None:
            self._outputs = dict(self._explicit_outputs)
        elif self._on_outputs_computed is not None or self._on_output_update:
            inputs = dict(self._inputs)
            computed: dict[str, Any] = {}
            if self._on_outputs_computed is not None:
                computed.update(self._on_outputs_computed(inputs))
            # per-field callbacks win over the global one
            for name, callback in self._on_output_update.items():
                computed[name] = callback(dict(inputs))
            self._outputs = computed

    def _control_for(self, key: OverlayKey, *, use_default: bool = False) -> Any:
        if key.type == "input":
            props = InputControlProps(
                name=key.name,
                value=self._inputs.get(key.name, ""),
                on_change=lambda value, name=key.name: self.handle_input(name, value),
            )
            renderer = None if use_default else self._render_input
            return (renderer or default_input_control)(props)

        output_props = OutputControlProps(
            name=key.name, value=self._stringify(self._outputs.get(key.name))
        )
        output_renderer = None if use_default else self._render_output
        return (output_renderer or default_output_control)(output_props)

    def _has_custom_renderer(self, key: OverlayKey) -> bool:
        renderer = self._render_input if key.type == "input" else self._render_output
        return renderer is not None

    def _create(self, effect: CreateOverlay, log: _PassLog) -> None:
        overlay = effect.overlay
        key = overlay.key
        container = OverlayContainer(
            key=key, field_id=key.field_id, type=key.type, bbox=overlay.bbox
        )

        if self._has_custom_renderer(key):
            try:
                handle = self._view.mount(container, self._control_for(key))
            except Exception as exc:  # noqa: BLE001
                logger.warning(
                    "custom renderer failed for field=%s, using default: %s", key.name, exc
                )
                log.fallbacks.append(key.field_id)
            else:
                self._live[key] = LiveOverlay(overlay=overlay, handle=handle, uses_default=False)
                log.created.append(key.field_id)
                return

        try:
            handle = self._view.mount(container, self._control_for(key, use_default=True))
        except Exception:
            logger.exception("mount failed for field=%s", key.name)
            return
        self._live[key] = LiveOverlay(overlay=overlay, handle=handle, uses_default=True)
        log.created.append(key.field_id)

    def _reposition(self, effect: RepositionOverlay, log: _PassLog) -> None:
        live = self._live.get(effect.overlay.key)
        if live is None:
            return
        try:
            self._view.update(live.handle, bbox=effect.overlay.bbox)
        except Exception:
            logger.exception("reposition failed for field=%s", effect.overlay.key.name)
            return
        live.overlay = effect.overlay
        log.repositioned.append(effect.overlay.key.field_id)

    def _destroy(self, effect: DestroyOverlay, log: _PassLog) -> None:
        live = self._live.pop(effect.key, None)
        if live is None:
            return
        try:
            self._view.unmount(live.handle)
        except Exception as exc:  # noqa: BLE001
            logger.warning("unmount failed for field=%s: %s", effect.key.name, exc)
        log.destroyed.append(effect.key.field_id)

    def _refresh(self, predicate: Callable[[OverlayKey], bool]) -> None:
        for key, live in self._live.items():
            if not predicate(key):
                continue
            if not live.uses_default and self._has_custom_renderer(key):
                try:
                    self._view.update(live.handle, control=self._control_for(key))
                except Exception as exc:  # noqa: BLE001
                    logger.warning(
                        "custom renderer update failed for field=%s, using default: %s",
                        key.name,
                        exc,
                    )
                    live.uses_default = True
                else:
                    continue
            try:
                self._view.update(live.handle, control=self._control_for(key, use_default=True))
            except Exception:
                logger.exception("control update failed for field=%s", key.name)

    @staticmethod
    def _stringify(value: Any) -> str | None:
        if value is None:
            return None
        return str(value)
