"""FastAPI wrapper for the svgbind scan/resolve pipeline."""

from __future__ import annotations

import importlib.metadata
import json
import logging
import os
import time
import uuid
from typing import Any

import httpx
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, ValidationError

from core.matching.matcher import validate_rules
from core.matching.rule_loader import load_raw_rules
from core.orchestrator.fetch import fetch_document
from core.orchestrator.pipeline import fields_payload, run_resolve, run_scan
from core.scanning.models import Dialect
from core.scanning.tools import list_supported_tools
from core.utils.errors import DocumentFetchError

app = FastAPI(title="svgbind API", version="0.1.0")
logger = logging.getLogger("svgbind.api")

REQUEST_ID_HEADER = "X-Svgbind-Request-Id"

_DEFAULT_FETCH_TIMEOUT_SECONDS = 10.0
_DEFAULT_MAX_DOCUMENT_BYTES = 5 * 1024 * 1024


class ScanRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    document: str | None = None
    url: str | None = None
    rules: list[Any] | None = None
    dialect: Dialect | None = None
    tool: str = "generic"
    resolve: bool = False


class ApiRequestError(Exception):
    def __init__(
        self,
        *,
        status_code: int,
        error_code: str,
        message: str,
        detail: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.error_code = error_code
        self.message = message
        self.detail = detail or {}


@app.middleware("http")
async def request_id_middleware(request: Request, call_next):
    """Ensure every response has a request id header."""

    request_id = uuid.uuid4().hex
    request.state.request_id = request_id
    try:
        response = await call_next(request)
    except Exception:  # noqa: BLE001
        _log_event(
            logging.ERROR,
            "error",
            request_id,
            error_code="INTERNAL_ERROR",
            status_code=500,
            failure_stage="middleware",
        )
        response = _error_response(
            status_code=500,
            error_code="INTERNAL_ERROR",
            message="internal server error",
            request_id=request_id,
            detail={"path": request.url.path},
        )
    response.headers.setdefault(REQUEST_ID_HEADER, request_id)
    return response


@app.get("/healthz")
async def healthz() -> dict[str, str]:
    """Liveness endpoint."""

    return {"status": "ok"}


@app.get("/v1/meta")
async def meta_v1(request: Request) -> JSONResponse:
    """Supported dialects, tools and build version."""

    request_id = _request_id_from_request(request)
    if not _meta_enabled():
        return _error_response(
            status_code=404,
            error_code="NOT_FOUND",
            message="meta endpoint is disabled",
            request_id=request_id,
            detail={"path": request.url.path},
        )

    payload = {
        "supported_dialects": ["direct", "embedded"],
        "supported_tools": list_supported_tools(),
        "version": app.version,
        "package_version": _package_version(),
    }
    return JSONResponse(status_code=200, headers={REQUEST_ID_HEADER: request_id}, content=payload)


@app.post("/v1/scan", response_model=None)
async def scan_v1(request: Request) -> JSONResponse:
    """Scan a document (inline or by URL) and optionally resolve geometry."""

    request_started = time.perf_counter()
    request_id = _request_id_from_request(request)
    failure_stage = "init"

    try:
        failure_stage = "validate_inputs"
        body = await request.body()
        max_bytes = _max_document_bytes()
        # inline documents travel in the body; leave room for the JSON envelope
        if len(body) > max_bytes + 64 * 1024:
            raise _too_large(max_bytes)

        scan_request = _parse_scan_request(body)
        if (scan_request.document is None) == (scan_request.url is None):
            raise ApiRequestError(
                status_code=400,
                error_code="INVALID_ARGUMENT",
                message="exactly one of document or url is required",
            )
        if scan_request.tool not in list_supported_tools():
            raise ApiRequestError(
                status_code=400,
                error_code="INVALID_ARGUMENT",
                message=f"Unsupported tool: {scan_request.tool}",
                detail={"supported_tools": list_supported_tools()},
            )

        failure_stage = "load_rules"
        raw_rules = _resolve_rules(scan_request.rules)

        _log_event(
            logging.INFO,
            "start",
            request_id,
            source="url" if scan_request.url is not None else "document",
            tool=scan_request.tool,
            dialect=scan_request.dialect,
            rule_count=len(raw_rules),
        )

        failure_stage = "load_document"
        if scan_request.url is not None:
            document = await _fetch(scan_request.url)
        else:
            document = scan_request.document or ""
        if len(document.encode("utf-8")) > max_bytes:
            raise _too_large(max_bytes)

        failure_stage = "scan"
        scan = run_scan(document, raw_rules, scan_request.dialect, tool=scan_request.tool)
        if not scan.mappings and not scan.no_match:
            raise ApiRequestError(
                status_code=422,
                error_code="STRUCTURAL_PARSE_ERROR",
                message=scan.errors[-1] if scan.errors else "document could not be scanned",
                detail={"errors": scan.errors, "metadata": scan.metadata.model_dump(mode="json")},
            )

        payload: dict[str, Any] = {"scan": scan.model_dump(mode="json")}
        if scan_request.resolve:
            failure_stage = "resolve"
            result = run_resolve(document, scan)
            payload["fields"] = fields_payload(result.fields)
            payload["diagnostics"] = result.diagnostics.model_dump(mode="json")

        _log_event(
            logging.INFO,
            "done",
            request_id,
            status_code=200,
            dialect=scan.metadata.dialect,
            mappings=len(scan.mappings),
            errors=len(scan.errors),
            total_ms=_elapsed_ms(request_started),
        )
        return JSONResponse(status_code=200, headers={REQUEST_ID_HEADER: request_id}, content=payload)

    except ApiRequestError as exc:
        _log_event(
            logging.ERROR if exc.status_code >= 500 else logging.WARNING,
            "error",
            request_id,
            error_code=exc.error_code,
            status_code=exc.status_code,
            failure_stage=failure_stage,
            total_ms=_elapsed_ms(request_started),
        )
        return _error_response(
            status_code=exc.status_code,
            error_code=exc.error_code,
            message=exc.message,
            request_id=request_id,
            detail=exc.detail,
        )


def _parse_scan_request(body: bytes) -> ScanRequest:
    try:
        raw = json.loads(body or b"{}")
    except json.JSONDecodeError as exc:
        raise ApiRequestError(
            status_code=400,
            error_code="INVALID_JSON",
            message="request body must be JSON",
            detail={"reason": str(exc)},
        ) from exc
    if not isinstance(raw, dict):
        raise ApiRequestError(
            status_code=400, error_code="INVALID_JSON", message="request body must be a JSON object"
        )

    try:
        return ScanRequest.model_validate(raw)
    except ValidationError as exc:
        raise ApiRequestError(
            status_code=400,
            error_code="INVALID_ARGUMENT",
            message="invalid scan request",
            detail={"errors": json.loads(exc.json(include_url=False))},
        ) from exc


def _resolve_rules(rules: list[Any] | None) -> list[Any]:
    raw_rules: list[Any] = load_raw_rules() if rules is None else rules
    problems = validate_rules(raw_rules)
    if problems:
        raise ApiRequestError(
            status_code=400,
            error_code="INVALID_RULES",
            message="invalid matching rules",
            detail={"problems": problems},
        )
    return raw_rules


async def _fetch(url: str) -> str:
    async with _http_client() as client:
        try:
            return await fetch_document(url, client=client, timeout=_fetch_timeout_seconds())
        except DocumentFetchError as exc:
            raise ApiRequestError(
                status_code=502,
                error_code="FETCH_FAILED",
                message=str(exc),
                detail={"url": url, "status_code": exc.status_code},
            ) from exc


def _http_client() -> httpx.AsyncClient:
    return httpx.AsyncClient(timeout=_fetch_timeout_seconds(), follow_redirects=True)


def _too_large(max_bytes: int) -> ApiRequestError:
    return ApiRequestError(
        status_code=413,
        error_code="DOCUMENT_TOO_LARGE",
        message="document exceeds size limit",
        detail={"max_document_bytes": max_bytes},
    )


def _request_id_from_request(request: Request) -> str:
    request_id = getattr(request.state, "request_id", None)
    if isinstance(request_id, str) and request_id:
        return request_id
    generated = uuid.uuid4().hex
    request.state.request_id = generated
    return generated


def _meta_enabled() -> bool:
    raw = os.getenv("SVGBIND_ENABLE_META", "1").strip().lower()
    return raw not in {"0", "false", "off", "no"}


def _max_document_bytes() -> int:
    raw = os.getenv("SVGBIND_MAX_DOCUMENT_BYTES")
    if raw is None:
        return _DEFAULT_MAX_DOCUMENT_BYTES
    try:
        parsed = int(raw)
    except ValueError:
        return _DEFAULT_MAX_DOCUMENT_BYTES
    return parsed if parsed > 0 else _DEFAULT_MAX_DOCUMENT_BYTES


def _fetch_timeout_seconds() -> float:
    raw = os.getenv("SVGBIND_FETCH_TIMEOUT_SECONDS")
    if raw is None:
        return _DEFAULT_FETCH_TIMEOUT_SECONDS
    try:
        parsed = float(raw)
    except ValueError:
        return _DEFAULT_FETCH_TIMEOUT_SECONDS
    return parsed if parsed > 0 else _DEFAULT_FETCH_TIMEOUT_SECONDS


def _package_version() -> str:
    try:
        return importlib.metadata.version("svgbind")
    except importlib.metadata.PackageNotFoundError:
        return "unknown"


def _dump_json(payload: dict[str, Any]) -> str:
    return json.dumps(payload, ensure_ascii=False, sort_keys=True, separators=(",", ":"))


def _error_response(
    *,
    status_code: int,
    error_code: str,
    message: str,
    request_id: str,
    detail: dict[str, Any] | None = None,
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        headers={REQUEST_ID_HEADER: request_id},
        content={
            "error_code": error_code,
            "message": message,
            "request_id": request_id,
            "detail": dict(detail or {}),
        },
    )


def _elapsed_ms(start: float) -> int:
    return int((time.perf_counter() - start) * 1000)


def _log_event(level: int, event: str, request_id: str, **fields: Any) -> None:
    payload = {
        "event": event,
        "request_id": request_id,
        **fields,
    }
    logger.log(level, _dump_json(payload))
