"""Remote document fetch, the only suspension point of the pipeline."""

from __future__ import annotations

import logging

import httpx

from core.utils.errors import DocumentFetchError

logger = logging.getLogger("svgbind.pipeline")

DEFAULT_FETCH_TIMEOUT_SECONDS = 10.0


async def fetch_document(
    url: str,
    *,
    client: httpx.AsyncClient | None = None,
    timeout: float = DEFAULT_FETCH_TIMEOUT_SECONDS,
    max_bytes: int | None = None,
) -> str:
    """Fetch document text once; no retries.

    Raises ``DocumentFetchError`` for transport errors, non-2xx statuses and
    bodies larger than ``max_bytes``.
    """

    if not url or not url.strip():
        raise DocumentFetchError("empty URL", url=url)

    owns_client = client is None
    http = client or httpx.AsyncClient(timeout=timeout, follow_redirects=True)
    try:
        response = await http.get(url)
    except httpx.HTTPError as exc:
        raise DocumentFetchError(str(exc) or type(exc).__name__, url=url) from exc
    finally:
        if owns_client:
            await http.aclose()

    if response.status_code >= 400:
        raise DocumentFetchError(
            f"HTTP {response.status_code}", url=url, status_code=response.status_code
        )
    if max_bytes is not None and len(response.content) > max_bytes:
        raise DocumentFetchError(
            f"document exceeds {max_bytes} bytes", url=url, status_code=response.status_code
        )

    logger.debug("fetched url=%s bytes=%d", url, len(response.content))
    return response.text
