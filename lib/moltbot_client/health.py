from __future__ import annotations

import logging

import httpx

logger = logging.getLogger(__name__)

DEFAULT_PROBE_TIMEOUT_S = 1.0


def probe(url: str, *, timeout_s: float = DEFAULT_PROBE_TIMEOUT_S) -> bool:
    """Single GET against a health endpoint; any 2xx counts as healthy."""
    try:
        response = httpx.get(url, timeout=timeout_s)
    except httpx.HTTPError as exc:
        logger.debug("health probe %s failed: %s", url, exc)
        return False
    logger.debug("health probe %s -> %s", url, response.status_code)
    return 200 <= response.status_code < 300
