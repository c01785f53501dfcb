from __future__ import annotations

import logging
import re
from pathlib import Path

import httpx
import yaml

from .errors import ManifestFetchError

logger = logging.getLogger(__name__)

DEFAULT_FETCH_TIMEOUT_S = 30.0

HOME_REF_RE = re.compile(
    r"(?<!\$)\$\{HOME\}"
    r"|(?<!\$)\$HOME(?![A-Za-z0-9_])"
    r"|(?<![^\s'\"=:\-])~(?=/)"
)


def fetch_manifest(url: str, dest: Path, *, timeout_s: float = DEFAULT_FETCH_TIMEOUT_S) -> Path:
    """Download the compose manifest to ``dest``, replacing any previous copy."""
    try:
        response = httpx.get(url, timeout=timeout_s, follow_redirects=True)
    except httpx.RequestError as exc:
        raise ManifestFetchError(url, f"Failed to download {url}: {exc}") from exc
    if response.status_code >= 400:
        raise ManifestFetchError(
            url,
            f"Failed to download {url}: HTTP {response.status_code}",
            status_code=response.status_code,
        )
    dest = Path(dest)
    dest.write_bytes(response.content)
    logger.debug("wrote %d bytes to %s", len(response.content), dest)
    return dest


def rewrite_home_refs(path: Path, home: str) -> int:
    """Point home-relative paths in the manifest at ``home``; returns the count.

    Compose expands ``${HOME}``, ``$HOME`` and a leading ``~/`` against the
    invoking user, so all three forms are rewritten. ``$$HOME`` is an escaped
    literal and stays as is.
    """
    text = path.read_text(encoding="utf-8")
    new_text, count = HOME_REF_RE.subn(lambda _m: home, text)
    if count:
        path.write_text(new_text, encoding="utf-8")
    return count


def declared_services(text: str) -> set[str] | None:
    """Service names under ``services``; None when the manifest does not parse."""
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError:
        return None
    if not isinstance(data, dict):
        return None
    services = data.get("services")
    if not isinstance(services, dict):
        return set()
    return {str(name) for name in services}
