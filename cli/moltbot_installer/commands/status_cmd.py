from __future__ import annotations

import typer

from moltbot_client.health import probe

from .. import console
from ..config import ConfigError, get_brand, load_settings


def status(
        brand: str | None = typer.Option(None, "--brand", help="Brand profile to check."),
        timeout: float = typer.Option(1.0, "--timeout", min=0.1, help="Probe timeout in seconds."),
) -> None:
    """Probe the gateway health endpoint once."""
    try:
        settings = load_settings()
        profile = get_brand(brand or settings.brand)
    except ConfigError as exc:
        console.err(str(exc))
        raise typer.Exit(code=1)
    url = settings.health_url or profile.health_url
    if probe(url, timeout_s=timeout):
        console.ok(f"Gateway is healthy ({url})")
        return
    console.err(f"Gateway is not reachable at {url}")
    console.print(f"Check logs with: docker logs {profile.gateway_container}")
    raise typer.Exit(code=1)
