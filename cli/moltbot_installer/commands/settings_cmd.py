from __future__ import annotations

import os

import typer

from .. import console
from ..config import (
    BRANDS,
    ConfigError,
    InstallerSettings,
    config_path,
    get_brand,
    load_settings,
    save_settings,
    to_toml,
)

app = typer.Typer(help="Manage installer defaults (~/.config/moltbot-installer/config.toml).")


def _load_or_exit() -> InstallerSettings:
    try:
        return load_settings()
    except ConfigError as exc:
        console.err(str(exc))
        raise typer.Exit(code=1)


@app.command("path")
def show_path():
    console.console.print(config_path())


@app.command("show")
def show_settings():
    settings = _load_or_exit()
    values = to_toml(settings)
    if not values:
        console.info("No settings saved; built-in defaults apply.")
        return
    for key, value in values.items():
        console.console.print(f"{key}={value}")


@app.command("set")
def set_setting(
        brand: str | None = typer.Option(None, "--brand", help=f"Default brand ({', '.join(sorted(BRANDS))})."),
        install_dir: str | None = typer.Option(None, "--install-dir", help="Default installation directory."),
        image: str | None = typer.Option(None, "--image", help="Image reference to pull."),
        compose_url: str | None = typer.Option(None, "--compose-url", help="URL of docker-compose.yml."),
        health_url: str | None = typer.Option(None, "--health-url", help="Gateway health endpoint."),
        health_timeout: int | None = typer.Option(None, "--health-timeout", min=1, help="Seconds to wait for the gateway."),
        poll_interval: int | None = typer.Option(None, "--poll-interval", min=1, help="Seconds between health probes."),
):
    settings = _load_or_exit()
    if brand is not None:
        try:
            settings.brand = get_brand(brand).name
        except ConfigError as exc:
            console.err(str(exc))
            raise typer.Exit(code=1)
    if install_dir is not None:
        settings.install_dir = os.path.expanduser(install_dir.strip())
    if image is not None:
        settings.image = image.strip()
    if compose_url is not None:
        settings.compose_url = compose_url.strip()
    if health_url is not None:
        settings.health_url = health_url.strip()
    if health_timeout is not None:
        settings.health_timeout_s = health_timeout
    if poll_interval is not None:
        settings.poll_interval_s = poll_interval
    saved = save_settings(settings)
    console.ok(f"Settings updated: {saved}")


@app.command("reset")
def reset_settings():
    path = config_path()
    if not os.path.exists(path):
        console.info(f"Nothing to reset: {path} does not exist.")
        return
    os.remove(path)
    console.ok(f"Removed {path}")
