from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping

import tomli_w
from platformdirs import user_config_dir

APP_NAME = "moltbot-installer"
CONFIG_FILENAME = "config.toml"
DEFAULT_BRAND = "moltbot"
DEFAULT_HEALTH_TIMEOUT_S = 30
DEFAULT_POLL_INTERVAL_S = 1


class ConfigError(ValueError):
    """Invalid installer settings."""


@dataclass(frozen=True)
class BrandProfile:
    name: str
    display_name: str
    image: str
    repo_url: str
    compose_url: str
    env_prefix: str
    install_dir_name: str
    config_dir_name: str
    workspace_dir_name: str
    gateway_service: str
    cli_service: str
    gateway_container: str
    gateway_port: int
    has_setup_command: bool
    docs_url: str
    support_url: str

    @property
    def dashboard_url(self) -> str:
        return f"http://localhost:{self.gateway_port}"

    @property
    def health_url(self) -> str:
        return f"{self.dashboard_url}/health"

    def env_var(self, key: str) -> str:
        return f"{self.env_prefix}_{key}"


BRANDS: dict[str, BrandProfile] = {
    "moltbot": BrandProfile(
        name="moltbot",
        display_name="Moltbot",
        image="ghcr.io/phioranex/moltbot-docker:latest",
        repo_url="https://github.com/phioranex/moltbot-docker",
        compose_url="https://raw.githubusercontent.com/phioranex/moltbot-docker/main/docker-compose.yml",
        env_prefix="MOLTBOT",
        install_dir_name="moltbot",
        config_dir_name=".clawdbot",
        workspace_dir_name="clawd",
        gateway_service="moltbot-gateway",
        cli_service="moltbot-cli",
        gateway_container="moltbot-gateway",
        gateway_port=18789,
        has_setup_command=True,
        docs_url="https://docs.molt.bot",
        support_url="https://discord.com/invite/clawd",
    ),
    "clawdbot": BrandProfile(
        name="clawdbot",
        display_name="Clawdbot",
        image="ghcr.io/phioranex/clawdbot-docker:latest",
        repo_url="https://github.com/phioranex/clawdbot-docker",
        compose_url="https://raw.githubusercontent.com/phioranex/clawdbot-docker/main/docker-compose.yml",
        env_prefix="CLAWDBOT",
        install_dir_name="clawdbot",
        config_dir_name=".clawdbot",
        workspace_dir_name="clawd",
        gateway_service="clawdbot-gateway",
        cli_service="clawdbot-cli",
        gateway_container="clawdbot-gateway",
        gateway_port=18789,
        has_setup_command=False,
        docs_url="https://docs.clawd.bot",
        support_url="https://discord.com/invite/clawd",
    ),
}


def get_brand(name: str | None) -> BrandProfile:
    key = (name or DEFAULT_BRAND).strip().lower()
    try:
        return BRANDS[key]
    except KeyError:
        raise ConfigError(f"Unknown brand: {name} (expected one of: {', '.join(sorted(BRANDS))})") from None


@dataclass
class InstallerSettings:
    brand: str = DEFAULT_BRAND
    install_dir: str = ""
    image: str = ""
    compose_url: str = ""
    health_url: str = ""
    health_timeout_s: int | None = None
    poll_interval_s: int | None = None


@dataclass(frozen=True)
class InstallConfig:
    brand: BrandProfile
    install_dir: Path
    image: str
    compose_url: str
    gateway_service: str
    cli_service: str
    health_url: str
    skip_onboard: bool = False
    pull_only: bool = False
    no_start: bool = False
    health_timeout_s: int = DEFAULT_HEALTH_TIMEOUT_S
    poll_interval_s: int = DEFAULT_POLL_INTERVAL_S

    def config_dir(self, home: Path) -> Path:
        return home / self.brand.config_dir_name

    def workspace_dir(self, home: Path) -> Path:
        return home / self.brand.workspace_dir_name


def config_path() -> str:
    return f"{user_config_dir(APP_NAME)}/{CONFIG_FILENAME}"


def to_toml(settings: InstallerSettings) -> dict[str, Any]:
    return _prune_empty(
        {
            "brand": settings.brand,
            "install_dir": settings.install_dir,
            "image": settings.image,
            "compose_url": settings.compose_url,
            "health_url": settings.health_url,
            "health_timeout_s": settings.health_timeout_s,
            "poll_interval_s": settings.poll_interval_s,
        }
    )


def _prune_empty(value: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in value.items() if v is not None and v != ""}


def _optional_int(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def from_toml(data: dict[str, Any]) -> InstallerSettings:
    return InstallerSettings(
        brand=str(data.get("brand") or DEFAULT_BRAND).strip().lower(),
        install_dir=str(data.get("install_dir") or "").strip(),
        image=str(data.get("image") or "").strip(),
        compose_url=str(data.get("compose_url") or "").strip(),
        health_url=str(data.get("health_url") or "").strip(),
        health_timeout_s=_optional_int(data.get("health_timeout_s")),
        poll_interval_s=_optional_int(data.get("poll_interval_s")),
    )


def load_settings() -> InstallerSettings:
    path = config_path()
    try:
        with open(path, "rb") as f:
            data = tomllib.load(f)
    except FileNotFoundError:
        return InstallerSettings()
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"Invalid settings file {path}: {exc}") from exc
    return from_toml(data)


def save_settings(settings: InstallerSettings) -> str:
    path = config_path()
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, "wb") as f:
        f.write(tomli_w.dumps(to_toml(settings)).encode("utf-8"))
    os.chmod(path, 0o600)
    return path


def build_install_config(
    settings: InstallerSettings,
    *,
    home: Path,
    brand_name: str | None = None,
    install_dir: str | None = None,
    skip_onboard: bool = False,
    pull_only: bool = False,
    no_start: bool = False,
    environ: Mapping[str, str] | None = None,
) -> InstallConfig:
    """Layer brand defaults, the settings file, environment and flags."""
    env = os.environ if environ is None else environ
    brand = get_brand(brand_name or settings.brand)

    resolved_dir = (
        (install_dir or "").strip()
        or env.get(brand.env_var("INSTALL_DIR"), "").strip()
        or settings.install_dir
    )
    install_path = Path(resolved_dir).expanduser() if resolved_dir else home / brand.install_dir_name

    image = env.get(brand.env_var("IMAGE"), "").strip() or settings.image or brand.image
    compose_url = env.get(brand.env_var("COMPOSE_URL"), "").strip() or settings.compose_url or brand.compose_url

    timeout_s = settings.health_timeout_s if settings.health_timeout_s is not None else DEFAULT_HEALTH_TIMEOUT_S
    interval_s = settings.poll_interval_s if settings.poll_interval_s is not None else DEFAULT_POLL_INTERVAL_S
    if timeout_s < 1:
        raise ConfigError("health_timeout_s must be at least 1 second.")
    if interval_s < 1:
        raise ConfigError("poll_interval_s must be at least 1 second.")

    return InstallConfig(
        brand=brand,
        install_dir=install_path.absolute(),
        image=image,
        compose_url=compose_url,
        gateway_service=brand.gateway_service,
        cli_service=brand.cli_service,
        health_url=settings.health_url or brand.health_url,
        skip_onboard=skip_onboard,
        pull_only=pull_only,
        no_start=no_start,
        health_timeout_s=timeout_s,
        poll_interval_s=interval_s,
    )
