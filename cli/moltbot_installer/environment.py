from __future__ import annotations

import logging
import os
import platform
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

from moltbot_client.engine import ComposeVariant, DockerEngine

logger = logging.getLogger(__name__)


def is_windows() -> bool:
    return platform.system().lower().startswith("win")


def stdin_is_tty() -> bool:
    try:
        return sys.stdin.isatty()
    except (AttributeError, ValueError):
        return False


@dataclass(frozen=True)
class TargetIdentity:
    """Who the installed files are for.

    ``on_behalf`` is set when the installer runs as root through sudo for
    another user; ``home``/``uid``/``gid`` then describe that user.
    """

    user: str
    home: Path
    uid: int | None
    gid: int | None
    privileged: bool
    on_behalf: bool = False


@dataclass(frozen=True)
class RuntimeEnvironment:
    engine_present: bool
    compose_variant: ComposeVariant
    engine_running: bool
    identity: TargetIdentity
    interactive: bool


def _current_user(environ: Mapping[str, str]) -> str:
    return environ.get("USER") or environ.get("USERNAME") or ""


def resolve_target_identity(environ: Mapping[str, str] | None = None) -> TargetIdentity:
    env = os.environ if environ is None else environ
    if is_windows() or not hasattr(os, "geteuid"):
        return TargetIdentity(
            user=_current_user(env),
            home=Path.home(),
            uid=None,
            gid=None,
            privileged=False,
        )

    import pwd

    euid = os.geteuid()
    privileged = euid == 0
    sudo_user = (env.get("SUDO_USER") or "").strip()
    if privileged and sudo_user and sudo_user != "root":
        try:
            entry = pwd.getpwnam(sudo_user)
        except KeyError:
            logger.warning("SUDO_USER=%s has no passwd entry; installing for root", sudo_user)
        else:
            return TargetIdentity(
                user=sudo_user,
                home=Path(entry.pw_dir),
                uid=entry.pw_uid,
                gid=entry.pw_gid,
                privileged=True,
                on_behalf=True,
            )

    try:
        entry = pwd.getpwuid(euid)
    except KeyError:
        return TargetIdentity(
            user=_current_user(env),
            home=Path.home(),
            uid=euid,
            gid=os.getegid(),
            privileged=privileged,
        )
    return TargetIdentity(
        user=entry.pw_name,
        home=Path(env.get("HOME") or entry.pw_dir),
        uid=entry.pw_uid,
        gid=entry.pw_gid,
        privileged=privileged,
    )


def detect_runtime(
    engine: DockerEngine,
    identity: TargetIdentity,
    *,
    interactive: bool,
) -> RuntimeEnvironment:
    engine_present = engine.binary_present()
    compose_variant = ComposeVariant.NONE
    engine_running = False
    if engine_present:
        compose_variant = engine.compose_variant()
        engine_running = engine.info() == 0
    return RuntimeEnvironment(
        engine_present=engine_present,
        compose_variant=compose_variant,
        engine_running=engine_running,
        identity=identity,
        interactive=interactive,
    )
