from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable

from .environment import TargetIdentity

logger = logging.getLogger(__name__)

# Fixed identity the gateway and CLI containers run as.
CONTAINER_UID = 1000
CONTAINER_GID = 1000


@dataclass(frozen=True)
class OwnershipPolicy:
    uid: int | None
    gid: int | None
    mode: int
    fallback_mode: int | None = None


@dataclass
class PolicyReport:
    applied_mode: int | None = None
    chowned: bool = False
    warnings: list[str] = field(default_factory=list)

    def warn(self, message: str) -> None:
        self.warnings.append(message)


def select_policy(identity: TargetIdentity) -> OwnershipPolicy:
    if identity.privileged and identity.on_behalf:
        return OwnershipPolicy(uid=CONTAINER_UID, gid=identity.gid, mode=0o770)
    if identity.privileged:
        return OwnershipPolicy(uid=CONTAINER_UID, gid=CONTAINER_GID, mode=0o755)
    return OwnershipPolicy(uid=None, gid=None, mode=0o775, fallback_mode=0o777)


def ensure_directories(paths: Iterable[Path]) -> list[Path]:
    created = []
    for path in paths:
        path.mkdir(parents=True, exist_ok=True)
        created.append(path)
    return created


def apply_policy(paths: Iterable[Path], policy: OwnershipPolicy) -> PolicyReport:
    report = PolicyReport()
    for path in paths:
        if policy.uid is not None:
            _chown(path, policy.uid, policy.gid, report)
        report.applied_mode = _chmod(path, policy, report)
    return report


def hand_over(paths: Iterable[Path], identity: TargetIdentity) -> PolicyReport:
    """Give files the installer wrote under sudo back to the target user."""
    report = PolicyReport()
    if not identity.on_behalf or identity.uid is None:
        return report
    for path in paths:
        _chown(path, identity.uid, identity.gid, report)
    return report


def _chown(path: Path, uid: int, gid: int | None, report: PolicyReport) -> None:
    gid = gid if gid is not None else -1
    try:
        os.chown(path, uid, gid)
        report.chowned = True
    except OSError as exc:
        report.warn(f"Could not change owner of {path} to {uid}:{gid} ({exc.strerror}).")


def _chmod(path: Path, policy: OwnershipPolicy, report: PolicyReport) -> int | None:
    try:
        os.chmod(path, policy.mode)
        return policy.mode
    except OSError as exc:
        if policy.fallback_mode is None:
            report.warn(f"Could not set mode {policy.mode:o} on {path} ({exc.strerror}).")
            return None
        logger.debug("chmod %o on %s failed (%s); trying %o", policy.mode, path, exc, policy.fallback_mode)
    try:
        os.chmod(path, policy.fallback_mode)
        return policy.fallback_mode
    except OSError as exc:
        report.warn(f"Could not set mode {policy.fallback_mode:o} on {path} ({exc.strerror}).")
        return None
