from __future__ import annotations

import enum
import shutil
from typing import Callable

from .errors import EngineError
from .process import CommandRunner, run_command


class ComposeVariant(str, enum.Enum):
    PLUGIN = "plugin"
    STANDALONE = "standalone"
    NONE = "none"


class DockerEngine:
    """Thin wrapper over the docker CLI; exit codes are the only signal."""

    def __init__(
        self,
        *,
        binary: str = "docker",
        runner: CommandRunner = run_command,
        which: Callable[[str], str | None] = shutil.which,
    ):
        self.binary = binary
        self._run = runner
        self._which = which

    def binary_present(self) -> bool:
        return self._which(self.binary) is not None

    def compose_variant(self) -> ComposeVariant:
        res = self._run([self.binary, "compose", "version"], capture=True)
        if res.returncode == 0:
            return ComposeVariant.PLUGIN
        if self._which("docker-compose") is not None:
            return ComposeVariant.STANDALONE
        return ComposeVariant.NONE

    def info(self) -> int:
        return self._run([self.binary, "info"], capture=True).returncode

    def pull(self, image: str) -> int:
        if not image:
            raise EngineError("Image reference cannot be empty.")
        return self._run([self.binary, "pull", image]).returncode
