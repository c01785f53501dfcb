from __future__ import annotations

from pathlib import Path

from .engine import ComposeVariant
from .errors import EngineError
from .process import CommandRunner, format_command, run_command

MANIFEST_FILENAME = "docker-compose.yml"


class ComposeOrchestrator:
    def __init__(
        self,
        variant: ComposeVariant,
        project_dir: Path,
        *,
        manifest_name: str = MANIFEST_FILENAME,
        runner: CommandRunner = run_command,
    ):
        if variant is ComposeVariant.NONE:
            raise EngineError("Docker Compose is not available.")
        self.variant = variant
        self.project_dir = Path(project_dir)
        self.manifest_name = manifest_name
        self._run = runner

    @property
    def manifest_path(self) -> Path:
        return self.project_dir / self.manifest_name

    def base_command(self) -> list[str]:
        if self.variant is ComposeVariant.PLUGIN:
            return ["docker", "compose"]
        return ["docker-compose"]

    def command_line(self) -> str:
        """Prefix shown to operators in follow-up hints."""
        return format_command(self.base_command())

    def _invoke(self, args: list[str]) -> int:
        cmd = [*self.base_command(), "-f", self.manifest_name, *args]
        return self._run(cmd, cwd=str(self.project_dir)).returncode

    def run(self, service: str, command: str, *, detach_input: bool) -> int:
        args = ["run"]
        if detach_input:
            args.append("-T")
        args += ["--rm", service, command]
        return self._invoke(args)

    def up(self, service: str, *, detached: bool = True) -> int:
        args = ["up"]
        if detached:
            args.append("-d")
        args.append(service)
        return self._invoke(args)
