from __future__ import annotations

import enum
import logging
import os
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable

import typer

from moltbot_client.compose import MANIFEST_FILENAME, ComposeOrchestrator
from moltbot_client.engine import ComposeVariant, DockerEngine
from moltbot_client.errors import EngineError, ManifestFetchError
from moltbot_client.health import probe
from moltbot_client.manifest import declared_services, fetch_manifest, rewrite_home_refs
from moltbot_client.polling import wait_until_ready
from moltbot_client.process import CommandRunner, run_command

from .. import console
from ..config import ConfigError, InstallConfig, build_install_config, load_settings
from ..environment import (
    RuntimeEnvironment,
    TargetIdentity,
    detect_runtime,
    is_windows,
    resolve_target_identity,
    stdin_is_tty,
)
from ..permissions import apply_policy, ensure_directories, hand_over, select_policy

logger = logging.getLogger(__name__)

DOCKER_INSTALL_URL = "https://docs.docker.com/get-docker/"
COMPOSE_INSTALL_URL = "https://docs.docker.com/compose/install/"


class Stage(str, enum.Enum):
    DETECT_PREREQUISITES = "detect-prerequisites"
    PULL_ONLY = "pull-only"
    PREPARE_INSTALL_DIR = "prepare-install-dir"
    FETCH_MANIFEST = "fetch-manifest"
    NORMALIZE_MANIFEST_PATHS = "normalize-manifest-paths"
    PREPARE_DATA_DIRS = "prepare-data-dirs"
    PULL_IMAGE = "pull-image"
    RUN_SETUP = "run-setup"
    RUN_ONBOARDING = "run-onboarding"
    START_GATEWAY = "start-gateway"
    AWAIT_READINESS = "await-readiness"
    REPORT_SUMMARY = "report-summary"


class StageResult(str, enum.Enum):
    SUCCEEDED = "succeeded"
    SKIPPED = "skipped"
    FAILED_FATAL = "failed-fatal"
    FAILED_RECOVERABLE = "failed-recoverable"


class FatalStageError(Exception):
    def __init__(self, message: str, hint: str | None = None):
        super().__init__(message)
        self.message = message
        self.hint = hint


@dataclass
class InstallReport:
    outcomes: list[tuple[Stage, StageResult]] = field(default_factory=list)

    def record(self, stage: Stage, result: StageResult) -> None:
        self.outcomes.append((stage, result))

    def result_of(self, stage: Stage) -> StageResult | None:
        for recorded, result in self.outcomes:
            if recorded is stage:
                return result
        return None

    @property
    def stages(self) -> list[Stage]:
        return [stage for stage, _ in self.outcomes]


class Installer:
    """Runs the install stages in order; the first fatal stage ends the run."""

    def __init__(
        self,
        cfg: InstallConfig,
        identity: TargetIdentity,
        *,
        interactive: bool,
        engine: DockerEngine | None = None,
        runner: CommandRunner = run_command,
        fetch: Callable[[str, Path], Path] = fetch_manifest,
        probe_fn: Callable[[str], bool] = probe,
        sleep: Callable[[float], None] = time.sleep,
        apply_permissions: bool | None = None,
    ):
        self.cfg = cfg
        self._identity = identity
        self._interactive = interactive
        self.engine = engine or DockerEngine(runner=runner)
        self.report = InstallReport()
        self.runtime: RuntimeEnvironment | None = None
        self._runner = runner
        self._fetch = fetch
        self._probe = probe_fn
        self._sleep = sleep
        self._apply_permissions = not is_windows() if apply_permissions is None else apply_permissions
        self._compose: ComposeOrchestrator | None = None

    @property
    def env(self) -> RuntimeEnvironment:
        if self.runtime is None:
            raise RuntimeError("prerequisites have not been detected yet")
        return self.runtime

    @property
    def identity(self) -> TargetIdentity:
        return self.env.identity

    @property
    def home(self) -> Path:
        return self.identity.home

    @property
    def config_dir(self) -> Path:
        return self.cfg.config_dir(self.home)

    @property
    def workspace_dir(self) -> Path:
        return self.cfg.workspace_dir(self.home)

    @property
    def manifest_path(self) -> Path:
        return self.cfg.install_dir / MANIFEST_FILENAME

    @property
    def compose(self) -> ComposeOrchestrator:
        if self._compose is None:
            variant = self.runtime.compose_variant if self.runtime else ComposeVariant.NONE
            self._compose = ComposeOrchestrator(variant, self.cfg.install_dir, runner=self._runner)
        return self._compose

    def run(self) -> InstallReport:
        self._execute(Stage.DETECT_PREREQUISITES, self.detect_prerequisites)
        if self.cfg.pull_only:
            self._execute(Stage.PULL_ONLY, self.pull_only)
            return self.report

        self._execute(Stage.PREPARE_INSTALL_DIR, self.prepare_install_dir)
        self._execute(Stage.FETCH_MANIFEST, self.fetch_manifest)
        self._execute(Stage.NORMALIZE_MANIFEST_PATHS, self.normalize_manifest_paths)
        self._execute(Stage.PREPARE_DATA_DIRS, self.prepare_data_dirs)
        self._execute(Stage.PULL_IMAGE, self.pull_image)
        self._execute(Stage.RUN_SETUP, self.run_setup)
        self._execute(Stage.RUN_ONBOARDING, self.run_onboarding)
        started = self._execute(Stage.START_GATEWAY, self.start_gateway)
        if started is StageResult.SUCCEEDED:
            self._execute(Stage.AWAIT_READINESS, self.await_readiness)
        self._execute(Stage.REPORT_SUMMARY, self.print_summary)
        return self.report

    def _execute(self, stage: Stage, fn: Callable[[], StageResult]) -> StageResult:
        logger.debug("stage %s: start", stage.value)
        try:
            result = fn()
        except FatalStageError as exc:
            self.report.record(stage, StageResult.FAILED_FATAL)
            logger.debug("stage %s: fatal", stage.value)
            console.err(exc.message)
            if exc.hint:
                console.print(exc.hint)
            raise typer.Exit(code=1)
        self.report.record(stage, result)
        logger.debug("stage %s: %s", stage.value, result.value)
        return result

    def detect_prerequisites(self) -> StageResult:
        console.step("Checking prerequisites...")
        runtime = detect_runtime(self.engine, self._identity, interactive=self._interactive)
        self.runtime = runtime

        if not runtime.engine_present:
            console.err("docker not found")
            raise FatalStageError(
                "Docker is required but not installed.",
                hint=f"Install Docker: {DOCKER_INSTALL_URL}",
            )
        console.ok("docker found")

        if runtime.compose_variant is ComposeVariant.NONE:
            console.err("Docker Compose not found")
            raise FatalStageError(
                "Docker Compose is required but not installed.",
                hint=f"Install Docker Compose: {COMPOSE_INSTALL_URL}",
            )
        console.ok(f"Docker Compose found ({runtime.compose_variant.value})")

        if not runtime.engine_running:
            console.err("Docker is not running")
            raise FatalStageError("Please start Docker and try again.")
        console.ok("Docker is running")
        return StageResult.SUCCEEDED

    def _pull(self) -> None:
        console.step(f"Pulling {self.cfg.brand.display_name} image...")
        try:
            rc = self.engine.pull(self.cfg.image)
        except EngineError as exc:
            raise FatalStageError(str(exc)) from exc
        if rc != 0:
            raise FatalStageError(
                f"Failed to pull {self.cfg.image} (exit code {rc}).",
                hint="Check the image reference, registry access and network, then re-run the installer.",
            )
        console.ok("Image pulled successfully!")

    def pull_only(self) -> StageResult:
        self._pull()
        console.print(
            "\n[bold green]Done![/] Run the installer again without --pull-only to complete setup."
        )
        return StageResult.SUCCEEDED

    def prepare_install_dir(self) -> StageResult:
        console.step("Setting up installation directory...")
        try:
            self.cfg.install_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise FatalStageError(
                f"Cannot create {self.cfg.install_dir}: {exc.strerror or exc}",
                hint="Choose another location with --install-dir or re-run with sudo.",
            ) from exc
        console.ok(f"Created {self.cfg.install_dir}")
        return StageResult.SUCCEEDED

    def fetch_manifest(self) -> StageResult:
        console.step(f"Downloading {MANIFEST_FILENAME}...")
        try:
            self._fetch(self.cfg.compose_url, self.manifest_path)
        except ManifestFetchError as exc:
            raise FatalStageError(str(exc), hint="Check your network connection and re-run the installer.") from exc
        except OSError as exc:
            raise FatalStageError(f"Cannot write {self.manifest_path}: {exc.strerror or exc}") from exc
        console.ok(f"Downloaded {MANIFEST_FILENAME}")
        if self._apply_permissions:
            report = hand_over([self.cfg.install_dir, self.manifest_path], self.identity)
            for message in report.warnings:
                console.warn(message)
        self._inspect_manifest()
        return StageResult.SUCCEEDED

    def _inspect_manifest(self) -> None:
        try:
            text = self.manifest_path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            console.warn(f"Could not read {self.manifest_path}: {exc}")
            return
        services = declared_services(text)
        if services is None:
            console.warn(f"{MANIFEST_FILENAME} is not valid YAML; compose commands may fail.")
            return
        missing = [name for name in (self.cfg.gateway_service, self.cfg.cli_service) if name not in services]
        if missing:
            console.warn(f"{MANIFEST_FILENAME} does not declare: {', '.join(missing)}")

    def normalize_manifest_paths(self) -> StageResult:
        if not self.identity.on_behalf:
            return StageResult.SKIPPED
        console.step(f"Adjusting {MANIFEST_FILENAME} paths for {self.identity.user}...")
        try:
            count = rewrite_home_refs(self.manifest_path, str(self.home))
        except OSError as exc:
            raise FatalStageError(f"Cannot rewrite {self.manifest_path}: {exc.strerror or exc}") from exc
        if not count:
            console.warn(f"No home-relative paths found in {MANIFEST_FILENAME}; leaving it unchanged.")
            return StageResult.SKIPPED
        console.ok(f"Rewrote {count} path(s) to {self.home}")
        return StageResult.SUCCEEDED

    def prepare_data_dirs(self) -> StageResult:
        console.step("Creating data directories...")
        dirs = [self.config_dir, self.workspace_dir]
        try:
            ensure_directories(dirs)
        except OSError as exc:
            raise FatalStageError(
                f"Cannot create data directories: {exc.strerror or exc}",
                hint="Re-run the installer with sudo.",
            ) from exc
        console.ok(f"Created {self.config_dir} (config)")
        console.ok(f"Created {self.workspace_dir} (workspace)")

        if not self._apply_permissions:
            return StageResult.SUCCEEDED
        policy = select_policy(self.identity)
        report = apply_policy(dirs, policy)
        for message in report.warnings:
            console.warn(message)
        if not self.identity.privileged:
            console.warn(
                "Running without sudo: data directories were opened up so the container can write to them. "
                "Re-run with sudo for tighter permissions."
            )
        return StageResult.SUCCEEDED

    def pull_image(self) -> StageResult:
        self._pull()
        return StageResult.SUCCEEDED

    def run_setup(self) -> StageResult:
        if self.cfg.skip_onboard or not self.cfg.brand.has_setup_command:
            return StageResult.SKIPPED
        console.step(f"Initializing {self.cfg.brand.display_name} configuration...")
        console.print("[yellow]Setting up configuration and workspace...[/]\n")
        rc = self.compose.run(self.cfg.cli_service, "setup", detach_input=True)
        if rc != 0:
            console.err("Setup failed")
            raise FatalStageError(
                "Failed to initialize configuration.",
                hint="Check the Docker output above, then re-run the installer.",
            )
        console.ok("Configuration initialized")
        return StageResult.SUCCEEDED

    def run_onboarding(self) -> StageResult:
        if self.cfg.skip_onboard:
            return StageResult.SKIPPED
        console.step("Running onboarding wizard...")
        console.print("[yellow]This will configure your AI provider and channels.[/]")
        console.print("[yellow]Follow the prompts to complete setup.[/]\n")
        rc = self.compose.run(self.cfg.cli_service, "onboard", detach_input=not self.env.interactive)
        if rc != 0:
            console.warn("Onboarding wizard was skipped or failed")
            console.print(f"You can run it later with: {self._cli_hint('onboard')}")
            return StageResult.FAILED_RECOVERABLE
        console.ok("Onboarding complete!")
        return StageResult.SUCCEEDED

    def start_gateway(self) -> StageResult:
        if self.cfg.no_start:
            return StageResult.SKIPPED
        console.step(f"Starting {self.cfg.brand.display_name} gateway...")
        rc = self.compose.up(self.cfg.gateway_service, detached=True)
        if rc != 0:
            raise FatalStageError(
                f"Failed to start {self.cfg.gateway_service} (exit code {rc}).",
                hint=f"Inspect with: {self._compose_hint('logs ' + self.cfg.gateway_service)}",
            )
        return StageResult.SUCCEEDED

    def await_readiness(self) -> StageResult:
        def _on_attempt(attempt: int, healthy: bool) -> None:
            logger.debug("readiness attempt %d: %s", attempt, "healthy" if healthy else "not ready")

        with console.status("Waiting for gateway to start..."):
            outcome = wait_until_ready(
                self.cfg.health_url,
                timeout_s=self.cfg.health_timeout_s,
                interval_s=self.cfg.poll_interval_s,
                probe_fn=self._probe,
                sleep=self._sleep,
                on_attempt=_on_attempt,
            )
        if outcome.ready:
            console.ok("Gateway is running!")
            return StageResult.SUCCEEDED
        console.warn(
            "Gateway may still be starting. "
            f"Check logs with: docker logs {self.cfg.brand.gateway_container}"
        )
        return StageResult.FAILED_RECOVERABLE

    def _compose_hint(self, args: str) -> str:
        return f"cd {self.cfg.install_dir} && {self.compose.command_line()} {args}"

    def _cli_hint(self, command: str) -> str:
        return self._compose_hint(f"run --rm {self.cfg.cli_service} {command}")

    def print_summary(self) -> StageResult:
        brand = self.cfg.brand
        console.rule(f"[bold green]{brand.display_name} installed successfully![/]")

        console.print("\n[bold]Quick reference:[/]")
        console.print(f"  [cyan]Dashboard:[/]      {brand.dashboard_url}")
        console.print(f"  [cyan]Config:[/]         {self.config_dir}{os.sep}")
        console.print(f"  [cyan]Workspace:[/]      {self.workspace_dir}{os.sep}")
        console.print(f"  [cyan]Install dir:[/]    {self.cfg.install_dir}")

        gateway = self.cfg.gateway_service
        console.print("\n[bold]Useful commands:[/]")
        console.print(f"  [cyan]View logs:[/]      docker logs -f {brand.gateway_container}")
        console.print(f"  [cyan]Stop:[/]           {self._compose_hint('down')}")
        console.print(f"  [cyan]Start:[/]          {self._compose_hint('up -d ' + gateway)}")
        console.print(f"  [cyan]Restart:[/]        {self._compose_hint('restart ' + gateway)}")
        console.print(f"  [cyan]CLI:[/]            {self._cli_hint('<command>')}")
        console.print(
            f"  [cyan]Update:[/]         docker pull {self.cfg.image} && {self._compose_hint('up -d')}"
        )

        console.print(f"\n[bold]Documentation:[/]  {brand.docs_url}")
        console.print(f"[bold]Support:[/]        {brand.support_url}")
        console.print(f"[bold]Docker image:[/]   {brand.repo_url}\n")
        return StageResult.SUCCEEDED


def install(
    *,
    brand: str | None,
    install_dir: str | None,
    skip_onboard: bool,
    pull_only: bool,
    no_start: bool,
) -> InstallReport:
    identity = resolve_target_identity()
    try:
        cfg = build_install_config(
            load_settings(),
            home=identity.home,
            brand_name=brand,
            install_dir=install_dir,
            skip_onboard=skip_onboard,
            pull_only=pull_only,
            no_start=no_start,
        )
    except ConfigError as exc:
        console.err(str(exc))
        raise typer.Exit(code=1)

    console.rule(f"[bold]{cfg.brand.display_name} Docker Installer[/]")
    if identity.on_behalf:
        console.info(f"Installing for {identity.user} ({identity.home})")
    installer = Installer(cfg, identity, interactive=stdin_is_tty())
    return installer.run()
