from __future__ import annotations

import typer

from .commands import install_cmd, settings_cmd, status_cmd
from .logging_ import setup_logging


def _build_app() -> typer.Typer:
    app = typer.Typer(
        name="moltbot-install",
        help="One-command Docker installer for the Moltbot gateway.",
        no_args_is_help=False,
        context_settings={"help_option_names": ["-h", "--help"]},
    )

    app.add_typer(settings_cmd.app, name="settings")
    app.command("status")(status_cmd.status)

    @app.callback(invoke_without_command=True)
    def _main(
            ctx: typer.Context,
            install_dir: str | None = typer.Option(
                None,
                "--install-dir",
                help="Installation directory (default: ~/moltbot, or $MOLTBOT_INSTALL_DIR).",
            ),
            no_start: bool = typer.Option(False, "--no-start", help="Don't start the gateway after setup."),
            skip_onboard: bool = typer.Option(False, "--skip-onboard", help="Skip the onboarding wizard."),
            pull_only: bool = typer.Option(False, "--pull-only", help="Only pull the image, don't set up."),
            brand: str | None = typer.Option(None, "--brand", help="Brand profile (moltbot, clawdbot)."),
            verbose: bool = typer.Option(False, "-v", "--verbose", help="Verbose logs."),
    ):
        """Pull the image, prepare directories, onboard and start the gateway."""
        setup_logging(verbose)
        if ctx.invoked_subcommand is not None:
            return
        install_cmd.install(
            brand=brand,
            install_dir=install_dir,
            skip_onboard=skip_onboard,
            pull_only=pull_only,
            no_start=no_start,
        )

    return app


app = _build_app()
