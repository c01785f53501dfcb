from __future__ import annotations

import sys

import click
import typer

from . import console


def main(argv: list[str] | None = None) -> None:
    from .main import app

    command = typer.main.get_command(app)
    try:
        rv = command.main(
            args=sys.argv[1:] if argv is None else argv,
            prog_name="moltbot-install",
            standalone_mode=False,
        )
    except click.UsageError as exc:
        exc.show()
        raise SystemExit(1)
    except (click.Abort, KeyboardInterrupt):
        console.err("Interrupted.")
        raise SystemExit(130)
    raise SystemExit(rv if isinstance(rv, int) else 0)


if __name__ == "__main__":
    main()
