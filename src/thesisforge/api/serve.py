"""Uvicorn server launcher.

Console scripts must point to a callable, so the app is built through its factory.
"""

from __future__ import annotations

from typing import Annotated

import typer
import uvicorn

from thesisforge.config import load_settings


def main(
    host: Annotated[str | None, typer.Option(help="Bind host (default: THESISFORGE_API_HOST)")] = None,
    port: Annotated[int | None, typer.Option(help="Bind port (default: THESISFORGE_API_PORT)")] = None,
    reload: Annotated[bool, typer.Option(help="Enable auto-reload (dev)")] = False,
) -> None:
    """Start the ThesisForge API server."""

    settings = load_settings()
    uvicorn.run(
        "thesisforge.api.app:create_app",
        factory=True,
        host=host or settings.api_host,
        port=port or settings.api_port,
        reload=reload,
        log_level=settings.log_level.lower(),
    )


def run() -> None:
    typer.run(main)


if __name__ == "__main__":
    run()
