"""CLI entrypoint for the static server."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer

from .config import ConfigurationError, load_config
from .logging_utils import configure_logging
from .output_config import get_log_format
from .server import StaticServerRunner

app = typer.Typer(help="Serve a static directory with SPA fallback, directory listings and mock responses.")


@app.command()
def serve(
    directory: Path = typer.Argument(
        Path("."),
        help="Root directory to serve.",
    ),
    port: int = typer.Option(5000, "--port", "-p", min=0, max=65535, help="Port to listen on."),
    host: str = typer.Option("0.0.0.0", help="Bind host."),
    single: bool = typer.Option(
        False,
        "--single",
        "-s",
        help="Single page application mode: unknown paths fall back to index.html.",
    ),
    basename: Optional[str] = typer.Option(
        None,
        help="Base path of the SPA index document (single page mode only), e.g. /app.",
    ),
    cors: bool = typer.Option(False, "--cors", "-C", help="Send Access-Control-Allow-* headers."),
    auth: bool = typer.Option(
        False,
        "--auth",
        "-a",
        help="Require basic auth with SERVE_USER / SERVE_PASSWORD from the environment.",
    ),
    cache: Optional[int] = typer.Option(
        None,
        "--cache",
        "-c",
        min=0,
        help="Cache max-age in milliseconds; 0 sends Cache-Control: no-cache.",
    ),
    ignore: list[str] = typer.Option(
        [],
        "--ignore",
        "-i",
        help="Comma separated path substrings that are never served.",
    ),
    mock_config: Optional[str] = typer.Option(
        None,
        help='JSON object of mock rules, e.g. \'{"/api/(.*)": "/mock/$1.json"}\'.',
    ),
    mock_file: Optional[Path] = typer.Option(
        None,
        exists=True,
        dir_okay=False,
        readable=True,
        help="YAML/JSON file with mock rules (mapping pattern -> target).",
    ),
    mock_dir: Optional[Path] = typer.Option(
        None,
        help="Directory mock targets are resolved against (default: current directory).",
    ),
    mock_first_match: bool = typer.Option(
        False,
        "--mock-first-match",
        help="Stop at the first matching mock rule instead of letting the last one win.",
    ),
    log_level: str = typer.Option("info", help="Log level (debug, info, warning, error)."),
    log_format: Optional[str] = typer.Option(
        None,
        help="Log format: console, plain or json (default from CONSOLE_OUTPUT_FORMAT).",
    ),
) -> None:
    """Serve DIRECTORY over HTTP."""

    logger = configure_logging(log_level, get_log_format(log_format))

    try:
        config = load_config(
            directory,
            single=single,
            basename=basename,
            cors=cors,
            auth=auth,
            cache=cache,
            ignore=ignore,
            mock_config=mock_config,
            mock_file=mock_file,
            mock_dir=mock_dir,
            mock_match_mode="first" if mock_first_match else "last",
            host=host,
            port=port,
        )
    except ConfigurationError as exc:
        logger.error("config_invalid", error=str(exc))
        typer.secho(str(exc), fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1) from exc

    StaticServerRunner(config).serve_forever()


def run() -> None:
    """Console_scripts hook."""

    app()


if __name__ == "__main__":  # pragma: no cover
    run()
