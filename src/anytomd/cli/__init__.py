from __future__ import annotations

import logging
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler

from .. import __version__
from ..config import AppConfig
from ..core import ConversionService
from ..exceptions import ConversionError
from ..models import ConversionResult, ImageDescriber
from ..settings import Settings, get_settings, load_app_config
from ..utils import atomic_write, slugify

console = Console(stderr=True)

app = typer.Typer(help="Convert documents to Markdown", add_completion=False)
serve_app = typer.Typer(help="Serve the local Markdown conversion API", add_completion=False)

STDIN = "-"


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"anytomd {__version__}")
        raise typer.Exit()


def _configure_logging(verbose: bool) -> None:
    if not verbose:
        return
    logging.basicConfig(
        level=logging.DEBUG,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


def _info(message: str) -> None:
    console.print(message, markup=False, highlight=False, soft_wrap=True)


def _build_describer(settings: Settings, config: AppConfig) -> ImageDescriber | None:
    if not settings.gemini_api_key or not config.describer.enabled:
        return None
    from ..gemini import GeminiDescriber

    _info("info: using Gemini for image descriptions (GEMINI_API_KEY detected)")
    return GeminiDescriber(settings.gemini_api_key, config.describer.model)


def _print_warnings(result: ConversionResult) -> None:
    for warning in result.warnings:
        _info(f"warning: {warning}")


def _write_images(directory: Path, result: ConversionResult, prefix: str | None) -> None:
    target = directory / prefix if prefix else directory
    for filename, data in result.images:
        atomic_write(target / filename, data)


def _is_stdin(files: list[Path]) -> bool:
    return not files or (len(files) == 1 and str(files[0]) == STDIN)


@app.command()
def convert(
    files: list[Path] | None = typer.Argument(None, help="Input files. Omit or pass '-' to read stdin."),
    output: Path | None = typer.Option(None, "--output", "-o", help="Write Markdown to PATH instead of stdout"),
    format_tag: str | None = typer.Option(
        None, "--format", "-f", help="Format hint (e.g. html, csv). Required when reading stdin."
    ),
    strict: bool = typer.Option(False, "--strict", help="Treat recoverable warnings as errors"),
    extract_images: Path | None = typer.Option(
        None, "--extract-images", file_okay=False, help="Write embedded images into DIR"
    ),
    parallel: int | None = typer.Option(None, "--parallel", min=1, help="Convert inputs on N threads"),
    config: Path | None = typer.Option(None, "--config", help="Path to config.toml"),
    log_file: Path | None = typer.Option(None, "--log-file", help="Append a JSON line per input to PATH"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log conversion details to stderr"),
    version: bool = typer.Option(
        False, "--version", callback=_version_callback, is_eager=True, help="Show the version and exit"
    ),
) -> None:
    _configure_logging(verbose)
    files = files or []
    settings = get_settings()
    cfg = load_app_config(settings, config)
    service = ConversionService(cfg, describer=_build_describer(settings, cfg), run_log=log_file)
    overrides: dict[str, object] = {}
    if strict:
        overrides["strict"] = True
    if extract_images is not None:
        overrides["extract_images"] = True
    options = service.options(**overrides)

    chunks: list[str] = []
    had_error = False
    if _is_stdin(files):
        if not format_tag:
            _info("error: --format is required when reading from stdin")
            raise typer.Exit(2)
        data = typer.get_binary_stream("stdin").read()
        try:
            result = service.convert_data(data, STDIN, format_tag=format_tag, options=options)
        except ConversionError as exc:
            _info(f"error: stdin: {exc}")
            raise typer.Exit(1) from exc
        _print_warnings(result)
        if extract_images is not None:
            _write_images(extract_images, result, None)
        chunks.append(result.markdown)
    else:
        multiple = len(files) > 1
        outcomes = service.convert_many(files, format_tag=format_tag, parallelism=parallel, options=options)
        for index, outcome in enumerate(outcomes):
            if multiple and index:
                chunks.append("\n")
            if multiple:
                chunks.append(f"<!-- source: {outcome.source} -->\n\n")
            if outcome.result is None:
                _info(f"error: {outcome.source}: {outcome.error}")
                had_error = True
                continue
            _print_warnings(outcome.result)
            if extract_images is not None:
                prefix = slugify(Path(outcome.source).stem) if multiple else None
                _write_images(extract_images, outcome.result, prefix)
            chunks.append(outcome.result.markdown)

    markdown = "".join(chunks)
    if output is not None:
        try:
            atomic_write(output, markdown)
        except OSError as exc:
            _info(f"error: {output}: {exc}")
            raise typer.Exit(1) from exc
    else:
        typer.echo(markdown, nl=False)
    if had_error:
        raise typer.Exit(1)


@serve_app.command()
def serve(
    host: str | None = typer.Option(None, "--host", help="Bind address (default from config)"),
    port: int | None = typer.Option(None, "--port", help="Port (default from config)"),
    config: Path | None = typer.Option(None, "--config", help="Path to config.toml"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log conversion details to stderr"),
) -> None:
    import uvicorn

    from ..api import create_app

    _configure_logging(verbose)
    cfg = load_app_config(get_settings(), config)
    try:
        application = create_app(cfg)
    except RuntimeError as exc:
        _info(f"error: {exc}")
        raise typer.Exit(1) from exc
    uvicorn.run(application, host=host or cfg.api.host, port=port or cfg.api.port)


__all__ = ["app", "serve_app"]
