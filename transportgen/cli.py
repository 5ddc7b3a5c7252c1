"""CLI entry point for transportgen."""

from __future__ import annotations

from pathlib import Path

import click

from .config import DEFAULT_MARKER, DocumentFormat, GenerationConfig, parse_servers
from .errors import CollaboratorError, ConfigError
from .log import setup_logging
from .pipeline import run


def _servers(ctx: click.Context, param: click.Parameter, value: str | None):
    if not value:
        return []
    try:
        return parse_servers(value)
    except ConfigError as exc:
        raise click.BadParameter(str(exc), ctx=ctx, param=param) from exc


@click.command()
@click.option("--in", "input_dir", default="./pkg/service", show_default=True,
              type=click.Path(path_type=Path), help="Directory scanned for annotated interfaces.")
@click.option("--swagger", "document_dir", default=".", show_default=True,
              type=click.Path(path_type=Path), help="Directory the API document is written to.")
@click.option("--json", "as_json", is_flag=True, help="Write the API document as JSON.")
@click.option("--yaml", "as_yaml", is_flag=True, help="Write the API document as YAML (default).")
@click.option("--title", default="", help="API document title.")
@click.option("--version", default="", help="API document version.")
@click.option("--desc", "description", default="", help="API document description.")
@click.option("--servers", callback=_servers, default=None,
              help="'url = description' pairs, one per line (or separated by a literal \\r\\n).")
@click.option("--marker", default=DEFAULT_MARKER, show_default=True, help="Directive marker token.")
@click.option("--log-level", default=None, help="Log level; defaults to $TRANSPORTGEN_LOG_LEVEL or INFO.")
def main(input_dir: Path, document_dir: Path, as_json: bool, as_yaml: bool, title: str, version: str,
         description: str, servers, marker: str, log_level: str | None):
    """Generate HTTP transport code for annotated service interfaces."""
    if as_json and as_yaml:
        raise click.UsageError("--json and --yaml are mutually exclusive")
    setup_logging(log_level, force=True)

    config = GenerationConfig(
        input_dir=input_dir,
        document_dir=document_dir,
        document_format=DocumentFormat.JSON if as_json else DocumentFormat.YAML,
        title=title,
        version=version,
        description=description,
        servers=servers,
        marker=marker,
    )
    try:
        report = run(config)
    except CollaboratorError as exc:
        raise click.ClickException(str(exc)) from exc

    for path in report.written:
        click.echo(f"  wrote {path}")
    for path in report.skipped:
        click.echo(f"  skipped {path} (not generated)")
    for name, message in report.failures.items():
        click.echo(f"  failed {name}: {message}", err=True)
    click.echo(
        f"{len(report.services)} services, {len(report.written)} written, "
        f"{len(report.unchanged)} unchanged, {len(report.skipped)} skipped"
    )
    if not report.ok:
        raise SystemExit(1)
