"""
sarif-consolidator CLI

Consolidate the raw Trivy SARIF reports of every VLAB environment into one
report per environment and one final report for upload.
"""

import logging

import typer
from typing_extensions import Annotated

import sarifconsolidator.version
from sarifconsolidator.config import Config
from sarifconsolidator.config import DEFAULT_RAW_DIR
from sarifconsolidator.config import DEFAULT_RESULTS_DIR
from sarifconsolidator.consolidate import consolidate
from sarifconsolidator.consolidate import ConsolidationError
from sarifconsolidator.formatters import format_summary
from sarifconsolidator.models import ScanMode
from sarifconsolidator.settings import configure_stats_client
from sarifconsolidator.util import STATUS_FAILURE
from sarifconsolidator.util import STATUS_KEYBOARD_INTERRUPT

logger = logging.getLogger(__name__)

app = typer.Typer(
    help="Consolidate Trivy SARIF reports of VLAB environments",
    add_completion=False,
)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(sarifconsolidator.version.get_version_string())
        raise typer.Exit()


def _configure_logging(verbose: bool, quiet: bool) -> None:
    if verbose:
        logging.getLogger("sarifconsolidator").setLevel(logging.DEBUG)
    elif quiet:
        logging.getLogger("sarifconsolidator").setLevel(logging.WARNING)
    else:
        logging.getLogger("sarifconsolidator").setLevel(logging.INFO)


@app.command()  # type: ignore[misc]
def consolidate_cmd(
    raw_dir: Annotated[
        str,
        typer.Argument(help="Root of the raw per-environment SARIF reports"),
    ] = DEFAULT_RAW_DIR,
    results_dir: Annotated[
        str,
        typer.Argument(help="Root of the per-environment scan results"),
    ] = DEFAULT_RESULTS_DIR,
    output_dir: Annotated[
        str | None,
        typer.Option(help="Directory the consolidated reports are written to"),
    ] = None,
    pattern: Annotated[
        str | None,
        typer.Option(help="File name glob selecting the raw reports"),
    ] = None,
    scan_mode: Annotated[
        str | None,
        typer.Option(
            help="Scan mode applied to every environment: "
            + ", ".join(mode.value for mode in ScanMode),
        ),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable debug logging"),
    ] = False,
    quiet: Annotated[
        bool,
        typer.Option("--quiet", "-q", help="Only log warnings and errors"),
    ] = False,
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            callback=_version_callback,
            is_eager=True,
            help="Show the version and exit",
        ),
    ] = False,
) -> None:
    """
    Consolidate the SARIF reports found under RAW_DIR.

    \b
    Examples:
        sarif-consolidator
        sarif-consolidator raw-sarif-reports trivy-reports --output-dir out
        sarif-consolidator --scan-mode airgapped
    """
    _configure_logging(verbose, quiet)
    try:
        config = Config.from_settings(
            raw_dir=raw_dir,
            results_dir=results_dir,
            output_dir=output_dir,
            report_pattern=pattern,
            scan_mode=scan_mode,
        )
    except ValueError as e:
        typer.secho(f"Error: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(STATUS_FAILURE)

    configure_stats_client()
    logger.debug("Launching sarif-consolidator with configuration: %r", config)

    try:
        report = consolidate(config)
    except (ConsolidationError, OSError) as e:
        typer.secho(f"Error: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(STATUS_FAILURE)
    except KeyboardInterrupt:
        typer.secho("Consolidation interrupted", fg=typer.colors.RED, err=True)
        raise typer.Exit(STATUS_KEYBOARD_INTERRUPT)

    for line in format_summary(report):
        typer.echo(line)


def main() -> None:
    """
    Entrypoint for the sarif-consolidator command line interface.
    """
    logging.basicConfig(level=logging.INFO)
    app()


if __name__ == "__main__":
    main()
