"""bookcheck CLI -- validate captured booking API responses.

Provides one command per booking stage (search, fare-confirm, book,
retrieve) plus a command for rejected requests (errors). Each reads
captured JSON bodies from files and prints a stage report.
"""

import json
import logging
import sys
from decimal import Decimal
from pathlib import Path
from typing import Annotated, Any, Optional

import typer

from bookcheck.config import ValidationConfig, load_config
from bookcheck.errors import ConfigError, StageSkipped
from bookcheck.models import StageReport

# ---------------------------------------------------------------------------
# App
# ---------------------------------------------------------------------------

app = typer.Typer(
    name="bookcheck",
    help="Flight booking API contract checks -- search, fare confirm, book, retrieve.",
    no_args_is_help=True,
)


# ---------------------------------------------------------------------------
# Global option types
# ---------------------------------------------------------------------------

JsonFlag = Annotated[bool, typer.Option("--json", help="Output as JSON.")]
PlainFlag = Annotated[bool, typer.Option("--plain", help="Output as plain text (no color).")]
VerboseFlag = Annotated[bool, typer.Option("--verbose", "-v", help="Verbose output.")]
QuietFlag = Annotated[bool, typer.Option("--quiet", "-q", help="Suppress non-essential output.")]
ConfigOption = Annotated[
    Optional[str], typer.Option("--config", "-c", help="Validation config YAML file.")
]
PayloadOption = Annotated[
    Optional[str], typer.Option("--payload", "-p", help="Search request payload JSON file.")
]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _get_format(json_flag: bool = False, plain_flag: bool = False) -> str:
    """Determine output format: json > plain > TTY auto-detect > rich."""
    if json_flag:
        return "json"
    if plain_flag:
        return "plain"
    # Auto-detect: use rich if stdout is a TTY, plain otherwise
    if sys.stdout.isatty():
        return "rich"
    return "plain"


def _setup_logging(verbose: bool = False, quiet: bool = False) -> None:
    """Configure logging based on verbosity flags."""
    if quiet:
        logging.basicConfig(level=logging.ERROR)
    elif verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(name)s: %(message)s")
    else:
        logging.basicConfig(level=logging.WARNING)


def _load_json(file: Optional[str]) -> Any:
    """Load a captured JSON body, keeping amounts as Decimal.

    Provides helpful error messages for:
    - File not found
    - JSON parse errors (with line/column)
    """
    if file is None:
        return None
    path = Path(file)

    if not path.exists():
        hint = ""
        if not path.is_absolute():
            hint = f" (looked in {Path.cwd()})"
        raise typer.BadParameter(
            f"File not found: {file}{hint}\n  Hint: Check the file path and try again."
        )

    try:
        with open(path) as f:
            return json.load(f, parse_float=Decimal)
    except json.JSONDecodeError as exc:
        raise typer.BadParameter(
            f"JSON parse error in {file} at line {exc.lineno}, column {exc.colno}: {exc.msg}"
        )


def _load_config(file: Optional[str]) -> ValidationConfig:
    try:
        return load_config(file)
    except ConfigError as exc:
        raise typer.BadParameter(exc.message)


def _error_panel(message: str) -> None:
    """Print an error message, using Rich panel if available."""
    try:
        from rich.console import Console
        from rich.panel import Panel

        console = Console(stderr=True)
        console.print(Panel(message, title="Error", border_style="red"))
    except Exception:
        typer.echo(f"Error: {message}", err=True)


def _emit(report: StageReport, json_flag: bool, plain_flag: bool) -> None:
    """Print the report and exit 1 when it carries failures."""
    from bookcheck.output import get_formatter

    fmt = get_formatter(_get_format(json_flag, plain_flag))
    typer.echo(fmt.format_report(report))
    if not report.passed:
        raise typer.Exit(code=1)


# ---------------------------------------------------------------------------
# Stage commands
# ---------------------------------------------------------------------------


@app.command()
def search(
    response: str = typer.Argument(help="Path to the Search response JSON"),
    payload: PayloadOption = None,
    config: ConfigOption = None,
    json: JsonFlag = False,
    plain: PlainFlag = False,
    verbose: VerboseFlag = False,
    quiet: QuietFlag = False,
) -> None:
    """Validate a Search response."""
    _setup_logging(verbose, quiet)
    try:
        from bookcheck.validator import validate_search

        report = validate_search(
            _load_json(response), payload=_load_json(payload), config=_load_config(config)
        )
        _emit(report, json, plain)
    except typer.Exit:
        raise
    except typer.BadParameter:
        raise
    except Exception as exc:
        _error_panel(str(exc))
        raise typer.Exit(code=2)


@app.command(name="fare-confirm")
def fare_confirm(
    response: str = typer.Argument(help="Path to the FareConfirm response JSON"),
    prior: str = typer.Option(..., "--prior", help="Search offer JSON that was confirmed."),
    payload: PayloadOption = None,
    config: ConfigOption = None,
    json: JsonFlag = False,
    plain: PlainFlag = False,
    verbose: VerboseFlag = False,
    quiet: QuietFlag = False,
) -> None:
    """Validate a FareConfirm response against the selected Search offer."""
    _setup_logging(verbose, quiet)
    try:
        from bookcheck.validator import validate_fare_confirm

        report = validate_fare_confirm(
            _load_json(response),
            _load_json(prior),
            config=_load_config(config),
            payload=_load_json(payload),
        )
        _emit(report, json, plain)
    except typer.Exit:
        raise
    except typer.BadParameter:
        raise
    except Exception as exc:
        _error_panel(str(exc))
        raise typer.Exit(code=2)


@app.command()
def book(
    response: str = typer.Argument(help="Path to the Book response JSON"),
    prior: str = typer.Option(..., "--prior", help="FareConfirm response JSON."),
    payload: PayloadOption = None,
    selected_offer: Annotated[
        Optional[str], typer.Option("--selected-offer", help="Search offer JSON for RBD checks.")
    ] = None,
    add_pax: Annotated[
        Optional[str], typer.Option("--add-pax", help="AddPax request payload JSON.")
    ] = None,
    config: ConfigOption = None,
    json: JsonFlag = False,
    plain: PlainFlag = False,
    verbose: VerboseFlag = False,
    quiet: QuietFlag = False,
) -> None:
    """Validate a Book response against the FareConfirm response."""
    _setup_logging(verbose, quiet)
    try:
        from bookcheck.flow import require_booking_flow
        from bookcheck.validator import validate_booking

        cfg = _load_config(config)
        offer = _load_json(selected_offer)
        if offer is not None:
            require_booking_flow(offer, cfg.allowed_booking_flows, step="book")

        report = validate_booking(
            _load_json(response),
            _load_json(prior),
            payload=_load_json(payload),
            config=cfg,
            selected_offer=offer,
            add_pax_payload=_load_json(add_pax),
        )
        _emit(report, json, plain)
    except StageSkipped as exc:
        if not quiet:
            typer.echo(f"Skipped: {exc.message}")
    except typer.Exit:
        raise
    except typer.BadParameter:
        raise
    except Exception as exc:
        _error_panel(str(exc))
        raise typer.Exit(code=2)


@app.command()
def retrieve(
    response: str = typer.Argument(help="Path to the Retrieve response JSON"),
    prior: str = typer.Option(..., "--prior", help="Book response JSON."),
    config: ConfigOption = None,
    json: JsonFlag = False,
    plain: PlainFlag = False,
    verbose: VerboseFlag = False,
    quiet: QuietFlag = False,
) -> None:
    """Validate a Retrieve response reproduces the Book response."""
    _setup_logging(verbose, quiet)
    try:
        from bookcheck.validator import validate_retrieve

        report = validate_retrieve(
            _load_json(prior), _load_json(response), config=_load_config(config)
        )
        _emit(report, json, plain)
    except typer.Exit:
        raise
    except typer.BadParameter:
        raise
    except Exception as exc:
        _error_panel(str(exc))
        raise typer.Exit(code=2)


@app.command()
def errors(
    response: str = typer.Argument(help="Path to the rejected response JSON"),
    scenario: str = typer.Option(..., "--scenario", "-s", help="Scenario name, e.g. BLANK_ORIGIN."),
    step: str = typer.Option("search", "--step", help="Request step: search or addpax."),
    json: JsonFlag = False,
    plain: PlainFlag = False,
    verbose: VerboseFlag = False,
    quiet: QuietFlag = False,
) -> None:
    """Check a rejected response carries the expected validation error."""
    _setup_logging(verbose, quiet)
    try:
        from bookcheck.negative import check_expected_error

        try:
            report = check_expected_error(_load_json(response), scenario, step)
        except ValueError as exc:
            raise typer.BadParameter(str(exc))
        _emit(report, json, plain)
    except typer.Exit:
        raise
    except typer.BadParameter:
        raise
    except Exception as exc:
        _error_panel(str(exc))
        raise typer.Exit(code=2)
