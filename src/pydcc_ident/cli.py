#!/usr/bin/env python3
"""Command-line decoder identification for pydcc-ident using Typer."""

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Optional

import typer
from typing_extensions import Annotated

from . import __version__  # type: ignore
from .errors import InvalidAssignmentError, InvalidImageError, ModbusIOError, RegisterAccessFailure
from .identify import identify as run_identify
from .modbus_port import ModbusRegisterPort
from .normalize import parse_assignment
from .port import RegisterPort
from .protocols import ProtocolEntry, all_entries, lookup
from .simulator import SimulatedDecoder, load_image
from .types import Complete

app = typer.Typer(
    name="dccident",
    help="Identify DCC decoders (manufacturer, model, product ID) on the programming track.",
    no_args_is_help=True,
)

logger = logging.getLogger(__name__)

# ============================================================================
# Shared options and helpers
# ============================================================================

HostOption = Annotated[
    Optional[str],
    typer.Option("--host", "-h", help="Modbus programming-track bridge hostname or IP", envvar="DCCIDENT_HOST"),
]
PortOption = Annotated[
    int,
    typer.Option("--port", "-p", help="Modbus TCP port", envvar="DCCIDENT_PORT"),
]
UnitIdOption = Annotated[
    int,
    typer.Option("--unit-id", "-u", help="Modbus unit ID", envvar="DCCIDENT_UNIT_ID"),
]
TimeoutOption = Annotated[
    float,
    typer.Option("--timeout", "-t", help="Request timeout in seconds", envvar="DCCIDENT_TIMEOUT"),
]
RetriesOption = Annotated[
    int,
    typer.Option("--retries", "-r", help="Number of retries on failure", envvar="DCCIDENT_RETRIES"),
]
CvOffsetOption = Annotated[
    int,
    typer.Option("--cv-offset", help="Holding register offset added to each CV number", envvar="DCCIDENT_CV_OFFSET", min=-1),
]
VerboseOption = Annotated[
    bool,
    typer.Option("--verbose", "-v", help="Enable debug logging"),
]
JsonOption = Annotated[
    bool,
    typer.Option("--json", help="Output as JSON"),
]


def setup_logging(verbose: bool) -> None:
    """Configure logging based on verbose flag."""
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(levelname)s: %(message)s" if not verbose else "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


def build_simulator(image: Optional[Path], cvs: list[str]) -> SimulatedDecoder:
    """Build a simulated decoder from an image file and/or CV=VALUE overrides (overrides win)."""
    decoder = load_image(image) if image is not None else SimulatedDecoder({}, source="<command line>")
    for raw in cvs:
        cv, value = parse_assignment(raw)
        decoder.set_cv(cv, value)
    return decoder


def format_product_id(product_id: int | None) -> str:
    """Format a product ID for display: decimal and 32-bit hex, or 'none'."""
    if product_id is None:
        return "none"
    return f"{product_id} (0x{product_id:08X})"


def result_to_dict(result: Complete) -> dict[str, Any]:
    return {
        "manufacturer_code": result.manufacturer_code,
        "manufacturer": result.manufacturer.name.lower(),
        "model_code": result.model_code,
        "product_id": result.product_id,
    }


def entry_to_dict(entry: ProtocolEntry) -> dict[str, Any]:
    return {
        "code": entry.code,
        "manufacturer": entry.manufacturer.name.lower(),
        "models": entry.models,
        "registers": list(entry.registers),
        "optional": list(entry.optional),
        "formula": entry.formula,
    }


async def _identify_with(port: RegisterPort, progress: bool, managed: bool = False) -> Complete:
    on_progress = (lambda m: typer.echo(m, err=True)) if progress else None
    if managed:
        async with port:
            return await run_identify(port, on_progress=on_progress)
    return await run_identify(port, on_progress=on_progress)


# ============================================================================
# Commands
# ============================================================================


@app.command()
def identify(
    host: HostOption = None,
    port: PortOption = 502,
    unit_id: UnitIdOption = 1,
    timeout: TimeoutOption = 3.0,
    retries: RetriesOption = 3,
    cv_offset: CvOffsetOption = -1,
    image: Annotated[
        Optional[Path],
        typer.Option("--image", help="JSON decoder image to identify instead of a live decoder"),
    ] = None,
    cv: Annotated[
        Optional[list[str]],
        typer.Option("--cv", help="Simulated CV value as CV=VALUE (repeatable; decimal or 0x hex)"),
    ] = None,
    progress: Annotated[bool, typer.Option("--progress", help="Echo progress messages to stderr")] = False,
    verbose: VerboseOption = False,
    json_output: JsonOption = False,
) -> None:
    """
    Identify the decoder on the programming track.

    With --host: talks to a Modbus TCP programming-track bridge.
    With --image and/or --cv: identifies a simulated decoder instead.
    """
    setup_logging(verbose)

    simulated = image is not None or bool(cv)
    if host and simulated:
        typer.echo("Error: --host cannot be combined with --image/--cv", err=True)
        raise typer.Exit(2)
    if not host and not simulated:
        typer.echo("Error: --host, --image or --cv is required", err=True)
        raise typer.Exit(2)

    try:
        reg_port: RegisterPort
        if simulated:
            reg_port = build_simulator(image, cv or [])
        else:
            reg_port = ModbusRegisterPort(
                host=host,
                port=port,
                unit_id=unit_id,
                timeout=timeout,
                retries=retries,
                cv_offset=cv_offset,
            )
        result = asyncio.run(_identify_with(reg_port, progress, managed=not simulated))

        if json_output:
            typer.echo(json.dumps(result_to_dict(result), indent=2))
        else:
            typer.echo(f"Manufacturer:  {result.manufacturer_code} ({result.manufacturer.name.lower()})")
            typer.echo(f"Model:         {result.model_code}")
            typer.echo(f"Product ID:    {format_product_id(result.product_id)}")
    except (InvalidAssignmentError, InvalidImageError, FileNotFoundError) as e:
        typer.echo(f"Error: Invalid input: {e}", err=True)
        raise typer.Exit(2)
    except RegisterAccessFailure as e:
        typer.echo(f"Error: Register access failed: {e}", err=True)
        raise typer.Exit(3)
    except ModbusIOError as e:
        typer.echo(f"Error: Connection/Modbus error: {e}", err=True)
        raise typer.Exit(3)
    except Exception as e:
        typer.echo(f"Error: Unexpected error: {e}", err=True)
        if verbose:
            import traceback
            traceback.print_exc()
        raise typer.Exit(4)


@app.command()
def protocols(
    code: Annotated[Optional[int], typer.Argument(help="Manufacturer code (CV8) to show")] = None,
    verbose: VerboseOption = False,
    json_output: JsonOption = False,
) -> None:
    """
    Show the product ID procedure for each supported manufacturer.

    Does not require a connection.
    """
    setup_logging(verbose)

    if code is None:
        entries = all_entries()
    else:
        entry = lookup(code)
        if entry is None:
            typer.echo(f"Error: No product ID procedure for manufacturer code {code}", err=True)
            raise typer.Exit(2)
        entries = [entry]

    if json_output:
        typer.echo(json.dumps([entry_to_dict(e) for e in entries], indent=2))
        return

    for e in entries:
        optional = ",".join(str(r) for r in e.optional) or "-"
        typer.echo(f"{e.code:>3}  {e.manufacturer.name.lower():<12} models={e.models}")
        typer.echo(f"     CVs:       {','.join(str(r) for r in e.registers)} (optional: {optional})")
        typer.echo(f"     Formula:   {e.formula}")


@app.command()
def info(
    verbose: VerboseOption = False,
    json_output: JsonOption = False,
) -> None:
    """Show package version and supported manufacturers."""
    setup_logging(verbose)

    info_data = {
        "version": __version__,
        "manufacturers": {e.manufacturer.name.lower(): e.code for e in all_entries()},
    }

    if json_output:
        typer.echo(json.dumps(info_data, indent=2))
    else:
        typer.echo(f"pydcc-ident version: {info_data['version']}")
        names = ", ".join(f"{name} ({code})" for name, code in info_data["manufacturers"].items())
        typer.echo(f"Manufacturers: {names}")


def version_callback(value: bool) -> None:
    """Show version and exit."""
    if value:
        typer.echo(f"pydcc-ident {__version__}")
        raise typer.Exit(0)


@app.callback()
def main(
    version: Annotated[
        Optional[bool],
        typer.Option("--version", callback=version_callback, is_eager=True, help="Show version and exit"),
    ] = None,
) -> None:
    """dccident - identify DCC decoders on the programming track."""
    pass


if __name__ == "__main__":
    app()
