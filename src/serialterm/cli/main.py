"""SerialTerm CLI - serial port terminal."""

from __future__ import annotations

import json

import click

from serialterm.utils.logging import setup_logging


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.option("--json-output", is_flag=True, help="Output in JSON format")
@click.pass_context
def cli(ctx: click.Context, debug: bool, json_output: bool) -> None:
    """SerialTerm - talk to serial devices and capture their output."""
    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug
    ctx.obj["json_output"] = json_output
    setup_logging(level="DEBUG" if debug else "WARNING", json_output=json_output)


@cli.command()
@click.pass_context
def ports(ctx: click.Context) -> None:
    """List serial ports currently present."""
    from serialterm.catalog import list_port_details

    found = list_port_details()

    if ctx.obj.get("json_output"):
        click.echo(json.dumps([p.model_dump() for p in found], indent=2))
        return
    if not found:
        click.echo("No serial ports found.")
        return
    click.echo(f"Found {len(found)} port(s):")
    for p in found:
        click.echo(f"  {p.display_name}")


@cli.command()
def bauds() -> None:
    """List the supported baud rates."""
    from serialterm.models.session import BaudRate

    for rate in BaudRate:
        click.echo(str(int(rate)))


# Register subcommands
from serialterm.cli.terminal import terminal  # noqa: E402

cli.add_command(terminal)


if __name__ == "__main__":
    cli()
