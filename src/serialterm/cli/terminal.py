"""Interactive terminal command.

Device output is echoed to stdout as it arrives. Lines read from stdin are
sent to the device with the selected terminator, except lines starting with
':' which are terminal commands (a leading '::' sends a literal ':').
"""

from __future__ import annotations

from pathlib import Path

import click

from serialterm.models.session import BaudRate, Terminator
from serialterm.terminal import Terminal

BAUD_CHOICES = [str(int(rate)) for rate in BaudRate]
TERMINATOR_CHOICES = [t.cli_name for t in Terminator]

HELP_TEXT = """\
Commands:
  :open [PORT]        open the selected (or given) port
  :close              close the port
  :port NAME          select a port (closes an open port first)
  :ports              refresh and list ports
  :baud RATE          baud rate for the next open
  :terminator NAME    line ending: none, lf, cr, crlf
  :clear              clear the capture
  :save [PATH]        save the capture (PATH needed the first time, or to switch files)
  :saveas PATH        save to a new file; :saveas! overwrites
  :status             show port, baud rate and terminator
  :help               this text
  :quit               close the port and exit"""


def _info(message: str) -> None:
    click.echo(message, err=True)


def run_command(term: Terminal, line: str) -> bool:
    """Execute one ':' command line. Returns False when the terminal should exit."""
    parts = line[1:].split(maxsplit=1)
    if not parts:
        return True
    name = parts[0].lower()
    arg = parts[1].strip() if len(parts) > 1 else ""

    if name in ("quit", "exit", "q"):
        return False
    if name == "open":
        term.open(arg or None)
    elif name == "close":
        term.close()
    elif name == "port":
        if not arg:
            _info("usage: :port NAME")
        else:
            term.select_port(arg)
    elif name == "ports":
        found = term.discover()
        if not found:
            _info("No serial ports found.")
        for port in found:
            marker = "*" if port == term.selected_port else " "
            _info(f" {marker} {port}")
    elif name == "baud":
        if not arg.isdigit():
            _info(f"usage: :baud RATE  (one of {', '.join(BAUD_CHOICES)})")
        else:
            term.select_baud(int(arg))
    elif name == "terminator":
        term.select_terminator(arg or "none")
    elif name == "clear":
        term.clear()
    elif name == "save":
        saved = term.save(arg or None)
        if saved is not None:
            _info(f"Saved to {saved}")
    elif name in ("saveas", "saveas!"):
        if not arg:
            _info("usage: :saveas PATH")
        else:
            saved = term.save_as(arg, overwrite=name.endswith("!"))
            if saved is not None:
                _info(f"Saved to {saved}")
    elif name == "status":
        _info(term.status_line())
    elif name == "help":
        _info(HELP_TEXT)
    else:
        _info(f"Unknown command :{name} (try :help)")
    return True


def handle_line(term: Terminal, line: str) -> bool:
    """Dispatch one input line. Returns False when the terminal should exit."""
    if line.startswith("::"):
        term.send_message(line[1:])
        return True
    if line.startswith(":"):
        return run_command(term, line)
    term.send_message(line)
    return True


@click.command()
@click.argument("port", required=False)
@click.option("--baud", type=click.Choice(BAUD_CHOICES), default=None, help="Baud rate (default: 9600)")
@click.option("--terminator", type=click.Choice(TERMINATOR_CHOICES), default=None,
              help="Line ending appended to sent lines (default: none)")
@click.option("--capture", "capture_path", type=click.Path(dir_okay=False), default=None,
              help="Save the capture to this file on exit")
@click.option("--overwrite", is_flag=True, help="Allow --capture to replace an existing file")
@click.pass_context
def terminal(
    ctx: click.Context,
    port: str | None,
    baud: str | None,
    terminator: str | None,
    capture_path: str | None,
    overwrite: bool,
) -> None:
    """Open an interactive terminal, optionally connecting to PORT."""
    from serialterm.capture import CaptureBuffer
    from serialterm.exceptions import InvalidParameterError
    from serialterm.session import SerialSession
    from serialterm.settings import load_settings

    try:
        settings = load_settings(
            baud_rate=int(baud) if baud else None,
            terminator=terminator,
        )
    except InvalidParameterError as exc:
        click.echo(f"ERROR: {exc}", err=True)
        ctx.exit(1)
        return

    sink = CaptureBuffer(on_append=lambda text: click.echo(text, nl=False))
    session = SerialSession(sink, settings)
    term = Terminal(session, sink, settings)

    term.discover()
    if port:
        term.select_port(port)
        term.open()
    _info("Type :help for commands.")

    stdin = click.get_text_stream("stdin")
    try:
        while True:
            raw = stdin.readline()
            if not raw:
                break
            if not handle_line(term, raw.rstrip("\r\n")):
                break
    except KeyboardInterrupt:
        pass
    finally:
        term.shutdown()
        if capture_path:
            saved = term.save_as(Path(capture_path), overwrite=overwrite)
            if saved is not None:
                _info(f"Saved to {saved}")
