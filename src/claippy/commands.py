"""Command table shared by CLI subcommands and REPL bang-commands.

Both surfaces turn their input into `(name, args)` and call `dispatch`, which
resolves the command and validates its arguments before the action runs, so
an unknown or malformed command never touches a conversation.
"""

from __future__ import annotations

import logging
import shlex
from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass
from typing import TYPE_CHECKING, TextIO

from claippy.errors import InvalidArguments, UnknownCommand

if TYPE_CHECKING:
    from claippy.core import Claippy

logger = logging.getLogger(__name__)

BANG = "!"

Action = Callable[["Claippy"], Iterator[str]]


@dataclass(frozen=True)
class CommandSpec:
    """How one command is named, parsed and bound to a `Claippy` action."""

    name: str
    action: str
    aliases: tuple[str, ...] = ()
    usage: str = ""
    summary: str = ""
    min_args: int = 0
    max_args: int | None = None
    # Join all arguments into a single string argument with this separator
    join: str | None = None
    # REPL passes the rest of the line unsplit
    raw: bool = False


COMMANDS: tuple[CommandSpec, ...] = (
    CommandSpec("repl", "repl", summary="start the interactive REPL (default)", max_args=0),
    CommandSpec(
        "query",
        "query",
        aliases=("q",),
        usage="<text...>",
        summary="ask the model within the active conversation",
        min_args=1,
        join=" ",
        raw=True,
    ),
    CommandSpec(
        "new",
        "new",
        aliases=("n",),
        usage="[name...]",
        summary="start a new conversation and make it active",
        join="-",
    ),
    CommandSpec("clear", "clear", summary="delete all messages, keep context", max_args=0),
    CommandSpec("history", "history", summary="show the message history", max_args=0),
    CommandSpec(
        "add",
        "add",
        aliases=("a",),
        usage="<path-or-url...>",
        summary="add files or URLs to the context",
        min_args=1,
    ),
    CommandSpec(
        "remove",
        "remove",
        aliases=("rm",),
        usage="<path-or-url...>",
        summary="remove files or URLs from the context",
        min_args=1,
    ),
    CommandSpec("ls", "ls", summary="list the context", max_args=0),
    CommandSpec("help", "help", aliases=("h",), summary="show this help", max_args=0),
    CommandSpec("quit", "quit", aliases=("exit",), summary="leave the REPL", max_args=0),
)

_TABLE: dict[str, CommandSpec] = {
    name: spec for spec in COMMANDS for name in (spec.name, *spec.aliases)
}


def command_names() -> list[str]:
    """All names and aliases, canonical names first."""
    return [spec.name for spec in COMMANDS] + [a for spec in COMMANDS for a in spec.aliases]


def resolve_command(name: str) -> CommandSpec:
    """Look up a command by canonical name or alias (case-sensitive)."""
    spec = _TABLE.get(name)
    if spec is None:
        raise UnknownCommand(name)
    return spec


def bind_arguments(spec: CommandSpec, args: list[str]) -> tuple:
    """Check arg counts for the command and shape them into action arguments."""
    usage = f"usage: {spec.name} {spec.usage}".rstrip()
    if len(args) < spec.min_args:
        raise InvalidArguments(usage)
    if spec.max_args is not None and len(args) > spec.max_args:
        raise InvalidArguments(usage)

    if spec.join is not None:
        text = spec.join.join(a.strip() for a in args if a.strip())
        if spec.min_args and not text:
            raise InvalidArguments(usage)
        return (text or None,)
    if spec.min_args:
        return (list(args),)
    return ()


def prepare(name: str, args: list[str]) -> Action:
    """Resolve and validate a command without touching any state."""
    spec = resolve_command(name)
    bound = bind_arguments(spec, args)
    logger.debug("Dispatch %s%r", spec.name, bound)
    return lambda app: getattr(app, spec.action)(*bound)


def dispatch(app: Claippy, name: str, args: list[str]) -> Iterator[str]:
    """Resolve and validate a command, then return its output chunks."""
    return prepare(name, args)(app)


def parse_repl_line(line: str) -> tuple[str, list[str]] | None:
    """Split a REPL line into (command, args). Free text is a query; blank is None."""
    text = line.strip()
    if not text:
        return None
    if not text.startswith(BANG):
        return "query", [text]

    parts = text[len(BANG):].split(None, 1)
    if not parts:
        raise UnknownCommand(BANG)
    name = parts[0]
    rest = parts[1] if len(parts) > 1 else ""

    spec = _TABLE.get(name)
    if spec is not None and spec.raw:
        return name, [rest] if rest else []
    try:
        return name, shlex.split(rest)
    except ValueError as e:
        raise InvalidArguments(f"Cannot parse arguments: {e}") from e


def help_lines(bang: bool = False) -> list[str]:
    prefix = BANG if bang else ""
    lines = []
    for spec in COMMANDS:
        names = ", ".join(prefix + n for n in (spec.name, *spec.aliases))
        signature = f"{names} {spec.usage}".rstrip()
        lines.append(f"  {signature:<32} {spec.summary}")
    if bang:
        lines.append("  Any other line is sent to the model as a query.")
    return lines


def emit(chunks: Iterable[str], out: TextIO) -> None:
    """Write output chunks as they arrive, ending on a newline."""
    last = ""
    for chunk in chunks:
        if not chunk:
            continue
        out.write(chunk)
        out.flush()
        last = chunk
    if last and not last.endswith("\n"):
        out.write("\n")
        out.flush()
