"""Statement classification and dispatch.

A statement is first parsed into one of the :data:`Command` variants, then
:func:`process_command` handles it: shell commands locally, everything else
through a :class:`~cqlshell.tracer.Tracer` to the driver.
"""
import logging
import re
from dataclasses import dataclass
from typing import Optional, Tuple, Union

from cqlshell.cql_tools import CassandraDatabase, unquote_name
from cqlshell.errors import ShellError, StatementExecutionError, TracingStateError
from cqlshell.output import Printer, render_columns, render_result, render_rows
from cqlshell.tracer import Tracer

log = logging.getLogger(__name__)

TERMINATOR = ";"

_EXIT = re.compile(r"^(exit|quit)\b", re.IGNORECASE)
_USE = re.compile(r"^use\s+(.*)$", re.IGNORECASE | re.DOTALL)
_DESCRIBE = re.compile(r"^(desc|describe)\b(.*)$", re.IGNORECASE | re.DOTALL)
_TRACING = re.compile(r"^tracing(?:\s+(\S*))?\s*$", re.IGNORECASE)
_SELECT = re.compile(r"^select\b", re.IGNORECASE)


@dataclass(frozen=True)
class Exit:
    pass


@dataclass(frozen=True)
class Noop:
    pass


@dataclass(frozen=True)
class UseKeyspace:
    keyspace: str


@dataclass(frozen=True)
class Describe:
    target: str
    name: Optional[str] = None


@dataclass(frozen=True)
class Tracing:
    # None when the argument is neither ON nor OFF
    enabled: Optional[bool]


@dataclass(frozen=True)
class Passthrough:
    cql: str


Command = Union[Exit, Noop, UseKeyspace, Describe, Tracing, Passthrough]


def _strip_terminator(text: str) -> str:
    text = text.strip()
    while text.endswith(TERMINATOR):
        text = text[:-1].rstrip()
    return text


def parse_keyspace(argument: str) -> str:
    keyspace = _strip_terminator(argument)
    if len(keyspace) >= 2 and keyspace[0] == keyspace[-1] == '"':
        keyspace = keyspace[1:-1]
    return keyspace.strip()


def parse_describe(argument: str) -> Describe:
    parts = _strip_terminator(argument).split(None, 1)
    if not parts:
        return Describe("")
    target = parts[0].lower()
    name = parts[1].strip() if len(parts) > 1 else None
    return Describe(target, name)


def parse_command(statement: str) -> Command:
    text = statement.strip()
    if _EXIT.match(text):
        return Exit()
    if not _strip_terminator(text) or text.startswith("--"):
        return Noop()

    match = _USE.match(text)
    if match:
        return UseKeyspace(parse_keyspace(match.group(1)))

    match = _DESCRIBE.match(text)
    if match:
        return parse_describe(match.group(2))

    match = _TRACING.match(_strip_terminator(text))
    if match:
        switch = (match.group(1) or "").lower()
        return Tracing({"on": True, "off": False}.get(switch))

    return Passthrough(_strip_terminator(text))


def _use_keyspace(command: UseKeyspace, session, printer: Printer) -> None:
    session.rebind(command.keyspace)


def _describe(command: Describe, session, printer: Printer) -> None:
    db = CassandraDatabase(session)
    if command.target == "keyspaces":
        printer.write_lines(db.get_keyspace_names())
    elif command.target == "keyspace":
        name = unquote_name(command.name) if command.name else None
        printer.write(db.describe_keyspace(name))
    elif command.target == "tables":
        printer.write_lines(db.get_table_names())
    elif command.target == "table" and command.name:
        keyspace, _, table = command.name.rpartition(".")
        keyspace = unquote_name(keyspace) if keyspace else session.keyspace
        columns = list(db.get_columns(keyspace, unquote_name(table)).values())
        printer.write_lines(render_columns(columns, db.column_roles(columns), printer.config))
    else:
        log.debug(f"ignoring describe target {command.target!r}")


def _tracing(command: Tracing, session, printer: Printer) -> None:
    if command.enabled is None:
        raise TracingStateError("Improper tracing command.")
    if command.enabled:
        session.enable_tracing()
        printer.write("Now Tracing is enabled.")
    else:
        session.disable_tracing()
        printer.write("Disabled Tracing.")


def _passthrough(command: Passthrough, session, printer: Printer) -> None:
    with Tracer(session, printer) as tracer:
        try:
            result = tracer.query(command.cql)
        except Exception as e:
            raise StatementExecutionError(command.cql, e) from e
        if _SELECT.match(command.cql):
            db = CassandraDatabase(session)
            columns = db.result_columns(command.cql, result.column_names, result.column_types)
            rows = render_rows(columns, result.rows)
            printer.write_lines(render_result(columns, db.column_roles(columns), rows, printer.config))


def process_command(statement: str, session, printer: Printer) -> Tuple[bool, Optional[ShellError]]:
    """Run one statement against ``session``.

    Returns ``(terminate, error)``. Errors are printed here and returned so
    that script mode can stop on the first failure; they never propagate.
    """
    command = parse_command(statement)
    if isinstance(command, Exit):
        return True, None
    if isinstance(command, Noop):
        return False, None

    if isinstance(command, UseKeyspace):
        handler = _use_keyspace
    elif isinstance(command, Describe):
        handler = _describe
    elif isinstance(command, Tracing):
        handler = _tracing
    elif isinstance(command, Passthrough):
        handler = _passthrough
    else:
        raise TypeError(f"unhandled command {command!r}")

    try:
        handler(command, session, printer)
    except ShellError as e:
        error = e
    except Exception as e:
        log.debug("statement failed", exc_info=True)
        error = StatementExecutionError(statement.strip(), e)
    else:
        return False, None
    printer.error(error)
    return False, error
