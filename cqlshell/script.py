import logging
from typing import Iterator

from cqlshell.commands import Exit, Noop, TERMINATOR, parse_command, process_command
from cqlshell.output import Printer

log = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_STATEMENT_FAILED = 1
EXIT_SCRIPT_UNREADABLE = 2


def split_statements(text: str) -> Iterator[str]:
    """Yield ``;``-terminated statements, ignoring terminators inside quotes and ``--`` comments.

    Text after the last terminator is not a complete statement and is dropped.
    """
    current = []
    quote = None
    i = 0
    while i < len(text):
        ch = text[i]
        if quote:
            current.append(ch)
            if ch == quote:
                quote = None
        elif ch in ("'", '"'):
            quote = ch
            current.append(ch)
        elif text.startswith("--", i):
            newline = text.find("\n", i)
            i = len(text) if newline < 0 else newline
            continue
        elif ch == TERMINATOR:
            current.append(ch)
            yield "".join(current).strip()
            current = []
        else:
            current.append(ch)
        i += 1
    if "".join(current).strip():
        log.warning(f"ignoring unterminated statement at end of script: {''.join(current).strip()!r}")


def run_script(
    path: str,
    session,
    printer: Printer,
    print_cql: bool = False,
    fail_on_error: bool = False,
    print_confirmation: bool = False,
) -> int:
    """Execute every statement of the script at ``path``; returns the process exit code."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            text = f.read()
    except OSError as e:
        printer.error(f"error opening file {path}: {e}")
        return EXIT_SCRIPT_UNREADABLE

    for statement in split_statements(text):
        if print_cql:
            printer.write(statement)
        terminate, error = process_command(statement, session, printer)
        if terminate:
            break
        if error is not None:
            if fail_on_error:
                log.info(f"aborting script {path} after failed statement")
                return EXIT_STATEMENT_FAILED
            continue
        if print_confirmation and not isinstance(parse_command(statement), (Exit, Noop)):
            printer.write("ok")
    return EXIT_OK
