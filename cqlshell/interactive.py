import logging
import os

from prompt_toolkit import PromptSession
from prompt_toolkit.history import FileHistory

from cqlshell.commands import TERMINATOR, process_command
from cqlshell.completion import CqlCompleter
from cqlshell.output import Printer

log = logging.getLogger(__name__)

PROMPT_PREFIX = "cqlshell"
CONTINUATION_PROMPT = ">>> "
HISTORY_FILE = os.path.join(os.path.expanduser("~"), ".cqlshell-history")


def build_prompt_session(session, history_file: str = HISTORY_FILE) -> PromptSession:
    return PromptSession(
        history=FileHistory(history_file),
        completer=CqlCompleter(session),
        complete_while_typing=False,
    )


def keyspace_prompt(session) -> str:
    return f"{PROMPT_PREFIX}:{session.keyspace}> "


def run_interactive(session, printer: Printer, prompt_session=None) -> None:
    """Read lines until a statement terminator, then dispatch the joined statement."""
    if prompt_session is None:
        prompt_session = build_prompt_session(session)
    pending = []
    while True:
        prompt = CONTINUATION_PROMPT if pending else keyspace_prompt(session)
        try:
            line = prompt_session.prompt(prompt)
        except KeyboardInterrupt:
            pending = []
            continue
        except EOFError:
            printer.write()
            break

        line = line.strip()
        if not line or line.startswith("--"):
            continue
        if not pending and line.lower() in ("exit", "quit"):
            break
        pending.append(line)
        if not line.endswith(TERMINATOR):
            continue

        statement = " ".join(pending)
        pending = []
        terminate, _ = process_command(statement, session, printer)
        if terminate:
            break
