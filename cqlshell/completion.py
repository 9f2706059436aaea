import logging
from typing import Callable, Iterable, List, Optional

from prompt_toolkit.completion import Completer, Completion

from cqlshell.cql_tools import CassandraDatabase

log = logging.getLogger(__name__)


def keyspace_names(session) -> List[str]:
    try:
        return CassandraDatabase(session).get_keyspace_names()
    except Exception as e:
        log.debug(f"keyspace completion failed: {e}")
        return []


def table_names(session) -> List[str]:
    try:
        return CassandraDatabase(session).get_table_names()
    except Exception as e:
        log.debug(f"table completion failed: {e}")
        return []


def column_names(session, line: str, prefix: str) -> List[str]:
    """Columns of the table named right after ``prefix`` in ``line``."""
    rest = line.strip()
    if rest.lower().startswith(prefix):
        rest = rest[len(prefix):]
    words = rest.replace(";", " ").split()
    if not words:
        return []
    try:
        return list(CassandraDatabase(session).get_columns(None, words[0]))
    except Exception as e:
        log.debug(f"column completion failed: {e}")
        return []


class Dynamic:
    """A completion node whose candidates are computed from the current line."""

    def __init__(self, provider: Callable[[str], List[str]], children=None):
        self.provider = provider
        self.children = children


def completion_tree(session) -> dict:
    def keyspaces(children=None):
        return Dynamic(lambda line: keyspace_names(session), children)

    def tables(children=None):
        return Dynamic(lambda line: table_names(session), children)

    def columns(prefix, children=None):
        return Dynamic(lambda line: column_names(session, line, prefix), children)

    return {
        "use": keyspaces(),
        "select": {"*": {"from": tables()}},
        "insert": {"into": tables()},
        "delete": {"from": tables(columns("delete from", {"=": None}))},
        "update": tables({"set": columns("update", {"=": None})}),
        "desc": {
            "keyspaces": None,
            "keyspace": keyspaces(),
            "tables": None,
            "table": tables(),
        },
        "tracing": {"on": None, "off": None},
    }


def _descend(node, word: str):
    if isinstance(node, Dynamic):
        return node.children
    if isinstance(node, dict):
        return node.get(word.lower())
    return None


def _candidates(node, line: str) -> Iterable[str]:
    if isinstance(node, Dynamic):
        return node.provider(line)
    if isinstance(node, dict):
        return node.keys()
    return []


def complete(tree: dict, line: str) -> List[str]:
    """Candidates for the last, partially typed word of ``line``."""
    words = line.split()
    current = ""
    if words and not line[-1].isspace():
        current = words.pop()
    node: Optional[object] = tree
    for word in words:
        node = _descend(node, word)
        if node is None:
            return []
    return [c for c in _candidates(node, line) if c.lower().startswith(current.lower())]


class CqlCompleter(Completer):
    def __init__(self, session):
        self.tree = completion_tree(session)

    def get_completions(self, document, complete_event):
        text = document.text_before_cursor
        current = "" if not text or text[-1].isspace() else text.split()[-1]
        for candidate in complete(self.tree, text):
            yield Completion(candidate, start_position=-len(current))
