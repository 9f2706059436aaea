"""Tabular rendering of result sets, schema listings and trace sessions.

Every function here is pure: it receives an explicit :class:`OutputConfig`
and returns lines of text. Only :class:`Printer` writes to a stream.
"""
import sys
from dataclasses import dataclass
from typing import Any, List, Mapping, Optional, Sequence, TextIO, Tuple

from termcolor import colored

from cqlshell.models import CLUSTERING, PARTITION_KEY, REGULAR, ColumnDescriptor, TraceRecord

HEADER_COLORS = {
    PARTITION_KEY: "red",
    CLUSTERING: "blue",
    REGULAR: "magenta",
}
STRING_COLOR = "yellow"
VALUE_COLOR = "green"
ERROR_COLOR = "red"
TRACE_HEADER_COLOR = "magenta"
TRACE_CELL_COLOR = "yellow"

INTEGRAL_TYPES = {"bigint", "counter", "int", "smallint", "tinyint", "varint"}
FLOATING_TYPES = {"decimal", "double", "float"}
STRING_TYPES = {"ascii", "text", "varchar"}

TRACE_COLUMNS = ("timestamp", "source", "elapsed", "activity")
TRACE_MIN_WIDTHS = (23, 12, 12, 60)
TRACE_TIME_FORMAT = "%Y/%m/%d %H:%M:%S.%f"

Cell = Tuple[str, str]


@dataclass(frozen=True)
class OutputConfig:
    colors: bool = True


def type_name(cql_type: Any) -> str:
    """Bare CQL type name of a driver type class or a type string, e.g. ``list<int>`` -> ``list``."""
    name = getattr(cql_type, "typename", None) or str(cql_type)
    return name.split("<", 1)[0].strip().lower()


def is_string_type(cql_type: Any) -> bool:
    return type_name(cql_type) in STRING_TYPES


def format_value(cql_type: Any, value: Any) -> str:
    if value is None:
        return "null"
    kind = type_name(cql_type)
    if kind in INTEGRAL_TYPES:
        return str(int(value))
    if kind in FLOATING_TYPES:
        return f"{value:f}"
    if kind == "boolean":
        return "true" if value else "false"
    return str(value)


def colorize(text: str, color: str, config: OutputConfig) -> str:
    if not config.colors:
        return text
    return colored(text, color, force_color=True)


def _cell(text: str, color: str, width: int, config: OutputConfig) -> str:
    painted = colorize(text, color, config)
    # escape sequences take no room on screen, widen by exactly their length
    return f"| {painted.rjust(width + len(painted) - len(text))} "


def column_widths(
    headers: Sequence[str],
    rows: Sequence[Sequence[str]],
    min_widths: Optional[Sequence[int]] = None,
) -> List[int]:
    widths = list(min_widths) if min_widths else [0] * len(headers)
    for idx, header in enumerate(headers):
        widths[idx] = max(widths[idx], len(header))
    for row in rows:
        for idx, text in enumerate(row):
            widths[idx] = max(widths[idx], len(text))
    return widths


def separator(widths: Sequence[int]) -> str:
    return "".join("+" + "-" * (width + 2) for width in widths)


def render_table(
    headers: Sequence[Cell],
    rows: Sequence[Sequence[Cell]],
    config: OutputConfig,
    min_widths: Optional[Sequence[int]] = None,
) -> List[str]:
    """Header line, dashed separator and one line per row, right-justified per column."""
    widths = column_widths(
        [text for text, _ in headers],
        [[text for text, _ in row] for row in rows],
        min_widths,
    )
    lines = ["".join(_cell(text, color, widths[idx], config) for idx, (text, color) in enumerate(headers))]
    lines.append(separator(widths))
    for row in rows:
        lines.append("".join(_cell(text, color, widths[idx], config) for idx, (text, color) in enumerate(row)))
    return lines


def row_count(count: int) -> str:
    return f" ({count} row)" if count == 1 else f" ({count} rows)"


def render_rows(columns: Sequence[ColumnDescriptor], rows: Sequence[Mapping[str, Any]]) -> List[dict]:
    """Pre-render raw driver rows into display strings keyed by column name."""
    return [{col.name: format_value(col.cql_type, row.get(col.name)) for col in columns} for row in rows]


def render_result(
    columns: Sequence[ColumnDescriptor],
    roles: Mapping[str, str],
    rows: Sequence[Mapping[str, str]],
    config: OutputConfig,
) -> List[str]:
    headers = [(col.name, HEADER_COLORS[roles.get(col.name, REGULAR)]) for col in columns]
    cells = [
        [(row[col.name], STRING_COLOR if is_string_type(col.cql_type) else VALUE_COLOR) for col in columns]
        for row in rows
    ]
    return [""] + render_table(headers, cells, config) + ["", row_count(len(rows))]


def render_columns(columns: Sequence[ColumnDescriptor], roles: Mapping[str, str], config: OutputConfig) -> List[str]:
    """``Name``/``Type`` listing used by ``desc table``."""
    headers = [("Name", HEADER_COLORS[REGULAR]), ("Type", HEADER_COLORS[REGULAR])]
    rows = [
        [(col.name, HEADER_COLORS[roles.get(col.name, REGULAR)]), (str(col.cql_type), VALUE_COLOR)]
        for col in columns
    ]
    return render_table(headers, rows, config)


def format_duration(micros: Optional[int]) -> str:
    if micros is None:
        return "unknown"
    if micros < 1000:
        return f"{micros}µs"
    if micros < 1000000:
        return f"{micros / 1000:g}ms"
    return f"{micros / 1000000:g}s"


def render_trace(record: TraceRecord, config: OutputConfig) -> List[str]:
    if not record.events:
        return []
    lines = [
        f"Tracing session {record.session_id} "
        f"(coordinator: {record.coordinator}, duration: {format_duration(record.duration)}):"
    ]
    if not record.complete:
        lines.append(colorize("Trace data may be incomplete.", ERROR_COLOR, config))
    headers = [(name, TRACE_HEADER_COLOR) for name in TRACE_COLUMNS]
    rows = []
    for event in record.events:
        timestamp = event.timestamp.strftime(TRACE_TIME_FORMAT) if event.timestamp else ""
        values = (timestamp, event.source, str(event.elapsed), event.activity)
        rows.append([(value, TRACE_CELL_COLOR) for value in values])
    return lines + render_table(headers, rows, config, TRACE_MIN_WIDTHS) + [""]


class Printer:
    """Writes rendered lines to the user-visible stream."""

    def __init__(self, stream: Optional[TextIO] = None, config: Optional[OutputConfig] = None):
        self.stream = stream if stream is not None else sys.stdout
        self.config = config or OutputConfig()

    def write(self, text: str = "") -> None:
        self.stream.write(text + "\n")

    def write_lines(self, lines: Sequence[str]) -> None:
        for line in lines:
            self.write(line)

    def write_raw(self, text: str) -> None:
        self.stream.write(text)
        self.stream.flush()

    def error(self, message: Any) -> None:
        self.write(colorize(str(message), ERROR_COLOR, self.config))
