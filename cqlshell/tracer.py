import io
import logging
import time
from dataclasses import dataclass, field
from typing import Any, List, Optional, TextIO

from cassandra.query import SimpleStatement
from cassandra.util import datetime_from_uuid1

from cqlshell.errors import SessionConnectionError, TraceUnavailable
from cqlshell.models import TraceEvent, TraceRecord
from cqlshell.output import OutputConfig, Printer, render_trace

log = logging.getLogger(__name__)

SELECT_TRACE_SESSION = "SELECT coordinator, duration FROM system_traces.sessions WHERE session_id = %s"
SELECT_TRACE_EVENTS = (
    "SELECT event_id, activity, source, source_elapsed FROM system_traces.events WHERE session_id = %s"
)


@dataclass
class QueryResult:
    column_names: Optional[List[str]] = None
    column_types: Optional[List[Any]] = None
    rows: List[dict] = field(default_factory=list)


class TraceWriter:
    """Fetches one trace session from the tracing connection and renders it into ``buffer``."""

    def __init__(self, session, buffer: TextIO, config: OutputConfig, max_wait: float = 2.0):
        self.session = session
        self.buffer = buffer
        self.config = config
        self.max_wait = max_wait

    def fetch(self, trace_id) -> TraceRecord:
        record = TraceRecord(session_id=trace_id, complete=False)
        deadline = time.monotonic() + self.max_wait
        delay = 0.05
        while True:
            row = self.session.execute(SELECT_TRACE_SESSION, (trace_id,)).one()
            if row is not None:
                record.coordinator = row["coordinator"]
                record.duration = row["duration"]
            # the coordinator writes duration last, once every event is in
            if record.duration is not None or time.monotonic() + delay > deadline:
                break
            time.sleep(delay)
            delay *= 2
        record.complete = record.duration is not None

        for event in self.session.execute(SELECT_TRACE_EVENTS, (trace_id,)):
            record.events.append(
                TraceEvent(
                    timestamp=datetime_from_uuid1(event["event_id"]),
                    source=str(event["source"]),
                    elapsed=event["source_elapsed"] or 0,
                    activity=event["activity"] or "",
                )
            )
        return record

    def __call__(self, trace_id) -> None:
        try:
            record = self.fetch(trace_id)
        except Exception as e:
            log.debug(f"trace fetch failed for {trace_id}: {e}")
            self.buffer.write(f"Error: {e}\n")
            return
        for line in render_trace(record, self.config):
            self.buffer.write(line + "\n")


class Tracer:
    """Executes statements on a session, tracing them when the session has tracing on.

    With tracing on, a second connection is cloned from the session and used
    only for reading back trace events, so those reads never share the
    primary statement's connection or keyspace binding. Rendered traces are
    buffered and written out by :meth:`close`.
    """

    def __init__(self, session, printer: Printer):
        self.session = session
        self.printer = printer
        self.connection = None
        self.buffer = None
        self.writer = None
        if not session.tracing_enabled:
            return
        try:
            self.connection = session.clone()
        except SessionConnectionError as e:
            printer.error(TraceUnavailable(f"Cannot create trace session: {e}"))
            return
        self.buffer = io.StringIO()
        self.writer = TraceWriter(
            self.connection.session, self.buffer, printer.config, session.settings.max_trace_wait
        )

    @property
    def tracing(self) -> bool:
        return self.writer is not None

    def query(self, cql: str) -> QueryResult:
        future = self.session.execute_async(SimpleStatement(cql), trace=self.tracing)
        result = future.result()
        rows = list(result)
        if self.tracing:
            for trace_id in future.get_query_trace_ids():
                self.writer(trace_id)
        return QueryResult(result.column_names, result.column_types, rows)

    def close(self) -> None:
        if not self.tracing:
            return
        self.printer.write_raw(self.buffer.getvalue())
        self.connection.close()
        self.writer = None

    def __enter__(self) -> "Tracer":
        return self

    def __exit__(self, *exc) -> None:
        self.close()
