import io
import uuid
from collections import OrderedDict
from types import SimpleNamespace

import pytest

from cqlshell.cassandra_conn import KeyspaceSession
from cqlshell.errors import SessionConnectionError
from cqlshell.output import OutputConfig, Printer
from cqlshell.settings import ConnectionSettings


class FakeResult:
    def __init__(self, rows=(), column_names=None, column_types=None):
        self.rows = list(rows)
        self.column_names = column_names
        self.column_types = column_types

    def __iter__(self):
        return iter(self.rows)

    def one(self):
        return self.rows[0] if self.rows else None


class FakeFuture:
    def __init__(self, outcome, trace_ids=()):
        self.outcome = outcome
        self.trace_ids = list(trace_ids)

    def result(self):
        if isinstance(self.outcome, Exception):
            raise self.outcome
        return self.outcome

    def get_query_trace_ids(self):
        return self.trace_ids


class FakeDriverSession:
    """Answers queries from ``responses``: (substring, FakeResult | Exception) pairs, first match wins."""

    def __init__(self, responses):
        self.responses = responses
        self.executed = []

    def _answer(self, query):
        for needle, outcome in self.responses:
            if needle.lower() in query.lower():
                return outcome
        return FakeResult()

    def execute(self, query, params=None):
        self.executed.append((query, params, False))
        outcome = self._answer(query)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    def execute_async(self, statement, trace=False):
        query = getattr(statement, "query_string", statement)
        self.executed.append((query, None, trace))
        trace_ids = [uuid.uuid4()] if trace else []
        return FakeFuture(self._answer(query), trace_ids)


class FakeConnection:
    def __init__(self, keyspace, metadata, responses):
        self.keyspace = keyspace
        self.cluster = SimpleNamespace(metadata=metadata)
        self.session = FakeDriverSession(responses)
        self.closed = False

    def close(self):
        self.closed = True


class FakeConnectionFactory:
    def __init__(self, metadata, responses=None):
        self.metadata = metadata
        self.responses = responses if responses is not None else []
        self.connections = []
        self.fail_keyspaces = set()
        self.fail_all = False

    def __call__(self, settings, keyspace):
        if self.fail_all or keyspace in self.fail_keyspaces:
            raise SessionConnectionError(settings.host, settings.port, keyspace, Exception("Keyspace does not exist"))
        connection = FakeConnection(keyspace, self.metadata, self.responses)
        self.connections.append(connection)
        return connection

    @property
    def open_connections(self):
        return [c for c in self.connections if not c.closed]


def make_column(name, cql_type):
    return SimpleNamespace(name=name, cql_type=cql_type)


def make_table(name, partition, clustering=(), regular=()):
    partition_key = [make_column(*c) for c in partition]
    clustering_key = [make_column(*c) for c in clustering]
    columns = OrderedDict((c.name, c) for c in partition_key + clustering_key + [make_column(*c) for c in regular])
    return SimpleNamespace(name=name, partition_key=partition_key, clustering_key=clustering_key, columns=columns)


class FakeKeyspace:
    def __init__(self, name, tables=()):
        self.name = name
        self.tables = {t.name: t for t in tables}

    def export_as_string(self):
        return (
            f"CREATE KEYSPACE {self.name} WITH replication = "
            "{'class': 'SimpleStrategy', 'replication_factor': '1'} AND durable_writes = true;"
        )


def make_metadata(legacy=False):
    system_tables = [make_table("local", [("key", "text")])]
    if legacy:
        system_tables.append(make_table("schema_keyspaces", [("keyspace_name", "text")]))
    shop = FakeKeyspace(
        "shop",
        [
            make_table("users", [("id", "int")], regular=[("name", "text")]),
            make_table(
                "orders",
                [("customer", "text")],
                clustering=[("placed", "timestamp")],
                regular=[("total", "double")],
            ),
        ],
    )
    return SimpleNamespace(
        keyspaces={
            "system": FakeKeyspace("system", system_tables),
            "shop": shop,
            "other": FakeKeyspace("other"),
        }
    )


@pytest.fixture
def settings():
    return ConnectionSettings(host="10.0.0.1", port=9042, keyspace="shop", max_trace_wait=0)


@pytest.fixture
def metadata():
    return make_metadata()


@pytest.fixture
def factory(metadata):
    return FakeConnectionFactory(metadata)


@pytest.fixture
def session(settings, factory):
    return KeyspaceSession.open(settings, factory)


@pytest.fixture
def out():
    return io.StringIO()


@pytest.fixture
def printer(out):
    return Printer(out, OutputConfig(colors=False))
