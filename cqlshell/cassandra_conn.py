import logging
from typing import Callable, Optional

from cassandra import ConsistencyLevel
from cassandra.auth import PlainTextAuthProvider
from cassandra.cluster import EXEC_PROFILE_DEFAULT, Cluster, ExecutionProfile
from cassandra.policies import WhiteListRoundRobinPolicy
from cassandra.query import dict_factory

from cqlshell.errors import SessionConnectionError, TracingStateError
from cqlshell.settings import ConnectionSettings

log = logging.getLogger(__name__)

LEGACY_SCHEMA_TABLE = "schema_keyspaces"


class CassandraConnection:
    """One driver ``Cluster`` and the ``Session`` bound to a single keyspace."""

    def __init__(self, settings: ConnectionSettings, keyspace: str):
        self.settings = settings
        self.keyspace = keyspace
        self.cluster = None
        self.session = None

    def _build_cluster(self) -> Cluster:
        s = self.settings
        profile = ExecutionProfile(
            load_balancing_policy=WhiteListRoundRobinPolicy([s.host]),
            consistency_level=ConsistencyLevel.ONE,
            request_timeout=s.request_timeout,
            row_factory=dict_factory,
        )
        kwargs = {}
        if s.has_credentials:
            kwargs["auth_provider"] = PlainTextAuthProvider(username=s.username, password=s.password)
        if s.protocol_version:
            kwargs["protocol_version"] = s.protocol_version
        return Cluster(
            [s.host],
            port=s.port,
            connect_timeout=s.connect_timeout,
            control_connection_timeout=s.connect_timeout,
            max_schema_agreement_wait=s.max_schema_agreement_wait,
            execution_profiles={EXEC_PROFILE_DEFAULT: profile},
            **kwargs,
        )

    def connect(self) -> "CassandraConnection":
        s = self.settings
        log.debug(f"connecting to {s.host}:{s.port} keyspace={self.keyspace!r}")
        cluster = self._build_cluster()
        try:
            self.session = cluster.connect(self.keyspace or None)
        except Exception as e:
            cluster.shutdown()
            raise SessionConnectionError(s.host, s.port, self.keyspace, e) from e
        self.cluster = cluster
        return self

    def close(self) -> None:
        if self.cluster is not None:
            log.debug(f"closing session {self.settings.host}:{self.settings.port} keyspace={self.keyspace!r}")
            self.cluster.shutdown()
        self.cluster = None
        self.session = None


def connect(settings: ConnectionSettings, keyspace: str) -> CassandraConnection:
    return CassandraConnection(settings, keyspace).connect()


class KeyspaceSession:
    """The shell's binding to one host/port/credentials/keyspace tuple.

    Owns exactly one live :class:`CassandraConnection`. The driver binds one
    keyspace per session, so switching keyspace means opening a new
    connection and releasing the old one (:meth:`rebind`).
    """

    def __init__(
        self,
        settings: ConnectionSettings,
        connection,
        connection_factory: Callable[[ConnectionSettings, str], CassandraConnection] = connect,
    ):
        self.settings = settings
        self.connection = connection
        self.keyspace = connection.keyspace
        self.tracing_enabled = False
        self._connect = connection_factory
        self._system_schema: Optional[bool] = None

    @classmethod
    def open(
        cls,
        settings: ConnectionSettings,
        connection_factory: Callable[[ConnectionSettings, str], CassandraConnection] = connect,
    ) -> "KeyspaceSession":
        return cls(settings, connection_factory(settings, settings.keyspace), connection_factory)

    @property
    def host(self) -> str:
        return self.settings.host

    @property
    def port(self) -> int:
        return self.settings.port

    @property
    def metadata(self):
        return self.connection.cluster.metadata

    def rebind(self, keyspace: str) -> None:
        """Bind to ``keyspace``; on failure the current binding is left untouched."""
        connection = self._connect(self.settings, keyspace)
        previous = self.connection
        self.connection, self.keyspace = connection, keyspace
        log.info(f"switched keyspace {previous.keyspace!r} -> {keyspace!r}")
        previous.close()

    def clone(self) -> CassandraConnection:
        """A new connection with the same coordinates and keyspace, owned by the caller."""
        return self._connect(self.settings, self.keyspace)

    def enable_tracing(self) -> None:
        if self.tracing_enabled:
            raise TracingStateError("Tracing is already enabled. Use TRACING OFF to disable.")
        self.tracing_enabled = True

    def disable_tracing(self) -> None:
        if not self.tracing_enabled:
            raise TracingStateError("Tracing is not enabled.")
        self.tracing_enabled = False

    def uses_system_schema(self) -> bool:
        """True when the cluster exposes ``system_schema`` rather than the legacy ``system.schema_*`` tables."""
        if self._system_schema is None:
            system = self.metadata.keyspaces.get("system")
            self._system_schema = system is not None and LEGACY_SCHEMA_TABLE not in system.tables
            log.debug(f"system_schema tables in use: {self._system_schema}")
        return self._system_schema

    def execute(self, cql: str, params=None):
        return self.connection.session.execute(cql, params)

    def execute_async(self, statement, trace: bool = False):
        return self.connection.session.execute_async(statement, trace=trace)

    def close(self) -> None:
        self.connection.close()

    def __enter__(self) -> "KeyspaceSession":
        return self

    def __exit__(self, *exc) -> None:
        self.close()
