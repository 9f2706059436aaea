import pytest
from cassandra.auth import PlainTextAuthProvider

from cqlshell import cassandra_conn
from cqlshell.cassandra_conn import CassandraConnection, KeyspaceSession
from cqlshell.errors import SessionConnectionError, TracingStateError
from cqlshell.settings import ConnectionSettings
from tests.conftest import FakeConnectionFactory, make_metadata


class FakeCluster:
    instances = []
    fail_with = None

    def __init__(self, contact_points, **kwargs):
        self.contact_points = contact_points
        self.kwargs = kwargs
        self.shutdown_calls = 0
        FakeCluster.instances.append(self)

    def connect(self, keyspace=None):
        if FakeCluster.fail_with is not None:
            raise FakeCluster.fail_with
        self.keyspace = keyspace
        return object()

    def shutdown(self):
        self.shutdown_calls += 1


@pytest.fixture
def fake_cluster(monkeypatch):
    FakeCluster.instances = []
    FakeCluster.fail_with = None
    monkeypatch.setattr(cassandra_conn, "Cluster", FakeCluster)
    return FakeCluster


def test_connect_binds_keyspace(fake_cluster, settings):
    connection = CassandraConnection(settings, "shop").connect()

    cluster = fake_cluster.instances[0]
    assert cluster.contact_points == ["10.0.0.1"]
    assert cluster.kwargs["port"] == 9042
    assert cluster.keyspace == "shop"
    assert "auth_provider" not in cluster.kwargs
    assert "protocol_version" not in cluster.kwargs
    assert connection.session is not None


def test_connect_uses_credentials_only_when_complete(fake_cluster):
    CassandraConnection(ConnectionSettings(username="cassandra", password="secret"), "system").connect()
    CassandraConnection(ConnectionSettings(username="cassandra"), "system").connect()

    with_auth, without_auth = fake_cluster.instances
    assert isinstance(with_auth.kwargs["auth_provider"], PlainTextAuthProvider)
    assert "auth_provider" not in without_auth.kwargs


def test_connect_failure_releases_cluster(fake_cluster, settings):
    fake_cluster.fail_with = RuntimeError("NoHostAvailable")

    with pytest.raises(SessionConnectionError) as excinfo:
        CassandraConnection(settings, "shop").connect()

    assert excinfo.value.keyspace == "shop"
    assert "NoHostAvailable" in str(excinfo.value)
    assert fake_cluster.instances[0].shutdown_calls == 1


def test_close_is_idempotent(fake_cluster, settings):
    connection = CassandraConnection(settings, "shop").connect()
    connection.close()
    connection.close()
    assert fake_cluster.instances[0].shutdown_calls == 1
    assert connection.session is None


def test_rebind_replaces_connection(session, factory):
    first = session.connection
    session.rebind("other")
    assert session.keyspace == "other"
    assert first.closed
    assert factory.open_connections == [session.connection]


def test_failed_rebind_leaves_exactly_one_open_connection(session, factory):
    factory.fail_keyspaces.add("nope")
    with pytest.raises(SessionConnectionError):
        session.rebind("nope")
    assert session.keyspace == "shop"
    assert factory.open_connections == [session.connection]


def test_rebind_keeps_tracing_flag(session):
    session.enable_tracing()
    session.rebind("other")
    assert session.tracing_enabled


def test_clone_is_independent(session, factory):
    clone = session.clone()
    assert clone is not session.connection
    assert clone.keyspace == session.keyspace
    clone.close()
    assert not session.connection.closed


def test_tracing_toggles(session):
    session.enable_tracing()
    with pytest.raises(TracingStateError):
        session.enable_tracing()
    session.disable_tracing()
    with pytest.raises(TracingStateError):
        session.disable_tracing()
    assert session.tracing_enabled is False


def test_schema_generation_detected_once(settings):
    metadata = make_metadata(legacy=True)
    session = KeyspaceSession.open(settings, FakeConnectionFactory(metadata))

    assert session.uses_system_schema() is False
    metadata.keyspaces["system"].tables.pop("schema_keyspaces")
    assert session.uses_system_schema() is False


def test_current_schema_detected(session):
    assert session.uses_system_schema() is True


def test_context_manager_closes_connection(settings, factory):
    with KeyspaceSession.open(settings, factory) as session:
        pass
    assert session.connection.closed


def test_settings_from_env(monkeypatch):
    monkeypatch.setenv("CASSANDRA_HOST", "db.internal")
    monkeypatch.setenv("CASSANDRA_PORT", "19042")
    monkeypatch.setenv("CASSANDRA_KEYSPACE", "shop")
    monkeypatch.setenv("CASSANDRA_PROTOCOL_VERSION", "4")
    monkeypatch.delenv("CASSANDRA_USERNAME", raising=False)

    settings = ConnectionSettings.from_env()

    assert (settings.host, settings.port, settings.keyspace) == ("db.internal", 19042, "shop")
    assert settings.protocol_version == 4
    assert settings.has_credentials is False
