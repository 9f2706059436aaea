class ShellError(Exception):
    """Base class for errors reported to the shell user."""


class SessionConnectionError(ShellError):
    """Creating a driver session failed (initial connect, rebind or clone)."""

    def __init__(self, host: str, port: int, keyspace: str, cause: Exception):
        self.host = host
        self.port = port
        self.keyspace = keyspace
        self.cause = cause
        super().__init__(f"cannot connect to {host}:{port} (keyspace {keyspace!r}): {cause}")


class MetadataNotFound(ShellError):
    pass


class StatementExecutionError(ShellError):
    def __init__(self, cql: str, cause: Exception):
        self.cql = cql
        self.cause = cause
        super().__init__(f"error executing cql cql={cql!r} err={cause}")


class TracingStateError(ShellError):
    pass


class TraceUnavailable(ShellError):
    pass
