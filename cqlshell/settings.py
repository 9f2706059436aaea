import os
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

load_dotenv()


def _optional_int(name: str) -> Optional[int]:
    value = os.getenv(name)
    return int(value) if value else None


class ConnectionSettings(BaseModel):
    host: str = Field(default="127.0.0.1", description="Cassandra host to connect to")
    port: int = Field(default=9042, description="Cassandra native protocol port")
    keyspace: str = Field(default="system", description="Keyspace bound at startup")
    username: Optional[str] = None
    password: Optional[str] = None
    connect_timeout: float = 10.0
    request_timeout: float = 10.0
    protocol_version: Optional[int] = None
    max_schema_agreement_wait: int = 120
    max_trace_wait: float = Field(
        default=2.0,
        description="Seconds to wait for the coordinator to finish writing a trace session",
    )

    @property
    def has_credentials(self) -> bool:
        return bool(self.username and self.password)

    @classmethod
    def from_env(cls) -> "ConnectionSettings":
        return cls(
            host=os.getenv("CASSANDRA_HOST", "127.0.0.1"),
            port=int(os.getenv("CASSANDRA_PORT", 9042)),
            keyspace=os.getenv("CASSANDRA_KEYSPACE", "system"),
            username=os.getenv("CASSANDRA_USERNAME") or None,
            password=os.getenv("CASSANDRA_PASSWORD") or None,
            connect_timeout=float(os.getenv("CASSANDRA_CONNECT_TIMEOUT", 10)),
            request_timeout=float(os.getenv("CASSANDRA_REQUEST_TIMEOUT", 10)),
            protocol_version=_optional_int("CASSANDRA_PROTOCOL_VERSION"),
            max_trace_wait=float(os.getenv("CQLSHELL_MAX_TRACE_WAIT", 2.0)),
        )
