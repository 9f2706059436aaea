from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, List, Optional

PARTITION_KEY = "partition_key"
CLUSTERING = "clustering"
REGULAR = "regular"


@dataclass(frozen=True)
class ColumnDescriptor:
    name: str
    cql_type: Any
    keyspace: Optional[str] = None
    table: Optional[str] = None


@dataclass
class TraceEvent:
    timestamp: Optional[datetime]
    source: str
    elapsed: int
    activity: str


@dataclass
class TraceRecord:
    session_id: Any
    coordinator: Optional[str] = None
    duration: Optional[int] = None
    events: List[TraceEvent] = field(default_factory=list)
    complete: bool = True
