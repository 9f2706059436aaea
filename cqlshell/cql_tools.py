import re
from typing import Dict, List, Optional, Sequence, Tuple

from cqlshell.errors import MetadataNotFound
from cqlshell.models import CLUSTERING, PARTITION_KEY, REGULAR, ColumnDescriptor

SYSTEM_SCHEMA_KEYSPACES = "SELECT keyspace_name FROM system_schema.keyspaces"
LEGACY_SCHEMA_KEYSPACES = "SELECT keyspace_name FROM system.schema_keyspaces"

_IDENTIFIER = r'(?:"(?:[^"]|"")+"|\w+)'
_FROM_CLAUSE = re.compile(rf"\bfrom\s+({_IDENTIFIER})(?:\s*\.\s*({_IDENTIFIER}))?", re.IGNORECASE)


def unquote_name(name: str) -> str:
    """CQL identifier rules: quoted names are verbatim, bare names are case-insensitive."""
    if len(name) >= 2 and name[0] == name[-1] == '"':
        return name[1:-1].replace('""', '"')
    return name.lower()


def select_source(cql: str, default_keyspace: Optional[str]) -> Tuple[Optional[str], Optional[str]]:
    """``(keyspace, table)`` named by the FROM clause of a SELECT statement."""
    match = _FROM_CLAUSE.search(cql)
    if match is None:
        return default_keyspace, None
    first, second = match.groups()
    if second is None:
        return default_keyspace, unquote_name(first)
    return unquote_name(first), unquote_name(second)


class CassandraDatabase:
    """Read-only access to keyspace, table and column metadata of a session."""

    def __init__(self, session):
        self.session = session

    def _table(self, keyspace: Optional[str], table: Optional[str]):
        ks = self.session.metadata.keyspaces.get(keyspace) if keyspace else None
        if ks is None:
            return None
        return ks.tables.get(table) if table else None

    def get_keyspace_names(self) -> List[str]:
        query = SYSTEM_SCHEMA_KEYSPACES if self.session.uses_system_schema() else LEGACY_SCHEMA_KEYSPACES
        rows = self.session.execute(query)
        return sorted(r["keyspace_name"] for r in rows)

    def get_table_names(self, keyspace: Optional[str] = None) -> List[str]:
        ks = self.session.metadata.keyspaces.get(keyspace or self.session.keyspace)
        if ks is None:
            return []
        return sorted(ks.tables)

    def get_columns(self, keyspace: Optional[str], table: str) -> Dict[str, ColumnDescriptor]:
        keyspace = keyspace or self.session.keyspace
        tm = self._table(keyspace, table)
        if tm is None:
            raise MetadataNotFound(f"Table {table!r} not found in keyspace {keyspace!r}")
        return {
            name: ColumnDescriptor(name, col.cql_type, keyspace, table)
            for name, col in tm.columns.items()
        }

    def column_kind(self, keyspace: Optional[str], table: Optional[str], column: str) -> str:
        tm = self._table(keyspace, table)
        if tm is None:
            return REGULAR
        if any(c.name == column for c in tm.partition_key):
            return PARTITION_KEY
        if any(c.name == column for c in tm.clustering_key):
            return CLUSTERING
        return REGULAR

    def is_partition_key(self, column: ColumnDescriptor) -> bool:
        return self.column_kind(column.keyspace, column.table, column.name) == PARTITION_KEY

    def is_clustering_key(self, column: ColumnDescriptor) -> bool:
        return self.column_kind(column.keyspace, column.table, column.name) == CLUSTERING

    def column_roles(self, columns: Sequence[ColumnDescriptor]) -> Dict[str, str]:
        return {c.name: self.column_kind(c.keyspace, c.table, c.name) for c in columns}

    def describe_keyspace(self, keyspace: Optional[str] = None) -> str:
        keyspace = keyspace or self.session.keyspace
        ks = self.session.metadata.keyspaces.get(keyspace)
        if ks is None:
            raise MetadataNotFound(f"Keyspace {keyspace!r} not found")
        return ks.export_as_string()

    def result_columns(self, cql: str, column_names, column_types) -> List[ColumnDescriptor]:
        """Column descriptors for the result of ``cql`` in driver column order."""
        keyspace, table = select_source(cql, self.session.keyspace)
        return [
            ColumnDescriptor(name, cql_type, keyspace, table)
            for name, cql_type in zip(column_names or [], column_types or [])
        ]
