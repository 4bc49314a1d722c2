"""
Catalog and SQL connection protocols.

The catalog answers structural questions about tracked databases
(which tables exist, whether one is a view, its columns and indexes,
its CREATE statement). The SQL connection executes statements and owns
the tracking hook that records them.

Invariants:
    - table_list groups names sharing a prefix before the table separator;
      a group is a mapping whose "is<sep>group" member is True
    - execute(..., suppress_tracking=True) never records the statement
"""

from __future__ import annotations

from abc import abstractmethod
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

from ..types import StructuralSnapshot


@dataclass(frozen=True)
class StatementResult:
    """Outcome of one executed statement.

    Attributes:
        statement: Statement text as executed
        rowcount: Rows changed by the statement
    """

    statement: str
    rowcount: int = 0


def group_flag(separator: str) -> str:
    """Member name that marks a table group."""
    return f"is{separator}group"


def group_table_names(names: Iterable[str], separator: str = "__") -> dict[str, Any]:
    """Group table names by the prefix before the first separator.

    Example:
        >>> group_table_names(["app__users", "app__roles", "orders"])
        {'app__': {'is__group': True, 'app__users': {...}, 'app__roles': {...}},
         'orders': {'Name': 'orders'}}
    """
    flag = group_flag(separator)
    grouped: dict[str, Any] = {}
    for name in names:
        leaf = {"Name": name}
        if separator in name.strip(separator):
            key = name.split(separator, 1)[0] + separator
        else:
            key = name

        node = grouped.get(key)
        if key == name and (node is None or not node.get(flag)):
            grouped[name] = leaf
            continue

        # A table named like a group prefix ("app__") lives inside the group
        if node is None or not node.get(flag):
            group = {flag: True}
            if node is not None:
                group[key] = node
            grouped[key] = node = group
        node[name] = leaf
    return grouped


@runtime_checkable
class Catalog(Protocol):
    """Protocol for table catalogs."""

    @abstractmethod
    def table_names(self, db: str) -> list[str]:
        """Flat, sorted list of table and view names."""
        ...

    @abstractmethod
    def table_list(self, db: str) -> Mapping[str, Any]:
        """Table names grouped by prefix (see group_table_names)."""
        ...

    @abstractmethod
    def is_view(self, db: str, table: str) -> bool:
        """Whether the object is a view.

        Raises:
            CatalogError: If the table does not exist
        """
        ...

    @abstractmethod
    def describe(self, db: str, table: str) -> StructuralSnapshot:
        """Current columns and indexes of a table.

        Raises:
            CatalogError: If the table does not exist
        """
        ...

    @abstractmethod
    def create_statement(self, db: str, table: str) -> str:
        """CREATE TABLE/VIEW statement for the table, ending in ";\\n".

        Raises:
            CatalogError: If the table does not exist
        """
        ...


@runtime_checkable
class SqlConnection(Protocol):
    """Protocol for SQL execution connections."""

    @abstractmethod
    def execute(self, statement: str, suppress_tracking: bool = False) -> StatementResult:
        """Execute one statement.

        Args:
            statement: SQL text
            suppress_tracking: Skip the tracking hook for this statement

        Raises:
            StatementExecutionError: If the statement fails
            SqlConnectionError: If the connection is unusable
        """
        ...
