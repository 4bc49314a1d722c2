"""
Catalog and SQL connection layer.

This module provides:
- Catalog / SqlConnection protocols used by the core
- A SQLite implementation (one file per database)
- Table name grouping for the untracked-table listing

Invariants:
    - Catalog lookups on unknown tables raise CatalogError
    - Connection-level failures raise SqlConnectionError, statement
      failures raise StatementExecutionError
"""

from .base import Catalog, SqlConnection, StatementResult, group_flag, group_table_names
from .sqlite import SqliteCatalog, SqliteConnection, quote_identifier, split_statements

__all__ = [
    "Catalog",
    "SqlConnection",
    "StatementResult",
    "group_flag",
    "group_table_names",
    "SqliteCatalog",
    "SqliteConnection",
    "quote_identifier",
    "split_statements",
]
