"""
Statement category vocabulary and tracking sets.

A tracking set is the ordered list of statement categories a version
records. It is persisted as a comma-joined string with no trailing
separator, in the fixed order of STATEMENT_CATEGORIES.

Invariants:
    - STATEMENT_CATEGORIES order never changes; persisted sets rely on it
    - Every category belongs to exactly one log kind (DDL or DML)
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from .types import LogKind

# (flag name, label, log kind), iterated in this order when building a set
STATEMENT_CATEGORIES: tuple[tuple[str, str, LogKind], ...] = (
    ("alter_table", "ALTER TABLE", LogKind.DDL),
    ("rename_table", "RENAME TABLE", LogKind.DDL),
    ("create_table", "CREATE TABLE", LogKind.DDL),
    ("drop_table", "DROP TABLE", LogKind.DDL),
    ("alter_view", "ALTER VIEW", LogKind.DDL),
    ("create_view", "CREATE VIEW", LogKind.DDL),
    ("drop_view", "DROP VIEW", LogKind.DDL),
    ("create_index", "CREATE INDEX", LogKind.DDL),
    ("drop_index", "DROP INDEX", LogKind.DDL),
    ("insert", "INSERT", LogKind.DML),
    ("update", "UPDATE", LogKind.DML),
    ("delete", "DELETE", LogKind.DML),
    ("truncate", "TRUNCATE", LogKind.DML),
)

CATEGORY_FLAGS: tuple[str, ...] = tuple(flag for flag, _, _ in STATEMENT_CATEGORIES)
CATEGORY_LABELS: tuple[str, ...] = tuple(label for _, label, _ in STATEMENT_CATEGORIES)

_KIND_BY_LABEL: dict[str, LogKind] = {label: kind for _, label, kind in STATEMENT_CATEGORIES}


def build_tracking_set(selection: Mapping[str, Any]) -> str:
    """Build the persisted tracking set string from flag selections.

    A flag absent from the selection counts as not selected; any truthy
    value selects it.

    Args:
        selection: Mapping of flag name (e.g. "alter_table") to a truthy value

    Returns:
        Comma-joined labels in category order, e.g. "ALTER TABLE,INSERT"
    """
    tracking_set = ""
    for flag, label, _ in STATEMENT_CATEGORIES:
        if selection.get(flag):
            tracking_set += label + ","
    if tracking_set.endswith(","):
        tracking_set = tracking_set[:-1]
    return tracking_set


def parse_tracking_set(text: str) -> tuple[str, ...]:
    """Split a persisted tracking set into its labels.

    Surrounding whitespace is trimmed and empty items are dropped.
    """
    return tuple(item.strip() for item in text.split(",") if item.strip())


def tracking_set_from_labels(labels: Iterable[str]) -> str:
    """Normalise an iterable of labels into a persisted tracking set.

    Labels are reordered into category order; unknown labels are dropped.
    """
    wanted = {label.strip().upper() for label in labels}
    return ",".join(label for label in CATEGORY_LABELS if label in wanted)


def default_selection(labels: Iterable[str]) -> dict[str, bool]:
    """Flag selection with every flag whose label is in labels set to True."""
    wanted = set(labels)
    return {flag: label in wanted for flag, label, _ in STATEMENT_CATEGORIES}


def kind_of(label: str) -> LogKind | None:
    """Log kind a category label is recorded into."""
    return _KIND_BY_LABEL.get(label)
