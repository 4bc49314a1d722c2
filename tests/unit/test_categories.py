"""
Unit tests for statement categories and tracking sets.

Tests cover:
- Building tracking set strings from flag selections
- Parsing and normalising persisted sets
- Category to log kind mapping
"""

from tracklog.tracker.categories import (
    CATEGORY_FLAGS,
    CATEGORY_LABELS,
    build_tracking_set,
    default_selection,
    kind_of,
    parse_tracking_set,
    tracking_set_from_labels,
)
from tracklog.tracker.types import LogKind


class TestBuildTrackingSet:
    """Tests for build_tracking_set."""

    def test_alter_table_and_insert(self):
        """Selected flags join in category order without a trailing comma."""
        selection = {flag: False for flag in CATEGORY_FLAGS}
        selection["alter_table"] = True
        selection["insert"] = True

        assert build_tracking_set(selection) == "ALTER TABLE,INSERT"

    def test_selection_order_does_not_matter(self):
        """Output follows the category order, not the selection order."""
        selection = {"truncate": "on", "create_view": "on", "alter_table": "on"}

        assert build_tracking_set(selection) == "ALTER TABLE,CREATE VIEW,TRUNCATE"

    def test_empty_selection(self):
        """An empty selection builds an empty set."""
        assert build_tracking_set({}) == ""

    def test_all_selected(self):
        """Selecting every flag lists all labels in order."""
        selection = {flag: True for flag in CATEGORY_FLAGS}

        assert build_tracking_set(selection) == ",".join(CATEGORY_LABELS)

    def test_thirteen_categories(self):
        """The vocabulary has thirteen categories."""
        assert len(CATEGORY_LABELS) == 13
        assert CATEGORY_LABELS[0] == "ALTER TABLE"
        assert CATEGORY_LABELS[-1] == "TRUNCATE"


class TestParseTrackingSet:
    """Tests for parsing and normalising tracking sets."""

    def test_round_trip(self):
        """Parsing a built set returns its labels."""
        text = "ALTER TABLE,CREATE INDEX,DELETE"

        labels = parse_tracking_set(text)

        assert labels == ("ALTER TABLE", "CREATE INDEX", "DELETE")
        assert build_tracking_set(default_selection(labels)) == text

    def test_parse_trims_and_drops_empty(self):
        """Parsing trims labels and drops empty ones."""
        assert parse_tracking_set(" INSERT , ,UPDATE,") == ("INSERT", "UPDATE")

    def test_from_labels_reorders_and_drops_unknown(self):
        """Labels are put in category order; unknown ones are dropped."""
        result = tracking_set_from_labels(["update", "ALTER TABLE", "SELECT"])

        assert result == "ALTER TABLE,UPDATE"


class TestKindOf:
    """Tests for kind_of."""

    def test_ddl_categories(self):
        """Structure categories map to the ddlog."""
        for label in CATEGORY_LABELS[:9]:
            assert kind_of(label) is LogKind.DDL

    def test_dml_categories(self):
        """Data categories map to the dmlog."""
        for label in ("INSERT", "UPDATE", "DELETE", "TRUNCATE"):
            assert kind_of(label) is LogKind.DML

    def test_unknown(self):
        """Unknown labels have no log kind."""
        assert kind_of("SELECT") is None
