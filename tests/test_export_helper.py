"""Tests for row flattening and the CSV export collaborator."""

from datetime import date

import pytest

from orgchart_explorer.models import NodeNotFoundError
from orgchart_explorer.tree import EXPORT_HEADERS, CsvExporter, NodeRepository, export_filename, flatten_rows

from conftest import make_node


@pytest.fixture
def repo():
    repo = NodeRepository()
    repo.upsert_many(
        [
            make_node("1", employees=100),
            make_node("2", employees=50),
            make_node("11", "1", employees=40),
            make_node("12", "1", employees=60),
            make_node("111", "11", employees=5),
            make_node("21", "2", employees=50),
        ]
    )
    repo.set_flags("1", expanded=True, children_loaded=True)
    repo.set_flags("11", children_loaded=True)
    repo.set_flags("2", children_loaded=True)
    return repo


class TestFlattenRows:
    def test_visible_rows_depth_first(self, repo):
        ids = [row[0] for row in flatten_rows(repo)]
        # 11 is collapsed so 111 is hidden; 2 is collapsed so 21 is hidden
        assert ids == ["1", "11", "12", "2"]

    def test_all_loaded_rows_depth_first(self, repo):
        ids = [row[0] for row in flatten_rows(repo, visible_only=False)]
        assert ids == ["1", "11", "111", "12", "2", "21"]

    def test_subtree_starts_with_its_root(self, repo):
        ids = [row[0] for row in flatten_rows(repo, "1", visible_only=False)]
        assert ids == ["1", "11", "111", "12"]

    def test_row_field_order_matches_headers(self, repo):
        row = flatten_rows(repo, "12")[0]
        assert len(row) == len(EXPORT_HEADERS)
        assert row == ("12", "1", "Dept 12", "Description of 12", 60)

    def test_unknown_root(self, repo):
        with pytest.raises(NodeNotFoundError):
            flatten_rows(repo, "missing")


class TestCsvExporter:
    def test_filename_uses_title_and_date(self):
        assert export_filename("Sales  and Marketing", date(2026, 10, 19)) == "Sales_and_Marketing_2026-10-19.csv"

    def test_every_cell_quoted_and_escaped(self, tmp_path):
        rows = [("1", None, 'The "Core" team', "Line one", 3)]
        path = CsvExporter(tmp_path).write("org chart", EXPORT_HEADERS, rows, today=date(2026, 1, 2))

        assert path == tmp_path / "org_chart_2026-01-02.csv"
        assert path.read_text(encoding="utf-8") == (
            '"id","parentId","label","description","numberOfEmployees"\n'
            '"1","","The ""Core"" team","Line one","3"\n'
        )

    def test_creates_output_directory(self, tmp_path):
        target = tmp_path / "nested" / "exports"
        path = CsvExporter(target).write("x", EXPORT_HEADERS, [])
        assert path.parent == target
        assert path.read_text(encoding="utf-8").count("\n") == 1
