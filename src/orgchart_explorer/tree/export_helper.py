"""Flatten the loaded tree into CSV rows and write them out.

``flatten_rows`` is pure: it reads the repository and never fetches.
``CsvExporter`` is the collaborator that turns (headers, rows) into a file.
"""

from __future__ import annotations

import csv
import re
from datetime import date
from pathlib import Path
from typing import Any, Iterable, Sequence

from ..client.api_client_core import _ClientLogger
from ..models import NodeNotFoundError, OrgNode
from .repository import NodeRepository

EXPORT_HEADERS: tuple[str, ...] = ("id", "parentId", "label", "description", "numberOfEmployees")

Row = tuple[Any, ...]


def node_row(node: OrgNode) -> Row:
    return (node.id, node.parent_id, node.label, node.description, node.number_of_employees)


def flatten_rows(
    repository: NodeRepository,
    root_id: str | None = None,
    *,
    visible_only: bool = True,
) -> list[Row]:
    """Depth-first pre-order rows for a subtree.

    Each parent row comes before its subtree; siblings keep repository order.
    ``root_id=None`` covers every root. With ``visible_only`` the walk only
    descends into expanded nodes, otherwise into everything already loaded.
    """
    rows: list[Row] = []

    def walk(node: OrgNode) -> None:
        rows.append(node_row(node))
        if visible_only and not node.expanded:
            return
        for child in repository.children_of(node.id):
            walk(child)

    if root_id is None:
        for root in repository.roots():
            walk(root)
    else:
        node = repository.get(root_id)
        if node is None:
            raise NodeNotFoundError(root_id, "Export root not in repository")
        walk(node)

    return rows


def export_filename(title: str, today: date | None = None) -> str:
    """``Sales Dept`` -> ``Sales_Dept_2026-10-19.csv``."""
    stamp = (today or date.today()).isoformat()
    base = re.sub(r"\s+", "_", title.strip())
    return f"{base}_{stamp}.csv"


class CsvExporter:
    """Write every cell quoted, ``None`` as an empty cell, one row per line."""

    def __init__(self, output_dir: str | Path = ".") -> None:
        self.output_dir = Path(output_dir)
        self._logger = _ClientLogger("EXPORT")

    def write(
        self,
        title: str,
        headers: Sequence[str],
        rows: Iterable[Sequence[Any]],
        today: date | None = None,
    ) -> Path:
        self.output_dir.mkdir(parents=True, exist_ok=True)
        path = self.output_dir / export_filename(title, today)

        count = 0
        with open(path, "w", encoding="utf-8", newline="") as f:
            writer = csv.writer(f, quoting=csv.QUOTE_ALL, lineterminator="\n")
            writer.writerow(headers)
            for row in rows:
                writer.writerow(["" if cell is None else cell for cell in row])
                count += 1

        self._logger.info(f"Exported {count} row(s) to {path}")
        return path
