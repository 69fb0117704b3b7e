"""Facade wiring the tree manager together; the surface a UI binds to."""

from __future__ import annotations

from typing import Any, Callable, Sequence

from .client import OrgChartClient
from .models import APIConfiguration, NodeForm, OrgNode
from .tree import (
    EXPORT_HEADERS,
    FetchCoordinator,
    NodeCreationWorkflow,
    NodeRepository,
    NodeState,
    OrgChartBackend,
    RepositoryEvent,
    RootSourceSelector,
    TreeNavigationController,
    flatten_rows,
)


class OrgChartExplorer:
    """Read access to the repository plus expand / collapse / submit."""

    def __init__(self, client: OrgChartBackend, root_endpoints: Sequence[str]) -> None:
        self.client = client
        self.repository = NodeRepository()
        self.selector = RootSourceSelector(root_endpoints)
        self.coordinator = FetchCoordinator(client, self.repository, self.selector)
        self.navigation = TreeNavigationController(self.repository, self.coordinator)
        self.creation = NodeCreationWorkflow(client, self.repository)

    @classmethod
    def from_config(cls, config: APIConfiguration) -> "OrgChartExplorer":
        return cls(OrgChartClient(config), config.root_endpoints)

    async def close(self) -> None:
        close = getattr(self.client, "close", None)
        if close is not None:
            await close()

    async def __aenter__(self) -> "OrgChartExplorer":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    # ---- reads -------------------------------------------------------

    def node(self, node_id: str) -> OrgNode:
        return self.repository.require(node_id)

    def roots(self) -> list[OrgNode]:
        return self.repository.roots()

    def children_of(self, parent_id: str | None) -> list[OrgNode]:
        return self.repository.children_of(parent_id)

    def state(self, node_id: str) -> NodeState:
        return self.navigation.state(node_id)

    def snapshot(self, parent_id: str | None = None) -> list[dict[str, Any]]:
        """Children of ``parent_id`` as wire-style dicts, UI flags and state included."""
        return [
            {**node.model_dump(by_alias=True), "state": self.navigation.state(node.id).value}
            for node in self.repository.children_of(parent_id)
        ]

    def outline(self) -> str:
        """Indented text outline of the visible tree."""
        lines: list[str] = []

        def walk(parent_id: str | None, depth: int) -> None:
            for node in self.repository.children_of(parent_id):
                marker = "-" if node.expanded else "+"
                pending = " (pending)" if node.is_temporary else ""
                lines.append(
                    f"{'  ' * depth}{marker} {node.label} [{node.id}] "
                    f"({node.number_of_employees} employees){pending}"
                )
                if node.expanded:
                    walk(node.id, depth + 1)

        walk(None, 0)
        return "\n".join(lines)

    def export_rows(
        self, root_id: str | None = None, *, visible_only: bool = True
    ) -> tuple[tuple[str, ...], list[tuple[Any, ...]]]:
        """``(headers, rows)`` for the export collaborator."""
        return EXPORT_HEADERS, flatten_rows(self.repository, root_id, visible_only=visible_only)

    # ---- actions -----------------------------------------------------

    async def load_root_page(self, page: int) -> list[OrgNode]:
        return await self.navigation.load_root_page(page)

    async def expand(self, node_id: str, *, force: bool = False) -> NodeState:
        return await self.navigation.expand(node_id, force=force)

    def collapse(self, node_id: str) -> NodeState:
        return self.navigation.collapse(node_id)

    async def toggle(self, node_id: str) -> NodeState:
        return await self.navigation.toggle(node_id)

    async def submit_new_node(self, form: NodeForm) -> OrgNode:
        return await self.creation.submit(form)

    def subscribe(self, listener: Callable[[RepositoryEvent], None]) -> Callable[[], None]:
        return self.repository.subscribe(listener)
