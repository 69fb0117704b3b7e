"""In-memory keyed store of every fetched or optimistically created node.

The repository is the single source of truth for the UI. Insertion order is
significant: it is the order in which ``children_of`` returns siblings, so a
batch fetched from the backend keeps the backend's order and an optimistic
insert lands after its existing siblings.

All mutation goes through ``upsert_many``, ``remove``, ``replace`` and
``set_flags``; each one notifies subscribers with a ``RepositoryEvent``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Iterable, Iterator, Literal

from ..client.api_client_core import _ClientLogger
from ..models import NodeNotFoundError, OrgNode

EventKind = Literal["upsert", "remove", "replace", "flags"]

_FLAG_FIELDS = ("children_loaded", "expanded")


@dataclass(frozen=True)
class RepositoryEvent:
    kind: EventKind
    ids: tuple[str, ...]


Listener = Callable[[RepositoryEvent], None]


class NodeRepository:
    """Ordered ``id -> OrgNode`` store with change notification."""

    def __init__(self) -> None:
        self._nodes: dict[str, OrgNode] = {}
        self._listeners: list[Listener] = []
        self._logger = _ClientLogger("REPOSITORY")

    # ---- reads -------------------------------------------------------

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._nodes

    def __len__(self) -> int:
        return len(self._nodes)

    def __iter__(self) -> Iterator[OrgNode]:
        return iter(list(self._nodes.values()))

    def get(self, node_id: str) -> OrgNode | None:
        return self._nodes.get(node_id)

    def require(self, node_id: str) -> OrgNode:
        node = self._nodes.get(node_id)
        if node is None:
            raise NodeNotFoundError(node_id, "Node not in repository")
        return node

    def ids(self) -> set[str]:
        return set(self._nodes)

    def all_nodes(self) -> list[OrgNode]:
        return list(self._nodes.values())

    def children_of(self, parent_id: str | None) -> list[OrgNode]:
        """Direct children of ``parent_id`` (``None`` for roots), exact match only."""
        return [node for node in self._nodes.values() if node.parent_id == parent_id]

    def roots(self) -> list[OrgNode]:
        return self.children_of(None)

    def visible_ids(self) -> list[str]:
        """Roots plus the children of expanded nodes, depth-first."""
        visible: list[str] = []

        def walk(parent_id: str | None) -> None:
            for node in self.children_of(parent_id):
                visible.append(node.id)
                if node.expanded:
                    walk(node.id)

        walk(None)
        return visible

    # ---- writes ------------------------------------------------------

    def upsert_many(self, nodes: Iterable[OrgNode], *, overwrite_flags: bool = False) -> list[str]:
        """Merge a batch by id.

        Matching nodes are overwritten field by field but keep their position
        and, unless ``overwrite_flags`` is set, their UI flags. New nodes are
        appended in batch order.
        """
        touched: list[str] = []
        for node in nodes:
            existing = self._nodes.get(node.id)
            if existing is not None and not overwrite_flags:
                node = node.model_copy(
                    update={field: getattr(existing, field) for field in _FLAG_FIELDS}
                )
            self._nodes[node.id] = node
            touched.append(node.id)

        if touched:
            self._emit(RepositoryEvent("upsert", tuple(touched)))
        return touched

    def remove(self, node_id: str) -> OrgNode:
        """Delete a single node. Children are not cascaded."""
        node = self._nodes.pop(node_id, None)
        if node is None:
            raise NodeNotFoundError(node_id, "Cannot remove unknown node")
        self._emit(RepositoryEvent("remove", (node_id,)))
        return node

    def replace(self, old_id: str, node: OrgNode) -> None:
        """Swap ``old_id`` for ``node`` in one step, keeping the old position.

        If ``node.id`` is already stored (a fetch delivered the confirmed node
        first) that entry is dropped so the id stays unique.
        """
        if old_id not in self._nodes:
            raise NodeNotFoundError(old_id, "Cannot replace unknown node")

        rebuilt: dict[str, OrgNode] = {}
        for key, value in self._nodes.items():
            if key == old_id:
                rebuilt[node.id] = node
            elif key != node.id:
                rebuilt[key] = value
        self._nodes = rebuilt

        # Re-home children that were attached to the temporary id
        if old_id != node.id:
            for key, value in list(self._nodes.items()):
                if value.parent_id == old_id:
                    self._nodes[key] = value.model_copy(update={"parent_id": node.id})

        self._emit(RepositoryEvent("replace", (old_id, node.id)))

    def set_flags(
        self,
        node_id: str,
        *,
        expanded: bool | None = None,
        children_loaded: bool | None = None,
    ) -> OrgNode:
        node = self.require(node_id)
        if expanded is not None:
            node.expanded = expanded
        if children_loaded is not None:
            node.children_loaded = children_loaded
        self._emit(RepositoryEvent("flags", (node_id,)))
        return node

    # ---- observers ---------------------------------------------------

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register ``listener``; returns a callable that unregisters it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _emit(self, event: RepositoryEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as e:
                self._logger.error(f"Listener {listener!r} failed on {event.kind} {event.ids}: {e}")
                raise
