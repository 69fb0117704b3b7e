"""Expand / collapse state machine per node.

    collapsed --expand--> loading --success--> loaded
        ^                    |                   |
        +------failure-------+                   |
        +<-------------collapse------------------+
    loaded/collapsed with children cached --expand--> loaded (no refetch)
"""

from __future__ import annotations

import asyncio
from enum import Enum
from typing import Callable

from ..client.api_client_core import _ClientLogger
from ..models import FetchError, NodeNotFoundError, OrgNode
from .fetch_coordinator import FetchCoordinator
from .repository import NodeRepository


class NodeState(str, Enum):
    COLLAPSED = "collapsed"
    LOADING = "loading"
    LOADED = "loaded"


StateListener = Callable[[str, NodeState], None]


class TreeNavigationController:
    def __init__(self, repository: NodeRepository, coordinator: FetchCoordinator) -> None:
        self.repository = repository
        self.coordinator = coordinator
        self._loading: dict[str, asyncio.Future[list[OrgNode]]] = {}
        self._listeners: list[StateListener] = []
        self._logger = _ClientLogger("NAV")

    def state(self, node_id: str) -> NodeState:
        node = self.repository.require(node_id)
        if node_id in self._loading:
            return NodeState.LOADING
        if node.expanded and node.children_loaded:
            return NodeState.LOADED
        return NodeState.COLLAPSED

    async def expand(self, node_id: str, *, force: bool = False) -> NodeState:
        """Expand ``node_id``, fetching its children the first time.

        Raises FetchError after returning the node to COLLAPSED when the
        fetch fails; expanding again retries.
        """
        node = self.repository.require(node_id)
        if node.is_temporary:
            raise NodeNotFoundError(node_id, "Node is still awaiting confirmation")

        pending = self._loading.get(node_id)
        if pending is not None:
            # Already LOADING: join the transition that is under way
            self.repository.set_flags(node_id, expanded=True)
            await asyncio.shield(pending)
            return self.state(node_id)

        if node.children_loaded and not force:
            self.repository.set_flags(node_id, expanded=True)
            self._notify(node_id)
            return NodeState.LOADED

        self.repository.set_flags(node_id, expanded=True)
        future = asyncio.ensure_future(self.coordinator.load_children(node_id))
        # Registered before any waiter so the transition out of LOADING happens
        # even if every caller has been cancelled
        future.add_done_callback(lambda f: self._finish_loading(node_id, f))
        self._loading[node_id] = future
        self._notify(node_id)

        await asyncio.shield(future)
        return self.state(node_id)

    def _finish_loading(self, node_id: str, future: asyncio.Future[list[OrgNode]]) -> None:
        self._loading.pop(node_id, None)
        if node_id not in self.repository:
            return
        if future.cancelled() or future.exception() is not None:
            self.repository.set_flags(node_id, expanded=False)
        self._notify(node_id)

    def collapse(self, node_id: str) -> NodeState:
        """Hide the children of ``node_id``. Cached children and any fetch in flight are kept."""
        self.repository.set_flags(node_id, expanded=False)
        self._notify(node_id)
        return self.state(node_id)

    async def toggle(self, node_id: str) -> NodeState:
        if self.repository.require(node_id).expanded:
            return self.collapse(node_id)
        return await self.expand(node_id)

    async def load_root_page(self, page: int) -> list[OrgNode]:
        return await self.coordinator.load_root_page(page)

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, node_id: str) -> None:
        state = self.state(node_id)
        self._logger.debug(f"{node_id} -> {state.value}")
        for listener in list(self._listeners):
            listener(node_id, state)
