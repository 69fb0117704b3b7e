"""Deduplicated asynchronous loading of root pages and child lists.

Every request is identified by a key: the parent id for a children fetch,
``root:<page>`` for a root page. While a key is in flight, further requests
for it await the same task instead of issuing another network call. The key
leaves the in-flight map when the task finishes, successfully or not, so a
failed request can be retried.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Protocol

import httpx

from ..client.api_client_core import _ClientLogger
from ..models import ROOT_KEY_PREFIX, APIError, FetchError, NodeCreateRequest, NodeNotFoundError, OrgNode
from .repository import NodeRepository
from .source_selector import RootSourceSelector


class OrgChartBackend(Protocol):
    """Fetch and create capabilities consumed by the core."""

    async def fetch_root_page(self, endpoint: str, page: int) -> list[OrgNode]: ...

    async def fetch_children(self, parent_id: str) -> list[OrgNode]: ...

    async def create_node(self, request: NodeCreateRequest) -> OrgNode: ...


def root_key(page: int) -> str:
    return f"{ROOT_KEY_PREFIX}{page}"


class FetchCoordinator:
    def __init__(
        self,
        client: OrgChartBackend,
        repository: NodeRepository,
        selector: RootSourceSelector,
    ) -> None:
        self.client = client
        self.repository = repository
        self.selector = selector
        self.loaded_root_pages: set[int] = set()
        self._in_flight: dict[str, asyncio.Task[list[OrgNode]]] = {}
        self._logger = _ClientLogger("FETCH")

    def is_in_flight(self, key: str) -> bool:
        return key in self._in_flight

    def in_flight(self, key: str) -> asyncio.Task[list[OrgNode]] | None:
        return self._in_flight.get(key)

    def pending_keys(self) -> list[str]:
        return list(self._in_flight)

    async def load_children(self, parent_id: str) -> list[OrgNode]:
        """Fetch and merge the children of ``parent_id``; raises FetchError."""
        if self.repository.require(parent_id).is_temporary:
            raise NodeNotFoundError(parent_id, "Node is still awaiting confirmation")
        return await self._run(parent_id, lambda: self._fetch_children(parent_id))

    async def load_root_page(self, page: int) -> list[OrgNode]:
        """Fetch and merge root page ``page`` from its round-robin endpoint."""
        endpoint = self.selector.select(page)
        return await self._run(root_key(page), lambda: self._fetch_root_page(endpoint, page))

    async def _run(self, key: str, factory: Callable[[], Awaitable[list[OrgNode]]]) -> list[OrgNode]:
        task = self._in_flight.get(key)
        if task is not None:
            self._logger.debug(f"{key} already in flight; joining existing request")
        else:
            task = asyncio.ensure_future(self._guarded(key, factory))
            # Waiters may all be gone by the time it fails; mark the error as seen
            task.add_done_callback(lambda t: t.cancelled() or t.exception())
            self._in_flight[key] = task
            self._logger.info(f"Fetching {key}")
        # A cancelled waiter (e.g. a collapsed node's UI) must not cancel the fetch
        return await asyncio.shield(task)

    async def _guarded(self, key: str, factory: Callable[[], Awaitable[list[OrgNode]]]) -> list[OrgNode]:
        try:
            nodes = await factory()
        except (APIError, httpx.HTTPError) as e:
            self._logger.warning(f"Fetch {key} failed: {e}")
            raise FetchError(key, e) from e
        finally:
            self._in_flight.pop(key, None)
        self._logger.info(f"Fetched {key}: {len(nodes)} node(s)")
        return nodes

    async def _fetch_children(self, parent_id: str) -> list[OrgNode]:
        nodes = await self.client.fetch_children(parent_id)
        if parent_id not in self.repository:
            self._logger.warning(f"{parent_id} was removed while its children loaded; discarding them")
            return []
        children = self._exact_children(nodes, parent_id)
        self.repository.upsert_many(children)
        self.repository.set_flags(parent_id, children_loaded=True)
        return children

    async def _fetch_root_page(self, endpoint: str, page: int) -> list[OrgNode]:
        nodes = await self.client.fetch_root_page(endpoint, page)
        roots = self._exact_children(nodes, None)
        self.repository.upsert_many(roots)
        self.loaded_root_pages.add(page)
        return roots

    def _exact_children(self, nodes: list[OrgNode], parent_id: str | None) -> list[OrgNode]:
        """Keep only direct children; some backends also return deeper descendants."""
        children = [node for node in nodes if node.parent_id == parent_id]
        dropped = len(nodes) - len(children)
        if dropped:
            self._logger.debug(f"Ignored {dropped} node(s) not directly under {parent_id!r}")
        return children
