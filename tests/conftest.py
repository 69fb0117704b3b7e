"""Shared fixtures: an in-memory backend standing in for the department API."""

import asyncio

import pytest

from orgchart_explorer.explorer import OrgChartExplorer
from orgchart_explorer.models import NetworkError, NodeCreateRequest, OrgNode, RequestRejectedError


def make_node(node_id, parent_id=None, label=None, employees=10, **flags):
    return OrgNode(
        id=node_id,
        parent_id=parent_id,
        label=label or f"Dept {node_id}",
        description=f"Description of {node_id}",
        number_of_employees=employees,
        **flags,
    )


class FakeBackend:
    """Records every call; can be told to block, fail or reject."""

    def __init__(self):
        self.root_pages: dict[tuple[str, int], list[OrgNode]] = {}
        self.children: dict[str, list[OrgNode]] = {}
        self.root_calls: list[tuple[str, int]] = []
        self.children_calls: list[str] = []
        self.create_calls: list[NodeCreateRequest] = []
        # parent id -> number of upcoming fetch_children calls that fail
        self.children_failures: dict[str, int] = {}
        # key -> asyncio.Event the call waits on before answering
        self.gates: dict[str, asyncio.Event] = {}
        self.create_error: Exception | None = None
        self.next_server_id = 1000

    async def _wait(self, key):
        gate = self.gates.get(key)
        if gate is not None:
            await gate.wait()

    async def fetch_root_page(self, endpoint, page):
        self.root_calls.append((endpoint, page))
        await self._wait(f"root:{page}")
        return list(self.root_pages.get((endpoint, page), []))

    async def fetch_children(self, parent_id):
        self.children_calls.append(parent_id)
        await self._wait(parent_id)
        remaining = self.children_failures.get(parent_id, 0)
        if remaining:
            self.children_failures[parent_id] = remaining - 1
            raise NetworkError(f"connection reset while loading {parent_id}")
        return list(self.children.get(parent_id, []))

    async def create_node(self, request):
        self.create_calls.append(request)
        await self._wait("create")
        if self.create_error is not None:
            raise self.create_error
        self.next_server_id += 1
        return OrgNode(
            id=str(self.next_server_id),
            parent_id=request.parent_id,
            label=request.label,
            description=request.description,
            number_of_employees=request.number_of_employees,
        )


def run(coro):
    return asyncio.run(coro)


@pytest.fixture
def backend():
    backend = FakeBackend()
    backend.root_pages[("A", 1)] = [make_node("1"), make_node("2")]
    backend.root_pages[("B", 2)] = [make_node("3")]
    backend.children["1"] = [make_node("11", "1"), make_node("12", "1")]
    backend.children["11"] = [make_node("111", "11")]
    backend.children["42"] = [make_node("421", "42")]
    return backend


@pytest.fixture
def explorer(backend):
    explorer = OrgChartExplorer(backend, ["A", "B"])
    explorer.repository.upsert_many([make_node("42")])
    return explorer


@pytest.fixture
def rejecting_backend(backend):
    backend.create_error = RequestRejectedError(409, "Department name already exists")
    return backend
