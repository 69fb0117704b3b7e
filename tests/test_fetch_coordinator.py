"""Tests for deduplicated root/children loading."""

import asyncio

import pytest

from orgchart_explorer.models import FetchError, NodeNotFoundError

from conftest import make_node, run


class TestLoadRootPage:
    def test_pages_round_robin_across_endpoints(self, explorer, backend):
        async def scenario():
            await explorer.load_root_page(1)
            await explorer.load_root_page(2)
            await explorer.load_root_page(3)
            await explorer.load_root_page(4)

        run(scenario())
        assert [endpoint for endpoint, _ in backend.root_calls] == ["A", "B", "A", "B"]

    def test_roots_merged_in_backend_order(self, explorer):
        run(explorer.load_root_page(1))
        assert [n.id for n in explorer.roots()] == ["42", "1", "2"]
        assert 1 in explorer.coordinator.loaded_root_pages

    def test_concurrent_requests_for_same_page_share_one_call(self, explorer, backend):
        async def scenario():
            backend.gates["root:1"] = asyncio.Event()
            first = asyncio.ensure_future(explorer.load_root_page(1))
            second = asyncio.ensure_future(explorer.load_root_page(1))
            await asyncio.sleep(0)
            backend.gates["root:1"].set()
            return await asyncio.gather(first, second)

        first, second = run(scenario())
        assert backend.root_calls == [("A", 1)]
        assert [n.id for n in first] == [n.id for n in second] == ["1", "2"]

    def test_non_root_nodes_in_page_are_ignored(self, explorer, backend):
        backend.root_pages[("A", 1)] = [make_node("1"), make_node("99", "1")]
        run(explorer.load_root_page(1))
        assert "99" not in explorer.repository


class TestLoadChildren:
    def test_sets_children_loaded_and_merges(self, explorer):
        run(explorer.coordinator.load_children("42"))
        assert explorer.node("42").children_loaded is True
        assert [n.id for n in explorer.children_of("42")] == ["421"]

    def test_in_flight_key_is_released_after_success(self, explorer):
        run(explorer.coordinator.load_children("42"))
        assert explorer.coordinator.pending_keys() == []

    def test_failure_releases_key_and_allows_retry(self, explorer, backend):
        backend.children_failures["42"] = 1

        with pytest.raises(FetchError) as excinfo:
            run(explorer.coordinator.load_children("42"))
        assert excinfo.value.key == "42"
        assert not explorer.coordinator.is_in_flight("42")
        assert explorer.node("42").children_loaded is False

        run(explorer.coordinator.load_children("42"))
        assert backend.children_calls == ["42", "42"]
        assert explorer.node("42").children_loaded is True

    def test_all_waiters_see_the_failure(self, explorer, backend):
        backend.children_failures["42"] = 1

        async def scenario():
            backend.gates["42"] = asyncio.Event()
            first = asyncio.ensure_future(explorer.coordinator.load_children("42"))
            second = asyncio.ensure_future(explorer.coordinator.load_children("42"))
            await asyncio.sleep(0)
            backend.gates["42"].set()
            return await asyncio.gather(first, second, return_exceptions=True)

        results = run(scenario())
        assert all(isinstance(r, FetchError) for r in results)
        assert backend.children_calls == ["42"]

    def test_descendants_beyond_direct_children_are_ignored(self, explorer, backend):
        backend.children["42"] = [make_node("421", "42"), make_node("4211", "421")]
        run(explorer.coordinator.load_children("42"))
        assert "4211" not in explorer.repository

    def test_unknown_parent_rejected(self, explorer, backend):
        with pytest.raises(NodeNotFoundError):
            run(explorer.coordinator.load_children("missing"))
        assert backend.children_calls == []

    def test_temporary_parent_rejected(self, explorer, backend):
        explorer.repository.upsert_many([make_node("tmp-abc", "42")])
        with pytest.raises(NodeNotFoundError):
            run(explorer.coordinator.load_children("tmp-abc"))
        assert backend.children_calls == []

    def test_children_of_parent_removed_mid_flight_are_discarded(self, explorer, backend):
        async def scenario():
            backend.gates["42"] = asyncio.Event()
            loading = asyncio.ensure_future(explorer.coordinator.load_children("42"))
            await asyncio.sleep(0)
            explorer.repository.remove("42")
            backend.gates["42"].set()
            return await loading

        assert run(scenario()) == []
        assert "421" not in explorer.repository
        assert not explorer.coordinator.is_in_flight("42")

    def test_cancelled_waiter_does_not_cancel_fetch(self, explorer, backend):
        async def scenario():
            backend.gates["42"] = asyncio.Event()
            waiter = asyncio.ensure_future(explorer.coordinator.load_children("42"))
            await asyncio.sleep(0)
            task = explorer.coordinator.in_flight("42")
            waiter.cancel()
            await asyncio.sleep(0)
            backend.gates["42"].set()
            await task

        run(scenario())
        assert [n.id for n in explorer.children_of("42")] == ["421"]
