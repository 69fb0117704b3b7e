"""Org chart explorer MCP server implementation using FastMCP."""

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, Awaitable, Callable, TypeVar

from fastmcp import FastMCP

from .client import AdaptiveRateLimiter, OrgChartClient
from .config import ServerConfig, setup_logging
from .explorer import OrgChartExplorer
from .models import NodeForm, RateLimitError
from .tree import CsvExporter

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Global explorer instance
_explorer: OrgChartExplorer | None = None
_rate_limiter: AdaptiveRateLimiter | None = None
_export_dir: Path = Path(".")


def get_explorer() -> OrgChartExplorer:
    """Get the global explorer instance."""
    if _explorer is None:
        raise RuntimeError("Org chart explorer not initialized. Server not started properly.")
    return _explorer


async def _paced(call: Callable[[], Awaitable[T]]) -> T:
    """Run one backend-bound call under the adaptive rate limiter."""
    if _rate_limiter:
        await _rate_limiter.acquire()
    try:
        result = await call()
    except Exception as e:
        cause = getattr(e, "cause", None) or e.__cause__
        if _rate_limiter and isinstance(cause, RateLimitError):
            _rate_limiter.on_rate_limit(cause.retry_after)
        raise
    if _rate_limiter:
        _rate_limiter.on_success()
    return result


@asynccontextmanager
async def lifespan(_app: FastMCP):  # type: ignore[no-untyped-def]
    """Manage server lifecycle."""
    global _explorer, _rate_limiter, _export_dir

    logger.info("Starting org chart explorer server")

    # ConfigurationError here is fatal: the server does not start
    config = ServerConfig()
    api_config = config.get_api_config()

    _rate_limiter = AdaptiveRateLimiter(initial_rate=10.0, min_rate=1.0, max_rate=100.0)
    _explorer = OrgChartExplorer(OrgChartClient(api_config), api_config.root_endpoints)
    _export_dir = Path(config.export_dir)

    logger.info(
        f"Explorer initialized with base URL {api_config.base_url} "
        f"and {len(api_config.root_endpoints)} root endpoint(s)"
    )

    yield

    logger.info("Shutting down org chart explorer server")
    if _explorer:
        await _explorer.close()
        _explorer = None
    _rate_limiter = None


mcp = FastMCP(
    "Org Chart Explorer",
    instructions="Browse a department hierarchy, create departments and export rows to CSV",
    lifespan=lifespan,
)


@mcp.tool(name="orgchart_load_root_page", description="Load one page of root departments")
async def load_root_page(page: int = 1) -> dict:
    """Load root page ``page`` from its round-robin endpoint.

    Returns:
        Dictionary with the page's nodes and every root loaded so far
    """
    explorer = get_explorer()
    nodes = await _paced(lambda: explorer.load_root_page(page))
    return {
        "page": page,
        "endpoint": explorer.selector.select(page),
        "loaded": [node.id for node in nodes],
        "roots": explorer.snapshot(None),
    }


@mcp.tool(name="orgchart_list_children", description="List cached children of a department (omit parent_id for roots)")
def list_children(parent_id: str | None = None) -> dict:
    """Read-only view of the repository; never fetches."""
    explorer = get_explorer()
    children = explorer.snapshot(parent_id)
    return {"parent_id": parent_id, "children": children, "total": len(children)}


@mcp.tool(name="orgchart_expand", description="Expand a department, loading its children on first expansion")
async def expand(node_id: str, force: bool = False) -> dict:
    """Expand a node.

    Args:
        node_id: Department to expand
        force: Refetch children even if they were loaded before

    Returns:
        New state and the node's children
    """
    explorer = get_explorer()
    state = await _paced(lambda: explorer.expand(node_id, force=force))
    return {"node_id": node_id, "state": state.value, "children": explorer.snapshot(node_id)}


@mcp.tool(name="orgchart_collapse", description="Collapse a department (cached children are kept)")
def collapse(node_id: str) -> dict:
    explorer = get_explorer()
    state = explorer.collapse(node_id)
    return {"node_id": node_id, "state": state.value}


@mcp.tool(name="orgchart_submit_new_node", description="Create a department under parent_id (omit for a root)")
async def submit_new_node(
    label: str,
    description: str,
    number_of_employees: int,
    parent_id: str | None = None,
) -> dict:
    """Validate, insert optimistically and confirm with the backend.

    Raises:
        NodeValidationError: every invalid field, reported together
        CreateRejected: backend refused; the optimistic node was removed
    """
    explorer = get_explorer()
    form = NodeForm(
        label=label,
        description=description,
        number_of_employees=number_of_employees,
        parent_id=parent_id,
    )
    node = await _paced(lambda: explorer.submit_new_node(form))
    return node.model_dump(by_alias=True)


@mcp.tool(name="orgchart_export_csv", description="Export visible (or all loaded) departments to a CSV file")
def export_csv(
    title: str = "departments",
    root_id: str | None = None,
    all_loaded: bool = False,
    output_dir: str | None = None,
) -> dict:
    explorer = get_explorer()
    headers, rows = explorer.export_rows(root_id, visible_only=not all_loaded)
    path = CsvExporter(output_dir or _export_dir).write(title, headers, rows)
    return {"success": True, "file": str(path), "rows": len(rows)}


@mcp.resource(
    uri="orgchart://outline",
    name="orgchart_outline",
    description="The visible department tree as an indented outline",
)
def get_outline() -> str:
    return get_explorer().outline()


def main() -> Any:
    setup_logging(ServerConfig().log_level)
    return mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
