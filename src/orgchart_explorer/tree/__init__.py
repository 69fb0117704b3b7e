"""Hierarchical node tree manager: repository, loading, navigation, creation, export."""

from .creation import NodeCreationWorkflow, validate_node_form
from .export_helper import EXPORT_HEADERS, CsvExporter, export_filename, flatten_rows
from .fetch_coordinator import FetchCoordinator, OrgChartBackend, root_key
from .navigation import NodeState, TreeNavigationController
from .repository import NodeRepository, RepositoryEvent
from .source_selector import RootSourceSelector, select_endpoint

__all__ = [
    "EXPORT_HEADERS",
    "CsvExporter",
    "FetchCoordinator",
    "NodeCreationWorkflow",
    "NodeRepository",
    "NodeState",
    "OrgChartBackend",
    "RepositoryEvent",
    "RootSourceSelector",
    "TreeNavigationController",
    "export_filename",
    "flatten_rows",
    "root_key",
    "select_endpoint",
    "validate_node_form",
]
