"""Org chart explorer: lazy department tree with optimistic creation and CSV export."""

from .explorer import OrgChartExplorer
from .models import (
    APIConfiguration,
    ConfigurationError,
    CreateRejected,
    FetchError,
    NodeForm,
    NodeValidationError,
    OrgNode,
)

__version__ = "0.1.0"

__all__ = [
    "APIConfiguration",
    "ConfigurationError",
    "CreateRejected",
    "FetchError",
    "NodeForm",
    "NodeValidationError",
    "OrgChartExplorer",
    "OrgNode",
]
