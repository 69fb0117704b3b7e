"""Round-robin mapping from root page number to backend endpoint."""

from collections.abc import Sequence

from ..models import ConfigurationError


def select_endpoint(page: int, endpoints: Sequence[str]) -> str:
    """Return the endpoint serving 1-based ``page``.

    Stateless: the same page always maps to the same endpoint, so sequential
    pages cycle through every endpoint before repeating.
    """
    if not endpoints:
        raise ConfigurationError("No root endpoints configured")
    if page < 1:
        raise ValueError(f"page must be >= 1, got {page}")
    return endpoints[(page - 1) % len(endpoints)]


class RootSourceSelector:
    """Holds the configured endpoint pool; validates it once at startup."""

    def __init__(self, endpoints: Sequence[str]) -> None:
        if not endpoints:
            raise ConfigurationError("No root endpoints configured")
        self.endpoints: tuple[str, ...] = tuple(endpoints)

    def select(self, page: int) -> str:
        return select_endpoint(page, self.endpoints)
