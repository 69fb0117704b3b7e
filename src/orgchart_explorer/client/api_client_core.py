"""Org chart API client - root pages, children and node creation."""

import asyncio
import json
import sys
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any

import httpx
from pydantic import ValidationError

from ..models import (
    APIConfiguration,
    AuthenticationError,
    NetworkError,
    NodeCreateRequest,
    NodeNotFoundError,
    OrgNode,
    RateLimitError,
    RequestRejectedError,
    TimeoutError,
)


def log_event(message: str, component: str = "CLIENT") -> None:
    """Log an event to stderr with timestamp and consistent formatting."""
    timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
    print(f"[{timestamp}] [{component}] {message}", file=sys.stderr, flush=True)


def _log(message: str, component: str = "CLIENT") -> None:
    """Unified log wrapper used throughout the client and tree modules.

    Everything goes through the same DATETIME+TAG prefix on stderr, which
    stays visible under stdio MCP transports (stdout carries the protocol).
    """
    log_event(message, component)


class _ClientLogger:
    """Lightweight logger that delegates to _log / log_event.

    Methods accept arbitrary *args/**kwargs so call sites read like the
    logging module, but only the first message argument is used.
    """

    def __init__(self, component: str = "CLIENT") -> None:
        self._component = component

    def _msg(self, msg: object) -> str:
        try:
            return str(msg)
        except Exception:
            return repr(msg)

    def info(self, msg: object, *args: object, **kwargs: object) -> None:  # noqa: D401
        """Info-level log (no explicit level tag; message already descriptive)."""
        _log(self._msg(msg), self._component)

    def warning(self, msg: object, *args: object, **kwargs: object) -> None:
        _log(f"WARNING: {self._msg(msg)}", self._component)

    def error(self, msg: object, *args: object, **kwargs: object) -> None:
        _log(f"ERROR: {self._msg(msg)}", self._component)

    def debug(self, msg: object, *args: object, **kwargs: object) -> None:
        _log(f"DEBUG: {self._msg(msg)}", self._component)


def _extract_node_list(data: Any) -> list[dict[str, Any]]:
    """Pull the node list out of the shapes the department backends return."""
    if isinstance(data, list):
        return data
    if isinstance(data, dict):
        for key in ("nodes", "data", "items"):
            value = data.get(key)
            if isinstance(value, list):
                return value
    raise NetworkError(f"Unexpected list payload: {type(data).__name__}")


def _parse_nodes(data: Any, operation: str) -> list[OrgNode]:
    """Validate a node list payload; malformed items surface as NetworkError."""
    try:
        return [OrgNode.model_validate(item) for item in _extract_node_list(data)]
    except ValidationError as err:
        raise NetworkError(f"Invalid node payload from {operation}: {err.error_count()} error(s)") from err


def _parse_retry_after(value: str | None) -> float | None:
    """Seconds to wait from a Retry-After header (delta-seconds or HTTP-date)."""
    if not value:
        return None
    value = value.strip()
    if value.isdecimal():
        return int(value)
    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    return max(0.0, (when - datetime.now(timezone.utc)).total_seconds())


class OrgChartClient:
    """HTTP implementation of the fetch and create capabilities."""

    def __init__(self, config: APIConfiguration, transport: httpx.AsyncBaseTransport | None = None):
        """Initialize the org chart API client.

        ``transport`` is handed to httpx unchanged (tests pass a MockTransport).
        """
        self.config = config
        self.base_url = config.base_url
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @property
    def client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None:
            headers = {
                "Content-Type": "application/json",
                "Accept": "application/json",
            }
            if self.config.api_key is not None:
                headers["Authorization"] = f"Bearer {self.config.api_key.get_secret_value()}"
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers=headers,
                timeout=httpx.Timeout(self.config.timeout),
                follow_redirects=True,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "OrgChartClient":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit."""
        await self.close()

    async def _handle_response(self, response: httpx.Response) -> Any:
        """Handle API response and errors."""
        if response.status_code == 401:
            raise AuthenticationError("Invalid API key or unauthorized access")

        if response.status_code == 404:
            raise NodeNotFoundError(
                node_id=response.request.url.path.split("/")[-1], message="Resource not found"
            )

        if response.status_code == 429:
            retry_after = response.headers.get("Retry-After")
            raise RateLimitError(retry_after=_parse_retry_after(retry_after))

        if response.status_code >= 500:
            raise NetworkError(f"Server error: {response.status_code}")

        if response.status_code >= 400:
            try:
                error_data = response.json()
                message = error_data.get("error") or error_data.get("message") or "API request failed"
            except (json.JSONDecodeError, AttributeError):
                message = f"API error: {response.status_code}"
            raise RequestRejectedError(response.status_code, message)

        try:
            return response.json()
        except json.JSONDecodeError as err:
            raise NetworkError("Invalid response format from API") from err

    async def _request_with_retry(
        self,
        operation: str,
        method: str,
        url: str,
        **kwargs: Any,
    ) -> Any:
        """Send one request with pacing delay and exponential backoff retry.

        NetworkError, timeouts and 429s are retried up to ``max_retries``;
        everything else propagates on the first attempt.
        """
        logger = _ClientLogger()
        max_retries = self.config.max_retries
        base_delay = self.config.retry_base_delay
        retry_count = 0

        while retry_count < max_retries:
            # Pace every attempt, first one included
            await asyncio.sleep(self.config.rate_limit_delay)

            try:
                response = await self.client.request(method, url, **kwargs)
                data = await self._handle_response(response)
                if retry_count > 0:
                    logger.info(f"{operation} succeeded after {retry_count + 1}/{max_retries} attempts")
                return data

            except RateLimitError as e:
                retry_count += 1
                retry_after = e.retry_after if e.retry_after is not None else base_delay * (2 ** retry_count)
                logger.warning(
                    f"Rate limited on {operation}. Retry after {retry_after}s. "
                    f"Attempt {retry_count}/{max_retries}"
                )
                if retry_count < max_retries:
                    await asyncio.sleep(retry_after)
                else:
                    raise

            except NetworkError as e:
                retry_count += 1
                logger.warning(f"Network error on {operation}: {e}. Retry {retry_count}/{max_retries}")
                if retry_count < max_retries:
                    await asyncio.sleep(base_delay * (2 ** retry_count))
                else:
                    raise

            except httpx.TransportError as err:
                retry_count += 1
                logger.warning(f"Transport error on {operation}: {err!r}. Retry {retry_count}/{max_retries}")
                if retry_count < max_retries:
                    await asyncio.sleep(base_delay * (2 ** retry_count))
                elif isinstance(err, httpx.TimeoutException):
                    raise TimeoutError(operation) from err
                else:
                    raise NetworkError(f"{operation} failed: {err!r}") from err

        raise NetworkError(f"{operation} failed after maximum retries")

    async def fetch_root_page(self, endpoint: str, page: int) -> list[OrgNode]:
        """Fetch one page of root departments from ``endpoint``."""
        data = await self._request_with_retry(
            f"fetch_root_page({endpoint}, {page})", "GET", endpoint, params={"page": page}
        )
        return _parse_nodes(data, f"fetch_root_page({endpoint}, {page})")

    async def fetch_children(self, parent_id: str) -> list[OrgNode]:
        """Fetch the direct children of ``parent_id`` in backend order."""
        data = await self._request_with_retry(
            f"fetch_children({parent_id})",
            "GET",
            self.config.children_path,
            params={"parentId": parent_id},
        )
        return _parse_nodes(data, f"fetch_children({parent_id})")

    async def create_node(self, request: NodeCreateRequest) -> OrgNode:
        """Create a department and return the server-confirmed node."""
        data = await self._request_with_retry(
            "create_node", "POST", self.config.create_path, json=request.to_payload()
        )
        # Some backends wrap the created record in {"node": {...}}
        if isinstance(data, dict) and isinstance(data.get("node"), dict):
            data = data["node"]
        if not isinstance(data, dict) or data.get("id") is None:
            raise NetworkError(f"Invalid response from create endpoint: {data}")

        # Backends that echo only {"id": ...} get the submitted fields filled in
        node_data = dict(data)
        submitted = {
            ("parentId", "parent_id"): request.parent_id,
            ("label", "name"): request.label,
            ("description",): request.description,
            ("numberOfEmployees", "number_of_employees"): request.number_of_employees,
        }
        for keys, value in submitted.items():
            if not any(key in node_data for key in keys):
                node_data[keys[0]] = value
        try:
            return OrgNode.model_validate(node_data)
        except ValidationError as err:
            raise NetworkError(f"Invalid node in create_node response: {err.error_count()} error(s)") from err
