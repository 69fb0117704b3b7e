"""New-node form validation and optimistic creation."""

from __future__ import annotations

from typing import Any

import httpx

from ..client.api_client_core import _ClientLogger
from ..models import (
    EMPTY_DESCRIPTION,
    EMPTY_NODE_LABEL,
    INVALID_EMPLOYEE_COUNT,
    APIError,
    CreateRejected,
    FieldError,
    NodeCreateRequest,
    NodeForm,
    NodeNotFoundError,
    NodeValidationError,
    OrgNode,
    new_temp_id,
)
from .fetch_coordinator import OrgChartBackend
from .repository import NodeRepository


def _employee_count(value: Any) -> int | None:
    """Parse the employee count as typed; None when missing or not a whole number."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None


def validate_node_form(form: NodeForm) -> list[FieldError]:
    """Return every violation in ``form`` (empty list when valid)."""
    errors: list[FieldError] = []

    if not (form.label or "").strip():
        errors.append(FieldError("label", EMPTY_NODE_LABEL, "Node label must not be empty"))

    if not (form.description or "").strip():
        errors.append(FieldError("description", EMPTY_DESCRIPTION, "Description must not be empty"))

    count = _employee_count(form.number_of_employees)
    if count is None or count < 0:
        errors.append(
            FieldError(
                "number_of_employees",
                INVALID_EMPLOYEE_COUNT,
                "Number of employees must be a whole number >= 0",
            )
        )

    return errors


class NodeCreationWorkflow:
    """Insert a node optimistically, then confirm or roll back.

    The temporary node appears in ``children_of(parent)`` immediately, after
    its existing siblings. Confirmation swaps it for the server node in one
    repository operation; rejection removes it.
    """

    def __init__(self, client: OrgChartBackend, repository: NodeRepository) -> None:
        self.client = client
        self.repository = repository
        self._pending: set[str] = set()
        self._logger = _ClientLogger("CREATE")

    def pending(self) -> list[str]:
        return sorted(self._pending)

    async def submit(self, form: NodeForm) -> OrgNode:
        errors = validate_node_form(form)
        if errors:
            raise NodeValidationError(errors)

        parent_id = form.parent_id
        if parent_id is not None:
            parent = self.repository.require(parent_id)
            if parent.is_temporary:
                # The backend has never heard of a temporary id
                raise NodeNotFoundError(parent_id, "Parent is still awaiting confirmation")

        request = NodeCreateRequest(
            label=(form.label or "").strip(),
            description=(form.description or "").strip(),
            number_of_employees=_employee_count(form.number_of_employees),
            parent_id=parent_id,
        )
        temp = OrgNode(
            id=new_temp_id(),
            parent_id=parent_id,
            label=request.label,
            description=request.description,
            number_of_employees=request.number_of_employees,
        )

        self.repository.upsert_many([temp])
        self._pending.add(temp.id)
        self._logger.info(f"Optimistic insert {temp.id} under {parent_id!r}")

        try:
            confirmed = await self.client.create_node(request)
        except (APIError, httpx.HTTPError) as e:
            self._rollback(temp.id)
            raise CreateRejected(temp.id, str(e)) from e
        except BaseException:
            # Cancellation or a bug: no ghost node may stay visible
            self._rollback(temp.id)
            raise

        if confirmed.parent_id != parent_id:
            confirmed = confirmed.model_copy(update={"parent_id": parent_id})
        self.repository.replace(temp.id, confirmed)
        self._pending.discard(temp.id)
        self._logger.info(f"Confirmed {temp.id} as {confirmed.id}")

        form.reset()
        return confirmed

    def _rollback(self, temp_id: str) -> None:
        self._pending.discard(temp_id)
        if temp_id in self.repository:
            self.repository.remove(temp_id)
        self._logger.warning(f"Rolled back {temp_id}")
