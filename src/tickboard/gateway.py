"""HTTP client for the project-management service."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from tickboard.errors import GatewayError, PayloadError
from tickboard.model.ticket import Sprint, SprintStatus, Ticket, TicketStatus

logger = logging.getLogger(__name__)

API_PREFIX = "/api"
TICKET_LIMIT = 100


def _error_detail(r: httpx.Response) -> str:
    """Extract a human-readable error from an HTTP response."""
    try:
        data = r.json()
    except ValueError:
        return r.text[:200] if r.text else f"HTTP {r.status_code}"
    if isinstance(data, dict):
        return str(data.get("message") or data.get("error") or data)
    return str(data)


def _unwrap(data: Any) -> Any:
    """The service wraps results as {"success": ..., "data": ...}."""
    if isinstance(data, dict) and "data" in data:
        return data["data"]
    return data


class Gateway:
    """Reads and writes tickets and sprints.

    Mutations send only the field being changed. Every failure (network,
    timeout, non-2xx) surfaces as GatewayError.
    """

    def __init__(
        self,
        base_url: str,
        token: str | None = None,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        headers = {"Accept": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self.base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self.base_url + API_PREFIX,
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    async def __aenter__(self) -> Gateway:
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        try:
            r = await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as exc:
            logger.warning("%s %s failed: %s", method, path, exc)
            raise GatewayError(f"{method} {path}: {exc}") from exc
        if not r.is_success:
            detail = _error_detail(r)
            logger.warning("%s %s -> %s %s", method, path, r.status_code, detail)
            raise GatewayError(f"{method} {path}: {r.status_code} {detail}", status=r.status_code)
        if not r.content:
            return None
        try:
            return _unwrap(r.json())
        except ValueError as exc:
            raise PayloadError(f"{method} {path}: response is not JSON") from exc

    # -- reads --

    async def list_tickets(self, project_id: str, sprint_id: str | None = None) -> list[Ticket]:
        """Tickets for a project, optionally only one sprint's, in service order."""
        params = {"projectId": project_id, "limit": TICKET_LIMIT}
        if sprint_id:
            params["sprintId"] = sprint_id
        data = await self._request("GET", "/tickets", params=params)
        if not isinstance(data, list):
            raise PayloadError("ticket list is not a list")
        return [Ticket.from_payload(item) for item in data]

    async def list_sprints(self, project_id: str) -> list[Sprint]:
        data = await self._request("GET", "/sprints", params={"projectId": project_id})
        if not isinstance(data, list):
            raise PayloadError("sprint list is not a list")
        return [Sprint.from_payload(item) for item in data]

    # -- ticket mutations --

    async def update_ticket_status(self, ticket_id: str, status: TicketStatus) -> Ticket | None:
        data = await self._request("PATCH", f"/tickets/{ticket_id}/status", json={"status": status.value})
        return Ticket.from_payload(data) if data else None

    async def assign_sprint(self, ticket_id: str, sprint_id: str | None) -> Ticket | None:
        """Move a ticket into a sprint, or to the backlog when sprint_id is None."""
        data = await self._request("PATCH", f"/tickets/{ticket_id}", json={"sprintId": sprint_id})
        return Ticket.from_payload(data) if data else None

    # -- sprint lifecycle --

    async def start_sprint(self, sprint_id: str) -> Sprint | None:
        data = await self._request("PATCH", f"/sprints/{sprint_id}", json={"status": SprintStatus.ACTIVE.value})
        return Sprint.from_payload(data) if data else None

    async def complete_sprint(self, sprint_id: str) -> Sprint | None:
        """Complete a sprint. The service moves its unfinished tickets to the backlog."""
        data = await self._request("PATCH", f"/sprints/{sprint_id}/complete")
        return Sprint.from_payload(data) if data else None
