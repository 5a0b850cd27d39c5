"""Async HTTP client for an external deal-desk REST API.

DealApiClient satisfies DealStore, SectorStore, UserDirectory and TaskStore
against a server that speaks camelCase JSON:

    GET/POST        /api/deals
    GET/PATCH/DELETE /api/deals/{id}
    GET             /api/users, /api/users/{id}
    GET/POST        /api/tasks
    PATCH           /api/tasks/{id}
    GET/POST        /api/custom-sectors

Reads are retried with tenacity (3 attempts, exponential backoff 1-10s) on
transport errors and 5xx responses. Writes are never retried so a timed-out
PATCH cannot be applied twice. Failures surface as DealPersistenceError
carrying the server's {"error": ...} message when there is one.
"""

from __future__ import annotations

from typing import Any

import httpx
import structlog
from pydantic.alias_generators import to_camel, to_snake
from tenacity import (
    AsyncRetrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)
from tenacity.wait import wait_base

from src.dealdesk.deals.errors import (
    DealNotFoundError,
    DealPersistenceError,
    DealValidationError,
    TaskNotFoundError,
)
from src.dealdesk.deals.schemas import (
    CustomSectorRead,
    DealFilter,
    DealInsert,
    DealRead,
    DealUpdate,
)
from src.dealdesk.team.schemas import TaskCreate, TaskRead, UserRead

logger = structlog.get_logger(__name__)


# ── Key Conversion ──────────────────────────────────────────────────────────


def camelize(data: Any) -> Any:
    """Recursively convert dict keys from snake_case to camelCase."""
    if isinstance(data, dict):
        return {to_camel(k): camelize(v) for k, v in data.items()}
    if isinstance(data, list):
        return [camelize(v) for v in data]
    return data


def snakify(data: Any) -> Any:
    """Recursively convert dict keys from camelCase to snake_case."""
    if isinstance(data, dict):
        return {to_snake(k): snakify(v) for k, v in data.items()}
    if isinstance(data, list):
        return [snakify(v) for v in data]
    return data


def _is_retryable(exc: BaseException) -> bool:
    if isinstance(exc, httpx.TransportError):
        return True
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code >= 500
    return False


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and body.get("error"):
        return str(body["error"])
    return f"Request failed with status {response.status_code}"


# ── Client ──────────────────────────────────────────────────────────────────


class DealApiClient:
    """Async client for the deal-desk REST API.

    Args:
        base_url: Server root, e.g. https://desk.example.com.
        token: Bearer token sent with every request (optional).
        timeout: Per-request timeout in seconds.
        transport: Optional httpx transport (tests pass httpx.MockTransport).
        retry_wait: tenacity wait strategy for read retries.
    """

    def __init__(
        self,
        base_url: str,
        token: str = "",
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
        retry_wait: wait_base | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._headers = {"Content-Type": "application/json"}
        if token:
            self._headers["Authorization"] = f"Bearer {token}"
        self._timeout = timeout
        self._transport = transport
        self._retry_wait = retry_wait or wait_exponential(multiplier=1, min=1, max=10)

    def _client(self) -> httpx.AsyncClient:
        """Create a new httpx client for one call."""
        return httpx.AsyncClient(
            base_url=self._base_url,
            headers=self._headers,
            timeout=self._timeout,
            transport=self._transport,
        )

    async def _read(
        self, path: str, params: dict[str, str] | None = None
    ) -> Any | None:
        """GET with retries. Returns snake_case JSON, or None on 404."""

        async def attempt() -> httpx.Response:
            async with self._client() as client:
                response = await client.get(path, params=params)
                if response.status_code >= 500:
                    response.raise_for_status()
                return response

        try:
            async for retrying in AsyncRetrying(
                stop=stop_after_attempt(3),
                wait=self._retry_wait,
                retry=retry_if_exception(_is_retryable),
                reraise=True,
            ):
                with retrying:
                    response = await attempt()
        except httpx.HTTPStatusError as exc:
            raise DealPersistenceError(
                _error_message(exc.response), exc.response.status_code
            ) from exc
        except httpx.TransportError as exc:
            logger.error("deal_api.unreachable", path=path, error=str(exc))
            raise DealPersistenceError(f"Deal API unreachable: {exc}") from exc

        if response.status_code == 404:
            return None
        if response.is_error:
            raise DealPersistenceError(_error_message(response), response.status_code)
        return snakify(response.json())

    async def _write(
        self, method: str, path: str, payload: dict[str, Any] | None = None
    ) -> Any:
        """Single-attempt mutating request. Returns snake_case JSON."""
        try:
            async with self._client() as client:
                response = await client.request(
                    method,
                    path,
                    json=camelize(payload) if payload is not None else None,
                )
        except httpx.TransportError as exc:
            logger.error("deal_api.unreachable", path=path, method=method, error=str(exc))
            raise DealPersistenceError(f"Deal API unreachable: {exc}") from exc

        if response.status_code == 400:
            raise DealValidationError(_error_message(response))
        if response.is_error:
            raise DealPersistenceError(_error_message(response), response.status_code)
        if not response.content:
            return None
        return snakify(response.json())

    # ── Deals ───────────────────────────────────────────────────────────────

    async def create_deal(self, data: DealInsert) -> DealRead:
        body = await self._write("POST", "/api/deals", data.model_dump(mode="json"))
        deal = DealRead.model_validate(body)
        logger.info("deal_api.deal_created", deal_id=deal.id)
        return deal

    async def get_deal(self, deal_id: str) -> DealRead | None:
        body = await self._read(f"/api/deals/{deal_id}")
        return DealRead.model_validate(body) if body is not None else None

    async def list_deals(self, filters: DealFilter | None = None) -> list[DealRead]:
        """List deals; the server returns everything, filtering happens here."""
        filters = filters or DealFilter()
        body = await self._read("/api/deals") or []
        deals = [DealRead.model_validate(item) for item in body]
        return [d for d in deals if _matches(d, filters)]

    async def update_deal(self, deal_id: str, data: DealUpdate) -> DealRead:
        payload = data.changes(mode="json")
        try:
            body = await self._write("PATCH", f"/api/deals/{deal_id}", payload)
        except DealPersistenceError as exc:
            if exc.status_code == 404:
                raise DealNotFoundError(deal_id) from exc
            raise
        return DealRead.model_validate(body)

    async def delete_deal(self, deal_id: str) -> bool:
        try:
            await self._write("DELETE", f"/api/deals/{deal_id}")
        except DealPersistenceError as exc:
            if exc.status_code == 404:
                return False
            raise
        return True

    # ── Custom Sectors ──────────────────────────────────────────────────────

    async def list_custom_sectors(self) -> list[CustomSectorRead]:
        body = await self._read("/api/custom-sectors") or []
        return [CustomSectorRead.model_validate(item) for item in body]

    async def create_custom_sector(
        self, name: str, created_by: str | None = None
    ) -> CustomSectorRead:
        body = await self._write(
            "POST", "/api/custom-sectors", {"name": name, "created_by": created_by}
        )
        return CustomSectorRead.model_validate(body)

    # ── Users ───────────────────────────────────────────────────────────────

    async def list_users(self) -> list[UserRead]:
        body = await self._read("/api/users") or []
        return [UserRead.model_validate(item) for item in body]

    async def get_user(self, user_id: str) -> UserRead | None:
        body = await self._read(f"/api/users/{user_id}")
        return UserRead.model_validate(body) if body is not None else None

    # ── Tasks ───────────────────────────────────────────────────────────────

    async def list_tasks(
        self, assigned_to: str | None = None, deal_id: str | None = None
    ) -> list[TaskRead]:
        params: dict[str, str] = {}
        if assigned_to is not None:
            params["userId"] = assigned_to
        elif deal_id is not None:
            params["dealId"] = deal_id
        body = await self._read("/api/tasks", params=params or None) or []
        tasks = [TaskRead.model_validate(item) for item in body]
        if assigned_to is not None and deal_id is not None:
            tasks = [t for t in tasks if t.deal_id == deal_id]
        return tasks

    async def create_task(self, data: TaskCreate) -> TaskRead:
        body = await self._write("POST", "/api/tasks", data.model_dump(mode="json"))
        return TaskRead.model_validate(body)

    async def update_task_status(self, task_id: str, status: str) -> TaskRead:
        try:
            body = await self._write("PATCH", f"/api/tasks/{task_id}", {"status": status})
        except DealPersistenceError as exc:
            if exc.status_code == 404:
                raise TaskNotFoundError(task_id) from exc
            raise
        return TaskRead.model_validate(body)


def _matches(deal: DealRead, filters: DealFilter) -> bool:
    if not filters.include_archived and deal.is_archived:
        return False
    if filters.deal_type is not None and deal.deal_type != filters.deal_type:
        return False
    if filters.stage is not None and deal.stage != filters.stage:
        return False
    if filters.status is not None and deal.status != filters.status:
        return False
    if filters.search:
        needle = filters.search.lower()
        haystack = (deal.name, deal.client, deal.sector)
        if not any(needle in (field or "").lower() for field in haystack):
            return False
    return True
