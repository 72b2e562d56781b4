"""
HTTP client for the Trackline API.

Handles:
- Search (GET /api/v1/search), parsed into the tagged result union
- Reads of the project list, an issue page and a project's labels
- Durable mutations, each returning a MutationResult
- Bearer session token taken from config
"""

from __future__ import annotations

import uuid
from typing import Any

import httpx
import structlog

from trackline_shared.schemas.common import IssueStatus, MutationResult
from trackline_shared.schemas.issues import IssueDetail
from trackline_shared.schemas.projects import LabelRead, ProjectSummary
from trackline_shared.schemas.search import SearchResultBase, parse_search_results

from .config import ClientConfig

log = structlog.get_logger()

API_PREFIX = "/api/v1"


class TrackerAPIError(Exception):
    """Read or transport failure talking to the Trackline API."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class TrackerClient:
    """
    Async client for the Trackline API.

    Mutation failures reported by the server come back as
    ``MutationResult(success=False)``. Transport failures raise TrackerAPIError.
    """

    def __init__(
        self,
        base_url: str,
        session_token: str | None = None,
        verify_tls: bool = True,
        request_timeout: float = 30,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._session_token = session_token
        self._verify_tls = verify_tls
        self._request_timeout = request_timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @classmethod
    def from_config(
        cls, config: ClientConfig, transport: httpx.AsyncBaseTransport | None = None
    ) -> "TrackerClient":
        return cls(
            config.server.url,
            session_token=config.server.session_token,
            verify_tls=config.server.verify_tls,
            request_timeout=config.server.request_timeout_seconds,
            transport=transport,
        )

    async def open(self) -> None:
        headers = {}
        if self._session_token:
            headers["Authorization"] = f"Bearer {self._session_token}"
        self._client = httpx.AsyncClient(
            base_url=self._base_url + API_PREFIX,
            headers=headers,
            timeout=httpx.Timeout(self._request_timeout),
            verify=self._verify_tls,
            transport=self._transport,
        )

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "TrackerClient":
        await self.open()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    # --- Reads ---

    async def _get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        assert self._client
        try:
            resp = await self._client.get(path, params=params)
        except httpx.HTTPError as exc:
            log.error("api.read_unreachable", path=path, error=str(exc))
            raise TrackerAPIError(f"Request failed: {exc}") from exc

        if resp.status_code != 200:
            message = _error_message(resp)
            log.warning("api.read_failed", path=path, status=resp.status_code, error=message)
            raise TrackerAPIError(message, status_code=resp.status_code)
        return resp.json()

    async def search(self, query: str) -> list[SearchResultBase]:
        return parse_search_results(await self._get("/search", params={"q": query}))

    async def list_projects(self) -> list[ProjectSummary]:
        return [ProjectSummary.model_validate(p) for p in await self._get("/projects")]

    async def get_issue(self, issue_id: uuid.UUID | str) -> IssueDetail:
        return IssueDetail.model_validate(await self._get(f"/issues/{issue_id}"))

    async def list_labels(self, project_id: uuid.UUID | str) -> list[LabelRead]:
        return [
            LabelRead.model_validate(label)
            for label in await self._get(f"/projects/{project_id}/labels")
        ]

    # --- Durable mutations ---

    async def _mutate(
        self, method: str, path: str, json: dict[str, Any] | None = None
    ) -> MutationResult:
        assert self._client
        try:
            resp = await self._client.request(method, path, json=json)
        except httpx.HTTPError as exc:
            log.error("api.mutation_unreachable", method=method, path=path, error=str(exc))
            raise TrackerAPIError(f"Request failed: {exc}") from exc

        try:
            body = resp.json()
        except ValueError:
            body = None

        if isinstance(body, dict) and "success" in body:
            result = MutationResult.model_validate(body)
        else:
            result = MutationResult(success=False, error=_error_message(resp))

        if resp.is_error and result.success:
            result = MutationResult(success=False, error=_error_message(resp))
        return result

    async def toggle_favorite(self, project_id: uuid.UUID | str) -> MutationResult:
        return await self._mutate("POST", f"/projects/{project_id}/favorite")

    async def create_label(
        self, project_id: uuid.UUID | str, name: str, color: str
    ) -> MutationResult:
        return await self._mutate(
            "POST", f"/projects/{project_id}/labels", json={"name": name, "color": color}
        )

    async def delete_label(self, label_id: uuid.UUID | str) -> MutationResult:
        return await self._mutate("DELETE", f"/labels/{label_id}")

    async def update_issue(self, issue_id: uuid.UUID | str, **fields: Any) -> MutationResult:
        return await self._mutate("PATCH", f"/issues/{issue_id}", json=fields)

    async def change_status(
        self, issue_id: uuid.UUID | str, status: IssueStatus | str
    ) -> MutationResult:
        return await self._mutate(
            "POST", f"/issues/{issue_id}/status", json={"status": IssueStatus(status).value}
        )

    async def add_comment(self, issue_id: uuid.UUID | str, content: str) -> MutationResult:
        return await self._mutate(
            "POST", f"/issues/{issue_id}/comments", json={"content": content}
        )

    async def update_comment(self, comment_id: uuid.UUID | str, content: str) -> MutationResult:
        return await self._mutate(
            "PATCH", f"/comments/{comment_id}", json={"content": content}
        )

    async def delete_comment(self, comment_id: uuid.UUID | str) -> MutationResult:
        return await self._mutate("DELETE", f"/comments/{comment_id}")


def _error_message(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return f"HTTP {resp.status_code}"
    if isinstance(body, dict) and isinstance(body.get("error"), str):
        return body["error"]
    return f"HTTP {resp.status_code}"
