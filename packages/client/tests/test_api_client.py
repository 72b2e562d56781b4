"""Tests for the HTTP API client against a mock transport."""

import json
import uuid

import httpx
import pytest

from trackline_client.api import TrackerAPIError, TrackerClient
from trackline_shared.schemas.search import IssueSearchResult, TeamSearchResult


def _client(handler, token="session-jwt"):
    return TrackerClient(
        "http://tracker.test/", session_token=token, transport=httpx.MockTransport(handler)
    )


class TestSearch:
    @pytest.mark.asyncio
    async def test_search_parses_results(self):
        issue_id, project_id, team_id = uuid.uuid4(), uuid.uuid4(), uuid.uuid4()
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["auth"] = request.headers.get("Authorization")
            return httpx.Response(
                200,
                json=[
                    {
                        "id": str(issue_id),
                        "title": "Login fails",
                        "type": "issue",
                        "projectId": str(project_id),
                        "status": "TODO",
                    },
                    {"id": str(team_id), "title": "Core", "type": "team"},
                ],
            )

        async with _client(handler) as client:
            results = await client.search("login")

        assert seen["url"] == "http://tracker.test/api/v1/search?q=login"
        assert seen["auth"] == "Bearer session-jwt"
        assert isinstance(results[0], IssueSearchResult)
        assert results[0].project_id == project_id
        assert isinstance(results[1], TeamSearchResult)

    @pytest.mark.asyncio
    async def test_search_401_raises(self):
        def handler(request):
            return httpx.Response(401, json={"error": "Unauthorized"})

        async with _client(handler, token=None) as client:
            with pytest.raises(TrackerAPIError) as exc_info:
                await client.search("login")

        assert exc_info.value.status_code == 401
        assert exc_info.value.message == "Unauthorized"

    @pytest.mark.asyncio
    async def test_search_transport_error_raises(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        async with _client(handler) as client:
            with pytest.raises(TrackerAPIError):
                await client.search("login")


class TestMutations:
    @pytest.mark.asyncio
    async def test_toggle_favorite(self):
        project_id = uuid.uuid4()

        def handler(request):
            assert request.method == "POST"
            assert request.url.path == f"/api/v1/projects/{project_id}/favorite"
            return httpx.Response(200, json={"success": True, "data": {"isFavorite": True}})

        async with _client(handler) as client:
            result = await client.toggle_favorite(project_id)

        assert result.success is True
        assert result.data == {"isFavorite": True}

    @pytest.mark.asyncio
    async def test_failure_body_is_returned_not_raised(self):
        def handler(request):
            return httpx.Response(403, json={"success": False, "error": "Forbidden"})

        async with _client(handler) as client:
            result = await client.delete_label(uuid.uuid4())

        assert result.success is False
        assert result.error == "Forbidden"

    @pytest.mark.asyncio
    async def test_non_mutation_error_body(self):
        def handler(request):
            return httpx.Response(401, json={"error": "Unauthorized"})

        async with _client(handler) as client:
            result = await client.add_comment(uuid.uuid4(), "hi")

        assert result.success is False
        assert result.error == "Unauthorized"

    @pytest.mark.asyncio
    async def test_non_json_error(self):
        def handler(request):
            return httpx.Response(502, text="Bad Gateway")

        async with _client(handler) as client:
            result = await client.update_comment(uuid.uuid4(), "edited")

        assert result.success is False
        assert result.error == "HTTP 502"

    @pytest.mark.asyncio
    async def test_request_bodies(self):
        bodies = []

        def handler(request):
            bodies.append((request.method, request.url.path, json.loads(request.content or b"null")))
            return httpx.Response(200, json={"success": True})

        issue_id = uuid.uuid4()
        async with _client(handler) as client:
            await client.change_status(issue_id, "DONE")
            await client.update_issue(issue_id, title="New title")
            await client.create_label(issue_id, "bug", "#FF0000")

        assert bodies == [
            ("POST", f"/api/v1/issues/{issue_id}/status", {"status": "DONE"}),
            ("PATCH", f"/api/v1/issues/{issue_id}", {"title": "New title"}),
            ("POST", f"/api/v1/projects/{issue_id}/labels", {"name": "bug", "color": "#FF0000"}),
        ]

    @pytest.mark.asyncio
    async def test_transport_error_raises(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        async with _client(handler) as client:
            with pytest.raises(TrackerAPIError):
                await client.toggle_favorite(uuid.uuid4())


class TestReads:
    @pytest.mark.asyncio
    async def test_list_projects(self):
        project_id, team_id = uuid.uuid4(), uuid.uuid4()

        def handler(request):
            assert request.url.path == "/api/v1/projects"
            return httpx.Response(
                200,
                json=[
                    {
                        "id": str(project_id),
                        "name": "Backend",
                        "team_id": str(team_id),
                        "is_favorite": True,
                        "issue_count": 4,
                    }
                ],
            )

        async with _client(handler) as client:
            projects = await client.list_projects()

        assert [(p.id, p.is_favorite, p.issue_count) for p in projects] == [(project_id, True, 4)]

    @pytest.mark.asyncio
    async def test_get_issue_with_comments(self):
        issue_id, project_id, author_id = uuid.uuid4(), uuid.uuid4(), uuid.uuid4()

        def handler(request):
            assert request.url.path == f"/api/v1/issues/{issue_id}"
            return httpx.Response(
                200,
                json={
                    "id": str(issue_id),
                    "project_id": str(project_id),
                    "title": "Login fails",
                    "status": "TODO",
                    "priority": "HIGH",
                    "comments": [
                        {
                            "id": str(uuid.uuid4()),
                            "content": "Reproduced",
                            "author": {"id": str(author_id), "name": "Ada"},
                            "created_at": "2026-01-01T00:00:00Z",
                            "updated_at": "2026-01-01T00:00:00Z",
                        }
                    ],
                },
            )

        async with _client(handler) as client:
            issue = await client.get_issue(issue_id)

        assert issue.title == "Login fails"
        assert issue.priority == "HIGH"
        assert [c.author.id for c in issue.comments] == [author_id]

    @pytest.mark.asyncio
    async def test_list_labels_not_found_raises(self):
        def handler(request):
            return httpx.Response(404, json={"error": "Project not found"})

        async with _client(handler) as client:
            with pytest.raises(TrackerAPIError) as exc_info:
                await client.list_labels(uuid.uuid4())

        assert exc_info.value.status_code == 404
        assert exc_info.value.message == "Project not found"
