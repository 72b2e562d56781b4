"""
Optimistic views over Trackline data.

Each view owns an OptimisticMutationCoordinator. User actions change the
displayed value immediately and return the background task that carries the
durable mutation; awaiting it yields the MutationOutcome.

``load`` builds a view from the server and ``refresh`` re-reads the server value
into the base, keeping still-pending changes applied on top.
"""

from __future__ import annotations

import asyncio
import uuid
from datetime import datetime, timezone
from typing import Any, Iterable

from trackline_shared.schemas.common import IssueStatus
from trackline_shared.schemas.issues import CommentAuthor, CommentRead, IssueDetail, IssueUpdate
from trackline_shared.schemas.projects import LabelRead, ProjectSummary

from . import transforms
from .api import TrackerClient
from .metrics import MetricsCollector
from .optimistic import DEFAULT_MUTATION_TIMEOUT_SECONDS, OptimisticMutationCoordinator


class _View:
    def __init__(
        self,
        api: TrackerClient,
        initial: Any,
        name: str,
        mutation_timeout: float,
        metrics: MetricsCollector | None,
    ):
        self._api = api
        self.coordinator = OptimisticMutationCoordinator(
            initial, name=name, mutation_timeout=mutation_timeout, metrics=metrics
        )

    @property
    def errors(self) -> list[str]:
        return self.coordinator.errors

    def subscribe(self, listener):
        return self.coordinator.state.subscribe(listener)

    async def settle(self) -> None:
        await self.coordinator.drain()


class ProjectListView(_View):
    """A user's project list with favorite toggles."""

    def __init__(
        self,
        api: TrackerClient,
        projects: Iterable[ProjectSummary],
        *,
        mutation_timeout: float = DEFAULT_MUTATION_TIMEOUT_SECONDS,
        metrics: MetricsCollector | None = None,
    ):
        super().__init__(api, list(projects), "projects", mutation_timeout, metrics)

    @property
    def projects(self) -> list[ProjectSummary]:
        return self.coordinator.value

    @property
    def favorites(self) -> list[ProjectSummary]:
        return [p for p in self.projects if p.is_favorite]

    @classmethod
    async def load(cls, api: TrackerClient, **kwargs: Any) -> "ProjectListView":
        return cls(api, await api.list_projects(), **kwargs)

    def toggle_favorite(self, project_id: uuid.UUID | str) -> asyncio.Task:
        # Absolute target: re-applied over a refreshed base it yields the same value.
        target = not self._project(project_id).is_favorite
        return self.coordinator.dispatch(
            transforms.patch_item(project_id, is_favorite=target),
            lambda: self._api.toggle_favorite(project_id),
            entity_key=f"project:{project_id}:favorite",
        )

    async def refresh(self) -> None:
        self.coordinator.state.reset(await self._api.list_projects())

    def _project(self, project_id: uuid.UUID | str) -> ProjectSummary:
        for project in self.projects:
            if str(project.id) == str(project_id):
                return project
        raise KeyError(project_id)


class IssueDetailView(_View):
    """A single issue with its comment thread."""

    def __init__(
        self,
        api: TrackerClient,
        issue: IssueDetail,
        *,
        mutation_timeout: float = DEFAULT_MUTATION_TIMEOUT_SECONDS,
        metrics: MetricsCollector | None = None,
    ):
        super().__init__(api, issue, f"issue:{issue.id}", mutation_timeout, metrics)
        self._issue_id = issue.id

    @classmethod
    async def load(
        cls, api: TrackerClient, issue_id: uuid.UUID | str, **kwargs: Any
    ) -> "IssueDetailView":
        return cls(api, await api.get_issue(issue_id), **kwargs)

    @property
    def issue(self) -> IssueDetail:
        return self.coordinator.value

    def add_comment(self, content: str, author: CommentAuthor) -> asyncio.Task:
        # Shown under a local id until the next refresh brings the stored comment.
        now = datetime.now(timezone.utc)
        comment = CommentRead(
            id=uuid.uuid4(), content=content, author=author, created_at=now, updated_at=now
        )
        return self.coordinator.dispatch(
            transforms.append_child("comments", comment),
            lambda: self._api.add_comment(self._issue_id, content),
            entity_key=f"comment:{comment.id}",
        )

    def update_issue(self, **fields: Any) -> asyncio.Task:
        update = IssueUpdate(**fields)
        changes = update.model_dump(exclude_unset=True)
        payload = update.model_dump(exclude_unset=True, mode="json")
        return self.coordinator.dispatch(
            transforms.patch_record(**changes),
            lambda: self._api.update_issue(self._issue_id, **payload),
            entity_key=f"issue:{self._issue_id}",
        )

    def change_status(self, status: IssueStatus | str) -> asyncio.Task:
        status = IssueStatus(status)
        return self.coordinator.dispatch(
            transforms.patch_record(status=status),
            lambda: self._api.change_status(self._issue_id, status),
            entity_key=f"issue:{self._issue_id}",
        )

    async def refresh(self) -> None:
        self.coordinator.state.reset(await self._api.get_issue(self._issue_id))


class LabelListView(_View):
    """Labels of one project."""

    def __init__(
        self,
        api: TrackerClient,
        project_id: uuid.UUID,
        labels: Iterable[LabelRead],
        *,
        mutation_timeout: float = DEFAULT_MUTATION_TIMEOUT_SECONDS,
        metrics: MetricsCollector | None = None,
    ):
        super().__init__(api, list(labels), f"labels:{project_id}", mutation_timeout, metrics)
        self._project_id = project_id

    @classmethod
    async def load(
        cls, api: TrackerClient, project_id: uuid.UUID, **kwargs: Any
    ) -> "LabelListView":
        return cls(api, project_id, await api.list_labels(project_id), **kwargs)

    @property
    def labels(self) -> list[LabelRead]:
        return self.coordinator.value

    def create_label(self, name: str, color: str) -> asyncio.Task:
        # Not validated locally; the server's verdict decides whether it stays.
        label = LabelRead.model_construct(
            id=uuid.uuid4(), project_id=self._project_id, name=name, color=color
        )
        return self.coordinator.dispatch(
            transforms.append_item(label),
            lambda: self._api.create_label(self._project_id, name, color),
            entity_key=f"label:{name}",
        )

    def delete_label(self, label_id: uuid.UUID | str) -> asyncio.Task:
        return self.coordinator.dispatch(
            transforms.remove_item(label_id),
            lambda: self._api.delete_label(label_id),
            entity_key=f"label-id:{label_id}",
        )

    async def refresh(self) -> None:
        self.coordinator.state.reset(await self._api.list_labels(self._project_id))
