from typing import Annotated, List, Literal, Union
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from .common import IssueStatus


class SearchResultBase(BaseModel):
    model_config = ConfigDict(populate_by_name=True, from_attributes=True)

    id: UUID
    title: str


class IssueSearchResult(SearchResultBase):
    type: Literal["issue"] = "issue"
    project_id: UUID = Field(alias="projectId")
    status: IssueStatus


class ProjectSearchResult(SearchResultBase):
    type: Literal["project"] = "project"


class TeamSearchResult(SearchResultBase):
    type: Literal["team"] = "team"


SearchResult = Annotated[
    Union[IssueSearchResult, ProjectSearchResult, TeamSearchResult],
    Field(discriminator="type"),
]

search_results_adapter = TypeAdapter(List[SearchResult])


def parse_search_results(payload: list) -> list[SearchResultBase]:
    """Validate a JSON search response into the tagged union."""
    return search_results_adapter.validate_python(payload)


def dump_search_results(results: list[SearchResultBase]) -> list[dict]:
    """Serialize results with their wire names (``projectId``)."""
    return search_results_adapter.dump_python(results, mode="json", by_alias=True)
