from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class CleanTask(BaseModel):
    content: str
    description: str | None = None
    priority: str
    due: str | None = None
    is_completed: bool = False
    labels: list[str] = Field(default_factory=list)
    subtasks: list[CleanTask] = Field(default_factory=list)


class CleanSection(BaseModel):
    name: str
    tasks: list[CleanTask] = Field(default_factory=list)


class CleanProject(BaseModel):
    project: str
    is_archived: bool = False
    view_style: str = "list"
    sections: list[CleanSection] = Field(default_factory=list)
    tasks: list[CleanTask] = Field(default_factory=list)
    sub_projects: list[CleanProject] = Field(default_factory=list)


class CleanFilter(BaseModel):
    name: str
    query: str


class ExportStats(BaseModel):
    total_projects: int
    total_tasks: int
    total_labels: int
    total_filters: int


class ExportMeta(BaseModel):
    generated_at: str
    stats: ExportStats


class GlobalDefinitions(BaseModel):
    available_labels: list[str] = Field(default_factory=list)
    available_filters: list[CleanFilter] = Field(default_factory=list)


class FullExport(BaseModel):
    meta: ExportMeta
    global_definitions: GlobalDefinitions
    projects_tree: list[CleanProject] = Field(default_factory=list)

    def to_json_dict(self) -> dict[str, Any]:
        """Dump for the JSON sink; absent optional task fields are omitted, not nulled."""
        return self.model_dump(exclude_none=True)
