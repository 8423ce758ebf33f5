"""Flat Todoist sync snapshot -> nested, id-free export.

The sync endpoint returns every entity as a flat record that points at its
owner by id. This module rebuilds the project -> section -> task hierarchy
(plus task subtasks and sub-projects), resolves label ids to names and drops
soft-deleted records. Nothing here performs I/O.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterable, Mapping

from .models import (
    CleanFilter,
    CleanProject,
    CleanSection,
    CleanTask,
    ExportMeta,
    ExportStats,
    FullExport,
    GlobalDefinitions,
)

logger = logging.getLogger(__name__)

UNKNOWN_LABEL = "Unknown Label"
PRIORITY_LABELS = {4: "P1", 3: "P2", 2: "P3", 1: "P4"}
DEFAULT_PRIORITY = "P4"

Record = Mapping[str, Any]


@dataclass
class TaskNode:
    id: str
    project_id: str | None
    section_id: str | None
    parent_id: str | None
    content: str
    description: str | None
    priority: str
    due: str | None
    is_completed: bool
    labels: list[str]
    subtasks: list[TaskNode] = field(default_factory=list)

    def to_clean(self) -> CleanTask:
        return CleanTask(
            content=self.content,
            description=self.description,
            priority=self.priority,
            due=self.due,
            is_completed=self.is_completed,
            labels=list(self.labels),
            subtasks=[child.to_clean() for child in self.subtasks],
        )


@dataclass
class ProjectTaskGroup:
    no_section: list[CleanTask] = field(default_factory=list)
    sections: dict[str, list[CleanTask]] = field(default_factory=dict)


@dataclass
class ProjectNode:
    id: str
    parent_id: str | None
    child_order: Any
    project: str
    is_archived: bool
    view_style: str
    sections: list[CleanSection]
    tasks: list[CleanTask]
    sub_projects: list[ProjectNode] = field(default_factory=list)

    def to_clean(self) -> CleanProject:
        children = sorted(self.sub_projects, key=lambda node: _order_key(node.child_order))
        return CleanProject(
            project=self.project,
            is_archived=self.is_archived,
            view_style=self.view_style,
            sections=self.sections,
            tasks=self.tasks,
            sub_projects=[child.to_clean() for child in children],
        )


def _order_key(value: Any) -> float:
    if value is None:
        return 0
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0


def _sorted_by(records: Iterable[Record], key: str) -> list[Record]:
    return sorted(records, key=lambda record: _order_key(record.get(key)))


def _ref(value: Any) -> str | None:
    if value is None or value == "":
        return None
    return str(value)


def map_priority(value: Any) -> str:
    return PRIORITY_LABELS.get(value, DEFAULT_PRIORITY)


def resolve_due(due: Mapping[str, Any] | None) -> str | None:
    """Prefer the natural-language form ("every day") over the raw date."""
    if not due:
        return None
    return due.get("string") or due.get("date") or None


def extract_labels(labels: Iterable[Record]) -> tuple[dict[str, str], list[str]]:
    lookup: dict[str, str] = {}
    names: list[str] = []
    for label in _sorted_by(labels, "item_order"):
        name = label.get("name") or ""
        lookup[str(label.get("id"))] = name
        names.append(name)
    return lookup, names


def extract_filters(filters: Iterable[Record]) -> list[CleanFilter]:
    live = [item for item in filters if not item.get("is_deleted")]
    return [
        CleanFilter(name=item.get("name") or "", query=item.get("query") or "")
        for item in _sorted_by(live, "item_order")
    ]


def _task_node(raw: Record, label_lookup: Mapping[str, str]) -> TaskNode:
    return TaskNode(
        id=str(raw.get("id")),
        project_id=_ref(raw.get("project_id")),
        section_id=_ref(raw.get("section_id")),
        parent_id=_ref(raw.get("parent_id")),
        content=raw.get("content") or "",
        description=raw.get("description") or None,
        priority=map_priority(raw.get("priority")),
        due=resolve_due(raw.get("due")),
        is_completed=raw.get("checked") == 1,
        labels=[label_lookup.get(str(label_id)) or UNKNOWN_LABEL for label_id in raw.get("labels") or []],
    )


def build_task_groups(
    items: Iterable[Record], label_lookup: Mapping[str, str]
) -> dict[str, ProjectTaskGroup]:
    """Nest subtasks under their parents and bucket the roots by project and section."""
    live = [item for item in items if not item.get("is_deleted")]
    # Sibling order in the output is the order children are appended here.
    nodes: dict[str, TaskNode] = {}
    for raw in _sorted_by(live, "child_order"):
        node = _task_node(raw, label_lookup)
        nodes[node.id] = node

    roots: list[TaskNode] = []
    for node in nodes.values():
        parent = nodes.get(node.parent_id) if node.parent_id else None
        if parent is not None and parent is not node:
            parent.subtasks.append(node)
        else:
            if node.parent_id:
                logger.debug("Task %s has no live parent %s; promoted to root", node.id, node.parent_id)
            roots.append(node)

    reached: set[str] = set()
    pending = list(roots)
    while pending:
        node = pending.pop()
        reached.add(node.id)
        pending.extend(node.subtasks)
    for node in nodes.values():
        if node.id not in reached:
            logger.warning("Task %s sits in a parent cycle and is left out of the export", node.id)

    groups: dict[str, ProjectTaskGroup] = {}
    for node in roots:
        group = groups.setdefault(str(node.project_id), ProjectTaskGroup())
        clean = node.to_clean()
        if node.section_id:
            group.sections.setdefault(node.section_id, []).append(clean)
        else:
            group.no_section.append(clean)
    return groups


def _project_sections(
    project_id: str,
    sections: list[Record],
    group: ProjectTaskGroup | None,
    drop_empty_sections: bool,
) -> list[CleanSection]:
    owned = [section for section in sections if _ref(section.get("project_id")) == project_id]
    result: list[CleanSection] = []
    for section in _sorted_by(owned, "section_order"):
        tasks = group.sections.get(str(section.get("id")), []) if group else []
        if drop_empty_sections and not tasks:
            continue
        result.append(CleanSection(name=section.get("name") or "", tasks=tasks))
    return result


def build_project_tree(
    projects: Iterable[Record],
    sections: Iterable[Record],
    task_groups: Mapping[str, ProjectTaskGroup],
    drop_empty_sections: bool = False,
) -> list[CleanProject]:
    live_sections = [section for section in sections if not section.get("is_deleted")]

    nodes: dict[str, ProjectNode] = {}
    for raw in projects:
        if raw.get("is_deleted"):
            continue
        project_id = str(raw.get("id"))
        group = task_groups.get(project_id)
        nodes[project_id] = ProjectNode(
            id=project_id,
            parent_id=_ref(raw.get("parent_id")),
            child_order=raw.get("child_order"),
            project=raw.get("name") or "",
            is_archived=bool(raw.get("is_archived")),
            view_style=raw.get("view_style") or "list",
            sections=_project_sections(project_id, live_sections, group, drop_empty_sections),
            tasks=list(group.no_section) if group else [],
        )

    roots: list[ProjectNode] = []
    for node in nodes.values():
        parent = nodes.get(node.parent_id) if node.parent_id else None
        if parent is not None and parent is not node:
            parent.sub_projects.append(node)
        else:
            roots.append(node)

    roots.sort(key=lambda node: _order_key(node.child_order))
    return [node.to_clean() for node in roots]


def _timestamp(now: datetime | None) -> str:
    # Naive values are local time.
    now = (now or datetime.now(timezone.utc)).astimezone(timezone.utc)
    return now.strftime("%Y-%m-%dT%H:%M:%S.") + f"{now.microsecond // 1000:03d}Z"


def process_for_ai(
    data: Mapping[str, Any],
    *,
    drop_empty_sections: bool = False,
    now: datetime | None = None,
) -> FullExport:
    projects = data.get("projects") or []
    sections = data.get("sections") or []
    items = data.get("items") or []
    labels = data.get("labels") or []
    filters = data.get("filters") or []

    label_lookup, available_labels = extract_labels(labels)
    available_filters = extract_filters(filters)
    task_groups = build_task_groups(items, label_lookup)
    projects_tree = build_project_tree(projects, sections, task_groups, drop_empty_sections)

    logger.info(
        "Normalized %d projects and %d items into %d root projects",
        len(projects),
        len(items),
        len(projects_tree),
    )

    # Totals are raw lengths, soft-deleted records included.
    stats = ExportStats(
        total_projects=len(projects),
        total_tasks=len(items),
        total_labels=len(available_labels),
        total_filters=len(available_filters),
    )
    return FullExport(
        meta=ExportMeta(generated_at=_timestamp(now), stats=stats),
        global_definitions=GlobalDefinitions(
            available_labels=available_labels,
            available_filters=available_filters,
        ),
        projects_tree=projects_tree,
    )
