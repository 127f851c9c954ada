import logging
from typing import Awaitable, Callable, Iterable, List, Optional, Sequence, Union

from staffboard.models.entities import (
    Assignment,
    Engineer,
    Identity,
    Project,
    ProjectStatus,
    Role,
    SkillGap,
)

logger = logging.getLogger(__name__)


def visible_assignments(assignments: Sequence[Assignment], viewer: Identity) -> List[Assignment]:
    """Managers see everything; engineers see only their own rows, order kept."""
    if viewer.role is Role.MANAGER:
        return list(assignments)
    if viewer.role is Role.ENGINEER:
        return [a for a in assignments if a.engineer.id == viewer.id]
    raise ValueError(f"unhandled role {viewer.role!r}")


async def refresh_after_mutation(
    fetch: Callable[[], Awaitable[Sequence[Assignment]]],
    viewer: Identity,
) -> List[Assignment]:
    """
    Re-fetch the assignment list after a create/update/delete and re-apply the
    visibility predicate. Every mutation path goes through here so a patched
    list can never include a record the viewer should not see.
    """
    fresh = await fetch()
    visible = visible_assignments(fresh, viewer)
    logger.debug(f"Refreshed assignments: {len(visible)}/{len(fresh)} visible to {viewer.id}")
    return visible


def assignments_for_project(assignments: Iterable[Assignment], project_id: str) -> List[Assignment]:
    return [a for a in assignments if a.project.id == project_id]


def _ordered_unique(items: Iterable[str]) -> tuple:
    seen = set()
    result = []
    for item in items:
        if item not in seen:
            seen.add(item)
            result.append(item)
    return tuple(result)


def compute_skill_gap(required: Iterable[str], assigned_engineers: Iterable[Engineer]) -> SkillGap:
    """
    Required skills not covered by any assigned engineer.

    Matching is exact and case-sensitive: "react" does not cover "React".
    """
    required_skills = _ordered_unique(required)
    assigned_skills = _ordered_unique(
        skill for engineer in assigned_engineers for skill in engineer.skills
    )
    covered = set(assigned_skills)
    missing = tuple(s for s in required_skills if s not in covered)
    return SkillGap(
        required_skills=required_skills,
        assigned_skills=assigned_skills,
        missing_skills=missing,
    )


def filter_engineers_by_skill(engineers: Sequence[Engineer], query: Optional[str]) -> List[Engineer]:
    needle = (query or "").strip().lower()
    if not needle:
        return list(engineers)
    return [e for e in engineers if any(needle in skill.lower() for skill in e.skills)]


def filter_projects_by_status(
    projects: Sequence[Project],
    status: Union[ProjectStatus, str, None] = "all",
) -> List[Project]:
    if status is None or status == "all":
        return list(projects)
    wanted = ProjectStatus(status)
    return [p for p in projects if p.status is wanted]


def parse_skill_list(raw: Union[str, Iterable[str], None]) -> List[str]:
    """Accepts "React, Node" style input or an iterable; blanks dropped."""
    if raw is None:
        return []
    parts = raw.split(",") if isinstance(raw, str) else raw
    return [s.strip() for s in parts if s and s.strip()]
