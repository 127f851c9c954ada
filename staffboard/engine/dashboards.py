"""
View builders for the dashboard screens.

Each builder fetches through the gateway, passes raw data through the
capacity calculator or visibility filter and returns a ``ViewModel``. Backend
failures degrade the affected section to an empty/default state and add an
error notice; a builder never raises a ``GatewayError`` to its caller.
"""
import logging
from dataclasses import dataclass
from datetime import date
from typing import Awaitable, Callable, Optional

from staffboard.engine.capacity import (
    UtilizationReading,
    availability_text,
    utilization_or_default,
    zero_capacity,
)
from staffboard.engine.lifetimes import ViewLifetime, ViewSuperseded
from staffboard.engine.visibility import (
    assignments_for_project,
    compute_skill_gap,
    filter_engineers_by_skill,
    filter_projects_by_status,
    refresh_after_mutation,
    visible_assignments,
)
from staffboard.gateway.client import DataGateway
from staffboard.gateway.errors import GatewayError, NotFound
from staffboard.gateway.schemas import AssignmentPayload, ProjectPayload
from staffboard.models.entities import (
    CapacitySnapshot,
    Engineer,
    Identity,
    NoticeLevel,
    Role,
    SkillGap,
    ViewModel,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EngineerRow:
    engineer: Engineer
    utilization: UtilizationReading
    total_allocated: float
    available_on: Optional[date]
    availability: str


def _failure_text(exc: GatewayError, fallback: str) -> str:
    return exc.detail or fallback


async def _write_then_refresh(
    write: Awaitable,
    refresh: Callable[[], Awaitable[ViewModel]],
    view: str,
    success: str,
    failure: str,
) -> ViewModel:
    """
    Await a backend write, then rebuild the view from a fresh fetch.

    The write is awaited by the caller's own task, never by the view lifetime,
    so a newer navigation to the same view cannot cancel it. Only the re-fetch
    can be superseded; the outcome notice is reported either way.
    """
    try:
        await write
    except GatewayError as exc:
        logger.error(f"Write on {view} failed: {exc.message}")
        notice = (NoticeLevel.ERROR, _failure_text(exc, failure))
    else:
        notice = (NoticeLevel.SUCCESS, success)

    try:
        vm = await refresh()
    except ViewSuperseded:
        logger.info(f"Refresh of {view} superseded after write")
        vm = ViewModel(view, data={"superseded": True})
    vm.notify(*notice)
    return vm


# Manager dashboard

async def manager_dashboard(
    gateway: DataGateway,
    lifetime: ViewLifetime,
    skill: Optional[str] = None,
    today: Optional[date] = None,
) -> ViewModel:
    vm = ViewModel("manager", data={"engineers": [], "chart": [], "overallocated": []})
    try:
        engineers = await lifetime.run(gateway.list_engineers())
    except GatewayError as exc:
        logger.error(f"Error fetching engineers: {exc.message}")
        vm.notify(NoticeLevel.ERROR, "Failed to load engineers.")
        return vm

    today = today or date.today()
    calls = [(gateway.get_availability(e.id), today, f"availability {e.id}") for e in engineers]
    calls += [(gateway.get_capacity(e.id, e.max_capacity), None, f"capacity {e.id}") for e in engineers]
    results = await lifetime.gather_with_defaults(*calls)
    availability, capacities = results[:len(engineers)], results[len(engineers):]

    rows = {}
    for engineer, available_on, snapshot in zip(engineers, availability, capacities):
        total = snapshot.total_allocated if snapshot else 0
        pct = utilization_or_default(total, engineer.max_capacity) if snapshot else 0
        reading = UtilizationReading.from_pct(pct)
        rows[engineer.id] = EngineerRow(
            engineer=engineer,
            utilization=reading,
            total_allocated=total,
            available_on=available_on,
            availability=availability_text(reading.raw_pct, available_on),
        )

    visible = filter_engineers_by_skill(engineers, skill)
    vm.data["engineers"] = [rows[e.id] for e in visible]
    vm.data["chart"] = [
        {"name": e.name, "utilization": rows[e.id].utilization.display_pct} for e in engineers
    ]
    # Alerts need the unclamped figure
    vm.data["overallocated"] = [
        {"id": e.id, "name": e.name, "utilization": rows[e.id].utilization.raw_pct}
        for e in engineers
        if rows[e.id].utilization.overallocated
    ]
    if skill and skill.strip() and not visible:
        vm.notify(NoticeLevel.INFO, "No engineers match that skill.")
    return vm


# Engineer dashboard

async def engineer_dashboard(gateway: DataGateway, lifetime: ViewLifetime, viewer: Identity) -> ViewModel:
    vm = ViewModel("engineer")
    failed = []

    async def load_assignments():
        try:
            return visible_assignments(await gateway.list_assignments(), viewer)
        except GatewayError:
            failed.append("assignments")
            raise

    async def load_capacity() -> CapacitySnapshot:
        try:
            # The capacity endpoint omits the ceiling; it lives on the engineer record
            engineers = await gateway.list_engineers()
            own = next((e for e in engineers if e.id == viewer.id), None)
            return await gateway.get_capacity(viewer.id, own.max_capacity if own else None)
        except GatewayError:
            failed.append("capacity")
            raise

    assignments, capacity = await lifetime.gather_with_defaults(
        (load_assignments(), [], "assignments"),
        (load_capacity(), zero_capacity(viewer.id), "capacity"),
    )
    if failed:
        vm.notify(NoticeLevel.ERROR, "Failed to load assignments or capacity.")

    utilization = None
    if capacity.max_capacity:
        utilization = UtilizationReading.measure(capacity.total_allocated, capacity.max_capacity)
    elif not failed:
        logger.warning(f"No capacity ceiling on record for {viewer.id}")
        vm.notify(NoticeLevel.INFO, "Utilization unavailable: no capacity on record.")

    vm.data = {
        "assignments": assignments,
        "capacity": capacity,
        "utilization": utilization,
    }
    return vm


# Projects

async def projects_view(gateway: DataGateway, lifetime: ViewLifetime, status: Optional[str] = "all") -> ViewModel:
    vm = ViewModel("projects", data={"projects": [], "status": status or "all"})
    try:
        projects = await lifetime.run(gateway.list_projects())
    except GatewayError as exc:
        logger.error(f"Error fetching projects: {exc.message}")
        vm.notify(NoticeLevel.ERROR, "Failed to load projects.")
        return vm
    vm.data["projects"] = filter_projects_by_status(projects, status)
    return vm


async def create_project(
    gateway: DataGateway,
    lifetime: ViewLifetime,
    payload: ProjectPayload,
    status: Optional[str] = "all",
) -> ViewModel:
    return await _write_then_refresh(
        gateway.create_project(payload),
        lambda: projects_view(gateway, lifetime, status),
        "projects", "Project created successfully", "Creation failed",
    )


async def _fallback_skill_gap(gateway: DataGateway, lifetime: ViewLifetime, project, assignments) -> Optional[SkillGap]:
    if project is None:
        return None
    try:
        engineers = await lifetime.run(gateway.list_engineers())
    except GatewayError as exc:
        logger.error(f"Error computing skill gap locally: {exc.message}")
        return None
    assigned_ids = {a.engineer.id for a in assignments}
    return compute_skill_gap(project.required_skills, [e for e in engineers if e.id in assigned_ids])


async def project_details(gateway: DataGateway, lifetime: ViewLifetime, project_id: str) -> ViewModel:
    vm = ViewModel("project_details", data={"project": None, "assignments": [], "skill_gap": None})
    missing = object()

    async def load_project():
        try:
            return await gateway.get_project(project_id)
        except NotFound:
            return missing

    project, assignments, gap = await lifetime.gather_with_defaults(
        (load_project(), None, f"project {project_id}"),
        (gateway.list_assignments(), None, "assignments"),
        (gateway.get_skill_gap(project_id), None, f"skill gap {project_id}"),
    )
    if project is missing:
        vm.notify(NoticeLevel.ERROR, "Project not found.")
        return vm
    if project is None:
        vm.notify(NoticeLevel.ERROR, "Failed to load project details.")
    team_known = assignments is not None
    if not team_known:
        vm.notify(NoticeLevel.ERROR, "Failed to load assignments for this project.")
        assignments = []
    project_assignments = assignments_for_project(assignments, project_id)
    # Without the team a local gap would report every skill missing
    if gap is None and team_known:
        gap = await _fallback_skill_gap(gateway, lifetime, project, project_assignments)

    vm.data = {
        "project": project,
        "assignments": project_assignments,
        "skill_gap": gap,
        "skill_coverage": gap.coverage if gap else None,
    }
    return vm


async def update_project(
    gateway: DataGateway,
    lifetime: ViewLifetime,
    project_id: str,
    payload: ProjectPayload,
) -> ViewModel:
    return await _write_then_refresh(
        gateway.update_project(project_id, payload),
        lambda: project_details(gateway, lifetime, project_id),
        "project_details", "Project updated successfully", "Update failed",
    )


# Assignments

async def assignments_view(gateway: DataGateway, lifetime: ViewLifetime, viewer: Identity) -> ViewModel:
    vm = ViewModel("assignments", data={"assignments": [], "engineers": [], "projects": []})
    try:
        vm.data["assignments"] = await lifetime.run(
            refresh_after_mutation(gateway.list_assignments, viewer)
        )
    except GatewayError as exc:
        logger.error(f"Error fetching assignments: {exc.message}")
        vm.notify(NoticeLevel.ERROR, "Failed to load assignments.")

    if viewer.role is Role.MANAGER:
        # Form choices, only managers can assign
        failed = []

        async def load(fetch, name):
            try:
                return await fetch()
            except GatewayError:
                failed.append(name)
                raise

        engineers, projects = await lifetime.gather_with_defaults(
            (load(gateway.list_engineers, "engineers"), [], "engineers"),
            (load(gateway.list_projects, "projects"), [], "projects"),
        )
        vm.data["engineers"] = engineers
        vm.data["projects"] = projects
        if failed:
            vm.notify(NoticeLevel.ERROR, "Failed to load engineers or projects.")
    return vm


async def _mutate_assignments(gateway, lifetime, viewer, mutation, success: str, failure: str) -> ViewModel:
    # Always re-fetch and re-filter; never patch the list in place
    return await _write_then_refresh(
        mutation,
        lambda: assignments_view(gateway, lifetime, viewer),
        "assignments", success, failure,
    )


async def create_assignment(
    gateway: DataGateway, lifetime: ViewLifetime, viewer: Identity, payload: AssignmentPayload
) -> ViewModel:
    return await _mutate_assignments(
        gateway, lifetime, viewer, gateway.create_assignment(payload),
        "Assignment created successfully", "Creation failed",
    )


async def update_assignment(
    gateway: DataGateway, lifetime: ViewLifetime, viewer: Identity, assignment_id: str, payload: AssignmentPayload
) -> ViewModel:
    return await _mutate_assignments(
        gateway, lifetime, viewer, gateway.update_assignment(assignment_id, payload),
        "Assignment updated successfully", "Update failed",
    )


async def delete_assignment(
    gateway: DataGateway, lifetime: ViewLifetime, viewer: Identity, assignment_id: str
) -> ViewModel:
    return await _mutate_assignments(
        gateway, lifetime, viewer, gateway.delete_assignment(assignment_id),
        "Assignment deleted", "Failed to delete",
    )
