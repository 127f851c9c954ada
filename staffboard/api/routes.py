import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse, RedirectResponse
from pydantic import BaseModel

from staffboard.api.dependencies import (
    get_context,
    require_manager_action,
    require_view,
)
from staffboard.context import AppContext
from staffboard.engine import dashboards
from staffboard.gateway.errors import AuthFailure, GatewayError, ValidationFailure
from staffboard.gateway.schemas import AssignmentPayload, ProjectPayload
from staffboard.models.decisions import LOGIN_PATH, home_path
from staffboard.models.entities import Identity, NoticeLevel, ViewModel

router = APIRouter()
logger = logging.getLogger(__name__)

STATUS_FILTER = "^(all|planning|active|completed)$"


class LoginForm(BaseModel):
    email: str = ""
    password: str = ""


def render(vm: ViewModel, status_code: int = status.HTTP_200_OK) -> JSONResponse:
    return JSONResponse(jsonable_encoder(vm.to_dict()), status_code=status_code)


def redirect(location: str, vm: Optional[ViewModel] = None):
    if vm is None:
        return RedirectResponse(location, status_code=status.HTTP_303_SEE_OTHER)
    # Same redirect, with the outcome notice carried in the body
    response = render(vm, status.HTTP_303_SEE_OTHER)
    response.headers["location"] = location
    return response


# Session

@router.get("/login", summary="Login view")
def login_view(ctx: AppContext = Depends(get_context)):
    session = ctx.sessions.current
    return render(ViewModel("login", data={"authenticated": session.is_active}))


@router.post("/login", summary="Exchange credentials for a session")
async def login(form: LoginForm, ctx: AppContext = Depends(get_context)):
    """
    Authenticate against the backend and persist the session.

    **Outcomes:**
    - 303 to the role's home view on success
    - 401 with an error notice on bad credentials; the session is untouched
    - 422 when email or password is missing
    """
    vm = ViewModel("login", data={"authenticated": False})
    try:
        token, user = await ctx.gateway.login(form.email, form.password)
    except ValidationFailure as exc:
        vm.notify(NoticeLevel.ERROR, exc.message)
        return render(vm, status.HTTP_422_UNPROCESSABLE_ENTITY)
    except AuthFailure as exc:
        logger.warning(f"Login rejected for {form.email}")
        vm.notify(NoticeLevel.ERROR, exc.detail or "Login failed")
        return render(vm, status.HTTP_401_UNAUTHORIZED)
    except GatewayError as exc:
        logger.error(f"Login error: {exc.message}")
        vm.notify(NoticeLevel.ERROR, exc.detail or "Login failed")
        return render(vm, status.HTTP_502_BAD_GATEWAY)

    ctx.sessions.set_auth(token, user)
    vm.data["authenticated"] = True
    vm.notify(NoticeLevel.SUCCESS, "Logged in successfully!")
    return redirect(home_path(user.role), vm)


@router.post("/logout", summary="Clear the session")
def logout(ctx: AppContext = Depends(get_context)):
    ctx.sessions.clear_auth()
    vm = ViewModel("login", data={"authenticated": False})
    vm.notify(NoticeLevel.SUCCESS, "Logged out successfully!")
    return redirect(LOGIN_PATH, vm)


@router.get("/session", summary="Current identity")
def current_session(ctx: AppContext = Depends(get_context)):
    session = ctx.sessions.current
    return {"authenticated": session.is_active, "user": jsonable_encoder(session.user)}


# Dashboards

@router.get("/manager", summary="Manager dashboard")
async def manager_view(
    skill: Optional[str] = Query(None, description="Case-insensitive skill filter"),
    user: Identity = Depends(require_view("manager")),
    ctx: AppContext = Depends(get_context),
):
    async with ctx.views.open("manager") as lifetime:
        vm = await dashboards.manager_dashboard(ctx.gateway, lifetime, skill=skill)
    vm.data["viewer"] = user
    return render(vm)


@router.get("/engineer", summary="Engineer dashboard")
async def engineer_view(
    user: Identity = Depends(require_view("engineer")),
    ctx: AppContext = Depends(get_context),
):
    async with ctx.views.open("engineer") as lifetime:
        vm = await dashboards.engineer_dashboard(ctx.gateway, lifetime, user)
    vm.data["viewer"] = user
    return render(vm)


# Projects

@router.get("/projects", summary="Project list")
async def projects_view(
    status_filter: str = Query("all", alias="status", pattern=STATUS_FILTER),
    user: Identity = Depends(require_view("projects")),
    ctx: AppContext = Depends(get_context),
):
    async with ctx.views.open("projects") as lifetime:
        vm = await dashboards.projects_view(ctx.gateway, lifetime, status_filter)
    return render(vm)


@router.post("/projects", summary="Create project")
async def create_project(
    payload: ProjectPayload,
    user: Identity = Depends(require_view("projects")),
    ctx: AppContext = Depends(get_context),
):
    logger.info(f"Create project request: {payload.name!r} by {user.id}")
    async with ctx.views.open("projects") as lifetime:
        vm = await dashboards.create_project(ctx.gateway, lifetime, payload)
    return render(vm)


@router.get("/projects/{project_id}", summary="Project details")
async def project_details_view(
    project_id: str,
    user: Identity = Depends(require_view("project_details")),
    ctx: AppContext = Depends(get_context),
):
    async with ctx.views.open(f"project:{project_id}") as lifetime:
        vm = await dashboards.project_details(ctx.gateway, lifetime, project_id)
    return render(vm)


@router.put("/projects/{project_id}", summary="Update project")
async def update_project(
    project_id: str,
    payload: ProjectPayload,
    user: Identity = Depends(require_view("project_details")),
    ctx: AppContext = Depends(get_context),
):
    async with ctx.views.open(f"project:{project_id}") as lifetime:
        vm = await dashboards.update_project(ctx.gateway, lifetime, project_id, payload)
    return render(vm)


# Assignments

@router.get("/assignments", summary="Assignments visible to the viewer")
async def assignments_view(
    user: Identity = Depends(require_view("assignments")),
    ctx: AppContext = Depends(get_context),
):
    async with ctx.views.open("assignments") as lifetime:
        vm = await dashboards.assignments_view(ctx.gateway, lifetime, user)
    return render(vm)


@router.post("/assignments", summary="Create assignment")
async def create_assignment(
    payload: AssignmentPayload,
    user: Identity = Depends(require_manager_action),
    ctx: AppContext = Depends(get_context),
):
    logger.info(
        f"Create assignment: engineer={payload.engineer_id} project={payload.project_id} "
        f"allocation={payload.allocation_percentage}%"
    )
    async with ctx.views.open("assignments") as lifetime:
        vm = await dashboards.create_assignment(ctx.gateway, lifetime, user, payload)
    return render(vm)


@router.put("/assignments/{assignment_id}", summary="Update assignment")
async def update_assignment(
    assignment_id: str,
    payload: AssignmentPayload,
    user: Identity = Depends(require_manager_action),
    ctx: AppContext = Depends(get_context),
):
    async with ctx.views.open("assignments") as lifetime:
        vm = await dashboards.update_assignment(ctx.gateway, lifetime, user, assignment_id, payload)
    return render(vm)


@router.delete("/assignments/{assignment_id}", summary="Delete assignment")
async def delete_assignment(
    assignment_id: str,
    user: Identity = Depends(require_manager_action),
    ctx: AppContext = Depends(get_context),
):
    async with ctx.views.open("assignments") as lifetime:
        vm = await dashboards.delete_assignment(ctx.gateway, lifetime, user, assignment_id)
    return render(vm)


@router.api_route(
    "/{path:path}",
    methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
    include_in_schema=False,
)
def fallback(path: str):
    """Unknown views fall back to login."""
    return redirect(LOGIN_PATH)
