from fastapi import Depends, Request

from staffboard.context import AppContext
from staffboard.engine.access_guard import evaluate_access, route_named
from staffboard.models.entities import Identity, Role


class NavigationRedirect(Exception):
    def __init__(self, location: str):
        self.location = location
        super().__init__(location)


def get_context(request: Request) -> AppContext:
    return request.app.state.context


def require_view(view_name: str):
    """
    Guard dependency for a named view. Re-evaluated on every request because
    login and logout change the session between navigations.
    """
    route = route_named(view_name)

    def guard(ctx: AppContext = Depends(get_context)) -> Identity:
        session = ctx.sessions.current
        decision = evaluate_access(session, route.permitted_roles)
        if not decision.allowed:
            raise NavigationRedirect(decision.location)
        return session.user

    return guard


def require_manager_action(ctx: AppContext = Depends(get_context)) -> Identity:
    session = ctx.sessions.current
    decision = evaluate_access(session, (Role.MANAGER,))
    if not decision.allowed:
        raise NavigationRedirect(decision.location)
    return session.user
