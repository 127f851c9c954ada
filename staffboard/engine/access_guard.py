import re
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

from staffboard.models.decisions import LOGIN_PATH, Decision
from staffboard.models.entities import Role, Session


def evaluate_access(session: Session, permitted_roles: Optional[Iterable[Role]] = None) -> Decision:
    """
    Decide whether the current session may open a view.

    ``permitted_roles`` of None (or empty) means any authenticated user.
    Must be called on every navigation; the session can change in between.
    """
    if not session.is_active:
        return Decision.redirect_login()

    roles = tuple(permitted_roles or ())
    role = session.user.role
    if roles and role not in roles:
        return Decision.redirect_home(role)
    return Decision.allow()


@dataclass(frozen=True)
class ViewRoute:
    name: str
    path: str
    permitted_roles: Optional[Tuple[Role, ...]]  # None: public
    public: bool = False

    @property
    def pattern(self) -> "re.Pattern":
        regex = re.sub(r"\{(\w+)\}", r"(?P<\1>[^/]+)", self.path)
        return re.compile(f"^{regex}$")


ANY_AUTHENTICATED: Tuple[Role, ...] = ()

ROUTES: List[ViewRoute] = [
    ViewRoute("login", LOGIN_PATH, None, public=True),
    ViewRoute("manager", "/manager", (Role.MANAGER,)),
    ViewRoute("engineer", "/engineer", (Role.ENGINEER,)),
    ViewRoute("projects", "/projects", (Role.MANAGER,)),
    ViewRoute("project_details", "/projects/{project_id}", (Role.MANAGER,)),
    ViewRoute("assignments", "/assignments", ANY_AUTHENTICATED),
]


def resolve_route(path: str) -> Tuple[ViewRoute, dict]:
    """Map a path to its view; unmatched paths fall back to login."""
    normalized = path.rstrip("/") or "/"
    for route in ROUTES:
        match = route.pattern.match(normalized)
        if match:
            return route, match.groupdict()
    return ROUTES[0], {}


def route_named(name: str) -> ViewRoute:
    for route in ROUTES:
        if route.name == name:
            return route
    raise KeyError(name)


def navigate(session: Session, path: str) -> Tuple[ViewRoute, Decision]:
    route, _ = resolve_route(path)
    if route.public:
        return route, Decision.allow()
    return route, evaluate_access(session, route.permitted_roles)
