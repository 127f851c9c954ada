import pytest

from staffboard.engine.access_guard import ROUTES, evaluate_access, navigate, resolve_route
from staffboard.models.decisions import Decision, DecisionKind, home_path
from staffboard.models.entities import Role, Session


@pytest.fixture
def manager_session(manager):
    return Session(token="t-m", user=manager)


@pytest.fixture
def engineer_session(engineer):
    return Session(token="t-e", user=engineer)


class TestEvaluateAccess:
    """Three-way navigation decision."""

    @pytest.mark.parametrize("roles", [None, (), (Role.MANAGER,), (Role.ENGINEER,)])
    def test_no_session_redirects_to_login(self, roles):
        decision = evaluate_access(Session.empty(), roles)
        assert decision.kind is DecisionKind.REDIRECT_LOGIN
        assert decision.location == "/login"

    def test_engineer_on_manager_view_goes_home(self, engineer_session):
        decision = evaluate_access(engineer_session, [Role.MANAGER])
        assert decision == Decision.redirect_home(Role.ENGINEER)
        assert decision.location == "/engineer"

    def test_manager_on_engineer_view_goes_home(self, manager_session):
        decision = evaluate_access(manager_session, [Role.ENGINEER])
        assert decision.location == "/manager"

    def test_manager_without_role_list_allowed(self, manager_session):
        assert evaluate_access(manager_session, None).allowed

    def test_empty_role_list_means_any_authenticated(self, engineer_session):
        assert evaluate_access(engineer_session, ()).allowed

    def test_member_role_allowed(self, engineer_session):
        decision = evaluate_access(engineer_session, [Role.ENGINEER, Role.MANAGER])
        assert decision.allowed
        assert decision.location is None

    def test_not_cached_between_calls(self, manager, engineer):
        """The same roles give different answers as the session changes."""
        roles = (Role.MANAGER,)
        assert evaluate_access(Session.empty(), roles).kind is DecisionKind.REDIRECT_LOGIN
        assert evaluate_access(Session(token="t", user=manager), roles).allowed
        assert evaluate_access(Session(token="t", user=engineer), roles).kind is DecisionKind.REDIRECT_HOME


class TestSessionInvariant:
    def test_token_without_user_rejected(self):
        with pytest.raises(ValueError):
            Session(token="orphan", user=None)

    def test_user_without_token_rejected(self, manager):
        with pytest.raises(ValueError):
            Session(token=None, user=manager)

    def test_empty_is_inactive(self):
        assert not Session.empty().is_active


class TestRouteTable:
    @pytest.mark.parametrize("path,name,params", [
        ("/login", "login", {}),
        ("/manager", "manager", {}),
        ("/engineer/", "engineer", {}),
        ("/projects", "projects", {}),
        ("/projects/p42", "project_details", {"project_id": "p42"}),
        ("/assignments", "assignments", {}),
    ])
    def test_resolves_known_paths(self, path, name, params):
        route, found = resolve_route(path)
        assert route.name == name
        assert found == params

    @pytest.mark.parametrize("path", ["/", "/nowhere", "/projects/p1/extra"])
    def test_unmatched_falls_back_to_login(self, path):
        route, _ = resolve_route(path)
        assert route.name == "login"

    def test_login_is_public(self):
        route, decision = navigate(Session.empty(), "/login")
        assert route.public
        assert decision.allowed

    def test_assignments_open_to_both_roles(self, manager_session, engineer_session):
        assert navigate(manager_session, "/assignments")[1].allowed
        assert navigate(engineer_session, "/assignments")[1].allowed

    def test_project_details_manager_only(self, engineer_session):
        _, decision = navigate(engineer_session, "/projects/p1")
        assert decision.location == "/engineer"

    def test_every_role_has_a_home(self):
        assert {home_path(role) for role in Role} == {"/manager", "/engineer"}
        assert all(r.path for r in ROUTES)
