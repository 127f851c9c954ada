import json
import re
from datetime import date

import httpx
import pytest

from staffboard.config.settings import Settings
from staffboard.models.entities import (
    Assignment,
    Engineer,
    EngineerRef,
    Identity,
    ProjectRef,
    Role,
)
from staffboard.storage.state_store import SqlStateStore

API_BASE = "http://backend.test/api"


class FakeBackend:
    """In-memory stand-in for the REST backend, served through httpx.MockTransport."""

    def __init__(self):
        self.users = {
            "maya@example.com": ("secret", {"id": "m1", "name": "Maya", "email": "maya@example.com", "role": "manager"}),
            "eli@example.com": ("secret", {"id": "e1", "name": "Eli", "email": "eli@example.com", "role": "engineer"}),
        }
        self.engineers = [
            {"_id": "e1", "name": "Eli", "email": "eli@example.com", "skills": ["React", "Node"],
             "seniority": "senior", "maxCapacity": 100, "department": "Web"},
            {"_id": "e2", "name": "Ana", "email": "ana@example.com", "skills": ["Python"],
             "seniority": "mid", "maxCapacity": 40, "department": "Data"},
        ]
        self.projects = [
            {"_id": "p1", "name": "Portal", "description": "Customer portal", "startDate": "2026-01-05T00:00:00.000Z",
             "endDate": "2026-06-30T00:00:00.000Z", "requiredSkills": ["React", "Node", "GraphQL"],
             "teamSize": 3, "status": "active", "managerId": {"_id": "m1", "name": "Maya", "email": "maya@example.com"}},
            {"_id": "p2", "name": "Pipeline", "description": "", "startDate": "2026-02-01",
             "endDate": "2026-09-01", "requiredSkills": ["Python"], "teamSize": 1, "status": "planning",
             "managerId": "m1"},
        ]
        self.assignments = [
            self._assignment("a1", "e1", "p1", 60, "Frontend"),
            self._assignment("a2", "e2", "p2", 20, "Engineer"),
            self._assignment("a3", "e2", "p1", 25, "Reviewer"),
        ]
        self.availability = {"e1": "2026-07-01T00:00:00.000Z", "e2": "2026-09-02T00:00:00.000Z"}
        self.failures = {}
        self.requests = []
        self.tokens = {}
        self._next_id = 100

    def _assignment(self, aid, engineer_id, project_id, pct, role, start="2026-01-05", end="2026-06-30"):
        engineer = next(e for e in self.engineers if e["_id"] == engineer_id)
        project = next(p for p in self.projects if p["_id"] == project_id)
        return {
            "_id": aid,
            "engineerId": {"_id": engineer_id, "name": engineer["name"], "email": engineer["email"]},
            "projectId": {"_id": project_id, "name": project["name"]},
            "allocationPercentage": pct,
            "startDate": start,
            "endDate": end,
            "role": role,
        }

    def fail(self, method: str, path: str, status_code: int = 500, message: str = None) -> None:
        self.failures[(method, path)] = (status_code, message)

    def issue_token(self, user_id: str) -> str:
        token = f"token-{user_id}-{len(self.tokens) + 1}"
        self.tokens[token] = user_id
        return token

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path[len("/api"):]
        method = request.method

        if (method, path) in self.failures:
            status_code, message = self.failures[(method, path)]
            return httpx.Response(status_code, json={"message": message} if message else {})

        if path == "/auth/login" and method == "POST":
            body = json.loads(request.content)
            entry = self.users.get(body.get("email"))
            if entry is None or entry[0] != body.get("password"):
                return httpx.Response(401, json={"message": "Invalid credentials"})
            return httpx.Response(200, json={"token": self.issue_token(entry[1]["id"]), "user": entry[1]})

        auth = request.headers.get("Authorization", "")
        if not auth.startswith("Bearer ") or auth[7:] not in self.tokens:
            return httpx.Response(401, json={"message": "Not authorized"})

        return self._route(method, path, request)

    def _route(self, method, path, request):
        if path == "/engineers" and method == "GET":
            return httpx.Response(200, json=self.engineers)

        match = re.fullmatch(r"/engineers/(\w+)/capacity", path)
        if match and method == "GET":
            engineer = next((e for e in self.engineers if e["_id"] == match.group(1)), None)
            if engineer is None:
                return httpx.Response(404, json={"message": "Engineer not found"})
            total = sum(a["allocationPercentage"] for a in self.assignments
                        if a["engineerId"]["_id"] == engineer["_id"])
            return httpx.Response(200, json={"totalAllocated": total,
                                             "availableCapacity": engineer["maxCapacity"] - total})

        match = re.fullmatch(r"/engineers/(\w+)/availability", path)
        if match and method == "GET":
            return httpx.Response(200, json={"availableDate": self.availability.get(match.group(1))})

        if path == "/projects":
            if method == "GET":
                return httpx.Response(200, json=self.projects)
            if method == "POST":
                body = json.loads(request.content)
                body["_id"] = f"p{self._next_id}"
                self._next_id += 1
                self.projects.append(body)
                return httpx.Response(201, json=body)

        match = re.fullmatch(r"/projects/(\w+)/skill-gap", path)
        if match and method == "GET":
            project = next((p for p in self.projects if p["_id"] == match.group(1)), None)
            if project is None:
                return httpx.Response(404, json={"message": "Project not found"})
            engineer_ids = {a["engineerId"]["_id"] for a in self.assignments
                            if a["projectId"]["_id"] == project["_id"]}
            assigned = sorted({s for e in self.engineers if e["_id"] in engineer_ids for s in e["skills"]})
            missing = [s for s in project["requiredSkills"] if s not in assigned]
            return httpx.Response(200, json={"requiredSkills": project["requiredSkills"],
                                             "assignedSkills": assigned, "missingSkills": missing})

        match = re.fullmatch(r"/projects/(\w+)", path)
        if match:
            project = next((p for p in self.projects if p["_id"] == match.group(1)), None)
            if project is None:
                return httpx.Response(404, json={"message": "Project not found"})
            if method == "GET":
                return httpx.Response(200, json=project)
            if method == "PUT":
                project.update(json.loads(request.content))
                return httpx.Response(200, json=project)

        if path == "/assignments":
            if method == "GET":
                return httpx.Response(200, json=self.assignments)
            if method == "POST":
                body = json.loads(request.content)
                created = self._assignment(
                    f"a{self._next_id}", body["engineerId"], body["projectId"],
                    body["allocationPercentage"], body["role"], body["startDate"], body["endDate"],
                )
                self._next_id += 1
                self.assignments.append(created)
                return httpx.Response(201, json=created)

        match = re.fullmatch(r"/assignments/(\w+)", path)
        if match:
            existing = next((a for a in self.assignments if a["_id"] == match.group(1)), None)
            if existing is None:
                return httpx.Response(404, json={"message": "Assignment not found"})
            if method == "PUT":
                body = json.loads(request.content)
                updated = self._assignment(
                    existing["_id"], body["engineerId"], body["projectId"],
                    body["allocationPercentage"], body["role"], body["startDate"], body["endDate"],
                )
                self.assignments[self.assignments.index(existing)] = updated
                return httpx.Response(200, json=updated)
            if method == "DELETE":
                self.assignments.remove(existing)
                return httpx.Response(200, json={"message": "Assignment deleted"})

        return httpx.Response(404, json={"message": "Route not found"})


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def manager():
    return Identity(id="m1", name="Maya", email="maya@example.com", role=Role.MANAGER)


@pytest.fixture
def engineer():
    return Identity(id="e1", name="Eli", email="eli@example.com", role=Role.ENGINEER)


@pytest.fixture
def mixed_assignments():
    """Assignments for two engineers, interleaved."""
    def make(aid, engineer_id, project_id, pct):
        return Assignment(
            id=aid,
            engineer=EngineerRef(id=engineer_id),
            project=ProjectRef(id=project_id),
            allocation_percentage=pct,
            start_date=date(2026, 1, 1),
            end_date=date(2026, 3, 31),
            role="Developer",
        )
    return [
        make("a1", "e1", "p1", 50),
        make("a2", "e2", "p1", 30),
        make("a3", "e1", "p2", 25),
        make("a4", "e3", "p2", 100),
    ]


@pytest.fixture
def skilled_engineers():
    return [
        Engineer(id="e1", name="Eli", email="eli@example.com", max_capacity=100, skills=("React", "Node")),
        Engineer(id="e2", name="Ana", email="ana@example.com", max_capacity=40, skills=("Python", "React")),
        Engineer(id="e3", name="Bo", email="bo@example.com", max_capacity=50, skills=("Go",)),
    ]


@pytest.fixture
def state_dsn(tmp_path):
    return f"sqlite:///{tmp_path / 'state.db'}"


@pytest.fixture
def state_store(state_dsn):
    store = SqlStateStore.from_dsn(state_dsn)
    yield store
    store.close()


@pytest.fixture
def settings(state_dsn):
    return Settings(
        app_name="StaffBoard-test",
        debug=False,
        api_base_url=API_BASE,
        state_backend="sql",
        state_dsn=state_dsn,
    )
