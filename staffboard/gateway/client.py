import logging
from typing import Callable, List, Optional, Tuple, Type, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from staffboard.gateway.errors import TransientFetchFailure, ValidationFailure, error_for_status
from staffboard.gateway.schemas import (
    AssignmentDTO,
    AssignmentPayload,
    AvailabilityDTO,
    CapacityDTO,
    EngineerDTO,
    LoginRequest,
    LoginResponse,
    ProjectDTO,
    ProjectPayload,
    SkillGapDTO,
)
from staffboard.models.entities import (
    Assignment,
    CapacitySnapshot,
    Engineer,
    Identity,
    Project,
    SkillGap,
)

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


class BearerTokenAuth(httpx.Auth):
    """Reads the token at send time so login/logout apply to the next request."""

    def __init__(self, token_provider: Callable[[], Optional[str]]):
        self.token_provider = token_provider

    def auth_flow(self, request: httpx.Request):
        token = self.token_provider()
        if token:
            request.headers["Authorization"] = f"Bearer {token}"
        yield request


class DataGateway:
    """
    Async client for the backend REST API.

    Every call raises a ``GatewayError`` subclass on failure and never retries.
    Authorization is decided by the backend; 401/403 surface as ``AuthFailure``.
    """

    def __init__(
        self,
        base_url: str,
        token_provider: Callable[[], Optional[str]],
        timeout_seconds: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.client = httpx.AsyncClient(
            base_url=base_url,
            auth=BearerTokenAuth(token_provider),
            timeout=httpx.Timeout(timeout_seconds),
            transport=transport,
            headers={"Accept": "application/json"},
        )

    async def aclose(self) -> None:
        await self.client.aclose()

    async def _request(self, method: str, path: str, payload: Optional[dict] = None):
        try:
            response = await self.client.request(method, path, json=payload)
        except httpx.HTTPError as exc:
            logger.error(f"{method} {path} failed: {exc!r}")
            raise TransientFetchFailure(f"Could not reach backend: {exc.__class__.__name__}") from exc

        if response.status_code >= 400:
            message = self._error_message(response)
            logger.warning(f"{method} {path} -> {response.status_code}: {message}")
            raise error_for_status(response.status_code, message)

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise TransientFetchFailure(f"Malformed response from {path}") from exc

    @staticmethod
    def _error_message(response: httpx.Response) -> Optional[str]:
        try:
            body = response.json()
        except ValueError:
            return None
        if isinstance(body, dict):
            return body.get("message") or body.get("detail")
        return None

    @staticmethod
    def _parse(model: Type[M], data) -> M:
        try:
            return model.model_validate(data)
        except ValidationError as exc:
            logger.error(f"Unexpected {model.__name__} payload: {exc}")
            raise TransientFetchFailure("Unexpected response from backend") from exc

    def _parse_list(self, model: Type[M], data) -> List[M]:
        if not isinstance(data, list):
            raise TransientFetchFailure("Expected a list from backend")
        return [self._parse(model, item) for item in data]

    # Auth

    async def login(self, email: str, password: str) -> Tuple[str, Identity]:
        try:
            request = LoginRequest(email=email, password=password)
        except ValidationError as exc:
            raise ValidationFailure("Email and password are required", 422) from exc
        data = await self._request("POST", "/auth/login", request.model_dump())
        result = self._parse(LoginResponse, data)
        return result.token, result.user.to_domain()

    # Projects

    async def list_projects(self) -> List[Project]:
        data = await self._request("GET", "/projects")
        return [p.to_domain() for p in self._parse_list(ProjectDTO, data)]

    async def get_project(self, project_id: str) -> Project:
        data = await self._request("GET", f"/projects/{project_id}")
        return self._parse(ProjectDTO, data).to_domain()

    async def create_project(self, payload: ProjectPayload) -> Optional[Project]:
        data = await self._request("POST", "/projects", payload.model_dump(by_alias=True, mode="json"))
        return self._parse(ProjectDTO, data).to_domain() if data else None

    async def update_project(self, project_id: str, payload: ProjectPayload) -> Project:
        data = await self._request("PUT", f"/projects/{project_id}", payload.model_dump(by_alias=True, mode="json"))
        return self._parse(ProjectDTO, data).to_domain()

    async def get_skill_gap(self, project_id: str) -> SkillGap:
        data = await self._request("GET", f"/projects/{project_id}/skill-gap")
        return self._parse(SkillGapDTO, data).to_domain()

    # Engineers

    async def list_engineers(self) -> List[Engineer]:
        data = await self._request("GET", "/engineers")
        return [e.to_domain() for e in self._parse_list(EngineerDTO, data)]

    async def get_capacity(self, engineer_id: str, max_capacity: Optional[float] = None) -> CapacitySnapshot:
        data = await self._request("GET", f"/engineers/{engineer_id}/capacity")
        return self._parse(CapacityDTO, data or {}).to_domain(engineer_id, max_capacity)

    async def get_availability(self, engineer_id: str):
        data = await self._request("GET", f"/engineers/{engineer_id}/availability")
        return self._parse(AvailabilityDTO, data or {}).available_date

    # Assignments

    async def list_assignments(self) -> List[Assignment]:
        data = await self._request("GET", "/assignments")
        return [a.to_domain() for a in self._parse_list(AssignmentDTO, data)]

    async def create_assignment(self, payload: AssignmentPayload) -> Optional[Assignment]:
        data = await self._request("POST", "/assignments", payload.model_dump(by_alias=True, mode="json"))
        return self._parse(AssignmentDTO, data).to_domain() if data else None

    async def update_assignment(self, assignment_id: str, payload: AssignmentPayload) -> Optional[Assignment]:
        data = await self._request(
            "PUT", f"/assignments/{assignment_id}", payload.model_dump(by_alias=True, mode="json")
        )
        return self._parse(AssignmentDTO, data).to_domain() if data else None

    async def delete_assignment(self, assignment_id: str) -> None:
        await self._request("DELETE", f"/assignments/{assignment_id}")
