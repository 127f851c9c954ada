"""Wire models for the backend REST API (camelCase JSON, Mongo-style ``_id``)."""
from datetime import date, datetime
from typing import List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

from staffboard.engine.visibility import parse_skill_list
from staffboard.models.entities import (
    Assignment,
    CapacitySnapshot,
    Engineer,
    EngineerRef,
    Identity,
    Project,
    ProjectRef,
    ProjectStatus,
    Role,
    SkillGap,
)


def _to_date(value):
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, str):
        return datetime.fromisoformat(value.strip().replace("Z", "+00:00")).date()
    return value


class WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class IdentityDTO(WireModel):
    id: str = Field(validation_alias=AliasChoices("id", "_id"))
    name: str
    email: str
    role: Role

    def to_domain(self) -> Identity:
        return Identity(id=self.id, name=self.name, email=self.email, role=self.role)


class LoginRequest(WireModel):
    email: str
    password: str

    @field_validator("email", "password")
    @classmethod
    def validate_required(cls, v: str):
        if not v or not v.strip():
            raise ValueError("field is required")
        return v

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str):
        return v.strip()


class LoginResponse(WireModel):
    token: str
    user: IdentityDTO

    @field_validator("token")
    @classmethod
    def validate_token(cls, v: str):
        if not v:
            raise ValueError("token must not be empty")
        return v


class EngineerRefDTO(WireModel):
    id: str = Field(alias="_id")
    name: str = ""
    email: str = ""

    @model_validator(mode="before")
    @classmethod
    def accept_bare_id(cls, data):
        # Unpopulated references arrive as a plain id string
        if isinstance(data, str):
            return {"_id": data}
        return data

    def to_domain(self) -> EngineerRef:
        return EngineerRef(id=self.id, name=self.name, email=self.email)


class ProjectRefDTO(WireModel):
    id: str = Field(alias="_id")
    name: str = ""

    @model_validator(mode="before")
    @classmethod
    def accept_bare_id(cls, data):
        if isinstance(data, str):
            return {"_id": data}
        return data

    def to_domain(self) -> ProjectRef:
        return ProjectRef(id=self.id, name=self.name)


class EngineerDTO(WireModel):
    id: str = Field(alias="_id")
    name: str
    email: str = ""
    skills: List[str] = []
    seniority: str = ""
    max_capacity: int = Field(100, alias="maxCapacity")
    department: str = ""

    def to_domain(self) -> Engineer:
        return Engineer(
            id=self.id,
            name=self.name,
            email=self.email,
            max_capacity=self.max_capacity,
            skills=tuple(self.skills),
            seniority=self.seniority,
            department=self.department,
        )


class ProjectDTO(WireModel):
    id: str = Field(alias="_id")
    name: str
    description: str = ""
    start_date: Optional[date] = Field(None, alias="startDate")
    end_date: Optional[date] = Field(None, alias="endDate")
    required_skills: List[str] = Field([], alias="requiredSkills")
    team_size: int = Field(1, alias="teamSize")
    status: ProjectStatus = ProjectStatus.PLANNING
    manager: Optional[EngineerRefDTO] = Field(None, alias="managerId")

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def parse_dates(cls, v):
        return _to_date(v)

    def to_domain(self) -> Project:
        return Project(
            id=self.id,
            name=self.name,
            description=self.description,
            start_date=self.start_date,
            end_date=self.end_date,
            required_skills=tuple(self.required_skills),
            team_size=self.team_size,
            status=self.status,
            manager=self.manager.to_domain() if self.manager else None,
        )


class AssignmentDTO(WireModel):
    id: str = Field(alias="_id")
    engineer: EngineerRefDTO = Field(alias="engineerId")
    project: ProjectRefDTO = Field(alias="projectId")
    allocation_percentage: int = Field(alias="allocationPercentage")
    start_date: Optional[date] = Field(None, alias="startDate")
    end_date: Optional[date] = Field(None, alias="endDate")
    role: str = ""

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def parse_dates(cls, v):
        return _to_date(v)

    def to_domain(self) -> Assignment:
        return Assignment(
            id=self.id,
            engineer=self.engineer.to_domain(),
            project=self.project.to_domain(),
            allocation_percentage=self.allocation_percentage,
            start_date=self.start_date,
            end_date=self.end_date,
            role=self.role,
        )


class CapacityDTO(WireModel):
    total_allocated: float = Field(0, alias="totalAllocated")
    available_capacity: Optional[float] = Field(None, alias="availableCapacity")
    max_capacity: Optional[float] = Field(None, alias="maxCapacity")

    def to_domain(self, engineer_id: str, max_capacity: Optional[float] = None) -> CapacitySnapshot:
        ceiling = self.max_capacity or max_capacity
        total = max(self.total_allocated, 0)
        available = self.available_capacity
        if available is None and ceiling:
            available = ceiling - total
        return CapacitySnapshot(
            engineer_id=engineer_id,
            total_allocated=total,
            available_capacity=available,
            max_capacity=ceiling,
        )


class AvailabilityDTO(WireModel):
    available_date: Optional[date] = Field(None, alias="availableDate")

    @field_validator("available_date", mode="before")
    @classmethod
    def parse_dates(cls, v):
        return _to_date(v)


class SkillGapDTO(WireModel):
    required_skills: List[str] = Field([], alias="requiredSkills")
    assigned_skills: List[str] = Field([], alias="assignedSkills")
    missing_skills: List[str] = Field([], alias="missingSkills")

    def to_domain(self) -> SkillGap:
        return SkillGap(
            required_skills=tuple(self.required_skills),
            assigned_skills=tuple(self.assigned_skills),
            missing_skills=tuple(self.missing_skills),
        )


class ProjectPayload(WireModel):
    name: str
    description: str = ""
    start_date: date = Field(alias="startDate")
    end_date: date = Field(alias="endDate")
    required_skills: List[str] = Field([], alias="requiredSkills")
    team_size: int = Field(1, alias="teamSize", ge=1)
    status: ProjectStatus = ProjectStatus.PLANNING

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def parse_dates(cls, v):
        return _to_date(v)

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str):
        if not v.strip():
            raise ValueError("name is required")
        return v.strip()

    @field_validator("description")
    @classmethod
    def strip_description(cls, v: str):
        return v.strip()

    @field_validator("required_skills", mode="before")
    @classmethod
    def split_skills(cls, v):
        """Accepts the comma-separated form field as well as a list."""
        return parse_skill_list(v)

    @model_validator(mode="after")
    def validate_dates(self):
        if self.end_date < self.start_date:
            raise ValueError("endDate must not be before startDate")
        return self


class AssignmentPayload(WireModel):
    engineer_id: str = Field(alias="engineerId")
    project_id: str = Field(alias="projectId")
    allocation_percentage: int = Field(alias="allocationPercentage")
    start_date: date = Field(alias="startDate")
    end_date: date = Field(alias="endDate")
    role: str

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def parse_dates(cls, v):
        return _to_date(v)

    @field_validator("engineer_id", "project_id", "role")
    @classmethod
    def validate_required(cls, v: str):
        if not v or not v.strip():
            raise ValueError("field is required")
        return v.strip()

    @field_validator("allocation_percentage")
    @classmethod
    def validate_allocation(cls, v: int):
        """Allocation is a share of one engineer's time: 1 to 100 percent."""
        if v < 1 or v > 100:
            raise ValueError("allocationPercentage must be between 1 and 100")
        return v

    @model_validator(mode="after")
    def validate_dates(self):
        if self.end_date < self.start_date:
            raise ValueError("endDate must not be before startDate")
        return self
