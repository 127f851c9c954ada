from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Optional, Tuple


class Role(str, Enum):
    ENGINEER = "engineer"
    MANAGER = "manager"


class ProjectStatus(str, Enum):
    PLANNING = "planning"
    ACTIVE = "active"
    COMPLETED = "completed"


class SkillCoverage(str, Enum):
    NO_REQUIREMENTS = "no_requirements"
    FULL = "full"
    PARTIAL = "partial"


class NoticeLevel(str, Enum):
    SUCCESS = "success"
    ERROR = "error"
    INFO = "info"


@dataclass(frozen=True)
class Identity:
    id: str
    name: str
    email: str
    role: Role


@dataclass(frozen=True)
class Session:
    token: Optional[str] = None
    user: Optional[Identity] = None

    def __post_init__(self):
        if (self.token is None) != (self.user is None):
            raise ValueError("session token and user must be both present or both absent")

    @classmethod
    def empty(cls) -> "Session":
        return cls()

    @property
    def is_active(self) -> bool:
        return self.token is not None and self.user is not None


@dataclass(frozen=True)
class EngineerRef:
    id: str
    name: str = ""
    email: str = ""


@dataclass(frozen=True)
class ProjectRef:
    id: str
    name: str = ""


@dataclass(frozen=True)
class Engineer:
    id: str
    name: str
    email: str
    max_capacity: int  # percent ceiling, 100 full-time, 50 part-time
    skills: Tuple[str, ...] = ()
    seniority: str = ""
    department: str = ""


@dataclass(frozen=True)
class Project:
    id: str
    name: str
    description: str = ""
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    required_skills: Tuple[str, ...] = ()
    team_size: int = 1
    status: ProjectStatus = ProjectStatus.PLANNING
    manager: Optional[EngineerRef] = None


@dataclass(frozen=True)
class Assignment:
    id: str
    engineer: EngineerRef
    project: ProjectRef
    allocation_percentage: int
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    role: str = ""


@dataclass(frozen=True)
class CapacitySnapshot:
    engineer_id: str
    total_allocated: float
    available_capacity: Optional[float]
    # None when the engineer's ceiling is unknown
    max_capacity: Optional[float]


@dataclass(frozen=True)
class SkillGap:
    required_skills: Tuple[str, ...]
    assigned_skills: Tuple[str, ...]
    missing_skills: Tuple[str, ...]

    @property
    def coverage(self) -> SkillCoverage:
        if not self.required_skills:
            return SkillCoverage.NO_REQUIREMENTS
        if not self.missing_skills:
            return SkillCoverage.FULL
        return SkillCoverage.PARTIAL


@dataclass(frozen=True)
class Notice:
    level: NoticeLevel
    message: str


@dataclass
class ViewModel:
    """Result of building one dashboard view: the data plus any notices."""
    view: str
    data: dict = field(default_factory=dict)
    notices: list = field(default_factory=list)

    def notify(self, level: NoticeLevel, message: str) -> None:
        self.notices.append(Notice(level=level, message=message))

    def to_dict(self) -> dict:
        return {
            "view": self.view,
            "data": self.data,
            "notices": [{"level": n.level.value, "message": n.message} for n in self.notices],
        }
