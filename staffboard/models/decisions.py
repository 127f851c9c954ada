from dataclasses import dataclass
from enum import Enum
from typing import Optional

from staffboard.models.entities import Role


LOGIN_PATH = "/login"


class DecisionKind(str, Enum):
    ALLOW = "allow"
    REDIRECT_LOGIN = "redirect_login"
    REDIRECT_HOME = "redirect_home"


def home_path(role: Role) -> str:
    if role is Role.MANAGER:
        return "/manager"
    if role is Role.ENGINEER:
        return "/engineer"
    raise ValueError(f"unhandled role {role!r}")


@dataclass(frozen=True)
class Decision:
    kind: DecisionKind
    role: Optional[Role] = None  # set only for REDIRECT_HOME

    @classmethod
    def allow(cls) -> "Decision":
        return cls(DecisionKind.ALLOW)

    @classmethod
    def redirect_login(cls) -> "Decision":
        return cls(DecisionKind.REDIRECT_LOGIN)

    @classmethod
    def redirect_home(cls, role: Role) -> "Decision":
        return cls(DecisionKind.REDIRECT_HOME, role)

    @property
    def allowed(self) -> bool:
        return self.kind is DecisionKind.ALLOW

    @property
    def location(self) -> Optional[str]:
        if self.kind is DecisionKind.ALLOW:
            return None
        if self.kind is DecisionKind.REDIRECT_LOGIN:
            return LOGIN_PATH
        return home_path(self.role)
