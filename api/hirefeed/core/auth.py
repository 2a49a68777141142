from dataclasses import dataclass
from enum import Enum


class Role(str, Enum):
    SEEKER = "seeker"
    EMPLOYER = "employer"


@dataclass(frozen=True, slots=True)
class Viewer:
    """Authenticated identity passed explicitly into every engine call."""

    id: str
    display_name: str
    role: Role

    @property
    def is_seeker(self) -> bool:
        return self.role is Role.SEEKER

    @property
    def is_employer(self) -> bool:
        return self.role is Role.EMPLOYER


def parse_role(value: object) -> Role | None:
    if isinstance(value, Role):
        return value
    if not isinstance(value, str):
        return None
    try:
        return Role(value.strip().lower())
    except ValueError:
        return None
