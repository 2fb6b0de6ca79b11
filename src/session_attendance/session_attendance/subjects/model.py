from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Tuple

from ..core.enums import Role


@dataclass(frozen=True)
class AcademicProfile:
    """Denormalized display attributes. Never used for attendance rules."""

    email: Optional[str] = None
    enroll_no: Optional[str] = None
    registered_no: Optional[str] = None
    department: Optional[str] = None
    program: Optional[str] = None
    section: Optional[str] = None
    year: Optional[str] = None


@dataclass(frozen=True)
class Subject:
    """Domain entity: a person whose attendance may be tracked.

    Note: plain data object, no DB access code here.
    """

    handle: str
    full_name: str
    role: Role
    is_active: bool = True
    password_hash: str = ""
    face_embedding: Optional[Tuple[float, ...]] = None
    profile: AcademicProfile = field(default_factory=AcademicProfile)

    @property
    def is_enrolled(self) -> bool:
        return self.face_embedding is not None
