from __future__ import annotations

from enum import Enum


class Role(str, Enum):
    """Account role used for authorization and attendance eligibility."""

    STUDENT = "student"
    TEACHER = "teacher"
    ADMIN = "admin"


PRIVILEGED_ROLES = frozenset({Role.TEACHER, Role.ADMIN})


class AttendanceStatus(str, Enum):
    """Attendance outcome stored per (subject, window)."""

    PRESENT = "present"
    LATE = "late"
    ABSENT = "absent"
    ON_DUTY = "od"
    MEDICAL_LEAVE = "ml"


class VerificationOutcome(str, Enum):
    """Result of a single check-in proof."""

    PASSED = "passed"
    FAILED = "failed"
    SKIPPED = "skipped"


class RecordOutcome(str, Enum):
    """What the recorder did with a record request."""

    CREATED = "created"
    EXISTING = "existing"
    INELIGIBLE = "ineligible"
