from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Sequence

from werkzeug.security import check_password_hash

from ..common.validators import require_non_empty
from ..core.enums import Role
from ..core.exceptions import AuthenticationError, NotFoundError, ValidationError
from ..verification.similarity import SimilarityMatcher
from .repository import SubjectRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionSubject:
    """What we store into Flask session after login."""

    handle: str
    full_name: str
    role: Role


class AuthService:
    """Use case: authenticate subject (login)."""

    def __init__(self, subjects: SubjectRepository):
        self._subjects = subjects

    def authenticate(self, handle: str, password: str) -> SessionSubject:
        handle = (handle or "").strip()
        subject = self._subjects.get_by_handle(handle) if handle else None
        if not subject or not subject.is_active:
            raise AuthenticationError("Invalid username or password")

        try:
            ok = check_password_hash(subject.password_hash, password or "")
        except ValueError:
            # Placeholder or corrupted hash in the seed data.
            ok = False

        if not ok:
            raise AuthenticationError("Invalid username or password")

        return SessionSubject(handle=subject.handle, full_name=subject.full_name, role=subject.role)


class BiometricEnrollmentService:
    """Use case: store (or replace) a subject's reference feature vector."""

    def __init__(self, subjects: SubjectRepository, matcher: SimilarityMatcher):
        self._subjects = subjects
        self._matcher = matcher

    def enroll(self, handle: str, vector: Sequence[float]) -> None:
        handle = require_non_empty(handle, "Subject")
        reference = self._matcher.validate(vector, field_name="Reference feature vector")

        if self._subjects.get_by_handle(handle) is None:
            raise NotFoundError(f"Subject {handle} not found")
        if not reference.any():
            raise ValidationError("Reference feature vector must not be all zeros")
        if not self._subjects.set_face_embedding(handle, [float(v) for v in reference]):
            # MySQL reports 0 affected rows when the value is unchanged.
            logger.info("Face reference for %s unchanged", handle)
            return
        logger.info("Stored face reference for %s", handle)
