from __future__ import annotations

from typing import Iterable, List

from ..core.enums import PRIVILEGED_ROLES
from .model import Subject


def is_eligible(subject: Subject) -> bool:
    """Whether ``subject`` may ever receive an attendance record.

    The recorder and the reconciliation sweeper both call this; there is no
    other copy of the rule.
    """

    return bool(subject.is_active) and subject.role not in PRIVILEGED_ROLES


def eligible_roster(subjects: Iterable[Subject]) -> List[Subject]:
    return [s for s in subjects if is_eligible(s)]
