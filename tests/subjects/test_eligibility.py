import pytest

from src.session_attendance.session_attendance.core.enums import Role
from src.session_attendance.session_attendance.subjects.eligibility import eligible_roster, is_eligible
from tests.fakes import make_subject


def test_active_student_is_eligible():
    assert is_eligible(make_subject("s1"))


@pytest.mark.parametrize("role", [Role.TEACHER, Role.ADMIN])
def test_privileged_roles_are_never_eligible(role):
    assert not is_eligible(make_subject("t1", role=role))


def test_inactive_student_is_not_eligible():
    assert not is_eligible(make_subject("s1", is_active=False))


def test_roster_filters_and_keeps_order():
    people = [
        make_subject("s2"),
        make_subject("admin", role=Role.ADMIN),
        make_subject("s1"),
        make_subject("s3", is_active=False),
    ]

    assert [s.handle for s in eligible_roster(people)] == ["s2", "s1"]
