from datetime import datetime, timezone

import pytest

from tests.fakes import FrozenClock, InMemoryAttendance, InMemorySubjects, InMemoryWindows


@pytest.fixture
def fixed_now():
    return datetime(2025, 3, 10, 9, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def clock(fixed_now):
    return FrozenClock(fixed_now)


@pytest.fixture
def subjects():
    return InMemorySubjects()


@pytest.fixture
def windows():
    return InMemoryWindows()


@pytest.fixture
def attendance():
    return InMemoryAttendance()
