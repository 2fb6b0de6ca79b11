from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Optional

from .attendance.factory import AttendanceStrategyFactory
from .attendance.mysql_attendance_repository import MySQLAttendanceRepository
from .attendance.recorder import AttendanceRecorder
from .attendance.repository import AttendanceRepository
from .attendance.service import CheckInService
from .common.clock import Clock, SystemClock
from .core import constants
from .database.connection import DBConfig, DatabaseConnection
from .reconciliation.scheduler import SweeperTask
from .reconciliation.sweeper import ReconciliationSweeper
from .subjects.mysql_subject_repository import MySQLSubjectRepository
from .subjects.repository import SubjectRepository
from .subjects.service import AuthService, BiometricEnrollmentService
from .verification.geofence import GeofenceVerifier
from .verification.similarity import SimilarityMatcher
from .windows.mysql_window_repository import MySQLWindowRepository
from .windows.repository import WindowRepository
from .windows.service import WindowManager


@dataclass(frozen=True)
class Container:
    clock: Clock

    subjects_repo: SubjectRepository
    windows_repo: WindowRepository
    attendance_repo: AttendanceRepository

    matcher: SimilarityMatcher
    auth_service: AuthService
    enrollment_service: BiometricEnrollmentService
    window_manager: WindowManager
    recorder: AttendanceRecorder
    checkin_service: CheckInService
    sweeper: ReconciliationSweeper
    sweeper_task: SweeperTask


def _setting(settings: Optional[Mapping[str, Any]], key: str, default: Any) -> Any:
    if not settings:
        return default
    value = settings.get(key)
    return default if value is None else value


def wire(
    *,
    subjects_repo: SubjectRepository,
    windows_repo: WindowRepository,
    attendance_repo: AttendanceRepository,
    settings: Optional[Mapping[str, Any]] = None,
    clock: Optional[Clock] = None,
) -> Container:
    """Build the services on top of any repository implementations."""

    clock = clock or SystemClock()

    matcher = SimilarityMatcher(
        threshold=float(_setting(settings, "SIMILARITY_THRESHOLD", constants.DEFAULT_SIMILARITY_THRESHOLD)),
        dimension=int(_setting(settings, "FEATURE_DIMENSION", constants.DEFAULT_FEATURE_DIMENSION)),
    )
    window_manager = WindowManager(
        windows_repo,
        clock=clock,
        timezone=str(_setting(settings, "TIMEZONE", constants.DEFAULT_TIMEZONE)),
        default_window_hours=int(_setting(settings, "DEFAULT_WINDOW_HOURS", constants.DEFAULT_WINDOW_HOURS)),
        default_radius_m=float(_setting(settings, "DEFAULT_RADIUS_METERS", constants.DEFAULT_RADIUS_METERS)),
    )
    recorder = AttendanceRecorder(attendance_repo, subjects_repo, clock=clock)
    checkin_service = CheckInService(
        window_manager,
        subjects_repo,
        attendance_repo,
        recorder,
        matcher=matcher,
        geofence=GeofenceVerifier(),
        strategy_factory=AttendanceStrategyFactory(),
        clock=clock,
        require_face=bool(_setting(settings, "REQUIRE_FACE_VERIFICATION", True)),
    )
    sweeper = ReconciliationSweeper(
        window_manager,
        subjects_repo,
        attendance_repo,
        clock=clock,
        batch_size=int(_setting(settings, "ABSENCE_BATCH_SIZE", constants.DEFAULT_ABSENCE_BATCH_SIZE)),
    )
    sweeper_task = SweeperTask(
        sweeper,
        interval_seconds=int(_setting(settings, "SWEEP_INTERVAL_SECONDS", constants.DEFAULT_SWEEP_INTERVAL_SECONDS)),
    )

    return Container(
        clock=clock,
        subjects_repo=subjects_repo,
        windows_repo=windows_repo,
        attendance_repo=attendance_repo,
        matcher=matcher,
        auth_service=AuthService(subjects_repo),
        enrollment_service=BiometricEnrollmentService(subjects_repo, matcher),
        window_manager=window_manager,
        recorder=recorder,
        checkin_service=checkin_service,
        sweeper=sweeper,
        sweeper_task=sweeper_task,
    )


def build_container(*, db_config: dict, settings: Optional[Mapping[str, Any]] = None) -> Container:
    config = DBConfig(
        host=str(db_config["host"]),
        port=int(db_config.get("port", 3306)),
        user=str(db_config["user"]),
        password=str(db_config["password"]),
        database=str(db_config["database"]),
    )
    conn = DatabaseConnection.get_instance(config)

    return wire(
        subjects_repo=MySQLSubjectRepository(conn),
        windows_repo=MySQLWindowRepository(conn),
        attendance_repo=MySQLAttendanceRepository(conn),
        settings=settings,
    )
