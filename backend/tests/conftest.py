import os
from datetime import date, datetime
import itertools

# The app builds its engine at import time; keep it off the production database.
os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite://")

import pytest
from fastapi.testclient import TestClient  # in-process client, no real server
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.api.deps import get_db
from app.core.config import get_settings
from app.db.base import Base
from app.main import app
from app.models.acknowledgment import AcknowledgmentState, AcknowledgmentStatus
from app.models.classroom import Classroom
from app.models.duty_assignment import DutyAssignment, DutyStatus
from app.models.exam import Exam
from app.models.live_status import LiveStatus, LiveStatusValue
from app.models.reserved_faculty import ReservedFacultyEntry, ReservedFacultyStatus
from app.models.user import User, UserRole
from app.services.assignment_locks import AssignmentLocks
from app.services.duty_lifecycle import acknowledgment_deadline, live_status_window
from app.services.event_distributor import EventDistributor, event_distributor
from helpers import EXAM_DAY, auth_headers, open_window_now


@pytest.fixture()
def engine():
    engine = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture()
def db_session(session_factory):
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture()
def distributor():
    return EventDistributor()


@pytest.fixture()
def locks():
    return AssignmentLocks()


@pytest.fixture()
def settings():
    return get_settings()


@pytest.fixture()
def client(session_factory):
    event_distributor.clear()

    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
    event_distributor.clear()


@pytest.fixture()
def make_user(db_session):
    counter = itertools.count(1)

    def factory(role: UserRole = UserRole.faculty, *, department: str = "CSE", name: str | None = None, **fields) -> User:
        index = next(counter)
        user = User(
            name=name or f"{role.value.title()} {index}",
            email=f"{role.value}{index}@example.edu",
            role=role,
            department=department,
            campus=fields.pop("campus", "Main"),
            **fields,
        )
        db_session.add(user)
        db_session.commit()
        return user

    return factory


@pytest.fixture()
def make_classroom(db_session):
    counter = itertools.count(101)

    def factory(*, room_number: str | None = None, block: str = "A", campus: str = "Main") -> Classroom:
        classroom = Classroom(room_number=room_number or str(next(counter)), block=block, floor="1", campus=campus)
        db_session.add(classroom)
        db_session.commit()
        return classroom

    return factory


@pytest.fixture()
def make_exam(db_session):
    def factory(
        *,
        exam_date: date = EXAM_DAY,
        start_time: str = "10:00",
        end_time: str = "13:00",
        classroom: Classroom | None = None,
        department: str = "CSE",
    ) -> Exam:
        exam = Exam(
            exam_name="Data Structures",
            course_code="CS201",
            exam_date=exam_date,
            start_time=start_time,
            end_time=end_time,
            campus="Main",
            department=department,
            classroom_id=classroom.id if classroom else None,
        )
        db_session.add(exam)
        db_session.commit()
        return exam

    return factory


@pytest.fixture()
def make_assignment(db_session, make_exam, settings):
    def factory(
        faculty: User,
        *,
        exam: Exam | None = None,
        classroom: Classroom | None = None,
        duty_date: date = EXAM_DAY,
        start_time: str = "10:00",
        end_time: str = "13:00",
        department: str = "CSE",
        reserves: list[tuple[User, int]] | None = None,
        window: tuple[datetime, datetime] | None = None,
        deadline: datetime | None = None,
        status: DutyStatus = DutyStatus.pending,
    ) -> DutyAssignment:
        exam = exam or make_exam(exam_date=duty_date, start_time=start_time, end_time=end_time, department=department)
        opens_at, closes_at = window or live_status_window(duty_date, start_time, settings)
        assignment = DutyAssignment(
            exam_id=exam.id,
            faculty_id=faculty.id,
            classroom_id=classroom.id if classroom else None,
            duty_date=duty_date,
            start_time=start_time,
            end_time=end_time,
            campus="Main",
            department=department,
            status=status,
            notified=True,
        )
        assignment.acknowledgment = AcknowledgmentState(
            status=AcknowledgmentStatus.pending,
            deadline=deadline or acknowledgment_deadline(duty_date, settings),
        )
        assignment.live_status = LiveStatus(status=LiveStatusValue.none, opens_at=opens_at, closes_at=closes_at)
        assignment.reserved_faculty = [
            ReservedFacultyEntry(faculty_id=user.id, priority=priority, status=ReservedFacultyStatus.available)
            for user, priority in (reserves or [])
        ]
        db_session.add(assignment)
        db_session.commit()
        return assignment

    return factory


@pytest.fixture()
def headers_for():
    return auth_headers


@pytest.fixture()
def live_window():
    return open_window_now()
