from collections.abc import AsyncIterator
from datetime import date, time
from types import SimpleNamespace

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from school_timetable.dependencies.database import Base, get_db_session
from school_timetable.main import app
from school_timetable.models import (
    AcademicYear,
    Branch,
    RecordStatus,
    RecurrenceType,
    SchoolClass,
    Subject,
    Teacher,
    Timetable,
    TimetableTemplate,
    Weekday,
)


@pytest.fixture
async def engine(tmp_path) -> AsyncIterator[AsyncEngine]:
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'timetable.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(bind=engine, autocommit=False, expire_on_commit=False)


@pytest.fixture
async def session(session_factory: async_sessionmaker) -> AsyncIterator[AsyncSession]:
    async with session_factory() as session:
        yield session


@pytest.fixture
async def client(session_factory: async_sessionmaker) -> AsyncIterator[AsyncClient]:
    async def override_get_db_session() -> AsyncIterator[AsyncSession]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db_session] = override_get_db_session
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture
async def seed(session: AsyncSession) -> SimpleNamespace:
    """One branch and academic year with two classes, a subject and two teachers."""
    branch = Branch(name="Main Campus", short_name="MAIN")
    academic_year = AcademicYear(
        name="2024/2025", start_date=date(2024, 9, 1), end_date=date(2025, 7, 31), is_current=True
    )
    session.add_all([branch, academic_year])
    await session.flush()

    class_a = SchoolClass(name="Grade 7A", branch_id=branch.id, academic_year_id=academic_year.id)
    class_b = SchoolClass(name="Grade 7B", branch_id=branch.id, academic_year_id=academic_year.id)
    subject = Subject(code="MATH", name="Mathematics")
    teacher = Teacher(first_name="Ama", last_name="Mensah", email="ama.mensah@example.com", branch_id=branch.id)
    other_teacher = Teacher(first_name="Kofi", last_name="Owusu", email="kofi.owusu@example.com", branch_id=branch.id)
    session.add_all([class_a, class_b, subject, teacher, other_teacher])
    await session.commit()

    return SimpleNamespace(
        branch_id=branch.id,
        academic_year_id=academic_year.id,
        class_id=class_a.id,
        other_class_id=class_b.id,
        subject_id=subject.id,
        teacher_id=teacher.id,
        other_teacher_id=other_teacher.id,
    )


@pytest.fixture
def make_timetable(seed):
    """Build an unsaved active timetable row for class A, room 101, Monday 2024-09-02 08:00-09:00."""

    def _make(**overrides) -> Timetable:
        values = dict(
            branch_id=seed.branch_id,
            class_id=seed.class_id,
            academic_year_id=seed.academic_year_id,
            subject_id=seed.subject_id,
            teacher_id=seed.teacher_id,
            date=date(2024, 9, 2),
            start_time=time(8, 0),
            end_time=time(9, 0),
            room_number="101",
            status=RecordStatus.ACTIVE,
            is_recurring=False,
        )
        values.update(overrides)
        return Timetable(day=Weekday.from_date(values["date"]), **values)

    return _make


@pytest.fixture
def make_template(seed):
    """Build an unsaved weekly Monday template for September 2024 with the same slot as make_timetable."""

    def _make(**overrides) -> TimetableTemplate:
        values = dict(
            name="Maths",
            branch_id=seed.branch_id,
            class_id=seed.class_id,
            academic_year_id=seed.academic_year_id,
            subject_id=seed.subject_id,
            teacher_id=seed.teacher_id,
            days=["MONDAY"],
            start_time=time(8, 0),
            end_time=time(9, 0),
            room_number="101",
            recurrence_type=RecurrenceType.WEEKLY,
            start_date=date(2024, 9, 2),
            end_date=date(2024, 9, 30),
            exclude_dates=[],
            status=RecordStatus.ACTIVE,
        )
        values.update(overrides)
        return TimetableTemplate(**values)

    return _make
