import os
from datetime import date, datetime, time
from types import SimpleNamespace

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

os.environ.setdefault('DATABASE_URL', 'sqlite:///./test.db')

from backend.auth.permissions import Caller, Role  # noqa: E402
from backend.database import Base  # noqa: E402
from backend.models.appointment import Appointment  # noqa: E402
from backend.models.availability import Availability  # noqa: E402
from backend.models.exam_form import ExamForm, ExamItem  # noqa: E402
from backend.models.file import File, License, TeachingCategory  # noqa: E402
from backend.models.session_form import SessionForm  # noqa: E402,F401
from backend.models.user import User  # noqa: E402

LESSON_DAY = date(2099, 5, 15)
NOW = datetime(2099, 5, 1, 8, 0)


@pytest.fixture
def db():
    engine = create_engine('sqlite:///:memory:')
    testing_session_local = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)

    session = testing_session_local()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


class SchoolFactory:
    def __init__(self, db):
        self.db = db

    def _save(self, instance):
        self.db.add(instance)
        self.db.commit()
        self.db.refresh(instance)
        return instance

    def user(self, role: Role, first_name: str, school_id: int | None = 1) -> User:
        return self._save(
            User(
                email=f'{first_name.lower()}@driveflow.test',
                role=role.value,
                first_name=first_name,
                last_name='Test',
                school_id=school_id,
            )
        )

    def category(self, session_duration: int = 60, license_type: str = 'B') -> TeachingCategory:
        license_ = self._save(License(type=license_type))
        return self._save(
            TeachingCategory(
                code=license_type,
                session_duration=session_duration,
                session_cost=100,
                min_driving_lessons=30,
                school_id=1,
                license_id=license_.id,
            )
        )

    def exam_form(self, category: TeachingCategory, max_points: int, penalties: list[int]) -> ExamForm:
        exam_form = self._save(ExamForm(license_id=category.license_id, max_points=max_points))
        for index, penalty in enumerate(penalties):
            self.db.add(
                ExamItem(
                    form_id=exam_form.id,
                    description=f'Mistake {index + 1}',
                    penalty_points=penalty,
                    order_index=index,
                )
            )
        self.db.commit()
        self.db.refresh(exam_form)
        return exam_form

    def file(self, student: User, instructor: User | None, category: TeachingCategory | None, vehicle_id=None) -> File:
        return self._save(
            File(
                student_id=student.id,
                instructor_id=instructor.id if instructor else None,
                vehicle_id=vehicle_id,
                teaching_category_id=category.id if category else None,
                status='approved',
            )
        )

    def availability(self, instructor: User, day: date, start: time, end: time) -> Availability:
        return self._save(Availability(instructor_id=instructor.id, date=day, start_time=start, end_time=end))

    def appointment(self, file: File, day: date, start: time, end: time) -> Appointment:
        return self._save(Appointment(file_id=file.id, date=day, start_time=start, end_time=end))


@pytest.fixture
def factory(db) -> SchoolFactory:
    return SchoolFactory(db)


def build_school(factory: SchoolFactory) -> SimpleNamespace:
    """One student enrolled with one instructor in a 60 minute category on vehicle 7."""
    student = factory.user(Role.STUDENT, 'Sara')
    instructor = factory.user(Role.INSTRUCTOR, 'Ivan')
    other_instructor = factory.user(Role.INSTRUCTOR, 'Olga')
    admin = factory.user(Role.SCHOOL_ADMIN, 'Ana')
    category = factory.category(session_duration=60)
    exam_form = factory.exam_form(category, max_points=21, penalties=[3, 5, 8])
    file = factory.file(student, instructor, category, vehicle_id=7)

    return SimpleNamespace(
        student=student,
        instructor=instructor,
        other_instructor=other_instructor,
        admin=admin,
        category=category,
        exam_form=exam_form,
        items=list(exam_form.items),
        file=file,
        student_caller=Caller(student.id, Role.STUDENT, 1),
        instructor_caller=Caller(instructor.id, Role.INSTRUCTOR, 1),
        other_instructor_caller=Caller(other_instructor.id, Role.INSTRUCTOR, 1),
        admin_caller=Caller(admin.id, Role.SCHOOL_ADMIN, 1),
    )


@pytest.fixture
def school(factory):
    return build_school(factory)


@pytest.fixture
def session_factory(tmp_path):
    """Sessions on one file-backed database, for tests that book from several threads."""
    engine = create_engine(
        f'sqlite:///{tmp_path / "driveflow.db"}',
        connect_args={'check_same_thread': False},
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    finally:
        engine.dispose()


@pytest.fixture
def shared_school(session_factory):
    seed = session_factory()
    try:
        factory = SchoolFactory(seed)
        school = build_school(factory)
        school.factory = factory
        yield school
    finally:
        seed.close()
