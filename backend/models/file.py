"""Enrollment file and teaching category definitions.

Both tables are owned by the school administration screens; the scheduling
core only reads them to resolve instructor, vehicle and session duration.
"""

from sqlalchemy import Column, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import relationship
from backend.database import Base
from backend.models.user import User


class License(Base):
    __tablename__ = "licenses"

    id = Column(Integer, primary_key=True)
    type = Column(String, nullable=False)


class TeachingCategory(Base):
    """License-specific programme: session length, price, lesson requirements."""
    __tablename__ = "teaching_categories"

    id = Column(Integer, primary_key=True)
    code = Column(String, nullable=False)
    session_duration = Column(Integer, nullable=False)  # minutes
    session_cost = Column(Numeric(10, 2), default=0)
    min_driving_lessons = Column(Integer, default=0)
    school_id = Column(Integer)
    license_id = Column(Integer, ForeignKey("licenses.id"))

    license = relationship("License")


class File(Base):
    """Links a student to an instructor, an optional vehicle and a category."""
    __tablename__ = "files"

    id = Column(Integer, primary_key=True)
    student_id = Column(Integer, ForeignKey(User.id), nullable=False)
    instructor_id = Column(Integer, ForeignKey(User.id))
    vehicle_id = Column(Integer)
    teaching_category_id = Column(Integer, ForeignKey("teaching_categories.id"))
    status = Column(String, default="draft")

    student = relationship(User, foreign_keys=[student_id])
    instructor = relationship(User, foreign_keys=[instructor_id])
    teaching_category = relationship("TeachingCategory")
