"""Availability model definitions."""

from sqlalchemy import Column, Date, ForeignKey, Integer, Time
from backend.database import Base
from backend.models.user import User


class Availability(Base):
    """A block of time on one date during which an instructor can be booked."""
    __tablename__ = "availability"

    id = Column(Integer, primary_key=True)
    instructor_id = Column(Integer, ForeignKey(User.id), nullable=False)
    date = Column(Date, nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
