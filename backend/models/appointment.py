"""Appointment model definitions."""

from sqlalchemy import Column, Date, ForeignKey, Integer, Time
from sqlalchemy.orm import relationship
from backend.database import Base
from backend.models.file import File


class Appointment(Base):
    """Represents a committed driving lesson for one file."""
    __tablename__ = "appointments"

    id = Column(Integer, primary_key=True)
    file_id = Column(Integer, ForeignKey("files.id"), nullable=False)
    date = Column(Date, nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)

    file = relationship(File)
