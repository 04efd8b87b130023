"""Session form model definitions."""

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, JSON, String
from sqlalchemy.orm import relationship
from backend.database import Base
from backend.models.appointment import Appointment
from backend.models.exam_form import ExamForm


class SessionForm(Base):
    """Evaluation record for one appointment.

    ``mistakes`` holds the serialized tally as ``[{"id_item": .., "count": ..}]``;
    use ``backend.scheduling.mistakes.MistakeTally`` to read or change it.
    ``version`` is bumped on every flush and checked on update, so two writers
    that loaded the same row cannot both commit.
    """
    __tablename__ = "session_forms"

    id = Column(Integer, primary_key=True)
    appointment_id = Column(Integer, ForeignKey("appointments.id"), nullable=False, unique=True)
    exam_form_id = Column(Integer, ForeignKey("exam_forms.id"), nullable=False)
    mistakes = Column(JSON, nullable=False, default=list)
    is_locked = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False)
    finalized_at = Column(DateTime(timezone=True))
    total_points = Column(Integer)
    result = Column(String(50))
    version = Column(Integer, nullable=False)

    appointment = relationship(Appointment)
    exam_form = relationship(ExamForm)

    __mapper_args__ = {"version_id_col": version}
