"""Penalty catalog used to score driving sessions."""

from sqlalchemy import Column, ForeignKey, Integer, String
from sqlalchemy.orm import relationship
from backend.database import Base
from backend.models.file import License


class ExamForm(Base):
    __tablename__ = "exam_forms"

    id = Column(Integer, primary_key=True)
    license_id = Column(Integer, ForeignKey(License.id), nullable=False, unique=True)
    max_points = Column(Integer, nullable=False)

    items = relationship("ExamItem", order_by="ExamItem.order_index", back_populates="form")


class ExamItem(Base):
    __tablename__ = "exam_items"

    id = Column(Integer, primary_key=True)
    form_id = Column(Integer, ForeignKey("exam_forms.id"), nullable=False)
    description = Column(String(500), nullable=False)
    penalty_points = Column(Integer, nullable=False)
    order_index = Column(Integer, nullable=False)

    form = relationship("ExamForm", back_populates="items")
