import uuid
from datetime import datetime
from typing import List, Optional

from sqlalchemy import (
    Boolean, DateTime, ForeignKey, Integer, LargeBinary, String, Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .database import Base


def _new_id() -> str:
    return str(uuid.uuid4())


class DPR(Base):
    __tablename__ = "dprs"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )
    title: Mapped[str] = mapped_column(String(255))
    project_name: Mapped[str] = mapped_column(String(255))
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    file_name: Mapped[str] = mapped_column(String(255))
    file_type: Mapped[str] = mapped_column(String(255))
    file_data: Mapped[Optional[bytes]] = mapped_column(
        LargeBinary, nullable=True, deferred=True
    )
    extracted_text: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    # Set when the latest score was computed from placeholder text
    used_placeholder: Mapped[bool] = mapped_column(Boolean, default=False)
    status: Mapped[str] = mapped_column(String(20), default="pending")

    assessments: Mapped[List["Assessment"]] = relationship(
        back_populates="dpr",
        order_by="Assessment.seq",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    @property
    def latest_assessment(self) -> Optional["Assessment"]:
        return self.assessments[-1] if self.assessments else None


class Assessment(Base):
    __tablename__ = "assessments"

    # Insertion order; newest assessment has the highest seq
    seq: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    id: Mapped[str] = mapped_column(String(36), unique=True, default=_new_id)
    dpr_id: Mapped[str] = mapped_column(ForeignKey("dprs.id"), index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )
    quality_score: Mapped[int] = mapped_column(Integer)
    delay_risk: Mapped[str] = mapped_column(String(10))
    cost_overrun_risk: Mapped[str] = mapped_column(String(10))
    implementation_risk: Mapped[str] = mapped_column(String(10))
    # Stored as JSON arrays
    missing_sections: Mapped[str] = mapped_column(Text)
    weak_sections: Mapped[str] = mapped_column(Text)
    explanation: Mapped[str] = mapped_column(Text)
    recommendation: Mapped[str] = mapped_column(String(10))
    final_decision: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    reviewer_comments: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    dpr: Mapped[DPR] = relationship(back_populates="assessments")
