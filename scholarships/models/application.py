"""Application model."""

from sqlalchemy import (
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
    text,
)
from sqlalchemy.orm import relationship

from scholarships.db.base import Base, JSONType
from scholarships.utils.constants import TERMINAL_STATUSES, ApplicationStatus

_TERMINAL_SQL = ", ".join(f"'{status.value}'" for status in sorted(TERMINAL_STATUSES))
_NON_TERMINAL_CLAUSE = text(f"status NOT IN ({_TERMINAL_SQL})")


class Application(Base):
    """Scholarship application model."""

    __tablename__ = "applications"
    __table_args__ = (
        # Numbers restart per cycle
        UniqueConstraint("cycle_id", "application_number", name="uq_applications_cycle_number"),
        # At most one live application per applicant and cycle
        Index(
            "uq_applications_live_per_applicant",
            "applicant_id",
            "cycle_id",
            unique=True,
            postgresql_where=_NON_TERMINAL_CLAUSE,
            sqlite_where=_NON_TERMINAL_CLAUSE,
        ),
        Index("idx_applications_cycle_status", "cycle_id", "status"),
    )

    application_number = Column(String(40), nullable=False, index=True)
    applicant_id = Column(String(100), nullable=False, index=True)  # Opaque identity reference
    cycle_id = Column(Uuid(as_uuid=True), ForeignKey("scholarship_cycles.id"), nullable=False)

    # Submission content
    motivation_letter = Column(Text, default="")
    academic_info = Column(JSONType, default=dict)  # {"gpa": 3.8, "program": "..."}
    financial_info = Column(JSONType, default=dict)  # {"family_income": 35000, ...}
    document_ids = Column(JSONType, default=list)  # Opaque ids held by the document service

    # Review / decision
    score = Column(Float, nullable=True)  # 0.00 - 100.00, null until reviewed
    status = Column(String(20), nullable=False, default=ApplicationStatus.DRAFT.value)
    submitted_at = Column(DateTime, nullable=True)
    reviewed_at = Column(DateTime, nullable=True)
    decision_at = Column(DateTime, nullable=True)
    decision_by = Column(String(100), nullable=True)
    decision_notes = Column(Text, nullable=True)

    # Optimistic concurrency token
    version = Column(Integer, nullable=False, default=1)

    # Relationships
    cycle = relationship("ScholarshipCycle", back_populates="applications")
    reviews = relationship("Review", back_populates="application", order_by="Review.created_at")

    __mapper_args__ = {"version_id_col": version}

    @property
    def state(self) -> ApplicationStatus:
        return ApplicationStatus(self.status)

    def __repr__(self):
        return f"<Application {self.application_number} ({self.status})>"
