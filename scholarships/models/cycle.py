"""Scholarship cycle model."""

from sqlalchemy import CheckConstraint, Column, DateTime, Float, Integer, String, Text
from sqlalchemy.orm import relationship

from scholarships.db.base import Base, JSONType
from scholarships.utils.constants import CycleStatus


class ScholarshipCycle(Base):
    """A time-boxed instance of a scholarship program with a fixed number of slots."""

    __tablename__ = "scholarship_cycles"
    __table_args__ = (
        CheckConstraint("total_slots >= 0", name="ck_cycle_total_slots_non_negative"),
        CheckConstraint(
            "remaining_slots >= 0 AND remaining_slots <= total_slots",
            name="ck_cycle_remaining_slots_bounds",
        ),
    )

    program_name = Column(String(255), nullable=False, index=True)
    academic_year = Column(String(20), nullable=False)  # "2024-2025"
    display_name = Column(String(300))
    description = Column(Text)

    award_amount = Column(Float, nullable=False, default=0)
    total_slots = Column(Integer, nullable=False)
    remaining_slots = Column(Integer, nullable=False)  # Only SlotAllocator writes this

    application_start = Column(DateTime, nullable=False)
    application_end = Column(DateTime, nullable=False)
    eligibility_criteria = Column(JSONType, default=list)  # Opaque list, validated elsewhere

    status = Column(String(20), nullable=False, default=CycleStatus.DRAFT.value, index=True)
    application_sequence = Column(Integer, nullable=False, default=0)

    # Relationships
    applications = relationship("Application", back_populates="cycle")

    @property
    def state(self) -> CycleStatus:
        return CycleStatus(self.status)

    def __repr__(self):
        return f"<ScholarshipCycle {self.program_name} {self.academic_year} ({self.status})>"
