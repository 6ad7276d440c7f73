"""Review model."""

from sqlalchemy import CheckConstraint, Column, Float, ForeignKey, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship

from scholarships.db.base import Base


class Review(Base):
    """
    A single reviewer's evaluation of an application.

    Immutable once written; corrections go through a new review cycle.
    """

    __tablename__ = "reviews"
    __table_args__ = (
        UniqueConstraint("application_id", "reviewer_id", name="unique_reviewer_per_application"),
        CheckConstraint("score >= 0 AND score <= 100", name="ck_review_score_range"),
    )

    application_id = Column(
        Uuid(as_uuid=True), ForeignKey("applications.id"), nullable=False, index=True
    )
    reviewer_id = Column(String(100), nullable=False, index=True)
    score = Column(Float, nullable=False)
    comments = Column(Text, default="")
    recommendation = Column(String(20), nullable=False)  # APPROVE, WAITLIST, REJECT

    # Relationships
    application = relationship("Application", back_populates="reviews")

    def __repr__(self):
        return f"<Review {self.reviewer_id} -> {self.application_id} ({self.recommendation})>"
