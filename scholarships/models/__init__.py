"""Database models."""

# Import all models in dependency order to ensure proper relationship initialization

# Base models (no foreign keys)
from scholarships.models.cycle import ScholarshipCycle

# Models with foreign keys to base models
from scholarships.models.application import Application

# Models with foreign keys to other models
from scholarships.models.review import Review
from scholarships.models.history import HistoryEntry
from scholarships.models.notification import NotificationEvent

# Export all models
__all__ = [
    "ScholarshipCycle",
    "Application",
    "Review",
    "HistoryEntry",
    "NotificationEvent",
]
