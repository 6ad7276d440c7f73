"""Common constants."""

from enum import Enum


class ApplicationStatus(str, Enum):
    """Application lifecycle states."""

    DRAFT = "DRAFT"
    SUBMITTED = "SUBMITTED"
    UNDER_REVIEW = "UNDER_REVIEW"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    WITHDRAWN = "WITHDRAWN"


class CycleStatus(str, Enum):
    """Scholarship cycle states."""

    DRAFT = "DRAFT"
    OPEN = "OPEN"
    CLOSED = "CLOSED"
    SUSPENDED = "SUSPENDED"


class Recommendation(str, Enum):
    """Reviewer recommendation."""

    APPROVE = "APPROVE"
    WAITLIST = "WAITLIST"
    REJECT = "REJECT"


class HistoryAction(str, Enum):
    """Actions recorded in the application history."""

    CREATED = "CREATED"
    UPDATED = "UPDATED"
    SUBMITTED = "SUBMITTED"
    UNDER_REVIEW = "UNDER_REVIEW"
    REVIEW_RECORDED = "REVIEW_RECORDED"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    WITHDRAWN = "WITHDRAWN"


class NotificationEventType(str, Enum):
    """Logical events emitted after committed transitions."""

    APPLICATION_CREATED = "APPLICATION_CREATED"
    APPLICATION_SUBMITTED = "APPLICATION_SUBMITTED"
    APPLICATION_UNDER_REVIEW = "APPLICATION_UNDER_REVIEW"
    APPLICATION_DECIDED = "APPLICATION_DECIDED"
    APPLICATION_WITHDRAWN = "APPLICATION_WITHDRAWN"


TERMINAL_STATUSES = frozenset(
    {ApplicationStatus.APPROVED, ApplicationStatus.REJECTED, ApplicationStatus.WITHDRAWN}
)

NON_TERMINAL_STATUSES = frozenset(set(ApplicationStatus) - TERMINAL_STATUSES)

# Legal edges of the application state machine: action -> allowed source states
APPLICATION_TRANSITIONS = {
    "submit": frozenset({ApplicationStatus.DRAFT}),
    "begin_review": frozenset({ApplicationStatus.SUBMITTED}),
    "decide": frozenset({ApplicationStatus.UNDER_REVIEW}),
    "withdraw": frozenset(
        {ApplicationStatus.DRAFT, ApplicationStatus.SUBMITTED, ApplicationStatus.UNDER_REVIEW}
    ),
    "update": frozenset({ApplicationStatus.DRAFT, ApplicationStatus.SUBMITTED}),
    "review": frozenset({ApplicationStatus.SUBMITTED, ApplicationStatus.UNDER_REVIEW}),
}

# Cycle status edges: action -> (allowed source states, target state)
CYCLE_TRANSITIONS = {
    "open": (frozenset({CycleStatus.DRAFT, CycleStatus.SUSPENDED}), CycleStatus.OPEN),
    "suspend": (frozenset({CycleStatus.OPEN}), CycleStatus.SUSPENDED),
    "close": (frozenset({CycleStatus.OPEN, CycleStatus.SUSPENDED}), CycleStatus.CLOSED),
}

