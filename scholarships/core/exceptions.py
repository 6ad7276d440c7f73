"""
Domain errors raised by the award workflow.

Every error carries enough context (current state, attempted action, slot
counts) for the API layer to render a user-facing message. None of them are
retried by the core; only ConcurrentModification is transient.
"""

from enum import Enum
from typing import Any, Dict, Optional

from fastapi import status


class ScholarshipError(Exception):
    """Base class for workflow errors."""

    code = "scholarship_error"
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context: Dict[str, Any] = context

    def to_dict(self) -> Dict[str, Any]:
        return {
            "detail": self.message,
            "error": self.code,
            "context": {key: _jsonable(value) for key, value in self.context.items()},
        }


def _jsonable(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    return str(value)


class NotFound(ScholarshipError):
    code = "not_found"
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, entity: str, entity_id: Any):
        super().__init__(f"{entity} with ID {entity_id} not found", entity=entity, id=entity_id)


class PermissionDenied(ScholarshipError):
    code = "permission_denied"
    status_code = status.HTTP_403_FORBIDDEN


class InvalidTransition(ScholarshipError):
    """Attempted state change is not an edge of the state graph."""

    code = "invalid_transition"
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, current: Any, action: str, entity: str = "application", entity_id: Any = None):
        current_value = _jsonable(current)
        super().__init__(
            f"Cannot {action.replace('_', ' ')} {entity} in status {current_value}",
            entity=entity,
            id=entity_id,
            current_state=current_value,
            attempted_action=action,
        )
        self.current = current
        self.action = action


class SlotsExhausted(ScholarshipError):
    code = "slots_exhausted"
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, cycle_id: Any, total_slots: Optional[int] = None, remaining_slots: int = 0):
        super().__init__(
            "This scholarship's slots are full",
            cycle_id=cycle_id,
            total_slots=total_slots,
            remaining_slots=remaining_slots,
        )


class DuplicateApplication(ScholarshipError):
    code = "duplicate_application"
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, applicant_id: str, cycle_id: Any, existing_id: Any = None):
        super().__init__(
            "You already have an application for this cycle",
            applicant_id=applicant_id,
            cycle_id=cycle_id,
            existing_application_id=existing_id,
        )


class IncompleteReview(ScholarshipError):
    code = "incomplete_review"
    status_code = 422

    def __init__(self, application_id: Any, review_count: int, quorum: int):
        super().__init__(
            f"Application has {review_count} of {quorum} required reviews",
            application_id=application_id,
            review_count=review_count,
            quorum=quorum,
        )


class ReviewerConflict(ScholarshipError):
    code = "reviewer_conflict"
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, reviewer_id: str, application_id: Any):
        super().__init__(
            "You have already reviewed this application",
            reviewer_id=reviewer_id,
            application_id=application_id,
        )


class ApplicationWindowClosed(ScholarshipError):
    code = "application_window_closed"
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, cycle_id: Any, cycle_status: Any, reason: str):
        super().__init__(
            f"This scholarship is not accepting applications ({reason})",
            cycle_id=cycle_id,
            cycle_status=cycle_status,
        )


class MissingDocuments(ScholarshipError):
    code = "missing_documents"
    status_code = 422


class InvalidScore(ScholarshipError):
    code = "invalid_score"
    status_code = 422

    def __init__(self, score: float, low: float = 0.0, high: float = 100.0):
        super().__init__(
            f"Score {score} is outside [{low:g}, {high:g}]", score=score, min=low, max=high
        )


class InvalidDecision(ScholarshipError):
    code = "invalid_decision"
    status_code = 422


class ConcurrentModification(ScholarshipError):
    """Row changed underneath us; safe for the caller to retry with backoff."""

    code = "concurrent_modification"
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE


class SlotsAlreadyAwarded(ScholarshipError):
    """Requested capacity is below the number of slots already taken."""

    code = "slots_already_awarded"
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, cycle_id: Any, requested_total: int, awarded: Optional[int] = None):
        super().__init__(
            "Cannot reduce slots below the number already awarded",
            cycle_id=cycle_id,
            requested_total=requested_total,
            awarded=awarded,
        )
