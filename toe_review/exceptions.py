"""Domain errors raised by the review and lifecycle services.

Each error is an ``HTTPException`` carrying a ``{code, message, details}``
detail so the handlers in :mod:`toe_review.errors` render it unchanged.
"""

from fastapi import HTTPException


class TOEError(HTTPException):
    status_code = 400
    code = "toe_error"

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(
            status_code=self.status_code,
            detail={"code": self.code, "message": message, "details": details},
        )
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        return self.message


class InvalidTransition(TOEError):
    status_code = 409
    code = "invalid_transition"

    def __init__(self, action: str, current_status: str, attempted_status: str | None):
        if attempted_status:
            message = (
                f"Cannot '{action}': transition {current_status} -> "
                f"{attempted_status} is not allowed"
            )
        else:
            message = f"Cannot '{action}' while status is {current_status}"
        super().__init__(
            message,
            {
                "action": action,
                "current_status": current_status,
                "attempted_status": attempted_status,
            },
        )
        self.action = action
        self.current_status = current_status
        self.attempted_status = attempted_status


class EmptyReviewerSet(TOEError):
    status_code = 400
    code = "empty_reviewer_set"

    def __init__(self):
        super().__init__("At least one reviewer is required")


class StaleSubmission(TOEError):
    status_code = 409
    code = "stale_submission"

    def __init__(self, review_id, review_status: str):
        super().__init__(
            f"Review {review_id} is no longer pending (status={review_status})",
            {"review_id": str(review_id), "review_status": review_status},
        )
        self.review_status = review_status


class InconsistentSnapshot(TOEError):
    status_code = 409
    code = "inconsistent_snapshot"


class ReconciliationFailed(TOEError):
    status_code = 500
    code = "reconciliation_failed"


class DocumentLocked(TOEError):
    status_code = 409
    code = "document_locked"

    def __init__(self, status: str):
        super().__init__(
            f"Document content cannot be edited while status is {status}",
            {"current_status": status},
        )


class MissingDocumentContext(TOEError):
    status_code = 400
    code = "missing_document_context"

    def __init__(self):
        super().__init__("A review session needs the live document to seed from")


class SessionClosed(TOEError):
    status_code = 409
    code = "session_closed"

    def __init__(self):
        super().__init__("Review session has already been submitted")


class OriginalPreviewReadOnly(TOEError):
    status_code = 409
    code = "original_preview_read_only"

    def __init__(self):
        super().__init__("Switch back to the reviewed version before editing")
