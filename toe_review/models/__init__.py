from toe_review.models.toe import (  # noqa: F401
    ReviewStatus,
    TermsOfEngagement,
    TOEReview,
    TOEStatus,
)
