from toe_review.models.toe import TermsOfEngagement, TOEStatus
from toe_review.schemas.toe import TOECreate
from toe_review.services.toe_document import TermsOfEngagements

DEFAULT_FEES = [
    {"description": "Site survey", "cost": 1000, "time_estimate": "8 hours"},
    {"description": "Report", "cost": 500, "time_estimate": "4 hours"},
]


def make_toe(db_session, actor, **overrides) -> TermsOfEngagement:
    defaults = dict(
        project_title="Harbour Bridge Assessment",
        client_name="Acme Ltd",
        scope_of_work="Survey the site.",
        fee_structure=DEFAULT_FEES,
        assumptions="Access is provided.",
        exclusions="No geotechnical work.",
    )
    defaults.update(overrides)
    return TermsOfEngagements.create(db_session, TOECreate(**defaults), actor)


def set_status(db_session, document, status: TOEStatus) -> TermsOfEngagement:
    document.status = status
    db_session.flush()
    db_session.refresh(document)
    return document


def candidate_from(document, **overrides) -> dict:
    data = {
        "scope_of_work": document.scope_of_work,
        "fee_structure": [dict(item) for item in document.fee_structure],
        "assumptions": document.assumptions,
        "exclusions": document.exclusions,
    }
    data.update(overrides)
    return data
