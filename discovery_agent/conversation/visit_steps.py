"""Visit-scheduling step derivation.

The visit sub-steps are never stored. They are recomputed from the marker
entries written into the record's ``visit_scheduling`` list.
"""

from typing import Iterable, Optional

from discovery_agent.schemas.discovery_schema import QAEntry, VisitStep, VisitStepStatus

VISIT_AGREEMENT = "visit_agreement"
TIME_CONFIRMATION = "time_confirmation"
EMAIL_COLLECTION = "email_collection"
REFERRAL_SOURCE = "referral_source"

# Marker written when a step completes, in step order.
STEP_MARKERS: tuple[str, ...] = (
    VISIT_AGREEMENT,
    TIME_CONFIRMATION,
    EMAIL_COLLECTION,
    REFERRAL_SOURCE,
)


def visit_step_status(entries: Iterable[QAEntry]) -> VisitStepStatus:
    """Current step = highest completed marker + 1 (step 1 when none)."""
    present = {entry.question for entry in entries}
    highest = 0
    for index, marker in enumerate(STEP_MARKERS, start=1):
        if marker in present:
            highest = index
    return VisitStepStatus(current_step=VisitStep(highest + 1), is_initial=highest == 0)


def marker_answer(entries: Iterable[QAEntry], marker: str) -> Optional[str]:
    """Answer stored under ``marker``, if any."""
    for entry in entries:
        if entry.question == marker:
            return entry.answer
    return None
