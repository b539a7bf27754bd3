"""Service functions for the camps app."""
from __future__ import annotations

from camps.models import Camp
from compensation.calculator import SessionFacts


def get_session_facts(camp: Camp) -> SessionFacts:
    """Read the operational results of *camp* for the incentive calculator.

    Facts that were not reported yet are returned as ``None``; the
    calculator degrades the matching bonus component to zero.
    """
    return SessionFacts(
        enrollment=camp.enrolled_campers,
        csat_avg=camp.csat_avg_score,
        budget_variance=camp.budget_variance,
        guest_speaker_count=camp.guest_speaker_count,
    )


def facts_changed(previous: dict | None, camp: Camp) -> bool:
    """True when *camp* carries different facts than the *previous* snapshot."""
    if previous is None:
        return True
    return previous != camp.facts_snapshot()
