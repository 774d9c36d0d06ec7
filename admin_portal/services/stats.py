"""Dashboard aggregates computed from normalized records."""

from collections import Counter
from collections.abc import Iterable

from admin_portal.models.case import Case
from admin_portal.models.person import Person
from admin_portal.services.normalizer import UNKNOWN_CHEW


def user_counts(people: Iterable[Person]) -> dict[str, int]:
    """Total users plus one count per app role."""
    people = list(people)
    roles = Counter(p.role for p in people)
    return {
        "total_users": len(people),
        "doctors": roles["doctor"],
        "chews": roles["chew"],
        "patients": roles["patient"],
    }


def visit_counts_by_chew(cases: Iterable[Case]) -> dict[str, int]:
    """Number of case visits recorded under each CHEW's name."""
    counts: Counter[str] = Counter()
    for case in cases:
        counts[case.chew.name if case.chew else UNKNOWN_CHEW] += len(case.visits)
    return dict(counts)
