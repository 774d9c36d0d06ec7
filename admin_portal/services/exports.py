"""CSV exports of the doctor, CHEW, patient and case tables."""

import csv
import io
from collections.abc import Callable, Iterable

from admin_portal.models.case import CaseListItem
from admin_portal.models.person import Person

Column = tuple[str, Callable[[Person], object]]


def _status(person: Person) -> str:
    return "Confirmed" if person.confirmed else "Pending"


COLUMNS: dict[str, list[Column]] = {
    "doctor": [
        ("ID", lambda p: p.id),
        ("Full Name", lambda p: p.full_name),
        ("Specialisation", lambda p: ", ".join(p.specialisation)),
        ("Years of Experience", lambda p: p.years_of_experience),
        ("Confirmed", _status),
    ],
    "chew": [
        ("ID", lambda p: p.id),
        ("Full Name", lambda p: p.full_name),
        ("Phone", lambda p: p.phone),
        ("Years of Experience", lambda p: p.years_of_experience),
        ("Confirmed", _status),
    ],
    "patient": [
        ("ID", lambda p: p.id),
        ("Full Name", lambda p: p.full_name),
        ("Phone", lambda p: p.phone),
        ("Date of Birth", lambda p: p.date_of_birth),
        ("Confirmed", _status),
    ],
}


def people_csv(role: str, people: Iterable[Person]) -> str:
    """Render a role table as CSV text, header row first."""
    columns = COLUMNS[role]
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow([name for name, _ in columns])
    for person in people:
        writer.writerow([value(person) for _, value in columns])
    return buf.getvalue()


def cases_csv(rows: Iterable[CaseListItem]) -> str:
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow(["ID", "Chew Name", "Patient Name", "Patient Phone Number", "Visit Count"])
    for row in rows:
        writer.writerow([row.id, row.chew_name, row.full_name, row.phone, row.visit_count])
    return buf.getvalue()
