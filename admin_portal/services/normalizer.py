"""View-model assembly for content API payloads.

The content API answers in several shapes for the same logical record: flat
user objects, Strapi ``{data: {id, attributes}}`` envelopes, and populated
relations nested inside either. Every shape is decoded once here into the
flat models under ``admin_portal.models``.

Defaulting policy:
- Scalar text: passed through when present and non-empty, else ``""``.
- Counts (years of experience): parsed, ``0`` on failure.
- Monetary / optional numbers (consultation fee): parsed, ``None`` on failure.
- Lists: ``None`` -> ``[]``, scalar -> ``[scalar]``, list -> unchanged.
- Relations: missing key, ``null`` and empty envelopes all yield ``None`` / ``[]``.
- Images: placeholder asset path when absent.

Only a payload that is not JSON, is not an object, or has no ``id`` raises
``MalformedResponseError``. Every normalizer also accepts its own output
(``model.model_dump()``), so normalizing twice is a no-op.
"""

import json
import logging
import math
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any, TypeVar

from admin_portal.config import (
    ADMIN_ROLE_ID,
    CHEW_ROLE_ID,
    DOCTOR_ROLE_ID,
    PATIENT_ROLE_ID,
    PLACEHOLDER_AVATAR,
    PLACEHOLDER_IMAGE,
)
from admin_portal.errors import MalformedResponseError
from admin_portal.models.case import Case, CaseCreate, CaseListItem, CaseUpdate, CaseVisit, ChewRef
from admin_portal.models.content import Advertisement, Article
from admin_portal.models.person import Chew, Doctor, Patient, Person, PersonRow, PersonUpdate

logger = logging.getLogger(__name__)

T = TypeVar("T")

UNKNOWN_NAME = "Unknown"
UNKNOWN_CHEW = "Unknown Chew"
NOT_LISTED = "Not Listed"

ROLE_NAMES = {
    DOCTOR_ROLE_ID: "doctor",
    CHEW_ROLE_ID: "chew",
    PATIENT_ROLE_ID: "patient",
    ADMIN_ROLE_ID: "admin",
}
ROLE_IDS = {name: role_id for role_id, name in ROLE_NAMES.items()}


# --- Relation variants ---


@dataclass(frozen=True)
class Absent:
    """Relation key not present in the payload."""


@dataclass(frozen=True)
class Null:
    """Relation key present but null or an empty envelope."""


@dataclass(frozen=True)
class Populated:
    value: Any


Relation = Absent | Null | Populated

ABSENT = Absent()
NULL = Null()


def decode_relation(record: Mapping, *keys: str) -> Relation:
    """Decode the first of ``keys`` present in ``record`` into a relation variant.

    ``{}``, ``{"data": None}``, ``{"data": []}``, ``[]`` and ``None`` are all
    "no relation"; a Strapi envelope is unwrapped to its ``data``.
    """
    for key in keys:
        if key in record:
            return _decode_value(record[key])
    return ABSENT


def _decode_value(value: Any) -> Relation:
    if value is None:
        return NULL
    if isinstance(value, Mapping):
        if not value:
            return NULL
        if "data" in value:
            data = value["data"]
            if data is None or data == [] or data == {}:
                return NULL
            return Populated(data)
        return Populated(value)
    if isinstance(value, (list, tuple)) and not value:
        return NULL
    if isinstance(value, str) and not value.strip():
        return NULL
    return Populated(value)


def relation_items(relation: Relation) -> list:
    """Populated relation as a list (a single related object becomes one item)."""
    if not isinstance(relation, Populated):
        return []
    if isinstance(relation.value, (list, tuple)):
        return list(relation.value)
    return [relation.value]


def relation_one(relation: Relation) -> Any | None:
    if not isinstance(relation, Populated):
        return None
    if isinstance(relation.value, (list, tuple)):
        return relation.value[0] if relation.value else None
    return relation.value


# --- Payload decoding ---


def parse_json(text: str | bytes) -> Any:
    """Parse a raw response body, raising ``MalformedResponseError`` on garbage."""
    try:
        return json.loads(text)
    except (json.JSONDecodeError, TypeError, ValueError) as e:
        raise MalformedResponseError(f"Response is not valid JSON: {e}") from e


def flatten_entity(value: Any) -> dict | None:
    """Merge a Strapi ``{id, attributes}`` pair into one flat dict."""
    if not isinstance(value, Mapping):
        return None
    attributes = value.get("attributes")
    if isinstance(attributes, Mapping):
        flat = dict(attributes)
        if "id" in value:
            flat["id"] = value["id"]
        return flat
    return dict(value)


def unwrap_entity(payload: Any) -> dict:
    """Return a flat record with an ``id`` from any single-record payload shape."""
    if not isinstance(payload, Mapping):
        raise MalformedResponseError(
            f"Expected an object, got {type(payload).__name__}"
        )
    if "data" in payload and "id" not in payload:
        if not isinstance(payload["data"], Mapping):
            raise MalformedResponseError("Response envelope has no record")
        entity = flatten_entity(payload["data"])
    else:
        entity = flatten_entity(payload)
    if entity is None or entity.get("id") in (None, ""):
        raise MalformedResponseError("Record has no id")
    return entity


def unwrap_collection(payload: Any) -> list:
    """Return the list of raw records from a flat list or ``{data: [...]}``."""
    if isinstance(payload, list):
        return payload
    if isinstance(payload, Mapping) and isinstance(payload.get("data"), list):
        return payload["data"]
    raise MalformedResponseError(
        f"Expected a list of records, got {type(payload).__name__}"
    )


def normalize_collection(payload: Any, normalize: Callable[[Any], T]) -> list[T]:
    """Normalize every record of a list payload, skipping records without an id."""
    results = []
    for item in unwrap_collection(payload):
        try:
            results.append(normalize(item))
        except MalformedResponseError as e:
            logger.warning("Skipping malformed record in list response: %s", e)
    return results


# --- Field coercion ---


def _pick(record: Mapping, *keys: str) -> Any:
    """First value among ``keys`` that is neither missing, ``None`` nor ``""``."""
    for key in keys:
        value = record.get(key)
        if value is None or value == "":
            continue
        return value
    return None


def as_text(value: Any) -> str:
    if value is None or isinstance(value, (Mapping, list, tuple)):
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    text = str(value)
    return text if text.strip() else ""


def as_optional_text(value: Any) -> str | None:
    return as_text(value) or None


def _as_number(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip().replace(",", ""))
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


def as_count(value: Any) -> int:
    """Counts default to 0 when missing or unparseable."""
    number = _as_number(value)
    return int(number) if number is not None else 0


def as_amount(value: Any) -> float | None:
    """Monetary and optional attributes default to None (rendered as unset)."""
    return _as_number(value)


def as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    if isinstance(value, (int, float)):
        return value != 0
    return False


def as_list(value: Any) -> list[str]:
    """Wrap scalars, default missing values to ``[]``, pass lists through.

    String items are kept as given; any other item is rendered as text.
    """
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return [v if isinstance(v, str) else as_text(v) for v in value]
    text = as_text(value)
    return [text] if text else []


def _media_url(value: Any) -> str:
    """URL from a plain string, a ``{url}`` object or a Strapi media envelope."""
    if isinstance(value, Mapping):
        item = flatten_entity(relation_one(_decode_value(value)))
        if not item:
            return ""
        return as_text(_pick(item, "url", "fileUrl", "file_url"))
    return as_text(value)


def as_url(value: Any, placeholder: str) -> str:
    return _media_url(value) or placeholder


def project_urls(value: Any) -> list[str]:
    """Project a relation list of ``{fileUrl}`` objects down to plain URLs."""
    urls = []
    for item in relation_items(_decode_value(value)):
        if isinstance(item, str):
            url = as_text(item)
        else:
            flat = flatten_entity(item) or {}
            url = as_text(_pick(flat, "fileUrl", "file_url", "url"))
        if url:
            urls.append(url)
    return urls


def compose_full_name(first: Any, last: Any) -> str:
    """Join first and last name, or ``"Unknown"`` when either part is missing."""
    first_text = as_text(first).strip()
    last_text = as_text(last).strip()
    if not first_text or not last_text:
        return UNKNOWN_NAME
    return f"{first_text} {last_text}"


def _label(value: Any) -> str:
    """Display text for a field that may be a plain string or a relation."""
    if isinstance(value, Mapping):
        item = flatten_entity(relation_one(_decode_value(value))) or {}
        return as_text(_pick(item, "name", "title"))
    return as_text(value)


# --- People ---


def role_name(record: Mapping) -> str | None:
    """Role of a user record: ``role: {id, type}``, a role id, or a role name."""
    role = relation_one(decode_relation(record, "role"))
    if role is None:
        return None
    if isinstance(role, str):
        return role if role in ROLE_IDS else ROLE_NAMES.get(as_count(role))
    if isinstance(role, (int, float)) and not isinstance(role, bool):
        return ROLE_NAMES.get(int(role))
    flat = flatten_entity(role) or {}
    if flat.get("id") is not None:
        name = ROLE_NAMES.get(as_count(flat["id"]))
        if name:
            return name
    role_type = as_text(flat.get("type")).lower()
    return role_type if role_type in ROLE_IDS else None


def _person_fields(record: Mapping, role: str | None) -> dict:
    first = as_text(_pick(record, "first_name", "firstName"))
    last = as_text(_pick(record, "last_name", "lastName"))
    return {
        "id": record["id"],
        "role": role or role_name(record),
        "first_name": first,
        "last_name": last,
        "full_name": compose_full_name(first, last),
        "profile_picture_url": as_url(
            _pick(record, "profile_picture_url", "profile_picture", "picture_url"),
            PLACEHOLDER_AVATAR,
        ),
        "email": as_text(record.get("email")),
        "phone": as_text(_pick(record, "phone", "phone_number")),
        "gender": as_text(record.get("gender")),
        "home_address": as_text(_pick(record, "home_address", "address")),
        "country": as_text(record.get("country")),
        "date_of_birth": as_text(_pick(record, "date_of_birth", "dateOfBirth")),
        "languages": as_list(record.get("languages")),
        "specialisation": as_list(_pick(record, "specialisation", "specialization")),
        "years_of_experience": as_count(
            _pick(record, "years_of_experience", "yearsOfExperience", "experience")
        ),
        "confirmed": as_bool(record.get("confirmed")),
        "qualifications": project_urls(record.get("qualifications")),
        "created_at": as_text(_pick(record, "created_at", "createdAt")),
        "bank_code": as_text(_pick(record, "bank_code", "bankCode")),
        "account_number": as_text(_pick(record, "account_number", "accountNumber")),
        "recipient_code": as_optional_text(_pick(record, "recipient_code", "recipientCode")),
    }


def normalize_person(raw: Any, role: str | None = None) -> Person:
    """Normalize a user record into ``Doctor``, ``Chew`` or ``Patient``.

    ``role`` is taken from the caller when the request already filtered by
    role, otherwise from the record's ``role`` relation.
    """
    record = unwrap_entity(raw)
    fields = _person_fields(record, role)
    if fields["role"] == "doctor":
        return Doctor(
            **fields,
            about=as_text(record.get("about")),
            awards=as_list(record.get("awards")),
            consultation_fee=as_amount(_pick(record, "consultation_fee", "consultationFee", "fee")),
            facility=_label(record.get("facility")),
        )
    if fields["role"] == "chew":
        visits = relation_items(decode_relation(record, "case_visits", "casevisits"))
        return Chew(**fields, case_visits=_ordered_visits(visits))
    if fields["role"] == "patient":
        return Patient(**fields)
    return Person(**fields)


def person_row(person: Person) -> PersonRow:
    return PersonRow(
        id=person.id,
        full_name=person.full_name,
        profile_picture_url=person.profile_picture_url,
        phone=person.phone or NOT_LISTED,
        specialisation=person.specialisation,
        years_of_experience=person.years_of_experience,
        created_at=person.created_at,
        confirmed=person.confirmed,
    )


# --- Cases ---


def normalize_case_visit(raw: Any) -> CaseVisit:
    record = flatten_entity(raw) or {}
    notes = record.get("chews_notes")
    return CaseVisit(
        id=record.get("id"),
        date=as_text(record.get("date")),
        weight=as_optional_text(record.get("weight")),
        height=as_optional_text(record.get("height")),
        blood_pressure=as_optional_text(_pick(record, "blood_pressure", "bloodPressure")),
        chews_notes="; ".join(as_list(notes)) if isinstance(notes, list) else as_text(notes),
        symptoms=as_list(record.get("symptoms")),
        current_prescription=as_list(record.get("current_prescription")),
        created_at=as_text(_pick(record, "created_at", "createdAt")),
    )


def _ordered_visits(items: list) -> list[CaseVisit]:
    visits = [normalize_case_visit(item) for item in items if isinstance(item, Mapping)]
    # Creation order; undated visits keep upstream order after dated ones
    return sorted(visits, key=lambda v: (v.created_at == "", v.created_at))


def _chew_ref(value: Any) -> ChewRef | None:
    record = flatten_entity(value)
    if not record or record.get("id") in (None, ""):
        return None
    first = as_text(_pick(record, "first_name", "firstName"))
    last = as_text(_pick(record, "last_name", "lastName"))
    return ChewRef(
        id=record["id"],
        first_name=first,
        last_name=last,
        name=compose_full_name(first, last),
        username=as_text(record.get("username")),
        email=as_text(record.get("email")),
    )


def normalize_case(raw: Any) -> Case:
    record = unwrap_entity(raw)
    first = as_text(_pick(record, "first_name", "firstName"))
    last = as_text(_pick(record, "last_name", "lastName"))
    return Case(
        id=record["id"],
        first_name=first,
        last_name=last,
        full_name=compose_full_name(first, last),
        profile_picture_url=as_url(
            _pick(record, "profile_picture_url", "profile_picture"), PLACEHOLDER_AVATAR
        ),
        email=as_text(record.get("email")),
        phone=as_text(_pick(record, "phone", "phone_number")),
        gender=as_text(record.get("gender")),
        home_address=as_text(record.get("home_address")),
        nearest_bus_stop=as_text(record.get("nearest_bus_stop")),
        current_prescription=as_list(record.get("current_prescription")),
        symptoms=as_list(record.get("symptoms")),
        chews_notes=as_list(record.get("chews_notes")),
        weight=as_optional_text(record.get("weight")),
        height=as_optional_text(record.get("height")),
        blood_glucose=as_optional_text(record.get("blood_glucose")),
        chew=_chew_ref(relation_one(decode_relation(record, "chew"))),
        visits=_ordered_visits(relation_items(decode_relation(record, "visits", "casevisits"))),
    )


def summarize_case(case: Case) -> CaseListItem:
    """Table row: symptoms and notes gathered across all visits."""
    return CaseListItem(
        id=case.id,
        full_name=case.full_name,
        profile_picture_url=case.profile_picture_url,
        phone=case.phone or NOT_LISTED,
        symptoms=[s for visit in case.visits for s in visit.symptoms],
        chews_notes=[visit.chews_notes for visit in case.visits if visit.chews_notes],
        chew_name=case.chew.name if case.chew else UNKNOWN_CHEW,
        visit_count=len(case.visits),
    )


# --- Content ---


def normalize_article(raw: Any) -> Article:
    record = unwrap_entity(raw)
    return Article(
        id=record["id"],
        title=as_text(record.get("title")),
        description=as_text(record.get("description")),
        category=as_text(record.get("category")),
        feature_image_url=as_url(
            _pick(record, "feature_image_url", "feauture_image", "feature_image", "image"),
            PLACEHOLDER_IMAGE,
        ),
    )


def normalize_advertisement(raw: Any) -> Advertisement:
    record = unwrap_entity(raw)
    return Advertisement(
        id=record["id"],
        text=as_text(record.get("text")),
        image_url=as_url(
            _pick(record, "image_url", "feature_image", "image"), PLACEHOLDER_IMAGE
        ),
        created_at=as_text(_pick(record, "created_at", "createdAt")),
    )


# --- Submit payloads ---


def _joined(value: Any) -> str:
    return ", ".join(as_list(value))


def split_full_name(full_name: str) -> tuple[str, str] | None:
    """Split an edited full name into (first, last); None when not splittable."""
    parts = full_name.split(maxsplit=1)
    if len(parts) != 2 or full_name.strip() == UNKNOWN_NAME:
        return None
    return parts[0], parts[1]


def person_update_payload(update: PersonUpdate) -> dict:
    """Body for ``PUT /api/users/{id}`` containing only the edited fields."""
    fields = update.model_dump(exclude_unset=True)
    payload: dict[str, Any] = {}

    full_name = fields.pop("full_name", None)
    if full_name:
        names = split_full_name(full_name)
        if names:
            payload["firstName"], payload["lastName"] = names

    renamed = {
        "address": "home_address",
        "date_of_birth": "dateOfBirth",
    }
    for key, value in fields.items():
        if value is None:
            continue
        if key == "specialisation":
            payload[key] = _joined(value)
        elif key in ("languages", "awards"):
            payload[key] = as_list(value)
        else:
            payload[renamed.get(key, key)] = value
    return payload


def case_update_payload(update: CaseUpdate) -> dict:
    """Body for ``PUT /api/cases/{id}``; list fields are sent comma-joined."""
    fields = update.model_dump(exclude_unset=True)
    data: dict[str, Any] = {}

    full_name = fields.pop("full_name", None)
    if full_name:
        names = split_full_name(full_name)
        if names:
            data["first_name"], data["last_name"] = names

    for key, value in fields.items():
        if value is None:
            continue
        if key in ("current_prescription", "symptoms", "chews_notes"):
            data[key] = _joined(value)
        elif key == "phone":
            data["phone_number"] = value
        else:
            data[key] = value
    return {"data": data}


def article_form_fields(title: str, description: str, category: str) -> dict[str, str]:
    return {"title": title, "description": description, "category": category}


def advert_form_fields(text: str, created_at: str | None = None) -> dict[str, str]:
    fields = {"text": text}
    if created_at:
        fields["createdAt"] = created_at
    return fields


def case_create_payload(body: CaseCreate) -> dict:
    """Body for ``POST /api/cases``, in the same shape as an update."""
    data: dict[str, Any] = {
        "first_name": body.first_name.strip(),
        "last_name": body.last_name.strip(),
    }
    for key, value in body.model_dump(exclude={"first_name", "last_name", "chew_id"}).items():
        if value is None or value == "" or value == []:
            continue
        if key in ("current_prescription", "symptoms"):
            data[key] = _joined(value)
        elif key == "phone":
            data["phone_number"] = value
        else:
            data[key] = value
    if body.chew_id is not None:
        data["chew"] = body.chew_id
    return {"data": data}
