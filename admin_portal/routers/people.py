"""Doctor, CHEW and patient records.

The three tables share one set of routes under ``/api/{collection}``; this
router is included after every router with a fixed ``/api/...`` prefix.
"""

import logging

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from fastapi.responses import Response

from admin_portal.dependencies import cancellation_token, get_cms, require_session
from admin_portal.models.person import Person, PersonRow, PersonUpdate, UserRegistration
from admin_portal.services.cancellation import CancellationToken
from admin_portal.services.cms_client import CmsClient, Upload
from admin_portal.services.exports import people_csv
from admin_portal.services.normalizer import (
    ROLE_IDS,
    normalize_collection,
    normalize_person,
    person_row,
    person_update_payload,
    unwrap_entity,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["people"], dependencies=[Depends(require_session)])

COLLECTIONS = {"doctors": "doctor", "chews": "chew", "patients": "patient"}


def _role_for(collection: str) -> str:
    role = COLLECTIONS.get(collection)
    if role is None:
        raise HTTPException(status_code=404, detail="Not found")
    return role


async def _load_people(cms: CmsClient, role: str, token: CancellationToken) -> list[Person]:
    payload = await cms.list_users(ROLE_IDS[role], token=token)
    return normalize_collection(payload, lambda raw: normalize_person(raw, role))


@router.post("/users", status_code=201)
async def register_user(
    body: UserRegistration,
    cms: CmsClient = Depends(get_cms),
    token: CancellationToken = Depends(cancellation_token),
):
    """Create a doctor, CHEW or patient account."""
    role = next((name for name, role_id in ROLE_IDS.items() if role_id == body.role), None)
    if role not in COLLECTIONS.values():
        raise HTTPException(status_code=400, detail="Role must be a doctor, CHEW or patient")

    result = await cms.register_user(
        {
            "username": body.email,
            "firstName": body.first_name,
            "lastName": body.last_name,
            "email": body.email,
            "password": body.password,
            "dateOfBirth": body.date_of_birth,
            "phone": body.phone,
            "gender": body.gender,
            "role": body.role,
        },
        token=token,
    )
    user = result.get("user", result) if isinstance(result, dict) else result
    logger.info("Registered new %s account for %s", role, body.email)
    return normalize_person(user, role)


@router.get("/{collection}", response_model=list[PersonRow])
async def list_people(
    collection: str,
    cms: CmsClient = Depends(get_cms),
    token: CancellationToken = Depends(cancellation_token),
):
    role = _role_for(collection)
    return [person_row(p) for p in await _load_people(cms, role, token)]


@router.get("/{collection}/export.csv")
async def export_people(
    collection: str,
    cms: CmsClient = Depends(get_cms),
    token: CancellationToken = Depends(cancellation_token),
):
    role = _role_for(collection)
    people = await _load_people(cms, role, token)
    return Response(
        content=people_csv(role, people),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{collection}.csv"'},
    )


@router.get("/{collection}/{person_id}")
async def get_person(
    collection: str,
    person_id: str,
    cms: CmsClient = Depends(get_cms),
    token: CancellationToken = Depends(cancellation_token),
):
    role = _role_for(collection)
    raw = await cms.get_user(person_id, ROLE_IDS[role], token=token)
    return normalize_person(raw, role)


@router.put("/{collection}/{person_id}")
async def update_person(
    collection: str,
    person_id: str,
    body: PersonUpdate,
    cms: CmsClient = Depends(get_cms),
    token: CancellationToken = Depends(cancellation_token),
):
    """Save edited profile fields; only the fields sent are written."""
    role = _role_for(collection)
    payload = person_update_payload(body)
    if not payload:
        raise HTTPException(status_code=400, detail="No changes to save")

    raw = await cms.update_user(person_id, payload, token=token)
    logger.info("Updated %s %s (%s)", role, person_id, ", ".join(sorted(payload)))
    return normalize_person(raw, role)


@router.delete("/{collection}/{person_id}")
async def delete_person(
    collection: str,
    person_id: str,
    cms: CmsClient = Depends(get_cms),
    token: CancellationToken = Depends(cancellation_token),
):
    role = _role_for(collection)
    await cms.delete_user(person_id, token=token)
    logger.info("Deleted %s %s", role, person_id)
    return {"status": "deleted", "id": person_id}


@router.post("/{collection}/{person_id}/qualifications", status_code=201)
async def add_qualification(
    collection: str,
    person_id: str,
    name: str = Form(...),
    file: UploadFile = File(...),
    cms: CmsClient = Depends(get_cms),
    token: CancellationToken = Depends(cancellation_token),
):
    """Upload a certificate and link it to the person's qualifications."""
    _role_for(collection)
    if not name.strip():
        raise HTTPException(status_code=400, detail="Qualification name is required")

    upload = Upload(
        filename=file.filename or "qualification",
        content=await file.read(),
        content_type=file.content_type or "application/octet-stream",
    )
    file_url = await cms.forward_file(upload, token=token)
    created = await cms.create_qualification(name.strip(), file_url, person_id, token=token)
    record = unwrap_entity(created)
    logger.info("Linked qualification %s to person %s", record["id"], person_id)
    return {"id": record["id"], "name": name.strip(), "file_url": file_url}
