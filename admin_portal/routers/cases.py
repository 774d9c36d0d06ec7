import logging

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import Response

from admin_portal.dependencies import cancellation_token, get_cms, require_session
from admin_portal.errors import CmsError
from admin_portal.models.case import Case, CaseCreate, CaseListItem, CaseUpdate
from admin_portal.services.cancellation import CancellationToken
from admin_portal.services.cms_client import CmsClient
from admin_portal.services.exports import cases_csv
from admin_portal.services.normalizer import (
    case_create_payload,
    case_update_payload,
    normalize_case,
    normalize_collection,
    summarize_case,
)
from admin_portal.services.stats import visit_counts_by_chew

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/cases", tags=["cases"], dependencies=[Depends(require_session)])


async def _load_cases(cms: CmsClient, token: CancellationToken) -> list[Case]:
    return normalize_collection(await cms.list_cases(token=token), normalize_case)


@router.get("", response_model=list[CaseListItem])
async def list_cases(
    cms: CmsClient = Depends(get_cms),
    token: CancellationToken = Depends(cancellation_token),
):
    """List cases as table rows with symptoms and notes gathered across visits."""
    return [summarize_case(case) for case in await _load_cases(cms, token)]


@router.post("", response_model=Case, status_code=201)
async def create_case(
    body: CaseCreate,
    cms: CmsClient = Depends(get_cms),
    token: CancellationToken = Depends(cancellation_token),
):
    raw = await cms.create_case(case_create_payload(body), token=token)
    case = normalize_case(raw)
    logger.info("Created case %s for %s", case.id, case.full_name)
    return case


@router.get("/visit-counts")
async def visit_counts(
    cms: CmsClient = Depends(get_cms),
    token: CancellationToken = Depends(cancellation_token),
):
    """Case visits recorded under each CHEW."""
    return visit_counts_by_chew(await _load_cases(cms, token))


@router.get("/export.csv")
async def export_cases(
    cms: CmsClient = Depends(get_cms),
    token: CancellationToken = Depends(cancellation_token),
):
    rows = [summarize_case(case) for case in await _load_cases(cms, token)]
    return Response(
        content=cases_csv(rows),
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="cases.csv"'},
    )


@router.get("/{case_id}", response_model=Case)
async def get_case(
    case_id: str,
    cms: CmsClient = Depends(get_cms),
    token: CancellationToken = Depends(cancellation_token),
):
    """Get a single case with its CHEW and visits in creation order."""
    try:
        raw = await cms.get_case(case_id, token=token)
    except CmsError as e:
        if e.status_code == 404:
            raise HTTPException(status_code=404, detail="Case not found")
        raise
    return normalize_case(raw)


@router.put("/{case_id}", response_model=Case)
async def update_case(
    case_id: str,
    body: CaseUpdate,
    cms: CmsClient = Depends(get_cms),
    token: CancellationToken = Depends(cancellation_token),
):
    payload = case_update_payload(body)
    if not payload["data"]:
        raise HTTPException(status_code=400, detail="No changes to save")

    raw = await cms.update_case(case_id, payload, token=token)
    logger.info("Updated case %s (%s)", case_id, ", ".join(sorted(payload["data"])))
    return normalize_case(raw)


@router.delete("/{case_id}")
async def delete_case(
    case_id: str,
    cms: CmsClient = Depends(get_cms),
    token: CancellationToken = Depends(cancellation_token),
):
    await cms.delete_case(case_id, token=token)
    logger.info("Deleted case %s", case_id)
    return {"status": "deleted", "id": case_id}
