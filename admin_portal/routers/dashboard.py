import logging

from fastapi import APIRouter, Depends

from admin_portal.dependencies import cancellation_token, get_cms, require_session
from admin_portal.services.cancellation import CancellationToken
from admin_portal.services.cms_client import CmsClient
from admin_portal.services.normalizer import normalize_collection, normalize_person
from admin_portal.services.stats import user_counts

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/dashboard", tags=["dashboard"], dependencies=[Depends(require_session)])


@router.get("/stats")
async def dashboard_stats(
    cms: CmsClient = Depends(get_cms),
    token: CancellationToken = Depends(cancellation_token),
):
    """User totals for the dashboard cards."""
    people = normalize_collection(await cms.list_users(token=token), normalize_person)
    return user_counts(people)
