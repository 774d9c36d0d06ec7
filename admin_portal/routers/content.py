"""Health tips (articles) and advertisements shown in the mobile apps.

Both are edited through multipart forms with an optional image, forwarded
to the content API as-is.
"""

import logging

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile

from admin_portal.dependencies import cancellation_token, get_cms, require_session
from admin_portal.models.content import Advertisement, Article
from admin_portal.services.cancellation import CancellationToken
from admin_portal.services.cms_client import CmsClient, Upload
from admin_portal.services.normalizer import (
    advert_form_fields,
    article_form_fields,
    normalize_advertisement,
    normalize_article,
    normalize_collection,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["content"], dependencies=[Depends(require_session)])


async def _upload(image: UploadFile | None) -> Upload | None:
    if image is None or not image.filename:
        return None
    return Upload(
        filename=image.filename,
        content=await image.read(),
        content_type=image.content_type or "application/octet-stream",
    )


def _require(**fields: str) -> None:
    missing = [name for name, value in fields.items() if not value.strip()]
    if missing:
        raise HTTPException(status_code=400, detail=f"Missing required fields: {', '.join(missing)}")


# --- Articles ---


@router.get("/articles", response_model=list[Article])
async def list_articles(
    cms: CmsClient = Depends(get_cms),
    token: CancellationToken = Depends(cancellation_token),
):
    return normalize_collection(await cms.list_articles(token=token), normalize_article)


@router.post("/articles", response_model=Article, status_code=201)
async def create_article(
    title: str = Form(...),
    description: str = Form(...),
    category: str = Form(""),
    image: UploadFile | None = File(None),
    cms: CmsClient = Depends(get_cms),
    token: CancellationToken = Depends(cancellation_token),
):
    _require(title=title, description=description)
    raw = await cms.create_article(
        article_form_fields(title, description, category), await _upload(image), token=token
    )
    article = normalize_article(raw)
    logger.info("Created health tip %s", article.id)
    return article


@router.put("/articles/{article_id}", response_model=Article)
async def update_article(
    article_id: str,
    title: str = Form(...),
    description: str = Form(...),
    category: str = Form(""),
    image: UploadFile | None = File(None),
    cms: CmsClient = Depends(get_cms),
    token: CancellationToken = Depends(cancellation_token),
):
    _require(title=title, description=description)
    raw = await cms.update_article(
        article_id, article_form_fields(title, description, category), await _upload(image), token=token
    )
    logger.info("Updated health tip %s", article_id)
    return normalize_article(raw)


@router.delete("/articles/{article_id}")
async def delete_article(
    article_id: str,
    cms: CmsClient = Depends(get_cms),
    token: CancellationToken = Depends(cancellation_token),
):
    await cms.delete_article(article_id, token=token)
    logger.info("Deleted health tip %s", article_id)
    return {"status": "deleted", "id": article_id}


# --- Adverts ---


@router.get("/adverts", response_model=list[Advertisement])
async def list_adverts(
    cms: CmsClient = Depends(get_cms),
    token: CancellationToken = Depends(cancellation_token),
):
    return normalize_collection(await cms.list_adverts(token=token), normalize_advertisement)


@router.post("/adverts", response_model=Advertisement, status_code=201)
async def create_advert(
    text: str = Form(...),
    created_at: str | None = Form(None),
    image: UploadFile | None = File(None),
    cms: CmsClient = Depends(get_cms),
    token: CancellationToken = Depends(cancellation_token),
):
    _require(text=text)
    raw = await cms.create_advert(
        advert_form_fields(text, created_at), await _upload(image), token=token
    )
    advert = normalize_advertisement(raw)
    logger.info("Created advert %s", advert.id)
    return advert


@router.put("/adverts/{advert_id}", response_model=Advertisement)
async def update_advert(
    advert_id: str,
    text: str = Form(...),
    created_at: str | None = Form(None),
    image: UploadFile | None = File(None),
    cms: CmsClient = Depends(get_cms),
    token: CancellationToken = Depends(cancellation_token),
):
    _require(text=text)
    raw = await cms.update_advert(
        advert_id, advert_form_fields(text, created_at), await _upload(image), token=token
    )
    logger.info("Updated advert %s", advert_id)
    return normalize_advertisement(raw)


@router.delete("/adverts/{advert_id}")
async def delete_advert(
    advert_id: str,
    cms: CmsClient = Depends(get_cms),
    token: CancellationToken = Depends(cancellation_token),
):
    await cms.delete_advert(advert_id, token=token)
    logger.info("Deleted advert %s", advert_id)
    return {"status": "deleted", "id": advert_id}
