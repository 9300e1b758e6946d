from __future__ import annotations

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict, Field

from rss_reader.feeds import (
    FeedAdminError,
    FeedNotFoundError,
    FeedRecord,
    FeedRepository,
    ValidationError,
    build_tree,
)

from api.dependencies import get_repo, require_admin

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/feeds", tags=["feeds"])


class FeedUpsertRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: Optional[str] = None
    url: Optional[str] = None
    category: Optional[str] = None
    is_sub: bool = Field(default=False, alias="isSub")
    custom_title: Optional[str] = Field(default=None, alias="customTitle")
    allowed_media_hosts: Optional[List[str]] = Field(default=None, alias="allowedMediaHosts")


class FeedDeleteRequest(BaseModel):
    id: Optional[str] = None


class FeedReorderRequest(BaseModel):
    ids: List[str] = Field(default_factory=list)


def _to_http(exc: FeedAdminError) -> HTTPException:
    if isinstance(exc, ValidationError):
        return HTTPException(status_code=400, detail=str(exc))
    if isinstance(exc, FeedNotFoundError):
        return HTTPException(status_code=404, detail=str(exc))
    logger.error("Feed store failure: %s", exc)
    return HTTPException(status_code=500, detail="Internal server error")


@router.get("")
def list_feeds(repo: FeedRepository = Depends(get_repo)):
    return [f.to_public_dict() for f in repo.list_feeds()]


@router.get("/tree")
def feed_tree(repo: FeedRepository = Depends(get_repo)):
    return build_tree(repo.list_feeds()).to_dict()


@router.post("/admin", dependencies=[Depends(require_admin)])
def list_feeds_admin(repo: FeedRepository = Depends(get_repo)):
    return [f.to_admin_dict() for f in repo.list_feeds()]


@router.post("/upsert", dependencies=[Depends(require_admin)])
def upsert_feed(payload: FeedUpsertRequest, repo: FeedRepository = Depends(get_repo)):
    if not payload.id or not payload.url:
        raise HTTPException(status_code=400, detail="Missing ID or URL")
    existing = repo.get_feed(payload.id)
    hosts = payload.allowed_media_hosts
    if hosts is None:
        hosts = existing.allowed_media_hosts if existing else []
    record = FeedRecord(
        id=payload.id,
        url=payload.url,
        category=payload.category,
        custom_title=payload.custom_title,
        is_sub=payload.is_sub,
        allowed_media_hosts=hosts,
    )
    try:
        repo.upsert_feed(record)
    except FeedAdminError as exc:
        raise _to_http(exc)
    return {"success": True}


@router.post("/delete", dependencies=[Depends(require_admin)])
def delete_feed(payload: FeedDeleteRequest, repo: FeedRepository = Depends(get_repo)):
    if not payload.id:
        raise HTTPException(status_code=400, detail="Missing ID")
    try:
        repo.delete_feed(payload.id)
    except FeedAdminError as exc:
        raise _to_http(exc)
    return {"success": True}


@router.post("/reorder", dependencies=[Depends(require_admin)])
def reorder_feeds(payload: FeedReorderRequest, repo: FeedRepository = Depends(get_repo)):
    try:
        repo.reorder(payload.ids)
    except FeedAdminError as exc:
        raise _to_http(exc)
    return {"success": True}
