from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from linkforge_app.config import settings
from linkforge_app.dependencies import get_link_service
from linkforge_app.exceptions import InvalidExpiryError, LinkNotFoundError, ShortCodeExhaustedError
from linkforge_app.schemas.link import LinkActiveUpdate, LinkCreate, LinkResponse, LinkStats, LinkStatus
from linkforge_app.services.link_service import LinkService

router = APIRouter(prefix="/links", tags=["links"])


def _not_found() -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Link not found")


@router.post("/", response_model=LinkResponse, status_code=status.HTTP_201_CREATED)
async def create_link(
    link_data: LinkCreate,
    link_service: LinkService = Depends(get_link_service)
):
    """Create a new short link (guest links expire after 7 days)"""
    try:
        return await link_service.create_link(link_data.target, link_data.owner, link_data.expires_at)
    except InvalidExpiryError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc))
    except ShortCodeExhaustedError:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Could not allocate a short code"
        )


@router.get("/", response_model=List[LinkResponse])
async def list_links(
    owner: str = Query(..., min_length=1),
    link_status: Optional[LinkStatus] = Query(None, alias="status"),
    link_service: LinkService = Depends(get_link_service)
):
    """An owner's links for the dashboard, newest first"""
    return await link_service.list_links(owner, link_status)


@router.get("/{link_id}", response_model=LinkResponse)
async def get_link(
    link_id: str,
    link_service: LinkService = Depends(get_link_service)
):
    try:
        return await link_service.get_link(link_id)
    except LinkNotFoundError:
        raise _not_found()


@router.patch("/{link_id}", response_model=LinkResponse)
async def update_link_active(
    link_id: str,
    update: LinkActiveUpdate,
    link_service: LinkService = Depends(get_link_service)
):
    """Activate or deactivate a link"""
    try:
        return await link_service.set_active(link_id, update.is_active)
    except LinkNotFoundError:
        raise _not_found()


@router.delete("/{link_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_link(
    link_id: str,
    link_service: LinkService = Depends(get_link_service)
):
    """Delete a link together with its click events"""
    try:
        await link_service.delete_link(link_id)
    except LinkNotFoundError:
        raise _not_found()


@router.get("/{link_id}/stats", response_model=LinkStats)
async def get_link_stats(
    link_id: str,
    days: int = Query(settings.stats_default_days, ge=1, le=365),
    link_service: LinkService = Depends(get_link_service)
):
    """Click totals, clicks per day, devices, browsers and top referrers"""
    try:
        return await link_service.get_stats(link_id, days=days, top_referrers=settings.stats_top_referrers)
    except LinkNotFoundError:
        raise _not_found()
