from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import List, Literal, Optional

from campaign_hub.core.auth import CallerIdentity, get_current_user
from campaign_hub.database.database import get_db
from campaign_hub.schemas.campaign import (
    CampaignCreatedResponse,
    CampaignListResponse,
    CampaignResponse,
    CampaignSummary,
    CreateCampaignRequest,
    DeleteResponse,
    ProgressUpdateRequest,
    UpdateCampaignRequest,
    ViewCountResponse,
    VisibilityRequest,
    VisibilityResponse,
)
from campaign_hub.schemas.edit_history import EditHistoryEntryResponse
from campaign_hub.schemas.stats import OwnerAnalytics, PlatformStats
from campaign_hub.schemas.update import CampaignUpdateResponse, CreateCampaignUpdateRequest
from campaign_hub.services.campaign import CampaignService, SORT_NEWEST
from campaign_hub.services.edit_history import EditHistoryRecorder
from campaign_hub.services.progress import ProgressService
from campaign_hub.services.stats import StatsService
from campaign_hub.services.updates import CampaignUpdateService

router = APIRouter(prefix="/campaigns", tags=["campaigns"])

# Fixed paths are registered before "/{campaign_id}" so they are not read as slugs


@router.get("", response_model=CampaignListResponse)
async def list_campaigns(
    sort: Literal["newest", "most_visited"] = Query(SORT_NEWEST, description="Ordering of the listing"),
    skip: int = Query(0, ge=0, description="Number of campaigns to skip"),
    limit: Optional[int] = Query(None, ge=1, description="Page size; every public campaign when omitted"),
    db: Session = Depends(get_db)
):
    """List public (non-hidden) campaigns; ``total`` counts all of them, not just this page"""
    campaigns = await CampaignService.list_public(db=db, sort=sort, skip=skip, limit=limit)
    total = await CampaignService.count_public(db=db)
    return CampaignListResponse(campaigns=campaigns, total=total)


@router.get("/most-visited", response_model=List[CampaignSummary])
async def most_visited_campaigns(db: Session = Depends(get_db)):
    """Top public campaigns by view count"""
    return await CampaignService.list_most_visited(db=db)


@router.get("/stats/platform", response_model=PlatformStats)
async def platform_stats(db: Session = Depends(get_db)):
    """Platform-wide statistics, recomputed on every request"""
    return await StatsService.platform_stats(db=db)


@router.get("/user", response_model=List[CampaignSummary])
async def my_campaigns(
    caller: CallerIdentity = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """List the caller's own campaigns, hidden ones included"""
    return await CampaignService.list_by_owner(db=db, owner_id=caller.id)


@router.get("/user/analytics", response_model=OwnerAnalytics)
async def my_campaign_analytics(
    caller: CallerIdentity = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Per-campaign views, progress and conversion for the caller"""
    return await StatsService.owner_analytics(db=db, owner_id=caller.id)


@router.post("", response_model=CampaignCreatedResponse, status_code=201)
async def create_campaign(
    campaign_data: CreateCampaignRequest,
    caller: CallerIdentity = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Create a new fundraising or blood-donation campaign"""
    return await CampaignService.create_campaign(db=db, owner_id=caller.id, campaign_data=campaign_data)


@router.get("/{campaign_id}", response_model=CampaignResponse)
async def get_campaign(campaign_id: str, db: Session = Depends(get_db)):
    """Get a campaign by opaque ID or slug"""
    return await CampaignService.get_campaign(db=db, id_or_slug=campaign_id)


@router.put("/{campaign_id}", response_model=CampaignResponse)
async def update_campaign(
    campaign_id: str,
    campaign_data: UpdateCampaignRequest,
    caller: CallerIdentity = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Edit campaign fields (owner only); changes are recorded in the edit history"""
    return await CampaignService.update_campaign(
        db=db, id_or_slug=campaign_id, owner_id=caller.id, patch=campaign_data
    )


@router.delete("/{campaign_id}", response_model=DeleteResponse)
async def delete_campaign(
    campaign_id: str,
    caller: CallerIdentity = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Delete a campaign and everything attached to it (owner only)"""
    await CampaignService.delete_campaign(db=db, id_or_slug=campaign_id, owner_id=caller.id)
    return DeleteResponse(success=True)


@router.patch("/{campaign_id}/progress", response_model=CampaignResponse)
async def update_progress(
    campaign_id: str,
    progress: ProgressUpdateRequest,
    caller: CallerIdentity = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Set funds raised or blood units collected (owner only)"""
    return await ProgressService.set_progress(
        db=db, id_or_slug=campaign_id, owner_id=caller.id, value=progress.value
    )


@router.post("/{campaign_id}/view", response_model=ViewCountResponse)
async def record_view(campaign_id: str, db: Session = Depends(get_db)):
    """Count one view of a campaign"""
    view_count = await ProgressService.increment_view(db=db, id_or_slug=campaign_id)
    return ViewCountResponse(success=True, view_count=view_count)


@router.patch("/{campaign_id}/visibility", response_model=VisibilityResponse)
async def update_visibility(
    campaign_id: str,
    visibility: VisibilityRequest,
    caller: CallerIdentity = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Hide or show a campaign in public listings (owner only)"""
    return await CampaignService.set_visibility(
        db=db, id_or_slug=campaign_id, owner_id=caller.id, hidden=visibility.is_hidden
    )


@router.get("/{campaign_id}/updates", response_model=List[CampaignUpdateResponse])
async def list_campaign_updates(campaign_id: str, db: Session = Depends(get_db)):
    """List updates posted on a campaign, newest first"""
    return await CampaignUpdateService.list_updates(db=db, id_or_slug=campaign_id)


@router.post("/{campaign_id}/updates", response_model=CampaignUpdateResponse, status_code=201)
async def create_campaign_update(
    campaign_id: str,
    update_data: CreateCampaignUpdateRequest,
    caller: CallerIdentity = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Post an update on a campaign (owner only)"""
    return await CampaignUpdateService.create_update(
        db=db, id_or_slug=campaign_id, owner_id=caller.id, update_data=update_data
    )


@router.get("/{campaign_id}/edit-history", response_model=List[EditHistoryEntryResponse])
async def campaign_edit_history(campaign_id: str, db: Session = Depends(get_db)):
    """List edit audit entries for a campaign, newest first"""
    return await EditHistoryRecorder.list_for_campaign(db=db, id_or_slug=campaign_id)
