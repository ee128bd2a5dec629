from pydantic import BaseModel
from datetime import datetime
from typing import List, Optional

from campaign_hub.models.campaign import CampaignType


class CampaignCounts(BaseModel):
    total: int
    fundraising: int
    blood_donation: int
    active: int
    completed: int
    this_week: int
    this_month: int


class UserCounts(BaseModel):
    total: int
    new_this_week: int
    new_this_month: int


class EngagementStats(BaseModel):
    total_views: int
    total_funds_raised: float
    average_funding_progress: float
    total_blood_units_collected: int


class PlatformStats(BaseModel):
    """Platform-wide figures, computed from the live tables on every request"""
    campaigns: CampaignCounts
    users: UserCounts
    engagement: EngagementStats


class CampaignAnalytics(BaseModel):
    id: str
    slug: str
    title: str
    type: CampaignType
    view_count: int
    created_at: datetime
    target_amount: Optional[float] = None
    current_amount: Optional[float] = None
    progress: float
    conversion_rate: int


class OwnerAnalytics(BaseModel):
    campaigns: List[CampaignAnalytics]
    total_views: int
    total_raised: float
    average_progress: int
