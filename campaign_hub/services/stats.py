"""
Read-side statistics

Nothing here is cached: every figure is recomputed from the campaign and
user tables on each call. The counting queries below are the first thing to
revisit if the tables grow large.
"""
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Optional, Union
from sqlalchemy import case, false, func
from sqlalchemy.orm import Session
import structlog

from campaign_hub.models.campaign import Campaign, CampaignType, utcnow
from campaign_hub.models.user import User
from campaign_hub.schemas.campaign import CampaignProgress
from campaign_hub.schemas.stats import (
    CampaignAnalytics,
    CampaignCounts,
    EngagementStats,
    OwnerAnalytics,
    PlatformStats,
    UserCounts,
)
from campaign_hub.services.base import guarded

logger = structlog.get_logger(__name__)

Number = Union[int, float, Decimal]


def funding_progress(current: Optional[Number], target: Optional[Number]) -> Optional[CampaignProgress]:
    """
    Progress towards a target: percentage clamped to 100, remaining never
    negative, completed once current reaches target. ``None`` without a
    positive target.
    """
    if target is None or target <= 0:
        return None

    current = float(current or 0)
    target = float(target)
    return CampaignProgress(
        percentage=min(current / target, 1.0) * 100,
        remaining=max(target - current, 0.0),
        completed=current >= target,
    )


def campaign_progress(campaign: Campaign) -> Optional[CampaignProgress]:
    """Progress on the counter selected by the campaign's variant"""
    if campaign.type == CampaignType.FUNDRAISING:
        return funding_progress(campaign.current_amount, campaign.target_amount)
    return funding_progress(campaign.current_blood_units, campaign.target_blood_units)


class StatsService:
    """Platform-wide and per-owner aggregates"""

    @staticmethod
    async def platform_stats(db: Session, now: Optional[datetime] = None) -> PlatformStats:
        now = now or utcnow()
        week_ago = now - timedelta(days=7)
        month_ago = now - timedelta(days=30)

        is_fundraising = Campaign.type == CampaignType.FUNDRAISING
        is_blood_donation = Campaign.type == CampaignType.BLOOD_DONATION
        has_target = (Campaign.target_amount > 0)

        def campaign_query():
            return db.query(
                func.count(Campaign.id).label("total"),
                func.count(case((is_fundraising, 1))).label("fundraising"),
                func.count(case((is_blood_donation, 1))).label("blood_donation"),
                func.count(case((Campaign.is_hidden == false(), 1))).label("active"),
                func.count(case((
                    is_fundraising & has_target & (Campaign.current_amount >= Campaign.target_amount), 1
                ))).label("completed"),
                func.count(case((Campaign.created_at >= week_ago, 1))).label("this_week"),
                func.count(case((Campaign.created_at >= month_ago, 1))).label("this_month"),
                func.coalesce(func.sum(Campaign.view_count), 0).label("total_views"),
                func.coalesce(func.sum(case((is_fundraising, Campaign.current_amount), else_=0)), 0).label("funds"),
                func.avg(case((
                    is_fundraising & has_target, Campaign.current_amount * 100.0 / Campaign.target_amount
                ))).label("avg_progress"),
                func.coalesce(func.sum(case((is_blood_donation, Campaign.current_blood_units), else_=0)), 0).label("blood_units"),
            ).one()

        def user_query():
            return db.query(
                func.count(User.id).label("total"),
                func.count(case((User.created_at >= week_ago, 1))).label("this_week"),
                func.count(case((User.created_at >= month_ago, 1))).label("this_month"),
            ).one()

        campaigns = await guarded(db, "compute campaign statistics", campaign_query)
        users = await guarded(db, "compute user statistics", user_query, table="users")

        logger.info("Platform statistics computed", total_campaigns=campaigns.total, total_users=users.total)

        return PlatformStats(
            campaigns=CampaignCounts(
                total=campaigns.total,
                fundraising=campaigns.fundraising,
                blood_donation=campaigns.blood_donation,
                active=campaigns.active,
                completed=campaigns.completed,
                this_week=campaigns.this_week,
                this_month=campaigns.this_month,
            ),
            users=UserCounts(
                total=users.total,
                new_this_week=users.this_week,
                new_this_month=users.this_month,
            ),
            engagement=EngagementStats(
                total_views=int(campaigns.total_views),
                total_funds_raised=float(campaigns.funds or 0),
                average_funding_progress=float(campaigns.avg_progress or 0),
                total_blood_units_collected=int(campaigns.blood_units or 0),
            ),
        )

    @staticmethod
    async def owner_analytics(db: Session, owner_id: str) -> OwnerAnalytics:
        """Views, progress and a views-to-funds conversion estimate for one owner's campaigns"""
        def db_query():
            return (
                db.query(Campaign)
                .filter(Campaign.user_id == owner_id)
                .order_by(Campaign.created_at.desc())
                .all()
            )

        campaigns = await guarded(db, "compute owner analytics", db_query, owner_id=owner_id)

        rows = []
        for campaign in campaigns:
            progress = campaign_progress(campaign)
            current_amount = float(campaign.current_amount or 0)
            conversion_rate = round(current_amount / campaign.view_count * 100) if campaign.view_count > 0 else 0
            rows.append(CampaignAnalytics(
                id=campaign.id,
                slug=campaign.slug,
                title=campaign.title,
                type=campaign.type,
                view_count=campaign.view_count,
                created_at=campaign.created_at,
                target_amount=float(campaign.target_amount) if campaign.target_amount is not None else None,
                current_amount=float(campaign.current_amount) if campaign.current_amount is not None else None,
                progress=progress.percentage if progress else 0.0,
                conversion_rate=conversion_rate,
            ))

        return OwnerAnalytics(
            campaigns=rows,
            total_views=sum(row.view_count for row in rows),
            total_raised=sum(row.current_amount or 0 for row in rows),
            average_progress=round(sum(row.progress for row in rows) / len(rows)) if rows else 0,
        )
