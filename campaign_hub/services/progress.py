"""
Progress counters: view count and the variant's progress value
"""
from decimal import Decimal, InvalidOperation
from typing import Optional, Union
from sqlalchemy import update
from sqlalchemy.orm import Session
import structlog

from campaign_hub.core.auth import ensure_owner
from campaign_hub.core.errors import NotFoundError, ValidationError
from campaign_hub.middleware.metrics import campaign_views_total
from campaign_hub.models.campaign import (
    AMOUNT_DECIMAL_PLACES,
    AMOUNT_MAX_DIGITS,
    MAX_BLOOD_UNITS,
    Campaign,
    CampaignType,
    utcnow,
)
from campaign_hub.services.base import guarded, require_campaign
from campaign_hub.services.campaign import to_campaign_response

logger = structlog.get_logger(__name__)

AMOUNT_LIMIT = Decimal(10) ** (AMOUNT_MAX_DIGITS - AMOUNT_DECIMAL_PLACES)
AMOUNT_STEP = Decimal(1).scaleb(-AMOUNT_DECIMAL_PLACES)


def _increment_where(db: Session, condition) -> Optional[int]:
    """Single atomic UPDATE ... RETURNING; no read-modify-write in Python"""
    stmt = (
        update(Campaign)
        .where(condition)
        .values(view_count=Campaign.view_count + 1)
        .returning(Campaign.view_count)
        .execution_options(synchronize_session=False)
    )
    return db.execute(stmt).scalar_one_or_none()


def _coerce_progress_value(value: Union[int, float, Decimal, str, None]) -> Decimal:
    if value is None or isinstance(value, bool):
        raise ValidationError("Progress value is required")
    try:
        number = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError("Progress value must be a number")
    if not number.is_finite():
        raise ValidationError("Progress value must be a number")
    if number < 0:
        raise ValidationError("Progress value cannot be negative")
    if number >= AMOUNT_LIMIT:
        raise ValidationError("Progress value is too large")
    if number != number.quantize(AMOUNT_STEP):
        raise ValidationError(f"Progress value cannot have more than {AMOUNT_DECIMAL_PLACES} decimal places")
    return number


class ProgressService:
    """Mutations of the two counters that change outside structural edits"""

    @staticmethod
    async def increment_view(db: Session, id_or_slug: str) -> int:
        """Count one view and return the new total"""
        def db_increment():
            view_count = _increment_where(db, Campaign.id == id_or_slug)
            if view_count is None:
                view_count = _increment_where(db, Campaign.slug == id_or_slug)
            db.commit()
            return view_count

        view_count = await guarded(db, "increment view count", db_increment, campaign_id=id_or_slug)

        if view_count is None:
            logger.warning("Campaign not found for view tracking", campaign_id=id_or_slug)
            raise NotFoundError("Campaign not found")

        campaign_views_total.inc()
        logger.debug("Campaign view recorded", campaign_id=id_or_slug, view_count=view_count)
        return view_count

    @staticmethod
    async def set_progress(
        db: Session,
        id_or_slug: str,
        owner_id: str,
        value: Union[int, float, Decimal, str, None],
    ):
        """
        Set funds raised (fundraising) or blood units collected (blood
        donation). Values above the target are accepted. No edit-history
        entry is written, but ``updated_at`` moves.
        """
        number = _coerce_progress_value(value)
        campaign = await require_campaign(db, id_or_slug)
        ensure_owner(campaign, owner_id)

        if campaign.type == CampaignType.BLOOD_DONATION and number != number.to_integral_value():
            raise ValidationError("Blood units must be a whole number")
        if campaign.type == CampaignType.BLOOD_DONATION and number > MAX_BLOOD_UNITS:
            raise ValidationError("Blood units value is too large")

        def db_update():
            if campaign.type == CampaignType.FUNDRAISING:
                campaign.current_amount = number
            else:
                campaign.current_blood_units = int(number)
            campaign.updated_at = utcnow()
            db.commit()
            db.refresh(campaign)
            return campaign

        campaign = await guarded(db, "update campaign progress", db_update, campaign_id=campaign.id)

        logger.info(
            "Campaign progress updated",
            campaign_id=campaign.id,
            type=campaign.type.value,
            value=str(number)
        )
        return to_campaign_response(campaign)
