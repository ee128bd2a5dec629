from typing import Any, Dict, List, Union
import json

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session
import structlog

from campaign_hub.core.auth import ensure_owner
from campaign_hub.core.errors import ValidationError
from campaign_hub.models.campaign import CampaignUpdate, utcnow
from campaign_hub.schemas.update import CampaignUpdateResponse, CreateCampaignUpdateRequest
from campaign_hub.services.base import guarded, require_campaign

logger = structlog.get_logger(__name__)


class CampaignUpdateService:
    """Append-only feed of owner posts attached to a campaign"""

    @staticmethod
    async def create_update(
        db: Session,
        id_or_slug: str,
        owner_id: str,
        update_data: Union[CreateCampaignUpdateRequest, Dict[str, Any]],
    ) -> CampaignUpdateResponse:
        if not isinstance(update_data, CreateCampaignUpdateRequest):
            try:
                update_data = CreateCampaignUpdateRequest.model_validate(update_data)
            except PydanticValidationError as e:
                raise ValidationError(
                    "Missing or invalid update fields: title, description, type",
                    details=json.loads(e.json(include_url=False)),
                )

        campaign = await require_campaign(db, id_or_slug)
        ensure_owner(campaign, owner_id)

        def db_create():
            now = utcnow()
            db_update = CampaignUpdate(
                campaign_id=campaign.id,
                title=update_data.title,
                description=update_data.description,
                type=update_data.type,
                image_url=update_data.image_url,
                created_at=now,
                updated_at=now,
            )
            db.add(db_update)
            db.commit()
            db.refresh(db_update)
            return db_update

        db_update = await guarded(db, "create campaign update", db_create, table="campaign_updates", campaign_id=campaign.id)
        logger.info("Campaign update posted", campaign_id=campaign.id, update_id=db_update.id, type=db_update.type.value)
        return CampaignUpdateResponse.model_validate(db_update)

    @staticmethod
    async def list_updates(db: Session, id_or_slug: str) -> List[CampaignUpdateResponse]:
        """Updates for a campaign, newest first; readable by anyone"""
        campaign = await require_campaign(db, id_or_slug)

        def db_query():
            return (
                db.query(CampaignUpdate)
                .filter(CampaignUpdate.campaign_id == campaign.id)
                .order_by(CampaignUpdate.created_at.desc())
                .all()
            )

        updates = await guarded(db, "list campaign updates", db_query, table="campaign_updates", campaign_id=campaign.id)
        return [CampaignUpdateResponse.model_validate(item) for item in updates]
