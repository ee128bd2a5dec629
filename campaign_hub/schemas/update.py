from pydantic import BaseModel, Field, ConfigDict
from datetime import datetime
from typing import Optional

from campaign_hub.models.campaign import UpdateType


class CreateCampaignUpdateRequest(BaseModel):
    """Request schema for posting an update on a campaign"""
    title: str = Field(..., min_length=1, description="Update title")
    description: str = Field(..., min_length=1, description="Update body")
    type: UpdateType = Field(..., description="progress, milestone or general")
    image_url: Optional[str] = Field(None, description="Optional image URL")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "title": "Halfway there!",
                "description": "We have raised 500 of our 1000 goal.",
                "type": "milestone"
            }
        }
    )


class CampaignUpdateResponse(BaseModel):
    id: str
    campaign_id: str
    title: str
    description: str
    type: UpdateType
    image_url: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)
