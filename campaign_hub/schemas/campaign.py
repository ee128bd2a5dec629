from pydantic import BaseModel, Field, ConfigDict
from datetime import datetime
from decimal import Decimal
from typing import Annotated, List, Literal, Optional, Union

from campaign_hub.models.campaign import (
    AMOUNT_DECIMAL_PLACES,
    AMOUNT_MAX_DIGITS,
    MAX_BLOOD_UNITS,
    CampaignType,
    UrgencyLevel,
)


class BankAccount(BaseModel):
    """Freeform bank account details shown to supporters"""
    account_number: Optional[str] = None
    bank_name: Optional[str] = None
    account_holder: Optional[str] = None


class PaymentDetailsSchema(BaseModel):
    """Informational payment instructions; no money moves through this service"""
    mobile_banking: Optional[str] = None
    bank_account: Optional[BankAccount] = None


class HospitalInfo(BaseModel):
    name: str = Field(..., min_length=1, description="Hospital name")
    address: str = Field(..., min_length=1, description="Hospital address")
    contact_number: Optional[str] = None
    email: Optional[str] = None


class CampaignBaseRequest(BaseModel):
    title: str = Field(..., min_length=1, description="Campaign title is required")
    description: str = Field(..., min_length=1, description="Campaign description is required")
    main_image: Optional[str] = Field(None, description="URL of the main image")
    additional_images: List[str] = Field(default_factory=list, description="URLs of extra images")


class CreateFundraisingRequest(CampaignBaseRequest):
    """Request schema for creating a fundraising campaign"""
    type: Literal["fundraising"]
    target_amount: Decimal = Field(
        ..., gt=0, max_digits=AMOUNT_MAX_DIGITS, decimal_places=AMOUNT_DECIMAL_PLACES, description="Fundraising goal"
    )
    payment_details: Optional[PaymentDetailsSchema] = None

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "type": "fundraising",
                "title": "Save the Park",
                "description": "Help us restore the neighbourhood park",
                "target_amount": 1000,
                "main_image": "https://images.example.com/park.jpg",
                "additional_images": [],
                "payment_details": {
                    "mobile_banking": "01700000000",
                    "bank_account": {
                        "account_number": "123456789",
                        "bank_name": "City Bank",
                        "account_holder": "Park Friends"
                    }
                }
            }
        }
    )


class CreateBloodDonationRequest(CampaignBaseRequest):
    """Request schema for creating a blood-donation drive"""
    type: Literal["blood-donation"]
    hospital_info: HospitalInfo
    blood_type: Optional[str] = Field(None, max_length=8, description="e.g. O+, AB-")
    urgency_level: UrgencyLevel = UrgencyLevel.MEDIUM
    target_blood_units: Optional[int] = Field(None, gt=0, le=MAX_BLOOD_UNITS, description="Units needed")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "type": "blood-donation",
                "title": "O+ donors needed",
                "description": "Urgent surgery scheduled for Friday",
                "hospital_info": {"name": "General Hospital", "address": "12 Main St"},
                "blood_type": "O+",
                "urgency_level": "high",
                "target_blood_units": 4
            }
        }
    )


CreateCampaignRequest = Annotated[
    Union[CreateFundraisingRequest, CreateBloodDonationRequest],
    Field(discriminator="type"),
]


class UpdateCampaignRequest(BaseModel):
    """
    Partial edit of a campaign. Only the fields that are sent are compared
    and applied; ``type`` may be sent but must match the stored variant.
    Progress counters and the slug are not editable here.
    """
    type: Optional[CampaignType] = None
    title: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = Field(None, min_length=1)
    main_image: Optional[str] = None
    additional_images: Optional[List[str]] = None

    # Fundraising
    target_amount: Optional[Decimal] = Field(
        None, gt=0, max_digits=AMOUNT_MAX_DIGITS, decimal_places=AMOUNT_DECIMAL_PLACES
    )
    payment_details: Optional[PaymentDetailsSchema] = None

    # Blood donation
    hospital_info: Optional[HospitalInfo] = None
    blood_type: Optional[str] = Field(None, max_length=8)
    urgency_level: Optional[UrgencyLevel] = None
    target_blood_units: Optional[int] = Field(None, gt=0, le=MAX_BLOOD_UNITS)

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "title": "Save the Park 2025",
                "target_amount": 1500
            }
        }
    )


class ProgressUpdateRequest(BaseModel):
    """New value for the campaign's progress counter (amount raised or blood units)"""
    value: Decimal = Field(
        ...,
        max_digits=AMOUNT_MAX_DIGITS,
        decimal_places=AMOUNT_DECIMAL_PLACES,
        description="Funds raised or blood units collected so far",
    )


class VisibilityRequest(BaseModel):
    is_hidden: bool


class CampaignProgress(BaseModel):
    """Derived progress values; recomputed on every read"""
    percentage: float
    remaining: float
    completed: bool


class HospitalSummary(BaseModel):
    name: Optional[str] = None
    address: Optional[str] = None


class CampaignSummary(BaseModel):
    """Compact campaign shape used by listings"""
    id: str
    slug: str
    title: str
    description: str
    type: CampaignType
    main_image: Optional[str] = None
    created_at: datetime
    is_hidden: bool
    view_count: int
    target_amount: Optional[float] = None
    current_amount: Optional[float] = None
    hospital_info: Optional[HospitalSummary] = None
    urgency_level: Optional[UrgencyLevel] = None
    target_blood_units: Optional[int] = None
    current_blood_units: Optional[int] = None
    progress: Optional[CampaignProgress] = None


class CampaignDetailBase(BaseModel):
    id: str
    slug: str
    user_id: str
    title: str
    description: str
    main_image: Optional[str] = None
    additional_images: List[str] = Field(default_factory=list)
    is_hidden: bool
    view_count: int
    created_at: datetime
    updated_at: datetime
    progress: Optional[CampaignProgress] = None


class FundraisingCampaignResponse(CampaignDetailBase):
    type: Literal["fundraising"] = "fundraising"
    target_amount: float
    current_amount: float
    payment_details: Optional[PaymentDetailsSchema] = None


class BloodDonationCampaignResponse(CampaignDetailBase):
    type: Literal["blood-donation"] = "blood-donation"
    hospital_info: HospitalInfo
    blood_type: Optional[str] = None
    urgency_level: UrgencyLevel
    target_blood_units: Optional[int] = None
    current_blood_units: int


CampaignResponse = Annotated[
    Union[FundraisingCampaignResponse, BloodDonationCampaignResponse],
    Field(discriminator="type"),
]


class CampaignCreatedResponse(BaseModel):
    id: str
    slug: str
    share_url: str
    campaign: CampaignResponse


class ViewCountResponse(BaseModel):
    success: bool = True
    view_count: int


class VisibilityResponse(BaseModel):
    id: str
    slug: str
    title: str
    is_hidden: bool
    updated_at: datetime


class DeleteResponse(BaseModel):
    success: bool = True


class CampaignListResponse(BaseModel):
    campaigns: List[CampaignSummary]
    total: int
