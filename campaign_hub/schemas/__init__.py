from .campaign import (
    CreateCampaignRequest,
    CreateFundraisingRequest,
    CreateBloodDonationRequest,
    UpdateCampaignRequest,
    ProgressUpdateRequest,
    VisibilityRequest,
    CampaignResponse,
    FundraisingCampaignResponse,
    BloodDonationCampaignResponse,
    CampaignSummary,
    CampaignListResponse,
    CampaignCreatedResponse,
    CampaignProgress,
    ViewCountResponse,
    VisibilityResponse,
    DeleteResponse,
)
from .update import CreateCampaignUpdateRequest, CampaignUpdateResponse
from .edit_history import EditHistoryEntryResponse, FieldChange, EditorInfo
from .stats import PlatformStats, OwnerAnalytics, CampaignAnalytics

__all__ = [
    "CreateCampaignRequest",
    "CreateFundraisingRequest",
    "CreateBloodDonationRequest",
    "UpdateCampaignRequest",
    "ProgressUpdateRequest",
    "VisibilityRequest",
    "CampaignResponse",
    "FundraisingCampaignResponse",
    "BloodDonationCampaignResponse",
    "CampaignSummary",
    "CampaignListResponse",
    "CampaignCreatedResponse",
    "CampaignProgress",
    "ViewCountResponse",
    "VisibilityResponse",
    "DeleteResponse",
    "CreateCampaignUpdateRequest",
    "CampaignUpdateResponse",
    "EditHistoryEntryResponse",
    "FieldChange",
    "EditorInfo",
    "PlatformStats",
    "OwnerAnalytics",
    "CampaignAnalytics",
]
