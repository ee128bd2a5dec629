"""
Edit history: field-level audit trail of structural campaign edits

Progress updates and view counts never pass through here; only the
editable fields below are compared.
"""
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple
from sqlalchemy.orm import Session
import structlog

from campaign_hub.models.campaign import Campaign, CampaignEditHistory, CampaignType, utcnow
from campaign_hub.schemas.edit_history import EditHistoryEntryResponse, EditorInfo, FieldChange
from campaign_hub.services.base import guarded, require_campaign
from campaign_hub.services.users import UserDirectory

logger = structlog.get_logger(__name__)

COMMON_EDITABLE_FIELDS = ("title", "description", "main_image_url", "additional_images")

PAYMENT_FIELDS = ("mobile_banking", "bank_account_number", "bank_name", "account_holder")

FUNDRAISING_EDITABLE_FIELDS = ("target_amount",) + PAYMENT_FIELDS

BLOOD_DONATION_EDITABLE_FIELDS = (
    "hospital_name",
    "hospital_address",
    "hospital_contact",
    "hospital_email",
    "blood_type",
    "urgency_level",
    "target_blood_units",
)


def editable_fields(campaign_type: CampaignType) -> Tuple[str, ...]:
    if campaign_type == CampaignType.FUNDRAISING:
        return COMMON_EDITABLE_FIELDS + FUNDRAISING_EDITABLE_FIELDS
    return COMMON_EDITABLE_FIELDS + BLOOD_DONATION_EDITABLE_FIELDS


def editable_snapshot(campaign: Campaign) -> Dict[str, Any]:
    """Current values of every editable field of the campaign's variant"""
    snapshot = {}
    for field in editable_fields(campaign.type):
        if field in PAYMENT_FIELDS:
            details = campaign.payment_details
            snapshot[field] = getattr(details, field) if details is not None else None
        elif field == "additional_images":
            snapshot[field] = list(campaign.additional_images or [])
        else:
            snapshot[field] = getattr(campaign, field)
    return snapshot


def to_audit_value(value: Any) -> Any:
    """Normalize a field value for comparison and JSON storage"""
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (list, tuple)):
        return [to_audit_value(item) for item in value]
    return value


def diff_snapshots(old: Dict[str, Any], new: Dict[str, Any], fields: Tuple[str, ...]) -> List[Dict[str, Any]]:
    """Ordered ``{field, old_value, new_value}`` records for every field that differs"""
    changes = []
    for field in fields:
        old_value = to_audit_value(old.get(field))
        new_value = to_audit_value(new.get(field))
        if old_value != new_value:
            changes.append({"field": field, "old_value": old_value, "new_value": new_value})
    return changes


class EditHistoryRecorder:
    """Builds and reads edit audit entries"""

    @staticmethod
    def record_edit(
        campaign_id: str,
        campaign_type: CampaignType,
        editor_id: str,
        old: Dict[str, Any],
        new: Dict[str, Any],
    ) -> Optional[CampaignEditHistory]:
        """
        Compute the diff between two snapshots.

        Returns an unsaved entry, or ``None`` when nothing changed; the
        caller decides whether to persist it.
        """
        changes = diff_snapshots(old, new, editable_fields(campaign_type))
        if not changes:
            return None

        return CampaignEditHistory(
            campaign_id=campaign_id,
            editor_id=editor_id,
            changes=changes,
            created_at=utcnow(),
        )

    @staticmethod
    async def list_for_campaign(db: Session, id_or_slug: str) -> List[EditHistoryEntryResponse]:
        """Edit history for a campaign, newest first, with editor names resolved"""
        campaign = await require_campaign(db, id_or_slug)

        def db_query():
            return (
                db.query(CampaignEditHistory)
                .filter(CampaignEditHistory.campaign_id == campaign.id)
                .order_by(CampaignEditHistory.created_at.desc())
                .all()
            )

        entries = await guarded(db, "list edit history", db_query, table="campaign_edit_history", campaign_id=campaign.id)
        names = await UserDirectory.display_names(db, {entry.editor_id for entry in entries})

        logger.info("Edit history retrieved", campaign_id=campaign.id, count=len(entries))

        return [
            EditHistoryEntryResponse(
                id=entry.id,
                campaign_id=entry.campaign_id,
                edited_by=EditorInfo(id=entry.editor_id, name=names[entry.editor_id]),
                edited_at=entry.created_at,
                changes=[FieldChange(**change) for change in entry.changes],
            )
            for entry in entries
        ]
