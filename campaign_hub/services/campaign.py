from decimal import Decimal
from typing import Any, Dict, List, Optional, Union
import json

from pydantic import TypeAdapter, ValidationError as PydanticValidationError
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
import structlog

from campaign_hub.core.auth import ensure_owner
from campaign_hub.core.config import get_settings
from campaign_hub.core.errors import InternalError, ValidationError
from campaign_hub.middleware.metrics import campaign_edits_total
from campaign_hub.models.campaign import (
    Campaign,
    CampaignType,
    PaymentDetails,
    UrgencyLevel,
    utcnow,
)
from campaign_hub.schemas.campaign import (
    BankAccount,
    BloodDonationCampaignResponse,
    CampaignCreatedResponse,
    CampaignSummary,
    CreateBloodDonationRequest,
    CreateCampaignRequest,
    CreateFundraisingRequest,
    FundraisingCampaignResponse,
    HospitalInfo,
    HospitalSummary,
    PaymentDetailsSchema,
    UpdateCampaignRequest,
    VisibilityResponse,
)
from campaign_hub.services.base import guarded, require_campaign
from campaign_hub.services.edit_history import (
    PAYMENT_FIELDS,
    EditHistoryRecorder,
    editable_snapshot,
)
from campaign_hub.services.slug import unique_slug
from campaign_hub.services.stats import campaign_progress

logger = structlog.get_logger(__name__)
settings = get_settings()

SORT_NEWEST = "newest"
SORT_MOST_VISITED = "most_visited"

FUNDRAISING_ONLY_KEYS = {"target_amount", "payment_details"}
BLOOD_DONATION_ONLY_KEYS = {"hospital_info", "blood_type", "urgency_level", "target_blood_units"}
NON_NULLABLE_KEYS = {"title", "description", "target_amount", "hospital_info", "urgency_level"}

_create_adapter = TypeAdapter(CreateCampaignRequest)

CreateData = Union[CreateFundraisingRequest, CreateBloodDonationRequest]


def _validation_details(error: PydanticValidationError) -> List[Dict[str, Any]]:
    return json.loads(error.json(include_url=False))


def parse_create_request(campaign_data: Union[CreateData, Dict[str, Any]]) -> CreateData:
    """Validate raw create input into the variant request it describes"""
    if isinstance(campaign_data, (CreateFundraisingRequest, CreateBloodDonationRequest)):
        return campaign_data
    try:
        return _create_adapter.validate_python(campaign_data)
    except PydanticValidationError as e:
        raise ValidationError(
            "Missing or invalid campaign fields: title, description, type and the variant's required fields",
            details=_validation_details(e),
        )


def parse_update_request(patch: Union[UpdateCampaignRequest, Dict[str, Any]]) -> Dict[str, Any]:
    """Return only the fields the caller actually sent"""
    if not isinstance(patch, UpdateCampaignRequest):
        try:
            patch = UpdateCampaignRequest.model_validate(patch)
        except PydanticValidationError as e:
            raise ValidationError("Invalid campaign fields", details=_validation_details(e))
    return {key: getattr(patch, key) for key in patch.model_fields_set}


def share_url(slug: str) -> str:
    return f"{settings.frontend_url.rstrip('/')}/campaign/{slug}"


def _payment_details_schema(details: Optional[PaymentDetails]) -> Optional[PaymentDetailsSchema]:
    if details is None:
        return None

    bank_account = None
    if any((details.bank_account_number, details.bank_name, details.account_holder)):
        bank_account = BankAccount(
            account_number=details.bank_account_number,
            bank_name=details.bank_name,
            account_holder=details.account_holder,
        )
    return PaymentDetailsSchema(mobile_banking=details.mobile_banking, bank_account=bank_account)


def to_campaign_response(campaign: Campaign) -> Union[FundraisingCampaignResponse, BloodDonationCampaignResponse]:
    """Full variant-specific view of a campaign"""
    common = dict(
        id=campaign.id,
        slug=campaign.slug,
        user_id=campaign.user_id,
        title=campaign.title,
        description=campaign.description,
        main_image=campaign.main_image_url,
        additional_images=list(campaign.additional_images or []),
        is_hidden=campaign.is_hidden,
        view_count=campaign.view_count,
        created_at=campaign.created_at,
        updated_at=campaign.updated_at,
        progress=campaign_progress(campaign),
    )

    if campaign.type == CampaignType.FUNDRAISING:
        return FundraisingCampaignResponse(
            **common,
            target_amount=float(campaign.target_amount or 0),
            current_amount=float(campaign.current_amount or 0),
            payment_details=_payment_details_schema(campaign.payment_details),
        )

    return BloodDonationCampaignResponse(
        **common,
        hospital_info=HospitalInfo(
            name=campaign.hospital_name,
            address=campaign.hospital_address,
            contact_number=campaign.hospital_contact,
            email=campaign.hospital_email,
        ),
        blood_type=campaign.blood_type,
        urgency_level=campaign.urgency_level or UrgencyLevel.MEDIUM,
        target_blood_units=campaign.target_blood_units,
        current_blood_units=campaign.current_blood_units or 0,
    )


def to_campaign_summary(campaign: Campaign) -> CampaignSummary:
    """Compact listing view of a campaign"""
    is_fundraising = campaign.type == CampaignType.FUNDRAISING
    return CampaignSummary(
        id=campaign.id,
        slug=campaign.slug,
        title=campaign.title,
        description=campaign.description,
        type=campaign.type,
        main_image=campaign.main_image_url,
        created_at=campaign.created_at,
        is_hidden=campaign.is_hidden,
        view_count=campaign.view_count,
        target_amount=float(campaign.target_amount) if is_fundraising else None,
        current_amount=float(campaign.current_amount or 0) if is_fundraising else None,
        hospital_info=None if is_fundraising else HospitalSummary(
            name=campaign.hospital_name,
            address=campaign.hospital_address,
        ),
        urgency_level=None if is_fundraising else campaign.urgency_level,
        target_blood_units=None if is_fundraising else campaign.target_blood_units,
        current_blood_units=None if is_fundraising else (campaign.current_blood_units or 0),
        progress=campaign_progress(campaign),
    )


def build_campaign(owner_id: str, slug: str, data: CreateData) -> Campaign:
    """New campaign row with counters at zero and the campaign visible"""
    now = utcnow()
    campaign = Campaign(
        slug=slug,
        user_id=owner_id,
        type=CampaignType(data.type),
        title=data.title,
        description=data.description,
        main_image_url=data.main_image,
        additional_images=list(data.additional_images),
        is_hidden=False,
        view_count=0,
        created_at=now,
        updated_at=now,
    )

    if isinstance(data, CreateFundraisingRequest):
        campaign.target_amount = data.target_amount
        campaign.current_amount = Decimal("0")
        if data.payment_details is not None:
            campaign.payment_details = PaymentDetails(**_payment_values(data.payment_details))
    else:
        campaign.hospital_name = data.hospital_info.name
        campaign.hospital_address = data.hospital_info.address
        campaign.hospital_contact = data.hospital_info.contact_number
        campaign.hospital_email = data.hospital_info.email
        campaign.blood_type = data.blood_type
        campaign.urgency_level = data.urgency_level
        campaign.target_blood_units = data.target_blood_units
        campaign.current_blood_units = 0

    return campaign


def _payment_values(details: Optional[PaymentDetailsSchema]) -> Dict[str, Optional[str]]:
    if details is None:
        return {field: None for field in PAYMENT_FIELDS}
    bank = details.bank_account
    return {
        "mobile_banking": details.mobile_banking,
        "bank_account_number": bank.account_number if bank else None,
        "bank_name": bank.bank_name if bank else None,
        "account_holder": bank.account_holder if bank else None,
    }


def apply_patch(snapshot: Dict[str, Any], patch: Dict[str, Any], campaign_type: CampaignType) -> Dict[str, Any]:
    """
    Editable-field values after applying ``patch`` to ``snapshot``.

    Raises ``ValidationError`` for a type change, for fields belonging to the
    other variant, and for clearing a required field.
    """
    requested_type = patch.get("type")
    if requested_type is not None and CampaignType(requested_type) != campaign_type:
        raise ValidationError("Campaign type cannot be changed")

    foreign_keys = BLOOD_DONATION_ONLY_KEYS if campaign_type == CampaignType.FUNDRAISING else FUNDRAISING_ONLY_KEYS
    misplaced = sorted(key for key in foreign_keys if patch.get(key) is not None)
    if misplaced:
        raise ValidationError(
            f"Fields not valid for a {campaign_type.value} campaign",
            details={"fields": misplaced},
        )

    cleared = sorted(key for key in NON_NULLABLE_KEYS if key in patch and patch[key] is None
                     and key not in foreign_keys)
    if cleared:
        raise ValidationError("Required fields cannot be cleared", details={"fields": cleared})

    new = dict(snapshot)
    if "title" in patch:
        new["title"] = patch["title"]
    if "description" in patch:
        new["description"] = patch["description"]
    if "main_image" in patch:
        new["main_image_url"] = patch["main_image"]
    if "additional_images" in patch:
        new["additional_images"] = list(patch["additional_images"] or [])

    if campaign_type == CampaignType.FUNDRAISING:
        if "target_amount" in patch:
            new["target_amount"] = patch["target_amount"]
        if "payment_details" in patch:
            new.update(_payment_values(patch["payment_details"]))
    else:
        if "hospital_info" in patch:
            hospital = patch["hospital_info"]
            new["hospital_name"] = hospital.name
            new["hospital_address"] = hospital.address
            new["hospital_contact"] = hospital.contact_number
            new["hospital_email"] = hospital.email
        if "blood_type" in patch:
            new["blood_type"] = patch["blood_type"]
        if "urgency_level" in patch:
            new["urgency_level"] = UrgencyLevel(patch["urgency_level"])
        if "target_blood_units" in patch:
            new["target_blood_units"] = patch["target_blood_units"]

    return new


def write_fields(campaign: Campaign, values: Dict[str, Any], fields) -> None:
    for field in fields:
        if field in PAYMENT_FIELDS:
            if campaign.payment_details is None:
                campaign.payment_details = PaymentDetails()
            setattr(campaign.payment_details, field, values[field])
        else:
            setattr(campaign, field, values[field])


class CampaignService:
    """Business logic for campaign operations"""

    @staticmethod
    async def create_campaign(
        db: Session,
        owner_id: str,
        campaign_data: Union[CreateData, Dict[str, Any]],
    ) -> CampaignCreatedResponse:
        """
        Create a campaign under a unique slug derived from its title.

        The slug is picked by probing for free candidates; if the insert
        still loses a race on the unique index, the next candidate is tried.
        """
        data = parse_create_request(campaign_data)
        taken = set()

        def slug_in_use(candidate: str) -> bool:
            if candidate in taken:
                return True
            return db.query(Campaign.id).filter(Campaign.slug == candidate).first() is not None

        def db_create():
            slug = unique_slug(data.title, slug_in_use)
            db_campaign = build_campaign(owner_id, slug, data)
            db.add(db_campaign)
            try:
                db.commit()
            except IntegrityError:
                db.rollback()
                taken.add(slug)
                logger.warning("Slug taken by a concurrent insert, retrying", slug=slug)
                return None
            db.refresh(db_campaign)
            return db_campaign

        for _ in range(settings.slug_max_attempts):
            db_campaign = await guarded(db, "create campaign", db_create, owner_id=owner_id, title=data.title)
            if db_campaign is not None:
                break
        else:
            logger.error("Could not assign a unique slug", title=data.title, attempts=settings.slug_max_attempts)
            raise InternalError("Failed to create campaign")

        logger.info(
            "Campaign created successfully",
            campaign_id=db_campaign.id,
            slug=db_campaign.slug,
            type=db_campaign.type.value,
            owner_id=owner_id
        )

        return CampaignCreatedResponse(
            id=db_campaign.id,
            slug=db_campaign.slug,
            share_url=share_url(db_campaign.slug),
            campaign=to_campaign_response(db_campaign),
        )

    @staticmethod
    async def get_campaign(db: Session, id_or_slug: str):
        """Get a campaign by opaque ID or slug"""
        campaign = await require_campaign(db, id_or_slug)
        logger.info("Campaign retrieved successfully", campaign_id=campaign.id)
        return to_campaign_response(campaign)

    @staticmethod
    async def list_public(
        db: Session,
        sort: str = SORT_NEWEST,
        skip: int = 0,
        limit: Optional[int] = None,
    ) -> List[CampaignSummary]:
        """Visible campaigns, newest first or by view count (ties newest first)"""
        def db_query():
            query = db.query(Campaign).filter(Campaign.is_hidden.is_(False))
            if sort == SORT_MOST_VISITED:
                query = query.order_by(Campaign.view_count.desc(), Campaign.created_at.desc())
            else:
                query = query.order_by(Campaign.created_at.desc())
            query = query.offset(skip)
            if limit is not None:
                query = query.limit(limit)
            return query.all()

        campaigns = await guarded(db, "list campaigns", db_query)
        logger.info("Campaigns retrieved successfully", count=len(campaigns), sort=sort)
        return [to_campaign_summary(campaign) for campaign in campaigns]

    @staticmethod
    async def count_public(db: Session) -> int:
        """Number of visible campaigns, independent of paging"""
        def db_count():
            return db.query(Campaign).filter(Campaign.is_hidden.is_(False)).count()

        return await guarded(db, "count campaigns", db_count)

    @staticmethod
    async def list_most_visited(db: Session) -> List[CampaignSummary]:
        return await CampaignService.list_public(db, sort=SORT_MOST_VISITED, limit=settings.most_visited_limit)

    @staticmethod
    async def list_by_owner(db: Session, owner_id: str) -> List[CampaignSummary]:
        """All of an owner's campaigns, hidden ones included, newest first"""
        def db_query():
            return (
                db.query(Campaign)
                .filter(Campaign.user_id == owner_id)
                .order_by(Campaign.created_at.desc())
                .all()
            )

        campaigns = await guarded(db, "list owner campaigns", db_query, owner_id=owner_id)
        return [to_campaign_summary(campaign) for campaign in campaigns]

    @staticmethod
    async def update_campaign(
        db: Session,
        id_or_slug: str,
        owner_id: str,
        patch: Union[UpdateCampaignRequest, Dict[str, Any]],
    ):
        """
        Apply an owner's edit and audit it.

        A patch that changes nothing returns the campaign untouched: no
        history entry and no ``updated_at`` bump. The audit entry is written
        after the field update commits; if that second write fails the edit
        stands and the failure is logged.
        """
        values = parse_update_request(patch)
        campaign = await require_campaign(db, id_or_slug)
        ensure_owner(campaign, owner_id)

        old = editable_snapshot(campaign)
        new = apply_patch(old, values, campaign.type)
        entry = EditHistoryRecorder.record_edit(campaign.id, campaign.type, owner_id, old, new)

        if entry is None:
            logger.info("Campaign edit produced no changes", campaign_id=campaign.id)
            return to_campaign_response(campaign)

        changed_fields = [change["field"] for change in entry.changes]

        def db_update():
            write_fields(campaign, new, changed_fields)
            campaign.updated_at = utcnow()
            db.commit()
            db.refresh(campaign)
            return campaign

        campaign = await guarded(db, "update campaign", db_update, campaign_id=campaign.id)

        def db_record():
            db.add(entry)
            db.commit()
            return entry

        try:
            await guarded(db, "record edit history", db_record, table="campaign_edit_history", campaign_id=campaign.id)
        except InternalError:
            logger.error("Campaign edit applied without an audit entry", campaign_id=campaign.id, fields=changed_fields)

        campaign_edits_total.inc()
        logger.info("Campaign updated successfully", campaign_id=campaign.id, fields=changed_fields)
        return to_campaign_response(campaign)

    @staticmethod
    async def delete_campaign(db: Session, id_or_slug: str, owner_id: str) -> bool:
        """Delete a campaign with its payment details, updates and edit history"""
        campaign = await require_campaign(db, id_or_slug)
        ensure_owner(campaign, owner_id)

        def db_delete():
            db.delete(campaign)
            db.commit()
            return True

        await guarded(db, "delete campaign", db_delete, campaign_id=campaign.id)
        logger.info("Campaign deleted successfully", campaign_id=campaign.id, slug=campaign.slug)
        return True

    @staticmethod
    async def set_visibility(db: Session, id_or_slug: str, owner_id: str, hidden: bool) -> VisibilityResponse:
        campaign = await require_campaign(db, id_or_slug)
        ensure_owner(campaign, owner_id)

        def db_update():
            campaign.is_hidden = hidden
            campaign.updated_at = utcnow()
            db.commit()
            db.refresh(campaign)
            return campaign

        campaign = await guarded(db, "update campaign visibility", db_update, campaign_id=campaign.id)
        logger.info("Campaign visibility changed", campaign_id=campaign.id, is_hidden=hidden)

        return VisibilityResponse(
            id=campaign.id,
            slug=campaign.slug,
            title=campaign.title,
            is_hidden=campaign.is_hidden,
            updated_at=campaign.updated_at,
        )
