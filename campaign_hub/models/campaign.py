from sqlalchemy import (
    Column, Integer, String, Text, DateTime, Boolean, Numeric, JSON, ForeignKey,
    Enum as SQLEnum,
)
from sqlalchemy.orm import declarative_base, relationship
from datetime import datetime, timezone
import enum
import uuid

Base = declarative_base()


# Largest values the amount and unit columns can hold
AMOUNT_MAX_DIGITS = 14
AMOUNT_DECIMAL_PLACES = 2
MAX_BLOOD_UNITS = 2**31 - 1


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return uuid.uuid4().hex


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


class CampaignType(str, enum.Enum):
    """Campaign variant tag"""
    FUNDRAISING = "fundraising"
    BLOOD_DONATION = "blood-donation"


class UrgencyLevel(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class UpdateType(str, enum.Enum):
    """Tag on a campaign update post"""
    PROGRESS = "progress"
    MILESTONE = "milestone"
    GENERAL = "general"


class Campaign(Base):
    """
    Campaign record. One table holds both variants; ``type`` is the
    discriminant and only that variant's columns are populated.
    """
    __tablename__ = "campaigns"

    id = Column(String(32), primary_key=True, default=new_id)
    slug = Column(String(64), nullable=False, unique=True, index=True)
    user_id = Column(String, nullable=False, index=True)
    type = Column(
        SQLEnum(CampaignType, values_callable=_enum_values, native_enum=False, length=20),
        nullable=False,
        index=True,
    )
    title = Column(String, nullable=False)
    description = Column(Text, nullable=False)
    main_image_url = Column(String, nullable=True)
    additional_images = Column(JSON, nullable=False, default=list)
    is_hidden = Column(Boolean, nullable=False, default=False)
    view_count = Column(Integer, nullable=False, default=0, index=True)

    # Fundraising
    target_amount = Column(Numeric(AMOUNT_MAX_DIGITS, AMOUNT_DECIMAL_PLACES), nullable=True)
    current_amount = Column(Numeric(AMOUNT_MAX_DIGITS, AMOUNT_DECIMAL_PLACES), nullable=True)

    # Blood donation
    hospital_name = Column(String, nullable=True)
    hospital_address = Column(String, nullable=True)
    hospital_contact = Column(String, nullable=True)
    hospital_email = Column(String, nullable=True)
    blood_type = Column(String(8), nullable=True)
    urgency_level = Column(
        SQLEnum(UrgencyLevel, values_callable=_enum_values, native_enum=False, length=10),
        nullable=True,
    )
    target_blood_units = Column(Integer, nullable=True)
    current_blood_units = Column(Integer, nullable=True)

    # Timestamps are stamped by the service layer; view increments must not touch updated_at
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    payment_details = relationship(
        "PaymentDetails",
        uselist=False,
        back_populates="campaign",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    updates = relationship(
        "CampaignUpdate",
        back_populates="campaign",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    edit_history = relationship(
        "CampaignEditHistory",
        back_populates="campaign",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    @property
    def is_fundraising(self) -> bool:
        return self.type == CampaignType.FUNDRAISING

    def __repr__(self):
        return f"<Campaign(id={self.id}, slug='{self.slug}', type='{self.type.value}')>"


class PaymentDetails(Base):
    """Informational payment instructions shown on a fundraising campaign"""
    __tablename__ = "payment_details"

    id = Column(String(32), primary_key=True, default=new_id)
    campaign_id = Column(
        String(32), ForeignKey("campaigns.id", ondelete="CASCADE"),
        nullable=False, unique=True, index=True,
    )
    mobile_banking = Column(String, nullable=True)
    bank_account_number = Column(String, nullable=True)
    bank_name = Column(String, nullable=True)
    account_holder = Column(String, nullable=True)

    campaign = relationship("Campaign", back_populates="payment_details")

    def __repr__(self):
        return f"<PaymentDetails(campaign_id={self.campaign_id})>"


class CampaignEditHistory(Base):
    """Append-only audit record of one structural edit"""
    __tablename__ = "campaign_edit_history"

    id = Column(String(32), primary_key=True, default=new_id)
    campaign_id = Column(
        String(32), ForeignKey("campaigns.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    editor_id = Column(String, nullable=False)
    # [{"field": ..., "old_value": ..., "new_value": ...}, ...]
    changes = Column(JSON, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, index=True)

    campaign = relationship("Campaign", back_populates="edit_history")

    def __repr__(self):
        return f"<CampaignEditHistory(id={self.id}, campaign_id={self.campaign_id}, changes={len(self.changes or [])})>"


class CampaignUpdate(Base):
    """Post authored by the campaign owner to keep supporters informed"""
    __tablename__ = "campaign_updates"

    id = Column(String(32), primary_key=True, default=new_id)
    campaign_id = Column(
        String(32), ForeignKey("campaigns.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    title = Column(String, nullable=False)
    description = Column(Text, nullable=False)
    type = Column(
        SQLEnum(UpdateType, values_callable=_enum_values, native_enum=False, length=20),
        nullable=False,
        default=UpdateType.GENERAL,
    )
    image_url = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    campaign = relationship("Campaign", back_populates="updates")

    def __repr__(self):
        return f"<CampaignUpdate(id={self.id}, campaign_id={self.campaign_id}, type='{self.type.value}')>"
