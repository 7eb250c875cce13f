from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import Boolean, DateTime, Float, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from wemadeit.auth.models import User  # noqa: F401
from wemadeit.core.database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


def ensure_utc(value: datetime | None) -> datetime | None:
    # SQLite hands timestamps back without tzinfo.
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
    )


class CRMOrganization(TimestampMixin, Base):
    __tablename__ = "crm_organization"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    industry: Mapped[str | None] = mapped_column(Text, nullable=True)
    website: Mapped[str | None] = mapped_column(Text, nullable=True)
    email: Mapped[str | None] = mapped_column(Text, nullable=True)
    phone: Mapped[str | None] = mapped_column(Text, nullable=True)
    billing_email: Mapped[str | None] = mapped_column(Text, nullable=True)
    tax_id: Mapped[str | None] = mapped_column(Text, nullable=True)
    address: Mapped[str | None] = mapped_column(Text, nullable=True)
    city: Mapped[str | None] = mapped_column(Text, nullable=True)
    country: Mapped[str | None] = mapped_column(Text, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)


class CRMContact(TimestampMixin, Base):
    __tablename__ = "crm_contact"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_id)
    organization_id: Mapped[str] = mapped_column(String(64), ForeignKey("crm_organization.id"), nullable=False)
    first_name: Mapped[str] = mapped_column(Text, nullable=False, default="")
    last_name: Mapped[str] = mapped_column(Text, nullable=False, default="")
    job_title: Mapped[str | None] = mapped_column(Text, nullable=True)
    email: Mapped[str | None] = mapped_column(Text, nullable=True)
    phone: Mapped[str | None] = mapped_column(Text, nullable=True)
    mobile: Mapped[str | None] = mapped_column(Text, nullable=True)
    linkedin_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    primary_contact: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="0")

    __table_args__ = (Index("ix_crm_contact_organization_id", "organization_id"),)


class CRMPipeline(TimestampMixin, Base):
    __tablename__ = "crm_pipeline"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_default: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="0")

    stages: Mapped[list[CRMPipelineStage]] = relationship(
        "CRMPipelineStage",
        order_by="CRMPipelineStage.position",
        viewonly=True,
    )


class CRMPipelineStage(TimestampMixin, Base):
    __tablename__ = "crm_pipeline_stage"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_id)
    pipeline_id: Mapped[str] = mapped_column(String(64), ForeignKey("crm_pipeline.id"), nullable=False)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    color: Mapped[str | None] = mapped_column(String(32), nullable=True)
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    probability: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)

    __table_args__ = (UniqueConstraint("pipeline_id", "position", name="uq_crm_pipeline_stage_position"),)


class CRMDeal(TimestampMixin, Base):
    __tablename__ = "crm_deal"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_id)
    organization_id: Mapped[str] = mapped_column(String(64), ForeignKey("crm_organization.id"), nullable=False)
    contact_id: Mapped[str] = mapped_column(String(64), ForeignKey("crm_contact.id"), nullable=False)
    pipeline_stage_id: Mapped[str | None] = mapped_column(
        String(64),
        ForeignKey("crm_pipeline_stage.id"),
        nullable=True,
    )
    title: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    domain: Mapped[str | None] = mapped_column(Text, nullable=True)
    domain_acquired_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    domain_expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    domain_cost: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    deposit: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    costs: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    taxes: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    net_total: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    share_gil: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    share_ric: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    work_type: Mapped[str | None] = mapped_column(String(64), nullable=True)
    work_closed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    value: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    currency: Mapped[str] = mapped_column(String(8), nullable=False, default="EUR")
    expected_close_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="open")
    probability: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    source: Mapped[str | None] = mapped_column(Text, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    lost_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        Index("ix_crm_deal_organization_id", "organization_id"),
        Index("ix_crm_deal_contact_id", "contact_id"),
        Index("ix_crm_deal_pipeline_stage_id", "pipeline_stage_id"),
    )


class CRMPayment(TimestampMixin, Base):
    __tablename__ = "crm_payment"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_id)
    deal_id: Mapped[str] = mapped_column(String(64), ForeignKey("crm_deal.id"), nullable=False, index=True)
    title: Mapped[str | None] = mapped_column(Text, nullable=True)
    amount: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    currency: Mapped[str] = mapped_column(String(8), nullable=False, default="EUR")
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="paid")
    due_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    paid_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    method: Mapped[str | None] = mapped_column(String(64), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    gil_amount: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    ric_amount: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)


class CRMProject(TimestampMixin, Base):
    __tablename__ = "crm_project"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_id)
    deal_id: Mapped[str] = mapped_column(String(64), ForeignKey("crm_deal.id"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    code: Mapped[str | None] = mapped_column(String(64), nullable=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="active")
    start_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    target_end_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    actual_end_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    budget: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    currency: Mapped[str] = mapped_column(String(8), nullable=False, default="EUR")


class CRMTask(TimestampMixin, Base):
    __tablename__ = "crm_task"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_id)
    project_id: Mapped[str] = mapped_column(String(64), ForeignKey("crm_project.id"), nullable=False, index=True)
    owner_user_id: Mapped[str | None] = mapped_column(String(64), ForeignKey("auth_user.id"), nullable=True)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="todo")
    priority: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    due_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    estimated_hours: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    actual_hours: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)


class CRMQuotation(TimestampMixin, Base):
    __tablename__ = "crm_quotation"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_id)
    deal_id: Mapped[str] = mapped_column(String(64), ForeignKey("crm_deal.id"), nullable=False, index=True)
    created_by_user_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    number: Mapped[str] = mapped_column(String(32), nullable=False)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    introduction: Mapped[str | None] = mapped_column(Text, nullable=True)
    terms: Mapped[str | None] = mapped_column(Text, nullable=True)
    currency: Mapped[str] = mapped_column(String(8), nullable=False, default="EUR")
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="draft")
    subtotal: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    tax_rate: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    tax_amount: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    discount_amount: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    total: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    valid_until: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    public_token: Mapped[str | None] = mapped_column(String(64), nullable=True)

    __table_args__ = (UniqueConstraint("number", name="uq_crm_quotation_number"),)


class CRMQuotationItem(TimestampMixin, Base):
    __tablename__ = "crm_quotation_item"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_id)
    quotation_id: Mapped[str] = mapped_column(String(64), ForeignKey("crm_quotation.id"), nullable=False)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    quantity: Mapped[float] = mapped_column(Float, nullable=False, default=1.0)
    unit_price: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    unit_type: Mapped[str | None] = mapped_column(String(32), nullable=True)
    line_total: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    __table_args__ = (Index("ix_crm_quotation_item_quotation_position", "quotation_id", "position"),)


class CRMInteraction(TimestampMixin, Base):
    __tablename__ = "crm_interaction"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_id)
    user_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    organization_id: Mapped[str | None] = mapped_column(String(64), ForeignKey("crm_organization.id"), nullable=True)
    contact_id: Mapped[str | None] = mapped_column(String(64), ForeignKey("crm_contact.id"), nullable=True)
    deal_id: Mapped[str | None] = mapped_column(String(64), ForeignKey("crm_deal.id"), nullable=True)
    interaction_type: Mapped[str] = mapped_column(String(16), nullable=False, default="note")
    subject: Mapped[str | None] = mapped_column(Text, nullable=True)
    body: Mapped[str | None] = mapped_column(Text, nullable=True)
    occurred_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    duration_minutes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    transcript: Mapped[str | None] = mapped_column(Text, nullable=True)
    cleaned_transcript: Mapped[str | None] = mapped_column(Text, nullable=True)
    follow_up_completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="0")
    follow_up_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    follow_up_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    transcription_language: Mapped[str] = mapped_column(String(8), nullable=False, default="it")
    transcription_status: Mapped[str] = mapped_column(String(16), nullable=False, default="pending")

    __table_args__ = (
        Index("ix_crm_interaction_organization_id", "organization_id"),
        Index("ix_crm_interaction_contact_id", "contact_id"),
        Index("ix_crm_interaction_deal_id", "deal_id"),
    )
