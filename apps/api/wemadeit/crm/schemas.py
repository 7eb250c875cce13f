from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any, Literal

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field


DealStatus = Literal["open", "won", "lost"]
PaymentStatus = Literal["planned", "paid", "void"]
ProjectStatus = Literal["active", "completed", "support"]
TaskStatus = Literal["todo", "in_progress", "done", "blocked"]
QuotationStatus = Literal["draft", "sent", "viewed", "accepted", "declined", "expired"]
InteractionType = Literal["call", "email", "meeting", "note"]


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    return value


OptionalRef = Annotated[str | None, BeforeValidator(_blank_to_none)]
OptionalDateTime = Annotated[datetime | None, BeforeValidator(_blank_to_none)]
RequiredRef = Annotated[str, Field(min_length=1)]
RequiredText = Annotated[str, Field(min_length=1)]


class WriteModel(BaseModel):
    """Full-record write payload.

    Writes replace the stored record wholesale; ``id`` and ``created_at`` are
    the only fields taken from the stored record when the caller omits them.
    """

    model_config = ConfigDict(str_strip_whitespace=True, extra="ignore")

    id: OptionalRef = None
    created_at: OptionalDateTime = None


class ReadModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    created_at: datetime
    updated_at: datetime


class OrganizationWrite(WriteModel):
    name: RequiredText
    industry: str | None = None
    website: str | None = None
    email: str | None = None
    phone: str | None = None
    billing_email: str | None = None
    tax_id: str | None = None
    address: str | None = None
    city: str | None = None
    country: str | None = None
    notes: str | None = None


class OrganizationRead(ReadModel):
    name: str
    industry: str | None
    website: str | None
    email: str | None
    phone: str | None
    billing_email: str | None
    tax_id: str | None
    address: str | None
    city: str | None
    country: str | None
    notes: str | None


class ContactWrite(WriteModel):
    organization_id: RequiredRef
    first_name: str = ""
    last_name: str = ""
    job_title: str | None = None
    email: str | None = None
    phone: str | None = None
    mobile: str | None = None
    linkedin_url: str | None = None
    notes: str | None = None
    primary_contact: bool = False


class ContactRead(ReadModel):
    organization_id: str
    first_name: str
    last_name: str
    job_title: str | None
    email: str | None
    phone: str | None
    mobile: str | None
    linkedin_url: str | None
    notes: str | None
    primary_contact: bool


class PipelineStageInline(BaseModel):
    name: RequiredText
    color: str | None = None
    position: int = 0
    probability: float = Field(default=0.0, ge=0, le=100)


class PipelineWrite(WriteModel):
    name: RequiredText
    description: str | None = None
    is_default: bool = False
    stages: list[PipelineStageInline] = Field(default_factory=list)


class PipelineStageWrite(WriteModel):
    pipeline_id: RequiredRef
    name: RequiredText
    color: str | None = None
    position: int = 0
    probability: float = Field(default=0.0, ge=0, le=100)


class PipelineStageRead(ReadModel):
    pipeline_id: str
    name: str
    color: str | None
    position: int
    probability: float


class PipelineRead(ReadModel):
    name: str
    description: str | None
    is_default: bool
    stages: list[PipelineStageRead] = Field(default_factory=list)


class DealWrite(WriteModel):
    organization_id: RequiredRef
    contact_id: RequiredRef
    pipeline_stage_id: OptionalRef = None
    title: RequiredText
    description: str | None = None
    domain: str | None = None
    domain_acquired_at: OptionalDateTime = None
    domain_expires_at: OptionalDateTime = None
    domain_cost: float = 0.0
    deposit: float = 0.0
    costs: float = 0.0
    taxes: float = 0.0
    net_total: float = 0.0
    share_gil: float = 0.0
    share_ric: float = 0.0
    work_type: str | None = None
    work_closed_at: OptionalDateTime = None
    value: float = 0.0
    currency: str = "EUR"
    expected_close_at: OptionalDateTime = None
    status: DealStatus = "open"
    probability: int = Field(default=0, ge=0, le=100)
    source: str | None = None
    notes: str | None = None
    lost_reason: str | None = None


class DealRead(ReadModel):
    organization_id: str
    contact_id: str
    pipeline_stage_id: str | None
    title: str
    description: str | None
    domain: str | None
    domain_acquired_at: datetime | None
    domain_expires_at: datetime | None
    domain_cost: float
    deposit: float
    costs: float
    taxes: float
    net_total: float
    share_gil: float
    share_ric: float
    work_type: str | None
    work_closed_at: datetime | None
    value: float
    currency: str
    expected_close_at: datetime | None
    status: DealStatus
    probability: int
    source: str | None
    notes: str | None
    lost_reason: str | None


class PaymentWrite(WriteModel):
    deal_id: RequiredRef
    title: str | None = None
    amount: float = Field(default=0.0, ge=0)
    currency: str = "EUR"
    status: PaymentStatus = "paid"
    due_at: OptionalDateTime = None
    paid_at: OptionalDateTime = None
    method: str | None = None
    notes: str | None = None
    gil_amount: float = Field(default=0.0, ge=0)
    ric_amount: float = Field(default=0.0, ge=0)


class PaymentRead(ReadModel):
    deal_id: str
    title: str | None
    amount: float
    currency: str
    status: PaymentStatus
    due_at: datetime | None
    paid_at: datetime | None
    method: str | None
    notes: str | None
    gil_amount: float
    ric_amount: float


class ProjectWrite(WriteModel):
    deal_id: RequiredRef
    description: str | None = None
    code: str | None = None
    status: ProjectStatus = "active"
    start_date: OptionalDateTime = None
    target_end_date: OptionalDateTime = None
    actual_end_date: OptionalDateTime = None
    budget: float = 0.0
    currency: str = "EUR"


class ProjectRead(ReadModel):
    deal_id: str
    name: str
    description: str | None
    code: str | None
    status: ProjectStatus
    start_date: datetime | None
    target_end_date: datetime | None
    actual_end_date: datetime | None
    budget: float
    currency: str


class TaskWrite(WriteModel):
    project_id: RequiredRef
    owner_user_id: OptionalRef = None
    title: RequiredText
    description: str | None = None
    status: TaskStatus = "todo"
    priority: int = 0
    due_date: OptionalDateTime = None
    estimated_hours: float = Field(default=0.0, ge=0)
    actual_hours: float = Field(default=0.0, ge=0)


class TaskRead(ReadModel):
    project_id: str
    owner_user_id: str | None
    title: str
    description: str | None
    status: TaskStatus
    priority: int
    due_date: datetime | None
    estimated_hours: float
    actual_hours: float


class QuotationWrite(WriteModel):
    deal_id: RequiredRef
    created_by_user_id: OptionalRef = None
    number: OptionalRef = None
    title: RequiredText
    introduction: str | None = None
    terms: str | None = None
    currency: str = "EUR"
    status: QuotationStatus = "draft"
    tax_rate: float = Field(default=0.0, ge=0)
    discount_amount: float = Field(default=0.0, ge=0)
    valid_until: OptionalDateTime = None
    version: int = 1
    public_token: OptionalRef = None


class QuotationRead(ReadModel):
    deal_id: str
    created_by_user_id: str | None
    number: str
    title: str
    introduction: str | None
    terms: str | None
    currency: str
    status: QuotationStatus
    subtotal: float
    tax_rate: float
    tax_amount: float
    discount_amount: float
    total: float
    valid_until: datetime | None
    version: int
    public_token: str | None


class QuotationItemWrite(WriteModel):
    quotation_id: RequiredRef
    name: RequiredText
    description: str | None = None
    quantity: float = 1.0
    unit_price: float = 0.0
    unit_type: str | None = None
    line_total: float | None = None
    position: int = 0


class QuotationItemRead(ReadModel):
    quotation_id: str
    name: str
    description: str | None
    quantity: float
    unit_price: float
    unit_type: str | None
    line_total: float
    position: int


class QuotationNumberRead(BaseModel):
    year: int
    number: str


class InteractionWrite(WriteModel):
    user_id: OptionalRef = None
    organization_id: OptionalRef = None
    contact_id: OptionalRef = None
    deal_id: OptionalRef = None
    interaction_type: InteractionType = "note"
    subject: str | None = None
    body: str | None = None
    occurred_at: OptionalDateTime = None
    duration_minutes: int = Field(default=0, ge=0)
    transcript: str | None = None
    cleaned_transcript: str | None = None
    follow_up_completed: bool = False
    follow_up_date: OptionalDateTime = None
    follow_up_notes: str | None = None
    transcription_language: str = "it"
    transcription_status: str = "pending"


class InteractionRead(ReadModel):
    user_id: str | None
    organization_id: str | None
    contact_id: str | None
    deal_id: str | None
    interaction_type: InteractionType
    subject: str | None
    body: str | None
    occurred_at: datetime
    duration_minutes: int
    transcript: str | None
    cleaned_transcript: str | None
    follow_up_completed: bool
    follow_up_date: datetime | None
    follow_up_notes: str | None
    transcription_language: str
    transcription_status: str


class DeleteResult(BaseModel):
    ok: bool = True
    deleted: list[str]


class CRMStateRead(BaseModel):
    organizations: list[OrganizationRead]
    contacts: list[ContactRead]
    pipelines: list[PipelineRead]
    pipeline_stages: list[PipelineStageRead]
    deals: list[DealRead]
    payments: list[PaymentRead]
    projects: list[ProjectRead]
    tasks: list[TaskRead]
    quotations: list[QuotationRead]
    quotation_items: list[QuotationItemRead]
    interactions: list[InteractionRead]
