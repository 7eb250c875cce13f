from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Generic, TypeVar

from fastapi import HTTPException, status
from opentelemetry import trace
from pydantic import BaseModel
from sqlalchemy import delete, func, inspect, select, update
from sqlalchemy.orm import Session, selectinload

from wemadeit import audit
from wemadeit.auth.models import User
from wemadeit.core.database import atomic
from wemadeit.core.security import new_token
from wemadeit.crm.cascade import cascade_engine
from wemadeit.crm.models import (
    CRMContact,
    CRMDeal,
    CRMInteraction,
    CRMOrganization,
    CRMPayment,
    CRMPipeline,
    CRMPipelineStage,
    CRMProject,
    CRMQuotation,
    CRMQuotationItem,
    CRMTask,
    utcnow,
)
from wemadeit.crm.repositories import (
    EntityRepository,
    contact_repository,
    deal_repository,
    interaction_repository,
    organization_repository,
    payment_repository,
    pipeline_repository,
    pipeline_stage_repository,
    project_repository,
    quotation_item_repository,
    quotation_repository,
    task_repository,
)
from wemadeit.crm.schemas import (
    ContactRead,
    ContactWrite,
    CRMStateRead,
    DealRead,
    DealWrite,
    InteractionRead,
    InteractionWrite,
    OrganizationRead,
    OrganizationWrite,
    PaymentRead,
    PaymentWrite,
    PipelineRead,
    PipelineStageRead,
    PipelineStageWrite,
    PipelineWrite,
    ProjectRead,
    ProjectWrite,
    QuotationItemRead,
    QuotationItemWrite,
    QuotationNumberRead,
    QuotationRead,
    QuotationWrite,
    TaskRead,
    TaskWrite,
)
from wemadeit.metrics import observe_invariant_repair, observe_quotation_recalculation


logger = logging.getLogger("wemadeit.crm")
tracer = trace.get_tracer(__name__)

ModelT = TypeVar("ModelT")
ReadT = TypeVar("ReadT", bound=BaseModel)

PAYMENT_SPLIT_TOLERANCE = 0.01
QUOTATION_NUMBER_PREFIX = "QUO"


@dataclass
class ActorUser:
    user_id: str
    role: str = "developer"
    correlation_id: str | None = None

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


@dataclass(frozen=True)
class QuotationTotals:
    subtotal: float
    tax_amount: float
    total: float


def calculate_quotation_totals(line_totals: Iterable[float], tax_rate: float, discount_amount: float) -> QuotationTotals:
    subtotal = 0.0
    for line_total in line_totals:
        subtotal += line_total
    tax_amount = subtotal * tax_rate / 100 if tax_rate > 0 else 0.0
    return QuotationTotals(subtotal=subtotal, tax_amount=tax_amount, total=subtotal + tax_amount - discount_amount)


def format_quotation_number(year: int, sequence: int) -> str:
    return f"{QUOTATION_NUMBER_PREFIX}-{year}-{sequence:03d}"


def _json_safe(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


def _snapshot(entity: Any | None, exclude: Iterable[str] = ()) -> dict[str, Any] | None:
    if entity is None:
        return None
    skipped = set(exclude)
    return {
        attr.key: _json_safe(getattr(entity, attr.key))
        for attr in inspect(entity).mapper.column_attrs
        if attr.key not in skipped
    }


def _require(session: Session, model: type[ModelT], entity_id: str, label: str) -> ModelT:
    entity = session.get(model, entity_id)
    if entity is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"{label} not found")
    return entity


class CRMEntityService(Generic[ModelT, ReadT]):
    entity_type: str = ""
    label: str = ""
    cascade_root: str | None = None

    def __init__(self, repository: EntityRepository[ModelT], read_model: type[ReadT]) -> None:
        self.repository = repository
        self.read_model = read_model

    def list(self, session: Session, **filters: Any) -> list[ReadT]:
        return [self._to_read(row) for row in self.repository.list(session, **filters)]

    def get(self, session: Session, entity_id: str) -> ReadT:
        return self._to_read(_require(session, self.repository.model, entity_id, self.label))

    def put(self, session: Session, actor_user: ActorUser, dto: Any) -> ReadT:
        with atomic(session, f"save {self.label}"):
            current = self.repository.get(session, dto.id) if dto.id else None
            before = _snapshot(current)
            values = self.prepare(session, actor_user, dto, current)
            entity = self.repository.put(session, values)
            self.after_put(session, actor_user, entity, before)
            entity_id = entity.id  # type: ignore[attr-defined]
            after = _snapshot(entity)

        audit.record(
            actor_user_id=actor_user.user_id,
            entity_type=self.entity_type,
            entity_id=entity_id,
            action="replace" if before is not None else "create",
            before=before,
            after=after,
            correlation_id=actor_user.correlation_id,
        )
        return self._to_read(entity)

    def delete(self, session: Session, actor_user: ActorUser, entity_id: str) -> bool:
        if self.cascade_root is not None:
            return cascade_engine.delete(session, self.cascade_root, entity_id, actor_user_id=actor_user.user_id)

        with atomic(session, f"delete {self.label}"):
            removed = self.repository.delete(session, entity_id)
        if removed:
            self._record_delete(actor_user, entity_id)
        return bool(removed)

    def delete_many(self, session: Session, actor_user: ActorUser, entity_ids: Sequence[str]) -> list[str]:
        """Delete ids in order, each in its own transaction; the first failure stops the batch."""
        deleted: list[str] = []
        for entity_id in entity_ids:
            self.delete(session, actor_user, entity_id)
            deleted.append(entity_id)
        return deleted

    def prepare(self, session: Session, actor_user: ActorUser, dto: Any, current: ModelT | None) -> dict[str, Any]:
        return dto.model_dump()

    def after_put(self, session: Session, actor_user: ActorUser, entity: ModelT, before: dict[str, Any] | None) -> None:
        return None

    def _record_delete(self, actor_user: ActorUser, entity_id: str) -> None:
        audit.record(
            actor_user_id=actor_user.user_id,
            entity_type=self.entity_type,
            entity_id=entity_id,
            action="delete",
            before=None,
            after=None,
            correlation_id=actor_user.correlation_id,
        )

    def _to_read(self, entity: ModelT) -> ReadT:
        return self.read_model.model_validate(entity)


class OrganizationService(CRMEntityService[CRMOrganization, OrganizationRead]):
    entity_type = "crm.organization"
    label = "organization"
    cascade_root = "organization"

    def __init__(self) -> None:
        super().__init__(organization_repository, OrganizationRead)

    def put(self, session: Session, actor_user: ActorUser, dto: OrganizationWrite) -> OrganizationRead:
        return super().put(session, actor_user, dto)


class ContactService(CRMEntityService[CRMContact, ContactRead]):
    entity_type = "crm.contact"
    label = "contact"
    cascade_root = "contact"

    def __init__(self) -> None:
        super().__init__(contact_repository, ContactRead)

    def prepare(self, session: Session, actor_user: ActorUser, dto: ContactWrite, current: CRMContact | None) -> dict[str, Any]:
        _require(session, CRMOrganization, dto.organization_id, "organization")
        return dto.model_dump()


class PipelineService(CRMEntityService[CRMPipeline, PipelineRead]):
    entity_type = "crm.pipeline"
    label = "pipeline"

    def __init__(self) -> None:
        super().__init__(pipeline_repository, PipelineRead)

    def list(self, session: Session, **filters: Any) -> list[PipelineRead]:
        rows = session.scalars(pipeline_repository.query(**filters).options(selectinload(CRMPipeline.stages))).all()
        return [self._to_read(row) for row in rows]

    def put(self, session: Session, actor_user: ActorUser, dto: PipelineWrite) -> PipelineRead:
        with atomic(session, "save pipeline"):
            current = pipeline_repository.get(session, dto.id) if dto.id else None
            before = _snapshot(current)
            pipeline = pipeline_repository.put(session, dto.model_dump(exclude={"stages"}))
            if pipeline.is_default:
                self._unset_other_defaults(session, pipeline.id)
            if current is None and dto.stages:
                self._create_inline_stages(session, pipeline.id, dto)
            self.ensure_single_default(session)
            pipeline_id = pipeline.id
            after = _snapshot(pipeline)

        audit.record(
            actor_user_id=actor_user.user_id,
            entity_type=self.entity_type,
            entity_id=pipeline_id,
            action="replace" if before is not None else "create",
            before=before,
            after=after,
            correlation_id=actor_user.correlation_id,
        )
        return self.get(session, pipeline_id)

    def delete(self, session: Session, actor_user: ActorUser, entity_id: str) -> bool:
        return self.delete_pipeline(session, actor_user, entity_id)

    def delete_pipeline(self, session: Session, actor_user: ActorUser, pipeline_id: str) -> bool:
        with tracer.start_as_current_span("crm.pipeline.delete") as span:
            span.set_attribute("crm.pipeline_id", pipeline_id)
            with atomic(session, "delete pipeline"):
                pipeline = pipeline_repository.get_for_update(session, pipeline_id)
                if pipeline is None:
                    return False
                was_default = pipeline.is_default

                fallback = session.scalar(
                    select(CRMPipeline)
                    .where(CRMPipeline.id != pipeline_id)
                    .order_by(*pipeline_repository.order_by())
                    .limit(1)
                )
                fallback_stage = pipeline_stage_repository.first_stage(session, fallback.id) if fallback else None
                fallback_stage_id = fallback_stage.id if fallback_stage is not None else None

                stage_ids = select(CRMPipelineStage.id).where(CRMPipelineStage.pipeline_id == pipeline_id)
                reassigned = self._reassign_deals(session, CRMDeal.pipeline_stage_id.in_(stage_ids), fallback_stage_id)
                session.execute(
                    delete(CRMPipelineStage)
                    .where(CRMPipelineStage.pipeline_id == pipeline_id)
                    .execution_options(synchronize_session=False)
                )
                pipeline_repository.delete(session, pipeline_id)

                if was_default and fallback is not None:
                    self._unset_other_defaults(session, fallback.id)
                    fallback.is_default = True
                    fallback.updated_at = utcnow()
                self.ensure_single_default(session)

            span.set_attribute("crm.deals_reassigned", reassigned)

        logger.info(
            "pipeline.deleted",
            extra={
                "pipeline_id": pipeline_id,
                "fallback_stage_id": fallback_stage_id,
                "deals_reassigned": reassigned,
            },
        )
        audit.record(
            actor_user_id=actor_user.user_id,
            entity_type=self.entity_type,
            entity_id=pipeline_id,
            action="delete",
            before={"is_default": was_default},
            after={"fallback_pipeline_id": fallback.id if fallback else None, "deals_reassigned": reassigned},
            correlation_id=actor_user.correlation_id,
        )
        return True

    def ensure_single_default(self, session: Session) -> None:
        """Repair the default flag so that exactly one pipeline carries it."""
        session.flush()
        defaults = session.scalars(
            select(CRMPipeline)
            .where(CRMPipeline.is_default.is_(True))
            .order_by(CRMPipeline.created_at.desc(), CRMPipeline.id.desc())
        ).all()
        if len(defaults) == 1:
            return

        if defaults:
            keeper = defaults[0]
            self._unset_other_defaults(session, keeper.id)
            self._record_repair("demote_extra_defaults", keeper.id)
            return

        newest = session.scalar(
            select(CRMPipeline).order_by(CRMPipeline.created_at.desc(), CRMPipeline.id.desc()).limit(1)
        )
        if newest is None:
            return
        newest.is_default = True
        newest.updated_at = utcnow()
        session.flush()
        self._record_repair("promote_newest_pipeline", newest.id)

    def default_stage_id(self, session: Session) -> str | None:
        pipeline = session.scalar(select(CRMPipeline).order_by(*pipeline_repository.order_by()).limit(1))
        if pipeline is None:
            return None
        stage = pipeline_stage_repository.first_stage(session, pipeline.id)
        return stage.id if stage is not None else None

    def _create_inline_stages(self, session: Session, pipeline_id: str, dto: PipelineWrite) -> None:
        next_position = max((stage.position for stage in dto.stages), default=0) + 1
        for stage in dto.stages:
            position = stage.position
            if position <= 0:
                position = next_position
                next_position += 1
            pipeline_stage_repository.put(
                session,
                {
                    "pipeline_id": pipeline_id,
                    "name": stage.name,
                    "color": stage.color,
                    "position": position,
                    "probability": stage.probability,
                },
            )

    def _unset_other_defaults(self, session: Session, pipeline_id: str) -> None:
        session.execute(
            update(CRMPipeline)
            .where(CRMPipeline.id != pipeline_id, CRMPipeline.is_default.is_(True))
            .values(is_default=False, updated_at=utcnow())
        )

    def _reassign_deals(self, session: Session, criteria: Any, stage_id: str | None) -> int:
        result = session.execute(
            update(CRMDeal)
            .where(criteria)
            .values(pipeline_stage_id=stage_id, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        return result.rowcount or 0

    def _record_repair(self, repair: str, pipeline_id: str) -> None:
        observe_invariant_repair(repair)
        logger.info("pipeline.default_repaired", extra={"repair": repair, "pipeline_id": pipeline_id})


class PipelineStageService(CRMEntityService[CRMPipelineStage, PipelineStageRead]):
    entity_type = "crm.pipeline_stage"
    label = "pipeline stage"

    def __init__(self) -> None:
        super().__init__(pipeline_stage_repository, PipelineStageRead)

    def prepare(
        self,
        session: Session,
        actor_user: ActorUser,
        dto: PipelineStageWrite,
        current: CRMPipelineStage | None,
    ) -> dict[str, Any]:
        _require(session, CRMPipeline, dto.pipeline_id, "pipeline")
        values = dto.model_dump()
        if values["position"] <= 0:
            values["position"] = self._next_position(session, dto.pipeline_id, exclude_stage_id=dto.id)
        return values

    def delete(self, session: Session, actor_user: ActorUser, entity_id: str) -> bool:
        return self.delete_stage(session, actor_user, entity_id)

    def delete_stage(self, session: Session, actor_user: ActorUser, stage_id: str) -> bool:
        with tracer.start_as_current_span("crm.pipeline_stage.delete") as span:
            span.set_attribute("crm.stage_id", stage_id)
            with atomic(session, "delete pipeline stage"):
                stage = pipeline_stage_repository.get(session, stage_id)
                if stage is None:
                    return False
                fallback = pipeline_stage_repository.first_stage(session, stage.pipeline_id, exclude_stage_id=stage_id)
                fallback_stage_id = fallback.id if fallback is not None else None
                reassigned = pipeline_service._reassign_deals(
                    session,
                    CRMDeal.pipeline_stage_id == stage_id,
                    fallback_stage_id,
                )
                pipeline_stage_repository.delete(session, stage_id)
            span.set_attribute("crm.deals_reassigned", reassigned)

        logger.info(
            "pipeline_stage.deleted",
            extra={"stage_id": stage_id, "fallback_stage_id": fallback_stage_id, "deals_reassigned": reassigned},
        )
        audit.record(
            actor_user_id=actor_user.user_id,
            entity_type=self.entity_type,
            entity_id=stage_id,
            action="delete",
            before=None,
            after={"fallback_stage_id": fallback_stage_id, "deals_reassigned": reassigned},
            correlation_id=actor_user.correlation_id,
        )
        return True

    def _next_position(self, session: Session, pipeline_id: str, exclude_stage_id: str | None) -> int:
        stmt = select(func.max(CRMPipelineStage.position)).where(CRMPipelineStage.pipeline_id == pipeline_id)
        if exclude_stage_id:
            stmt = stmt.where(CRMPipelineStage.id != exclude_stage_id)
        return (session.scalar(stmt) or 0) + 1


class DealService(CRMEntityService[CRMDeal, DealRead]):
    entity_type = "crm.deal"
    label = "deal"
    cascade_root = "deal"

    def __init__(self) -> None:
        super().__init__(deal_repository, DealRead)

    def prepare(self, session: Session, actor_user: ActorUser, dto: DealWrite, current: CRMDeal | None) -> dict[str, Any]:
        _require(session, CRMOrganization, dto.organization_id, "organization")
        _require(session, CRMContact, dto.contact_id, "contact")
        values = dto.model_dump()
        if dto.pipeline_stage_id is not None:
            _require(session, CRMPipelineStage, dto.pipeline_stage_id, "pipeline stage")
        else:
            values["pipeline_stage_id"] = pipeline_service.default_stage_id(session)
        return values


class PaymentService(CRMEntityService[CRMPayment, PaymentRead]):
    entity_type = "crm.payment"
    label = "payment"

    def __init__(self) -> None:
        super().__init__(payment_repository, PaymentRead)

    def prepare(self, session: Session, actor_user: ActorUser, dto: PaymentWrite, current: CRMPayment | None) -> dict[str, Any]:
        _require(session, CRMDeal, dto.deal_id, "deal")
        if dto.gil_amount + dto.ric_amount > dto.amount + PAYMENT_SPLIT_TOLERANCE:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="gil_amount + ric_amount must not exceed amount",
            )
        values = dto.model_dump()
        if values["status"] == "paid" and values["paid_at"] is None:
            values["paid_at"] = utcnow()
        return values


class ProjectService(CRMEntityService[CRMProject, ProjectRead]):
    entity_type = "crm.project"
    label = "project"
    cascade_root = "project"

    def __init__(self) -> None:
        super().__init__(project_repository, ProjectRead)

    def prepare(self, session: Session, actor_user: ActorUser, dto: ProjectWrite, current: CRMProject | None) -> dict[str, Any]:
        deal = _require(session, CRMDeal, dto.deal_id, "deal")
        values = dto.model_dump()
        values["name"] = deal.title
        return values


class TaskService(CRMEntityService[CRMTask, TaskRead]):
    entity_type = "crm.task"
    label = "task"

    def __init__(self) -> None:
        super().__init__(task_repository, TaskRead)

    def prepare(self, session: Session, actor_user: ActorUser, dto: TaskWrite, current: CRMTask | None) -> dict[str, Any]:
        _require(session, CRMProject, dto.project_id, "project")
        values = dto.model_dump()
        if dto.owner_user_id is not None:
            _require(session, User, dto.owner_user_id, "owner user")
        elif current is None and session.get(User, actor_user.user_id) is not None:
            values["owner_user_id"] = actor_user.user_id
        return values


class QuotationService(CRMEntityService[CRMQuotation, QuotationRead]):
    entity_type = "crm.quotation"
    label = "quotation"
    cascade_root = "quotation"

    def __init__(self) -> None:
        super().__init__(quotation_repository, QuotationRead)

    def prepare(
        self,
        session: Session,
        actor_user: ActorUser,
        dto: QuotationWrite,
        current: CRMQuotation | None,
    ) -> dict[str, Any]:
        _require(session, CRMDeal, dto.deal_id, "deal")
        values = dto.model_dump()
        if values["created_by_user_id"] is None:
            values["created_by_user_id"] = (
                current.created_by_user_id if current is not None and current.created_by_user_id else actor_user.user_id
            )
        if values["number"] is None:
            values["number"] = current.number if current is not None else self.next_quotation_number(session, utcnow().year)
        if values["public_token"] is None:
            values["public_token"] = current.public_token if current is not None and current.public_token else new_token(24)
        if values["version"] <= 0:
            values["version"] = 1
        return values

    def after_put(
        self,
        session: Session,
        actor_user: ActorUser,
        entity: CRMQuotation,
        before: dict[str, Any] | None,
    ) -> None:
        self.recalc_quotation_totals(session, entity.id)

    def next_quotation_number(self, session: Session, year: int) -> str:
        prefix = f"{QUOTATION_NUMBER_PREFIX}-{year}-"
        numbers = session.scalars(
            select(CRMQuotation.number).where(CRMQuotation.number.startswith(prefix, autoescape=True))
        ).all()
        highest = 0
        for number in numbers:
            suffix = number[len(prefix) :]
            if suffix.isdigit():
                highest = max(highest, int(suffix))
        return format_quotation_number(year, highest + 1)

    def next_number(self, session: Session, year: int | None = None) -> QuotationNumberRead:
        resolved_year = year if year is not None else utcnow().year
        return QuotationNumberRead(year=resolved_year, number=self.next_quotation_number(session, resolved_year))

    def recalc_quotation_totals(self, session: Session, quotation_id: str) -> CRMQuotation | None:
        """Recompute subtotal, tax and total from the quotation's current items.

        Runs inside the caller's transaction; a missing quotation is ignored.
        """
        with tracer.start_as_current_span("crm.quotation.recalculate") as span:
            span.set_attribute("crm.quotation_id", quotation_id)
            session.flush()
            quotation = session.get(CRMQuotation, quotation_id)
            if quotation is None:
                return None
            line_totals = session.scalars(
                select(CRMQuotationItem.line_total)
                .where(CRMQuotationItem.quotation_id == quotation_id)
                .order_by(CRMQuotationItem.position.asc(), CRMQuotationItem.created_at.asc())
            ).all()
            totals = calculate_quotation_totals(line_totals, quotation.tax_rate, quotation.discount_amount)
            quotation.subtotal = totals.subtotal
            quotation.tax_amount = totals.tax_amount
            quotation.total = totals.total
            quotation.updated_at = utcnow()
            session.flush()
            span.set_attribute("crm.quotation.items", len(line_totals))

        observe_quotation_recalculation()
        logger.info("quotation.recalculated", extra={"quotation_id": quotation_id, "rows": len(line_totals)})
        return quotation

    def recalculate(self, session: Session, actor_user: ActorUser, quotation_id: str) -> QuotationRead:
        with atomic(session, "recalculate quotation"):
            quotation = self.recalc_quotation_totals(session, quotation_id)
            if quotation is None:
                raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="quotation not found")
        return self._to_read(quotation)


class QuotationItemService(CRMEntityService[CRMQuotationItem, QuotationItemRead]):
    entity_type = "crm.quotation_item"
    label = "quotation item"

    def __init__(self) -> None:
        super().__init__(quotation_item_repository, QuotationItemRead)

    def prepare(
        self,
        session: Session,
        actor_user: ActorUser,
        dto: QuotationItemWrite,
        current: CRMQuotationItem | None,
    ) -> dict[str, Any]:
        _require(session, CRMQuotation, dto.quotation_id, "quotation")
        values = dto.model_dump()
        if values["quantity"] == 0:
            values["quantity"] = 1.0
        if values["line_total"] is None:
            values["line_total"] = values["quantity"] * values["unit_price"]
        if values["position"] <= 0:
            values["position"] = self._next_position(session, dto.quotation_id, exclude_item_id=dto.id)
        return values

    def after_put(
        self,
        session: Session,
        actor_user: ActorUser,
        entity: CRMQuotationItem,
        before: dict[str, Any] | None,
    ) -> None:
        quotation_service.recalc_quotation_totals(session, entity.quotation_id)
        if before is not None and before["quotation_id"] != entity.quotation_id:
            quotation_service.recalc_quotation_totals(session, before["quotation_id"])

    def delete(self, session: Session, actor_user: ActorUser, entity_id: str) -> bool:
        with atomic(session, "delete quotation item"):
            item = quotation_item_repository.get(session, entity_id)
            if item is None:
                return False
            quotation_id = item.quotation_id
            quotation_item_repository.delete(session, entity_id)
            quotation_service.recalc_quotation_totals(session, quotation_id)
        self._record_delete(actor_user, entity_id)
        return True

    def _next_position(self, session: Session, quotation_id: str, exclude_item_id: str | None) -> int:
        stmt = select(func.max(CRMQuotationItem.position)).where(CRMQuotationItem.quotation_id == quotation_id)
        if exclude_item_id:
            stmt = stmt.where(CRMQuotationItem.id != exclude_item_id)
        return (session.scalar(stmt) or 0) + 1


class InteractionService(CRMEntityService[CRMInteraction, InteractionRead]):
    entity_type = "crm.interaction"
    label = "interaction"

    def __init__(self) -> None:
        super().__init__(interaction_repository, InteractionRead)

    def prepare(
        self,
        session: Session,
        actor_user: ActorUser,
        dto: InteractionWrite,
        current: CRMInteraction | None,
    ) -> dict[str, Any]:
        if dto.organization_id is not None:
            _require(session, CRMOrganization, dto.organization_id, "organization")
        if dto.contact_id is not None:
            _require(session, CRMContact, dto.contact_id, "contact")
        if dto.deal_id is not None:
            _require(session, CRMDeal, dto.deal_id, "deal")
        values = dto.model_dump()
        if values["user_id"] is None:
            values["user_id"] = actor_user.user_id
        if values["occurred_at"] is None:
            values["occurred_at"] = current.occurred_at if current is not None else utcnow()
        return values


class CRMStateService:
    def load(self, session: Session) -> CRMStateRead:
        return CRMStateRead(
            organizations=organization_service.list(session),
            contacts=contact_service.list(session),
            pipelines=pipeline_service.list(session),
            pipeline_stages=pipeline_stage_service.list(session),
            deals=deal_service.list(session),
            payments=payment_service.list(session),
            projects=project_service.list(session),
            tasks=task_service.list(session),
            quotations=quotation_service.list(session),
            quotation_items=quotation_item_service.list(session),
            interactions=interaction_service.list(session),
        )


organization_service = OrganizationService()
contact_service = ContactService()
pipeline_service = PipelineService()
pipeline_stage_service = PipelineStageService()
deal_service = DealService()
payment_service = PaymentService()
project_service = ProjectService()
task_service = TaskService()
quotation_service = QuotationService()
quotation_item_service = QuotationItemService()
interaction_service = InteractionService()
crm_state_service = CRMStateService()
