from __future__ import annotations

from typing import Any, Generic, TypeVar

from sqlalchemy import ColumnElement, Select, delete, inspect, select
from sqlalchemy.orm import Session

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

ModelT = TypeVar("ModelT")


class EntityRepository(Generic[ModelT]):
    """Insert-or-replace storage primitives for one entity type.

    ``put`` writes every column of the record it is given, so a replace never
    keeps stale values from the previous version of the row.
    """

    def __init__(self, model: type[ModelT]) -> None:
        self.model = model
        self._columns = [column.key for column in inspect(model).column_attrs]

    def order_by(self) -> tuple[ColumnElement[Any], ...]:
        return (self.model.created_at.desc(), self.model.id.desc())  # type: ignore[attr-defined]

    def get(self, session: Session, entity_id: str) -> ModelT | None:
        return session.get(self.model, entity_id)

    def get_for_update(self, session: Session, entity_id: str) -> ModelT | None:
        return session.scalar(
            select(self.model).where(self.model.id == entity_id).with_for_update()  # type: ignore[attr-defined]
        )

    def query(self, **filters: Any) -> Select[Any]:
        stmt = select(self.model)
        for field_name, value in filters.items():
            if value is None:
                continue
            if field_name not in self._columns:
                raise ValueError(f"unknown filter: {field_name}")
            stmt = stmt.where(getattr(self.model, field_name) == value)
        return stmt.order_by(*self.order_by())

    def list(self, session: Session, **filters: Any) -> list[ModelT]:
        return list(session.scalars(self.query(**filters)).all())

    def put(self, session: Session, values: dict[str, Any]) -> ModelT:
        entity_id = values.get("id")
        current = self.get(session, entity_id) if entity_id else None
        now = utcnow()
        row_values = {key: value for key, value in values.items() if key in self._columns}
        row_values["updated_at"] = now

        if current is None:
            if row_values.get("created_at") is None:
                row_values["created_at"] = now
            if row_values.get("id") is None:
                row_values.pop("id", None)
            entity = self.model(**row_values)
            session.add(entity)
            session.flush()
            return entity

        if row_values.get("created_at") is None:
            row_values["created_at"] = current.created_at  # type: ignore[attr-defined]
        for key, value in row_values.items():
            setattr(current, key, value)
        session.flush()
        return current

    def delete(self, session: Session, entity_id: str) -> int:
        result = session.execute(
            delete(self.model)
            .where(self.model.id == entity_id)  # type: ignore[attr-defined]
            .execution_options(synchronize_session=False)
        )
        return result.rowcount or 0


class PipelineRepository(EntityRepository[CRMPipeline]):
    def __init__(self) -> None:
        super().__init__(CRMPipeline)

    def order_by(self) -> tuple[ColumnElement[Any], ...]:
        return (CRMPipeline.is_default.desc(), CRMPipeline.created_at.desc(), CRMPipeline.id.desc())


class PipelineStageRepository(EntityRepository[CRMPipelineStage]):
    def __init__(self) -> None:
        super().__init__(CRMPipelineStage)

    def order_by(self) -> tuple[ColumnElement[Any], ...]:
        return (CRMPipelineStage.pipeline_id.asc(), CRMPipelineStage.position.asc())

    def first_stage(self, session: Session, pipeline_id: str, *, exclude_stage_id: str | None = None) -> CRMPipelineStage | None:
        stmt = select(CRMPipelineStage).where(CRMPipelineStage.pipeline_id == pipeline_id)
        if exclude_stage_id is not None:
            stmt = stmt.where(CRMPipelineStage.id != exclude_stage_id)
        return session.scalar(stmt.order_by(CRMPipelineStage.position.asc()).limit(1))


class QuotationItemRepository(EntityRepository[CRMQuotationItem]):
    def __init__(self) -> None:
        super().__init__(CRMQuotationItem)

    def order_by(self) -> tuple[ColumnElement[Any], ...]:
        return (CRMQuotationItem.quotation_id.asc(), CRMQuotationItem.position.asc(), CRMQuotationItem.created_at.asc())


organization_repository: EntityRepository[CRMOrganization] = EntityRepository(CRMOrganization)
contact_repository: EntityRepository[CRMContact] = EntityRepository(CRMContact)
pipeline_repository = PipelineRepository()
pipeline_stage_repository = PipelineStageRepository()
deal_repository: EntityRepository[CRMDeal] = EntityRepository(CRMDeal)
payment_repository: EntityRepository[CRMPayment] = EntityRepository(CRMPayment)
project_repository: EntityRepository[CRMProject] = EntityRepository(CRMProject)
task_repository: EntityRepository[CRMTask] = EntityRepository(CRMTask)
quotation_repository: EntityRepository[CRMQuotation] = EntityRepository(CRMQuotation)
quotation_item_repository = QuotationItemRepository()
interaction_repository: EntityRepository[CRMInteraction] = EntityRepository(CRMInteraction)
