from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from wemadeit.context import get_correlation_id
from wemadeit.core.auth import AuthUser, get_current_user as get_auth_user
from wemadeit.core.database import get_db
from wemadeit.crm.schemas import (
    ContactRead,
    ContactWrite,
    CRMStateRead,
    DealRead,
    DealWrite,
    DeleteResult,
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
from wemadeit.crm.service import (
    ActorUser,
    CRMEntityService,
    contact_service,
    crm_state_service,
    deal_service,
    interaction_service,
    organization_service,
    payment_service,
    pipeline_service,
    pipeline_stage_service,
    project_service,
    quotation_item_service,
    quotation_service,
    task_service,
)

organizations_router = APIRouter(prefix="/api/crm", tags=["crm.organizations"])
contacts_router = APIRouter(prefix="/api/crm", tags=["crm.contacts"])
pipelines_router = APIRouter(prefix="/api/crm", tags=["crm.pipelines"])
deals_router = APIRouter(prefix="/api/crm", tags=["crm.deals"])
payments_router = APIRouter(prefix="/api/crm", tags=["crm.payments"])
projects_router = APIRouter(prefix="/api/crm", tags=["crm.projects"])
tasks_router = APIRouter(prefix="/api/crm", tags=["crm.tasks"])
quotations_router = APIRouter(prefix="/api/crm", tags=["crm.quotations"])
interactions_router = APIRouter(prefix="/api/crm", tags=["crm.interactions"])
state_router = APIRouter(prefix="/api/crm", tags=["crm.state"])


@dataclass
class ErrorEnvelope:
    code: str
    message: str
    details: Any
    correlation_id: str | None


def error_response(
    request: Request,
    *,
    status_code: int,
    code: str,
    message: str,
    details: Any = None,
) -> JSONResponse:
    correlation_id = get_correlation_id() or getattr(getattr(request.state, "context", None), "request_id", None)
    payload = ErrorEnvelope(
        code=code,
        message=message,
        details=details,
        correlation_id=correlation_id,
    )
    return JSONResponse(status_code=status_code, content=payload.__dict__)


def get_current_user(request: Request, auth_user: AuthUser = Depends(get_auth_user)) -> ActorUser:
    correlation_id = get_correlation_id() or getattr(getattr(request.state, "context", None), "request_id", None)
    return ActorUser(user_id=auth_user.sub, role=auth_user.role, correlation_id=correlation_id)


def parse_id_list(entity_id: str | None, ids: str | None) -> list[str]:
    # A single id takes precedence over the ids list.
    if entity_id is not None and entity_id.strip():
        return [entity_id.strip()]
    values = [item.strip() for item in (ids or "").split(",") if item.strip()]
    if not values:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="id or ids is required")
    return values


def _failure(request: Request, exc: HTTPException, code: str) -> JSONResponse:
    return error_response(
        request,
        status_code=exc.status_code,
        code=code,
        message=str(exc.detail),
        details=exc.detail,
    )


def _delete(
    request: Request,
    db: Session,
    user: ActorUser,
    service: CRMEntityService[Any, Any],
    ids: list[str],
    code: str,
) -> DeleteResult | JSONResponse:
    try:
        return DeleteResult(deleted=service.delete_many(db, user, ids))
    except HTTPException as exc:
        return _failure(request, exc, code)


@organizations_router.get("/organizations", response_model=list[OrganizationRead])
def list_organizations(
    request: Request,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> list[OrganizationRead] | JSONResponse:
    try:
        return organization_service.list(db)
    except HTTPException as exc:
        return _failure(request, exc, "crm_organization_list_failed")


@organizations_router.get("/organizations/{organization_id}", response_model=OrganizationRead)
def get_organization(
    request: Request,
    organization_id: str,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> OrganizationRead | JSONResponse:
    try:
        return organization_service.get(db, organization_id)
    except HTTPException as exc:
        return _failure(request, exc, "crm_organization_get_failed")


@organizations_router.post("/organizations", response_model=OrganizationRead)
def put_organization(
    request: Request,
    dto: OrganizationWrite,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> OrganizationRead | JSONResponse:
    try:
        return organization_service.put(db, user, dto)
    except HTTPException as exc:
        return _failure(request, exc, "crm_organization_put_failed")


@organizations_router.delete("/organizations", response_model=DeleteResult)
def delete_organizations(
    request: Request,
    id: str | None = Query(default=None),
    ids: str | None = Query(default=None),
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> DeleteResult | JSONResponse:
    try:
        targets = parse_id_list(id, ids)
    except HTTPException as exc:
        return _failure(request, exc, "crm_organization_delete_failed")
    return _delete(request, db, user, organization_service, targets, "crm_organization_delete_failed")


@organizations_router.delete("/organizations/{organization_id}", response_model=DeleteResult)
def delete_organization(
    request: Request,
    organization_id: str,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> DeleteResult | JSONResponse:
    return _delete(request, db, user, organization_service, [organization_id], "crm_organization_delete_failed")


@contacts_router.get("/contacts", response_model=list[ContactRead])
def list_contacts(
    request: Request,
    organization_id: str | None = Query(default=None),
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> list[ContactRead] | JSONResponse:
    try:
        return contact_service.list(db, organization_id=organization_id)
    except HTTPException as exc:
        return _failure(request, exc, "crm_contact_list_failed")


@contacts_router.get("/contacts/{contact_id}", response_model=ContactRead)
def get_contact(
    request: Request,
    contact_id: str,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> ContactRead | JSONResponse:
    try:
        return contact_service.get(db, contact_id)
    except HTTPException as exc:
        return _failure(request, exc, "crm_contact_get_failed")


@contacts_router.post("/contacts", response_model=ContactRead)
def put_contact(
    request: Request,
    dto: ContactWrite,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> ContactRead | JSONResponse:
    try:
        return contact_service.put(db, user, dto)
    except HTTPException as exc:
        return _failure(request, exc, "crm_contact_put_failed")


@contacts_router.delete("/contacts", response_model=DeleteResult)
def delete_contacts(
    request: Request,
    id: str | None = Query(default=None),
    ids: str | None = Query(default=None),
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> DeleteResult | JSONResponse:
    try:
        targets = parse_id_list(id, ids)
    except HTTPException as exc:
        return _failure(request, exc, "crm_contact_delete_failed")
    return _delete(request, db, user, contact_service, targets, "crm_contact_delete_failed")


@contacts_router.delete("/contacts/{contact_id}", response_model=DeleteResult)
def delete_contact(
    request: Request,
    contact_id: str,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> DeleteResult | JSONResponse:
    return _delete(request, db, user, contact_service, [contact_id], "crm_contact_delete_failed")


@pipelines_router.get("/pipelines", response_model=list[PipelineRead])
def list_pipelines(
    request: Request,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> list[PipelineRead] | JSONResponse:
    try:
        return pipeline_service.list(db)
    except HTTPException as exc:
        return _failure(request, exc, "crm_pipeline_list_failed")


@pipelines_router.get("/pipelines/{pipeline_id}", response_model=PipelineRead)
def get_pipeline(
    request: Request,
    pipeline_id: str,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> PipelineRead | JSONResponse:
    try:
        return pipeline_service.get(db, pipeline_id)
    except HTTPException as exc:
        return _failure(request, exc, "crm_pipeline_get_failed")


@pipelines_router.post("/pipelines", response_model=PipelineRead)
def put_pipeline(
    request: Request,
    dto: PipelineWrite,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> PipelineRead | JSONResponse:
    try:
        return pipeline_service.put(db, user, dto)
    except HTTPException as exc:
        return _failure(request, exc, "crm_pipeline_put_failed")


@pipelines_router.delete("/pipelines", response_model=DeleteResult)
def delete_pipelines(
    request: Request,
    id: str | None = Query(default=None),
    ids: str | None = Query(default=None),
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> DeleteResult | JSONResponse:
    try:
        targets = parse_id_list(id, ids)
    except HTTPException as exc:
        return _failure(request, exc, "crm_pipeline_delete_failed")
    return _delete(request, db, user, pipeline_service, targets, "crm_pipeline_delete_failed")


@pipelines_router.delete("/pipelines/{pipeline_id}", response_model=DeleteResult)
def delete_pipeline(
    request: Request,
    pipeline_id: str,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> DeleteResult | JSONResponse:
    return _delete(request, db, user, pipeline_service, [pipeline_id], "crm_pipeline_delete_failed")


@pipelines_router.get("/pipeline-stages", response_model=list[PipelineStageRead])
def list_pipeline_stages(
    request: Request,
    pipeline_id: str | None = Query(default=None),
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> list[PipelineStageRead] | JSONResponse:
    try:
        return pipeline_stage_service.list(db, pipeline_id=pipeline_id)
    except HTTPException as exc:
        return _failure(request, exc, "crm_pipeline_stage_list_failed")


@pipelines_router.get("/pipeline-stages/{stage_id}", response_model=PipelineStageRead)
def get_pipeline_stage(
    request: Request,
    stage_id: str,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> PipelineStageRead | JSONResponse:
    try:
        return pipeline_stage_service.get(db, stage_id)
    except HTTPException as exc:
        return _failure(request, exc, "crm_pipeline_stage_get_failed")


@pipelines_router.post("/pipeline-stages", response_model=PipelineStageRead)
def put_pipeline_stage(
    request: Request,
    dto: PipelineStageWrite,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> PipelineStageRead | JSONResponse:
    try:
        return pipeline_stage_service.put(db, user, dto)
    except HTTPException as exc:
        return _failure(request, exc, "crm_pipeline_stage_put_failed")


@pipelines_router.delete("/pipeline-stages", response_model=DeleteResult)
def delete_pipeline_stages(
    request: Request,
    id: str | None = Query(default=None),
    ids: str | None = Query(default=None),
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> DeleteResult | JSONResponse:
    try:
        targets = parse_id_list(id, ids)
    except HTTPException as exc:
        return _failure(request, exc, "crm_pipeline_stage_delete_failed")
    return _delete(request, db, user, pipeline_stage_service, targets, "crm_pipeline_stage_delete_failed")


@pipelines_router.delete("/pipeline-stages/{stage_id}", response_model=DeleteResult)
def delete_pipeline_stage(
    request: Request,
    stage_id: str,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> DeleteResult | JSONResponse:
    return _delete(request, db, user, pipeline_stage_service, [stage_id], "crm_pipeline_stage_delete_failed")


@deals_router.get("/deals", response_model=list[DealRead])
def list_deals(
    request: Request,
    organization_id: str | None = Query(default=None),
    contact_id: str | None = Query(default=None),
    pipeline_stage_id: str | None = Query(default=None),
    status_filter: str | None = Query(default=None, alias="status"),
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> list[DealRead] | JSONResponse:
    try:
        return deal_service.list(
            db,
            organization_id=organization_id,
            contact_id=contact_id,
            pipeline_stage_id=pipeline_stage_id,
            status=status_filter,
        )
    except HTTPException as exc:
        return _failure(request, exc, "crm_deal_list_failed")


@deals_router.get("/deals/{deal_id}", response_model=DealRead)
def get_deal(
    request: Request,
    deal_id: str,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> DealRead | JSONResponse:
    try:
        return deal_service.get(db, deal_id)
    except HTTPException as exc:
        return _failure(request, exc, "crm_deal_get_failed")


@deals_router.post("/deals", response_model=DealRead)
def put_deal(
    request: Request,
    dto: DealWrite,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> DealRead | JSONResponse:
    try:
        return deal_service.put(db, user, dto)
    except HTTPException as exc:
        return _failure(request, exc, "crm_deal_put_failed")


@deals_router.delete("/deals", response_model=DeleteResult)
def delete_deals(
    request: Request,
    id: str | None = Query(default=None),
    ids: str | None = Query(default=None),
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> DeleteResult | JSONResponse:
    try:
        targets = parse_id_list(id, ids)
    except HTTPException as exc:
        return _failure(request, exc, "crm_deal_delete_failed")
    return _delete(request, db, user, deal_service, targets, "crm_deal_delete_failed")


@deals_router.delete("/deals/{deal_id}", response_model=DeleteResult)
def delete_deal(
    request: Request,
    deal_id: str,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> DeleteResult | JSONResponse:
    return _delete(request, db, user, deal_service, [deal_id], "crm_deal_delete_failed")


@payments_router.get("/payments", response_model=list[PaymentRead])
def list_payments(
    request: Request,
    deal_id: str | None = Query(default=None),
    status_filter: str | None = Query(default=None, alias="status"),
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> list[PaymentRead] | JSONResponse:
    try:
        return payment_service.list(db, deal_id=deal_id, status=status_filter)
    except HTTPException as exc:
        return _failure(request, exc, "crm_payment_list_failed")


@payments_router.get("/payments/{payment_id}", response_model=PaymentRead)
def get_payment(
    request: Request,
    payment_id: str,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> PaymentRead | JSONResponse:
    try:
        return payment_service.get(db, payment_id)
    except HTTPException as exc:
        return _failure(request, exc, "crm_payment_get_failed")


@payments_router.post("/payments", response_model=PaymentRead)
def put_payment(
    request: Request,
    dto: PaymentWrite,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> PaymentRead | JSONResponse:
    try:
        return payment_service.put(db, user, dto)
    except HTTPException as exc:
        return _failure(request, exc, "crm_payment_put_failed")


@payments_router.delete("/payments", response_model=DeleteResult)
def delete_payments(
    request: Request,
    id: str | None = Query(default=None),
    ids: str | None = Query(default=None),
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> DeleteResult | JSONResponse:
    try:
        targets = parse_id_list(id, ids)
    except HTTPException as exc:
        return _failure(request, exc, "crm_payment_delete_failed")
    return _delete(request, db, user, payment_service, targets, "crm_payment_delete_failed")


@payments_router.delete("/payments/{payment_id}", response_model=DeleteResult)
def delete_payment(
    request: Request,
    payment_id: str,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> DeleteResult | JSONResponse:
    return _delete(request, db, user, payment_service, [payment_id], "crm_payment_delete_failed")


@projects_router.get("/projects", response_model=list[ProjectRead])
def list_projects(
    request: Request,
    deal_id: str | None = Query(default=None),
    status_filter: str | None = Query(default=None, alias="status"),
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> list[ProjectRead] | JSONResponse:
    try:
        return project_service.list(db, deal_id=deal_id, status=status_filter)
    except HTTPException as exc:
        return _failure(request, exc, "crm_project_list_failed")


@projects_router.get("/projects/{project_id}", response_model=ProjectRead)
def get_project(
    request: Request,
    project_id: str,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> ProjectRead | JSONResponse:
    try:
        return project_service.get(db, project_id)
    except HTTPException as exc:
        return _failure(request, exc, "crm_project_get_failed")


@projects_router.post("/projects", response_model=ProjectRead)
def put_project(
    request: Request,
    dto: ProjectWrite,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> ProjectRead | JSONResponse:
    try:
        return project_service.put(db, user, dto)
    except HTTPException as exc:
        return _failure(request, exc, "crm_project_put_failed")


@projects_router.delete("/projects", response_model=DeleteResult)
def delete_projects(
    request: Request,
    id: str | None = Query(default=None),
    ids: str | None = Query(default=None),
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> DeleteResult | JSONResponse:
    try:
        targets = parse_id_list(id, ids)
    except HTTPException as exc:
        return _failure(request, exc, "crm_project_delete_failed")
    return _delete(request, db, user, project_service, targets, "crm_project_delete_failed")


@projects_router.delete("/projects/{project_id}", response_model=DeleteResult)
def delete_project(
    request: Request,
    project_id: str,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> DeleteResult | JSONResponse:
    return _delete(request, db, user, project_service, [project_id], "crm_project_delete_failed")


@tasks_router.get("/tasks", response_model=list[TaskRead])
def list_tasks(
    request: Request,
    project_id: str | None = Query(default=None),
    owner_user_id: str | None = Query(default=None),
    status_filter: str | None = Query(default=None, alias="status"),
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> list[TaskRead] | JSONResponse:
    try:
        return task_service.list(db, project_id=project_id, owner_user_id=owner_user_id, status=status_filter)
    except HTTPException as exc:
        return _failure(request, exc, "crm_task_list_failed")


@tasks_router.get("/tasks/{task_id}", response_model=TaskRead)
def get_task(
    request: Request,
    task_id: str,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> TaskRead | JSONResponse:
    try:
        return task_service.get(db, task_id)
    except HTTPException as exc:
        return _failure(request, exc, "crm_task_get_failed")


@tasks_router.post("/tasks", response_model=TaskRead)
def put_task(
    request: Request,
    dto: TaskWrite,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> TaskRead | JSONResponse:
    try:
        return task_service.put(db, user, dto)
    except HTTPException as exc:
        return _failure(request, exc, "crm_task_put_failed")


@tasks_router.delete("/tasks", response_model=DeleteResult)
def delete_tasks(
    request: Request,
    id: str | None = Query(default=None),
    ids: str | None = Query(default=None),
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> DeleteResult | JSONResponse:
    try:
        targets = parse_id_list(id, ids)
    except HTTPException as exc:
        return _failure(request, exc, "crm_task_delete_failed")
    return _delete(request, db, user, task_service, targets, "crm_task_delete_failed")


@tasks_router.delete("/tasks/{task_id}", response_model=DeleteResult)
def delete_task(
    request: Request,
    task_id: str,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> DeleteResult | JSONResponse:
    return _delete(request, db, user, task_service, [task_id], "crm_task_delete_failed")


@quotations_router.get("/quotations", response_model=list[QuotationRead])
def list_quotations(
    request: Request,
    deal_id: str | None = Query(default=None),
    status_filter: str | None = Query(default=None, alias="status"),
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> list[QuotationRead] | JSONResponse:
    try:
        return quotation_service.list(db, deal_id=deal_id, status=status_filter)
    except HTTPException as exc:
        return _failure(request, exc, "crm_quotation_list_failed")


@quotations_router.get("/quotations/next-number", response_model=QuotationNumberRead)
def next_quotation_number(
    request: Request,
    year: int | None = Query(default=None, ge=1, le=9999),
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> QuotationNumberRead | JSONResponse:
    try:
        return quotation_service.next_number(db, year)
    except HTTPException as exc:
        return _failure(request, exc, "crm_quotation_number_failed")


@quotations_router.get("/quotations/{quotation_id}", response_model=QuotationRead)
def get_quotation(
    request: Request,
    quotation_id: str,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> QuotationRead | JSONResponse:
    try:
        return quotation_service.get(db, quotation_id)
    except HTTPException as exc:
        return _failure(request, exc, "crm_quotation_get_failed")


@quotations_router.post("/quotations", response_model=QuotationRead)
def put_quotation(
    request: Request,
    dto: QuotationWrite,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> QuotationRead | JSONResponse:
    try:
        return quotation_service.put(db, user, dto)
    except HTTPException as exc:
        return _failure(request, exc, "crm_quotation_put_failed")


@quotations_router.post("/quotations/{quotation_id}/recalculate", response_model=QuotationRead)
def recalculate_quotation(
    request: Request,
    quotation_id: str,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> QuotationRead | JSONResponse:
    try:
        return quotation_service.recalculate(db, user, quotation_id)
    except HTTPException as exc:
        return _failure(request, exc, "crm_quotation_recalculate_failed")


@quotations_router.delete("/quotations", response_model=DeleteResult)
def delete_quotations(
    request: Request,
    id: str | None = Query(default=None),
    ids: str | None = Query(default=None),
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> DeleteResult | JSONResponse:
    try:
        targets = parse_id_list(id, ids)
    except HTTPException as exc:
        return _failure(request, exc, "crm_quotation_delete_failed")
    return _delete(request, db, user, quotation_service, targets, "crm_quotation_delete_failed")


@quotations_router.delete("/quotations/{quotation_id}", response_model=DeleteResult)
def delete_quotation(
    request: Request,
    quotation_id: str,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> DeleteResult | JSONResponse:
    return _delete(request, db, user, quotation_service, [quotation_id], "crm_quotation_delete_failed")


@quotations_router.get("/quotation-items", response_model=list[QuotationItemRead])
def list_quotation_items(
    request: Request,
    quotation_id: str | None = Query(default=None),
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> list[QuotationItemRead] | JSONResponse:
    try:
        return quotation_item_service.list(db, quotation_id=quotation_id)
    except HTTPException as exc:
        return _failure(request, exc, "crm_quotation_item_list_failed")


@quotations_router.get("/quotation-items/{item_id}", response_model=QuotationItemRead)
def get_quotation_item(
    request: Request,
    item_id: str,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> QuotationItemRead | JSONResponse:
    try:
        return quotation_item_service.get(db, item_id)
    except HTTPException as exc:
        return _failure(request, exc, "crm_quotation_item_get_failed")


@quotations_router.post("/quotation-items", response_model=QuotationItemRead)
def put_quotation_item(
    request: Request,
    dto: QuotationItemWrite,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> QuotationItemRead | JSONResponse:
    try:
        return quotation_item_service.put(db, user, dto)
    except HTTPException as exc:
        return _failure(request, exc, "crm_quotation_item_put_failed")


@quotations_router.delete("/quotation-items", response_model=DeleteResult)
def delete_quotation_items(
    request: Request,
    id: str | None = Query(default=None),
    ids: str | None = Query(default=None),
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> DeleteResult | JSONResponse:
    try:
        targets = parse_id_list(id, ids)
    except HTTPException as exc:
        return _failure(request, exc, "crm_quotation_item_delete_failed")
    return _delete(request, db, user, quotation_item_service, targets, "crm_quotation_item_delete_failed")


@quotations_router.delete("/quotation-items/{item_id}", response_model=DeleteResult)
def delete_quotation_item(
    request: Request,
    item_id: str,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> DeleteResult | JSONResponse:
    return _delete(request, db, user, quotation_item_service, [item_id], "crm_quotation_item_delete_failed")


@interactions_router.get("/interactions", response_model=list[InteractionRead])
def list_interactions(
    request: Request,
    organization_id: str | None = Query(default=None),
    contact_id: str | None = Query(default=None),
    deal_id: str | None = Query(default=None),
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> list[InteractionRead] | JSONResponse:
    try:
        return interaction_service.list(db, organization_id=organization_id, contact_id=contact_id, deal_id=deal_id)
    except HTTPException as exc:
        return _failure(request, exc, "crm_interaction_list_failed")


@interactions_router.get("/interactions/{interaction_id}", response_model=InteractionRead)
def get_interaction(
    request: Request,
    interaction_id: str,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> InteractionRead | JSONResponse:
    try:
        return interaction_service.get(db, interaction_id)
    except HTTPException as exc:
        return _failure(request, exc, "crm_interaction_get_failed")


@interactions_router.post("/interactions", response_model=InteractionRead)
def put_interaction(
    request: Request,
    dto: InteractionWrite,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> InteractionRead | JSONResponse:
    try:
        return interaction_service.put(db, user, dto)
    except HTTPException as exc:
        return _failure(request, exc, "crm_interaction_put_failed")


@interactions_router.delete("/interactions", response_model=DeleteResult)
def delete_interactions(
    request: Request,
    id: str | None = Query(default=None),
    ids: str | None = Query(default=None),
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> DeleteResult | JSONResponse:
    try:
        targets = parse_id_list(id, ids)
    except HTTPException as exc:
        return _failure(request, exc, "crm_interaction_delete_failed")
    return _delete(request, db, user, interaction_service, targets, "crm_interaction_delete_failed")


@interactions_router.delete("/interactions/{interaction_id}", response_model=DeleteResult)
def delete_interaction(
    request: Request,
    interaction_id: str,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> DeleteResult | JSONResponse:
    return _delete(request, db, user, interaction_service, [interaction_id], "crm_interaction_delete_failed")


@state_router.get("/state", response_model=CRMStateRead)
def get_state(
    request: Request,
    db: Session = Depends(get_db),
    user: ActorUser = Depends(get_current_user),
) -> CRMStateRead | JSONResponse:
    try:
        return crm_state_service.load(db)
    except HTTPException as exc:
        return _failure(request, exc, "crm_state_failed")
