from __future__ import annotations

import logging
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any

from fastapi import HTTPException
from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode
from sqlalchemy import ColumnElement, Select, delete, or_, select, update
from sqlalchemy.orm import Session

from wemadeit import audit
from wemadeit.auth.models import User, UserSession
from wemadeit.core.database import atomic
from wemadeit.crm.models import (
    CRMContact,
    CRMDeal,
    CRMInteraction,
    CRMOrganization,
    CRMPayment,
    CRMProject,
    CRMQuotation,
    CRMQuotationItem,
    CRMTask,
    utcnow,
)
from wemadeit.metrics import observe_cascade, observe_cascade_rows


logger = logging.getLogger("wemadeit.crm")
tracer = trace.get_tracer(__name__)

Predicate = Callable[[str], ColumnElement[bool]]


@dataclass(frozen=True)
class DeletionStep:
    """One statement of a cascade plan.

    Rows of ``model`` matching ``predicate(root_id)`` are deleted, or, when
    ``detach`` names a column, that column is cleared instead.
    """

    label: str
    model: type[Any]
    predicate: Predicate
    detach: str | None = None

    def statement(self, root_id: str):  # type: ignore[no-untyped-def]
        criteria = self.predicate(root_id)
        if self.detach is None:
            stmt = delete(self.model).where(criteria)
        else:
            stmt = update(self.model).where(criteria).values({self.detach: None, "updated_at": utcnow()})
        return stmt.execution_options(synchronize_session=False)


def _organization_contacts(organization_id: str) -> Select[Any]:
    return select(CRMContact.id).where(CRMContact.organization_id == organization_id)


def _organization_deal_criteria(organization_id: str) -> ColumnElement[bool]:
    # Deals hang off the organization directly or through one of its contacts.
    return or_(
        CRMDeal.organization_id == organization_id,
        CRMDeal.contact_id.in_(_organization_contacts(organization_id)),
    )


def _organization_deals(organization_id: str) -> Select[Any]:
    return select(CRMDeal.id).where(_organization_deal_criteria(organization_id))


def _contact_deals(contact_id: str) -> Select[Any]:
    return select(CRMDeal.id).where(CRMDeal.contact_id == contact_id)


def _single_deal(deal_id: str) -> Select[Any]:
    return select(CRMDeal.id).where(CRMDeal.id == deal_id)


def _deal_dependents(deals: Callable[[str], Select[Any]]) -> tuple[DeletionStep, ...]:
    """Steps removing everything that only exists under a set of deals."""
    return (
        DeletionStep(
            "tasks",
            CRMTask,
            lambda root_id: CRMTask.project_id.in_(
                select(CRMProject.id).where(CRMProject.deal_id.in_(deals(root_id)))
            ),
        ),
        DeletionStep("projects", CRMProject, lambda root_id: CRMProject.deal_id.in_(deals(root_id))),
        DeletionStep(
            "quotation_items",
            CRMQuotationItem,
            lambda root_id: CRMQuotationItem.quotation_id.in_(
                select(CRMQuotation.id).where(CRMQuotation.deal_id.in_(deals(root_id)))
            ),
        ),
        DeletionStep("quotations", CRMQuotation, lambda root_id: CRMQuotation.deal_id.in_(deals(root_id))),
        DeletionStep("payments", CRMPayment, lambda root_id: CRMPayment.deal_id.in_(deals(root_id))),
    )


ORGANIZATION_PLAN: tuple[DeletionStep, ...] = (
    DeletionStep(
        "interactions.by_contact",
        CRMInteraction,
        lambda root_id: CRMInteraction.contact_id.in_(_organization_contacts(root_id)),
    ),
    DeletionStep(
        "interactions.by_deal",
        CRMInteraction,
        lambda root_id: CRMInteraction.deal_id.in_(_organization_deals(root_id)),
    ),
    *_deal_dependents(_organization_deals),
    DeletionStep(
        "interactions.by_organization",
        CRMInteraction,
        lambda root_id: CRMInteraction.organization_id == root_id,
    ),
    DeletionStep("deals", CRMDeal, _organization_deal_criteria),
    DeletionStep("contacts", CRMContact, lambda root_id: CRMContact.organization_id == root_id),
    DeletionStep("organization", CRMOrganization, lambda root_id: CRMOrganization.id == root_id),
)

CONTACT_PLAN: tuple[DeletionStep, ...] = (
    DeletionStep("interactions.by_contact", CRMInteraction, lambda root_id: CRMInteraction.contact_id == root_id),
    DeletionStep(
        "interactions.by_deal",
        CRMInteraction,
        lambda root_id: CRMInteraction.deal_id.in_(_contact_deals(root_id)),
    ),
    *_deal_dependents(_contact_deals),
    DeletionStep("deals", CRMDeal, lambda root_id: CRMDeal.contact_id == root_id),
    DeletionStep("contact", CRMContact, lambda root_id: CRMContact.id == root_id),
)

DEAL_PLAN: tuple[DeletionStep, ...] = (
    *_deal_dependents(_single_deal),
    DeletionStep("interactions", CRMInteraction, lambda root_id: CRMInteraction.deal_id == root_id),
    DeletionStep("deal", CRMDeal, lambda root_id: CRMDeal.id == root_id),
)

PROJECT_PLAN: tuple[DeletionStep, ...] = (
    DeletionStep("tasks", CRMTask, lambda root_id: CRMTask.project_id == root_id),
    DeletionStep("project", CRMProject, lambda root_id: CRMProject.id == root_id),
)

QUOTATION_PLAN: tuple[DeletionStep, ...] = (
    DeletionStep("quotation_items", CRMQuotationItem, lambda root_id: CRMQuotationItem.quotation_id == root_id),
    DeletionStep("quotation", CRMQuotation, lambda root_id: CRMQuotation.id == root_id),
)

USER_PLAN: tuple[DeletionStep, ...] = (
    DeletionStep("tasks.owner", CRMTask, lambda root_id: CRMTask.owner_user_id == root_id, detach="owner_user_id"),
    DeletionStep(
        "interactions.user",
        CRMInteraction,
        lambda root_id: CRMInteraction.user_id == root_id,
        detach="user_id",
    ),
    DeletionStep(
        "quotations.created_by",
        CRMQuotation,
        lambda root_id: CRMQuotation.created_by_user_id == root_id,
        detach="created_by_user_id",
    ),
    DeletionStep("sessions", UserSession, lambda root_id: UserSession.user_id == root_id),
    DeletionStep("user", User, lambda root_id: User.id == root_id),
)

CASCADE_PLANS: dict[str, tuple[DeletionStep, ...]] = {
    "organization": ORGANIZATION_PLAN,
    "contact": CONTACT_PLAN,
    "deal": DEAL_PLAN,
    "project": PROJECT_PLAN,
    "quotation": QUOTATION_PLAN,
    "user": USER_PLAN,
}

ROOT_MODELS: dict[str, type[Any]] = {
    "organization": CRMOrganization,
    "contact": CRMContact,
    "deal": CRMDeal,
    "project": CRMProject,
    "quotation": CRMQuotation,
    "user": User,
}


class CascadeEngine:
    def plan_for(self, root: str) -> tuple[DeletionStep, ...]:
        try:
            return CASCADE_PLANS[root]
        except KeyError:
            raise ValueError(f"no cascade plan for {root}") from None

    def apply(
        self,
        session: Session,
        root: str,
        root_id: str,
        plan: Sequence[DeletionStep] | None = None,
    ) -> dict[str, int]:
        """Run every step of a plan inside the caller's transaction."""
        steps = plan if plan is not None else self.plan_for(root)
        counts: dict[str, int] = {}
        for step in steps:
            result = session.execute(step.statement(root_id))
            affected = result.rowcount or 0
            counts[step.label] = counts.get(step.label, 0) + affected
            observe_cascade_rows(root, step.label, affected)
        return counts

    def delete(
        self,
        session: Session,
        root: str,
        root_id: str,
        *,
        actor_user_id: str | None = None,
        plan: Sequence[DeletionStep] | None = None,
    ) -> bool:
        """Delete ``root_id`` and its dependents atomically.

        Returns False without touching anything when the root does not exist.
        """
        model = ROOT_MODELS[root]
        started = time.perf_counter()
        with tracer.start_as_current_span(f"crm.cascade.{root}") as span:
            span.set_attribute("crm.cascade.root", root)
            span.set_attribute("crm.cascade.root_id", root_id)
            try:
                with atomic(session, f"delete {root}"):
                    if session.get(model, root_id) is None:
                        span.set_attribute("crm.cascade.found", False)
                        return False
                    counts = self.apply(session, root, root_id, plan)
            except HTTPException as exc:
                span.set_status(Status(StatusCode.ERROR, str(exc.detail)))
                observe_cascade(root, "failed", time.perf_counter() - started)
                logger.warning(
                    "cascade.failed",
                    extra={"root": root, "entity_id": root_id, "actor_user_id": actor_user_id, "error": str(exc.detail)},
                )
                raise

            span.set_attribute("crm.cascade.found", True)
            span.set_attribute("crm.cascade.rows", sum(counts.values()))

        observe_cascade(root, "deleted", time.perf_counter() - started)
        logger.info(
            "cascade.deleted",
            extra={"root": root, "entity_id": root_id, "actor_user_id": actor_user_id, "rows": counts},
        )
        audit.record(
            actor_user_id=actor_user_id,
            entity_type=f"crm.{root}",
            entity_id=root_id,
            action="delete",
            before=None,
            after={"removed": counts},
        )
        return True


cascade_engine = CascadeEngine()
