from __future__ import annotations

import logging

from sqlalchemy import func, or_, select, update
from sqlalchemy.orm import Session

from wemadeit.auth.models import User
from wemadeit.core.config import Settings
from wemadeit.core.database import atomic
from wemadeit.core.security import hash_password
from wemadeit.crm.models import CRMDeal, CRMOrganization, CRMPipeline, utcnow
from wemadeit.crm.repositories import (
    contact_repository,
    deal_repository,
    organization_repository,
    pipeline_repository,
    pipeline_stage_repository,
    project_repository,
    task_repository,
)


logger = logging.getLogger("wemadeit.crm")

DEFAULT_STAGES = (
    ("Lead", "#CF8445", 10.0),
    ("Qualified", "#DC9F68", 30.0),
    ("Proposal", "#E9C29A", 55.0),
    ("Won", "#22C55E", 100.0),
    ("Lost", "#64748B", 0.0),
)


def seed_if_needed(session: Session, settings: Settings) -> list[str]:
    """Bring an empty or partially initialised store up to a usable state.

    Safe to run on every start: each step only acts when its data is missing.
    Returns the names of the steps that created something.
    """
    seeded: list[str] = []
    with atomic(session, "seed"):
        if _seed_admin(session, settings):
            seeded.append("admin")

        pipeline_id, created = _ensure_pipeline(session)
        if created:
            seeded.append("pipeline")
        if _ensure_stages(session, pipeline_id):
            seeded.append("stages")

        first_stage = pipeline_stage_repository.first_stage(session, pipeline_id)
        stage_id = first_stage.id if first_stage is not None else None
        if stage_id is not None and _backfill_deal_stages(session, stage_id):
            seeded.append("deal_stages")

        if session.scalar(select(func.count()).select_from(CRMOrganization)) == 0:
            _seed_demo_data(session, stage_id)
            seeded.append("demo")

    if seeded:
        logger.info("crm.seeded", extra={"seeded": seeded})
    return seeded


def _seed_admin(session: Session, settings: Settings) -> bool:
    if session.scalar(select(func.count()).select_from(User)) > 0:
        return False
    email = settings.admin_email.strip().lower() or "admin@wemadeit.local"
    password = settings.admin_password if settings.admin_password.strip() else "admin"
    name = settings.admin_name.strip() or "Admin"
    session.add(User(email_address=email, name=name, role="admin", password_hash=hash_password(password)))
    session.flush()
    return True


def _ensure_pipeline(session: Session) -> tuple[str, bool]:
    pipeline = session.scalar(select(CRMPipeline).order_by(*pipeline_repository.order_by()).limit(1))
    if pipeline is not None:
        return pipeline.id, False
    pipeline = pipeline_repository.put(
        session,
        {"name": "Sales Pipeline", "description": "Default sales stages.", "is_default": True},
    )
    return pipeline.id, True


def _ensure_stages(session: Session, pipeline_id: str) -> bool:
    if pipeline_stage_repository.first_stage(session, pipeline_id) is not None:
        return False
    for position, (name, color, probability) in enumerate(DEFAULT_STAGES, start=1):
        pipeline_stage_repository.put(
            session,
            {
                "pipeline_id": pipeline_id,
                "name": name,
                "color": color,
                "position": position,
                "probability": probability,
            },
        )
    return True


def _backfill_deal_stages(session: Session, stage_id: str) -> int:
    result = session.execute(
        update(CRMDeal)
        .where(or_(CRMDeal.pipeline_stage_id.is_(None), CRMDeal.pipeline_stage_id == ""))
        .values(pipeline_stage_id=stage_id, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    return result.rowcount or 0


def _seed_demo_data(session: Session, stage_id: str | None) -> None:
    organization = organization_repository.put(
        session,
        {
            "name": "Example Studio",
            "industry": "Design + Engineering",
            "website": "https://example.com",
            "email": "hello@example.com",
            "phone": "+1 555 000 0000",
            "billing_email": "billing@example.com",
            "address": "123 Main Street",
            "city": "New York",
            "country": "US",
            "notes": "Seeded organization.",
        },
    )
    contact = contact_repository.put(
        session,
        {
            "organization_id": organization.id,
            "first_name": "Avery",
            "last_name": "Client",
            "job_title": "Operations",
            "email": "avery@example.com",
            "primary_contact": True,
        },
    )
    deal = deal_repository.put(
        session,
        {
            "organization_id": organization.id,
            "contact_id": contact.id,
            "pipeline_stage_id": stage_id,
            "title": "Website refresh",
            "description": "Design + build marketing site refresh.",
            "value": 12000.0,
            "currency": "USD",
            "status": "open",
            "probability": 35,
            "source": "Referral",
        },
    )
    project = project_repository.put(
        session,
        {
            "deal_id": deal.id,
            "name": "Website refresh",
            "description": "Project created from the initial deal.",
            "code": "WM-001",
            "status": "active",
            "budget": 12000.0,
            "currency": "USD",
        },
    )
    task_repository.put(
        session,
        {
            "project_id": project.id,
            "title": "Kickoff call",
            "description": "Schedule and run kickoff with stakeholder list.",
            "status": "todo",
            "priority": 1,
            "estimated_hours": 1.0,
            "actual_hours": 0.0,
        },
    )
