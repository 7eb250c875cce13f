from __future__ import annotations

from collections.abc import Generator
from datetime import datetime, timedelta, timezone

import pytest
from fastapi import HTTPException
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from wemadeit.core.database import Base
from wemadeit.crm.models import CRMPipeline
from wemadeit.crm.schemas import (
    ContactWrite,
    DealWrite,
    OrganizationWrite,
    PipelineStageInline,
    PipelineStageWrite,
    PipelineWrite,
)
from wemadeit.crm.service import (
    ActorUser,
    contact_service,
    deal_service,
    organization_service,
    pipeline_service,
    pipeline_stage_service,
)


ACTOR = ActorUser(user_id="user-1", role="admin")
T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)


@pytest.fixture()
def db_session() -> Generator[Session, None, None]:
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


def _pipeline(session: Session, name: str, *, minutes: int, is_default: bool = False, stages: tuple[str, ...] = ()):  # type: ignore[no-untyped-def]
    return pipeline_service.put(
        session,
        ACTOR,
        PipelineWrite(
            name=name,
            is_default=is_default,
            created_at=T0 + timedelta(minutes=minutes),
            stages=[PipelineStageInline(name=stage_name) for stage_name in stages],
        ),
    )


def _deal(session: Session, stage_id: str | None, title: str = "Deal"):  # type: ignore[no-untyped-def]
    organization = organization_service.put(session, ACTOR, OrganizationWrite(name=f"{title} Org"))
    contact = contact_service.put(session, ACTOR, ContactWrite(organization_id=organization.id, first_name="Pat"))
    return deal_service.put(
        session,
        ACTOR,
        DealWrite(
            organization_id=organization.id,
            contact_id=contact.id,
            pipeline_stage_id=stage_id,
            title=title,
        ),
    )


def _default_ids(session: Session) -> list[str]:
    return [pipeline.id for pipeline in pipeline_service.list(session) if pipeline.is_default]


def test_first_pipeline_becomes_default_even_when_not_requested(db_session: Session) -> None:
    pipeline = _pipeline(db_session, "Sales", minutes=0)

    assert pipeline.is_default is True
    assert _default_ids(db_session) == [pipeline.id]


def test_new_default_clears_previous_default(db_session: Session) -> None:
    first = _pipeline(db_session, "Sales", minutes=0, is_default=True)
    second = _pipeline(db_session, "Support", minutes=1, is_default=True)

    assert _default_ids(db_session) == [second.id]
    assert pipeline_service.get(db_session, first.id).is_default is False


def test_non_default_pipeline_leaves_existing_default(db_session: Session) -> None:
    first = _pipeline(db_session, "Sales", minutes=0, is_default=True)
    _pipeline(db_session, "Support", minutes=1)

    assert _default_ids(db_session) == [first.id]


def test_inline_stages_are_positioned_in_order(db_session: Session) -> None:
    pipeline = _pipeline(db_session, "Sales", minutes=0, stages=("Lead", "Proposal", "Won"))

    assert [(stage.name, stage.position) for stage in pipeline.stages] == [
        ("Lead", 1),
        ("Proposal", 2),
        ("Won", 3),
    ]


def test_stage_without_position_is_appended(db_session: Session) -> None:
    pipeline = _pipeline(db_session, "Sales", minutes=0, stages=("Lead", "Won"))

    stage = pipeline_stage_service.put(
        db_session,
        ACTOR,
        PipelineStageWrite(pipeline_id=pipeline.id, name="Lost", probability=0),
    )

    assert stage.position == 3
    updated = pipeline_stage_service.put(
        db_session,
        ACTOR,
        PipelineStageWrite(id=stage.id, pipeline_id=pipeline.id, name="Lost deals", position=0),
    )
    assert updated.position == 3


def test_stage_requires_existing_pipeline(db_session: Session) -> None:
    with pytest.raises(HTTPException) as exc_info:
        pipeline_stage_service.put(db_session, ACTOR, PipelineStageWrite(pipeline_id="missing", name="Lead"))

    assert exc_info.value.status_code == 404
    assert exc_info.value.detail == "pipeline not found"


def test_deal_without_stage_lands_in_default_pipeline_first_stage(db_session: Session) -> None:
    _pipeline(db_session, "Old", minutes=0, stages=("Old lead",))
    default = _pipeline(db_session, "Sales", minutes=1, is_default=True, stages=("Lead", "Won"))

    deal = _deal(db_session, None)

    assert deal.pipeline_stage_id == default.stages[0].id


def test_deal_without_stage_and_no_pipelines(db_session: Session) -> None:
    deal = _deal(db_session, None)

    assert deal.pipeline_stage_id is None


def test_deal_with_unknown_stage_is_rejected(db_session: Session) -> None:
    with pytest.raises(HTTPException) as exc_info:
        _deal(db_session, "missing-stage")

    assert exc_info.value.status_code == 404
    assert exc_info.value.detail == "pipeline stage not found"


def test_deleting_default_pipeline_reassigns_deals_and_promotes_fallback(db_session: Session) -> None:
    fallback = _pipeline(db_session, "Support", minutes=0, stages=("Triage", "Done"))
    doomed = _pipeline(db_session, "Sales", minutes=1, is_default=True, stages=("Lead", "Won"))
    deal = _deal(db_session, doomed.stages[1].id)

    assert pipeline_service.delete_pipeline(db_session, ACTOR, doomed.id) is True

    assert deal_service.get(db_session, deal.id).pipeline_stage_id == fallback.stages[0].id
    assert _default_ids(db_session) == [fallback.id]
    assert pipeline_stage_service.list(db_session, pipeline_id=doomed.id) == []
    with pytest.raises(HTTPException):
        pipeline_service.get(db_session, doomed.id)


def test_deleting_default_pipeline_with_stageless_fallback_clears_deal_stage(db_session: Session) -> None:
    stageless = _pipeline(db_session, "Backlog", minutes=0)
    doomed = _pipeline(db_session, "Sales", minutes=1, is_default=True, stages=("Lead",))
    deal = _deal(db_session, doomed.stages[0].id)

    assert pipeline_service.delete_pipeline(db_session, ACTOR, doomed.id) is True

    assert deal_service.get(db_session, deal.id).pipeline_stage_id is None
    assert _default_ids(db_session) == [stageless.id]
    assert [pipeline.id for pipeline in pipeline_service.list(db_session)] == [stageless.id]


def test_deleting_non_default_pipeline_keeps_default(db_session: Session) -> None:
    default = _pipeline(db_session, "Sales", minutes=0, is_default=True, stages=("Lead",))
    other = _pipeline(db_session, "Support", minutes=1, stages=("Triage",))
    deal = _deal(db_session, other.stages[0].id)

    assert pipeline_service.delete(db_session, ACTOR, other.id) is True

    assert _default_ids(db_session) == [default.id]
    assert deal_service.get(db_session, deal.id).pipeline_stage_id == default.stages[0].id


def test_deleting_only_pipeline_clears_deal_stages(db_session: Session) -> None:
    only = _pipeline(db_session, "Sales", minutes=0, stages=("Lead",))
    deal = _deal(db_session, only.stages[0].id)

    assert pipeline_service.delete_pipeline(db_session, ACTOR, only.id) is True

    assert deal_service.get(db_session, deal.id).pipeline_stage_id is None
    assert pipeline_service.list(db_session) == []


def test_deleting_missing_pipeline_is_a_noop(db_session: Session) -> None:
    pipeline = _pipeline(db_session, "Sales", minutes=0)

    assert pipeline_service.delete_pipeline(db_session, ACTOR, "missing") is False
    assert _default_ids(db_session) == [pipeline.id]


def test_deleting_stage_moves_deals_to_lowest_remaining_stage(db_session: Session) -> None:
    pipeline = _pipeline(db_session, "Sales", minutes=0, stages=("Lead", "Proposal", "Won"))
    lead, proposal, won = pipeline.stages
    deal = _deal(db_session, proposal.id)

    assert pipeline_stage_service.delete_stage(db_session, ACTOR, proposal.id) is True
    assert deal_service.get(db_session, deal.id).pipeline_stage_id == lead.id

    assert pipeline_stage_service.delete_stage(db_session, ACTOR, lead.id) is True
    assert deal_service.get(db_session, deal.id).pipeline_stage_id == won.id

    assert pipeline_stage_service.delete_stage(db_session, ACTOR, won.id) is True
    assert deal_service.get(db_session, deal.id).pipeline_stage_id is None


def test_deleting_missing_stage_is_a_noop(db_session: Session) -> None:
    assert pipeline_stage_service.delete_stage(db_session, ACTOR, "missing") is False


def test_repair_demotes_all_but_newest_default(db_session: Session) -> None:
    older = CRMPipeline(name="Older", is_default=True, created_at=T0, updated_at=T0)
    newer = CRMPipeline(name="Newer", is_default=True, created_at=T0 + timedelta(days=1), updated_at=T0)
    db_session.add_all([older, newer])
    db_session.commit()
    newer_id = newer.id

    pipeline_service.ensure_single_default(db_session)
    db_session.commit()

    assert _default_ids(db_session) == [newer_id]


def test_repair_promotes_newest_when_no_default(db_session: Session) -> None:
    older = CRMPipeline(name="Older", is_default=False, created_at=T0, updated_at=T0)
    newer = CRMPipeline(name="Newer", is_default=False, created_at=T0 + timedelta(days=1), updated_at=T0)
    db_session.add_all([older, newer])
    db_session.commit()
    newer_id = newer.id

    pipeline_service.ensure_single_default(db_session)
    db_session.commit()

    assert _default_ids(db_session) == [newer_id]


def test_replacing_default_with_non_default_promotes_newest(db_session: Session) -> None:
    older = _pipeline(db_session, "Sales", minutes=0, is_default=True)
    newer = _pipeline(db_session, "Support", minutes=1)

    pipeline_service.put(
        db_session,
        ACTOR,
        PipelineWrite(id=older.id, name="Sales", is_default=False),
    )

    assert _default_ids(db_session) == [newer.id]


def test_stage_relationship_is_read_only() -> None:
    stages = CRMPipeline.stages.property

    assert stages.viewonly is True
    assert stages.passive_deletes is False
