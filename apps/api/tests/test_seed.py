from __future__ import annotations

from collections.abc import Generator

import pytest
from sqlalchemy import create_engine, select
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from wemadeit.auth.models import User
from wemadeit.core.config import Settings
from wemadeit.core.database import Base
from wemadeit.core.security import verify_password
from wemadeit.crm.models import CRMDeal, CRMOrganization, CRMPipeline, CRMPipelineStage, CRMProject, CRMTask
from wemadeit.crm.seed import DEFAULT_STAGES, seed_if_needed


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


@pytest.fixture()
def settings() -> Settings:
    return Settings(admin_email=" Owner@Example.com ", admin_password="s3cret", admin_name="Owner")


def test_seed_populates_empty_store(db_session: Session, settings: Settings) -> None:
    seeded = seed_if_needed(db_session, settings)

    assert seeded == ["admin", "pipeline", "stages", "demo"]

    admin = db_session.scalars(select(User)).one()
    assert admin.email_address == "owner@example.com"
    assert admin.role == "admin"
    assert verify_password("s3cret", admin.password_hash)

    pipeline = db_session.scalars(select(CRMPipeline)).one()
    assert pipeline.is_default is True
    stages = db_session.scalars(select(CRMPipelineStage).order_by(CRMPipelineStage.position)).all()
    assert [(stage.name, stage.color, stage.probability) for stage in stages] == list(DEFAULT_STAGES)
    assert [stage.position for stage in stages] == [1, 2, 3, 4, 5]

    deal = db_session.scalars(select(CRMDeal)).one()
    assert deal.title == "Website refresh"
    assert deal.pipeline_stage_id == stages[0].id
    assert db_session.scalars(select(CRMOrganization)).one().name == "Example Studio"
    assert db_session.scalars(select(CRMProject)).one().code == "WM-001"
    assert db_session.scalars(select(CRMTask)).one().title == "Kickoff call"


def test_seed_is_idempotent(db_session: Session, settings: Settings) -> None:
    seed_if_needed(db_session, settings)

    assert seed_if_needed(db_session, settings) == []
    assert len(db_session.scalars(select(CRMPipelineStage)).all()) == len(DEFAULT_STAGES)
    assert len(db_session.scalars(select(CRMOrganization)).all()) == 1


def test_seed_backfills_deals_without_stage(db_session: Session, settings: Settings) -> None:
    seed_if_needed(db_session, settings)
    deal = db_session.scalars(select(CRMDeal)).one()
    deal.pipeline_stage_id = None
    db_session.commit()

    assert seed_if_needed(db_session, settings) == ["deal_stages"]

    first_stage = db_session.scalars(select(CRMPipelineStage).order_by(CRMPipelineStage.position)).first()
    db_session.refresh(deal)
    assert deal.pipeline_stage_id == first_stage.id


def test_seed_reuses_existing_pipeline(db_session: Session, settings: Settings) -> None:
    db_session.add(CRMPipeline(name="Custom", is_default=True))
    db_session.commit()

    seeded = seed_if_needed(db_session, settings)

    assert "pipeline" not in seeded
    assert "stages" in seeded
    pipeline = db_session.scalars(select(CRMPipeline)).one()
    assert pipeline.name == "Custom"
    assert len(db_session.scalars(select(CRMPipelineStage)).all()) == len(DEFAULT_STAGES)


def test_seed_falls_back_to_default_admin_credentials(db_session: Session) -> None:
    seed_if_needed(db_session, Settings(admin_email="  ", admin_password="", admin_name=""))

    admin = db_session.scalars(select(User)).one()
    assert admin.email_address == "admin@wemadeit.local"
    assert admin.name == "Admin"
    assert verify_password("admin", admin.password_hash)
