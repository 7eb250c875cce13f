from __future__ import annotations

from collections.abc import Generator

import pytest
from fastapi import HTTPException
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from wemadeit.core.database import Base
from wemadeit.crm.models import utcnow
from wemadeit.crm.schemas import ContactWrite, DealWrite, OrganizationWrite, QuotationWrite
from wemadeit.crm.service import (
    ActorUser,
    contact_service,
    deal_service,
    format_quotation_number,
    organization_service,
    quotation_service,
)


ACTOR = ActorUser(user_id="user-1", role="sales")


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
def deal_id(db_session: Session) -> str:
    organization = organization_service.put(db_session, ACTOR, OrganizationWrite(name="Numbering Org"))
    contact = contact_service.put(db_session, ACTOR, ContactWrite(organization_id=organization.id, first_name="Nina"))
    deal = deal_service.put(
        db_session,
        ACTOR,
        DealWrite(organization_id=organization.id, contact_id=contact.id, title="Numbering Deal"),
    )
    return deal.id


def _quotation(session: Session, deal_id: str, number: str | None = None):  # type: ignore[no-untyped-def]
    return quotation_service.put(session, ACTOR, QuotationWrite(deal_id=deal_id, title="Quote", number=number))


def test_format_quotation_number_pads_to_three_digits() -> None:
    assert format_quotation_number(2024, 1) == "QUO-2024-001"
    assert format_quotation_number(2024, 42) == "QUO-2024-042"
    assert format_quotation_number(2024, 1000) == "QUO-2024-1000"


def test_first_number_of_a_year(db_session: Session) -> None:
    assert quotation_service.next_quotation_number(db_session, 2024) == "QUO-2024-001"


def test_next_number_follows_highest_existing(db_session: Session, deal_id: str) -> None:
    _quotation(db_session, deal_id, "QUO-2024-001")
    _quotation(db_session, deal_id, "QUO-2024-002")

    assert quotation_service.next_quotation_number(db_session, 2024) == "QUO-2024-003"


def test_next_number_widens_past_three_digits(db_session: Session, deal_id: str) -> None:
    _quotation(db_session, deal_id, "QUO-2024-999")
    assert quotation_service.next_quotation_number(db_session, 2024) == "QUO-2024-1000"

    _quotation(db_session, deal_id, "QUO-2024-1000")
    assert quotation_service.next_quotation_number(db_session, 2024) == "QUO-2024-1001"


def test_next_number_ignores_other_years_and_free_form_suffixes(db_session: Session, deal_id: str) -> None:
    _quotation(db_session, deal_id, "QUO-2023-050")
    _quotation(db_session, deal_id, "QUO-2024-007")
    _quotation(db_session, deal_id, "QUO-2024-draft")
    _quotation(db_session, deal_id, "Q-2024-900")

    assert quotation_service.next_quotation_number(db_session, 2024) == "QUO-2024-008"
    assert quotation_service.next_quotation_number(db_session, 2023) == "QUO-2023-051"
    assert quotation_service.next_quotation_number(db_session, 2025) == "QUO-2025-001"


def test_next_number_read_defaults_to_current_year(db_session: Session) -> None:
    result = quotation_service.next_number(db_session)

    assert result.year == utcnow().year
    assert result.number == f"QUO-{utcnow().year}-001"


def test_new_quotation_gets_generated_number_and_defaults(db_session: Session, deal_id: str) -> None:
    first = _quotation(db_session, deal_id)
    second = _quotation(db_session, deal_id)

    year = utcnow().year
    assert first.number == f"QUO-{year}-001"
    assert second.number == f"QUO-{year}-002"
    assert first.created_by_user_id == ACTOR.user_id
    assert first.public_token
    assert first.public_token != second.public_token
    assert first.version == 1


def test_replace_keeps_number_token_and_author(db_session: Session, deal_id: str) -> None:
    created = _quotation(db_session, deal_id)
    other_actor = ActorUser(user_id="user-2", role="sales")

    replaced = quotation_service.put(
        db_session,
        other_actor,
        QuotationWrite(id=created.id, deal_id=deal_id, title="Revised quote", version=0),
    )

    assert replaced.number == created.number
    assert replaced.public_token == created.public_token
    assert replaced.created_by_user_id == ACTOR.user_id
    assert replaced.title == "Revised quote"
    assert replaced.version == 1


def test_duplicate_number_is_a_conflict(db_session: Session, deal_id: str) -> None:
    _quotation(db_session, deal_id, "QUO-2024-001")

    with pytest.raises(HTTPException) as exc_info:
        _quotation(db_session, deal_id, "QUO-2024-001")

    assert exc_info.value.status_code == 409
    assert len(quotation_service.list(db_session)) == 1


def test_quotation_requires_existing_deal(db_session: Session) -> None:
    with pytest.raises(HTTPException) as exc_info:
        _quotation(db_session, "missing-deal")

    assert exc_info.value.status_code == 404
    assert exc_info.value.detail == "deal not found"
