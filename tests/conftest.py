"""Shared fixtures: in-memory SQLite database, users and campaigns."""

import os
from datetime import datetime, timedelta
from decimal import Decimal

# Set before any application import reads it
os.environ["DATABASE_URL"] = "sqlite:///:memory:"

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from database.models import Base, User, UserType
from database import marketplace_models  # noqa: F401
from database.marketplace_models import (
    Campaign, CampaignStatusDB, CampaignApplication, ApplicationStatusDB,
    CampaignParticipant, ContentSubmission, ContentStatusDB, ContentTypeDB,
)
from core.settlement import SimulatedSettlementGateway


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # pysqlite's own transaction handling breaks SAVEPOINT; let SQLAlchemy emit BEGIN
    @event.listens_for(engine, "connect")
    def do_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def do_begin(conn):
        conn.exec_driver_sql("BEGIN")

    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db(engine):
    Session = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    session = Session()
    yield session
    session.close()


@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    def _make_user(user_type=UserType.INFLUENCER, **kwargs):
        counter["n"] += 1
        user = User(
            email=kwargs.pop("email", f"{user_type.value}{counter['n']}@example.com"),
            name=kwargs.pop("name", f"{user_type.value.title()} {counter['n']}"),
            user_type=user_type,
            **kwargs,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make_user


@pytest.fixture
def brand(make_user):
    return make_user(UserType.BRAND)


@pytest.fixture
def influencer(make_user):
    return make_user(UserType.INFLUENCER)


@pytest.fixture
def admin(make_user):
    return make_user(UserType.ADMIN)


@pytest.fixture
def make_campaign(db):
    def _make_campaign(brand, status=CampaignStatusDB.ACTIVE, **kwargs):
        fields = {
            "title": "Summer Launch",
            "objective": "Awareness",
            "budget": Decimal("1000"),
            "start_date": datetime.utcnow() - timedelta(days=1),
            "end_date": datetime.utcnow() + timedelta(days=30),
        }
        fields.update(kwargs)
        campaign = Campaign(brand_id=brand.id, status=status, **fields)
        db.add(campaign)
        db.commit()
        db.refresh(campaign)
        return campaign

    return _make_campaign


@pytest.fixture
def make_participant(db):
    """Accepted application plus participant, as the application service would leave them."""
    def _make_participant(campaign, influencer):
        db.add(CampaignApplication(
            campaign_id=campaign.id,
            influencer_id=influencer.id,
            status=ApplicationStatusDB.ACCEPTED,
            responded_at=datetime.utcnow(),
        ))
        participant = CampaignParticipant(campaign_id=campaign.id, influencer_id=influencer.id)
        db.add(participant)
        db.commit()
        return participant

    return _make_participant


@pytest.fixture
def make_submission(db, make_participant):
    def _make_submission(campaign, influencer, status=ContentStatusDB.PENDING, amount=Decimal("200"), **kwargs):
        make_participant(campaign, influencer)
        content = ContentSubmission(
            campaign_id=campaign.id,
            influencer_id=influencer.id,
            content_type=kwargs.pop("content_type", ContentTypeDB.IMAGE),
            title=kwargs.pop("title", "Beach shoot"),
            status=status,
            amount=amount,
            **kwargs,
        )
        db.add(content)
        db.commit()
        db.refresh(content)
        return content

    return _make_submission


@pytest.fixture
def gateway():
    return SimulatedSettlementGateway()
