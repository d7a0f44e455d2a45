"""
Test configuration and fixtures.

Provides:
- Fresh in-memory SQLite database per test (schema from the ORM models)
- Explicit Settings instance injected into services and the app
- HTTPX AsyncClient wired to the test session
- Factories for organizations, profiles and sequences
"""
import os
import uuid
from datetime import datetime, timezone
from typing import AsyncGenerator, Generator

# Must be set before estate_api.db.session builds its engine
os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from estate_api.core.config import Settings, get_settings
from estate_api.core.deps import get_db
from estate_api.db.base import Base
from estate_api.db.enums import AccountStatus, ProfileType, SubscriptionStatus
from estate_api.db.models import (
    BillingProfile,
    BuyerProfile,
    EmailSequence,
    EmailSequenceStep,
    Organization,
    SellerProfile,
)
from estate_api.main import app

SERVICE_ROLE_KEY = "test-service-role-key"
CRON_SECRET = "test-cron-secret"


# =============================================================================
# Configuration
# =============================================================================

@pytest.fixture(scope="function")
def settings() -> Settings:
    return Settings(
        DATABASE_URL="sqlite+pysqlite:///:memory:",
        SERVICE_ROLE_KEY=SERVICE_ROLE_KEY,
        CRON_SECRET=CRON_SECRET,
        _env_file=None,
    )


@pytest.fixture(scope="function")
def now() -> datetime:
    return datetime(2024, 1, 5, 12, 0, tzinfo=timezone.utc)


# =============================================================================
# Database Fixtures
# =============================================================================

@pytest.fixture(scope="function")
def engine():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture(scope="function")
def db(engine) -> Generator[Session, None, None]:
    """Session on an isolated database; app code may commit freely."""
    TestSession = sessionmaker(bind=engine, autoflush=False)
    session = TestSession()
    yield session
    session.close()


# =============================================================================
# Factories
# =============================================================================

@pytest.fixture(scope="function")
def make_org(db: Session):
    def _make_org(
        status: AccountStatus = AccountStatus.TRIAL,
        *,
        trial_ends_at: datetime | None = None,
        grace_period_ends_at: datetime | None = None,
        name: str = "Test Estates",
        contact_email: str | None = None,
    ) -> Organization:
        org = Organization(
            id=uuid.uuid4(),
            name=name,
            contact_email=contact_email or f"owner-{uuid.uuid4().hex[:8]}@test.com",
            account_status=status.value,
            trial_ends_at=trial_ends_at,
            grace_period_ends_at=grace_period_ends_at,
        )
        db.add(org)
        db.commit()
        return org

    return _make_org


@pytest.fixture(scope="function")
def make_billing_profile(db: Session):
    def _make_billing_profile(
        org: Organization,
        *,
        subscription_status: SubscriptionStatus | None = SubscriptionStatus.ACTIVE,
        card_expires_at: datetime | None = None,
    ) -> BillingProfile:
        profile = BillingProfile(
            organization_id=org.id,
            stripe_customer_id=f"cus_{uuid.uuid4().hex[:12]}",
            subscription_status=subscription_status.value if subscription_status else None,
            card_expires_at=card_expires_at,
        )
        db.add(profile)
        db.commit()
        return profile

    return _make_billing_profile


@pytest.fixture(scope="function")
def test_org(make_org) -> Organization:
    return make_org(AccountStatus.ACTIVE)


@pytest.fixture(scope="function")
def make_profile(db: Session, test_org: Organization):
    def _make_profile(
        profile_type: ProfileType = ProfileType.BUYER,
        *,
        email: str | None = None,
        stage: str = "lead",
        created_at: datetime | None = None,
    ):
        model = BuyerProfile if profile_type == ProfileType.BUYER else SellerProfile
        profile = model(
            id=uuid.uuid4(),
            organization_id=test_org.id,
            name="Jordan Example",
            email=email or f"client-{uuid.uuid4().hex[:8]}@test.com",
            stage=stage,
        )
        if created_at is not None:
            profile.created_at = created_at
        db.add(profile)
        db.commit()
        return profile

    return _make_profile


@pytest.fixture(scope="function")
def buyer(make_profile) -> BuyerProfile:
    return make_profile(ProfileType.BUYER)


@pytest.fixture(scope="function")
def seller(make_profile) -> SellerProfile:
    return make_profile(ProfileType.SELLER)


@pytest.fixture(scope="function")
def make_sequence(db: Session, test_org: Organization):
    def _make_sequence(
        profile_type: ProfileType = ProfileType.BUYER,
        *,
        delays: list[int] | tuple[int, ...] = (0, 24, 72),
        trigger_stage: str = "lead",
        name: str = "New buyer welcome",
        is_active: bool = True,
    ) -> EmailSequence:
        sequence = EmailSequence(
            id=uuid.uuid4(),
            organization_id=test_org.id,
            name=name,
            profile_type=profile_type.value,
            trigger_stage=trigger_stage,
            is_active=is_active,
        )
        sequence.steps = [
            EmailSequenceStep(
                step_number=i,
                template_key=f"{profile_type.value}_step_{i}",
                delay_hours=delay,
            )
            for i, delay in enumerate(delays, start=1)
        ]
        db.add(sequence)
        db.commit()
        return sequence

    return _make_sequence


# =============================================================================
# Client Fixtures
# =============================================================================

@pytest.fixture(scope="function")
async def client(db: Session, settings: Settings) -> AsyncGenerator[AsyncClient, None]:
    """AsyncClient bound to the test session and settings."""
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_settings] = lambda: settings

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as c:
        yield c

    app.dependency_overrides.clear()
