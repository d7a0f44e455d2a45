"""Tests for the administration CLI."""

import json
from datetime import timedelta

import pytest
from click.testing import CliRunner
from sqlalchemy import select
from sqlalchemy.orm import sessionmaker

from estate_api import cli
from estate_api.db.enums import AccountStatus, LifecycleTrigger
from estate_api.db.models import AccountLifecycleLog, Organization
from estate_api.db.types import utcnow


@pytest.fixture
def cli_session(engine, monkeypatch):
    """Point the CLI at the test database."""
    monkeypatch.setattr(cli, "SessionLocal", sessionmaker(bind=engine, autoflush=False))


def test_create_org_starts_trial(db, cli_session):
    result = CliRunner().invoke(
        cli.cli,
        ["create-org", "--name", "Acme Estates", "--contact-email", "Ops@Acme.com"],
    )

    assert result.exit_code == 0, result.output
    org = db.execute(select(Organization)).scalar_one()
    assert org.name == "Acme Estates"
    assert org.contact_email == "ops@acme.com"
    assert org.account_status == AccountStatus.TRIAL.value
    assert org.trial_ends_at > utcnow() + timedelta(days=13)


def test_run_lifecycle_logs_manual_trigger(db, make_org, cli_session):
    org = make_org(AccountStatus.TRIAL, trial_ends_at=utcnow() - timedelta(days=1))

    result = CliRunner().invoke(cli.cli, ["run-lifecycle"])

    assert result.exit_code == 0, result.output
    summary = json.loads(result.output)
    assert summary["expired_trials"] == 1
    log = db.execute(
        select(AccountLifecycleLog).where(AccountLifecycleLog.organization_id == org.id)
    ).scalar_one()
    assert log.triggered_by == LifecycleTrigger.MANUAL.value


def test_run_lifecycle_strict_fails_on_errors(db, make_org, cli_session, monkeypatch):
    make_org(AccountStatus.TRIAL, trial_ends_at=utcnow() - timedelta(days=1))

    def broken_query(*args, **kwargs):
        raise RuntimeError("statement timeout")

    monkeypatch.setattr(cli.lifecycle_service, "_select_expired_trials", broken_query)

    lenient = CliRunner().invoke(cli.cli, ["run-lifecycle"])
    strict = CliRunner().invoke(cli.cli, ["run-lifecycle", "--strict"])

    assert lenient.exit_code == 0
    assert strict.exit_code == 1
    assert "1 organization(s) failed" in strict.output


def test_run_lifecycle_accepts_explicit_now(db, make_org, cli_session):
    org = make_org(AccountStatus.TRIAL_EXPIRED, grace_period_ends_at=utcnow() + timedelta(days=5))
    later = (utcnow() + timedelta(days=6)).isoformat()

    result = CliRunner().invoke(cli.cli, ["run-lifecycle", "--now", later])

    assert result.exit_code == 0, result.output
    db.refresh(org)
    assert org.account_status == AccountStatus.ARCHIVED.value
