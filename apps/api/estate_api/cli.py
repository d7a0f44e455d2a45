"""CLI tools for account administration."""

import json
from datetime import datetime, timedelta, timezone

import click

from estate_api.db.enums import AccountStatus, LifecycleTrigger
from estate_api.db.models import Organization
from estate_api.db.session import SessionLocal
from estate_api.services import lifecycle_service


@click.group()
def cli():
    """Estate CLI tools."""
    pass


@cli.command()
@click.option("--name", required=True, help="Organization name")
@click.option("--contact-email", required=True, help="Billing contact email address")
@click.option("--trial-days", default=14, show_default=True, help="Trial length in days")
def create_org(name: str, contact_email: str, trial_days: int):
    """
    Create an organization at the start of its trial.

    Example:
        python -m estate_api.cli create-org --name "Acme Estates" --contact-email "ops@acme.com"
    """
    db = SessionLocal()
    try:
        trial_ends_at = datetime.now(timezone.utc) + timedelta(days=trial_days)
        org = Organization(
            name=name,
            contact_email=contact_email.lower(),
            account_status=AccountStatus.TRIAL.value,
            trial_ends_at=trial_ends_at,
        )
        db.add(org)
        db.commit()

        click.echo(f"✓ Created organization: {name}")
        click.echo(f"  ID: {org.id}")
        click.echo(f"  Trial ends: {trial_ends_at.isoformat()}")
    except Exception as e:
        db.rollback()
        click.echo(f"❌ Error: {e}")
        raise SystemExit(1)
    finally:
        db.close()


@cli.command()
@click.option(
    "--now",
    "now_str",
    default=None,
    help="Evaluate as of this ISO-8601 instant instead of the current time",
)
@click.option("--strict", is_flag=True, help="Exit non-zero if any organization failed")
def run_lifecycle(now_str: str | None, strict: bool):
    """
    Run the account lifecycle check once, as the scheduler would.

    Example:
        python -m estate_api.cli run-lifecycle --strict
    """
    now = datetime.fromisoformat(now_str) if now_str else None
    db = SessionLocal()
    try:
        results = lifecycle_service.run_account_lifecycle(
            db, now, triggered_by=LifecycleTrigger.MANUAL
        )
    finally:
        db.close()

    click.echo(json.dumps(results, indent=2))
    if results["errors"]:
        click.echo(f"⚠ {len(results['errors'])} organization(s) failed")
        if strict:
            raise SystemExit(1)


if __name__ == "__main__":
    cli()
