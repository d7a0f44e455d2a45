"""Billing provider event handler.

Events reach this endpoint already verified by the forwarding job, so the
payload is plain JSON:

    {"type": "invoice.payment_failed", "organization_id": "...",
     "invoice_id": "in_...", "subscription_id": "sub_..."}

When organization_id is absent the organization is resolved through the
billing profile holding subscription_id.
"""

from __future__ import annotations

import json
import logging
from uuid import UUID

from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse
from sqlalchemy import select
from sqlalchemy.orm import Session

from estate_api.core.config import Settings
from estate_api.db.models import BillingProfile
from estate_api.services import billing_event_service

logger = logging.getLogger(__name__)

CHECKOUT_COMPLETED = "checkout.session.completed"
PAYMENT_SUCCEEDED = "invoice.payment_succeeded"
PAYMENT_FAILED = "invoice.payment_failed"
SUBSCRIPTION_DELETED = "customer.subscription.deleted"

HANDLED_EVENTS = {CHECKOUT_COMPLETED, PAYMENT_SUCCEEDED, PAYMENT_FAILED, SUBSCRIPTION_DELETED}


def _error(message: str) -> JSONResponse:
    return JSONResponse(status_code=400, content={"error": message})


def _optional_str(payload: dict, key: str) -> str | None:
    value = payload.get(key)
    return value if isinstance(value, str) and value else None


def resolve_organization_id(db: Session, payload: dict) -> UUID | None:
    raw = payload.get("organization_id")
    if raw is not None:
        try:
            return UUID(str(raw))
        except ValueError:
            return None

    subscription_id = _optional_str(payload, "subscription_id")
    if not subscription_id:
        return None
    return db.execute(
        select(BillingProfile.organization_id).where(
            BillingProfile.stripe_subscription_id == subscription_id
        )
    ).scalar_one_or_none()


def dispatch_event(
    db: Session, event_type: str, org_id: UUID, payload: dict, config: Settings
) -> bool:
    """Apply one billing event. Returns True if the account status changed."""
    if event_type == CHECKOUT_COMPLETED:
        return billing_event_service.activate(db, org_id, "Checkout completed")
    if event_type == PAYMENT_SUCCEEDED:
        # Only recovers a payment_failed account; renewals are a no-op here
        return billing_event_service.recover_payment(db, org_id)
    if event_type == PAYMENT_FAILED:
        return billing_event_service.mark_payment_failed(
            db, org_id, invoice_id=_optional_str(payload, "invoice_id"), config=config
        )
    if event_type == SUBSCRIPTION_DELETED:
        return billing_event_service.mark_unsubscribed(
            db,
            org_id,
            subscription_id=_optional_str(payload, "subscription_id"),
            config=config,
        )
    raise ValueError(f"Unhandled event type: {event_type}")


class BillingEventWebhookHandler:
    async def handle(
        self, request: Request, db: Session, config: Settings, **kwargs
    ) -> dict | JSONResponse:
        body = await request.body()

        # Check payload size
        if len(body) > config.WEBHOOK_MAX_PAYLOAD_BYTES:
            logger.warning("Billing webhook payload too large")
            raise HTTPException(status_code=413, detail="Payload too large")

        try:
            payload = json.loads(body or b"{}")
        except (json.JSONDecodeError, UnicodeDecodeError):
            logger.warning("Billing webhook invalid JSON")
            return _error("Invalid JSON")
        if not isinstance(payload, dict):
            return _error("Invalid event payload")

        event_type = payload.get("type")
        if not isinstance(event_type, str) or not event_type:
            return _error("Event type required")

        if event_type not in HANDLED_EVENTS:
            logger.info("Billing webhook: unhandled event type %s", event_type)
            return {"received": True, "event_type": event_type, "changed": False}

        org_id = resolve_organization_id(db, payload)
        if org_id is None:
            logger.warning("Billing webhook: no organization for %s event", event_type)
            return _error("Organization not found")

        try:
            changed = dispatch_event(db, event_type, org_id, payload, config)
        except ValueError as exc:
            logger.warning("Billing webhook: %s event for org=%s rejected: %s", event_type, org_id, exc)
            return _error(str(exc))

        return {"received": True, "event_type": event_type, "changed": changed}
