"""Webhooks router - external service integrations."""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from estate_api.core.config import Settings, get_settings
from estate_api.core.deps import get_db, verify_lifecycle_token
from estate_api.schemas.billing import BillingEventResponse
from estate_api.schemas.reply import InboundReplyResponse
from estate_api.services.webhooks.registry import get_handler

router = APIRouter()


@router.post(
    "/resend/replies",
    response_model=InboundReplyResponse,
    response_model_exclude_none=True,
)
async def receive_inbound_reply(
    request: Request,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    """Inbound reply from a customer: cancel their queued sequence emails."""
    handler = get_handler("resend_replies")
    return await handler.handle(request, db, settings)


@router.post(
    "/billing",
    response_model=BillingEventResponse,
    dependencies=[Depends(verify_lifecycle_token)],
)
async def receive_billing_event(
    request: Request,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    """Verified billing provider event, forwarded with the internal bearer token."""
    handler = get_handler("billing_events")
    return await handler.handle(request, db, settings)
