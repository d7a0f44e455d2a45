"""Webhook handler registry."""

from __future__ import annotations

from estate_api.services.webhooks.base import WebhookHandler
from estate_api.services.webhooks.billing import BillingEventWebhookHandler
from estate_api.services.webhooks.resend import InboundReplyWebhookHandler

_HANDLERS: dict[str, WebhookHandler] = {
    "resend_replies": InboundReplyWebhookHandler(),
    "billing_events": BillingEventWebhookHandler(),
}


def get_handler(name: str) -> WebhookHandler:
    handler = _HANDLERS.get(name)
    if not handler:
        raise KeyError(f"Unknown webhook handler: {name}")
    return handler
