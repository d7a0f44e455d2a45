"""Webhook handler interface."""

from __future__ import annotations

from typing import Protocol

from fastapi import Request, Response
from sqlalchemy.orm import Session

from estate_api.core.config import Settings

WebhookResult = dict | Response


class WebhookHandler(Protocol):
    async def handle(
        self, request: Request, db: Session, config: Settings, **kwargs
    ) -> WebhookResult:
        """Handle a webhook request."""
