"""Resend inbound reply webhook handler."""

from __future__ import annotations

import json
import logging

from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from estate_api.core.config import Settings
from estate_api.services import reply_service

logger = logging.getLogger(__name__)

NO_EMAIL_ERROR = "No email address found"


def extract_reply_email(payload: dict) -> str | None:
    """Pick the reply address: data.to[0], then data.from, then top-level email."""
    data = payload.get("data")
    if not isinstance(data, dict):
        data = {}
    to = data.get("to")
    if isinstance(to, list):
        to = to[0] if to else None

    # Non-string values (objects, numbers) are not addresses
    for candidate in (to, data.get("from"), payload.get("email")):
        if isinstance(candidate, str) and candidate.strip():
            return candidate.strip()
    return None


class InboundReplyWebhookHandler:
    async def handle(
        self, request: Request, db: Session, config: Settings, **kwargs
    ) -> dict | JSONResponse:
        """
        Receive an inbound reply notification and cancel queued automation.

        Unknown addresses and profiles without queued emails are not errors;
        the provider only gets a 400 when the payload carries no address.
        """
        body = await request.body()

        # Check payload size
        if len(body) > config.WEBHOOK_MAX_PAYLOAD_BYTES:
            logger.warning("Inbound reply webhook payload too large")
            raise HTTPException(status_code=413, detail="Payload too large")

        try:
            payload = json.loads(body or b"{}")
        except (json.JSONDecodeError, UnicodeDecodeError):
            logger.warning("Inbound reply webhook invalid JSON")
            return JSONResponse(status_code=400, content={"error": "Invalid JSON"})
        if not isinstance(payload, dict):
            return JSONResponse(status_code=400, content={"error": NO_EMAIL_ERROR})

        reply_email = extract_reply_email(payload)
        if not reply_email:
            logger.info("Inbound reply webhook: no email address in payload")
            return JSONResponse(status_code=400, content={"error": NO_EMAIL_ERROR})

        return dict(reply_service.handle_inbound_reply(db, reply_email, config=config))
