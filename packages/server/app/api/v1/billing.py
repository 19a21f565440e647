"""
Payment gateway webhook endpoint.

POST /api/v1/billing/stripe-webhooks - Verify and apply a Stripe event
"""

from __future__ import annotations

from typing import Optional

import structlog
from fastapi import APIRouter, Depends, Header, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.database import get_session
from app.services import billing as billing_service
from hearth_shared.schemas.billing import WebhookAck

log = structlog.get_logger()
settings = get_settings()
router = APIRouter()


@router.post("/stripe-webhooks", response_model=WebhookAck, tags=["Billing"])
async def stripe_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(None, alias="stripe-signature"),
    session: AsyncSession = Depends(get_session),
):
    """
    Authenticate the delivery and apply it. Once the signature checks out the
    response is always 200; processing failures are logged, not returned.
    """
    payload = await request.body()
    try:
        event = billing_service.verify_webhook(
            payload,
            stripe_signature,
            settings.stripe_webhook_secret,
            settings.stripe_webhook_tolerance_seconds,
        )
    except billing_service.WebhookVerificationError as exc:
        log.warning("billing.webhook_rejected", reason=str(exc))
        raise HTTPException(status_code=400, detail=str(exc))

    outcome = await billing_service.process_event(session, event)
    log.info("billing.webhook_handled", event_id=event["id"], outcome=outcome.value)
    return WebhookAck()
