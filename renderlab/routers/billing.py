import logging

from fastapi import APIRouter, HTTPException, Depends, status, Request
from sqlalchemy.ext.asyncio import AsyncSession

from renderlab.core.database import get_db
from renderlab.core.exceptions import InvalidSignatureError, UnknownTierError
from renderlab.schemas.billing import WebhookResponse
from renderlab.services.stripe_service import stripe_service
from renderlab.services.subscription_service import subscription_service

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/webhook/stripe", response_model=WebhookResponse)
async def stripe_webhook(
    request: Request,
    db: AsyncSession = Depends(get_db)
):
    """
    Handle Stripe webhook events.

    Only signature-verified events reach the subscription sync. Any failure
    while applying an event returns 5xx so Stripe redelivers it.
    """
    payload = await request.body()
    signature = request.headers.get('stripe-signature')

    try:
        event = stripe_service.construct_event(payload, signature)
    except InvalidSignatureError as e:
        logger.warning("Rejected Stripe webhook: %s", e)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid Stripe signature"
        )

    event_id = event.get("id")
    logger.info("Stripe webhook received: %s id=%s", event.get("type"), event_id)

    try:
        result = await subscription_service.apply_event(db, event)
    except UnknownTierError as e:
        logger.error("Stripe event %s references an unknown tier (%s); check price configuration", event_id, e.tier)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Unknown subscription tier"
        )
    except Exception:
        logger.exception("Failed to apply Stripe event %s", event_id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Webhook processing failed"
        )

    action = result.get("action")
    message = "Event already processed" if action == "duplicate_event" else "Webhook processed"
    return WebhookResponse(success=True, message=message, action=action, event_id=event_id)
