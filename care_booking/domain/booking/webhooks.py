"""Payment processor webhooks"""

import logging

from fastapi import APIRouter, Depends, Request

from ...dependencies import get_processor
from ...exceptions import InvalidTransitionError, NotFoundError
from .router import get_booking_service
from .state_machine import BookingStateMachine

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["Webhooks"])


@router.post("/payments")
async def payment_webhook(
    request: Request,
    processor=Depends(get_processor),
    service: BookingStateMachine = Depends(get_booking_service),
):
    """
    Stripe-signed payment events.

    payment_intent.succeeded confirms the appointment holding the intent,
    or refunds it once when the appointment was cancelled meanwhile;
    payment_intent.payment_failed cancels it while still pending. Other
    events are acknowledged and ignored.
    """
    payload = await request.body()
    event = processor.parse_event(payload, request.headers.get("Stripe-Signature"))
    event_type = event["type"]
    hold_ref = event["data"]["object"]["id"]
    logger.info(f"📥 Payment webhook {event_type} for {hold_ref}")

    if event_type == "payment_intent.succeeded":
        try:
            await service.confirm_by_hold_ref(hold_ref)
        except NotFoundError:
            logger.warning(f"⚠️ Payment succeeded for unknown hold {hold_ref}")
        except InvalidTransitionError as e:
            logger.error(f"❌ Payment succeeded for hold {hold_ref} but {e.message}")
            await service.refund_late_capture(hold_ref)
    elif event_type == "payment_intent.payment_failed":
        service.fail_hold(hold_ref)
    else:
        logger.debug(f"Ignoring payment event {event_type}")

    return {"received": True}
