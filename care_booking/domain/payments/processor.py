"""Payment processor collaborator - protocol plus the Stripe Connect adapter"""

import logging
from dataclasses import dataclass
from typing import Optional, Protocol

import stripe

from ...config import PAYMENT_CURRENCY, STRIPE_SECRET_KEY, STRIPE_WEBHOOK_SECRET
from ...exceptions import ProcessorError, ValidationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HoldResult:
    reference: str  # processor payment reference (PaymentIntent id)
    client_token: str  # handed to the client to complete payment


@dataclass(frozen=True)
class RefundRecord:
    reference: str
    status: str
    amount: int


@dataclass(frozen=True)
class DestinationStatus:
    charges_enabled: bool
    payouts_enabled: bool


class PaymentProcessor(Protocol):
    """The three processor operations the booking engine relies on"""

    async def create_hold(
        self, amount: int, destination_account: str, fee_amount: int, metadata: dict
    ) -> HoldResult: ...

    async def refund(self, reference: str, amount: Optional[int] = None, reason: str = "") -> RefundRecord: ...

    async def get_destination_status(self, destination_account: str) -> DestinationStatus: ...


class StripeProcessor:
    """Stripe Connect: destination charges with an application fee"""

    def __init__(self, api_key: Optional[str] = None, webhook_secret: Optional[str] = None):
        self.api_key = api_key or STRIPE_SECRET_KEY
        self.webhook_secret = webhook_secret or STRIPE_WEBHOOK_SECRET
        self.currency = PAYMENT_CURRENCY
        if not self.api_key:
            logger.warning("STRIPE_SECRET_KEY not set; payment calls will fail until configured")

    def _require_key(self) -> str:
        if not self.api_key:
            raise ProcessorError("Payment processor not configured")
        return self.api_key

    async def create_hold(
        self, amount: int, destination_account: str, fee_amount: int, metadata: dict
    ) -> HoldResult:
        """PaymentIntent routed to the expert's account, platform fee kept as application fee"""
        api_key = self._require_key()
        try:
            intent = await stripe.PaymentIntent.create_async(
                api_key=api_key,
                amount=amount,
                currency=self.currency,
                application_fee_amount=fee_amount,
                transfer_data={"destination": destination_account},
                metadata={k: str(v) for k, v in metadata.items()},
                automatic_payment_methods={"enabled": True},
            )
        except stripe.StripeError as e:
            logger.error(f"❌ Failed to create payment intent for {destination_account}: {e}")
            raise ProcessorError(f"Payment hold failed: {e.user_message or str(e)}") from e

        logger.info(f"✅ Payment intent {intent.id} created: {amount} {self.currency}, fee {fee_amount}")
        return HoldResult(reference=intent.id, client_token=intent.client_secret)

    async def refund(self, reference: str, amount: Optional[int] = None, reason: str = "") -> RefundRecord:
        """Refund a payment; the application fee and the transfer are reversed too"""
        api_key = self._require_key()
        params = {
            "api_key": api_key,
            "payment_intent": reference,
            "refund_application_fee": True,
            "reverse_transfer": True,
            "metadata": {"reason": reason},
        }
        if amount is not None:
            params["amount"] = amount
        try:
            refund = await stripe.Refund.create_async(**params)
        except stripe.StripeError as e:
            logger.error(f"❌ Refund failed for {reference}: {e}")
            raise ProcessorError(f"Refund failed: {e.user_message or str(e)}", hold_ref=reference) from e

        logger.info(f"✅ Refund {refund.id} for {reference}: {refund.status}")
        return RefundRecord(reference=refund.id, status=refund.status, amount=refund.amount)

    async def get_destination_status(self, destination_account: str) -> DestinationStatus:
        api_key = self._require_key()
        try:
            account = await stripe.Account.retrieve_async(destination_account, api_key=api_key)
        except stripe.StripeError as e:
            logger.error(f"❌ Failed to retrieve connected account {destination_account}: {e}")
            raise ProcessorError(f"Could not verify payout account: {e.user_message or str(e)}") from e

        return DestinationStatus(
            charges_enabled=bool(account.charges_enabled),
            payouts_enabled=bool(account.payouts_enabled),
        )

    def parse_event(self, payload: bytes, signature: Optional[str]) -> stripe.Event:
        """Verify the Stripe-Signature header and return the event"""
        if not self.webhook_secret:
            raise ProcessorError("Webhook secret not configured")
        if not signature:
            raise ValidationError("Missing webhook signature")
        try:
            return stripe.Webhook.construct_event(payload, signature, self.webhook_secret)
        except ValueError as e:
            raise ValidationError("Invalid webhook payload") from e
        except stripe.SignatureVerificationError as e:
            logger.warning("🚫 Stripe webhook signature mismatch")
            raise ValidationError("Invalid webhook signature") from e
